"""Metadata-driven placeholders of the house template."""
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from docx_manuscript.config import LITERATURE_LIST, ConversionConfig
from docx_manuscript.errors import MalformedMetadata
from docx_manuscript.log import get_logger
from docx_manuscript.meta import DocumentMeta
from docx_manuscript.templates.substitution import (
    NONE_VALUE,
    InlineTemplateSubstitution,
    ParagraphTemplateSubstitution,
    contains_pattern,
    find_paragraph_with_pattern,
)
from docx_manuscript.wordml.oxml import (
    build_num_pr,
    build_paragraph,
    build_run,
    build_superscript,
    clear_paragraph_contents,
)
from docx_manuscript.xmltree import Node

LOGGER = get_logger(__name__)

USE_CITATION = "@use_citation"
INLINE_FIELDS = ("header", "abstract", "keywords", "for_citation", "acknowledgements", "page_header")


def placeholder(name: str) -> str:
    return "{{{" + name + "}}}"


BODY = placeholder("body")
LINKS = placeholder("links")
AUTHORS_DETAIL = placeholder("authors_detail")


def _from_template(template: Node) -> Node:
    paragraph = template.deep_copy()
    return clear_paragraph_contents(paragraph)


class HouseTemplate:
    """Fills the house template's placeholders from document metadata.

    *house_id* maps a house style name to the style id it has in the output.
    """

    def __init__(self, meta: DocumentMeta, config: ConversionConfig, house_id: Callable[[str], str]):
        self.meta = meta
        self.config = config
        self.house_id = house_id

    # -- values --------------------------------------------------------------
    def field_value(self, name: str, language: str) -> str:
        value = self.meta.get_string(f"{name}_{language}")
        if value == USE_CITATION and name != "for_citation":
            value = self.meta.get_string(f"for_citation_{language}")
        return value

    def organization_index(self, author: DocumentMeta, position: int) -> str:
        """Superscript of an author: its organizations' 1-based positions, else its own."""
        organizations = self.meta.get_section("organizations")
        ids = [org.get_optional_string("id") for org in organizations.as_array()] if organizations.exists() else []
        own = author.get_section("organizations")
        if not own.exists():
            return str(position)
        indices = []
        for entry in own.as_array():
            org_id = entry.get_string()
            if org_id not in ids:
                raise MalformedMetadata(entry.path, "a known organization id", repr(org_id))
            indices.append(str(ids.index(org_id) + 1))
        return ",".join(indices)

    # -- paragraph factories -------------------------------------------------
    def author_paragraphs(self, language: str) -> Callable[[Node], List[Node]]:
        def build(template: Node) -> List[Node]:
            result = []
            for position, author in enumerate(self.meta.get_section("authors").as_array(), start=1):
                name = author.get_string(f"name_{language}")
                orcid = author.get_string("orcid")
                email = author.get_string("email")
                paragraph = _from_template(template)
                paragraph.push_child(build_run(self.organization_index(author, position), [build_superscript()]))
                paragraph.push_child(build_run(f"{name}, ORCID: {orcid}, <{email}>"))
                result.append(paragraph)
            return result
        return build

    def organization_paragraphs(self, language: str) -> Callable[[Node], List[Node]]:
        def build(template: Node) -> List[Node]:
            result = []
            for index, organization in enumerate(self.meta.get_section("organizations").as_array(), start=1):
                paragraph = _from_template(template)
                paragraph.push_child(build_run(str(index), [build_superscript()]))
                paragraph.push_child(build_run(organization.get_string(f"name_{language}")))
                result.append(paragraph)
            return result
        return build

    def link_paragraphs(self) -> List[Node]:
        rule = self.config.list_rule(LITERATURE_LIST)
        style_id = self.house_id(rule.style_name)
        result = []
        for link in self.meta.get_section("links").as_array():
            # Entries are either plain strings or mappings with a description.
            description = link.get_string("description") if link.is_map() else link.get_string()
            paragraph = build_paragraph(style_id)
            paragraph.get_child("w:pPr").push_child(build_num_pr("0", rule.numbering_id))
            paragraph.push_child(build_run(description))
            result.append(paragraph)
        return result

    def author_detail_paragraphs(self, template: Node) -> List[Node]:
        result = []
        for author in self.meta.get_section("authors").as_array():
            for language in self.config.languages:
                line = author.get_string(f"details_{language}")
                if line == NONE_VALUE:
                    continue
                paragraph = _from_template(template)
                paragraph.push_child(build_run(line))
                result.append(paragraph)
        return result

    # -- substitution --------------------------------------------------------
    def substitute_body(self, body: Node, content: Sequence[Node]) -> None:
        """Splice the rendered content in place of the mandatory ``{{{body}}}`` paragraph."""
        ParagraphTemplateSubstitution(BODY, list(content)).perform(body)

    def _paragraph(self, body: Node, pattern: str, replacement) -> None:
        if find_paragraph_with_pattern(body, pattern) is None:
            LOGGER.debug("Template has no %s placeholder", pattern)
            return
        ParagraphTemplateSubstitution(pattern, replacement).perform(body)

    def substitute_metadata(self, body: Node, page_parts: Sequence[Node] = ()) -> None:
        """Fill author, organization, bibliography and inline placeholders.

        Placeholders missing from the template are skipped; the metadata of a
        placeholder that is present is mandatory.
        """
        for language in self.config.languages:
            self._paragraph(body, placeholder(f"authors_{language}"), self.author_paragraphs(language))
            self._paragraph(body, placeholder(f"organizations_{language}"), self.organization_paragraphs(language))
        self._paragraph(body, LINKS, lambda _: self.link_paragraphs())
        self._paragraph(body, AUTHORS_DETAIL, self.author_detail_paragraphs)

        roots = [body] + list(page_parts)
        for language in self.config.languages:
            for name in INLINE_FIELDS:
                pattern = placeholder(f"{name}_{language}")
                if not any(contains_pattern(root, pattern) for root in roots):
                    continue
                InlineTemplateSubstitution(pattern, self.field_value(name, language)).perform_all(roots)
