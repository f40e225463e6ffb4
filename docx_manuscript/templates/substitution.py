"""Placeholder substitution inside WordprocessingML trees.

Two kinds of markers:

* paragraph placeholders, a paragraph whose whole text is the marker; the
  paragraph is replaced by a list of generated paragraphs;
* inline placeholders, a marker anywhere in running text; replaced in place,
  or the containing paragraph is deleted when the value is ``@none``.
"""
from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from docx_manuscript.errors import PlaceholderNotExclusive, PlaceholderNotFound, UnrecognizedStyle
from docx_manuscript.log import get_logger
from docx_manuscript.wordml.oxml import PARAGRAPH, TABLE_CELL, build_paragraph, get_paragraph_text, text_nodes
from docx_manuscript.wordml.styles import Style, Styles
from docx_manuscript.xmltree import Node

LOGGER = get_logger(__name__)

# Containers that must keep at least one paragraph.
PARAGRAPH_CONTAINERS = (TABLE_CELL, "w:hdr", "w:ftr")

NONE_VALUE = "@none"

Replacement = Union[Sequence[Node], Callable[[Node], Sequence[Node]]]


# ---------------------------------------------------------------------------
# Locating placeholders
# ---------------------------------------------------------------------------
def find_paragraph_with_pattern(container: Node, pattern: str, start_index: int = 0) -> Optional[int]:
    """Index of the first direct child at or after *start_index* whose text contains *pattern*."""
    found: List[int] = []

    def check(child: Node, index: int):
        if pattern in get_paragraph_text(child):
            found.append(index)
            return False
        return True

    container.visit_children(check, start_index)
    return found[0] if found else None


def find_paragraph_with_pattern_strict(container: Node, pattern: str, start_index: int = 0) -> int:
    """Like :func:`find_paragraph_with_pattern` but the marker must be the paragraph's only text."""
    index = find_paragraph_with_pattern(container, pattern, start_index)
    if index is None:
        raise PlaceholderNotFound(pattern)
    text = get_paragraph_text(container.get_child([index]))
    if text != pattern:
        raise PlaceholderNotExclusive(pattern, text)
    return index


def contains_pattern(root: Node, pattern: str) -> bool:
    return any(pattern in get_paragraph_text(p) for p in root.find_all(PARAGRAPH))


# ---------------------------------------------------------------------------
# Paragraph placeholders
# ---------------------------------------------------------------------------
class ParagraphTemplateSubstitution:
    """Replace the placeholder paragraph *pattern* with generated paragraphs.

    *replacement* is either a list of nodes or a factory called with the
    placeholder paragraph (so generated paragraphs can copy its properties).
    """

    def __init__(self, pattern: str, replacement: Replacement):
        self.pattern = pattern
        self.replacement = replacement

    def perform(self, container: Node) -> int:
        index = find_paragraph_with_pattern_strict(container, self.pattern)
        placeholder = container.get_child([index])
        if callable(self.replacement):
            nodes = list(self.replacement(placeholder))
        else:
            nodes = list(self.replacement)
        container.remove_child([index])
        container.insert_children(nodes, [index])
        LOGGER.debug("Replaced %s with %d node(s)", self.pattern, len(nodes))
        return len(nodes)


# ---------------------------------------------------------------------------
# Inline placeholders
# ---------------------------------------------------------------------------
def _replace_in_text_nodes(nodes: List[Node], find_text: str, replace_text: str) -> int:
    """Replace *find_text* across consecutive text nodes, keeping each run's formatting.

    Text before a match stays in the run where the match starts, the
    replacement goes there too; the rest of the matched text is removed from
    the following runs.
    """
    full_text = "".join(node.get_text() for node in nodes)
    matches = list(re.finditer(re.escape(find_text), full_text))
    if not matches:
        return 0

    def char_map():
        positions = []
        for n_idx, node in enumerate(nodes):
            for c_idx in range(len(node.get_text())):
                positions.append((n_idx, c_idx))
        return positions

    positions = char_map()
    # Replace from last to first to preserve positions
    for match in reversed(matches):
        start_node, start_char = positions[match.start()]
        end_node, end_char = positions[match.end() - 1]
        if start_node == end_node:
            text = nodes[start_node].get_text()
            nodes[start_node].set_text(text[:start_char] + replace_text + text[end_char + 1:])
        else:
            nodes[start_node].set_text(nodes[start_node].get_text()[:start_char] + replace_text)
            nodes[end_node].set_text(nodes[end_node].get_text()[end_char + 1:])
            for n_idx in range(start_node + 1, end_node):
                nodes[n_idx].set_text("")
        positions = char_map()
    return len(matches)


def _remove_paragraphs_with(root: Node, pattern: str) -> int:
    doomed = [p for p in root.find_all(PARAGRAPH) if pattern in get_paragraph_text(p)]
    for paragraph in doomed:
        parent = paragraph.get_parent()
        paragraph.detach()
        if (parent is not None and parent.get_tag_name() in PARAGRAPH_CONTAINERS
                and not parent.get_children(PARAGRAPH)):
            parent.push_child(build_paragraph())
    return len(doomed)


class InlineTemplateSubstitution:
    """Replace *pattern* inside running text, or drop its paragraphs for ``@none``."""

    def __init__(self, pattern: str, value: str):
        self.pattern = pattern
        self.value = value

    def perform(self, root: Node) -> int:
        if self.value == NONE_VALUE:
            count = _remove_paragraphs_with(root, self.pattern)
        else:
            count = sum(
                _replace_in_text_nodes(text_nodes(paragraph), self.pattern, self.value)
                for paragraph in root.find_all(PARAGRAPH)
            )
        if count:
            LOGGER.debug("Substituted %s (%d occurrence(s))", self.pattern, count)
        return count

    def perform_all(self, roots: Iterable[Node]) -> int:
        """Run over the body and every header/footer independently."""
        return sum(self.perform(root) for root in roots)


# ---------------------------------------------------------------------------
# Style-aware substitution
# ---------------------------------------------------------------------------
STYLE_TAGS = ("w:pStyle", "w:rStyle", "w:tblStyle")


class StyleAwareSubstitution:
    """Copy content into the placeholder paragraph, mapping every style by name.

    A style of the incoming content is looked up by name in *name_table*
    (incoming name -> house name); a name listed in *passthrough* keeps its
    house definition of the same name, or has its definition copied over.
    Any other style raises :class:`UnrecognizedStyle`.
    """

    def __init__(self, pattern: str, incoming_styles: Styles, house_styles: Styles,
                 name_table: Dict[str, str], passthrough: Iterable[str] = ()):
        self.pattern = pattern
        self.incoming_styles = incoming_styles
        self.house_styles = house_styles
        self.name_table = dict(name_table)
        self.passthrough = set(passthrough)
        self._resolved: Dict[str, str] = {}

    def map_style_id(self, incoming_id: str) -> str:
        if incoming_id in self._resolved:
            return self._resolved[incoming_id]
        style = self.incoming_styles.find(incoming_id)
        name = style.name if style is not None and style.name else incoming_id
        if name in self.name_table:
            house_id = self.house_styles.get_style_by_name(self.name_table[name], "template styles").id
        elif name in self.passthrough:
            house_id = self._pass_through(name, style)
        else:
            raise UnrecognizedStyle(name)
        self._resolved[incoming_id] = house_id
        return house_id

    def _pass_through(self, name: str, style: Optional[Style]) -> str:
        existing = self.house_styles.find_by_name(name)
        if existing is not None:
            return existing.id
        if style is None:
            raise UnrecognizedStyle(name)
        copy = Style(style.node.deep_copy())
        for reference in copy.reference_nodes():
            if self.house_styles.find(reference.get_attr("w:val", "")) is None:
                reference.detach()
        self.house_styles.add_style(copy)
        LOGGER.debug("Migrated style %r into the template", name)
        return copy.id

    def remap(self, nodes: Iterable[Node]) -> None:
        for node in nodes:
            for site in node.find_all(lambda n: n.get_tag_name() in STYLE_TAGS):
                site.set_attr("w:val", self.map_style_id(site.get_attr("w:val", "")))

    def perform(self, container: Node, content: Sequence[Node]) -> int:
        copies = [node.deep_copy() for node in content]
        self.remap(copies)
        return ParagraphTemplateSubstitution(self.pattern, copies).perform(container)
