"""Transplant the house template's parts into the generated package."""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Dict, Iterable, List

from docx_manuscript.log import get_logger
from docx_manuscript.opc.package import MEDIA_DIR, Package
from docx_manuscript.opc.relationships import (
    RT_ENDNOTES,
    RT_FONT_TABLE,
    RT_FOOTER,
    RT_FOOTNOTES,
    RT_HEADER,
    RT_IMAGE,
    RT_NUMBERING,
    RT_SETTINGS,
    RT_THEME,
    RT_WEB_SETTINGS,
    Relationships,
)
from docx_manuscript.xmltree import Node

LOGGER = get_logger(__name__)

# Parts of the main document the output takes from the template.
REPLACED_TYPES = (
    RT_HEADER, RT_FOOTER, RT_FOOTNOTES, RT_ENDNOTES, RT_THEME,
    RT_SETTINGS, RT_WEB_SETTINGS, RT_FONT_TABLE, RT_NUMBERING,
)
TRANSPLANTED_TYPES = REPLACED_TYPES + (RT_IMAGE,)
REL_ATTRS = ("r:id", "r:embed", "r:link")


def patch_rel_ids(root: Node, mapping: Dict[str, str]) -> int:
    """Rewrite relationship-id attributes below *root* through *mapping*."""
    changed = 0

    def patch(node: Node):
        nonlocal changed
        for attr in REL_ATTRS:
            rel_id = node.get_attr(attr)
            if rel_id is not None and rel_id in mapping and mapping[rel_id] != rel_id:
                node.set_attr(attr, mapping[rel_id])
                changed += 1

    root.visit_subtree(lambda node: node.is_element(), patch)
    return changed


def _relative(target_path: str, source_part: str) -> str:
    return posixpath.relpath(target_path, posixpath.dirname(source_part) or ".")


@dataclass
class ComposedDocument:
    document: Node
    rel_map: Dict[str, str]


class PackageComposer:
    """Copies the template's page parts, numbering and media into *content*."""

    def __init__(self, template: Package, content: Package):
        self.template = template
        self.content = content
        self._copied: Dict[str, str] = {}

    def copy_part(self, template_path: str, rel_type: str = "") -> str:
        """Copy a template part (and what it links to); returns its path in *content*."""
        if template_path in self._copied:
            return self._copied[template_path]
        if rel_type == RT_IMAGE or template_path.startswith(MEDIA_DIR + "/"):
            target_path = self.content.get_unique_media_target(template_path)
        else:
            target_path = template_path
        self._copied[template_path] = target_path

        if template_path.endswith(".xml"):
            self.content.set_part_tree(target_path, self.template.get_part(template_path).deep_copy())
        else:
            self.content.set_part_bytes(target_path, self.template.get_bytes(template_path))

        source_rels = self.template.get_rels(template_path)
        if len(source_rels):
            target_rels = self.content.get_rels(target_path)
            for rel in list(target_rels):
                target_rels.remove(rel.id)
            for rel in source_rels:
                child = source_rels.resolve_target(rel)
                if child is None or not self.template.has_part(child):
                    target_rels.add_relation(rel.type, rel.target, rel.target_mode, rel_id=rel.id)
                    continue
                copied = self.copy_part(child, rel.type)
                target_rels.add_relation(rel.type, _relative(copied, target_path), rel_id=rel.id)
        LOGGER.debug("Transplanted %s -> %s", template_path, target_path)
        return target_path

    def _drop_replaced_parts(self, content_rels: Relationships) -> None:
        for rel in list(content_rels):
            if rel.type not in REPLACED_TYPES:
                continue
            target = content_rels.resolve_target(rel)
            content_rels.remove(rel.id)
            if target:
                self.content.remove_part(target)

    def compose(self) -> ComposedDocument:
        """Copy the template parts and return its document skeleton with patched ids.

        The skeleton still holds the ``{{{body}}}`` placeholder; the caller
        splices the content body in and stores it as the main document.
        """
        template_doc = self.template.document
        content_doc = self.content.document
        content_rels = content_doc.rels
        self._drop_replaced_parts(content_rels)

        incoming = Relationships.empty(content_doc.path)
        rel_map: Dict[str, str] = {}
        for rel in template_doc.rels:
            if rel.is_external:
                incoming.add_relation(rel.type, rel.target, rel.target_mode, rel_id=rel.id)
                continue
            if rel.type in TRANSPLANTED_TYPES:
                source_path = template_doc.rels.resolve_target(rel)
                if source_path is None or not self.template.has_part(source_path):
                    LOGGER.warning("Template relationship %s points at missing part %s", rel.id, rel.target)
                    continue
                copied = self.copy_part(source_path, rel.type)
                incoming.add_relation(rel.type, _relative(copied, content_doc.path), rel_id=rel.id)
                continue
            # Styles and the like stay the content's own.
            existing = content_rels.by_type(rel.type)
            if existing:
                rel_map[rel.id] = existing[0].id
        rel_map.update(content_rels.join(incoming))
        self.content.content_types.join(self.template.content_types, parts=list(self._copied))

        skeleton = template_doc.node.deep_copy()
        patch_rel_ids(skeleton, rel_map)
        return ComposedDocument(skeleton, rel_map)


def transplant_references(source: Package, source_part: str, target: Package, target_part: str,
                          nodes: Iterable[Node]) -> Dict[str, str]:
    """Give *nodes* (moving from *source* to *target*) the relationships they reference."""
    nodes = list(nodes)
    source_rels = source.get_rels(source_part)
    target_rels = target.get_rels(target_part)
    mapping: Dict[str, str] = {}
    wanted: List[str] = []
    for node in nodes:
        node.visit_subtree(
            lambda n: n.is_element(),
            lambda n: wanted.extend(n.get_attr(attr) for attr in REL_ATTRS if n.get_attr(attr)),
        )
    for rel_id in wanted:
        rel = source_rels.get(rel_id)
        if rel is None or rel_id in mapping:
            continue
        if rel.is_external:
            mapping[rel_id] = target_rels.add_relation(rel.type, rel.target, rel.target_mode)
            continue
        source_path = source_rels.resolve_target(rel)
        if rel.type != RT_IMAGE or source_path is None:
            LOGGER.warning("Relationship %s of type %s is not carried over", rel_id, rel.type)
            continue
        media_path = target.get_unique_media_target(source_path)
        target.set_part_bytes(media_path, source.get_bytes(source_path))
        mapping[rel_id] = target_rels.add_relation(rel.type, _relative(media_path, target_part))
    target.content_types.join(source.content_types, parts=[])
    for node in nodes:
        patch_rel_ids(node, mapping)
    return mapping
