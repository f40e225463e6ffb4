"""Relationship sidecar parts (``_rels/<part>.rels``)."""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Iterator, List, Optional

from docx_manuscript.xmltree import Node

RELS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
OFFICE_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

RT_OFFICE_DOCUMENT = f"{OFFICE_REL_NS}/officeDocument"
RT_STYLES = f"{OFFICE_REL_NS}/styles"
RT_NUMBERING = f"{OFFICE_REL_NS}/numbering"
RT_SETTINGS = f"{OFFICE_REL_NS}/settings"
RT_WEB_SETTINGS = f"{OFFICE_REL_NS}/webSettings"
RT_FONT_TABLE = f"{OFFICE_REL_NS}/fontTable"
RT_THEME = f"{OFFICE_REL_NS}/theme"
RT_HEADER = f"{OFFICE_REL_NS}/header"
RT_FOOTER = f"{OFFICE_REL_NS}/footer"
RT_FOOTNOTES = f"{OFFICE_REL_NS}/footnotes"
RT_ENDNOTES = f"{OFFICE_REL_NS}/endnotes"
RT_COMMENTS = f"{OFFICE_REL_NS}/comments"
RT_IMAGE = f"{OFFICE_REL_NS}/image"
RT_HYPERLINK = f"{OFFICE_REL_NS}/hyperlink"

EXTERNAL = "External"


def rels_path_for(part_path: str) -> str:
    """Sidecar path of *part_path*: ``word/document.xml`` -> ``word/_rels/document.xml.rels``."""
    folder, name = posixpath.split(part_path.lstrip("/"))
    return posixpath.join(folder, "_rels", f"{name}.rels")


def source_for_rels_path(rels_path: str) -> str:
    """Inverse of :func:`rels_path_for`; the package rels map to ``""``."""
    if rels_path == "_rels/.rels":
        return ""
    folder, name = posixpath.split(rels_path)
    folder = posixpath.dirname(folder)
    return posixpath.join(folder, name[: -len(".rels")])


@dataclass(frozen=True)
class Relationship:
    """A single relationship entry."""

    id: str
    type: str
    target: str
    target_mode: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return self.target_mode == EXTERNAL

    def same_link(self, other: "Relationship") -> bool:
        return (self.type, self.target, self.target_mode) == (other.type, other.target, other.target_mode)


class Relationships:
    """Relationships of one source part, backed by the sidecar's XML tree."""

    def __init__(self, document: Node, source_part: str = ""):
        self.document = document
        self.root = document.root()
        self.source_part = source_part

    @classmethod
    def empty(cls, source_part: str = "") -> "Relationships":
        return cls(Node.document(Node.build("Relationships", {"xmlns": RELS_NS})), source_part)

    def __iter__(self) -> Iterator[Relationship]:
        for node in self.root.get_children("Relationship"):
            yield Relationship(
                id=node.get_attr("Id", ""),
                type=node.get_attr("Type", ""),
                target=node.get_attr("Target", ""),
                target_mode=node.get_attr("TargetMode"),
            )

    def __len__(self) -> int:
        return len(self.root.get_children("Relationship"))

    def ids(self) -> List[str]:
        return [rel.id for rel in self]

    def get(self, rel_id: str) -> Optional[Relationship]:
        for rel in self:
            if rel.id == rel_id:
                return rel
        return None

    def by_type(self, rel_type: str) -> List[Relationship]:
        return [rel for rel in self if rel.type == rel_type]

    def get_unused_id(self) -> str:
        used = set(self.ids())
        index = 1
        while f"rId{index}" in used:
            index += 1
        return f"rId{index}"

    def add_relation(self, rel_type: str, target: str, target_mode: Optional[str] = None,
                     rel_id: Optional[str] = None) -> str:
        """Append a relationship and return its id (next unused ``rIdN`` by default)."""
        if rel_id is None or self.get(rel_id) is not None:
            rel_id = self.get_unused_id()
        attrs = {"Id": rel_id, "Type": rel_type, "Target": target}
        if target_mode:
            attrs["TargetMode"] = target_mode
        self.root.push_child(Node.build("Relationship", attrs))
        return rel_id

    def remove(self, rel_id: str) -> bool:
        return self.root.remove_children(
            lambda node: node.get_tag_name() == "Relationship" and node.get_attr("Id") == rel_id
        ) > 0

    def remove_type(self, rel_type: str) -> List[Relationship]:
        removed = self.by_type(rel_type)
        for rel in removed:
            self.remove(rel.id)
        return removed

    def join(self, other: "Relationships") -> Dict[str, str]:
        """Merge *other* into this set; returns the id map for *other*'s relationships.

        A relationship identical to one already present reuses that id.
        Otherwise *other*'s id is kept when free, or a fresh ``rIdN`` is used.
        """
        mapping: Dict[str, str] = {}
        for rel in other:
            existing = next((mine for mine in self if mine.same_link(rel)), None)
            if existing is not None:
                mapping[rel.id] = existing.id
                continue
            mapping[rel.id] = self.add_relation(rel.type, rel.target, rel.target_mode, rel_id=rel.id)
        return mapping

    def resolve_target(self, rel: Relationship) -> Optional[str]:
        """Package path of an internal relationship's target; ``None`` for external ones."""
        if not rel.target or rel.is_external:
            return None
        if rel.target.startswith("/"):
            return rel.target.lstrip("/")
        base_dir = PurePosixPath(self.source_part).parent
        return posixpath.normpath(base_dir.joinpath(rel.target).as_posix())
