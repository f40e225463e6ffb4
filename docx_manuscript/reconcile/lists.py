"""List regions: sentinel comments written by the generator, numbered here.

The generator brackets every list with comments::

    <!-- ListMode OrderedList start=3 -->  ...  <!-- ListMode None -->

Regions nest.  Each region opened gets a fresh ``numId`` from a high base,
bound to the abstract numbering of its kind; paragraphs inside it have their
``w:pStyle`` and ``w:numId`` overwritten.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from docx_manuscript.config import BULLET_LIST, ORDERED_LIST
from docx_manuscript.errors import MissingRequiredResource
from docx_manuscript.log import get_logger
from docx_manuscript.wordml.numbering import Num, Numbering
from docx_manuscript.xmltree import COMMENT, Node

LOGGER = get_logger(__name__)

NO_LIST = "None"
LIST_KINDS = (ORDERED_LIST, BULLET_LIST)


class ListRegionMarker:
    """Text format of the list-region sentinel comments."""

    PREFIX = "ListMode"
    _RE = re.compile(r"\bListMode\s+(OrderedList|BulletList|None)\b(?:\s+start=(\d+))?")

    @classmethod
    def text(cls, kind: str, start: Optional[int] = None) -> str:
        if start is not None and start != 1:
            return f" {cls.PREFIX} {kind} start={start} "
        return f" {cls.PREFIX} {kind} "

    @classmethod
    def opening(cls, ordered: bool, start: Optional[int] = None) -> str:
        return cls.text(ORDERED_LIST if ordered else BULLET_LIST, start if ordered else None)

    @classmethod
    def closing(cls) -> str:
        return cls.text(NO_LIST)

    @classmethod
    def parse(cls, comment: str):
        """``(kind, start)`` of a sentinel, or ``None`` for any other comment."""
        match = cls._RE.search(comment)
        if not match:
            return None
        return match.group(1), int(match.group(2)) if match.group(2) else 1

    @classmethod
    def is_marker(cls, node: Node) -> bool:
        return node.is_comment() and cls.parse(node.get_comment()) is not None


@dataclass(frozen=True)
class ListBinding:
    """Style id and abstract numbering id a list kind is rendered with."""

    style_id: str
    abstract_num_id: str


@dataclass
class NewNumbering:
    num_id: str
    abstract_num_id: str
    level: int
    start: int


@dataclass
class _Region:
    kind: str
    num_id: str


def apply_list_styles(root: Node, bindings: Dict[str, ListBinding], base: int = 10000) -> List[NewNumbering]:
    """Rewrite list paragraphs inside sentinel regions; returns the numberings to add."""
    stack: List[Optional[_Region]] = []
    current: Optional[_Region] = None
    created: List[NewNumbering] = []
    next_id = base

    def visit(node: Node):
        nonlocal current, next_id
        tag = node.get_tag_name()
        if current is not None and tag == "w:pPr":
            node.remove_children("w:pStyle")
            node.unshift_child(Node.build("w:pStyle", {"w:val": bindings[current.kind].style_id}))
        elif current is not None and tag == "w:numId":
            node.set_attr("w:val", current.num_id)
        elif tag == COMMENT:
            parsed = ListRegionMarker.parse(node.get_comment())
            if parsed is None:
                return
            kind, start = parsed
            if kind == NO_LIST:
                current = stack.pop() if stack else None
                return
            if kind not in bindings:
                raise MissingRequiredResource(f"No list style bound for {kind}")
            stack.append(current)
            current = _Region(kind, str(next_id))
            created.append(NewNumbering(current.num_id, bindings[kind].abstract_num_id, len(stack) - 1, start))
            next_id += 1

    root.visit_subtree(visit)
    if stack:
        LOGGER.warning("Unbalanced list markers: %d region(s) left open", len(stack))
    return created


def strip_markers(root: Node) -> int:
    """Remove every list sentinel comment below *root*."""
    markers = root.find_all(ListRegionMarker.is_marker)
    for marker in markers:
        marker.detach()
    return len(markers)


def add_new_numberings(numbering: Numbering, created: List[NewNumbering]) -> None:
    """Append a restart-at-1 ``w:num`` for every region, honouring ordered list starts."""
    known = {item.id for item in numbering.abstract_nums}
    for entry in created:
        if entry.abstract_num_id not in known:
            raise MissingRequiredResource(
                f"Abstract numbering {entry.abstract_num_id} is not defined in the template numbering"
            )
        num = Num.build(entry.num_id, entry.abstract_num_id)
        if entry.start != 1:
            override = num.get_level_override(entry.level)
            if override is not None:
                override.get_child("w:startOverride").set_attr("w:val", str(entry.start))
        numbering.add_num(num)
