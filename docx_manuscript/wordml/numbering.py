"""Wrappers over ``word/numbering.xml``."""
from __future__ import annotations

from typing import Dict, List, Optional

from docx_manuscript.xmltree import Node

MAX_LEVELS = 9


class AbstractNum:
    def __init__(self, node: Node):
        self.node = node

    @property
    def id(self) -> str:
        return self.node.get_attr("w:abstractNumId", "")

    @property
    def style_link(self) -> Optional[str]:
        child = self.node.get_child("w:styleLink")
        return child.get_attr("w:val") if child is not None else None

    @property
    def num_style_link(self) -> Optional[str]:
        child = self.node.get_child("w:numStyleLink")
        return child.get_attr("w:val") if child is not None else None


class Num:
    """A concrete numbering instance (``w:num``)."""

    def __init__(self, node: Node):
        self.node = node

    @classmethod
    def build(cls, num_id: str, abstract_num_id: str, restart_levels: int = MAX_LEVELS) -> "Num":
        """A ``w:num`` bound to *abstract_num_id* that restarts every level at 1."""
        node = Node.build("w:num", {"w:numId": num_id})
        node.push_child(Node.build("w:abstractNumId", {"w:val": abstract_num_id}))
        for level in range(restart_levels):
            override = Node.build("w:lvlOverride", {"w:ilvl": str(level)})
            override.push_child(Node.build("w:startOverride", {"w:val": "1"}))
            node.push_child(override)
        return cls(node)

    @property
    def id(self) -> str:
        return self.node.get_attr("w:numId", "")

    @property
    def abstract_num_id(self) -> Optional[str]:
        child = self.node.get_child("w:abstractNumId")
        return child.get_attr("w:val") if child is not None else None

    def level_overrides(self) -> Dict[int, Node]:
        return {int(child.get_attr("w:ilvl", "0")): child for child in self.node.get_children("w:lvlOverride")}

    def get_level_override(self, level: int) -> Optional[Node]:
        return self.level_overrides().get(level)


class Numbering:
    def __init__(self, document: Node):
        self.document = document
        self.root = document.root()

    @property
    def nums(self) -> List[Num]:
        return [Num(node) for node in self.root.get_children("w:num")]

    @property
    def abstract_nums(self) -> List[AbstractNum]:
        return [AbstractNum(node) for node in self.root.get_children("w:abstractNum")]

    def get_num(self, num_id: str) -> Optional[Num]:
        return next((num for num in self.nums if num.id == num_id), None)

    def get_abstract_num(self, abstract_num_id: str) -> Optional[AbstractNum]:
        return next((item for item in self.abstract_nums if item.id == abstract_num_id), None)

    def num_ids(self) -> List[str]:
        return [num.id for num in self.nums]

    def get_unused_num_id(self, base: int = 1) -> str:
        used = set(self.num_ids())
        candidate = base
        while str(candidate) in used:
            candidate += 1
        return str(candidate)

    def add_num(self, num: Num) -> Num:
        """Append *num*, keeping ``w:numIdMacAtCleanup`` the last child."""
        children = self.root.get_children()
        index = len(children)
        for position, child in enumerate(children):
            if child.get_tag_name() == "w:numIdMacAtCleanup":
                index = position
                break
        self.root.insert_children([num.node], [index])
        return num
