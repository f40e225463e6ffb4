"""Wrappers over ``word/styles.xml``."""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from docx_manuscript.errors import MissingNamedStyle, UnknownStyleId
from docx_manuscript.xmltree import Node

# Children of w:style that name another style.
STYLE_REFERENCE_TAGS = ("w:basedOn", "w:link", "w:next")
# CT_Style child order.
STYLE_CHILD_ORDER = (
    "w:name", "w:aliases", "w:basedOn", "w:next", "w:link", "w:autoRedefine", "w:hidden",
    "w:uiPriority", "w:semiHidden", "w:unhideWhenUsed", "w:qFormat", "w:locked", "w:personal",
    "w:personalCompose", "w:personalReply", "w:rsid", "w:pPr", "w:rPr", "w:tblPr", "w:trPr",
    "w:tcPr", "w:tblStylePr",
)


class Style:
    """One ``w:style`` definition."""

    def __init__(self, node: Node):
        self.node = node

    def __repr__(self) -> str:
        return f"<Style {self.id!r} name={self.name!r}>"

    @property
    def id(self) -> str:
        return self.node.get_attr("w:styleId", "")

    @id.setter
    def id(self, value: str) -> None:
        self.node.set_attr("w:styleId", value)

    @property
    def type(self) -> str:
        return self.node.get_attr("w:type", "paragraph")

    @property
    def name(self) -> Optional[str]:
        return self._get_value("w:name")

    @name.setter
    def name(self, value: str) -> None:
        self._set_value("w:name", value)

    @property
    def based_on(self) -> Optional[str]:
        return self._get_value("w:basedOn")

    @based_on.setter
    def based_on(self, value: Optional[str]) -> None:
        self._set_value("w:basedOn", value)

    @property
    def linked_style(self) -> Optional[str]:
        return self._get_value("w:link")

    @linked_style.setter
    def linked_style(self, value: Optional[str]) -> None:
        self._set_value("w:link", value)

    @property
    def next_style(self) -> Optional[str]:
        return self._get_value("w:next")

    @next_style.setter
    def next_style(self, value: Optional[str]) -> None:
        self._set_value("w:next", value)

    def references(self) -> List[str]:
        """Ids of the styles this one points at (basedOn, link, next)."""
        return [ref for ref in (self.based_on, self.linked_style, self.next_style) if ref is not None]

    def reference_nodes(self) -> List[Node]:
        return self.node.get_children(lambda n: n.get_tag_name() in STYLE_REFERENCE_TAGS)

    def _get_value(self, tag: str) -> Optional[str]:
        child = self.node.get_child(tag)
        return child.get_attr("w:val") if child is not None else None

    def _set_value(self, tag: str, value: Optional[str]) -> None:
        child = self.node.get_child(tag)
        if value is None:
            if child is not None:
                child.detach()
            return
        if child is None:
            child = Node.build(tag)
            self.node.insert_children([child], [self._schema_index(tag)])
        child.set_attr("w:val", value)

    def _schema_index(self, tag: str) -> int:
        """Index before the first child that follows *tag* in schema order."""
        rank = STYLE_CHILD_ORDER.index(tag)
        for index, node in enumerate(self.node.get_children()):
            name = node.get_tag_name()
            if name in STYLE_CHILD_ORDER and STYLE_CHILD_ORDER.index(name) > rank:
                return index
        return -1


class Styles:
    """Ordered id -> :class:`Style` view of a ``w:styles`` element."""

    def __init__(self, document: Node):
        self.document = document
        self.root = document.root()

    def __iter__(self) -> Iterator[Style]:
        return iter(self.styles())

    def __len__(self) -> int:
        return len(self.styles())

    def __contains__(self, style_id: str) -> bool:
        return self.find(style_id) is not None

    def styles(self) -> List[Style]:
        return [Style(node) for node in self.root.get_children("w:style")]

    def by_id(self) -> Dict[str, Style]:
        return {style.id: style for style in self.styles()}

    @property
    def doc_defaults(self) -> Optional[Node]:
        return self.root.get_child("w:docDefaults")

    @property
    def latent_styles(self) -> Optional[Node]:
        return self.root.get_child("w:latentStyles")

    def find(self, style_id: str) -> Optional[Style]:
        for style in self.styles():
            if style.id == style_id:
                return style
        return None

    def get_style(self, style_id: str) -> Style:
        style = self.find(style_id)
        if style is None:
            raise UnknownStyleId(style_id)
        return style

    def find_by_name(self, name: str) -> Optional[Style]:
        for style in self.styles():
            if style.name == name:
                return style
        return None

    def get_style_by_name(self, name: str, where: str = "styles") -> Style:
        style = self.find_by_name(name)
        if style is None:
            raise MissingNamedStyle(name, where)
        return style

    def ids_by_name(self, styles: Optional[Iterable[Style]] = None) -> Dict[str, str]:
        """Style name -> id; a later definition of the same name wins."""
        table: Dict[str, str] = {}
        for style in self.styles() if styles is None else styles:
            if style.name is not None:
                table[style.name] = style.id
        return table

    def add_style(self, style: Style) -> Style:
        self.root.push_child(style.node)
        return style

    def remove_style(self, style: Style) -> None:
        style.node.detach()

    def replace_singleton(self, tag: str, source: Optional[Node]) -> None:
        """Overwrite the ``w:docDefaults``/``w:latentStyles`` block with a copy of *source*."""
        if source is None:
            return
        existing = self.root.get_child(tag)
        if existing is not None:
            existing.assign(source)
            return
        copy = source.deep_copy()
        if tag == "w:docDefaults":
            self.root.unshift_child(copy)
        else:
            defaults = self.root.get_child("w:docDefaults")
            index = defaults.get_index() + 1 if defaults is not None else 0
            self.root.insert_children([copy], [index])
