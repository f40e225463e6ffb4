"""Order-preserving XML tree used for every package part.

Parts are parsed with ``defusedxml.minidom`` and converted into a small tree
of elements, text nodes and comments.  Qualified names keep their prefixes
(``w:p``, ``r:id``) and attribute order is preserved, so a part can be edited
and written back without disturbing anything the edit did not touch.

A :class:`Node` is a *handle* on a stored node.  Several handles may point at
the same stored node (``shallow_copy``); ``deep_copy`` clones the subtree.
Handles passed to ``visit_subtree`` callbacks are temporary and stop working
once the callback returns.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union
from xml.dom import Node as DomNode
from xml.parsers.expat import ExpatError
from xml.sax.saxutils import escape, quoteattr

import defusedxml.minidom
from defusedxml import DefusedXmlException

from docx_manuscript.errors import AmbiguousMatch, MalformedXml, UseAfterInvalidation

ELEMENT = "#element"
TEXT = "#text"
COMMENT = "#comment"
DOCUMENT = "#document"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'

Query = Union[str, Callable[["Node"], bool], None]
Path = Sequence[int]


class _Raw:
    """Stored node; ``Node`` handles point at these."""

    __slots__ = ("kind", "name", "attrs", "children", "value", "parent")

    def __init__(self, kind: str, name: Optional[str] = None,
                 attrs: Optional[Dict[str, str]] = None, value: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.attrs: Dict[str, str] = dict(attrs) if attrs else {}
        self.children: List[_Raw] = []
        self.value = value
        self.parent: Optional[_Raw] = None

    def tag(self) -> str:
        if self.kind == ELEMENT:
            return self.name or ""
        return self.kind

    def clone(self) -> "_Raw":
        copy = _Raw(self.kind, self.name, self.attrs, self.value)
        for child in self.children:
            child_copy = child.clone()
            child_copy.parent = copy
            copy.children.append(child_copy)
        return copy

    def index_in_parent(self) -> int:
        if self.parent is None:
            raise ValueError(f"<{self.tag()}> has no parent")
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        raise ValueError("Node is not among its parent's children")

    def detach(self) -> None:
        if self.parent is None:
            return
        del self.parent.children[self.index_in_parent()]
        self.parent = None


# ---------------------------------------------------------------------------
# Parsing and serialization
# ---------------------------------------------------------------------------
def _from_dom(dom_node) -> Optional[_Raw]:
    node_type = dom_node.nodeType
    if node_type in (DomNode.TEXT_NODE, DomNode.CDATA_SECTION_NODE):
        return _Raw(TEXT, value=dom_node.data)
    if node_type == DomNode.COMMENT_NODE:
        return _Raw(COMMENT, value=dom_node.data)
    if node_type == DomNode.ELEMENT_NODE:
        raw = _Raw(ELEMENT, dom_node.tagName, dict(dom_node.attributes.items()))
        _adopt_dom_children(raw, dom_node)
        return raw
    # Processing instructions and doctypes are not kept.
    return None


def _adopt_dom_children(raw: _Raw, dom_node) -> None:
    for dom_child in dom_node.childNodes:
        child = _from_dom(dom_child)
        if child is not None:
            child.parent = raw
            raw.children.append(child)


def _write(raw: _Raw, out: List[str]) -> None:
    if raw.kind == TEXT:
        out.append(escape(raw.value or ""))
    elif raw.kind == COMMENT:
        out.append(f"<!--{raw.value or ''}-->")
    elif raw.kind == DOCUMENT:
        for child in raw.children:
            _write(child, out)
    else:
        out.append("<" + (raw.name or ""))
        for key, value in raw.attrs.items():
            out.append(f" {key}={quoteattr(value)}")
        if not raw.children:
            out.append("/>")
            return
        out.append(">")
        for child in raw.children:
            _write(child, out)
        out.append(f"</{raw.name}>")


def _raw_at_path(raw: _Raw, path: Path) -> Optional[_Raw]:
    current = raw
    for index in path:
        count = len(current.children)
        if index < 0:
            index += count
        if index < 0 or index >= count:
            return None
        current = current.children[index]
    return current


class Node:
    """Handle on an XML element, text node or comment."""

    __slots__ = ("_raw",)

    def __init__(self, raw: _Raw):
        self._raw: Optional[_Raw] = raw

    # -- construction --------------------------------------------------------
    @classmethod
    def parse(cls, data: Union[str, bytes]) -> "Node":
        """Parse a complete XML document; returns the ``#document`` node."""
        try:
            dom = defusedxml.minidom.parseString(data)
        except (ExpatError, DefusedXmlException, ValueError) as exc:
            raise MalformedXml(f"Malformed XML: {exc}") from exc
        document = _Raw(DOCUMENT)
        _adopt_dom_children(document, dom)
        dom.unlink()
        return cls(document)

    @classmethod
    def parse_fragment(cls, data: str, namespaces: Optional[Dict[str, str]] = None) -> List["Node"]:
        """Parse a sequence of sibling nodes, declaring *namespaces* on a wrapper."""
        declarations = "".join(f' xmlns:{prefix}="{uri}"' for prefix, uri in (namespaces or {}).items())
        wrapper = cls.parse(f"<fragment{declarations}>{data}</fragment>").root()
        children = wrapper.get_children()
        for child in children:
            child.detach()
        return children

    @classmethod
    def build(cls, name: str, attrs: Optional[Dict[str, str]] = None) -> "Node":
        return cls(_Raw(ELEMENT, name, {k: str(v) for k, v in (attrs or {}).items()}))

    @classmethod
    def text_node(cls, value: str) -> "Node":
        return cls(_Raw(TEXT, value=value))

    @classmethod
    def comment_node(cls, value: str) -> "Node":
        return cls(_Raw(COMMENT, value=value))

    @classmethod
    def document(cls, root: "Node") -> "Node":
        """Wrap *root* into a fresh ``#document`` node."""
        document = cls(_Raw(DOCUMENT))
        document.push_child(root)
        return document

    def to_xml(self, declaration: Optional[bool] = None) -> str:
        raw = self._get()
        if declaration is None:
            declaration = raw.kind == DOCUMENT
        out: List[str] = [XML_DECLARATION] if declaration else []
        _write(raw, out)
        return "".join(out)

    def to_bytes(self) -> bytes:
        return self.to_xml().encode("utf-8")

    # -- handle management ---------------------------------------------------
    def _get(self) -> _Raw:
        if self._raw is None:
            raise UseAfterInvalidation(
                "Traversal node used after its callback returned; keep node.shallow_copy() instead"
            )
        return self._raw

    def _invalidate(self) -> None:
        self._raw = None

    def is_valid(self) -> bool:
        return self._raw is not None

    def shallow_copy(self) -> "Node":
        """Return a persistent handle on the same stored node."""
        return Node(self._get())

    def deep_copy(self) -> "Node":
        """Return an independent, detached clone of this subtree."""
        return Node(self._get().clone())

    def is_same(self, other: "Node") -> bool:
        return self._get() is other._get()

    def assign(self, source: "Node") -> "Node":
        """Overwrite this node's name, attributes and children with a copy of *source*."""
        raw = self._get()
        clone = source._get().clone()
        raw.kind, raw.name, raw.attrs, raw.value = clone.kind, clone.name, clone.attrs, clone.value
        for child in raw.children:
            child.parent = None
        raw.children = clone.children
        for child in raw.children:
            child.parent = raw
        return self

    def __repr__(self) -> str:
        if self._raw is None:
            return "<Node (invalidated)>"
        raw = self._raw
        if raw.kind == ELEMENT:
            return f"<Node {raw.name} attrs={len(raw.attrs)} children={len(raw.children)}>"
        return f"<Node {raw.kind} {raw.value!r}>"

    # -- kinds ---------------------------------------------------------------
    def get_tag_name(self) -> str:
        """Element name, or ``TEXT``/``COMMENT``/``DOCUMENT`` for other kinds."""
        return self._get().tag()

    def is_element(self) -> bool:
        return self._get().kind == ELEMENT

    def is_text(self) -> bool:
        return self._get().kind == TEXT

    def is_comment(self) -> bool:
        return self._get().kind == COMMENT

    # -- attributes ----------------------------------------------------------
    def get_attr(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._get().attrs.get(name, default)

    def get_attrs(self) -> Dict[str, str]:
        return dict(self._get().attrs)

    def set_attr(self, name: str, value) -> "Node":
        self._get().attrs[name] = str(value)
        return self

    def set_attrs(self, attrs: Dict[str, str]) -> "Node":
        for name, value in attrs.items():
            self.set_attr(name, value)
        return self

    def remove_attr(self, name: str) -> "Node":
        self._get().attrs.pop(name, None)
        return self

    def replace_attrs(self, attrs: Dict[str, str]) -> "Node":
        """Replace every attribute, keeping the order of *attrs*."""
        self._get().attrs = {name: str(value) for name, value in attrs.items()}
        return self

    # -- text and comments ---------------------------------------------------
    def get_text(self) -> str:
        raw = self._get()
        if raw.kind in (TEXT, COMMENT):
            return raw.value or ""
        return self.text_content()

    def set_text(self, value: str) -> "Node":
        """Set a text node's value, or replace an element's children with one text node."""
        raw = self._get()
        if raw.kind in (TEXT, COMMENT):
            raw.value = value
            return self
        for child in raw.children:
            child.parent = None
        raw.children = []
        return self.push_child(Node.text_node(value))

    def get_comment(self) -> str:
        raw = self._get()
        if raw.kind != COMMENT:
            raise TypeError(f"{raw.tag()} is not a comment")
        return raw.value or ""

    def text_content(self) -> str:
        """Concatenated value of every text node below this node."""
        parts: List[str] = []
        self.visit_subtree(TEXT, lambda node: parts.append(node.get_text()))
        return "".join(parts)

    # -- navigation ----------------------------------------------------------
    def root(self) -> "Node":
        """The single element child of a ``#document`` node."""
        child = self.get_child(lambda node: node.is_element())
        if child is None:
            raise MalformedXml("Document has no root element")
        return child

    def get_parent(self) -> Optional["Node"]:
        parent = self._get().parent
        return Node(parent) if parent is not None else None

    def get_index(self) -> int:
        """Position of this node among its parent's children."""
        return self._get().index_in_parent()

    def child_count(self) -> int:
        return len(self._get().children)

    def get_child(self, query: Union[Path, str, Callable[["Node"], bool]]) -> Optional["Node"]:
        """Follow an index path, or find the single direct child matching *query*."""
        raw = self._get()
        if isinstance(query, (list, tuple)):
            found = _raw_at_path(raw, query)
            return Node(found) if found is not None else None
        matches = [child for child in raw.children if _matches(child, query)]
        if not matches:
            return None
        if len(matches) > 1:
            raise AmbiguousMatch(f"{len(matches)} children of <{raw.tag()}> match {query!r}")
        return Node(matches[0])

    def get_children(self, query: Query = None) -> List["Node"]:
        return [Node(child) for child in self._get().children if _matches(child, query)]

    def find_all(self, query: Query = None) -> List["Node"]:
        """Persistent handles on every node of the subtree matching *query*, in document order."""
        found: List[Node] = []
        self.visit_subtree(query, lambda node: found.append(node.shallow_copy()))
        return found

    def visit_children(self, callback: Callable[["Node", int], Optional[bool]], start_index: int = 0) -> None:
        """Call *callback(child, index)* for direct children; returning ``False`` stops."""
        raw = self._get()
        for index, child in enumerate(list(raw.children)):
            if index < start_index or child.parent is not raw:
                continue
            handle = Node(child)
            try:
                result = callback(handle, index)
            finally:
                handle._invalidate()
            if result is False:
                return

    def visit_subtree(self, query, callback: Optional[Callable[["Node"], Optional[bool]]] = None,
                      start_path: Optional[Path] = None) -> None:
        """Pre-order traversal starting at this node (or at *start_path* below it).

        ``visit_subtree(callback)`` visits every node; ``visit_subtree(query,
        callback)`` only calls back for nodes matching *query*.  A callback that
        returns ``False`` prevents descent into the current node.  Children are
        snapshotted before the callback runs: nodes detached by a callback are not
        visited, nodes inserted by a callback are not visited either.
        """
        if callback is None:
            query, callback = None, query
        start = self._get()
        if start_path is not None:
            start = _raw_at_path(start, start_path)
            if start is None:
                return
        _visit(start, query, callback)

    # -- mutation ------------------------------------------------------------
    def push_child(self, node: "Node") -> "Node":
        raw = self._get()
        _attach(raw, len(raw.children), node._get())
        return self

    def unshift_child(self, node: "Node") -> "Node":
        _attach(self._get(), 0, node._get())
        return self

    def append_children(self, nodes: Iterable["Node"]) -> "Node":
        for node in nodes:
            self.push_child(node)
        return self

    def insert_children(self, nodes: Iterable["Node"], path: Path) -> "Node":
        """Splice *nodes* in at *path*; the last index ``-1`` appends."""
        if not path:
            raise IndexError("Insertion path must not be empty")
        parent = _raw_at_path(self._get(), path[:-1])
        if parent is None:
            raise IndexError(f"No node at path {list(path[:-1])}")
        index = path[-1]
        if index < 0:
            index = len(parent.children) + index + 1
        if index < 0 or index > len(parent.children):
            raise IndexError(f"Insertion index {path[-1]} out of range")
        for offset, node in enumerate(list(nodes)):
            _attach(parent, index + offset, node._get())
        return self

    def remove_child(self, path: Path) -> "Node":
        """Detach and return the node at *path*."""
        found = _raw_at_path(self._get(), path) if path else None
        if found is None:
            raise IndexError(f"No node at path {list(path)}")
        found.detach()
        return Node(found)

    def remove_children(self, query: Query = None) -> int:
        """Detach every direct child matching *query*; returns how many were removed."""
        raw = self._get()
        removed = [child for child in raw.children if _matches(child, query)]
        for child in removed:
            child.detach()
        return len(removed)

    def detach(self) -> "Node":
        self._get().detach()
        return self


def _matches(raw: _Raw, query: Query) -> bool:
    if query is None:
        return True
    if isinstance(query, str):
        return raw.tag() == query
    handle = Node(raw)
    try:
        return bool(query(handle))
    finally:
        handle._invalidate()


def _attach(parent: _Raw, index: int, raw: _Raw) -> None:
    ancestor: Optional[_Raw] = parent
    while ancestor is not None:
        if ancestor is raw:
            raise ValueError("Cannot insert a node into its own subtree")
        ancestor = ancestor.parent
    if raw.parent is parent and raw.index_in_parent() < index:
        index -= 1
    raw.detach()
    parent.children.insert(index, raw)
    raw.parent = parent


def _visit(raw: _Raw, query: Query, callback: Callable[[Node], Optional[bool]]) -> None:
    descend = True
    children = list(raw.children)
    if _matches(raw, query):
        parent_before = raw.parent
        handle = Node(raw)
        try:
            result = callback(handle)
        finally:
            handle._invalidate()
        descend = result is not False and raw.parent is parent_before
    if not descend or raw.kind not in (ELEMENT, DOCUMENT):
        return
    for child in children:
        if child.parent is raw:
            _visit(child, query, callback)
