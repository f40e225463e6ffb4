"""Small builders and queries for WordprocessingML markup."""
from __future__ import annotations

from typing import Iterable, List, Optional

from docx_manuscript.errors import MissingRequiredPart
from docx_manuscript.xmltree import TEXT, Node

PARAGRAPH = "w:p"
RUN = "w:r"
TABLE_CELL = "w:tc"
# Elements that carry the visible text of a paragraph.
RUN_CONTAINERS = ("w:r", "w:hyperlink", "w:ins", "w:smartTag", "w:fldSimple")


def build_text(text: str) -> Node:
    node = Node.build("w:t", {"xml:space": "preserve"})
    return node.push_child(Node.text_node(text))


def build_superscript() -> Node:
    return Node.build("w:vertAlign", {"w:val": "superscript"})


def build_run(text: str, run_properties: Optional[Iterable[Node]] = None) -> Node:
    """``<w:r>`` holding *text*; newlines become ``<w:br/>``."""
    run = Node.build(RUN)
    properties = list(run_properties or [])
    if properties:
        run.push_child(Node.build("w:rPr").append_children(properties))
    for index, line in enumerate(text.split("\n")):
        if index:
            run.push_child(Node.build("w:br"))
        run.push_child(build_text(line))
    return run


def build_line_break() -> Node:
    return Node.build(RUN).push_child(Node.build("w:br"))


def build_num_pr(ilvl: str, num_id: str) -> Node:
    num_pr = Node.build("w:numPr")
    num_pr.push_child(Node.build("w:ilvl", {"w:val": ilvl}))
    num_pr.push_child(Node.build("w:numId", {"w:val": num_id}))
    return num_pr


def build_paragraph(style_id: Optional[str] = None) -> Node:
    paragraph = Node.build(PARAGRAPH)
    p_pr = Node.build("w:pPr")
    if style_id:
        p_pr.push_child(Node.build("w:pStyle", {"w:val": style_id}))
    return paragraph.push_child(p_pr)


def get_document_body(document: Node) -> Node:
    """``w:body`` of a parsed main document part."""
    root = document.root() if document.get_tag_name() == "#document" else document
    body = root.get_child("w:body") if root.get_tag_name() == "w:document" else None
    if body is None:
        raise MissingRequiredPart("Main document has no w:body element")
    return body


def get_paragraph_text(paragraph: Node) -> str:
    """Concatenated content of the ``w:t`` elements below *paragraph*."""
    parts: List[str] = []
    paragraph.visit_subtree("w:t", lambda node: parts.append(node.text_content()))
    return "".join(parts)


def clear_paragraph_contents(paragraph: Node) -> Node:
    """Drop every run of *paragraph*, keeping its properties."""
    paragraph.remove_children(lambda node: node.get_tag_name() in RUN_CONTAINERS)
    return paragraph


def paragraph_style(paragraph: Node) -> Optional[str]:
    p_pr = paragraph.get_child("w:pPr")
    p_style = p_pr.get_child("w:pStyle") if p_pr is not None else None
    return p_style.get_attr("w:val") if p_style is not None else None


def text_nodes(node: Node) -> List[Node]:
    """Persistent handles on the text nodes held by ``w:t`` elements below *node*."""
    found: List[Node] = []

    def collect(t: Node):
        found.extend(t.find_all(TEXT))
        return False

    node.visit_subtree("w:t", collect)
    return found
