import pytest

from conftest import W_NS, document_xml, numbering_xml, paragraph, style, styles_xml
from docx_manuscript.errors import MissingNamedStyle, MissingRequiredPart, UnknownStyleId
from docx_manuscript.wordml import Num, Numbering, Styles
from docx_manuscript.wordml.oxml import (
    build_paragraph,
    build_run,
    clear_paragraph_contents,
    get_document_body,
    get_paragraph_text,
    paragraph_style,
    text_nodes,
)
from docx_manuscript.xmltree import Node


@pytest.fixture
def styles():
    return Styles(Node.parse(styles_xml(
        [style("Normal"), style("Heading1", "heading 1", based_on="Normal", next_style="Normal", link="H1Char")],
        doc_defaults="<w:docDefaults><w:rPrDefault/></w:docDefaults>",
    )))


def test_style_lookup(styles):
    assert len(styles) == 2
    heading = styles.get_style("Heading1")
    assert heading.name == "heading 1"
    assert heading.references() == ["Normal", "H1Char", "Normal"]
    assert styles.get_style_by_name("heading 1").id == "Heading1"
    assert styles.ids_by_name() == {"Normal": "Normal", "heading 1": "Heading1"}


def test_style_lookup_errors(styles):
    with pytest.raises(UnknownStyleId):
        styles.get_style("Nope")
    with pytest.raises(MissingNamedStyle):
        styles.get_style_by_name("nope")


def test_style_setters_edit_the_tree(styles):
    heading = styles.get_style("Heading1")
    heading.id = "template-1"
    heading.based_on = None
    heading.next_style = "template-0"
    assert heading.node.get_child("w:basedOn") is None
    assert heading.node.get_child("w:next").get_attr("w:val") == "template-0"
    assert "template-1" in styles


def test_added_references_keep_schema_order():
    node = Node.parse(styles_xml(
        ['<w:style w:type="paragraph" w:styleId="Body"><w:name w:val="Body"/><w:qFormat/><w:rPr/></w:style>']
    ))
    body = Styles(node).get_style("Body")
    body.linked_style = "BodyChar"
    body.based_on = "Normal"
    body.next_style = "Body"
    tags = [child.get_tag_name() for child in body.node.get_children()]
    assert tags == ["w:name", "w:basedOn", "w:next", "w:link", "w:qFormat", "w:rPr"]


def test_replace_singleton_keeps_block_order(styles):
    latent = Node.parse_fragment('<w:latentStyles w:count="1"/>', {"w": W_NS})[0]
    styles.replace_singleton("w:latentStyles", latent)
    assert [child.get_tag_name() for child in styles.root.get_children(lambda n: n.is_element())][:2] == [
        "w:docDefaults", "w:latentStyles",
    ]
    defaults = Node.parse_fragment('<w:docDefaults><w:pPrDefault/></w:docDefaults>', {"w": W_NS})[0]
    styles.replace_singleton("w:docDefaults", defaults)
    assert styles.doc_defaults.get_child([0]).get_tag_name() == "w:pPrDefault"


def test_num_build_restarts_every_level():
    num = Num.build("10000", "33")
    assert num.abstract_num_id == "33"
    assert len(num.level_overrides()) == 9
    assert num.get_level_override(0).get_child("w:startOverride").get_attr("w:val") == "1"


def test_numbering_ids_and_insertion_order():
    numbering = Numbering(Node.parse(numbering_xml(("33",), {"1": "33", "10000": "33"})))
    numbering.root.push_child(Node.build("w:numIdMacAtCleanup", {"w:val": "2"}))
    assert numbering.get_unused_num_id(10000) == "10001"
    numbering.add_num(Num.build("10001", "33"))
    assert numbering.root.get_child([-1]).get_tag_name() == "w:numIdMacAtCleanup"
    assert numbering.get_num("10001").abstract_num_id == "33"
    assert numbering.get_abstract_num("33") is not None


def test_paragraph_helpers():
    body = get_document_body(Node.parse(document_xml(paragraph("Hello", "BodyText"))))
    p = body.get_child([0])
    assert paragraph_style(p) == "BodyText"
    assert get_paragraph_text(p) == "Hello"
    assert [node.get_text() for node in text_nodes(p)] == ["Hello"]
    clear_paragraph_contents(p)
    assert get_paragraph_text(p) == ""
    assert p.get_child("w:pPr") is not None


def test_get_document_body_requires_body():
    with pytest.raises(MissingRequiredPart):
        get_document_body(Node.parse(f'<w:document xmlns:w="{W_NS}"/>'))


def test_build_run_splits_lines():
    run = build_run("a\nb")
    assert [child.get_tag_name() for child in run.get_children()] == ["w:t", "w:br", "w:t"]
    assert paragraph_style(build_paragraph("X")) == "X"
