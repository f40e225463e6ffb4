import pytest

from conftest import (
    build_package,
    document_xml,
    numbering_xml,
    paragraph,
    style,
    styles_xml,
)
from docx_manuscript.errors import MissingNamedStyle, MissingRequiredResource
from docx_manuscript.reconcile import (
    ListBinding,
    ListRegionMarker,
    StyleReconciler,
    add_new_numberings,
    apply_list_styles,
)
from docx_manuscript.reconcile.lists import NewNumbering, strip_markers
from docx_manuscript.reconcile.styles import alias_table, deep_closure
from docx_manuscript.wordml import Numbering, Styles
from docx_manuscript.wordml.oxml import get_document_body, paragraph_style
from docx_manuscript.xmltree import Node

CONTENT_STYLES = [
    style("Normal"),
    style("BodyText", "Body Text", based_on="Normal"),
    style("Heading1", "heading 1", based_on="Normal"),
    style("Custom", "Custom", based_on="Normal"),
]


@pytest.fixture
def content():
    body = paragraph("Intro", "Heading1") + paragraph("Text", "BodyText") + paragraph("Own", "Custom")
    return build_package(document_xml(body), styles_xml(CONTENT_STYLES))


def _styles(package):
    return Styles(package.styles.node)


def test_deep_closure_follows_every_reference():
    styles = Styles(Node.parse(styles_xml([
        style("A", based_on="B"), style("B", link="C"), style("C", next_style="A"), style("D"),
    ])))
    assert deep_closure(styles, ["A"]) == ["A", "B", "C"]
    assert alias_table(["A", "B"]) == {"A": "template-0", "B": "template-1"}


def test_template_styles_are_aliased(house_template, content, house_config):
    result = StyleReconciler(house_template, content, house_config).reconcile()

    assert result.alias_map == {
        "ispH1": "template-0",
        "ispText": "template-1",
        "ispNum": "template-2",
        "ispBul": "template-3",
        "ispLit": "template-4",
        "Normal": "template-5",
    }
    assert result.house_id("ispText_main") == "template-1"
    ids = {s.id for s in _styles(content)}
    assert ids == {"Custom", "template-0", "template-1", "template-2", "template-3", "template-4", "template-5"}


def test_aliased_styles_keep_their_relations(house_template, content, house_config):
    StyleReconciler(house_template, content, house_config).reconcile()
    heading = _styles(content).get_style("template-0")
    assert heading.name == "ispSubHeader-1 level"
    assert heading.based_on == "template-5"
    assert heading.next_style == "template-1"


def test_content_references_are_redirected(house_template, content, house_config):
    result = StyleReconciler(house_template, content, house_config).reconcile()
    paragraphs = get_document_body(content.document.node).get_children("w:p")
    assert [paragraph_style(p) for p in paragraphs] == ["template-0", "template-1", "Custom"]
    # Normal collides by name with the house Normal.
    assert "Normal" in result.removed
    assert _styles(content).get_style("Custom").based_on == "template-5"


def test_template_use_sites_are_aliased_too(house_template, content, house_config):
    StyleReconciler(house_template, content, house_config).reconcile()
    paragraphs = get_document_body(house_template.document.node).get_children("w:p")
    assert [paragraph_style(p) for p in paragraphs] == ["template-0", "template-1"]


def test_unused_house_styles_are_not_copied(house_template, content, house_config):
    StyleReconciler(house_template, content, house_config).reconcile()
    assert _styles(content).find_by_name("Unused house style") is None


def test_missing_required_style(house_template, content, house_config):
    house_config.required_styles = ["Not in the template"]
    with pytest.raises(MissingNamedStyle):
        StyleReconciler(house_template, content, house_config).reconcile()


def test_house_id_of_unknown_name(house_template, content, house_config):
    result = StyleReconciler(house_template, content, house_config).reconcile()
    with pytest.raises(MissingNamedStyle):
        result.house_id("nothing")


def test_marker_text():
    assert ListRegionMarker.opening(True, 3) == " ListMode OrderedList start=3 "
    assert ListRegionMarker.opening(False, 5) == " ListMode BulletList "
    assert ListRegionMarker.parse(ListRegionMarker.opening(True, 3)) == ("OrderedList", 3)
    assert ListRegionMarker.parse(ListRegionMarker.closing()) == ("None", 1)
    assert ListRegionMarker.parse("an ordinary comment") is None


def _item(text, level="0"):
    return (f'<w:p><w:pPr><w:pStyle w:val="ListParagraph"/><w:numPr><w:ilvl w:val="{level}"/>'
            f'<w:numId w:val="0"/></w:numPr></w:pPr><w:r><w:t>{text}</w:t></w:r></w:p>')


NESTED_LISTS = (
    "<!-- ListMode OrderedList start=3 -->" + _item("three")
    + "<!-- ListMode BulletList -->" + _item("dot", "1") + "<!-- ListMode None -->"
    + _item("four") + "<!-- ListMode None -->" + paragraph("after", "BodyText")
)
BINDINGS = {"OrderedList": ListBinding("ispNum", "33"), "BulletList": ListBinding("ispBul", "43")}


def _num_id(p):
    return p.get_child("w:pPr").get_child("w:numPr").get_child("w:numId").get_attr("w:val")


def test_list_regions_get_fresh_numberings():
    document = Node.parse(document_xml(NESTED_LISTS))
    created = apply_list_styles(document, BINDINGS, 10000)

    assert created == [NewNumbering("10000", "33", 0, 3), NewNumbering("10001", "43", 1, 1)]
    paragraphs = get_document_body(document).get_children("w:p")
    assert [paragraph_style(p) for p in paragraphs] == ["ispNum", "ispBul", "ispNum", "BodyText"]
    assert [_num_id(p) for p in paragraphs[:3]] == ["10000", "10001", "10000"]


def test_unbound_list_kind_is_an_error():
    document = Node.parse(document_xml(NESTED_LISTS))
    with pytest.raises(MissingRequiredResource):
        apply_list_styles(document, {"OrderedList": BINDINGS["OrderedList"]})


def test_strip_markers_leaves_other_comments():
    document = Node.parse(document_xml(NESTED_LISTS + "<!-- keep me -->"))
    assert strip_markers(document) == 4
    assert len(document.find_all(lambda node: node.is_comment())) == 1


def test_add_new_numberings_sets_start_override():
    numbering = Numbering(Node.parse(numbering_xml(("33", "43"))))
    add_new_numberings(numbering, [NewNumbering("10000", "33", 0, 3), NewNumbering("10001", "43", 1, 1)])
    first = numbering.get_num("10000")
    assert first.abstract_num_id == "33"
    assert first.get_level_override(0).get_child("w:startOverride").get_attr("w:val") == "3"
    assert first.get_level_override(1).get_child("w:startOverride").get_attr("w:val") == "1"
    assert numbering.get_num("10001").abstract_num_id == "43"


def test_add_new_numberings_needs_known_abstract():
    numbering = Numbering(Node.parse(numbering_xml(("33",))))
    with pytest.raises(MissingRequiredResource):
        add_new_numberings(numbering, [NewNumbering("10000", "99", 0, 1)])


def test_single_normal_survives(house_template, house_config):
    body = paragraph("plain", "Normal") + paragraph("Text", "BodyText")
    content = build_package(document_xml(body), styles_xml(CONTENT_STYLES))
    StyleReconciler(house_template, content, house_config).reconcile()

    normals = [s for s in _styles(content) if s.name == "Normal"]
    assert len(normals) == 1
    first = get_document_body(content.document.node).get_child([0])
    assert paragraph_style(first) == normals[0].id
