import pytest

from docx_manuscript.errors import AmbiguousMatch, MalformedXml, UseAfterInvalidation
from docx_manuscript.xmltree import TEXT, XML_DECLARATION, Node

SAMPLE = '<w:p xmlns:w="urn:w" b="2" a="1"><w:r><w:t>one</w:t></w:r><!--note--><w:r><w:t>two</w:t></w:r></w:p>'


def test_parse_and_serialize_round_trip():
    document = Node.parse(SAMPLE)
    assert document.to_xml() == XML_DECLARATION + SAMPLE


def test_attribute_order_is_preserved():
    root = Node.parse(SAMPLE).root()
    assert list(root.get_attrs()) == ["xmlns:w", "b", "a"]


def test_malformed_xml_raises():
    with pytest.raises(MalformedXml):
        Node.parse("<w:p><unclosed></w:p>")


def test_path_navigation_with_negative_index():
    root = Node.parse(SAMPLE).root()
    last_run = root.get_child([-1])
    assert last_run.get_tag_name() == "w:r"
    assert last_run.text_content() == "two"
    assert root.get_child([1]).is_comment()
    assert root.get_child([0, 0, 0]).get_tag_name() == TEXT
    assert root.get_child([5]) is None


def test_get_child_by_name_is_single_result():
    root = Node.parse(SAMPLE).root()
    with pytest.raises(AmbiguousMatch):
        root.get_child("w:r")
    assert root.get_child("w:missing") is None


def test_traversal_handle_is_invalid_after_callback():
    root = Node.parse(SAMPLE).root()
    kept = []
    root.visit_subtree("w:t", kept.append)
    assert kept and not kept[0].is_valid()
    with pytest.raises(UseAfterInvalidation):
        kept[0].get_text()


def test_shallow_copy_survives_traversal():
    root = Node.parse(SAMPLE).root()
    kept = []
    root.visit_subtree("w:t", lambda node: kept.append(node.shallow_copy()))
    assert [node.text_content() for node in kept] == ["one", "two"]
    kept[0].set_text("changed")
    assert root.text_content() == "changedtwo"


def test_find_all_returns_persistent_handles():
    root = Node.parse(SAMPLE).root()
    runs = root.find_all("w:r")
    assert len(runs) == 2
    assert all(run.is_valid() for run in runs)


def test_false_from_callback_skips_descent():
    root = Node.parse(SAMPLE).root()
    seen = []

    def visit(node):
        seen.append(node.get_tag_name())
        if node.get_tag_name() == "w:r":
            return False

    root.visit_subtree(visit)
    assert "w:t" not in seen
    assert seen.count("w:r") == 2


def test_detached_nodes_are_not_visited():
    root = Node.parse(SAMPLE).root()
    texts = []

    def visit(node):
        if node.get_tag_name() == "w:r":
            node.get_parent().get_child([-1]).detach()
        elif node.is_text():
            texts.append(node.get_text())

    root.visit_subtree(visit)
    assert texts == ["one"]


def test_inserted_sibling_is_not_visited():
    root = Node.parse(SAMPLE).root()
    texts = []

    def visit(node):
        if node.get_tag_name() == "w:r" and node.get_index() == 0:
            added = Node.build("w:r").push_child(Node.build("w:t").set_text("added"))
            node.get_parent().insert_children([added], [1])
        elif node.is_text():
            texts.append(node.get_text())

    root.visit_subtree(visit)
    assert texts == ["one", "two"]
    assert root.text_content() == "oneaddedtwo"


def test_inserted_child_is_not_visited():
    root = Node.parse(SAMPLE).root()
    texts = []

    def visit(node):
        if node.get_tag_name() == "w:r":
            node.unshift_child(Node.build("w:t").set_text("new"))
        elif node.is_text():
            texts.append(node.get_text())

    root.visit_subtree(visit)
    assert texts == ["one", "two"]
    assert root.text_content() == "newonenewtwo"


def test_index_of_parentless_node_raises():
    with pytest.raises(ValueError):
        Node.build("w:p").get_index()


def test_deep_copy_is_independent():
    root = Node.parse(SAMPLE).root()
    copy = root.deep_copy()
    copy.get_child([0]).detach()
    assert root.child_count() == 3
    assert copy.child_count() == 2
    assert copy.get_parent() is None


def test_insert_children_moves_nodes():
    root = Node.parse(SAMPLE).root()
    first_run = root.get_child([0])
    root.insert_children([first_run], [-1])
    assert root.text_content() == "twoone"
    assert root.child_count() == 3


def test_insert_into_own_subtree_is_rejected():
    root = Node.parse(SAMPLE).root()
    run = root.get_child([0])
    with pytest.raises(ValueError):
        run.get_child([0]).push_child(run)


def test_remove_children_by_predicate():
    root = Node.parse(SAMPLE).root()
    assert root.remove_children(lambda node: node.is_comment()) == 1
    assert root.child_count() == 2


def test_set_text_replaces_element_children():
    t = Node.build("w:t").push_child(Node.text_node("a")).push_child(Node.text_node("b"))
    t.set_text("c & <d>")
    assert t.child_count() == 1
    assert t.to_xml() == "<w:t>c &amp; &lt;d&gt;</w:t>"


def test_parse_fragment_declares_namespaces():
    nodes = Node.parse_fragment('<w:p/><w:p><w:r/></w:p>', {"w": "urn:w"})
    assert [node.get_tag_name() for node in nodes] == ["w:p", "w:p"]
    assert all(node.get_parent() is None for node in nodes)


def test_assign_overwrites_node():
    target = Node.build("a", {"x": "1"})
    target.assign(Node.build("b", {"y": "2"}).push_child(Node.text_node("t")))
    assert target.to_xml() == '<b y="2">t</b>'
