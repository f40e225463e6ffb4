import pytest

from conftest import build_package, document_xml, numbering_xml, paragraph, style, styles_xml
from docx_manuscript.errors import IntegrityError
from docx_manuscript.validate import (
    CRITICAL,
    WARNING,
    check_content_types,
    check_numbering,
    check_placeholders,
    check_relationships,
    check_structure,
    check_styles,
    validate_package,
)

REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
STYLES = styles_xml([style("Normal")])


def _numbered(num_id):
    return (f'<w:p><w:pPr><w:numPr><w:ilvl w:val="0"/><w:numId w:val="{num_id}"/></w:numPr></w:pPr>'
            f'<w:r><w:t>item</w:t></w:r></w:p>')


def test_healthy_package_has_no_issues():
    package = build_package(document_xml(paragraph("ok", "Normal")), STYLES)
    assert validate_package(package) == []


def test_undefined_style():
    package = build_package(document_xml(paragraph("ghost", "Ghost")), STYLES)
    assert check_styles(package) == [(CRITICAL, "word/document.xml: style 'Ghost' is not defined")]
    with pytest.raises(IntegrityError):
        validate_package(package)


def test_undefined_numbering():
    package = build_package(document_xml(_numbered("5") + _numbered("0") + _numbered("1")), STYLES,
                            numbering_xml(("33",), {"1": "33"}))
    assert check_numbering(package) == [(CRITICAL, "Numbering id 5 is not defined")]


def test_numbering_without_part():
    package = build_package(document_xml(_numbered("7")), STYLES)
    assert check_numbering(package)[0][0] == CRITICAL


def test_num_with_missing_abstract():
    package = build_package(document_xml(_numbered("1")), STYLES, numbering_xml(("33",), {"1": "99"}))
    assert [severity for severity, _ in check_numbering(package)] == [CRITICAL]


def test_leftover_placeholder():
    package = build_package(document_xml(paragraph("Title: {{{header_en}}}")), STYLES)
    assert check_placeholders(package) == [
        (CRITICAL, "word/document.xml: unsubstituted placeholder {{{header_en}}}"),
    ]


def test_undefined_relationship_id():
    body = '<w:p><w:hyperlink r:id="rId9"><w:r><w:t>x</w:t></w:r></w:hyperlink></w:p>'
    package = build_package(document_xml(body), STYLES)
    assert (CRITICAL, "word/document.xml: relationship rId9 is not defined") in check_relationships(package)


def test_missing_internal_target_is_a_warning():
    image = f'<Relationship Id="rId5" Type="{REL}/image" Target="media/none.png"/>'
    package = build_package(document_xml(paragraph("x", "Normal")), STYLES, extra_rels=image)
    issues = validate_package(package)
    assert issues == [(WARNING, "word/document.xml: relationship rId5 targets missing part word/media/none.png")]


def test_malformed_part_stops_the_checks():
    package = build_package(document_xml(paragraph("x")), STYLES)
    package.set_part_bytes("word/broken.xml", b"<w:unclosed>", "application/xml")
    issues = check_structure(package)
    assert issues and issues[0][0] == CRITICAL
    with pytest.raises(IntegrityError, match="Malformed XML"):
        validate_package(package)


def test_media_without_content_type():
    package = build_package(document_xml(paragraph("x")), STYLES, media={"chart.xyz": b"data"})
    assert check_content_types(package) == [(CRITICAL, "Part word/media/chart.xyz has no content type (.xyz)")]
