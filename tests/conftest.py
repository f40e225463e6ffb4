"""Builders for tiny in-memory WordprocessingML packages."""
from __future__ import annotations

import io
import zipfile
from typing import Dict, Iterable, Optional

import pytest

from docx_manuscript.config import ConversionConfig, ListRule
from docx_manuscript.opc.package import Package

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
WML = "application/vnd.openxmlformats-officedocument.wordprocessingml"


def style(style_id: str, name: Optional[str] = None, kind: str = "paragraph", based_on: Optional[str] = None,
          link: Optional[str] = None, next_style: Optional[str] = None) -> str:
    extra = ""
    if based_on:
        extra += f'<w:basedOn w:val="{based_on}"/>'
    if next_style:
        extra += f'<w:next w:val="{next_style}"/>'
    if link:
        extra += f'<w:link w:val="{link}"/>'
    return (f'<w:style w:type="{kind}" w:styleId="{style_id}"><w:name w:val="{name or style_id}"/>'
            f'{extra}</w:style>')


def styles_xml(styles: Iterable[str], doc_defaults: str = "") -> str:
    return f'<w:styles xmlns:w="{W_NS}">{doc_defaults}{"".join(styles)}</w:styles>'


def paragraph(text: str, style_id: Optional[str] = None) -> str:
    p_pr = f'<w:pPr><w:pStyle w:val="{style_id}"/></w:pPr>' if style_id else ""
    return f'<w:p>{p_pr}<w:r><w:t xml:space="preserve">{text}</w:t></w:r></w:p>'


def document_xml(body: str, sect_pr: str = "<w:sectPr/>") -> str:
    return f'<w:document xmlns:w="{W_NS}" xmlns:r="{R_NS}"><w:body>{body}{sect_pr}</w:body></w:document>'


def numbering_xml(abstract_ids: Iterable[str] = ("33",), num_ids: Dict[str, str] = None) -> str:
    abstracts = "".join(
        f'<w:abstractNum w:abstractNumId="{a}"><w:lvl w:ilvl="0"><w:start w:val="1"/>'
        f'<w:numFmt w:val="decimal"/></w:lvl></w:abstractNum>'
        for a in abstract_ids
    )
    nums = "".join(f'<w:num w:numId="{n}"><w:abstractNumId w:val="{a}"/></w:num>'
                   for n, a in (num_ids or {}).items())
    return f'<w:numbering xmlns:w="{W_NS}">{abstracts}{nums}</w:numbering>'


def build_docx(document: str, styles: Optional[str] = None, numbering: Optional[str] = None,
               headers: Optional[Dict[str, str]] = None, media: Optional[Dict[str, bytes]] = None,
               extra_rels: str = "") -> bytes:
    """Zip a package around the given part contents."""
    overrides = [("/word/document.xml", f"{WML}.document.main+xml")]
    rels = []
    parts: Dict[str, bytes] = {"word/document.xml": document.encode("utf-8")}
    if styles is not None:
        parts["word/styles.xml"] = styles.encode("utf-8")
        overrides.append(("/word/styles.xml", f"{WML}.styles+xml"))
        rels.append(f'<Relationship Id="rId1" Type="{REL}/styles" Target="styles.xml"/>')
    if numbering is not None:
        parts["word/numbering.xml"] = numbering.encode("utf-8")
        overrides.append(("/word/numbering.xml", f"{WML}.numbering+xml"))
        rels.append(f'<Relationship Id="rId2" Type="{REL}/numbering" Target="numbering.xml"/>')
    for index, (rel_id, xml) in enumerate((headers or {}).items(), start=1):
        name = f"header{index}.xml"
        parts[f"word/{name}"] = xml.encode("utf-8")
        overrides.append((f"/word/{name}", f"{WML}.header+xml"))
        rels.append(f'<Relationship Id="{rel_id}" Type="{REL}/header" Target="{name}"/>')
    for name, data in (media or {}).items():
        parts[f"word/media/{name}"] = data
    content_types = (
        '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
        '<Default Extension="xml" ContentType="application/xml"/>'
        '<Default Extension="png" ContentType="image/png"/>'
        + "".join(f'<Override PartName="{p}" ContentType="{c}"/>' for p, c in overrides)
        + "</Types>"
    )
    package_rels = (
        '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        f'<Relationship Id="rId1" Type="{REL}/officeDocument" Target="word/document.xml"/></Relationships>'
    )
    document_rels = (
        '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        + "".join(rels) + extra_rels + "</Relationships>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("[Content_Types].xml", content_types)
        archive.writestr("_rels/.rels", package_rels)
        archive.writestr("word/_rels/document.xml.rels", document_rels)
        for name, data in parts.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def build_package(*args, **kwargs) -> Package:
    return Package.from_bytes(build_docx(*args, **kwargs), origin="test")


HOUSE_STYLES = [
    style("Normal"),
    style("ispText", "ispText_main", based_on="Normal"),
    style("ispH1", "ispSubHeader-1 level", based_on="Normal", next_style="ispText"),
    style("ispNum", "ispNumList", based_on="ispText"),
    style("ispBul", "ispList1", based_on="ispText"),
    style("ispLit", "ispLitList", based_on="Normal"),
    style("Unused", "Unused house style"),
]


@pytest.fixture
def house_config() -> ConversionConfig:
    """Configuration matching the tiny house template below."""
    return ConversionConfig(
        languages=["ru"],
        required_styles=["ispText_main"],
        style_patch={"Heading1": "ispSubHeader-1 level", "BodyText": "ispText_main", "ListParagraph": "ispText_main"},
        list_styles={
            "OrderedList": ListRule("ispNumList", "33"),
            "BulletList": ListRule("ispList1", "43"),
            "LiteratureList": ListRule("ispLitList", "80"),
        },
        extra_styles_to_remove=[],
    )


@pytest.fixture
def house_template() -> Package:
    body = paragraph("{{{header_ru}}}", "ispH1") + paragraph("{{{body}}}", "ispText")
    return build_package(
        document_xml(body),
        styles_xml(HOUSE_STYLES),
        numbering_xml(("33", "43", "80"), {"80": "80"}),
    )


HOUSE_CONFIG_YAML = """\
languages: [ru]
required_styles: [ispText_main]
extra_styles_to_remove: []
style_patch:
  Heading1: ispSubHeader-1 level
  BodyText: ispText_main
  ListParagraph: ispText_main
list_styles:
  OrderedList: {style_name: ispNumList, numbering_id: 33}
  BulletList: {style_name: ispList1, numbering_id: 43}
  LiteratureList: {style_name: ispLitList, numbering_id: 80}
"""

MANUSCRIPT = """\
---
ispras_templates:
  header_ru: Заголовок статьи
---

# Intro

First paragraph.

1. one
2. two

Second paragraph.
"""


@pytest.fixture
def house_template_file(tmp_path, house_template):
    path = tmp_path / "house.docx"
    house_template.save(path)
    return path


@pytest.fixture
def manuscript(tmp_path):
    path = tmp_path / "paper.md"
    path.write_text(MANUSCRIPT, encoding="utf-8")
    return path
