"""Render the Markdown AST into a WordprocessingML package with python-docx.

The output uses generic style names of python-docx's default template
("Body Text", "Heading 1", "Macro Text"...); the reconciler maps them onto
the house styles afterwards.  List regions are bracketed by ``ListMode``
sentinel comments, which the reconciler turns into house list numbering.
"""
from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from docx import Document
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls
from docx.shared import Cm, Pt
from lxml import etree

from docx_manuscript.equations import EquationRenderer
from docx_manuscript.images import image_size_cm, load_image
from docx_manuscript.log import get_logger
from docx_manuscript.markdown import IMAGE_CAPTION, flatten_text
from docx_manuscript.reconcile.lists import ListRegionMarker

if TYPE_CHECKING:
    from docx_manuscript.config import ConversionConfig
    from docx_manuscript.markdown import ParsedDocument

LOGGER = get_logger(__name__)

BODY_STYLE = "Body Text"
CODE_STYLE = "Macro Text"
CODE_CHAR_STYLE = "Macro Text Char"
QUOTE_STYLE = "Quote"
LIST_STYLE = "List Paragraph"
CAPTION_STYLE = "Caption"
TABLE_STYLE = "Table Grid"
FONT_CODE = "Consolas"
CAPTION_FONT_SIZE = Pt(9)
HYPERLINK_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/hyperlink"
# Replaced by the list pass; any value works inside a list region.
PENDING_NUM_ID = "0"


class DocxBuilder:
    """Accumulates python-docx elements from parsed Markdown tokens."""

    def __init__(self, doc: Document, source_dir: Path, equations: EquationRenderer,
                 default_image_width_cm: float = 10.0):
        self.doc = doc
        self.source_dir = Path(source_dir)
        self.equations = equations
        self.default_image_width_cm = default_image_width_cm
        self.image_count = 0

    # -- style helpers -------------------------------------------------------
    def _styled_paragraph(self, style: Optional[str] = BODY_STYLE, container=None):
        container = container if container is not None else self.doc
        paragraph = container.add_paragraph()
        if style:
            try:
                paragraph.style = style
            except KeyError:
                LOGGER.debug("Style %r missing from the generator template", style)
        return paragraph

    def _add_marker(self, text: str) -> None:
        """Append a list sentinel comment at the end of the body."""
        body = self.doc.element.body
        comment = etree.Comment(text)
        sect_pr = body.sectPr
        if sect_pr is not None:
            sect_pr.addprevious(comment)
        else:
            body.append(comment)

    # -- inline helpers ------------------------------------------------------
    def _add_inline(self, paragraph, tokens, fmt: Optional[Dict[str, bool]] = None):
        """Render inline tokens (text, emphasis, code, link, image, math) into a paragraph."""
        fmt = fmt or {}
        if isinstance(tokens, str):
            self._add_text(paragraph, tokens, fmt)
            return
        if not isinstance(tokens, list):
            tokens = [tokens]
        for tok in tokens:
            if isinstance(tok, str):
                self._add_text(paragraph, tok, fmt)
                continue
            tp = tok.get("type", "")
            children = tok.get("children", [])

            if tp == "text":
                self._add_text(paragraph, tok.get("raw", ""), fmt)
            elif tp == "softbreak":
                self._add_text(paragraph, " ", fmt)
            elif tp == "linebreak":
                paragraph.add_run().add_break()
            elif tp == "strong":
                self._add_inline(paragraph, children, {**fmt, "bold": True})
            elif tp == "emphasis":
                self._add_inline(paragraph, children, {**fmt, "italic": True})
            elif tp == "strikethrough":
                self._add_inline(paragraph, children, {**fmt, "strike": True})
            elif tp == "codespan":
                self._add_code_run(paragraph, tok.get("raw", ""))
            elif tp == "link":
                self._add_hyperlink(paragraph, tok.get("attrs", {}).get("url", ""), flatten_text(children))
            elif tp == "image":
                self._add_image_run(paragraph, tok)
            elif tp == "inline_math":
                self._add_math(paragraph, tok.get("raw", ""), display=False)
            else:
                # fallback – just dump text
                self._add_text(paragraph, flatten_text(children) if children else tok.get("raw", ""), fmt)

    @staticmethod
    def _add_text(paragraph, text: str, fmt: Dict[str, bool]):
        if not text:
            return
        run = paragraph.add_run(text)
        if fmt.get("bold"):
            run.bold = True
        if fmt.get("italic"):
            run.italic = True
        if fmt.get("strike"):
            run.font.strike = True

    @staticmethod
    def _add_code_run(paragraph, text: str):
        run = paragraph.add_run(text)
        try:
            run.style = CODE_CHAR_STYLE
        except KeyError:
            run.font.name = FONT_CODE

    def _add_hyperlink(self, paragraph, url: str, text: str):
        """Insert a clickable hyperlink into a paragraph."""
        r_id = paragraph.part.relate_to(url, HYPERLINK_REL, is_external=True)
        hyperlink = parse_xml(
            f'<w:hyperlink {nsdecls("w", "r")} r:id="{r_id}">'
            f'<w:r><w:rPr><w:color w:val="0563C1"/><w:u w:val="single"/></w:rPr>'
            f'<w:t xml:space="preserve">{self._escape_xml(text)}</w:t></w:r></w:hyperlink>'
        )
        paragraph._p.append(hyperlink)

    @staticmethod
    def _escape_xml(text: str) -> str:
        return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")

    def _add_math(self, paragraph, latex: str, display: bool):
        omml = self.equations.to_omml(latex, display)
        if omml is None:
            paragraph.add_run(latex).italic = True
            return
        paragraph._p.append(omml)

    # -- image helpers -------------------------------------------------------
    def _add_image_run(self, paragraph, tok: dict) -> bool:
        attrs = tok.get("attrs", {})
        src = attrs.get("url", "")
        alt = flatten_text(tok.get("children", []))
        image = load_image(src, self.source_dir)
        if image is None:
            paragraph.add_run(f"[Image: {alt or src}]").italic = True
            return False
        width, height = image_size_cm(attrs.get("size"), image.aspect, self.default_image_width_cm)
        paragraph.add_run().add_picture(image.stream, width=Cm(width), height=Cm(height))
        self.image_count += 1
        return True

    def _add_image_block(self, tok: dict):
        p = self._styled_paragraph(BODY_STYLE)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if self._add_image_run(p, tok):
            alt = flatten_text(tok.get("children", []))
            if alt:
                caption = self._styled_paragraph(CAPTION_STYLE)
                caption.add_run(alt)

    def _add_caption(self, tok: dict):
        """Caption div: picture captions use the caption style, table and listing ones small italic body text."""
        children = tok.get("children", [])
        if tok.get("attrs", {}).get("class") == IMAGE_CAPTION:
            self._add_inline(self._styled_paragraph(CAPTION_STYLE), children)
            return
        p = self._styled_paragraph(BODY_STYLE)
        p.alignment = WD_ALIGN_PARAGRAPH.LEFT
        self._add_inline(p, children, {"italic": True})
        for run in p.runs:
            run.font.size = CAPTION_FONT_SIZE

    # -- table helpers -------------------------------------------------------
    def _add_table(self, header_tokens: list, body_tokens: List[list], alignments: list):
        ncols = len(header_tokens)
        table = self.doc.add_table(rows=1 + len(body_tokens), cols=ncols)
        try:
            table.style = TABLE_STYLE
        except KeyError:
            pass  # Template may not include "Table Grid" – use default style
        table.alignment = WD_TABLE_ALIGNMENT.CENTER

        def _format_cell(cell, tokens, idx, is_header=False):
            p = cell.paragraphs[0]
            try:
                p.style = BODY_STYLE
            except KeyError:
                pass
            p.alignment = self._table_align(alignments, idx)
            self._add_inline(p, tokens, {"bold": True} if is_header else None)

        for i, cell in enumerate(table.rows[0].cells):
            _format_cell(cell, header_tokens[i], i, is_header=True)
        for r_idx, row_data in enumerate(body_tokens):
            for c_idx, cell in enumerate(table.rows[r_idx + 1].cells):
                _format_cell(cell, row_data[c_idx] if c_idx < len(row_data) else [], c_idx)

    @staticmethod
    def _table_align(alignments, idx):
        if not alignments or idx >= len(alignments):
            return WD_ALIGN_PARAGRAPH.LEFT
        a = (alignments[idx] or "").lower()
        if "center" in a:
            return WD_ALIGN_PARAGRAPH.CENTER
        if "right" in a:
            return WD_ALIGN_PARAGRAPH.RIGHT
        return WD_ALIGN_PARAGRAPH.LEFT

    # -- code block ----------------------------------------------------------
    def _add_code_block(self, code: str):
        p = self._styled_paragraph(CODE_STYLE)
        styled = p.style is not None and p.style.name == CODE_STYLE
        for i, line in enumerate(code.rstrip("\n").split("\n")):
            if i > 0:
                p.add_run().add_break()
            run = p.add_run(line)
            if not styled:
                run.font.name = FONT_CODE
                run.font.size = Pt(9)

    # -- blockquote ----------------------------------------------------------
    def _add_blockquote(self, children):
        for tok in children:
            if tok.get("type") == "paragraph":
                p = self._styled_paragraph(QUOTE_STYLE)
                self._add_inline(p, tok.get("children", []))
            else:
                self._render_token(tok)

    # -- lists ---------------------------------------------------------------
    def _add_list(self, token, level: int = 0):
        attrs = token.get("attrs", {})
        ordered = attrs.get("ordered", False)
        self._add_marker(ListRegionMarker.opening(ordered, attrs.get("start", 1) or 1))
        for item in token.get("children", []):
            if item.get("type") != "list_item":
                continue
            first_para = True
            for child in item.get("children", []):
                tp = child.get("type", "")
                # mistune v3 uses "block_text" for tight lists, "paragraph" for loose
                if tp in ("paragraph", "block_text"):
                    p = self._styled_paragraph(LIST_STYLE)
                    p_pr = p._p.get_or_add_pPr()
                    if first_para:
                        p_pr.append(parse_xml(
                            f'<w:numPr {nsdecls("w")}><w:ilvl w:val="{level}"/>'
                            f'<w:numId w:val="{PENDING_NUM_ID}"/></w:numPr>'
                        ))
                        first_para = False
                    self._add_inline(p, child.get("children", []))
                elif tp == "list":
                    self._add_list(child, level + 1)
                else:
                    self._render_token(child)
        self._add_marker(ListRegionMarker.closing())

    # -- main render dispatch ------------------------------------------------
    def render_tokens(self, tokens: list):
        for tok in tokens:
            self._render_token(tok)

    def _render_token(self, tok: dict):
        tp = tok.get("type", "")

        if tp == "heading":
            level = tok.get("attrs", {}).get("level", 1)
            p = self.doc.add_heading("", level=min(level, 6))
            self._add_inline(p, tok.get("children", []))

        elif tp == "paragraph":
            children = tok.get("children", [])
            # Check if sole child is an image
            if len(children) == 1 and isinstance(children[0], dict) and children[0].get("type") == "image":
                self._add_image_block(children[0])
            else:
                p = self._styled_paragraph(BODY_STYLE)
                self._add_inline(p, children)

        elif tp == "block_code":
            self._add_code_block(tok.get("raw", ""))

        elif tp == "block_math":
            p = self._styled_paragraph(BODY_STYLE)
            p.alignment = WD_ALIGN_PARAGRAPH.CENTER
            self._add_math(p, tok.get("raw", "").strip(), display=True)

        elif tp == "table":
            self._handle_table(tok)

        elif tp == "list":
            self._add_list(tok)

        elif tp == "block_quote":
            self._add_blockquote(tok.get("children", []))

        elif tp == "caption":
            self._add_caption(tok)

        elif tp == "thematic_break":
            # Horizontal rule -> page break
            self.doc.add_page_break()

        elif tp in ("blank_line", "block_html"):
            pass  # raw HTML has no counterpart in the house style

        else:
            # Unknown block – try to render children
            children = tok.get("children")
            if children and isinstance(children, list):
                self.render_tokens(children)

    # -- table token handling ------------------------------------------------
    def _handle_table(self, tok: dict):
        """Mistune v3 table AST: table -> [table_head, table_body].

        table_head holds the cells directly, table_body holds table_row items.
        """
        header_tokens = []
        alignments = []
        body_tokens = []
        for child in tok.get("children", []):
            ctype = child.get("type", "")
            if ctype == "table_head":
                for cell in child.get("children", []):
                    if cell.get("type") == "table_cell":
                        header_tokens.append(cell.get("children", []))
                        alignments.append(cell.get("attrs", {}).get("align"))
            elif ctype == "table_body":
                for row in child.get("children", []):
                    if row.get("type") == "table_row":
                        body_tokens.append([cell.get("children", []) for cell in row.get("children", [])])
        if header_tokens:
            self._add_table(header_tokens, body_tokens, alignments)


def render_document(parsed: "ParsedDocument", config: "ConversionConfig") -> bytes:
    """Render *parsed* into the bytes of a fresh ``.docx`` package."""
    doc = Document()
    builder = DocxBuilder(doc, parsed.source_dir, EquationRenderer(config.mml2omml_xsl),
                          config.default_image_width_cm)
    builder.render_tokens(parsed.blocks)
    LOGGER.debug("Rendered %d blocks, %d images", len(parsed.blocks), builder.image_count)
    buffer = BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
