"""LaTeX math to Office Math Markup (OMML).

LaTeX is converted to MathML with latex2mathml, then to OMML with the
MathML-to-OMML XSLT stylesheet shipped with Office (``MML2OMML.XSL``).
Without a stylesheet the formula is kept as plain text.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from latex2mathml.converter import convert as latex_to_mathml_string
from lxml import etree

from docx_manuscript.errors import ExternalToolError
from docx_manuscript.log import get_logger

LOGGER = get_logger(__name__)

M_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"


def latex_to_mathml(latex: str, display: bool = False) -> str:
    try:
        return latex_to_mathml_string(latex, display="block" if display else "inline")
    except Exception as exc:
        raise ExternalToolError(f"Cannot convert formula {latex!r} to MathML: {exc}") from exc


class EquationRenderer:
    def __init__(self, xsl_path: Optional[Path] = None):
        self.xsl_path = Path(xsl_path) if xsl_path else None
        self._transform = None
        self._warned = False

    @property
    def available(self) -> bool:
        return self.xsl_path is not None

    def _get_transform(self):
        if self._transform is None:
            try:
                self._transform = etree.XSLT(etree.parse(str(self.xsl_path)))
            except (OSError, etree.XMLSyntaxError, etree.XSLTParseError) as exc:
                raise ExternalToolError(f"Cannot load MathML to OMML stylesheet {self.xsl_path}: {exc}") from exc
        return self._transform

    def to_omml(self, latex: str, display: bool = False):
        """``m:oMath`` (or ``m:oMathPara`` for display math) element, or ``None`` without a stylesheet."""
        if not self.available:
            if not self._warned:
                LOGGER.warning("No MathML to OMML stylesheet configured; formulas are rendered as text")
                self._warned = True
            return None
        mathml = etree.fromstring(latex_to_mathml(latex, display).encode("utf-8"))
        try:
            result = self._get_transform()(mathml)
        except etree.XSLTApplyError as exc:
            raise ExternalToolError(f"MathML to OMML transform failed for {latex!r}: {exc}") from exc
        root = result.getroot()
        if root is None:
            raise ExternalToolError(f"MathML to OMML transform produced nothing for {latex!r}")
        if display and root.tag != f"{{{M_NS}}}oMathPara":
            para = etree.Element(f"{{{M_NS}}}oMathPara", nsmap={"m": M_NS})
            para.append(root)
            return para
        return root
