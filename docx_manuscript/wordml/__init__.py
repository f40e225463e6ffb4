"""Wrappers over the WordprocessingML style and numbering parts."""
from docx_manuscript.wordml.numbering import AbstractNum, Num, Numbering
from docx_manuscript.wordml.styles import Style, Styles

__all__ = ["AbstractNum", "Num", "Numbering", "Style", "Styles"]
