"""Placeholder substitution in the house template."""
from docx_manuscript.templates.house import HouseTemplate
from docx_manuscript.templates.substitution import (
    InlineTemplateSubstitution,
    ParagraphTemplateSubstitution,
    StyleAwareSubstitution,
    find_paragraph_with_pattern,
    find_paragraph_with_pattern_strict,
)

__all__ = [
    "HouseTemplate",
    "InlineTemplateSubstitution",
    "ParagraphTemplateSubstitution",
    "StyleAwareSubstitution",
    "find_paragraph_with_pattern",
    "find_paragraph_with_pattern_strict",
]
