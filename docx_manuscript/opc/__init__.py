"""Open Packaging Conventions layer: parts, content types and relationships."""
from docx_manuscript.opc.content_types import ContentTypes
from docx_manuscript.opc.package import Package, Resource
from docx_manuscript.opc.relationships import Relationship, Relationships

__all__ = ["ContentTypes", "Package", "Relationship", "Relationships", "Resource"]
