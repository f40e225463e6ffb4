"""``[Content_Types].xml``: per-extension defaults and per-part overrides."""
from __future__ import annotations

import posixpath
from typing import Dict, Iterable, Optional

from docx_manuscript.xmltree import Node

CONTENT_TYPES_PART = "[Content_Types].xml"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"

# MIME types of the parts the converter cares about.
CT_DOCUMENT = "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"
CT_TEMPLATE = "application/vnd.openxmlformats-officedocument.wordprocessingml.template.main+xml"
CT_MACRO_DOCUMENT = "application/vnd.ms-word.document.macroEnabled.main+xml"
CT_STYLES = "application/vnd.openxmlformats-officedocument.wordprocessingml.styles+xml"
CT_NUMBERING = "application/vnd.openxmlformats-officedocument.wordprocessingml.numbering+xml"
CT_SETTINGS = "application/vnd.openxmlformats-officedocument.wordprocessingml.settings+xml"
CT_WEB_SETTINGS = "application/vnd.openxmlformats-officedocument.wordprocessingml.webSettings+xml"
CT_FONT_TABLE = "application/vnd.openxmlformats-officedocument.wordprocessingml.fontTable+xml"
CT_COMMENTS = "application/vnd.openxmlformats-officedocument.wordprocessingml.comments+xml"
CT_FOOTNOTES = "application/vnd.openxmlformats-officedocument.wordprocessingml.footnotes+xml"
CT_ENDNOTES = "application/vnd.openxmlformats-officedocument.wordprocessingml.endnotes+xml"
CT_HEADER = "application/vnd.openxmlformats-officedocument.wordprocessingml.header+xml"
CT_FOOTER = "application/vnd.openxmlformats-officedocument.wordprocessingml.footer+xml"
CT_THEME = "application/vnd.openxmlformats-officedocument.theme+xml"
CT_RELATIONSHIPS = "application/vnd.openxmlformats-package.relationships+xml"
CT_XML = "application/xml"
CT_CORE_PROPERTIES = "application/vnd.openxmlformats-package.core-properties+xml"
CT_EXTENDED_PROPERTIES = "application/vnd.openxmlformats-officedocument.extended-properties+xml"

MAIN_DOCUMENT_TYPES = (CT_DOCUMENT, CT_TEMPLATE, CT_MACRO_DOCUMENT)

IMAGE_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "emf": "image/x-emf",
    "wmf": "image/x-wmf",
    "svg": "image/svg+xml",
}


def _part_name(path: str) -> str:
    return "/" + path.lstrip("/")


class ContentTypes:
    """Wrapper over the content-type registry of a package."""

    def __init__(self, document: Node):
        self.document = document
        self.root = document.root()

    @classmethod
    def empty(cls) -> "ContentTypes":
        return cls(Node.document(Node.build("Types", {"xmlns": CT_NS})))

    def defaults(self) -> Dict[str, str]:
        return {node.get_attr("Extension", "").lower(): node.get_attr("ContentType", "")
                for node in self.root.get_children("Default")}

    def overrides(self) -> Dict[str, str]:
        return {node.get_attr("PartName", ""): node.get_attr("ContentType", "")
                for node in self.root.get_children("Override")}

    def get_content_type(self, path: str) -> Optional[str]:
        """MIME type of the part at *path* (package-relative, no leading slash)."""
        override = self.overrides().get(_part_name(path))
        if override:
            return override
        extension = posixpath.splitext(path)[1].lstrip(".").lower()
        return self.defaults().get(extension)

    def add_default(self, extension: str, content_type: str) -> None:
        extension = extension.lstrip(".").lower()
        if extension in self.defaults():
            return
        self.root.unshift_child(Node.build("Default", {"Extension": extension, "ContentType": content_type}))

    def add_override(self, path: str, content_type: str) -> None:
        name = _part_name(path)
        for node in self.root.get_children("Override"):
            if node.get_attr("PartName") == name:
                node.set_attr("ContentType", content_type)
                return
        self.root.push_child(Node.build("Override", {"PartName": name, "ContentType": content_type}))

    def remove_override(self, path: str) -> bool:
        name = _part_name(path)
        return self.root.remove_children(
            lambda node: node.get_tag_name() == "Override" and node.get_attr("PartName") == name
        ) > 0

    def join(self, other: "ContentTypes", parts: Optional[Iterable[str]] = None) -> None:
        """Add *other*'s defaults and overrides; existing entries win for defaults.

        With *parts*, only overrides for those part paths are copied.
        """
        wanted = None if parts is None else {_part_name(path) for path in parts}
        for extension, content_type in other.defaults().items():
            self.add_default(extension, content_type)
        for name, content_type in other.overrides().items():
            if wanted is None or name in wanted:
                self.add_override(name, content_type)

    def ensure_media_default(self, path: str) -> None:
        """Make sure an image part at *path* has a resolvable MIME type."""
        extension = posixpath.splitext(path)[1].lstrip(".").lower()
        if self.get_content_type(path) is None and extension in IMAGE_TYPES:
            self.add_default(extension, IMAGE_TYPES[extension])
