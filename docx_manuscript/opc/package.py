"""A WordprocessingML package: ZIP container of XML parts and relationships."""
from __future__ import annotations

import io
import posixpath
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from docx_manuscript.errors import AmbiguousMatch, MalformedInput, MissingRequiredPart
from docx_manuscript.log import get_logger
from docx_manuscript.opc import content_types as ct
from docx_manuscript.opc.content_types import CONTENT_TYPES_PART, ContentTypes
from docx_manuscript.opc.namespaces import fix_namespaces
from docx_manuscript.opc.relationships import (
    RT_OFFICE_DOCUMENT,
    Relationships,
    rels_path_for,
)
from docx_manuscript.xmltree import Node

LOGGER = get_logger(__name__)

PACKAGE_RELS_PART = "_rels/.rels"
MEDIA_DIR = "word/media"


@dataclass
class Resource:
    """A resolved part: its path, parsed ``#document`` node and relationships."""

    path: str
    node: Node
    rels: Relationships

    @property
    def root(self) -> Node:
        return self.node.root()


def _is_xml_name(path: str) -> bool:
    return path.endswith(".xml") or path.endswith(".rels")


class Package:
    """In-memory package.  Parts are kept as bytes and parsed on first access."""

    def __init__(self, parts: Dict[str, bytes], origin: str = "<memory>"):
        self.origin = origin
        self._parts: Dict[str, bytes] = dict(parts)
        self._trees: Dict[str, Node] = {}
        self._rels: Dict[str, Relationships] = {}
        if CONTENT_TYPES_PART not in self._parts:
            raise MissingRequiredPart(f"{origin}: package has no {CONTENT_TYPES_PART}")
        self.content_types = ContentTypes(self.get_part(CONTENT_TYPES_PART))
        # Fail early when there is no main document.
        self.main_document_path()

    # -- loading / saving ----------------------------------------------------
    @classmethod
    def load(cls, path: Union[str, Path]) -> "Package":
        """Open a ``.docx``/``.dotx`` archive or an unpacked package directory."""
        path = Path(path)
        if path.is_dir():
            parts = {}
            for file in sorted(path.rglob("*")):
                if file.is_file():
                    parts[file.relative_to(path).as_posix()] = file.read_bytes()
            LOGGER.debug("Loaded %d parts from directory %s", len(parts), path)
            return cls(parts, origin=str(path))
        if not path.is_file():
            raise MissingRequiredPart(f"Package not found: {path}")
        return cls.from_bytes(path.read_bytes(), origin=str(path))

    @classmethod
    def from_bytes(cls, data: bytes, origin: str = "<memory>") -> "Package":
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                parts = {
                    info.filename: archive.read(info.filename)
                    for info in archive.infolist()
                    if not info.is_dir()
                }
        except zipfile.BadZipFile as exc:
            raise MalformedInput(f"{origin}: not a ZIP package ({exc})") from exc
        LOGGER.debug("Loaded %d parts from %s", len(parts), origin)
        return cls(parts, origin=origin)

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            # [Content_Types].xml goes first, as Word writes it.
            names = [CONTENT_TYPES_PART] + [name for name in self.part_names() if name != CONTENT_TYPES_PART]
            for name in names:
                archive.writestr(name, self._serialize(name))
        return buffer.getvalue()

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_bytes(self.to_bytes())
        LOGGER.debug("Wrote package %s", path)

    def _serialize(self, name: str) -> bytes:
        rels = self._rels.get(name)
        if rels is not None:
            return rels.document.to_bytes()
        tree = self._trees.get(name)
        if tree is None:
            return self._parts[name]
        if name != CONTENT_TYPES_PART and not name.endswith(".rels") and self.content_types.get_content_type(name):
            fix_namespaces(tree.root())
        return tree.to_bytes()

    # -- generic part access -------------------------------------------------
    def part_names(self) -> List[str]:
        names = list(self._parts)
        for rels_path, rels in self._rels.items():
            if rels_path not in self._parts and len(rels):
                names.append(rels_path)
        return names

    def has_part(self, path: str) -> bool:
        return path.lstrip("/") in self.part_names()

    def get_bytes(self, path: str) -> bytes:
        path = path.lstrip("/")
        if not self.has_part(path):
            raise MissingRequiredPart(f"{self.origin}: part {path} not found")
        if path in self._rels or path in self._trees:
            return self._serialize(path)
        return self._parts[path]

    def get_part(self, path: str) -> Node:
        """Parsed ``#document`` node of an XML part; parsed once and cached."""
        path = path.lstrip("/")
        if path not in self._trees:
            if path in self._rels:
                return self._rels[path].document
            self._trees[path] = Node.parse(self.get_bytes(path))
        return self._trees[path]

    def set_part_tree(self, path: str, node: Node, content_type: Optional[str] = None) -> None:
        path = path.lstrip("/")
        self._parts[path] = b""
        self._trees[path] = node
        self._rels.pop(path, None)
        if content_type:
            self.content_types.add_override(path, content_type)

    def set_part_bytes(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = path.lstrip("/")
        self._parts[path] = data
        self._trees.pop(path, None)
        self._rels.pop(path, None)
        if content_type:
            self.content_types.add_override(path, content_type)
        else:
            self.content_types.ensure_media_default(path)

    def remove_part(self, path: str) -> None:
        """Drop a part together with its relationships sidecar."""
        path = path.lstrip("/")
        for name in (path, rels_path_for(path)):
            self._parts.pop(name, None)
            self._trees.pop(name, None)
            self._rels.pop(name, None)
        self.content_types.remove_override(path)

    # -- relationships -------------------------------------------------------
    def get_rels(self, part_path: str) -> Relationships:
        """Relationships of *part_path* (``""`` for the package); created empty if absent."""
        rels_path = PACKAGE_RELS_PART if not part_path else rels_path_for(part_path)
        if rels_path not in self._rels:
            if rels_path in self._trees:
                document = self._trees.pop(rels_path)
            elif rels_path in self._parts:
                document = Node.parse(self._parts[rels_path])
            else:
                document = Relationships.empty().document
            self._rels[rels_path] = Relationships(document, part_path)
        return self._rels[rels_path]

    def add_relation(self, part_path: str, rel_type: str, target: str, target_mode: Optional[str] = None) -> str:
        return self.get_rels(part_path).add_relation(rel_type, target, target_mode)

    def get_path_for_target(self, target: str, source_part: Optional[str] = None) -> str:
        """Package path of a relationship target written relative to *source_part*."""
        if target.startswith("/"):
            return target.lstrip("/")
        source = self.main_document_path() if source_part is None else source_part
        return posixpath.normpath(posixpath.join(posixpath.dirname(source), target))

    def get_unique_media_target(self, name: str) -> str:
        """A free ``word/media/...`` path for *name*, suffixed ``_1``, ``_2``... on collision."""
        stem, extension = posixpath.splitext(posixpath.basename(name))
        candidate = posixpath.join(MEDIA_DIR, stem + extension)
        index = 1
        while candidate in self._parts:
            candidate = posixpath.join(MEDIA_DIR, f"{stem}_{index}{extension}")
            index += 1
        return candidate

    # -- role resolution -----------------------------------------------------
    def resolve(self, mime: str) -> List[str]:
        """Every part whose content type is *mime*, in package order."""
        return [
            name for name in self._parts
            if name != CONTENT_TYPES_PART and not name.endswith(".rels")
            and self.content_types.get_content_type(name) == mime
        ]

    def lookup(self, mime: str) -> Union[None, Resource, List[Resource]]:
        """``None``, a single resource, or a list when several parts share *mime*."""
        paths = self.resolve(mime)
        if not paths:
            return None
        if len(paths) == 1:
            return self.resource(paths[0])
        return [self.resource(path) for path in paths]

    def resource(self, path: str) -> Resource:
        return Resource(path, self.get_part(path), self.get_rels(path))

    def main_document_path(self) -> str:
        rels = self.get_rels("")
        for rel in rels.by_type(RT_OFFICE_DOCUMENT):
            target = rels.resolve_target(rel)
            if target and target in self._parts:
                return target
        for mime in ct.MAIN_DOCUMENT_TYPES:
            paths = self.resolve(mime)
            if paths:
                return paths[0]
        raise MissingRequiredPart(f"{self.origin}: main document part not found")

    def _single(self, mime: str) -> Optional[Resource]:
        found = self.lookup(mime)
        if isinstance(found, list):
            raise AmbiguousMatch(f"{self.origin}: {len(found)} parts have content type {mime}")
        return found

    @property
    def document(self) -> Resource:
        return self.resource(self.main_document_path())

    @property
    def styles(self) -> Optional[Resource]:
        return self._single(ct.CT_STYLES)

    @property
    def numbering(self) -> Optional[Resource]:
        return self._single(ct.CT_NUMBERING)

    @property
    def settings(self) -> Optional[Resource]:
        return self._single(ct.CT_SETTINGS)

    @property
    def font_table(self) -> Optional[Resource]:
        return self._single(ct.CT_FONT_TABLE)

    @property
    def comments(self) -> Optional[Resource]:
        return self._single(ct.CT_COMMENTS)

    @property
    def footnotes(self) -> Optional[Resource]:
        return self._single(ct.CT_FOOTNOTES)

    @property
    def endnotes(self) -> Optional[Resource]:
        return self._single(ct.CT_ENDNOTES)

    @property
    def headers(self) -> List[Resource]:
        return [self.resource(path) for path in self.resolve(ct.CT_HEADER)]

    @property
    def footers(self) -> List[Resource]:
        return [self.resource(path) for path in self.resolve(ct.CT_FOOTER)]

    def content_parts(self) -> List[Resource]:
        """Main document followed by headers, footers, footnotes and endnotes."""
        parts = [self.document] + self.headers + self.footers
        for optional in (self.footnotes, self.endnotes):
            if optional is not None:
                parts.append(optional)
        return parts
