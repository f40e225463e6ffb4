"""Document metadata parsed from the YAML front matter.

Values form a closed tagged union (:class:`MetaScalar`, :class:`MetaSequence`,
:class:`MetaMapping`).  :class:`DocumentMeta` navigates it by dotted paths
such as ``"authors.0.name_ru"``; navigation returns an absent section instead
of failing, and only the terminal accessors raise, naming the full path.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from docx_manuscript.errors import MalformedMarkdown, MalformedMetadata, MissingMetadataField

FORBIDDEN_COMPONENTS = frozenset({"__proto__"})


@dataclass(frozen=True)
class MetaScalar:
    value: str


@dataclass(frozen=True)
class MetaSequence:
    items: Tuple["MetaValue", ...]


@dataclass(frozen=True)
class MetaMapping:
    entries: Tuple[Tuple[str, "MetaValue"], ...]

    def get(self, key: str) -> Optional["MetaValue"]:
        for name, value in self.entries:
            if name == key:
                return value
        return None

    def keys(self) -> List[str]:
        return [name for name, _ in self.entries]


MetaValue = Union[MetaScalar, MetaSequence, MetaMapping]


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return str(value)


def from_python(value: Any) -> Optional[MetaValue]:
    """Convert a YAML-loaded value; ``None`` stays absent."""
    if value is None:
        return None
    if isinstance(value, dict):
        entries = []
        for key, item in value.items():
            converted = from_python(item)
            if converted is not None:
                entries.append((str(key), converted))
        return MetaMapping(tuple(entries))
    if isinstance(value, (list, tuple)):
        return MetaSequence(tuple(item for item in map(from_python, value) if item is not None))
    return MetaScalar(_scalar_text(value))


def to_python(value: Optional[MetaValue]) -> Any:
    if value is None:
        return None
    if isinstance(value, MetaScalar):
        return value.value
    if isinstance(value, MetaSequence):
        return [to_python(item) for item in value.items]
    if isinstance(value, MetaMapping):
        return {key: to_python(item) for key, item in value.entries}
    raise TypeError(f"Not a metadata value: {value!r}")


def kind_of(value: Optional[MetaValue]) -> str:
    if value is None:
        return "nothing"
    if isinstance(value, MetaScalar):
        return "string"
    if isinstance(value, MetaSequence):
        return "array"
    if isinstance(value, MetaMapping):
        return "object"
    raise TypeError(f"Not a metadata value: {value!r}")


def _step(value: Optional[MetaValue], component: str) -> Optional[MetaValue]:
    if value is None or component in FORBIDDEN_COMPONENTS:
        return None
    if isinstance(value, MetaMapping):
        return value.get(component)
    if isinstance(value, MetaSequence):
        try:
            index = int(component)
        except ValueError:
            return None
        if 0 <= index < len(value.items):
            return value.items[index]
        return None
    return None


class DocumentMeta:
    """A section of the metadata tree together with its absolute dotted path."""

    def __init__(self, section: Optional[MetaValue], path: str = ""):
        self.section = section
        self.path = path

    def __repr__(self) -> str:
        return f"<DocumentMeta {self.path or '<root>'}: {kind_of(self.section)}>"

    @classmethod
    def from_python(cls, data: Any) -> "DocumentMeta":
        return cls(from_python(data))

    @classmethod
    def from_yaml(cls, text: str) -> "DocumentMeta":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise MalformedMarkdown(f"Front matter is not valid YAML: {exc}") from exc
        return cls.from_python(data)

    def get_abs_path(self, rel_path: str = "") -> str:
        if self.path and rel_path:
            return f"{self.path}.{rel_path}"
        return self.path or rel_path

    def get_child(self, path: str = "") -> Optional[MetaValue]:
        if not path:
            return self.section
        result = self.section
        for component in path.split("."):
            result = _step(result, component)
            if result is None:
                return None
        return result

    def get_section(self, path: str) -> "DocumentMeta":
        return DocumentMeta(self.get_child(path), self.get_abs_path(path))

    def exists(self, path: str = "") -> bool:
        return self.get_child(path) is not None

    def is_array(self) -> bool:
        return isinstance(self.section, MetaSequence)

    def is_map(self) -> bool:
        return isinstance(self.section, MetaMapping)

    def is_scalar(self) -> bool:
        return isinstance(self.section, MetaScalar)

    def as_array(self) -> List["DocumentMeta"]:
        section = self._require("", MetaSequence, "array")
        return [DocumentMeta(item, self.get_abs_path(str(index))) for index, item in enumerate(section.items)]

    def get_keys(self) -> List[str]:
        return self._require("", MetaMapping, "object").keys()

    def get_string(self, path: str = "") -> str:
        return self.get_section(path)._require("", MetaScalar, "string").value

    def get_optional_string(self, path: str = "", default: Optional[str] = None) -> Optional[str]:
        if not self.exists(path):
            return default
        return self.get_string(path)

    def to_python(self) -> Any:
        return to_python(self.section)

    def _require(self, rel_path: str, kind: type, expected: str):
        value = self.get_child(rel_path)
        if value is None:
            raise MissingMetadataField(self.get_abs_path(rel_path), expected)
        if not isinstance(value, kind):
            raise MalformedMetadata(self.get_abs_path(rel_path), expected, kind_of(value))
        return value


def namespaced_meta(front_matter: Dict[str, Any], namespace: Optional[str]) -> DocumentMeta:
    """Metadata root: the *namespace* section when present, else the whole front matter."""
    if namespace and isinstance(front_matter, dict) and namespace in front_matter:
        return DocumentMeta(from_python(front_matter[namespace]), namespace)
    return DocumentMeta.from_python(front_matter)
