"""Conversion settings, threaded explicitly through every stage."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from docx_manuscript.errors import MalformedInput, MissingTemplate

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"

ORDERED_LIST = "OrderedList"
BULLET_LIST = "BulletList"
LITERATURE_LIST = "LiteratureList"


@dataclass(frozen=True)
class ListRule:
    """House paragraph style and numbering id used for one kind of list."""

    style_name: str
    numbering_id: str


DEFAULT_REQUIRED_STYLES = [
    "ispSubHeader-1 level",
    "ispSubHeader-2 level",
    "ispSubHeader-3 level",
    "ispAuthor",
    "ispAnotation",
    "ispText_main",
    "ispList",
    "ispList1",
    "ispListing",
    "ispListing Знак",
    "ispLitList",
    "ispPicture_sign",
    "ispNumList",
    "Normal",
]

# Style ids written by the content generator -> house style names.
DEFAULT_STYLE_PATCH = {
    "Heading1": "ispSubHeader-1 level",
    "Heading2": "ispSubHeader-2 level",
    "Heading3": "ispSubHeader-3 level",
    "Heading4": "ispSubHeader-3 level",
    "Heading5": "ispSubHeader-3 level",
    "Heading6": "ispSubHeader-3 level",
    "Title": "ispSubHeader-1 level",
    "BodyText": "ispText_main",
    "Quote": "ispText_main",
    "ListParagraph": "ispText_main",
    "Normal": "Normal",
    "MacroText": "ispListing",
    "MacroTextChar": "ispListing Знак",
    "Caption": "ispPicture_sign",
}

DEFAULT_LIST_STYLES = {
    ORDERED_LIST: ListRule("ispNumList", "33"),
    BULLET_LIST: ListRule("ispList1", "43"),
    LITERATURE_LIST: ListRule("ispLitList", "80"),
}

DEFAULT_EXTRA_STYLES_TO_REMOVE = ["Heading7", "Heading8", "Heading9"]


@dataclass
class ConversionConfig:
    languages: List[str] = field(default_factory=lambda: ["ru", "en"])
    template_directory: Path = RESOURCES_DIR
    template_name: str = "isp-reference"
    meta_namespace: Optional[str] = "ispras_templates"
    depth_threshold: int = 1
    required_styles: List[str] = field(default_factory=lambda: list(DEFAULT_REQUIRED_STYLES))
    style_patch: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STYLE_PATCH))
    list_styles: Dict[str, ListRule] = field(default_factory=lambda: dict(DEFAULT_LIST_STYLES))
    list_numbering_base: int = 10000
    extra_styles_to_remove: List[str] = field(default_factory=lambda: list(DEFAULT_EXTRA_STYLES_TO_REMOVE))
    passthrough_styles: List[str] = field(
        default_factory=lambda: ["Hyperlink", "Normal", "Table Grid", "Default Paragraph Font"]
    )
    mml2omml_xsl: Optional[Path] = None
    strict_styles: bool = False
    default_image_width_cm: float = 10.0

    def template_path(self) -> Path:
        """Resolve the reference template (a directory or a ``.docx``/``.dotx`` file)."""
        base = Path(self.template_directory) / self.template_name
        candidates = [base] if base.suffix else [base, base.with_suffix(".docx"), base.with_suffix(".dotx")]
        for candidate in candidates:
            if candidate.exists():
                return candidate
        raise MissingTemplate(f"Reference template not found: {base}")

    def list_rule(self, kind: str) -> ListRule:
        try:
            return self.list_styles[kind]
        except KeyError:
            raise MalformedInput(f"No list style configured for {kind}") from None

    def with_overrides(self, **overrides: Any) -> "ConversionConfig":
        """Copy with every non-``None`` override applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def _coerce(name: str, value: Any) -> Any:
    if name in ("template_directory", "mml2omml_xsl"):
        return Path(value) if value is not None else None
    if name == "list_styles":
        if not isinstance(value, dict):
            raise MalformedInput("Config key list_styles must be a mapping")
        rules = dict(DEFAULT_LIST_STYLES)
        for kind, rule in value.items():
            if not isinstance(rule, dict) or "style_name" not in rule or "numbering_id" not in rule:
                raise MalformedInput(f"Config list_styles.{kind} needs style_name and numbering_id")
            rules[kind] = ListRule(str(rule["style_name"]), str(rule["numbering_id"]))
        return rules
    if name == "style_patch":
        if not isinstance(value, dict):
            raise MalformedInput("Config key style_patch must be a mapping")
        return {str(key): str(item) for key, item in value.items()}
    if name in ("languages", "required_styles", "extra_styles_to_remove", "passthrough_styles"):
        if not isinstance(value, list):
            raise MalformedInput(f"Config key {name} must be a list")
        return [str(item) for item in value]
    return value


def config_from_mapping(data: Dict[str, Any], base: Optional[ConversionConfig] = None) -> ConversionConfig:
    known = {f.name for f in fields(ConversionConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise MalformedInput(f"Unknown config keys: {', '.join(unknown)}")
    values = {name: _coerce(name, value) for name, value in data.items()}
    return replace(base or ConversionConfig(), **values)


def load_config(path: Optional[Path]) -> ConversionConfig:
    """Defaults, overlaid with the YAML file at *path* when given."""
    if path is None:
        return ConversionConfig()
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise MalformedInput(f"Cannot read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise MalformedInput(f"Config {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedInput(f"Config {path} must contain a mapping")
    if "template_directory" in data and not Path(data["template_directory"]).is_absolute():
        data["template_directory"] = str(path.parent / data["template_directory"])
    return config_from_mapping(data)
