"""Markdown front-end: front matter, mistune AST and the reference pass.

The mistune AST (``renderer="ast"``) is post-processed in place:

* a ``{#label}`` suffix on a heading is stripped and kept as ``attrs["id"]``;
* a ``{width=... height=...}`` block right after an image becomes the
  image's ``attrs["size"]``;
* bracketed spans ``[text]{.class}`` are parsed into ``span`` tokens;
* ``::: {.img-caption}``, ``table-caption`` and ``listing-caption`` fenced
  divs become ``caption`` tokens;
* headings get their section number prepended, then ``span`` tokens of class
  ``ref`` and ``cite`` are replaced by their printed numbers.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional

import mistune
import yaml

from docx_manuscript.errors import MalformedMarkdown
from docx_manuscript.log import get_logger
from docx_manuscript.meta import DocumentMeta, namespaced_meta
from docx_manuscript.references import DocumentReferences

if TYPE_CHECKING:
    from typing import Any

    from docx_manuscript.config import ConversionConfig

LOGGER = get_logger(__name__)

_FRONT_MATTER_RE = re.compile(r"^---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n|$)", re.DOTALL)
_HEADING_LABEL_RE = re.compile(r"\s*\{#([^}]*)\}\s*$")
_ATTR_BLOCK_RE = re.compile(r"^\{([^}]*)\}")
_ATTR_RE = re.compile(r"""([A-Za-z_][\w-]*)=(?:"((?:\\.|[^"\\])*)"|'((?:\\.|[^'\\])*)'|([^\s"']\S*)?)""")

SPAN_PATTERN = r"\[(?P<span_text>[^\[\]\n]*)\]\{\.(?P<span_class>[A-Za-z][\w-]*)\}"

REF_CLASS = "ref"
CITE_CLASS = "cite"


# ---------------------------------------------------------------------------
# mistune plugin for bracketed spans
# ---------------------------------------------------------------------------
def _parse_span(inline, m, state):
    state.append_token({
        "type": "span",
        "raw": m.group("span_text"),
        "attrs": {"class": m.group("span_class")},
    })
    return m.end()


def bracketed_spans(md):
    """``[text]{.class}`` -> ``{"type": "span", "raw": text, "attrs": {"class": ...}}``."""
    md.inline.register("span", SPAN_PATTERN, _parse_span, before="link")


# ---------------------------------------------------------------------------
# mistune plugin for caption divs
# ---------------------------------------------------------------------------
IMAGE_CAPTION = "img-caption"
TABLE_CAPTION = "table-caption"
LISTING_CAPTION = "listing-caption"
CAPTION_CLASSES = (IMAGE_CAPTION, TABLE_CAPTION, LISTING_CAPTION)

_CAPTION_ALTERNATIVES = "|".join(CAPTION_CLASSES)
CAPTION_DIV_PATTERN = (
    r"^ {0,3}:{3,}[ \t]*(?:\{[ \t]*\.(?P<div_class>" + _CAPTION_ALTERNATIVES + r")[ \t]*\}"
    r"|(?P<div_bare>" + _CAPTION_ALTERNATIVES + r"))"
    r"[ \t]*\n(?P<div_text>[\s\S]*?)\n {0,3}:{3,}[ \t]*$"
)


def _parse_caption_div(block, m, state):
    state.append_token({
        "type": "caption",
        "text": " ".join(m.group("div_text").split()),
        "attrs": {"class": m.group("div_class") or m.group("div_bare")},
    })
    return m.end() + 1


def caption_divs(md):
    """``::: {.table-caption}`` fenced divs -> ``{"type": "caption", "attrs": {"class": ...}}``."""
    md.block.register("caption_div", CAPTION_DIV_PATTERN, _parse_caption_div, before="list")


def create_parser():
    return mistune.create_markdown(
        renderer="ast",
        plugins=["table", "strikethrough", "math", bracketed_spans, caption_divs],
    )


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------
def split_front_matter(text: str):
    """Return ``(front_matter_dict, body_text)``."""
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as exc:
        raise MalformedMarkdown(f"Front matter is not valid YAML: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedMarkdown(f"Front matter must be a mapping, got {type(data).__name__}")
    return data, text[match.end():]


# ---------------------------------------------------------------------------
# AST helpers
# ---------------------------------------------------------------------------
def iter_tokens(tokens: List[dict]) -> Iterator[dict]:
    """Pre-order walk over every token of the AST."""
    for token in tokens:
        yield token
        children = token.get("children")
        if isinstance(children, list):
            yield from iter_tokens(children)


def flatten_text(tokens) -> str:
    """Recursively extract plain text from a token tree."""
    if isinstance(tokens, str):
        return tokens
    if isinstance(tokens, dict):
        children = tokens.get("children")
        if isinstance(children, list):
            return flatten_text(children)
        return tokens.get("raw", tokens.get("text", ""))
    if isinstance(tokens, list):
        return "".join(flatten_text(token) for token in tokens)
    return str(tokens)


def _merge_text(children: List[dict]) -> List[dict]:
    merged: List[dict] = []
    for child in children:
        if merged and child.get("type") == "text" and merged[-1].get("type") == "text":
            merged[-1] = {"type": "text", "raw": merged[-1].get("raw", "") + child.get("raw", "")}
        else:
            merged.append(child)
    return merged


def parse_attributes(text: str) -> Optional[Dict[str, str]]:
    """``{key=value key2="quoted value"}`` -> dict; ``None`` if *text* is not a block."""
    text = text.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return None
    result: Dict[str, str] = {}
    for match in _ATTR_RE.finditer(text[1:-1]):
        key, double, single, bare = match.groups()
        if double is not None:
            value = re.sub(r"\\(.)", r"\1", double)
        elif single is not None:
            value = single
        else:
            value = bare or ""
        result[key] = value
    return result


# ---------------------------------------------------------------------------
# Pre-processing passes
# ---------------------------------------------------------------------------
def add_heading_labels(tokens: List[dict]) -> None:
    for token in iter_tokens(tokens):
        if token.get("type") != "heading":
            continue
        children = _merge_text(token.get("children", []))
        token["children"] = children
        if not children or children[-1].get("type") != "text":
            continue
        last = children[-1]
        match = _HEADING_LABEL_RE.search(last.get("raw", ""))
        if match:
            token.setdefault("attrs", {})["id"] = match.group(1).strip()
            last["raw"] = last["raw"][: match.start()].rstrip()
            if not last["raw"]:
                children.pop()


def parse_image_attrs(tokens: List[dict]) -> None:
    for token in iter_tokens(tokens):
        children = token.get("children")
        if not isinstance(children, list):
            continue
        index = 1
        while index < len(children):
            previous, current = children[index - 1], children[index]
            if previous.get("type") == "image" and current.get("type") == "text":
                match = _ATTR_BLOCK_RE.match(current.get("raw", ""))
                attrs = parse_attributes(match.group(0)) if match else None
                if attrs is not None:
                    previous.setdefault("attrs", {})["size"] = attrs
                    rest = current["raw"][match.end():]
                    if rest:
                        current["raw"] = rest
                    else:
                        del children[index]
                        continue
            index += 1


def number_headings(tokens: List[dict], references: DocumentReferences) -> None:
    """Prefix every numbered heading with its section number."""
    for token in iter_tokens(tokens):
        if token.get("type") != "heading":
            continue
        attrs = token.setdefault("attrs", {})
        number = references.get_section(attrs.get("level", 1), attrs.get("id"))
        if number is None:
            continue
        attrs["number"] = number
        token.setdefault("children", []).insert(0, {"type": "text", "raw": number + " "})


def resolve_spans(tokens: List[dict], references: DocumentReferences) -> None:
    """Replace ``ref``/``cite`` spans by text, in document order."""
    resolvers: Dict[str, Callable[[str], str]] = {
        REF_CLASS: references.get_reference,
        CITE_CLASS: references.get_cite,
    }
    for token in iter_tokens(tokens):
        if token.get("type") != "span":
            continue
        span_class = token.get("attrs", {}).get("class")
        label = token.get("raw", "").strip()
        resolver = resolvers.get(span_class)
        token["type"] = "text"
        if resolver is not None:
            token["raw"] = resolver(label)
        else:
            LOGGER.debug("Span class %r kept as plain text", span_class)
        token.pop("attrs", None)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
@dataclass
class ParsedDocument:
    front_matter: Dict[str, "Any"]
    meta: DocumentMeta
    blocks: List[dict]
    references: DocumentReferences
    source_dir: Path = field(default_factory=Path.cwd)

    def to_json(self) -> str:
        return json.dumps({"meta": self.front_matter, "blocks": self.blocks},
                          ensure_ascii=False, indent=2, default=str)


def parse_markdown(text: str, config: "ConversionConfig", source_dir: Optional[Path] = None) -> ParsedDocument:
    front_matter, body = split_front_matter(text)
    meta = namespaced_meta(front_matter, config.meta_namespace)
    tokens = create_parser()(body)
    if not isinstance(tokens, list):
        raise MalformedMarkdown("Markdown parser did not return an AST")

    add_heading_labels(tokens)
    parse_image_attrs(tokens)

    references = DocumentReferences(meta, config.depth_threshold)
    number_headings(tokens, references)
    resolve_spans(tokens, references)

    return ParsedDocument(front_matter, meta, tokens, references, source_dir or Path.cwd())


def read_markdown(path: Path, config: "ConversionConfig") -> ParsedDocument:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedMarkdown(f"{path}: not valid UTF-8 ({exc})") from exc
    return parse_markdown(text, config, Path(path).resolve().parent)
