"""Image loading and sizing for embedded pictures."""
from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple

import requests
from PIL import Image, UnidentifiedImageError

from docx_manuscript.errors import ExternalToolError
from docx_manuscript.log import get_logger

LOGGER = get_logger(__name__)

DEFAULT_WIDTH_CM = 10.0
DOWNLOAD_TIMEOUT = 15


@dataclass
class LoadedImage:
    data: bytes
    aspect: float

    @property
    def stream(self) -> BytesIO:
        return BytesIO(self.data)


def _fetch(src: str) -> bytes:
    try:
        resp = requests.get(src, timeout=DOWNLOAD_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ExternalToolError(f"Cannot download image {src}: {exc}") from exc
    return resp.content


def image_aspect(data: bytes) -> Optional[float]:
    """Width / height of an image, or ``None`` if Pillow cannot read it."""
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError):
        return None
    if not height:
        return None
    return width / height


def load_image(src: str, base_dir: Path) -> Optional[LoadedImage]:
    """Read a local (relative to *base_dir*) or ``http(s)`` image; ``None`` if unusable."""
    if src.startswith(("http://", "https://")):
        data = _fetch(src)
    else:
        path = Path(src)
        if not path.is_absolute():
            path = base_dir / path
        if not path.is_file():
            LOGGER.warning("Image not found: %s", path)
            return None
        data = path.read_bytes()
    aspect = image_aspect(data)
    if aspect is None:
        LOGGER.warning("Unrecognized image format: %s", src)
        return None
    return LoadedImage(data, aspect)


def parse_size_attr(value) -> Optional[float]:
    """``"5cm"`` -> ``5.0``; anything else -> ``None``."""
    if not isinstance(value, str) or not value.endswith("cm"):
        return None
    try:
        return float(value[:-2])
    except ValueError:
        return None


def image_size_cm(attrs: Optional[Dict[str, str]], aspect: float,
                  default_width: float = DEFAULT_WIDTH_CM) -> Tuple[float, float]:
    """Width and height in cm; a missing dimension follows the aspect ratio."""
    attrs = attrs or {}
    width = parse_size_attr(attrs.get("width"))
    height = parse_size_attr(attrs.get("height"))
    if width is None and height is None:
        width = default_width
    if height is None:
        height = width / aspect
    if width is None:
        width = aspect * height
    return width, height
