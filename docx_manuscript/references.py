"""Section numbering and cross-reference / citation resolution."""
from __future__ import annotations

from typing import Dict, List, Optional

from docx_manuscript.log import get_logger
from docx_manuscript.meta import DocumentMeta

LOGGER = get_logger(__name__)

UNRESOLVED_CITATION = "[?]"


def label_prefix(label: str) -> str:
    """Group of a label: the text before the first colon (``"fig:a"`` -> ``"fig"``)."""
    return label.split(":", 1)[0]


class DocumentReferences:
    """Counter stack for headings plus per-prefix label maps.

    Heading depth ``depth_threshold`` is the first counter level; shallower
    headings are not numbered.  Numbers of labelled sections and lazily
    numbered references share the per-prefix maps, so a label always prints
    the same way wherever it is used.
    """

    def __init__(self, meta: Optional[DocumentMeta] = None, depth_threshold: int = 1):
        self.meta = meta if meta is not None else DocumentMeta(None)
        self.depth_threshold = depth_threshold
        self.stack: List[int] = []
        self.groups: Dict[str, Dict[str, str]] = {}

    def get_prefix_map(self, prefix: str) -> Dict[str, str]:
        return self.groups.setdefault(prefix, {})

    def get_section(self, depth: int, label: Optional[str] = None) -> Optional[str]:
        """Printed number of the next heading at *depth*, or ``None`` above the threshold."""
        length = depth - self.depth_threshold + 1
        if length <= 0:
            return None
        del self.stack[length:]
        if len(self.stack) == length:
            self.stack[-1] += 1
        else:
            self.stack.extend([1] * (length - len(self.stack)))

        number = ".".join(str(counter) for counter in self.stack)
        if label:
            group = self.get_prefix_map(label_prefix(label))
            if label in group:
                LOGGER.warning("Multiple definitions of section %s", label)
            group[label] = number

        if len(self.stack) == 1:
            return number + "."
        return number

    def get_reference(self, label: str) -> str:
        """Number of *label*, assigning the next one in its group on first sight."""
        group = self.get_prefix_map(label_prefix(label))
        if label not in group:
            group[label] = str(len(group) + 1)
        return group[label]

    def get_cite(self, key: str) -> str:
        """``[n]`` for the bibliography entry whose ``id`` is *key*, else ``[?]``."""
        links = self.meta.get_section("links")
        if links.is_array():
            for index, link in enumerate(links.as_array()):
                if link.is_map() and link.get_optional_string("id") == key:
                    return f"[{index + 1}]"
        LOGGER.warning("Undefined citation: %s", key)
        return UNRESOLVED_CITATION
