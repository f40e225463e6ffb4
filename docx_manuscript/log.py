"""Central logging configuration for the converter."""
from __future__ import annotations

import logging
from typing import Optional

_DEFAULT_LEVEL = logging.INFO


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-level logger with default configuration applied."""
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=_DEFAULT_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    return logger


def set_verbose(verbose: bool) -> None:
    """Switch the package loggers between INFO and DEBUG."""
    logging.getLogger("docx_manuscript").setLevel(logging.DEBUG if verbose else _DEFAULT_LEVEL)
