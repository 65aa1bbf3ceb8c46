"""Logging configuration for the crawl script and ad-hoc runs."""
from __future__ import annotations

import logging
from typing import Optional, Union

from siteintel.config import get_settings


def _normalise_level(level: Optional[Union[str, int]]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        value = level.strip().upper()
        if value.isdigit():
            return int(value)
        resolved = logging.getLevelName(value)
        if isinstance(resolved, int):
            return resolved
    return logging.INFO


def configure_logging(level: Optional[Union[str, int]] = None) -> None:
    """Route root logging to the console at ``level`` (defaults to settings)."""
    log_level = _normalise_level(level if level is not None else get_settings().log_level)

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))
