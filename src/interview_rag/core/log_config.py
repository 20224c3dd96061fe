"""
Centralized logging configuration.

Applies the root level from Settings and quiets the HTTP client loggers,
which otherwise log one line per embedding batch.
"""

from __future__ import annotations

import logging
import sys

from ..config import settings

_HTTP_LOGGERS = ("httpx", "httpcore")


def configure_logging() -> None:
    """
    Configure Python logging levels from application settings.

    Call once during startup. Safe to call again; a handler is only added
    when the root logger has none (uvicorn usually installs its own).
    """
    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
        root.addHandler(handler)

    http_level = _parse_level(settings.log_level_http)
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)


def _parse_level(raw: str) -> int:
    """Convert a level name to a logging constant, defaulting to INFO."""
    numeric = getattr(logging, raw.upper(), None)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO
