"""Logging helpers for CLI, API and workflow diagnostics."""
from __future__ import annotations

import logging
from typing import Optional

from rich.logging import RichHandler

_LOGGER_CONFIGURED = False

ROOT_LOGGER_NAME = "astock_research"


def configure_logging(debug: bool = False, *, level: Optional[int] = None) -> None:
    """Configure process-wide logging with Rich handler."""
    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED:
        return

    resolved_level = level or (logging.DEBUG if debug else logging.INFO)
    logging.basicConfig(
        level=resolved_level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=debug, show_path=debug)],
    )
    # httpx logs every request at INFO; keep it for debug runs only.
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    _LOGGER_CONFIGURED = True


def resolve_logger(logger: Optional[logging.Logger], name: str) -> logging.Logger:
    """Return the injected logger, or a child of the package logger named ``name``."""
    if logger is not None:
        return logger
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
