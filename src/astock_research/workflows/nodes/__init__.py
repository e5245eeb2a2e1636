"""Convenience re-exports for workflow nodes."""
from __future__ import annotations

from . import finalize, financials, llm_clean, market, resolve, writing

__all__ = [
    "resolve",
    "financials",
    "market",
    "writing",
    "finalize",
    "llm_clean",
]
