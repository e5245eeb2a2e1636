"""Settings helpers to centralize configuration access."""
from __future__ import annotations

from typing import Optional

from config import Config


def load_settings(debug_override: Optional[bool] = None, **overrides) -> Config:
    """Return a Config instance, applying optional runtime overrides.

    Keyword overrides replace individual fields (e.g. ``report_model="gpt-4o"``);
    ``None`` values are ignored so CLI options can be passed through unchanged.
    """
    config = Config.from_env()
    if debug_override is not None:
        config.debug = debug_override
    for key, value in overrides.items():
        if value is None:
            continue
        if not hasattr(config, key):
            raise AttributeError(f"Unknown configuration field: {key}")
        setattr(config, key, value)
    return config
