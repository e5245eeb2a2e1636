"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Base directory for resolving relative paths.
BASE_DIR = Path(__file__).resolve().parent


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    # Normalize non-string inputs (e.g., int defaults) before parsing.
    if not isinstance(value, str):
        value = str(value)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str]) -> Optional[int]:
    """Safely parse an integer env var, returning None on failure."""
    if value is None:
        return None
    try:
        parsed = int(str(value).strip())
        return parsed
    except (TypeError, ValueError):
        return None


def _int_or(value: Optional[str], default: int) -> int:
    """Parse an integer env var where zero is meaningful."""
    parsed = _to_int(value)
    return default if parsed is None else parsed


def _to_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    tushare_api_key: Optional[str] = None
    tushare_base_url: str = "http://api.tushare.pro"
    tushare_transport: str = "http"
    proxy_url: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.poe.com/v1"
    report_model: str = "gpt-4o"
    poe_web_search: Optional[bool] = None
    poe_thinking_budget: Optional[int] = None
    tavily_api_key: Optional[str] = None
    search_max_results: int = 5
    search_depth: str = "advanced"
    provider_max_retries: int = 3
    basic_info_cache_ttl: float = 24 * 60 * 60
    daily_cache_ttl: float = 60 * 60
    market_lookback_days: int = 90
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    output_dir: Path = BASE_DIR / "reports"

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        defaults = cls()
        transport = (os.getenv("TUSHARE_TRANSPORT") or defaults.tushare_transport).strip().lower()
        if transport not in {"http", "sdk"}:
            transport = defaults.tushare_transport

        return cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            tushare_api_key=os.getenv("TUSHARE_API_KEY"),
            tushare_base_url=os.getenv("TUSHARE_BASE_URL", defaults.tushare_base_url),
            tushare_transport=transport,
            proxy_url=os.getenv("PROXY_URL"),
            llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("POE_API_KEY"),
            llm_base_url=os.getenv("LLM_BASE_URL", defaults.llm_base_url),
            report_model=os.getenv("REPORT_MODEL", defaults.report_model),
            poe_web_search=_to_bool(os.getenv("POE_WEB_SEARCH"), default=False)
            if os.getenv("POE_WEB_SEARCH") is not None
            else None,
            poe_thinking_budget=_to_int(os.getenv("POE_THINKING_BUDGET")),
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            search_max_results=_to_int(os.getenv("SEARCH_MAX_RESULTS")) or defaults.search_max_results,
            search_depth=os.getenv("SEARCH_DEPTH", defaults.search_depth),
            provider_max_retries=_int_or(os.getenv("PROVIDER_MAX_RETRIES"), defaults.provider_max_retries),
            basic_info_cache_ttl=_to_float(os.getenv("BASIC_INFO_CACHE_TTL"), defaults.basic_info_cache_ttl),
            daily_cache_ttl=_to_float(os.getenv("DAILY_CACHE_TTL"), defaults.daily_cache_ttl),
            market_lookback_days=_to_int(os.getenv("MARKET_LOOKBACK_DAYS")) or defaults.market_lookback_days,
            api_host=os.getenv("API_HOST", defaults.api_host),
            api_port=_to_int(os.getenv("API_PORT")) or defaults.api_port,
            output_dir=Path(os.getenv("OUTPUT_DIR", defaults.output_dir)),
        )

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
