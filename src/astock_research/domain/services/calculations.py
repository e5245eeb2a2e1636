"""Domain service layer providing report calculations.

This module implements:
- Human-readable number formatting in 亿/万 units
- Market window statistics (pandas-based)
- Latest-period ratios consumed by the template fallback (debt-to-asset, P/E)

Functions are robust to missing data: when a value cannot be computed because an
input is absent or a denominator is zero, the result is ``None`` and renders as
``N/A``.
"""
from __future__ import annotations

import math
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from astock_research.domain.models.financials import MarketSummary, PriceBar

NOT_AVAILABLE = "N/A"

HUNDRED_MILLION = 1e8
TEN_THOUSAND = 1e4


def to_number(value: Any) -> Optional[float]:
    """Coerce provider values to float; ``None`` for missing, NaN or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def format_number(value: Any) -> str:
    """Render large figures in 亿 / 万 units, small ones with thousands separators."""
    number = to_number(value)
    if number is None:
        return NOT_AVAILABLE
    if abs(number) >= HUNDRED_MILLION:
        return f"{number / HUNDRED_MILLION:.2f}亿"
    if abs(number) >= TEN_THOUSAND:
        return f"{number / TEN_THOUSAND:.2f}万"
    return f"{number:,.2f}".rstrip("0").rstrip(".")


def format_decimal(value: Any, digits: int = 2) -> str:
    number = to_number(value)
    return NOT_AVAILABLE if number is None else f"{number:.{digits}f}"


def safe_ratio(numerator: Any, denominator: Any) -> Optional[float]:
    num = to_number(numerator)
    den = to_number(denominator)
    if num is None or den is None or den == 0:
        return None
    return num / den


def debt_to_assets(balance: Mapping[str, Any]) -> Optional[float]:
    return safe_ratio(balance.get("total_liab"), balance.get("total_assets"))


def price_to_earnings(price: Any, eps: Any) -> Optional[float]:
    """P/E from the latest close and EPS; undefined for non-positive earnings."""
    earnings = to_number(eps)
    if earnings is None or earnings <= 0:
        return None
    return safe_ratio(price, earnings)


def summarize_market(bars: Sequence[PriceBar]) -> MarketSummary:
    """Compute window statistics over bars ordered ascending by trade date."""
    if not bars:
        return MarketSummary(trading_days=0)

    frame = pd.DataFrame([bar.to_dict() for bar in bars]).sort_values("date").reset_index(drop=True)
    closes = frame["close"].dropna()
    start_price = float(closes.iloc[0]) if not closes.empty else None
    end_price = float(closes.iloc[-1]) if not closes.empty else None
    change = None
    if start_price and end_price is not None:
        change = (end_price - start_price) / start_price * 100

    return MarketSummary(
        trading_days=len(frame),
        start_date=str(frame["date"].iloc[0]),
        end_date=str(frame["date"].iloc[-1]),
        start_price=start_price,
        end_price=end_price,
        highest_price=_column_stat(frame, "high", "max"),
        lowest_price=_column_stat(frame, "low", "min"),
        average_volume=_column_stat(frame, "volume", "mean"),
        price_change_pct=change,
    )


def _column_stat(frame: pd.DataFrame, column: str, how: str) -> Optional[float]:
    series = pd.to_numeric(frame[column], errors="coerce").dropna()
    if series.empty:
        return None
    return float(getattr(series, how)())
