"""Reporting-period helpers (quarter ends, lookback windows, YYYYMMDD codecs)."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

DATE_FORMAT = "%Y%m%d"


def default_report_date(today: Optional[date] = None) -> date:
    """Return the most recently completed calendar quarter end relative to ``today``."""
    today = today or date.today()
    if today.month <= 3:
        return date(today.year - 1, 12, 31)
    if today.month <= 6:
        return date(today.year, 3, 31)
    if today.month <= 9:
        return date(today.year, 6, 30)
    return date(today.year, 9, 30)


def lookback_start(end: date, days: int) -> date:
    return end - timedelta(days=days)


def to_period(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def parse_period(value: str) -> date:
    """Parse ``YYYYMMDD`` (or ISO ``YYYY-MM-DD``) into a date."""
    text = str(value).strip()
    for fmt in (DATE_FORMAT, "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid report date {value!r}; expected YYYYMMDD.")
