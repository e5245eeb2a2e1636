"""Domain models describing the financial data exchanged between services."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

Record = Dict[str, Any]

STATEMENT_KINDS = ("income", "balance", "cashflow", "indicators")


@dataclass(frozen=True)
class FinancialDataset:
    """Container aggregating the statements and indicator rows for one company.

    Every sequence is ordered most-recent-first, exactly as returned by the
    provider client.
    """

    income_statements: List[Record] = field(default_factory=list)
    balance_sheets: List[Record] = field(default_factory=list)
    cash_flows: List[Record] = field(default_factory=list)
    ratios: List[Record] = field(default_factory=list)

    def rows(self, kind: str) -> List[Record]:
        mapping = {
            "income": self.income_statements,
            "balance": self.balance_sheets,
            "cashflow": self.cash_flows,
            "indicators": self.ratios,
        }
        if kind not in mapping:
            raise KeyError(f"Unknown statement kind: {kind}")
        return mapping[kind]

    def latest(self, kind: str) -> Record:
        """Most recent period for ``kind``; an empty mapping when nothing was fetched."""
        rows = self.rows(kind)
        return dict(rows[0]) if rows else {}

    def recent(self, kind: str, periods: int = 3) -> List[Record]:
        return [dict(row) for row in self.rows(kind)[:periods]]

    def counts(self) -> Dict[str, int]:
        return {kind: len(self.rows(kind)) for kind in STATEMENT_KINDS}

    def is_empty(self) -> bool:
        """True when the provider returned no statement or indicator rows at all."""
        return not any(self.rows(kind) for kind in STATEMENT_KINDS)


@dataclass(frozen=True)
class PriceBar:
    """Single daily bar of the market window."""

    trade_date: str
    open: Optional[float]
    high: Optional[float]
    low: Optional[float]
    close: Optional[float]
    volume: Optional[float]

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PriceBar":
        return cls(
            trade_date=str(record.get("trade_date") or record.get("date") or ""),
            open=_as_float(record.get("open")),
            high=_as_float(record.get("high")),
            low=_as_float(record.get("low")),
            close=_as_float(record.get("close")),
            volume=_as_float(record.get("vol", record.get("volume"))),
        )

    def to_dict(self) -> Record:
        return {
            "date": self.trade_date,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class MarketSummary:
    """Window statistics used by both the prompt and the template fallback."""

    trading_days: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_price: Optional[float] = None
    end_price: Optional[float] = None
    highest_price: Optional[float] = None
    lowest_price: Optional[float] = None
    average_volume: Optional[float] = None
    price_change_pct: Optional[float] = None

    def to_dict(self) -> Record:
        return {
            "count": self.trading_days,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "startPrice": self.start_price,
            "endPrice": self.end_price,
            "highestPrice": self.highest_price,
            "lowestPrice": self.lowest_price,
            "averageVolume": self.average_volume,
            "priceChange": None if self.price_change_pct is None else round(self.price_change_pct, 2),
        }


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return None if parsed != parsed else parsed


def bars_from_records(records: Sequence[Mapping[str, Any]]) -> List[PriceBar]:
    return [PriceBar.from_record(record) for record in records]
