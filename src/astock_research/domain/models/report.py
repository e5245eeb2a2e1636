"""Request, identity and dataset models for the research-report workflow."""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from astock_research.domain.models.financials import FinancialDataset, PriceBar
from astock_research.domain.services.periods import default_report_date, to_period

TICKER_PATTERN = re.compile(r"^(\d{5,6})\.(SH|SZ|BJ|HK)$")


class Market(str, Enum):
    SH = "SH"
    SZ = "SZ"
    BJ = "BJ"
    HK = "HK"


class ReportKind(str, Enum):
    """Informational report flavour; does not change what is fetched."""

    ANNUAL = "年报"
    SEMI_ANNUAL = "半年报"
    Q1 = "一季报"
    Q3 = "三季报"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ReportKind"]:
        if value is None or not str(value).strip():
            return None
        text = str(value).strip()
        for member in cls:
            if text in (member.value, member.name, member.name.lower()):
                return member
        raise ValueError(f"Unknown report kind: {value!r}")


@dataclass(frozen=True)
class ResolvedIdentifier:
    """Exchange-qualified ticker such as ``600519.SH``."""

    ticker: str
    market: Market

    def __post_init__(self) -> None:
        match = TICKER_PATTERN.match(self.ticker)
        if not match or match.group(2) != self.market.value:
            raise ValueError(f"Malformed ticker {self.ticker!r} for market {self.market.value}")

    @classmethod
    def parse(cls, ticker: str) -> "ResolvedIdentifier":
        text = ticker.strip().upper()
        match = TICKER_PATTERN.match(text)
        if not match:
            raise ValueError(f"Not an exchange-qualified ticker: {ticker!r}")
        return cls(ticker=text, market=Market(match.group(2)))


@dataclass(frozen=True)
class SupplementaryItem:
    title: str
    content: str
    url: str

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "SupplementaryItem":
        return cls(
            title=str(payload.get("title") or ""),
            content=str(payload.get("content") or ""),
            url=str(payload.get("url") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "content": self.content, "url": self.url}


@dataclass
class ReportRequest:
    """Input accepted by the workflow orchestrator."""

    subject_name: str
    as_of_date: Optional[date] = None
    report_kind: Optional[ReportKind] = None
    model_selector: Optional[str] = None
    supplementary_context: List[SupplementaryItem] = field(default_factory=list)
    # Alternate entry point: the caller already knows the ticker.
    ticker: Optional[str] = None

    def __post_init__(self) -> None:
        self.subject_name = (self.subject_name or "").strip()
        if self.ticker is not None:
            self.ticker = ResolvedIdentifier.parse(self.ticker).ticker
            if not self.subject_name:
                self.subject_name = self.ticker
        if not self.subject_name:
            raise ValueError("subject_name must not be empty")
        if self.as_of_date is None:
            self.as_of_date = default_report_date()

    @property
    def report_date(self) -> str:
        return to_period(self.as_of_date)  # type: ignore[arg-type]


@dataclass(frozen=True)
class CompanyIdentity:
    """Static company metadata from ``stock_basic``."""

    ts_code: str
    name: str
    industry: Optional[str] = None
    area: Optional[str] = None
    market: Optional[str] = None
    exchange: Optional[str] = None
    list_date: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any], identifier: ResolvedIdentifier) -> "CompanyIdentity":
        return cls(
            ts_code=str(record.get("ts_code") or identifier.ticker),
            name=str(record.get("name") or identifier.ticker),
            industry=record.get("industry"),
            area=record.get("area"),
            market=record.get("market"),
            exchange=record.get("exchange") or identifier.market.value,
            list_date=record.get("list_date"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts_code": self.ts_code,
            "name": self.name,
            "industry": self.industry,
            "area": self.area,
            "market": self.market,
            "exchange": self.exchange,
            "list_date": self.list_date,
        }


@dataclass(frozen=True)
class ReportDataset:
    """Evidence bundle built stage by stage: identity, then financials, then market history."""

    identity: CompanyIdentity
    report_date: str
    report_kind: Optional[ReportKind] = None
    model_selector: Optional[str] = None
    supplementary_context: Tuple[SupplementaryItem, ...] = ()
    financials: Optional[FinancialDataset] = None
    market_history: Optional[Tuple[PriceBar, ...]] = None

    @classmethod
    def start(cls, identity: CompanyIdentity, request: ReportRequest) -> "ReportDataset":
        return cls(
            identity=identity,
            report_date=request.report_date,
            report_kind=request.report_kind,
            model_selector=request.model_selector,
            supplementary_context=tuple(request.supplementary_context),
        )

    def with_financials(self, financials: FinancialDataset) -> "ReportDataset":
        if self.financials is not None:
            raise RuntimeError("Financials were already attached to this dataset.")
        return replace(self, financials=financials)

    def with_market_history(self, bars: Sequence[PriceBar]) -> "ReportDataset":
        if self.financials is None:
            raise RuntimeError("Market history can only be attached after financials.")
        if self.market_history is not None:
            raise RuntimeError("Market history was already attached to this dataset.")
        ordered = tuple(sorted(bars, key=lambda bar: bar.trade_date))
        return replace(self, market_history=ordered)
