"""Pytest fixtures and fakes for the provider, search and model collaborators."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from config import Config
from astock_research.infrastructure.data_providers.tushare_client import TuShareClient
from astock_research.infrastructure.search.tavily_client import SearchResult, SearchResults
from astock_research.reports.generator import ReportContentGenerator
from astock_research.workflows.graph import ReportWorkflow
from astock_research.workflows.resolver import StockIdentifierResolver


def envelope(fields: Sequence[str], items: Sequence[Sequence[Any]], code: int = 0, msg: str = "") -> Dict[str, Any]:
    return {"code": code, "msg": msg, "data": {"fields": list(fields), "items": [list(row) for row in items]}}


MOUTAI_RESPONSES: Dict[str, Any] = {
    "stock_basic": envelope(
        ["ts_code", "name", "area", "industry", "list_date", "market", "exchange"],
        [["600519.SH", "贵州茅台", "贵州", "白酒", "20010827", "主板", "SSE"]],
    ),
    "income": envelope(
        ["ts_code", "ann_date", "end_date", "total_revenue", "n_income"],
        [
            ["600519.SH", "20240330", "20231231", 150560000000.0, 74734000000.0],
            ["600519.SH", "20240426", "20240331", 46485000000.0, 24065000000.0],
        ],
    ),
    "balancesheet": envelope(
        ["ts_code", "ann_date", "end_date", "total_assets", "total_liab", "total_hldr_eqy_exc_min_int"],
        [["600519.SH", "20240426", "20240331", 260000000000.0, 35000000000.0, 220000000000.0]],
    ),
    "cashflow": envelope(
        ["ts_code", "ann_date", "end_date", "n_cashflow_act", "n_cashflow_inv_act", "n_cash_flows_fnc_act"],
        [["600519.SH", "20240426", "20240331", 8300000000.0, -780000000.0, -120000000.0]],
    ),
    "fina_indicator": envelope(
        ["ts_code", "ann_date", "end_date", "eps", "grossprofit_margin", "or_yoy"],
        [["600519.SH", "20240426", "20240331", 19.16, 91.8, 18.0]],
    ),
    "daily": envelope(
        ["ts_code", "trade_date", "open", "high", "low", "close", "vol"],
        [
            ["600519.SH", "20240329", 1700.0, 1720.0, 1690.0, 1710.0, 25000.0],
            ["600519.SH", "20240215", 1650.0, 1680.0, 1640.0, 1660.0, 30000.0],
            ["600519.SH", "20240102", 1720.0, 1730.0, 1680.0, 1690.0, 28000.0],
        ],
    ),
}


class FakeTransport:
    """Serves canned envelopes per endpoint; an exception value is raised instead."""

    def __init__(self, responses: Optional[Mapping[str, Any]] = None) -> None:
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[tuple] = []

    async def request(self, api_name: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append((api_name, dict(params)))
        response = self.responses[api_name]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return response

    def count(self, api_name: str) -> int:
        return sum(1 for name, _ in self.calls if name == api_name)


class FakeSearch:
    """Returns the hits registered for the first key contained in the query."""

    def __init__(self, hits: Optional[Mapping[str, List[Dict[str, str]]]] = None, error: Optional[Exception] = None):
        self.hits = dict(hits or {})
        self.error = error
        self.queries: List[str] = []

    async def search(self, query: str, max_results: int = 5, depth: str = "advanced") -> SearchResults:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        for key, items in self.hits.items():
            if key in query:
                return SearchResults(query=query, results=[SearchResult(**item) for item in items])
        return SearchResults(query=query, results=[])


class FakeLLM:
    def __init__(self, reply: Any = "## 公司概况\n模型生成的研报"):
        self.reply = reply
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, messages, *, model=None, **kwargs) -> str:
        self.calls.append({"messages": messages, "model": model})
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(output_dir=tmp_path / "reports")


@pytest.fixture
def moutai_transport() -> FakeTransport:
    return FakeTransport(MOUTAI_RESPONSES)


@pytest.fixture
def moutai_search() -> FakeSearch:
    return FakeSearch(
        {
            "股票代码": [{"title": "贵州茅台(600519)", "content": "贵州茅台 600519.SH 上海证券交易所", "url": "https://example.com/a"}],
            "最新研报": [
                {"title": f"研报{i}", "content": f"摘要{i}", "url": f"https://example.com/r{i}"} for i in range(5)
            ],
            "公司简介": [{"title": "公司简介", "content": "白酒龙头", "url": "https://example.com/b"}],
        }
    )


def build_workflow(config: Config, transport, search=None, llm=None, *, max_retries: int = 0) -> ReportWorkflow:
    return ReportWorkflow(
        config,
        provider=TuShareClient(transport, max_retries=max_retries),
        resolver=StockIdentifierResolver(search),
        generator=ReportContentGenerator(llm, default_model=config.report_model),
        search=search,
        llm=llm,
    )
