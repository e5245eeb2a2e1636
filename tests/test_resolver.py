import pytest

from astock_research.domain.errors import ResolutionError
from astock_research.domain.models.report import TICKER_PATTERN, Market
from astock_research.workflows.resolver import StockIdentifierResolver, extract_identifier
from conftest import FakeSearch


@pytest.mark.parametrize(
    "text, ticker",
    [
        ("贵州茅台 600519.SH 上交所", "600519.SH"),
        ("平安银行 000001.sz 深交所", "000001.SZ"),
        ("贝特瑞 835185.BJ 北交所", "835185.BJ"),
        ("腾讯控股 00700.HK 港交所", "00700.HK"),
        # Shanghai outranks Shenzhen regardless of position in the text.
        ("000001.SZ 与 600000.SH", "600000.SH"),
    ],
)
def test_exchange_patterns_in_priority_order(text, ticker):
    assert extract_identifier(text).ticker == ticker


@pytest.mark.parametrize(
    "text, ticker, market",
    [
        ("代码 600036 招商银行", "600036.SH", Market.SH),
        ("代码 300750 宁德时代", "300750.SZ", Market.SZ),
        ("代码 002594 比亚迪", "002594.SZ", Market.SZ),
        ("代码 830799 艾融软件", "830799.BJ", Market.BJ),
        ("代码 123456", "123456.SZ", Market.SZ),
    ],
)
def test_bare_code_prefix_fallback(text, ticker, market):
    identifier = extract_identifier(text)
    assert identifier.ticker == ticker
    assert identifier.market is market
    assert TICKER_PATTERN.match(identifier.ticker)


def test_no_code_in_text():
    assert extract_identifier("没有任何代码") is None


@pytest.mark.anyio
async def test_resolve_searches_with_ticker_query(moutai_search):
    resolver = StockIdentifierResolver(moutai_search)
    identifier = await resolver.resolve("贵州茅台")
    assert identifier.ticker == "600519.SH"
    assert moutai_search.queries == ["贵州茅台 股票代码 交易所"]


@pytest.mark.anyio
async def test_qualified_ticker_skips_search():
    search = FakeSearch()
    identifier = await StockIdentifierResolver(search).resolve(" 600519.sh ")
    assert identifier.ticker == "600519.SH"
    assert search.queries == []


@pytest.mark.anyio
async def test_not_found_raises_resolution_error():
    resolver = StockIdentifierResolver(FakeSearch())
    with pytest.raises(ResolutionError) as excinfo:
        await resolver.resolve("NotARealCompany123")
    assert str(excinfo.value).startswith("未找到股票代码")


@pytest.mark.anyio
async def test_search_failure_raises_resolution_error():
    resolver = StockIdentifierResolver(FakeSearch(error=RuntimeError("search down")))
    with pytest.raises(ResolutionError):
        await resolver.resolve("贵州茅台")


@pytest.mark.anyio
async def test_missing_search_client_raises_resolution_error():
    with pytest.raises(ResolutionError):
        await StockIdentifierResolver(None).resolve("贵州茅台")
