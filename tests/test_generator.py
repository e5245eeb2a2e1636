import json
from datetime import date

import pytest

from astock_research.domain.errors import GenerationError
from astock_research.domain.models.financials import FinancialDataset, PriceBar
from astock_research.domain.models.report import (
    CompanyIdentity,
    ReportDataset,
    ReportRequest,
    SupplementaryItem,
)
from astock_research.reports.generator import (
    REPORT_SECTIONS,
    ReportContentGenerator,
    ReportPolicy,
    build_investment_advice,
    rate_valuation,
)
from conftest import FakeLLM

IDENTITY = CompanyIdentity(
    ts_code="600519.SH", name="贵州茅台", industry="白酒", area="贵州", exchange="SSE", list_date="20010827"
)


def make_dataset(financials=None, bars=(), model=None, context=()):
    request = ReportRequest(
        subject_name="贵州茅台",
        as_of_date=date(2024, 3, 31),
        model_selector=model,
        supplementary_context=list(context),
    )
    dataset = ReportDataset.start(IDENTITY, request)
    dataset = dataset.with_financials(financials if financials is not None else FinancialDataset())
    return dataset.with_market_history(list(bars))


FULL_FINANCIALS = FinancialDataset(
    income_statements=[{"end_date": "20240331", "total_revenue": 46485000000.0, "n_income": 24065000000.0}],
    balance_sheets=[{"total_assets": 260000000000.0, "total_liab": 35000000000.0, "total_hldr_eqy_exc_min_int": 2.2e11}],
    cash_flows=[{"n_cashflow_act": 8300000000.0}],
    ratios=[{"eps": 19.16, "grossprofit_margin": 91.8, "or_yoy": 18.0}],
)

BARS = [
    PriceBar("20240102", 1720.0, 1730.0, 1680.0, 1690.0, 28000.0),
    PriceBar("20240329", 1700.0, 1720.0, 1690.0, 1710.0, 25000.0),
]


@pytest.mark.anyio
async def test_primary_path_returns_model_text_verbatim():
    llm = FakeLLM("## 公司概况\n模型文本")
    generator = ReportContentGenerator(llm, default_model="gpt-4o")
    dataset = make_dataset(
        FULL_FINANCIALS,
        BARS,
        model="poe:Claude-Sonnet",
        context=[SupplementaryItem("研报", "摘要", "https://example.com")],
    )
    text = await generator.generate(dataset)
    assert text == "## 公司概况\n模型文本"
    call = llm.calls[0]
    assert call["model"] == "Claude-Sonnet"
    assert call["messages"][0]["role"] == "system"
    payload = json.loads(call["messages"][1]["content"].split("\n\n", 1)[1])
    assert payload["basicInfo"]["ts_code"] == "600519.SH"
    assert payload["marketData"]["count"] == 2
    assert payload["additionalInfo"][0]["title"] == "研报"


@pytest.mark.anyio
async def test_default_model_used_without_selector():
    llm = FakeLLM()
    await ReportContentGenerator(llm, default_model="gpt-4o").generate(make_dataset(FULL_FINANCIALS, BARS))
    assert llm.calls[0]["model"] == "gpt-4o"


@pytest.mark.anyio
async def test_model_failure_falls_back_to_template():
    generator = ReportContentGenerator(FakeLLM(RuntimeError("rate limited")), default_model="gpt-4o")
    text = await generator.generate(make_dataset(FULL_FINANCIALS, BARS))
    for heading in REPORT_SECTIONS:
        assert f"## {heading}" in text
    assert "464.85亿" in text
    assert "较为稳健" in text
    # P/E = 1710 / 19.16 ~= 89 -> caution tier
    assert "谨慎" in text


@pytest.mark.anyio
async def test_empty_model_reply_counts_as_failure():
    generator = ReportContentGenerator(FakeLLM("   "), default_model="gpt-4o")
    text = await generator.generate(make_dataset(FULL_FINANCIALS, BARS))
    assert "## 投资建议" in text


@pytest.mark.anyio
async def test_fallback_renders_na_for_missing_fields():
    sparse = FinancialDataset(income_statements=[{"end_date": "20240331"}])
    text = await ReportContentGenerator(None, default_model="gpt-4o").generate(make_dataset(sparse))
    for heading in REPORT_SECTIONS:
        assert f"## {heading}" in text
    assert "营业总收入：N/A" in text
    assert "最新收盘价：N/A" in text
    assert "暂无法给出估值评级" in text


@pytest.mark.anyio
async def test_empty_financials_escalate_when_model_fails():
    generator = ReportContentGenerator(FakeLLM(RuntimeError("down")), default_model="gpt-4o")
    with pytest.raises(GenerationError):
        await generator.generate(make_dataset(FinancialDataset(), BARS))


def test_high_leverage_is_flagged():
    levered = FinancialDataset(
        balance_sheets=[{"total_assets": 100.0, "total_liab": 70.0}],
        ratios=[{"eps": 1.0}],
    )
    text = ReportContentGenerator(None, default_model="gpt-4o").render_fallback(make_dataset(levered, BARS))
    assert "存在一定风险" in text
    assert "负债率偏高" in text


@pytest.mark.parametrize(
    "pe, rating",
    [(8, "强烈推荐"), (12, "推荐"), (20, "谨慎推荐"), (40, "中性"), (60, "谨慎")],
)
def test_valuation_tiers(pe, rating):
    assert rate_valuation(pe)[0] == rating


def test_policy_thresholds_are_configurable():
    policy = ReportPolicy(pe_strong_buy=30.0)
    assert rate_valuation(20, policy)[0] == "强烈推荐"


def test_investment_advice_needs_positive_eps():
    assert build_investment_advice({"eps": -0.5}, 10.0) is None
    advice = build_investment_advice({"eps": 1.0, "grossprofit_margin": 35.0, "or_yoy": 5.0}, 12.0)
    assert advice.rating == "推荐"
    assert advice.pe_comparison == "低于"
    assert advice.financial_status.startswith("良好")
    assert advice.growth_comment.startswith("稳定")
