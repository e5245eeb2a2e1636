"""Report content generation: delegated LLM call with a deterministic template fallback."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from astock_research.domain.errors import GenerationError
from astock_research.domain.models.financials import FinancialDataset, MarketSummary
from astock_research.domain.models.report import ReportDataset
from astock_research.domain.services.calculations import (
    NOT_AVAILABLE,
    debt_to_assets,
    format_decimal,
    price_to_earnings,
    summarize_market,
    to_number,
)
from astock_research.infrastructure.llm.chat_client import resolve_model_id
from astock_research.reports.renderer import ReportRenderer
from astock_research.utils.logging import resolve_logger

REPORT_SECTIONS = ("公司概况", "财务分析", "市场表现", "风险分析", "投资建议")

SYSTEM_PROMPT = (
    "# 金融投资研报专家\n"
    "你是一位资深金融分析师，基于提供的股票基本信息、财务数据和市场行情，撰写专业、客观、有深度的投资研究报告。\n"
    "报告必须包含以下二级标题并按顺序组织：## 公司概况、## 财务分析、## 市场表现、## 风险分析、## 投资建议。\n"
    "财务分析覆盖盈利能力、资产质量与现金流、投资回报；投资建议给出综合评级、投资逻辑与关键风险提示。\n"
    "基于事实数据分析，避免无根据的猜测；既挖掘亮点，也指出隐患；默认面向中国A股市场。\n"
    "以Markdown格式输出整个研报内容。"
)


class TextGenerator(Protocol):
    async def generate(self, messages: List[Dict[str, str]], *, model: Optional[str] = None) -> str:
        ...


@dataclass(frozen=True)
class ReportPolicy:
    """Business thresholds for the template fallback's qualitative judgments."""

    sound_debt_ratio: float = 0.5
    high_debt_ratio: float = 0.6
    # fina_indicator reports margins and growth rates in percent.
    strong_gross_margin_pct: float = 20.0
    strong_revenue_growth_pct: float = 15.0
    pe_strong_buy: float = 10.0
    pe_buy: float = 15.0
    pe_industry_low: float = 20.0
    pe_neutral: float = 30.0
    pe_caution: float = 50.0
    sentiment_band_pct: float = 10.0
    recent_periods: int = 3


DEFAULT_POLICY = ReportPolicy()


@dataclass(frozen=True)
class InvestmentAdvice:
    rating: str
    reason: str
    pe: float
    pe_comparison: str
    financial_status: str
    growth_comment: str


def rate_valuation(pe: float, policy: ReportPolicy = DEFAULT_POLICY) -> tuple:
    """Map a P/E multiple to ``(rating, reason)`` using the policy breakpoints."""
    if pe < policy.pe_strong_buy:
        return "强烈推荐", "当前估值偏低，具有较好的投资价值"
    if pe < policy.pe_buy:
        return "推荐", "当前估值处于合理区间，具有一定投资价值"
    if pe > policy.pe_caution:
        return "谨慎", "当前估值显著偏高，建议等待更好的买入时机"
    if pe > policy.pe_neutral:
        return "中性", "当前估值偏高，需关注盈利增长的持续性"
    return "谨慎推荐", "基于当前估值水平及行业地位"


def build_investment_advice(
    indicators: Dict[str, Any],
    latest_close: Optional[float],
    policy: ReportPolicy = DEFAULT_POLICY,
) -> Optional[InvestmentAdvice]:
    """Derive the rating block; ``None`` when price or positive EPS is unavailable."""
    pe = price_to_earnings(latest_close, indicators.get("eps"))
    if pe is None:
        return None
    rating, reason = rate_valuation(pe, policy)

    if pe < policy.pe_industry_low:
        comparison = "低于"
    elif pe > policy.pe_neutral:
        comparison = "高于"
    else:
        comparison = "接近"

    gross_margin = to_number(indicators.get("grossprofit_margin"))
    if gross_margin is not None and gross_margin > policy.strong_gross_margin_pct:
        financial_status = "良好，具有较强盈利能力"
    else:
        financial_status = "一般，盈利能力有待提升"

    growth = to_number(indicators.get("or_yoy")) or 0.0
    if growth > policy.strong_revenue_growth_pct:
        growth_comment = "强劲，收入保持高增长"
    elif growth > 0:
        growth_comment = "稳定，收入保持增长"
    else:
        growth_comment = "收入增速放缓或下滑"

    return InvestmentAdvice(
        rating=rating,
        reason=reason,
        pe=pe,
        pe_comparison=comparison,
        financial_status=financial_status,
        growth_comment=growth_comment,
    )


def build_prompt_payload(dataset: ReportDataset, policy: ReportPolicy = DEFAULT_POLICY) -> Dict[str, Any]:
    financials = dataset.financials or FinancialDataset()
    bars = dataset.market_history or ()
    summary = summarize_market(bars)
    periods = policy.recent_periods
    return {
        "basicInfo": dataset.identity.to_dict(),
        "reportDate": dataset.report_date,
        "reportType": dataset.report_kind.value if dataset.report_kind else None,
        "financialData": {
            "income": financials.recent("income", periods),
            "balance": financials.recent("balance", periods),
            "cashflow": financials.recent("cashflow", periods),
            "indicators": financials.recent("indicators", periods),
        },
        "marketData": {
            "latest": bars[-1].to_dict() if bars else None,
            "oldest": bars[0].to_dict() if bars else None,
            **summary.to_dict(),
        },
        "additionalInfo": [item.to_dict() for item in dataset.supplementary_context],
    }


class ReportContentGenerator:
    """Produce Markdown report text for an assembled dataset."""

    def __init__(
        self,
        llm: Optional[TextGenerator],
        *,
        default_model: str,
        renderer: Optional[ReportRenderer] = None,
        policy: ReportPolicy = DEFAULT_POLICY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._llm = llm
        self._default_model = default_model
        self._renderer = renderer or ReportRenderer()
        self._policy = policy
        self._logger = resolve_logger(logger, "generator")

    async def generate(self, dataset: ReportDataset) -> str:
        """Primary model path; any failure there degrades to the template render."""
        try:
            return await self.generate_primary(dataset)
        except Exception as exc:  # pylint: disable=broad-except
            self._logger.warning("Model report generation failed, using template fallback: %s", exc)
            return self.render_fallback(dataset)

    async def generate_primary(self, dataset: ReportDataset) -> str:
        if self._llm is None:
            raise GenerationError("未配置语言模型")
        model_id = resolve_model_id(dataset.model_selector, self._default_model)
        self._logger.info("Generating report for %s with model %s", dataset.identity.ts_code, model_id)
        payload = json.dumps(build_prompt_payload(dataset, self._policy), ensure_ascii=False, indent=2, default=str)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"请基于以下数据生成一份专业的投资研究报告:\n\n{payload}"},
        ]
        text = await self._llm.generate(messages, model=model_id)
        if not text or not text.strip():
            raise GenerationError("模型返回了空内容")
        return text

    def render_fallback(self, dataset: ReportDataset) -> str:
        """Deterministic Markdown built from the latest period's raw figures."""
        financials = dataset.financials
        if financials is None or financials.is_empty():
            raise GenerationError(f"研报生成失败: 未获取到{dataset.identity.name}的任何财务数据")
        summary = summarize_market(dataset.market_history or ())
        return self._renderer.render(self._fallback_context(dataset, financials, summary))

    def _fallback_context(
        self,
        dataset: ReportDataset,
        financials: FinancialDataset,
        summary: MarketSummary,
    ) -> Dict[str, Any]:
        policy = self._policy
        identity = dataset.identity
        income = financials.latest("income")
        balance = financials.latest("balance")
        cashflow = financials.latest("cashflow")
        indicators = financials.latest("indicators")

        debt_ratio = debt_to_assets(balance)
        sound = debt_ratio is not None and debt_ratio < policy.sound_debt_ratio
        gross_margin = to_number(indicators.get("grossprofit_margin"))
        operating_cash = to_number(cashflow.get("n_cashflow_act"))
        change = summary.price_change_pct

        if change is None:
            performance, sentiment = "低于预期", "不明确"
        else:
            performance = "积极" if change > 0 else "低于预期"
            if change > policy.sentiment_band_pct:
                sentiment = "乐观"
            elif change < -policy.sentiment_band_pct:
                sentiment = "悲观"
            else:
                sentiment = "中性"

        return {
            "company": {
                "name": identity.name,
                "ts_code": identity.ts_code,
                "industry": identity.industry or "未知",
                "list_date": identity.list_date or "未知日期",
                "exchange": identity.exchange or "中国",
                "area": identity.area or "中国",
            },
            "report_date": dataset.report_date,
            "income": {
                "revenue": income.get("total_revenue"),
                "net_income": income.get("n_income"),
            },
            "indicators": {
                "eps": format_decimal(indicators.get("eps")),
                "gross_margin": format_decimal(gross_margin),
            },
            "profitability": "较强" if gross_margin is not None and gross_margin > policy.strong_gross_margin_pct else "一般",
            "balance": {
                "total_assets": balance.get("total_assets"),
                "total_liab": balance.get("total_liab"),
                "equity": balance.get("total_hldr_eqy_exc_min_int"),
                "debt_ratio": NOT_AVAILABLE if debt_ratio is None else f"{debt_ratio * 100:.2f}",
            },
            "structure": "较为稳健" if sound else "存在一定风险",
            "leverage": "可控" if sound else "需关注",
            "cashflow": {
                "operating": cashflow.get("n_cashflow_act"),
                "investing": cashflow.get("n_cashflow_inv_act"),
                "financing": cashflow.get("n_cash_flows_fnc_act"),
            },
            "cash_comment": "良好，经营活动产生正向现金流"
            if operating_cash is not None and operating_cash > 0
            else "存在一定压力，需关注经营活动现金流改善",
            "market": {
                "latest_close": format_decimal(summary.end_price),
                "change": format_decimal(change),
                "high": format_decimal(summary.highest_price),
                "low": format_decimal(summary.lowest_price),
                "trading_days": summary.trading_days,
            },
            "performance": performance,
            "sentiment": sentiment,
            "financial_risk": "负债率偏高"
            if debt_ratio is not None and debt_ratio > policy.high_debt_ratio
            else "整体可控",
            "advice": build_investment_advice(indicators, summary.end_price, policy),
        }
