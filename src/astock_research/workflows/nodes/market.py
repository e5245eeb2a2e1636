"""LangGraph node fetching the daily price window that ends on the report date."""
from __future__ import annotations

from astock_research.domain.models.events import DisplayEvent, DisplayPanel, PanelKind, WorkflowProgress
from astock_research.domain.models.financials import bars_from_records
from astock_research.domain.services.calculations import NOT_AVAILABLE, summarize_market
from astock_research.domain.services.periods import lookback_start, parse_period, to_period
from astock_research.workflows.context import WorkflowContext
from astock_research.workflows.state import ReportState


async def run(state: ReportState, context: WorkflowContext) -> ReportState:
    logs = state.setdefault("logs", [])
    dataset = state["dataset"]
    ts_code = dataset.identity.ts_code

    end_date = dataset.report_date
    start_date = to_period(lookback_start(parse_period(end_date), context.config.market_lookback_days))
    logs.append(f"MarketAgent -> fetch daily bars {start_date}..{end_date}")

    records = await context.provider.fetch_daily(ts_code, start_date, end_date)
    dataset = dataset.with_market_history(bars_from_records(records))
    state["dataset"] = dataset
    summary = summarize_market(dataset.market_history or ())
    logs.append(f"MarketAgent -> {summary.trading_days} trading days")

    change = summary.price_change_pct
    context.emit(WorkflowProgress(message="市场行情数据获取完成，正在生成研报内容...", step=3, percentage=60))
    context.emit(
        DisplayEvent(
            DisplayPanel(
                kind=PanelKind.MARKET_INFO,
                title="市场行情概览",
                content={
                    "dataPoints": f"{summary.trading_days}个交易日",
                    "startDate": start_date,
                    "endDate": end_date,
                    "startPrice": summary.start_price,
                    "endPrice": summary.end_price,
                    "priceChange": NOT_AVAILABLE if change is None else f"{change:.2f}%",
                },
            )
        )
    )
    return state
