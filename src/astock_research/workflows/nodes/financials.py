"""LangGraph node loading the financial statements for the report period."""
from __future__ import annotations

from astock_research.domain.models.events import DisplayEvent, DisplayPanel, PanelKind, WorkflowProgress
from astock_research.domain.models.financials import FinancialDataset
from astock_research.workflows.context import WorkflowContext
from astock_research.workflows.state import ReportState


async def run(state: ReportState, context: WorkflowContext) -> ReportState:
    logs = state.setdefault("logs", [])
    dataset = state["dataset"]
    ts_code = dataset.identity.ts_code

    logs.append(f"FinancialsAgent -> fetch statements for {ts_code} period {dataset.report_date}")
    frames = await context.provider.fetch_financials(ts_code, dataset.report_date)
    financials = FinancialDataset(
        income_statements=frames["income"],
        balance_sheets=frames["balance"],
        cash_flows=frames["cashflow"],
        ratios=frames["indicators"],
    )
    counts = financials.counts()
    if financials.is_empty():
        context.logger.warning("No financial rows returned for %s at %s", ts_code, dataset.report_date)
    logs.append(f"FinancialsAgent -> rows {counts}")
    state["dataset"] = dataset.with_financials(financials)

    context.emit(WorkflowProgress(message="财务数据获取完成，正在获取市场行情数据...", step=2, percentage=40))
    context.emit(
        DisplayEvent(
            DisplayPanel(
                kind=PanelKind.FINANCIAL_INFO,
                title="财务数据概览",
                content={kind: f"{count}条记录" for kind, count in counts.items()},
            )
        )
    )
    return state
