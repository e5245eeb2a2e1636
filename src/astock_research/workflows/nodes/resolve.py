"""LangGraph node resolving the subject to a ticker and loading company basics."""
from __future__ import annotations

from astock_research.domain.errors import ResolutionError
from astock_research.domain.models.events import DisplayEvent, DisplayPanel, PanelKind, WorkflowProgress
from astock_research.domain.models.report import CompanyIdentity, ReportDataset, ResolvedIdentifier
from astock_research.workflows.context import WorkflowContext
from astock_research.workflows.state import ReportState


async def run(state: ReportState, context: WorkflowContext) -> ReportState:
    logs = state.setdefault("logs", [])
    request = state["request"]

    if request.ticker:
        identifier = ResolvedIdentifier.parse(request.ticker)
        logs.append(f"ResolveAgent -> using supplied ticker {identifier.ticker}")
    else:
        logs.append(f"ResolveAgent -> searching ticker for {request.subject_name}")
        identifier = await context.resolver.resolve(request.subject_name)

    records = await context.provider.fetch_basic_info(identifier.ticker)
    if not records:
        raise ResolutionError(request.subject_name, f"未找到股票信息: {identifier.ticker}")
    identity = CompanyIdentity.from_record(records[0], identifier)
    logs.append(f"ResolveAgent -> {identity.name} ({identity.ts_code})")

    state["dataset"] = ReportDataset.start(identity, request)

    context.emit(
        WorkflowProgress(
            message=f"已确认股票 {identity.name}（{identity.ts_code}），正在获取财务数据...",
            step=1,
            percentage=20,
        )
    )
    context.emit(
        DisplayEvent(
            DisplayPanel(
                kind=PanelKind.STOCK_INFO,
                title=f"股票信息: {identity.name} ({identity.ts_code})",
                content={
                    "name": identity.name,
                    "code": identity.ts_code,
                    "industry": identity.industry,
                    "area": identity.area,
                    "market": identity.market,
                    "listDate": identity.list_date,
                },
            )
        )
    )
    return state
