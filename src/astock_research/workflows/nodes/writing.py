"""LangGraph node producing the report text (model first, template fallback)."""
from __future__ import annotations

from astock_research.domain.models.events import WorkflowProgress
from astock_research.workflows.context import WorkflowContext
from astock_research.workflows.state import ReportState


async def run(state: ReportState, context: WorkflowContext) -> ReportState:
    logs = state.setdefault("logs", [])
    dataset = state["dataset"]

    logs.append("WritingAgent -> generate report text")
    text = await context.generator.generate(dataset)
    state["report_text"] = text
    logs.append(f"WritingAgent -> {len(text)} characters")

    context.emit(WorkflowProgress(message="研报内容生成完成，正在整理报告...", step=4, percentage=80))
    return state
