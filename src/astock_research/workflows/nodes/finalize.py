"""LangGraph node cleaning the report text and publishing the completion event."""
from __future__ import annotations

from astock_research.domain.errors import GenerationError
from astock_research.domain.models.events import WorkflowComplete, WorkflowProgress
from astock_research.workflows.context import WorkflowContext
from astock_research.workflows.nodes.llm_clean import clean_llm_output
from astock_research.workflows.state import ReportState


async def run(state: ReportState, context: WorkflowContext) -> ReportState:
    logs = state.setdefault("logs", [])
    report = clean_llm_output(state.get("report_text") or "")
    if not report:
        raise GenerationError("研报内容为空")
    state["final_report"] = report
    logs.append("FinalizeAgent -> report ready")

    context.emit(WorkflowProgress(message="研报生成完成，正在优化展示...", step=5, percentage=100))
    context.emit(WorkflowComplete(message="研报生成完成，请查看详细内容", content=report))
    return state
