"""Workflow blueprint describing report stages and their handlers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

from astock_research.workflows.context import WorkflowStage
from astock_research.workflows.nodes import finalize, financials, market, resolve, writing

if TYPE_CHECKING:
    from astock_research.workflows.context import WorkflowContext
    from astock_research.workflows.state import ReportState

# Shown in the workflow-start panel; the fourth entry has no handler of its own,
# industry comparison is part of the generated text.
DISPLAY_STEPS = ["股票信息查询", "财务数据分析", "市场数据分析", "行业对比分析", "研报内容生成"]


@dataclass
class StageSpec:
    """Single LangGraph stage definition."""

    key: str
    stage: WorkflowStage
    description: str
    failure_details: str
    handler: Callable[["ReportState", "WorkflowContext"], Awaitable["ReportState"]]


def build_default_stages() -> List[StageSpec]:
    """Return the ordered stages for the report workflow."""
    return [
        StageSpec(
            key="resolve_identity",
            stage=WorkflowStage.RESOLVING_IDENTITY,
            description="Resolve the subject to a ticker and load company basics (stock_basic).",
            failure_details="无法确认股票代码或获取股票基本信息",
            handler=resolve.run,
        ),
        StageSpec(
            key="fetch_financials",
            stage=WorkflowStage.FETCHING_FINANCIALS,
            description="Fetch income, balance sheet, cash flow and indicators for the report period.",
            failure_details="获取财务报表数据时遇到了问题",
            handler=financials.run,
        ),
        StageSpec(
            key="fetch_market",
            stage=WorkflowStage.FETCHING_MARKET,
            description="Fetch the daily bars of the lookback window before the report date.",
            failure_details="获取市场行情数据时遇到了问题",
            handler=market.run,
        ),
        StageSpec(
            key="generate",
            stage=WorkflowStage.GENERATING,
            description="Generate the report with the model, falling back to the Markdown template.",
            failure_details="生成研报内容时遇到了问题",
            handler=writing.run,
        ),
        StageSpec(
            key="finalize",
            stage=WorkflowStage.FINALIZING,
            description="Strip model scaffolding and publish the completed report.",
            failure_details="整理研报内容时遇到了问题",
            handler=finalize.run,
        ),
    ]


def describe_stages(stages: Optional[List[StageSpec]] = None) -> List[str]:
    """Human-readable ``key: description`` lines; needs no live clients."""
    return [f"{stage.key}: {stage.description}" for stage in (stages or build_default_stages())]
