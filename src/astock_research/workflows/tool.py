"""Chat-facing research-report tool: pre-search context, then run the workflow."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from astock_research.domain.models.events import DisplayEvent, DisplayPanel, PanelKind
from astock_research.domain.models.report import ReportKind, ReportRequest, SupplementaryItem
from astock_research.infrastructure.search.tavily_client import SearchClient, SearchResults
from astock_research.streaming.sink import EventSink
from astock_research.utils.logging import resolve_logger
from astock_research.workflows.graph import ReportWorkflow

BASIC_QUERY_TEMPLATE = "{name} 股票 公司简介 行业分析"
REPORT_QUERY_TEMPLATE = "{name} 最新研报 投资分析 财务数据"
SUPPLEMENTARY_LIMIT = 3


class ResearchReportTool:
    """Entry point used by the chat route when a message asks for a report."""

    def __init__(
        self,
        workflow: ReportWorkflow,
        search_client: Optional[SearchClient],
        *,
        max_results: int = 5,
        depth: str = "advanced",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._workflow = workflow
        self._search = search_client
        self._max_results = max_results
        self._depth = depth
        self._logger = resolve_logger(logger, "tool")

    async def execute(
        self,
        stock_name: str,
        sink: EventSink,
        *,
        report_date: Optional[date] = None,
        report_kind: Optional[ReportKind] = None,
        model: Optional[str] = None,
    ) -> str:
        name = stock_name.strip()
        if not name:
            raise ValueError("stock_name must not be empty")
        await self._search_panel(BASIC_QUERY_TEMPLATE.format(name=name), "股票基本信息", sink)
        reports = await self._search_panel(REPORT_QUERY_TEMPLATE.format(name=name), "最新研报信息", sink)

        supplementary: List[SupplementaryItem] = []
        if reports is not None:
            supplementary = [
                SupplementaryItem(title=hit.title, content=hit.content, url=hit.url)
                for hit in reports.results[:SUPPLEMENTARY_LIMIT]
            ]

        request = ReportRequest(
            subject_name=name,
            as_of_date=report_date,
            report_kind=report_kind,
            model_selector=model,
            supplementary_context=supplementary,
        )
        return await self._workflow.run(request, sink)

    async def _search_panel(self, query: str, title: str, sink: EventSink) -> Optional[SearchResults]:
        if self._search is None:
            self._logger.info("Search client not configured, skipping: %s", query)
            return None
        try:
            results = await self._search.search(query, self._max_results, self._depth)
        except Exception as exc:  # pylint: disable=broad-except
            self._logger.warning("Pre-search failed for %s: %s", query, exc)
            return None
        sink.emit(
            DisplayEvent(
                DisplayPanel(
                    kind=PanelKind.SEARCH_RESULTS,
                    title=title,
                    query=query,
                    results=[hit.to_dict() for hit in results.results],
                )
            )
        )
        return results
