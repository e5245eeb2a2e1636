"""Workflow state definitions shared by LangGraph nodes."""
from __future__ import annotations

from typing import List, Optional, TypedDict

from astock_research.domain.models.report import ReportDataset, ReportRequest


class ReportState(TypedDict, total=False):
    request: ReportRequest
    dataset: Optional[ReportDataset]

    report_text: Optional[str]
    final_report: Optional[str]

    logs: List[str]
