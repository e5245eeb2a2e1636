"""Per-run dependency container and stage tracker."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import Config
from astock_research.domain.models.events import WorkflowEvent
from astock_research.infrastructure.data_providers.tushare_client import TuShareClient
from astock_research.reports.generator import ReportContentGenerator
from astock_research.streaming.sink import EventSink
from astock_research.workflows.resolver import StockIdentifierResolver


class WorkflowStage(str, Enum):
    IDLE = "idle"
    RESOLVING_IDENTITY = "resolving_identity"
    FETCHING_FINANCIALS = "fetching_financials"
    FETCHING_MARKET = "fetching_market"
    GENERATING = "generating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


STAGE_SEQUENCE = (
    WorkflowStage.IDLE,
    WorkflowStage.RESOLVING_IDENTITY,
    WorkflowStage.FETCHING_FINANCIALS,
    WorkflowStage.FETCHING_MARKET,
    WorkflowStage.GENERATING,
    WorkflowStage.FINALIZING,
    WorkflowStage.DONE,
)


@dataclass
class WorkflowContext:
    """Holds the collaborators for one request plus its current stage."""

    config: Config
    provider: TuShareClient
    resolver: StockIdentifierResolver
    generator: ReportContentGenerator
    sink: EventSink
    logger: logging.Logger
    stage: WorkflowStage = WorkflowStage.IDLE
    failed_stage: Optional[WorkflowStage] = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in (WorkflowStage.DONE, WorkflowStage.FAILED)

    def advance(self, target: WorkflowStage) -> None:
        """Move one step forward, or into ``FAILED`` from any non-terminal stage."""
        if self.is_terminal:
            raise RuntimeError(f"Workflow already finished in stage {self.stage.value}.")
        if target is WorkflowStage.FAILED:
            self.failed_stage = self.stage
            self.stage = target
            return
        current = STAGE_SEQUENCE.index(self.stage)
        if STAGE_SEQUENCE.index(target) != current + 1:
            raise RuntimeError(f"Illegal stage transition {self.stage.value} -> {target.value}.")
        self.logger.debug("Stage %s -> %s", self.stage.value, target.value)
        self.stage = target

    def emit(self, event: WorkflowEvent) -> None:
        self.sink.emit(event)
