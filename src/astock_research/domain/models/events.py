"""Workflow progress events streamed to the client.

Each event kind is its own frozen dataclass carrying only the fields that kind
needs; ``WorkflowEvent`` is the closed union of them. Conversion to the wire
shape lives in :mod:`astock_research.streaming.sink`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, List, Mapping, Optional, Sequence, Union


class EventKind(str, Enum):
    START = "workflow-start"
    PROGRESS = "workflow-progress"
    DISPLAY = "display"
    COMPLETE = "workflow-complete"
    ERROR = "workflow-error"


class PanelKind(str, Enum):
    WORKFLOW = "workflow"
    STOCK_INFO = "stock-info"
    FINANCIAL_INFO = "financial-info"
    MARKET_INFO = "market-info"
    SEARCH_RESULTS = "search_results"


@dataclass(frozen=True)
class DisplayPanel:
    """Renderable panel: a kind tag, a title and structured content or results."""

    kind: PanelKind
    title: str
    content: Optional[Mapping[str, Any]] = None
    results: Optional[Sequence[Mapping[str, Any]]] = None
    query: Optional[str] = None


@dataclass(frozen=True)
class WorkflowStart:
    kind: ClassVar[EventKind] = EventKind.START

    message: str
    title: str
    steps: List[str] = field(default_factory=list)
    step: int = 0
    percentage: int = 0


@dataclass(frozen=True)
class WorkflowProgress:
    kind: ClassVar[EventKind] = EventKind.PROGRESS

    message: str
    step: int
    percentage: int


@dataclass(frozen=True)
class DisplayEvent:
    kind: ClassVar[EventKind] = EventKind.DISPLAY

    panel: DisplayPanel


@dataclass(frozen=True)
class WorkflowComplete:
    kind: ClassVar[EventKind] = EventKind.COMPLETE

    message: str
    content: str

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class WorkflowError:
    kind: ClassVar[EventKind] = EventKind.ERROR

    error: str
    details: str
    suggestion: str


WorkflowEvent = Union[WorkflowStart, WorkflowProgress, DisplayEvent, WorkflowComplete, WorkflowError]
