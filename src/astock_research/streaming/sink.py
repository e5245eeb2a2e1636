"""Convert workflow events to wire messages and hand them to a transport."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from astock_research.domain.errors import SerializationError
from astock_research.domain.models.events import (
    DisplayEvent,
    PanelKind,
    WorkflowComplete,
    WorkflowError,
    WorkflowEvent,
    WorkflowProgress,
    WorkflowStart,
)
from astock_research.utils.logging import resolve_logger

Message = Dict[str, Any]

# Pushed onto a QueueSink's queue once no further events will follow.
STREAM_CLOSED = None


def stringify(field: str, value: Any) -> str:
    """JSON-encode a structured payload; plain strings pass through untouched."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError) as exc:
        raise SerializationError(field, str(exc)) from exc


def _json_default(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_message(event: WorkflowEvent, logger: Optional[logging.Logger] = None) -> Message:
    """Map one event onto its wire shape, dropping fields that fail to serialize."""
    log = resolve_logger(logger, "sink")

    def put(target: Dict[str, Any], field: str, value: Any) -> None:
        try:
            target[field] = stringify(field, value)
        except SerializationError as exc:
            log.warning("Omitting unserializable field %s from %s event: %s", exc.field, event.kind.value, exc)

    if isinstance(event, WorkflowStart):
        return {
            "type": event.kind.value,
            "message": event.message,
            "display": {
                "kind": PanelKind.WORKFLOW.value,
                "status": "start",
                "title": event.title,
                "steps": list(event.steps),
            },
            "step": event.step,
            "percentage": event.percentage,
        }
    if isinstance(event, WorkflowProgress):
        return {
            "type": event.kind.value,
            "message": event.message,
            "step": event.step,
            "percentage": event.percentage,
        }
    if isinstance(event, DisplayEvent):
        panel = event.panel
        display: Dict[str, Any] = {"kind": panel.kind.value, "title": panel.title}
        if panel.query is not None:
            display["query"] = panel.query
        if panel.content is not None:
            put(display, "content", panel.content)
        if panel.results is not None:
            put(display, "results", list(panel.results))
        return {"type": event.kind.value, "display": display}
    if isinstance(event, WorkflowComplete):
        message: Message = {"type": event.kind.value, "message": event.message}
        put(message, "data", {"completed": True, "length": event.length, "content": event.content})
        return message
    if isinstance(event, WorkflowError):
        return {
            "type": event.kind.value,
            "error": event.error,
            "details": event.details,
            "suggestion": event.suggestion,
        }
    raise TypeError(f"Unsupported workflow event: {event!r}")


class EventSink:
    """One emit, one transport write; failures are logged and close the sink."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = resolve_logger(logger, "sink")
        self.closed = False

    def emit(self, event: WorkflowEvent) -> None:
        if self.closed:
            self._logger.debug("Sink closed, dropping %s event", event.kind.value)
            return
        try:
            self._write(to_message(event, self._logger))
        except Exception as exc:  # pylint: disable=broad-except
            self._logger.error("Event transport failed, closing sink: %s", exc)
            self.closed = True

    def close(self) -> None:
        self.closed = True

    def _write(self, message: Message) -> None:
        raise NotImplementedError


class CallbackSink(EventSink):
    def __init__(self, write: Callable[[Message], None], logger: Optional[logging.Logger] = None) -> None:
        super().__init__(logger)
        self._write_fn = write

    def _write(self, message: Message) -> None:
        self._write_fn(message)


class QueueSink(EventSink):
    """Feed an ``asyncio.Queue`` consumed by a streaming HTTP response."""

    def __init__(self, queue: "asyncio.Queue[Optional[Message]]", logger: Optional[logging.Logger] = None) -> None:
        super().__init__(logger)
        self.queue = queue
        self._ended = False

    def _write(self, message: Message) -> None:
        self.queue.put_nowait(message)

    def close(self) -> None:
        if not self._ended:
            self._ended = True
            self.queue.put_nowait(STREAM_CLOSED)
        super().close()


class RecordingSink(EventSink):
    """Keep every message in memory, for the CLI and for tests."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(logger)
        self.messages: List[Message] = []

    def _write(self, message: Message) -> None:
        self.messages.append(message)

    def types(self) -> List[str]:
        return [message["type"] for message in self.messages]
