"""Progress events emitted while the planner runs.

Each planner invocation receives at most one event sink. Messages have the
wire shape ``{"type": ..., "data": {"timestamp": <ISO-8601>, ...}}`` and are
emitted once per milestone, in milestone order:

- CONTEXT_FOUND: ``data.relevantPieces`` lists the retrieved pieces
- PLAN_GENERATED: ``data.plan`` is the full coarse plan
- STEP_CREATED: ``data.step`` is one materialized step

Sinks are fire-and-forget. Emitting never blocks or raises into the
planner: emit_event() absorbs delivery failures and QueueEventSink never
waits on a full queue.
"""

import logging
import queue
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from pydantic import BaseModel, Field

from flowpilot.planning.ir_models import CoarsePlan, ContextItem, MaterializedStep

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    """Milestones reported to observers."""

    CONTEXT_FOUND = "CONTEXT_FOUND"
    PLAN_GENERATED = "PLAN_GENERATED"
    STEP_CREATED = "STEP_CREATED"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressEvent(BaseModel):
    """A single progress notification."""

    type: ProgressEventType
    data: dict[str, Any] = Field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        """Convert to the wire message delivered to sinks."""
        return {"type": self.type.value, "data": self.data}


def context_found_event(items: Sequence[ContextItem]) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.CONTEXT_FOUND,
        data={
            "timestamp": _utc_timestamp(),
            "relevantPieces": [
                {
                    "pieceName": item.piece_name,
                    "content": item.content,
                    "logoUrl": item.logo_url,
                    "relevanceScore": item.relevance_score,
                }
                for item in items
            ],
        },
    )


def plan_generated_event(plan: CoarsePlan) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.PLAN_GENERATED,
        data={"timestamp": _utc_timestamp(), "plan": plan.model_dump(mode="json", by_alias=True)},
    )


def step_created_event(step: MaterializedStep) -> ProgressEvent:
    return ProgressEvent(
        type=ProgressEventType.STEP_CREATED,
        data={"timestamp": _utc_timestamp(), "step": step.model_dump(mode="json", by_alias=True)},
    )


class EventSink(Protocol):
    """Accepts one message at a time. Must never block and never raise."""

    def send(self, message: dict[str, Any]) -> None: ...


class NullEventSink:
    """Sink used when no observer is attached."""

    def send(self, message: dict[str, Any]) -> None:
        return None


class CallbackEventSink:
    """Deliver messages to a callable, e.g. a socket emit function."""

    def __init__(self, callback: Callable[[dict[str, Any]], Any]) -> None:
        self._callback = callback

    def send(self, message: dict[str, Any]) -> None:
        self._callback(message)


class QueueEventSink:
    """Deliver messages to a queue drained by a transport or consumer thread."""

    def __init__(self, event_queue: "queue.Queue[dict[str, Any]]") -> None:
        self.queue = event_queue

    def send(self, message: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(message)
        except queue.Full:
            logger.warning(
                f"Dropped {message.get('type')} event: observer queue is full",
                extra={"event_type": message.get("type")},
            )


def emit_event(sink: Optional[EventSink], event: ProgressEvent) -> None:
    """Send an event to the sink, a no-op when there is no observer."""
    if sink is None:
        return
    logger.debug(f"Emitting {event.type.value} event", extra={"event_type": event.type.value})
    try:
        sink.send(event.to_message())
    except Exception as e:
        # Observer failures must not affect the planner
        logger.warning(
            f"Dropped {event.type.value} event: observer failed: {e}",
            extra={"event_type": event.type.value},
        )
