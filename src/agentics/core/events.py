"""
agentics.core.events - Run Lifecycle Events
=============================================

This module defines AgentStepEvent, the tagged union of lifecycle
notifications that the orchestrator publishes on the event bus and the HTTP
bridge relays to observers.

Event Architecture:
    Every event shares a common header; the ``type`` field selects the
    variant and its extra fields:

    ┌──────────────────────────────────────────────────────────────┐
    │  header: run_id, agent, timestamp, seq                        │
    ├──────────────┬───────────────────────────────────────────────┤
    │  start       │  (no extra fields)                            │
    │  log         │  level, message                               │
    │  artifact    │  artifact_id, kind, label                     │
    │  done        │  status                           (terminal)  │
    │  error       │  error_code, message              (terminal)  │
    └──────────────┴───────────────────────────────────────────────┘

Ordering Contract:
    For one run, ``seq`` increases by one per event starting at 1, ``start``
    comes first, and exactly one terminal event (``done`` or ``error``) comes
    last. A successful run with no step agents emits exactly:

        start → artifact("plan.graph") → done

Usage:
    >>> event = parse_event({"type": "start", "run_id": "r-1", "agent": "orchestrator"})
    >>> isinstance(event, StartEvent)
    True
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from agentics.core.enums import ArtifactKind, EventType, RunStatus
from agentics.core.models import utc_now


# =============================================================================
# Common Header
# =============================================================================
class _EventBase(BaseModel):
    """Fields shared by every AgentStepEvent variant.

    Attributes:
        run_id: The run this event belongs to (also the bus routing key).
        agent: Which component produced the event ("orchestrator", "planner"...).
        timestamp: When the event was created (UTC).
        seq: Position in the run's event sequence (1-based).
    """

    run_id: str
    agent: str = "orchestrator"
    timestamp: datetime = Field(default_factory=utc_now)
    seq: int = Field(default=0, ge=0)

    @property
    def is_terminal(self) -> bool:
        return EventType(self.type).is_terminal  # type: ignore[attr-defined]


# =============================================================================
# Variants
# =============================================================================
class StartEvent(_EventBase):
    type: Literal["start"] = "start"


class LogEvent(_EventBase):
    type: Literal["log"] = "log"
    level: str = "info"
    message: str


class ArtifactEvent(_EventBase):
    type: Literal["artifact"] = "artifact"
    artifact_id: str
    kind: ArtifactKind
    label: str = ""


class DoneEvent(_EventBase):
    type: Literal["done"] = "done"
    status: RunStatus = RunStatus.SUCCEEDED


class ErrorEvent(_EventBase):
    type: Literal["error"] = "error"
    error_code: str
    message: str


AgentStepEvent = Annotated[
    Union[StartEvent, LogEvent, ArtifactEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[Any] = TypeAdapter(AgentStepEvent)


def parse_event(data: dict[str, Any]) -> Any:
    """Parse a dict (e.g., a decoded SSE frame) into the matching variant."""
    return _event_adapter.validate_python(data)
