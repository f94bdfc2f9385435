"""
agentics.core.enums - Type-Safe Enumerations
==============================================

This module defines the enumeration types used throughout Agentics.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON (Pydantic-friendly, and stored as
      plain text in the persistent blackboard)
    - They can be compared with plain strings: RunStatus.QUEUED == "queued"

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  BLACKBOARD                                                     │
    │    RunStatus:    Run lifecycle (QUEUED → RUNNING → terminal)    │
    │    ArtifactKind: Tagged category of an artifact payload         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ORCHESTRATION                                                  │
    │    EventType:    Lifecycle event variants streamed to observers │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Run Status Enumeration
# =============================================================================
# State machine enforced by the blackboard (terminal states are immutable):
#
#   QUEUED → RUNNING → (SUCCEEDED | FAILED | CANCELED)
#      └──────────────→ (FAILED | CANCELED)
# =============================================================================
class RunStatus(str, Enum):
    """Lifecycle states for a run.

    State Transitions:
        QUEUED → RUNNING:     Orchestrator starts executing the pipeline
        RUNNING → SUCCEEDED:  Every step finished
        RUNNING → FAILED:     Planner/agent error or budget exceeded
        Any → CANCELED:       Owner called cancel() before completion

    Once a run reaches a terminal state no further status write is applied.

    Usage:
        >>> RunStatus.SUCCEEDED.is_terminal
        True
    """

    QUEUED = "queued"           # Created, nothing executed yet
    RUNNING = "running"         # Orchestrator is driving agent steps
    SUCCEEDED = "succeeded"     # Terminal: pipeline completed
    FAILED = "failed"           # Terminal: error recorded on the run
    CANCELED = "canceled"       # Terminal: stopped at the owner's request

    @property
    def is_terminal(self) -> bool:
        """Whether this status ends the run's lifecycle."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELED}
)


# =============================================================================
# Artifact Kind Enumeration
# =============================================================================
# Every artifact payload is a tagged union member keyed by its kind. The
# payload schema for each kind lives in agentics.core.models and is enforced
# by the blackboard when an artifact is saved.
#
#   PLAN_GRAPH     → planner output (ordered steps with dependencies)
#   DRAFT_*        → drafting stage outputs
#   RENDER_*       → rendering stage outputs (imagery, audiobook)
#   SAFETY_REPORT  → safety agent verdict
#   COST_REPORT    → budget summary for a run
# =============================================================================
class ArtifactKind(str, Enum):
    """Tagged categories of artifacts written to the blackboard."""

    PLAN_GRAPH = "plan.graph"
    DRAFT_OUTLINE = "draft.outline"
    DRAFT_SECTIONS = "draft.sections"
    RENDER_IMAGES = "render.images"
    RENDER_AUDIO = "render.audio"
    SAFETY_REPORT = "safety.report"
    COST_REPORT = "cost.report"


# =============================================================================
# Event Type Enumeration
# =============================================================================
# The discriminator of the AgentStepEvent tagged union. A run's events are
# strictly ordered and end in exactly one terminal event (DONE or ERROR).
# =============================================================================
class EventType(str, Enum):
    """Variants of run lifecycle events."""

    START = "start"         # Run accepted and about to execute
    LOG = "log"             # Informational progress message
    ARTIFACT = "artifact"   # An artifact was written to the blackboard
    DONE = "done"           # Terminal: run succeeded
    ERROR = "error"         # Terminal: run failed or was canceled

    @property
    def is_terminal(self) -> bool:
        """Whether this event ends the run's event sequence."""
        return self in (EventType.DONE, EventType.ERROR)
