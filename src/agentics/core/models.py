"""
agentics.core.models - Core Data Models
=========================================

This module defines the Pydantic data models that flow through every layer
of Agentics: runs, artifacts, budgets, and the kind-keyed artifact payloads.

Model Hierarchy:
    Run / RunSummary / RunHandle → a pipeline execution and its views
    RunPatch                     → fields merged by Blackboard.update_run
    BudgetState                  → cap + spend snapshot of a run
    ArtifactDraft                → what an agent hands to its write port
    Artifact                     → what the blackboard stores and returns
    PlanGraph, OutlinePayload... → payload schemas, one per ArtifactKind
    RunInput                     → what a caller asks the orchestrator to do

Payload Tagged Union:
    An artifact's payload is opaque to business logic but NOT untyped. Each
    ArtifactKind maps to exactly one schema in PAYLOAD_SCHEMAS, and the
    blackboard calls validate_payload() at its boundary:

        ArtifactDraft(kind="plan.graph", payload={...})
              │
              ▼  Blackboard.save_artifact
        validate_payload("plan.graph", {...})
              │   ├── unknown kind        → ValidationError
              │   └── schema mismatch     → ValidationError
              ▼
        Artifact(payload=<normalized JSON dict>)

Design Principles:
    1. Snapshots: stores return copies, callers never mutate stored records
    2. Self-validating: Pydantic enforces constraints at creation
    3. Serializable: every model round-trips through JSON (SQL backend, API)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from agentics.core.enums import ArtifactKind, RunStatus
from agentics.core.exceptions import ValidationError


# =============================================================================
# Helpers
# =============================================================================
def generate_run_id() -> str:
    """Generate a globally unique run identifier (UUID4)."""
    return str(uuid4())


def generate_artifact_id() -> str:
    """Generate a unique artifact identifier like "art-a1b2c3d4-...".

    The prefix makes artifact ids distinguishable from run ids in logs.
    """
    return f"art-{uuid4()}"


def utc_now() -> datetime:
    """Get the current UTC timestamp. Every timestamp in Agentics is UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Budget
# =============================================================================
# Wire format uses camelCase ({"capUsd": 0.5, "spentUsd": 0.1}); Python code
# uses snake_case attributes. populate_by_name accepts both on input.
# =============================================================================
class BudgetState(BaseModel):
    """Cap and cumulative spend of a run.

    Invariant: spent_usd ≤ hard_cap_usd after every successful debit.

    Attributes:
        hard_cap_usd: Maximum spend permitted for the run.
        spent_usd: Cumulative committed spend (monotonically non-decreasing).
    """

    model_config = ConfigDict(populate_by_name=True)

    hard_cap_usd: float = Field(alias="capUsd", ge=0)
    spent_usd: float = Field(default=0.0, alias="spentUsd", ge=0)

    @property
    def remaining_usd(self) -> float:
        """Spend still available under the cap."""
        return max(0.0, self.hard_cap_usd - self.spent_usd)


class BudgetRequest(BaseModel):
    """Caller-supplied budget override carried in a RunInput."""

    model_config = ConfigDict(populate_by_name=True)

    cap_usd: float = Field(alias="capUsd", gt=0)


# =============================================================================
# Run Models
# =============================================================================
class RunError(BaseModel):
    """Error metadata recorded on a failed or canceled run."""

    error_type: str
    error_code: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> RunError:
        """Build run error metadata from any exception."""
        return cls(
            error_type=exc.__class__.__name__,
            error_code=getattr(exc, "error_code", "INTERNAL_ERROR"),
            message=getattr(exc, "message", None) or str(exc) or exc.__class__.__name__,
        )


class Run(BaseModel):
    """One execution of the agent pipeline for one goal, owned by one user.

    Attributes:
        id: Globally unique run id (UUID4).
        owner_id: The tenant that created the run. Never changes.
        status: Lifecycle status; terminal states are immutable.
        budget: Cap and spend snapshot.
        error: Populated when the run failed or was canceled.
        created_at: Creation timestamp (UTC).
        updated_at: Last mutation timestamp (UTC).
    """

    id: str = Field(default_factory=generate_run_id)
    owner_id: str
    status: RunStatus = RunStatus.QUEUED
    budget: BudgetState
    error: Optional[RunError] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_summary(self) -> RunSummary:
        return RunSummary(
            id=self.id,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class RunSummary(BaseModel):
    """Lightweight run view returned by Blackboard.list_runs."""

    id: str
    status: RunStatus
    created_at: datetime
    updated_at: datetime


class RunHandle(BaseModel):
    """Returned by create_run and Orchestrator.run."""

    id: str
    status: RunStatus


class RunPatch(BaseModel):
    """Fields merged into a run by Blackboard.update_run.

    Only fields that are set (not None) are applied. A status change on a
    run that is already terminal is ignored by every backend.
    """

    status: Optional[RunStatus] = None
    budget: Optional[BudgetState] = None
    error: Optional[RunError] = None


# =============================================================================
# Artifact Payload Schemas (the tagged union members)
# =============================================================================
class PlanStep(BaseModel):
    """One node of a plan graph.

    Attributes:
        id: Step identifier, unique within the plan.
        agent: Name of the capability that executes the step.
        title: Human-readable description.
        depends_on: Ids of steps that must run first (earlier in the plan).
        estimated_cost_usd: Debited from the run budget before execution.
    """

    id: str = Field(min_length=1)
    agent: str = Field(min_length=1)
    title: str = ""
    depends_on: list[str] = Field(default_factory=list)
    estimated_cost_usd: float = Field(default=0.0, ge=0)


class PlanGraph(BaseModel):
    """Planner output: a goal and its ordered steps (kind ``plan.graph``)."""

    goal: str = Field(min_length=1)
    steps: list[PlanStep] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_topology(self) -> PlanGraph:
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id: {step.id}")
            missing = [dep for dep in step.depends_on if dep not in seen]
            if missing:
                raise ValueError(
                    f"step {step.id} depends on unknown or later steps: {missing}"
                )
            seen.add(step.id)
        return self

    @property
    def estimated_cost_usd(self) -> float:
        return sum(step.estimated_cost_usd for step in self.steps)


class OutlinePayload(BaseModel):
    """Kind ``draft.outline``."""

    sections: list[str] = Field(default_factory=list)


class DraftSection(BaseModel):
    heading: str
    body: str = ""


class DraftSectionsPayload(BaseModel):
    """Kind ``draft.sections``."""

    sections: list[DraftSection] = Field(default_factory=list)


class ImageRef(BaseModel):
    prompt: str
    uri: Optional[str] = None


class ImagesPayload(BaseModel):
    """Kind ``render.images``."""

    images: list[ImageRef] = Field(default_factory=list)


class AudioTrack(BaseModel):
    title: str
    uri: Optional[str] = None
    duration_seconds: float = Field(default=0.0, ge=0)


class AudioPayload(BaseModel):
    """Kind ``render.audio``."""

    tracks: list[AudioTrack] = Field(default_factory=list)


class SafetyReportPayload(BaseModel):
    """Kind ``safety.report``."""

    passed: bool
    findings: list[str] = Field(default_factory=list)


class CostReportPayload(BaseModel):
    """Kind ``cost.report``."""

    hard_cap_usd: float = Field(ge=0)
    spent_usd: float = Field(ge=0)


PAYLOAD_SCHEMAS: dict[ArtifactKind, type[BaseModel]] = {
    ArtifactKind.PLAN_GRAPH: PlanGraph,
    ArtifactKind.DRAFT_OUTLINE: OutlinePayload,
    ArtifactKind.DRAFT_SECTIONS: DraftSectionsPayload,
    ArtifactKind.RENDER_IMAGES: ImagesPayload,
    ArtifactKind.RENDER_AUDIO: AudioPayload,
    ArtifactKind.SAFETY_REPORT: SafetyReportPayload,
    ArtifactKind.COST_REPORT: CostReportPayload,
}


def validate_payload(kind: str, payload: Any) -> tuple[ArtifactKind, dict[str, Any]]:
    """Validate an artifact payload against the schema registered for its kind.

    This is the single entry point the blackboard backends use, so kind
    checking happens at the store boundary and never inside agents or the
    orchestrator.

    Args:
        kind: The artifact kind (enum member or its string value).
        payload: A dict or an instance of the kind's schema model.

    Returns:
        Tuple of (ArtifactKind, JSON-safe normalized payload dict).

    Raises:
        ValidationError: If the kind is unknown or the payload does not match.
    """
    try:
        artifact_kind = ArtifactKind(kind)
    except ValueError:
        raise ValidationError(
            message=f"Unknown artifact kind: {kind!r}",
            error_code="UNKNOWN_ARTIFACT_KIND",
            details={"kind": str(kind)},
        ) from None

    schema = PAYLOAD_SCHEMAS[artifact_kind]
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")

    try:
        model = schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(
            message=f"Invalid payload for artifact kind {artifact_kind.value!r}",
            error_code="INVALID_ARTIFACT_PAYLOAD",
            details={"kind": artifact_kind.value, "errors": e.errors(include_url=False)},
        ) from e

    return artifact_kind, model.model_dump(mode="json")


# =============================================================================
# Artifact Models
# =============================================================================
class ArtifactDraft(BaseModel):
    """An artifact as written by an agent, before the blackboard stamps it.

    Example:
        >>> draft = ArtifactDraft(
        ...     kind=ArtifactKind.PLAN_GRAPH,
        ...     label="plan",
        ...     payload=PlanGraph(goal="Write a chapter", steps=[]),
        ... )
    """

    kind: str
    label: str = ""
    payload: Any = Field(default_factory=dict)


class Artifact(BaseModel):
    """A stored output produced by an agent step during a run.

    Attributes:
        id: Unique artifact id ("art-<uuid4>").
        run_id: Owning run. Never reassigned.
        owner_id: Copy of the run owner, used for tenant filtering.
        kind: Tagged category; determines the payload schema.
        label: Free-form label chosen by the agent.
        payload: Normalized payload (validated against the kind's schema).
        created_at: When the blackboard stored the artifact (UTC).
        expires_at: Expiry time; None means the artifact never expires.
    """

    id: str = Field(default_factory=generate_artifact_id)
    run_id: str
    owner_id: str
    kind: ArtifactKind
    label: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: Optional[datetime] = None

    def is_live(self, now: datetime) -> bool:
        """Whether the artifact is still visible at ``now``."""
        return self.expires_at is None or self.expires_at > now

    def typed_payload(self) -> BaseModel:
        """Re-hydrate the payload into its kind-specific schema model."""
        return PAYLOAD_SCHEMAS[self.kind].model_validate(self.payload)


# =============================================================================
# Orchestrator Input / Output
# =============================================================================
class RunInput(BaseModel):
    """What a caller asks the orchestrator to do.

    Attributes:
        goal: The writing goal ("Write a short story about...").
        budget: Optional cap override ({"capUsd": 0.5}).
        include_images: Ask the planner for an imagery render step.
        include_audio: Ask the planner for an audiobook render step.
        include_safety: Ask the planner for a final safety step.
    """

    model_config = ConfigDict(populate_by_name=True)

    goal: str = Field(min_length=1, max_length=4000)
    budget: Optional[BudgetRequest] = None
    include_images: bool = Field(default=False, alias="includeImages")
    include_audio: bool = Field(default=False, alias="includeAudio")
    include_safety: bool = Field(default=False, alias="includeSafety")


class RunStatusView(BaseModel):
    """Owner-scoped status snapshot returned by Orchestrator.get_status."""

    id: str
    status: RunStatus
    artifacts: list[Artifact] = Field(default_factory=list)
    budget: BudgetState
    error: Optional[RunError] = None
