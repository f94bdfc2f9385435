"""
agentics.infrastructure.blackboard - Run/Artifact Store ("Blackboard")
========================================================================

This module provides the blackboard abstraction: the shared store of runs and
the artifacts agents produce while working on them. It also ships the
ephemeral in-memory backend.

Architecture Context:
    The Blackboard sits in the Infrastructure Layer. The Orchestrator writes
    run lifecycle changes, agents write artifacts through a run-bound port,
    and the HTTP layer reads status snapshots.

    ┌───────────────┐                     ┌──────────────────────────┐
    │ Orchestrator  │ ── create/update ─→ │  Blackboard (ABC)        │
    │ Agent ports   │ ── save_artifact ─→ │   ├── InMemoryBlackboard │
    │ Status routes │ ←── list_* / get ── │   └── SQLBlackboard      │
    │ Maintenance   │ ── cleanup_expired →│                          │
    └───────────────┘                     └──────────────────────────┘

Tenant Isolation:
    Isolation is enforced INSIDE the store. Every method that takes both a
    run_id and an owner_id filters on both, so a tenant asking about another
    tenant's run sees exactly what it would see for a run that does not
    exist:

        update_run   → silent no-op
        get_run      → None
        list_*       → []
        save_artifact→ NotFoundError (same error as an unknown run)

Artifact Lifetimes:
    save_artifact(ttl_seconds=N) stamps expires_at = created_at + N. Expired
    artifacts are hidden from list_artifacts immediately and physically
    removed by cleanup_expired().

Usage:
    >>> store = InMemoryBlackboard()
    >>> handle = await store.create_run("user-1")
    >>> await store.update_run(handle.id, "user-1", RunPatch(status=RunStatus.RUNNING))
    >>> await store.save_artifact("user-1", handle.id, draft, ttl_seconds=86400)
    >>> artifacts = await store.list_artifacts("user-1", handle.id)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog

from agentics.core.enums import RunStatus
from agentics.core.exceptions import NotFoundError, ValidationError
from agentics.core.models import (
    Artifact,
    ArtifactDraft,
    BudgetState,
    Run,
    RunHandle,
    RunPatch,
    RunSummary,
    utc_now,
    validate_payload,
)


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


# =============================================================================
# Shared Constants & Helpers
# =============================================================================
# Both backends use these so that their observable behavior is identical.
# =============================================================================
Clock = Callable[[], datetime]

DEFAULT_LIST_RUNS_LIMIT = 20
MAX_LIST_RUNS_LIMIT = 50


def clamp_limit(limit: Optional[int]) -> int:
    """Clamp a list_runs limit into [1, MAX_LIST_RUNS_LIMIT]."""
    if limit is None:
        return DEFAULT_LIST_RUNS_LIMIT
    return max(1, min(MAX_LIST_RUNS_LIMIT, int(limit)))


def compute_expiry(now: datetime, ttl_seconds: Optional[float]) -> Optional[datetime]:
    """Compute an artifact's expires_at from its TTL.

    Raises:
        ValidationError: If the TTL is zero or negative.
    """
    if ttl_seconds is None:
        return None
    if ttl_seconds <= 0:
        raise ValidationError(
            message="ttl_seconds must be positive",
            error_code="INVALID_TTL",
            details={"ttl_seconds": ttl_seconds},
        )
    return now + timedelta(seconds=ttl_seconds)


def resolve_patch(current_status: RunStatus, patch: RunPatch) -> dict[str, Any]:
    """Compute the field updates a patch applies to a run.

    Terminal runs keep their status and error forever; only budget
    accounting may still be merged into them.

    Args:
        current_status: The run's status before the patch.
        patch: The requested changes.

    Returns:
        Mapping of field name to new value (only fields that change).
    """
    updates: dict[str, Any] = {}
    if patch.budget is not None:
        updates["budget"] = patch.budget
    if current_status.is_terminal:
        return updates
    if patch.status is not None:
        updates["status"] = patch.status
    if patch.error is not None:
        updates["error"] = patch.error
    return updates


# =============================================================================
# Abstract Base Class
# =============================================================================
class Blackboard(ABC):
    """Abstract interface for run and artifact persistence.

    Both backends implement the same contract and the same semantics; they
    differ only in durability. Components should type-hint against this ABC.

    Methods:
        connect() / disconnect(): Backend lifecycle.
        create_run(owner_id, ...): Allocate a new run.
        update_run(run_id, owner_id, patch): Merge fields into an owned run.
        get_run(owner_id, run_id): Owner-scoped single read.
        save_artifact(owner_id, run_id, draft, ttl): Append an artifact.
        list_artifacts(owner_id, run_id): Live artifacts, oldest first.
        list_runs(owner_id, limit): Most recent runs, newest first.
        cleanup_expired(max_rows): Purge expired artifacts, return count.
        count_artifacts(): Stored artifacts, expired ones included.
    """

    #: Short backend name, reported by the health endpoint.
    backend: str = "abstract"

    async def connect(self) -> None:
        """Prepare the backend for use. Default: nothing to do."""

    async def disconnect(self) -> None:
        """Release backend resources. Default: nothing to do."""

    @abstractmethod
    async def create_run(
        self,
        owner_id: str,
        initial_status: RunStatus = RunStatus.QUEUED,
        budget: Optional[BudgetState] = None,
    ) -> RunHandle:
        """Allocate a new run with a globally unique id.

        Args:
            owner_id: The tenant creating the run.
            initial_status: Status to create the run in (default QUEUED).
            budget: Budget snapshot. Defaults to a zero cap with no spend.

        Returns:
            RunHandle with the new id and status.

        Raises:
            StoreError: If the backend is unavailable.
        """
        ...

    @abstractmethod
    async def update_run(self, run_id: str, owner_id: str, patch: RunPatch) -> None:
        """Merge patch fields into a run iff it exists and belongs to owner_id.

        Any other case is a silent no-op that the caller cannot tell apart
        from success. Callers needing confirmation must re-read.
        """
        ...

    @abstractmethod
    async def get_run(self, owner_id: str, run_id: str) -> Optional[Run]:
        """Return the run if it exists and belongs to owner_id, else None."""
        ...

    @abstractmethod
    async def save_artifact(
        self,
        owner_id: str,
        run_id: str,
        draft: ArtifactDraft,
        ttl_seconds: Optional[float] = None,
    ) -> Artifact:
        """Validate and append an artifact to an owned run.

        Args:
            owner_id: The tenant writing the artifact.
            run_id: The owning run.
            draft: Kind, label and payload written by the agent.
            ttl_seconds: Optional lifetime. None means never expires.

        Returns:
            The stored Artifact (with id, created_at, expires_at stamped).

        Raises:
            ValidationError: Unknown kind, bad payload, or non-positive TTL.
            NotFoundError: Unknown or foreign run.
        """
        ...

    @abstractmethod
    async def list_artifacts(self, owner_id: str, run_id: str) -> list[Artifact]:
        """Return live artifacts of (run_id, owner_id), oldest first.

        Unknown or foreign runs yield an empty list, never an error.
        """
        ...

    @abstractmethod
    async def list_runs(
        self, owner_id: str, limit: int = DEFAULT_LIST_RUNS_LIMIT
    ) -> list[RunSummary]:
        """Return the owner's most recent runs, newest first (limit ≤ 50).

        Runs created at the same instant are ordered by id, descending.
        """
        ...

    @abstractmethod
    async def cleanup_expired(self, max_rows: Optional[int] = None) -> int:
        """Delete artifacts whose expires_at has passed, across all owners.

        Idempotent: a second call with nothing newly expired returns 0.
        Never touches run records.

        Args:
            max_rows: Upper bound on rows deleted by this call (None = all).

        Returns:
            Number of artifacts deleted.
        """
        ...

    @abstractmethod
    async def count_artifacts(self) -> int:
        """Total stored artifacts across all owners, expired ones included."""
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================
# Design Decisions:
#   - Instance-owned dicts, never module globals: every composition root (and
#     every test) gets an independent store.
#   - Artifacts are kept per run in insertion order, so "oldest first" with
#     equal timestamps falls back to write order.
#   - One asyncio.Lock guards all mutations; reads take it too so cleanup
#     never interleaves with a list.
# =============================================================================
class InMemoryBlackboard(Blackboard):
    """Ephemeral blackboard for development, tests and single-process use.

    Not suitable for production: data is lost when the process exits and is
    not shared between processes.

    Attributes:
        _runs: run_id → Run.
        _artifacts: run_id → artifacts in insertion order.
        _lock: Serializes all access within one event loop.
        _clock: Time source (injectable for TTL tests).

    Example:
        >>> store = InMemoryBlackboard()
        >>> handle = await store.create_run("user-1")
        >>> await store.list_runs("user-1")
    """

    backend = "memory"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._runs: dict[str, Run] = {}
        self._artifacts: dict[str, list[Artifact]] = {}
        self._lock = asyncio.Lock()
        self._clock: Clock = clock or utc_now
        self._logger = logger.bind(component="blackboard", impl="in_memory")

    # =========================================================================
    # Runs
    # =========================================================================

    async def create_run(
        self,
        owner_id: str,
        initial_status: RunStatus = RunStatus.QUEUED,
        budget: Optional[BudgetState] = None,
    ) -> RunHandle:
        now = self._clock()
        run = Run(
            owner_id=owner_id,
            status=initial_status,
            budget=budget or BudgetState(hard_cap_usd=0.0),
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._runs[run.id] = run
            self._artifacts[run.id] = []

        self._logger.debug("run_created", run_id=run.id, status=run.status.value)
        return RunHandle(id=run.id, status=run.status)

    async def update_run(self, run_id: str, owner_id: str, patch: RunPatch) -> None:
        async with self._lock:
            run = self._runs.get(run_id)
            if run is None or run.owner_id != owner_id:
                self._logger.debug("run_update_ignored", run_id=run_id)
                return

            updates = resolve_patch(run.status, patch)
            if not updates:
                return
            updates["updated_at"] = self._clock()
            self._runs[run_id] = run.model_copy(update=updates)

        self._logger.debug(
            "run_updated",
            run_id=run_id,
            fields=sorted(k for k in updates if k != "updated_at"),
        )

    async def get_run(self, owner_id: str, run_id: str) -> Optional[Run]:
        async with self._lock:
            run = self._runs.get(run_id)
            if run is None or run.owner_id != owner_id:
                return None
            return run.model_copy(deep=True)

    async def list_runs(
        self, owner_id: str, limit: int = DEFAULT_LIST_RUNS_LIMIT
    ) -> list[RunSummary]:
        limit = clamp_limit(limit)
        async with self._lock:
            owned = [run for run in self._runs.values() if run.owner_id == owner_id]
        owned.sort(key=lambda run: (run.created_at, run.id), reverse=True)
        return [run.to_summary() for run in owned[:limit]]

    # =========================================================================
    # Artifacts
    # =========================================================================

    async def save_artifact(
        self,
        owner_id: str,
        run_id: str,
        draft: ArtifactDraft,
        ttl_seconds: Optional[float] = None,
    ) -> Artifact:
        kind, payload = validate_payload(draft.kind, draft.payload)
        now = self._clock()
        artifact = Artifact(
            run_id=run_id,
            owner_id=owner_id,
            kind=kind,
            label=draft.label,
            payload=payload,
            created_at=now,
            expires_at=compute_expiry(now, ttl_seconds),
        )

        async with self._lock:
            run = self._runs.get(run_id)
            if run is None or run.owner_id != owner_id:
                raise NotFoundError()
            self._artifacts[run_id].append(artifact)

        self._logger.debug(
            "artifact_saved",
            run_id=run_id,
            artifact_id=artifact.id,
            kind=kind.value,
            ttl_seconds=ttl_seconds,
        )
        return artifact.model_copy(deep=True)

    async def list_artifacts(self, owner_id: str, run_id: str) -> list[Artifact]:
        now = self._clock()
        async with self._lock:
            run = self._runs.get(run_id)
            if run is None or run.owner_id != owner_id:
                return []
            live = [
                a.model_copy(deep=True)
                for a in self._artifacts.get(run_id, [])
                if a.owner_id == owner_id and a.is_live(now)
            ]
        return sorted(live, key=lambda a: a.created_at)

    async def cleanup_expired(self, max_rows: Optional[int] = None) -> int:
        now = self._clock()
        removed = 0

        async with self._lock:
            for run_id, artifacts in self._artifacts.items():
                if max_rows is not None and removed >= max_rows:
                    break
                kept: list[Artifact] = []
                for artifact in artifacts:
                    expired = not artifact.is_live(now)
                    if expired and (max_rows is None or removed < max_rows):
                        removed += 1
                    else:
                        kept.append(artifact)
                self._artifacts[run_id] = kept

        if removed:
            self._logger.info("expired_artifacts_purged", affected=removed)
        return removed

    async def count_artifacts(self) -> int:
        async with self._lock:
            return sum(len(items) for items in self._artifacts.values())
