"""
agentics.infrastructure.sql_blackboard - Persistent Blackboard
================================================================

SQLBlackboard implements the Blackboard contract on top of async SQLAlchemy.
It behaves exactly like InMemoryBlackboard (same isolation, ordering and TTL
semantics); only durability differs.

Transactions:
    Every public method runs in its own transaction. update_run reads the row
    FOR UPDATE (a no-op on SQLite) and applies the same resolve_patch() rule
    as the in-memory backend, so a terminal status can never be overwritten
    even by concurrent writers.

Failure Handling:
    Driver and connection failures (any SQLAlchemyError) surface as
    StoreError so callers handle one store failure type regardless of
    backend.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from agentics.core.enums import ArtifactKind, RunStatus
from agentics.core.exceptions import NotFoundError, StoreError
from agentics.core.models import (
    Artifact,
    ArtifactDraft,
    BudgetState,
    Run,
    RunError,
    RunHandle,
    RunPatch,
    RunSummary,
    generate_artifact_id,
    generate_run_id,
    utc_now,
    validate_payload,
)
from agentics.infrastructure.blackboard import (
    DEFAULT_LIST_RUNS_LIMIT,
    Blackboard,
    Clock,
    clamp_limit,
    compute_expiry,
    resolve_patch,
)
from agentics.infrastructure.db import (
    ArtifactRow,
    RunRow,
    create_tables,
    make_engine,
    make_session_factory,
)

logger = structlog.get_logger()


def _is_run_id(value: str) -> bool:
    """Run ids are UUIDs; anything else cannot match a row."""
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


class SQLBlackboard(Blackboard):
    """Blackboard backed by PostgreSQL or SQLite through async SQLAlchemy.

    Args:
        database_url: SQLAlchemy async URL.
        echo: Echo SQL statements.
        clock: Time source (injectable for TTL tests).
        engine: Use an existing engine instead of creating one.

    Example:
        >>> store = SQLBlackboard("sqlite+aiosqlite://")
        >>> await store.connect()
        >>> handle = await store.create_run("user-1")
    """

    backend = "sql"

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        clock: Optional[Clock] = None,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        self._database_url = database_url
        self._engine = engine or make_engine(database_url, echo=echo)
        self._sessions = make_session_factory(self._engine)
        self._clock: Clock = clock or utc_now
        self._logger = logger.bind(component="blackboard", impl="sql")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Create the tables if needed. Raises StoreError when unreachable."""
        try:
            await create_tables(self._engine)
        except SQLAlchemyError as e:
            raise StoreError(
                message=f"Blackboard database unavailable: {e}",
                details={"operation": "connect"},
            ) from e
        self._logger.info("blackboard_connected", dialect=self._engine.dialect.name)

    async def disconnect(self) -> None:
        await self._engine.dispose()
        self._logger.info("blackboard_disconnected")

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Open a session + transaction, translating driver errors."""
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            self._logger.error("blackboard_operation_failed", operation=operation, error=str(e))
            raise StoreError(
                message=f"Blackboard operation failed: {operation}",
                details={"operation": operation},
            ) from e

    # =========================================================================
    # Row Conversion
    # =========================================================================

    @staticmethod
    def _to_run(row: RunRow) -> Run:
        return Run(
            id=row.id,
            owner_id=row.owner_id,
            status=RunStatus(row.status),
            budget=BudgetState.model_validate(row.budget),
            error=RunError.model_validate(row.error) if row.error else None,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_artifact(row: ArtifactRow) -> Artifact:
        return Artifact(
            id=row.id,
            run_id=row.run_id,
            owner_id=row.owner_id,
            kind=ArtifactKind(row.kind),
            label=row.label,
            payload=row.payload,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )

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
        budget = budget or BudgetState(hard_cap_usd=0.0)
        row = RunRow(
            id=generate_run_id(),
            owner_id=owner_id,
            status=initial_status.value,
            budget=budget.model_dump(mode="json"),
            error=None,
            created_at=now,
            updated_at=now,
        )
        async with self._transaction("create_run") as session:
            session.add(row)

        self._logger.debug("run_created", run_id=row.id, status=initial_status.value)
        return RunHandle(id=row.id, status=initial_status)

    async def update_run(self, run_id: str, owner_id: str, patch: RunPatch) -> None:
        if not _is_run_id(run_id):
            return
        async with self._transaction("update_run") as session:
            result = await session.execute(
                select(RunRow)
                .where(RunRow.id == run_id, RunRow.owner_id == owner_id)
                .with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                self._logger.debug("run_update_ignored", run_id=run_id)
                return

            updates = resolve_patch(RunStatus(row.status), patch)
            if not updates:
                return
            if "status" in updates:
                row.status = updates["status"].value
            if "budget" in updates:
                row.budget = updates["budget"].model_dump(mode="json")
            if "error" in updates:
                row.error = updates["error"].model_dump(mode="json")
            row.updated_at = self._clock()

        self._logger.debug("run_updated", run_id=run_id, fields=sorted(updates))

    async def get_run(self, owner_id: str, run_id: str) -> Optional[Run]:
        if not _is_run_id(run_id):
            return None
        async with self._transaction("get_run") as session:
            result = await session.execute(
                select(RunRow).where(RunRow.id == run_id, RunRow.owner_id == owner_id)
            )
            row = result.scalar_one_or_none()
            return self._to_run(row) if row is not None else None

    async def list_runs(
        self, owner_id: str, limit: int = DEFAULT_LIST_RUNS_LIMIT
    ) -> list[RunSummary]:
        async with self._transaction("list_runs") as session:
            result = await session.execute(
                select(RunRow)
                .where(RunRow.owner_id == owner_id)
                .order_by(RunRow.created_at.desc(), RunRow.id.desc())
                .limit(clamp_limit(limit))
            )
            return [self._to_run(row).to_summary() for row in result.scalars().all()]

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
        if not _is_run_id(run_id):
            raise NotFoundError()
        now = self._clock()
        row = ArtifactRow(
            id=generate_artifact_id(),
            run_id=run_id,
            owner_id=owner_id,
            kind=kind.value,
            label=draft.label,
            payload=payload,
            created_at=now,
            expires_at=compute_expiry(now, ttl_seconds),
        )

        async with self._transaction("save_artifact") as session:
            owned = await session.execute(
                select(RunRow.id).where(RunRow.id == run_id, RunRow.owner_id == owner_id)
            )
            if owned.scalar_one_or_none() is None:
                raise NotFoundError()
            session.add(row)

        self._logger.debug(
            "artifact_saved",
            run_id=run_id,
            artifact_id=row.id,
            kind=kind.value,
            ttl_seconds=ttl_seconds,
        )
        return self._to_artifact(row)

    async def list_artifacts(self, owner_id: str, run_id: str) -> list[Artifact]:
        if not _is_run_id(run_id):
            return []
        now = self._clock()
        async with self._transaction("list_artifacts") as session:
            result = await session.execute(
                select(ArtifactRow)
                .where(
                    ArtifactRow.run_id == run_id,
                    ArtifactRow.owner_id == owner_id,
                    (ArtifactRow.expires_at.is_(None)) | (ArtifactRow.expires_at > now),
                )
                .order_by(ArtifactRow.created_at, ArtifactRow.seq)
            )
            return [self._to_artifact(row) for row in result.scalars().all()]

    async def cleanup_expired(self, max_rows: Optional[int] = None) -> int:
        now = self._clock()
        expired = (
            select(ArtifactRow.seq)
            .where(ArtifactRow.expires_at.is_not(None), ArtifactRow.expires_at <= now)
            .order_by(ArtifactRow.seq)
        )
        if max_rows is not None:
            expired = expired.limit(max_rows)

        async with self._transaction("cleanup_expired") as session:
            result = await session.execute(
                delete(ArtifactRow)
                .where(ArtifactRow.seq.in_(expired))
                .execution_options(synchronize_session=False)
            )
            removed = result.rowcount or 0

        if removed:
            self._logger.info("expired_artifacts_purged", affected=removed)
        return removed

    async def count_artifacts(self) -> int:
        async with self._transaction("count_artifacts") as session:
            result = await session.execute(select(func.count()).select_from(ArtifactRow))
            return result.scalar_one()
