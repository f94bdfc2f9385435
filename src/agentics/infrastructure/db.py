"""
agentics.infrastructure.db - SQL Schema & Engine
==================================================

Async SQLAlchemy 2.0 tables, dialect-aware column types, and engine/session
factories for the persistent blackboard. Runs on PostgreSQL (asyncpg) in
production and SQLite (aiosqlite) in tests.

Tables:
    agentics_runs       one row per run (status, budget/error as JSON)
    agentics_artifacts  one row per artifact, FK to its run; ``seq`` is an
                        autoincrement key that records write order
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, types
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool


# =============================================================================
# Column Types
# =============================================================================
class GUID(types.TypeDecorator):
    """UUID type: native UUID on Postgres, CHAR(36) on SQLite."""

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=False))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else str(value)


class JSONB(types.TypeDecorator):
    """JSONB on Postgres, JSON on SQLite."""

    impl = types.JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.JSONB)
        return dialect.type_descriptor(types.JSON)


class UTCDateTime(types.TypeDecorator):
    """Timezone-aware UTC timestamps on every dialect.

    SQLite has no timezone support: values are stored as naive UTC and
    re-tagged as UTC on load, so comparisons in SQL and in Python agree.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# =============================================================================
# ORM Tables
# =============================================================================
class Base(DeclarativeBase):
    pass


class RunRow(Base):
    __tablename__ = "agentics_runs"

    id: Mapped[str] = mapped_column(GUID(), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    budget: Mapped[dict[str, Any]] = mapped_column(JSONB(), nullable=False, default=dict)
    error: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("ix_agentics_runs_owner_created", "owner_id", "created_at"),
    )


class ArtifactRow(Base):
    __tablename__ = "agentics_artifacts"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    run_id: Mapped[str] = mapped_column(
        GUID(), ForeignKey("agentics_runs.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB(), nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_agentics_artifacts_run_owner", "run_id", "owner_id", "created_at"),
        Index("ix_agentics_artifacts_expires", "expires_at"),
    )


# =============================================================================
# Engine & Sessions
# =============================================================================
def make_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with dialect-specific configuration.

    - PostgreSQL (asyncpg): connection pooling with pre-ping
    - SQLite (aiosqlite): check_same_thread=False; an in-memory database is
      pinned to a single connection so every session sees the same data
    """
    connect_args: dict[str, Any] = {}
    kwargs: dict[str, Any] = {"echo": echo}

    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        if database_url.startswith("postgresql"):
            kwargs["pool_size"] = 10
            kwargs["max_overflow"] = 20

    kwargs["connect_args"] = connect_args
    return create_async_engine(database_url, **kwargs)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the agentics tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
