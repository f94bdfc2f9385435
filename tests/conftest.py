"""
Shared Test Fixtures for Agentics
===================================

Fixtures are organized by layer:

    1. Time (FakeClock for deterministic TTLs)
    2. Configuration
    3. Infrastructure (both blackboard backends)
    4. Orchestration (event bus, orchestrator, event recorder)
    5. Facade + HTTP client

The ``blackboard`` fixture is parametrized over the in-memory and the SQL
(SQLite in-memory) backends, so every test that uses it runs against both.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from agentics.api import create_app
from agentics.core.config import AgenticsConfig, MaintenanceConfig
from agentics.facade import Agentics
from agentics.infrastructure.blackboard import Blackboard, InMemoryBlackboard
from agentics.infrastructure.sql_blackboard import SQLBlackboard
from agentics.orchestration.event_bus import InMemoryEventBus
from agentics.orchestration.orchestrator import Orchestrator


SQLITE_MEMORY_URL = "sqlite+aiosqlite://"
INTERNAL_TOKEN = "test-internal-token"


# =============================================================================
# Time
# =============================================================================
class FakeClock:
    """Manually advanced UTC clock. Each read returns the current instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Configuration
# =============================================================================
@pytest.fixture
def config() -> AgenticsConfig:
    """Feature enabled, in-memory backend, known maintenance token."""
    return AgenticsConfig(
        environment="test",
        feature_enabled=True,
        maintenance=MaintenanceConfig(internal_token=INTERNAL_TOKEN),
    )


# =============================================================================
# Infrastructure
# =============================================================================
@pytest.fixture
def memory_blackboard(clock: FakeClock) -> InMemoryBlackboard:
    return InMemoryBlackboard(clock=clock)


@pytest.fixture
async def sql_blackboard(clock: FakeClock) -> AsyncIterator[SQLBlackboard]:
    store = SQLBlackboard(SQLITE_MEMORY_URL, clock=clock)
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture(params=["memory", "sql"])
async def blackboard(request: pytest.FixtureRequest, clock: FakeClock) -> AsyncIterator[Blackboard]:
    """Each backend in turn, sharing the FakeClock."""
    store: Blackboard
    if request.param == "memory":
        store = InMemoryBlackboard(clock=clock)
    else:
        store = SQLBlackboard(SQLITE_MEMORY_URL, clock=clock)
    await store.connect()
    yield store
    await store.disconnect()


# =============================================================================
# Orchestration
# =============================================================================
class EventRecorder:
    """Async callback that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    async def __call__(self, event: Any) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type for event in self.events]

    def for_run(self, run_id: str) -> list[Any]:
        return [event for event in self.events if event.run_id == run_id]


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
async def recorder(event_bus: InMemoryEventBus) -> EventRecorder:
    """Recorder subscribed to every run on ``event_bus``."""
    recorder = EventRecorder()
    event_bus.subscribe(recorder)
    return recorder


@pytest.fixture
def orchestrator(
    blackboard: Blackboard,
    event_bus: InMemoryEventBus,
    config: AgenticsConfig,
) -> Orchestrator:
    return Orchestrator(blackboard=blackboard, event_bus=event_bus, config=config)


# =============================================================================
# Facade + HTTP
# =============================================================================
@pytest.fixture
async def agentics(config: AgenticsConfig, clock: FakeClock) -> AsyncIterator[Agentics]:
    async with Agentics(config, blackboard=InMemoryBlackboard(clock=clock)) as facade:
        yield facade


@pytest.fixture
async def client(agentics: Agentics) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(agentics=agentics)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
