"""
agentics.facade - Agentics Composition Root
=============================================

The Agentics facade builds and owns every component of one deployment: the
blackboard backend, the event bus, the orchestrator and the maintenance job.
The backend is chosen here, once, from configuration.

    ┌──────────────────────────────────────────────┐
    │              Agentics (Facade)               │
    │                                              │
    │   Orchestrator ── PlannerAgent, step agents  │
    │        │                                     │
    │        ├── Blackboard (memory | SQL)         │
    │        └── EventBus                          │
    │   MaintenanceJob ── RetryPolicy              │
    └──────────────────────────────────────────────┘

Usage:
    >>> async with Agentics(config) as agentics:
    ...     handle = await agentics.run("user-1", RunInput(goal="Test X"))
    ...     view = await agentics.get_status("user-1", handle.id)

    The FastAPI app (agentics.api.create_app) drives initialize()/shutdown()
    from its lifespan.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional, Union

import structlog

from agentics.agents.base import BaseAgent
from agentics.agents.planner import PlannerAgent
from agentics.core.config import AgenticsConfig
from agentics.core.logging import configure_logging
from agentics.core.models import RunHandle, RunInput, RunStatusView, RunSummary
from agentics.infrastructure.blackboard import Blackboard
from agentics.infrastructure.factory import create_blackboard
from agentics.orchestration.event_bus import EventBus, EventCallback, InMemoryEventBus
from agentics.orchestration.maintenance import (
    MaintenanceJob,
    MaintenanceRequest,
    MaintenanceResult,
    RetryPolicy,
)
from agentics.orchestration.orchestrator import Orchestrator

logger = structlog.get_logger()


class Agentics:
    """Top-level facade and composition root.

    Args:
        config: Configuration (defaults to AgenticsConfig() from env).
        blackboard: Explicit store; overrides the configured backend.
        event_bus: Explicit event bus (default InMemoryEventBus).
        planner: Planner (default PlannerAgent()).
        agents: Step agents to register.
        configure_logs: Configure structlog from ``config`` on construction.
    """

    def __init__(
        self,
        config: Optional[AgenticsConfig] = None,
        *,
        blackboard: Optional[Blackboard] = None,
        event_bus: Optional[EventBus] = None,
        planner: Optional[PlannerAgent] = None,
        agents: Iterable[BaseAgent] = (),
        configure_logs: bool = False,
    ) -> None:
        self._config = config or AgenticsConfig()
        if configure_logs:
            configure_logging(self._config.log_level, json_output=self._config.log_json)

        # --- Infrastructure ---
        self._blackboard = blackboard if blackboard is not None else create_blackboard(self._config)
        self._event_bus = event_bus or InMemoryEventBus(queue_size=self._config.stream.queue_size)

        # --- Orchestration ---
        self._orchestrator = Orchestrator(
            blackboard=self._blackboard,
            planner=planner,
            event_bus=self._event_bus,
            agents=agents,
            config=self._config,
        )
        self._maintenance = MaintenanceJob(
            self._orchestrator,
            internal_token=self._config.maintenance.internal_token,
            retry_policy=RetryPolicy(max_retries=self._config.maintenance.max_retries),
            default_max_rows=self._config.maintenance.default_max_rows,
        )

        self._initialized = False
        self._logger = logger.bind(component="agentics")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> AgenticsConfig:
        return self._config

    @property
    def blackboard(self) -> Blackboard:
        return self._blackboard

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def orchestrator(self) -> Orchestrator:
        return self._orchestrator

    @property
    def maintenance(self) -> MaintenanceJob:
        return self._maintenance

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Connect the blackboard and event bus. Idempotent."""
        if self._initialized:
            return
        self._logger.info("agentics_initializing", backend=self._blackboard.backend)
        await self._blackboard.connect()
        await self._event_bus.connect()
        self._initialized = True
        self._logger.info("agentics_initialized")

    async def shutdown(self) -> None:
        """Disconnect in reverse order. Idempotent."""
        if not self._initialized:
            return
        await self._event_bus.disconnect()
        await self._blackboard.disconnect()
        self._initialized = False
        self._logger.info("agentics_shutdown_complete")

    async def __aenter__(self) -> Agentics:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Operations
    # =========================================================================

    def register_agent(self, agent: BaseAgent) -> None:
        self._orchestrator.register_agent(agent)

    async def run(
        self,
        owner_id: str,
        run_input: RunInput,
        on_event: Optional[EventCallback] = None,
        ttl_seconds: Optional[float] = None,
    ) -> RunHandle:
        self._ensure_initialized()
        return await self._orchestrator.run(
            owner_id, run_input, on_event=on_event, ttl_seconds=ttl_seconds
        )

    async def get_status(self, owner_id: str, run_id: str) -> RunStatusView:
        self._ensure_initialized()
        return await self._orchestrator.get_status(owner_id, run_id)

    async def list_runs(self, owner_id: str, limit: int = 20) -> list[RunSummary]:
        self._ensure_initialized()
        return await self._orchestrator.list_runs(owner_id, limit)

    async def cancel(self, owner_id: str, run_id: str) -> bool:
        self._ensure_initialized()
        return await self._orchestrator.cancel(owner_id, run_id)

    async def run_maintenance(
        self,
        token: Optional[str],
        request: Union[MaintenanceRequest, dict[str, Any]],
    ) -> MaintenanceResult:
        self._ensure_initialized()
        return await self._maintenance.execute(token, request)

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "Agentics has not been initialized. "
                "Call await agentics.initialize() or use 'async with Agentics() as agentics:'"
            )

    def __repr__(self) -> str:
        return (
            f"Agentics(initialized={self._initialized}, "
            f"backend={self._blackboard.backend!r})"
        )
