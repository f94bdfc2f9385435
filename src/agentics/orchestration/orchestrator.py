"""
agentics.orchestration.orchestrator - Run Orchestrator
========================================================

This module implements the Orchestrator, which drives one run from creation
to a terminal state: plan, budget-gated step execution, artifact writes and
lifecycle events.

Architecture Context:
    ┌──────────────────────────────────────────────────────────────────┐
    │                          Orchestrator                            │
    │                                                                  │
    │  run(owner, input)                                               │
    │    1. create_run (queued)                ──→ Blackboard          │
    │    2. emit start                         ──→ EventBus            │
    │    3. update_run (running)               ──→ Blackboard          │
    │    4. planner.plan(owner, input)         ──→ PlannerAgent        │
    │    5. save plan.graph (ttl 86400)        ──→ Blackboard          │
    │    6. emit artifact                      ──→ EventBus            │
    │    7. per step: debit ──→ BudgetManager                          │
    │                 agent.run(step, port)    ──→ Step agents         │
    │    8. update_run (succeeded, budget)     ──→ Blackboard          │
    │    9. emit done                          ──→ EventBus            │
    └──────────────────────────────────────────────────────────────────┘

Failure Handling:
    Any error in steps 3-8 (UpstreamAgentError, BudgetExceeded, a rejected
    payload, a store failure, or an unexpected exception) moves the run to
    FAILED with error metadata and emits a terminal ERROR event. run() itself
    returns normally, so no run is ever left in RUNNING by an exception.

Terminal Event Arbitration:
    Completion and cancel() can race. Each side writes its terminal status
    and then re-reads the run; only the side whose status actually landed
    emits the terminal event. The store's terminal immutability guarantees
    exactly one winner, so observers always see exactly one terminal event.

Usage:
    >>> orchestrator = Orchestrator(blackboard=InMemoryBlackboard())
    >>> handle = await orchestrator.run("user-1", RunInput(goal="Test X"))
    >>> view = await orchestrator.get_status("user-1", handle.id)
    >>> view.status
    <RunStatus.SUCCEEDED: 'succeeded'>
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from typing import Any, Optional

import structlog

from agentics.agents.base import BaseAgent, RunArtifactPort, StepInput
from agentics.agents.planner import PlannerAgent
from agentics.core.config import AgenticsConfig
from agentics.core.enums import ArtifactKind, RunStatus
from agentics.core.events import ArtifactEvent, DoneEvent, ErrorEvent, LogEvent, StartEvent
from agentics.core.exceptions import (
    AgenticsError,
    NotFoundError,
    RunCanceled,
    StoreError,
    UpstreamAgentError,
    ValidationError,
)
from agentics.core.models import (
    Artifact,
    ArtifactDraft,
    PlanGraph,
    PlanStep,
    RunError,
    RunHandle,
    RunInput,
    RunPatch,
    RunStatusView,
    RunSummary,
)
from agentics.infrastructure.blackboard import DEFAULT_LIST_RUNS_LIMIT, Blackboard
from agentics.infrastructure.factory import create_blackboard
from agentics.orchestration.budget import BudgetManager
from agentics.orchestration.event_bus import EventBus, EventCallback, InMemoryEventBus


logger = structlog.get_logger()


# =============================================================================
# Per-Run Execution Context
# =============================================================================
class _RunContext:
    """Mutable state of one in-flight run, owned by the orchestrator."""

    def __init__(self, run_id: str, owner_id: str, budget: BudgetManager) -> None:
        self.run_id = run_id
        self.owner_id = owner_id
        self.budget = budget
        self.canceled = False
        self.terminal_emitted = False
        self._seq = itertools.count(1)

    def next_seq(self) -> int:
        return next(self._seq)

    def ensure_active(self) -> None:
        """Stop the run's work once it has been canceled."""
        if self.canceled:
            raise RunCanceled(self.run_id)


class Orchestrator:
    """Executes runs and exposes their status.

    Args:
        blackboard: Run/artifact store. When None, the backend is chosen
            once here from ``config.persistence``.
        planner: Plan builder (defaults to PlannerAgent()).
        event_bus: Event channel (defaults to an InMemoryEventBus).
        agents: Step agents, matched to plan steps by ``agent.name``.
        config: Agentics configuration (defaults read from the environment).

    Attributes:
        _active: run_id → context for runs executing in this process.
    """

    def __init__(
        self,
        blackboard: Optional[Blackboard] = None,
        planner: Optional[PlannerAgent] = None,
        event_bus: Optional[EventBus] = None,
        agents: Iterable[BaseAgent] = (),
        config: Optional[AgenticsConfig] = None,
    ) -> None:
        self._config = config or AgenticsConfig()
        self._blackboard = blackboard if blackboard is not None else create_blackboard(self._config)
        self._planner = planner or PlannerAgent()
        self._event_bus = (
            event_bus
            if event_bus is not None
            else InMemoryEventBus(queue_size=self._config.stream.queue_size)
        )
        self._logger = logger.bind(component="orchestrator")
        self._agents: dict[str, BaseAgent] = {}
        for agent in agents:
            self.register_agent(agent)

        self._active: dict[str, _RunContext] = {}

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def blackboard(self) -> Blackboard:
        return self._blackboard

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def config(self) -> AgenticsConfig:
        return self._config

    @property
    def agents(self) -> dict[str, BaseAgent]:
        return dict(self._agents)

    @property
    def active_run_ids(self) -> list[str]:
        return list(self._active)

    def register_agent(self, agent: BaseAgent) -> None:
        """Register a step agent under its name, replacing any previous one."""
        self._agents[agent.name] = agent
        self._logger.info("agent_registered", agent=agent.name)

    # =========================================================================
    # Run Execution
    # =========================================================================

    def _resolve_cap(self, run_input: RunInput) -> float:
        budget_config = self._config.budget
        if run_input.budget is None:
            return budget_config.default_cap_usd
        cap = run_input.budget.cap_usd
        if cap > budget_config.max_cap_usd:
            raise ValidationError(
                message=f"Requested cap {cap} exceeds the maximum {budget_config.max_cap_usd}",
                error_code="BUDGET_CAP_TOO_HIGH",
                details={"cap_usd": cap, "max_cap_usd": budget_config.max_cap_usd},
            )
        return cap

    async def run(
        self,
        owner_id: str,
        run_input: RunInput,
        on_event: Optional[EventCallback] = None,
        ttl_seconds: Optional[float] = None,
    ) -> RunHandle:
        """Execute one run to a terminal state.

        Args:
            owner_id: The caller that owns the run.
            run_input: Goal, feature flags and optional budget override.
            on_event: Optional async callback attached to this run's events
                for the duration of the run. Delivery is asynchronous.
            ttl_seconds: Lifetime of the run's artifacts, clamped to the
                configured bounds (default: one day).

        Returns:
            RunHandle with the run id and its final status.

        Raises:
            ValidationError: The requested cap exceeds the configured maximum
                (no run is created).
            StoreError: The run could not be created.
        """
        budget = BudgetManager(hard_cap_usd=self._resolve_cap(run_input))
        ttl = self._config.artifacts.clamp_ttl(ttl_seconds)

        handle = await self._blackboard.create_run(owner_id, RunStatus.QUEUED, budget.state)
        ctx = _RunContext(handle.id, owner_id, budget)
        self._active[handle.id] = ctx

        subscription = None
        if on_event is not None:
            subscription = self._event_bus.subscribe(on_event, run_id=handle.id)

        self._logger.info("run_started", run_id=handle.id, owner_id=owner_id, ttl_seconds=ttl)
        try:
            await self._emit(ctx, StartEvent(run_id=handle.id))
            status = await self._execute(ctx, run_input, ttl)
        finally:
            self._active.pop(handle.id, None)
            if subscription is not None:
                self._event_bus.release(subscription)

        self._logger.info("run_finished", run_id=handle.id, status=status.value)
        return RunHandle(id=handle.id, status=status)

    async def _execute(self, ctx: _RunContext, run_input: RunInput, ttl: int) -> RunStatus:
        run_id, owner_id = ctx.run_id, ctx.owner_id
        try:
            ctx.ensure_active()
            await self._blackboard.update_run(run_id, owner_id, RunPatch(status=RunStatus.RUNNING))

            plan = self._plan(owner_id, run_input)
            ctx.ensure_active()
            plan_artifact = await self._blackboard.save_artifact(
                owner_id,
                run_id,
                ArtifactDraft(kind=ArtifactKind.PLAN_GRAPH, label="plan", payload=plan),
                ttl_seconds=ttl,
            )
            await self._emit_artifact(ctx, plan_artifact, agent=self._planner.name)

            for step in plan.steps:
                await self._run_step(ctx, run_input, plan, step, ttl)

            ctx.ensure_active()
            await self._blackboard.update_run(
                run_id,
                owner_id,
                RunPatch(status=RunStatus.SUCCEEDED, budget=ctx.budget.state),
            )
            if await self._landed(ctx, RunStatus.SUCCEEDED):
                await self._emit(ctx, DoneEvent(run_id=run_id))
                return RunStatus.SUCCEEDED
            return RunStatus.CANCELED

        except RunCanceled:
            self._logger.info("run_stopped_after_cancel", run_id=run_id)
            return RunStatus.CANCELED

        except Exception as e:
            if ctx.canceled:
                return RunStatus.CANCELED
            return await self._fail(ctx, e)

    def _plan(self, owner_id: str, run_input: RunInput) -> PlanGraph:
        try:
            return self._planner.plan(owner_id, run_input)
        except AgenticsError:
            raise
        except Exception as e:
            raise UpstreamAgentError(
                message=f"Planner failed: {e}",
                agent=self._planner.name,
            ) from e

    async def _run_step(
        self,
        ctx: _RunContext,
        run_input: RunInput,
        plan: PlanGraph,
        step: PlanStep,
        ttl: int,
    ) -> list[Artifact]:
        agent = self._agents.get(step.agent)
        if agent is None:
            self._logger.info(
                "step_skipped_no_agent",
                run_id=ctx.run_id,
                step_id=step.id,
                agent=step.agent,
            )
            return []

        ctx.ensure_active()
        state = await ctx.budget.debit(step.estimated_cost_usd)
        await self._blackboard.update_run(ctx.run_id, ctx.owner_id, RunPatch(budget=state))

        async def on_write(artifact: Artifact, agent_name: str) -> None:
            await self._emit_artifact(ctx, artifact, agent=agent_name)

        async def on_log(message: str, level: str, agent_name: str) -> None:
            await self._emit(
                ctx, LogEvent(run_id=ctx.run_id, agent=agent_name, level=level, message=message)
            )

        port = RunArtifactPort(
            self._blackboard,
            owner_id=ctx.owner_id,
            run_id=ctx.run_id,
            agent=agent.name,
            ttl_seconds=ttl,
            on_write=on_write,
            on_log=on_log,
            guard=ctx.ensure_active,
        )
        step_input = StepInput(
            owner_id=ctx.owner_id,
            run_id=ctx.run_id,
            run_input=run_input,
            plan=plan,
            step=step,
        )
        return await agent.run(step_input, port)

    async def _fail(self, ctx: _RunContext, exc: Exception) -> RunStatus:
        """Record a failure and emit the terminal error event."""
        error = RunError.from_exception(exc)
        log = self._logger.error if not isinstance(exc, AgenticsError) else self._logger.warning
        log(
            "run_failed",
            run_id=ctx.run_id,
            error_type=error.error_type,
            error_code=error.error_code,
            error=error.message,
        )

        try:
            await self._blackboard.update_run(
                ctx.run_id,
                ctx.owner_id,
                RunPatch(status=RunStatus.FAILED, error=error, budget=ctx.budget.state),
            )
            landed = await self._landed(ctx, RunStatus.FAILED)
        except StoreError as store_error:
            # The failure cannot be recorded; observers still get the event.
            self._logger.error(
                "run_failure_not_recorded", run_id=ctx.run_id, error=store_error.message
            )
            landed = True

        if not landed:
            return RunStatus.CANCELED
        await self._emit(
            ctx,
            ErrorEvent(run_id=ctx.run_id, error_code=error.error_code, message=error.message),
        )
        return RunStatus.FAILED

    async def _landed(self, ctx: _RunContext, status: RunStatus) -> bool:
        """Whether the stored run ended up in ``status`` after our write."""
        run = await self._blackboard.get_run(ctx.owner_id, ctx.run_id)
        return run is not None and run.status == status

    # =========================================================================
    # Events
    # =========================================================================

    async def _emit(self, ctx: _RunContext, event: Any) -> None:
        """Stamp the run sequence number on ``event`` and publish it.

        Nothing is published after the run's terminal event, and only the
        terminal event is published once the run has been canceled.
        """
        if ctx.terminal_emitted:
            return
        if ctx.canceled and not event.is_terminal:
            return
        event.seq = ctx.next_seq()
        if event.is_terminal:
            ctx.terminal_emitted = True
        try:
            await self._event_bus.publish(event)
        except Exception as e:
            self._logger.error(
                "event_publish_failed",
                run_id=ctx.run_id,
                event_type=event.type,
                error=str(e),
            )

    async def _emit_artifact(self, ctx: _RunContext, artifact: Artifact, agent: str) -> None:
        await self._emit(
            ctx,
            ArtifactEvent(
                run_id=ctx.run_id,
                agent=agent,
                artifact_id=artifact.id,
                kind=artifact.kind,
                label=artifact.label,
            ),
        )

    # =========================================================================
    # Cancellation
    # =========================================================================

    async def cancel(self, owner_id: str, run_id: str) -> bool:
        """Cancel a non-terminal run owned by ``owner_id``.

        Writes CANCELED with error code RUN_CANCELED and emits the run's
        terminal error event. The run's task stops at its next checkpoint
        and emits nothing further.

        Returns:
            True if this call canceled the run; False for unknown, foreign
            or already-terminal runs.
        """
        run = await self._blackboard.get_run(owner_id, run_id)
        if run is None or run.status.is_terminal:
            return False

        ctx = self._active.get(run_id)
        if ctx is not None:
            ctx.canceled = True

        canceled = RunCanceled(run_id)
        error = RunError(
            error_type="RunCanceled",
            error_code=canceled.error_code,
            message=canceled.message,
        )
        patch = RunPatch(status=RunStatus.CANCELED, error=error)
        if ctx is not None:
            patch.budget = ctx.budget.state
        await self._blackboard.update_run(run_id, owner_id, patch)

        current = await self._blackboard.get_run(owner_id, run_id)
        if current is None or current.status != RunStatus.CANCELED:
            return False

        event = ErrorEvent(run_id=run_id, error_code=error.error_code, message=error.message)
        if ctx is not None:
            await self._emit(ctx, event)
        else:
            await self._event_bus.publish(event)

        self._logger.info("run_canceled", run_id=run_id, owner_id=owner_id)
        return True

    # =========================================================================
    # Queries & Maintenance
    # =========================================================================

    async def get_status(self, owner_id: str, run_id: str) -> RunStatusView:
        """Owner-scoped status snapshot.

        Raises:
            NotFoundError: Unknown run or a run owned by someone else.
        """
        run = await self._blackboard.get_run(owner_id, run_id)
        if run is None:
            raise NotFoundError()
        artifacts = await self._blackboard.list_artifacts(owner_id, run_id)
        return RunStatusView(
            id=run.id,
            status=run.status,
            artifacts=artifacts,
            budget=run.budget,
            error=run.error,
        )

    async def list_runs(
        self, owner_id: str, limit: int = DEFAULT_LIST_RUNS_LIMIT
    ) -> list[RunSummary]:
        return await self._blackboard.list_runs(owner_id, limit)

    async def cleanup_ttls(self, max_rows: Optional[int] = None) -> int:
        """Purge expired artifacts. Returns the number removed."""
        affected = await self._blackboard.cleanup_expired(max_rows)
        self._logger.info("ttl_cleanup_completed", affected=affected, max_rows=max_rows)
        return affected
