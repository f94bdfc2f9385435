"""
Tests for agentics.orchestration.orchestrator
===============================================

The ``orchestrator`` fixture is built on the parametrized ``blackboard``
fixture, so every scenario runs against both backends.

What's Being Tested:
    - Successful run: status, plan artifact, event order and sequence numbers
    - Planner / agent failures become FAILED runs with error metadata
    - Budget overrun stops the run without overspending
    - Cancellation: exactly one terminal event, nothing after it
    - Slow observers never block a run
    - Owner-scoped status reads
"""

import asyncio

import pytest

from agentics.agents.base import ArtifactPort, BaseAgent, StepInput
from agentics.agents.planner import PlannerAgent
from agentics.agents.writers import DraftAgent, OutlineAgent
from agentics.core.enums import ArtifactKind, RunStatus
from agentics.core.exceptions import NotFoundError, ValidationError
from agentics.core.models import ArtifactDraft, BudgetRequest, RunInput
from agentics.orchestration.event_bus import InMemoryEventBus
from agentics.orchestration.orchestrator import Orchestrator


# =============================================================================
# Test Doubles
# =============================================================================
class FailingPlanner(PlannerAgent):
    def plan(self, owner_id, run_input):
        raise RuntimeError("planner model unavailable")


class FailingAgent(BaseAgent):
    def __init__(self, name: str = "outline") -> None:
        super().__init__(name=name)

    async def _execute(self, step_input: StepInput, port: ArtifactPort) -> None:
        raise ConnectionError("provider returned 503")


class BlockingAgent(BaseAgent):
    """Signals ``started`` and waits for ``release`` before writing."""

    def __init__(self) -> None:
        super().__init__(name="outline")
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def _execute(self, step_input: StepInput, port: ArtifactPort) -> None:
        self.started.set()
        await self.release.wait()
        await port.write(
            ArtifactDraft(kind=ArtifactKind.DRAFT_OUTLINE, payload={"sections": ["late"]})
        )


def terminal_events(events: list) -> list:
    return [event for event in events if event.is_terminal]


# =============================================================================
# Test: Successful Runs
# =============================================================================
class TestSuccessfulRun:
    async def test_run_without_step_agents(self, orchestrator: Orchestrator, recorder) -> None:
        """start → artifact(plan.graph) → done, and the run succeeds."""
        handle = await orchestrator.run("alice", RunInput(goal="Test X"))
        await orchestrator.event_bus.flush()

        assert handle.status == RunStatus.SUCCEEDED
        events = recorder.for_run(handle.id)
        assert [e.type for e in events] == ["start", "artifact", "done"]
        assert [e.seq for e in events] == [1, 2, 3]
        assert events[1].kind == ArtifactKind.PLAN_GRAPH
        assert events[1].agent == "planner"

    async def test_status_after_success(self, orchestrator: Orchestrator, clock) -> None:
        handle = await orchestrator.run(
            "alice", RunInput(goal="Test X", budget=BudgetRequest(cap_usd=0.5))
        )
        view = await orchestrator.get_status("alice", handle.id)

        assert view.status == RunStatus.SUCCEEDED
        assert view.error is None
        assert view.budget.hard_cap_usd == 0.5
        (plan_artifact,) = view.artifacts
        assert plan_artifact.kind == ArtifactKind.PLAN_GRAPH
        assert plan_artifact.label == "plan"
        assert [s["id"] for s in plan_artifact.payload["steps"]] == ["outline", "draft"]
        assert plan_artifact.expires_at is not None
        assert (plan_artifact.expires_at - plan_artifact.created_at).total_seconds() == 86400

    async def test_default_cap_applies(self, orchestrator: Orchestrator) -> None:
        handle = await orchestrator.run("alice", RunInput(goal="Test X"))
        view = await orchestrator.get_status("alice", handle.id)
        assert view.budget.hard_cap_usd == orchestrator.config.budget.default_cap_usd

    async def test_ttl_is_clamped(self, orchestrator: Orchestrator) -> None:
        handle = await orchestrator.run("alice", RunInput(goal="Test X"), ttl_seconds=1)
        (plan_artifact,) = (await orchestrator.get_status("alice", handle.id)).artifacts
        assert (plan_artifact.expires_at - plan_artifact.created_at).total_seconds() == 10

    async def test_writer_agents_run_and_debit(self, orchestrator: Orchestrator, recorder) -> None:
        orchestrator.register_agent(OutlineAgent())
        orchestrator.register_agent(DraftAgent())

        handle = await orchestrator.run("alice", RunInput(goal="Test X"))
        await orchestrator.event_bus.flush()
        view = await orchestrator.get_status("alice", handle.id)

        assert view.status == RunStatus.SUCCEEDED
        assert [a.kind for a in view.artifacts] == [
            ArtifactKind.PLAN_GRAPH,
            ArtifactKind.DRAFT_OUTLINE,
            ArtifactKind.DRAFT_SECTIONS,
        ]
        assert view.budget.spent_usd == pytest.approx(0.25)

        events = recorder.for_run(handle.id)
        assert [e.type for e in events] == ["start", "artifact", "artifact", "log", "artifact", "done"]
        assert [e.agent for e in events if e.type == "artifact"] == ["planner", "outline", "draft"]
        assert [e.seq for e in events] == list(range(1, 7))

    async def test_on_event_callback(self, orchestrator: Orchestrator) -> None:
        received: list[str] = []

        async def on_event(event):
            received.append(event.type)

        await orchestrator.run("alice", RunInput(goal="Test X"), on_event=on_event)
        await orchestrator.event_bus.flush()

        assert received == ["start", "artifact", "done"]
        assert orchestrator.active_run_ids == []

    async def test_slow_observer_does_not_block_run(self, orchestrator: Orchestrator) -> None:
        never = asyncio.Event()

        async def stuck(event):
            await never.wait()

        orchestrator.event_bus.subscribe(stuck)
        handle = await asyncio.wait_for(
            orchestrator.run("alice", RunInput(goal="Test X")), timeout=5
        )
        assert handle.status == RunStatus.SUCCEEDED

    async def test_on_event_observer_released_when_queue_overflows(
        self, blackboard, config
    ) -> None:
        event_bus = InMemoryEventBus(queue_size=1)
        orchestrator = Orchestrator(blackboard=blackboard, event_bus=event_bus, config=config)
        received: list[str] = []

        async def slow_observer(event):
            await asyncio.sleep(0.01)
            received.append(event.type)

        await orchestrator.run("alice", RunInput(goal="Test X"), on_event=slow_observer)
        for _ in range(200):
            if event_bus.subscriber_count == 0:
                break
            await asyncio.sleep(0.01)

        assert event_bus.subscriber_count == 0
        assert received
        assert received[0] == "start"


# =============================================================================
# Test: Failures
# =============================================================================
class TestFailedRun:
    async def test_planner_failure(self, blackboard, event_bus, recorder, config) -> None:
        orchestrator = Orchestrator(
            blackboard=blackboard, planner=FailingPlanner(), event_bus=event_bus, config=config
        )

        handle = await orchestrator.run("alice", RunInput(goal="Test X"))
        await event_bus.flush()
        view = await orchestrator.get_status("alice", handle.id)

        assert handle.status == RunStatus.FAILED
        assert view.status == RunStatus.FAILED
        assert view.error is not None
        assert view.error.error_code == "UPSTREAM_AGENT_ERROR"
        assert view.error.error_type == "UpstreamAgentError"
        assert view.artifacts == []
        assert recorder.types == ["start", "error"]
        assert recorder.events[-1].error_code == "UPSTREAM_AGENT_ERROR"

    async def test_agent_failure(self, orchestrator: Orchestrator, recorder) -> None:
        orchestrator.register_agent(FailingAgent())

        handle = await orchestrator.run("alice", RunInput(goal="Test X"))
        await orchestrator.event_bus.flush()
        view = await orchestrator.get_status("alice", handle.id)

        assert view.status == RunStatus.FAILED
        assert view.error.error_code == "UPSTREAM_AGENT_ERROR"
        assert "provider returned 503" in view.error.message
        assert [a.kind for a in view.artifacts] == [ArtifactKind.PLAN_GRAPH]
        assert recorder.types == ["start", "artifact", "error"]

    async def test_budget_overrun(self, blackboard, event_bus, recorder, config) -> None:
        orchestrator = Orchestrator(
            blackboard=blackboard,
            planner=PlannerAgent(step_costs={"draft": 1.0}),
            event_bus=event_bus,
            agents=[OutlineAgent(), DraftAgent()],
            config=config,
        )

        handle = await orchestrator.run(
            "alice", RunInput(goal="Test X", budget=BudgetRequest(cap_usd=0.5))
        )
        await event_bus.flush()
        view = await orchestrator.get_status("alice", handle.id)

        assert view.status == RunStatus.FAILED
        assert view.error.error_code == "BUDGET_EXCEEDED"
        assert view.budget.spent_usd == pytest.approx(0.05)
        assert view.budget.spent_usd <= view.budget.hard_cap_usd
        assert ArtifactKind.DRAFT_SECTIONS not in [a.kind for a in view.artifacts]
        assert len(terminal_events(recorder.events)) == 1
        assert recorder.events[-1].error_code == "BUDGET_EXCEEDED"

    async def test_cap_above_maximum_creates_no_run(self, orchestrator: Orchestrator) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.run(
                "alice", RunInput(goal="Test X", budget=BudgetRequest(cap_usd=1000))
            )

        assert exc_info.value.error_code == "BUDGET_CAP_TOO_HIGH"
        assert await orchestrator.list_runs("alice") == []


# =============================================================================
# Test: Cancellation
# =============================================================================
class TestCancel:
    async def test_cancel_running_run(self, orchestrator: Orchestrator, recorder) -> None:
        agent = BlockingAgent()
        orchestrator.register_agent(agent)

        task = asyncio.create_task(orchestrator.run("alice", RunInput(goal="Test X")))
        await asyncio.wait_for(agent.started.wait(), timeout=5)
        (run_id,) = orchestrator.active_run_ids

        assert await orchestrator.cancel("alice", run_id) is True
        agent.release.set()
        handle = await asyncio.wait_for(task, timeout=5)
        await orchestrator.event_bus.flush()

        assert handle.status == RunStatus.CANCELED
        view = await orchestrator.get_status("alice", run_id)
        assert view.status == RunStatus.CANCELED
        assert view.error.error_code == "RUN_CANCELED"
        assert [a.kind for a in view.artifacts] == [ArtifactKind.PLAN_GRAPH]

        events = recorder.for_run(run_id)
        assert [e.type for e in events] == ["start", "artifact", "error"]
        assert events[-1].error_code == "RUN_CANCELED"
        assert len(terminal_events(events)) == 1

    async def test_cancel_terminal_run_is_false(self, orchestrator: Orchestrator) -> None:
        handle = await orchestrator.run("alice", RunInput(goal="Test X"))

        assert await orchestrator.cancel("alice", handle.id) is False
        view = await orchestrator.get_status("alice", handle.id)
        assert view.status == RunStatus.SUCCEEDED

    async def test_cancel_foreign_run_is_false(self, orchestrator: Orchestrator) -> None:
        agent = BlockingAgent()
        orchestrator.register_agent(agent)
        task = asyncio.create_task(orchestrator.run("alice", RunInput(goal="Test X")))
        await asyncio.wait_for(agent.started.wait(), timeout=5)
        (run_id,) = orchestrator.active_run_ids

        assert await orchestrator.cancel("mallory", run_id) is False

        agent.release.set()
        handle = await asyncio.wait_for(task, timeout=5)
        assert handle.status == RunStatus.SUCCEEDED

    async def test_cancel_queued_run_without_task(
        self, orchestrator: Orchestrator, recorder
    ) -> None:
        """A run no process is executing is still canceled and announced."""
        handle = await orchestrator.blackboard.create_run("alice")

        assert await orchestrator.cancel("alice", handle.id) is True
        await orchestrator.event_bus.flush()

        assert recorder.types == ["error"]
        view = await orchestrator.get_status("alice", handle.id)
        assert view.status == RunStatus.CANCELED


# =============================================================================
# Test: Queries
# =============================================================================
class TestQueries:
    async def test_get_status_foreign_run_is_not_found(self, orchestrator: Orchestrator) -> None:
        handle = await orchestrator.run("alice", RunInput(goal="Test X"))

        with pytest.raises(NotFoundError):
            await orchestrator.get_status("bob", handle.id)
        with pytest.raises(NotFoundError):
            await orchestrator.get_status("alice", "no-such-run")

    async def test_list_runs(self, orchestrator: Orchestrator, clock) -> None:
        first = await orchestrator.run("alice", RunInput(goal="one"))
        clock.advance(1)
        second = await orchestrator.run("alice", RunInput(goal="two"))

        runs = await orchestrator.list_runs("alice")
        assert [r.id for r in runs] == [second.id, first.id]
        assert all(r.status == RunStatus.SUCCEEDED for r in runs)

    async def test_cleanup_ttls(self, orchestrator: Orchestrator, clock) -> None:
        handle = await orchestrator.run("alice", RunInput(goal="Test X"), ttl_seconds=60)

        assert await orchestrator.cleanup_ttls() == 0
        clock.advance(61)
        assert await orchestrator.cleanup_ttls() == 1
        assert (await orchestrator.get_status("alice", handle.id)).artifacts == []
