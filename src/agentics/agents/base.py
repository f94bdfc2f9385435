"""
agentics.agents.base - Agent Capability & Artifact Port
=========================================================

This module defines BaseAgent, the abstract class every step agent inherits
from, and the ArtifactPort through which agents write their output.

Template Method Pattern:
    Every agent shares the same lifecycle around a single hook:

    ┌─────────────────────────────────────────────────────┐
    │  BaseAgent.run(step_input, port)   ← Public API      │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ 1. Log the step start                        │   │
    │  │ 2. _execute(step_input, port) ← Override this│   │
    │  │ 3. Collect the artifacts written via port    │   │
    │  │ 4. Wrap unexpected errors in                 │   │
    │  │    UpstreamAgentError                        │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Narrow Write Port:
    Agents never see the blackboard. The orchestrator hands each agent a
    RunArtifactPort already bound to (owner_id, run_id, ttl):

        agent ── port.write(draft) ──→ Blackboard.save_artifact(owner, run, draft, ttl)
                                    └→ on_write(artifact)   (artifact event)

Usage:
    class OutlineAgent(BaseAgent):
        async def _execute(self, step_input, port):
            await port.write(ArtifactDraft(kind="draft.outline", payload={...}))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Optional

import structlog
from pydantic import BaseModel

from agentics.core.exceptions import AgenticsError, UpstreamAgentError
from agentics.core.models import Artifact, ArtifactDraft, PlanGraph, PlanStep, RunInput
from agentics.infrastructure.blackboard import Blackboard


logger = structlog.get_logger()


# =============================================================================
# Step Input
# =============================================================================
class StepInput(BaseModel):
    """Everything a step agent receives about the work it should do.

    Attributes:
        owner_id: The tenant that owns the run.
        run_id: The run being executed.
        run_input: The original request (goal, flags, budget).
        plan: The full plan graph (so agents can see sibling steps).
        step: The step this agent is executing.
    """

    owner_id: str
    run_id: str
    run_input: RunInput
    plan: PlanGraph
    step: PlanStep


# =============================================================================
# Artifact Port
# =============================================================================
class ArtifactPort(ABC):
    """The only surface through which an agent touches run storage."""

    @property
    @abstractmethod
    def run_id(self) -> str: ...

    @abstractmethod
    async def write(self, draft: ArtifactDraft) -> Artifact:
        """Persist an artifact for the bound run and return the stored copy."""
        ...

    @abstractmethod
    async def log(self, message: str, level: str = "info") -> None:
        """Emit a progress message on the run's event stream."""
        ...


WriteHook = Callable[[Artifact, str], Awaitable[None]]
LogHook = Callable[[str, str, str], Awaitable[None]]
Guard = Callable[[], None]


class RunArtifactPort(ArtifactPort):
    """ArtifactPort bound to one run, one owner, one TTL and one agent.

    Args:
        blackboard: The store artifacts are saved to.
        owner_id: The run owner.
        run_id: The bound run.
        agent: Name of the agent using this port (stamped on events).
        ttl_seconds: TTL applied to every write (None = never expires).
        on_write: Awaited after each successful write (artifact, agent).
        on_log: Awaited for each log call (message, level, agent).
        guard: Called before each operation; raises to stop a canceled run.
    """

    def __init__(
        self,
        blackboard: Blackboard,
        owner_id: str,
        run_id: str,
        agent: str,
        ttl_seconds: Optional[float] = None,
        on_write: Optional[WriteHook] = None,
        on_log: Optional[LogHook] = None,
        guard: Optional[Guard] = None,
    ) -> None:
        self._blackboard = blackboard
        self._owner_id = owner_id
        self._run_id = run_id
        self._agent = agent
        self._ttl_seconds = ttl_seconds
        self._on_write = on_write
        self._on_log = on_log
        self._guard = guard
        self.written: list[Artifact] = []

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def agent(self) -> str:
        return self._agent

    async def write(self, draft: ArtifactDraft) -> Artifact:
        if self._guard is not None:
            self._guard()
        artifact = await self._blackboard.save_artifact(
            self._owner_id, self._run_id, draft, ttl_seconds=self._ttl_seconds
        )
        self.written.append(artifact)
        if self._on_write is not None:
            await self._on_write(artifact, self._agent)
        return artifact

    async def log(self, message: str, level: str = "info") -> None:
        if self._guard is not None:
            self._guard()
        if self._on_log is not None:
            await self._on_log(message, level, self._agent)


# =============================================================================
# Base Agent
# =============================================================================
class BaseAgent(ABC):
    """Abstract base class for step agents.

    What BaseAgent Handles:
        - Agent naming and bound structured logging
        - Collecting the artifacts written during one step
        - Converting unexpected failures into UpstreamAgentError

    What Subclasses Must Implement:
        - _execute(step_input, port): write artifacts through ``port``

    AgenticsError subclasses raised by _execute (a payload rejected by the
    store, a canceled run) propagate unchanged so the orchestrator records
    their own error codes.

    Example:
        >>> class SafetyAgent(BaseAgent):
        ...     async def _execute(self, step_input, port):
        ...         await port.write(ArtifactDraft(
        ...             kind="safety.report", payload={"passed": True},
        ...         ))
    """

    def __init__(self, name: str, description: Optional[str] = None) -> None:
        self._name = name
        self._description = description or ""
        self._logger = logger.bind(component="agent", agent=name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    async def run(self, step_input: StepInput, port: RunArtifactPort) -> list[Artifact]:
        """Execute one plan step and return the artifacts it wrote.

        Raises:
            UpstreamAgentError: If _execute fails with a non-Agentics error.
            AgenticsError: Propagated unchanged from _execute or the port.
        """
        self._logger.info(
            "agent_step_starting",
            run_id=step_input.run_id,
            step_id=step_input.step.id,
        )
        before = len(port.written)

        try:
            await self._execute(step_input, port)
        except AgenticsError:
            raise
        except Exception as e:
            self._logger.error(
                "agent_step_failed",
                run_id=step_input.run_id,
                step_id=step_input.step.id,
                error=str(e),
            )
            raise UpstreamAgentError(
                message=f"Agent {self._name!r} failed: {e}",
                agent=self._name,
                run_id=step_input.run_id,
                details={"step_id": step_input.step.id},
            ) from e

        produced = port.written[before:]
        self._logger.info(
            "agent_step_completed",
            run_id=step_input.run_id,
            step_id=step_input.step.id,
            artifacts=len(produced),
        )
        return produced

    @abstractmethod
    async def _execute(self, step_input: StepInput, port: ArtifactPort) -> None:
        """Agent-specific logic. Write outputs through ``port``."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r})"
