"""
agentics.agents.planner - Deterministic Planner
=================================================

The planner turns a RunInput into a PlanGraph. It is synchronous and pure:
the same (owner_id, input) always yields the same plan, which is what makes
runs reproducible and testable.

Plan Shape:
    outline ──→ draft ──┬──→ imagery     (include_images)
                        ├──→ audiobook   (include_audio)
                        └──→ safety      (include_safety, depends on all above)

Step costs come from a per-agent cost table; the orchestrator debits each
step's estimated cost before running its agent.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

import structlog

from agentics.core.models import PlanGraph, PlanStep, RunInput

logger = structlog.get_logger()


# Estimated USD cost per step agent.
DEFAULT_STEP_COSTS: dict[str, float] = {
    "outline": 0.05,
    "draft": 0.20,
    "imagery": 0.30,
    "audiobook": 0.40,
    "safety": 0.02,
}


class PlannerAgent:
    """Builds the plan graph for a run.

    Args:
        step_costs: Override of the per-agent cost table. Agents missing
            from the table cost 0.

    Example:
        >>> planner = PlannerAgent()
        >>> plan = planner.plan("user-1", RunInput(goal="Test X"))
        >>> [s.id for s in plan.steps]
        ['outline', 'draft']
    """

    name = "planner"

    def __init__(self, step_costs: Optional[Mapping[str, float]] = None) -> None:
        self._step_costs = dict(DEFAULT_STEP_COSTS)
        if step_costs:
            self._step_costs.update(step_costs)
        self._logger = logger.bind(component="planner")

    @property
    def step_costs(self) -> dict[str, float]:
        return dict(self._step_costs)

    def _step(
        self,
        step_id: str,
        title: str,
        depends_on: Optional[list[str]] = None,
    ) -> PlanStep:
        return PlanStep(
            id=step_id,
            agent=step_id,
            title=title,
            depends_on=depends_on or [],
            estimated_cost_usd=self._step_costs.get(step_id, 0.0),
        )

    def plan(self, owner_id: str, run_input: RunInput) -> PlanGraph:
        """Produce the plan for one run.

        Args:
            owner_id: The run owner (recorded in logs only; the plan does
                not vary by owner).
            run_input: The run request.

        Returns:
            A validated PlanGraph.
        """
        goal = run_input.goal.strip()
        steps = [
            self._step("outline", f"Outline: {goal}"),
            self._step("draft", f"Draft sections for: {goal}", ["outline"]),
        ]
        if run_input.include_images:
            steps.append(self._step("imagery", "Render illustrations", ["draft"]))
        if run_input.include_audio:
            steps.append(self._step("audiobook", "Render audiobook narration", ["draft"]))
        if run_input.include_safety:
            steps.append(
                self._step("safety", "Safety review", [step.id for step in steps])
            )

        plan = PlanGraph(goal=goal, steps=steps)
        self._logger.debug(
            "plan_built",
            owner_id=owner_id,
            steps=[step.id for step in steps],
            estimated_cost_usd=round(plan.estimated_cost_usd, 6),
        )
        return plan
