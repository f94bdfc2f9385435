"""
agentics.agents.writers - Built-in Writing Agents
===================================================

Deterministic outline and draft agents. They produce the ``draft.outline``
and ``draft.sections`` artifacts for the first two plan steps without any
model provider, which makes them useful for local runs and tests. Register
them with the orchestrator to have those steps executed:

    >>> orchestrator = Orchestrator(agents=[OutlineAgent(), DraftAgent()])
"""

from __future__ import annotations

from agentics.agents.base import ArtifactPort, BaseAgent, StepInput
from agentics.core.enums import ArtifactKind
from agentics.core.models import (
    ArtifactDraft,
    DraftSection,
    DraftSectionsPayload,
    OutlinePayload,
)


def outline_sections(goal: str) -> list[str]:
    """The section headings for a goal. Shared by both agents."""
    return ["Introduction", goal, "Conclusion"]


class OutlineAgent(BaseAgent):
    """Writes the outline for the run's goal."""

    def __init__(self) -> None:
        super().__init__(name="outline", description="Section outline for the goal")

    async def _execute(self, step_input: StepInput, port: ArtifactPort) -> None:
        payload = OutlinePayload(sections=outline_sections(step_input.plan.goal))
        await port.write(
            ArtifactDraft(kind=ArtifactKind.DRAFT_OUTLINE, label="outline", payload=payload)
        )


class DraftAgent(BaseAgent):
    """Writes one short body paragraph per outline section."""

    def __init__(self) -> None:
        super().__init__(name="draft", description="Draft body for each outline section")

    async def _execute(self, step_input: StepInput, port: ArtifactPort) -> None:
        goal = step_input.plan.goal
        sections = [
            DraftSection(heading=heading, body=f"{heading}: notes on {goal}.")
            for heading in outline_sections(goal)
        ]
        await port.log(f"drafted {len(sections)} sections")
        await port.write(
            ArtifactDraft(
                kind=ArtifactKind.DRAFT_SECTIONS,
                label="draft",
                payload=DraftSectionsPayload(sections=sections),
            )
        )
