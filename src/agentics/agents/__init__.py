"""
agentics.agents - Agent Capabilities
======================================

    - base:     BaseAgent (template method), StepInput, ArtifactPort
    - planner:  PlannerAgent, the deterministic plan builder
    - writers:  OutlineAgent, DraftAgent (built-in step agents)

Imagery, audiobook and safety agents are provided by integrators as
BaseAgent subclasses registered with the orchestrator.
"""

from agentics.agents.base import ArtifactPort, BaseAgent, RunArtifactPort, StepInput
from agentics.agents.planner import DEFAULT_STEP_COSTS, PlannerAgent
from agentics.agents.writers import DraftAgent, OutlineAgent

__all__ = [
    "ArtifactPort",
    "BaseAgent",
    "DEFAULT_STEP_COSTS",
    "DraftAgent",
    "OutlineAgent",
    "PlannerAgent",
    "RunArtifactPort",
    "StepInput",
]
