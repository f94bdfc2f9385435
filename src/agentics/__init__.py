"""
Agentics - Multi-Agent Run Orchestrator
=========================================

Agentics executes writing pipelines ("runs") as a sequence of agent steps,
records every output on a shared blackboard, enforces a per-run spending
cap, and streams lifecycle events to observers:

    planner → outline → draft → (imagery, audiobook) → safety

Architecture Layers (top to bottom):
    1. API Layer            - FastAPI routes, SSE bridge, error envelope
    2. Orchestration Layer  - Orchestrator, BudgetManager, EventBus, MaintenanceJob
    3. Agent Layer          - PlannerAgent, BaseAgent step agents
    4. Infrastructure Layer - Blackboard (in-memory or SQL)

Quick Start:
    >>> from agentics import Agentics
    >>> from agentics.core.models import RunInput
    >>> async with Agentics() as agentics:
    ...     handle = await agentics.run("user-1", RunInput(goal="Test X"))
"""

__version__ = "0.1.0"

from agentics.facade import Agentics

__all__ = ["Agentics", "__version__"]
