"""
agentics.orchestration - Run Orchestration Layer
==================================================

    - budget:        BudgetManager (atomic precheck-then-commit debits)
    - event_bus:     EventBus ABC + InMemoryEventBus (bounded per-subscriber queues)
    - orchestrator:  Orchestrator (run lifecycle, cancel, status)
    - maintenance:   MaintenanceJob + RetryPolicy (privileged TTL cleanup)
"""

from agentics.orchestration.budget import BudgetManager
from agentics.orchestration.event_bus import EventBus, EventStream, InMemoryEventBus, Subscription
from agentics.orchestration.maintenance import (
    MaintenanceJob,
    MaintenanceRequest,
    MaintenanceResult,
    RetryPolicy,
)
from agentics.orchestration.orchestrator import Orchestrator

__all__ = [
    "BudgetManager",
    "EventBus",
    "EventStream",
    "InMemoryEventBus",
    "MaintenanceJob",
    "MaintenanceRequest",
    "MaintenanceResult",
    "Orchestrator",
    "RetryPolicy",
    "Subscription",
]
