"""
agentics.core - Foundation Layer
==================================

This package contains the building blocks every other module depends on:

    - config:      Configuration management (AgenticsConfig and nested models)
    - enums:       RunStatus, ArtifactKind, EventType
    - exceptions:  The error taxonomy (ValidationError, BudgetExceeded, ...)
    - models:      Run, Artifact, BudgetState, payload schemas
    - events:      AgentStepEvent tagged union
    - logging:     structlog configuration

Dependency Rule:
    core/ depends on NOTHING else in the agentics package.
"""

from agentics.core.config import AgenticsConfig, load_config
from agentics.core.enums import ArtifactKind, EventType, RunStatus
from agentics.core.exceptions import (
    AgenticsError,
    AuthError,
    BudgetExceeded,
    ConfigurationError,
    MaintenanceAuthError,
    NotFoundError,
    RunCanceled,
    StoreError,
    UpstreamAgentError,
    ValidationError,
)
from agentics.core.models import (
    Artifact,
    ArtifactDraft,
    BudgetState,
    PlanGraph,
    PlanStep,
    Run,
    RunHandle,
    RunInput,
    RunPatch,
    RunSummary,
)

__all__ = [
    # Config
    "AgenticsConfig",
    "load_config",
    # Enums
    "ArtifactKind",
    "EventType",
    "RunStatus",
    # Exceptions
    "AgenticsError",
    "AuthError",
    "BudgetExceeded",
    "ConfigurationError",
    "MaintenanceAuthError",
    "NotFoundError",
    "RunCanceled",
    "StoreError",
    "UpstreamAgentError",
    "ValidationError",
    # Models
    "Artifact",
    "ArtifactDraft",
    "BudgetState",
    "PlanGraph",
    "PlanStep",
    "Run",
    "RunHandle",
    "RunInput",
    "RunPatch",
    "RunSummary",
]
