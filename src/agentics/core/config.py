"""
agentics.core.config - Configuration Management
=================================================

This module provides the configuration system for Agentics. Configuration
can be loaded from multiple sources with the following priority (highest first):

    1. Explicit constructor arguments (load_config passes YAML values here)
    2. Environment variables (prefixed with AGENTICS_)
    3. Default values defined in the models below

Architecture Context:
    Configuration flows DOWN through the system. The top-level AgenticsConfig
    is created once by the composition root (agentics.facade) and handed to
    every component:

        AgenticsConfig
            ├── PersistenceConfig  → blackboard factory (memory vs SQL)
            ├── BudgetConfig       → Orchestrator → BudgetManager
            ├── ArtifactConfig     → Orchestrator (plan TTL), routes (clamp)
            ├── StreamConfig       → EventBus, SSE bridge
            └── MaintenanceConfig  → MaintenanceJob

Usage:
    # Load from environment variables:
    config = AgenticsConfig()

    # Load from YAML file:
    config = load_config("agentics.yaml")

    # Explicit overrides:
    config = AgenticsConfig(feature_enabled=True, log_level="DEBUG")

Environment Variables:
    AGENTICS_FEATURE_ENABLED=true
    AGENTICS_PERSISTENCE__ENABLED=true
    AGENTICS_PERSISTENCE__DATABASE_URL=postgresql+asyncpg://...
    AGENTICS_MAINTENANCE__INTERNAL_TOKEN=...
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

from agentics.core.exceptions import ConfigurationError


# =============================================================================
# Persistence Configuration
# =============================================================================
# Controls which blackboard backend the composition root builds. The choice
# is made once (agentics.infrastructure.factory) and never re-checked by the
# orchestrator.
# =============================================================================
class PersistenceConfig(BaseModel):
    """Configuration for the persistent blackboard backend.

    Attributes:
        enabled: Use the SQL backend. When False (or no URL is configured)
            the ephemeral in-memory backend is used.
        database_url: SQLAlchemy async URL, e.g.
            ``postgresql+asyncpg://user:pw@host/db`` or ``sqlite+aiosqlite:///runs.db``.
        echo: Log every SQL statement (debugging only).
    """

    enabled: bool = Field(
        default=False,
        description="Use the persistent SQL blackboard",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )


# =============================================================================
# Budget Configuration
# =============================================================================
class BudgetConfig(BaseModel):
    """Default and maximum per-run budget caps.

    A run request may lower or raise its cap, but never above max_cap_usd.
    """

    default_cap_usd: float = Field(
        default=1.0,
        gt=0,
        description="Hard cap applied when a run does not request one",
    )
    max_cap_usd: float = Field(
        default=25.0,
        gt=0,
        description="Upper bound for a caller-requested cap",
    )


# =============================================================================
# Artifact Configuration
# =============================================================================
class ArtifactConfig(BaseModel):
    """Artifact lifetime settings.

    Attributes:
        plan_ttl_seconds: Lifetime of the plan.graph artifact (one day).
        min_ttl_seconds: Lower clamp for a caller-supplied TTL.
        max_ttl_seconds: Upper clamp for a caller-supplied TTL.
    """

    plan_ttl_seconds: int = Field(default=86400, ge=1)
    min_ttl_seconds: int = Field(default=10, ge=1)
    max_ttl_seconds: int = Field(default=86400, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> ArtifactConfig:
        if self.min_ttl_seconds > self.max_ttl_seconds:
            raise ValueError("min_ttl_seconds must not exceed max_ttl_seconds")
        return self

    def clamp_ttl(self, ttl_seconds: Optional[float]) -> int:
        """Clamp a caller-supplied TTL into [min_ttl_seconds, max_ttl_seconds].

        None, NaN and infinities fall back to plan_ttl_seconds (also clamped).
        """
        if ttl_seconds is None or not math.isfinite(ttl_seconds):
            value = self.plan_ttl_seconds
        else:
            value = int(ttl_seconds)
        return max(self.min_ttl_seconds, min(self.max_ttl_seconds, value))


# =============================================================================
# Stream Configuration
# =============================================================================
class StreamConfig(BaseModel):
    """Event stream (SSE bridge) settings."""

    heartbeat_seconds: float = Field(default=10.0, gt=0)
    idle_timeout_seconds: float = Field(default=30.0, gt=0)
    queue_size: int = Field(
        default=256,
        ge=1,
        description="Per-subscriber queue bound; overflow drops events",
    )


# =============================================================================
# Maintenance Configuration
# =============================================================================
class MaintenanceConfig(BaseModel):
    """Settings for the privileged TTL cleanup job.

    Attributes:
        internal_token: Shared secret for the maintenance endpoint. When
            unset, every maintenance call is rejected.
        default_max_rows: Rows deleted per call when the caller sends none.
        max_retries: Retries of transient storage errors.
    """

    internal_token: Optional[str] = Field(default=None)
    default_max_rows: int = Field(default=1000, ge=1, le=10000)
    max_retries: int = Field(default=3, ge=0, le=10)


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   AGENTICS_LOG_LEVEL                      → config.log_level
#   AGENTICS_FEATURE_ENABLED                → config.feature_enabled
#   AGENTICS_PERSISTENCE__DATABASE_URL      → config.persistence.database_url
#   AGENTICS_MAINTENANCE__INTERNAL_TOKEN    → config.maintenance.internal_token
# =============================================================================
class AgenticsConfig(BaseSettings):
    """Top-level configuration for Agentics.

    Attributes:
        environment: Deployment environment.
        log_level: Logging level for structlog output.
        log_json: Render logs as JSON lines instead of console output.
        feature_enabled: Feature flag for the HTTP surface. When False every
            route answers 404.
        persistence: Backend selection (see PersistenceConfig).
        budget: Per-run budget caps (see BudgetConfig).
        artifacts: Artifact TTL settings (see ArtifactConfig).
        stream: Event stream settings (see StreamConfig).
        maintenance: Maintenance job settings (see MaintenanceConfig).

    Example:
        >>> config = AgenticsConfig(
        ...     feature_enabled=True,
        ...     maintenance=MaintenanceConfig(internal_token="s3cret"),
        ... )
    """

    # -------------------------------------------------------------------------
    # General Settings
    # -------------------------------------------------------------------------
    environment: Literal["dev", "test", "staging", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    feature_enabled: bool = Field(
        default=False,
        description="Expose the agentics HTTP routes",
    )

    # -------------------------------------------------------------------------
    # Nested Configurations
    # -------------------------------------------------------------------------
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    artifacts: ArtifactConfig = Field(default_factory=ArtifactConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)

    model_config = {
        "env_prefix": "AGENTICS_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @property
    def use_persistent_backend(self) -> bool:
        """Whether the composition root should build the SQL blackboard."""
        return self.persistence.enabled and bool(self.persistence.database_url)


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> AgenticsConfig:
    """Load Agentics configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'agentics.yaml' in the current directory, falling back to pure
            defaults + environment variables. Keys present in the file take
            precedence over environment variables.

    Returns:
        A fully validated AgenticsConfig instance.

    Raises:
        ConfigurationError: If the YAML file exists but cannot be parsed.
        FileNotFoundError: If an explicit path is provided but doesn't exist.
    """
    if path is None:
        default_path = Path("agentics.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    message=f"Invalid YAML in {path}: {e}",
                    error_code="INVALID_CONFIG_FILE",
                    details={"path": path},
                ) from e
            if isinstance(raw_data, dict):
                yaml_data = raw_data

    return AgenticsConfig(**yaml_data)
