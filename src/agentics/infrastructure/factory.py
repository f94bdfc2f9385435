"""
agentics.infrastructure.factory - Blackboard Backend Selection
================================================================

The backend (persistent SQL vs ephemeral in-memory) is chosen exactly once,
here, by the composition root. Nothing downstream ever re-checks the
persistence flag.
"""

from __future__ import annotations

from typing import Optional

import structlog

from agentics.core.config import AgenticsConfig
from agentics.core.exceptions import ConfigurationError
from agentics.infrastructure.blackboard import Blackboard, Clock, InMemoryBlackboard

logger = structlog.get_logger()


def create_blackboard(
    config: Optional[AgenticsConfig] = None,
    clock: Optional[Clock] = None,
) -> Blackboard:
    """Build the blackboard backend selected by configuration.

    Args:
        config: Agentics configuration (defaults read from the environment).
        clock: Optional time source passed to the backend.

    Returns:
        SQLBlackboard when persistence is enabled, else InMemoryBlackboard.

    Raises:
        ConfigurationError: Persistence enabled without a database URL.
    """
    config = config or AgenticsConfig()
    persistence = config.persistence

    if persistence.enabled and not persistence.database_url:
        raise ConfigurationError(
            message="Persistence is enabled but no database_url is configured",
            error_code="MISSING_DATABASE_URL",
            details={"setting": "AGENTICS_PERSISTENCE__DATABASE_URL"},
        )

    if config.use_persistent_backend:
        # Imported lazily so the in-memory path never loads SQLAlchemy.
        from agentics.infrastructure.sql_blackboard import SQLBlackboard

        logger.info("blackboard_selected", backend="sql")
        return SQLBlackboard(
            persistence.database_url,  # type: ignore[arg-type]
            echo=persistence.echo,
            clock=clock,
        )

    logger.info("blackboard_selected", backend="memory")
    return InMemoryBlackboard(clock=clock)
