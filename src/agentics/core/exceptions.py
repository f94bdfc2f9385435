"""
agentics.core.exceptions - Custom Exception Hierarchy
=======================================================

This module defines the structured exception hierarchy for Agentics.
Components raise and catch specific exception types that carry an error
code and a details dict, so the HTTP boundary and the orchestrator can
decide what to do without parsing message strings.

Exception Hierarchy:
    AgenticsError (base)
        ├── ConfigurationError     - Invalid or inconsistent configuration
        ├── ValidationError        - Malformed request body or artifact payload
        ├── AuthError              - No resolvable caller identity
        ├── NotFoundError          - Run absent OR owned by someone else
        ├── BudgetExceeded         - A debit would breach the hard cap
        ├── UpstreamAgentError     - A capability (planner, imagery...) failed
        ├── MaintenanceAuthError   - Bad or missing internal token
        ├── StoreError             - Transient storage failure
        └── RunCanceled            - Internal signal: the run was canceled

Error Handling Flow:
    Agent raises UpstreamAgentError / BudgetExceeded
        → Orchestrator catches it at the run boundary
        → Run transitions to FAILED with error metadata
        → Terminal ERROR event is published

    Route raises ValidationError / AuthError / NotFoundError
        → FastAPI exception handler renders the error envelope
        → Never retried

    Blackboard raises StoreError during cleanup
        → MaintenanceJob retries with backoff

Usage:
    >>> from agentics.core.exceptions import BudgetExceeded
    >>> raise BudgetExceeded(
    ...     message="Debit of 0.70 USD would exceed the 1.00 USD cap",
    ...     hard_cap_usd=1.0, spent_usd=0.4, amount_usd=0.7,
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All Agentics exceptions inherit from this base class, so framework errors
# can be caught with a single except clause:
#
#   try:
#       await orchestrator.run(owner_id, run_input)
#   except AgenticsError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class AgenticsError(Exception):
    """Base exception for all Agentics errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code for programmatic handling.
            Convention: UPPER_SNAKE_CASE (e.g., "BUDGET_EXCEEDED").
        details: Arbitrary dict with additional debugging context.

    Example:
        >>> try:
        ...     do_something()
        ... except AgenticsError as e:
        ...     print(f"[{e.error_code}] {e.message}")
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Used for structured logging, the HTTP error envelope, and the
        ``error`` metadata recorded on failed runs.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
# Raised at composition time. The application should fail fast instead of
# running with a half-configured backend.
# =============================================================================
class ConfigurationError(AgenticsError):
    """Raised when Agentics configuration is invalid or missing.

    Common Causes:
        - Persistence enabled without a database URL
        - Malformed YAML configuration file

    Example:
        >>> raise ConfigurationError(
        ...     message="persistence.enabled requires persistence.database_url",
        ...     error_code="MISSING_DATABASE_URL",
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Client Errors
# =============================================================================
# These are surfaced immediately to the caller and never retried.
# =============================================================================
class ValidationError(AgenticsError):
    """Raised when a request body or artifact payload is malformed.

    The blackboard raises this when an artifact's payload does not match the
    schema registered for its kind, and the maintenance job raises it for an
    unrecognized ``op``.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class AuthError(AgenticsError):
    """Raised when a request carries no resolvable caller identity."""

    def __init__(
        self,
        message: str = "missing user",
        error_code: str = "AUTH_REQUIRED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class NotFoundError(AgenticsError):
    """Raised when a run is absent or not owned by the caller.

    The two causes are deliberately indistinguishable: the message, code and
    details never reveal whether the run exists for another tenant.
    """

    def __init__(
        self,
        message: str = "run not found",
        error_code: str = "NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Run-Terminal Errors
# =============================================================================
# Raised inside a run. The orchestrator converts both into a FAILED run with
# the error recorded as metadata; neither escapes Orchestrator.run().
# =============================================================================
class BudgetExceeded(AgenticsError):
    """Raised when a debit would push spend past the run's hard cap.

    The BudgetManager raises this BEFORE mutating its counter, so the tracked
    spend after a rejected debit is exactly what it was before.

    Attributes:
        hard_cap_usd: The run's cap.
        spent_usd: Spend at the time of the rejected debit.
        amount_usd: The rejected debit amount.
    """

    def __init__(
        self,
        message: str,
        hard_cap_usd: float,
        spent_usd: float,
        amount_usd: float,
        error_code: str = "BUDGET_EXCEEDED",
    ) -> None:
        self.hard_cap_usd = hard_cap_usd
        self.spent_usd = spent_usd
        self.amount_usd = amount_usd
        super().__init__(
            message=message,
            error_code=error_code,
            details={
                "hard_cap_usd": hard_cap_usd,
                "spent_usd": spent_usd,
                "amount_usd": amount_usd,
            },
        )


class UpstreamAgentError(AgenticsError):
    """Raised when an agent capability call fails.

    Attributes:
        agent: Name of the agent that failed ("planner", "imagery", ...).
        run_id: The run the agent was working on, when known.

    Example:
        >>> raise UpstreamAgentError(
        ...     message="TTS provider returned 503",
        ...     agent="audiobook",
        ...     run_id="7c1f...",
        ... )
    """

    def __init__(
        self,
        message: str,
        agent: str,
        run_id: Optional[str] = None,
        error_code: str = "UPSTREAM_AGENT_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = dict(details or {})
        enriched_details["agent"] = agent
        if run_id is not None:
            enriched_details["run_id"] = run_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)
        self.agent = agent
        self.run_id = run_id


# =============================================================================
# Privileged / Infrastructure Errors
# =============================================================================
class MaintenanceAuthError(AgenticsError):
    """Raised when the maintenance credential is missing or wrong."""

    def __init__(
        self,
        message: str = "forbidden",
        error_code: str = "MAINTENANCE_FORBIDDEN",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class StoreError(AgenticsError):
    """Raised when the blackboard backend is unavailable or a write fails.

    These are transient: the maintenance job retries them, the orchestrator
    does not.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "STORE_UNAVAILABLE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class RunCanceled(AgenticsError):
    """Raised inside a run's task once the run has been canceled.

    Only the orchestrator raises and catches this; it never reaches callers.
    """

    def __init__(
        self,
        run_id: str,
        message: str = "run canceled",
        error_code: str = "RUN_CANCELED",
    ) -> None:
        super().__init__(message=message, error_code=error_code, details={"run_id": run_id})
        self.run_id = run_id
