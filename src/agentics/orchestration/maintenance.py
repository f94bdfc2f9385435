"""
agentics.orchestration.maintenance - Privileged TTL Cleanup
=============================================================

The maintenance job purges expired artifacts on behalf of a scheduler. It is
a non-user operation guarded by an internal token, distinct from caller
identity.

Request Flow:
    execute(token, {"op": "ttl_cleanup", "maxRows": 500})
        │
        ├── token missing / wrong / none configured → MaintenanceAuthError (403)
        ├── op != "ttl_cleanup" or maxRows invalid  → ValidationError (400)
        ▼
    orchestrator.cleanup_ttls(max_rows)
        │
        ├── StoreError → retry with exponential backoff + jitter (RetryPolicy)
        ▼
    MaintenanceResult(ok=True, affected=N)

Idempotence:
    Calling twice with nothing newly expired returns affected=0 the second
    time, never an error.
"""

from __future__ import annotations

import asyncio
import random
import secrets
from collections.abc import Awaitable, Callable
from typing import Any, Optional, Union

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field

from agentics.core.exceptions import MaintenanceAuthError, StoreError, ValidationError
from agentics.orchestration.orchestrator import Orchestrator

logger = structlog.get_logger()


TTL_CLEANUP_OP = "ttl_cleanup"
MIN_MAX_ROWS = 1
MAX_MAX_ROWS = 10000


# =============================================================================
# Retry Policy
# =============================================================================
class RetryPolicy(BaseModel):
    """Exponential backoff with jitter for transient storage errors.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying).
        initial_delay: Delay in seconds before the first retry.
        max_delay: Upper bound of any single delay.
        backoff_multiplier: Growth factor per attempt.
        retryable_errors: Error codes worth retrying.

    Example:
        >>> policy = RetryPolicy(max_retries=5, initial_delay=0.2)
        >>> policy.calculate_delay(attempt=2)  # ~0.8s (0.2 * 2^2 + jitter)
    """

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay: float = Field(default=0.5, gt=0, le=30.0)
    max_delay: float = Field(default=10.0, gt=0, le=300.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    retryable_errors: list[str] = Field(default=["STORE_UNAVAILABLE"])

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based).

            base  = initial_delay * backoff_multiplier ** attempt
            delay = min(base + random(0, base * 0.1), max_delay)
        """
        base_delay = self.initial_delay * (self.backoff_multiplier ** attempt)
        jitter = random.uniform(0, base_delay * 0.1)
        return min(base_delay + jitter, self.max_delay)

    def is_retryable(self, error_code: str) -> bool:
        return error_code in self.retryable_errors


# =============================================================================
# Request / Result
# =============================================================================
class MaintenanceRequest(BaseModel):
    """Body of a maintenance call: ``{"op": "ttl_cleanup", "maxRows": 500}``."""

    model_config = ConfigDict(populate_by_name=True)

    op: str
    max_rows: Optional[int] = Field(
        default=None,
        alias="maxRows",
        ge=MIN_MAX_ROWS,
        le=MAX_MAX_ROWS,
    )


class MaintenanceResult(BaseModel):
    ok: bool = True
    affected: int = Field(default=0, ge=0)


# =============================================================================
# Maintenance Job
# =============================================================================
class MaintenanceJob:
    """Authenticated, retrying wrapper around Orchestrator.cleanup_ttls.

    Args:
        orchestrator: The orchestrator whose blackboard is cleaned.
        internal_token: Shared secret. None means every call is rejected.
        retry_policy: Backoff settings for StoreError (default RetryPolicy()).
        default_max_rows: Rows deleted per call when the request sends none.
        sleep: Awaitable sleep (injectable so tests do not wait).
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        internal_token: Optional[str],
        retry_policy: Optional[RetryPolicy] = None,
        default_max_rows: int = 1000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._orchestrator = orchestrator
        self._internal_token = internal_token
        self._retry_policy = retry_policy or RetryPolicy()
        self._default_max_rows = default_max_rows
        self._sleep = sleep
        self._logger = logger.bind(component="maintenance")

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def authorize(self, token: Optional[str]) -> None:
        """Constant-time token check.

        Raises:
            MaintenanceAuthError: No configured token, no token sent, or a
                mismatch.
        """
        if not self._internal_token or not token:
            raise MaintenanceAuthError()
        if not secrets.compare_digest(token.encode(), self._internal_token.encode()):
            raise MaintenanceAuthError()

    @staticmethod
    def parse_request(request: Union[MaintenanceRequest, dict[str, Any]]) -> MaintenanceRequest:
        """Validate a maintenance body.

        Raises:
            ValidationError: Malformed body, out-of-range maxRows, or an
                unrecognized op.
        """
        if not isinstance(request, MaintenanceRequest):
            try:
                request = MaintenanceRequest.model_validate(request)
            except pydantic.ValidationError as e:
                raise ValidationError(
                    message="Invalid maintenance request",
                    error_code="INVALID_MAINTENANCE_REQUEST",
                    details={"errors": e.errors(include_url=False)},
                ) from e

        if request.op != TTL_CLEANUP_OP:
            raise ValidationError(
                message=f"Unsupported maintenance op: {request.op!r}",
                error_code="UNSUPPORTED_OP",
                details={"op": request.op},
            )
        return request

    async def execute(
        self,
        token: Optional[str],
        request: Union[MaintenanceRequest, dict[str, Any]],
    ) -> MaintenanceResult:
        """Authorize, validate, and run the TTL cleanup.

        Raises:
            MaintenanceAuthError: Bad or missing token (checked first).
            ValidationError: Bad request body or op.
            StoreError: The store stayed unavailable after every retry.
        """
        self.authorize(token)
        parsed = self.parse_request(request)
        max_rows = parsed.max_rows or self._default_max_rows

        attempt = 0
        while True:
            try:
                affected = await self._orchestrator.cleanup_ttls(max_rows)
                break
            except StoreError as e:
                if attempt >= self._retry_policy.max_retries or not self._retry_policy.is_retryable(
                    e.error_code
                ):
                    self._logger.error(
                        "maintenance_cleanup_failed",
                        attempts=attempt + 1,
                        error=e.message,
                    )
                    raise
                delay = self._retry_policy.calculate_delay(attempt)
                self._logger.warning(
                    "maintenance_cleanup_retrying",
                    attempt=attempt + 1,
                    delay_seconds=round(delay, 3),
                    error=e.message,
                )
                await self._sleep(delay)
                attempt += 1

        self._logger.info("maintenance_cleanup_completed", affected=affected, max_rows=max_rows)
        return MaintenanceResult(ok=True, affected=affected)
