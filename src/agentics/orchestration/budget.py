"""
agentics.orchestration.budget - Per-Run Budget Manager
========================================================

The BudgetManager guards a run's hard spending cap. Every agent step debits
its estimated cost here BEFORE it runs.

Atomic Precheck-then-Commit:
    debit() checks ``spent + amount <= cap`` and only then commits the new
    spend. A rejected debit leaves ``spent`` untouched:

        cap=1.0, spent=0.0
        debit(0.4)  → ok,       spent=0.4
        debit(0.7)  → rejected, spent=0.4   (never 1.1)

    Debits are serialized with an asyncio.Lock, so concurrent agents of the
    same run cannot both pass the check against the same stale spend.
"""

from __future__ import annotations

import asyncio

import structlog

from agentics.core.exceptions import BudgetExceeded, ValidationError
from agentics.core.models import BudgetState

logger = structlog.get_logger()

# Float slack for sums like 0.1 + 0.2 against a 0.3 cap.
TOLERANCE = 1e-9


class BudgetManager:
    """Single-writer spend tracker for one run.

    Args:
        hard_cap_usd: Maximum spend for the run.
        initial_spent: Spend already committed (e.g., restored state).

    Raises:
        ValidationError: Negative cap or spend, or spend above the cap.

    Example:
        >>> budget = BudgetManager(hard_cap_usd=1.0)
        >>> await budget.debit(0.4)
        BudgetState(hard_cap_usd=1.0, spent_usd=0.4)
    """

    def __init__(self, hard_cap_usd: float, initial_spent: float = 0.0) -> None:
        if hard_cap_usd < 0 or initial_spent < 0:
            raise ValidationError(
                message="Budget cap and spend must be non-negative",
                error_code="INVALID_BUDGET",
                details={"hard_cap_usd": hard_cap_usd, "initial_spent": initial_spent},
            )
        if initial_spent > hard_cap_usd + TOLERANCE:
            raise ValidationError(
                message="Initial spend exceeds the hard cap",
                error_code="INVALID_BUDGET",
                details={"hard_cap_usd": hard_cap_usd, "initial_spent": initial_spent},
            )
        self._hard_cap_usd = float(hard_cap_usd)
        self._spent_usd = float(initial_spent)
        self._lock = asyncio.Lock()

    @classmethod
    def from_state(cls, state: BudgetState) -> BudgetManager:
        return cls(hard_cap_usd=state.hard_cap_usd, initial_spent=state.spent_usd)

    @property
    def hard_cap_usd(self) -> float:
        return self._hard_cap_usd

    @property
    def spent_usd(self) -> float:
        return self._spent_usd

    @property
    def remaining_usd(self) -> float:
        return max(0.0, self._hard_cap_usd - self._spent_usd)

    @property
    def state(self) -> BudgetState:
        """Snapshot of the current cap and spend."""
        return BudgetState(hard_cap_usd=self._hard_cap_usd, spent_usd=self._spent_usd)

    async def debit(self, amount: float) -> BudgetState:
        """Commit ``amount`` if it fits under the cap.

        Args:
            amount: USD to debit. Zero is allowed and always succeeds.

        Returns:
            The budget state after the debit.

        Raises:
            ValidationError: If amount is negative.
            BudgetExceeded: If the debit would breach the cap. Spend is
                unchanged.
        """
        if amount < 0:
            raise ValidationError(
                message="Debit amount must be non-negative",
                error_code="INVALID_DEBIT",
                details={"amount_usd": amount},
            )

        async with self._lock:
            projected = self._spent_usd + amount
            if projected > self._hard_cap_usd + TOLERANCE:
                logger.warning(
                    "budget_debit_rejected",
                    hard_cap_usd=self._hard_cap_usd,
                    spent_usd=self._spent_usd,
                    amount_usd=amount,
                )
                raise BudgetExceeded(
                    message=(
                        f"Debit of {amount:.4f} USD would exceed the "
                        f"{self._hard_cap_usd:.4f} USD cap"
                    ),
                    hard_cap_usd=self._hard_cap_usd,
                    spent_usd=self._spent_usd,
                    amount_usd=amount,
                )
            self._spent_usd = min(projected, self._hard_cap_usd)
            return self.state

    def __repr__(self) -> str:
        return (
            f"BudgetManager(hard_cap_usd={self._hard_cap_usd}, "
            f"spent_usd={self._spent_usd})"
        )
