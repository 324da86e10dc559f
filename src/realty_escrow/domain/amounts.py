"""Payment amount breakdown and the money-safety checks around it.

Two invariants hold after every payment transition:
    1. total == rent + deposit + commission
    2. the commission component never changes once the payment exists

A refund zeroes rent and deposit and keeps the commission as realized revenue.
Violations raise; nothing here ever corrects an amount silently.
"""

from __future__ import annotations

from dataclasses import dataclass

from realty_escrow.domain.exceptions import AmountInvariantError, CommissionMutationError


@dataclass(frozen=True)
class PaymentAmounts:
    rent: int
    deposit: int
    commission: int
    total: int

    @classmethod
    def of(cls, rent: int, deposit: int, commission: int) -> PaymentAmounts:
        amounts = cls(rent=rent, deposit=deposit, commission=commission,
                      total=rent + deposit + commission)
        amounts.check()
        return amounts

    @property
    def refundable(self) -> int:
        return self.rent + self.deposit

    def check(self) -> None:
        """Raise AmountInvariantError if the breakdown is inconsistent."""
        for name in ("rent", "deposit", "commission"):
            if getattr(self, name) < 0:
                raise AmountInvariantError(f"{name} component is negative")
        if self.total != self.rent + self.deposit + self.commission:
            raise AmountInvariantError(
                f"total {self.total} != {self.rent} + {self.deposit} + {self.commission}"
            )

    def after_refund(self) -> PaymentAmounts:
        """Breakdown once the refundable components have been returned."""
        return PaymentAmounts.of(rent=0, deposit=0, commission=self.commission)


def guard_transition(payment_id: str, before: PaymentAmounts, after: PaymentAmounts) -> None:
    """Check both money invariants across a transition.

    Raises:
        CommissionMutationError: The commission component would change.
        AmountInvariantError: The new breakdown does not add up.
    """
    if before.commission != after.commission:
        raise CommissionMutationError(payment_id, before.commission, after.commission)
    after.check()
