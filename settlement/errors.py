"""
Settlement rejections and advisories.

Business rejections are returned to the caller as SettlementError values.
Structurally invalid input raises ValueError from the validator instead.
"""

from dataclasses import dataclass
from decimal import Decimal

UNBALANCED_PAYMENTS = "UnbalancedPayments"
INVALID_AMORTIZATION_SCHEDULE = "InvalidAmortizationSchedule"

# Advisory only: settlement succeeds with zero commission
NO_APPLICABLE_COMMISSION_RULE = "NoApplicableCommissionRule"


@dataclass(frozen=True)
class SettlementError:
    """A refused settlement. No partial result accompanies it."""

    kind: str
    message: str
    remaining: Decimal | None = None
    payment_id: str | None = None

    @classmethod
    def unbalanced(cls, remaining: Decimal) -> "SettlementError":
        return cls(
            kind=UNBALANCED_PAYMENTS,
            message=f"Payment methods do not add up to the sale price (remaining {remaining:,.2f})",
            remaining=remaining,
        )

    @classmethod
    def invalid_schedule(cls, payment_id: str, installments: int) -> "SettlementError":
        return cls(
            kind=INVALID_AMORTIZATION_SCHEDULE,
            message=f"Financing entry '{payment_id}' must have installments > 0, got: {installments}",
            payment_id=payment_id,
        )

    def to_dict(self) -> dict:
        result = {"kind": self.kind, "message": self.message}
        if self.remaining is not None:
            result["remaining"] = round(float(self.remaining), 2)
        if self.payment_id is not None:
            result["payment_id"] = self.payment_id
        return result
