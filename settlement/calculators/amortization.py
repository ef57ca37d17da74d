"""
Amortization Calculator

Fixed-installment (Price table / French) financing math.
"""

import logging
from decimal import Decimal

from ..config import SettlementConfig
from ..models import FinancingPlan, ScheduleRow

logger = logging.getLogger(__name__)


class AmortizationCalculator:
    """Computes installment values and schedules for a financed balance."""

    def __init__(self, config: SettlementConfig | None = None):
        self.config = config or SettlementConfig()

    def compute_installment(
        self,
        financed_value: Decimal,
        installments: int,
        periodic_rate: Decimal
    ) -> Decimal:
        """
        Installment value for a financed balance.

        periodic_rate is a percentage per period; the caller decides what a
        period is. installments <= 0 yields 0, callers must reject such
        schedules before displaying anything.
        """
        return self.config.quantize(
            self._raw_installment(financed_value, installments, periodic_rate)
        )

    def build_schedule(
        self,
        financed_value: Decimal,
        installments: int,
        periodic_rate: Decimal
    ) -> FinancingPlan:
        """
        Full Price-table schedule.

        Interest is charged on the outstanding balance each period. The last
        row absorbs rounding so the balance closes at exactly zero.
        """
        installment = self.compute_installment(financed_value, installments, periodic_rate)
        if installments <= 0:
            return FinancingPlan(
                principal=financed_value,
                periodic_rate=periodic_rate,
                installments=installments,
                installment_value=installment,
                total_paid=Decimal('0'),
                total_interest=Decimal('0'),
            )

        rate = periodic_rate / Decimal('100')
        balance = financed_value
        rows = []
        for period in range(1, installments + 1):
            interest = self.config.quantize(balance * rate)
            if period == installments:
                principal = balance
                payment = principal + interest
            else:
                principal = installment - interest
                payment = installment
            balance -= principal
            rows.append(ScheduleRow(
                period=period,
                installment=payment,
                interest=interest,
                principal=principal,
                balance=balance,
            ))

        total_paid = sum((row.installment for row in rows), Decimal('0'))
        return FinancingPlan(
            principal=financed_value,
            periodic_rate=periodic_rate,
            installments=installments,
            installment_value=installment,
            total_paid=total_paid,
            total_interest=total_paid - financed_value,
            rows=tuple(rows),
        )

    def _raw_installment(
        self,
        financed_value: Decimal,
        installments: int,
        periodic_rate: Decimal
    ) -> Decimal:
        if installments <= 0:
            return Decimal('0')

        if financed_value < 0:
            # Passed through untouched so the upstream sign error stays visible
            logger.warning(
                "Negative financed value %s for %d installments", financed_value, installments
            )

        if periodic_rate == 0:
            return financed_value / Decimal(installments)

        rate = periodic_rate / Decimal('100')
        growth = (Decimal('1') + rate) ** installments
        return financed_value * (rate * growth) / (growth - Decimal('1'))
