"""
Payment Reconciler

Checks a sale's payment composition against its total price.
"""

from decimal import Decimal
from typing import Iterable

from ..config import SettlementConfig
from ..models import PaymentLine, PaymentMethodEntry, PaymentReconciliation
from .amortization import AmortizationCalculator


class PaymentReconciler:
    """Sums payment entries and decides whether they cover the sale."""

    def __init__(
        self,
        config: SettlementConfig | None = None,
        amortization: AmortizationCalculator | None = None
    ):
        self.config = config or SettlementConfig()
        self.amortization = amortization or AmortizationCalculator(self.config)

    def reconcile(
        self,
        methods: Iterable[PaymentMethodEntry],
        expected_total: Decimal
    ) -> PaymentReconciliation:
        """
        Reconcile payment entries against the expected total.

        The sum is exact (no rounding); balance is judged with the configured
        epsilon. Imbalance is reported, never raised.
        """
        methods = list(methods)
        total = sum((entry.amount for entry in methods), Decimal('0'))
        remaining = expected_total - total

        return PaymentReconciliation(
            total=total,
            remaining=remaining,
            is_balanced=abs(remaining) < self.config.balance_epsilon,
            lines=tuple(self._build_line(entry) for entry in methods),
        )

    def _build_line(self, entry: PaymentMethodEntry) -> PaymentLine:
        if not entry.is_financing or entry.financing is None:
            return PaymentLine(id=entry.id, method=entry.method, amount=entry.amount)

        terms = entry.financing
        financed = entry.effective_financed_value
        return PaymentLine(
            id=entry.id,
            method=entry.method,
            amount=entry.amount,
            financed_value=financed,
            installments=terms.installments,
            interest_rate=terms.interest_rate,
            installment_value=self.amortization.compute_installment(
                financed, terms.installments, terms.interest_rate
            ),
        )
