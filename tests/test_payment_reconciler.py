"""
Unit Tests for Payment Reconciler
"""

import pytest
from decimal import Decimal
from settlement.calculators.payments import PaymentReconciler
from settlement.config import SettlementConfig
from settlement.models import FinancingTerms, PaymentMethodEntry


def pay(entry_id, method, amount, **terms):
    financing = None
    if terms:
        financing = FinancingTerms(
            installments=terms["installments"],
            interest_rate=Decimal(str(terms.get("interest_rate", 0))),
            entry_value=Decimal(str(terms["entry_value"])) if "entry_value" in terms else None,
            financed_value=Decimal(str(terms["financed_value"])) if "financed_value" in terms else None,
        )
    return PaymentMethodEntry(id=entry_id, method=method, amount=Decimal(str(amount)), financing=financing)


class TestReconcile:
    """Test totals and balance decisions."""

    @pytest.fixture
    def reconciler(self):
        return PaymentReconciler()

    def test_balanced_with_financing(self, reconciler):
        """PIX 20,000 + financing 30,000 covers a 50,000 sale."""
        methods = [
            pay("p1", "pix", 20000),
            pay("p2", "financing", 30000, entry_value=0, financed_value=30000,
                installments=24, interest_rate=1.5),
        ]
        result = reconciler.reconcile(methods, Decimal('50000'))

        assert result.total == Decimal('50000')
        assert result.remaining == Decimal('0')
        assert result.is_balanced is True
        assert result.lines[1].installment_value == Decimal('1497.72')
        assert result.financing_installment_values == {"p2": Decimal('1497.72')}

    def test_non_financing_lines_have_no_installment(self, reconciler):
        result = reconciler.reconcile([pay("p1", "cash", 100)], Decimal('100'))
        assert result.lines[0].installment_value is None

    def test_total_is_exact_and_order_independent(self, reconciler):
        """0.1 + 0.2 + 0.3 is exactly 0.6 in any order."""
        methods = [pay("a", "cash", "0.1"), pay("b", "pix", "0.2"), pay("c", "cash", "0.3")]

        forward = reconciler.reconcile(methods, Decimal('0.6'))
        backward = reconciler.reconcile(list(reversed(methods)), Decimal('0.6'))

        assert forward.total == Decimal('0.6')
        assert backward.total == forward.total
        assert forward.remaining == Decimal('0')

    def test_unbalanced_reports_remaining(self, reconciler):
        methods = [pay("p1", "pix", 20000), pay("p2", "cash", 29000)]
        result = reconciler.reconcile(methods, Decimal('50000'))

        assert result.is_balanced is False
        assert result.remaining == Decimal('1000')
        assert result.suggested_next_amount == Decimal('1000')

    def test_overpayment_is_unbalanced(self, reconciler):
        result = reconciler.reconcile([pay("p1", "pix", 50500)], Decimal('50000'))

        assert result.is_balanced is False
        assert result.remaining == Decimal('-500')
        assert result.suggested_next_amount == Decimal('0')

    def test_epsilon_absorbs_sub_cent_difference(self, reconciler):
        result = reconciler.reconcile([pay("p1", "pix", "99.995")], Decimal('100'))
        assert result.is_balanced is True

    def test_one_cent_difference_is_unbalanced(self, reconciler):
        """The tolerance is strict: a full cent off is not balanced."""
        result = reconciler.reconcile([pay("p1", "pix", "99.99")], Decimal('100'))
        assert result.is_balanced is False

    def test_custom_epsilon(self):
        reconciler = PaymentReconciler(SettlementConfig(balance_epsilon=Decimal('1.00')))
        result = reconciler.reconcile([pay("p1", "pix", "99.50")], Decimal('100'))

        assert result.is_balanced is True

    def test_empty_methods(self, reconciler):
        assert reconciler.reconcile([], Decimal('0')).is_balanced is True
        assert reconciler.reconcile([], Decimal('100')).is_balanced is False


class TestFinancedValue:
    """The financed value is authoritative when present."""

    @pytest.fixture
    def reconciler(self):
        return PaymentReconciler()

    def test_derived_from_amount_minus_entry(self, reconciler):
        """No financed value: 30,000 - 10,000 entry = 20,000 over 20 periods."""
        methods = [pay("p1", "financing", 30000, entry_value=10000, installments=20)]
        line = reconciler.reconcile(methods, Decimal('30000')).lines[0]

        assert line.financed_value == Decimal('20000')
        assert line.installment_value == Decimal('1000.00')

    def test_explicit_financed_value_wins(self, reconciler):
        """Even when it disagrees with amount - entry."""
        methods = [pay("p1", "financing", 30000, entry_value=10000, financed_value=25000, installments=25)]
        line = reconciler.reconcile(methods, Decimal('30000')).lines[0]

        assert line.financed_value == Decimal('25000')
        assert line.installment_value == Decimal('1000.00')

    def test_no_entry_value_finances_full_amount(self, reconciler):
        methods = [pay("p1", "financing", 12000, installments=12)]
        line = reconciler.reconcile(methods, Decimal('12000')).lines[0]

        assert line.financed_value == Decimal('12000')
        assert line.installment_value == Decimal('1000.00')
