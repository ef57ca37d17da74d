"""
Input Validation for the Deal Settlement Engine

Validates structural constraints before any calculation runs.
Raises ValueError with clear messages for any constraint violations.
Business outcomes (unbalanced payments, missing rule) are not errors here.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from .models import (
    COMMISSION_FIXED_AMOUNT,
    COMMISSION_MIXED,
    COMMISSION_TIERED,
    COMMISSION_TYPES,
    COST_TYPES,
    PAYMENT_METHODS,
    CommissionRule,
    CommissionSplit,
    DealInputs,
    PaymentMethodEntry,
)


class InputValidator:
    """Validates deal input according to business rules."""

    def validate(self, inputs: DealInputs, require_sale_price: bool = True) -> None:
        """
        Run all validations. Raises ValueError if any check fails.
        """
        self._validate_prices(inputs, require_sale_price)
        self._validate_dates(inputs)
        self._validate_costs(inputs)
        self.validate_payments(inputs.payment_methods)
        self.validate_rules(inputs.commission_rules)
        self._validate_splits(inputs.commission_splits)

    def validate_rules(self, rules: Iterable[CommissionRule]) -> None:
        """Reject malformed rule objects."""
        for rule in rules:
            if rule.commission_type not in COMMISSION_TYPES:
                raise ValueError(
                    f"Invalid commission_type: {rule.commission_type}. "
                    f"Must be one of {', '.join(COMMISSION_TYPES)}"
                )

            if not isinstance(rule.is_active, bool):
                raise ValueError(f"is_active must be true or false for rule '{rule.id}', got: {rule.is_active!r}")

            if rule.commission_type == COMMISSION_FIXED_AMOUNT:
                if rule.fixed_value is None:
                    raise ValueError(f"fixed_value is required for rule '{rule.id}' ({rule.commission_type})")
            elif rule.commission_type == COMMISSION_MIXED:
                # Either part may be missing and counts as zero
                if rule.fixed_value is None and rule.percentage_value is None:
                    raise ValueError(
                        f"fixed_value or percentage_value is required for rule '{rule.id}' ({rule.commission_type})"
                    )
            elif rule.commission_type == COMMISSION_TIERED:
                self._validate_tiers(rule)
            elif rule.percentage_value is None:
                raise ValueError(f"percentage_value is required for rule '{rule.id}' ({rule.commission_type})")

            for source, bonus in rule.lead_source_bonus.items():
                if bonus < 0:
                    raise ValueError(f"lead_source_bonus for '{source}' cannot be negative in rule '{rule.id}'")

            if rule.fixed_value is not None and rule.fixed_value < 0:
                raise ValueError(f"fixed_value cannot be negative for rule '{rule.id}', got: {rule.fixed_value}")

            if rule.percentage_value is not None and not (0 <= rule.percentage_value <= 100):
                raise ValueError(
                    f"percentage_value must be between 0 and 100 for rule '{rule.id}', "
                    f"got: {rule.percentage_value}"
                )

            if (
                rule.min_vehicle_price is not None
                and rule.max_vehicle_price is not None
                and rule.min_vehicle_price > rule.max_vehicle_price
            ):
                raise ValueError(f"min_vehicle_price exceeds max_vehicle_price for rule '{rule.id}'")

            if (
                rule.min_days_in_stock is not None
                and rule.max_days_in_stock is not None
                and rule.min_days_in_stock > rule.max_days_in_stock
            ):
                raise ValueError(f"min_days_in_stock exceeds max_days_in_stock for rule '{rule.id}'")

    def _validate_tiers(self, rule: CommissionRule) -> None:
        if not rule.tiers:
            raise ValueError(f"tiers are required for rule '{rule.id}' ({rule.commission_type})")

        for tier in rule.tiers:
            if tier.min_sales < 0:
                raise ValueError(f"min_sales cannot be negative in rule '{rule.id}', got: {tier.min_sales}")
            if tier.max_sales is not None and tier.max_sales < tier.min_sales:
                raise ValueError(f"max_sales is below min_sales in rule '{rule.id}'")
            if not (0 <= tier.percentage <= 100):
                raise ValueError(
                    f"tier percentage must be between 0 and 100 for rule '{rule.id}', got: {tier.percentage}"
                )

    def validate_payments(self, payments: Iterable[PaymentMethodEntry]) -> None:
        """Reject malformed payment entries. installments <= 0 is checked by the coordinator."""
        for entry in payments:
            if entry.method not in PAYMENT_METHODS:
                raise ValueError(
                    f"Invalid payment method: {entry.method}. Must be one of {', '.join(PAYMENT_METHODS)}"
                )

            if entry.amount < 0:
                raise ValueError(f"amount cannot be negative for payment '{entry.id}', got: {entry.amount}")

            if not entry.is_financing:
                continue

            if entry.financing is None:
                raise ValueError(f"financing terms are required for payment '{entry.id}'")

            terms = entry.financing
            if terms.interest_rate < 0:
                raise ValueError(
                    f"interest_rate cannot be negative for payment '{entry.id}', got: {terms.interest_rate}"
                )
            if terms.entry_value is not None and terms.entry_value < 0:
                raise ValueError(
                    f"entry_value cannot be negative for payment '{entry.id}', got: {terms.entry_value}"
                )

    def _validate_prices(self, inputs: DealInputs, require_sale_price: bool) -> None:
        if inputs.purchase_price < 0:
            raise ValueError(f"purchase_price cannot be negative, got: {inputs.purchase_price}")

        if inputs.candidate_sale_price is None:
            if require_sale_price:
                raise ValueError("candidate_sale_price is required to settle a deal")
        elif inputs.candidate_sale_price < 0:
            raise ValueError(f"candidate_sale_price cannot be negative, got: {inputs.candidate_sale_price}")

        if inputs.expected_sale_days is not None and inputs.expected_sale_days < 0:
            raise ValueError(f"expected_sale_days cannot be negative, got: {inputs.expected_sale_days}")

        if inputs.expected_margin_percent is not None and inputs.expected_margin_percent < 0:
            raise ValueError(f"expected_margin_percent cannot be negative, got: {inputs.expected_margin_percent}")

        if inputs.sales_count is not None and inputs.sales_count < 0:
            raise ValueError(f"sales_count cannot be negative, got: {inputs.sales_count}")

    def _validate_dates(self, inputs: DealInputs) -> None:
        for name in ("purchase_date", "evaluation_date"):
            value = getattr(inputs, name)
            if not value or not isinstance(value, str):
                continue
            try:
                datetime.strptime(value, "%Y-%m-%d")
            except ValueError:
                raise ValueError(f"{name} must be formatted YYYY-MM-DD, got: {value}") from None

    def _validate_costs(self, inputs: DealInputs) -> None:
        for item in inputs.real_costs:
            if item.cost_type not in COST_TYPES:
                raise ValueError(f"Invalid cost_type: {item.cost_type}. Must be one of {', '.join(COST_TYPES)}")
            if item.amount < 0:
                raise ValueError(f"Cost amount cannot be negative: {item}")

        estimated = inputs.estimated_costs
        for name in ("maintenance", "cleaning", "documentation", "other"):
            if getattr(estimated, name) < 0:
                raise ValueError(f"estimated {name} cost cannot be negative, got: {getattr(estimated, name)}")

    def _validate_splits(self, splits: tuple[CommissionSplit, ...]) -> None:
        if not splits:
            return

        for split in splits:
            if split.percentage <= 0:
                raise ValueError(f"split percentage must be positive for user '{split.user_id}'")

        total = sum((split.percentage for split in splits), Decimal('0'))
        if total != Decimal('100'):
            raise ValueError(f"commission split percentages must add up to 100, got: {total}")
