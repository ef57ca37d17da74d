"""
Commission Rule Resolver

Selects the commission rule that applies to a sale and computes what it pays.
"""

import logging
from decimal import Decimal
from typing import Iterable

from ..config import SettlementConfig
from ..models import (
    COMMISSION_FIXED_AMOUNT,
    COMMISSION_MIXED,
    COMMISSION_PERCENT_OF_PROFIT,
    COMMISSION_PERCENT_OF_SALE,
    COMMISSION_TIERED,
    CommissionResolution,
    CommissionRule,
    CommissionShare,
    CommissionSplit,
    ExplicitRule,
    RuleSelection,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


class CommissionRuleResolver:
    """Resolves the applicable rule among a snapshot of configured rules."""

    def __init__(self, config: SettlementConfig | None = None):
        self.config = config or SettlementConfig()

    def resolve(
        self,
        rules: Iterable[CommissionRule],
        selection: RuleSelection,
        sale_price: Decimal,
        purchase_price: Decimal,
        days_in_stock: int = 0,
        lead_source: str | None = None,
        sales_count: int | None = None
    ) -> CommissionResolution:
        """
        Resolve the commission for a sale.

        Selection order:
        1. Only active rules are considered
        2. An explicit rule id wins regardless of priority, if that rule is active
        3. Otherwise the highest priority eligible rule (ties: first in input order)
        4. No rule -> rule_id None, amount 0

        lead_source adds the rule's bonus for that source; sales_count picks
        the band of a tiered rule.
        """
        gross_profit = sale_price - purchase_price
        active = [rule for rule in rules if rule.is_active]

        rule = None
        if isinstance(selection, ExplicitRule):
            rule = self._find(active, selection.rule_id)
            if rule is None:
                logger.info(
                    "Commission rule %s is not active, falling back to automatic selection",
                    selection.rule_id
                )
        if rule is None:
            rule = self._pick_automatic(active, sale_price, gross_profit, days_in_stock)

        margin_on_purchase = None
        if purchase_price > 0:
            margin_on_purchase = self.config.quantize(gross_profit / purchase_price * HUNDRED)

        if rule is None:
            return CommissionResolution(
                gross_profit=gross_profit,
                profit_margin_on_purchase=margin_on_purchase,
            )

        return CommissionResolution(
            rule_id=rule.id,
            rule_name=rule.name,
            commission_type=rule.commission_type,
            amount=self.compute_amount(rule, sale_price, purchase_price, lead_source, sales_count),
            gross_profit=gross_profit,
            profit_margin_on_purchase=margin_on_purchase,
        )

    def compute_amount(
        self,
        rule: CommissionRule,
        sale_price: Decimal,
        purchase_price: Decimal,
        lead_source: str | None = None,
        sales_count: int | None = None
    ) -> Decimal:
        """Commission paid by a rule plus any lead-source bonus, never negative."""
        fixed = rule.fixed_value or Decimal('0')
        percentage = rule.percentage_value or Decimal('0')
        profit = sale_price - purchase_price

        if rule.commission_type == COMMISSION_FIXED_AMOUNT:
            amount = fixed
        elif rule.commission_type == COMMISSION_PERCENT_OF_SALE:
            amount = sale_price * percentage / HUNDRED
        elif rule.commission_type == COMMISSION_PERCENT_OF_PROFIT:
            amount = profit * percentage / HUNDRED
        elif rule.commission_type == COMMISSION_MIXED:
            amount = profit * percentage / HUNDRED + fixed
        elif rule.commission_type == COMMISSION_TIERED:
            amount = profit * self._tier_percentage(rule, sales_count) / HUNDRED
        else:
            raise ValueError(f"Invalid commission_type: {rule.commission_type}")

        if lead_source is not None:
            amount += rule.lead_source_bonus.get(lead_source, Decimal('0'))

        return self.config.quantize(max(Decimal('0'), amount))

    def _tier_percentage(self, rule: CommissionRule, sales_count: int | None) -> Decimal:
        """Percentage of the band covering sales_count; the first band when the count is unknown."""
        if not rule.tiers:
            return Decimal('0')
        if sales_count is None:
            return rule.tiers[0].percentage
        for tier in rule.tiers:
            if tier.covers(sales_count):
                return tier.percentage
        return Decimal('0')

    def split(
        self,
        final_commission: Decimal,
        splits: Iterable[CommissionSplit]
    ) -> tuple[CommissionShare, ...]:
        """
        Allocate the final commission across salespeople by percentage.

        Rounding residue goes to the first split so shares add up exactly.
        """
        splits = list(splits)
        if not splits:
            return ()

        amounts = [
            self.config.quantize(final_commission * s.percentage / HUNDRED) for s in splits
        ]
        amounts[0] += final_commission - sum(amounts, Decimal('0'))

        return tuple(
            CommissionShare(user_id=s.user_id, percentage=s.percentage, amount=amount)
            for s, amount in zip(splits, amounts)
        )

    def _find(self, rules: list[CommissionRule], rule_id: str) -> CommissionRule | None:
        for rule in rules:
            if rule.id == rule_id:
                return rule
        return None

    def _pick_automatic(
        self,
        rules: list[CommissionRule],
        sale_price: Decimal,
        gross_profit: Decimal,
        days_in_stock: int
    ) -> CommissionRule | None:
        # sorted() is stable, so equal priorities keep their input order
        for rule in sorted(rules, key=lambda r: -r.priority):
            if self._is_eligible(rule, sale_price, gross_profit, days_in_stock):
                return rule
        return None

    def _is_eligible(
        self,
        rule: CommissionRule,
        sale_price: Decimal,
        gross_profit: Decimal,
        days_in_stock: int
    ) -> bool:
        """Check the optional price, margin and stock-age bounds of a rule."""
        if not rule.has_eligibility_bounds:
            return True

        if rule.min_vehicle_price is not None and sale_price < rule.min_vehicle_price:
            return False
        if rule.max_vehicle_price is not None and sale_price > rule.max_vehicle_price:
            return False

        if rule.min_profit_margin is not None:
            if sale_price <= 0:
                return False
            if gross_profit / sale_price * HUNDRED < rule.min_profit_margin:
                return False

        if rule.min_days_in_stock is not None and days_in_stock < rule.min_days_in_stock:
            return False
        if rule.max_days_in_stock is not None and days_in_stock > rule.max_days_in_stock:
            return False

        return True
