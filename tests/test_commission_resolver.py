"""
Unit Tests for Commission Rule Resolver

Tests verify rule selection (explicit, automatic, eligibility) and amounts.
"""

import pytest
from decimal import Decimal
from settlement.calculators.commission import CommissionRuleResolver
from settlement.models import (
    AutomaticRule, CommissionRule, CommissionSplit, CommissionTier, ExplicitRule, parse_rule_selection
)


def make_rule(rule_id, commission_type, priority=0, fixed=None, percentage=None, active=True, **bounds):
    return CommissionRule(
        id=rule_id,
        name=f"Rule {rule_id}",
        commission_type=commission_type,
        fixed_value=Decimal(str(fixed)) if fixed is not None else None,
        percentage_value=Decimal(str(percentage)) if percentage is not None else None,
        priority=priority,
        is_active=active,
        **bounds
    )


class TestRuleSelection:
    """Test which rule gets picked."""

    @pytest.fixture
    def resolver(self):
        return CommissionRuleResolver()

    @pytest.fixture
    def rules(self):
        return [
            make_rule("low", "fixed_amount", priority=1, fixed=100),
            make_rule("high", "percent_of_sale", priority=5, percentage=2),
        ]

    def test_automatic_picks_highest_priority(self, resolver, rules):
        """Priority 5 beats priority 1: 2% of 10,000 = 200."""
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "high"
        assert result.amount == Decimal('200.00')

    def test_explicit_rule_overrides_priority(self, resolver, rules):
        """A concrete rule id wins even with lower priority."""
        result = resolver.resolve(rules, ExplicitRule("low"), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "low"
        assert result.amount == Decimal('100.00')

    def test_explicit_unknown_id_falls_back_to_automatic(self, resolver, rules):
        """An id matching no active rule falls back to priority order."""
        result = resolver.resolve(rules, ExplicitRule("missing"), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "high"

    def test_explicit_inactive_rule_falls_back(self, resolver):
        """Inactive rules cannot be selected explicitly."""
        rules = [
            make_rule("off", "fixed_amount", priority=9, fixed=999, active=False),
            make_rule("on", "fixed_amount", priority=1, fixed=50),
        ]
        result = resolver.resolve(rules, ExplicitRule("off"), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "on"
        assert result.amount == Decimal('50.00')

    def test_inactive_rules_are_ignored(self, resolver):
        """A high-priority inactive rule never applies."""
        rules = [
            make_rule("off", "fixed_amount", priority=9, fixed=999, active=False),
            make_rule("on", "fixed_amount", priority=1, fixed=50),
        ]
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "on"

    def test_priority_tie_keeps_input_order(self, resolver):
        """Equal priorities resolve to the first rule encountered."""
        rules = [
            make_rule("first", "fixed_amount", priority=3, fixed=10),
            make_rule("second", "fixed_amount", priority=3, fixed=20),
        ]
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "first"

    def test_no_rules_means_no_commission(self, resolver):
        """No rule -> rule_id None and zero amount."""
        result = resolver.resolve([], AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id is None
        assert result.amount == Decimal('0')
        assert result.rule_applied is False

    def test_all_rules_inactive(self, resolver):
        rules = [make_rule("off", "fixed_amount", fixed=100, active=False)]
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id is None


class TestRuleEligibility:
    """Optional bounds skip rules during automatic selection."""

    @pytest.fixture
    def resolver(self):
        return CommissionRuleResolver()

    def test_min_vehicle_price_skips_rule(self, resolver):
        rules = [
            make_rule("premium", "fixed_amount", priority=10, fixed=1000, min_vehicle_price=Decimal('20000')),
            make_rule("base", "fixed_amount", priority=1, fixed=100),
        ]
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "base"

    def test_max_vehicle_price_skips_rule(self, resolver):
        rules = [
            make_rule("cheap", "fixed_amount", priority=10, fixed=50, max_vehicle_price=Decimal('5000')),
            make_rule("base", "fixed_amount", priority=1, fixed=100),
        ]
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "base"

    def test_min_profit_margin_uses_margin_on_sale(self, resolver):
        """Profit 2,000 on a 10,000 sale is a 20% margin."""
        rules = [
            make_rule("fat", "fixed_amount", priority=10, fixed=500, min_profit_margin=Decimal('30')),
            make_rule("ok", "fixed_amount", priority=5, fixed=300, min_profit_margin=Decimal('20')),
        ]
        result = resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "ok"

    def test_days_in_stock_bounds(self, resolver):
        """Stock-age bounds are checked against days_in_stock."""
        rules = [
            make_rule("aged", "fixed_amount", priority=10, fixed=500, min_days_in_stock=90),
            make_rule("fresh", "fixed_amount", priority=5, fixed=300, max_days_in_stock=30),
            make_rule("base", "fixed_amount", priority=1, fixed=100),
        ]

        assert resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'), 120).rule_id == "aged"
        assert resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'), 10).rule_id == "fresh"
        assert resolver.resolve(rules, AutomaticRule(), Decimal('10000'), Decimal('8000'), 60).rule_id == "base"

    def test_day_bounds_sent_as_strings(self, resolver):
        """JSON bounds like "10" are read as integers."""
        rule = CommissionRule.from_dict({
            "id": "aged",
            "commission_type": "fixed_amount",
            "fixed_value": 500,
            "min_days_in_stock": "10",
            "max_days_in_stock": "90",
        })

        assert rule.min_days_in_stock == 10
        assert resolver.resolve([rule], AutomaticRule(), Decimal('10000'), Decimal('8000'), 30).rule_id == "aged"
        assert resolver.resolve([rule], AutomaticRule(), Decimal('10000'), Decimal('8000'), 5).rule_id is None

    def test_explicit_selection_ignores_bounds(self, resolver):
        """An explicitly chosen rule applies directly."""
        rules = [
            make_rule("premium", "fixed_amount", priority=10, fixed=1000, min_vehicle_price=Decimal('20000')),
        ]
        result = resolver.resolve(rules, ExplicitRule("premium"), Decimal('10000'), Decimal('8000'))

        assert result.rule_id == "premium"
        assert result.amount == Decimal('1000.00')


class TestCommissionAmounts:
    """Test the amount paid by each commission type."""

    @pytest.fixture
    def resolver(self):
        return CommissionRuleResolver()

    def test_fixed_amount(self, resolver):
        rule = make_rule("r", "fixed_amount", fixed=750)
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000')) == Decimal('750.00')

    def test_percent_of_sale(self, resolver):
        rule = make_rule("r", "percent_of_sale", percentage=1.5)
        assert resolver.compute_amount(rule, Decimal('50000'), Decimal('40000')) == Decimal('750.00')

    def test_percent_of_profit(self, resolver):
        """10% of (10,000 - 8,000) = 200."""
        rule = make_rule("r", "percent_of_profit", percentage=10)
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000')) == Decimal('200.00')

    def test_percent_of_profit_never_negative(self, resolver):
        """A loss-making sale pays zero, not a negative commission."""
        rule = make_rule("r", "percent_of_profit", percentage=10)
        assert resolver.compute_amount(rule, Decimal('7000'), Decimal('8000')) == Decimal('0')

    def test_mixed_adds_fixed_to_profit_share(self, resolver):
        """10% of 2,000 profit + 50 fixed = 250."""
        rule = make_rule("r", "mixed", percentage=10, fixed=50)
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000')) == Decimal('250.00')

    def test_mixed_without_percentage_pays_fixed(self, resolver):
        rule = make_rule("r", "mixed", fixed=300)
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000')) == Decimal('300.00')

    def test_amount_is_rounded_half_up(self, resolver):
        """0.5% of 1,001 = 5.005 -> 5.01."""
        rule = make_rule("r", "percent_of_sale", percentage=0.5)
        assert resolver.compute_amount(rule, Decimal('1001'), Decimal('0')) == Decimal('5.01')

    def test_unknown_type_raises(self, resolver):
        """Malformed rules raise at the boundary."""
        rule = make_rule("r", "escalating", percentage=10)
        with pytest.raises(ValueError, match="commission_type"):
            resolver.compute_amount(rule, Decimal('10000'), Decimal('8000'))

    def test_gross_profit_figures(self, resolver):
        """Profit and margin on purchase are reported alongside the commission."""
        result = resolver.resolve([], AutomaticRule(), Decimal('10000'), Decimal('8000'))

        assert result.gross_profit == Decimal('2000')
        assert result.profit_margin_on_purchase == Decimal('25.00')

    def test_margin_on_zero_purchase_is_none(self, resolver):
        result = resolver.resolve([], AutomaticRule(), Decimal('10000'), Decimal('0'))
        assert result.profit_margin_on_purchase is None


class TestTieredCommission:
    """Tiered rules pay a share of profit chosen by the salesperson's sales count."""

    @pytest.fixture
    def resolver(self):
        return CommissionRuleResolver()

    @pytest.fixture
    def rule(self):
        return CommissionRule(
            id="t",
            name="Tiered",
            commission_type="tiered",
            tiers=(
                CommissionTier(min_sales=0, max_sales=4, percentage=Decimal('5')),
                CommissionTier(min_sales=5, max_sales=9, percentage=Decimal('8')),
                CommissionTier(min_sales=10, max_sales=None, percentage=Decimal('12')),
            ),
        )

    @pytest.mark.parametrize("sales_count,expected", [
        (0, Decimal('100.00')),
        (4, Decimal('100.00')),
        (5, Decimal('160.00')),
        (25, Decimal('240.00')),
    ])
    def test_band_by_sales_count(self, resolver, rule, sales_count, expected):
        """Profit 2,000: 5% / 8% / 12% by band."""
        amount = resolver.compute_amount(rule, Decimal('10000'), Decimal('8000'), sales_count=sales_count)
        assert amount == expected

    def test_unknown_sales_count_uses_first_band(self, resolver, rule):
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000')) == Decimal('100.00')

    def test_count_outside_every_band_pays_zero(self, resolver):
        rule = CommissionRule(
            id="t",
            name="Tiered",
            commission_type="tiered",
            tiers=(CommissionTier(min_sales=3, max_sales=None, percentage=Decimal('10')),),
        )
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000'), sales_count=1) == Decimal('0')

    def test_tiers_from_dict(self):
        rule = CommissionRule.from_dict({
            "id": "t",
            "commission_type": "tiered",
            "tiers": [{"min_sales": 0, "max_sales": None, "percentage": 7}],
        })

        assert rule.tiers == (CommissionTier(min_sales=0, max_sales=None, percentage=Decimal('7')),)


class TestLeadSourceBonus:
    """A per-lead-source bonus is added on top of the rule amount."""

    @pytest.fixture
    def resolver(self):
        return CommissionRuleResolver()

    @pytest.fixture
    def rule(self):
        return CommissionRule(
            id="r",
            name="Base",
            commission_type="fixed_amount",
            fixed_value=Decimal('500'),
            lead_source_bonus={"website": Decimal('150')},
        )

    def test_matching_source_adds_bonus(self, resolver, rule):
        amount = resolver.compute_amount(rule, Decimal('10000'), Decimal('8000'), lead_source="website")
        assert amount == Decimal('650.00')

    def test_other_source_gets_no_bonus(self, resolver, rule):
        amount = resolver.compute_amount(rule, Decimal('10000'), Decimal('8000'), lead_source="walk_in")
        assert amount == Decimal('500.00')

    def test_no_source_gets_no_bonus(self, resolver, rule):
        assert resolver.compute_amount(rule, Decimal('10000'), Decimal('8000')) == Decimal('500.00')

    def test_resolve_passes_lead_source(self, resolver, rule):
        result = resolver.resolve(
            [rule], AutomaticRule(), Decimal('10000'), Decimal('8000'), lead_source="website"
        )
        assert result.amount == Decimal('650.00')


class TestCommissionSplit:
    """Test allocation of the final commission across salespeople."""

    @pytest.fixture
    def resolver(self):
        return CommissionRuleResolver()

    def test_even_split(self, resolver):
        splits = [CommissionSplit("a", Decimal('50')), CommissionSplit("b", Decimal('50'))]
        shares = resolver.split(Decimal('100.00'), splits)

        assert [s.amount for s in shares] == [Decimal('50.00'), Decimal('50.00')]

    def test_rounding_residue_goes_to_first_share(self, resolver):
        """50% of 100.01 rounds to 50.01 twice; the extra cent comes off the first share."""
        splits = [CommissionSplit("a", Decimal('50')), CommissionSplit("b", Decimal('50'))]
        shares = resolver.split(Decimal('100.01'), splits)

        assert shares[0].amount == Decimal('50.00')
        assert shares[1].amount == Decimal('50.01')
        assert sum(s.amount for s in shares) == Decimal('100.01')

    def test_no_splits(self, resolver):
        assert resolver.split(Decimal('100'), []) == ()


class TestParseRuleSelection:
    """Raw selection values map onto the tagged variant."""

    @pytest.mark.parametrize("raw", [None, "", "auto"])
    def test_automatic_values(self, raw):
        assert parse_rule_selection(raw) == AutomaticRule()

    def test_explicit_value(self):
        assert parse_rule_selection("rule-42") == ExplicitRule("rule-42")
