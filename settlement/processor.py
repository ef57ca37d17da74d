"""
Deal Settlement Coordinator - Main Orchestrator

Coordinates the settlement pipeline through discrete, testable steps.
Settlement is all-or-nothing: Draft -> Reconciling -> (Rejected | Computed).
"""

import json
import logging
from datetime import date
from typing import Any, Dict

from .calculators import (
    AmortizationCalculator,
    CommissionRuleResolver,
    PaymentReconciler,
    VehicleProfitabilityEngine,
)
from .config import SettlementConfig
from .errors import NO_APPLICABLE_COMMISSION_RULE, SettlementError
from .models import (
    CommissionRule,
    DealInputs,
    SettlementContext,
    SettlementResult,
    parse_rule_selection,
    to_decimal,
)
from .output import OutputBuilder
from .validators import InputValidator

logger = logging.getLogger(__name__)

STATE_DRAFT = "draft"
STATE_RECONCILING = "reconciling"
STATE_REJECTED = "rejected"
STATE_COMPUTED = "computed"


class DealSettlementCoordinator:
    """
    Main orchestrator for deal settlement.

    Implements a clear pipeline pattern:
    1. Validate Input
    2. Check Financing Schedules
    3. Reconcile Payments (reject if unbalanced)
    4. Compute Vehicle DRE
    5. Resolve Commission
    6. Apply Manual Adjustment and Splits
    7. Assemble Result

    Holds no per-deal state; the same instance may serve concurrent callers.
    """

    def __init__(self, config: SettlementConfig | None = None):
        self.config = config or SettlementConfig()
        self.validator = InputValidator()
        self.amortization = AmortizationCalculator(self.config)
        self.payment_reconciler = PaymentReconciler(self.config, self.amortization)
        self.profitability_engine = VehicleProfitabilityEngine(self.config)
        self.commission_resolver = CommissionRuleResolver(self.config)
        self.output_builder = OutputBuilder(self.config)

    def settle(
        self,
        inputs: DealInputs,
        evaluation_date: date | str | None = None
    ) -> SettlementResult | SettlementError:
        """
        Settle a sale through the complete pipeline.

        Args:
            inputs: DealInputs for the sale; never mutated
            evaluation_date: overrides "today" for the days-in-stock count

        Returns:
            SettlementResult, or SettlementError when settlement is refused
        """
        # Step 1: Validate (structural problems raise and propagate)
        self.validator.validate(inputs)
        ctx = SettlementContext(inputs=inputs, state=STATE_DRAFT)

        # Step 2: Financing schedules must be usable before anything else
        schedule_error = self._check_schedules(inputs)
        if schedule_error is not None:
            ctx.state = STATE_REJECTED
            logger.info("Settlement rejected: %s", schedule_error.message)
            return schedule_error

        # Step 3: Reconcile payments against the sale price
        ctx.state = STATE_RECONCILING
        ctx.payments = self.payment_reconciler.reconcile(
            inputs.payment_methods, inputs.candidate_sale_price
        )
        if not ctx.payments.is_balanced:
            ctx.state = STATE_REJECTED
            logger.info(
                "Settlement rejected for %s: payments total %s, remaining %s",
                inputs.deal_name or "deal", ctx.payments.total, ctx.payments.remaining
            )
            return SettlementError.unbalanced(ctx.payments.remaining)

        # Step 4: DRE
        ctx.profitability = self.profitability_engine.compute(inputs, evaluation_date)

        # Step 5: Commission on the purchase / sale figures
        ctx.commission = self.commission_resolver.resolve(
            inputs.commission_rules,
            inputs.rule_selection,
            inputs.candidate_sale_price,
            inputs.purchase_price,
            ctx.profitability.days_in_stock,
            inputs.lead_source,
            inputs.sales_count,
        )
        if not ctx.commission.rule_applied:
            logger.warning("No applicable commission rule for %s", inputs.deal_name or "deal")
            ctx.advisories.append(NO_APPLICABLE_COMMISSION_RULE)

        # Step 6: Manual adjustment and splits
        ctx.final_commission = ctx.commission.amount + inputs.manual_commission_adjustment
        ctx.commission_shares = self.commission_resolver.split(
            ctx.final_commission, inputs.commission_splits
        )

        # Step 7: Assemble
        ctx.state = STATE_COMPUTED
        return self._build_result(ctx)

    def settle_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Settle a deal from raw dictionary input.

        Convenience method for API usage. A "config" block overrides the
        engine policy for this request only.
        """
        if data.get("config"):
            return DealSettlementCoordinator(self.config.merged(data["config"])).settle_from_dict(
                {key: value for key, value in data.items() if key != "config"}
            )

        outcome = self.settle(DealInputs.from_dict(data))
        if isinstance(outcome, SettlementError):
            return {"status": "rejected", "error": outcome.to_dict()}
        return self.output_builder.build(outcome)

    def simulate_commission_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve a commission without settling (commission simulator)."""
        config = self.config.merged(data.get("config"))
        rules = [CommissionRule.from_dict(r) for r in data.get("commission_rules", [])]
        self.validator.validate_rules(rules)

        sale_price = to_decimal(data["sale_price"])
        purchase_price = to_decimal(data["purchase_price"])
        sales_count = data.get("sales_count")
        resolution = CommissionRuleResolver(config).resolve(
            rules,
            parse_rule_selection(data.get("commission_rule_id")),
            sale_price,
            purchase_price,
            int(data.get("days_in_stock", 0)),
            data.get("lead_source"),
            int(sales_count) if sales_count is not None else None,
        )
        return OutputBuilder(config).build_commission(resolution)

    def vehicle_dre_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Compute a vehicle's DRE from raw input, sale price optional."""
        config = self.config.merged(data.get("config"))
        inputs = DealInputs.from_dict(data)
        self.validator.validate(inputs, require_sale_price=False)
        report = VehicleProfitabilityEngine(config).compute(inputs)
        return OutputBuilder(config).build_profitability(report)

    def installment_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Installment value, and the full schedule when asked for."""
        config = self.config.merged(data.get("config"))
        financed_value = to_decimal(data["financed_value"])
        installments = int(data["installments"])
        rate = to_decimal(data.get("interest_rate", 0))
        if rate < 0:
            raise ValueError(f"interest_rate cannot be negative, got: {rate}")

        if installments <= 0:
            error = SettlementError.invalid_schedule(str(data.get("id", "")), installments)
            return {"status": "rejected", "error": error.to_dict()}

        plan = AmortizationCalculator(config).build_schedule(financed_value, installments, rate)
        return OutputBuilder(config).build_financing_plan(
            plan, include_rows=bool(data.get("include_schedule", False))
        )

    def _check_schedules(self, inputs: DealInputs) -> SettlementError | None:
        for entry in inputs.payment_methods:
            if entry.is_financing and entry.financing.installments <= 0:
                return SettlementError.invalid_schedule(entry.id, entry.financing.installments)
        return None

    def _build_result(self, ctx: SettlementContext) -> SettlementResult:
        inputs = ctx.inputs
        dre = ctx.profitability
        commission = ctx.commission
        payments = ctx.payments

        return SettlementResult(
            deal_name=inputs.deal_name,
            sale_price=inputs.candidate_sale_price,
            purchase_price=inputs.purchase_price,
            total_investment=dre.total_investment,
            holding_cost=dre.holding_cost,
            total_cost=dre.total_cost,
            projected_margin=dre.projected_margin,
            margin_percent=dre.margin_percent,
            resolved_rule_id=commission.rule_id,
            calculated_commission=commission.amount,
            manual_commission_adjustment=inputs.manual_commission_adjustment,
            final_commission=ctx.final_commission,
            payments_total=payments.total,
            is_payment_balanced=payments.is_balanced,
            financing_installment_values=payments.financing_installment_values,
            payments=payments,
            commission=commission,
            profitability=dre,
            commission_shares=ctx.commission_shares,
            advisories=tuple(ctx.advisories),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def settle_deal_from_dict(input_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Settle a deal from Python dict and return Python dict.
    Engine policy comes from the environment.
    """
    coordinator = DealSettlementCoordinator(SettlementConfig.from_env())
    return coordinator.settle_from_dict(input_data)


def settle_deal_from_json(json_input: str) -> str:
    """
    Settle a deal from JSON string input and return JSON string output.
    """
    try:
        input_data = json.loads(json_input)
        result = settle_deal_from_dict(input_data)
        return json.dumps(result, indent=2)

    except (ValueError, KeyError, TypeError) as e:
        error_response = {"error": str(e), "status": "validation_failed"}
        return json.dumps(error_response, indent=2)
