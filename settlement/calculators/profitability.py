"""
Vehicle Profitability Engine (DRE)

Per-vehicle profit and loss: what the car cost, what holding it costs,
and what margin a candidate sale price would leave.
"""

from datetime import date, datetime
from decimal import Decimal

from ..config import SettlementConfig
from ..models import (
    ALERT_HIGH_HOLDING_COST,
    ALERT_STALE_STOCK,
    COST_TYPES,
    SEVERITY_CRITICAL,
    SEVERITY_WARNING,
    DealInputs,
    DREAlert,
    ProfitabilityReport,
)

HUNDRED = Decimal('100')

# Alert thresholds when the vehicle carries no expectation of its own
DEFAULT_EXPECTED_SALE_DAYS = 60
DEFAULT_EXPECTED_MARGIN_PERCENT = Decimal('10')
CRITICAL_STOCK_FACTOR = Decimal('1.5')


def parse_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


class VehicleProfitabilityEngine:
    """Computes the DRE figures for one vehicle."""

    def __init__(
        self,
        config: SettlementConfig | None = None,
        holding_cost_daily_rate: Decimal | None = None
    ):
        self.config = config or SettlementConfig()
        # An explicit rate wins over the configured policy
        if holding_cost_daily_rate is None:
            holding_cost_daily_rate = self.config.holding_cost_daily_rate
        self.holding_cost_daily_rate = holding_cost_daily_rate

    def compute(
        self,
        inputs: DealInputs,
        evaluation_date: date | str | None = None
    ) -> ProfitabilityReport:
        """
        Compute the DRE for a vehicle.

        evaluation_date defaults to the inputs' evaluation_date, then today.
        """
        costs_by_type = self._costs_by_type(inputs)
        total_real = sum(costs_by_type.values(), Decimal('0'))
        total_estimated = inputs.estimated_costs.total

        total_investment = inputs.purchase_price + total_real
        days = self.days_in_stock(inputs.purchase_date, evaluation_date or inputs.evaluation_date)
        holding_cost = self._holding_cost(total_investment, days)
        total_cost = total_investment + holding_cost

        projected_margin = None
        if inputs.candidate_sale_price is not None:
            projected_margin = inputs.candidate_sale_price - total_cost

        # Ratios are None rather than NaN/Infinity on a zero denominator
        margin_percent = None
        if projected_margin is not None and total_investment > 0:
            margin_percent = self.config.quantize(projected_margin / total_investment * HUNDRED)

        expected = inputs.expected_sale_days
        days_progress = None
        if expected is not None and expected > 0:
            days_progress = self.config.quantize(
                min(Decimal(days) / Decimal(expected) * HUNDRED, HUNDRED)
            )

        return ProfitabilityReport(
            total_real_costs=total_real,
            total_estimated_costs=total_estimated,
            costs_by_type=costs_by_type,
            total_investment=total_investment,
            days_in_stock=days,
            holding_cost=holding_cost,
            total_cost=total_cost,
            projected_margin=projected_margin,
            margin_percent=margin_percent,
            is_overdue=expected is not None and days > expected,
            days_progress_percent=days_progress,
            cost_variance=total_real - total_estimated,
            alerts=self.alerts(inputs, days, holding_cost, total_investment),
        )

    def alerts(
        self,
        inputs: DealInputs,
        days: int,
        holding_cost: Decimal,
        total_investment: Decimal
    ) -> tuple[DREAlert, ...]:
        """
        Operational alerts for a vehicle still in stock.

        - Stale stock: past the expected sale days (60 if unset), critical past 1.5x
        - High holding cost: holding cost above the expected margin on the purchase price
        """
        alerts = []

        expected_days = inputs.expected_sale_days or DEFAULT_EXPECTED_SALE_DAYS
        if days > expected_days:
            severity = SEVERITY_CRITICAL if days > expected_days * CRITICAL_STOCK_FACTOR else SEVERITY_WARNING
            alerts.append(DREAlert(
                kind=ALERT_STALE_STOCK,
                severity=severity,
                message=f"{days} days in stock (expected: {expected_days} days)",
                value=total_investment,
            ))

        margin_percent = inputs.expected_margin_percent or DEFAULT_EXPECTED_MARGIN_PERCENT
        if holding_cost > 0 and holding_cost > margin_percent * inputs.purchase_price / HUNDRED:
            alerts.append(DREAlert(
                kind=ALERT_HIGH_HOLDING_COST,
                severity=SEVERITY_WARNING,
                message="Holding cost is consuming the expected margin",
                value=holding_cost,
            ))

        return tuple(alerts)

    @staticmethod
    def days_in_stock(purchase_date: date | str | None, evaluation_date: date | str | None = None) -> int:
        """Whole days since purchase, never negative. No purchase date means 0."""
        if not purchase_date:
            return 0
        evaluated = parse_date(evaluation_date) if evaluation_date else date.today()
        return max(0, (evaluated - parse_date(purchase_date)).days)

    def _holding_cost(self, total_investment: Decimal, days: int) -> Decimal:
        """Imputed capital cost: investment x daily rate x days in stock."""
        if self.holding_cost_daily_rate is None or days == 0:
            return Decimal('0')
        return self.config.quantize(
            total_investment * self.holding_cost_daily_rate / HUNDRED * Decimal(days)
        )

    def _costs_by_type(self, inputs: DealInputs) -> dict:
        breakdown = {cost_type: Decimal('0') for cost_type in COST_TYPES}
        for item in inputs.real_costs:
            breakdown[item.cost_type] = breakdown.get(item.cost_type, Decimal('0')) + item.amount
        return breakdown
