"""
Output Builder

Constructs the JSON-ready response from engine results.
"""

from decimal import Decimal

from .config import SettlementConfig
from .errors import NO_APPLICABLE_COMMISSION_RULE
from .models import (
    CommissionResolution,
    FinancingPlan,
    PaymentReconciliation,
    ProfitabilityReport,
    SettlementResult,
)


def _fmt(value) -> str:
    """Format a number for descriptions (no currency symbol)."""
    return f"{value:,.2f}"


class OutputBuilder:
    """Builds the final output response."""

    def __init__(self, config: SettlementConfig | None = None):
        self.config = config or SettlementConfig()

    def to_money(self, value: Decimal | None) -> float | None:
        """Convert Decimal to float at the configured precision. None stays None."""
        if value is None:
            return None
        return float(self.config.quantize(value))

    def build(self, result: SettlementResult) -> dict:
        """Construct the complete settlement response."""
        return {
            "status": "settled",
            "deal_summary": self._build_deal_summary(result),
            "settlement": self._build_settlement(result),
            "calculations": self._build_calculations(result),
            "payments": self.build_payments(result.payments),
            "commission": self.build_commission(result.commission),
            "commission_shares": [
                {
                    "user_id": share.user_id,
                    "percentage": float(share.percentage),
                    "amount": self.to_money(share.amount),
                }
                for share in result.commission_shares
            ],
            "profitability": self.build_profitability(result.profitability),
            "advisories": list(result.advisories),
        }

    def _build_deal_summary(self, result: SettlementResult) -> dict:
        return {
            "deal_name": result.deal_name,
            "sale_price": self.to_money(result.sale_price),
            "purchase_price": self.to_money(result.purchase_price),
            "days_in_stock": result.profitability.days_in_stock,
        }

    def _build_settlement(self, result: SettlementResult) -> dict:
        """The settlement record as persisted by the sales, commission and DRE ledgers."""
        return {
            "total_investment": self.to_money(result.total_investment),
            "holding_cost": self.to_money(result.holding_cost),
            "total_cost": self.to_money(result.total_cost),
            "projected_margin": self.to_money(result.projected_margin),
            "margin_percent": self._percent(result.margin_percent),
            "resolved_rule_id": result.resolved_rule_id,
            "calculated_commission": self.to_money(result.calculated_commission),
            "final_commission": self.to_money(result.final_commission),
            "payments_total": self.to_money(result.payments_total),
            "is_payment_balanced": result.is_payment_balanced,
            "financing_installment_values": {
                payment_id: self.to_money(value)
                for payment_id, value in result.financing_installment_values.items()
            },
        }

    def _build_calculations(self, result: SettlementResult) -> dict:
        """Build calculations section with value and dynamic description for each field."""
        dre = result.profitability
        commission = result.commission
        rate = self.config.holding_cost_daily_rate

        if commission.rule_applied:
            commission_desc = f"Rule '{commission.rule_name}' ({commission.commission_type}) applied to sale {_fmt(result.sale_price)}"
        else:
            commission_desc = "No commission rule applied - commission is zero until a rule is configured"

        return {
            "total_investment": {
                "value": self.to_money(dre.total_investment),
                "description": f"purchase ({_fmt(result.purchase_price)}) + real costs ({_fmt(dre.total_real_costs)}) = {_fmt(dre.total_investment)}"
            },
            "holding_cost": {
                "value": self.to_money(dre.holding_cost),
                "description": f"{_fmt(dre.total_investment)} × {rate}% per day × {dre.days_in_stock} days = {_fmt(dre.holding_cost)}" if rate is not None else "No holding-cost rate configured"
            },
            "total_cost": {
                "value": self.to_money(dre.total_cost),
                "description": f"investment ({_fmt(dre.total_investment)}) + holding ({_fmt(dre.holding_cost)}) = {_fmt(dre.total_cost)}"
            },
            "projected_margin": {
                "value": self.to_money(dre.projected_margin),
                "description": f"sale ({_fmt(result.sale_price)}) - total cost ({_fmt(dre.total_cost)}) = {_fmt(dre.projected_margin)}"
            },
            "margin_percent": {
                "value": self._percent(dre.margin_percent),
                "description": f"margin / investment × 100 = {dre.margin_percent}%" if dre.margin_percent is not None else "Not computable - total investment is zero"
            },
            "calculated_commission": {
                "value": self.to_money(result.calculated_commission),
                "description": commission_desc
            },
            "manual_commission_adjustment": {
                "value": self.to_money(result.manual_commission_adjustment),
                "description": "Signed manual adjustment entered by the sales manager"
            },
            "final_commission": {
                "value": self.to_money(result.final_commission),
                "description": f"calculated ({_fmt(result.calculated_commission)}) + adjustment ({_fmt(result.manual_commission_adjustment)}) = {_fmt(result.final_commission)}"
            },
            "payments_total": {
                "value": self.to_money(result.payments_total),
                "description": f"Sum of {len(result.payments.lines)} payment entries, balanced against sale price {_fmt(result.sale_price)}"
            },
        }

    def build_payments(self, payments: PaymentReconciliation) -> dict:
        lines = []
        for line in payments.lines:
            entry = {"id": line.id, "method": line.method, "amount": self.to_money(line.amount)}
            if line.installment_value is not None:
                entry.update({
                    "financed_value": self.to_money(line.financed_value),
                    "installments": line.installments,
                    "interest_rate": float(line.interest_rate),
                    "installment_value": self.to_money(line.installment_value),
                })
            lines.append(entry)

        return {
            "total": self.to_money(payments.total),
            "remaining": self.to_money(payments.remaining),
            "is_balanced": payments.is_balanced,
            "suggested_next_amount": self.to_money(payments.suggested_next_amount),
            "lines": lines,
        }

    def build_commission(self, commission: CommissionResolution) -> dict:
        return {
            "rule_id": commission.rule_id,
            "rule_name": commission.rule_name,
            "commission_type": commission.commission_type,
            "amount": self.to_money(commission.amount),
            "rule_applied": commission.rule_applied,
            "gross_profit": self.to_money(commission.gross_profit),
            "profit_margin_on_purchase": self._percent(commission.profit_margin_on_purchase),
            "advisories": [] if commission.rule_applied else [NO_APPLICABLE_COMMISSION_RULE],
        }

    def build_profitability(self, report: ProfitabilityReport) -> dict:
        return {
            "total_real_costs": self.to_money(report.total_real_costs),
            "total_estimated_costs": self.to_money(report.total_estimated_costs),
            "costs_by_type": {
                cost_type: self.to_money(amount) for cost_type, amount in report.costs_by_type.items()
            },
            "total_investment": self.to_money(report.total_investment),
            "days_in_stock": report.days_in_stock,
            "holding_cost": self.to_money(report.holding_cost),
            "total_cost": self.to_money(report.total_cost),
            "projected_margin": self.to_money(report.projected_margin),
            "margin_percent": self._percent(report.margin_percent),
            "is_overdue": report.is_overdue,
            "days_progress_percent": self._percent(report.days_progress_percent),
            "cost_variance": self.to_money(report.cost_variance),
            "has_cost_overrun": report.has_cost_overrun,
            "alerts": [
                {
                    "kind": alert.kind,
                    "severity": alert.severity,
                    "message": alert.message,
                    "value": self.to_money(alert.value),
                }
                for alert in report.alerts
            ],
        }

    def build_financing_plan(self, plan: FinancingPlan, include_rows: bool = False) -> dict:
        result = {
            "financed_value": self.to_money(plan.principal),
            "installments": plan.installments,
            "interest_rate": float(plan.periodic_rate),
            "installment_value": self.to_money(plan.installment_value),
            "total_paid": self.to_money(plan.total_paid),
            "total_interest": self.to_money(plan.total_interest),
        }
        if include_rows:
            result["schedule"] = [
                {
                    "period": row.period,
                    "installment": self.to_money(row.installment),
                    "interest": self.to_money(row.interest),
                    "principal": self.to_money(row.principal),
                    "balance": self.to_money(row.balance),
                }
                for row in plan.rows
            ]
        return result

    def _percent(self, value: Decimal | None) -> float | None:
        return float(value) if value is not None else None
