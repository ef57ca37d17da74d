"""
Domain Models for the Deal Settlement Engine

These dataclasses provide type-safe representations of all deal entities.
All monetary values use Decimal for precision.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

# =============================================================================
# VOCABULARY
# =============================================================================

COMMISSION_FIXED_AMOUNT = "fixed_amount"
COMMISSION_PERCENT_OF_SALE = "percent_of_sale"
COMMISSION_PERCENT_OF_PROFIT = "percent_of_profit"
COMMISSION_MIXED = "mixed"
COMMISSION_TIERED = "tiered"

COMMISSION_TYPES = (
    COMMISSION_FIXED_AMOUNT,
    COMMISSION_PERCENT_OF_SALE,
    COMMISSION_PERCENT_OF_PROFIT,
    COMMISSION_MIXED,
    COMMISSION_TIERED,
)

PAYMENT_FINANCING = "financing"

PAYMENT_METHODS = (
    "cash",
    "pix",
    "credit_card",
    "debit_card",
    PAYMENT_FINANCING,
    "consortium",
    "trade_in",
    "mixed",
)

COST_TYPES = (
    "acquisition",
    "documentation",
    "transfer",
    "ipva",
    "maintenance",
    "cleaning",
    "freight",
    "purchase_commission",
    "other",
)

AUTO_RULE = "auto"

ALERT_STALE_STOCK = "stale_stock"
ALERT_HIGH_HOLDING_COST = "high_holding_cost"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


def to_decimal(value) -> Decimal:
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a valid number: {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def optional_decimal(value) -> Decimal | None:
    return to_decimal(value) if value is not None else None


def optional_int(value) -> int | None:
    return int(value) if value is not None else None


# =============================================================================
# RULE SELECTION
# =============================================================================


@dataclass(frozen=True)
class ExplicitRule:
    """A salesperson-facing override naming one commission rule."""

    rule_id: str


@dataclass(frozen=True)
class AutomaticRule:
    """Pick the highest-priority eligible active rule."""


RuleSelection = ExplicitRule | AutomaticRule


def parse_rule_selection(value) -> RuleSelection:
    """Build a RuleSelection from raw input (None / "auto" / rule id)."""
    if isinstance(value, (ExplicitRule, AutomaticRule)):
        return value
    if value is None or value == "" or value == AUTO_RULE:
        return AutomaticRule()
    return ExplicitRule(rule_id=str(value))


# =============================================================================
# INPUT MODELS
# =============================================================================


@dataclass(frozen=True)
class CommissionTier:
    """One band of a tiered rule, keyed on the salesperson's sales count."""

    min_sales: int
    max_sales: int | None
    percentage: Decimal

    def covers(self, sales_count: int) -> bool:
        if sales_count < self.min_sales:
            return False
        return self.max_sales is None or sales_count <= self.max_sales

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionTier":
        return cls(
            min_sales=int(data.get("min_sales", 0)),
            max_sales=optional_int(data.get("max_sales")),
            percentage=to_decimal(data["percentage"]),
        )


@dataclass(frozen=True)
class CommissionRule:
    """A configured commission rule. Rules are read-only snapshots here."""

    id: str
    name: str
    commission_type: str
    fixed_value: Decimal | None = None
    percentage_value: Decimal | None = None
    priority: int = 0
    is_active: bool = True
    # Eligibility bounds, only consulted during automatic selection
    min_vehicle_price: Decimal | None = None
    max_vehicle_price: Decimal | None = None
    min_profit_margin: Decimal | None = None
    min_days_in_stock: int | None = None
    max_days_in_stock: int | None = None
    tiers: tuple[CommissionTier, ...] = ()
    # Flat amount added per lead source, e.g. {"website": 200}
    lead_source_bonus: dict = field(default_factory=dict)

    @property
    def has_eligibility_bounds(self) -> bool:
        return any(
            bound is not None
            for bound in (
                self.min_vehicle_price,
                self.max_vehicle_price,
                self.min_profit_margin,
                self.min_days_in_stock,
                self.max_days_in_stock,
            )
        )

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionRule":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            commission_type=data["commission_type"],
            fixed_value=optional_decimal(data.get("fixed_value")),
            percentage_value=optional_decimal(data.get("percentage_value")),
            priority=int(data.get("priority", 0)),
            # Kept as sent; the validator rejects anything but a bool
            is_active=data.get("is_active", True),
            min_vehicle_price=optional_decimal(data.get("min_vehicle_price")),
            max_vehicle_price=optional_decimal(data.get("max_vehicle_price")),
            min_profit_margin=optional_decimal(data.get("min_profit_margin")),
            min_days_in_stock=optional_int(data.get("min_days_in_stock")),
            max_days_in_stock=optional_int(data.get("max_days_in_stock")),
            tiers=tuple(CommissionTier.from_dict(t) for t in data.get("tiers") or []),
            lead_source_bonus={
                source: to_decimal(bonus)
                for source, bonus in (data.get("lead_source_bonus") or {}).items()
            },
        )


@dataclass(frozen=True)
class FinancingTerms:
    """Bank financing details attached to a financing payment entry."""

    installments: int
    interest_rate: Decimal = Decimal("0")  # percent per period
    entry_value: Decimal | None = None
    financed_value: Decimal | None = None
    bank: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "FinancingTerms":
        return cls(
            installments=int(data["installments"]),
            interest_rate=to_decimal(data.get("interest_rate", 0)),
            entry_value=optional_decimal(data.get("entry_value")),
            financed_value=optional_decimal(data.get("financed_value")),
            bank=data.get("bank"),
        )


@dataclass(frozen=True)
class PaymentMethodEntry:
    """One line of the sale's payment composition."""

    id: str
    method: str
    amount: Decimal
    financing: FinancingTerms | None = None
    details: str | None = None

    @property
    def is_financing(self) -> bool:
        return self.method == PAYMENT_FINANCING

    @property
    def effective_financed_value(self) -> Decimal:
        """Financed balance: the explicit value wins, else amount minus entry."""
        if self.financing is None:
            return Decimal("0")
        if self.financing.financed_value is not None:
            return self.financing.financed_value
        entry = self.financing.entry_value or Decimal("0")
        return self.amount - entry

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentMethodEntry":
        method = data["method"]
        financing = None
        if method == PAYMENT_FINANCING:
            # Accept both a nested "financing" block and flat fields
            terms = data.get("financing") or {
                key: data[key]
                for key in ("installments", "interest_rate", "entry_value", "financed_value", "bank")
                if key in data
            }
            financing = FinancingTerms.from_dict(terms)
        return cls(
            id=str(data.get("id", "")),
            method=method,
            amount=to_decimal(data.get("amount", 0)),
            financing=financing,
            details=data.get("details"),
        )


@dataclass(frozen=True)
class VehicleCostItem:
    """A real cost recorded against a vehicle."""

    id: str
    vehicle_id: str
    cost_type: str
    amount: Decimal
    cost_date: str | None = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "VehicleCostItem":
        return cls(
            id=str(data.get("id", "")),
            vehicle_id=str(data.get("vehicle_id", "")),
            cost_type=data.get("cost_type", "other"),
            amount=to_decimal(data["amount"]),
            cost_date=data.get("cost_date"),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class EstimatedCosts:
    """Costs forecast for a vehicle when it was bought."""

    maintenance: Decimal = Decimal("0")
    cleaning: Decimal = Decimal("0")
    documentation: Decimal = Decimal("0")
    other: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.maintenance + self.cleaning + self.documentation + self.other

    @classmethod
    def from_dict(cls, data: dict | None) -> "EstimatedCosts":
        data = data or {}
        return cls(
            maintenance=to_decimal(data.get("maintenance") or 0),
            cleaning=to_decimal(data.get("cleaning") or 0),
            documentation=to_decimal(data.get("documentation") or 0),
            other=to_decimal(data.get("other") or 0),
        )


@dataclass(frozen=True)
class CommissionSplit:
    """Share of the final commission owed to one salesperson."""

    user_id: str
    percentage: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionSplit":
        return cls(user_id=str(data["user_id"]), percentage=to_decimal(data["percentage"]))


@dataclass(frozen=True)
class DealInputs:
    """Complete input for settling a vehicle sale. Built per computation."""

    purchase_price: Decimal
    candidate_sale_price: Decimal | None = None
    purchase_date: str | None = None
    real_costs: tuple[VehicleCostItem, ...] = ()
    estimated_costs: EstimatedCosts = field(default_factory=EstimatedCosts)
    expected_sale_days: int | None = None
    expected_margin_percent: Decimal | None = None
    payment_methods: tuple[PaymentMethodEntry, ...] = ()
    commission_rules: tuple[CommissionRule, ...] = ()
    rule_selection: RuleSelection = field(default_factory=AutomaticRule)
    manual_commission_adjustment: Decimal = Decimal("0")
    commission_splits: tuple[CommissionSplit, ...] = ()
    evaluation_date: str | None = None
    deal_name: str = ""
    lead_source: str | None = None
    # Salesperson's sales in the period, picks the band of a tiered rule
    sales_count: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "DealInputs":
        sale_price = data.get("candidate_sale_price", data.get("sale_price"))
        expected_days = data.get("expected_sale_days")
        return cls(
            purchase_price=to_decimal(data["purchase_price"]),
            candidate_sale_price=optional_decimal(sale_price),
            purchase_date=data.get("purchase_date"),
            real_costs=tuple(VehicleCostItem.from_dict(c) for c in data.get("real_costs", [])),
            estimated_costs=EstimatedCosts.from_dict(data.get("estimated_costs")),
            expected_sale_days=int(expected_days) if expected_days is not None else None,
            expected_margin_percent=optional_decimal(data.get("expected_margin_percent")),
            payment_methods=tuple(
                PaymentMethodEntry.from_dict(p) for p in data.get("payment_methods", [])
            ),
            commission_rules=tuple(
                CommissionRule.from_dict(r) for r in data.get("commission_rules", [])
            ),
            rule_selection=parse_rule_selection(data.get("commission_rule_id")),
            manual_commission_adjustment=to_decimal(data.get("manual_commission_adjustment", 0)),
            commission_splits=tuple(
                CommissionSplit.from_dict(s) for s in data.get("commission_splits", [])
            ),
            evaluation_date=data.get("evaluation_date"),
            deal_name=data.get("deal_name", ""),
            lead_source=data.get("lead_source"),
            sales_count=optional_int(data.get("sales_count")),
        )


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass(frozen=True)
class ScheduleRow:
    """One period of a Price-table schedule."""

    period: int
    installment: Decimal
    interest: Decimal
    principal: Decimal
    balance: Decimal


@dataclass(frozen=True)
class FinancingPlan:
    principal: Decimal
    periodic_rate: Decimal
    installments: int
    installment_value: Decimal
    total_paid: Decimal
    total_interest: Decimal
    rows: tuple[ScheduleRow, ...] = ()


@dataclass(frozen=True)
class CommissionResolution:
    """Which rule applied and what it pays."""

    rule_id: str | None = None
    rule_name: str | None = None
    commission_type: str | None = None
    amount: Decimal = Decimal("0")
    gross_profit: Decimal = Decimal("0")
    profit_margin_on_purchase: Decimal | None = None

    @property
    def rule_applied(self) -> bool:
        return self.rule_id is not None


@dataclass(frozen=True)
class DREAlert:
    """An operational warning raised from a vehicle's DRE."""

    kind: str
    severity: str
    message: str
    value: Decimal


@dataclass(frozen=True)
class ProfitabilityReport:
    """Per-vehicle DRE figures."""

    total_real_costs: Decimal = Decimal("0")
    total_estimated_costs: Decimal = Decimal("0")
    costs_by_type: dict = field(default_factory=dict)
    total_investment: Decimal = Decimal("0")
    days_in_stock: int = 0
    holding_cost: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    projected_margin: Decimal | None = None
    margin_percent: Decimal | None = None
    is_overdue: bool = False
    days_progress_percent: Decimal | None = None
    cost_variance: Decimal = Decimal("0")
    alerts: tuple[DREAlert, ...] = ()

    @property
    def has_cost_overrun(self) -> bool:
        return self.cost_variance > 0


@dataclass(frozen=True)
class PaymentLine:
    """A reconciled payment entry, with its installment value when financed."""

    id: str
    method: str
    amount: Decimal
    financed_value: Decimal | None = None
    installments: int | None = None
    interest_rate: Decimal | None = None
    installment_value: Decimal | None = None


@dataclass(frozen=True)
class PaymentReconciliation:
    total: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    is_balanced: bool = False
    lines: tuple[PaymentLine, ...] = ()

    @property
    def suggested_next_amount(self) -> Decimal:
        """Amount a new payment entry would need to close the gap."""
        return max(Decimal("0"), self.remaining)

    @property
    def financing_installment_values(self) -> dict:
        return {
            line.id: line.installment_value
            for line in self.lines
            if line.installment_value is not None
        }


@dataclass(frozen=True)
class CommissionShare:
    user_id: str
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class SettlementResult:
    """Final output of a successful settlement."""

    deal_name: str
    sale_price: Decimal
    purchase_price: Decimal
    total_investment: Decimal
    holding_cost: Decimal
    total_cost: Decimal
    projected_margin: Decimal | None
    margin_percent: Decimal | None
    resolved_rule_id: str | None
    calculated_commission: Decimal
    manual_commission_adjustment: Decimal
    final_commission: Decimal
    payments_total: Decimal
    is_payment_balanced: bool
    financing_installment_values: dict
    payments: PaymentReconciliation
    commission: CommissionResolution
    profitability: ProfitabilityReport
    commission_shares: tuple[CommissionShare, ...] = ()
    advisories: tuple[str, ...] = ()


@dataclass
class SettlementContext:
    """
    Holds all intermediate state during settlement.
    This is the "bag" that flows through the pipeline.
    """

    # Input (never mutated)
    inputs: DealInputs

    # Step results (populated as we go)
    state: str = "draft"
    payments: PaymentReconciliation | None = None
    profitability: ProfitabilityReport | None = None
    commission: CommissionResolution | None = None
    final_commission: Decimal = Decimal("0")
    commission_shares: tuple[CommissionShare, ...] = ()
    advisories: list[str] = field(default_factory=list)
