"""
Engine configuration.

Business policy (holding-cost rate, balance tolerance, money precision) is
injected here rather than embedded in the calculators.
"""

import os
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from .models import optional_decimal, to_decimal

DEFAULT_BALANCE_EPSILON = Decimal("0.01")
DEFAULT_MONEY_PRECISION = 2

ENV_HOLDING_DAILY_RATE = "SETTLEMENT_HOLDING_DAILY_RATE"
ENV_BALANCE_EPSILON = "SETTLEMENT_BALANCE_EPSILON"
ENV_MONEY_PRECISION = "SETTLEMENT_MONEY_PRECISION"


@dataclass(frozen=True)
class SettlementConfig:
    """Immutable policy snapshot handed to every calculator."""

    holding_cost_daily_rate: Decimal | None = None  # percent per day
    balance_epsilon: Decimal = DEFAULT_BALANCE_EPSILON
    money_precision: int = DEFAULT_MONEY_PRECISION
    rounding: str = ROUND_HALF_UP

    def __post_init__(self):
        if self.holding_cost_daily_rate is not None and self.holding_cost_daily_rate < 0:
            raise ValueError(
                f"holding_cost_daily_rate cannot be negative, got: {self.holding_cost_daily_rate}"
            )
        if self.balance_epsilon <= 0:
            raise ValueError(f"balance_epsilon must be positive, got: {self.balance_epsilon}")
        if not (0 <= self.money_precision <= 8):
            raise ValueError(f"money_precision must be between 0 and 8, got: {self.money_precision}")

    @property
    def money_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.money_precision)

    def quantize(self, value: Decimal) -> Decimal:
        """Round a money value to the configured precision (half-up)."""
        return value.quantize(self.money_quantum, rounding=self.rounding)

    def merged(self, overrides: dict | None) -> "SettlementConfig":
        """Return a copy with per-request overrides applied."""
        if not overrides:
            return self
        changes = {}
        if "holding_cost_daily_rate" in overrides:
            rate = overrides["holding_cost_daily_rate"]
            changes["holding_cost_daily_rate"] = optional_decimal(rate)
        if "balance_epsilon" in overrides:
            changes["balance_epsilon"] = to_decimal(overrides["balance_epsilon"])
        if "money_precision" in overrides:
            changes["money_precision"] = int(overrides["money_precision"])
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ=None) -> "SettlementConfig":
        environ = os.environ if environ is None else environ
        rate = environ.get(ENV_HOLDING_DAILY_RATE)
        return cls(
            holding_cost_daily_rate=to_decimal(rate) if rate else None,
            balance_epsilon=to_decimal(environ.get(ENV_BALANCE_EPSILON, DEFAULT_BALANCE_EPSILON)),
            money_precision=int(environ.get(ENV_MONEY_PRECISION, DEFAULT_MONEY_PRECISION)),
        )
