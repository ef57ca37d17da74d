"""
Calculators Package

Provides all calculation components for deal settlement.
"""

from .amortization import AmortizationCalculator
from .commission import CommissionRuleResolver
from .payments import PaymentReconciler
from .profitability import VehicleProfitabilityEngine

__all__ = [
    "AmortizationCalculator",
    "CommissionRuleResolver",
    "VehicleProfitabilityEngine",
    "PaymentReconciler",
]
