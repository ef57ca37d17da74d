"""
DEAL SETTLEMENT ENGINE
Commission, financing, DRE and payment reconciliation for vehicle sales
"""

from .config import SettlementConfig
from .errors import SettlementError
from .models import DealInputs, SettlementResult
from .processor import DealSettlementCoordinator

__all__ = [
    'DealSettlementCoordinator',
    'DealInputs',
    'SettlementResult',
    'SettlementError',
    'SettlementConfig',
]
