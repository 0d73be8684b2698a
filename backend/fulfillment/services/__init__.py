"""
Services package for ledger business logic.
"""
from .stock_ledger import StockLedgerService
from .movement_log import MovementLogService
from .cost_rules import CostRuleEngine, CostLine
from .order_ledger import OrderLedgerService
from .financial_entries import FinancialEntryWriter

__all__ = [
    'StockLedgerService',
    'MovementLogService',
    'CostRuleEngine',
    'CostLine',
    'OrderLedgerService',
    'FinancialEntryWriter',
]
