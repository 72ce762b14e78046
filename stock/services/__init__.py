"""
Stock Services - stock ledger business logic

Usage:
    from stock.services import IngredientService, StockLedgerService

    # Create ingredient with an opening balance
    result = IngredientService.create(name="Flour", unit="kg", performed_by_id=1, opening_stock=50)

    # Record a purchase
    StockLedgerService.receive(ingredient_id=1, quantity=20, performed_by_id=1, unit_cost="1.20")
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InsufficientStockError,
    PersistenceError,
    atomic_operation,
    success_response,
    error_response,
    paginate_queryset,
    round_decimal,
    parse_quantity,
    BaseService,
)

# Ledger core
from .sequence_service import SequenceService
from .ledger_service import StockLedgerService, StockTransactionService
from .ingredient_service import IngredientService

# Document workflows
from .transfer_service import StockTransferService, StockTransferItemService
from .reconciliation_service import StockReconciliationService
from .return_service import StockReturnService
from .damage_service import DamagedStockService

# POS integration
from .consumption_service import SaleConsumptionService, PurchaseReceivingService

# Alerts
from .alert_service import StockAlertService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InsufficientStockError",
    "PersistenceError",
    "atomic_operation",
    "success_response",
    "error_response",
    "paginate_queryset",
    "round_decimal",
    "parse_quantity",
    "BaseService",

    # Ledger core
    "SequenceService",
    "StockLedgerService",
    "StockTransactionService",
    "IngredientService",

    # Document workflows
    "StockTransferService",
    "StockTransferItemService",
    "StockReconciliationService",
    "StockReturnService",
    "DamagedStockService",

    # POS integration
    "SaleConsumptionService",
    "PurchaseReceivingService",

    # Alerts
    "StockAlertService",
]
