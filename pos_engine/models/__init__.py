"""Models package - domain objects and SQLAlchemy records."""
# Collaborator records
from pos_engine.models.catalog import CatalogItem, CustomerRecord

# Engine domain
from pos_engine.models.cart import Cart, LineItem, Modifier, DiscountSpec, TipSpec, AdjustmentMode
from pos_engine.models.settlement import Settlement
from pos_engine.models.payment import PaymentEntry, PaymentMethod, PAYMENT_METHOD_LABELS, normalize_payment_method
from pos_engine.models.transaction import Transaction, TransactionLine, TransactionStatus, ALLOWED_TRANSITIONS
from pos_engine.models.shift import ShiftLedger, CashMovement, CashDirection, ShiftStatus
from pos_engine.models.events import (
    StockAdjustment, LoyaltyPointsChanged, CustomerPurchaseRecorded, StoreCreditChanged,
    EventBus, event_to_dict
)

# Persistence
from pos_engine.models.records import (
    TransactionRecord, TransactionLineRecord, TransactionPaymentRecord,
    ShiftRecord, CashMovementRecord
)

__all__ = [
    # Collaborators
    'CatalogItem', 'CustomerRecord',
    # Domain
    'Cart', 'LineItem', 'Modifier', 'DiscountSpec', 'TipSpec', 'AdjustmentMode',
    'Settlement',
    'PaymentEntry', 'PaymentMethod', 'PAYMENT_METHOD_LABELS', 'normalize_payment_method',
    'Transaction', 'TransactionLine', 'TransactionStatus', 'ALLOWED_TRANSITIONS',
    'ShiftLedger', 'CashMovement', 'CashDirection', 'ShiftStatus',
    'StockAdjustment', 'LoyaltyPointsChanged', 'CustomerPurchaseRecorded', 'StoreCreditChanged',
    'EventBus', 'event_to_dict',
    # Persistence
    'TransactionRecord', 'TransactionLineRecord', 'TransactionPaymentRecord',
    'ShiftRecord', 'CashMovementRecord',
]
