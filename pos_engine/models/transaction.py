"""Settled transaction record and its lifecycle."""
import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from pos_engine.exceptions import InvalidStateTransitionError
from pos_engine.models.cart import DiscountSpec, LineItem, Modifier, TipSpec
from pos_engine.models.payment import PaymentEntry, PaymentMethod
from pos_engine.models.settlement import Settlement
from pos_engine.utils.money import to_minor_units, to_decimal_string


class TransactionStatus(str, enum.Enum):
    """Transaction status enum."""
    DRAFT = 'draft'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    REFUNDED = 'refunded'


# Draft -> Completed -> Refunded, Draft -> Cancelled. Refunded and Cancelled are terminal.
ALLOWED_TRANSITIONS = {
    TransactionStatus.DRAFT: {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED},
    TransactionStatus.COMPLETED: {TransactionStatus.REFUNDED},
    TransactionStatus.CANCELLED: set(),
    TransactionStatus.REFUNDED: set(),
}


@dataclass(frozen=True)
class TransactionLine:
    """Immutable copy of a cart line taken at settlement."""
    line_id: str
    catalog_item_id: str
    name: str
    unit_price_cents: int
    quantity: int
    category: str = ''
    tax_category: str = 'standard'
    modifiers: Tuple[Modifier, ...] = ()

    @classmethod
    def from_line_item(cls, line: LineItem) -> 'TransactionLine':
        return cls(
            line_id=line.id,
            catalog_item_id=line.catalog_item_id,
            name=line.name,
            unit_price_cents=line.unit_price_cents,
            quantity=line.quantity,
            category=line.category,
            tax_category=line.tax_category,
            modifiers=tuple(line.modifiers),
        )

    @property
    def unit_total_cents(self) -> int:
        return self.unit_price_cents + sum(m.price_cents for m in self.modifiers)

    @property
    def line_total_cents(self) -> int:
        return self.unit_total_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            'line_id': self.line_id,
            'catalog_item_id': self.catalog_item_id,
            'name': self.name,
            'unit_price': to_decimal_string(self.unit_price_cents),
            'quantity': self.quantity,
            'category': self.category,
            'tax_category': self.tax_category,
            'modifiers': [m.to_dict() for m in self.modifiers],
            'line_total': to_decimal_string(self.line_total_cents),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TransactionLine':
        return cls(
            line_id=data['line_id'],
            catalog_item_id=str(data['catalog_item_id']),
            name=data['name'],
            unit_price_cents=to_minor_units(data['unit_price']),
            quantity=int(data['quantity']),
            category=data.get('category', ''),
            tax_category=data.get('tax_category', 'standard'),
            modifiers=tuple(Modifier.from_dict(m) for m in data.get('modifiers', [])),
        )


class Transaction:
    """
    Transaction snapshot handed to receipt and reporting collaborators.

    Everything except the lifecycle fields (status and its timestamps /
    reasons) is frozen once constructed; lifecycle fields only change
    through ``complete``, ``refund`` and ``cancel``.
    """

    _LIFECYCLE_FIELDS = frozenset({
        'status', 'completed_at', 'refunded_at', 'refund_reason', 'cancelled_at', 'cancel_reason',
    })

    def __init__(
        self,
        number: str,
        lines: Iterable[TransactionLine],
        settlement: Settlement,
        payments: Iterable[PaymentEntry],
        created_at: datetime,
        discount: DiscountSpec = DiscountSpec(),
        tax_percent: Decimal = Decimal('0'),
        tip: TipSpec = TipSpec(),
        customer_id: Optional[str] = None,
        notes: str = '',
        points_earned: int = 0,
        status: TransactionStatus = TransactionStatus.DRAFT,
        completed_at: Optional[datetime] = None,
        refunded_at: Optional[datetime] = None,
        refund_reason: Optional[str] = None,
        cancelled_at: Optional[datetime] = None,
        cancel_reason: Optional[str] = None,
        id: Optional[str] = None
    ):
        self.id = id or uuid.uuid4().hex
        self.number = number
        self.lines = tuple(lines)
        self.settlement = settlement
        self.payments = tuple(payments)
        self.created_at = created_at
        self.discount = discount
        self.tax_percent = Decimal(tax_percent)
        self.tip = tip
        self.customer_id = customer_id
        self.notes = notes
        self.points_earned = points_earned
        self.status = TransactionStatus(status)
        self.completed_at = completed_at
        self.refunded_at = refunded_at
        self.refund_reason = refund_reason
        self.cancelled_at = cancelled_at
        self.cancel_reason = cancel_reason
        self._sealed = True

    def __setattr__(self, name, value):
        if getattr(self, '_sealed', False) and name not in self._LIFECYCLE_FIELDS:
            raise AttributeError(f'Transaction field {name!r} is read-only')
        super().__setattr__(name, value)

    # -- lifecycle --------------------------------------------------------

    def can_transition_to(self, target: TransactionStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def _transition(self, target: TransactionStatus) -> None:
        if not self.can_transition_to(target):
            raise InvalidStateTransitionError(self.status, target)
        self.status = target

    def complete(self, at: datetime) -> None:
        self._transition(TransactionStatus.COMPLETED)
        self.completed_at = at

    def refund(self, reason: str, at: datetime) -> None:
        self._transition(TransactionStatus.REFUNDED)
        self.refunded_at = at
        self.refund_reason = reason

    def cancel(self, reason: str, at: datetime) -> None:
        self._transition(TransactionStatus.CANCELLED)
        self.cancelled_at = at
        self.cancel_reason = reason

    # -- derived ----------------------------------------------------------

    @property
    def total_cents(self) -> int:
        return self.settlement.total_cents

    @property
    def paid_cents(self) -> int:
        return sum(p.amount_cents for p in self.payments)

    def paid_with(self, method: PaymentMethod) -> int:
        """Amount paid with one method, in cents."""
        return sum(p.amount_cents for p in self.payments if p.method == method)

    @property
    def cash_cents(self) -> int:
        return self.paid_with(PaymentMethod.CASH)

    @property
    def change_cents(self) -> int:
        return sum(p.change_cents for p in self.payments)

    @property
    def payment_method(self) -> Optional[PaymentMethod]:
        """Single method, or None when several methods were used."""
        methods = {p.method for p in self.payments}
        if len(methods) == 1:
            return methods.pop()
        return None

    # -- serialization ----------------------------------------------------

    def to_dict(self) -> dict:
        def _ts(value):
            return value.isoformat() if value else None

        return {
            'id': self.id,
            'number': self.number,
            'status': self.status.value,
            'lines': [line.to_dict() for line in self.lines],
            'settlement': self.settlement.to_dict(),
            'payments': [p.to_dict() for p in self.payments],
            'discount': self.discount.to_dict(),
            'tax_percent': str(self.tax_percent),
            'tip': self.tip.to_dict(),
            'customer_id': self.customer_id,
            'notes': self.notes,
            'points_earned': self.points_earned,
            'created_at': _ts(self.created_at),
            'completed_at': _ts(self.completed_at),
            'refunded_at': _ts(self.refunded_at),
            'refund_reason': self.refund_reason,
            'cancelled_at': _ts(self.cancelled_at),
            'cancel_reason': self.cancel_reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Transaction':
        def _dt(value):
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=data['id'],
            number=data['number'],
            status=TransactionStatus(data['status']),
            lines=[TransactionLine.from_dict(line) for line in data['lines']],
            settlement=Settlement.from_dict(data['settlement']),
            payments=[PaymentEntry.from_dict(p) for p in data.get('payments', [])],
            discount=DiscountSpec.from_dict(data.get('discount')),
            tax_percent=Decimal(str(data.get('tax_percent', '0'))),
            tip=TipSpec.from_dict(data.get('tip')),
            customer_id=data.get('customer_id'),
            notes=data.get('notes', ''),
            points_earned=int(data.get('points_earned', 0)),
            created_at=_dt(data['created_at']),
            completed_at=_dt(data.get('completed_at')),
            refunded_at=_dt(data.get('refunded_at')),
            refund_reason=data.get('refund_reason'),
            cancelled_at=_dt(data.get('cancelled_at')),
            cancel_reason=data.get('cancel_reason'),
        )

    def __eq__(self, other):
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None

    def __repr__(self):
        return f"<Transaction(number={self.number}, total={self.total_cents}, status={self.status.value})>"
