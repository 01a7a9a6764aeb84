"""Shift ledger: cash-drawer custody between open and close."""
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pos_engine.utils.money import to_minor_units, to_decimal_string


class CashDirection(str, enum.Enum):
    """Cash drawer movement direction."""
    IN = 'in'
    OUT = 'out'


class ShiftStatus(str, enum.Enum):
    OPEN = 'open'
    CLOSED = 'closed'


@dataclass(frozen=True)
class CashMovement:
    """Manual cash in / cash out (float top-up, bank deposit, refund payout...)."""
    direction: CashDirection
    amount_cents: int
    reason: str
    timestamp: datetime
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'direction': self.direction.value,
            'amount': to_decimal_string(self.amount_cents),
            'reason': self.reason,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CashMovement':
        return cls(
            id=data['id'],
            direction=CashDirection(data['direction']),
            amount_cents=to_minor_units(data['amount']),
            reason=data.get('reason', ''),
            timestamp=datetime.fromisoformat(data['timestamp']),
        )


class ShiftLedger:
    """
    Running totals for one shift.

    Expected drawer balance is ``starting + sales + cash_in - cash_out``;
    variance is computed once, at close.
    """

    def __init__(
        self,
        starting_cash_cents: int,
        started_at: datetime,
        cash_in_cents: int = 0,
        cash_out_cents: int = 0,
        sales_total_cents: int = 0,
        sales_count: int = 0,
        movements: Optional[List[CashMovement]] = None,
        ended_at: Optional[datetime] = None,
        actual_cash_cents: Optional[int] = None,
        variance_cents: Optional[int] = None,
        id: Optional[str] = None
    ):
        self.id = id or uuid.uuid4().hex
        self.starting_cash_cents = starting_cash_cents
        self.started_at = started_at
        self.cash_in_cents = cash_in_cents
        self.cash_out_cents = cash_out_cents
        self.sales_total_cents = sales_total_cents
        self.sales_count = sales_count
        self.movements: List[CashMovement] = list(movements or [])
        self.ended_at = ended_at
        self.actual_cash_cents = actual_cash_cents
        self.variance_cents = variance_cents

    @property
    def status(self) -> ShiftStatus:
        return ShiftStatus.CLOSED if self.ended_at is not None else ShiftStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def expected_cash_cents(self) -> int:
        return self.starting_cash_cents + self.sales_total_cents + self.cash_in_cents - self.cash_out_cents

    @property
    def variance_label(self) -> Optional[str]:
        """'balanced', 'over' or 'short' once closed."""
        if self.variance_cents is None:
            return None
        if abs(self.variance_cents) < 1:
            return 'balanced'
        return 'over' if self.variance_cents > 0 else 'short'

    def duration_minutes(self, now: datetime) -> int:
        end = self.ended_at or now
        return int((end - self.started_at).total_seconds() // 60)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'status': self.status.value,
            'starting_cash': to_decimal_string(self.starting_cash_cents),
            'cash_in': to_decimal_string(self.cash_in_cents),
            'cash_out': to_decimal_string(self.cash_out_cents),
            'sales_total': to_decimal_string(self.sales_total_cents),
            'sales_count': self.sales_count,
            'expected_cash': to_decimal_string(self.expected_cash_cents),
            'movements': [m.to_dict() for m in self.movements],
            'started_at': self.started_at.isoformat(),
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'actual_cash': (
                to_decimal_string(self.actual_cash_cents) if self.actual_cash_cents is not None else None
            ),
            'variance': to_decimal_string(self.variance_cents) if self.variance_cents is not None else None,
            'variance_label': self.variance_label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ShiftLedger':
        actual = data.get('actual_cash')
        variance = data.get('variance')
        return cls(
            id=data['id'],
            starting_cash_cents=to_minor_units(data['starting_cash']),
            cash_in_cents=to_minor_units(data.get('cash_in', 0)),
            cash_out_cents=to_minor_units(data.get('cash_out', 0)),
            sales_total_cents=to_minor_units(data.get('sales_total', 0)),
            sales_count=int(data.get('sales_count', 0)),
            movements=[CashMovement.from_dict(m) for m in data.get('movements', [])],
            started_at=datetime.fromisoformat(data['started_at']),
            ended_at=datetime.fromisoformat(data['ended_at']) if data.get('ended_at') else None,
            actual_cash_cents=to_minor_units(actual) if actual is not None else None,
            variance_cents=to_minor_units(variance) if variance is not None else None,
        )

    def __eq__(self, other):
        if not isinstance(other, ShiftLedger):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None

    def __repr__(self):
        return f"<ShiftLedger(id={self.id}, status={self.status.value}, expected={self.expected_cash_cents})>"
