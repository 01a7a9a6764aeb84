"""Payment methods and payment entries."""
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from pos_engine.exceptions import InvalidPaymentMethodError
from pos_engine.utils.money import to_minor_units, to_decimal_string


class PaymentMethod(str, enum.Enum):
    """Payment method enum."""
    CASH = 'cash'
    CARD = 'card'
    MOBILE = 'mobile'
    UPI = 'upi'
    BANK_TRANSFER = 'bank_transfer'
    STORE_CREDIT = 'store_credit'

    @property
    def affects_drawer(self) -> bool:
        """Only cash moves money in or out of the physical drawer."""
        return self is PaymentMethod.CASH


PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH: 'Cash',
    PaymentMethod.CARD: 'Credit/Debit Card',
    PaymentMethod.MOBILE: 'Mobile Wallet',
    PaymentMethod.UPI: 'UPI',
    PaymentMethod.BANK_TRANSFER: 'Bank Transfer',
    PaymentMethod.STORE_CREDIT: 'Store Credit',
}


def normalize_payment_method(value) -> PaymentMethod:
    """
    Normalize a payment method value.

    Args:
        value: None, PaymentMethod enum, or string ('CASH', 'card', 'Bank-Transfer'...)

    Returns:
        PaymentMethod (None defaults to CASH)

    Raises:
        InvalidPaymentMethodError: If the value does not name a known method
    """
    if value is None:
        return PaymentMethod.CASH

    if isinstance(value, PaymentMethod):
        return value

    if isinstance(value, str):
        normalized = value.strip().lower().replace('-', '_').replace(' ', '_')
        try:
            return PaymentMethod(normalized)
        except ValueError:
            raise InvalidPaymentMethodError(value)

    raise InvalidPaymentMethodError(value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PaymentEntry:
    """
    One (partial) payment toward a settlement total.

    ``amount_received_cents`` is only meaningful for cash: what the customer
    handed over. Change is whatever exceeds ``amount_cents``.
    """
    method: PaymentMethod
    amount_cents: int
    payer: Optional[str] = None
    amount_received_cents: Optional[int] = None
    timestamp: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def change_cents(self) -> int:
        if self.amount_received_cents is None:
            return 0
        return max(0, self.amount_received_cents - self.amount_cents)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'method': self.method.value,
            'amount': to_decimal_string(self.amount_cents),
            'payer': self.payer,
            'amount_received': (
                to_decimal_string(self.amount_received_cents)
                if self.amount_received_cents is not None else None
            ),
            'change': to_decimal_string(self.change_cents),
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PaymentEntry':
        received = data.get('amount_received')
        return cls(
            id=data['id'],
            method=normalize_payment_method(data['method']),
            amount_cents=to_minor_units(data['amount']),
            payer=data.get('payer'),
            amount_received_cents=to_minor_units(received) if received is not None else None,
            timestamp=datetime.fromisoformat(data['timestamp']),
        )
