"""
Split-payment reconciler.

The target is frozen when splitting begins; later cart changes never move it.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from pos_engine.exceptions import (
    BusinessLogicError, ExceedsRemainingError, IncompletePaymentError, InvalidAmountError, NotFoundError
)
from pos_engine.models.payment import PaymentEntry, normalize_payment_method
from pos_engine.utils.money import (
    DEFAULT_EPSILON_CENTS, allocate_evenly, from_minor_units, percentage_of, to_decimal_string, to_minor_units
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAYERS = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SplitPaymentReconciler:
    """Accumulates partial payments against a fixed target total."""

    def __init__(
        self,
        target_cents: int,
        epsilon_cents: int = DEFAULT_EPSILON_CENTS,
        max_payers: int = DEFAULT_MAX_PAYERS,
        clock: Callable[[], datetime] = _utcnow
    ):
        if target_cents < 0:
            raise InvalidAmountError('Split target cannot be negative')
        self._target_cents = target_cents
        self.epsilon_cents = epsilon_cents
        self.max_payers = max_payers
        self.clock = clock
        self.entries: List[PaymentEntry] = []

    @property
    def target_cents(self) -> int:
        return self._target_cents

    @property
    def paid_cents(self) -> int:
        return sum(e.amount_cents for e in self.entries)

    @property
    def remaining_cents(self) -> int:
        return self._target_cents - self.paid_cents

    def is_complete(self) -> bool:
        return self.remaining_cents <= self.epsilon_cents

    def add_payment(self, method=None, amount=None, payer: Optional[str] = None,
                    amount_received=None) -> PaymentEntry:
        """
        Add one partial payment.

        Args:
            method: payment method (None means cash)
            amount: decimal amount; None pays whatever remains
            payer: optional payer label
            amount_received: cash handed over (cash only)

        Raises:
            InvalidAmountError: amount not positive
            ExceedsRemainingError: amount above what is still owed
        """
        method = normalize_payment_method(method)
        cents = self.remaining_cents if amount is None else to_minor_units(amount)
        return self._add(PaymentEntry(
            method=method,
            amount_cents=cents,
            payer=payer,
            amount_received_cents=self._received_cents(method, cents, amount_received),
            timestamp=self.clock(),
        ))

    def add_entry(self, entry: PaymentEntry) -> PaymentEntry:
        """Add a pre-built entry (same checks as ``add_payment``)."""
        return self._add(entry)

    def add_percentage(self, percent, method=None, payer: Optional[str] = None) -> PaymentEntry:
        """Quick amount: a percentage of the target, capped at what remains."""
        cents = min(percentage_of(self._target_cents, Decimal(str(percent))), self.remaining_cents)
        return self._add(PaymentEntry(
            method=normalize_payment_method(method), amount_cents=cents, payer=payer, timestamp=self.clock()
        ))

    def _received_cents(self, method, amount_cents: int, amount_received) -> Optional[int]:
        if amount_received is None or not method.affects_drawer:
            return None
        received = to_minor_units(amount_received)
        if received < amount_cents:
            raise InvalidAmountError('Amount received is less than the payment amount')
        return received

    def _add(self, entry: PaymentEntry) -> PaymentEntry:
        if entry.amount_cents <= 0:
            raise InvalidAmountError('Payment amount must be greater than zero')
        remaining = self.remaining_cents
        if entry.amount_cents > remaining:
            raise ExceedsRemainingError(from_minor_units(entry.amount_cents), from_minor_units(remaining))
        self.entries.append(entry)
        logger.info(
            f"[split] payment added: method={entry.method.value}, amount={entry.amount_cents}, "
            f"remaining={self.remaining_cents}"
        )
        return entry

    def remove_payment(self, payment_id: str) -> PaymentEntry:
        for entry in self.entries:
            if entry.id == payment_id:
                self.entries.remove(entry)
                return entry
        raise NotFoundError(f'Payment {payment_id} not found', payload={'payment_id': payment_id})

    def equal_split(self, n: int, method=None) -> List[PaymentEntry]:
        """
        Replace the entries with ``n`` equal payments summing exactly to target.

        The first payers absorb the remainder cents.
        """
        if isinstance(n, bool) or not isinstance(n, int) or n < 2 or n > self.max_payers:
            raise BusinessLogicError(f'Number of payers must be between 2 and {self.max_payers}')
        method = normalize_payment_method(method)
        now = self.clock()
        amounts = allocate_evenly(self._target_cents, n)
        self.entries = [
            PaymentEntry(method=method, amount_cents=cents, payer=f'Person {i + 1}', timestamp=now)
            for i, cents in enumerate(amounts)
        ]
        logger.info(f"[split] equal split: target={self._target_cents}, payers={n}")
        return list(self.entries)

    def finalize(self) -> List[PaymentEntry]:
        """Entries ready for settlement. Fails while more than epsilon is still owed."""
        if not self.is_complete():
            raise IncompletePaymentError(from_minor_units(self.remaining_cents))
        return list(self.entries)

    def to_dict(self) -> dict:
        return {
            'target': to_decimal_string(self._target_cents),
            'paid': to_decimal_string(self.paid_cents),
            'remaining': to_decimal_string(self.remaining_cents),
            'complete': self.is_complete(),
            'payments': [e.to_dict() for e in self.entries],
        }
