"""
Shift cash ledger.

Tracks one drawer: at most one open shift at a time, closed shifts kept in
``history`` and never modified again.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pos_engine.exceptions import (
    BusinessLogicError, InvalidAmountError, NoActiveShiftError, ShiftAlreadyActiveError
)
from pos_engine.models.shift import CashDirection, CashMovement, ShiftLedger
from pos_engine.utils.formatters import duration_label
from pos_engine.utils.money import to_decimal_string, to_minor_units

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShiftCashLedger:
    """Open / move cash / close operations over a drawer's shifts."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self.clock = clock
        self.active: Optional[ShiftLedger] = None
        self.history: List[ShiftLedger] = []

    def _require_active(self) -> ShiftLedger:
        if self.active is None:
            raise NoActiveShiftError()
        return self.active

    def start_shift(self, starting_cash) -> ShiftLedger:
        """
        Open a shift with the counted starting float.

        Raises:
            ShiftAlreadyActiveError: a shift is already open
            InvalidAmountError: negative starting cash
        """
        if self.active is not None:
            raise ShiftAlreadyActiveError(self.active.id)

        cents = to_minor_units(starting_cash)
        if cents < 0:
            raise InvalidAmountError('Starting cash cannot be negative')

        self.active = ShiftLedger(starting_cash_cents=cents, started_at=self.clock())
        logger.info(f"[shift] started: id={self.active.id}, starting_cash={cents}")
        return self.active

    def record_cash_movement(self, direction, amount, reason: str = '') -> CashMovement:
        """Manual cash in or out. Amount must be greater than zero."""
        shift = self._require_active()
        try:
            direction = CashDirection(direction)
        except ValueError:
            raise BusinessLogicError(f"Cash movement direction must be 'in' or 'out', got {direction!r}")
        cents = to_minor_units(amount)
        if cents <= 0:
            raise InvalidAmountError('Cash movement amount must be greater than zero')

        movement = CashMovement(
            direction=direction, amount_cents=cents, reason=(reason or '').strip(), timestamp=self.clock()
        )
        shift.movements.append(movement)
        if direction == CashDirection.IN:
            shift.cash_in_cents += cents
        else:
            shift.cash_out_cents += cents

        logger.info(f"[shift] cash {direction.value}: shift={shift.id}, amount={cents}, reason={movement.reason!r}")
        return movement

    def record_sale(self, amount) -> ShiftLedger:
        """Cash portion of a completed sale; card and mobile sales never reach the drawer."""
        shift = self._require_active()
        cents = to_minor_units(amount)
        if cents < 0:
            raise InvalidAmountError('Sale amount cannot be negative')
        shift.sales_total_cents += cents
        shift.sales_count += 1
        return shift

    def end_shift(self, actual_cash) -> ShiftLedger:
        """
        Close the active shift with the counted drawer amount.

        variance = actual - (starting + sales + cash_in - cash_out)
        """
        shift = self._require_active()
        cents = to_minor_units(actual_cash)
        if cents < 0:
            raise InvalidAmountError('Actual cash cannot be negative')

        shift.actual_cash_cents = cents
        shift.variance_cents = cents - shift.expected_cash_cents
        shift.ended_at = self.clock()

        self.active = None
        self.history.append(shift)

        if shift.variance_cents != 0:
            logger.warning(
                f"[shift] closed with variance: id={shift.id}, expected={shift.expected_cash_cents}, "
                f"actual={cents}, variance={shift.variance_cents}"
            )
        else:
            logger.info(f"[shift] closed balanced: id={shift.id}, expected={shift.expected_cash_cents}")
        return shift

    def summary(self, shift: Optional[ShiftLedger] = None) -> dict:
        """Report of a shift (the active one by default)."""
        shift = shift or self._require_active()
        minutes = shift.duration_minutes(self.clock())
        return {
            'id': shift.id,
            'status': shift.status.value,
            'starting_cash': to_decimal_string(shift.starting_cash_cents),
            'cash_sales': to_decimal_string(shift.sales_total_cents),
            'sales_count': shift.sales_count,
            'cash_in': to_decimal_string(shift.cash_in_cents),
            'cash_out': to_decimal_string(shift.cash_out_cents),
            'expected_cash': to_decimal_string(shift.expected_cash_cents),
            'actual_cash': (
                to_decimal_string(shift.actual_cash_cents) if shift.actual_cash_cents is not None else None
            ),
            'variance': to_decimal_string(shift.variance_cents) if shift.variance_cents is not None else None,
            'variance_label': shift.variance_label,
            'duration_minutes': minutes,
            'duration': duration_label(minutes),
            'movements': [m.to_dict() for m in shift.movements],
        }
