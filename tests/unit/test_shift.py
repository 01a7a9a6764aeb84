"""
Unit tests for the shift cash ledger.
"""

import pytest

from pos_engine.exceptions import (
    BusinessLogicError, InvalidAmountError, NoActiveShiftError, ShiftAlreadyActiveError
)
from pos_engine.models import CashDirection, ShiftLedger, ShiftStatus


class TestShiftLifecycle:
    """Open, move cash, close."""

    def test_balanced_shift(self, shift_ledger):
        shift_ledger.start_shift('200')
        shift_ledger.record_sale('150')
        shift_ledger.record_cash_movement('out', '50', 'bank deposit')

        assert shift_ledger.active.expected_cash_cents == 30000

        shift = shift_ledger.end_shift('300')

        assert shift.variance_cents == 0
        assert shift.variance_label == 'balanced'
        assert shift.status == ShiftStatus.CLOSED
        assert shift_ledger.active is None
        assert shift_ledger.history == [shift]

    def test_over_and_short(self, shift_ledger):
        shift_ledger.start_shift('100')
        over = shift_ledger.end_shift('105.50')
        shift_ledger.start_shift('100')
        short = shift_ledger.end_shift('90')

        assert over.variance_cents == 550
        assert over.variance_label == 'over'
        assert short.variance_cents == -1000
        assert short.variance_label == 'short'
        assert len(shift_ledger.history) == 2

    def test_only_one_open_shift(self, shift_ledger):
        first = shift_ledger.start_shift('100')

        with pytest.raises(ShiftAlreadyActiveError) as exc:
            shift_ledger.start_shift('50')
        assert exc.value.shift_id == first.id
        assert shift_ledger.active is first

    def test_operations_need_an_open_shift(self, shift_ledger):
        with pytest.raises(NoActiveShiftError):
            shift_ledger.record_cash_movement('in', '10')
        with pytest.raises(NoActiveShiftError):
            shift_ledger.record_sale('10')
        with pytest.raises(NoActiveShiftError):
            shift_ledger.end_shift('0')
        with pytest.raises(NoActiveShiftError):
            shift_ledger.summary()

    def test_closed_shift_is_not_touched_by_later_operations(self, shift_ledger):
        shift_ledger.start_shift('100')
        closed = shift_ledger.end_shift('100')
        before = closed.to_dict()

        shift_ledger.start_shift('20')
        shift_ledger.record_sale('5')
        shift_ledger.record_cash_movement(CashDirection.IN, '10')

        assert closed.to_dict() == before


class TestCashMovements:
    """Manual cash in and cash out."""

    def test_movements_update_totals(self, shift_ledger):
        shift_ledger.start_shift('100')
        shift_ledger.record_cash_movement('in', '25', '  float top-up ')
        movement = shift_ledger.record_cash_movement(CashDirection.OUT, '10.25', 'supplies')

        shift = shift_ledger.active
        assert shift.cash_in_cents == 2500
        assert shift.cash_out_cents == 1025
        assert shift.movements[0].reason == 'float top-up'
        assert movement.direction == CashDirection.OUT
        assert shift.expected_cash_cents == 10000 + 2500 - 1025

    @pytest.mark.parametrize('amount', ['0', '-5'])
    def test_movement_amount_must_be_positive(self, shift_ledger, amount):
        shift_ledger.start_shift('100')

        with pytest.raises(InvalidAmountError):
            shift_ledger.record_cash_movement('in', amount)
        assert shift_ledger.active.movements == []

    def test_invalid_direction(self, shift_ledger):
        shift_ledger.start_shift('100')

        with pytest.raises(BusinessLogicError):
            shift_ledger.record_cash_movement('sideways', '5')

    def test_negative_starting_cash(self, shift_ledger):
        with pytest.raises(InvalidAmountError):
            shift_ledger.start_shift('-1')
        assert shift_ledger.active is None


class TestSummary:
    """Shift report."""

    def test_summary_of_open_shift(self, shift_ledger, clock):
        shift_ledger.start_shift('200')
        shift_ledger.record_sale('150')
        shift_ledger.record_sale('20')
        clock.advance(minutes=185)

        summary = shift_ledger.summary()

        assert summary['status'] == 'open'
        assert summary['starting_cash'] == '200.00'
        assert summary['cash_sales'] == '170.00'
        assert summary['sales_count'] == 2
        assert summary['expected_cash'] == '370.00'
        assert summary['actual_cash'] is None
        assert summary['variance'] is None
        assert summary['duration'] == '3h 05m'

    def test_summary_of_closed_shift(self, shift_ledger):
        shift_ledger.start_shift('50')
        closed = shift_ledger.end_shift('49')

        summary = shift_ledger.summary(closed)

        assert summary['status'] == 'closed'
        assert summary['actual_cash'] == '49.00'
        assert summary['variance'] == '-1.00'
        assert summary['variance_label'] == 'short'

    def test_ledger_round_trip(self, shift_ledger):
        shift_ledger.start_shift('80')
        shift_ledger.record_cash_movement('out', '12', 'lunch')
        closed = shift_ledger.end_shift('68')

        assert ShiftLedger.from_dict(closed.to_dict()) == closed
