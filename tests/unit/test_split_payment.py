"""
Unit tests for split payments.
"""

import pytest
from decimal import Decimal

from pos_engine.exceptions import (
    BusinessLogicError, ExceedsRemainingError, IncompletePaymentError, InvalidAmountError,
    InvalidPaymentMethodError, NotFoundError
)
from pos_engine.models import PaymentEntry, PaymentMethod
from pos_engine.services.split_payment_service import SplitPaymentReconciler


@pytest.fixture
def reconciler(clock):
    return SplitPaymentReconciler(target_cents=10000, clock=clock)


class TestAddPayment:
    """Partial payments accumulate toward the frozen target."""

    def test_partial_payments(self, reconciler):
        reconciler.add_payment('card', '40.00', payer='Ana')
        reconciler.add_payment('cash', '25.50')

        assert reconciler.paid_cents == 6550
        assert reconciler.remaining_cents == 3450
        assert reconciler.is_complete() is False

    def test_none_amount_pays_the_remainder(self, reconciler):
        reconciler.add_payment('card', '30')
        entry = reconciler.add_payment('upi')

        assert entry.amount_cents == 7000
        assert entry.method == PaymentMethod.UPI
        assert reconciler.is_complete() is True

    def test_exceeding_remaining_is_rejected_and_entries_unchanged(self, reconciler):
        reconciler.add_payment('card', '60')

        with pytest.raises(ExceedsRemainingError) as exc:
            reconciler.add_payment('cash', '50')

        assert exc.value.remaining == Decimal('40.00')
        assert len(reconciler.entries) == 1
        assert reconciler.remaining_cents == 4000

    @pytest.mark.parametrize('amount', ['0', '-5', 0])
    def test_non_positive_amounts_rejected(self, reconciler, amount):
        with pytest.raises(InvalidAmountError):
            reconciler.add_payment('cash', amount)
        assert reconciler.entries == []

    def test_unknown_method_rejected(self, reconciler):
        with pytest.raises(InvalidPaymentMethodError):
            reconciler.add_payment('cheque', '10')

    def test_cash_received_gives_change(self, reconciler):
        entry = reconciler.add_payment('cash', '35', amount_received='50')

        assert entry.amount_received_cents == 5000
        assert entry.change_cents == 1500

    def test_cash_received_below_amount_rejected(self, reconciler):
        with pytest.raises(InvalidAmountError):
            reconciler.add_payment('cash', '35', amount_received='20')

    def test_received_is_ignored_for_card(self, reconciler):
        entry = reconciler.add_payment('card', '35', amount_received='50')
        assert entry.amount_received_cents is None
        assert entry.change_cents == 0

    def test_add_entry(self, reconciler):
        entry = PaymentEntry(method=PaymentMethod.MOBILE, amount_cents=2500, payer='Ben')
        assert reconciler.add_entry(entry) is entry
        assert reconciler.remaining_cents == 7500

    def test_add_percentage_is_capped_at_remaining(self, reconciler):
        reconciler.add_payment('card', '80')
        entry = reconciler.add_percentage(50, 'cash')

        assert entry.amount_cents == 2000
        assert reconciler.is_complete() is True

    def test_remove_payment(self, reconciler):
        entry = reconciler.add_payment('card', '20')

        assert reconciler.remove_payment(entry.id) is entry
        assert reconciler.remaining_cents == 10000
        with pytest.raises(NotFoundError):
            reconciler.remove_payment(entry.id)


class TestEqualSplit:
    """Even allocation across payers."""

    def test_three_payers(self, reconciler):
        entries = reconciler.equal_split(3, 'card')

        assert [e.amount_cents for e in entries] == [3334, 3333, 3333]
        assert [e.payer for e in entries] == ['Person 1', 'Person 2', 'Person 3']
        assert reconciler.remaining_cents == 0

    def test_worked_example_total(self, clock):
        reconciler = SplitPaymentReconciler(target_cents=13272, clock=clock)
        assert [e.amount_cents for e in reconciler.equal_split(3)] == [4424, 4424, 4424]

    @pytest.mark.parametrize('target', [1999, 10000, 13272, 87651])
    def test_always_sums_to_target(self, clock, target):
        for n in range(2, 21):
            reconciler = SplitPaymentReconciler(target_cents=target, clock=clock)
            entries = reconciler.equal_split(n)
            assert len(entries) == n
            assert sum(e.amount_cents for e in entries) == target

    def test_replaces_existing_entries(self, reconciler):
        reconciler.add_payment('card', '10')
        entries = reconciler.equal_split(2)

        assert len(reconciler.entries) == 2
        assert sum(e.amount_cents for e in entries) == 10000

    @pytest.mark.parametrize('n', [1, 0, 21, True, 2.0])
    def test_payer_count_out_of_range(self, reconciler, n):
        with pytest.raises(BusinessLogicError):
            reconciler.equal_split(n)


class TestFinalize:
    """Completion and the one-cent tolerance."""

    def test_incomplete_split_cannot_finalize(self, reconciler):
        reconciler.add_payment('card', '50')

        with pytest.raises(IncompletePaymentError) as exc:
            reconciler.finalize()
        assert exc.value.remaining == Decimal('50.00')

    def test_one_cent_short_is_complete(self, reconciler):
        reconciler.add_payment('card', '99.99')

        assert reconciler.is_complete() is True
        assert len(reconciler.finalize()) == 1

    def test_two_cents_short_is_not(self, reconciler):
        reconciler.add_payment('card', '99.98')
        assert reconciler.is_complete() is False

    def test_target_is_frozen(self, fixture_cart, clock):
        reconciler = SplitPaymentReconciler(fixture_cart.settlement.total_cents, clock=clock)
        fixture_cart.set_discount_percent(0)

        assert reconciler.target_cents == 13272
        with pytest.raises(AttributeError):
            reconciler.target_cents = 1

    def test_negative_target_rejected(self):
        with pytest.raises(InvalidAmountError):
            SplitPaymentReconciler(target_cents=-1)

    def test_to_dict(self, reconciler):
        reconciler.add_payment('card', '25')
        data = reconciler.to_dict()

        assert data['target'] == '100.00'
        assert data['paid'] == '25.00'
        assert data['remaining'] == '75.00'
        assert data['complete'] is False
        assert data['payments'][0]['method'] == 'card'
