"""
Unit tests for the cart ledger.
"""

import pytest
from decimal import Decimal

from pos_engine.exceptions import InsufficientStockError, InvalidAmountError, InvalidQuantityError, NotFoundError
from pos_engine.models import Modifier


OAT_MILK = Modifier(id='oat', name='Oat milk', price_cents=50, group_id='milk')
EXTRA_SHOT = Modifier(id='shot', name='Extra shot', price_cents=75, group_id='extras')


class TestAddItem:
    """Adding products and merging identical lines."""

    def test_add_new_line(self, ledger, yoga_mat):
        update = ledger.add_item(yoga_mat)

        assert len(ledger.cart.items) == 1
        line = ledger.cart.items[0]
        assert update.line_id == line.id
        assert line.quantity == 1
        assert line.available_stock == 10
        assert update.settlement.subtotal_cents == 4999
        assert update.warning is None

    def test_same_product_and_modifiers_merge(self, ledger, yoga_mat):
        first = ledger.add_item(yoga_mat, [OAT_MILK])
        second = ledger.add_item(yoga_mat, [OAT_MILK])

        assert len(ledger.cart.items) == 1
        assert first.line_id == second.line_id
        assert ledger.cart.items[0].quantity == 2

    def test_modifier_order_does_not_matter(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat, [OAT_MILK, EXTRA_SHOT])
        ledger.add_item(yoga_mat, [EXTRA_SHOT, OAT_MILK])

        assert len(ledger.cart.items) == 1
        assert ledger.cart.items[0].quantity == 2

    def test_different_modifier_sets_get_separate_lines(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        ledger.add_item(yoga_mat, [OAT_MILK])

        assert len(ledger.cart.items) == 2

    def test_line_total_includes_modifiers(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat, [OAT_MILK, EXTRA_SHOT], quantity=2)

        assert ledger.cart.items[0].line_total_cents == (4999 + 50 + 75) * 2

    def test_quantity_is_capped_at_stock_with_warning(self, ledger, yoga_block):
        update = ledger.add_item(yoga_block, quantity=7)

        assert ledger.cart.items[0].quantity == 5
        assert update.clamped is True
        assert 'Yoga Block' in update.warning

    def test_merge_is_capped_at_stock(self, ledger, yoga_block):
        ledger.add_item(yoga_block, quantity=4)
        update = ledger.add_item(yoga_block, quantity=3)

        assert ledger.cart.items[0].quantity == 5
        assert update.clamped is True

    def test_sold_out_item_is_rejected(self, ledger, sold_out_strap):
        with pytest.raises(InsufficientStockError):
            ledger.add_item(sold_out_strap)
        assert ledger.cart.is_empty

    def test_re_adding_refreshes_stock_snapshot(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        ledger.add_item(yoga_mat.with_stock(3))
        line = ledger.cart.items[0]

        assert line.quantity == 2
        assert line.available_stock == 3
        assert ledger.set_quantity(line.id, 5).clamped is True
        assert line.quantity == 3

    def test_invalid_add_quantity(self, ledger, yoga_mat):
        with pytest.raises(InvalidQuantityError):
            ledger.add_item(yoga_mat, quantity=0)


class TestSetQuantity:
    """Quantity changes are validated and clamped."""

    @pytest.mark.parametrize('quantity', [0, -1, 2.5, True, '3', None])
    def test_invalid_quantities_are_rejected(self, ledger, yoga_mat, quantity):
        line_id = ledger.add_item(yoga_mat).line_id

        with pytest.raises(InvalidQuantityError) as exc:
            ledger.set_quantity(line_id, quantity)

        assert exc.value.line_id == line_id
        assert ledger.cart.items[0].quantity == 1

    def test_whole_float_is_accepted(self, ledger, yoga_mat):
        line_id = ledger.add_item(yoga_mat).line_id

        assert ledger.set_quantity(line_id, 3.0).quantity == 3

    def test_above_stock_is_clamped(self, ledger, yoga_block):
        line_id = ledger.add_item(yoga_block).line_id
        update = ledger.set_quantity(line_id, 9)

        assert update.quantity == 5
        assert update.warning is not None
        assert update.settlement.subtotal_cents == 2499 * 5

    def test_unknown_line(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.set_quantity('missing', 2)

    def test_decrement_removes_line_at_one(self, ledger, yoga_mat):
        line_id = ledger.add_item(yoga_mat, quantity=2).line_id

        assert ledger.decrement(line_id).quantity == 1
        ledger.decrement(line_id)
        assert ledger.cart.is_empty


class TestRemoveAndClear:
    """Removing lines and resetting the cart."""

    def test_remove_item(self, ledger, yoga_mat, yoga_block):
        mat_line = ledger.add_item(yoga_mat).line_id
        ledger.add_item(yoga_block)

        update = ledger.remove_item(mat_line)

        assert [line.catalog_item_id for line in ledger.cart.items] == ['block']
        assert update.settlement.subtotal_cents == 2499

    def test_remove_unknown_line(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.remove_item('missing')

    def test_clear_resets_discount_tip_and_customer(self, fixture_cart, customer):
        fixture_cart.set_tip_percent(10)
        fixture_cart.attach_customer(customer)
        fixture_cart.set_notes('table 4')

        update = fixture_cart.clear()
        cart = fixture_cart.cart

        assert cart.is_empty
        assert cart.discount.is_zero
        assert cart.tip.percent == 0
        assert cart.customer is None
        assert cart.notes == ''
        assert cart.tax_percent == Decimal('18')
        assert update.settlement.total_cents == 0


class TestSubtotalProperty:
    """Subtotal always equals the sum of line totals."""

    def test_subtotal_follows_every_mutation(self, ledger, catalog):
        mat = catalog.get_item('mat')
        tea = catalog.get_item('tea')
        block = catalog.get_item('block')

        steps = [
            lambda: ledger.add_item(mat),
            lambda: ledger.add_item(tea, quantity=12),
            lambda: ledger.add_item(block, [OAT_MILK]),
            lambda: ledger.set_quantity(ledger.cart.items[0].id, 4),
            lambda: ledger.add_item(mat),
            lambda: ledger.remove_item(ledger.cart.items[1].id),
            lambda: ledger.set_quantity(ledger.cart.items[-1].id, 99),
        ]
        for step in steps:
            update = step()
            expected = sum(line.line_total_cents for line in ledger.cart.items)
            assert update.settlement.subtotal_cents == expected


class TestAdjustments:
    """Discount, tip, customer and notes setters."""

    def test_negative_amounts_rejected(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)

        with pytest.raises(InvalidAmountError):
            ledger.set_discount_amount('-1')
        with pytest.raises(InvalidAmountError):
            ledger.set_tip_amount('-0.50')

    def test_clear_discount_and_tip(self, fixture_cart):
        fixture_cart.set_tip_amount('2')
        fixture_cart.clear_discount()
        settlement = fixture_cart.clear_tip().settlement

        assert settlement.discount_cents == 0
        assert settlement.tip_cents == 0

    def test_customer_attach_and_detach(self, ledger, customer):
        ledger.attach_customer(customer)
        assert ledger.cart.customer_id == 'c-1'

        ledger.detach_customer()
        assert ledger.cart.customer_id is None

    def test_notes_are_trimmed(self, ledger):
        ledger.set_notes('  no onions  ')
        assert ledger.cart.notes == 'no onions'
