"""
Unit tests for the pricing pipeline.
"""

import pytest
from decimal import Decimal

from pos_engine.exceptions import InvalidDiscountError, UnknownPromoCodeError
from pos_engine.models import AdjustmentMode, Cart, CatalogItem, Settlement, TipSpec
from pos_engine.services.cart_service import CartLedger
from pos_engine.services.pricing_service import (
    DEFAULT_TIP_PRESETS, compute_settlement, resolve_promo_code, tip_suggestions, validate_percent
)


class TestWorkedExample:
    """2 x 49.99 + 1 x 24.99, 10% discount, 18% tax."""

    def test_fixture_transaction_totals(self, fixture_cart):
        settlement = fixture_cart.settlement

        assert settlement.subtotal == Decimal('124.97')
        assert settlement.discount == Decimal('12.50')
        assert settlement.taxable == Decimal('112.47')
        assert settlement.tax == Decimal('20.25')
        assert settlement.tip == Decimal('0.00')
        assert settlement.total == Decimal('132.72')

    def test_settlement_is_recomputed_on_every_read(self, fixture_cart):
        before = fixture_cart.settlement
        fixture_cart.set_discount_percent(0)
        after = fixture_cart.settlement

        assert before.total_cents == 13272
        assert after.discount_cents == 0
        assert after.total_cents == 12497 + 2249  # 18% of 124.97 = 22.4946


class TestEdgeCases:
    """Empty carts and zero rates."""

    def test_empty_cart_yields_zero_settlement(self):
        cart = Cart(tax_percent=Decimal('18'))
        cart.tip = TipSpec(mode=AdjustmentMode.FIXED, amount_cents=500)

        assert compute_settlement(cart) == Settlement()

    def test_zero_discount_and_tax_short_circuit(self):
        ledger = CartLedger(tax_percent=Decimal('0'))
        ledger.add_item(CatalogItem(id='tea', name='Tea', price_cents=350, available_stock=10), quantity=3)
        settlement = ledger.settlement

        assert settlement.discount_cents == 0
        assert settlement.tax_cents == 0
        assert settlement.total_cents == 1050

    def test_full_discount_leaves_nothing_to_tax(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        settlement = ledger.set_discount_percent(100).settlement

        assert settlement.discount_cents == 4999
        assert settlement.taxable_cents == 0
        assert settlement.tax_cents == 0
        assert settlement.total_cents == 0

    def test_fixed_discount_is_capped_at_subtotal(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        settlement = ledger.set_discount_amount('100').settlement

        assert settlement.discount_cents == 4999
        assert settlement.total_cents == 0

    def test_fixed_discount(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        settlement = ledger.set_discount_amount('9.99').settlement

        assert settlement.discount_cents == 999
        assert settlement.taxable_cents == 4000
        assert settlement.tax_cents == 720
        assert settlement.total_cents == 4720


class TestTips:
    """Tips are computed on the post-tax, pre-tip amount."""

    def test_percent_tip_on_post_tax_amount(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        settlement = ledger.set_tip_percent(15).settlement

        # tax: 49.99 * 18% = 8.9982 -> 9.00
        # tip: (49.99 + 9.00) * 15% = 8.8485 -> 8.85
        assert settlement.tax_cents == 900
        assert settlement.tip_cents == 885
        assert settlement.total_cents == 4999 + 900 + 885

    def test_percent_tip_uses_the_rounded_settlement_figures(self, ledger):
        ledger.add_item(CatalogItem(id='gum', name='Gum', price_cents=122, available_stock=5))
        ledger.set_discount_percent(10)
        settlement = ledger.set_tip_percent(15).settlement

        # discount 0.122 -> 0.12, tax 1.098 * 18% = 0.19764 -> 0.20
        # tip: (1.22 - 0.12 + 0.20) * 15% = 0.195 -> 0.20
        assert settlement.discount_cents == 12
        assert settlement.tax_cents == 20
        assert settlement.tip_cents == 20
        assert settlement.total_cents == 150

    def test_percent_tip_matches_the_displayed_amounts(self, ledger, yoga_mat, yoga_block):
        ledger.add_item(yoga_mat, quantity=2)
        ledger.add_item(yoga_block)
        ledger.set_discount_percent(10)
        for percent in DEFAULT_TIP_PRESETS:
            s = ledger.set_tip_percent(percent).settlement
            base = s.subtotal_cents - s.discount_cents + s.tax_cents
            assert s.tip_cents == int((Decimal(base) * percent / 100).quantize(Decimal('1'), 'ROUND_HALF_UP'))

    def test_fixed_tip(self, ledger, yoga_mat):
        ledger.add_item(yoga_mat)
        settlement = ledger.set_tip_amount('5').settlement

        assert settlement.tip_cents == 500
        assert settlement.total_cents == 4999 + 900 + 500

    def test_tip_suggestions_preview_presets_without_changing_the_cart(self, fixture_cart):
        suggestions = tip_suggestions(fixture_cart.cart)

        assert [s['percent'] for s in suggestions] == DEFAULT_TIP_PRESETS
        assert all(s['total_cents'] == 13272 + s['tip_cents'] for s in suggestions)
        assert fixture_cart.cart.tip.percent == 0


class TestInvariants:
    """total == subtotal - discount + tax + tip, to the cent, and never negative."""

    @pytest.mark.parametrize('discount', ['0', '5', '10', '12.5', '33.33', '50', '99.99', '100'])
    @pytest.mark.parametrize('tax', ['0', '5', '12', '18', '28', '100'])
    def test_total_identity(self, discount, tax, yoga_mat, yoga_block):
        ledger = CartLedger(tax_percent=Decimal(tax))
        ledger.add_item(yoga_mat, quantity=3)
        ledger.add_item(yoga_block)
        ledger.add_item(CatalogItem(id='tea', name='Tea', price_cents=333, available_stock=50), quantity=7)
        ledger.set_discount_percent(discount)
        ledger.set_tip_percent('12.5')

        s = ledger.settlement
        assert s.total_cents >= 0
        assert s.taxable_cents == s.subtotal_cents - s.discount_cents
        assert s.total_cents == s.subtotal_cents - s.discount_cents + s.tax_cents + s.tip_cents


class TestPercentValidation:
    """Discount and tax percentages stay within [0, 100]."""

    def test_validate_percent(self):
        assert validate_percent('18') == Decimal('18')
        assert validate_percent(0) == Decimal('0')
        assert validate_percent(250, upper=None) == Decimal('250')

    @pytest.mark.parametrize('value', [-1, '100.01', 'abc', None, 'NaN'])
    def test_validate_percent_rejects(self, value):
        with pytest.raises(InvalidDiscountError):
            validate_percent(value)

    def test_tax_above_100_is_rejected(self, ledger):
        with pytest.raises(InvalidDiscountError):
            ledger.set_tax_percent(150)
        assert ledger.cart.tax_percent == Decimal('18')


class TestPromoCodes:
    """Promo table lookups."""

    def test_codes_are_trimmed_and_case_insensitive(self):
        discount = resolve_promo_code('  welcome10 ')
        assert discount.mode == AdjustmentMode.PERCENT
        assert discount.percent == Decimal('10')
        assert discount.promo_code == 'WELCOME10'

    def test_fixed_promo(self):
        discount = resolve_promo_code('FLAT50')
        assert discount.mode == AdjustmentMode.FIXED
        assert discount.amount_cents == 5000

    def test_unknown_code(self):
        with pytest.raises(UnknownPromoCodeError):
            resolve_promo_code('BOGUS')

    def test_empty_code(self):
        with pytest.raises(InvalidDiscountError):
            resolve_promo_code('   ')

    def test_custom_table(self):
        table = {'STAFF': {'type': 'percentage', 'value': '30'}}
        assert resolve_promo_code('staff', table).percent == Decimal('30')
        with pytest.raises(UnknownPromoCodeError):
            resolve_promo_code('WELCOME10', table)

    def test_promo_applies_to_settlement(self, ledger, yoga_mat, yoga_block):
        ledger.add_item(yoga_mat, quantity=2)
        ledger.add_item(yoga_block)
        settlement = ledger.apply_promo_code('WELCOME10').settlement

        assert settlement.total_cents == 13272
        assert ledger.cart.discount.promo_code == 'WELCOME10'
