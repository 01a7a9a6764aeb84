"""
Pricing pipeline - derives the Settlement of a cart.

Fixed order, never reordered:
    1. subtotal = sum of line totals
    2. discount = subtotal * discount% (or the fixed amount, capped at subtotal)
    3. taxable  = subtotal - discount
    4. tax      = taxable * tax%
    5. tip      = (subtotal - discount + tax) * tip%  (or the fixed amount)
    6. total    = subtotal - discount + tax + tip

Each reported amount is rounded half-up to the cent exactly once, from the
exact value of its own step. Tax takes the exact (unrounded) taxable amount;
the tip is taken on the rounded figures shown on the settlement. The total is
the sum of the rounded components, so
``total == subtotal - discount + tax + tip`` always holds to the cent.
"""
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from pos_engine.exceptions import InvalidDiscountError, UnknownPromoCodeError
from pos_engine.models.cart import AdjustmentMode, Cart, DiscountSpec, TipSpec
from pos_engine.models.settlement import Settlement
from pos_engine.utils.money import round_half_up, to_minor_units

DEFAULT_TAX_PERCENT = Decimal('18')

DEFAULT_TAX_RATE_PRESETS = [Decimal('0'), Decimal('5'), Decimal('12'), Decimal('15'), Decimal('18'), Decimal('28')]

DEFAULT_TIP_PRESETS = [Decimal('10'), Decimal('15'), Decimal('18'), Decimal('20'), Decimal('25')]

DEFAULT_PROMO_CODES = {
    'WELCOME10': {'type': 'percentage', 'value': '10', 'description': 'Welcome discount - 10% off'},
    'SAVE20': {'type': 'percentage', 'value': '20', 'description': 'Special offer - 20% off'},
    'FLAT50': {'type': 'fixed', 'value': '50', 'description': 'Flat 50.00 discount'},
    'YOGA25': {'type': 'percentage', 'value': '25', 'description': 'Yoga enthusiast - 25% off'},
}


def validate_percent(value, label: str = 'Percentage', upper: Optional[Decimal] = Decimal('100')) -> Decimal:
    """Parse a percentage and check it lies in [0, upper]."""
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidDiscountError(f'{label} must be a number, got {value!r}')
    if not pct.is_finite() or pct < 0:
        raise InvalidDiscountError(f'{label} cannot be negative')
    if upper is not None and pct > upper:
        raise InvalidDiscountError(f'{label} cannot exceed {upper}%')
    return pct


def _exact_discount(subtotal_cents: int, discount: DiscountSpec) -> Decimal:
    if discount.mode == AdjustmentMode.FIXED:
        return Decimal(min(discount.amount_cents, subtotal_cents))
    if discount.percent == 0:
        return Decimal(0)
    return Decimal(subtotal_cents) * discount.percent / 100


def _exact_tip(base: Decimal, tip: TipSpec) -> Decimal:
    if tip.mode == AdjustmentMode.FIXED:
        return Decimal(tip.amount_cents)
    if tip.percent == 0:
        return Decimal(0)
    return base * tip.percent / 100


def compute_settlement(cart: Cart) -> Settlement:
    """
    Run the pricing pipeline over a cart.

    Recomputed on every read; nothing is cached on the cart.

    Returns:
        Settlement with all amounts in cents (all zero for an empty cart)
    """
    if not cart.items:
        return Settlement()

    # 1. Subtotal (exact integer cents)
    subtotal = sum(line.line_total_cents for line in cart.items)

    # 2-3. Discount and taxable amount
    exact_discount = _exact_discount(subtotal, cart.discount)
    discount = round_half_up(exact_discount)
    exact_taxable = Decimal(subtotal) - exact_discount
    taxable = subtotal - discount

    # 4. Tax on the discounted amount
    if cart.tax_percent == 0:
        exact_tax = Decimal(0)
    else:
        exact_tax = exact_taxable * cart.tax_percent / 100
    tax = round_half_up(exact_tax)

    # 5. Tip on the post-tax, pre-tip amount as shown on the settlement
    tip = round_half_up(_exact_tip(Decimal(subtotal - discount + tax), cart.tip))

    # 6. Total from the rounded components
    total = subtotal - discount + tax + tip

    return Settlement(
        subtotal_cents=subtotal,
        discount_cents=discount,
        taxable_cents=taxable,
        tax_cents=tax,
        tip_cents=tip,
        total_cents=total,
    )


def resolve_promo_code(code: str, promo_codes: Optional[Dict[str, dict]] = None) -> DiscountSpec:
    """
    Translate a promo code into a discount setting.

    Codes are matched case-insensitively after trimming.

    Raises:
        UnknownPromoCodeError: code not in the table
    """
    table = DEFAULT_PROMO_CODES if promo_codes is None else promo_codes
    normalized = (code or '').strip().upper()
    if not normalized:
        raise InvalidDiscountError('Please enter a promo code')

    promo = table.get(normalized)
    if not promo:
        raise UnknownPromoCodeError(normalized)

    if promo.get('type') == 'fixed':
        amount = to_minor_units(promo['value'])
        if amount < 0:
            raise InvalidDiscountError(f'Promo {normalized} has a negative amount')
        return DiscountSpec(mode=AdjustmentMode.FIXED, amount_cents=amount, promo_code=normalized)

    percent = validate_percent(promo['value'], 'Promo percentage')
    return DiscountSpec(mode=AdjustmentMode.PERCENT, percent=percent, promo_code=normalized)


def tip_suggestions(cart: Cart, presets: Iterable = DEFAULT_TIP_PRESETS) -> List[dict]:
    """
    Preview of each preset tip for the current cart.

    Each entry: {'percent': Decimal, 'tip_cents': int, 'total_cents': int}.
    The preview ignores whatever tip is currently set.
    """
    preview = cart.copy()
    suggestions = []
    for preset in presets:
        percent = validate_percent(preset, 'Tip percentage', upper=None)
        preview.tip = TipSpec(mode=AdjustmentMode.PERCENT, percent=percent)
        settlement = compute_settlement(preview)
        suggestions.append({
            'percent': percent,
            'tip_cents': settlement.tip_cents,
            'total_cents': settlement.total_cents,
        })
    return suggestions
