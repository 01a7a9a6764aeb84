"""
Cart ledger - in-memory cart operations.

All mutators are synchronous, touch nothing but the cart, and return a
``CartUpdate`` carrying the freshly recomputed settlement.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from pos_engine.exceptions import InvalidQuantityError, InsufficientStockError, NotFoundError, InvalidAmountError
from pos_engine.models.cart import AdjustmentMode, Cart, DiscountSpec, LineItem, Modifier, TipSpec
from pos_engine.models.catalog import CatalogItem, CustomerRecord
from pos_engine.models.settlement import Settlement
from pos_engine.services.pricing_service import (
    DEFAULT_TAX_PERCENT, compute_settlement, resolve_promo_code, validate_percent
)
from pos_engine.utils.money import to_minor_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartUpdate:
    """Result of a cart mutation. ``warning`` is set when a quantity was clamped to stock."""
    settlement: Settlement
    line_id: Optional[str] = None
    quantity: Optional[int] = None
    warning: Optional[str] = None

    @property
    def clamped(self) -> bool:
        return self.warning is not None


def _coerce_quantity(value, line_id: Optional[str] = None) -> int:
    """Whole quantity >= 1, or InvalidQuantityError."""
    if isinstance(value, bool):
        raise InvalidQuantityError(value, line_id)
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidQuantityError(value, line_id)
        value = int(value)
    if isinstance(value, Decimal):
        if value != value.to_integral_value():
            raise InvalidQuantityError(value, line_id)
        value = int(value)
    if not isinstance(value, int):
        raise InvalidQuantityError(value, line_id)
    if value < 1:
        raise InvalidQuantityError(value, line_id)
    return value


class CartLedger:
    """Owns one cart and every mutation applied to it."""

    def __init__(self, cart: Optional[Cart] = None, tax_percent: Decimal = DEFAULT_TAX_PERCENT):
        self.cart = cart if cart is not None else Cart(tax_percent=tax_percent)

    @property
    def settlement(self) -> Settlement:
        """Pricing pipeline result for the cart as it is right now."""
        return compute_settlement(self.cart)

    def _update(self, line: Optional[LineItem] = None, warning: Optional[str] = None) -> CartUpdate:
        return CartUpdate(
            settlement=self.settlement,
            line_id=line.id if line else None,
            quantity=line.quantity if line else None,
            warning=warning,
        )

    def _get_line(self, line_id: str) -> LineItem:
        line = self.cart.find_line(line_id)
        if line is None:
            raise NotFoundError(f'Line {line_id} is not in the cart', payload={'line_id': line_id})
        return line

    # =====================================================
    # LINES
    # =====================================================

    def add_item(self, catalog_item: CatalogItem, modifiers: Iterable[Modifier] = (), quantity: int = 1) -> CartUpdate:
        """
        Add a product (with an optional modifier set) to the cart.

        An identical product + modifier-set line is incremented instead of
        duplicated. The resulting quantity is capped at the product's
        available stock; capping is reported as a warning, not an error.
        """
        modifiers = tuple(modifiers)
        existing = next((line for line in self.cart.items if line.matches(catalog_item.id, modifiers)), None)
        quantity = _coerce_quantity(quantity, existing.id if existing else None)

        if catalog_item.available_stock <= 0:
            raise InsufficientStockError(
                existing.id if existing else None, catalog_item.name, quantity, catalog_item.available_stock
            )

        current = existing.quantity if existing else 0
        requested = current + quantity
        new_qty = min(requested, catalog_item.available_stock)
        warning = None
        if new_qty < requested:
            warning = f'Only {catalog_item.available_stock} of "{catalog_item.name}" in stock'
            logger.warning(
                f"[cart] add_item clamped: item={catalog_item.id}, requested={requested}, "
                f"stock={catalog_item.available_stock}"
            )

        if existing:
            existing.quantity = new_qty
            existing.available_stock = catalog_item.available_stock
            line = existing
        else:
            line = LineItem(
                catalog_item_id=catalog_item.id,
                name=catalog_item.name,
                unit_price_cents=catalog_item.price_cents,
                quantity=new_qty,
                available_stock=catalog_item.available_stock,
                category=catalog_item.category,
                tax_category=catalog_item.tax_category,
                modifiers=modifiers,
            )
            self.cart.items.append(line)

        logger.info(f"[cart] item added: item={catalog_item.id}, line={line.id}, qty={line.quantity}")
        return self._update(line, warning)

    def remove_item(self, line_id: str) -> CartUpdate:
        line = self._get_line(line_id)
        self.cart.items.remove(line)
        logger.info(f"[cart] line removed: line={line_id}")
        return self._update()

    def set_quantity(self, line_id: str, quantity) -> CartUpdate:
        """
        Set a line's quantity.

        Raises:
            InvalidQuantityError: quantity below 1 or not a whole number
            NotFoundError: unknown line

        Quantities above the stock snapshot are clamped (warning).
        """
        line = self._get_line(line_id)
        quantity = _coerce_quantity(quantity, line_id)

        warning = None
        if quantity > line.available_stock:
            warning = f'Only {line.available_stock} of "{line.name}" in stock'
            logger.warning(
                f"[cart] set_quantity clamped: line={line_id}, requested={quantity}, stock={line.available_stock}"
            )
            quantity = line.available_stock

        line.quantity = quantity
        return self._update(line, warning)

    def decrement(self, line_id: str) -> CartUpdate:
        """Lower a line by one unit; a line at 1 is removed."""
        line = self._get_line(line_id)
        if line.quantity <= 1:
            return self.remove_item(line_id)
        line.quantity -= 1
        return self._update(line)

    def clear(self) -> CartUpdate:
        """Empty the cart and drop discount, tip, notes and customer. Tax rate is kept."""
        tax_percent = self.cart.tax_percent
        self.cart.items.clear()
        self.cart.discount = DiscountSpec()
        self.cart.tip = TipSpec()
        self.cart.notes = ''
        self.cart.customer = None
        self.cart.tax_percent = tax_percent
        logger.info("[cart] cleared")
        return self._update()

    # =====================================================
    # DISCOUNT / TAX / TIP
    # =====================================================

    def set_discount_percent(self, percent) -> CartUpdate:
        pct = validate_percent(percent, 'Discount percentage')
        self.cart.discount = DiscountSpec(mode=AdjustmentMode.PERCENT, percent=pct)
        return self._update()

    def set_discount_amount(self, amount) -> CartUpdate:
        """Fixed discount; the pipeline caps it at the subtotal."""
        cents = to_minor_units(amount)
        if cents < 0:
            raise InvalidAmountError('Discount amount cannot be negative')
        self.cart.discount = DiscountSpec(mode=AdjustmentMode.FIXED, amount_cents=cents)
        return self._update()

    def apply_promo_code(self, code: str, promo_codes: Optional[dict] = None) -> CartUpdate:
        self.cart.discount = resolve_promo_code(code, promo_codes)
        logger.info(f"[cart] promo applied: {self.cart.discount.promo_code}")
        return self._update()

    def clear_discount(self) -> CartUpdate:
        self.cart.discount = DiscountSpec()
        return self._update()

    def set_tax_percent(self, percent) -> CartUpdate:
        self.cart.tax_percent = validate_percent(percent, 'Tax rate')
        return self._update()

    def set_tip_percent(self, percent) -> CartUpdate:
        pct = validate_percent(percent, 'Tip percentage', upper=None)
        self.cart.tip = TipSpec(mode=AdjustmentMode.PERCENT, percent=pct)
        return self._update()

    def set_tip_amount(self, amount) -> CartUpdate:
        cents = to_minor_units(amount)
        if cents < 0:
            raise InvalidAmountError('Tip cannot be negative')
        self.cart.tip = TipSpec(mode=AdjustmentMode.FIXED, amount_cents=cents)
        return self._update()

    def clear_tip(self) -> CartUpdate:
        self.cart.tip = TipSpec()
        return self._update()

    # =====================================================
    # CUSTOMER / NOTES
    # =====================================================

    def attach_customer(self, customer: CustomerRecord) -> CartUpdate:
        self.cart.customer = customer
        return self._update()

    def detach_customer(self) -> CartUpdate:
        self.cart.customer = None
        return self._update()

    def set_notes(self, notes: str) -> CartUpdate:
        self.cart.notes = (notes or '').strip()
        return self._update()
