"""Cart working state: line items, modifiers, discount / tax / tip settings."""
import copy
import enum
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from pos_engine.models.catalog import CustomerRecord
from pos_engine.utils.money import to_minor_units, to_decimal_string


class AdjustmentMode(str, enum.Enum):
    """How a discount or tip value is expressed."""
    PERCENT = 'percent'
    FIXED = 'fixed'


@dataclass(frozen=True)
class Modifier:
    """Priced option attached to a line (extra shot, size upgrade...)."""
    id: str
    name: str
    price_cents: int = 0
    group_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Modifier':
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            price_cents=to_minor_units(data.get('price', 0)),
            group_id=data.get('group_id'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'price': to_decimal_string(self.price_cents),
            'group_id': self.group_id,
        }


@dataclass(frozen=True)
class DiscountSpec:
    """Cart-level discount. ``percent`` applies in PERCENT mode, ``amount_cents`` in FIXED mode."""
    mode: AdjustmentMode = AdjustmentMode.PERCENT
    percent: Decimal = Decimal('0')
    amount_cents: int = 0
    promo_code: Optional[str] = None

    @property
    def is_zero(self) -> bool:
        if self.mode == AdjustmentMode.PERCENT:
            return self.percent == 0
        return self.amount_cents == 0

    def to_dict(self) -> dict:
        return {
            'mode': self.mode.value,
            'percent': str(self.percent),
            'amount': to_decimal_string(self.amount_cents),
            'promo_code': self.promo_code,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'DiscountSpec':
        if not data:
            return cls()
        return cls(
            mode=AdjustmentMode(data.get('mode', 'percent')),
            percent=Decimal(str(data.get('percent', '0'))),
            amount_cents=to_minor_units(data.get('amount', 0)),
            promo_code=data.get('promo_code'),
        )


@dataclass(frozen=True)
class TipSpec:
    """Tip setting. Percent tips are computed on the post-tax, pre-tip amount."""
    mode: AdjustmentMode = AdjustmentMode.PERCENT
    percent: Decimal = Decimal('0')
    amount_cents: int = 0

    def to_dict(self) -> dict:
        return {
            'mode': self.mode.value,
            'percent': str(self.percent),
            'amount': to_decimal_string(self.amount_cents),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'TipSpec':
        if not data:
            return cls()
        return cls(
            mode=AdjustmentMode(data.get('mode', 'percent')),
            percent=Decimal(str(data.get('percent', '0'))),
            amount_cents=to_minor_units(data.get('amount', 0)),
        )


class LineItem:
    """
    One cart line. Owned by the cart that holds it.

    ``available_stock`` is the stock snapshot taken when the product was
    added; settlement re-validates against a fresh lookup.
    """

    def __init__(
        self,
        catalog_item_id: str,
        name: str,
        unit_price_cents: int,
        quantity: int = 1,
        available_stock: int = 0,
        category: str = '',
        tax_category: str = 'standard',
        modifiers: Tuple[Modifier, ...] = (),
        id: Optional[str] = None
    ):
        self.id = id or uuid.uuid4().hex
        self.catalog_item_id = catalog_item_id
        self.name = name
        self.unit_price_cents = unit_price_cents
        self.quantity = quantity
        self.available_stock = available_stock
        self.category = category
        self.tax_category = tax_category
        self.modifiers = tuple(modifiers)

    @property
    def modifier_key(self) -> frozenset:
        return frozenset(m.id for m in self.modifiers)

    @property
    def unit_total_cents(self) -> int:
        """Unit price including modifiers."""
        return self.unit_price_cents + sum(m.price_cents for m in self.modifiers)

    @property
    def line_total_cents(self) -> int:
        return self.unit_total_cents * self.quantity

    def matches(self, catalog_item_id: str, modifiers) -> bool:
        """Same product with the same modifier set."""
        return (
            self.catalog_item_id == catalog_item_id
            and self.modifier_key == frozenset(m.id for m in modifiers)
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'catalog_item_id': self.catalog_item_id,
            'name': self.name,
            'unit_price': to_decimal_string(self.unit_price_cents),
            'quantity': self.quantity,
            'available_stock': self.available_stock,
            'category': self.category,
            'tax_category': self.tax_category,
            'modifiers': [m.to_dict() for m in self.modifiers],
            'line_total': to_decimal_string(self.line_total_cents),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LineItem':
        return cls(
            id=data['id'],
            catalog_item_id=str(data['catalog_item_id']),
            name=data['name'],
            unit_price_cents=to_minor_units(data['unit_price']),
            quantity=int(data['quantity']),
            available_stock=int(data.get('available_stock', 0)),
            category=data.get('category', ''),
            tax_category=data.get('tax_category', 'standard'),
            modifiers=tuple(Modifier.from_dict(m) for m in data.get('modifiers', [])),
        )

    def __repr__(self):
        return f"<LineItem(id={self.id}, item={self.catalog_item_id}, qty={self.quantity}, total={self.line_total_cents})>"


class Cart:
    """
    Mutable working state of one sale. Insertion order of ``items`` is the
    receipt order.
    """

    def __init__(self, tax_percent: Decimal = Decimal('0')):
        self.items: List[LineItem] = []
        self.discount = DiscountSpec()
        self.tax_percent = Decimal(tax_percent)
        self.tip = TipSpec()
        self.notes = ''
        self.customer: Optional[CustomerRecord] = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def customer_id(self) -> Optional[str]:
        return self.customer.id if self.customer else None

    def find_line(self, line_id: str) -> Optional[LineItem]:
        for line in self.items:
            if line.id == line_id:
                return line
        return None

    def copy(self) -> 'Cart':
        """Independent deep copy (used for held sales and snapshots)."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            'items': [line.to_dict() for line in self.items],
            'discount': self.discount.to_dict(),
            'tax_percent': str(self.tax_percent),
            'tip': self.tip.to_dict(),
            'notes': self.notes,
            'customer': self.customer.to_dict() if self.customer else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Cart':
        cart = cls(tax_percent=Decimal(str(data.get('tax_percent', '0'))))
        cart.items = [LineItem.from_dict(line) for line in data.get('items', [])]
        cart.discount = DiscountSpec.from_dict(data.get('discount'))
        cart.tip = TipSpec.from_dict(data.get('tip'))
        cart.notes = data.get('notes', '')
        if data.get('customer'):
            cart.customer = CustomerRecord.from_dict(data['customer'])
        return cart

    def __eq__(self, other):
        if not isinstance(other, Cart):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"<Cart(lines={len(self.items)}, items={self.item_count})>"
