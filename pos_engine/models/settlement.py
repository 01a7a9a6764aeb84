"""Settlement breakdown derived from a cart."""
from dataclasses import dataclass
from decimal import Decimal

from pos_engine.utils.money import from_minor_units, to_minor_units, to_decimal_string


@dataclass(frozen=True)
class Settlement:
    """Discount / tax / tip / total breakdown, all in cents."""
    subtotal_cents: int = 0
    discount_cents: int = 0
    taxable_cents: int = 0
    tax_cents: int = 0
    tip_cents: int = 0
    total_cents: int = 0

    @property
    def subtotal(self) -> Decimal:
        return from_minor_units(self.subtotal_cents)

    @property
    def discount(self) -> Decimal:
        return from_minor_units(self.discount_cents)

    @property
    def taxable(self) -> Decimal:
        return from_minor_units(self.taxable_cents)

    @property
    def tax(self) -> Decimal:
        return from_minor_units(self.tax_cents)

    @property
    def tip(self) -> Decimal:
        return from_minor_units(self.tip_cents)

    @property
    def total(self) -> Decimal:
        return from_minor_units(self.total_cents)

    def to_dict(self) -> dict:
        return {
            'subtotal': to_decimal_string(self.subtotal_cents),
            'discount': to_decimal_string(self.discount_cents),
            'taxable': to_decimal_string(self.taxable_cents),
            'tax': to_decimal_string(self.tax_cents),
            'tip': to_decimal_string(self.tip_cents),
            'total': to_decimal_string(self.total_cents),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Settlement':
        return cls(
            subtotal_cents=to_minor_units(data['subtotal']),
            discount_cents=to_minor_units(data['discount']),
            taxable_cents=to_minor_units(data['taxable']),
            tax_cents=to_minor_units(data['tax']),
            tip_cents=to_minor_units(data['tip']),
            total_cents=to_minor_units(data['total']),
        )
