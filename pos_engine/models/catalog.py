"""Collaborator records the engine consumes: catalog items and customers."""
from dataclasses import dataclass, field, replace
from typing import Optional

from pos_engine.utils.money import to_minor_units, to_decimal_string


@dataclass(frozen=True)
class CatalogItem:
    """Product as seen by the cart: price and stock at lookup time."""
    id: str
    name: str
    price_cents: int
    available_stock: int
    category: str = ''
    tax_category: str = 'standard'

    @classmethod
    def from_dict(cls, data: dict) -> 'CatalogItem':
        return cls(
            id=str(data['id']),
            name=data['name'],
            price_cents=to_minor_units(data['price']),
            available_stock=int(data.get('available_stock', data.get('stock', 0))),
            category=data.get('category', ''),
            tax_category=data.get('tax_category', 'standard'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'price': to_decimal_string(self.price_cents),
            'available_stock': self.available_stock,
            'category': self.category,
            'tax_category': self.tax_category,
        }

    def with_stock(self, available_stock: int) -> 'CatalogItem':
        return replace(self, available_stock=available_stock)


@dataclass(frozen=True)
class CustomerRecord:
    """Customer balances read from the customer store."""
    id: str
    name: str = ''
    loyalty_points: int = 0
    lifetime_points: int = 0
    credit_balance_cents: int = 0
    email: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, data: dict) -> 'CustomerRecord':
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            loyalty_points=int(data.get('loyalty_points', 0)),
            lifetime_points=int(data.get('lifetime_points', data.get('loyalty_points', 0))),
            credit_balance_cents=to_minor_units(data.get('credit_balance', 0)),
            email=data.get('email'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'loyalty_points': self.loyalty_points,
            'lifetime_points': self.lifetime_points,
            'credit_balance': to_decimal_string(self.credit_balance_cents),
            'email': self.email,
        }
