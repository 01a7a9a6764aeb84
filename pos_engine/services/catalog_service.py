"""
In-memory catalog and customer stores.

Stand-ins for the inventory and customer collaborators: they answer the
lookups the engine needs at settlement and apply the events it emits.
"""
import json
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from pos_engine.exceptions import NotFoundError
from pos_engine.models.catalog import CatalogItem, CustomerRecord
from pos_engine.models.events import (
    CustomerPurchaseRecorded, EventBus, LoyaltyPointsChanged, StockAdjustment, StoreCreditChanged
)

logger = logging.getLogger(__name__)


class InMemoryCatalog:
    """Product catalog keyed by id."""

    def __init__(self, items: Iterable[CatalogItem] = ()):
        self._items: Dict[str, CatalogItem] = {item.id: item for item in items}

    @classmethod
    def from_json_file(cls, path: str) -> 'InMemoryCatalog':
        """Load a catalog seed: a JSON list of {id, name, price, stock, category, tax_category}."""
        with open(path, encoding='utf-8') as fh:
            data = json.load(fh)
        items = [CatalogItem.from_dict(row) for row in data]
        logger.info(f"[catalog] loaded {len(items)} items from {path}")
        return cls(items)

    def get_item(self, item_id: str) -> CatalogItem:
        item = self._items.get(str(item_id))
        if item is None:
            raise NotFoundError(f'Product {item_id} not found', payload={'product_id': str(item_id)})
        return item

    def available_stock(self, item_id: str) -> int:
        """Stock lookup handed to settlement."""
        return self.get_item(item_id).available_stock

    def put(self, item: CatalogItem) -> None:
        self._items[item.id] = item

    def list_items(self, category: Optional[str] = None) -> List[CatalogItem]:
        items = list(self._items.values())
        if category:
            items = [i for i in items if i.category == category]
        return sorted(items, key=lambda i: i.name)

    def apply_stock_adjustment(self, event: StockAdjustment) -> None:
        item = self.get_item(event.product_id)
        self._items[item.id] = item.with_stock(max(0, item.available_stock + event.quantity_delta))

    def subscribe_to(self, bus: EventBus) -> None:
        bus.subscribe(self.apply_stock_adjustment, StockAdjustment.kind)


class InMemoryCustomerStore:
    """Customer balances keyed by id; also tracks lifetime purchase totals."""

    def __init__(self, customers: Iterable[CustomerRecord] = ()):
        self._customers: Dict[str, CustomerRecord] = {c.id: c for c in customers}
        self.purchase_totals_cents: Dict[str, int] = {}

    def get_customer(self, customer_id: str) -> CustomerRecord:
        customer = self._customers.get(str(customer_id))
        if customer is None:
            raise NotFoundError(f'Customer {customer_id} not found', payload={'customer_id': str(customer_id)})
        return customer

    def put(self, customer: CustomerRecord) -> None:
        self._customers[customer.id] = customer

    def _replace(self, customer: CustomerRecord, **changes) -> None:
        self._customers[customer.id] = replace(customer, **changes)

    def apply_loyalty(self, event: LoyaltyPointsChanged) -> None:
        customer = self.get_customer(event.customer_id)
        lifetime = customer.lifetime_points + event.points_delta if event.points_delta > 0 else customer.lifetime_points
        self._replace(
            customer,
            loyalty_points=max(0, customer.loyalty_points + event.points_delta),
            lifetime_points=lifetime,
        )

    def apply_credit(self, event: StoreCreditChanged) -> None:
        customer = self.get_customer(event.customer_id)
        self._replace(customer, credit_balance_cents=customer.credit_balance_cents + event.credit_delta_cents)

    def apply_purchase(self, event: CustomerPurchaseRecorded) -> None:
        current = self.purchase_totals_cents.get(event.customer_id, 0)
        self.purchase_totals_cents[event.customer_id] = current + event.purchase_amount_delta_cents

    def subscribe_to(self, bus: EventBus) -> None:
        bus.subscribe(self.apply_loyalty, LoyaltyPointsChanged.kind)
        bus.subscribe(self.apply_credit, StoreCreditChanged.kind)
        bus.subscribe(self.apply_purchase, CustomerPurchaseRecorded.kind)
