"""Events emitted to the inventory and customer stores after settlement or refund."""
from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class StockAdjustment:
    """Negative ``quantity_delta`` on sale, positive on refund (restock)."""
    product_id: str
    line_id: str
    quantity_delta: int
    transaction_number: str

    kind = 'stock_adjustment'


@dataclass(frozen=True)
class LoyaltyPointsChanged:
    customer_id: str
    points_delta: int
    transaction_number: str

    kind = 'loyalty_points_changed'


@dataclass(frozen=True)
class CustomerPurchaseRecorded:
    """``purchase_amount_delta_cents`` is negative when a purchase is refunded."""
    customer_id: str
    purchase_amount_delta_cents: int
    transaction_number: str

    kind = 'customer_purchase_recorded'


@dataclass(frozen=True)
class StoreCreditChanged:
    customer_id: str
    credit_delta_cents: int
    transaction_number: str

    kind = 'store_credit_changed'


def event_to_dict(event) -> dict:
    data = asdict(event)
    data['kind'] = event.kind
    return data


class EventBus:
    """
    Synchronous fan-out to subscribed collaborators.

    Handlers are called in subscription order. A failing handler propagates
    its exception to the publisher.
    """

    def __init__(self):
        self._handlers = []

    def subscribe(self, handler, kind: Optional[str] = None) -> None:
        self._handlers.append((kind, handler))

    def publish(self, event) -> None:
        for kind, handler in self._handlers:
            if kind is None or kind == event.kind:
                handler(event)

    def publish_all(self, events) -> None:
        for event in events:
            self.publish(event)
