"""
Transaction settlement - turns a cart into an immutable Transaction.

Settlement is all-or-nothing: every check (stock, payments, store credit,
drawer) runs before anything is created or emitted, and the originating
cart is never modified. Inventory and customer updates leave the engine as
events; the engine owns neither store.
"""
import inspect
import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pos_engine.exceptions import (
    BusinessLogicError, EmptyCartError, ExceedsRemainingError, IncompletePaymentError,
    InsufficientCreditError, InsufficientStockError, InvalidStateTransitionError, NoActiveShiftError
)
from pos_engine.models.cart import Cart
from pos_engine.models.catalog import CustomerRecord
from pos_engine.models.events import (
    CustomerPurchaseRecorded, EventBus, LoyaltyPointsChanged, StockAdjustment, StoreCreditChanged
)
from pos_engine.models.payment import PaymentEntry, PaymentMethod, normalize_payment_method
from pos_engine.models.settlement import Settlement
from pos_engine.models.shift import CashDirection
from pos_engine.models.transaction import Transaction, TransactionLine, TransactionStatus
from pos_engine.services.loyalty_service import DEFAULT_POINTS_PER_UNIT, points_for_purchase
from pos_engine.services.pricing_service import compute_settlement
from pos_engine.utils.money import DEFAULT_EPSILON_CENTS, from_minor_units, to_minor_units, within_epsilon

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _resolve(value):
    """Await collaborator results that are awaitable; pass plain values through."""
    if inspect.isawaitable(value):
        return await value
    return value


class TransactionNumberGenerator:
    """
    Transaction numbers of the form ``TXN-<epoch ms>-<seq>``.

    The sequence never repeats within a generator, so numbers are unique
    even when several are issued in the same millisecond.
    """

    def __init__(self, prefix: str = 'TXN', clock: Callable[[], datetime] = _utcnow):
        self.prefix = prefix
        self.clock = clock
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def next_number(self) -> str:
        with self._lock:
            seq = next(self._sequence)
            millis = int(self.clock().timestamp() * 1000)
        return f'{self.prefix}-{millis}-{seq:03d}'


@dataclass(frozen=True)
class SettlementResult:
    """Completed transaction plus the events emitted for collaborators."""
    transaction: Transaction
    events: Tuple[object, ...]

    @property
    def change_cents(self) -> int:
        return self.transaction.change_cents


class SettlementService:
    """
    Settles carts, refunds and cancels transactions.

    Collaborators are injected: ``events`` receives stock / loyalty / credit
    events, ``clock`` stamps timestamps, ``number_generator`` issues
    transaction numbers.
    """

    def __init__(
        self,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = _utcnow,
        number_generator: Optional[TransactionNumberGenerator] = None,
        epsilon_cents: int = DEFAULT_EPSILON_CENTS,
        points_per_unit: Decimal = DEFAULT_POINTS_PER_UNIT
    ):
        self.events = events if events is not None else EventBus()
        self.clock = clock
        self.numbers = number_generator or TransactionNumberGenerator(clock=clock)
        self.epsilon_cents = epsilon_cents
        self.points_per_unit = Decimal(points_per_unit)

    # =====================================================
    # SETTLE
    # =====================================================

    def settle(self, cart: Cart, stock_lookup: Callable, payment_entries: Optional[Sequence[PaymentEntry]] = None,
               payment_method=None, amount_received=None, shift=None,
               customer_lookup: Optional[Callable] = None) -> SettlementResult:
        """
        Settle a cart.

        Args:
            cart: cart to settle (left untouched)
            stock_lookup: product id -> currently available stock
            payment_entries: split payments; when None a single full payment is made
            payment_method: method of the single payment (None means cash)
            amount_received: cash handed over for a single cash payment
            shift: ShiftCashLedger receiving the cash portion, if any
            customer_lookup: customer id -> fresh CustomerRecord; defaults to the cart's copy

        Returns:
            SettlementResult with the Completed transaction and emitted events

        Raises:
            EmptyCartError, InsufficientStockError, IncompletePaymentError,
            ExceedsRemainingError, InsufficientCreditError, NoActiveShiftError
        """
        snapshot = self._snapshot(cart)
        stock = {item_id: stock_lookup(item_id) for item_id in self._product_ids(snapshot)}
        customer = snapshot.customer
        if customer_lookup is not None and snapshot.customer_id:
            customer = customer_lookup(snapshot.customer_id)
        return self._complete(snapshot, stock, customer, payment_entries, payment_method, amount_received, shift)

    async def asettle(self, cart: Cart, stock_lookup: Callable,
                      payment_entries: Optional[Sequence[PaymentEntry]] = None, payment_method=None,
                      amount_received=None, shift=None,
                      customer_lookup: Optional[Callable] = None) -> SettlementResult:
        """
        Same as ``settle`` with collaborators that may be coroutines.

        The cart is snapshotted before the first await, so the pricing
        pipeline never runs against a cart changed mid-settlement.
        """
        snapshot = self._snapshot(cart)
        stock = {}
        for item_id in self._product_ids(snapshot):
            stock[item_id] = await _resolve(stock_lookup(item_id))
        customer = snapshot.customer
        if customer_lookup is not None and snapshot.customer_id:
            customer = await _resolve(customer_lookup(snapshot.customer_id))
        return self._complete(snapshot, stock, customer, payment_entries, payment_method, amount_received, shift)

    def _snapshot(self, cart: Cart) -> Cart:
        if cart.is_empty:
            raise EmptyCartError()
        return cart.copy()

    @staticmethod
    def _product_ids(cart: Cart) -> List[str]:
        seen = []
        for line in cart.items:
            if line.catalog_item_id not in seen:
                seen.append(line.catalog_item_id)
        return seen

    def _check_stock(self, cart: Cart, stock: Dict[str, int]) -> None:
        """
        Lines of the same product share its stock; the first line over the limit fails.

        A lookup that returns None (product unknown to the store) counts as no stock.
        """
        used: Dict[str, int] = {}
        for line in cart.items:
            used[line.catalog_item_id] = used.get(line.catalog_item_id, 0) + line.quantity
            available = stock[line.catalog_item_id]
            available = 0 if available is None else int(available)
            if used[line.catalog_item_id] > available:
                logger.warning(
                    f"[settle] insufficient stock: line={line.id}, item={line.catalog_item_id}, "
                    f"required={used[line.catalog_item_id]}, available={available}"
                )
                raise InsufficientStockError(line.id, line.name, used[line.catalog_item_id], available)

    def _resolve_payments(self, total_cents: int, payment_entries, payment_method,
                          amount_received) -> List[PaymentEntry]:
        if payment_entries is not None:
            entries = list(payment_entries)
            paid = sum(e.amount_cents for e in entries)
            if not within_epsilon(paid, total_cents, self.epsilon_cents):
                if paid < total_cents:
                    raise IncompletePaymentError(from_minor_units(total_cents - paid))
                raise ExceedsRemainingError(from_minor_units(paid), from_minor_units(total_cents))
            return entries

        method = normalize_payment_method(payment_method)
        received_cents = None
        if method.affects_drawer and amount_received is not None:
            received_cents = to_minor_units(amount_received)
            if received_cents < total_cents:
                raise IncompletePaymentError(
                    from_minor_units(total_cents - received_cents),
                    message='Amount received is less than the total'
                )
        return [PaymentEntry(
            method=method, amount_cents=total_cents, amount_received_cents=received_cents, timestamp=self.clock()
        )]

    @staticmethod
    def _check_credit(customer: Optional[CustomerRecord], credit_cents: int) -> None:
        if customer is None:
            raise BusinessLogicError('Store credit payments need a customer on the cart')
        if credit_cents > customer.credit_balance_cents:
            raise InsufficientCreditError(
                customer.id, from_minor_units(credit_cents), from_minor_units(customer.credit_balance_cents)
            )

    def _complete(self, snapshot: Cart, stock: Dict[str, int], customer: Optional[CustomerRecord],
                  payment_entries, payment_method, amount_received, shift) -> SettlementResult:
        settlement: Settlement = compute_settlement(snapshot)

        # Validation first: nothing below may fail once the transaction exists
        self._check_stock(snapshot, stock)
        payments = self._resolve_payments(settlement.total_cents, payment_entries, payment_method, amount_received)
        credit_cents = sum(p.amount_cents for p in payments if p.method == PaymentMethod.STORE_CREDIT)
        if credit_cents:
            self._check_credit(customer, credit_cents)
        cash_cents = sum(p.amount_cents for p in payments if p.method.affects_drawer)
        if shift is not None and cash_cents > 0 and shift.active is None:
            raise NoActiveShiftError('No active shift to record the cash sale')

        now = self.clock()
        points = 0
        if customer is not None:
            points = points_for_purchase(settlement.total_cents, customer.lifetime_points, self.points_per_unit)

        transaction = Transaction(
            number=self.numbers.next_number(),
            lines=[TransactionLine.from_line_item(line) for line in snapshot.items],
            settlement=settlement,
            payments=payments,
            created_at=now,
            discount=snapshot.discount,
            tax_percent=snapshot.tax_percent,
            tip=snapshot.tip,
            customer_id=snapshot.customer_id,
            notes=snapshot.notes,
            points_earned=points,
        )
        transaction.complete(now)

        events = self._sale_events(transaction, credit_cents)
        self.events.publish_all(events)
        if shift is not None and cash_cents > 0:
            shift.record_sale(from_minor_units(cash_cents))

        logger.info(
            f"[settle] completed: number={transaction.number}, total={settlement.total_cents}, "
            f"payments={len(payments)}, customer={transaction.customer_id}"
        )
        return SettlementResult(transaction=transaction, events=tuple(events))

    @staticmethod
    def _sale_events(transaction: Transaction, credit_cents: int) -> list:
        number = transaction.number
        events = [
            StockAdjustment(line.catalog_item_id, line.line_id, -line.quantity, number)
            for line in transaction.lines
        ]
        if transaction.customer_id:
            if transaction.points_earned:
                events.append(LoyaltyPointsChanged(transaction.customer_id, transaction.points_earned, number))
            events.append(CustomerPurchaseRecorded(transaction.customer_id, transaction.total_cents, number))
            if credit_cents:
                events.append(StoreCreditChanged(transaction.customer_id, -credit_cents, number))
        return events

    # =====================================================
    # DRAFT / CANCEL / REFUND
    # =====================================================

    def prepare_draft(self, cart: Cart) -> Transaction:
        """Draft transaction for a cart (no payments, no events)."""
        snapshot = self._snapshot(cart)
        return Transaction(
            number=self.numbers.next_number(),
            lines=[TransactionLine.from_line_item(line) for line in snapshot.items],
            settlement=compute_settlement(snapshot),
            payments=(),
            created_at=self.clock(),
            discount=snapshot.discount,
            tax_percent=snapshot.tax_percent,
            tip=snapshot.tip,
            customer_id=snapshot.customer_id,
            notes=snapshot.notes,
        )

    def cancel(self, transaction: Transaction, reason: str = '') -> Transaction:
        """Draft -> Cancelled."""
        transaction.cancel(reason, self.clock())
        logger.info(f"[settle] cancelled: number={transaction.number}")
        return transaction

    def refund(self, transaction: Transaction, reason: str, shift=None) -> SettlementResult:
        """
        Full refund of a Completed transaction.

        Emits a restock per line and reverses the customer effects. With a
        shift ledger, the cash portion is paid out of the drawer.

        Raises:
            InvalidStateTransitionError: not Completed (already refunded, cancelled, draft)
            NoActiveShiftError: cash to pay out but the shift ledger has no open shift
        """
        if not transaction.can_transition_to(TransactionStatus.REFUNDED):
            raise InvalidStateTransitionError(transaction.status, TransactionStatus.REFUNDED)

        reason = (reason or '').strip()
        if not reason:
            raise BusinessLogicError('A refund reason is required')

        cash_cents = transaction.cash_cents
        if shift is not None and cash_cents > 0 and shift.active is None:
            raise NoActiveShiftError('No active shift to pay the refund from')

        transaction.refund(reason, self.clock())

        number = transaction.number
        events = [
            StockAdjustment(line.catalog_item_id, line.line_id, line.quantity, number)
            for line in transaction.lines
        ]
        if transaction.customer_id:
            if transaction.points_earned:
                events.append(LoyaltyPointsChanged(transaction.customer_id, -transaction.points_earned, number))
            events.append(CustomerPurchaseRecorded(transaction.customer_id, -transaction.total_cents, number))
            credit_cents = transaction.paid_with(PaymentMethod.STORE_CREDIT)
            if credit_cents:
                events.append(StoreCreditChanged(transaction.customer_id, credit_cents, number))

        self.events.publish_all(events)
        if shift is not None and cash_cents > 0:
            shift.record_cash_movement(CashDirection.OUT, from_minor_units(cash_cents), f'Refund {number}')

        logger.info(f"[settle] refunded: number={number}, total={transaction.total_cents}, reason={reason!r}")
        return SettlementResult(transaction=transaction, events=tuple(events))
