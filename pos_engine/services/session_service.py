"""
Terminal sessions.

A session carries one terminal's working state: the active cart, parked
(held) sales, the split in progress and the drawer's shift ledger. Its
operations are not thread-safe on their own; callers hold ``session.lock``
around every request.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from pos_engine.exceptions import BusinessLogicError, EmptyCartError, NotFoundError
from pos_engine.models.cart import Cart
from pos_engine.services.cart_service import CartLedger
from pos_engine.services.pricing_service import DEFAULT_TAX_PERCENT
from pos_engine.services.shift_service import ShiftCashLedger
from pos_engine.services.split_payment_service import DEFAULT_MAX_PAYERS, SplitPaymentReconciler
from pos_engine.utils.money import DEFAULT_EPSILON_CENTS

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HeldSale:
    """A parked cart."""
    cart: Cart
    held_at: datetime
    label: str = ''
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'label': self.label,
            'held_at': self.held_at.isoformat(),
            'items': self.cart.item_count,
            'cart': self.cart.to_dict(),
        }


class TerminalSession:
    """Working state of one terminal."""

    def __init__(
        self,
        terminal_id: Optional[str] = None,
        tax_percent: Decimal = DEFAULT_TAX_PERCENT,
        epsilon_cents: int = DEFAULT_EPSILON_CENTS,
        max_payers: int = DEFAULT_MAX_PAYERS,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.id = terminal_id or uuid.uuid4().hex
        self.default_tax_percent = Decimal(tax_percent)
        self.epsilon_cents = epsilon_cents
        self.max_payers = max_payers
        self.clock = clock
        self.lock = threading.RLock()
        self.ledger = CartLedger(tax_percent=self.default_tax_percent)
        self.held: List[HeldSale] = []
        self.split: Optional[SplitPaymentReconciler] = None
        self.shifts = ShiftCashLedger(clock=clock)

    @property
    def cart(self) -> Cart:
        return self.ledger.cart

    def _fresh_cart(self) -> None:
        self.ledger = CartLedger(tax_percent=self.default_tax_percent)
        self.split = None

    # -- held sales -------------------------------------------------------

    def hold(self, label: str = '') -> HeldSale:
        """Park the active cart and start a fresh one."""
        if self.cart.is_empty:
            raise EmptyCartError('Cannot hold an empty cart')
        held = HeldSale(cart=self.cart.copy(), held_at=self.clock(), label=(label or '').strip())
        self.held.append(held)
        self._fresh_cart()
        logger.info(f"[session] sale held: terminal={self.id}, held={held.id}")
        return held

    def _find_held(self, held_id: str) -> HeldSale:
        for held in self.held:
            if held.id == held_id:
                return held
        raise NotFoundError(f'Held sale {held_id} not found', payload={'held_id': held_id})

    def resume(self, held_id: str) -> Cart:
        """Make a held cart active again; a non-empty active cart is held first."""
        held = self._find_held(held_id)
        if not self.cart.is_empty:
            self.hold()
        self.held.remove(held)
        self.ledger = CartLedger(cart=held.cart)
        self.split = None
        logger.info(f"[session] sale resumed: terminal={self.id}, held={held_id}")
        return self.cart

    def discard_held(self, held_id: str) -> HeldSale:
        held = self._find_held(held_id)
        self.held.remove(held)
        return held

    # -- split payment ----------------------------------------------------

    def start_split(self) -> SplitPaymentReconciler:
        """Freeze the current total as the split target."""
        if self.cart.is_empty:
            raise EmptyCartError()
        self.split = SplitPaymentReconciler(
            self.ledger.settlement.total_cents,
            epsilon_cents=self.epsilon_cents,
            max_payers=self.max_payers,
            clock=self.clock,
        )
        return self.split

    def require_split(self) -> SplitPaymentReconciler:
        if self.split is None:
            raise BusinessLogicError('No split payment in progress')
        return self.split

    def cancel_split(self) -> None:
        self.split = None

    def finish_sale(self) -> None:
        """Reset after a successful checkout."""
        self._fresh_cart()


class SessionRegistry:
    """
    Terminal sessions by id.

    Usage:
        registry = SessionRegistry()
        registry.init_app(app)
        session = registry.get_or_create('till-1')
    """

    def __init__(self, app=None):
        self._sessions: Dict[str, TerminalSession] = {}
        self._lock = threading.Lock()
        self.session_options = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Read session defaults from the app config and register as an extension."""
        self.session_options = {
            'tax_percent': Decimal(str(app.config.get('DEFAULT_TAX_PERCENT', DEFAULT_TAX_PERCENT))),
            'epsilon_cents': int(app.config.get('PAYMENT_EPSILON_CENTS', DEFAULT_EPSILON_CENTS)),
            'max_payers': int(app.config.get('MAX_SPLIT_PAYERS', DEFAULT_MAX_PAYERS)),
        }
        app.extensions['pos_sessions'] = self

    def create(self, terminal_id: Optional[str] = None) -> TerminalSession:
        with self._lock:
            if terminal_id and terminal_id in self._sessions:
                raise BusinessLogicError(f'Session {terminal_id} already exists', status_code=409)
            session = TerminalSession(terminal_id, **self.session_options)
            self._sessions[session.id] = session
        logger.info(f"[session] created: terminal={session.id}")
        return session

    def get(self, terminal_id: str) -> TerminalSession:
        with self._lock:
            session = self._sessions.get(terminal_id)
        if session is None:
            raise NotFoundError(f'Session {terminal_id} not found', payload={'terminal_id': terminal_id})
        return session

    def get_or_create(self, terminal_id: str) -> TerminalSession:
        with self._lock:
            session = self._sessions.get(terminal_id)
            if session is None:
                session = TerminalSession(terminal_id, **self.session_options)
                self._sessions[terminal_id] = session
        return session

    def close(self, terminal_id: str) -> None:
        with self._lock:
            if self._sessions.pop(terminal_id, None) is None:
                raise NotFoundError(f'Session {terminal_id} not found', payload={'terminal_id': terminal_id})

    def __len__(self):
        return len(self._sessions)
