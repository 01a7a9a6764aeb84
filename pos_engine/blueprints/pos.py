"""POS terminal blueprint - JSON surface over the cart & settlement engine."""
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from pos_engine.database import get_session
from pos_engine.exceptions import BusinessLogicError, NotFoundError
from pos_engine.models.cart import Modifier
from pos_engine.models.catalog import CatalogItem, CustomerRecord
from pos_engine.models.events import event_to_dict
from pos_engine.models.transaction import TransactionStatus
from pos_engine.services import transaction_store
from pos_engine.services.pricing_service import (
    DEFAULT_PROMO_CODES, DEFAULT_TAX_RATE_PRESETS, DEFAULT_TIP_PRESETS, tip_suggestions, validate_percent
)
from pos_engine.services.receipt_service import BusinessInfo, build_receipt
from pos_engine.utils.money import to_decimal_string

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')


# =====================================================
# HELPERS
# =====================================================

def _engine():
    return current_app.extensions['pos']


def _registry():
    return current_app.extensions['pos_sessions']


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _require(payload: dict, key: str):
    value = payload.get(key)
    if value is None or value == '':
        raise BusinessLogicError(f'{key} is required', payload={'field': key})
    return value


def terminal_endpoint(view):
    """Resolve the terminal session and hold its lock for the whole request."""
    @wraps(view)
    def wrapper(terminal_id, **kwargs):
        session = _registry().get(terminal_id)
        with session.lock:
            return view(session, **kwargs)
    return wrapper


def _cart_state(session, update=None, status_code=200):
    settlement = update.settlement if update else session.ledger.settlement
    body = {
        'status': 'success',
        'terminal_id': session.id,
        'cart': session.cart.to_dict(),
        'settlement': settlement.to_dict(),
    }
    if update is not None:
        body['line_id'] = update.line_id
        body['warning'] = update.warning
    return jsonify(body), status_code


def _session_state(session):
    return {
        'terminal_id': session.id,
        'cart': session.cart.to_dict(),
        'settlement': session.ledger.settlement.to_dict(),
        'held': [h.to_dict() for h in session.held],
        'split': session.split.to_dict() if session.split else None,
        'shift': session.shifts.summary() if session.shifts.active else None,
    }


def _business() -> BusinessInfo:
    config = current_app.config
    return BusinessInfo(
        name=config.get('BUSINESS_NAME', 'POS Terminal'),
        address=config.get('BUSINESS_ADDRESS', ''),
        phone=config.get('BUSINESS_PHONE', ''),
        email=config.get('BUSINESS_EMAIL', ''),
        tax_id=config.get('BUSINESS_TAX_ID', ''),
    )


def _receipt(transaction):
    return build_receipt(
        transaction,
        business=_business(),
        currency_symbol=current_app.config.get('CURRENCY_SYMBOL', ''),
        prefix=current_app.config.get('RECEIPT_NUMBER_PREFIX', 'RCP'),
    )


def _load_transaction(number: str):
    transaction = transaction_store.get_transaction_by_number(get_session(), number)
    if transaction is None:
        raise NotFoundError(f'Transaction {number} not found', payload={'number': number})
    return transaction


def _open_shift(session):
    """Shift ledger to book cash into, when the drawer has an open shift."""
    return session.shifts if session.shifts.active is not None else None


def _presets(key: str, default):
    values = current_app.config.get(key) or default
    return [validate_percent(v, key, upper=None) for v in values]


# =====================================================
# PRESETS
# =====================================================

@pos_bp.route('/presets', methods=['GET'])
def get_presets():
    """Tax rates, tip percentages and promo codes offered by the terminal UI."""
    promo_codes = current_app.config.get('PROMO_CODES') or DEFAULT_PROMO_CODES
    return jsonify({
        'status': 'success',
        'currency_symbol': current_app.config.get('CURRENCY_SYMBOL', ''),
        'tax_rates': [str(p) for p in _presets('TAX_RATE_PRESETS', DEFAULT_TAX_RATE_PRESETS)],
        'tips': [str(p) for p in _presets('TIP_PRESETS', DEFAULT_TIP_PRESETS)],
        'promo_codes': [
            {'code': code, 'description': promo.get('description', '')}
            for code, promo in sorted(promo_codes.items())
        ],
    })


# =====================================================
# CATALOG / CUSTOMERS (collaborator stand-ins)
# =====================================================

@pos_bp.route('/catalog', methods=['GET'])
def list_catalog():
    items = _engine()['catalog'].list_items(request.args.get('category'))
    return jsonify({'status': 'success', 'items': [i.to_dict() for i in items]})


@pos_bp.route('/catalog', methods=['POST'])
def put_catalog_item():
    payload = _payload()
    _require(payload, 'id')
    _require(payload, 'name')
    _require(payload, 'price')
    item = CatalogItem.from_dict(payload)
    _engine()['catalog'].put(item)
    return jsonify({'status': 'success', 'item': item.to_dict()}), 201


@pos_bp.route('/customers', methods=['POST'])
def put_customer():
    payload = _payload()
    _require(payload, 'id')
    customer = CustomerRecord.from_dict(payload)
    _engine()['customers'].put(customer)
    return jsonify({'status': 'success', 'customer': customer.to_dict()}), 201


@pos_bp.route('/customers/<customer_id>', methods=['GET'])
def get_customer(customer_id):
    customer = _engine()['customers'].get_customer(customer_id)
    return jsonify({'status': 'success', 'customer': customer.to_dict()})


# =====================================================
# SESSIONS
# =====================================================

@pos_bp.route('/sessions', methods=['POST'])
def create_session():
    payload = _payload()
    session = _registry().create(payload.get('terminal_id'))
    current_app.logger.info(f"Terminal session opened: {session.id}")
    with session.lock:
        return jsonify({'status': 'success', **_session_state(session)}), 201


@pos_bp.route('/sessions/<terminal_id>', methods=['GET'])
@terminal_endpoint
def get_session_state(session):
    return jsonify({'status': 'success', **_session_state(session)})


# =====================================================
# CART
# =====================================================

@pos_bp.route('/sessions/<terminal_id>/cart/items', methods=['POST'])
@terminal_endpoint
def cart_add(session):
    payload = _payload()
    item = _engine()['catalog'].get_item(_require(payload, 'product_id'))
    modifiers = [Modifier.from_dict(m) for m in payload.get('modifiers') or []]
    update = session.ledger.add_item(item, modifiers, payload.get('quantity', 1))
    if update.warning:
        current_app.logger.warning(f"Cart add clamped on {session.id}: {update.warning}")
    return _cart_state(session, update)


@pos_bp.route('/sessions/<terminal_id>/cart/items/<line_id>', methods=['PATCH'])
@terminal_endpoint
def cart_update(session, line_id):
    payload = _payload()
    update = session.ledger.set_quantity(line_id, _require(payload, 'quantity'))
    return _cart_state(session, update)


@pos_bp.route('/sessions/<terminal_id>/cart/items/<line_id>', methods=['DELETE'])
@terminal_endpoint
def cart_remove(session, line_id):
    return _cart_state(session, session.ledger.remove_item(line_id))


@pos_bp.route('/sessions/<terminal_id>/cart/clear', methods=['POST'])
@terminal_endpoint
def cart_clear(session):
    session.cancel_split()
    return _cart_state(session, session.ledger.clear())


@pos_bp.route('/sessions/<terminal_id>/cart/discount', methods=['POST'])
@terminal_endpoint
def cart_discount(session):
    payload = _payload()
    if payload.get('amount') is not None:
        update = session.ledger.set_discount_amount(payload['amount'])
    else:
        update = session.ledger.set_discount_percent(_require(payload, 'percent'))
    return _cart_state(session, update)


@pos_bp.route('/sessions/<terminal_id>/cart/discount', methods=['DELETE'])
@terminal_endpoint
def cart_discount_clear(session):
    return _cart_state(session, session.ledger.clear_discount())


@pos_bp.route('/sessions/<terminal_id>/cart/promo', methods=['POST'])
@terminal_endpoint
def cart_promo(session):
    payload = _payload()
    update = session.ledger.apply_promo_code(_require(payload, 'code'), current_app.config.get('PROMO_CODES'))
    return _cart_state(session, update)


@pos_bp.route('/sessions/<terminal_id>/cart/tax', methods=['POST'])
@terminal_endpoint
def cart_tax(session):
    payload = _payload()
    return _cart_state(session, session.ledger.set_tax_percent(_require(payload, 'percent')))


@pos_bp.route('/sessions/<terminal_id>/cart/tip', methods=['POST'])
@terminal_endpoint
def cart_tip(session):
    payload = _payload()
    if payload.get('amount') is not None:
        update = session.ledger.set_tip_amount(payload['amount'])
    else:
        update = session.ledger.set_tip_percent(_require(payload, 'percent'))
    return _cart_state(session, update)


@pos_bp.route('/sessions/<terminal_id>/cart/tip', methods=['DELETE'])
@terminal_endpoint
def cart_tip_clear(session):
    return _cart_state(session, session.ledger.clear_tip())


@pos_bp.route('/sessions/<terminal_id>/cart/tip-suggestions', methods=['GET'])
@terminal_endpoint
def cart_tip_suggestions(session):
    suggestions = tip_suggestions(session.cart, _presets('TIP_PRESETS', DEFAULT_TIP_PRESETS))
    return jsonify({
        'status': 'success',
        'suggestions': [
            {
                'percent': str(s['percent']),
                'tip': to_decimal_string(s['tip_cents']),
                'total': to_decimal_string(s['total_cents']),
            }
            for s in suggestions
        ],
    })


@pos_bp.route('/sessions/<terminal_id>/cart/customer', methods=['POST'])
@terminal_endpoint
def cart_customer(session):
    payload = _payload()
    customer = _engine()['customers'].get_customer(_require(payload, 'customer_id'))
    return _cart_state(session, session.ledger.attach_customer(customer))


@pos_bp.route('/sessions/<terminal_id>/cart/customer', methods=['DELETE'])
@terminal_endpoint
def cart_customer_clear(session):
    return _cart_state(session, session.ledger.detach_customer())


@pos_bp.route('/sessions/<terminal_id>/cart/notes', methods=['POST'])
@terminal_endpoint
def cart_notes(session):
    return _cart_state(session, session.ledger.set_notes(_payload().get('notes', '')))


# =====================================================
# HELD SALES
# =====================================================

@pos_bp.route('/sessions/<terminal_id>/hold', methods=['POST'])
@terminal_endpoint
def hold_sale(session):
    held = session.hold(_payload().get('label', ''))
    return jsonify({'status': 'success', 'held': held.to_dict(), **_session_state(session)}), 201


@pos_bp.route('/sessions/<terminal_id>/held', methods=['GET'])
@terminal_endpoint
def list_held(session):
    return jsonify({'status': 'success', 'held': [h.to_dict() for h in session.held]})


@pos_bp.route('/sessions/<terminal_id>/held/<held_id>/resume', methods=['POST'])
@terminal_endpoint
def resume_sale(session, held_id):
    session.resume(held_id)
    return _cart_state(session)


@pos_bp.route('/sessions/<terminal_id>/held/<held_id>', methods=['DELETE'])
@terminal_endpoint
def discard_held(session, held_id):
    session.discard_held(held_id)
    return jsonify({'status': 'success', 'held': [h.to_dict() for h in session.held]})


# =====================================================
# SPLIT PAYMENT
# =====================================================

@pos_bp.route('/sessions/<terminal_id>/split', methods=['POST'])
@terminal_endpoint
def split_start(session):
    split = session.start_split()
    return jsonify({'status': 'success', 'split': split.to_dict()}), 201


@pos_bp.route('/sessions/<terminal_id>/split', methods=['DELETE'])
@terminal_endpoint
def split_cancel(session):
    session.cancel_split()
    return jsonify({'status': 'success', 'split': None})


@pos_bp.route('/sessions/<terminal_id>/split/payments', methods=['POST'])
@terminal_endpoint
def split_add(session):
    payload = _payload()
    split = session.require_split()
    if payload.get('percent') is not None:
        split.add_percentage(payload['percent'], payload.get('method'), payload.get('payer'))
    else:
        split.add_payment(
            payload.get('method'), payload.get('amount'), payload.get('payer'), payload.get('amount_received')
        )
    return jsonify({'status': 'success', 'split': split.to_dict()})


@pos_bp.route('/sessions/<terminal_id>/split/payments/<payment_id>', methods=['DELETE'])
@terminal_endpoint
def split_remove(session, payment_id):
    split = session.require_split()
    split.remove_payment(payment_id)
    return jsonify({'status': 'success', 'split': split.to_dict()})


@pos_bp.route('/sessions/<terminal_id>/split/equal', methods=['POST'])
@terminal_endpoint
def split_equal(session):
    payload = _payload()
    split = session.require_split()
    split.equal_split(_require(payload, 'payers'), payload.get('method'))
    return jsonify({'status': 'success', 'split': split.to_dict()})


# =====================================================
# CHECKOUT / TRANSACTIONS
# =====================================================

@pos_bp.route('/sessions/<terminal_id>/checkout', methods=['POST'])
@terminal_endpoint
def checkout(session):
    """Settle the active cart, store the transaction and start a fresh cart."""
    payload = _payload()
    engine = _engine()
    shift = _open_shift(session)

    entries = session.split.finalize() if session.split is not None else None
    result = engine['settlement'].settle(
        session.cart,
        engine['catalog'].available_stock,
        payment_entries=entries,
        payment_method=payload.get('payment_method'),
        amount_received=payload.get('amount_received'),
        shift=shift,
        customer_lookup=engine['customers'].get_customer,
    )
    transaction = result.transaction

    db_session = get_session()
    transaction_store.save_transaction(db_session, transaction, terminal_id=session.id)
    if shift is not None:
        transaction_store.save_shift(db_session, shift.active, terminal_id=session.id)

    session.finish_sale()
    current_app.logger.info(
        f"Checkout on {session.id}: {transaction.number} total={transaction.total_cents}"
    )
    return jsonify({
        'status': 'success',
        'transaction': transaction.to_dict(),
        'change': to_decimal_string(result.change_cents),
        'receipt': _receipt(transaction),
        'events': [event_to_dict(e) for e in result.events],
    }), 201


@pos_bp.route('/sessions/<terminal_id>/drafts', methods=['POST'])
@terminal_endpoint
def create_draft(session):
    transaction = _engine()['settlement'].prepare_draft(session.cart)
    transaction_store.save_transaction(get_session(), transaction, terminal_id=session.id)
    return jsonify({'status': 'success', 'transaction': transaction.to_dict()}), 201


@pos_bp.route('/transactions', methods=['GET'])
def list_transactions():
    status = request.args.get('status')
    limit = request.args.get('limit', 50, type=int)
    try:
        status = TransactionStatus(status) if status else None
    except ValueError:
        raise BusinessLogicError(f'Unknown transaction status: {status}')
    transactions = transaction_store.list_transactions(
        get_session(),
        status=status,
        terminal_id=request.args.get('terminal_id'),
        limit=limit,
    )
    return jsonify({'status': 'success', 'transactions': [t.to_dict() for t in transactions]})


@pos_bp.route('/transactions/<number>', methods=['GET'])
def get_transaction(number):
    return jsonify({'status': 'success', 'transaction': _load_transaction(number).to_dict()})


@pos_bp.route('/transactions/<number>/receipt', methods=['GET'])
def get_receipt(number):
    return jsonify({'status': 'success', 'receipt': _receipt(_load_transaction(number))})


@pos_bp.route('/transactions/<number>/refund', methods=['POST'])
def refund_transaction(number):
    payload = _payload()
    transaction = _load_transaction(number)
    db_session = get_session()

    terminal_id = payload.get('terminal_id')
    if terminal_id:
        session = _registry().get(terminal_id)
        with session.lock:
            shift = _open_shift(session)
            result = _engine()['settlement'].refund(transaction, payload.get('reason', ''), shift=shift)
            if shift is not None:
                transaction_store.save_shift(db_session, shift.active, terminal_id=session.id)
    else:
        result = _engine()['settlement'].refund(transaction, payload.get('reason', ''))

    transaction_store.save_transaction(db_session, transaction)
    current_app.logger.info(f"Refund of {number}: reason={transaction.refund_reason!r}")
    return jsonify({
        'status': 'success',
        'transaction': result.transaction.to_dict(),
        'events': [event_to_dict(e) for e in result.events],
    })


@pos_bp.route('/transactions/<number>/cancel', methods=['POST'])
def cancel_transaction(number):
    transaction = _load_transaction(number)
    _engine()['settlement'].cancel(transaction, _payload().get('reason', ''))
    transaction_store.save_transaction(get_session(), transaction)
    return jsonify({'status': 'success', 'transaction': transaction.to_dict()})


# =====================================================
# SHIFT
# =====================================================

@pos_bp.route('/sessions/<terminal_id>/shift', methods=['GET'])
@terminal_endpoint
def shift_summary(session):
    return jsonify({'status': 'success', 'shift': session.shifts.summary()})


@pos_bp.route('/sessions/<terminal_id>/shift/start', methods=['POST'])
@terminal_endpoint
def shift_start(session):
    payload = _payload()
    shift = session.shifts.start_shift(_require(payload, 'starting_cash'))
    transaction_store.save_shift(get_session(), shift, terminal_id=session.id)
    return jsonify({'status': 'success', 'shift': session.shifts.summary()}), 201


@pos_bp.route('/sessions/<terminal_id>/shift/movements', methods=['POST'])
@terminal_endpoint
def shift_movement(session):
    payload = _payload()
    session.shifts.record_cash_movement(
        _require(payload, 'direction'), _require(payload, 'amount'), payload.get('reason', '')
    )
    transaction_store.save_shift(get_session(), session.shifts.active, terminal_id=session.id)
    return jsonify({'status': 'success', 'shift': session.shifts.summary()})


@pos_bp.route('/sessions/<terminal_id>/shift/end', methods=['POST'])
@terminal_endpoint
def shift_end(session):
    payload = _payload()
    shift = session.shifts.end_shift(_require(payload, 'actual_cash'))
    transaction_store.save_shift(get_session(), shift, terminal_id=session.id)
    if shift.variance_cents:
        current_app.logger.warning(
            f"Shift {shift.id} on {session.id} closed {shift.variance_label} by {shift.variance_cents} cents"
        )
    return jsonify({'status': 'success', 'shift': session.shifts.summary(shift)})
