"""
SQLAlchemy persistence for transactions and shifts.

Loading returns domain objects equal to the ones saved. Timestamps are
stored as naive UTC and come back as aware UTC datetimes.
"""
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from pos_engine.models.cart import DiscountSpec, Modifier, TipSpec
from pos_engine.models.payment import PaymentEntry, PaymentMethod
from pos_engine.models.records import (
    CashMovementRecord, ShiftRecord, TransactionLineRecord, TransactionPaymentRecord, TransactionRecord
)
from pos_engine.models.settlement import Settlement
from pos_engine.models.shift import CashDirection, CashMovement, ShiftLedger
from pos_engine.models.transaction import Transaction, TransactionLine, TransactionStatus

logger = logging.getLogger(__name__)


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


# =====================================================
# TRANSACTIONS
# =====================================================

def _line_record(position: int, line: TransactionLine) -> TransactionLineRecord:
    return TransactionLineRecord(
        position=position,
        line_id=line.line_id,
        catalog_item_id=line.catalog_item_id,
        name=line.name,
        unit_price_cents=line.unit_price_cents,
        quantity=line.quantity,
        category=line.category,
        tax_category=line.tax_category,
        modifiers_json=json.dumps([m.to_dict() for m in line.modifiers]),
    )


def _payment_record(position: int, payment: PaymentEntry) -> TransactionPaymentRecord:
    return TransactionPaymentRecord(
        id=payment.id,
        position=position,
        method=payment.method.value,
        amount_cents=payment.amount_cents,
        payer=payment.payer,
        amount_received_cents=payment.amount_received_cents,
        paid_at=_to_db(payment.timestamp),
    )


def _apply_lifecycle(record: TransactionRecord, transaction: Transaction) -> None:
    record.status = transaction.status.value
    record.completed_at = _to_db(transaction.completed_at)
    record.refunded_at = _to_db(transaction.refunded_at)
    record.refund_reason = transaction.refund_reason
    record.cancelled_at = _to_db(transaction.cancelled_at)
    record.cancel_reason = transaction.cancel_reason


def save_transaction(db_session: Session, transaction: Transaction, terminal_id: Optional[str] = None) -> TransactionRecord:
    """
    Insert a transaction, or update the lifecycle fields of one already stored.

    Only status, timestamps and reasons ever change after the first save.
    """
    record = db_session.query(TransactionRecord).filter_by(id=transaction.id).first()

    if record is None:
        settlement = transaction.settlement
        record = TransactionRecord(
            id=transaction.id,
            number=transaction.number,
            terminal_id=terminal_id,
            customer_id=transaction.customer_id,
            notes=transaction.notes,
            points_earned=transaction.points_earned,
            subtotal_cents=settlement.subtotal_cents,
            discount_cents=settlement.discount_cents,
            taxable_cents=settlement.taxable_cents,
            tax_cents=settlement.tax_cents,
            tip_cents=settlement.tip_cents,
            total_cents=settlement.total_cents,
            discount_json=json.dumps(transaction.discount.to_dict()),
            tip_json=json.dumps(transaction.tip.to_dict()),
            tax_percent=str(transaction.tax_percent),
            created_at=_to_db(transaction.created_at),
        )
        record.lines = [_line_record(i, line) for i, line in enumerate(transaction.lines)]
        record.payments = [_payment_record(i, p) for i, p in enumerate(transaction.payments)]
        db_session.add(record)

    _apply_lifecycle(record, transaction)

    try:
        db_session.commit()
    except Exception:
        db_session.rollback()
        logger.exception(f"[store] failed to save transaction {transaction.number}")
        raise

    logger.info(f"[store] transaction saved: number={transaction.number}, status={transaction.status.value}")
    return record


def _transaction_from_record(record: TransactionRecord) -> Transaction:
    lines = [
        TransactionLine(
            line_id=line.line_id,
            catalog_item_id=line.catalog_item_id,
            name=line.name,
            unit_price_cents=line.unit_price_cents,
            quantity=line.quantity,
            category=line.category or '',
            tax_category=line.tax_category or 'standard',
            modifiers=tuple(Modifier.from_dict(m) for m in json.loads(line.modifiers_json or '[]')),
        )
        for line in record.lines
    ]
    payments = [
        PaymentEntry(
            id=p.id,
            method=PaymentMethod(p.method),
            amount_cents=p.amount_cents,
            payer=p.payer,
            amount_received_cents=p.amount_received_cents,
            timestamp=_from_db(p.paid_at),
        )
        for p in record.payments
    ]
    settlement = Settlement(
        subtotal_cents=record.subtotal_cents,
        discount_cents=record.discount_cents,
        taxable_cents=record.taxable_cents,
        tax_cents=record.tax_cents,
        tip_cents=record.tip_cents,
        total_cents=record.total_cents,
    )
    return Transaction(
        id=record.id,
        number=record.number,
        lines=lines,
        settlement=settlement,
        payments=payments,
        created_at=_from_db(record.created_at),
        discount=DiscountSpec.from_dict(json.loads(record.discount_json)),
        tax_percent=Decimal(record.tax_percent),
        tip=TipSpec.from_dict(json.loads(record.tip_json)),
        customer_id=record.customer_id,
        notes=record.notes or '',
        points_earned=record.points_earned or 0,
        status=TransactionStatus(record.status),
        completed_at=_from_db(record.completed_at),
        refunded_at=_from_db(record.refunded_at),
        refund_reason=record.refund_reason,
        cancelled_at=_from_db(record.cancelled_at),
        cancel_reason=record.cancel_reason,
    )


def get_transaction(db_session: Session, transaction_id: str) -> Optional[Transaction]:
    record = db_session.query(TransactionRecord).filter_by(id=transaction_id).first()
    return _transaction_from_record(record) if record else None


def get_transaction_by_number(db_session: Session, number: str) -> Optional[Transaction]:
    record = db_session.query(TransactionRecord).filter_by(number=number).first()
    return _transaction_from_record(record) if record else None


def list_transactions(db_session: Session, status: Optional[TransactionStatus] = None,
                      terminal_id: Optional[str] = None, limit: int = 50) -> List[Transaction]:
    """Most recent transactions first."""
    query = db_session.query(TransactionRecord)
    if status is not None:
        query = query.filter(TransactionRecord.status == TransactionStatus(status).value)
    if terminal_id is not None:
        query = query.filter(TransactionRecord.terminal_id == terminal_id)
    records = query.order_by(TransactionRecord.created_at.desc()).limit(limit).all()
    return [_transaction_from_record(r) for r in records]


# =====================================================
# SHIFTS
# =====================================================

def save_shift(db_session: Session, shift: ShiftLedger, terminal_id: Optional[str] = None) -> ShiftRecord:
    """Insert or fully refresh a shift and its movements."""
    record = db_session.query(ShiftRecord).filter_by(id=shift.id).first()
    if record is None:
        record = ShiftRecord(id=shift.id, terminal_id=terminal_id)
        db_session.add(record)

    record.starting_cash_cents = shift.starting_cash_cents
    record.cash_in_cents = shift.cash_in_cents
    record.cash_out_cents = shift.cash_out_cents
    record.sales_total_cents = shift.sales_total_cents
    record.sales_count = shift.sales_count
    record.started_at = _to_db(shift.started_at)
    record.ended_at = _to_db(shift.ended_at)
    record.actual_cash_cents = shift.actual_cash_cents
    record.variance_cents = shift.variance_cents

    known = {m.id for m in record.movements}
    for position, movement in enumerate(shift.movements):
        if movement.id in known:
            continue
        record.movements.append(CashMovementRecord(
            id=movement.id,
            position=position,
            direction=movement.direction.value,
            amount_cents=movement.amount_cents,
            reason=movement.reason,
            moved_at=_to_db(movement.timestamp),
        ))

    try:
        db_session.commit()
    except Exception:
        db_session.rollback()
        logger.exception(f"[store] failed to save shift {shift.id}")
        raise

    return record


def get_shift(db_session: Session, shift_id: str) -> Optional[ShiftLedger]:
    record = db_session.query(ShiftRecord).filter_by(id=shift_id).first()
    if record is None:
        return None
    return ShiftLedger(
        id=record.id,
        starting_cash_cents=record.starting_cash_cents,
        started_at=_from_db(record.started_at),
        cash_in_cents=record.cash_in_cents,
        cash_out_cents=record.cash_out_cents,
        sales_total_cents=record.sales_total_cents,
        sales_count=record.sales_count,
        movements=[
            CashMovement(
                id=m.id,
                direction=CashDirection(m.direction),
                amount_cents=m.amount_cents,
                reason=m.reason or '',
                timestamp=_from_db(m.moved_at),
            )
            for m in record.movements
        ],
        ended_at=_from_db(record.ended_at),
        actual_cash_cents=record.actual_cash_cents,
        variance_cents=record.variance_cents,
    )
