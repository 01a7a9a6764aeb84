"""
SQLAlchemy records for settled transactions and shifts.

Money columns hold integer minor units; timestamps are stored as naive UTC.
Percentages and discount/tip settings are stored as text so they round-trip
exactly on every backend.
"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from pos_engine.database import Base


class TransactionRecord(Base):
    """Settled (or drafted) sale."""

    __tablename__ = 'pos_transaction'

    id = Column(String(32), primary_key=True)
    number = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)
    terminal_id = Column(String(64), nullable=True, index=True)
    customer_id = Column(String(64), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    points_earned = Column(Integer, nullable=False, default=0)

    subtotal_cents = Column(BigInteger, nullable=False, default=0)
    discount_cents = Column(BigInteger, nullable=False, default=0)
    taxable_cents = Column(BigInteger, nullable=False, default=0)
    tax_cents = Column(BigInteger, nullable=False, default=0)
    tip_cents = Column(BigInteger, nullable=False, default=0)
    total_cents = Column(BigInteger, nullable=False, default=0)

    discount_json = Column(Text, nullable=False)
    tip_json = Column(Text, nullable=False)
    tax_percent = Column(String(20), nullable=False, default='0')

    created_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)

    # Relationships
    lines = relationship(
        'TransactionLineRecord', back_populates='transaction',
        cascade='all, delete-orphan', order_by='TransactionLineRecord.position'
    )
    payments = relationship(
        'TransactionPaymentRecord', back_populates='transaction',
        cascade='all, delete-orphan', order_by='TransactionPaymentRecord.position'
    )

    def __repr__(self):
        return f"<TransactionRecord(number={self.number}, total={self.total_cents}, status={self.status})>"


class TransactionLineRecord(Base):
    """Line snapshot of a transaction."""

    __tablename__ = 'pos_transaction_line'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    transaction_id = Column(String(32), ForeignKey('pos_transaction.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    line_id = Column(String(32), nullable=False)
    catalog_item_id = Column(String(64), nullable=False)
    name = Column(String(200), nullable=False)
    unit_price_cents = Column(BigInteger, nullable=False)
    quantity = Column(Integer, nullable=False)
    category = Column(String(100), nullable=True)
    tax_category = Column(String(50), nullable=True)
    modifiers_json = Column(Text, nullable=False, default='[]')

    transaction = relationship('TransactionRecord', back_populates='lines')


class TransactionPaymentRecord(Base):
    """Individual payment of a transaction (mixed methods allowed)."""

    __tablename__ = 'pos_transaction_payment'

    id = Column(String(32), primary_key=True)
    transaction_id = Column(String(32), ForeignKey('pos_transaction.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    method = Column(String(20), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    payer = Column(String(100), nullable=True)
    # Only for cash payments
    amount_received_cents = Column(BigInteger, nullable=True)
    paid_at = Column(DateTime, nullable=False)

    transaction = relationship('TransactionRecord', back_populates='payments')


class ShiftRecord(Base):
    """Cash drawer shift."""

    __tablename__ = 'pos_shift'

    id = Column(String(32), primary_key=True)
    terminal_id = Column(String(64), nullable=True, index=True)
    starting_cash_cents = Column(BigInteger, nullable=False)
    cash_in_cents = Column(BigInteger, nullable=False, default=0)
    cash_out_cents = Column(BigInteger, nullable=False, default=0)
    sales_total_cents = Column(BigInteger, nullable=False, default=0)
    sales_count = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    actual_cash_cents = Column(BigInteger, nullable=True)
    variance_cents = Column(BigInteger, nullable=True)

    movements = relationship(
        'CashMovementRecord', back_populates='shift',
        cascade='all, delete-orphan', order_by='CashMovementRecord.position'
    )

    def __repr__(self):
        return f"<ShiftRecord(id={self.id}, ended_at={self.ended_at})>"


class CashMovementRecord(Base):
    """Cash in / out of a shift."""

    __tablename__ = 'pos_cash_movement'

    id = Column(String(32), primary_key=True)
    shift_id = Column(String(32), ForeignKey('pos_shift.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    direction = Column(String(3), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    reason = Column(Text, nullable=True)
    moved_at = Column(DateTime, nullable=False)

    shift = relationship('ShiftRecord', back_populates='movements')
