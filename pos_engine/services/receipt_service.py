"""Receipt record handed to receipt renderers and printers."""
from dataclasses import dataclass
from typing import Optional

from pos_engine.models.payment import PAYMENT_METHOD_LABELS
from pos_engine.models.transaction import Transaction
from pos_engine.utils.formatters import datetime_label, money


@dataclass(frozen=True)
class BusinessInfo:
    name: str = 'POS Terminal'
    address: str = ''
    phone: str = ''
    email: str = ''
    tax_id: str = ''


def receipt_number(transaction: Transaction, prefix: str = 'RCP') -> str:
    """Receipt number sharing the transaction number's stamp: TXN-123-001 -> RCP-123-001."""
    _, sep, rest = transaction.number.partition('-')
    return f'{prefix}-{rest}' if sep else f'{prefix}-{transaction.number}'


def build_receipt(transaction: Transaction, business: Optional[BusinessInfo] = None,
                  currency_symbol: str = '', prefix: str = 'RCP') -> dict:
    """
    Build the receipt record for a transaction.

    Amounts are given both as decimal strings (for machines) and as
    formatted strings (for printing).
    """
    business = business or BusinessInfo()
    settlement = transaction.settlement

    def _fmt(cents):
        return money(cents, currency_symbol)

    lines = []
    for line in transaction.lines:
        lines.append({
            'name': line.name,
            'quantity': line.quantity,
            'unit_price': _fmt(line.unit_total_cents),
            'modifiers': [m.name for m in line.modifiers],
            'line_total': _fmt(line.line_total_cents),
        })

    payments = []
    for payment in transaction.payments:
        payments.append({
            'method': payment.method.value,
            'label': PAYMENT_METHOD_LABELS[payment.method],
            'payer': payment.payer,
            'amount': _fmt(payment.amount_cents),
            'amount_received': (
                _fmt(payment.amount_received_cents) if payment.amount_received_cents is not None else None
            ),
            'change': _fmt(payment.change_cents),
        })

    totals = [('Subtotal', settlement.subtotal_cents)]
    if settlement.discount_cents:
        label = 'Discount'
        if transaction.discount.promo_code:
            label = f'Discount ({transaction.discount.promo_code})'
        totals.append((label, -settlement.discount_cents))
    if settlement.tax_cents:
        totals.append((f'Tax ({transaction.tax_percent.normalize():f}%)', settlement.tax_cents))
    if settlement.tip_cents:
        totals.append(('Tip', settlement.tip_cents))
    totals.append(('Total', settlement.total_cents))

    return {
        'receipt_number': receipt_number(transaction, prefix),
        'transaction_number': transaction.number,
        'status': transaction.status.value,
        'date': datetime_label(transaction.completed_at or transaction.created_at),
        'business': {
            'name': business.name,
            'address': business.address,
            'phone': business.phone,
            'email': business.email,
            'tax_id': business.tax_id,
        },
        'customer_id': transaction.customer_id,
        'lines': lines,
        'totals': [{'label': label, 'amount': _fmt(cents)} for label, cents in totals],
        'payments': payments,
        'change': _fmt(transaction.change_cents),
        'points_earned': transaction.points_earned,
        'notes': transaction.notes,
        'settlement': settlement.to_dict(),
    }
