"""Custom exceptions for the POS cart & settlement engine."""


class PosError(Exception):
    """Base exception for all engine errors."""
    code = 'POS_ERROR'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PosError):
    """Exception raised for business rule violations."""
    code = 'BUSINESS_RULE'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    code = 'NOT_FOUND'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InvalidQuantityError(BusinessLogicError):
    """Quantity below 1 (or not an integer) requested for a cart line."""
    code = 'INVALID_QUANTITY'

    def __init__(self, quantity, line_id=None):
        self.quantity = quantity
        self.line_id = line_id
        payload = {'quantity': quantity}
        if line_id is not None:
            payload['line_id'] = line_id
        super().__init__(f'Quantity must be a whole number of at least 1, got {quantity!r}', payload=payload)


class InvalidAmountError(BusinessLogicError):
    """A money amount that must be positive was zero, negative or malformed."""
    code = 'INVALID_AMOUNT'


class InvalidDiscountError(BusinessLogicError):
    """Discount, tax or tip value outside its allowed range."""
    code = 'INVALID_DISCOUNT'


class UnknownPromoCodeError(BusinessLogicError):
    """Promo code not present in the configured promotion table."""
    code = 'UNKNOWN_PROMO_CODE'

    def __init__(self, promo_code):
        self.promo_code = promo_code
        super().__init__(f'Invalid promo code: {promo_code}', payload={'promo_code': promo_code})


class InvalidPaymentMethodError(BusinessLogicError):
    """Payment method string that does not map to a known method."""
    code = 'INVALID_PAYMENT_METHOD'

    def __init__(self, method):
        self.method = method
        super().__init__(f'Invalid payment method: {method}', payload={'method': str(method)})


class ExceedsRemainingError(BusinessLogicError):
    """Partial payment larger than what is still owed on a split."""
    code = 'EXCEEDS_REMAINING'

    def __init__(self, amount, remaining):
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f'Payment of {amount} exceeds the remaining balance of {remaining}',
            payload={'amount': str(amount), 'remaining': str(remaining)}
        )


class IncompletePaymentError(BusinessLogicError):
    """Payments do not cover the settlement total."""
    code = 'INCOMPLETE_PAYMENT'

    def __init__(self, remaining, message=None):
        self.remaining = remaining
        super().__init__(
            message or f'Payment is incomplete, {remaining} still due',
            payload={'remaining': str(remaining)}
        )


class EmptyCartError(BusinessLogicError):
    """Settlement attempted on a cart with no lines."""
    code = 'EMPTY_CART'

    def __init__(self, message='Cart is empty'):
        super().__init__(message)


class InsufficientStockError(BusinessLogicError):
    """Raised when a cart line asks for more units than are available."""
    code = 'INSUFFICIENT_STOCK'

    def __init__(self, line_id, name, required, available):
        self.line_id = line_id
        self.required = required
        self.available = available
        message = f'Insufficient stock for {name}: {required} required, {available} available'
        super().__init__(
            message,
            status_code=409,
            payload={'line_id': line_id, 'required': required, 'available': available}
        )


class InsufficientCreditError(BusinessLogicError):
    """Store credit payment larger than the customer's credit balance."""
    code = 'INSUFFICIENT_CREDIT'

    def __init__(self, customer_id, required, available):
        self.customer_id = customer_id
        super().__init__(
            f'Customer {customer_id} has {available} store credit, {required} required',
            status_code=409,
            payload={'customer_id': customer_id, 'required': str(required), 'available': str(available)}
        )


class InvalidStateTransitionError(BusinessLogicError):
    """Transaction status change not allowed by the lifecycle."""
    code = 'INVALID_STATE_TRANSITION'

    def __init__(self, current, target):
        self.current = current
        self.target = target
        current_value = getattr(current, 'value', current)
        target_value = getattr(target, 'value', target)
        super().__init__(
            f'Cannot move transaction from {current_value} to {target_value}',
            status_code=409,
            payload={'current': current_value, 'target': target_value}
        )


class ShiftAlreadyActiveError(BusinessLogicError):
    """A shift is already open on this drawer."""
    code = 'SHIFT_ALREADY_ACTIVE'

    def __init__(self, shift_id):
        self.shift_id = shift_id
        super().__init__(f'Shift {shift_id} is already active', status_code=409, payload={'shift_id': shift_id})


class NoActiveShiftError(BusinessLogicError):
    """Drawer operation attempted without an open shift."""
    code = 'NO_ACTIVE_SHIFT'

    def __init__(self, message='No active shift'):
        super().__init__(message, status_code=409)
