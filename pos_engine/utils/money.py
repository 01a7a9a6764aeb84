"""
Money arithmetic in integer minor units (cents).

Every amount inside the engine is an ``int`` number of cents. Decimal values
only appear at the boundary: ``to_minor_units`` on the way in,
``from_minor_units`` / ``to_decimal_string`` on the way out. Rounding is
half-up at the minor-unit boundary.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, ROUND_FLOOR
from typing import List, Union

from pos_engine.exceptions import InvalidAmountError

CENTS = Decimal('0.01')
CENTS_PER_UNIT = 100
DEFAULT_EPSILON_CENTS = 1

Number = Union[int, float, Decimal, str]


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f'Invalid amount: {value!r}')
    if isinstance(value, Decimal):
        num = value
    else:
        try:
            # str() first so floats keep their shortest repr (49.99, not 49.9899...)
            num = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(f'Invalid amount: {value!r}')
    if not num.is_finite():
        raise InvalidAmountError(f'Invalid amount: {value!r}')
    return num


def round_half_up(value: Decimal) -> int:
    """Round a Decimal number of cents to a whole cent, halves away from zero."""
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def to_minor_units(value: Number) -> int:
    """
    Convert a decimal money value to integer cents.

    Examples:
        to_minor_units('49.99') -> 4999
        to_minor_units(Decimal('0.005')) -> 1
        to_minor_units(12) -> 1200
    """
    num = _as_decimal(value)
    return round_half_up(num * CENTS_PER_UNIT)


def from_minor_units(cents: int) -> Decimal:
    """Convert integer cents to a Decimal with exactly two places."""
    return (Decimal(int(cents)) / CENTS_PER_UNIT).quantize(CENTS)


def to_decimal_string(cents: int) -> str:
    """Integer cents as a plain two-place decimal string ('124.97')."""
    return str(from_minor_units(cents))


def multiply(cents: int, factor: Number) -> int:
    """Multiply an amount by an arbitrary factor, rounding half-up to a cent."""
    if factor == 0:
        return 0
    return round_half_up(Decimal(int(cents)) * _as_decimal(factor))


def percentage_of(cents: int, percent: Number) -> int:
    """Return ``percent`` % of an amount, rounded half-up to a cent."""
    pct = _as_decimal(percent)
    if pct == 0 or cents == 0:
        return 0
    return round_half_up(Decimal(int(cents)) * pct / 100)


def allocate_evenly(total_cents: int, parts: int) -> List[int]:
    """
    Split an amount into ``parts`` shares that sum exactly to the total.

    The remainder cents go to the first shares, one each, so
    ``allocate_evenly(10000, 3) == [3334, 3333, 3333]``.
    """
    if parts < 1:
        raise ValueError('parts must be at least 1')
    base, remainder = divmod(int(total_cents), parts)
    return [base + 1 if i < remainder else base for i in range(parts)]


def floor_units(value: Decimal) -> int:
    """Whole units of a Decimal, rounded down (used for loyalty points)."""
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def within_epsilon(a_cents: int, b_cents: int, epsilon_cents: int = DEFAULT_EPSILON_CENTS) -> bool:
    """True when two amounts differ by at most ``epsilon_cents``."""
    return abs(int(a_cents) - int(b_cents)) <= epsilon_cents
