"""Money arithmetic and display helpers."""
from pos_engine.utils.money import (
    to_minor_units, from_minor_units, to_decimal_string,
    multiply, percentage_of, allocate_evenly
)

__all__ = [
    'to_minor_units', 'from_minor_units', 'to_decimal_string',
    'multiply', 'percentage_of', 'allocate_evenly',
]
