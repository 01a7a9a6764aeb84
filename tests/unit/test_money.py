"""
Unit tests for money arithmetic and display formatting.
"""

import pytest
from datetime import datetime
from decimal import Decimal

from pos_engine.exceptions import InvalidAmountError
from pos_engine.utils.formatters import datetime_label, duration_label, money
from pos_engine.utils.money import (
    allocate_evenly, from_minor_units, multiply, percentage_of, to_decimal_string,
    to_minor_units, within_epsilon
)


class TestMinorUnits:
    """Conversion between decimal amounts and integer cents."""

    def test_to_minor_units_accepts_strings_floats_and_decimals(self):
        assert to_minor_units('49.99') == 4999
        assert to_minor_units(49.99) == 4999
        assert to_minor_units(Decimal('24.99')) == 2499
        assert to_minor_units(12) == 1200

    def test_to_minor_units_rounds_half_up(self):
        assert to_minor_units(Decimal('0.005')) == 1
        assert to_minor_units(Decimal('0.004')) == 0
        assert to_minor_units(Decimal('-0.005')) == -1

    @pytest.mark.parametrize('value', ['abc', None, True, 'NaN', 'inf', ''])
    def test_to_minor_units_rejects_invalid_values(self, value):
        with pytest.raises(InvalidAmountError):
            to_minor_units(value)

    def test_from_minor_units_has_two_places(self):
        assert from_minor_units(12497) == Decimal('124.97')
        assert str(from_minor_units(1500)) == '15.00'
        assert to_decimal_string(5) == '0.05'
        assert to_decimal_string(-250) == '-2.50'

    def test_summation_in_cents_matches_decimal_summation(self):
        """Adding many line amounts in cents never drifts from exact decimal addition."""
        amounts = ['0.10', '0.20', '49.99', '24.99', '0.01', '1234567.89', '0.07'] * 50
        cents_total = sum(to_minor_units(a) for a in amounts)
        decimal_total = sum(Decimal(a) for a in amounts)
        assert from_minor_units(cents_total) == decimal_total

    def test_float_accumulation_would_drift(self):
        """Sanity check of the problem integer cents avoid."""
        assert 0.1 + 0.2 != 0.3
        assert to_minor_units('0.1') + to_minor_units('0.2') == to_minor_units('0.3')


class TestArithmetic:
    """Multiplication, percentages and allocation."""

    def test_multiply_rounds_at_the_cent(self):
        assert multiply(1000, '0.333') == 333
        assert multiply(1000, '0.3335') == 334
        assert multiply(1000, 0) == 0

    def test_percentage_of(self):
        assert percentage_of(12497, 10) == 1250
        assert percentage_of(10000, '18') == 1800
        assert percentage_of(12497, 0) == 0
        assert percentage_of(0, 50) == 0

    def test_allocate_evenly_gives_remainder_to_first_parts(self):
        assert allocate_evenly(10000, 3) == [3334, 3333, 3333]
        assert allocate_evenly(10001, 4) == [2501, 2500, 2500, 2500]
        assert allocate_evenly(2, 3) == [1, 1, 0]

    @pytest.mark.parametrize('total', [1, 99, 10000, 13272, 99999, 123456789])
    def test_allocate_evenly_always_sums_to_total(self, total):
        for parts in range(2, 21):
            shares = allocate_evenly(total, parts)
            assert len(shares) == parts
            assert sum(shares) == total
            assert max(shares) - min(shares) <= 1

    def test_allocate_evenly_requires_a_part(self):
        with pytest.raises(ValueError):
            allocate_evenly(100, 0)

    def test_within_epsilon(self):
        assert within_epsilon(10000, 9999) is True
        assert within_epsilon(10000, 10001) is True
        assert within_epsilon(10000, 9998) is False


class TestFormatters:
    """Display helpers used by receipts and shift summaries."""

    def test_money(self):
        assert money(12497) == '124.97'
        assert money(150000, '$') == '$1,500.00'
        assert money(123456789, '$') == '$1,234,567.89'
        assert money(-250, '$') == '-$2.50'
        assert money(0) == '0.00'
        assert money(None) == '-'

    def test_datetime_label(self):
        value = datetime(2026, 1, 12, 15, 30)
        assert datetime_label(value) == '2026-01-12 15:30'
        assert datetime_label(value, with_time=False) == '2026-01-12'
        assert datetime_label(None) == '-'

    def test_duration_label(self):
        assert duration_label(185) == '3h 05m'
        assert duration_label(0) == '0h 00m'
        assert duration_label(-5) == '0h 00m'
