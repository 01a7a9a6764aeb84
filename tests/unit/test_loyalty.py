"""
Unit tests for loyalty tiers and points.
"""

import pytest
from decimal import Decimal

from pos_engine.services.loyalty_service import next_tier, points_for_purchase, tier_for


class TestTiers:
    """Tier thresholds on lifetime points."""

    @pytest.mark.parametrize('lifetime, expected', [
        (0, 'bronze'),
        (999, 'bronze'),
        (1000, 'silver'),
        (4999, 'silver'),
        (5000, 'gold'),
        (10000, 'platinum'),
        (250000, 'platinum'),
    ])
    def test_tier_for(self, lifetime, expected):
        assert tier_for(lifetime).name == expected

    def test_next_tier(self):
        tier, needed = next_tier(1500)
        assert tier.name == 'gold'
        assert needed == 3500

        tier, needed = next_tier(0)
        assert tier.name == 'silver'
        assert needed == 1000

    def test_no_tier_above_platinum(self):
        assert next_tier(10000) is None


class TestPoints:
    """Points earned per sale."""

    def test_bronze_earns_one_point_per_unit(self):
        assert points_for_purchase(13272, lifetime_points=0) == 132

    def test_multiplier_applies(self):
        assert points_for_purchase(13272, lifetime_points=1500) == 165
        assert points_for_purchase(13272, lifetime_points=6000) == 199
        assert points_for_purchase(13272, lifetime_points=12000) == 265

    def test_points_per_unit_setting(self):
        assert points_for_purchase(13272, points_per_unit=Decimal('0.1')) == 13

    def test_zero_total_earns_nothing(self):
        assert points_for_purchase(0, lifetime_points=20000) == 0
        assert points_for_purchase(99) == 0
