"""Loyalty tiers and points earned per sale."""
from collections import namedtuple
from decimal import Decimal

from pos_engine.utils.money import CENTS_PER_UNIT, floor_units

LoyaltyTier = namedtuple('LoyaltyTier', ['name', 'min_lifetime_points', 'multiplier'])

# Ordered from the highest threshold down
LOYALTY_TIERS = (
    LoyaltyTier('platinum', 10000, Decimal('2')),
    LoyaltyTier('gold', 5000, Decimal('1.5')),
    LoyaltyTier('silver', 1000, Decimal('1.25')),
    LoyaltyTier('bronze', 0, Decimal('1')),
)

DEFAULT_POINTS_PER_UNIT = Decimal('1')


def tier_for(lifetime_points: int) -> LoyaltyTier:
    """Tier reached with a given number of lifetime points."""
    for tier in LOYALTY_TIERS:
        if lifetime_points >= tier.min_lifetime_points:
            return tier
    return LOYALTY_TIERS[-1]


def next_tier(lifetime_points: int):
    """(tier, points still needed) for the next tier up, or None at the top."""
    upcoming = None
    for tier in LOYALTY_TIERS:
        if tier.min_lifetime_points > lifetime_points:
            upcoming = tier
    if upcoming is None:
        return None
    return upcoming, upcoming.min_lifetime_points - lifetime_points


def points_for_purchase(total_cents: int, lifetime_points: int = 0,
                        points_per_unit: Decimal = DEFAULT_POINTS_PER_UNIT) -> int:
    """
    Points earned on a sale.

    floor(total in major units * points per unit * tier multiplier); never negative.
    """
    if total_cents <= 0:
        return 0
    multiplier = tier_for(lifetime_points).multiplier
    earned = Decimal(total_cents) / CENTS_PER_UNIT * Decimal(points_per_unit) * multiplier
    return max(0, floor_units(earned))
