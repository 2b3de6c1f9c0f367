"""
fee_calculator.py — Pure fee-split and winnings arithmetic.

All math runs on integer minor units (1 major unit = 100_000 minor units).
Percentages are converted to basis points and applied with floor division,
so every split is exact:

    platform_fee + creator_reward + participant_pool == total_pool

participant_pool absorbs the rounding remainder. The per-winner remainder
(at most winners - 1 minor units) is never distributed.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

MINOR_UNITS_PER_MAJOR = 100_000
BASIS_POINTS = 10_000

# Join-time estimate assumes a flat 5% total fee regardless of the
# market's own percentages. Display data only.
ESTIMATE_PARTICIPANT_POOL_BPS = 9_500


@dataclass(frozen=True)
class FeeSplit:
    total_pool: int
    platform_fee: int
    creator_reward: int
    participant_pool: int


def to_minor_units(amount: "Decimal | int | float | str") -> int:
    """Convert a major-unit amount to integer minor units (floor)."""
    value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def from_minor_units(amount: int) -> Decimal:
    return Decimal(amount) / Decimal(MINOR_UNITS_PER_MAJOR)


def is_whole_minor_units(amount: "Decimal | int | float | str") -> bool:
    """True when ``amount`` has no digits below one minor unit."""
    value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return value == value.to_integral_value()


def percentage_to_bps(percentage: "Decimal | float | str") -> int:
    """0.03 -> 300. Fractions of a basis point are floored."""
    value = Decimal(str(percentage)) * BASIS_POINTS
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_fee_split(
    total_pool: int,
    platform_fee_percentage: "Decimal | float | str",
    creator_reward_percentage: "Decimal | float | str",
) -> FeeSplit:
    """Split a pool (minor units) into platform fee, creator reward, and participant pool.

    Raises ValueError for a negative pool, negative percentages, or
    percentages that together take the whole pool.
    """
    if total_pool < 0:
        raise ValueError(f"total_pool must be non-negative, got {total_pool}")

    platform_bps = percentage_to_bps(platform_fee_percentage)
    creator_bps = percentage_to_bps(creator_reward_percentage)
    if platform_bps < 0 or creator_bps < 0:
        raise ValueError("Fee percentages must be non-negative")
    if platform_bps + creator_bps >= BASIS_POINTS:
        raise ValueError("Fee percentages must sum to less than 1")

    platform_fee = total_pool * platform_bps // BASIS_POINTS
    creator_reward = total_pool * creator_bps // BASIS_POINTS
    participant_pool = total_pool - platform_fee - creator_reward

    return FeeSplit(
        total_pool=total_pool,
        platform_fee=platform_fee,
        creator_reward=creator_reward,
        participant_pool=participant_pool,
    )


def winnings_per_winner(participant_pool: int, winner_count: int) -> int:
    if winner_count <= 0:
        return 0
    return participant_pool // winner_count


def estimate_potential_winnings(new_total_pool: int, same_prediction_count: int) -> int:
    """Advisory payout shown at join time.

    ``same_prediction_count`` is the number of participants that already
    hold the same prediction, not counting the one being added.
    """
    estimate = new_total_pool * ESTIMATE_PARTICIPANT_POOL_BPS // BASIS_POINTS
    if same_prediction_count == 0:
        return estimate
    return estimate // (same_prediction_count + 1)
