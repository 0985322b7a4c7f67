# rental_engine/services/pricing.py
"""
Rental pricing.

Pure functions: base price (minor units) + delivery mode + tier gives the
rental fee, the refundable guarantee (hardcopy only) and the rental period.
Percentages round half-up to the nearest minor unit.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from rental_engine.constants.rental_status import DeliveryMode, RentalTier
from rental_engine.errors import InvalidMode, InvalidTier

HARDCOPY_GUARANTEE_PERCENT = Decimal("0.80")


@dataclass(frozen=True)
class TierPolicy:
    duration: timedelta
    fee_percent: Decimal
    guarantee_percent: Optional[Decimal]
    label: str


@dataclass(frozen=True)
class RentalQuote:
    mode: DeliveryMode
    tier: RentalTier
    fee: int
    guarantee: int
    duration: timedelta
    label: str


TIER_POLICIES = {
    DeliveryMode.EBOOK: {
        RentalTier.SINGLE_READ: TierPolicy(timedelta(hours=24), Decimal("0.30"), None, "24 orë"),
        RentalTier.TIME_LIMITED: TierPolicy(timedelta(days=7), Decimal("0.60"), None, "7 ditë"),
        RentalTier.UNLIMITED_READS: TierPolicy(timedelta(days=30), Decimal("1.00"), None, "30 ditë"),
    },
    DeliveryMode.HARDCOPY: {
        RentalTier.SHORT_TERM: TierPolicy(timedelta(days=7), Decimal("0.15"), HARDCOPY_GUARANTEE_PERCENT, "7 ditë"),
        RentalTier.MEDIUM_TERM: TierPolicy(timedelta(days=14), Decimal("0.25"), HARDCOPY_GUARANTEE_PERCENT, "14 ditë"),
        RentalTier.LONG_TERM: TierPolicy(timedelta(days=30), Decimal("0.40"), HARDCOPY_GUARANTEE_PERCENT, "30 ditë"),
        RentalTier.EXTENDED_TERM: TierPolicy(timedelta(days=60), Decimal("0.60"), HARDCOPY_GUARANTEE_PERCENT, "60 ditë"),
    },
    DeliveryMode.AUDIO: {
        RentalTier.SINGLE_LISTEN: TierPolicy(timedelta(hours=24), Decimal("0.30"), None, "24 orë"),
        RentalTier.TIME_LIMITED: TierPolicy(timedelta(days=7), Decimal("0.60"), None, "7 ditë"),
        RentalTier.UNLIMITED_LISTENS: TierPolicy(timedelta(days=30), Decimal("0.80"), None, "30 ditë"),
    },
}


def round_half_up(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: Decimal) -> int:
    return round_half_up(Decimal(amount) * percent)


def get_tier_policy(mode, tier) -> TierPolicy:
    try:
        mode = DeliveryMode(mode)
    except ValueError:
        raise InvalidMode(mode)
    try:
        return TIER_POLICIES[mode][RentalTier(tier)]
    except (ValueError, KeyError):
        raise InvalidTier(mode.value, tier)


def calculate_rental_price(base_price: int, mode, tier) -> RentalQuote:
    if base_price is None or base_price < 0:
        raise ValueError(f"Base price must be a non-negative amount, got {base_price!r}")

    policy = get_tier_policy(mode, tier)
    guarantee = 0
    if policy.guarantee_percent is not None:
        guarantee = percent_of(base_price, policy.guarantee_percent)

    return RentalQuote(
        mode=DeliveryMode(mode),
        tier=RentalTier(tier),
        fee=percent_of(base_price, policy.fee_percent),
        guarantee=guarantee,
        duration=policy.duration,
        label=policy.label,
    )


def pricing_options(base_price: int, mode) -> dict:
    """Every tier available for a mode, priced for display."""
    try:
        tiers = TIER_POLICIES[DeliveryMode(mode)]
    except ValueError:
        raise InvalidMode(mode)

    options = {}
    for tier in tiers:
        quote = calculate_rental_price(base_price, mode, tier)
        options[tier.value] = {
            "duration": quote.label,
            "duration_hours": int(quote.duration.total_seconds() // 3600),
            "rental_price": quote.fee,
            "guarantee_amount": quote.guarantee if quote.mode == DeliveryMode.HARDCOPY else None,
        }
    return options
