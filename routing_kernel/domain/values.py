"""
Values -- Immutable domain value objects for inventory routing.

Responsibility:
    Provides the enums and frozen values that flow through the routing
    pipeline: Channel, BrandTier, WeightClass, Condition, RoutingInput,
    QuotaSnapshot and QuotaReservation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by routing_engines and by kernel services.  No outward
    dependencies.

Invariants enforced:
    - Enum members only: a RoutingInput can never carry a malformed
      tier/class/condition (the normalizer rejects them first).
    - Quota counters are non-negative integers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Channel(str, Enum):
    """External sales channel an item can be routed to."""

    WHATNOT = "whatnot"  # live-auction platform
    EBAY = "ebay"  # search marketplace
    AMAZON = "amazon"  # retail marketplace


# Fixed tie-break priority: earlier wins on equal scores.
CHANNEL_PRIORITY: tuple[Channel, ...] = (Channel.WHATNOT, Channel.EBAY, Channel.AMAZON)

# The channel whose share of quota-tracked inventory is limited.
QUOTA_LIMITED_CHANNEL = Channel.WHATNOT


class BrandTier(str, Enum):
    """Human-assigned brand classification."""

    A = "A"  # premium brands
    B = "B"  # recognizable brands
    C = "C"  # private label


class WeightClass(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


class Condition(str, Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    PARTS_DAMAGED = "parts_damaged"


class QuotaBucket(str, Enum):
    """Which counter a reservation incremented."""

    LIMITED = "limited"
    OTHER = "other"

    @classmethod
    def for_channel(cls, channel: Channel) -> QuotaBucket:
        if channel == QUOTA_LIMITED_CHANNEL:
            return cls.LIMITED
        return cls.OTHER


# Fairness keys.  Only Tier A is tracked today; the ledger itself accepts
# any string key.
TIER_A_QUOTA_KEY = "TierA"

_QUOTA_KEYS: dict[BrandTier, str] = {BrandTier.A: TIER_A_QUOTA_KEY}


def quota_key_for(brand_tier: BrandTier) -> str | None:
    """Return the fairness key tracking this tier, or None if untracked."""
    return _QUOTA_KEYS.get(brand_tier)


@dataclass(frozen=True)
class RoutingInput:
    """
    Validated routing attributes for one item.

    Produced once per decision by the normalizer; never mutated.
    """

    brand_tier: BrandTier
    weight_class: WeightClass
    condition: Condition
    category: str | None = None
    retail_price_cents: int | None = None
    stock_quantity: int = 1
    upc_matched: bool = False
    brand: str | None = None
    weight_ounces: float | None = None


@dataclass(frozen=True)
class QuotaSnapshot:
    """Point-in-time read of one quota key's counters."""

    quota_key: str
    limited_channel_count: int = 0
    other_channels_count: int = 0

    def __post_init__(self) -> None:
        if self.limited_channel_count < 0 or self.other_channels_count < 0:
            raise ValueError(
                f"Quota counters must be non-negative: {self.quota_key} "
                f"limited={self.limited_channel_count} other={self.other_channels_count}"
            )

    def allowance(self, ratio: int) -> int:
        """How many limited-channel placements the other-channel count earns."""
        return self.other_channels_count // ratio

    def allows_limited_channel(self, ratio: int) -> bool:
        return self.limited_channel_count < self.allowance(ratio)


@dataclass(frozen=True)
class QuotaReservation:
    """A reservation recorded on an item so it can be released on re-route."""

    quota_key: str
    bucket: QuotaBucket
