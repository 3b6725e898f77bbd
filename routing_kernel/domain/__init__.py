"""Routing kernel domain: pure value objects, zero I/O."""

from routing_kernel.domain.decision import RoutingDecision
from routing_kernel.domain.values import (
    CHANNEL_PRIORITY,
    QUOTA_LIMITED_CHANNEL,
    TIER_A_QUOTA_KEY,
    BrandTier,
    Channel,
    Condition,
    QuotaBucket,
    QuotaReservation,
    QuotaSnapshot,
    RoutingInput,
    WeightClass,
    quota_key_for,
)

__all__ = [
    "CHANNEL_PRIORITY",
    "QUOTA_LIMITED_CHANNEL",
    "TIER_A_QUOTA_KEY",
    "BrandTier",
    "Channel",
    "Condition",
    "QuotaBucket",
    "QuotaReservation",
    "QuotaSnapshot",
    "RoutingDecision",
    "RoutingInput",
    "WeightClass",
    "quota_key_for",
]
