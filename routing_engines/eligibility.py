"""
routing_engines.eligibility -- Hard disqualification rules per channel.

Responsibility:
    Compute, for every channel, the ordered list of reasons that remove
    it from consideration regardless of score.  An empty list means the
    channel is eligible.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The quota rule reads a
    ``QuotaSnapshot`` that the routing service took inside the quota
    key's critical section; this module never touches the ledger.

Rules (evaluated in this order):
    1. Heavy weight class             -> Whatnot
    2. Weight at/above heavy threshold -> Whatnot
    3. Parts/damaged condition        -> Amazon
    4. Brand tier C (private label)   -> Amazon
    5. Brand on the Amazon block list -> Amazon
    6. Tier A quota exhausted         -> Whatnot
"""

from __future__ import annotations

from routing_config.schema import RoutingConfig
from routing_engines.tracer import traced_engine
from routing_kernel.domain.values import (
    CHANNEL_PRIORITY,
    BrandTier,
    Channel,
    Condition,
    QuotaSnapshot,
    RoutingInput,
    WeightClass,
)
from routing_kernel.logging_config import get_logger

logger = get_logger("engines.eligibility")


def quota_disqualification(snapshot: QuotaSnapshot, ratio: int) -> str | None:
    """Reason text when the snapshot leaves no room on the limited channel."""
    allowance = snapshot.allowance(ratio)
    if snapshot.limited_channel_count < allowance:
        return None
    return (
        f"Premium brand quota: need {ratio} items on other channels per Whatnot "
        f"listing ({snapshot.other_channels_count} elsewhere, {allowance} Whatnot "
        f"spots allowed, {snapshot.limited_channel_count} used)"
    )


@traced_engine(
    "eligibility",
    "1.0",
    fingerprint_fields=("routing_input", "config", "quota_snapshot"),
)
def evaluate_eligibility(
    *,
    routing_input: RoutingInput,
    config: RoutingConfig,
    quota_snapshot: QuotaSnapshot | None = None,
) -> dict[Channel, tuple[str, ...]]:
    """
    Evaluate hard eligibility rules.

    Args:
        routing_input: Normalized item attributes.
        config: Active routing configuration.
        quota_snapshot: Counters for the item's quota key.  Only consulted
            for Tier A; None counts as a fresh ledger (both counters zero).

    Returns:
        Mapping of every channel to its disqualification reasons.
    """
    reasons: dict[Channel, list[str]] = {c: [] for c in CHANNEL_PRIORITY}

    if routing_input.weight_class == WeightClass.HEAVY:
        reasons[Channel.WHATNOT].append("Heavy items cannot ship via Whatnot")
    elif (
        routing_input.weight_ounces is not None
        and routing_input.weight_ounces >= config.heavy_weight_threshold_ounces
    ):
        reasons[Channel.WHATNOT].append(
            f"Weight {routing_input.weight_ounces:g} oz meets the heavy threshold "
            f"({config.heavy_weight_threshold_ounces:g} oz); cannot ship via Whatnot"
        )

    if routing_input.condition == Condition.PARTS_DAMAGED:
        reasons[Channel.AMAZON].append("Parts/damaged condition not allowed on Amazon")

    if routing_input.brand_tier == BrandTier.C:
        reasons[Channel.AMAZON].append("Tier C (private label) items blocked on Amazon")

    if config.is_blocked_on_amazon(routing_input.brand):
        reasons[Channel.AMAZON].append(f"Brand '{routing_input.brand}' is blocked on Amazon")

    if routing_input.brand_tier == BrandTier.A:
        snapshot = quota_snapshot or QuotaSnapshot(quota_key="")
        reason = quota_disqualification(snapshot, config.high_value_brand_ratio)
        if reason is not None:
            reasons[Channel.WHATNOT].append(reason)
            logger.debug(
                "quota_disqualified",
                extra={
                    "limited_channel_count": snapshot.limited_channel_count,
                    "other_channels_count": snapshot.other_channels_count,
                    "ratio": config.high_value_brand_ratio,
                },
            )

    return {channel: tuple(r) for channel, r in reasons.items()}
