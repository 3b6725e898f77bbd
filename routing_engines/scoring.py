"""
routing_engines.scoring -- Weighted channel scores for an item.

Responsibility:
    Compute an integer score per channel: a baseline of 50 plus additive
    adjustments driven by condition, brand tier, weight, price, UPC match
    and stock depth.  Scores are produced for every channel, including
    channels the eligibility rules disqualify, so that the UI can show
    why an item landed where it did.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Signals:
    Whatnot favours variety and imperfect, cheap, light inventory and
    penalises premium brands (they underperform live).  Ebay favours
    searchable branded items, UPC matches and higher prices.  Amazon
    favours new, repeatable, brand-safe stock.

Usage:
    from routing_engines.scoring import score_channels

    scores = score_channels(routing_input=routing_input)
    scores[Channel.AMAZON]  # -> 110
"""

from __future__ import annotations

from dataclasses import dataclass

from routing_engines.tracer import traced_engine
from routing_kernel.domain.values import (
    CHANNEL_PRIORITY,
    BrandTier,
    Channel,
    Condition,
    RoutingInput,
    WeightClass,
)

BASELINE_SCORE = 50

# Price thresholds in cents
LOW_PRICE_CEILING_CENTS = 3000  # under $30 sells live
MID_PRICE_FLOOR_CENTS = 2000  # $20+
HIGH_PRICE_FLOOR_CENTS = 5000  # $50+

MULTI_UNIT_QUANTITY = 2
DEEP_STOCK_QUANTITY = 5


@dataclass(frozen=True)
class ScoreAdjustment:
    """One signal's contribution to one channel's score."""

    channel: Channel
    signal: str
    points: int


def _whatnot_adjustments(item: RoutingInput) -> list[ScoreAdjustment]:
    out: list[ScoreAdjustment] = []

    def add(signal: str, points: int) -> None:
        out.append(ScoreAdjustment(Channel.WHATNOT, signal, points))

    if item.condition in (Condition.GOOD, Condition.ACCEPTABLE):
        add("imperfect_condition", 15)
    if item.condition == Condition.PARTS_DAMAGED:
        add("parts_condition", 10)

    if item.brand_tier == BrandTier.A:
        add("premium_brand", -25)
    elif item.brand_tier == BrandTier.B:
        add("recognizable_brand", 5)
    elif item.brand_tier == BrandTier.C:
        add("private_label", 15)

    if item.retail_price_cents is not None and item.retail_price_cents < LOW_PRICE_CEILING_CENTS:
        add("low_price", 10)

    if item.weight_class == WeightClass.LIGHT:
        add("light_weight", 10)

    return out


def _ebay_adjustments(item: RoutingInput) -> list[ScoreAdjustment]:
    out: list[ScoreAdjustment] = []

    def add(signal: str, points: int) -> None:
        out.append(ScoreAdjustment(Channel.EBAY, signal, points))

    if item.upc_matched:
        add("upc_matched", 20)

    if item.brand_tier == BrandTier.A:
        add("premium_brand", 20)
    elif item.brand_tier == BrandTier.B:
        add("recognizable_brand", 15)
    elif item.brand_tier == BrandTier.C:
        add("private_label", 5)

    if item.retail_price_cents is not None:
        if item.retail_price_cents >= MID_PRICE_FLOOR_CENTS:
            add("mid_price", 10)
        if item.retail_price_cents >= HIGH_PRICE_FLOOR_CENTS:
            add("high_price", 10)

    if item.condition in (Condition.NEW, Condition.LIKE_NEW):
        add("new_or_like_new", 10)

    return out


def _amazon_adjustments(item: RoutingInput) -> list[ScoreAdjustment]:
    out: list[ScoreAdjustment] = []

    def add(signal: str, points: int) -> None:
        out.append(ScoreAdjustment(Channel.AMAZON, signal, points))

    if item.condition == Condition.NEW:
        add("new_condition", 30)
    elif item.condition == Condition.LIKE_NEW:
        add("like_new_condition", 10)
    else:
        add("used_condition", -20)

    if item.stock_quantity >= MULTI_UNIT_QUANTITY:
        add("multi_unit", 15)
    if item.stock_quantity >= DEEP_STOCK_QUANTITY:
        add("deep_stock", 10)

    # Tier C is disqualified on Amazon and gets no brand adjustment.
    if item.brand_tier == BrandTier.A:
        add("premium_brand", 20)
    elif item.brand_tier == BrandTier.B:
        add("recognizable_brand", 10)

    if item.retail_price_cents is not None and item.retail_price_cents >= MID_PRICE_FLOOR_CENTS:
        add("mid_price", 10)

    return out


def explain_scores(routing_input: RoutingInput) -> tuple[ScoreAdjustment, ...]:
    """Every non-baseline adjustment, in channel priority order."""
    return (
        *_whatnot_adjustments(routing_input),
        *_ebay_adjustments(routing_input),
        *_amazon_adjustments(routing_input),
    )


@traced_engine("scoring", "1.0", fingerprint_fields=("routing_input",))
def score_channels(*, routing_input: RoutingInput) -> dict[Channel, int]:
    """Score every channel for an item (baseline plus adjustments)."""
    scores = {channel: BASELINE_SCORE for channel in CHANNEL_PRIORITY}
    for adjustment in explain_scores(routing_input):
        scores[adjustment.channel] += adjustment.points
    return scores
