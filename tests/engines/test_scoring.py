"""
Tests for the scoring engine.

Scores are baseline 50 plus the additive adjustments of the channel
scoring table; they are computed for every channel whether or not it is
eligible.
"""

import pytest

from routing_engines.scoring import BASELINE_SCORE, explain_scores, score_channels
from routing_kernel.domain.values import (
    BrandTier,
    Channel,
    Condition,
    RoutingInput,
    WeightClass,
)


def _score(**fields) -> dict[Channel, int]:
    base = {
        "brand_tier": BrandTier.B,
        "weight_class": WeightClass.MEDIUM,
        "condition": Condition.LIKE_NEW,
    }
    base.update(fields)
    return score_channels(routing_input=RoutingInput(**base))


class TestScenarios:

    def test_recognizable_new_light_multi_unit(self):
        """Tier B, new, light, $50, stock 10, UPC matched."""
        scores = _score(
            brand_tier=BrandTier.B,
            condition=Condition.NEW,
            weight_class=WeightClass.LIGHT,
            retail_price_cents=5000,
            stock_quantity=10,
            upc_matched=True,
        )

        assert scores[Channel.WHATNOT] == 65
        assert scores[Channel.EBAY] == 115
        assert scores[Channel.AMAZON] == 125

    def test_premium_heavy_good(self):
        scores = _score(
            brand_tier=BrandTier.A,
            condition=Condition.GOOD,
            weight_class=WeightClass.HEAVY,
        )

        assert scores == {Channel.WHATNOT: 40, Channel.EBAY: 70, Channel.AMAZON: 50}

    def test_private_label_damaged_cheap(self):
        scores = _score(
            brand_tier=BrandTier.C,
            condition=Condition.PARTS_DAMAGED,
            weight_class=WeightClass.LIGHT,
            retail_price_cents=1200,
        )

        # Whatnot: 50 + 10 parts + 15 tier C + 10 low price + 10 light
        assert scores[Channel.WHATNOT] == 95
        assert scores[Channel.EBAY] == 55
        # Amazon keeps its score even though it is disqualified.
        assert scores[Channel.AMAZON] == 30


class TestSignals:

    def test_every_channel_scored(self):
        assert set(_score()) == {Channel.WHATNOT, Channel.EBAY, Channel.AMAZON}

    @pytest.mark.parametrize(
        "condition,whatnot,ebay,amazon",
        [
            (Condition.NEW, 0, 10, 30),
            (Condition.LIKE_NEW, 0, 10, 10),
            (Condition.GOOD, 15, 0, -20),
            (Condition.ACCEPTABLE, 15, 0, -20),
            (Condition.PARTS_DAMAGED, 10, 0, -20),
        ],
    )
    def test_condition_adjustments(self, condition, whatnot, ebay, amazon):
        neutral = _score(brand_tier=BrandTier.C, condition=Condition.LIKE_NEW)
        scores = _score(brand_tier=BrandTier.C, condition=condition)

        assert scores[Channel.WHATNOT] - neutral[Channel.WHATNOT] == whatnot
        assert scores[Channel.EBAY] - neutral[Channel.EBAY] == ebay - 10
        assert scores[Channel.AMAZON] - neutral[Channel.AMAZON] == amazon - 10

    @pytest.mark.parametrize(
        "tier,whatnot,ebay,amazon",
        [
            (BrandTier.A, -25, 20, 20),
            (BrandTier.B, 5, 15, 10),
            (BrandTier.C, 15, 5, 0),
        ],
    )
    def test_brand_tier_adjustments(self, tier, whatnot, ebay, amazon):
        scores = _score(brand_tier=tier, condition=Condition.LIKE_NEW)

        assert scores[Channel.WHATNOT] == BASELINE_SCORE + whatnot
        assert scores[Channel.EBAY] == BASELINE_SCORE + 10 + ebay
        assert scores[Channel.AMAZON] == BASELINE_SCORE + 10 + amazon

    def test_only_light_weight_scores(self):
        light = _score(weight_class=WeightClass.LIGHT)
        medium = _score(weight_class=WeightClass.MEDIUM)
        heavy = _score(weight_class=WeightClass.HEAVY)

        assert light[Channel.WHATNOT] - medium[Channel.WHATNOT] == 10
        assert medium == heavy

    @pytest.mark.parametrize(
        "price,whatnot,ebay,amazon",
        [
            (None, 0, 0, 0),
            (1999, 10, 0, 0),
            (2000, 10, 10, 10),
            (2999, 10, 10, 10),
            (3000, 0, 10, 10),
            (4999, 0, 10, 10),
            (5000, 0, 20, 10),
        ],
    )
    def test_price_bands(self, price, whatnot, ebay, amazon):
        base = _score()
        scores = _score(retail_price_cents=price)

        assert scores[Channel.WHATNOT] - base[Channel.WHATNOT] == whatnot
        assert scores[Channel.EBAY] - base[Channel.EBAY] == ebay
        assert scores[Channel.AMAZON] - base[Channel.AMAZON] == amazon

    def test_upc_match_helps_ebay_only(self):
        base = _score()
        matched = _score(upc_matched=True)

        assert matched[Channel.EBAY] - base[Channel.EBAY] == 20
        assert matched[Channel.WHATNOT] == base[Channel.WHATNOT]
        assert matched[Channel.AMAZON] == base[Channel.AMAZON]

    @pytest.mark.parametrize("stock,bonus", [(1, 0), (2, 15), (4, 15), (5, 25), (40, 25)])
    def test_stock_depth_helps_amazon(self, stock, bonus):
        scores = _score(stock_quantity=stock)
        assert scores[Channel.AMAZON] - _score()[Channel.AMAZON] == bonus


class TestExplainScores:

    def test_adjustments_sum_to_scores(self):
        item = RoutingInput(
            brand_tier=BrandTier.A,
            weight_class=WeightClass.LIGHT,
            condition=Condition.NEW,
            retail_price_cents=2500,
            stock_quantity=3,
            upc_matched=True,
        )
        scores = score_channels(routing_input=item)

        for channel in scores:
            points = sum(a.points for a in explain_scores(item) if a.channel == channel)
            assert scores[channel] == BASELINE_SCORE + points

    def test_signals_named(self):
        item = RoutingInput(
            brand_tier=BrandTier.C,
            weight_class=WeightClass.LIGHT,
            condition=Condition.GOOD,
        )
        signals = {(a.channel, a.signal) for a in explain_scores(item)}

        assert (Channel.WHATNOT, "private_label") in signals
        assert (Channel.AMAZON, "used_condition") in signals
