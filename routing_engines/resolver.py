"""
routing_engines.resolver -- Eligibility + scores to a final channel assignment.

Responsibility:
    Rank eligible channels by score, pick primary and secondary, and flag
    the decision for human review when nothing is eligible or the top two
    eligible channels are too close to call.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A disqualified channel is never primary or secondary.
    - Equal scores are ordered by the fixed priority Whatnot > Ebay >
      Amazon, so identical inputs always give identical decisions.
    - needs_review iff no eligible channel, or the top two eligible scores
      differ by less than REVIEW_SCORE_MARGIN.
"""

from __future__ import annotations

from collections.abc import Mapping

from routing_engines.tracer import traced_engine
from routing_kernel.domain.decision import RoutingDecision
from routing_kernel.domain.values import CHANNEL_PRIORITY, Channel

REVIEW_SCORE_MARGIN = 5


def rank_eligible(
    scores: Mapping[Channel, int],
    disqualifications: Mapping[Channel, tuple[str, ...]],
) -> list[Channel]:
    """Eligible channels, best first."""
    eligible = [c for c in CHANNEL_PRIORITY if not disqualifications.get(c)]
    # Stable sort keeps CHANNEL_PRIORITY order among equal scores.
    eligible.sort(key=lambda c: scores[c], reverse=True)
    return eligible


@traced_engine(
    "resolver",
    "1.0",
    fingerprint_fields=("scores", "disqualifications"),
)
def resolve_decision(
    *,
    scores: Mapping[Channel, int],
    disqualifications: Mapping[Channel, tuple[str, ...]],
) -> RoutingDecision:
    """Combine scores and disqualifications into a RoutingDecision."""
    ranked = rank_eligible(scores, disqualifications)

    primary = ranked[0] if ranked else None
    secondary = ranked[1] if len(ranked) > 1 else None

    needs_review = not ranked or (
        len(ranked) >= 2
        and abs(scores[ranked[0]] - scores[ranked[1]]) < REVIEW_SCORE_MARGIN
    )

    return RoutingDecision(
        primary=primary,
        secondary=secondary,
        scores={c: scores[c] for c in CHANNEL_PRIORITY},
        disqualifications={c: tuple(disqualifications.get(c, ())) for c in CHANNEL_PRIORITY},
        needs_review=needs_review,
    )
