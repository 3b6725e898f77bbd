"""
Module: routing_engines
Responsibility:
    Package entrypoint that re-exports the pure routing engines: attribute
    normalization, eligibility, scoring and decision resolution.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import routing_kernel.domain, routing_kernel.exceptions,
    routing_kernel.logging_config and routing_config.schema.
    MUST NOT import routing_kernel.services.

Invariants enforced:
    - Determinism: identical inputs always produce identical outputs.
    - Purity: engines never read the clock, the ledger or the database;
      quota state arrives as a QuotaSnapshot argument.

Usage:
    from routing_engines import (
        normalize_attributes,
        evaluate_eligibility,
        score_channels,
        resolve_decision,
    )
"""

from routing_engines.eligibility import evaluate_eligibility, quota_disqualification
from routing_engines.normalizer import (
    REQUIRED_FIELDS,
    NormalizationResult,
    derive_upc_matched,
    normalize_attributes,
)
from routing_engines.resolver import REVIEW_SCORE_MARGIN, rank_eligible, resolve_decision
from routing_engines.scoring import (
    BASELINE_SCORE,
    ScoreAdjustment,
    explain_scores,
    score_channels,
)

__all__ = [
    "BASELINE_SCORE",
    "REQUIRED_FIELDS",
    "REVIEW_SCORE_MARGIN",
    "NormalizationResult",
    "ScoreAdjustment",
    "derive_upc_matched",
    "evaluate_eligibility",
    "explain_scores",
    "normalize_attributes",
    "quota_disqualification",
    "rank_eligible",
    "resolve_decision",
    "score_channels",
]
