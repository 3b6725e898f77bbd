"""
RoutingConfig schema.

The runtime configuration consumed by the eligibility evaluator.  YAML
documents are parsed into this frozen value by the loader; the routing
service reads a fresh instance on every decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RoutingConfig:
    """Tunable routing parameters.

    Attributes:
        heavy_weight_threshold_ounces: Items at or above this weight
            cannot ship via the live-auction channel, whatever their
            declared weight class.
        high_value_brand_ratio: Quota-tracked items that must go to
            other channels for every one placed on the limited channel.
        blocked_amazon_brands: Brand names (lowercased) never listed on
            the retail marketplace.
        version: Configuration document version.
        checksum: SHA-256 of the source document ("" when built in code).
    """

    heavy_weight_threshold_ounces: float = 160.0
    high_value_brand_ratio: int = 10
    blocked_amazon_brands: frozenset[str] = field(default_factory=frozenset)
    version: int = 1
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.heavy_weight_threshold_ounces <= 0:
            raise ValueError(
                "heavy_weight_threshold_ounces must be positive, "
                f"got {self.heavy_weight_threshold_ounces!r}"
            )
        if isinstance(self.high_value_brand_ratio, bool) or not isinstance(
            self.high_value_brand_ratio, int
        ):
            raise ValueError(
                f"high_value_brand_ratio must be an integer, got {self.high_value_brand_ratio!r}"
            )
        if self.high_value_brand_ratio < 1:
            raise ValueError(
                f"high_value_brand_ratio must be >= 1, got {self.high_value_brand_ratio}"
            )
        object.__setattr__(
            self,
            "blocked_amazon_brands",
            frozenset(b.strip().lower() for b in self.blocked_amazon_brands if b.strip()),
        )

    def is_blocked_on_amazon(self, brand: str | None) -> bool:
        if not brand:
            return False
        return brand.strip().lower() in self.blocked_amazon_brands
