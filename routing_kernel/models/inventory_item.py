"""
Module: routing_kernel.models.inventory_item
Responsibility: ORM persistence for scanned inventory items: the raw routing
    attributes staff enter, and the routing decision written back onto them.
Architecture position: Kernel > Models.  May import from db/base.py,
    routing_kernel.domain and the pure normalizer helpers only.

Invariants enforced:
    - Routing columns are written together by SqlItemStore.save_decision,
      in one transaction.
    - quota_key and quota_bucket are both set or both NULL; they record the
      reservation the item currently holds so a re-route can release it.

Consumers:
    The admin inventory UI renders badges from routing_primary /
    needs_review; per-channel exporters select on routing_primary; the
    manual-review workflow selects needs_review = true.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from routing_engines.normalizer import derive_upc_matched
from routing_kernel.db.base import TimestampedBase
from routing_kernel.domain.decision import RoutingDecision

# Attributes fed to the normalizer, in column order.
ROUTING_ATTRIBUTE_FIELDS: tuple[str, ...] = (
    "brand_tier",
    "condition",
    "weight_class",
    "category",
    "retail_price_cents",
    "stock_quantity",
    "upc_matched",
    "brand",
    "weight_ounces",
)


class InventoryItem(TimestampedBase):
    """A scanned or created inventory item and its routing decision."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        Index("idx_item_routing_primary", "routing_primary"),
        Index("idx_item_needs_review", "needs_review"),
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    upc: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Routing attributes (raw, as entered; validated by the normalizer)
    brand: Mapped[str | None] = mapped_column(String(200), nullable=True)
    brand_tier: Mapped[str | None] = mapped_column(String(10), nullable=True)
    condition: Mapped[str | None] = mapped_column(String(20), nullable=True)
    weight_class: Mapped[str | None] = mapped_column(String(20), nullable=True)
    weight_ounces: Mapped[float | None] = mapped_column(Float, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    retail_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stock_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # NULL means "derive from upc/title"
    upc_matched: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Routing decision
    routing_primary: Mapped[str | None] = mapped_column(String(20), nullable=True)
    routing_secondary: Mapped[str | None] = mapped_column(String(20), nullable=True)
    routing_scores: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    routing_disqualifications: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    missing_required_fields: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    routed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Quota reservation currently held by this item
    quota_key: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quota_bucket: Mapped[str | None] = mapped_column(String(10), nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryItem {self.id}: {self.title!r} -> {self.routing_primary}>"

    def routing_attributes(self) -> dict[str, Any]:
        """Raw attributes for the normalizer."""
        attrs = {name: getattr(self, name) for name in ROUTING_ATTRIBUTE_FIELDS}
        if attrs["upc_matched"] is None:
            attrs["upc_matched"] = derive_upc_matched(self.upc, self.title)
        return attrs

    def apply_decision(self, decision: RoutingDecision, routed_at: datetime) -> None:
        data = decision.to_dict()
        self.routing_primary = data["primary"]
        self.routing_secondary = data["secondary"]
        self.routing_scores = data["scores"]
        self.routing_disqualifications = data["disqualifications"]
        self.needs_review = data["needs_review"]
        self.missing_required_fields = data["missing_required_fields"]
        self.routed_at = routed_at

    def routing_decision(self) -> RoutingDecision | None:
        """The persisted decision, or None if the item was never routed."""
        if self.routed_at is None:
            return None
        return RoutingDecision.from_dict({
            "primary": self.routing_primary,
            "secondary": self.routing_secondary,
            "scores": self.routing_scores,
            "disqualifications": self.routing_disqualifications,
            "needs_review": self.needs_review,
            "missing_required_fields": self.missing_required_fields,
        })
