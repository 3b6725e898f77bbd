"""
RoutingDecision -- the persisted outcome of one routing request.

Consumed by the admin UI (badges), the per-channel exporters (outbound
queue selection) and the manual-review workflow.  ``to_dict`` produces
the JSON-compatible form stored on the item; ``from_dict`` reverses it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from routing_kernel.domain.values import CHANNEL_PRIORITY, Channel


@dataclass(frozen=True)
class RoutingDecision:
    """
    Channel assignment for an item.

    Guarantees (established by the resolver / normalizer):
        - primary and secondary are never disqualified channels.
        - missing_required_fields non-empty implies primary is None,
          scores and disqualifications are empty.
    """

    primary: Channel | None
    secondary: Channel | None
    scores: dict[Channel, int] = field(default_factory=dict)
    disqualifications: dict[Channel, tuple[str, ...]] = field(default_factory=dict)
    needs_review: bool = False
    missing_required_fields: tuple[str, ...] = ()

    @classmethod
    def incomplete(cls, missing_fields: tuple[str, ...]) -> RoutingDecision:
        """Decision for an item whose mandatory attributes are not all set."""
        return cls(
            primary=None,
            secondary=None,
            needs_review=True,
            missing_required_fields=tuple(missing_fields),
        )

    @property
    def eligible_channels(self) -> tuple[Channel, ...]:
        return tuple(
            c for c in CHANNEL_PRIORITY
            if c in self.disqualifications and not self.disqualifications[c]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary": self.primary.value if self.primary else None,
            "secondary": self.secondary.value if self.secondary else None,
            "scores": {c.value: s for c, s in self.scores.items()},
            "disqualifications": {
                c.value: list(reasons) for c, reasons in self.disqualifications.items()
            },
            "needs_review": self.needs_review,
            "missing_required_fields": list(self.missing_required_fields),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutingDecision:
        primary = data.get("primary")
        secondary = data.get("secondary")
        return cls(
            primary=Channel(primary) if primary else None,
            secondary=Channel(secondary) if secondary else None,
            scores={Channel(k): int(v) for k, v in (data.get("scores") or {}).items()},
            disqualifications={
                Channel(k): tuple(v)
                for k, v in (data.get("disqualifications") or {}).items()
            },
            needs_review=bool(data.get("needs_review", False)),
            missing_required_fields=tuple(data.get("missing_required_fields") or ()),
        )
