"""
Module: routing_kernel.models.quota_counter
Responsibility: ORM persistence for fairness quota counters, one row per
    quota key.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quota_key is unique (uq_quota_key): one counter pair per key.
    - Both counters are non-negative (CHECK constraints).
    - Rows are only mutated while locked with SELECT ... FOR UPDATE by
      SqlQuotaLedger.
"""

from sqlalchemy import BigInteger, CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from routing_kernel.db.base import TimestampedBase


class QuotaCounter(TimestampedBase):
    """Counter pair for one fairness key (e.g. "TierA")."""

    __tablename__ = "quota_counters"

    __table_args__ = (
        UniqueConstraint("quota_key", name="uq_quota_key"),
        CheckConstraint("limited_channel_count >= 0", name="ck_quota_limited_non_negative"),
        CheckConstraint("other_channels_count >= 0", name="ck_quota_other_non_negative"),
    )

    quota_key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Reservations placed on the quota-limited channel
    limited_channel_count: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    # Reservations placed on every other channel
    other_channels_count: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return (
            f"<QuotaCounter {self.quota_key}: limited={self.limited_channel_count} "
            f"other={self.other_channels_count}>"
        )
