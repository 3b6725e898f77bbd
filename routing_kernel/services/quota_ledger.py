"""
QuotaLedger -- fairness counters with an atomic snapshot-then-reserve unit.

Responsibility:
    Hold one counter pair per fairness key: reservations placed on the
    quota-limited channel and reservations placed on every other channel.
    The routing service reads a snapshot, decides, and reserves inside a
    single ``hold(key)`` block; that block is the critical section.

Architecture position:
    Kernel > Services -- the only shared mutable state of the routing core.
    Consumed by RoutingService.  The ledger does not decide eligibility.

Invariants enforced:
    - Linearizability per key: every ``hold(key)`` block runs under the
      key's FIFO-fair lock, so {snapshot, evaluate, reserve} of concurrent
      callers are equivalent to some total order.
    - At most one reservation per hold.
    - Transactional holds: an exception escaping a ``hold(key)`` block
      undoes every reserve/release made inside it.
    - Counters never go negative; the only decrement is ``release`` of a
      bucket an item previously reserved (re-routing).

Failure modes:
    - LockTimeoutError when a hold timeout expires.
    - QuotaReleaseError on releasing an empty bucket.
    - RuntimeError when a hold is used after its block has exited.

Usage:
    with ledger.hold("TierA") as hold:
        snapshot = hold.snapshot()
        decision = decide(snapshot)
        if decision.primary:
            hold.reserve(decision.primary)
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING

from routing_kernel.domain.values import Channel, QuotaBucket, QuotaReservation, QuotaSnapshot
from routing_kernel.exceptions import QuotaReleaseError
from routing_kernel.logging_config import get_logger
from routing_kernel.services.key_locks import KeyedLocks

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = get_logger("services.quota_ledger")


class QuotaHold(ABC):
    """
    Handle to one key's counters, valid only inside ``QuotaLedger.hold``.

    Subclasses implement the three ``_do_*`` primitives; this base class
    enforces hold validity and the one-reservation rule.
    """

    def __init__(self, quota_key: str):
        self.quota_key = quota_key
        self._open = True
        self._reserved: QuotaReservation | None = None

    def _check_open(self) -> None:
        if not self._open:
            raise RuntimeError(f"Quota hold for {self.quota_key} has already been released")

    def close(self) -> None:
        self._open = False

    @property
    def session(self) -> Session | None:
        """
        Database session whose commit ends this hold, or None.

        Writes made through it commit or roll back together with the
        counters, which is how an item store keeps the item and the
        ledger in agreement.
        """
        return None

    @property
    def reservation(self) -> QuotaReservation | None:
        """The reservation made during this hold, if any."""
        return self._reserved

    def snapshot(self) -> QuotaSnapshot:
        self._check_open()
        return self._do_snapshot()

    def reserve(self, channel: Channel) -> QuotaReservation:
        """Count one item for ``channel``; at most once per hold."""
        self._check_open()
        if self._reserved is not None:
            raise RuntimeError(
                f"Quota hold for {self.quota_key} already reserved {self._reserved.bucket.value}"
            )
        bucket = QuotaBucket.for_channel(channel)
        self._do_increment(bucket)
        self._reserved = QuotaReservation(quota_key=self.quota_key, bucket=bucket)
        logger.info(
            "quota_reserved",
            extra={"quota_key": self.quota_key, "channel": channel.value, "bucket": bucket.value},
        )
        return self._reserved

    def release(self, bucket: QuotaBucket) -> None:
        """Undo one earlier reservation in ``bucket``."""
        self._check_open()
        snapshot = self._do_snapshot()
        current = (
            snapshot.limited_channel_count
            if bucket == QuotaBucket.LIMITED
            else snapshot.other_channels_count
        )
        if current <= 0:
            raise QuotaReleaseError(self.quota_key, bucket.value)
        self._do_decrement(bucket)
        logger.info(
            "quota_released",
            extra={"quota_key": self.quota_key, "bucket": bucket.value},
        )

    @abstractmethod
    def _do_snapshot(self) -> QuotaSnapshot: ...

    @abstractmethod
    def _do_increment(self, bucket: QuotaBucket) -> None: ...

    @abstractmethod
    def _do_decrement(self, bucket: QuotaBucket) -> None: ...


class QuotaLedger(ABC):
    """Store of per-key quota counters."""

    @abstractmethod
    def hold(self, key: str, timeout: float | None = None) -> AbstractContextManager[QuotaHold]:
        """Enter the critical section for ``key``."""

    def snapshot(self, key: str) -> QuotaSnapshot:
        """Consistent read of ``key``'s counters."""
        with self.hold(key) as hold:
            return hold.snapshot()

    def reserve(self, key: str, channel: Channel) -> QuotaReservation:
        """Single reservation outside a caller-managed hold."""
        with self.hold(key) as hold:
            return hold.reserve(channel)

    def release(self, key: str, bucket: QuotaBucket) -> None:
        with self.hold(key) as hold:
            hold.release(bucket)


class _InMemoryHold(QuotaHold):
    def __init__(self, quota_key: str, counters: list[int]):
        super().__init__(quota_key)
        # [limited_channel_count, other_channels_count]
        self._counters = counters

    def _do_snapshot(self) -> QuotaSnapshot:
        return QuotaSnapshot(
            quota_key=self.quota_key,
            limited_channel_count=self._counters[0],
            other_channels_count=self._counters[1],
        )

    def _do_increment(self, bucket: QuotaBucket) -> None:
        self._counters[0 if bucket == QuotaBucket.LIMITED else 1] += 1

    def _do_decrement(self, bucket: QuotaBucket) -> None:
        self._counters[0 if bucket == QuotaBucket.LIMITED else 1] -= 1


class InMemoryQuotaLedger(QuotaLedger):
    """
    Process-local quota ledger.

    Contract:
        Counters live in a dict of two-element lists.  A key's list is
        only read or written while that key's FairLock is held.  The
        pair is copied on entry to a hold and restored if the block raises.

    Non-goals:
        - No persistence: counters are lost on restart.  Use
          SqlQuotaLedger where counters must survive the process.
    """

    def __init__(self) -> None:
        self._locks = KeyedLocks()
        self._counters: dict[str, list[int]] = {}
        self._registry_lock = threading.Lock()

    def _counters_for(self, key: str) -> list[int]:
        with self._registry_lock:
            return self._counters.setdefault(key, [0, 0])

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[QuotaHold]:
        with self._locks.locked(key, timeout):
            counters = self._counters_for(key)
            saved = list(counters)
            hold = _InMemoryHold(key, counters)
            try:
                yield hold
            except BaseException:
                counters[:] = saved
                logger.warning("quota_hold_rolled_back", extra={"quota_key": key})
                raise
            finally:
                hold.close()

    def seed(self, key: str, limited_channel_count: int = 0, other_channels_count: int = 0) -> None:
        """
        Set a key's counters directly.

        WARNING: For tests, demos and restoring counters from another
        store only.  Seeding a live ledger breaks the ratio history.
        """
        if limited_channel_count < 0 or other_channels_count < 0:
            raise ValueError("Quota counters must be non-negative")
        with self._locks.locked(key):
            counters = self._counters_for(key)
            counters[0] = limited_channel_count
            counters[1] = other_channels_count
