"""
KeyedLocks -- FIFO-fair mutual exclusion per quota key.

Responsibility:
    Serialize every quota-sensitive critical section for one key while
    letting different keys proceed in parallel.  Waiters are admitted in
    arrival order so that bursts of concurrent item creation (several
    scanning stations at once) cannot starve an individual request.

Architecture position:
    Kernel > Services -- concurrency infrastructure used by both quota
    ledger backends.

Invariants enforced:
    - At most one holder per key at any time.
    - FIFO hand-off: release passes ownership directly to the oldest
      waiter, so a newly arriving thread can never barge ahead of it.
    - A waiter that times out removes itself from the queue; if ownership
      was handed to it in the meantime it keeps the lock.

Failure modes:
    - LockTimeoutError when a timeout is given and expires.
    - RuntimeError when releasing a lock that is not held.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager

from routing_kernel.exceptions import LockTimeoutError
from routing_kernel.logging_config import get_logger

logger = get_logger("services.key_locks")


class FairLock:
    """Mutex that grants ownership in request order."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._waiters: deque[threading.Lock] = deque()
        self._locked = False

    def acquire(self, timeout: float | None = None) -> bool:
        with self._mutex:
            if not self._locked and not self._waiters:
                self._locked = True
                return True
            waiter = threading.Lock()
            waiter.acquire()
            self._waiters.append(waiter)

        # Blocks until release() hands ownership over by releasing `waiter`.
        if waiter.acquire(timeout=-1 if timeout is None else timeout):
            return True

        with self._mutex:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                # Handed over between the timeout and re-taking the mutex.
                return True
            return False

    def release(self) -> None:
        with self._mutex:
            if not self._locked:
                raise RuntimeError("release() called on an unlocked FairLock")
            if self._waiters:
                # Ownership passes directly; _locked stays True.
                self._waiters.popleft().release()
            else:
                self._locked = False

    def locked(self) -> bool:
        with self._mutex:
            return self._locked

    def __enter__(self) -> FairLock:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


class KeyedLocks:
    """Registry of one FairLock per key, created on first use."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, FairLock] = {}

    def _lock_for(self, key: str) -> FairLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = FairLock()
            return lock

    @contextmanager
    def locked(self, key: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._lock_for(key)
        t0 = time.monotonic()
        if not lock.acquire(timeout=timeout):
            logger.warning(
                "quota_lock_timeout",
                extra={"quota_key": key, "timeout": timeout},
            )
            raise LockTimeoutError(key, timeout if timeout is not None else 0.0)
        wait_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.debug("quota_lock_acquired", extra={"quota_key": key, "wait_ms": wait_ms})
        try:
            yield
        finally:
            lock.release()
