"""
Tests for FairLock and KeyedLocks.

Covers:
- Mutual exclusion per key, independence across keys
- FIFO hand-off order
- Timeouts and release misuse
"""

import threading
import time

import pytest

from routing_kernel.exceptions import LockTimeoutError
from routing_kernel.services.key_locks import FairLock, KeyedLocks


class TestFairLock:

    def test_acquire_and_release(self):
        lock = FairLock()

        assert lock.acquire() is True
        assert lock.locked() is True
        lock.release()
        assert lock.locked() is False

    def test_release_unlocked_raises(self):
        with pytest.raises(RuntimeError):
            FairLock().release()

    def test_timeout_returns_false(self):
        lock = FairLock()
        lock.acquire()

        result = []
        t = threading.Thread(target=lambda: result.append(lock.acquire(timeout=0.05)))
        t.start()
        t.join()

        assert result == [False]
        # The timed-out waiter left the queue: release frees the lock.
        lock.release()
        assert lock.locked() is False

    def test_waiters_admitted_in_arrival_order(self):
        lock = FairLock()
        lock.acquire()
        order: list[int] = []

        def worker(n: int) -> None:
            with lock:
                order.append(n)

        threads = []
        for n in range(5):
            t = threading.Thread(target=worker, args=(n,))
            t.start()
            threads.append(t)
            # Wait until this thread is queued before starting the next.
            deadline = time.monotonic() + 2
            while len(lock._waiters) < n + 1 and time.monotonic() < deadline:
                time.sleep(0.001)

        lock.release()
        for t in threads:
            t.join()

        assert order == [0, 1, 2, 3, 4]

    def test_context_manager(self):
        lock = FairLock()
        with lock:
            assert lock.locked()
        assert not lock.locked()


class TestKeyedLocks:

    def test_same_key_mutually_exclusive(self):
        locks = KeyedLocks()
        inside = 0
        max_inside = 0
        guard = threading.Lock()

        def worker():
            nonlocal inside, max_inside
            with locks.locked("TierA"):
                with guard:
                    inside += 1
                    max_inside = max(max_inside, inside)
                time.sleep(0.001)
                with guard:
                    inside -= 1

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max_inside == 1

    def test_different_keys_independent(self):
        locks = KeyedLocks()
        with locks.locked("TierA"):
            entered = threading.Event()

            def other():
                with locks.locked("TierB", timeout=1):
                    entered.set()

            t = threading.Thread(target=other)
            t.start()
            t.join()
            assert entered.is_set()

    def test_timeout_raises(self, captured_logs):
        locks = KeyedLocks()
        errors = []

        def blocked():
            try:
                with locks.locked("TierA", timeout=0.05):
                    pass
            except LockTimeoutError as exc:
                errors.append(exc)

        with locks.locked("TierA"):
            t = threading.Thread(target=blocked)
            t.start()
            t.join()

        assert len(errors) == 1
        assert errors[0].code == "LOCK_TIMEOUT"
        assert errors[0].quota_key == "TierA"
        assert any(r["message"] == "quota_lock_timeout" for r in captured_logs())

    def test_released_after_exception(self):
        locks = KeyedLocks()
        with pytest.raises(ValueError):
            with locks.locked("TierA"):
                raise ValueError("boom")

        with locks.locked("TierA", timeout=0.1):
            pass
