"""
SqlQuotaLedger -- quota counters in the database via locked counter rows.

Responsibility:
    Durable QuotaLedger backend.  Each fairness key is one row of the
    ``quota_counters`` table.  A hold opens its own session, locks the row
    with ``SELECT ... FOR UPDATE`` and commits when the block exits.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Linearizability per key across processes: the row lock serializes
      holders on PostgreSQL.  Within a process the per-key FairLock is
      taken first, so threads queue in FIFO order instead of piling onto
      the database lock (and SQLite, which ignores FOR UPDATE, is still
      serialized).
    - Transactional: a hold's mutations become visible only on commit;
      any exception inside the block rolls them back.
    - The counter row is created lazily, committed on its own; a
      concurrent-creation race is resolved by catching IntegrityError and
      re-reading the row.
    - The hold exposes its session.  An item store writing the decision
      through it makes item row and counter row one commit: if the
      commit fails, neither is saved.
    - On backends with row locks every increment is flushed immediately,
      so write errors surface inside the hold.  SQLite locks the whole
      database for writing, so there the counter UPDATE waits for the
      next flush (the joined item write, or the commit).

Failure modes:
    - QuotaLedgerUnavailableError: any SQLAlchemy error while locking,
      reading, flushing or committing.  Nothing is committed; routing for
      quota-tracked tiers fails closed and the caller retries.
    - QuotaReleaseError / LockTimeoutError as for every QuotaLedger.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from routing_kernel.domain.values import QuotaBucket, QuotaSnapshot
from routing_kernel.exceptions import QuotaLedgerUnavailableError
from routing_kernel.logging_config import get_logger
from routing_kernel.models.quota_counter import QuotaCounter
from routing_kernel.services.key_locks import KeyedLocks
from routing_kernel.services.quota_ledger import QuotaHold, QuotaLedger

logger = get_logger("services.sql_quota_ledger")


def _has_row_locks(session: Session) -> bool:
    return session.get_bind().dialect.name != "sqlite"


class _SqlQuotaHold(QuotaHold):
    def __init__(
        self,
        quota_key: str,
        session: Session,
        counter: QuotaCounter,
        flush_each_write: bool,
    ):
        super().__init__(quota_key)
        self._session = session
        self._counter = counter
        self._flush_each_write = flush_each_write

    @property
    def session(self) -> Session:
        return self._session

    def _do_snapshot(self) -> QuotaSnapshot:
        return QuotaSnapshot(
            quota_key=self.quota_key,
            limited_channel_count=self._counter.limited_channel_count,
            other_channels_count=self._counter.other_channels_count,
        )

    def _apply(self, bucket: QuotaBucket, delta: int) -> None:
        if bucket == QuotaBucket.LIMITED:
            self._counter.limited_channel_count += delta
        else:
            self._counter.other_channels_count += delta
        if not self._flush_each_write:
            return
        try:
            self._session.flush()
        except SQLAlchemyError as exc:
            raise QuotaLedgerUnavailableError(self.quota_key, str(exc)) from exc

    def _do_increment(self, bucket: QuotaBucket) -> None:
        self._apply(bucket, 1)

    def _do_decrement(self, bucket: QuotaBucket) -> None:
        self._apply(bucket, -1)


class SqlQuotaLedger(QuotaLedger):
    """
    Database-backed quota ledger.

    Contract:
        ``hold(key)`` yields a QuotaHold bound to a locked counter row and
        commits on clean exit.  Callers may write through
        ``hold.session`` to join that commit; nothing else touches it.

    Usage:
        ledger = SqlQuotaLedger(get_session_factory())
        with ledger.hold("TierA") as hold:
            snapshot = hold.snapshot()
            ...
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._locks = KeyedLocks()

    @staticmethod
    def _locked_select(key: str):
        return (
            select(QuotaCounter)
            .where(QuotaCounter.quota_key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def _lock_counter(self, session: Session, key: str) -> QuotaCounter:
        counter = session.execute(self._locked_select(key)).scalar_one_or_none()
        if counter is not None:
            return counter

        # First use of this key: create the zero row in its own short
        # transaction so the hold never keeps an uncommitted insert open.
        session.add(QuotaCounter(quota_key=key, limited_channel_count=0, other_channels_count=0))
        try:
            session.commit()
        except IntegrityError:
            # Another process created the row first.
            logger.debug("quota_counter_race_retry", extra={"quota_key": key})
            session.rollback()
        else:
            logger.info("quota_counter_created", extra={"quota_key": key})
        return session.execute(self._locked_select(key)).scalar_one()

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[QuotaHold]:
        with self._locks.locked(key, timeout):
            session = self._session_factory()
            try:
                try:
                    counter = self._lock_counter(session, key)
                except SQLAlchemyError as exc:
                    logger.error(
                        "quota_ledger_unavailable",
                        extra={"quota_key": key, "stage": "lock"},
                        exc_info=True,
                    )
                    raise QuotaLedgerUnavailableError(key, str(exc)) from exc

                hold = _SqlQuotaHold(
                    key, session, counter, flush_each_write=_has_row_locks(session)
                )
                try:
                    yield hold
                finally:
                    hold.close()

                try:
                    session.commit()
                except SQLAlchemyError as exc:
                    logger.error(
                        "quota_ledger_unavailable",
                        extra={"quota_key": key, "stage": "commit"},
                        exc_info=True,
                    )
                    raise QuotaLedgerUnavailableError(key, str(exc)) from exc
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def seed(self, key: str, limited_channel_count: int = 0, other_channels_count: int = 0) -> None:
        """
        Set a key's counters directly.

        WARNING: For tests, demos and data migration only.
        """
        if limited_channel_count < 0 or other_channels_count < 0:
            raise ValueError("Quota counters must be non-negative")
        with self.hold(key) as hold:
            hold._counter.limited_channel_count = limited_channel_count
            hold._counter.other_channels_count = other_channels_count
