"""
RoutingService -- the single side-effecting entry point of inventory routing.

Responsibility:
    Sequence normalizer -> eligibility -> scoring -> resolver for one item,
    hold the quota key around the quota-sensitive section, reserve the
    chosen channel for quota-tracked tiers and persist the decision.

Architecture position:
    Kernel > Services -- imperative shell.  Calls the pure engines in
    ``routing_engines``; owns no state except injected collaborators.

Invariants enforced:
    - Required-field gate: an incomplete record yields a needs_review
      decision with no quota interaction.
    - Atomic snapshot-then-reserve: for a quota-tracked tier the snapshot
      the eligibility check consumed and the reservation it justified are
      taken inside one ``ledger.hold(key)`` block.
    - Item and ledger agree: the decision and the reservation are saved
      inside the hold, through the hold's session when it has one, so a
      failed ledger commit also discards the item write.  If saving
      raises, the hold rolls its counters back.
    - Re-routing releases the item's previous reservation before taking
      the snapshot, so an item is never counted twice.
    - Configuration is read once per decision from ``config_source``.

Failure modes:
    - AttributeValidationError: malformed attributes; nothing persisted.
    - ItemNotFoundError: unknown item id.
    - QuotaLedgerUnavailableError: ledger unreachable; fail closed for
      quota-tracked tiers.  Untracked tiers never touch the ledger.
    - LockTimeoutError: ``lock_timeout`` expired while waiting for a key.

Audit relevance:
    Every call runs inside ``LogContext.bind(correlation_id, item_id,
    actor_id)`` and emits ``routing_started`` plus ``routing_completed``
    (or ``routing_failed``) records; the engines add ROUTING_ENGINE_TRACE
    records under the same correlation id.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from contextlib import ExitStack
from typing import Any
from uuid import uuid4

from routing_config.schema import RoutingConfig
from routing_engines.eligibility import evaluate_eligibility
from routing_engines.normalizer import normalize_attributes
from routing_engines.resolver import resolve_decision
from routing_engines.scoring import score_channels
from routing_kernel.domain.clock import Clock, SystemClock
from routing_kernel.domain.decision import RoutingDecision
from routing_kernel.domain.values import (
    QuotaReservation,
    QuotaSnapshot,
    RoutingInput,
    quota_key_for,
)
from routing_kernel.logging_config import LogContext, get_logger
from routing_kernel.services.item_store import ItemStore
from routing_kernel.services.quota_ledger import QuotaHold, QuotaLedger

logger = get_logger("services.routing")


class RoutingService:
    """
    Routes inventory items to sales channels.

    Contract:
        ``route`` decides and persists; ``reroute`` edits attributes then
        routes; ``preview`` decides without locking, reserving or
        persisting.

    Usage:
        service = RoutingService(
            ledger=SqlQuotaLedger(session_factory),
            config_source=provider.current,
            item_store=SqlItemStore(session_factory),
        )
        decision = service.route(item_id)
    """

    def __init__(
        self,
        ledger: QuotaLedger,
        config_source: Callable[[], RoutingConfig],
        item_store: ItemStore,
        clock: Clock | None = None,
        lock_timeout: float | None = None,
    ):
        """
        Args:
            ledger: Quota counter store shared by every router of the process.
            config_source: Zero-argument callable returning the active config.
            item_store: Source of attributes and sink of decisions.
            clock: Clock for ``routed_at``. Defaults to SystemClock.
            lock_timeout: Seconds to wait for a quota key; None waits forever.
        """
        self._ledger = ledger
        self._config_source = config_source
        self._items = item_store
        self._clock = clock or SystemClock()
        self._lock_timeout = lock_timeout

    def route(
        self,
        item_id: str,
        attributes: Mapping[str, Any] | None = None,
        actor_id: str | None = None,
    ) -> RoutingDecision:
        """
        Decide and persist the channel assignment for ``item_id``.

        Args:
            item_id: Item to route; must exist in the item store.
            attributes: Raw attributes to decide on.  Loaded from the item
                store when omitted.
            actor_id: Staff member or system that triggered the routing;
                logged with every record of the call.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            item_id=str(item_id),
            actor_id=actor_id,
        ):
            logger.info(
                "routing_started",
                extra={"attribute_source": "store" if attributes is None else "caller"},
            )
            t0 = time.monotonic()
            try:
                decision = self._do_route(item_id, attributes)
            except Exception:
                logger.error(
                    "routing_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            logger.info(
                "routing_completed",
                extra={
                    "primary": decision.primary,
                    "secondary": decision.secondary,
                    "needs_review": decision.needs_review,
                    "missing_required_fields": list(decision.missing_required_fields),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return decision

    def reroute(
        self,
        item_id: str,
        changes: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> RoutingDecision:
        """
        Apply attribute ``changes`` to a stored item and route it again.

        The merged record is validated before anything is written, so a
        malformed edit leaves the item untouched.
        """
        with LogContext.bind(item_id=str(item_id), actor_id=actor_id):
            merged = {**self._items.load_attributes(item_id), **changes}
            normalize_attributes(attributes=merged)
            self._items.update_attributes(item_id, changes)
            logger.info("reroute_requested", extra={"changed_fields": sorted(changes)})
        return self.route(item_id, actor_id=actor_id)

    def preview(self, attributes: Mapping[str, Any]) -> RoutingDecision:
        """
        Decide for ``attributes`` without side effects.

        The key is held only for the snapshot read (on the SQL ledger that
        is a brief FOR UPDATE row lock, and the first read of a key creates
        its counter row).  It is released before deciding, so a later
        ``route`` of the same attributes may differ.
        """
        result = normalize_attributes(attributes=attributes)
        if not result.is_complete:
            return RoutingDecision.incomplete(result.missing_fields)

        routing_input = result.routing_input
        quota_key = quota_key_for(routing_input.brand_tier)
        snapshot = self._ledger.snapshot(quota_key) if quota_key else None
        return self._decide(routing_input, self._config_source(), snapshot)

    # ------------------------------------------------------------------

    @staticmethod
    def _decide(
        routing_input: RoutingInput,
        config: RoutingConfig,
        snapshot: QuotaSnapshot | None,
    ) -> RoutingDecision:
        disqualifications = evaluate_eligibility(
            routing_input=routing_input,
            config=config,
            quota_snapshot=snapshot,
        )
        scores = score_channels(routing_input=routing_input)
        return resolve_decision(scores=scores, disqualifications=disqualifications)

    def _do_route(self, item_id: str, attributes: Mapping[str, Any] | None) -> RoutingDecision:
        if attributes is None:
            attributes = self._items.load_attributes(item_id)

        result = normalize_attributes(attributes=attributes)
        if not result.is_complete:
            decision = RoutingDecision.incomplete(result.missing_fields)
            # No quota interaction: any reservation from an earlier decision stays.
            self._items.save_decision(
                item_id,
                decision,
                self._items.get_reservation(item_id),
                self._clock.now(),
            )
            return decision

        config = self._config_source()
        routing_input = result.routing_input
        quota_key = quota_key_for(routing_input.brand_tier)

        while True:
            previous = self._items.get_reservation(item_id)
            keys = sorted({k for k in (quota_key, previous.quota_key if previous else None) if k})

            with ExitStack() as stack, LogContext.bind(quota_key=quota_key):
                holds: dict[str, QuotaHold] = {}
                for key in keys:
                    holds[key] = stack.enter_context(
                        self._ledger.hold(key, timeout=self._lock_timeout)
                    )

                # A concurrent re-route of the same item may have replaced
                # the reservation while this call waited for the key.
                current = self._items.get_reservation(item_id)
                if current is not None and current.quota_key not in holds:
                    logger.info("reservation_changed_retrying", extra={"quota_key": current.quota_key})
                    continue

                if current is not None:
                    holds[current.quota_key].release(current.bucket)

                snapshot = holds[quota_key].snapshot() if quota_key else None
                decision = self._decide(routing_input, config, snapshot)

                reservation: QuotaReservation | None = None
                if quota_key and decision.primary is not None:
                    reservation = holds[quota_key].reserve(decision.primary)

                # Item write joins the reserving hold (or the releasing one) so both
                # commit together.
                anchor = holds.get(quota_key) or next(iter(holds.values()), None)
                self._items.save_decision(
                    item_id,
                    decision,
                    reservation,
                    self._clock.now(),
                    session=anchor.session if anchor else None,
                )
                return decision
