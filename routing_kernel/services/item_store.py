"""
ItemStore -- where routing attributes come from and decisions go to.

Responsibility:
    Load an item's raw routing attributes, apply attribute edits, and
    write a RoutingDecision plus the item's current quota reservation back
    onto the item.

Architecture position:
    Kernel > Services -- persistence seam of the RoutingService.
    ``SqlItemStore`` maps onto the ``inventory_items`` table;
    ``InMemoryItemStore`` keeps plain dicts for previews, demos and tests.

Invariants enforced:
    - save_decision writes every decision column and the reservation in a
      single transaction.  Given a quota hold's session on the same
      database, SqlItemStore writes inside that transaction instead, so
      the item and the quota counter commit or roll back together.
    - Only known attribute fields can be edited.

Failure modes:
    - ItemNotFoundError for an unknown item id.
    - AttributeValidationError for an edit naming an unknown field.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from routing_engines.normalizer import derive_upc_matched
from routing_kernel.domain.decision import RoutingDecision
from routing_kernel.domain.values import QuotaBucket, QuotaReservation
from routing_kernel.exceptions import AttributeValidationError, ItemNotFoundError
from routing_kernel.logging_config import get_logger
from routing_kernel.models.inventory_item import ROUTING_ATTRIBUTE_FIELDS, InventoryItem

logger = get_logger("services.item_store")

# Fields an attribute edit may touch.  title and upc feed derive_upc_matched.
EDITABLE_FIELDS: frozenset[str] = frozenset(ROUTING_ATTRIBUTE_FIELDS) | {"title", "upc"}


def _check_editable(changes: Mapping[str, Any]) -> None:
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise AttributeValidationError([
            {"field": name, "value": changes[name], "expected": "editable attribute"}
            for name in unknown
        ])


class ItemStore(ABC):
    """Persistence interface used by RoutingService."""

    @abstractmethod
    def load_attributes(self, item_id: str) -> dict[str, Any]:
        """Raw routing attributes of ``item_id``."""

    @abstractmethod
    def update_attributes(self, item_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Apply ``changes`` and return the merged routing attributes."""

    @abstractmethod
    def get_reservation(self, item_id: str) -> QuotaReservation | None:
        """The quota reservation the item currently holds, if any."""

    @abstractmethod
    def save_decision(
        self,
        item_id: str,
        decision: RoutingDecision,
        reservation: QuotaReservation | None,
        routed_at: datetime,
        session: Session | None = None,
    ) -> None:
        """
        Persist ``decision`` and ``reservation`` onto the item.

        Args:
            session: Open transaction to join (a quota hold's session).
                A store that can write through it must not commit it;
                the owner commits or rolls back.
        """

    @abstractmethod
    def get_decision(self, item_id: str) -> RoutingDecision | None:
        """The persisted decision, or None if the item was never routed."""


class SqlItemStore(ItemStore):
    """
    ItemStore over the ``inventory_items`` table.

    Every call runs in its own short session from ``session_factory`` and
    commits before returning, except ``save_decision`` handed a session
    bound to the same engine: that write is only flushed.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._bind = session_factory.kw.get("bind")

    def _can_join(self, session: Session | None) -> bool:
        return session is not None and self._bind is not None and session.get_bind() is self._bind

    @staticmethod
    def _get(session: Session, item_id: str | UUID) -> InventoryItem:
        try:
            key = item_id if isinstance(item_id, UUID) else UUID(str(item_id))
        except ValueError:
            raise ItemNotFoundError(str(item_id)) from None
        item = session.get(InventoryItem, key)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def create_item(self, title: str, upc: str | None = None, **attributes: Any) -> str:
        """Insert a new item and return its id as a string."""
        _check_editable(attributes)
        with self._session_factory() as session:
            item = InventoryItem(title=title, upc=upc, **attributes)
            session.add(item)
            session.commit()
            item_id = str(item.id)
        logger.info("inventory_item_created", extra={"item_id": item_id})
        return item_id

    def load_attributes(self, item_id: str) -> dict[str, Any]:
        with self._session_factory() as session:
            return self._get(session, item_id).routing_attributes()

    def update_attributes(self, item_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        _check_editable(changes)
        with self._session_factory() as session:
            item = self._get(session, item_id)
            for name, value in changes.items():
                setattr(item, name, value)
            session.commit()
            merged = item.routing_attributes()
        logger.info("item_attributes_updated", extra={"fields": sorted(changes)})
        return merged

    def get_reservation(self, item_id: str) -> QuotaReservation | None:
        with self._session_factory() as session:
            item = self._get(session, item_id)
            if item.quota_key is None:
                return None
            return QuotaReservation(
                quota_key=item.quota_key,
                bucket=QuotaBucket(item.quota_bucket),
            )

    def save_decision(
        self,
        item_id: str,
        decision: RoutingDecision,
        reservation: QuotaReservation | None,
        routed_at: datetime,
        session: Session | None = None,
    ) -> None:
        if self._can_join(session):
            self._write_decision(session, item_id, decision, reservation, routed_at)
            session.flush()
            return
        with self._session_factory() as own:
            self._write_decision(own, item_id, decision, reservation, routed_at)
            own.commit()

    def _write_decision(
        self,
        session: Session,
        item_id: str,
        decision: RoutingDecision,
        reservation: QuotaReservation | None,
        routed_at: datetime,
    ) -> None:
        item = self._get(session, item_id)
        item.apply_decision(decision, routed_at)
        item.quota_key = reservation.quota_key if reservation else None
        item.quota_bucket = reservation.bucket.value if reservation else None

    def get_decision(self, item_id: str) -> RoutingDecision | None:
        with self._session_factory() as session:
            return self._get(session, item_id).routing_decision()


class InMemoryItemStore(ItemStore):
    """
    Dict-backed ItemStore.

    Writes take effect immediately and ignore any session passed to
    ``save_decision``; pair it with InMemoryQuotaLedger, whose holds roll
    back when saving raises.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, dict[str, Any]] = {}

    def add(self, item_id: str, attributes: Mapping[str, Any] | None = None) -> None:
        attributes = dict(attributes or {})
        _check_editable(attributes)
        with self._lock:
            self._items[str(item_id)] = {
                "attributes": attributes,
                "decision": None,
                "reservation": None,
                "routed_at": None,
            }

    def _record(self, item_id: str) -> dict[str, Any]:
        record = self._items.get(str(item_id))
        if record is None:
            raise ItemNotFoundError(str(item_id))
        return record

    @staticmethod
    def _routing_attributes(stored: dict[str, Any]) -> dict[str, Any]:
        attrs = {name: copy.deepcopy(stored.get(name)) for name in ROUTING_ATTRIBUTE_FIELDS}
        if attrs["upc_matched"] is None:
            attrs["upc_matched"] = derive_upc_matched(stored.get("upc"), stored.get("title"))
        return attrs

    def load_attributes(self, item_id: str) -> dict[str, Any]:
        with self._lock:
            return self._routing_attributes(self._record(item_id)["attributes"])

    def update_attributes(self, item_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        _check_editable(changes)
        with self._lock:
            stored = self._record(item_id)["attributes"]
            stored.update(changes)
            return self._routing_attributes(stored)

    def get_reservation(self, item_id: str) -> QuotaReservation | None:
        with self._lock:
            return self._record(item_id)["reservation"]

    def save_decision(
        self,
        item_id: str,
        decision: RoutingDecision,
        reservation: QuotaReservation | None,
        routed_at: datetime,
        session: Session | None = None,
    ) -> None:
        with self._lock:
            record = self._record(item_id)
            record["decision"] = decision
            record["reservation"] = reservation
            record["routed_at"] = routed_at

    def get_decision(self, item_id: str) -> RoutingDecision | None:
        with self._lock:
            return self._record(item_id)["decision"]

    def routed_at(self, item_id: str) -> datetime | None:
        with self._lock:
            return self._record(item_id)["routed_at"]
