"""Services for the routing kernel (side-effecting shell)."""

from routing_kernel.services.item_store import InMemoryItemStore, ItemStore, SqlItemStore
from routing_kernel.services.key_locks import FairLock, KeyedLocks
from routing_kernel.services.quota_ledger import InMemoryQuotaLedger, QuotaHold, QuotaLedger
from routing_kernel.services.routing_service import RoutingService
from routing_kernel.services.sql_quota_ledger import SqlQuotaLedger

__all__ = [
    "FairLock",
    "InMemoryItemStore",
    "InMemoryQuotaLedger",
    "ItemStore",
    "KeyedLocks",
    "QuotaHold",
    "QuotaLedger",
    "RoutingService",
    "SqlItemStore",
    "SqlQuotaLedger",
]
