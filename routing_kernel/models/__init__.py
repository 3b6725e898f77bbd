"""ORM models for the routing kernel."""

from routing_kernel.models.inventory_item import ROUTING_ATTRIBUTE_FIELDS, InventoryItem
from routing_kernel.models.quota_counter import QuotaCounter

__all__ = [
    "ROUTING_ATTRIBUTE_FIELDS",
    "InventoryItem",
    "QuotaCounter",
]
