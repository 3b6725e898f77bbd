"""
Typed Exception Hierarchy for the Routing Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RoutingKernelError:

    RoutingKernelError (base)
    |
    +-- AttributeValidationError
    |
    +-- ItemError
    |   +-- ItemNotFoundError
    |
    +-- QuotaError
    |   +-- QuotaLedgerUnavailableError
    |   +-- QuotaReleaseError
    |
    +-- ConcurrencyError
        +-- LockTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|-----------------------------------------
Validation   | INVALID_ATTRIBUTE         | Unknown enum value or malformed number
-------------|---------------------------|-----------------------------------------
Item         | ITEM_NOT_FOUND            | Item ID unknown to the item store
-------------|---------------------------|-----------------------------------------
Quota        | QUOTA_LEDGER_UNAVAILABLE  | Backing store unreachable (fail closed)
             | QUOTA_RELEASE_UNDERFLOW   | Releasing a bucket that is already zero
-------------|---------------------------|-----------------------------------------
Concurrency  | LOCK_TIMEOUT              | Quota key lock not acquired in time

===============================================================================
HANDLING PATTERNS
===============================================================================

Missing required attributes are NOT an exception: the routing service
returns a decision with ``needs_review`` set and ``missing_required_fields``
populated.  Malformed attributes are:

    try:
        decision = routing_service.route(item_id)
    except AttributeValidationError as e:
        return {"error": e.code, "fields": e.field_errors}
    except QuotaLedgerUnavailableError as e:
        # Nothing was committed; safe to retry the same item.
        schedule_retry(item_id)

Categories map to caller behaviour:
    - AttributeValidationError -> "correct the record"
    - QuotaError / ConcurrencyError -> retry later
"""

from typing import Any


class RoutingKernelError(Exception):
    """
    Base exception for all routing kernel errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ROUTING_KERNEL_ERROR"


# Validation exceptions


class AttributeValidationError(RoutingKernelError):
    """
    One or more item attributes carry a value outside their domain.

    Distinct from a missing attribute: the record must be corrected
    before it can be routed.
    """

    code: str = "INVALID_ATTRIBUTE"

    def __init__(self, field_errors: list[dict[str, Any]]):
        self.field_errors = field_errors
        fields = ", ".join(e["field"] for e in field_errors)
        super().__init__(
            f"Invalid item attributes: {fields} "
            f"({len(field_errors)} error(s))"
        )


# Item exceptions


class ItemError(RoutingKernelError):
    """Base exception for item store errors."""

    code: str = "ITEM_ERROR"


class ItemNotFoundError(ItemError):
    """Item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


# Quota exceptions


class QuotaError(RoutingKernelError):
    """Base exception for quota ledger errors."""

    code: str = "QUOTA_ERROR"


class QuotaLedgerUnavailableError(QuotaError):
    """
    The quota ledger backing store could not be read or written.

    Routing for quota-tracked tiers fails closed: no decision is
    committed and the caller should retry.
    """

    code: str = "QUOTA_LEDGER_UNAVAILABLE"

    def __init__(self, quota_key: str, reason: str):
        self.quota_key = quota_key
        self.reason = reason
        super().__init__(f"Quota ledger unavailable for {quota_key}: {reason}")


class QuotaReleaseError(QuotaError):
    """A release would drive a quota counter below zero."""

    code: str = "QUOTA_RELEASE_UNDERFLOW"

    def __init__(self, quota_key: str, bucket: str):
        self.quota_key = quota_key
        self.bucket = bucket
        super().__init__(
            f"Cannot release {bucket} bucket of {quota_key}: counter is already zero"
        )


# Concurrency exceptions


class ConcurrencyError(RoutingKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """The per-key quota lock was not acquired within the timeout."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, quota_key: str, timeout: float):
        self.quota_key = quota_key
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for quota lock {quota_key}"
        )
