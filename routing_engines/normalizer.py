"""
routing_engines.normalizer -- Raw item attributes to a validated RoutingInput.

Responsibility:
    Map a raw, possibly-partial item record into a ``RoutingInput``, or
    report which mandatory fields are missing.  Malformed values are a
    distinct failure: they raise ``AttributeValidationError`` so that the
    rest of the pipeline never sees an unknown tier, class or condition.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Rules:
    - Mandatory fields, checked in order: brand_tier, condition,
      weight_class.  ``None`` or a blank string counts as missing.
    - brand_tier is matched case-insensitively ("a" -> A); weight_class
      and condition are matched on their lowercase wire values.
    - retail_price_cents must be a non-negative integer; 0 means "no
      price" and normalizes to None.
    - stock_quantity defaults to 1 and must be >= 1 when given.
    - When a record is both malformed and incomplete, the validation
      error wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from routing_engines.tracer import traced_engine
from routing_kernel.domain.values import BrandTier, Condition, RoutingInput, WeightClass
from routing_kernel.exceptions import AttributeValidationError
from routing_kernel.logging_config import get_logger

logger = get_logger("engines.normalizer")

REQUIRED_FIELDS: tuple[str, ...] = ("brand_tier", "condition", "weight_class")

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "brand_tier": BrandTier,
    "condition": Condition,
    "weight_class": WeightClass,
}

UNIDENTIFIED_TITLE_PREFIX = "Unidentified"


@dataclass(frozen=True)
class NormalizationResult:
    """Either a complete RoutingInput or the list of missing fields."""

    routing_input: RoutingInput | None
    missing_fields: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.routing_input is not None


def derive_upc_matched(upc: str | None, title: str | None) -> bool:
    """An item counts as UPC-matched when the lookup produced a real title."""
    if not upc or not upc.strip() or not title:
        return False
    return not title.startswith(UNIDENTIFIED_TITLE_PREFIX)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_enum(enum_type: type[Enum], value: Any) -> Enum | None:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    text = text.upper() if enum_type is BrandTier else text.lower()
    try:
        return enum_type(text)
    except ValueError:
        return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _field_error(name: str, value: Any, expected: Any) -> dict[str, Any]:
    return {"field": name, "value": value, "expected": expected}


@traced_engine("normalizer", "1.0", fingerprint_fields=("attributes",))
def normalize_attributes(*, attributes: Mapping[str, Any]) -> NormalizationResult:
    """
    Normalize raw item attributes.

    Returns:
        NormalizationResult with a RoutingInput, or with missing_fields set.

    Raises:
        AttributeValidationError: if any present value is malformed.
    """
    errors: list[dict[str, Any]] = []
    missing: list[str] = []
    enums: dict[str, Enum] = {}

    for name in REQUIRED_FIELDS:
        raw = attributes.get(name)
        if _is_blank(raw):
            missing.append(name)
            continue
        enum_type = _ENUM_FIELDS[name]
        member = _coerce_enum(enum_type, raw)
        if member is None:
            errors.append(_field_error(name, raw, [m.value for m in enum_type]))
        else:
            enums[name] = member

    retail_price = attributes.get("retail_price_cents")
    if retail_price is not None and (not _is_int(retail_price) or retail_price < 0):
        errors.append(_field_error("retail_price_cents", retail_price, "non-negative integer"))
        retail_price = None

    stock_quantity = attributes.get("stock_quantity")
    if stock_quantity is None:
        stock_quantity = 1
    elif not _is_int(stock_quantity) or stock_quantity < 1:
        errors.append(_field_error("stock_quantity", stock_quantity, "integer >= 1"))

    upc_matched = attributes.get("upc_matched")
    if upc_matched is None:
        upc_matched = False
    elif not isinstance(upc_matched, bool):
        errors.append(_field_error("upc_matched", upc_matched, "boolean"))

    weight_ounces = attributes.get("weight_ounces")
    if weight_ounces is not None and (
        isinstance(weight_ounces, bool)
        or not isinstance(weight_ounces, (int, float))
        or weight_ounces < 0
    ):
        errors.append(_field_error("weight_ounces", weight_ounces, "non-negative number"))

    if errors:
        logger.warning(
            "attribute_validation_failed",
            extra={"fields": [e["field"] for e in errors]},
        )
        raise AttributeValidationError(errors)

    if missing:
        logger.info("required_fields_missing", extra={"missing_fields": missing})
        return NormalizationResult(routing_input=None, missing_fields=tuple(missing))

    category = attributes.get("category")
    brand = attributes.get("brand")
    routing_input = RoutingInput(
        brand_tier=enums["brand_tier"],
        weight_class=enums["weight_class"],
        condition=enums["condition"],
        category=None if _is_blank(category) else str(category).strip(),
        retail_price_cents=retail_price or None,
        stock_quantity=stock_quantity,
        upc_matched=upc_matched,
        brand=None if _is_blank(brand) else str(brand).strip(),
        weight_ounces=float(weight_ounces) if weight_ounces is not None else None,
    )
    return NormalizationResult(routing_input=routing_input)
