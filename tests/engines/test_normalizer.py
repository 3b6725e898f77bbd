"""
Tests for the attribute normalizer.

Covers:
- Required-field gate (missing vs blank vs present)
- Enum coercion and rejection of unknown values
- Numeric validation (price, stock, weight)
- Validation errors take precedence over missing fields
- UPC-match derivation
"""

import pytest

from routing_engines.normalizer import (
    REQUIRED_FIELDS,
    derive_upc_matched,
    normalize_attributes,
)
from routing_kernel.domain.values import BrandTier, Condition, RoutingInput, WeightClass
from routing_kernel.exceptions import AttributeValidationError

COMPLETE = {"brand_tier": "B", "condition": "new", "weight_class": "light"}


class TestRequiredFields:
    """Missing mandatory fields are reported, not raised."""

    def test_complete_record_produces_input(self):
        result = normalize_attributes(attributes=COMPLETE)

        assert result.is_complete
        assert result.missing_fields == ()
        assert result.routing_input == RoutingInput(
            brand_tier=BrandTier.B,
            weight_class=WeightClass.LIGHT,
            condition=Condition.NEW,
        )

    def test_all_missing_in_declared_order(self):
        result = normalize_attributes(attributes={})

        assert not result.is_complete
        assert result.routing_input is None
        assert result.missing_fields == REQUIRED_FIELDS

    def test_blank_string_counts_as_missing(self):
        result = normalize_attributes(
            attributes={"brand_tier": "  ", "condition": "good", "weight_class": None}
        )

        assert result.missing_fields == ("brand_tier", "weight_class")

    def test_optional_fields_default(self):
        item = normalize_attributes(attributes=COMPLETE).routing_input

        assert item.stock_quantity == 1
        assert item.upc_matched is False
        assert item.retail_price_cents is None
        assert item.category is None
        assert item.brand is None
        assert item.weight_ounces is None


class TestCoercion:
    """Wire values are matched leniently on case and whitespace."""

    def test_lowercase_tier_accepted(self):
        item = normalize_attributes(
            attributes={**COMPLETE, "brand_tier": "a"}
        ).routing_input
        assert item.brand_tier == BrandTier.A

    def test_condition_and_weight_case_insensitive(self):
        item = normalize_attributes(
            attributes={"brand_tier": "C", "condition": " Like_New ", "weight_class": "HEAVY"}
        ).routing_input

        assert item.condition == Condition.LIKE_NEW
        assert item.weight_class == WeightClass.HEAVY

    def test_enum_members_pass_through(self):
        item = normalize_attributes(
            attributes={
                "brand_tier": BrandTier.A,
                "condition": Condition.PARTS_DAMAGED,
                "weight_class": WeightClass.MEDIUM,
            }
        ).routing_input

        assert item.condition == Condition.PARTS_DAMAGED

    def test_zero_price_means_no_price(self):
        item = normalize_attributes(
            attributes={**COMPLETE, "retail_price_cents": 0}
        ).routing_input
        assert item.retail_price_cents is None

    def test_text_fields_stripped(self):
        item = normalize_attributes(
            attributes={**COMPLETE, "brand": "  Acme ", "category": " kitchen "}
        ).routing_input

        assert item.brand == "Acme"
        assert item.category == "kitchen"

    def test_integer_weight_becomes_float(self):
        item = normalize_attributes(
            attributes={**COMPLETE, "weight_ounces": 12}
        ).routing_input
        assert item.weight_ounces == 12.0

    def test_unknown_keys_ignored(self):
        result = normalize_attributes(attributes={**COMPLETE, "title": "Mixer"})
        assert result.is_complete


class TestValidationErrors:
    """Malformed values raise AttributeValidationError."""

    def test_unknown_condition(self):
        with pytest.raises(AttributeValidationError) as exc_info:
            normalize_attributes(attributes={**COMPLETE, "condition": "mint"})

        err = exc_info.value
        assert err.code == "INVALID_ATTRIBUTE"
        assert err.field_errors[0]["field"] == "condition"
        assert err.field_errors[0]["value"] == "mint"
        assert "like_new" in err.field_errors[0]["expected"]

    def test_unknown_tier(self):
        with pytest.raises(AttributeValidationError):
            normalize_attributes(attributes={**COMPLETE, "brand_tier": "D"})

    def test_non_string_enum_value(self):
        with pytest.raises(AttributeValidationError):
            normalize_attributes(attributes={**COMPLETE, "weight_class": 3})

    @pytest.mark.parametrize("price", [-1, 19.99, "2000", True])
    def test_bad_price(self, price):
        with pytest.raises(AttributeValidationError) as exc_info:
            normalize_attributes(attributes={**COMPLETE, "retail_price_cents": price})
        assert exc_info.value.field_errors[0]["field"] == "retail_price_cents"

    @pytest.mark.parametrize("stock", [0, -3, 1.5])
    def test_bad_stock(self, stock):
        with pytest.raises(AttributeValidationError) as exc_info:
            normalize_attributes(attributes={**COMPLETE, "stock_quantity": stock})
        assert exc_info.value.field_errors[0]["field"] == "stock_quantity"

    def test_bad_upc_flag(self):
        with pytest.raises(AttributeValidationError):
            normalize_attributes(attributes={**COMPLETE, "upc_matched": "yes"})

    def test_negative_weight(self):
        with pytest.raises(AttributeValidationError):
            normalize_attributes(attributes={**COMPLETE, "weight_ounces": -2.0})

    def test_all_errors_collected(self):
        with pytest.raises(AttributeValidationError) as exc_info:
            normalize_attributes(
                attributes={"brand_tier": "Z", "condition": "mint", "weight_class": "huge"}
            )

        fields = [e["field"] for e in exc_info.value.field_errors]
        assert fields == ["brand_tier", "condition", "weight_class"]

    def test_validation_error_wins_over_missing(self):
        """A record that is both malformed and incomplete is rejected."""
        with pytest.raises(AttributeValidationError):
            normalize_attributes(attributes={"brand_tier": "Q"})

    def test_validation_failure_logged(self, captured_logs):
        with pytest.raises(AttributeValidationError):
            normalize_attributes(attributes={**COMPLETE, "condition": "mint"})

        logs = captured_logs()
        failed = [r for r in logs if r["message"] == "attribute_validation_failed"]
        assert failed and failed[0]["fields"] == ["condition"]


class TestDeriveUpcMatched:
    """An item is UPC-matched when a lookup produced a real title."""

    def test_upc_and_real_title(self):
        assert derive_upc_matched("012345678905", "Stand mixer") is True

    def test_unidentified_title(self):
        assert derive_upc_matched("012345678905", "Unidentified item 0123") is False

    def test_no_upc(self):
        assert derive_upc_matched(None, "Stand mixer") is False
        assert derive_upc_matched("   ", "Stand mixer") is False

    def test_no_title(self):
        assert derive_upc_matched("012345678905", None) is False
