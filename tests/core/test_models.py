"""
Tests for urp.core.models.

Covers:
- field_value variants and type checks
- DateRange bounds and constructors
- Entity helpers
- ensure_tenant filtering
"""

import datetime
from decimal import Decimal

import pytest

from urp.core.models import (
    BooleanValue,
    DateRange,
    DynamicField,
    Entity,
    FieldType,
    JsonValue,
    NumberValue,
    TextValue,
    ensure_tenant,
    field_value,
    normalize_relationship_type,
    to_decimal,
)


class TestFieldValue:
    def test_variants(self):
        assert field_value("text", "asset") == TextValue("asset")
        assert field_value(FieldType.NUMBER, "2.50") == NumberValue(Decimal("2.50"))
        assert field_value("boolean", "yes") == BooleanValue(True)
        assert field_value("json", {"a": [1]}) == JsonValue({"a": [1]})

    def test_variant_reports_its_type(self):
        assert field_value("number", 3).field_type is FieldType.NUMBER
        assert field_value("number", 3).raw == Decimal("3")

    @pytest.mark.parametrize(
        "field_type, raw",
        [("text", 12), ("number", "abc"), ("number", True), ("boolean", "maybe")],
    )
    def test_type_mismatch(self, field_type, raw):
        with pytest.raises(ValueError):
            field_value(field_type, raw)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            field_value("blob", b"x")

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")


class TestDateRange:
    def test_contains_inclusive(self):
        r = DateRange(datetime.date(2024, 1, 1), datetime.date(2024, 1, 31))
        assert r.contains(datetime.date(2024, 1, 1))
        assert r.contains(datetime.date(2024, 1, 31))
        assert not r.contains(datetime.date(2024, 2, 1))

    def test_unbounded(self):
        assert DateRange().contains(datetime.date(1900, 1, 1))
        assert DateRange.up_to(datetime.date(2024, 1, 1)).contains(datetime.date(2000, 1, 1))

    def test_fiscal_year(self):
        r = DateRange.fiscal_year(2024)
        assert (r.start, r.end) == (datetime.date(2024, 1, 1), datetime.date(2024, 12, 31))

    def test_start_after_end(self):
        with pytest.raises(ValueError):
            DateRange(datetime.date(2024, 2, 1), datetime.date(2024, 1, 1))


class TestEntity:
    def test_dynamic_lookup(self):
        f = DynamicField("a1", "acme", "account_type", TextValue("asset"))
        e = Entity("a1", "acme", "account", "Cash", "1110", dynamic_fields=(f,))
        assert e.dynamic("account_type") == TextValue("asset")
        assert e.dynamic("missing") is None

    def test_is_deleted(self):
        assert Entity("a1", "acme", "account", "Cash", "1110", status="deleted").is_deleted
        assert not Entity("a1", "acme", "account", "Cash", "1110").is_deleted


class TestTenantHelpers:
    def test_ensure_tenant_drops_foreign_records(self):
        mine = Entity("a1", "acme", "account", "Cash", "1110")
        theirs = Entity("u1", "umbrella", "account", "Cash", "1000")
        assert ensure_tenant([mine, theirs], "acme", source="test") == [mine]

    def test_normalize_relationship_type(self):
        assert normalize_relationship_type(" parent_of ") == "PARENT_OF"
