"""
Tests for urp.core.hashing.

Covers:
- compute_hash determinism and length
- compute_cache_key: mapping-order independence, tenant separation
- to_plain conversion of engine values
"""

import datetime
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from urp.core.hashing import canonical_json, compute_cache_key, compute_hash, to_plain


class TestComputeHash:
    def test_deterministic(self):
        assert compute_hash("a", 1) == compute_hash("a", 1)

    def test_order_dependent(self):
        assert compute_hash("a", "b") != compute_hash("b", "a")

    def test_length(self):
        assert len(compute_hash("x", length=16)) == 16


class TestCacheKey:
    def test_parameter_order_does_not_matter(self):
        a = compute_cache_key("trial_balance", "acme", {"fiscalYear": 2024, "includeZero": False})
        b = compute_cache_key("trial_balance", "acme", {"includeZero": False, "fiscalYear": 2024})
        assert a == b

    def test_org_is_part_of_key(self):
        a = compute_cache_key("trial_balance", "acme", {"fiscalYear": 2024})
        b = compute_cache_key("trial_balance", "umbrella", {"fiscalYear": 2024})
        assert a != b

    def test_parameter_values_change_key(self):
        a = compute_cache_key("trial_balance", "acme", {"fiscalYear": 2024})
        b = compute_cache_key("trial_balance", "acme", {"fiscalYear": 2023})
        assert a != b

    def test_key_prefix(self):
        assert compute_cache_key("balance_sheet", "acme", {}).startswith("recipe:balance_sheet:")

    def test_dates_and_decimals_are_canonical(self):
        rendered = canonical_json({"d": datetime.date(2024, 3, 1), "n": Decimal("1.50")})
        assert rendered == '{"d":"2024-03-01","n":"1.50"}'


class Color(Enum):
    RED = "red"


@dataclass
class Point:
    x: Decimal
    when: datetime.date


class Card(BaseModel):
    title: str
    value: Decimal


class TestToPlain:
    def test_scalars(self):
        assert to_plain(Decimal("2.50")) == "2.50"
        assert to_plain(datetime.date(2024, 1, 2)) == "2024-01-02"
        assert to_plain(Color.RED) == "red"
        assert to_plain(None) is None
        assert to_plain(True) is True

    def test_decimal_keeps_every_digit(self):
        assert to_plain(Decimal("12345678901234.5678")) == "12345678901234.5678"
        assert to_plain(Decimal("1E+3")) == "1000"
        assert to_plain(Decimal("-0.10")) == "-0.10"

    def test_containers(self):
        assert to_plain((1, Decimal("2"))) == [1, "2"]
        assert to_plain({"b", "a"}) == ["a", "b"]
        assert to_plain({1: Decimal("1")}) == {"1": "1"}

    def test_dataclass_and_model(self):
        assert to_plain(Point(Decimal("1.5"), datetime.date(2024, 1, 1))) == {"x": "1.5", "when": "2024-01-01"}
        assert to_plain(Card(title="Revenue", value=Decimal("10.00"))) == {"title": "Revenue", "value": "10.00"}
