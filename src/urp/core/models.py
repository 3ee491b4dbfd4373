"""
Record model: entities, dynamic fields, relationships and transactions.

Every record carries ``org_id``. The engine never merges records across
tenants; see ``ensure_tenant``.

DynamicField values are a discriminated union with one variant per
declared ``field_type``:

    ┌──────────────┬──────────────┬──────────────────────────┐
    │ field_type   │ variant      │ payload                  │
    ├──────────────┼──────────────┼──────────────────────────┤
    │ text         │ TextValue    │ str                      │
    │ number       │ NumberValue  │ Decimal                  │
    │ boolean      │ BooleanValue │ bool                     │
    │ json         │ JsonValue    │ any JSON-compatible data │
    └──────────────┴──────────────┴──────────────────────────┘

``field_value(field_type, raw)`` is the only constructor used by stores
and fixtures, so a value can never disagree with its declared type.

Tags:
    data-model, entities, relationships, transactions, urp
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

from urp.core.logging import get_logger

logger = get_logger(__name__)

DELETED_STATUS = "deleted"


class FieldType(str, Enum):
    """Declared type of a dynamic field."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


@dataclass(frozen=True)
class TextValue:
    text: str
    field_type: FieldType = field(default=FieldType.TEXT, init=False)

    @property
    def raw(self) -> str:
        return self.text


@dataclass(frozen=True)
class NumberValue:
    number: Decimal
    field_type: FieldType = field(default=FieldType.NUMBER, init=False)

    @property
    def raw(self) -> Decimal:
        return self.number


@dataclass(frozen=True)
class BooleanValue:
    flag: bool
    field_type: FieldType = field(default=FieldType.BOOLEAN, init=False)

    @property
    def raw(self) -> bool:
        return self.flag


@dataclass(frozen=True)
class JsonValue:
    data: Any
    field_type: FieldType = field(default=FieldType.JSON, init=False)

    @property
    def raw(self) -> Any:
        return self.data


FieldValue = TextValue | NumberValue | BooleanValue | JsonValue


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string to ``Decimal``; floats go through ``str``."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got boolean {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Expected a number, got {value!r}") from e


_BOOL_STRINGS = {"true": True, "1": True, "yes": True, "false": False, "0": False, "no": False}


def field_value(field_type: FieldType | str, raw: Any) -> FieldValue:
    """
    Build the variant matching ``field_type``.

    Raises:
        ValueError: If ``raw`` cannot represent ``field_type``.
    """
    kind = FieldType(field_type)
    if kind is FieldType.TEXT:
        if not isinstance(raw, str):
            raise ValueError(f"text field expects str, got {type(raw).__name__}")
        return TextValue(raw)
    if kind is FieldType.NUMBER:
        return NumberValue(to_decimal(raw))
    if kind is FieldType.BOOLEAN:
        if isinstance(raw, bool):
            return BooleanValue(raw)
        if isinstance(raw, str) and raw.strip().lower() in _BOOL_STRINGS:
            return BooleanValue(_BOOL_STRINGS[raw.strip().lower()])
        raise ValueError(f"boolean field expects bool, got {raw!r}")
    return JsonValue(raw)


@dataclass(frozen=True)
class DynamicField:
    """Sparse typed attribute of an Entity. ``field_name`` is unique per entity."""

    entity_id: str
    org_id: str
    field_name: str
    value: FieldValue
    identifier_code: str = ""

    @property
    def field_type(self) -> FieldType:
        return self.value.field_type


@dataclass(frozen=True)
class Entity:
    """Generic business noun: account, customer, product, service..."""

    id: str
    org_id: str
    type: str
    name: str
    code: str
    identifier_code: str = ""
    status: str = "active"
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
    dynamic_fields: tuple[DynamicField, ...] = ()

    @property
    def is_deleted(self) -> bool:
        return self.status == DELETED_STATUS

    def dynamic(self, field_name: str) -> FieldValue | None:
        """Return the attached dynamic field value, or ``None`` if absent."""
        for f in self.dynamic_fields:
            if f.field_name == field_name:
                return f.value
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "type": self.type,
            "name": self.name,
            "code": self.code,
            "identifier_code": self.identifier_code,
            "status": self.status,
        }


@dataclass(frozen=True)
class Relationship:
    """Directed typed edge between two entities. Duplicates are allowed."""

    from_entity_id: str
    to_entity_id: str
    org_id: str
    relationship_type: str
    identifier_code: str = ""


@dataclass(frozen=True)
class TransactionLine:
    entity_id: str
    line_amount: Decimal
    quantity: Decimal = Decimal("0")
    unit_amount: Decimal = Decimal("0")
    line_number: int = 0
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class Transaction:
    """Immutable fact record. Corrections are new transactions."""

    id: str
    org_id: str
    type: str
    date: datetime.date
    identifier_code: str = ""
    lines: tuple[TransactionLine, ...] = ()


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range. ``None`` on either side means unbounded."""

    start: datetime.date | None = None
    end: datetime.date | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    def contains(self, day: datetime.date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True

    @classmethod
    def fiscal_year(cls, year: int) -> DateRange:
        return cls(datetime.date(year, 1, 1), datetime.date(year, 12, 31))

    @classmethod
    def up_to(cls, day: datetime.date) -> DateRange:
        return cls(None, day)


def normalize_relationship_type(value: str) -> str:
    """Canonical form of a relationship type, applied by stores at write time."""
    return value.strip().upper()


T = TypeVar("T", Entity, DynamicField, Relationship, Transaction)


def ensure_tenant(records: Iterable[T], org_id: str, *, source: str) -> list[T]:
    """
    Drop records that do not belong to ``org_id``.

    Stores are expected to filter already; a leak here is a store defect,
    logged as a warning and never passed downstream.
    """
    kept: list[T] = []
    leaked = 0
    for record in records:
        if record.org_id == org_id:
            kept.append(record)
        else:
            leaked += 1
    if leaked:
        logger.warning("tenant_leak_dropped", source=source, org_id=org_id, dropped=leaked)
    return kept
