"""
TransactionFacts: fetch transactions and aggregate their lines.

Lines are flattened into ``FactLine`` records (one per transaction line,
carrying the transaction date and type) and grouped by a time bucket,
the transaction type, the line's entity, or not at all.

    group_by   key example
    ────────   ───────────
    year       "2024"
    quarter    "2024-Q1"
    month      "2024-03"
    day        "2024-03-15"
    type       "journal_entry"
    entity     "acc-1110"
    none       "all"

Aggregations run over the chosen ``measure`` (``amount`` is
``line_amount``; ``quantity`` is ``quantity``). Sums stay ``Decimal``.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

from urp.core.identifiers import MATCH_ALL
from urp.core.models import DateRange, Transaction, ensure_tenant
from urp.store.protocol import RecordStore

GROUP_BY_KEYS = ("year", "quarter", "month", "day", "type", "entity", "none")
AGGREGATIONS = ("sum", "count", "avg", "min", "max")
MEASURES = ("amount", "quantity")

Measure = Literal["amount", "quantity"]


@dataclass(frozen=True)
class FactLine:
    """One transaction line with its transaction's date, type and code."""

    transaction_id: str
    transaction_type: str
    date: datetime.date
    entity_id: str
    line_amount: Decimal
    quantity: Decimal = Decimal("0")
    unit_amount: Decimal = Decimal("0")
    line_number: int = 0
    identifier_code: str = ""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def measure(self, measure: Measure = "amount") -> Decimal:
        return self.quantity if measure == "quantity" else self.line_amount


@dataclass
class FactGroup:
    key: str
    transaction_count: int = 0
    line_count: int = 0
    aggregates: dict[str, Decimal | int | None] = field(default_factory=dict)


@dataclass
class TransactionFacts:
    transaction_type: str
    group_by: str
    measure: str
    transaction_count: int
    groups: list[FactGroup] = field(default_factory=list)
    lines: list[FactLine] = field(default_factory=list)
    lines_included: bool = True

    def group(self, key: str) -> FactGroup | None:
        for g in self.groups:
            if g.key == key:
                return g
        return None

    def total(self, aggregation: str = "sum") -> Decimal:
        """Sum of one aggregate across groups (``sum`` or ``count``)."""
        return sum((Decimal(g.aggregates.get(aggregation) or 0) for g in self.groups), Decimal("0"))


def flatten_lines(transactions: Iterable[Transaction]) -> list[FactLine]:
    return [
        FactLine(
            transaction_id=t.id,
            transaction_type=t.type,
            date=t.date,
            entity_id=line.entity_id,
            line_amount=line.line_amount,
            quantity=line.quantity,
            unit_amount=line.unit_amount,
            line_number=line.line_number,
            identifier_code=t.identifier_code,
            metadata=line.metadata,
        )
        for t in transactions
        for line in t.lines
    ]


def index_by_entity(lines: Iterable[FactLine]) -> dict[str, list[FactLine]]:
    """Group lines by ``entity_id``, keeping line order inside each list."""
    index: dict[str, list[FactLine]] = {}
    for line in lines:
        index.setdefault(line.entity_id, []).append(line)
    return index


def _date_key(day: datetime.date, group_by: str) -> str:
    if group_by == "year":
        return f"{day.year:04d}"
    if group_by == "quarter":
        return f"{day.year:04d}-Q{(day.month - 1) // 3 + 1}"
    if group_by == "month":
        return f"{day.year:04d}-{day.month:02d}"
    return day.isoformat()


def _aggregate(values: list[Decimal], aggregations: Sequence[str]) -> dict[str, Decimal | int | None]:
    result: dict[str, Decimal | int | None] = {}
    total = sum(values, Decimal("0"))
    for name in aggregations:
        if name == "sum":
            result["sum"] = total
        elif name == "count":
            result["count"] = len(values)
        elif name == "avg":
            result["avg"] = total / len(values) if values else None
        elif name == "min":
            result["min"] = min(values) if values else None
        elif name == "max":
            result["max"] = max(values) if values else None
    return result


def transaction_facts(
    store: RecordStore,
    org_id: str,
    transaction_type: str,
    identifier_pattern: str = MATCH_ALL,
    group_by: str = "year",
    aggregations: Sequence[str] = ("sum",),
    include_lines: bool = False,
    date_range: DateRange | None = None,
    measure: Measure = "amount",
) -> TransactionFacts:
    """
    Aggregate the lines of matching transactions.

    Raises:
        ValueError: On an unknown ``group_by``, aggregation or measure.
    """
    if group_by not in GROUP_BY_KEYS:
        raise ValueError(f"Unknown group_by {group_by!r}; expected one of {', '.join(GROUP_BY_KEYS)}")
    unknown = [a for a in aggregations if a not in AGGREGATIONS]
    if unknown:
        raise ValueError(f"Unknown aggregations: {', '.join(unknown)}")
    if measure not in MEASURES:
        raise ValueError(f"Unknown measure {measure!r}")

    found = store.list_transactions(org_id, transaction_type, identifier_pattern, date_range)
    transactions = [
        t
        for t in ensure_tenant(found, org_id, source="list_transactions")
        if date_range is None or date_range.contains(t.date)
    ]

    buckets: dict[str, tuple[set[str], list[Decimal]]] = {}
    for t in transactions:
        if group_by in ("year", "quarter", "month", "day", "type", "none"):
            key = t.type if group_by == "type" else "all" if group_by == "none" else _date_key(t.date, group_by)
            txn_ids, values = buckets.setdefault(key, (set(), []))
            txn_ids.add(t.id)
            values.extend(line.line_amount if measure == "amount" else line.quantity for line in t.lines)
        else:
            for line in t.lines:
                txn_ids, values = buckets.setdefault(line.entity_id, (set(), []))
                txn_ids.add(t.id)
                values.append(line.line_amount if measure == "amount" else line.quantity)

    groups = [
        FactGroup(
            key=key,
            transaction_count=len(txn_ids),
            line_count=len(values),
            aggregates=_aggregate(values, aggregations),
        )
        for key, (txn_ids, values) in sorted(buckets.items())
    ]

    return TransactionFacts(
        transaction_type=transaction_type,
        group_by=group_by,
        measure=measure,
        transaction_count=len(transactions),
        groups=groups,
        lines=flatten_lines(transactions) if include_lines else [],
        lines_included=include_lines,
    )
