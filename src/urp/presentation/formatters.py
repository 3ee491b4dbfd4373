"""Adapters from primitive outputs to presentation pieces."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from decimal import Decimal
from typing import Any

from urp.core.models import Entity, to_decimal
from urp.primitives.diagnostics import Diagnostic, DiagnosticCode
from urp.primitives.dynamic_join import JoinedRecord
from urp.primitives.hierarchy import Hierarchy
from urp.primitives.rollup import Rollup
from urp.primitives.transactions import TransactionFacts
from urp.presentation.models import Alert, AlertSeverity, Breakdown, BreakdownRow, SummaryCard, TrendPoint, ValueFormat

ZERO = Decimal("0")
CENT = Decimal("0.01")

_DIAGNOSTIC_SEVERITY = {
    DiagnosticCode.CYCLE_EDGE_DROPPED: AlertSeverity.WARNING,
    DiagnosticCode.UNASSIGNED_LINES: AlertSeverity.WARNING,
    DiagnosticCode.MULTIPLE_PARENTS: AlertSeverity.WARNING,
    DiagnosticCode.ORPHAN_EXCLUDED: AlertSeverity.WARNING,
}


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT)


def card(
    title: str,
    value: Decimal | int | str,
    fmt: ValueFormat = ValueFormat.CURRENCY,
    subtitle: str | None = None,
) -> SummaryCard:
    if isinstance(value, Decimal) and fmt is ValueFormat.CURRENCY:
        value = money(value)
    return SummaryCard(title=title, value=value, format=fmt, subtitle=subtitle)


def hierarchy_rows(
    hierarchy: Hierarchy,
    rollup: Rollup,
    *,
    include: Callable[[Entity], bool] | None = None,
    include_zero: bool = True,
    sign: Callable[[Entity], int] | None = None,
) -> list[BreakdownRow]:
    """One row per node in pre-order, valued at its signed ``total_balance``."""
    rows: list[BreakdownRow] = []
    for node in hierarchy.walk():
        if include is not None and not include(node.entity):
            continue
        balance = rollup[node.id]
        if not include_zero and not balance.has_activity:
            continue
        factor = sign(node.entity) if sign is not None else 1
        rows.append(
            BreakdownRow(
                label=node.entity.name,
                code=node.entity.code,
                entity_id=node.id,
                depth=node.depth,
                value=money(balance.total_balance * factor),
            )
        )
    return rows


def with_shares(rows: list[BreakdownRow], total: Decimal) -> list[BreakdownRow]:
    """Copy of ``rows`` with ``share`` set to ``value / total`` (percent)."""
    if total == ZERO:
        return [r.model_copy(update={"share": None}) for r in rows]
    return [r.model_copy(update={"share": (r.value / total * 100).quantize(CENT)}) for r in rows]


def breakdown(title: str, rows: list[BreakdownRow], total: Decimal | None = None) -> Breakdown:
    return Breakdown(title=title, rows=rows, total=money(total) if total is not None else None)


def trend_from_facts(facts: TransactionFacts, aggregation: str = "sum") -> list[TrendPoint]:
    """One point per group, in group-key order."""
    return [
        TrendPoint(period=g.key, value=Decimal(g.aggregates.get(aggregation) or 0))
        for g in facts.groups
    ]


def diagnostic_alerts(diagnostics: Iterable[Diagnostic]) -> list[Alert]:
    """Data-quality alerts for the diagnostics a report user should see."""
    alerts = []
    for d in diagnostics:
        severity = _DIAGNOSTIC_SEVERITY.get(d.code)
        if severity is None:
            continue
        alerts.append(
            Alert(
                severity=severity,
                title=d.code.value.replace("_", " ").title(),
                message=d.message,
                entity_id=d.entity_id,
            )
        )
    return alerts


def invalid_value_alert(entity_id: str, label: str, field_name: str, value: Any, fallback: str) -> Alert:
    """WARNING alert for a record value a report could not use."""
    return Alert(
        severity=AlertSeverity.WARNING,
        title="Invalid Field Value",
        message=f"{label}: {field_name} value {value!r} is not usable; {fallback}",
        entity_id=entity_id,
    )


def numeric_field(record: JoinedRecord | None, field_name: str, alerts: list[Alert], fallback: str) -> Decimal | None:
    """
    Read a numeric dynamic field from a joined record.

    A missing field reads as ``None``. A value that is not a finite
    number also reads as ``None`` and appends an ``invalid_value_alert``
    to ``alerts``.
    """
    if record is None:
        return None
    raw = record.get(field_name)
    if raw is None:
        return None
    try:
        value = to_decimal(raw)
    except ValueError:
        value = None
    if value is not None and value.is_finite():
        return value
    alerts.append(invalid_value_alert(record.id, record.entity.name, field_name, raw, fallback))
    return None
