"""
Balance roll-up over a hierarchy.

    balance(n)        sum of in-period line amounts booked to n
    total_balance(n)  balance(n) + sum(total_balance(c) for c in children(n))
    has_activity(n)   total_balance(n) != 0

Computed with one explicit post-order pass over the arena. Inputs are
never mutated, so running twice over the same hierarchy and lines gives
identical balances. Lines booked to entities outside the hierarchy are
kept in ``Rollup.unassigned`` and reported as a diagnostic.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from urp.core.models import DateRange, Entity
from urp.primitives.diagnostics import Diagnostic, DiagnosticCode
from urp.primitives.hierarchy import Hierarchy
from urp.primitives.transactions import FactLine

ZERO = Decimal("0")


@dataclass(frozen=True)
class NodeBalance:
    entity_id: str
    balance: Decimal
    total_balance: Decimal
    line_count: int

    @property
    def has_activity(self) -> bool:
        return self.total_balance != ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "balance": self.balance,
            "total_balance": self.total_balance,
            "has_activity": self.has_activity,
            "line_count": self.line_count,
        }


@dataclass
class Rollup:
    balances: dict[str, NodeBalance] = field(default_factory=dict)
    unassigned: list[FactLine] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __getitem__(self, entity_id: str) -> NodeBalance:
        return self.balances[entity_id]

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.balances

    def get(self, entity_id: str) -> NodeBalance | None:
        return self.balances.get(entity_id)

    @property
    def unassigned_total(self) -> Decimal:
        return sum((line.line_amount for line in self.unassigned), ZERO)


def rollup_balances(
    hierarchy: Hierarchy,
    lines: Iterable[FactLine],
    period: DateRange | None = None,
    sign: Callable[[Entity], int] | None = None,
) -> Rollup:
    """
    Roll line amounts up the hierarchy.

    Args:
        hierarchy: Forest from ``build_hierarchy``
        lines: Fact lines; only those dated inside ``period`` count
        period: Inclusive date range, ``None`` for all lines
        sign: Optional multiplier per entity applied to its own balance
              (e.g. -1 for credit-normal accounts)
    """
    own: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    result = Rollup()
    unassigned_by_entity: dict[str, int] = {}

    for line in lines:
        if period is not None and not period.contains(line.date):
            continue
        if line.entity_id not in hierarchy:
            result.unassigned.append(line)
            unassigned_by_entity[line.entity_id] = unassigned_by_entity.get(line.entity_id, 0) + 1
            continue
        own[line.entity_id] = own.get(line.entity_id, ZERO) + line.line_amount
        counts[line.entity_id] = counts.get(line.entity_id, 0) + 1

    for entity_id, count in unassigned_by_entity.items():
        result.diagnostics.append(
            Diagnostic(
                DiagnosticCode.UNASSIGNED_LINES,
                entity_id,
                f"{count} line(s) booked to {entity_id!r}, which is not in the hierarchy",
            )
        )

    for node in hierarchy.post_order():
        balance = own.get(node.id, ZERO)
        if sign is not None:
            balance = balance * sign(node.entity)
        total = balance + sum((result.balances[c].total_balance for c in node.children), ZERO)
        result.balances[node.id] = NodeBalance(
            entity_id=node.id,
            balance=balance,
            total_balance=total,
            line_count=counts.get(node.id, 0),
        )

    return result
