"""
Primitive catalog: the names a recipe step may use.

Each entry wraps a primitive in a step callable with the uniform
signature ``(store, org_id, **config)``. The wrappers do the small
amount of glue a declarative step needs: fetching relationships or
dynamic fields from the store when the config does not pass them in,
and accepting a date range written as a mapping or a year.

Registration checks config keys against ``Primitive.config_keys`` so a
typo fails when the recipe is registered, not when it runs.
"""

from __future__ import annotations

import datetime
import inspect
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from urp.core.identifiers import MATCH_ALL
from urp.core.models import DateRange, Entity, ensure_tenant
from urp.primitives.dynamic_join import JoinedRecord, dynamic_join
from urp.primitives.entities import resolve_entities
from urp.primitives.hierarchy import Direction, Hierarchy, build_hierarchy
from urp.primitives.rollup import Rollup, rollup_balances
from urp.primitives.transactions import FactLine, Measure, TransactionFacts, transaction_facts
from urp.store.protocol import RecordStore

_CONTEXT_ARGS = ("store", "org_id")


def coerce_date_range(value: Any) -> DateRange | None:
    """Accept ``None``, a ``DateRange``, a year, or ``{"start": ..., "end": ...}``."""
    if value is None or isinstance(value, DateRange):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return DateRange.fiscal_year(value)
    if isinstance(value, Mapping):
        bounds = []
        for key in ("start", "end"):
            bound = value.get(key)
            if isinstance(bound, str):
                bound = datetime.date.fromisoformat(bound)
            bounds.append(bound)
        return DateRange(bounds[0], bounds[1])
    raise ValueError(f"Cannot interpret {value!r} as a date range")


def _resolve_entities_step(
    store: RecordStore,
    org_id: str,
    entity_type: str,
    identifier_pattern: str = MATCH_ALL,
    include_dynamic_data: bool = False,
    include_deleted: bool = False,
) -> list[Entity]:
    return resolve_entities(store, org_id, entity_type, identifier_pattern, include_dynamic_data, include_deleted)


def _build_hierarchy_step(
    store: RecordStore,
    org_id: str,
    entities: Sequence[Entity],
    relationship_type: str,
    relationships: Sequence[Any] | None = None,
    max_depth: int | None = None,
    include_orphans: bool = True,
    direction: Direction = "parent_to_child",
) -> Hierarchy:
    if relationships is None:
        found = store.list_relationships(org_id, relationship_type)
        relationships = ensure_tenant(found, org_id, source="list_relationships")
    return build_hierarchy(entities, relationships, relationship_type, max_depth, include_orphans, direction)


def _transaction_facts_step(
    store: RecordStore,
    org_id: str,
    transaction_type: str,
    identifier_pattern: str = MATCH_ALL,
    group_by: str = "year",
    aggregations: Sequence[str] = ("sum",),
    include_lines: bool = False,
    date_range: Any = None,
    measure: Measure = "amount",
) -> TransactionFacts:
    return transaction_facts(
        store,
        org_id,
        transaction_type,
        identifier_pattern,
        group_by,
        tuple(aggregations),
        include_lines,
        coerce_date_range(date_range),
        measure,
    )


def _rollup_balances_step(
    store: RecordStore,
    org_id: str,
    hierarchy: Hierarchy,
    lines: TransactionFacts | Sequence[FactLine],
    period: Any = None,
) -> Rollup:
    if isinstance(lines, TransactionFacts):
        if not lines.lines_included:
            raise ValueError("rollup_balances needs transaction_facts built with include_lines=True")
        lines = lines.lines
    return rollup_balances(hierarchy, lines, coerce_date_range(period))


def _dynamic_join_step(
    store: RecordStore,
    org_id: str,
    entities: Sequence[Entity],
    field_names: Sequence[str],
    defaults: Mapping[str, Any] | None = None,
) -> list[JoinedRecord]:
    ids = [e.id for e in entities]
    found = store.list_dynamic_fields(org_id, ids, list(field_names)) if ids else []
    fields = ensure_tenant(found, org_id, source="list_dynamic_fields")
    return dynamic_join(entities, field_names, fields, defaults)


@dataclass(frozen=True)
class Primitive:
    """A primitive as seen by recipe steps."""

    name: str
    step: Callable[..., Any]
    description: str

    def config_keys(self) -> set[str]:
        return {p for p in inspect.signature(self.step).parameters if p not in _CONTEXT_ARGS}

    def required_keys(self) -> set[str]:
        return {
            name
            for name, p in inspect.signature(self.step).parameters.items()
            if name not in _CONTEXT_ARGS and p.default is inspect.Parameter.empty
        }

    def __call__(self, store: RecordStore, org_id: str, **config: Any) -> Any:
        return self.step(store, org_id, **config)


PRIMITIVES: dict[str, Primitive] = {
    p.name: p
    for p in (
        Primitive("resolve_entities", _resolve_entities_step, "Entities of one type matching an identifier glob"),
        Primitive("build_hierarchy", _build_hierarchy_step, "Forest of entities linked by one relationship type"),
        Primitive("transaction_facts", _transaction_facts_step, "Grouped aggregates over transaction lines"),
        Primitive("rollup_balances", _rollup_balances_step, "Per-node balances rolled up a hierarchy"),
        Primitive("dynamic_join", _dynamic_join_step, "Dynamic-field values joined onto entities"),
    )
}


def get_primitive(name: str) -> Primitive:
    if name not in PRIMITIVES:
        raise KeyError(f"Primitive '{name}' not found. Available: {', '.join(PRIMITIVES)}")
    return PRIMITIVES[name]
