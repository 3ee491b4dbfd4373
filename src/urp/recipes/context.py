"""Per-run context handed to custom steps.

A custom step handler is called as ``handler(previous_output, engine,
bound_parameters)``. ``engine`` is a ``RecipeEngine``: the run's tenant,
the outputs of earlier steps, and the primitives already bound to the
store and ``org_id`` so a handler cannot read another tenant's records.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import Any

from urp.core.errors import RunCancelledError
from urp.core.identifiers import MATCH_ALL
from urp.core.models import DateRange, Entity, Relationship, ensure_tenant
from urp.primitives.dynamic_join import JoinedRecord, dynamic_join
from urp.primitives.entities import resolve_entities
from urp.primitives.hierarchy import Direction, Hierarchy, build_hierarchy
from urp.primitives.rollup import Rollup, rollup_balances
from urp.primitives.transactions import FactLine, Measure, TransactionFacts, transaction_facts
from urp.store.protocol import RecordStore


class CancelToken:
    """Cooperative cancellation flag checked at step boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, recipe_name: str, step_index: int | None = None) -> None:
        if self._event.is_set():
            raise RunCancelledError(recipe_name, step_index)


class RecipeEngine:
    """Facade over the store and primitives for one recipe run."""

    def __init__(
        self,
        store: RecordStore,
        org_id: str,
        recipe_name: str,
        outputs: dict[str, Any],
        cancel_token: CancelToken | None = None,
    ):
        self._store = store
        self._org_id = org_id
        self._recipe_name = recipe_name
        self._outputs = outputs
        self._cancel_token = cancel_token or CancelToken()

    @property
    def org_id(self) -> str:
        return self._org_id

    @property
    def recipe_name(self) -> str:
        return self._recipe_name

    @property
    def outputs(self) -> Mapping[str, Any]:
        """Read-only view of the run's context bag."""
        return MappingProxyType(self._outputs)

    def output(self, key: str) -> Any:
        """
        Output of an earlier step (or a bound parameter).

        Raises:
            KeyError: If nothing was stored under ``key``.
        """
        return self._outputs[key]

    def check_cancelled(self) -> None:
        """Raise ``RunCancelledError`` if the run was cancelled; for long handlers."""
        self._cancel_token.raise_if_cancelled(self._recipe_name)

    # ------------------------------------------------------------------ #
    # Primitives bound to this run's store and tenant
    # ------------------------------------------------------------------ #

    def resolve_entities(
        self,
        entity_type: str,
        identifier_pattern: str = MATCH_ALL,
        include_dynamic_data: bool = False,
        include_deleted: bool = False,
    ) -> list[Entity]:
        return resolve_entities(
            self._store, self._org_id, entity_type, identifier_pattern, include_dynamic_data, include_deleted
        )

    def relationships(self, relationship_type: str) -> list[Relationship]:
        found = self._store.list_relationships(self._org_id, relationship_type)
        return ensure_tenant(found, self._org_id, source="list_relationships")

    def build_hierarchy(
        self,
        entities: Sequence[Entity],
        relationship_type: str,
        max_depth: int | None = None,
        include_orphans: bool = True,
        direction: Direction = "parent_to_child",
    ) -> Hierarchy:
        return build_hierarchy(
            entities, self.relationships(relationship_type), relationship_type, max_depth, include_orphans, direction
        )

    def transaction_facts(
        self,
        transaction_type: str,
        identifier_pattern: str = MATCH_ALL,
        group_by: str = "year",
        aggregations: Sequence[str] = ("sum",),
        include_lines: bool = False,
        date_range: DateRange | None = None,
        measure: Measure = "amount",
    ) -> TransactionFacts:
        return transaction_facts(
            self._store,
            self._org_id,
            transaction_type,
            identifier_pattern,
            group_by,
            aggregations,
            include_lines,
            date_range,
            measure,
        )

    def rollup_balances(
        self,
        hierarchy: Hierarchy,
        lines: Sequence[FactLine],
        period: DateRange | None = None,
    ) -> Rollup:
        return rollup_balances(hierarchy, lines, period)

    def dynamic_join(
        self,
        entities: Sequence[Entity],
        field_names: Sequence[str],
        defaults: Mapping[str, Any] | None = None,
    ) -> list[JoinedRecord]:
        ids = [e.id for e in entities]
        found = self._store.list_dynamic_fields(self._org_id, ids, list(field_names)) if ids else []
        fields = ensure_tenant(found, self._org_id, source="list_dynamic_fields")
        return dynamic_join(entities, field_names, fields, defaults)
