"""In-memory record store.

A tenant-partitioned reference implementation of ``RecordStore`` used by
tests, the CLI fixture mode and embedded callers. Write helpers apply the
same normalization rules as ``SqlRecordStore``:

- relationship types are upper-cased at write time
- a dynamic field can only be attached to an existing entity
- hard-deleting an entity removes its dynamic fields and relationships
- soft-deleting marks ``status="deleted"`` and keeps everything

Read order: entities by ``(code, id)``, relationships in insertion order,
transactions by ``(date, id)``.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from urp.core.identifiers import matches_identifier
from urp.core.models import (
    DELETED_STATUS,
    DateRange,
    DynamicField,
    Entity,
    Relationship,
    Transaction,
    normalize_relationship_type,
)


@dataclass
class _Partition:
    entities: dict[str, Entity] = field(default_factory=dict)
    fields: dict[str, dict[str, DynamicField]] = field(default_factory=lambda: defaultdict(dict))
    relationships: list[Relationship] = field(default_factory=list)
    transactions: dict[str, Transaction] = field(default_factory=dict)


class InMemoryRecordStore:
    """Dictionary-backed ``RecordStore``, one partition per ``org_id``."""

    def __init__(self) -> None:
        self._partitions: dict[str, _Partition] = defaultdict(_Partition)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def add_entity(self, entity: Entity) -> Entity:
        """Insert or replace an entity (identity is ``id``)."""
        stored = dataclasses.replace(entity, dynamic_fields=())
        self._partitions[entity.org_id].entities[entity.id] = stored
        return stored

    def set_dynamic_field(self, dynamic_field: DynamicField) -> DynamicField:
        """Attach a dynamic field, replacing any field with the same name."""
        part = self._partitions[dynamic_field.org_id]
        if dynamic_field.entity_id not in part.entities:
            raise KeyError(
                f"Entity {dynamic_field.entity_id!r} not found in org {dynamic_field.org_id!r}"
            )
        part.fields[dynamic_field.entity_id][dynamic_field.field_name] = dynamic_field
        return dynamic_field

    def add_relationship(self, relationship: Relationship) -> Relationship:
        stored = dataclasses.replace(
            relationship,
            relationship_type=normalize_relationship_type(relationship.relationship_type),
        )
        self._partitions[relationship.org_id].relationships.append(stored)
        return stored

    def add_transaction(self, transaction: Transaction) -> Transaction:
        part = self._partitions[transaction.org_id]
        if transaction.id in part.transactions:
            raise ValueError(f"Transaction {transaction.id!r} already exists; transactions are immutable")
        part.transactions[transaction.id] = transaction
        return transaction

    def delete_entity(self, org_id: str, entity_id: str, *, hard: bool = False) -> None:
        """Soft-delete (status) or hard-delete (cascade fields + edges) an entity."""
        part = self._partitions[org_id]
        entity = part.entities.get(entity_id)
        if entity is None:
            return
        if not hard:
            part.entities[entity_id] = dataclasses.replace(entity, status=DELETED_STATUS)
            return
        del part.entities[entity_id]
        part.fields.pop(entity_id, None)
        part.relationships = [
            r for r in part.relationships if entity_id not in (r.from_entity_id, r.to_entity_id)
        ]

    # ------------------------------------------------------------------ #
    # Reads (RecordStore protocol)
    # ------------------------------------------------------------------ #

    def list_entities(
        self,
        org_id: str,
        entity_type: str,
        identifier_pattern: str | None = None,
        include_dynamic: bool = False,
    ) -> list[Entity]:
        part = self._partitions.get(org_id)
        if part is None:
            return []
        matched = [
            e
            for e in part.entities.values()
            if e.type == entity_type and matches_identifier(e.identifier_code, identifier_pattern)
        ]
        matched.sort(key=lambda e: (e.code, e.id))
        if include_dynamic:
            matched = [
                dataclasses.replace(e, dynamic_fields=tuple(part.fields.get(e.id, {}).values()))
                for e in matched
            ]
        return matched

    def list_relationships(self, org_id: str, relationship_type: str) -> list[Relationship]:
        part = self._partitions.get(org_id)
        if part is None:
            return []
        return [r for r in part.relationships if r.relationship_type == relationship_type]

    def list_transactions(
        self,
        org_id: str,
        transaction_type: str,
        identifier_pattern: str | None = None,
        date_range: DateRange | None = None,
    ) -> list[Transaction]:
        part = self._partitions.get(org_id)
        if part is None:
            return []
        matched = [
            t
            for t in part.transactions.values()
            if t.type == transaction_type
            and matches_identifier(t.identifier_code, identifier_pattern)
            and (date_range is None or date_range.contains(t.date))
        ]
        matched.sort(key=lambda t: (t.date, t.id))
        return matched

    def list_dynamic_fields(
        self,
        org_id: str,
        entity_ids: Sequence[str] | None = None,
        field_names: Sequence[str] | None = None,
    ) -> list[DynamicField]:
        part = self._partitions.get(org_id)
        if part is None:
            return []
        wanted_ids = set(entity_ids) if entity_ids is not None else None
        wanted_names = set(field_names) if field_names is not None else None
        result: list[DynamicField] = []
        for entity_id, by_name in part.fields.items():
            if wanted_ids is not None and entity_id not in wanted_ids:
                continue
            for name, f in by_name.items():
                if wanted_names is None or name in wanted_names:
                    result.append(f)
        return result
