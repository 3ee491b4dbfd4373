"""Record store protocol.

The engine reads through this protocol only. Every call is scoped to a
single ``org_id``; implementations must filter by it. Calls may block on
I/O; timeouts are the implementation's responsibility and must surface as
``StoreUnavailableError`` rather than hang.

Ordering: results are returned in a store-defined order that is stable
for identical calls. Primitives preserve that order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from urp.core.models import DateRange, DynamicField, Entity, Relationship, Transaction


@runtime_checkable
class RecordStore(Protocol):
    """Tenant-partitioned store of entities, dynamic fields, relationships and transactions."""

    def list_entities(
        self,
        org_id: str,
        entity_type: str,
        identifier_pattern: str | None = None,
        include_dynamic: bool = False,
    ) -> list[Entity]:
        """Entities of ``entity_type`` whose identifier code matches the glob pattern.

        With ``include_dynamic`` each entity carries its dynamic fields.
        """
        ...

    def list_relationships(self, org_id: str, relationship_type: str) -> list[Relationship]:
        """Relationships whose type equals ``relationship_type`` exactly."""
        ...

    def list_transactions(
        self,
        org_id: str,
        transaction_type: str,
        identifier_pattern: str | None = None,
        date_range: DateRange | None = None,
    ) -> list[Transaction]:
        """Transactions of a type, optionally filtered by identifier pattern and date."""
        ...

    def list_dynamic_fields(
        self,
        org_id: str,
        entity_ids: Sequence[str] | None = None,
        field_names: Sequence[str] | None = None,
    ) -> list[DynamicField]:
        """Dynamic fields, optionally restricted to some entities and field names."""
        ...
