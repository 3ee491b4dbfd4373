"""EntityResolver: fetch entities of one type for one tenant."""

from __future__ import annotations

from urp.core.identifiers import MATCH_ALL, matches_identifier
from urp.core.models import Entity, ensure_tenant
from urp.store.protocol import RecordStore


def resolve_entities(
    store: RecordStore,
    org_id: str,
    entity_type: str,
    identifier_pattern: str = MATCH_ALL,
    include_dynamic_data: bool = False,
    include_deleted: bool = False,
) -> list[Entity]:
    """
    Return entities of ``entity_type`` whose identifier code matches a glob.

    Order is the store's order. Soft-deleted entities are dropped unless
    ``include_deleted``. An empty match is an empty list, not an error.

    Example:
        accounts = resolve_entities(store, "acme", "account", "*.GL.ACCOUNT.*",
                                    include_dynamic_data=True)
    """
    found = store.list_entities(org_id, entity_type, identifier_pattern, include_dynamic_data)
    entities = ensure_tenant(found, org_id, source="list_entities")
    return [
        e
        for e in entities
        if e.type == entity_type
        and matches_identifier(e.identifier_code, identifier_pattern)
        and (include_deleted or not e.is_deleted)
    ]
