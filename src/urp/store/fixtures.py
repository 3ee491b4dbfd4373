"""JSON fixture loading.

A fixture is one tenant's worth of records in a single JSON document::

    {
      "org_id": "acme",
      "entities": [
        {"id": "a-1000", "type": "account", "name": "Assets", "code": "1000",
         "identifier_code": "ACME.FINANCE.GL.ACCOUNT.ASSET.v1",
         "fields": {"account_type": {"type": "text", "value": "asset"}}}
      ],
      "relationships": [
        {"from": "a-1000", "to": "a-1100", "type": "PARENT_OF"}
      ],
      "transactions": [
        {"id": "je-1", "type": "journal_entry", "date": "2024-03-01",
         "lines": [{"entity_id": "a-1110", "amount": "500.00"}]}
      ]
    }

The payload is validated with pydantic before anything is written, so a
malformed fixture leaves the store untouched.
"""

from __future__ import annotations

import datetime
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from urp.core.logging import get_logger
from urp.core.models import DynamicField, Entity, FieldType, Relationship, Transaction, TransactionLine, field_value

logger = get_logger(__name__)


class FieldSpec(BaseModel):
    type: FieldType
    value: Any
    identifier_code: str = ""


class EntitySpec(BaseModel):
    id: str
    type: str
    name: str
    code: str
    identifier_code: str = ""
    status: str = "active"
    fields: dict[str, FieldSpec] = Field(default_factory=dict)


class RelationshipSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_entity_id: str = Field(alias="from")
    to_entity_id: str = Field(alias="to")
    relationship_type: str = Field(alias="type")
    identifier_code: str = ""


class LineSpec(BaseModel):
    entity_id: str
    amount: Decimal = Decimal("0")
    quantity: Decimal = Decimal("0")
    unit_amount: Decimal = Decimal("0")
    metadata: dict[str, Any] = Field(default_factory=dict)


class TransactionSpec(BaseModel):
    id: str
    type: str
    date: datetime.date
    identifier_code: str = ""
    lines: list[LineSpec] = Field(default_factory=list)


class FixturePayload(BaseModel):
    org_id: str
    entities: list[EntitySpec] = Field(default_factory=list)
    relationships: list[RelationshipSpec] = Field(default_factory=list)
    transactions: list[TransactionSpec] = Field(default_factory=list)


def load_fixture(store: Any, payload: dict[str, Any] | FixturePayload) -> FixturePayload:
    """
    Validate ``payload`` and write its records into ``store``.

    ``store`` must offer the write helpers of ``InMemoryRecordStore`` /
    ``SqlRecordStore``.

    Raises:
        pydantic.ValidationError: If the payload is malformed.
    """
    fixture = payload if isinstance(payload, FixturePayload) else FixturePayload.model_validate(payload)
    org_id = fixture.org_id

    for item in fixture.entities:
        store.add_entity(
            Entity(
                id=item.id,
                org_id=org_id,
                type=item.type,
                name=item.name,
                code=item.code,
                identifier_code=item.identifier_code,
                status=item.status,
            )
        )
        for name, f in item.fields.items():
            store.set_dynamic_field(
                DynamicField(
                    entity_id=item.id,
                    org_id=org_id,
                    field_name=name,
                    value=field_value(f.type, f.value),
                    identifier_code=f.identifier_code,
                )
            )

    for rel in fixture.relationships:
        store.add_relationship(
            Relationship(
                from_entity_id=rel.from_entity_id,
                to_entity_id=rel.to_entity_id,
                org_id=org_id,
                relationship_type=rel.relationship_type,
                identifier_code=rel.identifier_code,
            )
        )

    for txn in fixture.transactions:
        store.add_transaction(
            Transaction(
                id=txn.id,
                org_id=org_id,
                type=txn.type,
                date=txn.date,
                identifier_code=txn.identifier_code,
                lines=tuple(
                    TransactionLine(
                        entity_id=line.entity_id,
                        line_amount=line.amount,
                        quantity=line.quantity,
                        unit_amount=line.unit_amount,
                        line_number=index + 1,
                        metadata=line.metadata,
                    )
                    for index, line in enumerate(txn.lines)
                ),
            )
        )

    logger.info(
        "fixture_loaded",
        org_id=org_id,
        entities=len(fixture.entities),
        relationships=len(fixture.relationships),
        transactions=len(fixture.transactions),
    )
    return fixture


def load_fixture_file(store: Any, path: str | Path) -> FixturePayload:
    """Read a JSON fixture from disk and load it."""
    return load_fixture(store, json.loads(Path(path).read_text(encoding="utf-8")))
