"""DynamicJoin: attach named dynamic-field values to entities."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from urp.core.models import DynamicField, Entity


@dataclass(frozen=True)
class JoinedRecord:
    """An entity plus the raw values of the requested dynamic fields.

    ``values`` holds only fields that exist (or were given a default);
    ``missing`` names the requested fields the entity does not have.
    """

    entity: Entity
    values: dict[str, Any] = field(default_factory=dict)
    missing: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.entity.id

    def __getitem__(self, field_name: str) -> Any:
        return self.values[field_name]

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.values.get(field_name, default)

    def has(self, field_name: str) -> bool:
        return field_name in self.values


def dynamic_join(
    entities: Sequence[Entity],
    field_names: Sequence[str],
    fields: Iterable[DynamicField] | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> list[JoinedRecord]:
    """
    Join ``field_names`` onto each entity, in entity order.

    Values come from ``fields`` when given (fields of entities not in
    ``entities`` are ignored), otherwise from each entity's attached
    ``dynamic_fields``. A missing field stays absent unless ``defaults``
    names a value for it.
    """
    wanted = list(field_names)
    defaults = defaults or {}
    by_entity: dict[str, dict[str, Any]] = {}

    if fields is not None:
        ids = {e.id for e in entities}
        for f in fields:
            if f.entity_id in ids and f.field_name in wanted:
                by_entity.setdefault(f.entity_id, {})[f.field_name] = f.value.raw
    else:
        for e in entities:
            for f in e.dynamic_fields:
                if f.field_name in wanted:
                    by_entity.setdefault(e.id, {})[f.field_name] = f.value.raw

    joined: list[JoinedRecord] = []
    for e in entities:
        found = by_entity.get(e.id, {})
        values: dict[str, Any] = {}
        missing: list[str] = []
        for name in wanted:
            if name in found:
                values[name] = found[name]
                continue
            missing.append(name)
            if name in defaults:
                values[name] = defaults[name]
        joined.append(JoinedRecord(entity=e, values=values, missing=tuple(missing)))
    return joined
