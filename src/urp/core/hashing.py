"""
Deterministic hashing and canonical serialization.

The recipe cache is keyed by ``hash(recipe_name, org_id, bound_parameters)``.
For that key to be stable, parameters are rendered as canonical JSON
(sorted keys, dates and decimals as strings) before hashing.

Manifesto:
    - **Deterministic:** same inputs always produce the same key
    - **Order-dependent:** (a, b) != (b, a) for positional values
    - **Mapping-order independent:** {"a": 1, "b": 2} == {"b": 2, "a": 1}

Examples:
    >>> compute_cache_key("trial_balance", "org-1", {"fiscalYear": 2024}) == \\
    ...     compute_cache_key("trial_balance", "org-1", {"fiscalYear": 2024})
    True
    >>> compute_cache_key("trial_balance", "org-1", {}) != \\
    ...     compute_cache_key("trial_balance", "org-2", {})
    True

Tags:
    hashing, cache-key, canonical-json, urp
"""

from __future__ import annotations

import dataclasses
import datetime
import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute deterministic hash from values.

    Values are joined with ``|`` and hashed with SHA-256.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def to_plain(value: Any) -> Any:
    """
    Convert engine values into JSON-safe plain structures.

    Decimals become exact fixed-point strings (``"13800.00"``), dates ISO
    strings, enums their value, dataclasses and pydantic models dicts.
    Tuples and sets become lists (sets sorted, so output stays
    deterministic).
    """
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, datetime.datetime | datetime.date):
        return value.isoformat()
    if isinstance(value, Enum):
        return to_plain(value.value)
    if hasattr(value, "model_dump"):
        return to_plain(value.model_dump())
    if hasattr(value, "to_dict"):
        return to_plain(value.to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, set | frozenset):
        return sorted(to_plain(v) for v in value)
    if isinstance(value, list | tuple):
        return [to_plain(v) for v in value]
    return str(value)


def _canonical_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime.datetime | datetime.date):
        return value.isoformat()
    if isinstance(value, set | frozenset):
        return sorted(str(v) for v in value)
    if isinstance(value, Enum):
        return value.value
    return str(value)


def canonical_json(value: Any) -> str:
    """Render ``value`` as compact JSON with sorted keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=_canonical_default)


def compute_cache_key(recipe_name: str, org_id: str, params: Mapping[str, Any]) -> str:
    """
    Build the cache key for one recipe run.

    ``org_id`` always participates, so entries are never shared across
    tenants.
    """
    digest = compute_hash(recipe_name, org_id, canonical_json(dict(params)), length=40)
    return f"recipe:{recipe_name}:{digest}"
