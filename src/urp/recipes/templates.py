"""``{{name}}`` placeholders in step configs.

A string that is exactly one placeholder resolves to the referenced
object itself (an entity list, a hierarchy, a date). A placeholder
embedded in longer text is substituted with ``str(value)``. Mappings,
lists and tuples are resolved element by element.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def find_placeholders(value: Any) -> list[str]:
    """Names referenced anywhere in ``value``, in first-seen order."""
    found: list[str] = []
    stack = [value]
    while stack:
        current = stack.pop()
        if isinstance(current, str):
            found.extend(n for n in PLACEHOLDER_RE.findall(current) if n not in found)
        elif isinstance(current, Mapping):
            stack.extend(reversed(list(current.values())))
        elif isinstance(current, list | tuple):
            stack.extend(reversed(current))
    return found


def has_placeholder(value: Any) -> bool:
    return isinstance(value, str) and PLACEHOLDER_RE.search(value) is not None


def resolve_placeholders(value: Any, bag: Mapping[str, Any]) -> Any:
    """
    Replace placeholders in ``value`` with entries of ``bag``.

    Raises:
        KeyError: If a placeholder names something not in ``bag``.
    """
    if isinstance(value, str):
        whole = PLACEHOLDER_RE.fullmatch(value.strip())
        if whole is not None:
            return bag[whole.group(1)]
        return PLACEHOLDER_RE.sub(lambda m: str(bag[m.group(1)]), value)
    if isinstance(value, Mapping):
        return {k: resolve_placeholders(v, bag) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_placeholders(v, bag) for v in value]
    if isinstance(value, tuple):
        return tuple(resolve_placeholders(v, bag) for v in value)
    return value
