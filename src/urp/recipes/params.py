"""Parameter binding: validate, coerce and default caller parameters.

Binding happens before any store access. Every problem in one call is
collected and reported together in a single ``InvalidParameterError``.

    ┌─────────┬───────────────────────────────────────────────┐
    │ type    │ accepted input                                │
    ├─────────┼───────────────────────────────────────────────┤
    │ str     │ str, int, Decimal                             │
    │ int     │ int, integer-valued str                       │
    │ decimal │ int, float, Decimal, numeric str              │
    │ bool    │ bool, "true"/"false"/"1"/"0"/"yes"/"no"       │
    │ date    │ date, datetime (date part), ISO "YYYY-MM-DD"  │
    │ list    │ list/tuple, comma-separated str               │
    └─────────┴───────────────────────────────────────────────┘
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from urp.core.errors import InvalidParameterError
from urp.core.models import to_decimal
from urp.recipes.models import ParamDef, ParamType, Recipe

_TRUE = {"true", "1", "yes", "y", "on"}
_FALSE = {"false", "0", "no", "n", "off"}


def coerce_value(param: ParamDef, value: Any) -> Any:
    """
    Coerce ``value`` to the declared type of ``param``.

    Raises:
        ValueError: If the value cannot be represented, or is not one of
            ``param.choices``.
    """
    kind = ParamType(param.type)
    if kind is ParamType.STR:
        if isinstance(value, bool) or not isinstance(value, str | int | Decimal):
            raise ValueError(f"Expected str, got {type(value).__name__}")
        result: Any = str(value)
    elif kind is ParamType.INT:
        if isinstance(value, bool):
            raise ValueError("Expected int, got bool")
        if isinstance(value, int):
            result = value
        elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
            result = int(value.strip())
        else:
            raise ValueError(f"Expected int, got {value!r}")
    elif kind is ParamType.DECIMAL:
        result = to_decimal(value)
    elif kind is ParamType.BOOL:
        if isinstance(value, bool):
            result = value
        elif isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            result = value.strip().lower() in _TRUE
        else:
            raise ValueError(f"Expected bool, got {value!r}")
    elif kind is ParamType.DATE:
        if isinstance(value, datetime.datetime):
            result = value.date()
        elif isinstance(value, datetime.date):
            result = value
        elif isinstance(value, str):
            try:
                result = datetime.date.fromisoformat(value.strip())
            except ValueError as e:
                raise ValueError(f"Expected ISO date YYYY-MM-DD, got {value!r}") from e
        else:
            raise ValueError(f"Expected date, got {type(value).__name__}")
    else:
        if isinstance(value, str):
            result = [item.strip() for item in value.split(",") if item.strip()]
        elif isinstance(value, list | tuple):
            result = list(value)
        else:
            raise ValueError(f"Expected list or comma-separated str, got {type(value).__name__}")

    if param.choices is not None:
        items = result if kind is ParamType.LIST else [result]
        bad = [item for item in items if item not in param.choices]
        if bad:
            allowed = ", ".join(str(c) for c in param.choices)
            raise ValueError(f"{', '.join(str(b) for b in bad)} not in allowed values: {allowed}")
    return result


@dataclass
class ValidationResult:
    """Result of parameter binding."""

    bound: dict[str, Any] = field(default_factory=dict)
    missing_params: list[str] = field(default_factory=list)
    invalid_params: dict[str, str] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.missing_params) or bool(self.invalid_params)

    def get_error_message(self) -> str:
        messages = []

        if self.missing_params:
            messages.append(f"Missing required parameters: {', '.join(self.missing_params)}")

        for param, error in self.invalid_params.items():
            messages.append(f"Invalid parameter '{param}': {error}")

        return ". ".join(messages) if messages else "Validation passed"


def validate_parameters(recipe: Recipe, supplied: Mapping[str, Any]) -> ValidationResult:
    """Check ``supplied`` against the recipe's declared parameters without raising."""
    result = ValidationResult()
    declared = {p.name for p in recipe.parameters}

    for name in supplied:
        if name not in declared:
            result.invalid_params[name] = f"Unknown parameter for recipe '{recipe.name}'"

    for param in recipe.parameters:
        value = supplied.get(param.name)
        if value is None or (isinstance(value, str) and not value.strip() and param.type != ParamType.STR):
            if param.required:
                result.missing_params.append(param.name)
                continue
            value = param.default
        if value is None:
            result.bound[param.name] = None
            continue
        try:
            result.bound[param.name] = coerce_value(param, value)
        except ValueError as e:
            result.invalid_params[param.name] = str(e)

    return result


def bind_parameters(recipe: Recipe, supplied: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Bind caller parameters to a recipe.

    Every declared parameter appears in the result; absent optional ones
    take their default (or ``None``).

    Raises:
        InvalidParameterError: On missing required, unknown or ill-typed
            parameters.
    """
    result = validate_parameters(recipe, supplied or {})
    if result.has_errors:
        raise InvalidParameterError(
            result.get_error_message(),
            missing_params=result.missing_params,
            invalid_params=result.invalid_params,
        ).with_context(recipe=recipe.name)
    return result.bound


def get_help_text(recipe: Recipe) -> str:
    """Generate help text for a recipe's parameters."""
    lines = []

    if recipe.description:
        lines.append(recipe.description)
        lines.append("")

    required = [p for p in recipe.parameters if p.required]
    optional = [p for p in recipe.parameters if not p.required]

    if required:
        lines.append("Required Parameters:")
        for param in required:
            lines.append(f"  {param.name} ({ParamType(param.type).value}): {param.description}")
        lines.append("")

    if optional:
        lines.append("Optional Parameters:")
        for param in optional:
            default_str = f" [default: {param.default}]" if param.default is not None else ""
            lines.append(f"  {param.name} ({ParamType(param.type).value}): {param.description}{default_str}")
        lines.append("")

    return "\n".join(lines).rstrip()
