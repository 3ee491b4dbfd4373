"""Recipe definitions.

A recipe is data: a name, an identifier code, declared parameters and an
ordered list of steps. Steps either call a primitive by name with a
config mapping, or run a custom handler::

    Recipe(
        name="trial_balance",
        identifier_code="URP.REPORTING.GL.REPORT.TRIAL_BALANCE.v1",
        category="financial",
        parameters=[ParamDef("fiscalYear", ParamType.INT, required=True)],
        steps=[
            RecipeStep.call("resolve_entities", output_key="accounts", entity_type="account"),
            RecipeStep.call("build_hierarchy", output_key="tree",
                            entities="{{accounts}}", relationship_type="PARENT_OF"),
            RecipeStep.custom(render_trial_balance),
        ],
    )

Config values may contain ``{{name}}`` placeholders naming a declared
parameter, ``org_id``, or an earlier step's output key.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from urp.recipes.context import RecipeEngine

StepHandler = Callable[[Any, "RecipeEngine", Mapping[str, Any]], Any]


class ParamType(str, Enum):
    STR = "str"
    INT = "int"
    DECIMAL = "decimal"
    BOOL = "bool"
    DATE = "date"
    LIST = "list"


class OutputSchema(str, Enum):
    """Shape of a recipe's final output."""

    PRESENTATION = "presentation"  # PresentationPayload
    HIERARCHY = "hierarchy"  # nested node list
    RAW = "raw"  # whatever the last step returns, made JSON-safe


@dataclass
class ParamDef:
    """Definition of a recipe parameter.

    ``type`` is checked against ``ParamType`` when the recipe is
    registered, so a typo fails there rather than at first use.
    """

    name: str
    type: ParamType | str
    description: str = ""
    required: bool = False
    default: Any = None
    choices: tuple[Any, ...] | None = None


@dataclass
class RecipeStep:
    """One step: a primitive call or a custom handler."""

    primitive: str | None = None
    config: dict[str, Any] = field(default_factory=dict)
    output_key: str | None = None
    handler: StepHandler | None = None
    name: str | None = None

    @classmethod
    def call(cls, primitive: str, *, output_key: str | None = None, **config: Any) -> RecipeStep:
        return cls(primitive=primitive, config=config, output_key=output_key)

    @classmethod
    def custom(cls, handler: StepHandler, *, output_key: str | None = None, name: str | None = None) -> RecipeStep:
        return cls(handler=handler, output_key=output_key, name=name)

    @property
    def is_custom(self) -> bool:
        return self.handler is not None

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.handler is not None:
            return getattr(self.handler, "__name__", "custom")
        return self.primitive or "unknown"


@dataclass
class Recipe:
    name: str
    identifier_code: str
    category: str
    parameters: list[ParamDef] = field(default_factory=list)
    steps: list[RecipeStep] = field(default_factory=list)
    cache_ttl: int | None = None
    output_schema: OutputSchema | str = OutputSchema.PRESENTATION
    description: str = ""

    def param(self, name: str) -> ParamDef | None:
        for p in self.parameters:
            if p.name == name:
                return p
        return None

    def output_key(self, index: int) -> str:
        """Context key of step ``index``; ``step_<index>`` unless declared."""
        return self.steps[index].output_key or f"step_{index}"

    @property
    def required_params(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]
