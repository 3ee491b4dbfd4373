"""
URP Recipes -- declarative report definitions and the engine that runs them.

Architecture::

    models.py      Recipe, RecipeStep, ParamDef, ParamType, OutputSchema
    params.py      bind_parameters (validate, coerce, default)
    templates.py   {{name}} placeholder discovery and resolution
    registry.py    RecipeRegistry (fail-fast validation)
    context.py     RecipeEngine facade for custom steps, CancelToken
    executor.py    RecipeExecutor (cache, single-flight, cancellation)
    library/       built-in financial and operational recipes
"""

from urp.recipes.context import CancelToken, RecipeEngine
from urp.recipes.executor import ExecutionResult, RecipeExecutor
from urp.recipes.models import OutputSchema, ParamDef, ParamType, Recipe, RecipeStep
from urp.recipes.params import bind_parameters, get_help_text
from urp.recipes.registry import RecipeRegistry

__all__ = [
    "Recipe",
    "RecipeStep",
    "ParamDef",
    "ParamType",
    "OutputSchema",
    "RecipeRegistry",
    "RecipeExecutor",
    "ExecutionResult",
    "RecipeEngine",
    "CancelToken",
    "bind_parameters",
    "get_help_text",
]
