"""
URP - Universal Report Pattern engine.

Declarative report recipes over a generic, tenant-scoped record model:

- urp.core: errors, record model, identifiers, cache, logging, settings
- urp.store: RecordStore protocol with in-memory and SQLAlchemy adapters
- urp.primitives: entity resolution, hierarchy, transaction facts,
  roll-up, dynamic join
- urp.recipes: recipe model, registry, executor, built-in recipes
- urp.presentation: the presentation contract returned by reports
"""

__version__ = "0.1.0"

from urp.core.errors import (
    InvalidParameterError,
    RecipeConfigError,
    RunCancelledError,
    StepFailedError,
    StoreUnavailableError,
    UnknownRecipeError,
    UrpError,
)
from urp.recipes import CancelToken, ExecutionResult, Recipe, RecipeExecutor, RecipeRegistry, RecipeStep
from urp.store import InMemoryRecordStore, RecordStore, SqlRecordStore

__all__ = [
    "__version__",
    "UrpError",
    "RecipeConfigError",
    "UnknownRecipeError",
    "InvalidParameterError",
    "StoreUnavailableError",
    "StepFailedError",
    "RunCancelledError",
    "Recipe",
    "RecipeStep",
    "RecipeRegistry",
    "RecipeExecutor",
    "ExecutionResult",
    "CancelToken",
    "RecordStore",
    "InMemoryRecordStore",
    "SqlRecordStore",
]
