"""
Structured error types for the URP engine.

Every failure the engine reports is a typed ``UrpError`` carrying a
category, a retry flag, structured context and the chained cause. Callers
(the HTTP handler layer, the CLI) branch on the type; logs use ``to_dict()``.

Manifesto:
    - **Typed over stringly:** callers never parse exception messages
    - **Fail at the right time:** configuration errors surface at
      registration, input errors before any store access, store errors
      with the step that hit them
    - **Chain, don't swallow:** the underlying exception rides along as
      ``cause``

Architecture:
    ::

        UrpError (category, retryable, context, cause)
        ├── ConfigError                 (CONFIG, fatal at startup)
        │   ├── RecipeConfigError
        │   │   └── DuplicateRecipeError
        │   └── IdentifierError
        ├── InputError                  (VALIDATION, never retried)
        │   ├── UnknownRecipeError
        │   └── InvalidParameterError
        ├── StoreUnavailableError       (DATABASE, retryable by the caller)
        └── ExecutionError              (PIPELINE)
            ├── StepFailedError
            └── RunCancelledError

    Data problems (hierarchy cycles, unmatched relationship targets) are
    not exceptions; they are recorded as ``Diagnostic`` values.

Examples:
    >>> err = InvalidParameterError("Missing required parameters: fiscalYear",
    ...                             missing_params=["fiscalYear"])
    >>> err.retryable
    False
    >>> err.to_dict()["category"]
    'VALIDATION'

Tags:
    error-handling, exception-hierarchy, urp, recipes

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing and retry decisions."""

    DATABASE = "DATABASE"  # Record store unreachable, timeouts
    VALIDATION = "VALIDATION"  # Bad caller input
    CONFIG = "CONFIG"  # Bad recipe / registry configuration
    PIPELINE = "PIPELINE"  # Step execution failures
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        recipe: Recipe name the error belongs to
        step: Step name (custom handler name or primitive name)
        step_index: Zero-based index of the failing step
        org_id: Tenant the run was scoped to
        run_id: Executor run identifier
        metadata: Additional key-value pairs
    """

    recipe: str | None = None
    step: str | None = None
    step_index: int | None = None
    org_id: str | None = None
    run_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["recipe", "step", "step_index", "org_id", "run_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class UrpError(Exception):
    """
    Base class for all URP engine errors.

    Attributes:
        message: Human-readable message
        category: ``ErrorCategory`` for routing
        retryable: Whether the caller may retry the same call
        context: ``ErrorContext`` with recipe/step/org metadata
        cause: Underlying exception, also set as ``__cause__``
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> UrpError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreUnavailableError("timeout").with_context(org_id="org-1")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (raised at registration, never mid-request)
# =============================================================================


class ConfigError(UrpError):
    """Configuration error. Never retryable; the configuration must be fixed."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class RecipeConfigError(ConfigError):
    """A recipe definition is malformed."""

    def __init__(self, recipe_name: str, message: str, **kwargs: Any):
        self.recipe_name = recipe_name
        super().__init__(f"Recipe '{recipe_name}': {message}", **kwargs)
        self.context.recipe = recipe_name


class DuplicateRecipeError(RecipeConfigError):
    """A recipe with the same name is already registered."""

    def __init__(self, recipe_name: str):
        super().__init__(recipe_name, "is already registered")


class IdentifierError(ConfigError):
    """An identifier code failed validation."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        super().__init__(message or f"Malformed identifier code: {code!r}")


# =============================================================================
# INPUT ERRORS (reported to the caller, never retried)
# =============================================================================


class InputError(UrpError):
    """Caller supplied something the engine cannot use."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class UnknownRecipeError(InputError):
    """Recipe not found in the registry."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.recipe_name = name
        self.available = available or []
        message = f"Recipe not found: {name}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)
        self.context.recipe = name


class InvalidParameterError(InputError):
    """Parameters are missing, unknown, or of the wrong type."""

    def __init__(
        self,
        message: str,
        *,
        missing_params: list[str] | None = None,
        invalid_params: dict[str, str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.missing_params = missing_params or []
        self.invalid_params = invalid_params or {}

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.missing_params:
            result["missing_params"] = self.missing_params
        if self.invalid_params:
            result["invalid_params"] = self.invalid_params
        return result


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreUnavailableError(UrpError):
    """
    The record store could not serve a call (timeout, connection failure).

    Retryable from the caller's point of view; the executor itself never
    retries. ``step_index`` is filled in by the executor.
    """

    default_category = ErrorCategory.DATABASE
    default_retryable = True

    @property
    def step_index(self) -> int | None:
        return self.context.step_index


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(UrpError):
    """Recipe execution error."""

    default_category = ErrorCategory.PIPELINE
    default_retryable = False


class StepFailedError(ExecutionError):
    """A recipe step raised; the run was abandoned."""

    def __init__(
        self,
        recipe_name: str,
        step_index: int,
        cause: BaseException,
        *,
        step_name: str | None = None,
    ):
        self.recipe_name = recipe_name
        self.step_index = step_index
        self.step_name = step_name
        label = f"{step_index} ({step_name})" if step_name else str(step_index)
        super().__init__(
            f"Recipe '{recipe_name}' failed at step {label}: {cause}",
            cause=cause,
        )
        self.context.recipe = recipe_name
        self.context.step = step_name
        self.context.step_index = step_index


class RunCancelledError(ExecutionError):
    """The run was cancelled before it completed; nothing was cached."""

    def __init__(self, recipe_name: str, step_index: int | None = None):
        self.recipe_name = recipe_name
        self.step_index = step_index
        where = f" before step {step_index}" if step_index is not None else ""
        super().__init__(f"Recipe '{recipe_name}' cancelled{where}")
        self.context.recipe = recipe_name
        self.context.step_index = step_index


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "UrpError",
    "ConfigError",
    "RecipeConfigError",
    "DuplicateRecipeError",
    "IdentifierError",
    "InputError",
    "UnknownRecipeError",
    "InvalidParameterError",
    "StoreUnavailableError",
    "ExecutionError",
    "StepFailedError",
    "RunCancelledError",
]
