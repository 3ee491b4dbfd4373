"""URP Core -- record model, errors, cache, logging and settings.

Architecture::

    errors.py        Typed error hierarchy (UrpError and friends)
    models.py        Entity / DynamicField / Relationship / Transaction
    identifiers.py   Identifier code validation + glob matching
    hashing.py       Canonical JSON, cache keys, to_plain()
    cache.py         CacheBackend with InMemory + Redis
    logging.py       structlog configuration
    timing.py        log_step timing context manager
    settings.py      UrpSettings (pydantic-settings)
"""

from urp.core.errors import (
    ConfigError,
    DuplicateRecipeError,
    ErrorCategory,
    ErrorContext,
    IdentifierError,
    InvalidParameterError,
    RecipeConfigError,
    RunCancelledError,
    StepFailedError,
    StoreUnavailableError,
    UnknownRecipeError,
    UrpError,
)
from urp.core.models import (
    BooleanValue,
    DateRange,
    DynamicField,
    Entity,
    FieldType,
    FieldValue,
    JsonValue,
    NumberValue,
    Relationship,
    TextValue,
    Transaction,
    TransactionLine,
    field_value,
)

__all__ = [
    # Errors
    "UrpError",
    "ErrorCategory",
    "ErrorContext",
    "ConfigError",
    "RecipeConfigError",
    "DuplicateRecipeError",
    "IdentifierError",
    "UnknownRecipeError",
    "InvalidParameterError",
    "StoreUnavailableError",
    "StepFailedError",
    "RunCancelledError",
    # Models
    "Entity",
    "DynamicField",
    "FieldType",
    "FieldValue",
    "TextValue",
    "NumberValue",
    "BooleanValue",
    "JsonValue",
    "field_value",
    "Relationship",
    "Transaction",
    "TransactionLine",
    "DateRange",
]
