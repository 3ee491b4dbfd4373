"""Engine settings.

``UrpSettings`` is read from ``URP_``-prefixed environment variables and
an optional ``.env`` file. It is constructed once at process start and
handed to the executor, the cache factory and the CLI; primitives never
read it.

Examples:
    >>> from urp.core.settings import UrpSettings
    >>> settings = UrpSettings(default_cache_ttl=60)
    >>> settings.cache_backend
    'memory'

Tags:
    settings, configuration, pydantic, environment, urp
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class UrpSettings(BaseSettings):
    """Settings for the recipe engine.

    Fields
    ──────
    default_cache_ttl    : TTL (seconds) for recipes that do not declare one
    cache_max_size       : LRU bound for the in-memory cache
    cache_backend        : ``memory`` or ``redis``
    redis_url            : Redis URL when ``cache_backend == "redis"``
    identifier_namespace : If set, recipe identifier codes must use it
    database_url         : SQLAlchemy URL for ``SqlRecordStore``
    log_level            : structlog log level
    log_format           : ``json`` or ``console``
    """

    model_config = SettingsConfigDict(
        env_prefix="URP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Cache ────────────────────────────────────────────────────
    default_cache_ttl: int = Field(default=300, ge=0)
    cache_max_size: int = Field(default=10_000, gt=0)
    cache_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"

    # ── Identifiers ──────────────────────────────────────────────
    identifier_namespace: str | None = None

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = "sqlite:///urp.db"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"
