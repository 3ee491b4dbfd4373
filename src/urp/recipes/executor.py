"""
Recipe executor.

Manifesto:
    The executor owns the lifecycle of a report run (validate, check the
    cache, run steps in order, commit) so recipes are pure declarations
    and primitives never deal with caching, logging or cancellation.

    - **Validate first:** parameters are bound before any store access
    - **Strict order:** steps run in declaration order, one at a time
    - **All or nothing:** a failed or cancelled run writes nothing
    - **One computation per key:** concurrent identical requests share
      a single run (single-flight)

Architecture:
    ::

        execute(name, org_id, params)
          │
          ├─ registry.get(name)            UnknownRecipeError
          ├─ bind_parameters()             InvalidParameterError
          ├─ cache.get(key) ── hit ──────► ExecutionResult(from_cache=True)
          ├─ single-flight leader?  no ──► wait on leader's future
          │   yes
          ├─ for each step:  cancel check ─► RunCancelledError
          │     primitive(store, org_id, **resolved_config)
          │     or handler(previous, engine, params)
          │     ├─ StoreUnavailableError   re-raised with step_index
          │     └─ anything else           StepFailedError
          ├─ cancel check
          └─ cache.set(key, result, ttl)

    Cached values are plain JSON-safe data (``to_plain``); every caller
    gets its own deep copy.

Tags:
    recipes, executor, cache, single-flight, cancellation, urp

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import copy
import threading
import uuid
from collections.abc import Mapping
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from urp.core.cache import CacheBackend, build_cache
from urp.core.errors import (
    InvalidParameterError,
    RunCancelledError,
    StepFailedError,
    StoreUnavailableError,
    UrpError,
)
from urp.core.hashing import compute_cache_key, to_plain
from urp.core.logging import LogContext, get_logger
from urp.core.settings import UrpSettings
from urp.core.timing import log_step
from urp.primitives.catalog import PRIMITIVES
from urp.primitives.hierarchy import Hierarchy
from urp.recipes.context import CancelToken, RecipeEngine
from urp.recipes.models import Recipe
from urp.recipes.params import bind_parameters
from urp.recipes.registry import RecipeRegistry
from urp.recipes.templates import resolve_placeholders
from urp.store.protocol import RecordStore

log = get_logger(__name__)

_WAIT_POLL_SECONDS = 0.05


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one ``execute`` call."""

    data: Any
    from_cache: bool
    generated_at: datetime
    recipe_name: str
    cache_key: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe_name": self.recipe_name,
            "from_cache": self.from_cache,
            "generated_at": self.generated_at.isoformat(),
            "cache_key": self.cache_key,
            "metadata": self.metadata,
            "data": self.data,
        }


class RecipeExecutor:
    """
    Runs registered recipes against a record store.

    Example:
        executor = RecipeExecutor(registry, store, cache=InMemoryCache())
        result = executor.execute("trial_balance", "acme", {"fiscalYear": 2024})
    """

    def __init__(
        self,
        registry: RecipeRegistry,
        store: RecordStore,
        cache: CacheBackend | None = None,
        settings: UrpSettings | None = None,
    ):
        self.registry = registry
        self.store = store
        self.settings = settings or UrpSettings()
        self.cache = cache if cache is not None else build_cache(self.settings)
        self._in_flight: dict[str, Future] = {}
        self._lock = threading.Lock()

    def execute(
        self,
        recipe_name: str,
        org_id: str,
        parameters: Mapping[str, Any] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> ExecutionResult:
        """
        Run a recipe for one tenant.

        Raises:
            UnknownRecipeError: If the recipe is not registered
            InvalidParameterError: If parameters do not bind
            StoreUnavailableError: If the store failed (``step_index`` set)
            StepFailedError: If a step raised anything else
            RunCancelledError: If ``cancel_token`` was cancelled mid-run
        """
        recipe = self.registry.get(recipe_name)
        bound = bind_parameters(recipe, parameters)
        if not org_id:
            raise InvalidParameterError("org_id is required", missing_params=["org_id"]).with_context(
                recipe=recipe_name
            )

        token = cancel_token or CancelToken()
        key = compute_cache_key(recipe_name, org_id, bound)
        ttl = recipe.cache_ttl if recipe.cache_ttl is not None else self.settings.default_cache_ttl

        if ttl <= 0:
            envelope = self._run(recipe, org_id, bound, token)
            return self._result(recipe_name, key, envelope, from_cache=False)

        cached = self._cached(recipe_name, org_id, key)
        if cached is not None:
            return cached

        while True:
            with self._lock:
                flight = self._in_flight.get(key)
                leader = flight is None
                if leader:
                    flight = Future()
                    self._in_flight[key] = flight

            if leader:
                return self._lead(recipe, org_id, bound, key, ttl, token, flight)

            log.info("executor.single_flight_wait", recipe=recipe_name, org_id=org_id, cache_key=key)
            try:
                envelope = self._wait(flight, recipe_name, token)
            except RunCancelledError:
                token.raise_if_cancelled(recipe_name)
                # Leader was cancelled; take over.
                continue
            return self._result(recipe_name, key, envelope, from_cache=False, shared=True)

    async def execute_async(
        self,
        recipe_name: str,
        org_id: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """
        Run ``execute`` in a worker thread.

        Cancelling the awaiting task cancels the run at its next step
        boundary; nothing is cached for a cancelled run.
        """
        token = CancelToken()
        try:
            return await asyncio.to_thread(self.execute, recipe_name, org_id, parameters, cancel_token=token)
        except asyncio.CancelledError:
            token.cancel()
            raise

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _cached(self, recipe_name: str, org_id: str, key: str) -> ExecutionResult | None:
        envelope = self.cache.get(key)
        if envelope is None:
            return None
        log.info("executor.cache_hit", recipe=recipe_name, org_id=org_id, cache_key=key)
        return self._result(recipe_name, key, envelope, from_cache=True)

    def _lead(
        self,
        recipe: Recipe,
        org_id: str,
        bound: dict[str, Any],
        key: str,
        ttl: int,
        token: CancelToken,
        flight: Future,
    ) -> ExecutionResult:
        try:
            # A previous leader may have committed between our miss and our lock.
            envelope = self.cache.get(key)
            from_cache = envelope is not None
            if from_cache:
                log.info("executor.cache_hit", recipe=recipe.name, org_id=org_id, cache_key=key)
            else:
                envelope = self._run(recipe, org_id, bound, token)
                self.cache.set(key, envelope, ttl_seconds=ttl)
        except BaseException as e:
            self._release(key, flight)
            flight.set_exception(e)
            raise

        self._release(key, flight)
        flight.set_result(envelope)
        return self._result(recipe.name, key, envelope, from_cache=from_cache)

    def _release(self, key: str, flight: Future) -> None:
        with self._lock:
            if self._in_flight.get(key) is flight:
                del self._in_flight[key]

    def _wait(self, flight: Future, recipe_name: str, token: CancelToken) -> dict[str, Any]:
        while True:
            token.raise_if_cancelled(recipe_name)
            try:
                return flight.result(timeout=_WAIT_POLL_SECONDS)
            except FutureTimeoutError:
                continue

    def _run(
        self,
        recipe: Recipe,
        org_id: str,
        bound: dict[str, Any],
        token: CancelToken,
    ) -> dict[str, Any]:
        run_id = uuid.uuid4().hex[:12]
        bag: dict[str, Any] = {**bound, "org_id": org_id}
        engine = RecipeEngine(self.store, org_id, recipe.name, bag, token)
        params_view = MappingProxyType(dict(bound))
        step_log: list[dict[str, Any]] = []
        previous: Any = None

        with LogContext(recipe=recipe.name, org_id=org_id, run_id=run_id):
            try:
                for index, step in enumerate(recipe.steps):
                    token.raise_if_cancelled(recipe.name, index)
                    output_key = recipe.output_key(index)

                    with log_step("executor.step", index=index, step=step.label, output_key=output_key) as timer:
                        try:
                            if step.is_custom:
                                previous = step.handler(previous, engine, params_view)
                            else:
                                config = resolve_placeholders(step.config, bag)
                                previous = PRIMITIVES[step.primitive](self.store, org_id, **config)
                        except StoreUnavailableError as e:
                            raise e.with_context(
                                recipe=recipe.name, step=step.label, step_index=index, org_id=org_id, run_id=run_id
                            )
                        except RunCancelledError:
                            raise
                        except Exception as e:
                            raise StepFailedError(recipe.name, index, e, step_name=step.label).with_context(
                                org_id=org_id, run_id=run_id
                            ) from e

                    bag[output_key] = previous
                    step_log.append(
                        {
                            "index": index,
                            "step": step.label,
                            "output_key": output_key,
                            "identifier_code": recipe.identifier_code,
                            "duration_ms": round(timer.duration_ms, 2),
                        }
                    )

                token.raise_if_cancelled(recipe.name, len(recipe.steps))
            except UrpError as e:
                log.warning("executor.failed", **e.to_dict())
                raise

            data = to_plain(previous.to_nested() if isinstance(previous, Hierarchy) else previous)
            generated_at = datetime.now(UTC)
            log.info("executor.completed", steps=len(recipe.steps), cache_ttl=recipe.cache_ttl)

        return {
            "data": data,
            "generated_at": generated_at.isoformat(),
            "metadata": {
                "run_id": run_id,
                "org_id": org_id,
                "identifier_code": recipe.identifier_code,
                "output_schema": str(getattr(recipe.output_schema, "value", recipe.output_schema)),
                "steps": step_log,
            },
        }

    def _result(
        self,
        recipe_name: str,
        key: str,
        envelope: dict[str, Any],
        *,
        from_cache: bool,
        shared: bool = False,
    ) -> ExecutionResult:
        metadata = copy.deepcopy(envelope.get("metadata", {}))
        if shared:
            metadata["shared"] = True
        return ExecutionResult(
            data=copy.deepcopy(envelope["data"]),
            from_cache=from_cache,
            generated_at=datetime.fromisoformat(envelope["generated_at"]),
            recipe_name=recipe_name,
            cache_key=key,
            metadata=metadata,
        )
