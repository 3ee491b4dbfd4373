"""Recipe registry.

Manifesto:
    A recipe that can be registered can run. Every structural mistake
    (unknown primitive, misspelled config key, a placeholder pointing at
    nothing, a malformed identifier code) is rejected by ``register``
    with a ``RecipeConfigError``, so it surfaces at startup rather than
    in the middle of a request.

    The registry is an explicit object handed to the executor. There is
    no module-level global; tests build isolated registries.

Tags:
    recipes, registry, validation, urp

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterator

from urp.core.errors import DuplicateRecipeError, IdentifierError, RecipeConfigError, UnknownRecipeError
from urp.core.identifiers import IdentifierValidator, PatternIdentifierValidator
from urp.core.logging import get_logger
from urp.core.models import normalize_relationship_type
from urp.primitives.catalog import PRIMITIVES
from urp.recipes.models import OutputSchema, ParamType, Recipe
from urp.recipes.params import coerce_value
from urp.recipes.templates import find_placeholders, has_placeholder

logger = get_logger(__name__)

RESERVED_KEYS = frozenset({"org_id"})


class RecipeRegistry:
    """Named collection of validated recipes.

    Example:
        registry = RecipeRegistry(PatternIdentifierValidator("ACME"))
        registry.register(my_recipe)
        recipe = registry.get("my_recipe")
    """

    def __init__(self, validator: IdentifierValidator | None = None):
        self.validator = validator or PatternIdentifierValidator()
        self._recipes: dict[str, Recipe] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._recipes

    def __len__(self) -> int:
        return len(self._recipes)

    def __iter__(self) -> Iterator[Recipe]:
        return iter(self.list())

    def register(self, recipe: Recipe) -> Recipe:
        """
        Validate and add a recipe.

        Raises:
            DuplicateRecipeError: If the name is taken.
            RecipeConfigError: If the recipe is malformed.
        """
        if not recipe.name:
            raise RecipeConfigError("<unnamed>", "recipe name must not be empty")
        if recipe.name in self._recipes:
            raise DuplicateRecipeError(recipe.name)

        self._check_identifier(recipe)
        self._check_parameters(recipe)
        self._check_steps(recipe)

        if recipe.cache_ttl is not None and recipe.cache_ttl < 0:
            raise RecipeConfigError(recipe.name, f"cache_ttl must be >= 0, got {recipe.cache_ttl}")
        try:
            OutputSchema(recipe.output_schema)
        except ValueError as e:
            raise RecipeConfigError(recipe.name, f"unknown output_schema {recipe.output_schema!r}") from e

        self._recipes[recipe.name] = recipe
        logger.debug(
            "recipe_registered",
            name=recipe.name,
            identifier_code=recipe.identifier_code,
            category=recipe.category,
            steps=len(recipe.steps),
        )
        return recipe

    def get(self, name: str) -> Recipe:
        """
        Look up a recipe by name.

        Raises:
            UnknownRecipeError: If no recipe has that name.
        """
        if name not in self._recipes:
            raise UnknownRecipeError(name, available=self.names())
        return self._recipes[name]

    def names(self) -> list[str]:
        return sorted(self._recipes)

    def list(self, category: str | None = None) -> list[Recipe]:
        """Registered recipes sorted by name, optionally of one category."""
        return [
            self._recipes[n] for n in self.names() if category is None or self._recipes[n].category == category
        ]

    def categories(self) -> list[str]:
        return sorted({r.category for r in self._recipes.values()})

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def _check_identifier(self, recipe: Recipe) -> None:
        check = self.validator.validate(recipe.identifier_code)
        if not check.valid:
            reason = f": {check.reason}" if check.reason else ""
            code = recipe.identifier_code
            cause = IdentifierError(code, f"Malformed identifier code {code!r}{reason}")
            raise RecipeConfigError(recipe.name, f"invalid identifier code {code!r}{reason}", cause=cause)

    def _check_parameters(self, recipe: Recipe) -> None:
        seen: set[str] = set()
        for param in recipe.parameters:
            if param.name in seen:
                raise RecipeConfigError(recipe.name, f"parameter {param.name!r} declared twice")
            if param.name in RESERVED_KEYS:
                raise RecipeConfigError(recipe.name, f"parameter name {param.name!r} is reserved")
            seen.add(param.name)
            try:
                ParamType(param.type)
            except ValueError as e:
                allowed = ", ".join(t.value for t in ParamType)
                raise RecipeConfigError(
                    recipe.name, f"parameter {param.name!r} has unknown type {param.type!r} (allowed: {allowed})"
                ) from e
            if param.default is not None:
                try:
                    coerce_value(param, param.default)
                except ValueError as e:
                    raise RecipeConfigError(recipe.name, f"default for {param.name!r} is invalid: {e}") from e

    def _check_steps(self, recipe: Recipe) -> None:
        if not recipe.steps:
            raise RecipeConfigError(recipe.name, "recipe has no steps")

        available = {p.name for p in recipe.parameters} | RESERVED_KEYS
        for index, step in enumerate(recipe.steps):
            where = f"step {index} ({step.label})"

            if step.is_custom:
                if step.primitive is not None:
                    raise RecipeConfigError(recipe.name, f"{where} has both a handler and a primitive")
                if not callable(step.handler):
                    raise RecipeConfigError(recipe.name, f"{where} handler is not callable")
            else:
                primitive = PRIMITIVES.get(step.primitive or "")
                if primitive is None:
                    raise RecipeConfigError(
                        recipe.name,
                        f"{where} uses unknown primitive {step.primitive!r} (available: {', '.join(PRIMITIVES)})",
                    )
                unknown = set(step.config) - primitive.config_keys()
                if unknown:
                    raise RecipeConfigError(
                        recipe.name, f"{where} has unknown config keys: {', '.join(sorted(unknown))}"
                    )
                missing = primitive.required_keys() - set(step.config)
                if missing:
                    raise RecipeConfigError(
                        recipe.name, f"{where} is missing config keys: {', '.join(sorted(missing))}"
                    )
                for name in find_placeholders(step.config):
                    if name not in available:
                        raise RecipeConfigError(
                            recipe.name,
                            f"{where} references {{{{{name}}}}}, which is neither a parameter nor an earlier output",
                        )
                rel_type = step.config.get("relationship_type")
                if isinstance(rel_type, str) and not has_placeholder(rel_type):
                    if rel_type != normalize_relationship_type(rel_type):
                        raise RecipeConfigError(
                            recipe.name,
                            f"{where} relationship_type {rel_type!r} must be upper case "
                            f"({normalize_relationship_type(rel_type)!r})",
                        )

            key = recipe.output_key(index)
            if key in available:
                raise RecipeConfigError(recipe.name, f"{where} output key {key!r} shadows an existing name")
            available.add(key)
