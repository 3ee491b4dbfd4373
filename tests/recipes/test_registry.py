"""
Tests for urp.recipes.registry.RecipeRegistry.

Every structural mistake must fail at register() with RecipeConfigError.
"""

import re

import pytest

from urp.core.errors import DuplicateRecipeError, IdentifierError, RecipeConfigError, UnknownRecipeError
from urp.core.identifiers import PatternIdentifierValidator
from urp.core.settings import UrpSettings
from urp.recipes.library import builtin_recipes, default_registry
from urp.recipes.models import ParamDef, ParamType, Recipe, RecipeStep
from urp.recipes.registry import RecipeRegistry

CODE = "ACME.REPORTING.GL.REPORT.ACCOUNT_LIST.v1"


def passthrough(previous, engine, params):
    return previous


def make_recipe(**overrides) -> Recipe:
    fields = {
        "name": "account_list",
        "identifier_code": CODE,
        "category": "financial",
        "parameters": [ParamDef("pattern", ParamType.STR, default="*")],
        "steps": [
            RecipeStep.call(
                "resolve_entities",
                output_key="accounts",
                entity_type="account",
                identifier_pattern="{{pattern}}",
            ),
            RecipeStep.custom(passthrough),
        ],
    }
    fields.update(overrides)
    return Recipe(**fields)


class TestRegisterAndLookup:
    def test_register_and_get(self):
        registry = RecipeRegistry()
        recipe = registry.register(make_recipe())
        assert registry.get("account_list") is recipe
        assert "account_list" in registry
        assert len(registry) == 1

    def test_duplicate(self):
        registry = RecipeRegistry()
        registry.register(make_recipe())
        with pytest.raises(DuplicateRecipeError):
            registry.register(make_recipe())

    def test_unknown_lists_available(self):
        registry = RecipeRegistry()
        registry.register(make_recipe())
        with pytest.raises(UnknownRecipeError) as exc_info:
            registry.get("nope")
        assert exc_info.value.available == ["account_list"]

    def test_list_and_categories(self):
        registry = RecipeRegistry()
        registry.register(make_recipe())
        registry.register(make_recipe(name="stock", category="inventory"))
        assert [r.name for r in registry.list()] == ["account_list", "stock"]
        assert [r.name for r in registry.list("inventory")] == ["stock"]
        assert registry.categories() == ["financial", "inventory"]
        assert [r.name for r in registry] == ["account_list", "stock"]

    def test_registries_are_isolated(self):
        a, b = RecipeRegistry(), RecipeRegistry()
        a.register(make_recipe())
        assert "account_list" not in b


class TestRegistrationFailures:
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"name": ""}, "must not be empty"),
            ({"identifier_code": "not-a-code"}, "invalid identifier code"),
            ({"steps": []}, "no steps"),
            ({"cache_ttl": -1}, "cache_ttl"),
            ({"output_schema": "pdf"}, "output_schema"),
            (
                {"parameters": [ParamDef("pattern", ParamType.STR), ParamDef("pattern", ParamType.INT)]},
                "declared twice",
            ),
            ({"parameters": [ParamDef("org_id", ParamType.STR)]}, "reserved"),
            ({"parameters": [ParamDef("pattern", "text")]}, "unknown type"),
            ({"parameters": [ParamDef("year", ParamType.INT, default="soon")]}, "default for 'year'"),
        ],
    )
    def test_recipe_level(self, overrides, message):
        if "parameters" in overrides and not any(p.name == "pattern" for p in overrides["parameters"]):
            overrides["steps"] = [RecipeStep.call("resolve_entities", entity_type="account")]
        with pytest.raises(RecipeConfigError, match=re.escape(message)):
            RecipeRegistry().register(make_recipe(**overrides))

    @pytest.mark.parametrize(
        "steps, message",
        [
            ([RecipeStep.call("pivot_table", entity_type="account")], "unknown primitive"),
            ([RecipeStep.call("resolve_entities", entity_type="account", colour="red")], "unknown config keys: colour"),
            ([RecipeStep.call("build_hierarchy", relationship_type="PARENT_OF")], "missing config keys: entities"),
            (
                [RecipeStep.call("resolve_entities", entity_type="account", identifier_pattern="{{nothing}}")],
                "references {{nothing}}",
            ),
            (
                [
                    RecipeStep.call("build_hierarchy", entities="{{accounts}}", relationship_type="PARENT_OF"),
                    RecipeStep.call("resolve_entities", output_key="accounts", entity_type="account"),
                ],
                "references {{accounts}}",
            ),
            (
                [
                    RecipeStep.call("resolve_entities", output_key="accounts", entity_type="account"),
                    RecipeStep.call("build_hierarchy", entities="{{accounts}}", relationship_type="parent_of"),
                ],
                "must be upper case",
            ),
            ([RecipeStep.call("resolve_entities", output_key="pattern", entity_type="account")], "shadows"),
            ([RecipeStep.call("resolve_entities", output_key="org_id", entity_type="account")], "shadows"),
            ([RecipeStep(primitive="resolve_entities", handler=passthrough)], "both a handler and a primitive"),
            ([RecipeStep(handler="not callable")], "not callable"),
        ],
    )
    def test_step_level(self, steps, message):
        with pytest.raises(RecipeConfigError, match=re.escape(message)):
            RecipeRegistry().register(make_recipe(steps=steps))

    def test_failed_registration_leaves_registry_unchanged(self):
        registry = RecipeRegistry()
        with pytest.raises(RecipeConfigError):
            registry.register(make_recipe(steps=[]))
        assert len(registry) == 0

    def test_org_id_placeholder_allowed(self):
        recipe = make_recipe(
            steps=[RecipeStep.call("resolve_entities", entity_type="account", identifier_pattern="{{org_id}}.*")]
        )
        RecipeRegistry().register(recipe)

    def test_namespace_enforced(self):
        registry = RecipeRegistry(PatternIdentifierValidator("URP"))
        with pytest.raises(RecipeConfigError, match="namespace"):
            registry.register(make_recipe())

    def test_identifier_error_is_the_cause(self):
        registry = RecipeRegistry(PatternIdentifierValidator("URP"))
        with pytest.raises(RecipeConfigError) as exc_info:
            registry.register(make_recipe())
        cause = exc_info.value.cause
        assert isinstance(cause, IdentifierError)
        assert exc_info.value.__cause__ is cause
        assert cause.code == CODE
        assert "'ACME' is not 'URP'" in cause.message
        assert "account_list" not in registry


class TestBuiltins:
    def test_default_registry(self):
        registry = default_registry(UrpSettings(_env_file=None))
        assert registry.names() == [
            "balance_sheet",
            "chart_of_accounts",
            "income_statement",
            "receivables_aging",
            "stock_levels",
            "trial_balance",
        ]

    def test_namespace_applied(self):
        registry = default_registry(UrpSettings(_env_file=None, identifier_namespace="ACME"))
        assert registry.get("trial_balance").identifier_code == "ACME.REPORTING.GL.REPORT.TRIAL_BALANCE.v1"

    def test_builtins_are_fresh_copies(self):
        first, second = builtin_recipes(), builtin_recipes()
        assert first[0] is not second[0]
        assert first[0].steps is not second[0].steps
