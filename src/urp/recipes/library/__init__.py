"""Built-in report recipes.

    ledger.py        chart_of_accounts, trial_balance, balance_sheet, income_statement
    receivables.py   receivables_aging
    inventory.py     stock_levels
    accounts.py      account classification shared by the ledger recipes
"""

from __future__ import annotations

from urp.core.identifiers import PatternIdentifierValidator
from urp.core.settings import UrpSettings
from urp.recipes.library.inventory import stock_levels_recipe
from urp.recipes.library.ledger import (
    balance_sheet_recipe,
    chart_of_accounts_recipe,
    income_statement_recipe,
    trial_balance_recipe,
)
from urp.recipes.library.receivables import receivables_aging_recipe
from urp.recipes.models import Recipe
from urp.recipes.registry import RecipeRegistry

DEFAULT_NAMESPACE = "URP"

_BUILTINS = (
    chart_of_accounts_recipe,
    trial_balance_recipe,
    balance_sheet_recipe,
    income_statement_recipe,
    receivables_aging_recipe,
    stock_levels_recipe,
)


def builtin_recipes(namespace: str = DEFAULT_NAMESPACE) -> list[Recipe]:
    """Fresh copies of the built-in recipes with codes in ``namespace``."""
    return [factory(namespace) for factory in _BUILTINS]


def register_builtin_recipes(registry: RecipeRegistry, namespace: str = DEFAULT_NAMESPACE) -> RecipeRegistry:
    for recipe in builtin_recipes(namespace):
        registry.register(recipe)
    return registry


def default_registry(settings: UrpSettings | None = None) -> RecipeRegistry:
    """Registry holding the built-ins, validated against the configured namespace."""
    settings = settings or UrpSettings()
    namespace = settings.identifier_namespace
    registry = RecipeRegistry(PatternIdentifierValidator(namespace))
    return register_builtin_recipes(registry, namespace or DEFAULT_NAMESPACE)


__all__ = [
    "DEFAULT_NAMESPACE",
    "builtin_recipes",
    "register_builtin_recipes",
    "default_registry",
]
