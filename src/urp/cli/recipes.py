"""
CLI: ``urp recipes`` -- inspect registered recipes.
"""

from __future__ import annotations

import typer
from rich.table import Table

from urp.cli.utils import console, fail, print_json
from urp.core.errors import UrpError
from urp.core.settings import UrpSettings
from urp.recipes.library import default_registry
from urp.recipes.models import ParamType
from urp.recipes.params import get_help_text

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_recipes(
    category: str | None = typer.Option(None, "--category", "-c", help="Only recipes of this category"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List registered recipes."""
    registry = default_registry(UrpSettings())
    recipes = registry.list(category)

    if json_out:
        print_json(
            [
                {
                    "name": r.name,
                    "category": r.category,
                    "identifier_code": r.identifier_code,
                    "required_params": r.required_params,
                    "cache_ttl": r.cache_ttl,
                }
                for r in recipes
            ]
        )
        return

    if not recipes:
        console.print("[dim]No items.[/dim]")
        return

    table = Table(title="Recipes")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Identifier", style="dim")
    table.add_column("Required")
    table.add_column("TTL", justify="right")
    for r in recipes:
        table.add_row(r.name, r.category, r.identifier_code, ", ".join(r.required_params), str(r.cache_ttl))
    console.print(table)


@app.command("show")
def show_recipe(
    name: str = typer.Argument(..., help="Recipe name"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show a recipe's parameters and steps."""
    registry = default_registry(UrpSettings())
    try:
        recipe = registry.get(name)
    except UrpError as e:
        fail(e)
        return

    steps = [
        {"index": i, "step": s.label, "output_key": recipe.output_key(i), "custom": s.is_custom}
        for i, s in enumerate(recipe.steps)
    ]
    if json_out:
        print_json(
            {
                "name": recipe.name,
                "identifier_code": recipe.identifier_code,
                "category": recipe.category,
                "description": recipe.description,
                "output_schema": str(getattr(recipe.output_schema, "value", recipe.output_schema)),
                "cache_ttl": recipe.cache_ttl,
                "parameters": [
                    {
                        "name": p.name,
                        "type": ParamType(p.type).value,
                        "required": p.required,
                        "default": p.default,
                        "description": p.description,
                    }
                    for p in recipe.parameters
                ],
                "steps": steps,
            }
        )
        return

    console.print(f"[bold]{recipe.name}[/bold]  [dim]{recipe.identifier_code}[/dim]")
    console.print(get_help_text(recipe), markup=False)
    table = Table(title="Steps")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Output")
    for s in steps:
        table.add_row(str(s["index"]), s["step"] + (" [dim](custom)[/dim]" if s["custom"] else ""), s["output_key"])
    console.print(table)
