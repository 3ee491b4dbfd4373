"""
Root Typer application for the ``urp`` CLI.

    urp recipes list [--category C] [--json]
    urp recipes show NAME [--json]
    urp run NAME --org ORG --param key=value ... (--fixture F | --database URL) [--json]
    urp validate-code CODE [--namespace NS]
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from urp.cli.recipes import app as recipes_app
from urp.cli.utils import (
    console,
    err_console,
    fail,
    open_store,
    parse_params,
    print_json,
    render_hierarchy,
    render_presentation,
)
from urp.core.errors import UrpError
from urp.core.identifiers import PatternIdentifierValidator
from urp.core.logging import configure_logging
from urp.core.settings import UrpSettings
from urp.recipes.executor import RecipeExecutor
from urp.recipes.library import default_registry
from urp.recipes.models import OutputSchema

app = Typer(
    name="urp",
    help="urp -- declarative report recipes over a generic record store.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("urp-engine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"urp-engine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override URP_LOG_LEVEL."),
) -> None:
    """urp CLI -- list, inspect and run report recipes."""
    settings = UrpSettings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.log_format == "json")


app.add_typer(recipes_app, name="recipes", help="Recipe catalog.")


@app.command("run")
def run_recipe(
    name: str = typer.Argument(..., help="Recipe name"),
    org: str | None = typer.Option(None, "--org", "-o", help="Tenant id (defaults to the fixture's org_id)"),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Recipe parameter as key=value"),
    fixture: Path | None = typer.Option(None, "--fixture", "-f", exists=True, dir_okay=False, help="JSON fixture"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLAlchemy URL"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a recipe and print its result."""
    settings = UrpSettings()
    params = parse_params(param)
    registry = default_registry(settings)
    store, fixture_org = open_store(settings, fixture=fixture, database=database)
    org_id = org or fixture_org
    if not org_id:
        raise typer.BadParameter("--org is required when no fixture supplies one", param_hint="--org")

    executor = RecipeExecutor(registry, store, settings=settings)
    try:
        result = executor.execute(name, org_id, params)
    except UrpError as e:
        fail(e)
        return

    if json_out:
        print_json(result.to_dict())
        return

    recipe = registry.get(name)
    title = f"{recipe.name} [{org_id}]"
    if OutputSchema(recipe.output_schema) is OutputSchema.HIERARCHY:
        render_hierarchy(result.data, title)
    elif OutputSchema(recipe.output_schema) is OutputSchema.PRESENTATION:
        render_presentation(result.data, title)
    else:
        print_json(result.data)


@app.command("validate-code")
def validate_code(
    code: str = typer.Argument(..., help="Identifier code to check"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Required namespace"),
) -> None:
    """Check an identifier code's structure."""
    check = PatternIdentifierValidator(namespace or UrpSettings().identifier_namespace).validate(code)
    if not check.valid:
        err_console.print(f"[bold red]Invalid[/bold red] {code}: {check.reason}")
        raise typer.Exit(code=1)
    console.print(f"[green]Valid[/green] {code}")
    console.print(f"  namespace: {check.namespace}")
    console.print(f"  segments:  {'.'.join(check.segments)}")
    console.print(f"  version:   v{check.version}")
