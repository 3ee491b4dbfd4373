"""
CLI utility helpers: store construction and output rendering.
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from urp.core.errors import InputError, UrpError
from urp.core.settings import UrpSettings
from urp.store import InMemoryRecordStore, SqlRecordStore, create_urp_engine, load_fixture_file
from urp.store.protocol import RecordStore

console = Console()
err_console = Console(stderr=True)

_SEVERITY_STYLE = {"info": "cyan", "warning": "yellow", "critical": "bold red"}


# ── Store helper ─────────────────────────────────────────────────────────


def open_store(
    settings: UrpSettings,
    *,
    fixture: Path | None = None,
    database: str | None = None,
) -> tuple[RecordStore, str | None]:
    """
    Build the record store for a CLI command.

    A fixture loads into a fresh in-memory store and also supplies a
    default org id; otherwise the SQL store at ``database`` (or
    ``settings.database_url``) is used.
    """
    if fixture is not None:
        store = InMemoryRecordStore()
        loaded = load_fixture_file(store, fixture)
        return store, loaded.org_id
    sql_store = SqlRecordStore(create_urp_engine(database or settings.database_url))
    sql_store.create_schema()
    return sql_store, None


def parse_params(values: list[str] | None) -> dict[str, str]:
    """Parse repeated ``key=value`` options."""
    params: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {item!r}", param_hint="--param")
        params[key.strip()] = value.strip()
    return params


def fail(error: UrpError) -> None:
    """Print a typed error and exit (2 for caller input, 1 otherwise)."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    raise typer.Exit(code=2 if isinstance(error, InputError) else 1)


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _fmt(value: Any) -> str:
    if isinstance(value, str):
        try:
            value = Decimal(value)
        except InvalidOperation:
            return value
    if isinstance(value, Decimal | float):
        return f"{value:,.2f}"
    return "" if value is None else str(value)


def render_hierarchy(nodes: list[dict[str, Any]], title: str) -> None:
    if not nodes:
        console.print("[dim]No items.[/dim]")
        return
    tree = Tree(f"[bold]{title}[/bold]")
    stack = [(tree, node) for node in reversed(nodes)]
    while stack:
        parent, node = stack.pop()
        label = f"[cyan]{node.get('code', '')}[/cyan] {node.get('name', '')}"
        if node.get("classification"):
            label += f" [dim]({node['classification']})[/dim]"
        branch = parent.add(label)
        stack.extend((branch, child) for child in reversed(node.get("children", [])))
    console.print(tree)


def render_presentation(payload: dict[str, Any], title: str) -> None:
    cards = Table(title=title, show_header=True)
    cards.add_column("Metric", style="bold")
    cards.add_column("Value", justify="right")
    for c in payload.get("summary_cards", []):
        suffix = "%" if c.get("format") == "percent" else ""
        cards.add_row(c["title"], f"{_fmt(c['value'])}{suffix}")
    console.print(cards)

    for section in payload.get("breakdowns", []):
        if not section.get("rows"):
            continue
        table = Table(title=section["title"])
        table.add_column("Item")
        table.add_column("Code", style="dim")
        table.add_column("Value", justify="right")
        table.add_column("Share", justify="right")
        for row in section["rows"]:
            indent = "  " * int(row.get("depth") or 0)
            share = row.get("share")
            table.add_row(
                f"{indent}{row['label']}",
                row.get("code") or "",
                _fmt(row["value"]),
                f"{_fmt(share)}%" if share is not None else "",
            )
        if section.get("total") is not None:
            table.add_row("[bold]Total[/bold]", "", f"[bold]{_fmt(section['total'])}[/bold]", "")
        console.print(table)

    if payload.get("trend"):
        trend = Table(title="Trend")
        trend.add_column("Period")
        trend.add_column("Value", justify="right")
        for point in payload["trend"]:
            trend.add_row(point["period"], _fmt(point["value"]))
        console.print(trend)

    for alert in payload.get("alerts", []):
        style = _SEVERITY_STYLE.get(alert["severity"], "white")
        console.print(f"[{style}]{alert['severity'].upper()}[/{style}] {alert['title']}: {alert['message']}")
