"""
CLI utility helpers: model loading and output formatting.
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from linkspine.models import build_registry, declared_models
from linkspine.relations.registry import RelationshipRegistry

console = Console()
err_console = Console(stderr=True)


def load_registry(module: str, path: Path) -> RelationshipRegistry:
    """Import ``module`` and build a registry from the models it (or a submodule) defines."""
    search_path = str(path.resolve())
    if search_path not in sys.path:
        sys.path.insert(0, search_path)
    try:
        importlib.import_module(module)
    except ImportError as e:
        err_console.print(f"[bold red]Error[/bold red]: cannot import {module}: {e}")
        raise typer.Exit(code=1) from e

    models = [
        model
        for model in declared_models()
        if model.__module__ == module or model.__module__.startswith(f"{module}.")
    ]
    if not models:
        err_console.print(f"[bold red]Error[/bold red]: {module} declares no models")
        raise typer.Exit(code=1)
    return build_registry(*models)


def print_links(registry: RelationshipRegistry) -> None:
    """Render forward, reverse and unique metadata as Rich tables."""
    reverse = Table(title="Reverse links (referenced by)", pad_edge=False)
    for col in ("collection", "referencing collection", "field", "on_delete"):
        reverse.add_column(col, overflow="fold")
    for coll, links in sorted(registry.reverse_links.items()):
        for link in links:
            policy = link.on_delete.value if link.on_delete else "-"
            reverse.add_row(coll, link.collection, link.field_name, policy)

    forward = Table(title="Forward links (references)", pad_edge=False)
    for col in ("collection", "field", "referenced collection"):
        forward.add_column(col, overflow="fold")
    for coll, links in sorted(registry.forward_links.items()):
        for link in links:
            forward.add_row(coll, link.field_name, link.collection)

    unique = Table(title="Unique fields", pad_edge=False)
    for col in ("collection", "field", "unique if same"):
        unique.add_column(col, overflow="fold")
    for coll, fields in sorted(registry.unique_fields.items()):
        for field_name in fields:
            unique.add_row(coll, field_name, "-")
    for coll, pairs in sorted(registry.scoped_unique_fields.items()):
        for field_name, same_field in pairs:
            unique.add_row(coll, field_name, same_field)

    for table in (reverse, forward, unique):
        if table.row_count:
            console.print(table)
        else:
            console.print(f"[dim]{table.title}: none.[/dim]")
