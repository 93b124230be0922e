"""
CLI: ``linkspine registry``: inspect the links declared by a models module.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer

from linkspine.cli.utils import console, err_console, load_registry, print_links

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show(
    module: str = typer.Argument(..., help="Dotted module path that declares the models."),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Directory to import from."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show forward, reverse and unique declarations."""
    registry = load_registry(module, path)
    if json_out:
        typer.echo(json.dumps(registry.to_dict(), indent=2))
        return
    print_links(registry)


@app.command("check")
def check(
    module: str = typer.Argument(..., help="Dotted module path that declares the models."),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Directory to import from."),
) -> None:
    """Report cascade cycles between collections. Exits 1 when any exist."""
    registry = load_registry(module, path)
    cycles = registry.cascade_cycles()
    if not cycles:
        console.print("[green]No cascade cycles.[/green]")
        return
    for cycle in cycles:
        err_console.print(f"[bold yellow]Cascade cycle[/bold yellow]: {' -> '.join(cycle)}")
    raise typer.Exit(code=1)
