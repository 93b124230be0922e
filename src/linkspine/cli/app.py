"""
Root Typer application for the linkspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from linkspine.cli.registry import app as registry_app
from linkspine.core.logging import configure_logging
from linkspine.core.settings import get_settings

app = Typer(
    name="linkspine",
    help="linkspine: relational links for document stores.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from linkspine import __version__

        typer.echo(f"linkspine {__version__}")
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
) -> None:
    """Inspect relationship registries."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


app.add_typer(registry_app, name="registry", help="Relationship registry inspection.")
