"""Main CLI application for mailcraft."""

from __future__ import annotations

from typing import Annotated

import typer

from mailcraft import meta
from mailcraft.cli.commands.format import format_body
from mailcraft.cli.commands.preview import preview
from mailcraft.cli.common import console
from mailcraft.logging import init_logging, resolve_level

app = typer.Typer(
    name=meta.__app_name__,
    help=f"{meta.__app_name__}: {meta.__description__}",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{meta.__app_name__} {meta.__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", help="Show version and exit.", callback=_version_callback, is_eager=True),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", "-l", help="Log level (TRACE, DEBUG, INFO, WARNING, ERROR)."),
    ] = "WARNING",
) -> None:
    """Build and preview charset-negotiated mail."""
    try:
        level = resolve_level(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e
    init_logging(level)


app.command("preview")(preview)
app.command("format")(format_body)


__all__ = ["app", "main"]
