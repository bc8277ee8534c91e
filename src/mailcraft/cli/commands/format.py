"""Render a templated mail body."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.text import Text

from mailcraft.cli.common import ConfigOption, console, exit_error, load_cli_config, read_text_argument
from mailcraft.formatting import format_mail


def format_body(
    text: Annotated[str | None, typer.Argument(help="Markdown body (omit to use --file).")] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Read the markdown body from a file.", dir_okay=False),
    ] = None,
    greet: Annotated[str | None, typer.Option("--greet", "-g", help="User name to greet.")] = None,
    show: Annotated[
        str,
        typer.Option("--show", help="Which rendering to print: both, html or plain."),
    ] = "both",
    config: ConfigOption = None,
) -> None:
    """Print the HTML and plaintext bodies produced for a templated mail.

    Examples:
        mailcraft format "See [the docs](https://example.org/docs)" --greet pat

        mailcraft format --file notice.md --show plain
    """
    if show not in ("both", "html", "plain"):
        exit_error(f"--show must be one of both, html, plain (got {show!r})")

    if text is not None and file is not None:
        exit_error("Use either a body argument or --file, not both")
    body = read_text_argument(None, file, name="body") if file is not None else text
    if body is None:
        exit_error("A markdown body is required (argument or --file)")

    _, settings, catalog = load_cli_config(config)
    html, plaintext = format_mail(body, greet, settings=settings, translate=catalog)

    if show == "html":
        typer.echo(html)
    elif show == "plain":
        typer.echo(plaintext)
    else:
        console.print(Panel(Text(html), title="HTML", style="cyan"))
        console.print(Panel(Text(plaintext), title="Plaintext", style="green"))


__all__ = ["format_body"]
