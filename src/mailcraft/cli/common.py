"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from mailcraft.config import MailSettings, load_config, load_settings
from mailcraft.exceptions import MailConfigurationError
from mailcraft.i18n import MessageCatalog

if TYPE_CHECKING:
    from box import Box

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Configuration file (defaults to ./mailcraft.conf.yml when present).",
        dir_okay=False,
    ),
]


def exit_error(message: str, code: int = 1) -> NoReturn:
    """Print an error message and exit with ``code``."""
    console.print(f"[red]Error:[/] {escape(message)}", highlight=False)
    raise typer.Exit(code=code)


def read_text_argument(value: str | None, file: Path | None, *, name: str) -> str | None:
    """Return inline text or the content of ``file``; both set is an error."""
    if value is not None and file is not None:
        exit_error(f"Use either --{name} or --{name}-file, not both")
    if file is None:
        return value
    try:
        return file.read_text(encoding="utf-8")
    except OSError as e:
        exit_error(f"Cannot read {file}: {e}")


def load_cli_config(path: Path | None) -> tuple[Box, MailSettings, MessageCatalog]:
    """Load configuration, settings and string catalog, exiting on errors."""
    try:
        config = load_config(path)
        return config, load_settings(config=config), MessageCatalog.from_config(config)
    except MailConfigurationError as e:
        exit_error(str(e))


__all__ = [
    "ConfigOption",
    "console",
    "exit_error",
    "load_cli_config",
    "read_text_argument",
]
