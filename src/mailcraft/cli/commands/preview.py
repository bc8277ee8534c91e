"""Build a message and show what would be dispatched."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.markup import escape
from rich.table import Table

from mailcraft.cli.common import ConfigOption, console, exit_error, load_cli_config, read_text_argument
from mailcraft.dispatch import MemoryDispatcher
from mailcraft.exceptions import MailEncodingError, MailValidationError
from mailcraft.mailer import Mailer
from mailcraft.models import MailRequest

if TYPE_CHECKING:
    from mailcraft.models import DispatchEnvelope, EncodedMessage


def _parse_header_options(values: list[str] | None) -> dict[str, list[str]]:
    """Turn repeated ``Name: value`` options into a header mapping."""
    headers: dict[str, list[str]] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            exit_error(f"Invalid header {raw!r}, expected 'Name: value'")
        headers.setdefault(name.strip(), []).append(value.strip())
    return headers


def _create_table(message: EncodedMessage, envelope: DispatchEnvelope) -> Table:
    """Summarize the message and its envelope."""
    table = Table(title="Message Preview", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Charset", message.charset)
    table.add_row("Content-Type", message.content_type)
    for part in message.parts:
        table.add_row("Part", f"{part.content_type} ({len(part.data)} bytes)")
    for name, value in message.headers:
        if value:
            table.add_row(name, escape(value))
    table.add_row("Envelope from", escape(envelope.env_from) if envelope.env_from else "[dim]<null sender>[/]")
    table.add_row("Recipients", escape(", ".join(envelope.recipients)) or "[dim]none[/]")
    table.add_row("Routing hint", escape(envelope.routing_hint) if envelope.routing_hint else "[dim]none[/]")
    table.add_row("Payload", f"{len(envelope.payload)} bytes")
    return table


def preview(
    to: Annotated[str, typer.Option("--to", help="Recipient address.")],
    from_: Annotated[str, typer.Option("--from", help="Sender address.")],
    subject: Annotated[str, typer.Option("--subject", "-s", help="Subject line.")],
    body: Annotated[str | None, typer.Option("--body", "-b", help="Plaintext body.")] = None,
    body_file: Annotated[
        Path | None,
        typer.Option("--body-file", help="Read the plaintext body from a file.", dir_okay=False),
    ] = None,
    html: Annotated[str | None, typer.Option("--html", help="HTML alternative body.")] = None,
    html_file: Annotated[
        Path | None,
        typer.Option("--html-file", help="Read the HTML alternative from a file.", dir_okay=False),
    ] = None,
    toname: Annotated[str | None, typer.Option("--toname", help="Recipient display name.")] = None,
    fromname: Annotated[str | None, typer.Option("--fromname", help="Sender display name.")] = None,
    cc: Annotated[list[str] | None, typer.Option("--cc", help="Carbon-copy recipient (repeatable).")] = None,
    bcc: Annotated[list[str] | None, typer.Option("--bcc", help="Blind carbon-copy recipient (repeatable).")] = None,
    header: Annotated[
        list[str] | None,
        typer.Option("--header", "-H", help="Extra header as 'Name: value' (repeatable)."),
    ] = None,
    charset: Annotated[str | None, typer.Option("--charset", help="Charset for non-ASCII content.")] = None,
    wrap: Annotated[bool, typer.Option("--wrap", help="Fill the plaintext body to the configured width.")] = False,
    raw: Annotated[bool, typer.Option("--raw", help="Print the wire payload instead of the summary.")] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the wire payload to a file.", dir_okay=False),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Build a message without sending it.

    Examples:
        # Summary table
        mailcraft preview --to pat@example.org --from noreply@example.org -s "Hi" -b "Hello"

        # Wire payload, transcoded to Latin-1
        mailcraft preview --to pat@example.org --from noreply@example.org -s "Café" -b "Olé" \\
            --charset iso-8859-1 --raw
    """
    body_text = read_text_argument(body, body_file, name="body")
    if body_text is None:
        exit_error("A body is required (--body or --body-file)")
    html_text = read_text_argument(html, html_file, name="html")

    _, settings, catalog = load_cli_config(config)
    dispatcher = MemoryDispatcher()
    mailer = Mailer(settings, dispatcher, catalog=catalog)

    try:
        request = MailRequest(
            to=to,
            from_=from_,
            subject=subject,
            body=body_text,
            toname=toname,
            fromname=fromname,
            html=html_text,
            cc=cc,
            bcc=bcc,
            charset=charset,
            wrap=wrap,
            headers=_parse_header_options(header),
        )
        message = mailer.build(request)
        mailer.send_built(message, caller="mailcraft.cli/preview")
    except (MailEncodingError, MailValidationError) as e:
        exit_error(str(e))

    envelope = dispatcher.envelopes[-1]
    if output is not None:
        output.write_bytes(envelope.payload)
        console.print(f"[green]Wrote {len(envelope.payload)} bytes to {output}[/]")
    if raw:
        typer.echo(envelope.payload.decode("ascii", errors="replace"), nl=False)
    elif output is None:
        console.print(_create_table(message, envelope))


__all__ = ["preview"]
