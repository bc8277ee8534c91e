"""MIME message assembly and envelope extraction.

:func:`build_message` turns a :class:`~mailcraft.models.MailRequest` into an
:class:`~mailcraft.models.EncodedMessage`: one quoted-printable ``text/plain``
part, or a ``multipart/alternative`` pair of ``text/plain`` and ``text/html``
parts, all in the negotiated charset. :func:`serialize_message` renders it to
wire bytes with the stdlib :mod:`email` package.

The envelope helpers work on both built messages and caller-supplied
:class:`email.message.Message` objects, so prebuilt messages share the same
recipient and routing logic.
"""

from __future__ import annotations

import copy
import logging
import quopri
import re
import textwrap
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.nonmultipart import MIMENonMultipart
from email.policy import compat32
from email.utils import formatdate, getaddresses
from typing import TYPE_CHECKING, Union

from mailcraft.charset import UTF_8, is_ascii, negotiate_charset
from mailcraft.config import DEFAULT_WRAP_WIDTH
from mailcraft.exceptions import MalformedAddressError
from mailcraft.headers import clean_display_name, collapse_line_breaks, encode_header_text, format_address
from mailcraft.logging import TRACE_LEVEL
from mailcraft.models import DispatchEnvelope, EncodedMessage, MailRequest, MessagePart, RoutingHint

if TYPE_CHECKING:
    from collections.abc import Sequence
    from email.message import Message

log = logging.getLogger(__name__)

#: Wire policy: classic header handling, CRLF line endings, no "From " mangling.
WIRE_POLICY = compat32.clone(linesep="\r\n", mangle_from_=False)

#: Headers whose addresses receive the message, in envelope order.
RECIPIENT_HEADERS = ("To", "Cc", "Bcc")

# Greedy local part: the last "@" separates the domain.
_ADDRESS_PATTERN = re.compile(r"^(.+)@(.+)$")

HeaderSource = Union[EncodedMessage, "Message"]


# ============================================================================
# Building
# ============================================================================


def wrap_body(body: str, width: int = DEFAULT_WRAP_WIDTH) -> str:
    """Fill each line of ``body`` to ``width`` columns.

    Existing line breaks are kept, so paragraphs and blank lines survive;
    only lines longer than ``width`` are split.

    Examples:
        >>> wrap_body("one two three", width=8)
        'one two\\nthree'
        >>> wrap_body("a\\n\\nb", width=8)
        'a\\n\\nb'
    """
    return "\n".join(
        textwrap.fill(line, width=width, break_on_hyphens=False) if len(line) > width else line
        for line in body.split("\n")
    )


def build_message(
    request: MailRequest,
    *,
    default_charset: str | None = None,
    wrap_width: int = DEFAULT_WRAP_WIDTH,
) -> EncodedMessage:
    """Build the encoded message for a structured request.

    Args:
        request: The mail request.
        default_charset: Charset used when the request names none.
        wrap_width: Fill width applied when ``request.wrap`` is set.

    Returns:
        EncodedMessage with the standard headers, the caller's extra headers
        and one or two body parts.

    Raises:
        MailEncodingError: If a text cannot be transcoded to the charset.
    """
    body = wrap_body(request.body, wrap_width) if request.wrap else request.body

    content = negotiate_charset(
        collapse_line_breaks(request.subject),
        body,
        request.html,
        clean_display_name(request.fromname) or None,
        default_charset=request.charset or default_charset,
    )
    charset = content.charset

    subject = encode_header_text(content.subject, charset)
    fromname = encode_header_text(content.fromname, charset) if content.fromname else None
    # The recipient name is not part of the negotiation, it stays UTF-8.
    toname_text = clean_display_name(request.toname)
    toname = encode_header_text(toname_text, UTF_8) if toname_text else None

    headers: list[tuple[str, str]] = [
        ("From", format_address(fromname, request.from_)),
        ("To", format_address(toname, request.to)),
        ("Cc", request.cc_value),
        ("Bcc", request.bcc_value),
        ("Subject", subject),
    ]
    headers.extend(request.extra_headers)

    if content.html_data is not None:
        parts = (
            MessagePart(content_type="text/plain", charset=charset, data=content.body_data + "\n".encode(charset)),
            MessagePart(content_type="text/html", charset=charset, data=content.html_data),
        )
    else:
        parts = (MessagePart(content_type="text/plain", charset=charset, data=content.body_data),)

    log.debug("Built message with %d part(s), charset=%s", len(parts), charset)
    return EncodedMessage(headers=tuple(headers), parts=parts, charset=charset)


def _mime_part(part: MessagePart) -> MIMENonMultipart:
    maintype, _, subtype = part.content_type.partition("/")
    mime = MIMENonMultipart(maintype, subtype, charset=part.charset)
    mime["Content-Transfer-Encoding"] = part.transfer_encoding
    mime.set_payload(quopri.encodestring(part.data).decode("ascii"))
    return mime


def _wire_value(name: str, value: str) -> str | Header:
    # Long ASCII values are folded at whitespace; compat32 writes plain strings as-is.
    if len(name) + 2 + len(value) <= WIRE_POLICY.max_line_length or not is_ascii(value):
        return value
    return Header(value, header_name=name)


def to_mime(message: EncodedMessage, *, include_bcc: bool = False) -> Message:
    """Convert an encoded message to a stdlib :class:`email.message.Message`.

    Standard and extra headers come first, then ``Date`` (unless the caller
    supplied one) and the MIME structure headers. Empty ``Cc``/``Bcc``
    headers are left out.

    Args:
        message: The encoded message.
        include_bcc: Keep the ``Bcc`` header (it is dropped from wire copies).

    Returns:
        The MIME message tree.
    """
    root: Message
    if message.is_multipart:
        root = MIMEMultipart("alternative")
        for part in message.parts:
            root.attach(_mime_part(part))
    else:
        root = _mime_part(message.parts[0])

    structure = list(root.items())
    for name, _ in structure:
        del root[name]

    for name, value in message.headers:
        lowered = name.lower()
        if lowered == "bcc" and not include_bcc:
            continue
        if lowered in ("cc", "bcc") and not value:
            continue
        root[name] = _wire_value(name, value)

    if "Date" not in root:
        root["Date"] = formatdate(localtime=True)
    for name, value in structure:
        root[name] = value
    return root


def serialize_message(message: EncodedMessage) -> bytes:
    """Render an encoded message to CRLF wire bytes, without ``Bcc``."""
    return to_mime(message).as_bytes(policy=WIRE_POLICY)


def serialize_prebuilt(message: Message) -> bytes:
    """Render a caller-built message to wire bytes, without ``Bcc``.

    The caller's object is left untouched.
    """
    if "Bcc" in message:
        message = copy.deepcopy(message)
        del message["Bcc"]
    return message.as_bytes(policy=WIRE_POLICY)


# ============================================================================
# Envelope extraction
# ============================================================================


def _header_values(message: HeaderSource, name: str) -> list[str]:
    return [str(value) for value in (message.get_all(name) or [])]


def parse_addresses(values: Sequence[str]) -> list[str]:
    """Extract the address portions of address-list header values.

    Entries that do not parse to an address are dropped.

    Examples:
        >>> parse_addresses(['Ada <ada@example.org>, bob@example.org', ''])
        ['ada@example.org', 'bob@example.org']
    """
    return [address for _, address in getaddresses(list(values)) if address]


def envelope_from(message: HeaderSource) -> str:
    """Return the address portion of the ``From`` header.

    Returns:
        The first From address, or ``""`` (null sender) when there is none.
    """
    addresses = parse_addresses(_header_values(message, "From"))
    if not addresses:
        log.debug("No parseable From address, using null sender")
        return ""
    return addresses[0]


def recipient_addresses(message: HeaderSource) -> list[str]:
    """Return every To, then Cc, then Bcc address of a message."""
    recipients: list[str] = []
    for name in RECIPIENT_HEADERS:
        recipients.extend(parse_addresses(_header_values(message, name)))
    return recipients


def split_address(address: str) -> tuple[str, str]:
    """Split an address into local part and domain on its last ``@``.

    Raises:
        MalformedAddressError: If the address has no ``local@domain`` shape.

    Examples:
        >>> split_address("Pat@Example.ORG")
        ('Pat', 'Example.ORG')
    """
    match = _ADDRESS_PATTERN.match(address)
    if match is None:
        raise MalformedAddressError(address)
    return match.group(1), match.group(2)


def routing_hint(recipients: Sequence[str]) -> RoutingHint | None:
    """Compute the reversed ``domain@local`` key for a single recipient.

    Args:
        recipients: Full recipient list of the message.

    Returns:
        RoutingHint when there is exactly one recipient with a usable
        address, otherwise None.

    Examples:
        >>> routing_hint(["A@X.com"])
        RoutingHint(value='x.com@a')
        >>> routing_hint(["a@x.com", "b@y.com"]) is None
        True
    """
    if len(recipients) != 1:
        return None
    try:
        local, domain = split_address(recipients[0])
    except MalformedAddressError as exc:
        log.debug("Skipping routing hint: %s", exc)
        return None
    return RoutingHint(value=f"{domain.lower()}@{local.lower()}")


def make_envelope(message: EncodedMessage | Message) -> DispatchEnvelope:
    """Derive the dispatch envelope of a built or prebuilt message.

    Args:
        message: An encoded message or a caller-supplied stdlib message.

    Returns:
        DispatchEnvelope with sender, recipients, wire payload and hint.
    """
    env_from = envelope_from(message)
    recipients = recipient_addresses(message)
    hint = routing_hint(recipients)

    if isinstance(message, EncodedMessage):
        payload = serialize_message(message)
    else:
        payload = serialize_prebuilt(message)

    if log.isEnabledFor(TRACE_LEVEL):
        log.log(
            TRACE_LEVEL,
            "Envelope from=%s rcpts=%s hint=%s size=%d",
            env_from,
            recipients,
            hint.value if hint else None,
            len(payload),
        )

    return DispatchEnvelope(
        env_from=env_from,
        recipients=tuple(recipients),
        payload=payload,
        routing_hint=hint.value if hint else None,
    )


__all__ = [
    "RECIPIENT_HEADERS",
    "WIRE_POLICY",
    "build_message",
    "envelope_from",
    "make_envelope",
    "parse_addresses",
    "recipient_addresses",
    "routing_hint",
    "serialize_message",
    "serialize_prebuilt",
    "split_address",
    "to_mime",
    "wrap_body",
]
