"""Data models for mailcraft.

This module defines the request-scoped values flowing through a send:

- MailRequest: Structured "send this email" request
- PrebuiltMessage: Caller-built message sent as-is
- FormattedMailRequest: Arguments of the templated (greeting + footer) path
- MessagePart: One encoded body part
- EncodedMessage: Headers and parts ready for serialization
- RoutingHint: Reversed single-recipient sharding key
- DispatchEnvelope: What a dispatcher receives

All models are immutable; none of them is shared between sends.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from email.message import Message
from typing import Union

from mailcraft.exceptions import MailValidationError

#: Header field names are printable ASCII except colon (RFC 5322 section 2.2).
HEADER_NAME_PATTERN = re.compile(r"^[!-9;-~]+$")

#: Headers the builder always sets, in this order.
STANDARD_HEADERS = ("From", "To", "Cc", "Bcc", "Subject")

AddressList = Union[str, Sequence[str]]
HeaderValues = Union[str, Sequence[str]]


def join_address_list(value: AddressList | None) -> str:
    """Render an address list argument as a single header value.

    Args:
        value: ``None``, an address-list string, or a sequence of addresses.

    Returns:
        Comma separated header value, ``""`` when unset.

    Examples:
        >>> join_address_list(["a@example.org", "Bob <b@example.org>"])
        'a@example.org, Bob <b@example.org>'
        >>> join_address_list(None)
        ''
    """
    if not value:
        return ""
    if isinstance(value, str):
        return value
    return ", ".join(item for item in value if item)


def _require_text(name: str, value: object) -> None:
    if value is None:
        raise MailValidationError(f"Mail request requires '{name}'")
    if not isinstance(value, str):
        raise MailValidationError(f"'{name}' must be a string, got {type(value).__name__}")


def _reject_line_breaks(name: str, value: str) -> None:
    if "\r" in value or "\n" in value:
        raise MailValidationError(f"'{name}' must not contain line breaks")


def _normalize_headers(headers: Mapping[str, HeaderValues] | None) -> tuple[tuple[str, str], ...]:
    if not headers:
        return ()
    pairs: list[tuple[str, str]] = []
    for name, values in headers.items():
        if not HEADER_NAME_PATTERN.match(name):
            raise MailValidationError(f"Invalid header name {name!r}")
        items = [values] if isinstance(values, str) else list(values)
        for item in items:
            value = str(item)
            if "\r" in value or "\n" in value:
                raise MailValidationError(f"Header {name!r} value must not contain line breaks")
            pairs.append((name, value))
    return tuple(pairs)


@dataclass(frozen=True, slots=True)
class MailRequest:
    """A structured request to send one email.

    All text is Unicode; it is transcoded to the negotiated charset while
    the message is built.

    Attributes:
        to: Recipient address.
        from_: Sender address.
        subject: Subject line.
        body: Plaintext body.
        toname: Recipient display name (bare address when unset).
        fromname: Sender display name (bare address when unset).
        html: HTML alternative; when set the message is multipart/alternative.
        cc: Carbon-copy recipients, as an address-list string or a sequence.
        bcc: Blind carbon-copy recipients, same forms as ``cc``.
        charset: Charset used when the content is not pure ASCII
            (settings default, normally ``utf-8``, when unset).
        wrap: Fill the plaintext body to the configured width.
        headers: Extra headers; a name may map to several values.

    Raises:
        MailValidationError: If ``to``, ``from_``, ``subject`` or ``body``
            is missing, an address field contains a line break, or an
            extra header is malformed.

    Examples:
        >>> request = MailRequest(
        ...     to="pat@example.org",
        ...     from_="noreply@example.org",
        ...     subject="Welcome",
        ...     body="Hello!",
        ... )
        >>> request.cc_value
        ''
    """

    to: str
    from_: str
    subject: str
    body: str
    toname: str | None = None
    fromname: str | None = None
    html: str | None = None
    cc: AddressList | None = None
    bcc: AddressList | None = None
    charset: str | None = None
    wrap: bool = False
    headers: Mapping[str, HeaderValues] | None = None
    extra_headers: tuple[tuple[str, str], ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate mandatory fields and normalize extra headers."""
        for name in ("to", "from_", "subject", "body"):
            _require_text(name, getattr(self, name))
        if not self.to.strip():
            raise MailValidationError("Mail request requires a non-empty 'to'")
        if not self.from_.strip():
            raise MailValidationError("Mail request requires a non-empty 'from_'")
        for name, value in (("to", self.to), ("from_", self.from_), ("cc", self.cc_value), ("bcc", self.bcc_value)):
            _reject_line_breaks(name, value)
        object.__setattr__(self, "extra_headers", _normalize_headers(self.headers))

    @property
    def cc_value(self) -> str:
        """Cc header value (``""`` when unset)."""
        return join_address_list(self.cc)

    @property
    def bcc_value(self) -> str:
        """Bcc header value (``""`` when unset)."""
        return join_address_list(self.bcc)


@dataclass(frozen=True, slots=True)
class PrebuiltMessage:
    """A message the caller assembled already.

    It bypasses charset negotiation, header encoding and building; only
    the envelope is derived from its From/To/Cc/Bcc headers.

    Attributes:
        message: The complete stdlib message.
    """

    message: Message


#: Input accepted by the top-level send.
SendInput = Union[MailRequest, PrebuiltMessage]


@dataclass(frozen=True, slots=True)
class FormattedMailRequest:
    """Arguments of the templated send path.

    The body is markdown; greeting and footer are added automatically and
    must not be part of it.

    Attributes:
        to: Recipient address.
        from_: Sender address.
        subject: Subject line.
        body: Markdown body text.
        greeting_user: Name to greet; no greeting line when unset.
        toname: Recipient display name.
        fromname: Sender display name.
        cc: Carbon-copy recipients.
        bcc: Blind carbon-copy recipients.
        charset: Charset used when the content is not pure ASCII.
    """

    to: str
    from_: str
    subject: str
    body: str
    greeting_user: str | None = None
    toname: str | None = None
    fromname: str | None = None
    cc: AddressList | None = None
    bcc: AddressList | None = None
    charset: str | None = None


@dataclass(frozen=True, slots=True)
class MessagePart:
    """One leaf body part of an encoded message.

    Attributes:
        content_type: MIME type, ``text/plain`` or ``text/html``.
        charset: Charset the data is encoded in.
        transfer_encoding: Content-Transfer-Encoding used on the wire.
        data: Body bytes in ``charset`` (before transfer encoding).
    """

    content_type: str
    charset: str
    data: bytes
    transfer_encoding: str = "quoted-printable"

    @property
    def text(self) -> str:
        """Decode the part data back to text."""
        return self.data.decode(self.charset)


@dataclass(frozen=True, slots=True)
class EncodedMessage:
    """Headers and parts of a built message.

    Attributes:
        headers: Ordered ``(name, value)`` pairs; a name may repeat.
        parts: One ``text/plain`` part, or ``text/plain`` then ``text/html``.
        charset: The negotiated message charset.

    Examples:
        >>> part = MessagePart(content_type="text/plain", charset="us-ascii", data=b"Hi")
        >>> message = EncodedMessage(headers=(("Subject", "Hello"),), parts=(part,), charset="us-ascii")
        >>> message.content_type
        'text/plain'
    """

    headers: tuple[tuple[str, str], ...]
    parts: tuple[MessagePart, ...]
    charset: str

    @property
    def is_multipart(self) -> bool:
        """Whether the message carries alternative parts."""
        return len(self.parts) > 1

    @property
    def content_type(self) -> str:
        """Top-level MIME type."""
        return "multipart/alternative" if self.is_multipart else self.parts[0].content_type

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the first value of a header (case-insensitive)."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return default

    def get_all(self, name: str) -> list[str]:
        """Return every value of a header, in order (case-insensitive)."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]


@dataclass(frozen=True, slots=True)
class RoutingHint:
    """Sharding key for single-recipient messages.

    Attributes:
        value: ``domain@local-part``, lower-cased.
    """

    value: str


@dataclass(frozen=True, slots=True)
class DispatchEnvelope:
    """Everything a dispatcher needs to deliver one message.

    Attributes:
        env_from: Envelope sender (return path).
        recipients: To, then Cc, then Bcc addresses.
        payload: Serialized message bytes.
        routing_hint: Reversed recipient when there is exactly one.
    """

    env_from: str
    recipients: tuple[str, ...]
    payload: bytes
    routing_hint: str | None = None


__all__ = [
    "HEADER_NAME_PATTERN",
    "STANDARD_HEADERS",
    "DispatchEnvelope",
    "EncodedMessage",
    "FormattedMailRequest",
    "MailRequest",
    "MessagePart",
    "PrebuiltMessage",
    "RoutingHint",
    "SendInput",
    "join_address_list",
]
