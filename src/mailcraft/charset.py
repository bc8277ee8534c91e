"""Charset negotiation for outgoing messages.

A message uses a single charset for every text it carries. Pure-ASCII
messages are always labelled ``us-ascii`` (the explicit default suggested by
RFC 2854 section 6); anything else uses the requested charset, ``utf-8``
unless the caller transcoded for a specific audience.

Examples:
    >>> content = negotiate_charset("Hello", "Plain body", default_charset="iso-8859-1")
    >>> content.charset
    'us-ascii'
    >>> negotiate_charset("Caf\\u00e9", "Body", default_charset="iso-8859-1").subject_data
    b'Caf\\xe9'
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass

from mailcraft.exceptions import MailEncodingError
from mailcraft.logging import TRACE_LEVEL

log = logging.getLogger(__name__)

US_ASCII = "us-ascii"
UTF_8 = "utf-8"

#: Codec names that never need transcoding from Unicode input.
_PASSTHROUGH_CODECS = frozenset({"ascii", "utf-8"})


def is_ascii(text: str | None) -> bool:
    """Return True when ``text`` is unset or holds only 7-bit characters.

    Examples:
        >>> is_ascii("plain")
        True
        >>> is_ascii("na\\u00efve")
        False
        >>> is_ascii(None)
        True
    """
    return not text or text.isascii()


def needs_transcoding(charset: str) -> bool:
    """Return True unless ``charset`` is utf-8 or us-ascii (or an alias).

    Raises:
        MailEncodingError: If Python knows no codec for ``charset``.

    Examples:
        >>> needs_transcoding("UTF8")
        False
        >>> needs_transcoding("iso-8859-1")
        True
    """
    try:
        codec = codecs.lookup(charset).name
    except LookupError:
        raise MailEncodingError(charset, "message", "unknown charset") from None
    return codec not in _PASSTHROUGH_CODECS


@dataclass(frozen=True, slots=True)
class NegotiatedContent:
    """Message texts with the charset chosen for them.

    The ``*_data`` attributes hold each text encoded in ``charset``;
    ``transcoded`` tells whether that required a real conversion away from
    UTF-8.

    Attributes:
        charset: Negotiated charset name, lower-cased.
        subject: Subject text.
        body: Plaintext body text.
        html: HTML body text, if any.
        fromname: Sender display name, if any.
        subject_data: Subject encoded in ``charset``.
        body_data: Body encoded in ``charset``.
        html_data: HTML encoded in ``charset``, if any.
        fromname_data: Display name encoded in ``charset``, if any.
        transcoded: Whether the texts were converted from UTF-8.
    """

    charset: str
    subject: str
    body: str
    html: str | None
    fromname: str | None
    subject_data: bytes
    body_data: bytes
    html_data: bytes | None
    fromname_data: bytes | None
    transcoded: bool


def _encode(text: str, charset: str, field: str) -> bytes:
    try:
        return text.encode(charset)
    except UnicodeEncodeError as exc:
        raise MailEncodingError(charset, field, exc.reason) from exc
    except LookupError:
        raise MailEncodingError(charset, field, "unknown charset") from None


def choose_charset(
    subject: str,
    body: str,
    html: str | None = None,
    fromname: str | None = None,
    default_charset: str | None = None,
) -> str:
    """Pick the message charset.

    Args:
        subject: Subject text.
        body: Plaintext body text.
        html: HTML body, if any.
        fromname: Sender display name, if any.
        default_charset: Requested charset; ``utf-8`` when unset.

    Returns:
        ``us-ascii`` when every text is pure ASCII, otherwise the
        requested charset lower-cased.
    """
    if all(is_ascii(text) for text in (subject, body, html, fromname)):
        return US_ASCII
    return (default_charset or UTF_8).strip().lower()


def negotiate_charset(
    subject: str,
    body: str,
    html: str | None = None,
    fromname: str | None = None,
    *,
    default_charset: str | None = None,
) -> NegotiatedContent:
    """Choose the charset for a message and transcode its texts.

    Each text is converted independently, so the error names the first
    field that cannot be represented.

    Args:
        subject: Subject text.
        body: Plaintext body text.
        html: HTML body, if any.
        fromname: Sender display name, if any.
        default_charset: Requested charset; ``utf-8`` when unset.

    Returns:
        NegotiatedContent with the charset and the encoded texts.

    Raises:
        MailEncodingError: If the charset is unknown or a text contains
            characters it cannot represent.
    """
    charset = choose_charset(subject, body, html, fromname, default_charset)
    transcoded = needs_transcoding(charset)

    if log.isEnabledFor(TRACE_LEVEL):
        log.log(
            TRACE_LEVEL,
            "Negotiated charset %s (requested=%s, transcoded=%s)",
            charset,
            default_charset or UTF_8,
            transcoded,
        )

    return NegotiatedContent(
        charset=charset,
        subject=subject,
        body=body,
        html=html,
        fromname=fromname,
        subject_data=_encode(subject, charset, "subject"),
        body_data=_encode(body, charset, "body"),
        html_data=_encode(html, charset, "html") if html is not None else None,
        fromname_data=_encode(fromname, charset, "fromname") if fromname is not None else None,
        transcoded=transcoded,
    )


__all__ = [
    "US_ASCII",
    "UTF_8",
    "NegotiatedContent",
    "choose_charset",
    "is_ascii",
    "needs_transcoding",
    "negotiate_charset",
]
