"""Header text encoding and display-name sanitization.

Non-ASCII header text is embedded as RFC 2047 ``B`` encoded-words in the
negotiated charset, split so that no word exceeds 75 characters. Display
names are stripped of characters that could break out of the quoted name or
inject a new header line; stripping never fails.

Examples:
    >>> encode_header_text("Hello", "utf-8")
    'Hello'
    >>> encode_header_text("Caf\\u00e9", "utf-8")
    '=?utf-8?b?Q2Fmw6k=?='
    >>> format_address('Eve"\\nEvil', "eve@example.org")
    '"EveEvil" <eve@example.org>'
    >>> collapse_line_breaks("Hello\\r\\nWorld")
    'Hello World'
"""

from __future__ import annotations

import re
from email.charset import BASE64, Charset
from email.header import Header

from mailcraft.charset import is_ascii
from mailcraft.exceptions import MailEncodingError

#: RFC 2047 section 2: an encoded-word is at most 75 characters long.
MAX_ENCODED_WORD_LENGTH = 75

#: Characters removed from display names.
_UNSAFE_NAME_CHARS = re.compile(r'[\r\n\t"<>]')

_LINE_BREAKS = re.compile(r"\r\n|[\r\n]")


def collapse_line_breaks(text: str) -> str:
    """Replace each line break in header text with a single space."""
    return _LINE_BREAKS.sub(" ", text)


def encode_header_text(text: str, charset: str) -> str:
    """Encode header text as RFC 2047 encoded-words when needed.

    Long text is split on character boundaries into several encoded-words
    separated by a space; decoders join them back without the space.

    Args:
        text: Header text (subject or display name).
        charset: Negotiated message charset.

    Returns:
        ``text`` unchanged when pure ASCII, otherwise one or more
        ``=?charset?b?...?=`` words.

    Raises:
        MailEncodingError: If ``text`` cannot be represented in ``charset``.
    """
    if is_ascii(text):
        return text
    try:
        text.encode(charset)
    except UnicodeEncodeError as exc:
        raise MailEncodingError(charset, "header", exc.reason) from exc
    except LookupError:
        raise MailEncodingError(charset, "header", "unknown charset") from None

    header_charset = Charset(charset)
    header_charset.header_encoding = BASE64
    header_charset.output_charset = charset
    header_charset.output_codec = charset
    encoded = Header(text, header_charset, maxlinelen=MAX_ENCODED_WORD_LENGTH).encode(linesep="\n")
    return " ".join(word.strip() for word in encoded.split("\n"))


def clean_display_name(name: str | None) -> str:
    """Strip newline, carriage return, tab, double quote and angle brackets.

    Examples:
        >>> clean_display_name('Eve"\\nEvil')
        'EveEvil'
        >>> clean_display_name(None)
        ''
    """
    if not name:
        return ""
    return _UNSAFE_NAME_CHARS.sub("", name)


def format_address(name: str | None, address: str) -> str:
    """Compose an address header value from a display name and an address.

    Args:
        name: Display name, possibly already encoded; may be empty.
        address: Mailbox address.

    Returns:
        ``"name" <address>`` when the cleaned name is non-empty, else the
        bare address.
    """
    cleaned = clean_display_name(name)
    if not cleaned:
        return address
    return f'"{cleaned}" <{address}>'


__all__ = [
    "MAX_ENCODED_WORD_LENGTH",
    "clean_display_name",
    "collapse_line_breaks",
    "encode_header_text",
    "format_address",
]
