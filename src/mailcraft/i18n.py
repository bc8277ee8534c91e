"""Localized string lookup for templated mail.

Strings are addressed by message id (``email.greeting``, ``email.footer``)
and may contain ``[[name]]`` placeholders filled from a substitution map.
Any callable with the :class:`Translator` signature can stand in for the
bundled :class:`MessageCatalog`.

Examples:
    >>> catalog = MessageCatalog({"email.greeting": "Hi [[user]],"})
    >>> catalog("email.greeting", {"user": "Pat"})
    'Hi Pat,'
    >>> catalog("email.unknown", {})
    '[missing string email.unknown]'
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from mailcraft.config import get_mail_section
from mailcraft.exceptions import MailConfigurationError

log = logging.getLogger(__name__)

_PLACEHOLDER_PATTERN = re.compile(r"\[\[([a-zA-Z_][a-zA-Z0-9_]*)\]\]")

#: English strings used when no catalog overrides them.
DEFAULT_STRINGS: Mapping[str, str] = {
    "email.greeting": "Dear [[user]],",
    "email.footer": "Regards,\nThe [[sitename]] Team\n\n[[siteroot]]",
}


@runtime_checkable
class Translator(Protocol):
    """Resolve a message id to text, filling ``[[name]]`` placeholders."""

    def __call__(self, message_id: str, substitutions: Mapping[str, Any]) -> str:
        """Return the localized text for ``message_id``."""
        ...


def substitute(template: str, substitutions: Mapping[str, Any]) -> str:
    """Fill ``[[name]]`` placeholders; unknown names become empty.

    Examples:
        >>> substitute("[[a]] and [[b]]", {"a": 1})
        '1 and '
    """

    def replacer(match: re.Match[str]) -> str:
        value = substitutions.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_PATTERN.sub(replacer, template)


class MessageCatalog:
    """In-memory string catalog.

    Args:
        strings: Message id to template overrides, merged over
            :data:`DEFAULT_STRINGS`.

    Examples:
        >>> MessageCatalog()("email.footer", {"sitename": "Dreamscape", "siteroot": "https://example.org"})
        'Regards,\\nThe Dreamscape Team\\n\\nhttps://example.org'
    """

    def __init__(self, strings: Mapping[str, str] | None = None) -> None:
        """Initialize MessageCatalog.

        Raises:
            MailConfigurationError: If a template is not a string.
        """
        merged = dict(DEFAULT_STRINGS)
        for message_id, template in (strings or {}).items():
            if not isinstance(template, str):
                raise MailConfigurationError(f"String {message_id!r} must be text, got {type(template).__name__}")
            merged[message_id] = template
        self._strings = merged

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> MessageCatalog:
        """Create a catalog from the ``mail.strings`` configuration section."""
        strings = get_mail_section(config).get("strings") or {}
        if not isinstance(strings, Mapping):
            raise MailConfigurationError(f"'mail.strings' must be a mapping, got {type(strings).__name__}")
        return cls({str(key): value for key, value in strings.items()})

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._strings

    def __call__(self, message_id: str, substitutions: Mapping[str, Any]) -> str:
        """Resolve ``message_id`` and fill its placeholders."""
        template = self._strings.get(message_id)
        if template is None:
            log.warning("Missing localized string %r", message_id)
            return f"[missing string {message_id}]"
        return substitute(template, substitutions)


__all__ = [
    "DEFAULT_STRINGS",
    "MessageCatalog",
    "Translator",
    "substitute",
]
