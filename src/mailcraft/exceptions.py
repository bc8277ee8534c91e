"""Specialized exceptions raised by mailcraft.

Exception hierarchy::

    MailcraftError
        MailConfigurationError (invalid settings, also ValueError)
        MailValidationError (missing mandatory request field, also ValueError)
        MailEncodingError (charset transcoding failure, also UnicodeError)
        MalformedAddressError (address unusable for routing)
        MailTransportError (delivery backend failure)
"""

from __future__ import annotations


class MailcraftError(Exception):
    """Base exception for all mailcraft errors.

    All library-specific exceptions inherit from this class,
    allowing for easy catching of any mailcraft error.
    """


class MailConfigurationError(MailcraftError, ValueError):
    """Mail settings or a backend configuration are invalid."""


class MailValidationError(MailcraftError, ValueError):
    """A mail request is missing a mandatory field.

    Raised when ``to``, ``from_``, ``subject`` or ``body`` is absent. This
    is a contract violation by the caller, not a recoverable condition.
    """


class MailEncodingError(MailcraftError, UnicodeError):
    """Content cannot be transcoded to the requested charset.

    Attributes:
        charset: Target charset of the failed transcoding.
        field: Name of the message field that failed (``body``, ``subject``...).
    """

    def __init__(self, charset: str, field: str, reason: str) -> None:
        """Initialize MailEncodingError.

        Args:
            charset: Target charset of the failed transcoding.
            field: Name of the message field that failed.
            reason: Description of the underlying codec failure.
        """
        super().__init__(f"Cannot encode {field} as {charset!r}: {reason}")
        self.charset = charset
        self.field = field
        self.reason = reason


class MalformedAddressError(MailcraftError):
    """An address does not split into ``local-part@domain``.

    Attributes:
        address: The offending address string.
    """

    def __init__(self, address: str) -> None:
        """Initialize MalformedAddressError.

        Args:
            address: The offending address string.
        """
        super().__init__(f"Malformed address: {address!r}")
        self.address = address


class MailTransportError(MailcraftError):
    """A delivery backend failed to transmit a message."""


__all__ = [
    "MailConfigurationError",
    "MailEncodingError",
    "MailTransportError",
    "MailValidationError",
    "MailcraftError",
    "MalformedAddressError",
]
