"""mailcraft: charset-negotiated MIME mail building.

Build outgoing mail from structured requests (charset negotiation, RFC 2047
headers, plain/HTML alternatives), derive the delivery envelope and hand it
to a dispatcher; or format a markdown body with a localized greeting and
footer first.

Examples:
    >>> from mailcraft import Mailer, MailRequest, MemoryDispatcher
    >>> mailer = Mailer(dispatcher=MemoryDispatcher())
    >>> mailer.send_mail(MailRequest(to="a@x.com", from_="b@y.com", subject="Hi", body="Hello"))
    True
"""

from mailcraft.builder import build_message, make_envelope, serialize_message
from mailcraft.charset import negotiate_charset
from mailcraft.config import MailSettings, load_settings
from mailcraft.dispatch import (
    DirectDispatcher,
    Dispatcher,
    MailTransport,
    MemoryDispatcher,
    ThreadPoolDispatcher,
)
from mailcraft.exceptions import (
    MailConfigurationError,
    MailcraftError,
    MailEncodingError,
    MailTransportError,
    MailValidationError,
    MalformedAddressError,
)
from mailcraft.formatting import format_mail
from mailcraft.i18n import MessageCatalog
from mailcraft.mailer import Mailer
from mailcraft.meta import __version__
from mailcraft.metrics import DogStatsdClient, MemoryStats
from mailcraft.models import (
    DispatchEnvelope,
    EncodedMessage,
    FormattedMailRequest,
    MailRequest,
    PrebuiltMessage,
)

__all__ = [
    "DirectDispatcher",
    "DispatchEnvelope",
    "Dispatcher",
    "DogStatsdClient",
    "EncodedMessage",
    "FormattedMailRequest",
    "MailConfigurationError",
    "MailEncodingError",
    "MailRequest",
    "MailSettings",
    "MailTransport",
    "MailTransportError",
    "MailValidationError",
    "Mailer",
    "MailcraftError",
    "MalformedAddressError",
    "MemoryDispatcher",
    "MemoryStats",
    "MessageCatalog",
    "PrebuiltMessage",
    "ThreadPoolDispatcher",
    "__version__",
    "build_message",
    "format_mail",
    "load_settings",
    "make_envelope",
    "negotiate_charset",
    "serialize_message",
]
