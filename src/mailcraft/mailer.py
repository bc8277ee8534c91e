"""Top-level send operations.

:class:`Mailer` ties the pieces together: it builds structured requests
(charset negotiation, header encoding, MIME assembly), derives the envelope,
hands it to a dispatcher and reports whether the dispatcher accepted it.

Examples:
    >>> from mailcraft.dispatch import MemoryDispatcher
    >>> dispatcher = MemoryDispatcher()
    >>> mailer = Mailer(dispatcher=dispatcher)
    >>> mailer.send_mail(
    ...     MailRequest(to="pat@example.org", from_="noreply@example.org", subject="Hi", body="Hello")
    ... )
    True
    >>> dispatcher.envelopes[0].routing_hint
    'example.org@pat'
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

from mailcraft.builder import build_message, make_envelope
from mailcraft.config import MailSettings, load_config, load_settings
from mailcraft.dispatch import MemoryDispatcher
from mailcraft.exceptions import MailTransportError
from mailcraft.formatting import format_mail
from mailcraft.i18n import MessageCatalog
from mailcraft.metrics import SEND_METRIC, emit_increment
from mailcraft.models import FormattedMailRequest, MailRequest, PrebuiltMessage

if TYPE_CHECKING:
    from pathlib import Path

    from mailcraft.dispatch import Dispatcher
    from mailcraft.formatting import HtmlCleaner, MarkdownRenderer
    from mailcraft.i18n import Translator
    from mailcraft.metrics import StatsClient
    from mailcraft.models import DispatchEnvelope, EncodedMessage, SendInput

log = logging.getLogger(__name__)


def _caller_identity(stacklevel: int = 2) -> str:
    """Return ``module/line`` of the frame ``stacklevel`` levels up."""
    frame = inspect.currentframe()
    try:
        for _ in range(stacklevel):
            frame = frame.f_back if frame is not None else None
        if frame is None:
            return "unknown"
        return f"{frame.f_globals.get('__name__', '?')}/{frame.f_lineno}"
    finally:
        del frame


class Mailer:
    """Build and dispatch outgoing mail.

    A mailer holds only read-only collaborators, so one instance can serve
    concurrent sends from many threads.

    Args:
        settings: Site settings (defaults when unset).
        dispatcher: Where finished messages go (in-memory when unset).
        catalog: Localized string lookup for greeting and footer.
        stats: Telemetry client; no telemetry when unset.
        renderer: Markdown renderer for the templated path.
        cleaner: HTML cleaner applied after markdown rendering.
    """

    def __init__(
        self,
        settings: MailSettings | None = None,
        dispatcher: Dispatcher | None = None,
        *,
        catalog: Translator | None = None,
        stats: StatsClient | None = None,
        renderer: MarkdownRenderer | None = None,
        cleaner: HtmlCleaner | None = None,
    ) -> None:
        self._settings = settings or MailSettings()
        self._dispatcher = dispatcher if dispatcher is not None else MemoryDispatcher()
        self._catalog = catalog or MessageCatalog()
        self._stats = stats
        self._renderer = renderer
        self._cleaner = cleaner

    @classmethod
    def from_config(
        cls,
        filename: str | Path | None = None,
        *,
        dispatcher: Dispatcher | None = None,
        stats: StatsClient | None = None,
    ) -> Mailer:
        """Create a mailer from ``mailcraft.conf.yml``.

        Settings come from the ``mail`` section and localized strings from
        ``mail.strings``.

        Raises:
            MailConfigurationError: If the configuration is invalid.
        """
        config = load_config(filename)
        return cls(
            load_settings(config=config),
            dispatcher,
            catalog=MessageCatalog.from_config(config),
            stats=stats,
        )

    @property
    def settings(self) -> MailSettings:
        """Return the site settings."""
        return self._settings

    @property
    def dispatcher(self) -> Dispatcher:
        """Return the dispatcher receiving finished messages."""
        return self._dispatcher

    def build(self, request: MailRequest) -> EncodedMessage:
        """Build the encoded message for ``request`` without sending it.

        Raises:
            MailEncodingError: If a text cannot be transcoded.
        """
        return build_message(
            request,
            default_charset=self._settings.default_charset,
            wrap_width=self._settings.wrap_width,
        )

    def send_mail(self, message: SendInput, *, caller: str | None = None) -> bool:
        """Send a structured request or a prebuilt message.

        Args:
            message: A :class:`MailRequest` to build, or a
                :class:`PrebuiltMessage` sent as-is.
            caller: Identity used to tag the send counter; the calling
                ``module/line`` when unset.

        Returns:
            True when the dispatcher accepted the message, False when it
            rejected it or raised.

        Raises:
            MailEncodingError: If a text cannot be transcoded.
            TypeError: If ``message`` is neither supported variant.
        """
        emit_increment(self._stats, SEND_METRIC, tags=(f"caller:{caller or _caller_identity()}",))

        if isinstance(message, PrebuiltMessage):
            envelope = make_envelope(message.message)
        elif isinstance(message, MailRequest):
            envelope = make_envelope(self.build(message))
        else:
            raise TypeError(f"Expected MailRequest or PrebuiltMessage, got {type(message).__name__}")

        return self._dispatch(envelope)

    def send_built(self, message: EncodedMessage, *, caller: str | None = None) -> bool:
        """Send a message already produced by :meth:`build`.

        The same :class:`EncodedMessage` can then be inspected and sent
        without building it twice.

        Returns:
            True when the dispatcher accepted the message, False otherwise.
        """
        emit_increment(self._stats, SEND_METRIC, tags=(f"caller:{caller or _caller_identity()}",))
        return self._dispatch(make_envelope(message))

    def _dispatch(self, envelope: DispatchEnvelope) -> bool:
        try:
            accepted = bool(self._dispatcher.dispatch(envelope))
        except MailTransportError as exc:
            log.warning("Dispatcher failed: %s", exc)
            accepted = False
        except Exception:
            log.exception("Unexpected dispatcher failure")
            accepted = False

        if accepted:
            log.debug("Message from %s to %d recipient(s) accepted", envelope.env_from, len(envelope.recipients))
        else:
            log.warning("Dispatcher rejected message to %s", ", ".join(envelope.recipients) or "(no recipients)")
        return accepted

    def format_mail(self, text: str, greeting_user: str | None = None) -> tuple[str, str]:
        """Return ``(html, plaintext)`` for a templated body.

        See :func:`mailcraft.formatting.format_mail`.
        """
        return format_mail(
            text,
            greeting_user,
            settings=self._settings,
            translate=self._catalog,
            render=self._renderer,
            clean=self._cleaner,
        )

    def send_formatted_mail(self, request: FormattedMailRequest, *, caller: str | None = None) -> bool:
        """Format a templated body and send it as a plain/HTML pair.

        Returns:
            True when the dispatcher accepted the message, False otherwise.
        """
        html, plaintext = self.format_mail(request.body, request.greeting_user)
        return self.send_mail(
            MailRequest(
                to=request.to,
                from_=request.from_,
                subject=request.subject,
                body=plaintext,
                html=html,
                toname=request.toname,
                fromname=request.fromname,
                cc=request.cc,
                bcc=request.bcc,
                charset=request.charset,
            ),
            caller=caller or _caller_identity(),
        )


__all__ = [
    "Mailer",
]
