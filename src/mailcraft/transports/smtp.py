"""SMTP transport.

Delivers raw payloads with :mod:`smtplib`, using the envelope sender and
recipients computed by the builder, so ``Bcc`` recipients receive the
message without appearing in it.

Examples:
    Submission with STARTTLS and authentication::

        from mailcraft.transports import SMTPCredentials, SMTPTransport

        transport = SMTPTransport(
            "smtp.example.org",
            credentials=SMTPCredentials(username="mailer", password="secret"),
        )
        transport.deliver(envelope)
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mailcraft.dispatch import MailTransport
from mailcraft.exceptions import MailConfigurationError, MailTransportError
from mailcraft.logging import TRACE_LEVEL

if TYPE_CHECKING:
    from mailcraft.models import DispatchEnvelope

__all__ = ["SMTPCredentials", "SMTPSecurity", "SMTPTransport"]

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SMTPCredentials:
    """Login credentials for SMTP AUTH.

    Attributes:
        username: Account name; no login is attempted when None.
        password: Account password.
    """

    username: str | None = None
    password: str | None = None


@dataclass(frozen=True, slots=True)
class SMTPSecurity:
    """Transport security options.

    Attributes:
        use_ssl: Connect with implicit TLS (SMTPS, usually port 465).
        use_starttls: Upgrade a plain connection with STARTTLS when offered.
        verify_certificates: Validate the server certificate chain.
    """

    use_ssl: bool = False
    use_starttls: bool = True
    verify_certificates: bool = True

    def ssl_context(self) -> ssl.SSLContext:
        """Build the TLS context matching these options."""
        context = ssl.create_default_context()
        if not self.verify_certificates:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


def _log_smtp_debug_output(output: str) -> None:
    """Forward smtplib debug lines to the TRACE level."""
    for line in output.splitlines():
        if line.strip():
            log.log(TRACE_LEVEL, "[SMTP] %s", line.rstrip())


def _trace_smtp_debug(*args: object) -> None:
    """Replacement for ``SMTP._print_debug`` on a single connection."""
    _log_smtp_debug_output(" ".join(str(arg) for arg in args))


class SMTPTransport(MailTransport):
    """Deliver envelopes to an SMTP server.

    Args:
        host: SMTP server host name.
        port: Server port (587 for submission, 465 for SMTPS).
        credentials: Optional login credentials.
        security: TLS options.
        timeout: Socket timeout in seconds.

    Raises:
        MailConfigurationError: If host is empty, port or timeout invalid.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        credentials: SMTPCredentials | None = None,
        security: SMTPSecurity | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not host:
            raise MailConfigurationError("SMTP host is required")
        if not 0 < port < 65536:
            raise MailConfigurationError(f"SMTP port must be between 1 and 65535, got {port}")
        if timeout <= 0:
            raise MailConfigurationError("Timeout must be greater than 0")

        self._host = host
        self._port = port
        self._credentials = credentials or SMTPCredentials()
        self._security = security or SMTPSecurity()
        self._timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self._security.use_ssl:
            return smtplib.SMTP_SSL(
                host=self._host,
                port=self._port,
                timeout=self._timeout,
                context=self._security.ssl_context(),
            )
        return smtplib.SMTP(host=self._host, port=self._port, timeout=self._timeout)

    def deliver(self, envelope: DispatchEnvelope) -> None:
        """Send the payload to every envelope recipient.

        When TRACE logging is enabled, the SMTP conversation is logged.

        Raises:
            MailTransportError: If the connection or the transaction fails,
                or the server refuses every recipient.
        """
        if not envelope.recipients:
            raise MailTransportError("Envelope has no recipients")

        try:
            with self._connect() as client:
                if log.isEnabledFor(TRACE_LEVEL):
                    # smtplib prints debug output to sys.stderr, shared by every thread.
                    client._print_debug = _trace_smtp_debug  # type: ignore[method-assign]
                    client.set_debuglevel(1)
                client.ehlo()
                if not self._security.use_ssl and self._security.use_starttls and client.has_extn("STARTTLS"):
                    client.starttls(context=self._security.ssl_context())
                    client.ehlo()
                if self._credentials.username:
                    client.login(self._credentials.username, self._credentials.password or "")
                refused = client.sendmail(envelope.env_from, list(envelope.recipients), envelope.payload)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailTransportError(f"SMTP delivery failed: {exc}") from exc

        if refused:
            log.warning("SMTP server refused %d recipient(s): %s", len(refused), ", ".join(refused))
        log.debug("Message delivered via %s:%d", self._host, self._port)
