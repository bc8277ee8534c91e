"""AWS SES transport.

Hands the wire payload to the SES ``SendRawEmail`` API. The envelope sender
and recipients travel as ``Source`` and ``Destinations``, which is how
``Bcc`` recipients are reached without a header.

Requirements:
    pip install mailcraft[ses]

Examples:
    Credentials come from the boto3 default chain (environment, profile,
    instance role)::

        from mailcraft.transports import SesTransport

        transport = SesTransport("eu-west-3", configuration_set="transactional")
        transport.deliver(envelope)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from mailcraft.dispatch import MailTransport
from mailcraft.exceptions import MailConfigurationError, MailTransportError
from mailcraft.logging import TRACE_LEVEL

if TYPE_CHECKING:
    from mailcraft.models import DispatchEnvelope

__all__ = ["SesTransport"]

log = logging.getLogger(__name__)

_INSTALL_HINT = "boto3 is required for SesTransport. Install with: pip install mailcraft[ses]"


def _botocore_errors() -> tuple[type[Exception], type[Exception], type[Exception]]:
    try:
        from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
    except ImportError as e:
        raise MailConfigurationError(_INSTALL_HINT) from e
    return ClientError, NoCredentialsError, BotoCoreError


def _new_client(region: str, timeout: float) -> Any:
    try:
        import boto3
        from botocore.config import Config
    except ImportError as e:
        raise MailConfigurationError(_INSTALL_HINT) from e
    config = Config(connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 1})
    return boto3.client("ses", region_name=region, config=config)


class SesTransport(MailTransport):
    """Deliver envelopes through Amazon SES.

    The boto3 client is created on first delivery and shared by every
    worker thread afterwards.

    Args:
        region: AWS region of the SES endpoint.
        configuration_set: SES configuration set tagged on every message.
        client: Ready-made SES client; replaces the lazily created one.
        timeout: Connect and read timeout of the created client, in seconds.

    Raises:
        MailConfigurationError: If *region* is empty or *timeout* is not
            positive.
    """

    def __init__(
        self,
        region: str = "eu-west-3",
        *,
        configuration_set: str | None = None,
        client: Any = None,
        timeout: float = 30.0,
    ) -> None:
        if not region:
            raise MailConfigurationError("AWS region is required")
        if timeout <= 0:
            raise MailConfigurationError("Timeout must be greater than 0")

        self._region = region
        self._configuration_set = configuration_set
        self._timeout = timeout
        self._client = client
        self._client_lock = threading.Lock()
        self._last_message_id: str | None = None

    @property
    def last_message_id(self) -> str | None:
        """SES message ID of the last accepted delivery."""
        return self._last_message_id

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                self._client = _new_client(self._region, self._timeout)
            return self._client

    def _request(self, envelope: DispatchEnvelope) -> dict[str, Any]:
        request: dict[str, Any] = {
            "Destinations": list(envelope.recipients),
            "RawMessage": {"Data": envelope.payload},
        }
        # Null sender: SES falls back to the From header of the payload.
        if envelope.env_from:
            request["Source"] = envelope.env_from
        if self._configuration_set:
            request["ConfigurationSetName"] = self._configuration_set
        return request

    def deliver(self, envelope: DispatchEnvelope) -> None:
        """Send ``envelope`` with ``send_raw_email``.

        Raises:
            MailTransportError: If SES rejects the message or cannot be
                reached.
            MailConfigurationError: If boto3 is missing or no AWS
                credentials are available.
        """
        client_error, no_credentials_error, botocore_error = _botocore_errors()
        request = self._request(envelope)
        if log.isEnabledFor(TRACE_LEVEL):
            log.log(
                TRACE_LEVEL,
                "[SES] send_raw_email region=%s source=%s destinations=%s bytes=%d",
                self._region,
                request.get("Source", "(from header)"),
                request["Destinations"],
                len(envelope.payload),
            )

        try:
            response = self._get_client().send_raw_email(**request)
        except client_error as e:
            error = e.response.get("Error", {})  # type: ignore[attr-defined]
            code = error.get("Code", "Unknown")
            raise MailTransportError(f"SES rejected message ({code}): {error.get('Message', e)}") from e
        except no_credentials_error as e:
            raise MailConfigurationError(f"AWS credentials not found: {e}") from e
        except botocore_error as e:
            raise MailTransportError(f"SES request failed: {e}") from e

        self._last_message_id = response.get("MessageId")
        log.debug("SES accepted message %s for %d recipient(s)", self._last_message_id, len(envelope.recipients))
