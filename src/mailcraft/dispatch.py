"""Handoff of finished messages to delivery.

A :class:`Dispatcher` accepts a :class:`~mailcraft.models.DispatchEnvelope`
and answers whether it took responsibility for it; the sender never waits
for transmission. Actual transmission is done by a :class:`MailTransport`
(see :mod:`mailcraft.transports`).

Bundled dispatchers:

- :class:`MemoryDispatcher`: keeps envelopes in memory (tests, dry runs).
- :class:`DirectDispatcher`: delivers inline through a transport.
- :class:`ThreadPoolDispatcher`: queues delivery on worker threads.

There is no retry logic here; a failed delivery is logged and dropped.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mailcraft.exceptions import MailConfigurationError, MailTransportError

if TYPE_CHECKING:
    from types import TracebackType

    from mailcraft.models import DispatchEnvelope

log = logging.getLogger(__name__)

# Deep defense: upper bound for delivery worker threads
HARD_MAX_WORKERS = 64


@runtime_checkable
class Dispatcher(Protocol):
    """Accepts finished messages for asynchronous delivery."""

    def dispatch(self, envelope: DispatchEnvelope) -> bool:
        """Take responsibility for ``envelope``.

        Returns:
            True when the envelope was accepted, False when rejected.
        """
        ...


class MailTransport(ABC):
    """Transmits one envelope to a mail service."""

    @abstractmethod
    def deliver(self, envelope: DispatchEnvelope) -> None:
        """Transmit ``envelope``.

        Raises:
            MailTransportError: If the service rejects or cannot be reached.
        """


class MemoryDispatcher:
    """Collect envelopes in memory.

    Args:
        accept: Value returned by :meth:`dispatch`; set False to simulate a
            rejecting queue.

    Examples:
        >>> dispatcher = MemoryDispatcher()
        >>> dispatcher.envelopes
        []
    """

    def __init__(self, *, accept: bool = True) -> None:
        """Initialize MemoryDispatcher."""
        self.accept = accept
        self._lock = threading.Lock()
        self._envelopes: list[DispatchEnvelope] = []

    @property
    def envelopes(self) -> list[DispatchEnvelope]:
        """Snapshot of the accepted envelopes, oldest first."""
        with self._lock:
            return list(self._envelopes)

    def dispatch(self, envelope: DispatchEnvelope) -> bool:
        """Record ``envelope`` when accepting."""
        if not self.accept:
            return False
        with self._lock:
            self._envelopes.append(envelope)
        return True

    def clear(self) -> None:
        """Forget every recorded envelope."""
        with self._lock:
            self._envelopes.clear()


class DirectDispatcher:
    """Deliver synchronously through a transport.

    Transport errors are reported as a rejected dispatch rather than raised.
    """

    def __init__(self, transport: MailTransport) -> None:
        """Initialize DirectDispatcher."""
        self._transport = transport

    def dispatch(self, envelope: DispatchEnvelope) -> bool:
        """Deliver ``envelope`` now; False when the transport fails."""
        try:
            self._transport.deliver(envelope)
        except MailTransportError as exc:
            log.warning("Delivery to %d recipient(s) failed: %s", len(envelope.recipients), exc)
            return False
        return True


class ThreadPoolDispatcher:
    """Queue deliveries on a pool of worker threads.

    :meth:`dispatch` returns as soon as the envelope is queued. Use the
    dispatcher as a context manager, or call :meth:`close`, to drain the
    queue on shutdown.

    Args:
        transport: Transport used by the workers.
        max_workers: Number of delivery threads.

    Raises:
        MailConfigurationError: If ``max_workers`` is out of range.

    Examples:
        >>> with ThreadPoolDispatcher(transport, max_workers=2) as dispatcher:  # doctest: +SKIP
        ...     dispatcher.dispatch(envelope)
        True
    """

    def __init__(self, transport: MailTransport, *, max_workers: int = 4) -> None:
        """Initialize ThreadPoolDispatcher."""
        if not 1 <= max_workers <= HARD_MAX_WORKERS:
            raise MailConfigurationError(f"max_workers must be between 1 and {HARD_MAX_WORKERS}, got {max_workers}")
        self._transport = transport
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mailcraft-dispatch")

    def dispatch(self, envelope: DispatchEnvelope) -> bool:
        """Queue ``envelope``; False once the dispatcher is closed."""
        try:
            self._executor.submit(self._deliver, envelope)
        except RuntimeError:
            log.warning("Dispatcher is closed, message to %s rejected", ", ".join(envelope.recipients))
            return False
        return True

    def _deliver(self, envelope: DispatchEnvelope) -> None:
        try:
            self._transport.deliver(envelope)
        except MailTransportError as exc:
            log.error("Delivery to %s failed: %s", ", ".join(envelope.recipients), exc)
        except Exception:
            log.exception("Unexpected delivery failure")
        else:
            log.debug("Delivered message to %d recipient(s)", len(envelope.recipients))

    def close(self, *, wait: bool = True) -> None:
        """Stop accepting envelopes; optionally wait for queued deliveries."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> ThreadPoolDispatcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = [
    "HARD_MAX_WORKERS",
    "DirectDispatcher",
    "Dispatcher",
    "MailTransport",
    "MemoryDispatcher",
    "ThreadPoolDispatcher",
]
