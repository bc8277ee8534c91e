"""Best-effort send telemetry.

Counters are emitted through a :class:`StatsClient`. Emission is
fire-and-forget: :func:`emit_increment` swallows every client failure so
telemetry can never fail or slow down a send.

Two clients are bundled:

- :class:`MemoryStats`: thread-safe in-process counters (tests, CLI).
- :class:`DogStatsdClient`: UDP datagrams in the DogStatsD text format.

Examples:
    >>> stats = MemoryStats()
    >>> emit_increment(stats, "mail.send", tags=("caller:app.views/42",))
    >>> stats.get("mail.send", tags=("caller:app.views/42",))
    1
"""

from __future__ import annotations

import logging
import socket
import threading
from collections import Counter
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mailcraft.exceptions import MailConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

#: Counter incremented once per send attempt.
SEND_METRIC = "mail.send"

# Deep defense: DogStatsD datagrams above this size are dropped by agents
_MAX_DATAGRAM_SIZE = 8192


@runtime_checkable
class StatsClient(Protocol):
    """Counter sink used for send telemetry."""

    def increment(self, name: str, value: int = 1, tags: Sequence[str] = ()) -> None:
        """Add ``value`` to the counter ``name`` tagged with ``tags``."""
        ...


class MemoryStats:
    """Thread-safe in-process counters keyed by name and tags."""

    def __init__(self) -> None:
        """Initialize MemoryStats."""
        self._lock = threading.Lock()
        self._counters: Counter[tuple[str, tuple[str, ...]]] = Counter()

    def increment(self, name: str, value: int = 1, tags: Sequence[str] = ()) -> None:
        """Add ``value`` to the counter ``name`` tagged with ``tags``."""
        key = (name, tuple(sorted(tags)))
        with self._lock:
            self._counters[key] += value

    def get(self, name: str, tags: Sequence[str] = ()) -> int:
        """Return the counter value for an exact name and tag set."""
        with self._lock:
            return self._counters[(name, tuple(sorted(tags)))]

    def total(self, name: str) -> int:
        """Return the counter value for ``name`` summed over all tags."""
        with self._lock:
            return sum(count for (key, _), count in self._counters.items() if key == name)

    def reset(self) -> None:
        """Drop every counter."""
        with self._lock:
            self._counters.clear()


class DogStatsdClient:
    """Send counters to a DogStatsD agent over UDP.

    Args:
        host: Agent host name.
        port: Agent UDP port.
        prefix: Prepended to every metric name (``prefix.name``).

    Raises:
        MailConfigurationError: If host is empty or port out of range.

    Examples:
        >>> client = DogStatsdClient(prefix="dw")
        >>> client.format_datagram("mail.send", 1, ["caller:app/1"])
        b'dw.mail.send:1|c|#caller:app/1'
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 8125, *, prefix: str = "") -> None:
        """Initialize DogStatsdClient."""
        if not host:
            raise MailConfigurationError("StatsD host is required")
        if not 0 < port < 65536:
            raise MailConfigurationError(f"StatsD port must be between 1 and 65535, got {port}")
        self._address = (host, port)
        self._prefix = prefix.rstrip(".")
        self._socket: socket.socket | None = None
        self._lock = threading.Lock()

    def format_datagram(self, name: str, value: int, tags: Sequence[str]) -> bytes:
        """Render one counter sample in DogStatsD text format."""
        metric = f"{self._prefix}.{name}" if self._prefix else name
        line = f"{metric}:{value}|c"
        if tags:
            line += "|#" + ",".join(tag.replace(",", "_") for tag in tags)
        return line.encode("utf-8")

    def increment(self, name: str, value: int = 1, tags: Sequence[str] = ()) -> None:
        """Send one counter sample; UDP send errors propagate."""
        datagram = self.format_datagram(name, value, tags)
        if len(datagram) > _MAX_DATAGRAM_SIZE:
            log.debug("Dropping oversized metric datagram (%d bytes)", len(datagram))
            return
        with self._lock:
            if self._socket is None:
                self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
                self._socket.setblocking(False)
            sock = self._socket
        sock.sendto(datagram, self._address)

    def close(self) -> None:
        """Close the UDP socket."""
        with self._lock:
            if self._socket is not None:
                self._socket.close()
                self._socket = None


def emit_increment(
    client: StatsClient | None,
    name: str,
    value: int = 1,
    tags: Sequence[str] = (),
) -> None:
    """Increment a counter, ignoring any failure of the client.

    Args:
        client: Stats client; nothing is emitted when None.
        name: Counter name.
        value: Increment.
        tags: Counter tags.
    """
    if client is None:
        return
    try:
        client.increment(name, value, tags)
    except Exception:  # noqa: BLE001
        log.debug("Metric %s not emitted", name, exc_info=True)


__all__ = [
    "SEND_METRIC",
    "DogStatsdClient",
    "MemoryStats",
    "StatsClient",
    "emit_increment",
]
