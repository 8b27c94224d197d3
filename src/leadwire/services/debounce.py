"""Per-sender debounce gate and the deferred webhook queue.

The gate is a short-lived key per normalised sender phone, opened with an
atomic set-if-absent. While it is open, further deliveries from the same
sender are parked on a bounded FIFO queue instead of being classified again.
"""

from __future__ import annotations

from typing import Any

from leadwire.infra.kv import KeyValueStore
from leadwire.infra.time import Clock, system_clock

GATE_KEY_PREFIX = "webhook:debounce:"
QUEUE_KEY = "webhook:queue"

DEFAULT_DEBOUNCE_SECONDS = 5
DEFAULT_MAX_QUEUE_SIZE = 1000


def gate_key(sender_phone: str) -> str:
    return f"{GATE_KEY_PREFIX}{sender_phone}"


class DebounceGate:
    """Suppression window keyed by sender.

    Args:
        store: Shared key-value store.
        ttl_seconds: Window length.
        clock: Epoch-seconds source recorded in the gate entry.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = DEFAULT_DEBOUNCE_SECONDS,
        clock: Clock = system_clock,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def try_acquire(self, sender_phone: str) -> bool:
        """Open the window for sender_phone.

        Returns:
            True if this call opened the window (process now), False if a
            window was already open (defer).
        """
        entry = {
            "sender_phone": sender_phone,
            "expires_at": self._clock() + self._ttl,
        }
        return self._store.set_if_absent(gate_key(sender_phone), entry, self._ttl)


class DeferredQueue:
    """Bounded FIFO of payloads that arrived inside a debounce window.

    Past max_size the oldest entries are evicted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_size: int = DEFAULT_MAX_QUEUE_SIZE,
        clock: Clock = system_clock,
    ) -> None:
        self._store = store
        self._max_size = max_size
        self._clock = clock

    def enqueue(self, sender_phone: str, payload: dict[str, Any]) -> int:
        """Append a payload; returns its 1-based position (the queue length)."""
        entry = {
            "sender_phone": sender_phone,
            "queued_at": self._clock(),
            "payload": payload,
        }
        return self._store.push_back(QUEUE_KEY, entry, self._max_size)

    def drain(self) -> list[dict[str, Any]]:
        """Remove and return every queued entry, oldest first."""
        return self._store.drain_list(QUEUE_KEY)

    def size(self) -> int:
        return self._store.list_length(QUEUE_KEY)
