"""In-process transport, for tests and for isolated contexts inside one process."""

from __future__ import annotations

import threading
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from warden_core.config.models import BroadcastConfig


class MemoryBus:
    """A shared channel that copies every message into each other endpoint's inbox."""

    _named: dict[str, MemoryBus] = {}
    _named_lock = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._inboxes: dict[int, deque[str]] = {}
        self._next_id = 0

    @classmethod
    def named(cls, channel: str) -> MemoryBus:
        """Return the bus registered under ``channel``, creating it on first use."""
        with cls._named_lock:
            bus = cls._named.get(channel)
            if bus is None:
                bus = cls._named[channel] = cls()
            return bus

    def connect(self) -> InMemoryTransport:
        with self._lock:
            endpoint_id = self._next_id
            self._next_id += 1
            self._inboxes[endpoint_id] = deque()
        return InMemoryTransport(self, endpoint_id)

    def _deliver(self, sender: int, message: str) -> None:
        with self._lock:
            for endpoint_id, inbox in self._inboxes.items():
                if endpoint_id != sender:
                    inbox.append(message)

    def _drain(self, endpoint_id: int) -> list[str]:
        with self._lock:
            inbox = self._inboxes.get(endpoint_id)
            if not inbox:
                return []
            messages = list(inbox)
            inbox.clear()
            return messages

    def _disconnect(self, endpoint_id: int) -> None:
        with self._lock:
            self._inboxes.pop(endpoint_id, None)

    @property
    def endpoints(self) -> int:
        with self._lock:
            return len(self._inboxes)


class InMemoryTransport:
    """One endpoint on a :class:`MemoryBus`."""

    def __init__(self, bus: MemoryBus, endpoint_id: int) -> None:
        self._bus = bus
        self._endpoint_id = endpoint_id

    @classmethod
    def from_config(cls, config: BroadcastConfig) -> InMemoryTransport:
        return MemoryBus.named(config.channel).connect()

    def send(self, message: str) -> None:
        self._bus._deliver(self._endpoint_id, message)

    def receive(self) -> list[str]:
        return self._bus._drain(self._endpoint_id)

    def close(self) -> None:
        self._bus._disconnect(self._endpoint_id)
