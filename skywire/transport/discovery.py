"""Transport discovery clients."""

from __future__ import annotations

import abc
import threading
import time
import uuid
from dataclasses import replace

from skywire.cipher import PubKey
from skywire.transport.entry import EntryWithStatus, SignedEntry, Status


class TransportNotFoundError(LookupError):
    """Raised when a transport is not known to the discovery."""

    def __init__(self, message: str = "transport not found") -> None:
        super().__init__(message)


class DiscoveryClient(abc.ABC):
    """Operations offered by a transport discovery."""

    @abc.abstractmethod
    def register_transports(self, *args: SignedEntry) -> None:
        """Register the given signed entries."""

    @abc.abstractmethod
    def get_transport_by_id(self, tp_id: uuid.UUID) -> EntryWithStatus:
        """Look up a transport by its ID."""

    @abc.abstractmethod
    def get_transports_by_edge(self, pk: PubKey) -> list[EntryWithStatus]:
        """All transports that have the given key as an edge."""

    @abc.abstractmethod
    def update_statuses(self, *args: Status) -> list[EntryWithStatus]:
        """Update the up/down state of transports."""


class MockDiscoveryClient(DiscoveryClient):
    """An in-memory transport discovery."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[uuid.UUID, EntryWithStatus] = {}

    def register_transports(self, *args: SignedEntry) -> None:
        """Store each entry as up; set its registration time on the signed entry."""
        with self._lock:
            for signed in args:
                stored = EntryWithStatus(
                    entry=signed.entry,
                    is_up=True,
                    registered=int(time.time()),
                    statuses=(True, True),
                )
                self._entries[signed.entry.id] = stored
                signed.registered = stored.registered

    def get_transport_by_id(self, tp_id: uuid.UUID) -> EntryWithStatus:
        with self._lock:
            found = self._entries.get(tp_id)
        if found is None:
            raise TransportNotFoundError()
        return replace(found)

    def get_transports_by_edge(self, pk: PubKey) -> list[EntryWithStatus]:
        with self._lock:
            return [
                replace(stored)
                for stored in self._entries.values()
                if stored.entry is not None and stored.entry.has_edge(pk)
            ]

    def update_statuses(self, *args: Status) -> list[EntryWithStatus]:
        """Apply the statuses; raise TransportNotFoundError for unknown IDs."""
        for status in args:
            stored = self.get_transport_by_id(status.id)
            stored.is_up = status.is_up
            with self._lock:
                self._entries[status.id] = stored
        return []