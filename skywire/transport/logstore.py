"""Per-transport traffic counters and stores that keep them."""

from __future__ import annotations

import abc
import json
import logging
import os
import struct
import threading
import uuid
from dataclasses import dataclass, field

log = logging.getLogger("transport")

_UINT64_MASK = (1 << 64) - 1
_BINARY = struct.Struct(">QQ")


@dataclass
class LogEntry:
    """Total bytes received and sent over a transport."""

    recv_bytes: int = 0
    sent_bytes: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def add_recv(self, n: int) -> None:
        with self._lock:
            self.recv_bytes = (self.recv_bytes + n) & _UINT64_MASK

    def add_sent(self, n: int) -> None:
        with self._lock:
            self.sent_bytes = (self.sent_bytes + n) & _UINT64_MASK

    def _snapshot(self) -> tuple[int, int]:
        with self._lock:
            return self.recv_bytes, self.sent_bytes

    def to_json(self) -> str:
        recv, sent = self._snapshot()
        return f'{{"recv":{recv},"sent":{sent}}}'

    @classmethod
    def from_json(cls, text: str | bytes) -> LogEntry:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("log entry is not an object")
        recv, sent = data.get("recv", 0), data.get("sent", 0)
        for value in (recv, sent):
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= _UINT64_MASK:
                raise ValueError(f"invalid byte count: {value!r}")
        return cls(recv_bytes=recv, sent_bytes=sent)

    def to_bytes(self) -> bytes:
        return _BINARY.pack(*self._snapshot())

    @classmethod
    def from_bytes(cls, data: bytes) -> LogEntry:
        if len(data) != _BINARY.size:
            raise ValueError(f"invalid log entry length: {len(data)}")
        recv, sent = _BINARY.unpack(data)
        return cls(recv_bytes=recv, sent_bytes=sent)


class LogEntryNotFoundError(LookupError):
    """Raised when no log entry is stored for a transport."""

    def __init__(self, message: str = "transport log entry not found") -> None:
        super().__init__(message)


class LogStore(abc.ABC):
    """Stores transport log entries."""

    @abc.abstractmethod
    def entry(self, tp_id: uuid.UUID) -> LogEntry:
        """The entry of a transport; raise LogEntryNotFoundError if missing."""

    @abc.abstractmethod
    def record(self, tp_id: uuid.UUID, entry: LogEntry) -> None:
        """Store the entry of a transport."""


class InMemoryLogStore(LogStore):
    """Keeps log entries in memory."""

    def __init__(self) -> None:
        self._entries: dict[uuid.UUID, LogEntry] = {}
        self._lock = threading.Lock()

    def entry(self, tp_id: uuid.UUID) -> LogEntry:
        with self._lock:
            found = self._entries.get(tp_id)
        if found is None:
            raise LogEntryNotFoundError()
        return found

    def record(self, tp_id: uuid.UUID, entry: LogEntry) -> None:
        with self._lock:
            self._entries[tp_id] = entry


class FileLogStore(LogStore):
    """Keeps each log entry as JSON in '<directory>/<id>.log'."""

    def __init__(self, directory: str) -> None:
        os.makedirs(directory, mode=0o700, exist_ok=True)
        self.directory = directory

    def _path(self, tp_id: uuid.UUID) -> str:
        return os.path.join(self.directory, f"{tp_id}.log")

    def entry(self, tp_id: uuid.UUID) -> LogEntry:
        path = self._path(tp_id)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except FileNotFoundError as exc:
            raise LogEntryNotFoundError(f"open: {exc}") from exc
        try:
            return LogEntry.from_json(raw.splitlines()[0] if raw else raw)
        except ValueError as exc:
            raise ValueError(f"json: {exc}") from exc

    def record(self, tp_id: uuid.UUID, entry: LogEntry) -> None:
        fd = os.open(self._path(tp_id), os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(entry.to_json() + "\n")