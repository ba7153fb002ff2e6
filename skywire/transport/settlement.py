"""Settlement handshake that registers a transport with the discovery."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Optional

from skywire.cipher import PubKey, SecKey, verify_pub_key_signed_payload
from skywire.transport.discovery import DiscoveryClient
from skywire.transport.entry import (
    Entry,
    SignedEntry,
    Status,
    make_transport_id,
    new_signed_entry,
    sort_edges,
)

log = logging.getLogger("transport")

_MAX_ENTRY_SIZE = 64 * 1024


class SettlementError(ConnectionError):
    """Raised when a settlement handshake fails."""


def make_entry(pk1: PubKey, pk2: PubKey, tp_type: str) -> Entry:
    """The public entry of a transport between two keys."""
    return Entry(
        id=make_transport_id(pk1, pk2, tp_type),
        edges=sort_edges(pk1, pk2),
        type=tp_type,
        public=True,
    )


def make_entry_from_conn(conn: Any) -> Entry:
    """The entry described by a connection's keys and network."""
    return make_entry(conn.local_pk, conn.remote_pk, conn.network)


def compare_entries(expected: Entry, received: Optional[Entry]) -> None:
    """Raise SettlementError if the received entry differs from the expected one."""
    if received is None:
        raise SettlementError("received entry is empty")
    if expected.id != received.id:
        raise SettlementError("received entry's 'tp_id' is not of expected")
    if tuple(expected.edges) != tuple(received.edges):
        raise SettlementError("received entry's 'edges' is not of expected")
    if expected.type != received.type:
        raise SettlementError("received entry's 'type' is not of expected")
    if expected.public != received.public:
        raise SettlementError("received entry's 'public' is not of expected")


def _read_exact(reader: Any, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = reader.read(size - len(buf))
        if not chunk:
            raise EOFError("unexpected EOF")
        buf += chunk
    return bytes(buf)


def _read_line(reader: Any) -> bytes:
    buf = bytearray()
    while True:
        byte = reader.read(1)
        if not byte:
            if buf:
                return bytes(buf)
            raise EOFError("EOF")
        if byte == b"\n":
            return bytes(buf)
        buf += byte
        if len(buf) > _MAX_ENTRY_SIZE:
            raise ValueError("entry too large")


def receive_and_verify_entry(reader: Any, expected: Entry, remote_pk: PubKey) -> SignedEntry:
    """Read a signed entry, check it against the expected one and its remote signature."""
    try:
        data = json.loads(_read_line(reader))
        if not isinstance(data, dict):
            raise ValueError("entry is not an object")
        received = SignedEntry.from_dict(data)
    except (ValueError, KeyError, EOFError, OSError) as exc:
        raise SettlementError(f"failed to read entry: {exc}") from exc
    compare_entries(expected, received.entry)
    sig = received.signature(remote_pk)
    if sig is None:
        raise SettlementError("invalid remote signature")
    verify_pub_key_signed_payload(remote_pk, sig, received.entry.to_binary())
    return received


HandshakeFunc = Callable[[DiscoveryClient, Any, SecKey], None]


class SettlementHS:
    """A settlement handshake; run it with do()."""

    def __init__(self, handshake: HandshakeFunc) -> None:
        self._handshake = handshake

    def __call__(self, dc: DiscoveryClient, conn: Any, sk: SecKey) -> None:
        self._handshake(dc, conn, sk)

    def do(
        self, dc: DiscoveryClient, conn: Any, sk: SecKey, timeout: Optional[float] = None
    ) -> None:
        """Run the handshake; raise TimeoutError if it takes longer than timeout seconds."""
        outcome: list[BaseException] = []

        def run() -> None:
            try:
                self._handshake(dc, conn, sk)
            except BaseException as exc:
                outcome.append(exc)

        worker = threading.Thread(target=run, daemon=True)
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            raise TimeoutError("context deadline exceeded")
        if outcome:
            raise outcome[0]


def _initiate(dc: DiscoveryClient, conn: Any, sk: SecKey) -> None:
    entry = make_entry_from_conn(conn)
    succeeded = False
    try:
        try:
            signed = new_signed_entry(entry, conn.local_pk, sk)
        except ValueError as exc:
            raise SettlementError("failed to sign entry") from exc
        try:
            conn.write(json.dumps(signed.to_dict()).encode() + b"\n")
        except OSError as exc:
            raise SettlementError(f"failed to write entry: {exc}") from exc
        try:
            accepted = _read_exact(conn, 1)
        except (OSError, EOFError) as exc:
            raise SettlementError(f"failed to read response: {exc}") from exc
        if accepted[0] == 0:
            raise SettlementError("transport settlement rejected by remote")
        succeeded = True
    finally:
        try:
            dc.update_statuses(Status(id=entry.id, is_up=succeeded))
        except Exception as exc:
            log.error("Failed to update statuses: %s", exc)


def _respond(dc: DiscoveryClient, conn: Any, sk: SecKey) -> None:
    entry = make_entry_from_conn(conn)
    received = receive_and_verify_entry(conn, entry, conn.remote_pk)
    if not received.sign(conn.local_pk, sk):
        raise SettlementError("failed to sign received entry")
    try:
        dc.register_transports(received)
    except Exception as exc:
        log.error("Failed to register transports: %s", exc)
    try:
        conn.write(b"\x01")
    except OSError as exc:
        raise SettlementError(
            f"failed to accept transport settlement: write failed: {exc}"
        ) from exc


def make_settlement_hs(init: bool) -> SettlementHS:
    """The initiating (init true) or responding settlement handshake."""
    return SettlementHS(_initiate if init else _respond)