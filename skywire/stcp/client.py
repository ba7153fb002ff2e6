"""Authenticated TCP connections addressed by public key and port."""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Callable, Optional

from skywire.cipher import PubKey, SecKey
from skywire.stcp.handshake import (
    HANDSHAKE_TIMEOUT,
    Addr,
    Frame2,
    Handshake,
    initiator_handshake,
    is_handshake_error,
    responder_handshake,
)
from skywire.stcp.pktable import PKTable
from skywire.stcp.porter import Porter

_ACCEPT_POLL = 0.5


class ClosedError(ConnectionError):
    """Raised on use of a closed client or listener."""

    def __init__(self, message: str = "read/write on closed pipe") -> None:
        super().__init__(message)


class Conn:
    """A handshaken TCP connection with public key addresses."""

    def __init__(
        self,
        sock: socket.socket,
        local_addr: Addr,
        remote_addr: Addr,
        free_port: Optional[Callable[[], None]] = None,
    ) -> None:
        self._sock = sock
        self.local_addr = local_addr
        self.remote_addr = remote_addr
        self._free_port = free_port

    def read(self, size: int) -> bytes:
        """Read up to size bytes; empty at end of stream."""
        return self._sock.recv(size)

    def read_exactly(self, size: int) -> bytes:
        """Read exactly size bytes or raise EOFError."""
        buf = bytearray()
        while len(buf) < size:
            chunk = self._sock.recv(size - len(buf))
            if not chunk:
                raise EOFError("unexpected EOF")
            buf += chunk
        return bytes(buf)

    def write(self, data: bytes) -> int:
        self._sock.sendall(data)
        return len(data)

    def close(self) -> None:
        if self._free_port is not None:
            self._free_port()
        self._sock.close()

    def __enter__(self) -> Conn:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _new_conn(
    sock: socket.socket,
    deadline: float,
    hs: Handshake,
    free_port: Optional[Callable[[], None]],
) -> Conn:
    try:
        l_addr, r_addr = hs(sock, deadline)
    except BaseException:
        sock.close()
        if free_port is not None:
            free_port()
        raise
    return Conn(sock, l_addr, r_addr, free_port)


class Listener:
    """Hands connections introduced by a client over to accept()."""

    def __init__(self, l_addr: Addr, free_port: Callable[[], None]) -> None:
        self.addr = l_addr
        self._free_port = free_port
        self._cond = threading.Condition()
        self._pending: Optional[Conn] = None
        self._closed = False

    def introduce(self, conn: Conn) -> None:
        """Pass a connection to accept(); block until taken or closed."""
        with self._cond:
            while self._pending is not None and not self._closed:
                self._cond.wait()
            if self._closed:
                raise ClosedError()
            self._pending = conn
            self._cond.notify_all()
            while self._pending is conn and not self._closed:
                self._cond.wait()
            if self._pending is conn:
                self._pending = None
                raise ClosedError()

    def accept(self) -> Conn:
        """Wait for the next introduced connection."""
        with self._cond:
            while self._pending is None and not self._closed:
                self._cond.wait()
            if self._closed:
                raise ClosedError()
            conn = self._pending
            self._pending = None
            self._cond.notify_all()
            return conn

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        self._free_port()

    def __enter__(self) -> Listener:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _split_host_port(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    return host.strip("[]"), int(port)


class Client:
    """Dials and serves stcp connections for one local key pair."""

    def __init__(
        self,
        pk: PubKey,
        sk: SecKey,
        table: Optional[PKTable] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._log = log or logging.getLogger("stcp")
        self._lpk = pk
        self._lsk = sk
        self._table = table if table is not None else PKTable()
        self._porter = Porter()
        self._ltcp: Optional[socket.socket] = None
        self._listeners: dict[int, Listener] = {}
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def tcp_address(self) -> Optional[str]:
        """The 'host:port' the client serves on, or None."""
        if self._ltcp is None:
            return None
        host, port = self._ltcp.getsockname()[:2]
        return f"{host}:{port}"

    def serve(self, tcp_addr: str) -> None:
        """Listen on a TCP address and accept incoming connections in the background."""
        if self._ltcp is not None:
            raise RuntimeError("already listening")
        host, port = _split_host_port(tcp_addr)
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        ltcp = socket.create_server((host, port), family=family)
        ltcp.settimeout(_ACCEPT_POLL)
        self._ltcp = ltcp
        self._log.info("listening on tcp addr: %s", self.tcp_address)
        threading.Thread(target=self._serve_loop, daemon=True).start()

    def _serve_loop(self) -> None:
        while True:
            try:
                self._accept_tcp_conn()
            except socket.timeout:
                continue
            except Exception as exc:
                self._log.warning("failed to accept incoming connection: %s", exc)
                if not is_handshake_error(exc):
                    self._log.warning("stopped serving stcp")
                    return

    def _accept_tcp_conn(self) -> None:
        if self._done.is_set() or self._ltcp is None:
            raise ClosedError()
        tcp_conn, _ = self._ltcp.accept()
        found: list[Listener] = []

        def check(f2: Frame2) -> None:
            with self._lock:
                lis = self._listeners.get(f2.dst_addr.port)
            if lis is None:
                raise ValueError("not listening on given port")
            found.append(lis)

        hs = responder_handshake(check)
        conn = _new_conn(tcp_conn, time.monotonic() + HANDSHAKE_TIMEOUT, hs, None)
        try:
            found[0].introduce(conn)
        except ClosedError:
            conn.close()
            self._log.warning("listener on port %d closed, dropping connection",
                              conn.local_addr.port)

    def dial(self, r_pk: PubKey, r_port: int) -> Conn:
        """Connect to the given public key and port."""
        if self._done.is_set():
            raise ClosedError()
        tcp_addr = self._table.addr(r_pk)
        if tcp_addr is None:
            raise LookupError(f"pk table: entry of {r_pk} does not exist")
        sock = socket.create_connection(_split_host_port(tcp_addr))
        try:
            l_port, free_port = self._porter.reserve_ephemeral()
        except BaseException:
            sock.close()
            raise
        hs = initiator_handshake(self._lsk, Addr(self._lpk, l_port), Addr(r_pk, r_port))
        return _new_conn(sock, time.monotonic() + HANDSHAKE_TIMEOUT, hs, free_port)

    def listen(self, l_port: int) -> Listener:
        """Create a listener on a local port; serve() must run for it to receive."""
        if self._done.is_set():
            raise ClosedError()
        free_port = self._porter.reserve(l_port)
        if free_port is None:
            raise ValueError("port is already occupied")

        def release() -> None:
            with self._lock:
                if self._listeners.get(l_port) is lis:
                    del self._listeners[l_port]
            free_port()

        lis = Listener(Addr(self._lpk, l_port), release)
        with self._lock:
            self._listeners[l_port] = lis
        return lis

    def close(self) -> None:
        if self._done.is_set():
            return
        self._done.set()
        if self._ltcp is not None:
            try:
                self._ltcp.close()
            except OSError:
                pass
        with self._lock:
            listeners = list(self._listeners.values())
        for lis in listeners:
            lis.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()