"""Three-frame handshake that authenticates an stcp connection."""

from __future__ import annotations

import json
import os
import socket
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from skywire.cipher import PubKey, SecKey, Sig, sign_payload, verify_pub_key_signed_payload

HANDSHAKE_TIMEOUT = 10.0
HANDSHAKE_NONCE_SIZE = 16
_MAX_FRAME_SIZE = 64 * 1024
_MAX_PORT = 0xFFFF


class HandshakeError(ConnectionError):
    """Raised when an stcp handshake fails."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"stcp handshake failed: {reason}")
        self.reason = reason


def is_handshake_error(err: BaseException) -> bool:
    """Whether an error occurred during a handshake."""
    return isinstance(err, HandshakeError)


@dataclass(frozen=True)
class Addr:
    """A public key and port pair; port 0 is written as '~'."""

    pk: PubKey = field(default_factory=PubKey)
    port: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.port <= _MAX_PORT:
            raise ValueError(f"invalid port: {self.port}")

    @classmethod
    def parse(cls, text: str) -> Addr:
        parts = text.split(":")
        if len(parts) != 2:
            raise ValueError(f"invalid addr: {text}")
        pk = PubKey.from_hex(parts[0])
        if parts[1] == "~":
            return cls(pk, 0)
        try:
            port = int(parts[1])
        except ValueError as exc:
            raise ValueError(f"invalid addr port: {text}") from exc
        return cls(pk, port)

    def __str__(self) -> str:
        port = "~" if self.port == 0 else str(self.port)
        return f"{self.pk}:{port}"

    def _to_dict(self) -> dict[str, Any]:
        return {"PK": self.pk.hex(), "Port": self.port}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Addr:
        return cls(PubKey.from_hex(data["PK"]), int(data["Port"]))


@dataclass
class Frame1:
    """First frame (responder to initiator): the challenge nonce."""

    nonce: bytes

    def _to_dict(self) -> dict[str, Any]:
        return {"Nonce": self.nonce.hex()}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Frame1:
        nonce = bytes.fromhex(data["Nonce"])
        if len(nonce) != HANDSHAKE_NONCE_SIZE:
            raise ValueError("invalid nonce size")
        return cls(nonce)


@dataclass
class Frame2:
    """Second frame (initiator to responder): signed addresses and nonce."""

    src_addr: Addr
    dst_addr: Addr
    nonce: bytes
    sig: Sig = field(default_factory=Sig)

    def _to_dict(self) -> dict[str, Any]:
        return {
            "SrcAddr": self.src_addr._to_dict(),
            "DstAddr": self.dst_addr._to_dict(),
            "Nonce": self.nonce.hex(),
            "Sig": self.sig.hex(),
        }

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Frame2:
        return cls(
            src_addr=Addr._from_dict(data["SrcAddr"]),
            dst_addr=Addr._from_dict(data["DstAddr"]),
            nonce=bytes.fromhex(data["Nonce"]),
            sig=Sig.from_hex(data["Sig"]),
        )

    def _signing_payload(self) -> bytes:
        unsigned = self._to_dict()
        unsigned["Sig"] = Sig().hex()
        return _encode(unsigned)

    def sign(self, src_sk: SecKey) -> None:
        """Set the source public key from src_sk and sign the frame."""
        self.src_addr = Addr(src_sk.pub_key(), self.src_addr.port)
        self.sig = Sig()
        self.sig = sign_payload(self._signing_payload(), src_sk)

    def verify(self, nonce: bytes) -> None:
        """Check the nonce and the signature of the source public key."""
        if self.nonce != nonce:
            raise ValueError("unexpected nonce")
        verify_pub_key_signed_payload(self.src_addr.pk, self.sig, self._signing_payload())


@dataclass
class Frame3:
    """Third frame (responder to initiator): acceptance or rejection."""

    ok: bool
    err_msg: str = ""

    def _to_dict(self) -> dict[str, Any]:
        return {"OK": self.ok, "ErrMsg": self.err_msg}

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Frame3:
        return cls(bool(data["OK"]), str(data.get("ErrMsg", "")))


Handshake = Callable[[socket.socket, float], "tuple[Addr, Addr]"]


def _encode(obj: dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode() + b"\n"


def _set_remaining(sock: socket.socket, deadline: float) -> None:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("i/o timeout")
    sock.settimeout(remaining)


def _write_frame(sock: socket.socket, obj: dict[str, Any], deadline: float) -> None:
    _set_remaining(sock, deadline)
    sock.sendall(_encode(obj))


def _read_frame(sock: socket.socket, deadline: float) -> dict[str, Any]:
    buf = bytearray()
    while True:
        _set_remaining(sock, deadline)
        byte = sock.recv(1)
        if not byte:
            raise ConnectionError("unexpected EOF")
        if byte == b"\n":
            break
        buf += byte
        if len(buf) > _MAX_FRAME_SIZE:
            raise ValueError("frame too large")
    data = json.loads(buf)
    if not isinstance(data, dict):
        raise ValueError("frame is not an object")
    return data


def _with_deadline(origin: Handshake) -> Handshake:
    def handshake(sock: socket.socket, deadline: float) -> tuple[Addr, Addr]:
        try:
            return origin(sock, deadline)
        except Exception as exc:
            raise HandshakeError(str(exc) or type(exc).__name__) from exc
        finally:
            try:
                sock.settimeout(None)
            except OSError:
                pass

    return handshake


def initiator_handshake(l_sk: SecKey, local_addr: Addr, remote_addr: Addr) -> Handshake:
    """Handshake logic of the dialing side."""

    def run(sock: socket.socket, deadline: float) -> tuple[Addr, Addr]:
        f1 = Frame1._from_dict(_read_frame(sock, deadline))
        f2 = Frame2(src_addr=local_addr, dst_addr=remote_addr, nonce=f1.nonce)
        f2.sign(l_sk)
        _write_frame(sock, f2._to_dict(), deadline)
        f3 = Frame3._from_dict(_read_frame(sock, deadline))
        if not f3.ok:
            raise ConnectionError(f"handshake rejected: {f3.err_msg}")
        return local_addr, remote_addr

    return _with_deadline(run)


def responder_handshake(check_f2: Callable[[Frame2], None]) -> Handshake:
    """Handshake logic of the accepting side.

    check_f2 raises to reject the initiator's frame.
    """

    def run(sock: socket.socket, deadline: float) -> tuple[Addr, Addr]:
        nonce = os.urandom(HANDSHAKE_NONCE_SIZE)
        _write_frame(sock, Frame1(nonce)._to_dict(), deadline)
        f2 = Frame2._from_dict(_read_frame(sock, deadline))
        f2.verify(nonce)
        try:
            check_f2(f2)
        except Exception as exc:
            try:
                _write_frame(sock, Frame3(False, str(exc))._to_dict(), deadline)
            except (OSError, TimeoutError):
                pass
            raise
        _write_frame(sock, Frame3(True)._to_dict(), deadline)
        return f2.dst_addr, f2.src_addr

    return _with_deadline(run)