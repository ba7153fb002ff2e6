"""Keys, signatures and payload signing over the secp256k1 curve."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

PUB_KEY_SIZE = 33
SEC_KEY_SIZE = 32
SIG_SIZE = 65

_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_G = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)


class CipherError(ValueError):
    """Raised for invalid keys, signatures or failed verification."""


def _decode_hex(text: str, size: int, what: str) -> bytes:
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise CipherError(f"invalid {what} hex: {exc}") from exc
    if len(raw) != size:
        raise CipherError(f"invalid {what} length: {len(raw)}")
    return raw


@dataclass(frozen=True, order=True)
class PubKey:
    """A compressed secp256k1 public key; all zeros is the null key."""

    data: bytes = bytes(PUB_KEY_SIZE)

    def __post_init__(self) -> None:
        if len(self.data) != PUB_KEY_SIZE:
            raise CipherError(f"invalid public key length: {len(self.data)}")

    @classmethod
    def from_hex(cls, text: str) -> PubKey:
        if not text or set(text) == {"0"}:
            return cls()
        raw = _decode_hex(text, PUB_KEY_SIZE, "public key")
        try:
            ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), raw)
        except ValueError as exc:
            raise CipherError(f"invalid public key: {exc}") from exc
        return cls(raw)

    def hex(self) -> str:
        return self.data.hex()

    def is_null(self) -> bool:
        return not any(self.data)

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True)
class SecKey:
    """A secp256k1 secret key; all zeros is the null key."""

    data: bytes = bytes(SEC_KEY_SIZE)

    def __post_init__(self) -> None:
        if len(self.data) != SEC_KEY_SIZE:
            raise CipherError(f"invalid secret key length: {len(self.data)}")

    @classmethod
    def from_hex(cls, text: str) -> SecKey:
        if not text:
            return cls()
        return cls(_decode_hex(text, SEC_KEY_SIZE, "secret key"))

    def hex(self) -> str:
        return self.data.hex()

    def is_null(self) -> bool:
        return not any(self.data)

    def pub_key(self) -> PubKey:
        return _public_from_private(self._private_key())

    def _private_key(self) -> ec.EllipticCurvePrivateKey:
        if self.is_null():
            raise CipherError("null secret key")
        try:
            return ec.derive_private_key(int.from_bytes(self.data, "big"), ec.SECP256K1())
        except ValueError as exc:
            raise CipherError(f"invalid secret key: {exc}") from exc

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        return self.hex()


@dataclass(frozen=True)
class Sig:
    """A recoverable signature: r (32 bytes), s (32 bytes), recovery id (1 byte)."""

    data: bytes = bytes(SIG_SIZE)

    def __post_init__(self) -> None:
        if len(self.data) != SIG_SIZE:
            raise CipherError(f"invalid signature length: {len(self.data)}")

    @classmethod
    def from_hex(cls, text: str) -> Sig:
        if not text:
            return cls()
        return cls(_decode_hex(text, SIG_SIZE, "signature"))

    def hex(self) -> str:
        return self.data.hex()

    def is_null(self) -> bool:
        return not any(self.data)

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        return self.hex()


def _public_from_private(key: ec.EllipticCurvePrivateKey) -> PubKey:
    raw = key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
    )
    return PubKey(raw)


def _secret_from_private(key: ec.EllipticCurvePrivateKey) -> SecKey:
    return SecKey(key.private_numbers().private_value.to_bytes(SEC_KEY_SIZE, "big"))


def generate_key_pair() -> tuple[PubKey, SecKey]:
    """Generate a fresh random key pair."""
    key = ec.generate_private_key(ec.SECP256K1())
    return _public_from_private(key), _secret_from_private(key)


def generate_deterministic_key_pair(seed: bytes) -> tuple[PubKey, SecKey]:
    """Derive a key pair that depends only on the given seed."""
    digest = hashlib.sha256(bytes(seed)).digest()
    while not 0 < int.from_bytes(digest, "big") < _N:
        digest = hashlib.sha256(digest).digest()
    sk = SecKey(digest)
    return sk.pub_key(), sk


def _point_add(a, b):
    if a is None:
        return b
    if b is None:
        return a
    if a[0] == b[0]:
        if (a[1] + b[1]) % _P == 0:
            return None
        lam = 3 * a[0] * a[0] * pow(2 * a[1], -1, _P) % _P
    else:
        lam = (b[1] - a[1]) * pow(b[0] - a[0], -1, _P) % _P
    x = (lam * lam - a[0] - b[0]) % _P
    return x, (lam * (a[0] - x) - a[1]) % _P


def _point_mul(k: int, point):
    result = None
    while k:
        if k & 1:
            result = _point_add(result, point)
        point = _point_add(point, point)
        k >>= 1
    return result


def _recover(r: int, s: int, z: int, recid: int) -> bytes | None:
    if r >= _P:
        return None
    beta = pow((r * r * r + 7) % _P, (_P + 1) // 4, _P)
    if (beta * beta - (r * r * r + 7)) % _P:
        return None
    y = beta if beta % 2 == (recid & 1) else _P - beta
    r_inv = pow(r, -1, _N)
    q = _point_add(
        _point_mul(s * r_inv % _N, (r, y)),
        _point_mul(-z * r_inv % _N, _G),
    )
    if q is None:
        return None
    return bytes([2 + (q[1] & 1)]) + q[0].to_bytes(32, "big")


def _digest_int(payload: bytes) -> int:
    return int.from_bytes(hashlib.sha256(payload).digest(), "big")


def sign_payload(payload: bytes, sec_key: SecKey) -> Sig:
    """Sign the SHA-256 hash of a payload."""
    key = sec_key._private_key()
    pub = _public_from_private(key).data
    r, s = decode_dss_signature(key.sign(bytes(payload), ec.ECDSA(hashes.SHA256())))
    if s > _N // 2:
        s = _N - s
    z = _digest_int(bytes(payload))
    for recid in (0, 1):
        if _recover(r, s, z, recid) == pub:
            return Sig(r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([recid]))
    raise CipherError("failed to compute signature recovery id")


def verify_pub_key_signed_payload(pub_key: PubKey, sig: Sig, payload: bytes) -> None:
    """Check that a signature over a payload was made by a public key's owner."""
    raw = sig.data
    r = int.from_bytes(raw[:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    recid = raw[64]
    if not (0 < r < _N and 0 < s < _N) or recid > 1:
        raise CipherError("invalid signature")
    recovered = _recover(r, s, _digest_int(bytes(payload)), recid)
    if recovered is None or recovered != pub_key.data:
        raise CipherError("signature does not match public key")