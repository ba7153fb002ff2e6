"""Transport entries, their signatures and transport identifiers."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from skywire.cipher import PubKey, SecKey, Sig, sign_payload

_NIL_UUID = uuid.UUID(int=0)


def sort_edges(key_a: PubKey, key_b: PubKey) -> tuple[PubKey, PubKey]:
    """Order two keys so that the least significant one comes first."""
    if int.from_bytes(key_a.data, "big") < int.from_bytes(key_b.data, "big"):
        return key_a, key_b
    return key_b, key_a


def make_transport_id(key_a: PubKey, key_b: PubKey, tp_type: str) -> uuid.UUID:
    """Derive a transport ID that is the same whichever order the keys come in."""
    first, second = sort_edges(key_a, key_b)
    data = first.data + second.data + tp_type.encode()
    raw = bytearray(hashlib.sha256(_NIL_UUID.bytes + data).digest()[:16])
    raw[6] &= 0x0F
    raw[8] = (raw[8] & 0x3F) | 0x80
    return uuid.UUID(bytes=bytes(raw))


def _pk_text(pk: PubKey) -> str:
    return "" if pk.is_null() else pk.hex()


def _sig_text(sig: Sig) -> str:
    return "" if sig.is_null() else sig.hex()


@dataclass
class Entry:
    """The unsigned description of a transport between two edges."""

    id: uuid.UUID = _NIL_UUID
    edges: tuple[PubKey, PubKey] = field(default_factory=lambda: (PubKey(), PubKey()))
    type: str = ""
    public: bool = False

    def set_edges(self, local_pk: PubKey, remote_pk: PubKey) -> None:
        """Set the edges and recompute the ID from them."""
        self.id = make_transport_id(local_pk, remote_pk, self.type)
        self.edges = sort_edges(local_pk, remote_pk)

    def remote_edge(self, local: PubKey) -> PubKey:
        """The edge that is not the given local key (the local key if both match)."""
        return next((pk for pk in self.edges if pk != local), local)

    def edge_index(self, pk: PubKey) -> Optional[int]:
        """Position of a key among the edges, or None."""
        for index, edge in enumerate(self.edges):
            if edge == pk:
                return index
        return None

    def has_edge(self, edge: PubKey) -> bool:
        return edge in self.edges

    def to_binary(self) -> bytes:
        """ID, both edges and type, concatenated."""
        return self.id.bytes + b"".join(pk.data for pk in self.edges) + self.type.encode()

    def signature(self, sec_key: SecKey) -> Sig:
        """Sign the binary form of the entry."""
        return sign_payload(self.to_binary(), sec_key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "t_id": str(self.id),
            "edges": [_pk_text(pk) for pk in self.edges],
            "type": self.type,
            "public": self.public,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entry:
        edges = data.get("edges") or ["", ""]
        if len(edges) != 2:
            raise ValueError("entry must have exactly two edges")
        return cls(
            id=uuid.UUID(data["t_id"]) if data.get("t_id") else _NIL_UUID,
            edges=(PubKey.from_hex(edges[0] or ""), PubKey.from_hex(edges[1] or "")),
            type=data.get("type", ""),
            public=bool(data.get("public", False)),
        )

    def __str__(self) -> str:
        visibility = "public" if self.public else "private"
        return (
            f"visibility: {visibility}\n"
            f"\ttype: {self.type}\n"
            f"\tid: {self.id}\n"
            "\tedges:\n"
            f"\t\tedge 1: {self.edges[0]}\n"
            f"\t\tedge 2: {self.edges[1]}\n"
        )


def new_entry(local_pk: PubKey, remote_pk: PubKey, tp_type: str, public: bool) -> Entry:
    """Build an entry for a transport between two keys."""
    return Entry(
        id=make_transport_id(local_pk, remote_pk, tp_type),
        edges=sort_edges(local_pk, remote_pk),
        type=tp_type,
        public=public,
    )


@dataclass
class SignedEntry:
    """An entry with signatures ordered as its edges."""

    entry: Optional[Entry] = None
    signatures: list[Sig] = field(default_factory=lambda: [Sig(), Sig()])
    registered: int = 0

    def sign(self, pk: PubKey, sec_key: SecKey) -> bool:
        """Store the signature of sec_key in the slot of pk; False if pk is no edge."""
        index = self.entry.edge_index(pk)
        if index is None:
            return False
        self.signatures[index] = self.entry.signature(sec_key)
        return True

    def signature(self, pk: PubKey) -> Optional[Sig]:
        """The signature stored for pk, or None if pk is no edge."""
        index = self.entry.edge_index(pk)
        if index is None:
            return None
        return self.signatures[index]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "entry": self.entry.to_dict() if self.entry is not None else None,
            "signatures": [_sig_text(sig) for sig in self.signatures],
        }
        if self.registered:
            data["registered"] = self.registered
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SignedEntry:
        raw_entry = data.get("entry")
        sigs = data.get("signatures") or ["", ""]
        if len(sigs) != 2:
            raise ValueError("signed entry must have exactly two signatures")
        return cls(
            entry=Entry.from_dict(raw_entry) if raw_entry is not None else None,
            signatures=[Sig.from_hex(s or "") for s in sigs],
            registered=int(data.get("registered", 0)),
        )


def new_signed_entry(entry: Entry, pk: PubKey, sec_key: SecKey) -> SignedEntry:
    """Wrap an entry and sign it with the key of edge pk.

    Raises ValueError when pk is not an edge of the entry.
    """
    signed = SignedEntry(entry=entry)
    if not signed.sign(pk, sec_key):
        raise ValueError("public key is not an edge of the entry")
    return signed


@dataclass
class Status:
    """A transport's state as seen from one of its edges."""

    id: uuid.UUID
    is_up: bool = False
    updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"t_id": str(self.id), "is_up": self.is_up}
        if self.updated:
            data["updated"] = self.updated
        return data


@dataclass
class EntryWithStatus:
    """An entry together with the statuses reported by both edges."""

    entry: Optional[Entry] = None
    is_up: bool = False
    registered: int = 0
    statuses: tuple[bool, bool] = (False, False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry": self.entry.to_dict() if self.entry is not None else None,
            "is_up": self.is_up,
            "registered": self.registered,
            "statuses": list(self.statuses),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EntryWithStatus:
        raw_entry = data.get("entry")
        statuses = data.get("statuses") or [False, False]
        if len(statuses) != 2:
            raise ValueError("entry must have exactly two statuses")
        return cls(
            entry=Entry.from_dict(raw_entry) if raw_entry is not None else None,
            is_up=bool(data.get("is_up", False)),
            registered=int(data.get("registered", 0)),
            statuses=(bool(statuses[0]), bool(statuses[1])),
        )

    def __str__(self) -> str:
        state = "up" if self.is_up else "down"
        edge1 = str(bool(self.statuses[0])).lower()
        edge2 = str(bool(self.statuses[1])).lower()
        indented = str(self.entry).replace("\n\t", "\n\t\t")
        return (
            "entry:\n"
            f"\tregistered at: {self.registered}\n"
            f"\tstatus returned by edge 1: {edge1}\n"
            f"\tstatus returned by edge 2: {edge2}\n"
            f"\ttransport: {state}\n"
            f"\ttransport info: \n\t\t{indented}"
        )