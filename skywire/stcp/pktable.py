"""Table associating public keys with TCP addresses."""

from __future__ import annotations

from typing import Mapping, Optional

from skywire.cipher import CipherError, PubKey


class PKTableError(ValueError):
    """Raised when a public key table file is invalid."""


class PKTable:
    """In-memory two-way mapping between public keys and TCP addresses."""

    def __init__(self, entries: Optional[Mapping[PubKey, str]] = None) -> None:
        self._entries: dict[PubKey, str] = dict(entries or {})
        self._reverse: dict[str, PubKey] = {addr: pk for pk, addr in self._entries.items()}

    @classmethod
    def from_file(cls, path: str) -> PKTable:
        """Load a table from a file of '<public key hex> <address>' lines."""
        entries: dict[PubKey, str] = {}
        with open(path, encoding="utf-8") as f:
            for line in f:
                fields = line.split()
                if len(fields) != 2:
                    raise PKTableError("pk file is invalid: each line should have two fields")
                try:
                    pk = PubKey.from_hex(fields[0])
                except CipherError as exc:
                    raise PKTableError(
                        f"pk file is invalid: each line should have two fields: {exc}"
                    ) from exc
                entries[pk] = fields[1]
        return cls(entries)

    def addr(self, pk: PubKey) -> Optional[str]:
        """The address of a public key, or None."""
        return self._entries.get(pk)

    def pub_key(self, addr: str) -> Optional[PubKey]:
        """The public key of an address, or None."""
        return self._reverse.get(addr)

    def count(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return self.count()