"""In-memory mapping table with atomic whole-table replacement.

Readers never lock: they grab the current snapshot reference, which is an
immutable view that is never mutated after publication. Writers build a
complete new dict and swap the reference under a lock, so a lookup sees
either the old table or the new one in full.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

_EMPTY: Mapping[str, str] = MappingProxyType({})


class MappingTable:
    """Key to value table shared between lookup and reload paths."""

    def __init__(self, entries: Iterable[tuple[str, str]] | Mapping[str, str] | None = None) -> None:
        self._write_lock = threading.Lock()
        self._entries: Mapping[str, str] = _EMPTY
        if entries is not None:
            self.replace(entries)

    def lookup(self, key: str) -> tuple[str, bool]:
        """Return ``(value, True)``, or ``("", False)`` when *key* is absent."""
        entries = self._entries
        value = entries.get(key)
        if value is None:
            return "", False
        return value, True

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._entries.get(key, default)

    def replace(self, entries: Iterable[tuple[str, str]] | Mapping[str, str]) -> int:
        """Install a complete new set of entries, displacing the old set.

        Later duplicates of a key win. Returns the number of entries now
        installed.
        """
        items = entries.items() if isinstance(entries, Mapping) else entries
        fresh = MappingProxyType(dict(items))
        with self._write_lock:
            self._entries = fresh
        return len(fresh)

    def snapshot(self) -> Mapping[str, str]:
        """Read-only view of the table as of this call."""
        return self._entries

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
