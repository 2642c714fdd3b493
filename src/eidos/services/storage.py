"""Key-value blob storage abstractions."""

import threading
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from typing import Protocol

Blobs = Mapping[str, bytes | None]
Merge = Callable[[dict[str, bytes | None]], Blobs]


class BlobStorage(Protocol):
    """Persistence interface for opaque byte blobs stored under string keys."""

    def read(self, key: str) -> bytes | None:
        """Return the blob stored under a key, if present."""

    def write(self, entries: Blobs) -> None:
        """Apply a batch of writes atomically; a None value removes the key."""

    def update(self, keys: Collection[str], merge: Merge) -> None:
        """Read keys, pass them to merge, and write its result atomically.

        No other writer may change the keys between the read and the write.
        An exception raised by merge aborts the update without writing.
        """


@dataclass
class InMemoryBlobStorage(BlobStorage):
    """In-memory blob storage for tests and ephemeral sessions."""

    _blobs: dict[str, bytes]
    _lock: threading.Lock

    def __init__(self, blobs: Mapping[str, bytes] | None = None) -> None:
        self._blobs = dict(blobs or {})
        self._lock = threading.Lock()

    def read(self, key: str) -> bytes | None:
        """Return the stored blob for a key."""
        with self._lock:
            return self._blobs.get(key)

    def write(self, entries: Blobs) -> None:
        """Apply all entries under a single lock."""
        with self._lock:
            self._apply(entries)

    def update(self, keys: Collection[str], merge: Merge) -> None:
        """Run the read-merge-write cycle under a single lock."""
        with self._lock:
            self._apply(merge({key: self._blobs.get(key) for key in keys}))

    def keys(self) -> set[str]:
        """Return the keys currently stored."""
        with self._lock:
            return set(self._blobs)

    def _apply(self, entries: Blobs) -> None:
        for key, value in entries.items():
            if value is None:
                self._blobs.pop(key, None)
            else:
                self._blobs[key] = bytes(value)
