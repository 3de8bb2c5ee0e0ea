from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Protocol


class KeyValueStorage(Protocol):
    """Byte-oriented key-value primitives supplied by the host."""

    def get(self, key: bytes) -> Optional[bytes]: ...

    def set(self, key: bytes, value: bytes) -> None: ...

    def remove(self, key: bytes) -> None: ...

    def has(self, key: bytes) -> bool: ...


class MemoryStorage:
    """Dict-backed storage. Each instance is fully independent."""

    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(bytes(key))

    def set(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._data.pop(bytes(key), None)

    def has(self, key: bytes) -> bool:
        return bytes(key) in self._data

    def __len__(self) -> int:
        return len(self._data)


class BufferedStorage:
    """
    Write overlay over another storage.

    - Reads see pending writes first, then fall through to `inner`.
    - `commit()` flushes pending writes/removals to `inner` in order of key.
    - `discard()` drops everything pending.

    Gives one call all-or-nothing semantics: nothing reaches `inner`
    unless the call completes.
    """

    def __init__(self, inner: KeyValueStorage) -> None:
        self._inner = inner
        self._pending: Dict[bytes, Optional[bytes]] = {}  # None marks a removal

    def get(self, key: bytes) -> Optional[bytes]:
        key = bytes(key)
        if key in self._pending:
            return self._pending[key]
        return self._inner.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self._pending[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._pending[bytes(key)] = None

    def has(self, key: bytes) -> bool:
        key = bytes(key)
        if key in self._pending:
            return self._pending[key] is not None
        return self._inner.has(key)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def commit(self) -> None:
        for key in sorted(self._pending):
            value = self._pending[key]
            if value is None:
                self._inner.remove(key)
            else:
                self._inner.set(key, value)
        self._pending.clear()

    def discard(self) -> None:
        self._pending.clear()


@contextmanager
def transaction(storage: KeyValueStorage) -> Iterator[BufferedStorage]:
    """Yield a buffered view of `storage`; commit only if the block succeeds."""
    buf = BufferedStorage(storage)
    try:
        yield buf
    except BaseException:
        buf.discard()
        raise
    buf.commit()
