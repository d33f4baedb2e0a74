from collections.abc import Hashable, Iterator
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class DocumentStore(Generic[K, V]):
    """Per-key snapshot table with last-write-wins semantics.

    Values are swapped in whole; readers holding a previous value keep a
    consistent snapshot. Only the owning component writes.
    """

    def __init__(self) -> None:
        self._entries: dict[K, V] = {}

    def get(self, key: K) -> V | None:
        return self._entries.get(key)

    def put(self, key: K, value: V) -> V | None:
        previous = self._entries.get(key)
        self._entries[key] = value
        return previous

    def pop(self, key: K) -> V | None:
        return self._entries.pop(key, None)

    def keys(self) -> list[K]:
        return list(self._entries)

    def values(self) -> list[V]:
        return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._entries))
