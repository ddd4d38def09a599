"""In-memory keyed stores for OAuth state.

Registered clients and issued access tokens live here for the lifetime of
the process. Stores are passed to the components that own them, so a
deployment can swap in something backed by an external key-value service.

Note: there is no locking. Callers address stores by freshly generated
unique keys and rely on dict operations being atomic under the GIL; a
multi-worker deployment needs an external transactional store instead.
"""

from typing import Generic, Iterator, Optional, TypeVar

V = TypeVar("V")


class MemoryStore(Generic[V]):
    """Process-local mapping with the get/put/contains surface."""

    def __init__(self):
        self._items: dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._items.get(key)

    def put(self, key: str, value: V) -> None:
        self._items[key] = value

    def contains(self, key: str) -> bool:
        return key in self._items

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)
