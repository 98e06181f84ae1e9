"""Lazily recomputed cache slot with a dirty flag."""

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CacheElement(Generic[T]):
    """Holds one derived quantity and recomputes it on demand.

    The element starts dirty. ``get()`` runs ``update`` only when the element
    is dirty; ``mark_dirty()`` only sets the flag, so invalidation is O(1).

    Args:
        data: Initial (placeholder) value, passed to the first update.
        update: Callable ``update(data) -> data`` producing the fresh value.
            It may fill ``data`` in place and return it.
        name: Used in log and error messages.
    """

    __slots__ = ('data', '_update', 'name', 'dirty', 'update_count')

    def __init__(self, data: T, update: Callable[[T], T], name: str = "cache") -> None:
        self.data = data
        self._update = update
        self.name = name
        self.dirty = True
        self.update_count = 0

    def get(self) -> T:
        if self.dirty:
            self.data = self._update(self.data)
            self.dirty = False
            self.update_count += 1
            logger.debug(f"Recomputed {self.name} (update #{self.update_count})")
        return self.data

    def peek(self, check: bool = False) -> T:
        """Return the stored value without refreshing it.

        Raises:
            RuntimeError: If ``check`` is set and the element is dirty.
        """
        if check and self.dirty:
            raise RuntimeError(f"Cache element {self.name!r} read while stale")
        return self.data

    def mark_dirty(self) -> None:
        self.dirty = True

    def __repr__(self) -> str:
        return f"CacheElement({self.name!r}, dirty={self.dirty}, update_count={self.update_count})"
