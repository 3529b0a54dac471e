"""Owned references used by the sequencer to track slot roles."""

from typing import Callable, Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class RoleReference(Generic[T]):
    """
    A single-value cell that reports every change of its value.

    The change hook receives (previous, current) after the value is
    assigned. Assigning the value already held does nothing.
    """

    def __init__(
        self,
        initial: Optional[T] = None,
        changed: Optional[Callable[[Optional[T], Optional[T]], None]] = None,
    ):
        self._value = initial
        self._changed = changed

    def __repr__(self) -> str:
        return f"RoleReference({self._value!r})"

    def get(self) -> Optional[T]:
        return self._value

    def set(self, value: Optional[T]) -> None:
        previous = self._value
        if previous is value:
            return
        self._value = value
        if self._changed:
            self._changed(previous, value)

    def clear(self) -> None:
        self.set(None)

    def take(self) -> Optional[T]:
        """Remove and return the value without running the change hook."""
        value, self._value = self._value, None
        return value


class EndingSlots(Generic[T]):
    """
    Identity-based multiset of items being drained.

    The `added` hook runs synchronously for each added item.
    """

    def __init__(self, added: Optional[Callable[[T], None]] = None):
        self._items: List[T] = []
        self._added = added

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        # iterate over a snapshot so hooks may add or remove items
        return iter(list(self._items))

    def __contains__(self, item: object) -> bool:
        return any(existing is item for existing in self._items)

    def add(self, item: T) -> None:
        self._items.append(item)
        if self._added:
            self._added(item)

    def remove(self, item: T) -> None:
        for idx, existing in enumerate(self._items):
            if existing is item:
                del self._items[idx]
                return
        raise KeyError(item)
