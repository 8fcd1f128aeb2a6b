"""Weak-reference registries for georeference listeners and providers.

The registry never owns the objects it holds. Entries whose referent has
been garbage collected are skipped while iterating and pruned afterwards.
"""

import weakref
from typing import Callable, Generic, Iterator, List, TypeVar

T = TypeVar("T")


class WeakRegistry(Generic[T]):
    """Ordered list of weak references with lazy pruning.

    Duplicates are allowed: registering the same object twice makes it
    appear twice during iteration.

    Example:
        >>> class Listener:
        ...     def on_georeference_updated(self, georeference):
        ...         print("updated")
        >>> registry = WeakRegistry()
        >>> listener = Listener()
        >>> registry.add(listener)
        >>> registry.notify(lambda item: item.on_georeference_updated(None))
        updated
        1
    """

    def __init__(self) -> None:
        self._entries: List[weakref.ReferenceType] = []

    def add(self, item: T) -> None:
        """Append a weak reference to item."""
        self._entries.append(weakref.ref(item))

    def remove(self, item: T) -> bool:
        """Remove one registration of item.

        Returns:
            True if a registration was found and removed.
        """
        for i, ref in enumerate(self._entries):
            if ref() is item:
                del self._entries[i]
                return True
        return False

    def __len__(self) -> int:
        return sum(1 for ref in self._entries if ref() is not None)

    def __contains__(self, item: object) -> bool:
        return any(ref() is item for ref in self._entries)

    def live(self) -> Iterator[T]:
        """Iterate over the live referents, pruning dead entries afterwards."""
        for ref in list(self._entries):
            item = ref()
            if item is not None:
                yield item
        self.prune()

    def notify(self, callback: Callable[[T], None]) -> int:
        """Invoke callback for every live registration.

        Iterates over a snapshot, so callbacks may add or remove entries.
        An entry removed during the pass is not invoked afterwards; one added
        during the pass is first invoked on the next notification.

        Args:
            callback: Function called with each live referent.

        Returns:
            Number of callbacks invoked.
        """
        invoked = 0
        for ref in list(self._entries):
            if not any(entry is ref for entry in self._entries):
                continue
            item = ref()
            if item is None:
                continue
            callback(item)
            invoked += 1
        self.prune()
        return invoked

    def prune(self) -> None:
        """Drop entries whose referent no longer exists."""
        self._entries = [ref for ref in self._entries if ref() is not None]
