"""Bounded LIFO stack and the client identifier pool built on it."""

from typing import Generic, Iterator, List, TypeVar

from possync.core.exceptions import (
    DuplicateIdentifier,
    IdentifierOutOfRange,
    PoolExhausted,
    PoolFull,
    StackEmpty,
    StackFull,
)

T = TypeVar('T')


class BoundedStack(Generic[T]):
    """Fixed-capacity last-in first-out container."""

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"Capacity must be non-negative, got {capacity}")
        self.capacity = capacity
        self._items: List[T] = []

    def push(self, item: T) -> None:
        """
        Push an item on top of the stack.

        Raises:
            StackFull: If the stack already holds `capacity` items
        """
        if self.is_full():
            raise StackFull(f"Stack is at capacity ({self.capacity})")
        self._items.append(item)

    def pop(self) -> T:
        """
        Remove and return the top item.

        Raises:
            StackEmpty: If there is nothing to pop
        """
        if not self._items:
            raise StackEmpty("Stack is empty")
        return self._items.pop()

    def peek(self) -> T:
        if not self._items:
            raise StackEmpty("Stack is empty")
        return self._items[-1]

    def is_empty(self) -> bool:
        return not self._items

    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        """Iterate from bottom to top."""
        return iter(list(self._items))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(capacity={self.capacity!r}, items={self._items!r})"


class IdentifierPool(BoundedStack[int]):
    """
    Reusable client identifiers drawn from [0, capacity).

    A fresh pool holds every identifier and hands out 0 first. Returned
    identifiers are reused most-recently-freed first.
    """

    def __init__(self, capacity: int):
        super().__init__(capacity)
        self._members = set()
        for identifier in reversed(range(capacity)):
            self.push(identifier)

    def push(self, identifier: int) -> None:
        """
        Return an identifier to the pool.

        Args:
            identifier: Identifier released by a departing client

        Raises:
            IdentifierOutOfRange: If the identifier is not in [0, capacity)
            DuplicateIdentifier: If the identifier is already pooled
            PoolFull: If every identifier is already pooled
        """
        if not 0 <= identifier < self.capacity:
            raise IdentifierOutOfRange(identifier, self.capacity)
        if identifier in self._members:
            raise DuplicateIdentifier(identifier)
        try:
            super().push(identifier)
        except StackFull as e:
            raise PoolFull(f"Pool already holds all {self.capacity} identifiers") from e
        self._members.add(identifier)

    def pop(self) -> int:
        """
        Take the most recently returned identifier.

        Raises:
            PoolExhausted: If every identifier is assigned
        """
        try:
            identifier = super().pop()
        except StackEmpty as e:
            raise PoolExhausted(f"All {self.capacity} identifiers are in use") from e
        self._members.discard(identifier)
        return identifier

    def available(self) -> List[int]:
        """Pooled identifiers, next to be handed out last."""
        return list(self._items)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._members
