"""Fixed-capacity identifier-keyed storage for connected clients."""

import logging
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, List, Optional, Tuple, TypeVar

from possync.core.exceptions import ConcurrentModification, IdentifierOutOfRange, NotFound
from possync.models.client import Client

logger = logging.getLogger(__name__)

T = TypeVar('T')

_EMPTY = object()


class SlotMap(Generic[T]):
    """
    Map from small integer identifiers to values.

    Identifiers index a dense list of slots directly, so every operation is
    O(1) and iteration follows ascending identifier order. Inserting or
    removing while `for_each` is running raises ConcurrentModification;
    values may be mutated in place.
    """

    def __init__(self, capacity: int):
        """
        Initialize an empty map.

        Args:
            capacity: Number of slots; valid identifiers are [0, capacity)
        """
        if capacity < 0:
            raise ValueError(f"Capacity must be non-negative, got {capacity}")
        self.capacity = capacity
        self._slots: List[object] = [_EMPTY] * capacity
        self._size = 0
        self._iterating = 0

    def _check_range(self, identifier: int) -> None:
        if not 0 <= identifier < self.capacity:
            raise IdentifierOutOfRange(identifier, self.capacity)

    def _check_structural_change(self) -> None:
        if self._iterating:
            raise ConcurrentModification("Cannot insert or remove while iterating")

    def put(self, identifier: int, value: T) -> None:
        """
        Insert or overwrite the entry for an identifier.

        Raises:
            IdentifierOutOfRange: If the identifier has no slot
            ConcurrentModification: If called from inside for_each
        """
        self._check_range(identifier)
        self._check_structural_change()
        if self._slots[identifier] is _EMPTY:
            self._size += 1
        self._slots[identifier] = value

    def get(self, identifier: int) -> T:
        """
        Look up the entry for an identifier.

        Raises:
            NotFound: If the slot is empty or out of range
        """
        if not 0 <= identifier < self.capacity or self._slots[identifier] is _EMPTY:
            raise NotFound(identifier)
        return self._slots[identifier]

    def remove(self, identifier: int) -> T:
        """
        Delete the entry for an identifier and return its value.

        Raises:
            NotFound: If the slot is empty or out of range
            ConcurrentModification: If called from inside for_each
        """
        value = self.get(identifier)
        self._check_structural_change()
        self._slots[identifier] = _EMPTY
        self._size -= 1
        return value

    def pop(self, identifier: int, default: Optional[T] = None) -> Optional[T]:
        if identifier not in self:
            return default
        return self.remove(identifier)

    @contextmanager
    def _iteration(self):
        self._iterating += 1
        try:
            yield
        finally:
            self._iterating -= 1

    def for_each(self, visitor: Callable[[int, T], None]) -> None:
        """Call visitor(identifier, value) once per occupied slot, in identifier order."""
        with self._iteration():
            for identifier, value in enumerate(self._slots):
                if value is not _EMPTY:
                    visitor(identifier, value)

    def ids(self) -> List[int]:
        return [identifier for identifier, value in enumerate(self._slots) if value is not _EMPTY]

    def items(self) -> List[Tuple[int, T]]:
        return [(identifier, value) for identifier, value in enumerate(self._slots) if value is not _EMPTY]

    def __iter__(self) -> Iterator[int]:
        return iter(self.ids())

    def __contains__(self, identifier: object) -> bool:
        return (
            isinstance(identifier, int)
            and 0 <= identifier < self.capacity
            and self._slots[identifier] is not _EMPTY
        )

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"{type(self).__name__}(capacity={self.capacity!r}, items={self.items()!r})"


class ClientRegistry(SlotMap[Client]):
    """Authoritative table of connected clients; owns their connections."""

    def remove(self, identifier: int) -> Client:
        """
        Unregister a client and close its connection.

        Args:
            identifier: Identifier of the departing client

        Returns:
            The removed client

        Raises:
            NotFound: If no client holds the identifier
        """
        client = super().remove(identifier)
        try:
            client.connection.close()
        except OSError as e:
            logger.warning(f"Error closing connection of client {identifier}: {str(e)}")
        return client

    def positions(self) -> List[Tuple[int, Tuple[float, float]]]:
        """Snapshot of (identifier, (x, y)) for every client."""
        return [(identifier, client.position) for identifier, client in self.items()]
