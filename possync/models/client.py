"""Client model for connected peers."""

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass
class Client:
    """Represents a connected client with its authoritative position."""

    id: int
    connection: Any
    x: float
    y: float

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def move(self, dx: float, dy: float) -> None:
        """Displace the client in place."""
        self.x += dx
        self.y += dy

    def to_dict(self) -> Dict[str, Any]:
        """Convert client to dictionary representation."""
        return {
            'id': self.id,
            'x': self.x,
            'y': self.y
        }

    def __repr__(self) -> str:
        return f"Client(id={self.id!r}, x={self.x!r}, y={self.y!r})"
