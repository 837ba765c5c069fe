"""Frame models for the messages carried on the wire."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict


class FrameKind(Enum):
    """Message types understood by clients."""
    UPDATE = "UPDATE"
    REMOVE = "REMOVE"


@dataclass(frozen=True)
class Frame(ABC):
    """Base class for all frames."""

    kind: ClassVar[FrameKind]
    identifier: int

    @abstractmethod
    def payload(self) -> str:
        """Render the ASCII payload, without the length prefix."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert frame to dictionary representation."""
        return {
            'kind': self.kind.value,
            'identifier': self.identifier
        }


@dataclass(frozen=True)
class UpdateFrame(Frame):
    """
    Position of one client.

    Coordinates are Python floats rendered with repr, not narrowed to single
    precision, so decoding returns exactly the encoded value.
    """

    kind = FrameKind.UPDATE

    x: float
    y: float

    @property
    def position(self):
        return (self.x, self.y)

    def payload(self) -> str:
        return f"UPDATE id: {self.identifier}, pos: ({float(self.x)!r}, {float(self.y)!r})"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            'x': self.x,
            'y': self.y
        })
        return result


@dataclass(frozen=True)
class RemoveFrame(Frame):
    """Departure of one client."""

    kind = FrameKind.REMOVE

    def payload(self) -> str:
        return f"REMOVE id: {self.identifier}"
