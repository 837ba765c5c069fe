"""Client-side connection state: socket, receive buffer and position table."""

import logging
import socket
from typing import List, Tuple

from possync.config import POSITION_TABLE_SIZE, RECEIVE_BUFFER_SIZE
from possync.core.exceptions import ConnectionClosed
from possync.core.reassembler import StreamReassembler
from possync.core.registry import SlotMap
from possync.models.frame import Frame, RemoveFrame, UpdateFrame

logger = logging.getLogger(__name__)


class PositionTable:
    """Latest known position of every client, as seen by this client."""

    def __init__(self, capacity: int = POSITION_TABLE_SIZE):
        self._positions: SlotMap[Tuple[float, float]] = SlotMap(capacity)

    def apply(self, frame: Frame) -> None:
        """
        Apply one frame from the server.

        Raises:
            IdentifierOutOfRange: If an UPDATE names an identifier the table cannot hold
        """
        if isinstance(frame, UpdateFrame):
            self._positions.put(frame.identifier, frame.position)
        elif isinstance(frame, RemoveFrame):
            self._positions.pop(frame.identifier)
        else:
            raise TypeError(f"Unsupported frame: {frame!r}")

    def get(self, identifier: int) -> Tuple[float, float]:
        return self._positions.get(identifier)

    def snapshot(self) -> List[Tuple[int, Tuple[float, float]]]:
        """Positions in identifier order, for one render pass."""
        return self._positions.items()

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._positions

    def __len__(self) -> int:
        return len(self._positions)


class ClientSession:
    """
    One connection to the server.

    `pump` never blocks: it takes whatever the socket has, turns complete
    frames into table updates and leaves partial frames buffered.
    """

    def __init__(self, sock: socket.socket, capacity: int = POSITION_TABLE_SIZE,
                 buffer_size: int = RECEIVE_BUFFER_SIZE):
        sock.setblocking(False)
        self.sock = sock
        self.reassembler = StreamReassembler(buffer_size)
        self.positions = PositionTable(capacity)

    @classmethod
    def connect(cls, host: str, port: int, **kwargs) -> "ClientSession":
        """
        Open a TCP connection to the server.

        Raises:
            OSError: If the host cannot be resolved or the connection fails
        """
        sock = socket.create_connection((host, port))
        logger.info(f"Connected to {host}:{port}")
        return cls(sock, **kwargs)

    def pump(self) -> List[Frame]:
        """
        Receive once without blocking and apply every complete frame.

        Returns:
            Frames applied during this call

        Raises:
            ConnectionClosed: If the server closed or reset the connection
            ProtocolError: If the server sent an invalid frame
            BufferOverflow: If received bytes do not fit the buffer
        """
        try:
            data = self.sock.recv(self.reassembler.free_space)
        except (BlockingIOError, InterruptedError):
            return []
        except OSError as e:
            raise ConnectionClosed(f"Connection lost: {str(e)}") from e
        if not data:
            raise ConnectionClosed("Server closed the connection")

        self.reassembler.feed(data)
        return self.reassembler.drain_frames(self.positions.apply)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "ClientSession":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
