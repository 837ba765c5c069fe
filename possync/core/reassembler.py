"""Per-connection receive buffer that turns a byte stream into frames."""

import logging
from typing import Callable, List, Optional

from possync.config import RECEIVE_BUFFER_SIZE
from possync.core import codec
from possync.core.exceptions import BufferOverflow, IncompleteFrame, ProtocolError
from possync.models.frame import Frame

logger = logging.getLogger(__name__)


class StreamReassembler:
    """
    Bounded byte buffer carrying partial frames across reads.

    Callers feed whatever the socket returned and drain complete frames;
    a frame split across reads is decoded once its last byte arrives.
    """

    def __init__(self, capacity: int = RECEIVE_BUFFER_SIZE):
        if capacity < codec.MAX_FRAME_LENGTH:
            raise ValueError(
                f"Capacity {capacity} cannot hold a {codec.MAX_FRAME_LENGTH} byte frame"
            )
        self.capacity = capacity
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet consumed."""
        return len(self._buffer)

    @property
    def free_space(self) -> int:
        return self.capacity - len(self._buffer)

    def feed(self, data: bytes) -> None:
        """
        Append received bytes.

        Raises:
            BufferOverflow: If the bytes do not fit; the buffer is left unchanged
        """
        if len(data) > self.free_space:
            raise BufferOverflow(len(data), self.free_space)
        self._buffer.extend(data)

    def drain_frames(self, sink: Optional[Callable[[Frame], None]] = None) -> List[Frame]:
        """
        Decode every complete frame at the head of the buffer.

        Args:
            sink: Optional callable applied to each frame in arrival order

        Returns:
            The decoded frames, possibly empty

        Raises:
            ProtocolError: If the head of the buffer is not a valid frame. Frames
                decoded earlier in the same call have already been consumed and
                passed to the sink; they are attached to the error as `frames`.
        """
        frames = []
        while self._buffer:
            try:
                frame, consumed = codec.decode(self._buffer)
            except IncompleteFrame:
                break
            except ProtocolError as e:
                e.frames = frames
                raise
            del self._buffer[:consumed]
            if sink is not None:
                sink(frame)
            frames.append(frame)
        if frames:
            logger.debug(f"Drained {len(frames)} frames, {self.pending} bytes pending")
        return frames

    def reset(self) -> None:
        self._buffer.clear()
