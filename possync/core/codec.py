"""
Length-prefixed ASCII wire format.

Each frame is one length byte followed by the payload text. The length
counts itself, so a frame occupies 1..127 bytes on the wire:

    UPDATE id: <uint>, pos: (<float>, <float>)
    REMOVE id: <uint>
"""

import math
import re
from typing import Tuple, Union

from possync.core.exceptions import (
    FrameTooLarge,
    IncompleteFrame,
    InvalidFrame,
    MalformedFrame,
    UnknownMessageType,
)
from possync.models.frame import Frame, FrameKind, RemoveFrame, UpdateFrame

PREFIX_LENGTH = 1
MAX_FRAME_LENGTH = 127

_UINT = r"(\d+)"
_FLOAT = r"([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)"

_PATTERNS = {
    FrameKind.UPDATE: re.compile(rf"UPDATE id: {_UINT}, pos: \({_FLOAT}, {_FLOAT}\)"),
    FrameKind.REMOVE: re.compile(rf"REMOVE id: {_UINT}"),
}


def encode(frame: Frame) -> bytes:
    """
    Serialize a frame with its length prefix.

    Args:
        frame: Frame to serialize

    Returns:
        Prefix byte followed by the ASCII payload

    Raises:
        InvalidFrame: If the identifier is negative or a coordinate is not finite
        FrameTooLarge: If prefix plus payload exceeds MAX_FRAME_LENGTH
    """
    if frame.identifier < 0:
        raise InvalidFrame(f"Identifier must be non-negative, got {frame.identifier}")
    if isinstance(frame, UpdateFrame) and not (math.isfinite(frame.x) and math.isfinite(frame.y)):
        raise InvalidFrame(f"Position must be finite, got {frame.position}")
    payload = frame.payload().encode("ascii")
    length = PREFIX_LENGTH + len(payload)
    if length > MAX_FRAME_LENGTH:
        raise FrameTooLarge(length, MAX_FRAME_LENGTH)
    return bytes([length]) + payload


def decode(buffer: Union[bytes, bytearray, memoryview]) -> Tuple[Frame, int]:
    """
    Decode the frame at the head of a buffer.

    Args:
        buffer: Received bytes, starting at a frame boundary

    Returns:
        The decoded frame and the number of bytes it occupied

    Raises:
        IncompleteFrame: If the buffer does not yet hold the whole frame
        MalformedFrame: If the declared length or the payload is invalid
        UnknownMessageType: If the payload starts with an unknown token
    """
    if len(buffer) < PREFIX_LENGTH:
        raise IncompleteFrame(len(buffer), PREFIX_LENGTH)

    length = buffer[0]
    if length < PREFIX_LENGTH or length > MAX_FRAME_LENGTH:
        raise MalformedFrame(f"Declared frame length {length} outside 1..{MAX_FRAME_LENGTH}")
    if len(buffer) < length:
        raise IncompleteFrame(len(buffer), length)

    try:
        text = bytes(buffer[PREFIX_LENGTH:length]).decode("ascii")
    except UnicodeDecodeError as e:
        raise MalformedFrame(f"Payload is not ASCII: {str(e)}") from e
    if not text:
        raise MalformedFrame("Empty payload")

    token = text.split(" ", 1)[0]
    try:
        kind = FrameKind(token)
    except ValueError:
        raise UnknownMessageType(token) from None

    match = _PATTERNS[kind].fullmatch(text)
    if match is None:
        raise MalformedFrame(f"Payload does not match the {kind.value} grammar: {text!r}")

    identifier = int(match.group(1))
    if kind == FrameKind.UPDATE:
        frame = UpdateFrame(identifier, float(match.group(2)), float(match.group(3)))
    else:
        frame = RemoveFrame(identifier)
    return frame, length
