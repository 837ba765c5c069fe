"""Custom exceptions for the position sync server and client."""


class SyncError(Exception):
    """Base exception for sync-related errors."""
    pass


class StackError(SyncError):
    """Base exception for bounded stack errors."""
    pass


class StackEmpty(StackError):
    """Raised when popping from an empty stack."""
    pass


class StackFull(StackError):
    """Raised when pushing onto a stack that is at capacity."""
    pass


class PoolError(SyncError):
    """Base exception for identifier pool errors."""
    pass


class PoolExhausted(PoolError):
    """Raised when no identifier is left to hand out."""
    pass


class PoolFull(PoolError):
    """Raised when an identifier is returned to a pool that is already full."""
    pass


class DuplicateIdentifier(PoolError):
    """Raised when an identifier is returned to the pool twice."""

    def __init__(self, identifier: int):
        super().__init__(f"Identifier {identifier} is already in the pool")
        self.identifier = identifier


class RegistryError(SyncError):
    """Base exception for slot map errors."""
    pass


class NotFound(RegistryError, KeyError):
    """Raised when an identifier has no entry."""

    def __init__(self, identifier: int):
        super().__init__(f"No entry for identifier {identifier}")
        self.identifier = identifier

    def __str__(self) -> str:
        return self.args[0]


class IdentifierOutOfRange(RegistryError, PoolError):
    """Raised when an identifier falls outside [0, capacity)."""

    def __init__(self, identifier: int, capacity: int):
        super().__init__(f"Identifier {identifier} is outside [0, {capacity})")
        self.identifier = identifier
        self.capacity = capacity


class ConcurrentModification(RegistryError):
    """Raised on insert/remove while an iteration is in progress."""
    pass


class IncompleteFrame(SyncError):
    """Not enough bytes are buffered to decode the next frame."""

    def __init__(self, available: int, required: int):
        super().__init__(f"Need {required} bytes, have {available}")
        self.available = available
        self.required = required


class ProtocolError(SyncError):
    """Base exception for wire protocol violations."""
    pass


class MalformedFrame(ProtocolError):
    """Raised when a frame does not match the wire grammar."""
    pass


class InvalidFrame(ProtocolError):
    """Raised when a frame holds values the wire grammar cannot express."""
    pass


class UnknownMessageType(ProtocolError):
    """Raised when a frame carries an unrecognised message type token."""

    def __init__(self, message_type: str):
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type


class FrameTooLarge(ProtocolError):
    """Raised when an encoded frame does not fit the one byte length prefix."""

    def __init__(self, length: int, limit: int):
        super().__init__(f"Frame of {length} bytes exceeds the {limit} byte limit")
        self.length = length
        self.limit = limit


class ResourceError(SyncError):
    """Base exception for exhausted per-connection resources."""
    pass


class BufferOverflow(ResourceError):
    """Raised when received bytes do not fit the reassembly buffer."""

    def __init__(self, incoming: int, free: int):
        super().__init__(f"Cannot buffer {incoming} bytes, only {free} free")
        self.incoming = incoming
        self.free = free


class ClientError(SyncError):
    """Exception raised for client-related errors."""
    pass


class ConnectionClosed(ClientError):
    """Raised when the peer closed the connection."""
    pass
