"""Shared fixtures for the test suite."""

import random

import pytest

from possync.config import ServerSettings
from possync.core.server_loop import ServerLoop
from possync.core.snapshot import SnapshotBoard


class FakeConnection:
    """Stand-in for a client socket that records what the server writes."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = bytearray()
        self.closed = False

    def sendall(self, data: bytes) -> None:
        if self.fail:
            raise BrokenPipeError("peer gone")
        self.sent.extend(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_connection():
    """Factory for fake client connections."""
    return FakeConnection


@pytest.fixture
def settings():
    """Settings bound to an ephemeral loopback port with a short tick."""
    return ServerSettings(host="127.0.0.1", port=0, tick_timeout=0.05)


@pytest.fixture
def board(settings):
    return SnapshotBoard(settings.max_clients)


@pytest.fixture
def server_loop(settings, board):
    """Server loop that has not opened a socket."""
    loop = ServerLoop(settings, rng=random.Random(1234), board=board)
    yield loop
    loop.close()
