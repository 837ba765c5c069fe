"""Tests for the server loop, with fake connections and real loopback sockets."""

import socket
import struct

import pytest

from possync.core import codec
from possync.core.exceptions import PoolExhausted
from possync.core.reassembler import StreamReassembler
from possync.models.frame import RemoveFrame, UpdateFrame


def decode_all(data: bytes):
    reassembler = StreamReassembler(capacity=max(len(data), 256))
    reassembler.feed(data)
    return reassembler.drain_frames()


def test_admit_assigns_identifiers_and_spawn_positions(server_loop, make_connection):
    """Test clients get pooled identifiers and positions inside the spawn area."""
    clients = [server_loop.admit(make_connection()) for _ in range(4)]

    assert [client.id for client in clients] == [0, 1, 2, 3]
    for client in clients:
        assert -300 <= client.x < 300
        assert -200 <= client.y < 200
        assert server_loop.registry.get(client.id) is client
    with pytest.raises(PoolExhausted):
        server_loop.admit(make_connection())
    assert len(server_loop.registry) == 4


def test_deterministic_motion(server_loop, make_connection):
    """Test each update phase moves a client by (+5, 0)."""
    client = server_loop.admit(make_connection())
    client.x, client.y = 10.0, 20.0

    server_loop.update_positions()
    assert client.position == (15.0, 20.0)
    server_loop.update_positions()
    assert client.position == (20.0, 20.0)


def test_broadcast_sends_every_position_to_every_client(server_loop, make_connection):
    """Test each receiver gets one UPDATE per client, itself included."""
    connections = [make_connection() for _ in range(3)]
    for connection in connections:
        server_loop.admit(connection)

    assert server_loop.broadcast() == []

    expected = [
        UpdateFrame(identifier, client.x, client.y)
        for identifier, client in server_loop.registry.items()
    ]
    for connection in connections:
        assert decode_all(bytes(connection.sent)) == expected


def test_failed_write_removes_client_and_recycles_identifier(server_loop, make_connection):
    """Test a client whose write fails is removed and its identifier reused next."""
    connections = [make_connection(fail=(i == 2)) for i in range(4)]
    for connection in connections:
        server_loop.admit(connection)

    assert server_loop.broadcast() == [2]

    assert 2 not in server_loop.registry
    assert connections[2].closed
    assert server_loop.registry.ids() == [0, 1, 3]
    assert server_loop.pool.pop() == 2


def test_dropped_client_is_not_sent_to_later_receivers(server_loop, make_connection):
    """Test receivers after the failure no longer get the dropped client's update."""
    connections = [make_connection(fail=(i == 1)) for i in range(3)]
    for connection in connections:
        server_loop.admit(connection)

    server_loop.broadcast()

    first = [frame.identifier for frame in decode_all(bytes(connections[0].sent))]
    last = [frame.identifier for frame in decode_all(bytes(connections[2].sent))]
    assert first == [0, 1, 2]
    assert last == [0, 2]


def test_removals_are_announced(server_loop, make_connection):
    """Test remaining clients get a REMOVE frame for every dropped client."""
    connections = [make_connection(fail=(i == 2)) for i in range(4)]
    for connection in connections:
        server_loop.admit(connection)

    dropped = server_loop.broadcast()
    server_loop.announce_removals(dropped)

    for index in (0, 1, 3):
        frames = decode_all(bytes(connections[index].sent))
        assert frames[-1] == RemoveFrame(2)


def test_failures_while_announcing_cascade(server_loop, make_connection):
    """Test a receiver failing during the announcement is removed and announced too."""
    connections = [make_connection() for _ in range(3)]
    for connection in connections:
        server_loop.admit(connection)
    connections[1].fail = True

    assert server_loop.announce_removals([3]) == [1]
    assert server_loop.registry.ids() == [0, 2]
    assert decode_all(bytes(connections[0].sent)) == [RemoveFrame(3), RemoveFrame(1)]
    assert sorted(server_loop.pool.available()) == [1, 3]


def test_publish_snapshot(server_loop, board, make_connection):
    client = server_loop.admit(make_connection())
    server_loop.tick_count = 7
    server_loop.publish()

    snapshot = board.latest()
    assert snapshot.tick == 7
    assert snapshot.clients == ((client.id, client.x, client.y),)


def test_close_disconnects_clients(server_loop, make_connection):
    connections = [make_connection() for _ in range(2)]
    for connection in connections:
        server_loop.admit(connection)

    server_loop.close()
    assert all(connection.closed for connection in connections)
    assert len(server_loop.registry) == 0
    assert len(server_loop.pool) == server_loop.settings.max_clients


def test_poll_requires_open(server_loop):
    with pytest.raises(RuntimeError):
        server_loop.poll()


@pytest.fixture
def open_loop(server_loop):
    server_loop.open()
    return server_loop


def connect(loop) -> socket.socket:
    sock = socket.create_connection(loop.address, timeout=2.0)
    return sock


def receive_frames(sock: socket.socket, count: int):
    """Read from a real socket until `count` frames arrived."""
    reassembler = StreamReassembler()
    frames = []
    while len(frames) < count:
        data = sock.recv(reassembler.free_space)
        assert data, "server closed the connection"
        reassembler.feed(data)
        frames.extend(reassembler.drain_frames())
    return frames


def test_tick_without_activity_still_advances(open_loop):
    """Test ticks proceed when the wait times out."""
    open_loop.tick()
    open_loop.tick()
    assert open_loop.tick_count == 2


def test_tick_accepts_and_broadcasts(open_loop):
    """Test a connecting client is registered and receives its own position."""
    sock = connect(open_loop)
    try:
        open_loop.tick()
        assert open_loop.registry.ids() == [0]
        client = open_loop.registry.get(0)

        frames = receive_frames(sock, 1)
        assert frames == [UpdateFrame(0, client.x, client.y)]
    finally:
        sock.close()


def test_fifth_connection_is_closed(open_loop):
    """Test a connection beyond capacity is closed and never registered."""
    socks = [connect(open_loop) for _ in range(5)]
    try:
        open_loop.tick()

        assert open_loop.registry.ids() == [0, 1, 2, 3]
        assert len(open_loop.pool) == 0

        rejected = socks[4]
        try:
            assert rejected.recv(64) == b""
        except ConnectionResetError:
            pass

        for sock in socks[:4]:
            frames = receive_frames(sock, 4)
            assert [frame.identifier for frame in frames] == [0, 1, 2, 3]
    finally:
        for sock in socks:
            sock.close()


def test_disconnected_peer_is_eventually_removed(open_loop):
    """Test a client that hung up is removed once writes to it fail."""
    sock = connect(open_loop)
    open_loop.tick()
    assert open_loop.registry.ids() == [0]

    sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
    sock.close()

    for _ in range(20):
        open_loop.tick()
        if not open_loop.registry.ids():
            break
    assert open_loop.registry.ids() == []
    assert open_loop.pool.pop() == 0


def test_encoded_updates_fit_the_prefix(server_loop, make_connection):
    """Test spawn-range positions produce frames well within the length limit."""
    for _ in range(4):
        client = server_loop.admit(make_connection())
        client.x, client.y = -299.0, -199.0
        assert len(codec.encode(UpdateFrame(client.id, client.x, client.y))) < codec.MAX_FRAME_LENGTH


def test_unencodable_position_is_skipped(server_loop, make_connection):
    """Test a client whose position cannot be written is left out of the broadcast."""
    connection = make_connection()
    broken = server_loop.admit(connection)
    healthy = server_loop.admit(make_connection())
    broken.x = float("inf")

    assert server_loop.broadcast() == []
    assert decode_all(bytes(connection.sent)) == [UpdateFrame(healthy.id, healthy.x, healthy.y)]
