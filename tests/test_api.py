"""Tests for the read-only status API."""

import json

import pytest
from fastapi.testclient import TestClient

from possync.api import create_app, snapshot_events
from possync.core.snapshot import Snapshot, SnapshotBoard


@pytest.fixture
def board():
    board = SnapshotBoard(capacity=4)
    board.publish(Snapshot(tick=3, clients=((0, 15.0, 20.0), (2, -100.0, 5.0))))
    return board


@pytest.fixture
def client(board):
    """HTTP client for the status app."""
    return TestClient(create_app(board))


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["endpoints"]["clients"] == "/clients"


def test_health(client):
    """Test health reports tick and client counts."""
    response = client.get("/health")
    assert response.json() == {
        "status": "healthy",
        "tick": 3,
        "connected_clients": 2,
        "max_clients": 4
    }


def test_clients(client):
    """Test the latest snapshot is served."""
    data = client.get("/clients").json()
    assert data["tick"] == 3
    assert data["clients"] == [
        {"id": 0, "x": 15.0, "y": 20.0},
        {"id": 2, "x": -100.0, "y": 5.0},
    ]


def test_clients_follow_new_publications(client, board):
    board.publish(Snapshot(tick=4))
    assert client.get("/clients").json()["clients"] == []


@pytest.mark.asyncio
async def test_snapshot_events_yield_each_tick_once(board):
    """Test the event stream emits one event per published tick."""
    events = snapshot_events(board, poll_interval=0.01, max_events=2)

    first = await events.__anext__()
    assert first["event"] == "tick"
    assert json.loads(first["data"])["tick"] == 3

    board.publish(Snapshot(tick=4, clients=((1, 0.0, 0.0),)))
    second = await events.__anext__()
    assert json.loads(second["data"])["clients"] == [{"id": 1, "x": 0.0, "y": 0.0}]

    with pytest.raises(StopAsyncIteration):
        await events.__anext__()
