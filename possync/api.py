"""Read-only HTTP status API over the latest published snapshot."""

import asyncio
import json
import logging
from typing import AsyncIterator, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sse_starlette.sse import EventSourceResponse

from possync import __version__
from possync.config import STATUS_POLL_INTERVAL
from possync.core.snapshot import SnapshotBoard

logger = logging.getLogger(__name__)


async def snapshot_events(board: SnapshotBoard, poll_interval: float = STATUS_POLL_INTERVAL,
                          max_events: Optional[int] = None) -> AsyncIterator[Dict[str, str]]:
    """
    Yield one `tick` event per newly published snapshot.

    Args:
        board: Board the server loop publishes to
        poll_interval: Seconds to sleep when nothing new was published
        max_events: Stop after this many events; None streams forever
    """
    last_tick = None
    sent = 0
    try:
        while max_events is None or sent < max_events:
            snapshot = board.latest()
            if snapshot.tick == last_tick:
                await asyncio.sleep(poll_interval)
                continue
            last_tick = snapshot.tick
            sent += 1
            yield {"event": "tick", "data": json.dumps(snapshot.to_dict())}
    except asyncio.CancelledError:
        logger.debug("Event stream closed by client")
        raise


def create_app(board: SnapshotBoard, poll_interval: float = STATUS_POLL_INTERVAL) -> FastAPI:
    """
    Build the status application.

    Args:
        board: Snapshot source shared with the server loop
        poll_interval: Snapshot check interval for the event stream
    """
    app = FastAPI(title="Position Sync Status", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint returning API information."""
        return {
            "message": "Position Sync Status",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "clients": "/clients",
                "events": "/events"
            }
        }

    @app.get("/health")
    async def health_check():
        snapshot = board.latest()
        return {
            "status": "healthy",
            "tick": snapshot.tick,
            "connected_clients": len(snapshot.clients),
            "max_clients": board.capacity
        }

    @app.get("/clients")
    async def get_clients():
        """Positions published at the end of the latest tick."""
        return board.latest().to_dict()

    @app.get("/events")
    async def events():
        return EventSourceResponse(snapshot_events(board, poll_interval))

    return app
