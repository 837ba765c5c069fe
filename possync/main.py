"""Server entry point: run the tick loop and, optionally, the status API."""

import argparse
import logging
import sys
import threading
from typing import Optional

import uvicorn

from possync.api import create_app
from possync.config import ServerSettings
from possync.core.server_loop import ServerLoop
from possync.core.snapshot import SnapshotBoard

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> ServerSettings:
    parser = argparse.ArgumentParser(prog="possync-server", description="Broadcast client positions")
    parser.add_argument("--port", type=int, default=ServerSettings.port)
    parser.add_argument("--max-clients", type=int, default=ServerSettings.max_clients)
    parser.add_argument("--status-port", type=int, default=None,
                        help="serve the read-only status API on this port")
    parser.add_argument("--no-remove", dest="announce_removals", action="store_false",
                        help="do not send REMOVE frames when a client leaves")
    parser.add_argument("--log-level", default="INFO", type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level)
    return ServerSettings(
        port=args.port,
        max_clients=args.max_clients,
        status_port=args.status_port,
        announce_removals=args.announce_removals,
    )


def start_status_api(settings: ServerSettings, board: SnapshotBoard) -> uvicorn.Server:
    """Serve the status API from a daemon thread; it only reads the board."""
    config = uvicorn.Config(
        create_app(board),
        host=settings.status_host,
        port=settings.status_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="status-api", daemon=True)
    thread.start()
    logger.info(f"Status API on http://{settings.status_host}:{settings.status_port}")
    return server


def main(argv=None) -> int:
    settings = parse_args(argv)
    board = SnapshotBoard(settings.max_clients)
    loop = ServerLoop(settings, board=board)

    try:
        loop.open()
    except OSError as e:
        print(f"Error starting server on port {settings.port}: {str(e)}", file=sys.stderr)
        return 1

    status_server: Optional[uvicorn.Server] = None
    if settings.status_port is not None:
        status_server = start_status_api(settings, board)

    logger.info("Server started.")
    with loop:
        try:
            loop.run_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")
        finally:
            if status_server is not None:
                status_server.should_exit = True
    return 0


if __name__ == "__main__":
    sys.exit(main())
