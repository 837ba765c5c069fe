"""Client entry point: receive positions and hand them to a renderer."""

import argparse
import logging
import sys
import time
from typing import List, Optional, Protocol, Tuple

from possync.client.session import ClientSession
from possync.config import ClientSettings, DEFAULT_HOST
from possync.core.exceptions import ConnectionClosed, ProtocolError, RegistryError, ResourceError

logger = logging.getLogger(__name__)

Positions = List[Tuple[int, Tuple[float, float]]]


class Renderer(Protocol):
    """Anything that can draw one snapshot per frame."""

    def is_open(self) -> bool:
        ...

    def render(self, positions: Positions) -> None:
        ...


class ConsoleRenderer:
    """Logs the snapshot whenever it changes, at a fixed frame rate."""

    def __init__(self, frame_interval: float, max_frames: Optional[int] = None):
        self.frame_interval = frame_interval
        self.max_frames = max_frames
        self.frames = 0
        self._last: Optional[Positions] = None

    def is_open(self) -> bool:
        return self.max_frames is None or self.frames < self.max_frames

    def render(self, positions: Positions) -> None:
        if positions != self._last:
            logger.info("Positions: " + ", ".join(f"{i}=({x:g}, {y:g})" for i, (x, y) in positions))
            self._last = positions
        self.frames += 1
        if self.frame_interval:
            time.sleep(self.frame_interval)


def run(session: ClientSession, renderer: Renderer) -> None:
    """Alternate a non-blocking receive and a render pass until the renderer closes."""
    while renderer.is_open():
        session.pump()
        renderer.render(session.positions.snapshot())


def parse_args(argv=None) -> ClientSettings:
    parser = argparse.ArgumentParser(prog="possync-client", description="Follow client positions")
    parser.add_argument("host", nargs="?", default=None, help="server hostname")
    parser.add_argument("--port", type=int, default=ClientSettings.port)
    parser.add_argument("--capacity", type=int, default=ClientSettings.capacity,
                        help="largest number of clients the position table can hold")
    parser.add_argument("--log-level", default="INFO", type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level)
    if args.host is None:
        print(f"No server address provided. Defaulting to {DEFAULT_HOST}.", file=sys.stderr)
        args.host = DEFAULT_HOST
    return ClientSettings(host=args.host, port=args.port, capacity=args.capacity)


def main(argv=None) -> int:
    settings = parse_args(argv)

    try:
        session = ClientSession.connect(
            settings.host, settings.port,
            capacity=settings.capacity, buffer_size=settings.buffer_size,
        )
    except OSError as e:
        print(f"Error connecting to {settings.host}:{settings.port}: {str(e)}", file=sys.stderr)
        return 1

    with session:
        try:
            run(session, ConsoleRenderer(settings.frame_interval))
        except ConnectionClosed as e:
            logger.error(str(e))
            return 1
        except (ProtocolError, ResourceError, RegistryError) as e:
            logger.error(f"Invalid data from server: {str(e)}")
            return 2
        except KeyboardInterrupt:
            logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
