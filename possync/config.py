"""
Network, protocol and simulation settings shared by server and client.

The module constants are the defaults; ServerSettings and ClientSettings
let the entry points override individual values from the command line.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

# ========== NETWORK ==========
DEFAULT_HOST = "localhost"
LISTEN_HOST = "0.0.0.0"
DEFAULT_PORT = 34481
BACKLOG = 16
SEND_TIMEOUT = 0.5  # seconds; a client that cannot take a frame in this time is dropped

# ========== SERVER LOOP ==========
MAX_CLIENTS = 4
TICK_TIMEOUT = 0.5  # seconds; upper bound of the readiness wait per tick
SPAWN_X = (-300, 300)  # half-open
SPAWN_Y = (-200, 200)  # half-open
STEP = (5.0, 0.0)  # displacement per tick

# ========== CLIENT ==========
RECEIVE_BUFFER_SIZE = 256
POSITION_TABLE_SIZE = 4
FRAME_INTERVAL = 1 / 60  # seconds between render passes of the console renderer

# ========== STATUS API ==========
STATUS_HOST = "127.0.0.1"
STATUS_POLL_INTERVAL = 0.1  # seconds between snapshot checks in the event stream


@dataclass
class ServerSettings:
    """Settings for one server process."""

    host: str = LISTEN_HOST
    port: int = DEFAULT_PORT
    max_clients: int = MAX_CLIENTS
    tick_timeout: float = TICK_TIMEOUT
    spawn_x: Tuple[int, int] = SPAWN_X
    spawn_y: Tuple[int, int] = SPAWN_Y
    step: Tuple[float, float] = STEP
    send_timeout: float = SEND_TIMEOUT
    backlog: int = BACKLOG
    announce_removals: bool = True
    status_host: str = STATUS_HOST
    status_port: Optional[int] = None


@dataclass
class ClientSettings:
    """Settings for one client process."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    capacity: int = POSITION_TABLE_SIZE
    buffer_size: int = RECEIVE_BUFFER_SIZE
    frame_interval: float = FRAME_INTERVAL
