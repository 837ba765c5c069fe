"""Thread-safe holder for the latest published server state."""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Snapshot:
    """Positions of every connected client at the end of one tick."""

    tick: int
    clients: Tuple[Tuple[int, float, float], ...] = ()
    published_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "published_at": self.published_at,
            "clients": [
                {"id": identifier, "x": x, "y": y}
                for identifier, x, y in self.clients
            ],
        }


class SnapshotBoard:
    """
    Latest-snapshot mailbox between the server loop and the status API.

    The server loop is the only writer. Readers get immutable snapshots, so
    they never touch the registry itself.
    """

    def __init__(self, capacity: int = 0):
        self.capacity = capacity
        self._lock = threading.Lock()
        self._latest = Snapshot(tick=0)

    def publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._latest = snapshot

    def latest(self) -> Snapshot:
        with self._lock:
            return self._latest
