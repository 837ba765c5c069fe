"""Single-threaded reactor that owns every client and broadcasts positions."""

import logging
import random
import selectors
import socket
from typing import List, Optional, Tuple

from possync.config import ServerSettings
from possync.core import codec
from possync.core.exceptions import PoolExhausted, ProtocolError
from possync.core.id_pool import IdentifierPool
from possync.core.registry import ClientRegistry
from possync.core.snapshot import Snapshot, SnapshotBoard
from possync.models.client import Client
from possync.models.frame import RemoveFrame, UpdateFrame

logger = logging.getLogger(__name__)


class ServerLoop:
    """
    Accepts clients, moves them every tick and broadcasts their positions.

    Each tick waits up to `tick_timeout` for the listening socket, accepts
    whatever is pending, advances every client by `step` and writes one
    UPDATE frame per (receiver, subject) pair. A receiver whose write fails
    is removed after the broadcast pass and its identifier is recycled.
    """

    def __init__(self, settings: Optional[ServerSettings] = None,
                 rng: Optional[random.Random] = None,
                 board: Optional[SnapshotBoard] = None):
        """
        Initialize the loop without opening any socket.

        Args:
            settings: Server settings, defaults to ServerSettings()
            rng: Random source for spawn positions
            board: Where to publish a snapshot after every tick
        """
        self.settings = settings or ServerSettings()
        self.rng = rng or random.Random()
        self.board = board
        self.pool = IdentifierPool(self.settings.max_clients)
        self.registry = ClientRegistry(self.settings.max_clients)
        self.tick_count = 0
        self._selector: Optional[selectors.BaseSelector] = None
        self._listener: Optional[socket.socket] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Address the listening socket is bound to."""
        if self._listener is None:
            raise RuntimeError("Server loop is not open")
        return self._listener.getsockname()[:2]

    def open(self) -> "ServerLoop":
        """
        Bind and listen on the configured address.

        Raises:
            OSError: If the socket cannot be created, bound or listened on
        """
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.settings.host, self.settings.port))
            listener.listen(self.settings.backlog)
            listener.setblocking(False)
        except OSError:
            listener.close()
            raise
        self._selector = selectors.DefaultSelector()
        self._selector.register(listener, selectors.EVENT_READ)
        self._listener = listener
        host, port = self.address
        logger.info(f"Listening on {host}:{port} for up to {self.settings.max_clients} clients")
        return self

    def close(self) -> None:
        """Disconnect every client and release the listening socket."""
        for identifier in self.registry.ids():
            self.drop_client(identifier, "server shutting down")
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __enter__(self) -> "ServerLoop":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def poll(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for pending connections.

        Returns:
            True if the listening socket became readable before the timeout
        """
        if self._selector is None:
            raise RuntimeError("Server loop is not open")
        if timeout is None:
            timeout = self.settings.tick_timeout
        events = self._selector.select(timeout)
        return any(key.fileobj is self._listener for key, _ in events)

    def accept_pending(self) -> List[Client]:
        """Accept every queued connection; connections beyond capacity are closed."""
        admitted = []
        while True:
            try:
                connection, address = self._listener.accept()
            except BlockingIOError:
                break
            except OSError as e:
                logger.warning(f"Failed to accept connection: {str(e)}")
                break

            connection.settimeout(self.settings.send_timeout)
            try:
                client = self.admit(connection)
            except PoolExhausted:
                logger.info(f"Rejecting {address}: all {self.settings.max_clients} slots in use")
                connection.close()
                continue
            logger.info(f"Client {client.id} connected from {address} at {client.position}")
            admitted.append(client)
        return admitted

    def admit(self, connection) -> Client:
        """
        Register a connection as a new client at a random spawn position.

        Raises:
            PoolExhausted: If no identifier is free
        """
        identifier = self.pool.pop()
        x = float(self.rng.randrange(*self.settings.spawn_x))
        y = float(self.rng.randrange(*self.settings.spawn_y))
        client = Client(id=identifier, connection=connection, x=x, y=y)
        self.registry.put(identifier, client)
        return client

    def drop_client(self, identifier: int, reason: str = "") -> None:
        """Close the client's connection, unregister it and recycle its identifier."""
        self.registry.remove(identifier)
        self.pool.push(identifier)
        logger.info(f"Client {identifier} disconnected" + (f": {reason}" if reason else ""))

    def update_positions(self) -> None:
        dx, dy = self.settings.step
        self.registry.for_each(lambda identifier, client: client.move(dx, dy))

    def _send(self, client: Client, data: bytes) -> bool:
        try:
            client.connection.sendall(data)
        except OSError as e:
            logger.debug(f"Write to client {client.id} failed: {str(e)}")
            return False
        return True

    def _encode_updates(self) -> List[Tuple[int, bytes]]:
        frames = []
        for identifier, client in self.registry.items():
            try:
                frames.append((identifier, codec.encode(UpdateFrame(identifier, client.x, client.y))))
            except ProtocolError as e:
                logger.error(f"Skipping update for client {identifier}: {str(e)}")
        return frames

    def broadcast(self) -> List[int]:
        """
        Send every client's position to every client, itself included.

        Returns:
            Identifiers of the clients removed because a write failed
        """
        frames = self._encode_updates()
        dropped: List[int] = []

        def send_all(receiver_id: int, receiver: Client) -> None:
            for subject_id, data in frames:
                if subject_id in dropped:
                    continue
                if not self._send(receiver, data):
                    dropped.append(receiver_id)
                    return

        self.registry.for_each(send_all)
        for identifier in dropped:
            self.drop_client(identifier, "write failed")
        return dropped

    def announce_removals(self, removed: List[int]) -> List[int]:
        """
        Tell the remaining clients which identifiers left.

        Receivers that fail the write are removed and announced in turn.

        Returns:
            Identifiers removed while announcing
        """
        dropped_here: List[int] = []
        pending = list(removed)
        while pending and len(self.registry):
            frames = [codec.encode(RemoveFrame(identifier)) for identifier in pending]
            failed: List[int] = []

            def send_all(receiver_id: int, receiver: Client) -> None:
                for data in frames:
                    if not self._send(receiver, data):
                        failed.append(receiver_id)
                        return

            self.registry.for_each(send_all)
            for identifier in failed:
                self.drop_client(identifier, "write failed")
            dropped_here.extend(failed)
            pending = failed
        return dropped_here

    def publish(self) -> None:
        if self.board is None:
            return
        clients = tuple((identifier, client.x, client.y) for identifier, client in self.registry.items())
        self.board.publish(Snapshot(tick=self.tick_count, clients=clients))

    def tick(self) -> None:
        """Run one poll, accept, update and broadcast cycle."""
        if self.poll():
            self.accept_pending()
        self.update_positions()
        dropped = self.broadcast()
        if dropped and self.settings.announce_removals:
            self.announce_removals(dropped)
        self.tick_count += 1
        self.publish()
        logger.debug(f"Tick {self.tick_count}: {len(self.registry)} clients")

    def run_forever(self) -> None:
        while True:
            self.tick()
