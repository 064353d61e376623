"""Connection registry - the set of live client connections."""

import threading
from collections.abc import Callable

from logging_config import get_logger
from messaging.models import Connection

logger = get_logger(__name__)


class MessagingError(Exception):
    """Base class for messaging core errors."""


class DuplicateConnection(MessagingError):
    """A connection id was registered twice."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection already registered: {connection_id}")
        self.connection_id = connection_id


class ConnectionRegistry:
    """Tracks live connections by id.

    The registry owns a re-entrant lock that the membership table shares, so
    a deregistration and its membership cascade happen as one atomic step with
    respect to joins and leaves.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._deregister_listeners: list[Callable[[str], object]] = []
        self.lock = threading.RLock()

    def add_deregister_listener(self, listener: Callable[[str], object]) -> None:
        """Call `listener(connection_id)` under the lock whenever a connection is removed."""
        self._deregister_listeners.append(listener)

    def register(self, connection_id: str, user_id: str | None = None) -> Connection:
        """Add a live connection.

        Raises:
            DuplicateConnection: If the id is already registered
        """
        with self.lock:
            if connection_id in self._connections:
                raise DuplicateConnection(connection_id)
            connection = Connection(connection_id=connection_id, user_id=user_id)
            self._connections[connection_id] = connection
        logger.debug(f"Registered connection {connection_id} (user: {user_id})")
        return connection

    def deregister(self, connection_id: str) -> bool:
        """Remove a connection and cascade to the listeners.

        Unknown ids are ignored.

        Returns:
            True if the connection was registered
        """
        with self.lock:
            if self._connections.pop(connection_id, None) is None:
                return False
            for listener in self._deregister_listeners:
                listener(connection_id)
        logger.debug(f"Deregistered connection {connection_id}")
        return True

    def exists(self, connection_id: str) -> bool:
        with self.lock:
            return connection_id in self._connections

    def get(self, connection_id: str) -> Connection | None:
        with self.lock:
            return self._connections.get(connection_id)

    def list_connections(self) -> list[Connection]:
        with self.lock:
            return list(self._connections.values())

    @property
    def connection_count(self) -> int:
        """Get the number of live connections."""
        return len(self._connections)
