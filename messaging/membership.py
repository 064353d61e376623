"""Room membership table."""

from logging_config import get_logger
from messaging.registry import ConnectionRegistry

logger = get_logger(__name__)


class RoomMembershipTable:
    """Maps room names to the connection ids currently in them.

    - Rooms are created implicitly on first join, with no validation of the name
    - Only connections known to the registry can join
    - Removing a connection from the registry removes it from every room
    - Emptied rooms are kept unless `prune_empty_rooms` is set
    """

    def __init__(self, registry: ConnectionRegistry, prune_empty_rooms: bool = False) -> None:
        self._registry = registry
        self._lock = registry.lock
        self._rooms: dict[str, set[str]] = {}
        self._prune_empty_rooms = prune_empty_rooms
        registry.add_deregister_listener(self.leave_all)

    def join(self, room: str, connection_id: str) -> bool:
        """Add a connection to a room, creating the room if needed.

        Returns:
            False if the connection is not registered (nothing changes),
            True otherwise, including when it was already a member
        """
        with self._lock:
            if not self._registry.exists(connection_id):
                logger.warning(f"Refused join of unknown connection {connection_id} to room {room}")
                return False
            members = self._rooms.setdefault(room, set())
            if connection_id in members:
                return True
            members.add(connection_id)
            count = len(members)
        logger.info(f"Connection {connection_id} joined room {room} ({count} members)")
        return True

    def leave(self, room: str, connection_id: str) -> bool:
        """Remove a connection from one room.

        Returns:
            True if it was a member
        """
        with self._lock:
            members = self._rooms.get(room)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            self._drop_if_empty(room)
        logger.info(f"Connection {connection_id} left room {room}")
        return True

    def leave_all(self, connection_id: str) -> list[str]:
        """Remove a connection from every room it is in.

        Returns:
            Names of the rooms it was removed from
        """
        with self._lock:
            left = [room for room, members in self._rooms.items() if connection_id in members]
            for room in left:
                self._rooms[room].discard(connection_id)
                self._drop_if_empty(room)
        if left:
            logger.debug(f"Removed connection {connection_id} from rooms: {', '.join(sorted(left))}")
        return left

    def _drop_if_empty(self, room: str) -> None:
        if self._prune_empty_rooms and not self._rooms.get(room):
            self._rooms.pop(room, None)
            logger.debug(f"Pruned empty room {room}")

    def members_of(self, room: str) -> set[str]:
        """Snapshot of a room's members; empty for unknown rooms."""
        with self._lock:
            return set(self._rooms.get(room, ()))

    def rooms_of(self, connection_id: str) -> set[str]:
        with self._lock:
            return {room for room, members in self._rooms.items() if connection_id in members}

    def room_names(self) -> list[str]:
        with self._lock:
            return sorted(self._rooms)

    @property
    def room_count(self) -> int:
        return len(self._rooms)
