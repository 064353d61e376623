"""Session gateway - connection lifecycle and inbound event dispatch."""

import uuid
from collections.abc import Awaitable, Callable

from logging_config import get_logger
from messaging.membership import RoomMembershipTable
from messaging.registry import ConnectionRegistry, DuplicateConnection
from messaging.router import MessageRouter
from schemas.events import (
    InboundEvent,
    JoinRoomEvent,
    LeaveRoomEvent,
    PrivateMessageEvent,
    RoomMessageEvent,
)

logger = get_logger(__name__)


class SessionGateway:
    """Entry point for everything a connection does.

    Lifecycle per connection:
        on_connect -> any number of room joins/leaves and messages -> on_disconnect

    Disconnect is terminal, idempotent, and removes the connection from every
    room. The gateway does not authenticate; whoever accepts the socket is
    responsible for that.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        membership: RoomMembershipTable,
        router: MessageRouter,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._registry = registry
        self._membership = membership
        self._router = router
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._handlers: dict[type, Callable[[str, InboundEvent], Awaitable[object]]] = {
            JoinRoomEvent: lambda cid, e: self.on_join_room_request(cid, e.room),
            LeaveRoomEvent: lambda cid, e: self.on_leave_room_request(cid, e.room),
            PrivateMessageEvent: lambda cid, e: self.on_private_message_request(cid, e.receiver, e.message),
            RoomMessageEvent: lambda cid, e: self.on_room_message_request(cid, e.room, e.message),
        }

    async def on_connect(self, user_id: str | None = None) -> str:
        """Allocate and register a new connection id.

        Raises:
            DuplicateConnection: If the allocated id is already live
        """
        connection_id = self._id_factory()
        try:
            self._registry.register(connection_id, user_id=user_id)
        except DuplicateConnection:
            logger.error(f"Connection id collision for {connection_id}, rejecting connection")
            raise
        logger.info(f"A user connected: {connection_id} (user: {user_id})")
        return connection_id

    async def on_join_room_request(self, connection_id: str, room: str) -> bool:
        """Join a room and announce it to everyone in it, the joiner included."""
        if not self._membership.join(room, connection_id):
            return False
        await self._router.route_to_room(
            room, f"User {connection_id} joined the room", sender_id=connection_id
        )
        return True

    async def on_leave_room_request(self, connection_id: str, room: str) -> bool:
        if not self._membership.leave(room, connection_id):
            return False
        await self._router.route_to_room(
            room, f"User {connection_id} left the room", sender_id=connection_id
        )
        return True

    async def on_private_message_request(self, connection_id: str, receiver_id: str, payload: str) -> bool:
        return await self._router.route_private(connection_id, receiver_id, payload)

    async def on_room_message_request(self, connection_id: str, room: str, payload: str) -> int:
        if room not in self._membership.rooms_of(connection_id):
            logger.debug(f"Connection {connection_id} sent to room {room} without being a member")
        return await self._router.route_to_room(room, payload, exclude_sender_id=connection_id)

    async def on_disconnect(self, connection_id: str) -> bool:
        removed = self._registry.deregister(connection_id)
        if removed:
            logger.info(f"A user disconnected: {connection_id}")
        return removed

    async def dispatch(self, connection_id: str, event: InboundEvent) -> object:
        """Route one parsed inbound event to its handler.

        Raises:
            TypeError: For event types with no handler
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"No handler for event type {type(event).__name__}")
        return await handler(connection_id, event)
