"""Message router - resolves relay targets and hands payloads to the transport."""

import asyncio

from logging_config import get_logger
from messaging.membership import RoomMembershipTable
from messaging.models import Message
from messaging.registry import ConnectionRegistry
from messaging.transport import MessageTransport

logger = get_logger(__name__)

PRIVATE_MESSAGE_EVENT = "privateMessage"
ROOM_MESSAGE_EVENT = "roomMessage"


class MessageRouter:
    """Best-effort, at-most-once relay of private and room messages.

    Delivery is in-memory only:
    - a private message to a connection that is not registered is dropped
      silently and the sender is not told
    - a room message to an unknown room reaches nobody
    - every target is re-checked against the registry right before hand-off,
      so a connection that disconnected mid-broadcast is skipped
    - room members are handed the message concurrently, so one slow socket
      does not hold up the others
    - a failed hand-off is logged and never retried; the failing connection
      is deregistered and its socket closed
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        membership: RoomMembershipTable,
        transport: MessageTransport,
    ) -> None:
        self._registry = registry
        self._membership = membership
        self._transport = transport

    async def route_private(self, sender_id: str, receiver_id: str, payload: str) -> bool:
        """Relay a private message.

        Returns:
            True if the transport accepted the message
        """
        message = Message(
            sender_id=sender_id,
            payload=payload,
            event=PRIVATE_MESSAGE_EVENT,
            receiver_id=receiver_id,
        )
        if not self._registry.exists(receiver_id):
            logger.debug(f"Dropping private message from {sender_id}: receiver {receiver_id} not connected")
            return False
        return await self._deliver(receiver_id, message)

    async def route_to_room(
        self,
        room: str,
        payload: str,
        exclude_sender_id: str | None = None,
        *,
        sender_id: str | None = None,
        event: str = ROOM_MESSAGE_EVENT,
    ) -> int:
        """Relay a message to every member of a room.

        Args:
            room: Target room name
            payload: Message text
            exclude_sender_id: Member that should not receive its own message
            sender_id: Reported as `sender`; defaults to `exclude_sender_id`
            event: Outbound event name

        Returns:
            Number of members the transport accepted the message for
        """
        if sender_id is None:
            sender_id = exclude_sender_id
        message = Message(sender_id=sender_id, payload=payload, event=event, room=room)

        targets = sorted(self._membership.members_of(room) - {exclude_sender_id})
        if not targets:
            logger.debug(f"No recipients in room {room} for message from {sender_id}")
            return 0

        results = await asyncio.gather(
            *(self._deliver(target, message) for target in targets),
            return_exceptions=True,
        )
        delivered = sum(1 for result in results if result is True)
        logger.debug(f"Delivered {event} in room {room} to {delivered}/{len(targets)} members")
        return delivered

    async def _deliver(self, target: str, message: Message) -> bool:
        if not self._registry.exists(target):
            logger.debug(f"Skipping {message.event} to {target}: disconnected before delivery")
            return False

        username = None
        if message.sender_id is not None:
            sender = self._registry.get(message.sender_id)
            if sender is not None:
                username = sender.user_id

        try:
            await self._transport.send(target, message.event, message.to_data(username))
        except Exception as e:
            logger.warning(f"Error delivering {message.event} to connection {target}: {e}", exc_info=True)
            await self._evict(target)
            return False
        return True

    async def _evict(self, connection_id: str) -> None:
        """Disconnect a member whose socket failed so later messages skip it."""
        if self._registry.deregister(connection_id):
            logger.info(f"Evicted connection {connection_id} after failed delivery")
        await self._transport.close(connection_id)
