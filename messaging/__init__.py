"""Messaging core - connection registry, room membership, routing and the session gateway."""

from messaging.gateway import SessionGateway
from messaging.membership import RoomMembershipTable
from messaging.models import Connection, Message
from messaging.registry import ConnectionRegistry, DuplicateConnection, MessagingError
from messaging.router import MessageRouter
from messaging.transport import MessageTransport, WebSocketTransport

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "DuplicateConnection",
    "Message",
    "MessageRouter",
    "MessageTransport",
    "MessagingError",
    "RoomMembershipTable",
    "SessionGateway",
    "WebSocketTransport",
]
