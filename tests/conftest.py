"""Shared test fixtures for pytest."""

from collections.abc import Callable

import pytest

from messaging.gateway import SessionGateway
from messaging.membership import RoomMembershipTable
from messaging.registry import ConnectionRegistry
from messaging.router import MessageRouter
from messaging.transport import MessageTransport


class RecordingTransport(MessageTransport):
    """In-memory transport that records every delivery.

    Attributes:
        sent: (connection_id, event, payload) tuples in delivery order
        failing: Connection ids whose delivery raises
        closed: Connection ids the router asked to close
        before_send: Optional coroutine run before recording each delivery
    """

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []
        self.failing: set[str] = set()
        self.closed: list[str] = []
        self.before_send: Callable | None = None

    async def send(self, connection_id: str, event: str, payload: dict) -> None:
        if self.before_send is not None:
            await self.before_send(connection_id, event, payload)
        if connection_id in self.failing:
            raise ConnectionError(f"socket for {connection_id} is gone")
        self.sent.append((connection_id, event, payload))

    async def close(self, connection_id: str) -> None:
        self.closed.append(connection_id)

    def received_by(self, connection_id: str) -> list[tuple[str, dict]]:
        return [(event, payload) for cid, event, payload in self.sent if cid == connection_id]


@pytest.fixture
def registry() -> ConnectionRegistry:
    """Create an empty ConnectionRegistry."""
    return ConnectionRegistry()


@pytest.fixture
def membership(registry: ConnectionRegistry) -> RoomMembershipTable:
    """Create a RoomMembershipTable bound to the registry."""
    return RoomMembershipTable(registry)


@pytest.fixture
def transport() -> RecordingTransport:
    """Create a RecordingTransport."""
    return RecordingTransport()


@pytest.fixture
def router(
    registry: ConnectionRegistry,
    membership: RoomMembershipTable,
    transport: RecordingTransport,
) -> MessageRouter:
    """Create a MessageRouter over the shared state."""
    return MessageRouter(registry, membership, transport)




@pytest.fixture
def gateway(
    registry: ConnectionRegistry,
    membership: RoomMembershipTable,
    router: MessageRouter,
) -> SessionGateway:
    """Create a SessionGateway with predictable connection ids (conn-1, conn-2, ...)."""
    counter = iter(range(1, 10_000))
    return SessionGateway(registry, membership, router, id_factory=lambda: f"conn-{next(counter)}")
