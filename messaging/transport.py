"""Delivery channel between the router and connected clients."""

import asyncio
import json
from abc import ABC, abstractmethod

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)


class MessageTransport(ABC):
    """Hands outbound events to a specific connection."""

    @abstractmethod
    async def send(self, connection_id: str, event: str, payload: dict) -> None:
        """Deliver one event to one connection.

        Raises:
            Exception: Any delivery failure; the router logs it and moves on
        """

    async def close(self, connection_id: str) -> None:
        """Tear down the channel for a connection. Default: nothing to close."""


class WebSocketTransport(MessageTransport):
    """Sends `{"event": ..., "data": ...}` JSON frames over attached WebSockets."""

    def __init__(self, send_timeout: float = 5.0) -> None:
        self._sockets: dict[str, WebSocket] = {}
        self._send_timeout = send_timeout

    def attach(self, connection_id: str, websocket: WebSocket) -> None:
        self._sockets[connection_id] = websocket

    def detach(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    async def send(self, connection_id: str, event: str, payload: dict) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            logger.debug(f"No socket attached for connection {connection_id}, dropping {event}")
            return
        frame = json.dumps({"event": event, "data": payload})
        await asyncio.wait_for(websocket.send_text(frame), timeout=self._send_timeout)

    async def close(self, connection_id: str) -> None:
        """Detach and close a connection's socket; its endpoint then runs the disconnect path."""
        websocket = self._sockets.pop(connection_id, None)
        if websocket is None:
            return
        try:
            await asyncio.wait_for(websocket.close(code=1011), timeout=self._send_timeout)
        except Exception as e:
            logger.debug(f"Error closing WebSocket for connection {connection_id}: {e}")
