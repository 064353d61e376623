"""Value types shared by the messaging core."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Connection:
    """One live client link.

    Attributes:
        connection_id: Opaque identifier handed to the client on connect
        user_id: Username the client announced, if any (not verified here)
        connected_at: When the registry accepted the connection
    """

    connection_id: str
    user_id: Optional[str] = None
    connected_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Message:
    """A relay request, built and consumed inside a single routing call.

    Exactly one of `receiver_id` and `room` is set.
    """

    sender_id: Optional[str]
    payload: str
    event: str
    receiver_id: Optional[str] = None
    room: Optional[str] = None

    def to_data(self, username: Optional[str] = None) -> dict:
        """Outbound `data` body for the transport."""
        if self.room is not None:
            data = {"room": self.room, "message": self.payload, "sender": self.sender_id}
        else:
            data = {"sender": self.sender_id, "message": self.payload}
        if username:
            data["username"] = username
        return data
