from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Literal, Union


class JoinRoomEvent(BaseModel):
    # "createRoom" is what the browser client historically sent
    type: Literal["joinRoom", "createRoom"]
    room: str = Field(min_length=1)

class LeaveRoomEvent(BaseModel):
    type: Literal["leaveRoom"]
    room: str = Field(min_length=1)

class PrivateMessageEvent(BaseModel):
    type: Literal["privateMessage"]
    receiver: str = Field(min_length=1)
    message: str

class RoomMessageEvent(BaseModel):
    type: Literal["roomMessage"]
    room: str = Field(min_length=1)
    message: str


InboundEvent = Annotated[
    Union[JoinRoomEvent, LeaveRoomEvent, PrivateMessageEvent, RoomMessageEvent],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_inbound_event(raw: str) -> InboundEvent:
    """Parse one JSON text frame from a client.

    Raises pydantic.ValidationError for malformed JSON, unknown `type` values
    or missing fields.
    """
    return _inbound_adapter.validate_json(raw)
