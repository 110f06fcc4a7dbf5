"""
WebSocket wire messages for the Crazy Eights room server.

Every message is a JSON object with a snake_case ``type`` discriminator.
Inbound messages are validated with pydantic; the embedded action and state
documents stay plain dicts here and are decoded by models.actions and
game.GameState respectively.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class PlayerSnapshot(BaseModel):
    """Public identity of a connected player."""

    id: str = Field(..., min_length=1)
    display_name: str = Field(..., max_length=64)


class RoomSummary(BaseModel):
    """Room list entry for the lobby browser."""

    room_code: str
    host_name: str
    player_count: int
    is_public: bool


# ---------------------------------------------------------------------------
# Client -> server
# ---------------------------------------------------------------------------

class CreateRoomMessage(BaseModel):
    type: Literal["create_room"] = "create_room"
    room_code: str = Field(..., min_length=1, max_length=16)
    host: PlayerSnapshot
    is_public: bool = True


class JoinRoomMessage(BaseModel):
    type: Literal["join_room"] = "join_room"
    room_code: str = Field(..., min_length=1, max_length=16)
    player: PlayerSnapshot


class SendActionMessage(BaseModel):
    type: Literal["send_action"] = "send_action"
    room_code: str
    player_id: str
    action: dict[str, Any]


class RequestRoomListMessage(BaseModel):
    type: Literal["request_room_list"] = "request_room_list"


class ReadyUpdateMessage(BaseModel):
    type: Literal["ready_update"] = "ready_update"
    room_code: str
    player_id: str
    is_ready: bool


ClientMessage = Annotated[
    Union[
        CreateRoomMessage,
        JoinRoomMessage,
        SendActionMessage,
        RequestRoomListMessage,
        ReadyUpdateMessage,
    ],
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: Any) -> ClientMessage:
    """
    Validate an inbound JSON object.

    Raises:
        pydantic.ValidationError: On unknown type or bad fields.
    """
    return _client_message_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Server -> client
# ---------------------------------------------------------------------------

class RoomJoinedMessage(BaseModel):
    type: Literal["room_joined"] = "room_joined"
    room_code: str
    players: list[PlayerSnapshot]
    state: dict[str, Any]


class StateUpdatedMessage(BaseModel):
    type: Literal["state_updated"] = "state_updated"
    state: dict[str, Any]


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str


class RoomListMessage(BaseModel):
    type: Literal["room_list"] = "room_list"
    rooms: list[RoomSummary]


class ReadySnapshotMessage(BaseModel):
    type: Literal["ready_snapshot"] = "ready_snapshot"
    player_ids: list[str]


ServerMessage = Union[
    RoomJoinedMessage,
    StateUpdatedMessage,
    ErrorMessage,
    RoomListMessage,
    ReadySnapshotMessage,
]
