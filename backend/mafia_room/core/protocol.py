"""
Inbound websocket messages.

Every message is an envelope `{"type": ..., "payload": {...}}`. Each known
type is modelled below and the union is discriminated on `type`, so parsing
either yields exactly one of these models or fails.
"""
import json
import logging
from typing import Annotated, Any, Literal, Optional, Union, get_args
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class Empty(Payload):
    pass

class CreateRoomPayload(Payload):
    name: Optional[str] = None

class JoinRoomPayload(Payload):
    room_id: Optional[str] = Field(default=None, alias="roomId")
    name: Optional[str] = None
    avatar: Optional[str] = None

class ChangeNamePayload(Payload):
    name: Optional[str] = None
    avatar: Optional[str] = None

class ChatPayload(Payload):
    text: Any = None

class TargetPayload(Payload):
    target_id: Optional[str] = Field(default=None, alias="targetId")

class KickPayload(Payload):
    player_id: Optional[str] = Field(default=None, alias="playerId")

class SignalPayload(Payload):
    to: Optional[str] = None
    offer: Any = None
    answer: Any = None
    candidate: Any = None

class CreateRoom(BaseModel):
    type: Literal["createRoom"]
    payload: CreateRoomPayload = CreateRoomPayload()

class ListRooms(BaseModel):
    type: Literal["listRooms"]
    payload: Empty = Empty()

class JoinRoom(BaseModel):
    type: Literal["joinRoom"]
    payload: JoinRoomPayload = JoinRoomPayload()

class LeaveRoom(BaseModel):
    type: Literal["leaveRoom"]
    payload: Empty = Empty()

class ChangeName(BaseModel):
    type: Literal["changeName"]
    payload: ChangeNamePayload = ChangeNamePayload()

class StartGame(BaseModel):
    type: Literal["startGame"]
    payload: Empty = Empty()

class SendChat(BaseModel):
    type: Literal["sendChat"]
    payload: ChatPayload = ChatPayload()

class MafiaVote(BaseModel):
    type: Literal["mafiaVote"]
    payload: TargetPayload = TargetPayload()

class CommissarCheck(BaseModel):
    type: Literal["commissarCheck"]
    payload: TargetPayload = TargetPayload()

class Vote(BaseModel):
    type: Literal["vote"]
    payload: TargetPayload = TargetPayload()

class RequestRoomState(BaseModel):
    type: Literal["requestRoomState"]
    payload: Empty = Empty()

class Kick(BaseModel):
    type: Literal["kick"]
    payload: KickPayload = KickPayload()

class Signal(BaseModel):
    type: Literal["signal"]
    payload: SignalPayload = SignalPayload()

InboundMessage = Annotated[
    Union[
        CreateRoom,
        ListRooms,
        JoinRoom,
        LeaveRoom,
        ChangeName,
        StartGame,
        SendChat,
        MafiaVote,
        CommissarCheck,
        Vote,
        RequestRoomState,
        Kick,
        Signal,
    ],
    Field(discriminator="type"),
]

MESSAGE_TYPES = get_args(get_args(InboundMessage)[0])

_adapter = TypeAdapter(InboundMessage)

def parse_message(raw: str) -> Optional[BaseModel]:
    """Returns the typed message, or None for anything malformed or unknown."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        logger.debug("Dropping unparsable message")
        return None
    if not isinstance(data, dict):
        return None
    # Clients may omit the payload or send null for messages without fields
    if data.get("payload") is None:
        data["payload"] = {}
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        logger.debug(f"Dropping invalid {data.get('type')!r} message: {e.error_count()} error(s)")
        return None
