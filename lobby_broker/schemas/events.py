"""
lobby_broker.schemas.events
~~~~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 协议的 Pydantic 事件模型。

所有帧都是 JSON 对象 ``{"type": "<KIND>", ...}``，字段在线上使用 camelCase，
Python 侧使用 snake_case（通过 ``alias_generator`` 互转）。

入站事件通过 ``parse_inbound()`` 解析，解析失败统一抛出 ``ProtocolError``。
出站事件通过 ``OutboundEvent.to_payload()`` 序列化为可直接 ``send_json`` 的 dict。
"""
from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from lobby_broker.core.errors import ProtocolError

Visibility = Literal["public", "private"]

INVALID_FORMAT_MESSAGE: str = "invalid message format"
UNKNOWN_COMMAND_MESSAGE: str = "unknown command"


class _WireModel(BaseModel):
    """线上模型基类：camelCase 别名，允许按字段名构造。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── 入站事件 ──────────────────────────────────────────────────────────

class SetUsername(_WireModel):
    type: Literal["SET_USERNAME"]
    username: str = ""


class CreatePublicRoom(_WireModel):
    type: Literal["CREATE_PUBLIC_ROOM"]


class CreatePrivateRoom(_WireModel):
    type: Literal["CREATE_PRIVATE_ROOM"]


class JoinRoomByCode(_WireModel):
    type: Literal["JOIN_ROOM_BY_CODE"]
    room_code: str


class JoinRandomRoom(_WireModel):
    type: Literal["JOIN_RANDOM_ROOM"]


class LeaveRoom(_WireModel):
    type: Literal["LEAVE_ROOM"]


class SendMessage(_WireModel):
    type: Literal["SEND_MESSAGE"]
    message: str = ""


class SetGameStarted(_WireModel):
    type: Literal["SET_GAME_STARTED"]
    started: bool


class GetRoomInfo(_WireModel):
    type: Literal["GET_ROOM_INFO"]


class Ping(_WireModel):
    type: Literal["PING"]


InboundEvent = Annotated[
    Union[
        SetUsername,
        CreatePublicRoom,
        CreatePrivateRoom,
        JoinRoomByCode,
        JoinRandomRoom,
        LeaveRoom,
        SendMessage,
        SetGameStarted,
        GetRoomInfo,
        Ping,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


def parse_inbound(raw: str | bytes) -> InboundEvent:
    """把一帧原始文本解析为入站事件。

    Args:
        raw: WebSocket 收到的原始文本（或二进制）帧。

    Returns:
        对应的入站事件模型实例。

    Raises:
        ProtocolError: 非 JSON / 非对象 / 字段缺失或类型错误时消息为
            ``invalid message format``；``type`` 未知时为 ``unknown command``。
    """
    try:
        return _inbound_adapter.validate_json(raw)
    except PydanticValidationError as exc:
        if any(err["type"] == "union_tag_invalid" for err in exc.errors()):
            raise ProtocolError(UNKNOWN_COMMAND_MESSAGE) from exc
        raise ProtocolError(INVALID_FORMAT_MESSAGE) from exc


# ── 出站事件 ──────────────────────────────────────────────────────────

class OutboundEvent(_WireModel):
    """出站事件基类，子类通过 ``TYPE`` 声明线上类型名。"""

    TYPE: ClassVar[str]

    def to_payload(self) -> dict[str, Any]:
        """序列化为线上 JSON 对象（camelCase，带 ``type`` 字段）。"""
        return {"type": self.TYPE, **self.model_dump(by_alias=True)}


class Welcome(OutboundEvent):
    TYPE: ClassVar[str] = "WELCOME"
    message: str
    server: str
    your_username: str


class UsernameSet(OutboundEvent):
    TYPE: ClassVar[str] = "USERNAME_SET"
    username: str


class RoomSnapshot(OutboundEvent):
    """房间完整快照，所有快照类事件共享这组字段。"""

    room_code: str
    room_name: str
    room_type: Visibility
    participants: list[str]
    owner: str
    game_started: bool
    max_players: int


class RoomCreated(RoomSnapshot):
    TYPE: ClassVar[str] = "ROOM_CREATED"


class RoomJoined(RoomSnapshot):
    TYPE: ClassVar[str] = "ROOM_JOINED"


class RoomInfo(RoomSnapshot):
    TYPE: ClassVar[str] = "ROOM_INFO"
    participant_count: int


class PlayerJoined(OutboundEvent):
    TYPE: ClassVar[str] = "PLAYER_JOINED"
    username: str
    participants: list[str]


class PlayerLeft(OutboundEvent):
    TYPE: ClassVar[str] = "PLAYER_LEFT"
    username: str
    participants: list[str]
    owner: str


class RoomLeft(OutboundEvent):
    TYPE: ClassVar[str] = "ROOM_LEFT"


class PlayerUpdated(OutboundEvent):
    TYPE: ClassVar[str] = "PLAYER_UPDATED"
    old_username: str
    new_username: str
    participants: list[str]
    owner: str


class NewMessage(OutboundEvent):
    TYPE: ClassVar[str] = "NEW_MESSAGE"
    sender: str
    message: str
    timestamp: int


class GameStateChanged(OutboundEvent):
    TYPE: ClassVar[str] = "GAME_STATE_CHANGED"
    game_started: bool
    changed_by: str


class Pong(OutboundEvent):
    TYPE: ClassVar[str] = "PONG"


class Error(OutboundEvent):
    TYPE: ClassVar[str] = "ERROR"
    message: str
