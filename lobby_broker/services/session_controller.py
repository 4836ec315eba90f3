"""
lobby_broker.services.session_controller
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

会话控制器 —— 大厅的状态机。

每个会话只有两种状态：``Idle``（不在房间）与 ``InRoom``（在某个房间）。
创建或加入房间前总是先退出当前房间，因此一个会话任何时刻最多属于一个房间，
广播目标也总是唯一的。

所有入站事件先校验、再修改注册表、最后决定发送什么：
  - ``ValidationError``（空名字 / 空消息）静默忽略；
  - 其他 ``LobbyError`` 转换成一条 ``ERROR`` 事件，只发给请求方；
  - ``RegistryInconsistencyError`` 记录 CRITICAL 后继续抛出。

控制器本身不加锁、不 await，串行化由 ``LobbyServer`` 负责。
"""
from __future__ import annotations

import random

from lobby_broker.core.errors import (
    ConflictError,
    LobbyError,
    NotFoundError,
    RegistryInconsistencyError,
    StateError,
    ValidationError,
)
from lobby_broker.core.logging import get_logger
from lobby_broker.schemas.events import (
    CreatePrivateRoom,
    CreatePublicRoom,
    Error,
    GameStateChanged,
    GetRoomInfo,
    InboundEvent,
    JoinRandomRoom,
    JoinRoomByCode,
    LeaveRoom,
    NewMessage,
    Ping,
    PlayerJoined,
    PlayerLeft,
    PlayerUpdated,
    Pong,
    RoomCreated,
    RoomInfo,
    RoomJoined,
    RoomLeft,
    SendMessage,
    SetGameStarted,
    SetUsername,
    UsernameSet,
    Visibility,
)
from lobby_broker.services.connection_registry import ConnectionRegistry, Session
from lobby_broker.services.room import Room
from lobby_broker.services.room_broadcaster import RoomBroadcaster
from lobby_broker.services.room_registry import RoomRegistry

logger = get_logger(__name__)

ROOM_NOT_FOUND: str = "room not found"
GAME_ALREADY_STARTED: str = "game already started"
ROOM_FULL: str = "room full"
ALREADY_IN_ROOM: str = "already in this room"
NO_PUBLIC_ROOMS: str = "no public rooms available"
NOT_IN_ROOM: str = "not in a room"
NAME_TAKEN: str = "name already taken in this room"


class SessionController:
    """解释入站事件、修改注册表并通过广播器发出事件。

    Attributes:
        connections: 连接注册表。
        rooms: 房间注册表。
        broadcaster: 房间广播器。
    """

    def __init__(
        self,
        connections: ConnectionRegistry,
        rooms: RoomRegistry,
        broadcaster: RoomBroadcaster,
        rng: random.Random | None = None,
    ) -> None:
        self.connections = connections
        self.rooms = rooms
        self.broadcaster = broadcaster
        self._rng = rng or random.Random()

    # ── 分发 ──────────────────────────────────────────────────────────

    def dispatch(self, connection_id: str, event: InboundEvent) -> None:
        """按事件类型分发到对应的状态迁移。"""
        session = self.connections.get(connection_id)
        if session is None:
            logger.warning("收到未注册连接的消息，已忽略 | type=%s", event.type)
            return

        logger.debug("📨 %s 来自 %s", event.type, session.display_name)
        try:
            match event:
                case SetUsername(username=username):
                    self.set_display_name(session, username)
                case CreatePublicRoom():
                    self.create_room(session, "public")
                case CreatePrivateRoom():
                    self.create_room(session, "private")
                case JoinRoomByCode(room_code=room_code):
                    self.join_by_code(session, room_code)
                case JoinRandomRoom():
                    self.join_random(session)
                case LeaveRoom():
                    self.leave_room(session)
                case SendMessage(message=message):
                    self.send_message(session, message)
                case SetGameStarted(started=started):
                    self.set_game_started(session, started)
                case GetRoomInfo():
                    self.get_room_info(session)
                case Ping():
                    self.broadcaster.send(connection_id, Pong())
        except ValidationError as e:
            logger.debug("请求被忽略 | type=%s | reason=%s", event.type, e.message)
        except LobbyError as e:
            self.reject(connection_id, e)

    def reject(self, connection_id: str, error: LobbyError) -> None:
        """把业务错误作为 ``ERROR`` 事件发给请求方。"""
        logger.info("请求被拒绝 | %s: %s", type(error).__name__, error.message)
        self.broadcaster.send(connection_id, Error(message=error.message))

    # ── 状态迁移 ──────────────────────────────────────────────────────

    def set_display_name(self, session: Session, name: str) -> None:
        """修改显示名；在房间内时同步更新成员列表与房主，并合并为一次广播。"""
        new_name = (name or "").strip()
        if not new_name:
            raise ValidationError("empty display name")

        old_name = session.display_name
        if session.in_room:
            room = self._require_room(session)
            if room.has_member_named(new_name, exclude=session.connection_id):
                raise ConflictError(NAME_TAKEN)
            session.display_name = new_name
            room.rename_member(session.connection_id, new_name)
            self.broadcaster.broadcast(
                room.code,
                PlayerUpdated(
                    old_username=old_name,
                    new_username=new_name,
                    participants=room.member_names,
                    owner=room.owner,
                ),
            )
        else:
            session.display_name = new_name

        logger.info("✏️ 改名 %s → %s", old_name, new_name)
        self.broadcaster.send(session.connection_id, UsernameSet(username=new_name))

    def create_room(self, session: Session, visibility: Visibility) -> Room:
        """新建房间，请求方成为唯一成员兼房主。"""
        if session.in_room:
            self.leave_room(session)

        room = self.rooms.create(visibility, session)
        session.room_code = room.code
        logger.info("🆕 创建 %s 房间 %s | 房主: %s", visibility, room.code, session.display_name)

        self.broadcaster.send(session.connection_id, room.snapshot(RoomCreated))
        return room

    def join_by_code(self, session: Session, code: str) -> Room:
        """按房间码加入房间。

        Raises:
            NotFoundError: 房间不存在。
            ConflictError: 游戏已开始 / 房间已满 / 已在该房间（或房内已有同名成员）。
        """
        room = self.rooms.get(code)
        if room is None:
            raise NotFoundError(ROOM_NOT_FOUND)
        if room.game_started:
            raise ConflictError(GAME_ALREADY_STARTED)
        if room.is_full:
            raise ConflictError(ROOM_FULL)
        if room.has_member(session.connection_id) or room.has_member_named(session.display_name):
            raise ConflictError(ALREADY_IN_ROOM)

        if session.in_room:
            self.leave_room(session)

        room.add_member(session.connection_id, session.display_name)
        session.room_code = room.code
        logger.info(
            "🎯 %s 加入房间 %s | %d/%d",
            session.display_name, room.code, room.member_count, room.capacity,
        )

        self.broadcaster.send(session.connection_id, room.snapshot(RoomJoined))
        self.broadcaster.broadcast(
            room.code,
            PlayerJoined(username=session.display_name, participants=room.member_names),
            exclude=session.connection_id,
        )
        return room

    def join_random(self, session: Session) -> Room:
        """从可加入的公开房间中均匀随机挑一个加入。

        Raises:
            NotFoundError: 没有可加入的公开房间。
        """
        candidates = [
            room
            for room in self.rooms.list_joinable("public")
            if not room.has_member(session.connection_id)
            and not room.has_member_named(session.display_name)
        ]
        if not candidates:
            raise NotFoundError(NO_PUBLIC_ROOMS)
        return self.join_by_code(session, self._rng.choice(candidates).code)

    def leave_room(self, session: Session) -> None:
        """退出当前房间；不在房间时为空操作。房间清空后立即删除。"""
        if not session.in_room:
            return

        room = self._require_room(session)
        was_owner = room.is_owner(session.connection_id)
        room.remove_member(session.connection_id)
        session.room_code = None

        if room.is_empty:
            self.rooms.delete(room.code)
            logger.info("🗑️ 房间 %s 已删除（空房间）", room.code)
        else:
            if was_owner:
                logger.info("👑 房间 %s 房主转交给 %s", room.code, room.owner)
            self.broadcaster.broadcast(
                room.code,
                PlayerLeft(
                    username=session.display_name,
                    participants=room.member_names,
                    owner=room.owner,
                ),
            )

        logger.info("🚪 %s 离开房间 %s", session.display_name, room.code)
        self.broadcaster.send(session.connection_id, RoomLeft())

    def send_message(self, session: Session, text: str) -> None:
        """在当前房间发送聊天消息，包括发送者在内的所有成员都会收到。"""
        if not session.in_room:
            raise ValidationError("not in a room")
        if not text:
            raise ValidationError("empty message")

        room = self._require_room(session)
        record = room.append_message(session.display_name, text)
        self.broadcaster.broadcast(
            room.code,
            NewMessage(sender=record.sender, message=record.text, timestamp=record.sent_at),
        )
        logger.debug("💬 [%s] %s: %s", room.code, record.sender, record.text)

    def set_game_started(self, session: Session, started: bool) -> None:
        """房主切换游戏开始标记；非房主或不在房间时静默忽略。"""
        if not session.in_room:
            logger.debug("不在房间内，忽略 SET_GAME_STARTED")
            return

        room = self._require_room(session)
        if not room.is_owner(session.connection_id):
            logger.debug("%s 不是房间 %s 的房主，忽略 SET_GAME_STARTED", session.display_name, room.code)
            return

        room.game_started = started
        self.broadcaster.broadcast(
            room.code,
            GameStateChanged(game_started=started, changed_by=session.display_name),
        )
        logger.info(
            "🎮 房间 %s 游戏%s | 操作者: %s",
            room.code, "开始" if started else "停止", session.display_name,
        )

    def get_room_info(self, session: Session) -> None:
        """把当前房间的完整快照发给请求方。

        Raises:
            StateError: 不在房间内。
        """
        if not session.in_room:
            raise StateError(NOT_IN_ROOM)
        room = self._require_room(session)
        self.broadcaster.send(
            session.connection_id,
            room.snapshot(RoomInfo, participant_count=room.member_count),
        )

    def disconnect(self, connection_id: str) -> None:
        """连接关闭：先退出房间，再从连接注册表移除。"""
        session = self.connections.get(connection_id)
        if session is None:
            return
        try:
            self.leave_room(session)
        finally:
            self.connections.remove(connection_id)
        logger.info("👋 %s 已断开", session.display_name)

    # ── 内部 ──────────────────────────────────────────────────────────

    def _require_room(self, session: Session) -> Room:
        """取会话所在的房间，会话与注册表不一致时视为程序缺陷。"""
        room = self.rooms.get(session.room_code or "")
        if room is None or not room.has_member(session.connection_id):
            logger.critical(
                "会话与房间注册表不一致 | session=%r | room_exists=%s",
                session, room is not None,
            )
            # 先断开会话对房间的引用，保证后续断线清理能完成
            session.room_code = None
            raise RegistryInconsistencyError(
                f"session {session.connection_id} references room it is not part of",
            )
        return room
