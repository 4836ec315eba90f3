"""
lobby_broker.services.lobby_server
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

大厅服务 —— 持有连接注册表、房间注册表、广播器与会话控制器的顶层协调者。

不使用模块级全局状态：在 FastAPI lifespan 中创建实例并挂载到 ``app.state.lobby``。

对传输层暴露的钩子:
  - ``connect(peer)``                 → 注册新连接并发送 WELCOME
  - ``handle_text(connection_id, raw)`` → 解析一帧入站消息并分发
  - ``dispatch(connection_id, event)``  → 分发已解析的入站事件
  - ``disconnect(connection_id)``     → 连接关闭/出错时清理
  - ``status()``                      → 只读状态快照（供 ``/status`` 与周期日志）

所有钩子都在同一把锁内执行，任意两个事件对注册表的读写不会交错。
"""
from __future__ import annotations

import random
import threading
import time
import uuid

from lobby_broker.core.errors import ProtocolError
from lobby_broker.core.logging import get_logger
from lobby_broker.core.settings import Settings, get_settings
from lobby_broker.schemas.events import InboundEvent, Welcome, parse_inbound
from lobby_broker.schemas.status import LobbyStatusData
from lobby_broker.services.connection_registry import ConnectionRegistry, Session
from lobby_broker.services.room_broadcaster import Peer, RoomBroadcaster
from lobby_broker.services.room_registry import RoomRegistry
from lobby_broker.services.session_controller import SessionController

logger = get_logger(__name__)

WELCOME_MESSAGE: str = "Welcome to the multiplayer lobby!"


class LobbyServer:
    """大厅服务（每个进程一个实例）。

    Attributes:
        settings: 运行配置。
        connections: 连接注册表。
        rooms: 房间注册表。
        broadcaster: 房间广播器。
        controller: 会话控制器。
    """

    def __init__(self, settings: Settings | None = None, rng: random.Random | None = None) -> None:
        self.settings: Settings = settings or get_settings()
        self.connections = ConnectionRegistry(rng=rng)
        self.rooms = RoomRegistry(
            capacity=self.settings.ROOM_CAPACITY,
            code_length=self.settings.ROOM_CODE_LENGTH,
            max_code_attempts=self.settings.ROOM_CODE_MAX_ATTEMPTS,
            rng=rng,
        )
        self.broadcaster = RoomBroadcaster(self.connections, self.rooms)
        self.controller = SessionController(self.connections, self.rooms, self.broadcaster, rng=rng)
        self._lock = threading.RLock()
        self._started_at = time.monotonic()

    def connect(self, peer: Peer, connection_id: str | None = None) -> Session:
        """注册新连接并发送 WELCOME。"""
        with self._lock:
            session = self.connections.register(connection_id or uuid.uuid4().hex, peer)
            self.broadcaster.send(
                session.connection_id,
                Welcome(
                    message=WELCOME_MESSAGE,
                    server=self.settings.SERVER_NAME,
                    your_username=session.display_name,
                ),
            )
        logger.info("🎮 新玩家连接 %s | 在线: %d", session.display_name, len(self.connections))
        return session

    def dispatch(self, connection_id: str, event: InboundEvent) -> None:
        with self._lock:
            self.controller.dispatch(connection_id, event)

    def handle_text(self, connection_id: str, raw: str | bytes) -> None:
        """解析一帧入站消息；格式错误只回复请求方，不影响连接。"""
        try:
            event = parse_inbound(raw)
        except ProtocolError as e:
            logger.warning("❌ 无法解析的消息: %.200r", raw)
            with self._lock:
                if self.connections.get(connection_id) is not None:
                    self.controller.reject(connection_id, e)
            return
        self.dispatch(connection_id, event)

    def disconnect(self, connection_id: str) -> None:
        with self._lock:
            self.controller.disconnect(connection_id)

    # ── 运维 ──────────────────────────────────────────────────────────

    def status(self) -> LobbyStatusData:
        """返回大厅状态快照。"""
        with self._lock:
            return LobbyStatusData(
                server=self.settings.PROJECT_NAME,
                version=self.settings.VERSION,
                total_rooms=len(self.rooms),
                total_players=len(self.connections),
                uptime=round(time.monotonic() - self._started_at, 3),
                rooms=[room.summary() for room in self.rooms],
            )

    def log_status(self) -> None:
        """把状态快照写入日志。"""
        snapshot = self.status()
        logger.info(
            "📊 大厅状态 | 房间: %d | 玩家: %d",
            snapshot.total_rooms, snapshot.total_players,
        )
        for room in snapshot.rooms:
            logger.info(
                "   %s [%s] %d/%d 人 | 游戏: %s",
                room.code, room.type, room.participant_count, room.max_players,
                "进行中" if room.game_started else "等待中",
            )
