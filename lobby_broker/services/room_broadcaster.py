"""
lobby_broker.services.room_broadcaster
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间广播器 —— 把一条出站事件投递给房间内当前在线的成员。

投递是尽力而为的：已关闭的连接直接跳过，单个连接投递失败只记录日志，
不会中断对其他成员的投递。``Peer.send`` 只做非阻塞入队，
每个连接按入队顺序依次发送，因此同一成员收到的事件顺序与广播调用顺序一致。
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from lobby_broker.core.logging import get_logger
from lobby_broker.schemas.events import OutboundEvent

if TYPE_CHECKING:
    from lobby_broker.services.connection_registry import ConnectionRegistry
    from lobby_broker.services.room_registry import RoomRegistry

logger = get_logger(__name__)


class Peer(Protocol):
    """传输层为每个连接提供的投递句柄。"""

    @property
    def is_open(self) -> bool: ...

    def send(self, payload: dict[str, Any]) -> None:
        """非阻塞地投递一条出站消息。"""
        ...


class RoomBroadcaster:
    """按房间成员解析连接并投递出站事件。

    成员以连接 ID 解析，不依赖显示名，因此重名成员不会被错投。

    Attributes:
        connections: 连接注册表。
        rooms: 房间注册表。
    """

    def __init__(self, connections: ConnectionRegistry, rooms: RoomRegistry) -> None:
        self.connections = connections
        self.rooms = rooms

    def send(self, connection_id: str, event: OutboundEvent) -> bool:
        """向单个连接投递事件，返回是否成功入队。"""
        return self._deliver(connection_id, event.to_payload())

    def broadcast(
        self,
        room_code: str,
        event: OutboundEvent,
        exclude: str | None = None,
    ) -> int:
        """向房间内所有在线成员广播事件。

        Args:
            room_code: 目标房间码。
            event: 出站事件。
            exclude: 需要排除的连接 ID（通常是发送者）。

        Returns:
            成功投递的连接数。房间不存在时为 0。
        """
        room = self.rooms.get(room_code)
        if room is None:
            return 0

        payload = event.to_payload()
        delivered = 0
        for connection_id in room.member_ids:
            if connection_id == exclude:
                continue
            if self._deliver(connection_id, payload):
                delivered += 1
        return delivered

    def _deliver(self, connection_id: str, payload: dict[str, Any]) -> bool:
        session = self.connections.get(connection_id)
        if session is None or not session.peer.is_open:
            return False
        try:
            session.peer.send(payload)
        except Exception as e:
            logger.warning(
                "投递失败，跳过该连接 | conn=%s | type=%s | err=%s",
                connection_id, payload.get("type"), e,
            )
            return False
        return True
