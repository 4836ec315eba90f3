"""
lobby_broker.services.connection_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

连接注册表 —— 维护每个在线连接对应的会话状态（显示名、所在房间、传输句柄）。
"""
from __future__ import annotations

import random
from collections.abc import Iterator

from lobby_broker.core.logging import get_logger
from lobby_broker.services.room_broadcaster import Peer

logger = get_logger(__name__)


class Session:
    """单个连接的服务端会话。

    Attributes:
        connection_id: 连接 ID，连接期间不可变，也是房主归属的依据。
        display_name: 显示名，可随时修改，全局不要求唯一。
        room_code: 所在房间码，不在房间时为 ``None``。
        peer: 传输层句柄，用于投递出站事件。
    """

    def __init__(self, connection_id: str, display_name: str, peer: Peer) -> None:
        self.connection_id = connection_id
        self.display_name = display_name
        self.room_code: str | None = None
        self.peer = peer

    @property
    def in_room(self) -> bool:
        return self.room_code is not None

    def __repr__(self) -> str:
        return f"Session({self.connection_id!r}, {self.display_name!r}, room={self.room_code!r})"


class ConnectionRegistry:
    """连接 ID → ``Session`` 的映射。

    占位显示名 ``Player<0-999>`` 直接随机生成，不检查是否与其他会话重名。
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._rng = rng or random.Random()

    def register(self, connection_id: str, peer: Peer) -> Session:
        """为新连接创建会话。

        Raises:
            ValueError: ``connection_id`` 已被占用（程序缺陷）。
        """
        if connection_id in self._sessions:
            raise ValueError(f"connection id already registered: {connection_id}")
        session = Session(connection_id, self._placeholder_name(), peer)
        self._sessions[connection_id] = session
        return session

    def get(self, connection_id: str) -> Session | None:
        return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> Session | None:
        return self._sessions.pop(connection_id, None)

    def _placeholder_name(self) -> str:
        return f"Player{self._rng.randint(0, 999)}"

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))
