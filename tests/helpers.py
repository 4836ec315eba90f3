"""
tests.helpers
~~~~~~~~~~~~~

测试辅助类 —— 用内存中的 ``FakePeer`` 代替真实 WebSocket，
``Player`` 把会话、假连接与 JSON 发送捆在一起。
"""
from __future__ import annotations

import json
from typing import Any

from lobby_broker.services.connection_registry import Session
from lobby_broker.services.lobby_server import LobbyServer


class FakePeer:
    """记录所有投递消息的假连接。"""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.is_open: bool = True

    def send(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    @property
    def types(self) -> list[str]:
        return [p["type"] for p in self.sent]

    def of_type(self, type_: str) -> list[dict[str, Any]]:
        return [p for p in self.sent if p["type"] == type_]

    def last(self) -> dict[str, Any]:
        return self.sent[-1]

    def clear(self) -> None:
        self.sent.clear()


class Player:
    """测试里的一个玩家：会话 + 假连接 + 发送快捷方法。"""

    def __init__(self, lobby: LobbyServer, session: Session, peer: FakePeer) -> None:
        self.lobby = lobby
        self.session = session
        self.peer = peer

    @property
    def id(self) -> str:
        return self.session.connection_id

    def send(self, type_: str, **fields: Any) -> None:
        self.lobby.handle_text(self.id, json.dumps({"type": type_, **fields}))
