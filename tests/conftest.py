"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 固定随机种子的大厅实例与玩家工厂。
"""
from __future__ import annotations

import os
import random
from collections.abc import Callable

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STATUS_REPORT_INTERVAL", "0")

from lobby_broker.core.settings import Settings  # noqa: E402
from lobby_broker.services.lobby_server import LobbyServer  # noqa: E402

from tests.helpers import FakePeer, Player  # noqa: E402


@pytest.fixture()
def lobby_settings() -> Settings:
    return Settings(ENVIRONMENT="test", ROOM_CAPACITY=8, STATUS_REPORT_INTERVAL=0)


@pytest.fixture()
def lobby(lobby_settings: Settings) -> LobbyServer:
    """固定随机种子的大厅实例。"""
    return LobbyServer(lobby_settings, rng=random.Random(1234))


@pytest.fixture()
def make_player(lobby: LobbyServer) -> Callable[..., Player]:
    """创建一个已连接的玩家，可选地设置显示名，并清空 WELCOME 等前置消息。"""

    def _make(name: str | None = None) -> Player:
        peer = FakePeer()
        player = Player(lobby, lobby.connect(peer), peer)
        if name is not None:
            player.send("SET_USERNAME", username=name)
        peer.clear()
        return player

    return _make
