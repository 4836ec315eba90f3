"""
tests.test_ws_api
~~~~~~~~~~~~~~~~~

传输层测试：``WebSocketPeer`` 出站队列单元测试 +
基于 FastAPI ``TestClient`` 的 WebSocket / HTTP 端到端测试。
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterator
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocket
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from lobby_broker.api.ws import WebSocketPeer, websocket_lobby_endpoint
from lobby_broker.core.settings import Settings
from lobby_broker.main import app
from lobby_broker.schemas.api_response import ApiResponse
from lobby_broker.schemas.events import Pong
from lobby_broker.services.lobby_server import LobbyServer


def _mock_websocket() -> AsyncMock:
    ws = AsyncMock(spec=WebSocket)
    ws.client_state = WebSocketState.CONNECTED
    return ws


async def _drain(peer: WebSocketPeer) -> None:
    for _ in range(20):
        if not peer.pending:
            break
        await asyncio.sleep(0)
    await asyncio.sleep(0)


# ==============================================================================
# 单元测试: WebSocketPeer
# ==============================================================================

class TestWebSocketPeer:
    """测试每连接出站队列。"""

    @pytest.mark.asyncio
    async def test_writer_preserves_order(self) -> None:
        ws = _mock_websocket()
        peer = WebSocketPeer(ws, max_queue=10)
        for n in range(3):
            peer.send({"type": "X", "n": n})

        writer = asyncio.create_task(peer.writer_loop())
        await _drain(peer)
        writer.cancel()

        assert [c.args[0]["n"] for c in ws.send_json.call_args_list] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_queue_overflow_closes_peer(self) -> None:
        peer = WebSocketPeer(_mock_websocket(), max_queue=2)

        for n in range(3):
            peer.send({"type": "X", "n": n})
        peer.send({"type": "X", "n": 99})

        assert peer.is_open is False
        assert peer.pending == 2

    @pytest.mark.asyncio
    async def test_write_failure_stops_writer(self) -> None:
        ws = _mock_websocket()
        ws.send_json.side_effect = RuntimeError("socket closed")
        peer = WebSocketPeer(ws)
        peer.send({"type": "PONG"})

        await asyncio.wait_for(peer.writer_loop(), timeout=1)

        assert peer.is_open is False

    def test_disconnected_socket_is_not_open(self) -> None:
        ws = _mock_websocket()
        ws.client_state = WebSocketState.DISCONNECTED

        assert WebSocketPeer(ws).is_open is False

    @pytest.mark.asyncio
    async def test_overflow_wakes_close_waiters(self) -> None:
        peer = WebSocketPeer(_mock_websocket(), max_queue=1)
        waiter = asyncio.create_task(peer.wait_closed())
        peer.send({"type": "X"})
        await asyncio.sleep(0)
        assert not waiter.done()

        peer.send({"type": "X"})

        await asyncio.wait_for(waiter, timeout=1)


class TestEndpointTeardown:
    """直接驱动端点协程，验证慢消费者会被移出大厅。"""

    @pytest.mark.asyncio
    async def test_silent_slow_consumer_is_disconnected(self) -> None:
        lobby = LobbyServer(Settings(ENVIRONMENT="test", WS_SEND_QUEUE_SIZE=2, STATUS_REPORT_INTERVAL=0))
        never = asyncio.Event()

        async def _block(*args, **kwargs):
            await never.wait()

        ws = _mock_websocket()
        ws.app = SimpleNamespace(state=SimpleNamespace(lobby=lobby))
        ws.receive.side_effect = _block
        ws.send_json.side_effect = _block

        endpoint = asyncio.create_task(websocket_lobby_endpoint(ws))
        for _ in range(20):
            await asyncio.sleep(0)
            if len(lobby.connections):
                break
        (session,) = list(lobby.connections)

        for _ in range(10):
            lobby.broadcaster.send(session.connection_id, Pong())
        await asyncio.wait_for(endpoint, timeout=1)

        assert lobby.connections.get(session.connection_id) is None
        ws.close.assert_awaited_once_with(code=1013)


# ==============================================================================
# 集成测试: WebSocket / HTTP 端点
# ==============================================================================

@pytest.fixture()
def client() -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


class TestLobbyEndpoints:
    """通过真实路由驱动大厅。"""

    def test_welcome_on_connect(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            welcome = ws.receive_json()

        assert welcome["type"] == "WELCOME"
        assert welcome["yourUsername"].startswith("Player")

    def test_root_path_also_accepts_websocket(self, client: TestClient) -> None:
        with client.websocket_connect("/") as ws:
            assert ws.receive_json()["type"] == "WELCOME"
            ws.send_json({"type": "PING"})
            assert ws.receive_json() == {"type": "PONG"}

    def test_create_join_chat_flow(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws_a, client.websocket_connect("/ws") as ws_b:
            ws_a.receive_json()
            ws_b.receive_json()

            ws_a.send_json({"type": "SET_USERNAME", "username": "A"})
            assert ws_a.receive_json() == {"type": "USERNAME_SET", "username": "A"}
            ws_b.send_json({"type": "SET_USERNAME", "username": "B"})
            assert ws_b.receive_json() == {"type": "USERNAME_SET", "username": "B"}

            ws_a.send_json({"type": "CREATE_PUBLIC_ROOM"})
            created = ws_a.receive_json()
            assert created["type"] == "ROOM_CREATED"
            assert created["participants"] == ["A"]

            ws_b.send_json({"type": "JOIN_RANDOM_ROOM"})
            joined = ws_b.receive_json()
            assert joined["type"] == "ROOM_JOINED"
            assert joined["roomCode"] == created["roomCode"]
            assert joined["owner"] == "A"
            assert joined["participants"] == ["A", "B"]
            assert ws_a.receive_json() == {
                "type": "PLAYER_JOINED", "username": "B", "participants": ["A", "B"],
            }

            ws_b.send_json({"type": "SEND_MESSAGE", "message": "hello"})
            for ws in (ws_a, ws_b):
                message = ws.receive_json()
                assert message["type"] == "NEW_MESSAGE"
                assert message["sender"] == "B"
                assert message["message"] == "hello"

            status = client.get("/status").json()
            assert status["code"] == 200
            assert status["data"]["totalRooms"] == 1
            assert status["data"]["totalPlayers"] == 2
            assert status["data"]["rooms"][0]["participants"] == ["A", "B"]

            ws_a.send_text("not json")
            assert ws_a.receive_json() == {"type": "ERROR", "message": "invalid message format"}

        # 两个连接都关闭后，房间随之删除
        ping = client.get("/ping").json()
        assert ping["status"] == "ok"
        assert ping["rooms"] == 0
        assert ping["players"] == 0

    def test_disconnect_notifies_remaining_member(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws_b:
            ws_b.receive_json()
            ws_b.send_json({"type": "SET_USERNAME", "username": "B"})
            ws_b.receive_json()

            with client.websocket_connect("/ws") as ws_a:
                ws_a.receive_json()
                ws_a.send_json({"type": "SET_USERNAME", "username": "A"})
                ws_a.receive_json()
                ws_a.send_json({"type": "CREATE_PRIVATE_ROOM"})
                code = ws_a.receive_json()["roomCode"]
                ws_b.send_json({"type": "JOIN_ROOM_BY_CODE", "roomCode": code})
                assert ws_b.receive_json()["type"] == "ROOM_JOINED"
                ws_a.receive_json()

            assert ws_b.receive_json() == {
                "type": "PLAYER_LEFT", "username": "A", "participants": ["B"], "owner": "B",
            }
            ws_b.send_json({"type": "GET_ROOM_INFO"})
            info = ws_b.receive_json()
            assert info["owner"] == "B"
            assert info["participantCount"] == 1

    def test_index(self, client: TestClient) -> None:
        body = client.get("/").json()

        assert body["status"] == "running"
        assert body["websocket"].endswith("/ws")


class TestApiResponse:
    """测试 HTTP 统一应答体。"""

    def test_ok_and_fail(self) -> None:
        ok = ApiResponse.ok(data={"rooms": 0})
        failed = ApiResponse.fail("boom", code=500)

        assert ok.succeeded and ok.model_dump() == {"code": 200, "data": {"rooms": 0}, "msg": "success"}
        assert not failed.succeeded and failed.data is None
