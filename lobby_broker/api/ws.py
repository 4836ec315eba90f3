"""
lobby_broker.api.ws
~~~~~~~~~~~~~~~~~~~

WebSocket 传输层 —— 把 socket 帧交给 ``LobbyServer``，再把出站事件写回 socket。

每个连接有一个 ``WebSocketPeer``：控制器只做非阻塞入队，
独立的写协程按入队顺序逐条 ``send_json``，接收与发送互不阻塞。

消息协议见 ``lobby_broker.schemas.events``。
"""
from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from lobby_broker.core.logging import connection_id_ctx_var, get_logger
from lobby_broker.services.lobby_server import LobbyServer

logger = get_logger(__name__)

router: APIRouter = APIRouter()


class WebSocketPeer:
    """单个 WebSocket 连接的出站队列。

    队列满或写失败时视为连接已失效：标记为关闭、不再接收新消息，
    并唤醒 ``wait_closed`` 的等待方，由端点结束接收循环并清理会话。

    Attributes:
        websocket: FastAPI WebSocket 连接对象。
    """

    def __init__(self, websocket: WebSocket, max_queue: int = 256) -> None:
        self.websocket = websocket
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_queue)
        self._open = True
        self._closed = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self._open and self.websocket.client_state == WebSocketState.CONNECTED

    @property
    def pending(self) -> int:
        """尚未写出的消息数。"""
        return self._queue.qsize()

    def send(self, payload: dict[str, Any]) -> None:
        if not self._open:
            return
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("发送队列已满，断开慢消费者 | 积压: %d", self._queue.qsize())
            self.close()

    def close(self) -> None:
        self._open = False
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def writer_loop(self) -> None:
        """按入队顺序把消息写回 socket，写失败即停止。"""
        while True:
            payload = await self._queue.get()
            try:
                await self.websocket.send_json(payload)
            except Exception as e:
                logger.warning("写入 WebSocket 失败，停止发送: %s", e)
                self.close()
                return


async def _receive_frame(websocket: WebSocket) -> str | bytes | None:
    """读取一帧文本或二进制数据，连接关闭时返回 ``None``。"""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        return None
    if message.get("text") is not None:
        return message["text"]
    return message.get("bytes") or b""


@router.websocket("/")
@router.websocket("/ws")
async def websocket_lobby_endpoint(websocket: WebSocket) -> None:
    """大厅 WebSocket 端点。

    连接建立后立即收到 ``WELCOME``，之后每帧是一条 JSON 入站事件。
    连接关闭、出错或发送队列溢出时自动退出所在房间。
    """
    await websocket.accept()
    lobby: LobbyServer = websocket.app.state.lobby
    peer = WebSocketPeer(websocket, max_queue=lobby.settings.WS_SEND_QUEUE_SIZE)
    writer = asyncio.create_task(peer.writer_loop())

    session = lobby.connect(peer)
    token = connection_id_ctx_var.set(session.connection_id)
    # 对端沉默时接收会一直挂起，因此同时等待 peer 被标记关闭
    closed = asyncio.create_task(peer.wait_closed())
    close_code = status.WS_1000_NORMAL_CLOSURE
    receiving: asyncio.Task[str | bytes | None] | None = None
    try:
        while True:
            receiving = asyncio.create_task(_receive_frame(websocket))
            await asyncio.wait({receiving, closed}, return_when=asyncio.FIRST_COMPLETED)
            if not receiving.done():
                receiving.cancel()
                close_code = status.WS_1013_TRY_AGAIN_LATER
                logger.info("出站连接已失效，结束会话")
                break
            raw = receiving.result()
            if raw is None:
                break
            lobby.handle_text(session.connection_id, raw)
    except WebSocketDisconnect:
        pass  # 正常断开
    except Exception as e:
        logger.error("WebSocket 异常: %s", e, exc_info=True)
    finally:
        lobby.disconnect(session.connection_id)
        peer.close()
        for task in (writer, closed, receiving):
            if task is None or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if websocket.client_state == WebSocketState.CONNECTED:
            with contextlib.suppress(Exception):
                await websocket.close(code=close_code)
        connection_id_ctx_var.reset(token)
