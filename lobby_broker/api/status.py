"""
lobby_broker.api.status
~~~~~~~~~~~~~~~~~~~~~~~

运维 HTTP 接口 —— 服务横幅、存活探测、大厅状态。

端点:
  - ``GET /``        → 服务名、版本与各入口地址
  - ``GET /ping``    → 存活探测 + 房间数 / 玩家数
  - ``GET /status``  → 完整状态快照（``ApiResponse[LobbyStatusData]``）
"""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from lobby_broker.core.settings import settings
from lobby_broker.schemas.api_response import ApiResponse
from lobby_broker.schemas.status import LobbyStatusData
from lobby_broker.services.lobby_server import LobbyServer

router: APIRouter = APIRouter()


def get_lobby(request: Request) -> LobbyServer:
    return request.app.state.lobby


@router.get("/", summary="服务信息")
async def index(request: Request) -> JSONResponse:
    """返回服务横幅与 WebSocket / ping / status 入口地址。"""
    host = request.headers.get("host", f"{settings.HOST}:{settings.PORT}")
    return JSONResponse(
        content={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "status": "running",
            "websocket": f"ws://{host}/ws",
            "ping": f"http://{host}/ping",
            "statusUrl": f"http://{host}/status",
        },
    )


@router.get("/ping", summary="存活探测")
async def ping(lobby: LobbyServer = Depends(get_lobby)) -> JSONResponse:
    """存活探测，附带当前房间数与玩家数。"""
    snapshot = lobby.status()
    return JSONResponse(
        content={
            "status": "ok",
            "time": int(time.time() * 1000),
            "message": f"{settings.PROJECT_NAME} is alive!",
            "rooms": snapshot.total_rooms,
            "players": snapshot.total_players,
        },
    )


@router.get("/status", summary="大厅状态", response_model=ApiResponse[LobbyStatusData])
async def status(lobby: LobbyServer = Depends(get_lobby)):
    """返回所有房间的摘要与汇总计数。"""
    return ApiResponse.ok(data=lobby.status())
