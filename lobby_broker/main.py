"""
lobby_broker.main
~~~~~~~~~~~~~~~~~

FastAPI 应用入口 —— 注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lobby_broker.api import status, ws
from lobby_broker.core.logging import get_logger, setup_logging
from lobby_broker.core.settings import settings
from lobby_broker.schemas.api_response import ApiResponse
from lobby_broker.services.lobby_server import LobbyServer

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


async def report_status(lobby: LobbyServer, interval: float) -> None:
    """周期性地把大厅状态写入日志，直到被取消。"""
    while True:
        await asyncio.sleep(interval)
        lobby.log_status()


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    lobby = LobbyServer(settings)
    app.state.lobby = lobby

    reporter: asyncio.Task[None] | None = None
    if settings.STATUS_REPORT_INTERVAL > 0:
        reporter = asyncio.create_task(report_status(lobby, settings.STATUS_REPORT_INTERVAL))

    logger.info(
        "🚀 大厅服务已启动 | env=%s | debug=%s | log_level=%s | capacity=%d",
        settings.ENVIRONMENT,
        settings.debug,
        settings.effective_log_level,
        settings.ROOM_CAPACITY,
    )
    yield
    # ── 关闭 ──
    if reporter is not None:
        reporter.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reporter
    logger.info("👋 大厅服务已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="实时多人大厅：房间、聊天与游戏开始标记",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

# ── CORS 中间件 ───────────────────────────────────────────────────────
if settings.allow_cors_all_origins:
    # dev / test 环境：允许所有来源，方便本地调试
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(status.router, tags=["System"])
app.include_router(ws.router, tags=["WebSocket Lobby"])


# ── 全局异常处理器 ────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 ApiResponse.fail() 格式。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "服务器内部错误"
    response = ApiResponse.fail(msg=detail, code=500, data=None)
    return JSONResponse(
        status_code=500,
        content=response.model_dump(),
    )


def run() -> None:
    """命令行入口：``lobby-broker``。"""
    import uvicorn

    uvicorn.run(
        "lobby_broker.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )


if __name__ == "__main__":
    run()
