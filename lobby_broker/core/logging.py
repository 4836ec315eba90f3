"""
lobby_broker.core.logging
~~~~~~~~~~~~~~~~~~~~~~~~~

统一日志配置，根据环境自动设置日志级别和格式。

所有模块应通过 ``get_logger(__name__)`` 获取 logger 实例，
不要直接使用 ``print()`` 输出调试信息。

处理某个 WebSocket 连接期间，``connection_id_ctx_var`` 保存该连接的 ID，
日志格式中的 ``connection_id`` 字段由 ``ConnectionIdFilter`` 注入。
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

from lobby_broker.core.settings import settings

# 当前正在处理的连接 ID，未处理连接时为 "-"
connection_id_ctx_var: ContextVar[str] = ContextVar("connection_id", default="-")

# 日志格式：时间 | 级别 | 连接 | 模块名 | 消息
_LOG_FORMAT: str = "%(asctime)s | %(levelname)-7s | %(connection_id)s | %(name)s | %(message)s"
_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"


class ConnectionIdFilter(logging.Filter):
    """把 ``connection_id_ctx_var`` 的当前值写入每条日志记录。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_ctx_var.get()
        return True


def setup_logging() -> None:
    """根据当前环境配置全局日志。应在应用启动时调用一次。"""
    level = getattr(logging, settings.effective_log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        stream=sys.stdout,
        force=True,  # 覆盖可能已有的 basicConfig
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(ConnectionIdFilter())

    # 降低第三方库的日志噪音
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """获取指定模块的 logger 实例。

    Args:
        name: 模块名，通常传 ``__name__``。

    Returns:
        配置好的 ``logging.Logger`` 实例。
    """
    return logging.getLogger(name)
