"""
lobby_broker.core.errors
~~~~~~~~~~~~~~~~~~~~~~~~

大厅业务异常体系。

除 ``ValidationError`` 外，所有 ``LobbyError`` 都会被会话控制器转换成
一条 ``ERROR`` 事件，只发给发起请求的连接，不会断开连接，也不影响其他房间。

``RegistryInconsistencyError`` 不属于业务错误：它表示内部不变量被破坏，
会被记录为 CRITICAL 日志并继续向上抛出。
"""
from __future__ import annotations


class LobbyError(Exception):
    """大厅业务异常基类。

    Attributes:
        message: 发给客户端的错误描述。
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LobbyError):
    """输入为空等校验失败，静默忽略，不向客户端发送任何事件。"""


class NotFoundError(LobbyError):
    """房间码不存在。"""


class ConflictError(LobbyError):
    """房间已满、已在房间内、游戏已开始等冲突。"""


class RoomCodeExhaustedError(ConflictError):
    """房间码空间耗尽（或重试次数用尽），无法分配新房间码。"""

    def __init__(self, message: str = "no room codes available") -> None:
        super().__init__(message)


class StateError(LobbyError):
    """操作要求的会话状态（在房间内 / 房主）不满足。"""


class ProtocolError(LobbyError):
    """入站消息无法解析为已知事件。"""


class RegistryInconsistencyError(RuntimeError):
    """会话与房间注册表之间的不变量被破坏（程序缺陷）。"""
