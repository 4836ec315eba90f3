"""
lobby_broker.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

HTTP 运维接口的统一应答体：``/status`` 的正常返回与全局异常处理器的错误返回
共用同一结构。WebSocket 协议事件见 ``schemas/events.py``，不经过此包装。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

SUCCESS_CODE: int = 200


class ApiResponse(BaseModel, Generic[T]):
    """``{"code": ..., "data": ..., "msg": ...}`` 形式的应答。

    Attributes:
        code: 业务状态码，``SUCCESS_CODE`` 表示成功，其余沿用 HTTP 状态码。
        data: 业务数据，失败时通常为 ``None``。
        msg: 状态描述。
    """

    code: int = Field(default=SUCCESS_CODE, description="业务状态码")
    data: T = Field(..., description="业务数据")
    msg: str = Field(default="success", description="状态描述")

    @property
    def succeeded(self) -> bool:
        return self.code == SUCCESS_CODE

    @classmethod
    def ok(cls, data: T, msg: str = "success") -> ApiResponse[T]:
        return cls(code=SUCCESS_CODE, data=data, msg=msg)

    @classmethod
    def fail(cls, msg: str, code: int = 500, data: Any = None) -> ApiResponse[Any]:
        return cls(code=code, data=data, msg=msg)
