"""
lobby_broker.schemas.status
~~~~~~~~~~~~~~~~~~~~~~~~~~~

运维状态快照模型，由 ``LobbyServer.status()`` 生成，供 ``/status`` 与周期日志使用。
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lobby_broker.schemas.events import Visibility


class RoomSummaryData(BaseModel):
    """单个房间的摘要。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str = Field(..., description="房间码")
    name: str = Field(..., description="房间名")
    type: Visibility = Field(..., description="public / private")
    participants: list[str] = Field(..., description="成员显示名（按加入顺序）")
    owner: str = Field(..., description="房主显示名")
    game_started: bool = Field(..., description="游戏是否已开始")
    participant_count: int = Field(..., description="当前人数")
    max_players: int = Field(..., description="房间容量")


class LobbyStatusData(BaseModel):
    """整个大厅的状态快照。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    server: str = Field(..., description="服务名")
    version: str = Field(..., description="版本号")
    total_rooms: int = Field(..., description="房间总数")
    total_players: int = Field(..., description="在线连接总数")
    uptime: float = Field(..., description="运行时长（秒）")
    rooms: list[RoomSummaryData] = Field(..., description="房间摘要列表")
