"""
lobby_broker.services.room
~~~~~~~~~~~~~~~~~~~~~~~~~~

房间领域模型 —— 成员、房主、聊天记录与游戏开始标记。

成员以连接 ID 为键保存（按加入顺序），显示名只是展示属性。
房主同样以连接 ID 记录，因此重名不会导致房主归属歧义，
改名时只需更新一处显示名，成员列表与房主显示名天然保持一致。
"""
from __future__ import annotations

import time
from typing import NamedTuple

from lobby_broker.schemas.events import RoomSnapshot, Visibility
from lobby_broker.schemas.status import RoomSummaryData


class ChatRecord(NamedTuple):
    """一条聊天记录。``sent_at`` 为毫秒时间戳。"""

    sender: str
    text: str
    sent_at: int


class Room:
    """一个游戏房间。

    Attributes:
        code: 房间码（创建后不可变）。
        visibility: ``public`` 或 ``private``。
        capacity: 最大成员数。
        owner_id: 房主的连接 ID。
        game_started: 游戏是否已开始，仅房主可修改。
        history: 追加式聊天记录。
        created_at: 创建时间（毫秒时间戳）。
    """

    def __init__(
        self,
        code: str,
        visibility: Visibility,
        owner_id: str,
        owner_name: str,
        capacity: int = 8,
    ) -> None:
        self.code = code
        self.visibility = visibility
        self.capacity = capacity
        self.owner_id = owner_id
        self.game_started = False
        self.history: list[ChatRecord] = []
        self.created_at = int(time.time() * 1000)
        # connection_id -> display_name，dict 保留插入顺序即加入顺序
        self._members: dict[str, str] = {owner_id: owner_name}

    @property
    def name(self) -> str:
        return f"Room {self.code}"

    # ── 成员 ──────────────────────────────────────────────────────────

    @property
    def member_ids(self) -> list[str]:
        """按加入顺序排列的成员连接 ID。"""
        return list(self._members)

    @property
    def member_names(self) -> list[str]:
        """按加入顺序排列的成员显示名。"""
        return list(self._members.values())

    @property
    def member_count(self) -> int:
        return len(self._members)

    @property
    def is_full(self) -> bool:
        return len(self._members) >= self.capacity

    @property
    def is_empty(self) -> bool:
        return not self._members

    @property
    def owner(self) -> str:
        """房主当前的显示名。"""
        return self._members.get(self.owner_id, "")

    def has_member(self, connection_id: str) -> bool:
        return connection_id in self._members

    def has_member_named(self, display_name: str, exclude: str | None = None) -> bool:
        """是否有成员（可排除某个连接）使用该显示名。"""
        return any(
            name == display_name and member_id != exclude
            for member_id, name in self._members.items()
        )

    def add_member(self, connection_id: str, display_name: str) -> None:
        """追加成员。调用方负责事先检查容量与重名。"""
        self._members[connection_id] = display_name

    def remove_member(self, connection_id: str) -> None:
        """移除成员；若移除的是房主，房主转交给最早加入的剩余成员。"""
        self._members.pop(connection_id, None)
        if connection_id == self.owner_id and self._members:
            self.owner_id = next(iter(self._members))

    def rename_member(self, connection_id: str, display_name: str) -> None:
        """原位更新成员显示名，成员顺序不变。"""
        if connection_id in self._members:
            self._members[connection_id] = display_name

    def is_owner(self, connection_id: str) -> bool:
        return connection_id == self.owner_id

    # ── 聊天 ──────────────────────────────────────────────────────────

    def append_message(self, sender: str, text: str) -> ChatRecord:
        record = ChatRecord(sender=sender, text=text, sent_at=int(time.time() * 1000))
        self.history.append(record)
        return record

    # ── 序列化 ────────────────────────────────────────────────────────

    def snapshot(self, event_cls: type[RoomSnapshot], **extra: object) -> RoomSnapshot:
        """构造一条房间快照类出站事件。

        Args:
            event_cls: ``RoomCreated`` / ``RoomJoined`` / ``RoomInfo`` 等快照事件类。
            **extra: 事件类额外需要的字段。
        """
        return event_cls(
            room_code=self.code,
            room_name=self.name,
            room_type=self.visibility,
            participants=self.member_names,
            owner=self.owner,
            game_started=self.game_started,
            max_players=self.capacity,
            **extra,
        )

    def summary(self) -> RoomSummaryData:
        """返回房间摘要信息。"""
        return RoomSummaryData(
            code=self.code,
            name=self.name,
            type=self.visibility,
            participants=self.member_names,
            owner=self.owner,
            game_started=self.game_started,
            participant_count=self.member_count,
            max_players=self.capacity,
        )
