"""
lobby_broker.services.room_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间注册表 —— 房间码 → ``Room`` 的映射。

房间在创建时注册，成员数归零时由会话控制器立即删除，
因此注册表中的每个房间至少有一名成员。
"""
from __future__ import annotations

import random
from collections.abc import Iterator

from lobby_broker.core.logging import get_logger
from lobby_broker.schemas.events import Visibility
from lobby_broker.services.connection_registry import Session
from lobby_broker.services.room import Room
from lobby_broker.services.room_code import RoomCodeGenerator

logger = get_logger(__name__)


class JoinableRooms:
    """可加入房间的惰性视图：指定可见性、未开始游戏、未满员。

    每次迭代都会重新读取注册表，因此可以重复迭代；
    单次迭代期间按注册表快照的插入顺序产出。
    """

    def __init__(self, registry: RoomRegistry, visibility: Visibility) -> None:
        self._registry = registry
        self.visibility = visibility

    def __iter__(self) -> Iterator[Room]:
        for room in self._registry:
            if room.visibility == self.visibility and not room.game_started and not room.is_full:
                yield room


class RoomRegistry:
    """房间码 → ``Room``。

    Args:
        capacity: 新建房间的默认容量。
        code_length: 房间码长度。
        max_code_attempts: 房间码生成的最大重试次数。
        rng: 随机数源，测试时可传入固定种子。
    """

    def __init__(
        self,
        capacity: int = 8,
        code_length: int = 4,
        max_code_attempts: int = 1000,
        rng: random.Random | None = None,
    ) -> None:
        self.capacity = capacity
        self._rooms: dict[str, Room] = {}
        self.code_generator = RoomCodeGenerator(
            self.codes,
            length=code_length,
            max_attempts=max_code_attempts,
            rng=rng,
        )

    @staticmethod
    def normalize(code: str) -> str:
        return code.strip().upper()

    def create(self, visibility: Visibility, owner: Session) -> Room:
        """新建房间，创建者是唯一成员兼房主。

        Raises:
            RoomCodeExhaustedError: 无法分配房间码。
        """
        code = self.code_generator.next()
        room = Room(
            code=code,
            visibility=visibility,
            owner_id=owner.connection_id,
            owner_name=owner.display_name,
            capacity=self.capacity,
        )
        self._rooms[code] = room
        logger.debug("房间已注册 | code=%s | 当前房间数: %d", code, len(self._rooms))
        return room

    def get(self, code: str) -> Room | None:
        return self._rooms.get(self.normalize(code))

    def delete(self, code: str) -> Room | None:
        room = self._rooms.pop(self.normalize(code), None)
        if room is not None:
            logger.debug("房间已注销 | code=%s | 当前房间数: %d", room.code, len(self._rooms))
        return room

    def codes(self) -> frozenset[str]:
        return frozenset(self._rooms)

    def list_joinable(self, visibility: Visibility) -> JoinableRooms:
        return JoinableRooms(self, visibility)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.normalize(code) in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))
