"""
lobby_broker.services.room_code
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间码生成器 —— 随机生成大写字母房间码，与当前在用的房间码冲突时重试。
"""
from __future__ import annotations

import random
import string
from collections.abc import Callable, Collection

from lobby_broker.core.errors import RoomCodeExhaustedError
from lobby_broker.core.logging import get_logger

logger = get_logger(__name__)


class RoomCodeGenerator:
    """生成在当前注册表中唯一的房间码。

    Args:
        codes_in_use: 返回当前在用房间码集合的回调（通常是 ``RoomRegistry.codes``）。
        length: 房间码长度。
        alphabet: 可用字符。
        max_attempts: 单次生成的最大尝试次数。
        rng: 随机数源，测试时可传入固定种子。
    """

    def __init__(
        self,
        codes_in_use: Callable[[], Collection[str]],
        length: int = 4,
        alphabet: str = string.ascii_uppercase,
        max_attempts: int = 1000,
        rng: random.Random | None = None,
    ) -> None:
        self._codes_in_use = codes_in_use
        self.length = length
        self.alphabet = alphabet
        self.max_attempts = max_attempts
        self._rng = rng or random.Random()

    @property
    def capacity(self) -> int:
        """可能的房间码总数。"""
        return len(self.alphabet) ** self.length

    def next(self) -> str:
        """返回一个当前未被使用的房间码。

        Raises:
            RoomCodeExhaustedError: 码空间已满，或 ``max_attempts`` 次尝试均冲突。
        """
        in_use = self._codes_in_use()
        if len(in_use) >= self.capacity:
            logger.error("房间码空间已耗尽 | 在用: %d", len(in_use))
            raise RoomCodeExhaustedError()

        for _ in range(self.max_attempts):
            code = "".join(self._rng.choices(self.alphabet, k=self.length))
            if code not in in_use:
                return code

        logger.error("房间码生成重试 %d 次仍冲突 | 在用: %d", self.max_attempts, len(in_use))
        raise RoomCodeExhaustedError()
