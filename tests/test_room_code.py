"""
tests.test_room_code
~~~~~~~~~~~~~~~~~~~~

RoomCodeGenerator 单元测试：格式、唯一性与码空间耗尽。
"""
from __future__ import annotations

import random

import pytest

from lobby_broker.core.errors import ConflictError, RoomCodeExhaustedError
from lobby_broker.services.room_code import RoomCodeGenerator


class TestRoomCodeGenerator:
    """测试房间码生成。"""

    def test_code_is_four_uppercase_letters(self) -> None:
        gen = RoomCodeGenerator(frozenset, rng=random.Random(0))

        code = gen.next()

        assert len(code) == 4
        assert code.isalpha() and code.isupper()
        assert gen.capacity == 26**4

    def test_codes_unique_against_registry(self) -> None:
        """每个新码都不与已在用的码冲突。"""
        in_use: set[str] = set()
        gen = RoomCodeGenerator(lambda: in_use, length=2, alphabet="ABC", rng=random.Random(7))

        for _ in range(9):
            code = gen.next()
            assert code not in in_use
            in_use.add(code)

        assert len(in_use) == 9

    def test_retries_on_collision(self) -> None:
        """前几次随机结果冲突时继续重试，直到得到空闲码。"""
        in_use = {"A", "B"}
        gen = RoomCodeGenerator(lambda: in_use, length=1, alphabet="ABC", rng=random.Random(3))

        assert gen.next() == "C"

    def test_saturated_space_raises(self) -> None:
        in_use = {"A", "B"}
        gen = RoomCodeGenerator(lambda: in_use, length=1, alphabet="AB")

        with pytest.raises(RoomCodeExhaustedError) as exc_info:
            gen.next()

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.message == "no room codes available"

    def test_bounded_attempts_raise_instead_of_hanging(self) -> None:
        """随机源始终命中在用码时，在 max_attempts 次后放弃。"""
        rng = random.Random()
        rng.choices = lambda population, k: ["A"] * k  # type: ignore[method-assign]
        gen = RoomCodeGenerator(lambda: {"AA"}, length=2, alphabet="AB", max_attempts=5, rng=rng)

        with pytest.raises(RoomCodeExhaustedError):
            gen.next()
