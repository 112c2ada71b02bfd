"""棋盘账本模型

客户端侧的棋盘只做记账: 尺寸、每个座位的棋子余量以及已落子的锚点。
锚点是棋子包围盒的左上角，不一定是被占用的格子，包围盒可以伸出棋盘边缘，
所以锚点可能为负，不同棋子也可以共用同一锚点。
落子是否合法以服务端为准，这里仅校验能从本地状态判断的部分
(座位、锚点范围、余量)。需要完整规则引擎时，
提供同名方法的实现即可替换本类。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from collections.abc import Sequence

from .enums import PLAYER_COUNT, SHAPE_COUNT, GameMode
from .turn import Turn

logger = logging.getLogger(__name__)

# 经典规则: 每种棋子各一枚
DEFAULT_STONE_SET: tuple[int, ...] = (1,) * SHAPE_COUNT

# Junior 简化棋子集
JUNIOR_STONE_SET: tuple[int, ...] = (
    2,
    2,
    2, 2,
    2, 2, 2, 2, 2,
    2, 0, 0, 0, 0, 0, 0, 0, 2, 2, 0, 0,
)

# 可选棋盘尺寸
FIELD_SIZES: tuple[int, ...] = (13, 14, 15, 17, 20, 23)

# 棋子包围盒的最大边长
SHAPE_MAX_SIZE = 5


def default_stone_set(game_mode: GameMode) -> tuple[int, ...]:
    """返回给定模式下每种棋子的默认数量"""
    if game_mode == GameMode.JUNIOR:
        return JUNIOR_STONE_SET
    return DEFAULT_STONE_SET


def default_board_size(game_mode: GameMode) -> int:
    """返回给定模式下的默认棋盘边长"""
    if game_mode in (GameMode.FOUR_COLORS_FOUR_PLAYERS, GameMode.FOUR_COLORS_TWO_PLAYERS):
        return 20
    if game_mode == GameMode.TWO_COLORS_TWO_PLAYERS:
        return 15
    return 14


@dataclass
class BoardPlayer:
    """单个座位在棋盘上的状态"""

    number: int
    stones: list[int] = field(default_factory=lambda: [0] * SHAPE_COUNT)

    @property
    def stones_left(self) -> int:
        return sum(self.stones)

    @property
    def number_of_possible_turns(self) -> int:
        """剩余可走步数 (账本模型下等于剩余棋子数)"""
        return self.stones_left

    def available(self, shape: int) -> int:
        return self.stones[shape]


class Board:
    """棋盘

    Args:
        width: 棋盘宽度
        height: 棋盘高度
    """

    def __init__(self, width: int = 20, height: int = 20) -> None:
        self.width = width
        self.height = height
        self.player: list[BoardPlayer] = [BoardPlayer(i) for i in range(PLAYER_COUNT)]
        self._stone_numbers: tuple[int, ...] = DEFAULT_STONE_SET
        self._anchors: dict[tuple[int, int], list[int]] = {}

    def get_player(self, player: int) -> BoardPlayer:
        return self.player[player]

    @property
    def stone_numbers(self) -> tuple[int, ...]:
        """当前对局每种棋子的初始数量"""
        return self._stone_numbers

    def start_new_game(
        self,
        game_mode: GameMode,
        stones: Sequence[int] | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> None:
        """清空棋盘并按给定模式重新发放棋子

        stones / width / height 为 None 时沿用上一次的设置。
        """
        if width is not None:
            self.width = width
        if height is not None:
            self.height = height
        if stones is not None:
            if len(stones) != SHAPE_COUNT:
                raise ValueError(f"expected {SHAPE_COUNT} stone numbers, got {len(stones)}")
            self._stone_numbers = tuple(stones)

        self._anchors.clear()
        for p in self.player:
            p.stones = list(self._stone_numbers)

        logger.debug(
            "New board %dx%d mode=%s stones=%s",
            self.width, self.height, game_mode.name, self._stone_numbers,
        )

    def clear_seat(self, player: int) -> None:
        """将座位的所有棋子余量清零"""
        self.player[player].stones = [0] * SHAPE_COUNT

    def is_valid_turn(self, turn: Turn) -> bool:
        if not 0 <= turn.player < PLAYER_COUNT:
            return False
        if not 0 <= turn.shape < SHAPE_COUNT:
            return False
        # 包围盒至少要与棋盘有一格重叠
        reach = SHAPE_MAX_SIZE - 1
        if not (-reach <= turn.x < self.width and -reach <= turn.y < self.height):
            return False
        return self.player[turn.player].available(turn.shape) > 0

    def set_stone(self, turn: Turn) -> None:
        """落子: 记录锚点并扣减棋子余量"""
        self.player[turn.player].stones[turn.shape] -= 1
        self._anchors.setdefault((turn.x, turn.y), []).append(turn.player)

    def undo(self, history: list[Turn]) -> Turn:
        """撤销 history 中的最后一步并返回它"""
        turn = history.pop()
        self.player[turn.player].stones[turn.shape] += 1
        seats = self._anchors.get((turn.x, turn.y))
        if seats:
            seats.pop()
            if not seats:
                del self._anchors[(turn.x, turn.y)]
        return turn

    def owner_at(self, x: int, y: int) -> int | None:
        """返回最后一个以 (x, y) 为锚点的座位号，没有返回 None"""
        seats = self._anchors.get((x, y))
        return seats[-1] if seats else None
