"""游戏模式与状态枚举

这些枚举的数值会直接写入网络帧，与对端实现共享，
修改任何成员的数值都会破坏协议兼容性。
"""

from __future__ import annotations

from enum import Enum, IntEnum

# 每位玩家拥有的棋子种类数 (棋子目录大小)
SHAPE_COUNT = 21

# 座位数量 (固定为 4，与连接数无关)
PLAYER_COUNT = 4


class GameMode(IntEnum):
    """游戏模式枚举 (数值即线上编码)"""

    TWO_COLORS_TWO_PLAYERS = 0
    FOUR_COLORS_TWO_PLAYERS = 1
    FOUR_COLORS_FOUR_PLAYERS = 2
    DUO = 3
    JUNIOR = 4

    @property
    def is_two_seat(self) -> bool:
        """只使用座位 0 和 2 的模式"""
        return self in _TWO_SEAT_MODES

    @classmethod
    def default(cls) -> GameMode:
        return cls.FOUR_COLORS_FOUR_PLAYERS


_TWO_SEAT_MODES = frozenset({
    GameMode.TWO_COLORS_TWO_PLAYERS,
    GameMode.DUO,
    GameMode.JUNIOR,
})


class Rotation(IntEnum):
    """棋子顺时针旋转次数"""

    NONE = 0
    RIGHT = 1
    HALF = 2
    LEFT = 3


class GamePhase(Enum):
    """协议层的游戏阶段"""

    NOT_STARTED = "not_started"  # 未开始
    STARTED = "started"  # 进行中
    FINISHED = "finished"  # 已结束


class PlayerType(Enum):
    """座位的控制方"""

    COMPUTER = "computer"  # 电脑或远端客户端
    LOCAL = "local"  # 本地玩家
