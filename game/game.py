"""客户端对局状态

只由消息处理器写入；界面层只读。
"""

from __future__ import annotations

from .board import Board
from .enums import PLAYER_COUNT, GameMode, GamePhase, PlayerType
from .turn import Turn


class Game:
    """一局游戏的客户端镜像

    Attributes:
        board: 棋盘
        history: 已落子的历史记录
        current_player: 当前行动座位，-1 表示未知
        game_mode: 当前游戏模式
        is_started: 是否已开始
        is_finished: 是否已结束
    """

    def __init__(self, board: Board | None = None) -> None:
        self.board = board if board is not None else Board()
        self.history: list[Turn] = []
        self.current_player: int = -1
        self.game_mode: GameMode = GameMode.default()
        self.is_started: bool = False
        self.is_finished: bool = False
        self._player_types: list[PlayerType] = [PlayerType.COMPUTER] * PLAYER_COUNT

    @property
    def phase(self) -> GamePhase:
        if not self.is_started:
            return GamePhase.NOT_STARTED
        if self.is_finished:
            return GamePhase.FINISHED
        return GamePhase.STARTED

    def set_player_type(self, player: int, player_type: PlayerType) -> None:
        self._player_types[player] = player_type

    def player_type(self, player: int) -> PlayerType:
        return self._player_types[player]

    def is_local_player(self, player: int | None = None) -> bool:
        """给定座位 (默认当前座位) 是否由本地控制"""
        if player is None:
            player = self.current_player
        if not 0 <= player < PLAYER_COUNT:
            return False
        return self._player_types[player] == PlayerType.LOCAL

    @property
    def local_players(self) -> list[int]:
        return [i for i, t in enumerate(self._player_types) if t == PlayerType.LOCAL]
