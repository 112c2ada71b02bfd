# -*- coding: utf-8 -*-
"""
对局模型模块
包含棋盘账本、对局状态、配置、异常和事件观察者系统

网络协议层只通过这里暴露的接口读写对局状态。
"""

from .board import Board, BoardPlayer, default_board_size, default_stone_set
from .enums import PLAYER_COUNT, SHAPE_COUNT, GameMode, GamePhase, PlayerType, Rotation
from .events import GameEventObserver, ObserverHandle, ObserverRegistry
from .exceptions import (
    ConnectionClosedError, GameError, GameStateError, ProtocolError, TransportError,
)
from .game import Game
from .turn import Orientation, Turn

__all__ = [
    # 棋盘
    'Board', 'BoardPlayer', 'default_board_size', 'default_stone_set',
    # 枚举
    'PLAYER_COUNT', 'SHAPE_COUNT', 'GameMode', 'GamePhase', 'PlayerType', 'Rotation',
    # 事件系统
    'GameEventObserver', 'ObserverHandle', 'ObserverRegistry',
    # 异常
    'GameError', 'ProtocolError', 'GameStateError', 'TransportError', 'ConnectionClosedError',
    # 对局
    'Game', 'Orientation', 'Turn',
]

__version__ = '1.0.0'
