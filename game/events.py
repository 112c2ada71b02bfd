"""
事件观察者系统
实现观察者模式，将网络事件与对局变化广播给界面层
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from net.client import GameClient
    from net.messages import ServerStatus

    from .board import BoardPlayer
    from .turn import Turn

logger = logging.getLogger(__name__)


class GameEventObserver:
    """
    事件观察者基类
    所有回调默认什么都不做，子类按需覆盖
    """

    # ---- 连接 ----
    def on_connected(self, client: GameClient) -> None:
        pass

    def on_connection_failed(self, client: GameClient, error: Exception) -> None:
        pass

    def on_disconnected(self, client: GameClient, error: BaseException | None) -> None:
        pass

    # ---- 对局 ----
    def game_started(self) -> None:
        pass

    def game_finished(self) -> None:
        pass

    def server_status(self, status: ServerStatus) -> None:
        pass

    def player_joined(self, client: int, player: int, name: str | None) -> None:
        pass

    def player_left(self, client: int, player: int, name: str | None) -> None:
        pass

    def new_current_player(self, player: int) -> None:
        pass

    # ---- 落子 ----
    def stone_will_be_set(self, turn: Turn) -> None:
        pass

    def stone_has_been_set(self, turn: Turn) -> None:
        pass

    def player_is_out_of_moves(self, player: BoardPlayer) -> None:
        pass

    def hint_received(self, turn: Turn) -> None:
        pass

    def stone_undone(self, turn: Turn) -> None:
        pass

    # ---- 聊天 ----
    def chat_received(self, status: ServerStatus, client: int, player: int, message: str) -> None:
        pass


class ObserverHandle:
    """注册槽位，由 ObserverRegistry.add 返回

    持有观察者的强引用，直到被显式移除。
    """

    __slots__ = ("_observer",)

    def __init__(self, observer: GameEventObserver) -> None:
        self._observer: GameEventObserver | None = observer

    @property
    def observer(self) -> GameEventObserver | None:
        return self._observer

    @property
    def alive(self) -> bool:
        return self._observer is not None

    def clear(self) -> None:
        self._observer = None


class ObserverRegistry:
    """
    观察者注册表
    按注册顺序广播；remove 只标记槽位失效，失效槽位在最外层广播结束后才压缩，
    因此广播过程中增删观察者都不会破坏遍历
    """

    def __init__(self) -> None:
        self._slots: list[ObserverHandle] = []
        self._lock = threading.RLock()
        self._depth = 0

    def add(self, observer: GameEventObserver) -> ObserverHandle:
        """注册观察者，返回用于移除的句柄"""
        handle = ObserverHandle(observer)
        with self._lock:
            self._slots.append(handle)
        return handle

    def remove(self, target: ObserverHandle | GameEventObserver) -> None:
        """移除观察者 (接受句柄或观察者本身)"""
        with self._lock:
            for slot in self._slots:
                if slot is target or (slot.alive and slot.observer is target):
                    slot.clear()

    def broadcast(self, callback: Callable[[GameEventObserver], None]) -> None:
        """
        依次对每个存活的观察者调用 callback

        Args:
            callback: 接收观察者的回调
        """
        with self._lock:
            self._depth += 1
        try:
            i = 0
            # 只会追加不会删除，按下标遍历是安全的
            while True:
                with self._lock:
                    if i >= len(self._slots):
                        break
                    observer = self._slots[i].observer
                i += 1
                if observer is None:
                    continue
                try:
                    callback(observer)
                except Exception:
                    logger.exception("Observer %r raised", observer)
        finally:
            with self._lock:
                self._depth -= 1
                if self._depth == 0:
                    self._slots = [s for s in self._slots if s.alive]

    def clear(self) -> None:
        """使所有槽位失效，之后任何事件都不会再送达"""
        with self._lock:
            for slot in self._slots:
                slot.clear()
            if self._depth == 0:
                self._slots = []

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for s in self._slots if s.alive)
