"""客户端消息处理器

按到达顺序逐条处理服务端消息，把变化应用到 Game 并通知观察者。
只在一个执行上下文中被调用 (GameClient 的分发任务)，从不并发。

阶段守卫在任何修改之前求值，违反时抛出 GameStateError；
无法处理的消息类型抛出 ProtocolError。两者都会导致断开连接。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from game.enums import PLAYER_COUNT, PlayerType
from game.events import GameEventObserver, ObserverHandle, ObserverRegistry
from game.exceptions import ProtocolError, raise_if_not
from game.game import Game

from .message import Message
from .messages import (
    Chat,
    CurrentPlayer,
    GameFinish,
    GrantPlayer,
    RevokePlayer,
    ServerStatus,
    SetStone,
    StartGame,
    StoneHint,
    UndoStone,
)

if TYPE_CHECKING:
    from .client import GameClient

logger = logging.getLogger(__name__)


class GameClientMessageHandler:
    """处理收到的网络消息，修改 Game 并通知 GameEventObserver

    Args:
        game: 要维护的对局状态
    """

    def __init__(self, game: Game) -> None:
        self.game = game
        self._observers = ObserverRegistry()
        # 上一次收到的服务器状态，用于比较座位的加入/离开
        self._last_status: ServerStatus | None = None

    @property
    def board(self):
        return self.game.board

    @property
    def last_status(self) -> ServerStatus | None:
        return self._last_status

    # ==================== 观察者 ====================

    def add_observer(self, observer: GameEventObserver) -> ObserverHandle:
        """注册观察者

        最好在 GameClient.connected 之前注册，以免错过事件。
        """
        return self._observers.add(observer)

    def remove_observer(self, observer: ObserverHandle | GameEventObserver) -> None:
        self._observers.remove(observer)

    @property
    def observers(self) -> ObserverRegistry:
        return self._observers

    def notify_connected(self, client: GameClient) -> None:
        logger.debug("onConnected")
        self._observers.broadcast(lambda o: o.on_connected(client))

    def notify_connection_failed(self, client: GameClient, error: Exception) -> None:
        logger.debug("onConnectionFailed: %s", error)
        self._observers.broadcast(lambda o: o.on_connection_failed(client, error))

    def notify_disconnected(self, client: GameClient, error: BaseException | None) -> None:
        """通知断开，然后清空全部观察者，之后不再转发任何事件"""
        logger.debug("onDisconnected: %s", error)
        self._observers.broadcast(lambda o: o.on_disconnected(client, error))
        self._observers.clear()

    # ==================== 消息处理 ====================

    def handle_message(self, message: Message) -> None:
        """处理一条消息

        Raises:
            GameStateError: 消息与当前阶段不符
            ProtocolError: 不认识的消息
        """
        logger.debug("<< %s", message)

        if isinstance(message, GrantPlayer):
            self._on_grant_player(message)
        elif isinstance(message, RevokePlayer):
            self._on_revoke_player(message)
        elif isinstance(message, CurrentPlayer):
            self._on_current_player(message)
        elif isinstance(message, SetStone):
            self._on_set_stone(message)
        elif isinstance(message, StoneHint):
            turn = message.to_turn()
            self._observers.broadcast(lambda o: o.hint_received(turn))
        elif isinstance(message, GameFinish):
            self._on_game_finish()
        elif isinstance(message, ServerStatus):
            self._on_server_status(message)
        elif isinstance(message, Chat):
            self._on_chat(message)
        elif isinstance(message, StartGame):
            self._on_start_game()
        elif isinstance(message, UndoStone):
            self._on_undo_stone()
        else:
            raise ProtocolError(
                f"don't know how to handle message {message}", raw_type=int(message.message_type),
            )

    def _phase(self) -> str:
        return self.game.phase.value

    def _on_grant_player(self, message: GrantPlayer) -> None:
        raise_if_not(not self.game.is_started, "received GrantPlayer but game is running", self._phase())
        self.game.set_player_type(message.player, PlayerType.LOCAL)

    def _on_revoke_player(self, message: RevokePlayer) -> None:
        raise_if_not(not self.game.is_started, "received RevokePlayer but game is running", self._phase())
        raise_if_not(
            self.game.is_local_player(message.player),
            f"revoked player {message.player} is not local",
            self._phase(),
        )
        self.game.set_player_type(message.player, PlayerType.COMPUTER)

    def _on_current_player(self, message: CurrentPlayer) -> None:
        self.game.current_player = message.player
        self._observers.broadcast(lambda o: o.new_current_player(message.player))

    def _on_set_stone(self, message: SetStone) -> None:
        raise_if_not(self.game.is_started, "received SetStone but game not started", self._phase())
        turn = message.to_turn()
        raise_if_not(self.board.is_valid_turn(turn), f"invalid turn {turn}", self._phase())

        self.game.history.append(turn)
        # 先通知，让界面在棋子落下之前挂上动画效果
        self._observers.broadcast(lambda o: o.stone_will_be_set(turn))

        before = [p.number_of_possible_turns for p in self.board.player]
        self.board.set_stone(turn)
        self._observers.broadcast(lambda o: o.stone_has_been_set(turn))

        # 找出刚刚无子可走的座位
        for index, player in enumerate(self.board.player):
            if player.number_of_possible_turns <= 0 < before[index]:
                self._observers.broadcast(lambda o, p=player: o.player_is_out_of_moves(p))

    def _on_game_finish(self) -> None:
        raise_if_not(
            self.game.is_started and not self.game.is_finished,
            "received GameFinish in invalid state",
            self._phase(),
        )
        self.game.is_finished = True
        self._observers.broadcast(lambda o: o.game_finished())

    def _apply_mode_restrictions(self) -> None:
        # 双人模式只使用座位 0 和 2
        if self.game.game_mode.is_two_seat:
            self.board.clear_seat(1)
            self.board.clear_seat(3)

    def _on_server_status(self, status: ServerStatus) -> None:
        if not self.game.is_started:
            self.board.start_new_game(status.game_mode, status.stone_numbers, status.width, status.height)

        self.game.game_mode = status.game_mode
        self._apply_mode_restrictions()

        previous = self._last_status
        self._last_status = status

        self._observers.broadcast(lambda o: o.server_status(status))

        # 对比新旧状态，找出加入和离开的客户端
        if previous is None:
            return
        for seat in range(PLAYER_COUNT):
            was_client = previous.client_for_player[seat]
            is_client = status.client_for_player[seat]

            if was_client is None and is_client is not None:
                name = status.client_name(is_client)
                self._observers.broadcast(lambda o, c=is_client, s=seat, n=name: o.player_joined(c, s, n))
            elif was_client is not None and is_client is None:
                name = previous.client_name(was_client)
                self._observers.broadcast(lambda o, c=was_client, s=seat, n=name: o.player_left(c, s, n))

    def _on_chat(self, message: Chat) -> None:
        status = self._last_status
        # 没有状态快照就无法确定名字，静默丢弃
        if status is None:
            logger.debug("Dropping chat without server status: %s", message.text)
            return

        # 负数编号为服务器生成的文本，界面已根据状态快照自行生成对应提示
        if message.client < 0:
            logger.debug("Dropping server chat: %s", message.text)
            return

        player = status.seat_of_client(message.client)
        self._observers.broadcast(lambda o: o.chat_received(status, message.client, player, message.text))

    def _on_start_game(self) -> None:
        raise_if_not(not self.game.is_started, "game already started", self._phase())

        self.board.start_new_game(self.game.game_mode)
        self._apply_mode_restrictions()
        self.game.is_finished = False
        self.game.is_started = True
        self.game.history.clear()
        self.game.current_player = -1

        self._observers.broadcast(lambda o: o.game_started())

    def _on_undo_stone(self) -> None:
        raise_if_not(
            self.game.is_started or self.game.is_finished,
            "received UndoStone but game not running",
            self._phase(),
        )
        raise_if_not(bool(self.game.history), "received UndoStone but history is empty", self._phase())
        turn = self.board.undo(self.game.history)
        self._observers.broadcast(lambda o: o.stone_undone(turn))
