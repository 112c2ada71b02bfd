"""
客户端消息处理器测试
覆盖各消息在不同阶段下的状态转换与观察者通知
"""

import pytest

from game.enums import SHAPE_COUNT, GameMode, PlayerType
from game.events import GameEventObserver
from game.exceptions import GameStateError, ProtocolError
from game.game import Game
from net.handler import GameClientMessageHandler
from net.message import MessageType
from net.protocol import (
    Chat,
    CurrentPlayer,
    GameFinish,
    GrantPlayer,
    RequestHint,
    RequestPlayer,
    RevokePlayer,
    ServerStatus,
    SetStone,
    StartGame,
    StoneHint,
    UndoStone,
    decode_message,
)


class RecordingObserver(GameEventObserver):
    """按顺序记录收到的事件"""

    def __init__(self):
        self.events = []

    def game_started(self):
        self.events.append(("game_started",))

    def game_finished(self):
        self.events.append(("game_finished",))

    def server_status(self, status):
        self.events.append(("server_status", status))

    def player_joined(self, client, player, name):
        self.events.append(("joined", client, player, name))

    def player_left(self, client, player, name):
        self.events.append(("left", client, player, name))

    def new_current_player(self, player):
        self.events.append(("current_player", player))

    def stone_will_be_set(self, turn):
        self.events.append(("will_set", turn))

    def stone_has_been_set(self, turn):
        self.events.append(("has_set", turn))

    def player_is_out_of_moves(self, player):
        self.events.append(("out_of_moves", player.number))

    def hint_received(self, turn):
        self.events.append(("hint", turn))

    def stone_undone(self, turn):
        self.events.append(("undone", turn))

    def chat_received(self, status, client, player, message):
        self.events.append(("chat", client, player, message))

    def on_disconnected(self, client, error):
        self.events.append(("disconnected", error))

    def named(self, name):
        return [e for e in self.events if e[0] == name]


def status(seats=(None, None, None, None), names=(None,) * 8, **fields):
    return ServerStatus(client_for_player=tuple(seats), client_names=tuple(names), **fields)


def stone(player=0, shape=0, x=0, y=0):
    return SetStone(player=player, shape=shape, x=x, y=y)


class HandlerTestBase:
    def setup_method(self):
        self.game = Game()
        self.handler = GameClientMessageHandler(self.game)
        self.observer = RecordingObserver()
        self.handler.add_observer(self.observer)

    def start(self):
        self.handler.handle_message(StartGame())
        self.observer.events.clear()


class TestSeats(HandlerTestBase):
    """座位授予与释放"""

    def test_grant_marks_local(self):
        self.handler.handle_message(GrantPlayer(player=2))
        assert self.game.player_type(2) == PlayerType.LOCAL
        assert self.game.local_players == [2]

    def test_grant_after_start_rejected(self):
        self.start()
        with pytest.raises(GameStateError):
            self.handler.handle_message(GrantPlayer(player=1))
        assert self.game.player_type(1) == PlayerType.COMPUTER

    def test_revoke_local_seat(self):
        self.handler.handle_message(GrantPlayer(player=3))
        self.handler.handle_message(RevokePlayer(player=3))
        assert self.game.player_type(3) == PlayerType.COMPUTER

    def test_revoke_remote_seat_rejected(self):
        with pytest.raises(GameStateError):
            self.handler.handle_message(RevokePlayer(player=0))

    def test_revoke_after_start_rejected(self):
        self.handler.handle_message(GrantPlayer(player=0))
        self.start()
        with pytest.raises(GameStateError):
            self.handler.handle_message(RevokePlayer(player=0))
        assert self.game.player_type(0) == PlayerType.LOCAL

    def test_current_player(self):
        self.handler.handle_message(CurrentPlayer(player=2))
        assert self.game.current_player == 2
        assert self.observer.events == [("current_player", 2)]

    def test_current_player_none(self):
        self.handler.handle_message(CurrentPlayer(player=-1))
        assert self.game.current_player == -1


class TestStartGame(HandlerTestBase):
    """开始游戏"""

    def test_start(self):
        self.game.current_player = 3
        self.handler.handle_message(StartGame())

        assert self.game.is_started
        assert not self.game.is_finished
        assert self.game.current_player == -1
        assert self.game.history == []
        assert self.observer.events == [("game_started",)]

    def test_start_twice_rejected(self):
        self.start()
        with pytest.raises(GameStateError):
            self.handler.handle_message(StartGame())
        assert self.observer.events == []

    def test_two_seat_mode_clears_unused_seats(self):
        self.game.game_mode = GameMode.DUO
        self.handler.handle_message(StartGame())

        board = self.game.board
        assert board.player[1].stones_left == 0
        assert board.player[3].stones_left == 0
        assert board.player[0].stones_left == SHAPE_COUNT

    def test_four_seat_mode_keeps_all_seats(self):
        self.handler.handle_message(StartGame())
        assert all(p.stones_left == SHAPE_COUNT for p in self.game.board.player)


class TestSetStone(HandlerTestBase):
    """落子"""

    def test_before_start_rejected_without_mutation(self):
        before = [list(p.stones) for p in self.game.board.player]

        with pytest.raises(GameStateError):
            self.handler.handle_message(stone())

        assert self.game.history == []
        assert [p.stones for p in self.game.board.player] == before
        assert self.game.board.owner_at(0, 0) is None
        assert self.observer.events == []

    def test_events_and_mutation(self):
        self.start()
        msg = SetStone(player=1, shape=4, x=3, y=5)
        turn = msg.to_turn()

        self.handler.handle_message(msg)

        assert self.observer.events == [("will_set", turn), ("has_set", turn)]
        assert self.game.history == [turn]
        assert self.game.board.player[1].available(4) == 0
        assert self.game.board.owner_at(3, 5) == 1

    def test_observer_sees_history_before_board(self):
        self.start()
        seen = []

        class Peek(GameEventObserver):
            def stone_will_be_set(inner, turn):
                seen.append((len(self.game.history), self.game.board.owner_at(turn.x, turn.y)))

        self.handler.add_observer(Peek())
        self.handler.handle_message(stone(x=2, y=2))
        assert seen == [(1, None)]

    def test_invalid_turn_rejected(self):
        self.start()
        self.handler.handle_message(stone(player=0, shape=0, x=1, y=1))
        self.observer.events.clear()

        # 座位 0 的 0 号棋子已经用完
        with pytest.raises(GameStateError):
            self.handler.handle_message(stone(player=0, shape=0, x=8, y=8))

        assert len(self.game.history) == 1
        assert self.observer.events == []

    def test_shared_anchor_accepted(self):
        self.start()
        self.handler.handle_message(SetStone(player=0, shape=10, x=5, y=5))
        self.handler.handle_message(SetStone(player=1, shape=0, x=5, y=5))

        assert len(self.game.history) == 2
        assert self.game.board.owner_at(5, 5) == 1

    def test_negative_anchor_from_wire(self):
        self.start()
        msg = decode_message(MessageType.SET_STONE, bytes([2, 3, 0, 0, 0xFF, 0xFE]))
        assert (msg.x, msg.y) == (-1, -2)

        self.handler.handle_message(msg)
        assert self.game.history == [msg.to_turn()]
        assert self.game.board.owner_at(-1, -2) == 2

    def test_out_of_bounds_rejected(self):
        self.start()
        with pytest.raises(GameStateError):
            self.handler.handle_message(stone(x=25, y=0))

    def test_player_out_of_moves(self):
        stones = (1,) + (0,) * (SHAPE_COUNT - 1)
        self.handler.handle_message(status(stone_numbers=stones))
        self.start()

        self.handler.handle_message(stone(player=0, shape=0))

        assert self.observer.named("out_of_moves") == [("out_of_moves", 0)]
        assert self.observer.events[-1] == ("out_of_moves", 0)

    def test_no_out_of_moves_while_stones_remain(self):
        self.start()
        self.handler.handle_message(stone(player=0, shape=0))
        assert self.observer.named("out_of_moves") == []


class TestGameFinish(HandlerTestBase):
    """游戏结束"""

    def test_finish(self):
        self.start()
        self.handler.handle_message(GameFinish())
        assert self.game.is_finished
        assert self.observer.events == [("game_finished",)]

    def test_finish_twice_rejected(self):
        self.start()
        self.handler.handle_message(GameFinish())
        with pytest.raises(GameStateError):
            self.handler.handle_message(GameFinish())
        assert self.observer.named("game_finished") == [("game_finished",)]

    def test_finish_before_start_rejected(self):
        with pytest.raises(GameStateError):
            self.handler.handle_message(GameFinish())
        assert not self.game.is_finished


class TestUndoAndHint(HandlerTestBase):
    """悔棋与提示"""

    def test_undo(self):
        self.start()
        msg = stone(player=0, shape=2, x=4, y=4)
        self.handler.handle_message(msg)
        self.observer.events.clear()

        self.handler.handle_message(UndoStone())

        assert self.game.history == []
        assert self.game.board.player[0].available(2) == 1
        assert self.game.board.owner_at(4, 4) is None
        assert self.observer.events == [("undone", msg.to_turn())]

    def test_undo_after_finish(self):
        self.start()
        self.handler.handle_message(stone())
        self.handler.handle_message(GameFinish())

        self.handler.handle_message(UndoStone())
        assert self.game.history == []

    def test_undo_before_start_rejected(self):
        with pytest.raises(GameStateError):
            self.handler.handle_message(UndoStone())

    def test_undo_empty_history_rejected(self):
        self.start()
        with pytest.raises(GameStateError):
            self.handler.handle_message(UndoStone())

    def test_hint_does_not_mutate(self):
        self.start()
        hint = StoneHint(player=0, shape=1, x=0, y=0)

        self.handler.handle_message(hint)

        assert self.observer.events == [("hint", hint.to_turn())]
        assert self.game.history == []
        assert self.game.board.owner_at(0, 0) is None


class TestServerStatus(HandlerTestBase):
    """服务器状态与座位变化"""

    def test_snapshot_stored_and_broadcast(self):
        snapshot = status(width=15, height=15, game_mode=GameMode.TWO_COLORS_TWO_PLAYERS)
        self.handler.handle_message(snapshot)

        assert self.handler.last_status is snapshot
        assert self.observer.events == [("server_status", snapshot)]
        assert self.game.game_mode == GameMode.TWO_COLORS_TWO_PLAYERS
        assert (self.game.board.width, self.game.board.height) == (15, 15)

    def test_two_seat_mode_clears_unused_seats(self):
        self.handler.handle_message(status(game_mode=GameMode.JUNIOR, width=14, height=14))

        board = self.game.board
        assert board.player[1].stones_left == 0
        assert board.player[3].stones_left == 0
        assert board.player[2].stones_left > 0

    def test_status_during_game_keeps_board(self):
        self.start()
        self.handler.handle_message(stone(player=0, shape=0, x=2, y=3))

        self.handler.handle_message(status(width=10, height=10))

        assert self.game.board.owner_at(2, 3) == 0
        assert self.game.board.width == 20

    def test_join_then_leave(self):
        names = ("A",) + (None,) * 7
        sequence = [
            status(),
            status(),
            status(seats=(None, None, 0, None), names=names),
            status(),
        ]
        for snapshot in sequence:
            self.handler.handle_message(snapshot)

        assert self.observer.named("joined") == [("joined", 0, 2, "A")]
        assert self.observer.named("left") == [("left", 0, 2, "A")]
        joined = self.observer.events.index(("joined", 0, 2, "A"))
        left = self.observer.events.index(("left", 0, 2, "A"))
        assert joined < left

    def test_first_status_emits_no_diff(self):
        self.handler.handle_message(status(seats=(0, 1, None, None), names=("A", "B") + (None,) * 6))
        assert self.observer.named("joined") == []

    def test_leave_uses_previous_name(self):
        self.handler.handle_message(status(seats=(None, 3, None, None), names=(None, None, None, "Zed") + (None,) * 4))
        self.handler.handle_message(status())
        self.handler.handle_message(status(seats=(None, 3, None, None), names=(None, None, None, "Zed") + (None,) * 4))
        self.handler.handle_message(status(names=(None,) * 8))

        assert self.observer.named("left") == [("left", 3, 1, "Zed"), ("left", 3, 1, "Zed")]
        assert self.observer.named("joined") == [("joined", 3, 1, "Zed")]

    def test_status_event_precedes_diff(self):
        self.handler.handle_message(status())
        self.observer.events.clear()

        snapshot = status(seats=(1, None, None, None), names=(None, "B") + (None,) * 6)
        self.handler.handle_message(snapshot)

        assert self.observer.events == [("server_status", snapshot), ("joined", 1, 0, "B")]


class TestChat(HandlerTestBase):
    """聊天"""

    def test_dropped_without_status(self):
        self.handler.handle_message(Chat(client=1, text="hi"))
        assert self.observer.events == []

    def test_resolves_seat(self):
        self.handler.handle_message(status(seats=(None, None, 4, None)))
        self.handler.handle_message(Chat(client=4, text="hello"))
        assert self.observer.named("chat") == [("chat", 4, 2, "hello")]

    def test_unseated_client(self):
        self.handler.handle_message(status())
        self.handler.handle_message(Chat(client=5, text="spectating"))
        assert self.observer.named("chat") == [("chat", 5, -1, "spectating")]

    def test_server_text_dropped(self):
        self.handler.handle_message(status(seats=(0, None, None, None)))
        self.handler.handle_message(Chat(client=-1, text="server restarting"))
        assert self.observer.named("chat") == []


class TestUnhandled(HandlerTestBase):
    """只应由客户端发出的消息"""

    @pytest.mark.parametrize("message", [
        RequestHint(player=0),
        RequestPlayer(player=1, name="x"),
    ])
    def test_rejected(self, message):
        with pytest.raises(ProtocolError):
            self.handler.handle_message(message)


class TestNotifications(HandlerTestBase):
    """连接事件"""

    def test_disconnect_clears_observers(self):
        self.handler.notify_disconnected(None, None)
        self.handler.notify_disconnected(None, None)

        assert self.observer.named("disconnected") == [("disconnected", None)]
        assert len(self.handler.observers) == 0

    def test_removed_observer_not_notified(self):
        other = RecordingObserver()
        handle = self.handler.add_observer(other)
        self.handler.remove_observer(handle)

        self.handler.handle_message(CurrentPlayer(player=1))
        assert other.events == []
        assert self.observer.events == [("current_player", 1)]
