# -*- coding: utf-8 -*-
"""
网络协议测试 (消息注册表与载荷编解码)
"""

import pytest
from pydantic import ValidationError

from game.enums import GameMode, Rotation
from game.exceptions import ProtocolError
from game.turn import Orientation, Turn
from net.header import HEADER_SIZE, decode_header
from net.message import MessageType, decode_fixed_string, encode_fixed_string
from net.messages import MAX_CHAT_LENGTH, NAME_LENGTH
from net.protocol import (
    Chat,
    CurrentPlayer,
    GameFinish,
    GrantPlayer,
    RequestGameMode,
    RequestHint,
    RequestPlayer,
    RequestUndo,
    RevokePlayer,
    ServerStatus,
    SetStone,
    StartGame,
    StoneHint,
    UndoStone,
    decode_frame,
    decode_message,
    encode_message,
    registered_types,
)


def roundtrip(message):
    return decode_frame(encode_message(message))


def make_status(**overrides):
    fields = dict(
        player=1,
        computer=2,
        clients=2,
        width=20,
        height=20,
        game_mode=GameMode.FOUR_COLORS_FOUR_PLAYERS,
        client_for_player=(0, None, 1, None),
        client_names=("Alice", "Bob", None, None, None, None, None, None),
    )
    fields.update(overrides)
    return ServerStatus(**fields)


class TestMessageType:
    """消息类型枚举"""

    def test_wire_values(self):
        assert MessageType.REQUEST_PLAYER == 1
        assert MessageType.SERVER_STATUS == 7
        assert MessageType.CHAT == 8
        assert MessageType.REVOKE_PLAYER == 14

    def test_every_type_registered(self):
        assert set(registered_types()) == {int(t) for t in MessageType}

    def test_classes_carry_their_type(self):
        for raw_type, cls in registered_types().items():
            assert int(cls.message_type) == raw_type


class TestEncoding:
    """整帧编码"""

    def test_size_includes_header(self):
        frame = encode_message(SetStone(player=0, shape=3, x=1, y=2))
        header = decode_header(frame[:HEADER_SIZE])
        assert header.size == len(frame) == HEADER_SIZE + 6
        assert header.raw_type == MessageType.SET_STONE

    def test_empty_payload(self):
        frame = encode_message(StartGame())
        assert len(frame) == HEADER_SIZE

    def test_set_stone_layout(self):
        msg = SetStone(player=2, shape=20, mirrored=True, rotation=Rotation.LEFT, x=7, y=9)
        assert msg.payload() == bytes([2, 20, 1, 3, 7, 9])

    def test_current_player_none(self):
        assert CurrentPlayer(player=-1).payload() == b"\xff"

    def test_request_player_layout(self):
        payload = RequestPlayer(player=-1, name="Al").payload()
        assert payload[0] == 0xFF
        assert payload[1:] == b"Al" + bytes(NAME_LENGTH - 2)

    def test_request_game_mode_layout(self):
        stones = tuple(range(21))
        payload = RequestGameMode(width=15, height=14, game_mode=GameMode.DUO, stones=stones).payload()
        assert len(payload) == 29
        assert payload[:2] == bytes([15, 14])
        assert payload[2:7] == bytes(5)
        assert payload[7] == 3
        assert payload[8:] == bytes(stones)

    def test_server_status_length(self):
        assert len(make_status().payload()) == 166

    def test_chat_layout(self):
        assert Chat(client=3, text="hi").payload() == bytes([3, 2]) + b"hi" + b"\0"

    def test_message_str(self):
        assert "GrantPlayer" in str(GrantPlayer(player=1))


class TestRoundtrip:
    """编码后解码得到相同的消息"""

    @pytest.mark.parametrize("message", [
        RequestPlayer(player=-1, name=None),
        RequestPlayer(player=3, name="x" * NAME_LENGTH),
        GrantPlayer(player=0),
        GrantPlayer(player=3),
        RevokePlayer(player=2),
        CurrentPlayer(player=-1),
        CurrentPlayer(player=3),
        SetStone(player=0, shape=0, x=0, y=0),
        SetStone(player=3, shape=20, mirrored=True, rotation=Rotation.HALF, x=19, y=19),
        StoneHint(player=1, shape=5, rotation=Rotation.RIGHT, x=4, y=8),
        StartGame(),
        GameFinish(),
        UndoStone(),
        RequestUndo(),
        RequestHint(player=1),
        RequestGameMode(width=20, height=20, game_mode=GameMode.FOUR_COLORS_TWO_PLAYERS),
        Chat(client=0, text=""),
        Chat(client=5, text="a"),
        Chat(client=-1, text="server says hi"),
        Chat(client=1, text="z" * MAX_CHAT_LENGTH),
        Chat(client=2, text="你好"),
    ])
    def test_roundtrip(self, message):
        assert roundtrip(message) == message

    def test_server_status(self):
        status = make_status(version=4, min_version=3, game_mode=GameMode.JUNIOR, width=14, height=14)
        assert roundtrip(status) == status

    def test_server_status_all_seats_empty(self):
        status = make_status(client_for_player=(None,) * 4, client_names=(None,) * 8)
        assert roundtrip(status) == status


class TestChatDecoding:
    """聊天载荷的容错解码"""

    def test_extra_trailing_bytes_ignored(self):
        payload = bytes([1, 2]) + b"hi" + b"\0\0\0junk"
        msg = decode_message(MessageType.CHAT, payload)
        assert msg == Chat(client=1, text="hi")

    def test_missing_pad_byte_accepted(self):
        msg = decode_message(MessageType.CHAT, bytes([1, 2]) + b"hi")
        assert msg.text == "hi"

    def test_trailing_whitespace_trimmed(self):
        msg = decode_message(MessageType.CHAT, bytes([1, 5]) + b"hi \n\0" + b"\0")
        assert msg.text == "hi"

    def test_declared_length_exceeds_payload(self):
        with pytest.raises(ProtocolError, match="truncated"):
            decode_message(MessageType.CHAT, bytes([1, 10]) + b"hi")

    def test_negative_client(self):
        msg = decode_message(MessageType.CHAT, bytes([0xFE, 1]) + b"x\0")
        assert msg.client == -2

    def test_text_too_long_rejected(self):
        with pytest.raises(ValidationError):
            Chat(client=0, text="x" * (MAX_CHAT_LENGTH + 1))

    def test_overlong_text_on_wire_accepted(self):
        payload = bytes([0, 255]) + b"x" * 255 + b"\0"
        msg = decode_message(MessageType.CHAT, payload)
        assert msg.text == "x" * 255
        # 重新编码时截断到上限
        assert msg.payload()[1] == MAX_CHAT_LENGTH

    def test_invalid_utf8_text_accepted(self):
        payload = bytes([1, 100]) + b"\xff" * 100 + b"\0"
        msg = decode_message(MessageType.CHAT, payload)
        assert msg.client == 1
        assert msg.text == "�" * 100


class TestServerStatusDecoding:
    """服务器状态的版本检查与辅助方法"""

    def test_old_version_rejected(self):
        frame = encode_message(make_status(version=2))
        with pytest.raises(ProtocolError, match="unsupported protocol version"):
            decode_frame(frame)

    def test_pre_v3_layout_rejected(self):
        payload = make_status().payload()[:143]
        with pytest.raises(ProtocolError, match="unsupported protocol version"):
            decode_message(MessageType.SERVER_STATUS, payload)

    def test_missing_stone_numbers(self):
        payload = make_status().payload()[:150]
        with pytest.raises(ProtocolError):
            decode_message(MessageType.SERVER_STATUS, payload)

    def test_client_name(self):
        status = make_status()
        assert status.client_name(0) == "Alice"
        assert status.client_name(1) == "Bob"
        assert status.client_name(2) is None
        assert status.client_name(None) is None
        assert status.client_name(42) is None

    def test_seat_of_client(self):
        status = make_status()
        assert status.seat_of_client(1) == 2
        assert status.seat_of_client(7) == -1

    def test_is_at_least_version(self):
        status = make_status(version=4)
        assert status.is_at_least_version(3)
        assert not status.is_at_least_version(5)

    def test_name_too_long_rejected(self):
        with pytest.raises(ValidationError):
            make_status(client_names=("x" * 17,) + (None,) * 7)

    def test_name_cut_inside_character_accepted(self):
        payload = bytearray(make_status().payload())
        # 名字槽从偏移 15 开始: 5 字节尺寸 + 5 字节旧字段 + 模式 + 4 个座位
        payload[15:15 + NAME_LENGTH] = b"a" * 15 + b"\xc3"
        msg = decode_message(MessageType.SERVER_STATUS, bytes(payload))
        assert msg.client_names[0] == "a" * 15 + "�"
        assert msg.client_names[1] == "Bob"


class TestDecodeErrors:
    """非法输入"""

    @pytest.mark.parametrize("raw_type", [0, 15, 99, 255])
    def test_unknown_type(self, raw_type):
        with pytest.raises(ProtocolError, match="unknown message type") as exc_info:
            decode_message(raw_type, b"")
        assert exc_info.value.raw_type == raw_type

    def test_truncated_payload(self):
        with pytest.raises(ProtocolError, match="truncated payload"):
            decode_message(MessageType.SET_STONE, b"\x00\x01")

    def test_out_of_range_shape(self):
        with pytest.raises(ProtocolError):
            decode_message(MessageType.SET_STONE, bytes([0, 30, 0, 0, 1, 1]))

    def test_out_of_range_rotation(self):
        with pytest.raises(ProtocolError):
            decode_message(MessageType.SET_STONE, bytes([0, 1, 0, 9, 1, 1]))

    def test_out_of_range_seat(self):
        with pytest.raises(ProtocolError):
            decode_message(MessageType.GRANT_PLAYER, bytes([4]))

    def test_unknown_game_mode(self):
        payload = bytes([20, 20]) + bytes(5) + bytes([9]) + bytes(21)
        with pytest.raises(ProtocolError):
            decode_message(MessageType.REQUEST_GAME_MODE, payload)

    def test_frame_length_mismatch(self):
        frame = encode_message(GrantPlayer(player=1))
        with pytest.raises(ProtocolError):
            decode_frame(frame + b"\x00")


class TestMessageModels:
    """消息模型本身"""

    def test_frozen(self):
        msg = GrantPlayer(player=1)
        with pytest.raises(ValidationError):
            msg.player = 2

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            GrantPlayer(player=1, bogus=True)

    def test_turn_conversion(self):
        turn = Turn(2, 7, 5, 6, Orientation(True, Rotation.RIGHT))
        msg = SetStone.from_turn(turn)
        assert (msg.player, msg.shape, msg.x, msg.y) == (2, 7, 6, 5)
        assert msg.to_turn() == turn

    def test_fixed_string_helpers(self):
        assert encode_fixed_string(None, 4) == bytes(4)
        assert decode_fixed_string(b"ab\0\0") == "ab"
        assert decode_fixed_string(bytes(4)) is None
