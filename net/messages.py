"""消息变体定义

所有变体均为不可变 Pydantic 模型，构造时校验字段范围；
解码时的校验失败由 protocol.decode_message 统一转换为 ProtocolError。
"""

from __future__ import annotations

import logging
import re
from typing import Annotated, ClassVar

from pydantic import Field, ValidationInfo, field_validator

from game.board import DEFAULT_STONE_SET
from game.enums import PLAYER_COUNT, SHAPE_COUNT, GameMode, Rotation
from game.exceptions import ProtocolError
from game.turn import Orientation, Turn

from .message import (
    Message,
    MessageType,
    PayloadReader,
    decode_fixed_string,
    encode_fixed_string,
    from_wire,
    i8,
    register,
)

logger = logging.getLogger(__name__)

# 支持的最低服务器协议版本
MIN_SERVER_VERSION = 3

# 聊天文本的最大字节数
MAX_CHAT_LENGTH = 254

# 玩家名/客户端名的定长字段长度
NAME_LENGTH = 16

# 服务器状态中客户端名槽位数
CLIENT_SLOTS = 8

# 已废弃的按棋子大小计数字段，线上仍占 5 字节
_LEGACY_STONE_FIELD = bytes(5)

_TRAILING_JUNK = re.compile(r"[\s\x00-\x1f\x7f]+$")

Seat = Annotated[int, Field(ge=0, le=PLAYER_COUNT - 1)]
SeatOrNobody = Annotated[int, Field(ge=-1, le=PLAYER_COUNT - 1)]
UByte = Annotated[int, Field(ge=0, le=0xFF)]
ShapeId = Annotated[int, Field(ge=0, lt=SHAPE_COUNT)]
ClientId = Annotated[int, Field(ge=0, le=0x7F)]
SByte = Annotated[int, Field(ge=-0x80, le=0x7F)]


def _check_name(name: str | None, info: ValidationInfo) -> str | None:
    if not name:
        return None
    if not from_wire(info) and len(name.encode("utf-8")) > NAME_LENGTH:
        raise ValueError(f"name exceeds {NAME_LENGTH} bytes")
    return name


# ==================== 座位管理 ====================


@register
class RequestPlayer(Message):
    """请求座位，player 为 -1 表示由服务器分配"""

    message_type: ClassVar[MessageType] = MessageType.REQUEST_PLAYER

    player: SeatOrNobody = -1
    name: str | None = None

    @field_validator("name")
    @classmethod
    def name_fits(cls, v: str | None, info: ValidationInfo) -> str | None:
        return _check_name(v, info)

    def payload(self) -> bytes:
        return bytes([i8(self.player)]) + encode_fixed_string(self.name, NAME_LENGTH)

    @classmethod
    def from_payload(cls, data: PayloadReader) -> RequestPlayer:
        player = data.i8()
        name = decode_fixed_string(data.take(NAME_LENGTH))
        return cls.decoded(player=player, name=name)


@register
class GrantPlayer(Message):
    message_type: ClassVar[MessageType] = MessageType.GRANT_PLAYER

    player: Seat

    def payload(self) -> bytes:
        return bytes([self.player])

    @classmethod
    def from_payload(cls, data: PayloadReader) -> GrantPlayer:
        return cls(player=data.u8())


@register
class RevokePlayer(Message):
    message_type: ClassVar[MessageType] = MessageType.REVOKE_PLAYER

    player: Seat

    def payload(self) -> bytes:
        return bytes([self.player])

    @classmethod
    def from_payload(cls, data: PayloadReader) -> RevokePlayer:
        return cls(player=data.u8())


@register
class CurrentPlayer(Message):
    """当前行动座位，-1 表示没有"""

    message_type: ClassVar[MessageType] = MessageType.CURRENT_PLAYER

    player: SeatOrNobody

    def payload(self) -> bytes:
        return bytes([i8(self.player)])

    @classmethod
    def from_payload(cls, data: PayloadReader) -> CurrentPlayer:
        return cls(player=data.i8())


# ==================== 落子 ====================


class _StonePlacement(Message):
    """SetStone 与 StoneHint 共用的载荷布局"""

    player: Seat
    shape: ShapeId
    mirrored: bool = False
    rotation: Rotation = Rotation.NONE
    # 锚点为棋子包围盒的左上角，可以落在棋盘外 (负数)
    x: SByte
    y: SByte

    def payload(self) -> bytes:
        return bytes([
            self.player,
            self.shape,
            1 if self.mirrored else 0,
            int(self.rotation),
            i8(self.x),
            i8(self.y),
        ])

    @classmethod
    def from_payload(cls, data: PayloadReader):
        player = data.u8()
        shape = data.u8()
        mirrored = data.u8() == 1
        rotation = data.u8()
        x = data.i8()
        y = data.i8()
        return cls.decoded(player=player, shape=shape, mirrored=mirrored, rotation=rotation, x=x, y=y)

    @classmethod
    def from_turn(cls, turn: Turn):
        return cls(
            player=turn.player,
            shape=turn.shape,
            mirrored=turn.orientation.mirrored,
            rotation=turn.orientation.rotation,
            x=turn.x,
            y=turn.y,
        )

    def to_turn(self) -> Turn:
        return Turn(self.player, self.shape, self.y, self.x, Orientation(self.mirrored, self.rotation))


@register
class SetStone(_StonePlacement):
    message_type: ClassVar[MessageType] = MessageType.SET_STONE


@register
class StoneHint(_StonePlacement):
    """与 SetStone 布局相同，仅作提示"""

    message_type: ClassVar[MessageType] = MessageType.STONE_HINT


@register
class UndoStone(Message):
    message_type: ClassVar[MessageType] = MessageType.UNDO_STONE


@register
class RequestUndo(Message):
    message_type: ClassVar[MessageType] = MessageType.REQUEST_UNDO


@register
class RequestHint(Message):
    message_type: ClassVar[MessageType] = MessageType.REQUEST_HINT

    player: Seat

    def payload(self) -> bytes:
        return bytes([self.player])

    @classmethod
    def from_payload(cls, data: PayloadReader) -> RequestHint:
        return cls(player=data.u8())


# ==================== 对局流程 ====================


@register
class StartGame(Message):
    message_type: ClassVar[MessageType] = MessageType.START_GAME


@register
class GameFinish(Message):
    message_type: ClassVar[MessageType] = MessageType.GAME_FINISH


@register
class RequestGameMode(Message):
    message_type: ClassVar[MessageType] = MessageType.REQUEST_GAME_MODE

    width: UByte
    height: UByte
    game_mode: GameMode
    stones: tuple[UByte, ...] = Field(default=DEFAULT_STONE_SET, min_length=SHAPE_COUNT, max_length=SHAPE_COUNT)

    def payload(self) -> bytes:
        return (
            bytes([self.width, self.height])
            + _LEGACY_STONE_FIELD
            + bytes([int(self.game_mode)])
            + bytes(self.stones)
        )

    @classmethod
    def from_payload(cls, data: PayloadReader) -> RequestGameMode:
        width = data.u8()
        height = data.u8()
        data.take(len(_LEGACY_STONE_FIELD))
        game_mode = data.u8()
        stones = tuple(data.take(SHAPE_COUNT))
        return cls(width=width, height=height, game_mode=game_mode, stones=stones)


@register
class ServerStatus(Message):
    """服务器状态快照

    client_for_player: 座位 → 客户端编号，None 表示无人
    client_names: 客户端编号 → 名字
    """

    message_type: ClassVar[MessageType] = MessageType.SERVER_STATUS

    player: UByte = 0
    computer: UByte = 0
    clients: UByte = 0
    width: UByte = 20
    height: UByte = 20
    game_mode: GameMode = GameMode.FOUR_COLORS_FOUR_PLAYERS
    client_for_player: tuple[ClientId | None, ...] = Field(
        default=(None,) * PLAYER_COUNT, min_length=PLAYER_COUNT, max_length=PLAYER_COUNT,
    )
    client_names: tuple[str | None, ...] = Field(
        default=(None,) * CLIENT_SLOTS, min_length=CLIENT_SLOTS, max_length=CLIENT_SLOTS,
    )
    version: UByte = MIN_SERVER_VERSION
    min_version: UByte = MIN_SERVER_VERSION
    stone_numbers: tuple[UByte, ...] = Field(
        default=DEFAULT_STONE_SET, min_length=SHAPE_COUNT, max_length=SHAPE_COUNT,
    )

    @field_validator("client_names")
    @classmethod
    def names_fit(cls, v: tuple[str | None, ...], info: ValidationInfo) -> tuple[str | None, ...]:
        return tuple(_check_name(name, info) for name in v)

    def is_at_least_version(self, version: int) -> bool:
        return self.version >= version

    def client_name(self, client: int | None) -> str | None:
        """客户端编号对应的名字，未知返回 None"""
        if client is None or not 0 <= client < len(self.client_names):
            return None
        return self.client_names[client]

    def seat_of_client(self, client: int) -> int:
        """客户端占用的第一个座位，没有返回 -1"""
        for seat, c in enumerate(self.client_for_player):
            if c == client:
                return seat
        return -1

    def payload(self) -> bytes:
        return (
            bytes([self.player, self.computer, self.clients, self.width, self.height])
            + _LEGACY_STONE_FIELD
            + bytes([int(self.game_mode)])
            + bytes(i8(-1 if c is None else c) for c in self.client_for_player)
            + b"".join(encode_fixed_string(name, NAME_LENGTH) for name in self.client_names)
            + bytes([self.version, self.min_version])
            + bytes(self.stone_numbers)
        )

    @classmethod
    def from_payload(cls, data: PayloadReader) -> ServerStatus:
        player = data.u8()
        computer = data.u8()
        clients = data.u8()
        width = data.u8()
        height = data.u8()
        data.take(len(_LEGACY_STONE_FIELD))
        game_mode = data.u8()
        seats = []
        for _ in range(PLAYER_COUNT):
            c = data.i8()
            seats.append(c if c >= 0 else None)
        names = [decode_fixed_string(data.take(NAME_LENGTH)) for _ in range(CLIENT_SLOTS)]

        # 版本 3 之前的布局在此结束或缺少棋子数量字段
        if data.remaining < 2:
            raise ProtocolError("unsupported protocol version", raw_type=int(cls.message_type))
        version = data.u8()
        min_version = data.u8()
        if version < MIN_SERVER_VERSION:
            raise ProtocolError("unsupported protocol version", raw_type=int(cls.message_type))
        stone_numbers = tuple(data.take(SHAPE_COUNT))

        return cls.decoded(
            player=player,
            computer=computer,
            clients=clients,
            width=width,
            height=height,
            game_mode=game_mode,
            client_for_player=tuple(seats),
            client_names=tuple(names),
            version=version,
            min_version=min_version,
            stone_numbers=stone_numbers,
        )


# ==================== 聊天 ====================


@register
class Chat(Message):
    """聊天消息

    client 为发送方客户端编号，负数表示服务器生成的文本。
    载荷: client(i8) + 长度(u8) + UTF-8 文本 + 1 字节填充
    """

    message_type: ClassVar[MessageType] = MessageType.CHAT

    client: Annotated[int, Field(ge=-0x80, le=0x7F)] = 0
    text: str = ""

    @field_validator("text")
    @classmethod
    def text_fits(cls, v: str, info: ValidationInfo) -> str:
        if not from_wire(info) and len(v.encode("utf-8")) > MAX_CHAT_LENGTH:
            raise ValueError(f"chat message exceeds {MAX_CHAT_LENGTH} bytes")
        return v

    def payload(self) -> bytes:
        raw = self.text.encode("utf-8")[:MAX_CHAT_LENGTH]
        return bytes([i8(self.client), len(raw)]) + raw + b"\0"

    @classmethod
    def from_payload(cls, data: PayloadReader) -> Chat:
        client = data.i8()
        length = data.u8()
        raw = data.take(length)

        # 对端可能填充不止一个 0 字节，多余部分全部丢弃
        excess = data.rest()
        if excess.strip(b"\0"):
            logger.debug("Ignoring %d excess chat bytes", len(excess))

        text = _TRAILING_JUNK.sub("", raw.decode("utf-8", errors="replace"))
        return cls.decoded(client=client, text=text)
