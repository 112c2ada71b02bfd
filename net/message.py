"""消息基类与类型注册表

每种消息都是不可变的 Pydantic 模型，携带稳定的类型编号 (MessageType)、
载荷编码器 payload() 和载荷解码器 from_payload()。
类型编号与载荷布局和对端实现共享，修改即破坏兼容性。
"""

from __future__ import annotations

from enum import IntEnum
from typing import ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationInfo

from game.exceptions import ProtocolError

from .header import HEADER_SIZE, Header

# ==================== 消息类型枚举 ====================


class MessageType(IntEnum):
    """网络消息类型 (数值即线上编码)"""

    REQUEST_PLAYER = 1        # 客户端 → 服务端: 请求座位
    GRANT_PLAYER = 2          # 服务端 → 客户端: 授予座位
    CURRENT_PLAYER = 3        # 服务端 → 客户端: 当前行动座位
    SET_STONE = 4             # 双向: 落子
    START_GAME = 5            # 双向: 开始游戏
    GAME_FINISH = 6           # 服务端 → 客户端: 游戏结束
    SERVER_STATUS = 7         # 服务端 → 客户端: 服务器状态快照
    CHAT = 8                  # 双向: 聊天
    REQUEST_UNDO = 9          # 客户端 → 服务端: 请求悔棋
    UNDO_STONE = 10           # 服务端 → 客户端: 撤销最后一步
    REQUEST_HINT = 11         # 客户端 → 服务端: 请求提示
    STONE_HINT = 12           # 服务端 → 客户端: 提示
    REQUEST_GAME_MODE = 13    # 客户端 → 服务端: 请求更改模式
    REVOKE_PLAYER = 14        # 双向: 释放座位


# ==================== 载荷读取 ====================


class PayloadReader:
    """顺序读取载荷字节

    读取越界时抛出 ProtocolError；未读完的多余字节由调用方决定是否忽略。
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise ProtocolError("truncated payload")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def i8(self) -> int:
        value = self.u8()
        return value - 0x100 if value >= 0x80 else value

    def rest(self) -> bytes:
        return self.take(self.remaining)


def i8(value: int) -> int:
    """有符号字节转为线上的无符号表示"""
    return value & 0xFF


def encode_fixed_string(text: str | None, length: int) -> bytes:
    """编码定长、以 0 填充的 UTF-8 字符串 (None 编码为全 0)"""
    raw = (text or "").encode("utf-8")[:length]
    return raw.ljust(length, b"\0")


def decode_fixed_string(raw: bytes) -> str | None:
    """解码定长字符串，截断于第一个 0 字节；空串返回 None"""
    text = raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")
    return text or None


# 解码时传给 Pydantic 的校验上下文
# 线上长度限制作用于原始字节，解码得到的文本不再按长度重新校验
WIRE_CONTEXT = {"from_wire": True}


def from_wire(info: ValidationInfo) -> bool:
    """当前校验是否来自解码"""
    return bool(info.context and info.context.get("from_wire"))


# ==================== 消息基类 ====================


class Message(BaseModel):
    """网络消息基类 (不可变)"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    message_type: ClassVar[MessageType]

    def payload(self) -> bytes:
        """编码载荷 (不含帧头)"""
        return b""

    @classmethod
    def from_payload(cls, data: PayloadReader) -> Message:
        """从载荷解码消息"""
        return cls()

    @classmethod
    def decoded(cls, **fields):
        """以解码上下文构造消息，跳过仅针对本地构造的长度检查"""
        return cls.model_validate(fields, context=WIRE_CONTEXT)

    @property
    def size(self) -> int:
        """整帧长度 (帧头 + 载荷)"""
        return HEADER_SIZE + len(self.payload())

    @property
    def header(self) -> Header:
        return Header(int(self.message_type), self.size)

    def to_bytes(self) -> bytes:
        """编码为完整的帧"""
        payload = self.payload()
        return Header(int(self.message_type), HEADER_SIZE + len(payload)).to_bytes() + payload

    def __str__(self) -> str:
        return repr(self)


# ==================== 类型注册表 ====================

_M = TypeVar("_M", bound=type[Message])

_REGISTRY: dict[int, type[Message]] = {}


def register(cls: _M) -> _M:
    """类装饰器: 按 message_type 注册消息类"""
    raw_type = int(cls.message_type)
    existing = _REGISTRY.get(raw_type)
    if existing is not None and existing is not cls:
        raise ValueError(f"message type {raw_type} already registered by {existing.__name__}")
    _REGISTRY[raw_type] = cls
    return cls


def message_class(raw_type: int) -> type[Message] | None:
    """按类型编号查找消息类，未知返回 None"""
    return _REGISTRY.get(raw_type)


def registered_types() -> dict[int, type[Message]]:
    return dict(_REGISTRY)
