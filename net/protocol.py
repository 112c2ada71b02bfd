"""网络协议定义
基于定长帧头 + 二进制载荷的消息格式

协议设计:
- 每帧 = 5 字节帧头 (含两个校验字节) + 载荷，见 header.py
- 消息类型编号构成封闭的枚举，与对端实现共享，见 message.py
- 每种消息有自己的载荷布局，见 messages.py
"""

from __future__ import annotations

from pydantic import ValidationError

from game.exceptions import ProtocolError

from .header import HEADER_SIZE, Header, decode_header, encode_header
from .message import Message, MessageType, PayloadReader, message_class, registered_types
from .messages import (
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
)

__all__ = [
    "HEADER_SIZE", "Header", "encode_header", "decode_header",
    "Message", "MessageType", "encode_message", "decode_message", "decode_frame",
    "Chat", "CurrentPlayer", "GameFinish", "GrantPlayer", "RequestGameMode",
    "RequestHint", "RequestPlayer", "RequestUndo", "RevokePlayer", "ServerStatus",
    "SetStone", "StartGame", "StoneHint", "UndoStone",
    "registered_types",
]


def encode_message(message: Message) -> bytes:
    """编码为完整帧: 帧头 + 载荷，帧头中的 size = 5 + 载荷长度"""
    return message.to_bytes()


def decode_message(raw_type: int, payload: bytes) -> Message:
    """按类型编号分派到对应消息类解码载荷

    Raises:
        ProtocolError: 未知类型或载荷非法
    """
    cls = message_class(raw_type)
    if cls is None:
        raise ProtocolError("unknown message type", raw_type=raw_type)
    try:
        return cls.from_payload(PayloadReader(payload))
    except ValidationError as e:
        raise ProtocolError(
            f"invalid {cls.__name__} payload: {e.error_count()} error(s)", raw_type=raw_type,
        ) from e
    except ValueError as e:
        raise ProtocolError(f"invalid {cls.__name__} payload: {e}", raw_type=raw_type) from e


def decode_frame(frame: bytes) -> Message:
    """解码一整帧 (帧头 + 载荷)"""
    header = decode_header(frame[:HEADER_SIZE])
    payload = frame[HEADER_SIZE:]
    if len(payload) != header.payload_size:
        raise ProtocolError(
            f"frame declares {header.size} bytes but has {len(frame)}", raw_type=header.raw_type,
        )
    return decode_message(header.raw_type, payload)
