"""帧头编解码

帧格式 (共 5 字节，随后是 size - 5 字节的载荷):
    [check1: u8][size: u16 大端][raw_type: u8][check2: u8]

size 为包含帧头在内的整帧长度。两个校验字节由 (raw_type, size) 推导，
不单独存储:
    check1 = (size & 0x55) ^ raw_type
    check2 = ((check1 ^ 0xD6) + raw_type) & 0xFF

注意 check1 只覆盖 size 的低字节中被 0x55 掩码选中的位。
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from game.exceptions import ProtocolError

HEADER_SIZE = 5
MAX_FRAME_SIZE = 0xFFFF

_HEADER = struct.Struct(">BHBB")


def check1(size: int, raw_type: int) -> int:
    return (size & 0x0055) ^ raw_type


def check2(size: int, raw_type: int) -> int:
    return ((check1(size, raw_type) ^ 0xD6) + raw_type) & 0xFF


@dataclass(frozen=True)
class Header:
    """帧头 (不可变)"""

    raw_type: int
    size: int

    def __post_init__(self) -> None:
        if not 0 <= self.raw_type <= 0xFF:
            raise ValueError(f"raw type {self.raw_type} out of range")
        if not HEADER_SIZE <= self.size <= MAX_FRAME_SIZE:
            raise ValueError(f"frame size {self.size} out of range")

    @property
    def check1(self) -> int:
        return check1(self.size, self.raw_type)

    @property
    def check2(self) -> int:
        return check2(self.size, self.raw_type)

    @property
    def payload_size(self) -> int:
        return self.size - HEADER_SIZE

    def to_bytes(self) -> bytes:
        return _HEADER.pack(self.check1, self.size, self.raw_type, self.check2)

    @classmethod
    def from_bytes(cls, data: bytes) -> Header:
        """从 5 字节解析帧头

        Raises:
            ProtocolError: 尺寸非法或校验失败
        """
        if len(data) != HEADER_SIZE:
            raise ProtocolError(f"expected {HEADER_SIZE} header bytes, got {len(data)}")

        c1, size, raw_type, c2 = _HEADER.unpack(data)
        if size < HEADER_SIZE:
            raise ProtocolError("invalid header size", raw_type=raw_type)

        header = cls(raw_type, size)
        if header.check1 != c1 or header.check2 != c2:
            raise ProtocolError("checksum failed", raw_type=raw_type)
        return header


def encode_header(raw_type: int, size: int) -> bytes:
    """编码帧头为 5 字节"""
    return Header(raw_type, size).to_bytes()


def decode_header(data: bytes) -> Header:
    """解码 5 字节帧头"""
    return Header.from_bytes(data)
