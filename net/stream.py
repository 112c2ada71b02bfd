"""消息流读写

MessageReader 把字节流变成按到达顺序排列的消息序列；
MessageWriter 把消息按提交顺序编码写入字节流。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable

from game.exceptions import ConnectionClosedError

from .header import HEADER_SIZE, decode_header
from .message import Message
from .protocol import decode_message, encode_message

logger = logging.getLogger(__name__)


class MessageReader:
    """从 asyncio.StreamReader 逐帧读取并解码消息

    用法:
        async for message in MessageReader(stream):
            ...
    """

    def __init__(self, stream: asyncio.StreamReader) -> None:
        self._stream = stream

    async def read(self) -> Message | None:
        """读取下一条消息

        Returns:
            下一条消息；在帧边界遇到 EOF 时返回 None

        Raises:
            ProtocolError: 帧头或载荷非法
            ConnectionClosedError: 帧读到一半连接被关闭
        """
        try:
            head = await self._stream.readexactly(HEADER_SIZE)
        except asyncio.IncompleteReadError as e:
            if not e.partial:
                return None
            raise ConnectionClosedError("connection closed inside frame header") from e

        header = decode_header(head)
        try:
            payload = await self._stream.readexactly(header.payload_size)
        except asyncio.IncompleteReadError as e:
            raise ConnectionClosedError("connection closed inside frame payload") from e

        return decode_message(header.raw_type, payload)

    def __aiter__(self) -> AsyncIterator[Message]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Message]:
        while True:
            message = await self.read()
            if message is None:
                return
            yield message


class MessageWriter:
    """向 asyncio.StreamWriter 写入消息"""

    def __init__(self, stream: asyncio.StreamWriter) -> None:
        self._stream = stream

    async def write(self, message: Message) -> None:
        logger.debug(">> %s", message)
        self._stream.write(encode_message(message))
        await self._stream.drain()

    async def write_all(self, messages: Iterable[Message]) -> None:
        for message in messages:
            await self.write(message)
