"""传输连接器

三种获取双向字节通道的方式，彼此可互换:
- RemoteConnector: TCP 流套接字 (host:port)，带连接超时
- LocalConnector: Linux 抽象命名空间中的本地进程间套接字
- RadioConnector: 对已配对设备的不安全 RFCOMM 套接字

所有连接器都返回 (channel, None) 或 (None, error)，失败以值的形式上报，不会抛出。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
import uuid
from typing import Protocol

from game.config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT
from game.exceptions import TransportError

logger = logging.getLogger(__name__)

# 蓝牙服务标识 (与对端实现共享)
SERVICE_UUID = uuid.UUID("B4C72729-2E7F-48B2-B15C-BDD73CED0D13")
SERVICE_NAME = "blokwire"

LOOPBACK_HOST = "localhost"


class Channel:
    """双向字节通道

    Args:
        reader: asyncio 读端
        writer: asyncio 写端
        name: 用于日志的端点描述
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, name: str = "") -> None:
        self.reader = reader
        self.writer = writer
        self.name = name

    @property
    def is_open(self) -> bool:
        return not self.writer.is_closing()

    def close(self) -> None:
        """先尽力半关闭读端，再完整关闭通道"""
        if self.writer.is_closing():
            return
        sock = self.writer.get_extra_info("socket")
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RD)
        self.writer.close()

    async def wait_closed(self) -> None:
        with contextlib.suppress(OSError):
            await self.writer.wait_closed()

    def __repr__(self) -> str:
        return f"Channel({self.name!r}, open={self.is_open})"


async def open_channel(sock: socket.socket, name: str = "") -> Channel:
    """把一个已连接的套接字包装为 Channel"""
    reader, writer = await asyncio.open_connection(sock=sock)
    return Channel(reader, writer, name)


def _failure(message: str, endpoint: str, cause: BaseException) -> TransportError:
    error = TransportError(f"{message}: {cause}" if str(cause) else message, endpoint=endpoint)
    error.__cause__ = cause
    return error


ConnectResult = tuple[Channel | None, Exception | None]


class Connector(Protocol):
    """连接器接口"""

    def describe(self) -> str:
        ...

    async def connect(self) -> ConnectResult:
        ...


# ==================== TCP ====================


class RemoteConnector:
    """TCP 连接器

    Args:
        host: 主机名，None 表示本机回环
        port: 端口
        timeout: 连接超时秒数
    """

    def __init__(
        self,
        host: str | None = None,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    def describe(self) -> str:
        return f"{self.host or LOOPBACK_HOST}:{self.port}"

    async def connect(self) -> ConnectResult:
        endpoint = self.describe()
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host or LOOPBACK_HOST, self.port),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Connect to %s timed out after %.1fs", endpoint, self.timeout)
            return None, _failure("connect timed out", endpoint, e)
        except OSError as e:
            logger.warning("Connect to %s failed: %s", endpoint, e)
            return None, _failure("connect failed", endpoint, e)

        logger.info("Connected to %s", endpoint)
        return Channel(reader, writer, endpoint), None


# ==================== 本地进程间 ====================


class LocalConnector:
    """抽象命名空间本地套接字连接器 (不落地到文件系统)

    Args:
        endpoint: 端点名
    """

    def __init__(self, endpoint: str, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> None:
        self.endpoint = endpoint
        self.timeout = timeout

    @property
    def address(self) -> str:
        return "\0" + self.endpoint

    def describe(self) -> str:
        return f"local:{self.endpoint}"

    async def connect(self) -> ConnectResult:
        endpoint = self.describe()
        if not hasattr(socket, "AF_UNIX"):
            return None, TransportError("local sockets are not supported on this platform", endpoint=endpoint)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(self.address),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Connect to %s timed out", endpoint)
            return None, _failure("connect timed out", endpoint, e)
        except OSError as e:
            logger.warning("Connect to %s failed: %s", endpoint, e)
            return None, _failure("connect failed", endpoint, e)

        logger.info("Connected to %s", endpoint)
        return Channel(reader, writer, endpoint), None


# ==================== 蓝牙 ====================


class RadioDevice(Protocol):
    """已配对的远端设备 (由调用方提供)"""

    name: str

    def connect_rfcomm(self, service_uuid: uuid.UUID) -> socket.socket:
        """阻塞地建立到给定服务的不安全 RFCOMM 连接并返回已连接的套接字"""
        ...


class BluetoothDevice:
    """基于 BlueZ 套接字的 RadioDevice 实现

    BlueZ 原生套接字不做 SDP 查询，服务通过固定的 RFCOMM 通道定位，
    监听端 (listener.py) 绑定同一个通道。

    Args:
        address: 设备地址，如 "00:11:22:33:44:55"
        channel: RFCOMM 通道
        name: 显示名
    """

    def __init__(self, address: str, channel: int = 1, name: str | None = None) -> None:
        self.address = address
        self.channel = channel
        self.name = name or address

    def connect_rfcomm(self, service_uuid: uuid.UUID) -> socket.socket:
        if not hasattr(socket, "AF_BLUETOOTH"):
            raise OSError("bluetooth sockets are not supported on this platform")
        logger.debug("Opening RFCOMM %s channel %d for service %s", self.address, self.channel, service_uuid)
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        try:
            sock.connect((self.address, self.channel))
        except OSError:
            sock.close()
            raise
        return sock


class RadioConnector:
    """蓝牙连接器

    Args:
        device: 已配对的远端设备
    """

    def __init__(self, device: RadioDevice) -> None:
        self.device = device

    def describe(self) -> str:
        return f"bluetooth:{self.device.name}"

    async def connect(self) -> ConnectResult:
        endpoint = self.describe()
        try:
            sock = await asyncio.to_thread(self.device.connect_rfcomm, SERVICE_UUID)
        except OSError as e:
            logger.warning("Connect to %s failed: %s", endpoint, e)
            return None, _failure("connect failed", endpoint, e)

        try:
            channel = await open_channel(sock, endpoint)
        except OSError as e:
            sock.close()
            logger.warning("Adopting socket for %s failed: %s", endpoint, e)
            return None, _failure("connect failed", endpoint, e)

        logger.info("Connected to %s", endpoint)
        return channel, None
