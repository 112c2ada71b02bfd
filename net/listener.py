"""蓝牙监听线程

在独立线程中打开监听套接字并循环 accept，把每个接入的套接字交给回调。
把它注册为 GameClient 的观察者，游戏开始或断开时会自动关闭。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
import threading
from collections.abc import Callable
from functools import partial

from game.events import GameEventObserver

logger = logging.getLogger(__name__)

ClientCallback = Callable[[socket.socket], None]
ServerSocketFactory = Callable[[], socket.socket]

# accept 轮询间隔 (秒)，用于及时响应 shutdown
ACCEPT_POLL_INTERVAL = 0.5


def open_rfcomm_server_socket(channel: int = 1) -> socket.socket:
    """打开不安全的 RFCOMM 监听套接字"""
    if not hasattr(socket, "AF_BLUETOOTH"):
        raise OSError("bluetooth sockets are not supported on this platform")
    sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
    try:
        sock.bind((getattr(socket, "BDADDR_ANY", "00:00:00:00:00:00"), channel))
        sock.listen(1)
    except OSError:
        sock.close()
        raise
    return sock


class RadioServerThread(threading.Thread, GameEventObserver):
    """蓝牙接入线程

    Args:
        on_client_connected: 每接入一个套接字调用一次
        open_server_socket: 监听套接字工厂 (默认 RFCOMM)
        loop: 若给出，回调通过 call_soon_threadsafe 投递到该事件循环执行
        channel: 默认工厂使用的 RFCOMM 通道
    """

    def __init__(
        self,
        on_client_connected: ClientCallback,
        open_server_socket: ServerSocketFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        channel: int = 1,
    ) -> None:
        super().__init__(name="RadioServerBridge", daemon=True)
        self._on_client_connected = on_client_connected
        self._open_server_socket = open_server_socket or partial(open_rfcomm_server_socket, channel)
        self._loop = loop
        self._server_socket: socket.socket | None = None
        self._lock = threading.Lock()
        self._stopping = threading.Event()

    @property
    def is_listening(self) -> bool:
        with self._lock:
            return self._server_socket is not None

    def run(self) -> None:
        logger.info("Starting radio server")
        try:
            server = self._open_server_socket()
        except OSError as e:
            logger.warning("Failed to open listening socket: %s", e)
            return

        with self._lock:
            if self._stopping.is_set():
                server.close()
                return
            self._server_socket = server

        server.settimeout(ACCEPT_POLL_INTERVAL)
        try:
            while not self._stopping.is_set():
                try:
                    client, address = server.accept()
                except TimeoutError:
                    continue
                logger.info("client connected: %s", address)
                if self._stopping.is_set():
                    client.close()
                    break
                self._dispatch(client)
        except OSError:
            # 监听套接字被并发关闭
            pass

        self.shutdown()
        logger.info("Stopping radio server")

    def _dispatch(self, client: socket.socket) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._on_client_connected, client)
        else:
            self._on_client_connected(client)

    def shutdown(self) -> None:
        """停止接入并关闭监听套接字 (可重复调用)"""
        self._stopping.set()
        with self._lock:
            server, self._server_socket = self._server_socket, None
        if server is None:
            return
        with contextlib.suppress(OSError):
            server.close()

    # ==================== 观察者回调 ====================

    def on_disconnected(self, client, error) -> None:
        self.shutdown()

    def game_started(self) -> None:
        self.shutdown()
