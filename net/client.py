"""游戏客户端 (连接管理)

功能:
- 通过 TCP / 本地套接字 / 蓝牙之一建立连接
- 无界发送队列 + 写泵任务，按提交顺序发送
- 读泵任务 (有界预读) + 分发任务，按到达顺序交给消息处理器
- 幂等的断开，只通知一次观察者
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from game.config import ClientConfig, get_config
from game.enums import GameMode
from game.events import GameEventObserver, ObserverHandle
from game.exceptions import ConnectionClosedError
from game.game import Game
from game.turn import Turn

from .handler import GameClientMessageHandler
from .message import Message
from .messages import (
    Chat,
    RequestGameMode,
    RequestHint,
    RequestPlayer,
    RequestUndo,
    RevokePlayer,
    ServerStatus,
    SetStone,
    StartGame,
)
from .stream import MessageReader, MessageWriter
from .transport import (
    Channel,
    Connector,
    LocalConnector,
    RadioConnector,
    RadioDevice,
    RemoteConnector,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ReadFailure:
    """读泵结束标记，携带结束原因"""

    error: BaseException


class GameClient:
    """游戏客户端

    职责:
    1. 同一时刻只持有一个传输通道
    2. 收发消息
    3. 把收到的消息交给 GameClientMessageHandler，由它通知观察者
    4. 断开后实例即终止，不可重新连接

    Args:
        game: 由消息处理器维护的对局状态
        config: 客户端配置，默认使用全局配置
    """

    def __init__(self, game: Game, config: ClientConfig | None = None) -> None:
        self.game = game
        self.config = config or get_config()

        self._channel: Channel | None = None
        self._handler = GameClientMessageHandler(game)

        # 发送队列
        self._send_queue: asyncio.Queue[Message] = asyncio.Queue()
        self._send_closed: bool = False

        self._tasks: list[asyncio.Task] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def last_status(self) -> ServerStatus | None:
        """消息处理器收到的最后一个服务器状态"""
        return self._handler.last_status

    @property
    def handler(self) -> GameClientMessageHandler:
        return self._handler

    def is_connected(self) -> bool:
        channel = self._channel
        return channel is not None and channel.is_open

    # ==================== 观察者 ====================

    def add_observer(self, observer: GameEventObserver) -> ObserverHandle:
        return self._handler.add_observer(observer)

    def remove_observer(self, observer: ObserverHandle | GameEventObserver) -> None:
        self._handler.remove_observer(observer)

    # ==================== 连接管理 ====================

    async def connect(self, connector: Connector) -> bool:
        """尝试建立一次连接

        失败时通知观察者并返回 False，不改变连接状态；成功时调用 connected()。
        """
        logger.info("Connecting to %s", connector.describe())
        channel, error = await connector.connect()
        if channel is None:
            self._handler.notify_connection_failed(self, error)
            return False

        self.connected(channel)
        return True

    async def connect_remote(self, host: str | None = None, port: int | None = None) -> bool:
        """连接 TCP 服务器，host 为 None 时连接本机"""
        return await self.connect(RemoteConnector(
            host if host is not None else self.config.server,
            port if port is not None else self.config.port,
            self.config.connect_timeout,
        ))

    async def connect_local(self, endpoint: str | None = None) -> bool:
        return await self.connect(LocalConnector(
            endpoint or self.config.local_endpoint, self.config.connect_timeout,
        ))

    async def connect_radio(self, device: RadioDevice) -> bool:
        return await self.connect(RadioConnector(device))

    def connected(self, channel: Channel) -> None:
        """连接成功，启动写泵与读泵，然后通知观察者

        观察者应在此之前注册，以免错过早期事件。
        必须在事件循环中调用。
        """
        if self._channel is not None:
            raise RuntimeError("client is already connected")

        self._loop = asyncio.get_running_loop()
        self._channel = channel

        writer = MessageWriter(channel.writer)
        reader = MessageReader(channel.reader)
        inbound: asyncio.Queue[Message | _ReadFailure] = asyncio.Queue(maxsize=self.config.read_ahead)

        self._tasks = [
            asyncio.create_task(self._write_loop(writer), name="blokwire-writer"),
            asyncio.create_task(self._read_loop(reader, inbound), name="blokwire-reader"),
            asyncio.create_task(self._dispatch_loop(inbound), name="blokwire-dispatch"),
        ]

        # 任务要等到下一次让出控制权才开始运行，
        # 在这里注册的观察者不会错过任何消息
        self._handler.notify_connected(self)

    def disconnect(self, error: BaseException | None = None) -> None:
        """断开连接 (幂等)

        关闭发送队列、取消泵任务、关闭通道，然后只通知观察者一次。
        """
        channel = self._channel
        if channel is None:
            return
        self._channel = None

        logger.info("Disconnecting from %s (%s)", channel.name, error or "requested")

        self._send_closed = True
        current = _current_task()
        for task in self._tasks:
            if task is not current:
                task.cancel()
        self._tasks = []

        try:
            channel.close()
        except OSError as e:
            logger.warning("Error closing channel: %s", e)

        self._handler.notify_disconnected(self, error)

    # ==================== 泵任务 ====================

    async def _write_loop(self, writer: MessageWriter) -> None:
        """按提交顺序写出队列中的消息"""
        while True:
            message = await self._send_queue.get()
            try:
                await writer.write(message)
            except (OSError, RuntimeError) as e:
                logger.warning("Write failed: %s", e)
                self.disconnect(e)
                return

    async def _read_loop(
        self,
        reader: MessageReader,
        inbound: asyncio.Queue[Message | _ReadFailure],
    ) -> None:
        """解码帧并放入有界预读队列；结束原因排在已解码消息之后"""
        try:
            async for message in reader:
                await inbound.put(message)
            error: BaseException = ConnectionClosedError(endpoint=self._endpoint())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
        await inbound.put(_ReadFailure(error))

    async def _dispatch_loop(self, inbound: asyncio.Queue[Message | _ReadFailure]) -> None:
        """逐条交给消息处理器"""
        while True:
            item = await inbound.get()
            if isinstance(item, _ReadFailure):
                logger.warning("Reader stopped: %s", item.error)
                self.disconnect(item.error)
                return
            try:
                self._handler.handle_message(item)
            except Exception as e:
                logger.warning("Handling %s failed: %s", item, e)
                self.disconnect(e)
                return

    def _endpoint(self) -> str | None:
        channel = self._channel
        return channel.name if channel is not None else None

    # ==================== 发送 ====================

    def send(self, message: Message) -> None:
        """把消息放入发送队列

        连接建立前也可以调用 (消息会排队)；断开后调用会被静默丢弃。
        绑定事件循环后可以从其他线程调用。
        """
        if self._send_closed:
            logger.debug("Dropping %s after disconnect", message)
            return
        loop = self._loop
        if loop is not None and loop.is_running() and _running_loop() is not loop:
            loop.call_soon_threadsafe(self._enqueue, message)
        else:
            self._enqueue(message)

    def _enqueue(self, message: Message) -> None:
        if self._send_closed:
            return
        self._send_queue.put_nowait(message)

    # ==================== 便捷操作方法 ====================

    def request_player(self, player: int, name: str | None) -> None:
        """请求座位，可在连接前调用

        Args:
            player: 请求的座位，-1 表示随机
            name: 玩家名 (最多 16 字节)
        """
        send_name = name or self.config.player_name or None
        if send_name is not None:
            send_name = send_name.encode("utf-8")[:16].decode("utf-8", errors="ignore") or None
        self.send(RequestPlayer(player=player, name=send_name))

    def revoke_player(self, player: int) -> None:
        """释放本地控制的座位"""
        if not self.game.is_local_player(player):
            return
        self.send(RevokePlayer(player=player))

    def request_game_mode(self, width: int, height: int, game_mode: GameMode, stones: tuple[int, ...]) -> None:
        """请求服务器更改模式与棋盘尺寸

        Args:
            width: 新宽度
            height: 新高度
            game_mode: 新模式
            stones: 21 种棋子各自的数量
        """
        self.send(RequestGameMode(width=width, height=height, game_mode=game_mode, stones=tuple(stones)))

    def request_hint(self) -> None:
        """为当前本地玩家请求提示"""
        if not self.is_connected():
            return
        if not self.game.is_local_player():
            return
        self.send(RequestHint(player=self.game.current_player))

    def send_chat(self, text: str) -> None:
        """发送聊天，服务器会填入发送方编号后广播"""
        self.send(Chat(client=0, text=text))

    def set_stone(self, turn: Turn) -> None:
        """本地玩家落子

        只把请求发给服务器，不在本地落子；本地先把当前座位置为 -1，
        成功后服务器会发来新的当前座位。
        """
        self.game.current_player = -1
        self.send(SetStone.from_turn(turn))

    def request_game_start(self) -> None:
        """请求开始游戏，可在连接前调用"""
        self.send(StartGame())

    def request_undo(self) -> None:
        """请求悔棋"""
        if not self.is_connected():
            return
        if not self.game.is_local_player():
            return
        self.send(RequestUndo())


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _current_task() -> asyncio.Task | None:
    if _running_loop() is None:
        return None
    return asyncio.current_task()
