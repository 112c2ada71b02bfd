"""
blokwire - 命令行客户端
主程序入口

使用方法:
    python main.py --server example.org --name Alice --start
    python main.py --local blokwire
    python main.py --bluetooth 00:11:22:33:44:55

连接后从标准输入读取命令:
    /start  请求开始游戏
    /hint   为当前本地玩家请求提示
    /undo   请求悔棋
    /quit   断开并退出
    其他文本作为聊天发送
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from rich import box
from rich.console import Console
from rich.table import Table

from game.config import ClientConfig, get_config
from game.enums import PLAYER_COUNT, GameMode
from game.events import GameEventObserver
from game.game import Game
from logging_config import setup_logging
from net.client import GameClient
from net.messages import ServerStatus
from net.transport import BluetoothDevice

logger = logging.getLogger(__name__)

SEAT_COLORS = ("blue", "yellow", "red", "green")


class ConsoleObserver(GameEventObserver):
    """把客户端事件打印到终端"""

    def __init__(self, console: Console, game: Game) -> None:
        self.console = console
        self.game = game
        self.done = asyncio.Event()

    def _seat(self, player: int) -> str:
        if not 0 <= player < PLAYER_COUNT:
            return "[dim]-[/dim]"
        color = SEAT_COLORS[player]
        return f"[{color}]座位 {player}[/{color}]"

    def on_connected(self, client) -> None:
        self.console.print("[green]✓ 已连接[/green]")

    def on_connection_failed(self, client, error) -> None:
        self.console.print(f"[red]❌ 连接失败: {error}[/red]")
        self.done.set()

    def on_disconnected(self, client, error) -> None:
        if error is None:
            self.console.print("[yellow]已断开[/yellow]")
        else:
            self.console.print(f"[red]连接断开: {error}[/red]")
        self.done.set()

    def game_started(self) -> None:
        self.console.print("[bold green]游戏开始[/bold green]")

    def game_finished(self) -> None:
        table = Table(title="游戏结束", box=box.ROUNDED)
        table.add_column("座位")
        table.add_column("剩余棋子", justify="right")
        for p in self.game.board.player:
            table.add_row(self._seat(p.number), str(p.stones_left))
        self.console.print(table)

    def server_status(self, status: ServerStatus) -> None:
        table = Table(box=box.ROUNDED, show_header=True)
        table.add_column("座位")
        table.add_column("客户端")
        table.add_column("名字")
        for seat, client in enumerate(status.client_for_player):
            name = status.client_name(client) if client is not None else None
            table.add_row(
                self._seat(seat),
                "-" if client is None else str(client),
                name or "[dim]电脑[/dim]",
            )
        self.console.print(
            f"服务器 v{status.version}: {status.clients} 个客户端, "
            f"{status.width}x{status.height} {status.game_mode.name}"
        )
        self.console.print(table)

    def player_joined(self, client, player, name) -> None:
        self.console.print(f"→ {name or f'客户端 {client}'} 加入 {self._seat(player)}")

    def player_left(self, client, player, name) -> None:
        self.console.print(f"← {name or f'客户端 {client}'} 离开 {self._seat(player)}")

    def new_current_player(self, player) -> None:
        mark = " (你)" if self.game.is_local_player(player) else ""
        self.console.print(f"轮到 {self._seat(player)}{mark}")

    def stone_has_been_set(self, turn) -> None:
        self.console.print(f"{self._seat(turn.player)} 落子: 棋子 {turn.shape} @ ({turn.x}, {turn.y})")

    def player_is_out_of_moves(self, player) -> None:
        self.console.print(f"{self._seat(player.number)} 无子可走")

    def hint_received(self, turn) -> None:
        self.console.print(f"[cyan]提示: 棋子 {turn.shape} @ ({turn.x}, {turn.y})[/cyan]")

    def stone_undone(self, turn) -> None:
        self.console.print(f"{self._seat(turn.player)} 悔棋")

    def chat_received(self, status, client, player, message) -> None:
        name = status.client_name(client) or f"客户端 {client}"
        self.console.print(f"💬 {name}: {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="blokwire 客户端")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--server", help="服务器主机名 (默认本机)")
    target.add_argument("--local", metavar="ENDPOINT", help="本地套接字端点名")
    target.add_argument("--bluetooth", metavar="ADDRESS", help="蓝牙设备地址")
    parser.add_argument("--port", type=int, help="服务器端口")
    parser.add_argument("--name", help="玩家名称")
    parser.add_argument("--seat", type=int, default=-1, choices=range(-1, PLAYER_COUNT), help="请求的座位 (-1 随机)")
    parser.add_argument(
        "--mode",
        choices=[m.name.lower() for m in GameMode],
        help="请求的游戏模式",
    )
    parser.add_argument("--start", action="store_true", help="连接后请求开始游戏")
    parser.add_argument("--debug", action="store_true", help="在终端输出调试日志")
    return parser


async def _open_stdin() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def _read_commands(client: GameClient, observer: ConsoleObserver) -> None:
    """读取标准输入，直到断开或输入结束"""
    stdin = await _open_stdin()
    while not observer.done.is_set():
        line = await stdin.readline()
        if not line:
            break
        text = line.decode("utf-8", errors="replace").strip()
        if not text:
            continue
        if text == "/quit":
            break
        if text == "/start":
            client.request_game_start()
        elif text == "/hint":
            client.request_hint()
        elif text == "/undo":
            client.request_undo()
        else:
            client.send_chat(text)
    client.disconnect()


def queue_requests(client: GameClient, args: argparse.Namespace, config: ClientConfig) -> None:
    """连接前排队的请求会在连接后按顺序发出"""
    seats = [i for i, wanted in enumerate(config.request_players or ()) if wanted]
    for seat in seats or [args.seat]:
        client.request_player(seat, args.name)

    # --mode 覆盖 BLOKWIRE_GAME_MODE，两者都未给出时沿用服务器的模式
    if args.mode:
        config = replace(config, game_mode=GameMode[args.mode.upper()])
    if config.game_mode is not None:
        size = config.board_size
        client.request_game_mode(size, size, config.game_mode, config.stone_set)

    if args.start:
        client.request_game_start()


async def run_client(args: argparse.Namespace, config: ClientConfig, console: Console) -> int:
    game = Game()
    client = GameClient(game, config)
    observer = ConsoleObserver(console, game)
    client.add_observer(observer)
    queue_requests(client, args, config)

    if args.local:
        ok = await client.connect_local(args.local)
    elif args.bluetooth:
        ok = await client.connect_radio(BluetoothDevice(args.bluetooth, config.rfcomm_channel))
    else:
        ok = await client.connect_remote(args.server, args.port)
    if not ok:
        return 1

    reader = asyncio.create_task(_read_commands(client, observer))
    try:
        await observer.done.wait()
    finally:
        reader.cancel()
        client.disconnect()
    return 0


def main() -> None:
    """程序入口"""
    args = build_parser().parse_args()
    config = get_config()
    setup_logging(
        level=config.log_level,
        enable_console=args.debug or config.debug_mode,
        console_level="DEBUG" if args.debug else "WARNING",
    )

    console = Console(highlight=False)
    try:
        code = asyncio.run(run_client(args, config, console))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt - exiting")
        console.print("\n已中断")
        code = 0
    except Exception as e:
        logger.exception("Unhandled exception")
        console.print(f"[red]发生错误: {e}[/red]")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
