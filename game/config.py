"""客户端配置中心 (SSOT - 单一事实来源)

所有可配置的连接与对局参数应在此定义，支持从环境变量覆盖。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .board import default_board_size, default_stone_set
from .enums import GameMode
from .exceptions import ConfigurationError

# 协议默认端口
DEFAULT_PORT = 59995

# 连接超时 (秒)
DEFAULT_CONNECT_TIMEOUT = 5.0


def _get_env_float(key: str, default: float) -> float:
    """从环境变量获取浮点数配置"""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_env_int(key: str, default: int) -> int:
    """从环境变量获取整数配置"""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_env_bool(key: str, default: bool) -> bool:
    """从环境变量获取布尔配置"""
    value = os.environ.get(key, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    elif value in ("false", "0", "no", "off"):
        return False
    return default


def _get_env_game_mode(key: str, default: GameMode | None) -> GameMode | None:
    """从环境变量获取游戏模式 (接受名称或数值)"""
    value = os.environ.get(key, "").strip()
    if not value:
        return default
    try:
        if value.isdigit():
            return GameMode(int(value))
        return GameMode[value.upper()]
    except (KeyError, ValueError):
        return default


@dataclass(frozen=True)
class ClientConfig:
    """客户端配置类 (不可变)

    所有配置项支持通过环境变量覆盖：
    - BLOKWIRE_SERVER: 服务器主机名 (为空表示本机回环)
    - BLOKWIRE_PORT: 服务器端口
    - BLOKWIRE_CONNECT_TIMEOUT: 连接超时秒数
    - BLOKWIRE_READ_AHEAD: 读泵预读深度
    - BLOKWIRE_ENDPOINT: 本地进程间套接字的端点名
    - BLOKWIRE_RFCOMM_CHANNEL: 蓝牙 RFCOMM 通道
    - BLOKWIRE_PLAYER_NAME: 请求座位时使用的玩家名
    - BLOKWIRE_GAME_MODE: 默认游戏模式
    """
    # ==================== 连接配置 ====================
    server: str | None = field(
        default_factory=lambda: os.environ.get("BLOKWIRE_SERVER") or None
    )
    port: int = field(
        default_factory=lambda: _get_env_int("BLOKWIRE_PORT", DEFAULT_PORT)
    )
    connect_timeout: float = field(
        default_factory=lambda: _get_env_float("BLOKWIRE_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT)
    )
    read_ahead: int = field(
        default_factory=lambda: _get_env_int("BLOKWIRE_READ_AHEAD", 2)
    )
    local_endpoint: str = field(
        default_factory=lambda: os.environ.get("BLOKWIRE_ENDPOINT", "blokwire")
    )
    rfcomm_channel: int = field(
        default_factory=lambda: _get_env_int("BLOKWIRE_RFCOMM_CHANNEL", 1)
    )

    # ==================== 对局配置 ====================
    player_name: str = field(
        default_factory=lambda: os.environ.get("BLOKWIRE_PLAYER_NAME", "")
    )
    # None 表示沿用服务器当前模式，连接后不发送 RequestGameMode
    game_mode: GameMode | None = field(
        default_factory=lambda: _get_env_game_mode("BLOKWIRE_GAME_MODE", None)
    )
    field_size: int | None = None  # None 表示按模式取默认值
    stones: tuple[int, ...] | None = None  # None 表示按模式取默认值
    request_players: tuple[bool, bool, bool, bool] | None = None  # None 表示随机座位

    # ==================== 日志与调试 ====================
    log_level: str = field(
        default_factory=lambda: os.environ.get("BLOKWIRE_LOG_LEVEL", "INFO")
    )
    debug_mode: bool = field(
        default_factory=lambda: _get_env_bool("BLOKWIRE_DEBUG", False)
    )

    def __post_init__(self) -> None:
        if not 0 < self.port <= 0xFFFF:
            raise ConfigurationError(f"invalid port {self.port}", config_key="port")
        if self.connect_timeout <= 0:
            raise ConfigurationError("connect timeout must be positive", config_key="connect_timeout")
        if self.read_ahead < 1:
            raise ConfigurationError("read ahead must be at least 1", config_key="read_ahead")

    @property
    def effective_game_mode(self) -> GameMode:
        return self.game_mode if self.game_mode is not None else GameMode.default()

    @property
    def board_size(self) -> int:
        if self.field_size is not None:
            return self.field_size
        return default_board_size(self.effective_game_mode)

    @property
    def stone_set(self) -> tuple[int, ...]:
        return self.stones if self.stones is not None else default_stone_set(self.effective_game_mode)

    @classmethod
    def from_env(cls) -> ClientConfig:
        """从环境变量创建配置实例"""
        return cls()


# 全局配置单例
_config: ClientConfig | None = None


def get_config() -> ClientConfig:
    """获取全局配置实例（懒加载）"""
    global _config
    if _config is None:
        _config = ClientConfig.from_env()
    return _config


def reset_config() -> None:
    """重置配置（用于测试）"""
    global _config
    _config = None
