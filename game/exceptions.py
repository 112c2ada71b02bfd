"""异常模块
定义协议层与客户端使用的各类异常，提供明确的错误类型和信息

分类:
- ProtocolError: 帧错误 (头部损坏、校验失败、未知消息类型)，对当前连接致命
- GameStateError: 阶段一致性错误 (消息与当前游戏阶段不符)，对端被视为不合规
- TransportError: 传输错误 (拒绝连接、超时、读写失败)，以值或断连原因的形式上报
"""

from __future__ import annotations


class GameError(Exception):
    """异常基类

    所有项目内的异常都应该继承此类，
    提供统一的异常处理接口。
    """

    def __init__(self, message: str, details: dict | None = None):
        """初始化异常

        Args:
            message: 错误消息
            details: 额外的错误详情（可选）
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ==================== 协议相关异常 ====================


class ProtocolError(GameError):
    """帧/协议异常

    头部尺寸非法、校验和不符、消息类型未知或载荷无法解析时抛出
    """

    def __init__(self, message: str = "protocol error", raw_type: int | None = None):
        details = {}
        if raw_type is not None:
            details["raw_type"] = raw_type
        super().__init__(message, details)
        self.raw_type = raw_type


# ==================== 游戏状态相关异常 ====================


class GameStateError(GameError):
    """阶段一致性异常

    收到的消息在当前游戏阶段不合法时抛出 (例如游戏未开始时落子)
    """

    def __init__(
        self,
        message: str = "invalid game state",
        current_state: str | None = None,
        expected_state: str | None = None,
    ):
        details = {}
        if current_state:
            details["current_state"] = current_state
        if expected_state:
            details["expected_state"] = expected_state
        super().__init__(message, details)
        self.current_state = current_state
        self.expected_state = expected_state


# ==================== 传输相关异常 ====================


class TransportError(GameError):
    """传输异常

    连接被拒绝、超时或读写失败时使用
    """

    def __init__(self, message: str = "transport error", endpoint: str | None = None):
        details = {}
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(message, details)
        self.endpoint = endpoint


class ConnectionClosedError(TransportError):
    """对端关闭了连接"""

    def __init__(self, message: str = "connection closed by peer", endpoint: str | None = None):
        super().__init__(message, endpoint)


# ==================== 配置相关异常 ====================


class ConfigurationError(GameError):
    """配置错误异常

    当客户端配置有问题时抛出
    """

    def __init__(self, message: str = "invalid configuration", config_key: str | None = None):
        details = {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details)
        self.config_key = config_key


# ==================== 工具函数 ====================


def raise_if_not(condition: bool, message: str, current_state: str | None = None) -> None:
    """条件不成立时抛出阶段一致性异常

    Args:
        condition: 需要满足的条件
        message: 错误消息
        current_state: 当前阶段名（可选）

    Raises:
        GameStateError: 如果条件不成立
    """
    if not condition:
        raise GameStateError(message, current_state=current_state)
