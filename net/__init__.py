"""网络协议模块
基于 5 字节校验帧头 + 二进制载荷的客户端协议层
"""

from .client import GameClient
from .handler import GameClientMessageHandler
from .header import HEADER_SIZE, Header, decode_header, encode_header
from .listener import RadioServerThread
from .message import Message, MessageType
from .protocol import (
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
    decode_frame,
    decode_message,
    encode_message,
)
from .stream import MessageReader, MessageWriter
from .transport import (
    SERVICE_UUID,
    BluetoothDevice,
    Channel,
    LocalConnector,
    RadioConnector,
    RemoteConnector,
    open_channel,
)

__all__ = [
    "HEADER_SIZE", "Header", "encode_header", "decode_header",
    "Message", "MessageType", "encode_message", "decode_message", "decode_frame",
    "Chat", "CurrentPlayer", "GameFinish", "GrantPlayer", "RequestGameMode",
    "RequestHint", "RequestPlayer", "RequestUndo", "RevokePlayer", "ServerStatus",
    "SetStone", "StartGame", "StoneHint", "UndoStone",
    "MessageReader", "MessageWriter",
    "Channel", "open_channel", "RemoteConnector", "LocalConnector", "RadioConnector",
    "BluetoothDevice", "SERVICE_UUID", "RadioServerThread",
    "GameClientMessageHandler", "GameClient",
]
