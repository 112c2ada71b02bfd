"""落子数据类"""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import Rotation


@dataclass(frozen=True)
class Orientation:
    """棋子朝向: 是否镜像 + 旋转"""

    mirrored: bool = False
    rotation: Rotation = Rotation.NONE


@dataclass(frozen=True)
class Turn:
    """一次落子

    坐标以棋盘左上角为原点，x 为列、y 为行。
    """

    player: int
    shape: int
    y: int
    x: int
    orientation: Orientation = field(default_factory=Orientation)

    def __str__(self) -> str:
        o = self.orientation
        return (
            f"Turn(player={self.player}, shape={self.shape}, x={self.x}, y={self.y}, "
            f"mirrored={o.mirrored}, rotation={o.rotation.name})"
        )
