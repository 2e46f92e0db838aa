"""
shell/base.py - 无碰撞 shell 接口

ShellPoint         : shell 表面上的点 (facet id + 该 facet 上的位置)
CollisionFreeShell : shell 能力接口 (投影 / 测地路径 / 长度预测 / 扰动采样)
ShellBuilder       : 从场景构造 shell
ShellSpace         : shell 点 ↔ 机器人配置的适配
ShellWalkError     : 测地行走停滞或不一致 (几何缺陷, 非普通规划失败)
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import List, Optional

import numpy as np


class ShellWalkError(RuntimeError):
    """测地行走无法终止或出入点不一致"""


@dataclass
class ShellPoint:
    """shell 表面上的点

    同一欧氏位置在跨越边时可能以两个相邻 facet 表示。
    """
    face_id: int
    position: np.ndarray

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64)


class CollisionFreeShell(abc.ABC):
    """包围所有障碍物的凸 shell

    ``padding`` 为机器人沿法向离开表面的距离, 见 ``padded_position``。
    """

    padding: float = 0.0

    @abc.abstractmethod
    def project(self, point: np.ndarray, hint: Optional[int] = None) -> ShellPoint:
        """将任意点投影到 shell 表面 (hint: 起始 facet)"""

    @abc.abstractmethod
    def path_on_shell(self, a: ShellPoint, b: ShellPoint) -> List[ShellPoint]:
        """a → b 的测地路径, 首点在 a 的 facet, 末点在 b 的 facet"""

    @abc.abstractmethod
    def normal_at(self, sp: ShellPoint) -> np.ndarray:
        """shell 点处的外法向 (单位向量)"""

    @abc.abstractmethod
    def gaussian_sample_near(self, sp: ShellPoint, rng: np.random.Generator,
                             stddev: float = 0.1) -> ShellPoint:
        """在 sp 附近做高斯扰动并重新投影"""

    def padded_position(self, sp: ShellPoint) -> np.ndarray:
        return sp.position + self.padding * self.normal_at(sp)

    def predict_path_length(self, a: ShellPoint, b: ShellPoint) -> float:
        """沿 shell 从 a 到 b 的路径长度 (按 padded 位置计算)"""
        pts = [self.padded_position(sp) for sp in self.path_on_shell(a, b)]
        return sum(float(np.linalg.norm(pts[i] - pts[i - 1]))
                   for i in range(1, len(pts)))


class ShellBuilder(abc.ABC):
    """从场景构造 shell"""

    @abc.abstractmethod
    def build_shell(self, scene) -> CollisionFreeShell:
        ...

    def parameters(self) -> dict:
        return {"name": type(self).__name__}


class ShellSpace:
    """shell 与机器人配置空间之间的适配器

    Args:
        shell: shell 实例
        robot: 提供 ``end_effector_position`` / ``state_at`` 的机器人模型
    """

    def __init__(self, shell: CollisionFreeShell, robot) -> None:
        self.shell = shell
        self.robot = robot

    def state_on_shell(self, sp: ShellPoint) -> np.ndarray:
        """末端位于 sp 的 padded 位置, 朝向 shell 内部的配置"""
        return self.robot.state_at(self.shell.padded_position(sp),
                                   -self.shell.normal_at(sp))

    def shell_point_for_state(self, q: np.ndarray) -> ShellPoint:
        return self.shell.project(self.robot.end_effector_position(q))

    def shell_point_for_goal(self, goal) -> ShellPoint:
        return self.shell.project(goal.representative_point())

    def shell_path(self, a: ShellPoint, b: ShellPoint) -> List[np.ndarray]:
        """a → b 测地路径对应的配置序列"""
        return [self.state_on_shell(sp) for sp in self.shell.path_on_shell(a, b)]

    def predict_path_length(self, a: ShellPoint, b: ShellPoint) -> float:
        return self.shell.predict_path_length(a, b)
