"""
workspace/robot.py - 末端执行器模型

多目标规划只通过两个能力使用机器人模型:

- ``end_effector_position(q)``: 正向运动学, 配置 → 末端 3D 位置
- ``state_at(point, facing)``: 构造末端位于给定点的配置

PointRobot 是最简单的实现: 配置空间即 3D 工作空间 (自由飞行的末端),
用于实验场景和测试。更复杂的机械臂只需提供同样两个方法。
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np


class PointRobot:
    """3-DOF 自由平移末端

    Args:
        joint_limits: 每维 (lo, hi) 限制, 长度为 3
        name: 机器人名称
    """

    def __init__(
        self,
        joint_limits: Sequence[Tuple[float, float]] = ((-5.0, 5.0),) * 3,
        name: str = "point",
    ) -> None:
        limits = [(float(lo), float(hi)) for lo, hi in joint_limits]
        if len(limits) != 3:
            raise ValueError(f"PointRobot 需要 3 个关节限制, 得到 {len(limits)}")
        for lo, hi in limits:
            if hi <= lo:
                raise ValueError(f"关节限制非法: ({lo}, {hi})")
        self.joint_limits: List[Tuple[float, float]] = limits
        self.name = name

    @property
    def n_joints(self) -> int:
        return 3

    @property
    def lower(self) -> np.ndarray:
        return np.array([lo for lo, _ in self.joint_limits])

    @property
    def upper(self) -> np.ndarray:
        return np.array([hi for _, hi in self.joint_limits])

    def end_effector_position(self, q: np.ndarray) -> np.ndarray:
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (3,):
            raise ValueError(f'期望 3 个关节值，得到 shape={q.shape}')
        return q.copy()

    def state_at(
        self,
        point: np.ndarray,
        facing: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """末端位于 point 的配置 (点机器人无朝向, facing 被忽略)"""
        return np.asarray(point, dtype=np.float64).copy()

    def within_limits(self, q: np.ndarray) -> bool:
        q = np.asarray(q, dtype=np.float64)
        return bool(np.all(q >= self.lower) and np.all(q <= self.upper))

    def __repr__(self) -> str:
        return f"PointRobot(name={self.name!r}, joint_limits={self.joint_limits})"
