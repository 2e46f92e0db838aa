"""
multigoal/goals.py - 可采样目标区域

GoalRegion             : 目标区域接口 (采样 / 距离 / 最大采样数 / 代表点)
EndEffectorNearTarget  : 末端执行器位于目标点附近球内
RoundRobinSampler      : 轮流选择子区域的采样器 (显式持有下一个索引)
UnionGoalRegion        : 多个目标区域的并集
"""

from __future__ import annotations

import abc
import logging
from typing import List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class GoalRegion(abc.ABC):
    """配置空间中的目标区域 (规划期间不可变)"""

    @abc.abstractmethod
    def sample(self, rng: np.random.Generator) -> np.ndarray:
        """抽取一个满足目标的配置"""

    @abc.abstractmethod
    def distance(self, q: np.ndarray) -> float:
        """配置到目标区域的距离, 区域内为 0"""

    @abc.abstractmethod
    def max_sample_count(self) -> int:
        ...

    @abc.abstractmethod
    def representative_point(self) -> np.ndarray:
        """工作空间中代表该目标的 3D 点 (用于 shell 投影)"""

    def is_satisfied(self, q: np.ndarray, tol: float = 1e-9) -> bool:
        return self.distance(q) <= tol


class EndEffectorNearTarget(GoalRegion):
    """末端执行器距 target 不超过 radius

    Args:
        robot: 提供 end_effector_position / state_at 的机器人模型
        target: 工作空间目标点 (3,)
        radius: 允许半径
        max_samples: 最大采样次数
    """

    def __init__(self, robot, target: Sequence[float], radius: float = 0.05,
                 max_samples: int = 100) -> None:
        self.robot = robot
        self.target = np.asarray(target, dtype=np.float64)
        if self.target.shape != (3,):
            raise ValueError(f"target 需为 3D 点, 得到 shape={self.target.shape}")
        if radius <= 0:
            raise ValueError(f"radius 必须为正, 得到 {radius}")
        self.radius = float(radius)
        self.max_samples = int(max_samples)

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        direction = rng.normal(size=3)
        norm = float(np.linalg.norm(direction))
        if norm < 1e-12:
            direction, norm = np.array([0.0, 0.0, 1.0]), 1.0
        r = self.radius * float(rng.random()) ** (1.0 / 3.0)
        point = self.target + direction / norm * r
        return self.robot.state_at(point, self.target - point)

    def distance(self, q: np.ndarray) -> float:
        d = float(np.linalg.norm(self.robot.end_effector_position(q) - self.target))
        return max(0.0, d - self.radius)

    def max_sample_count(self) -> int:
        return self.max_samples

    def representative_point(self) -> np.ndarray:
        return self.target.copy()

    def __repr__(self) -> str:
        return f"EndEffectorNearTarget(target={self.target.tolist()}, radius={self.radius})"


class RoundRobinSampler:
    """按顺序轮流返回 0..n-1"""

    def __init__(self, n: int) -> None:
        if n <= 0:
            raise ValueError("RoundRobinSampler 至少需要一个元素")
        self.n = n
        self.next_index = 0

    def next(self) -> int:
        idx = self.next_index
        self.next_index = (self.next_index + 1) % self.n
        return idx


class UnionGoalRegion(GoalRegion):
    """多个目标区域的并集, 采样时轮流从各子区域抽取"""

    def __init__(self, goals: Sequence[GoalRegion]) -> None:
        if not goals:
            raise ValueError("UnionGoalRegion 至少需要一个目标")
        self.goals: List[GoalRegion] = list(goals)
        self.sampler = RoundRobinSampler(len(self.goals))

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        return self.goals[self.sampler.next()].sample(rng)

    def distance(self, q: np.ndarray) -> float:
        return min(g.distance(q) for g in self.goals)

    def max_sample_count(self) -> int:
        return sum(g.max_sample_count() for g in self.goals)

    def representative_point(self) -> np.ndarray:
        return np.mean([g.representative_point() for g in self.goals], axis=0)

    def which_goal(self, q: np.ndarray, tol: float = 1e-9) -> Optional[int]:
        """q 满足的子目标索引 (多个时取距离最小者), 都不满足时为 None"""
        dists = [g.distance(q) for g in self.goals]
        best = int(np.argmin(dists))
        return best if dists[best] <= tol else None
