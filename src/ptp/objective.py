"""
ptp/objective.py - 代价目标

两种多目标策略用同一个目标函数比较候选路径:

- ``path_cost(path)``  : 路径代价 (默认为关节空间 L2 长度)
- ``state_cost(q)``    : 单个配置的代价, 用于 approach table 剪枝 (越小越好)
"""

from __future__ import annotations

import abc
from typing import List, Sequence

import numpy as np


def compute_path_length(path: Sequence[np.ndarray]) -> float:
    """计算路径总长度 (L2)"""
    if len(path) < 2:
        return 0.0
    return sum(float(np.linalg.norm(path[i] - path[i - 1]))
               for i in range(1, len(path)))


class CostObjective(abc.ABC):
    """代价目标接口"""

    @abc.abstractmethod
    def path_cost(self, path: Sequence[np.ndarray]) -> float:
        """整条路径的代价"""

    def state_cost(self, q: np.ndarray) -> float:
        """单个配置的代价; 默认所有配置等价"""
        return 0.0

    @property
    def name(self) -> str:
        return type(self).__name__

    def parameters(self) -> dict:
        return {"name": self.name}


class PathLengthObjective(CostObjective):
    """路径长度目标 (关节空间 L2)"""

    def path_cost(self, path: Sequence[np.ndarray]) -> float:
        return compute_path_length(path)


class ClearanceObjective(PathLengthObjective):
    """路径长度 + 偏好远离障碍物的目标配置

    path_cost 仍为路径长度; state_cost = -weight * min(clearance, cap),
    因此剪枝时保留离障碍物更远的 approach 配置。

    Args:
        checker: 提供 ``clearance(q)`` 的碰撞检测器
        weight: clearance 权重
        cap: clearance 截断上限 (无障碍物时 clearance 为 inf)
    """

    def __init__(self, checker, weight: float = 1.0, cap: float = 1.0) -> None:
        self.checker = checker
        self.weight = float(weight)
        self.cap = float(cap)

    def state_cost(self, q: np.ndarray) -> float:
        return -self.weight * min(self.checker.clearance(q), self.cap)

    def parameters(self) -> dict:
        return {"name": self.name, "weight": self.weight, "cap": self.cap}


def segment_lengths(paths: List[Sequence[np.ndarray]]) -> List[float]:
    return [compute_path_length(p) for p in paths]
