"""
ptp/base.py - 点到点规划能力接口

PointToPointPlanner ABC : 多目标策略消费的唯一规划接口
PTPConfig               : 点到点规划参数

约定: 普通的规划失败 (超时 / 无解) 返回 None, 不抛异常。
路径用 ``List[np.ndarray]`` 表示, 首点为起始配置。
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from utils.config import JsonConfigMixin
from .objective import CostObjective, PathLengthObjective

Path = List[np.ndarray]


@dataclass
class PTPConfig(JsonConfigMixin):
    """点到点规划器参数配置

    Attributes:
        time_per_goal: 单次点到点规划的时间预算 (s)
        step_size: RRT 扩展步长
        segment_resolution: 线段碰撞检测采样间隔
        goal_samples: plan_to_goal 时从目标区域抽取的有效样本数上限
        try_lucky_shots: 先尝试直线连到最近的有效目标样本
        optimize_paths: 对找到的路径做 shortcut 后处理
        shortcut_iters: 每轮 shortcut 迭代次数
        use_cost_convergence: 重复 shortcut 直到代价收敛 (否则只做一轮)
        convergence_rel_tol: 代价收敛的相对改进阈值
        seed: 随机种子 (0 表示按时间分配)
    """
    time_per_goal: float = 1.0
    step_size: float = 0.3
    segment_resolution: float = 0.05
    goal_samples: int = 5
    try_lucky_shots: bool = True
    optimize_paths: bool = True
    shortcut_iters: int = 50
    use_cost_convergence: bool = False
    convergence_rel_tol: float = 0.01
    seed: int = 0


class PointToPointPlanner(abc.ABC):
    """点到点规划能力

    子类实现两种规划入口与有效性检查。策略层只依赖本接口,
    因此可以替换为任意采样式规划器 (或测试用的假实现)。
    """

    def __init__(self, objective: Optional[CostObjective] = None) -> None:
        self.objective: CostObjective = objective or PathLengthObjective()

    # ── 规划入口 ──────────────────────────────────────────────

    @abc.abstractmethod
    def plan_to_goal(self, start: np.ndarray, goal,
                     time_budget: Optional[float] = None) -> Optional[Path]:
        """从 start 规划到目标区域 goal (满足 goal 的任一配置)

        Args:
            time_budget: 本次调用的时间预算 (s), None 使用规划器默认值
        """

    @abc.abstractmethod
    def plan_to_state(self, start: np.ndarray, end: np.ndarray,
                      time_budget: Optional[float] = None) -> Optional[Path]:
        """从 start 规划到确定配置 end"""

    def optimize(self, path: Path) -> Path:
        """缩短路径 (首尾不变)

        默认实现: 从每个点贪心直连到最远的可达点。
        """
        if len(path) <= 2:
            return list(path)
        out = [path[0]]
        i = 0
        while i < len(path) - 1:
            j = len(path) - 1
            while j > i + 1 and not self.check_motion(path[i], path[j]):
                j -= 1
            out.append(path[j])
            i = j
        return out

    # ── 有效性 ────────────────────────────────────────────────

    @abc.abstractmethod
    def is_valid(self, q: np.ndarray) -> bool:
        """配置是否有效 (无碰撞且在限制内)"""

    @abc.abstractmethod
    def check_motion(self, q_from: np.ndarray, q_to: np.ndarray) -> bool:
        """直线运动 q_from → q_to 是否有效"""

    def check_path(self, path: Sequence[np.ndarray]) -> bool:
        """路径中所有相邻直线运动都有效"""
        if not path:
            return False
        if len(path) == 1:
            return self.is_valid(path[0])
        return all(self.check_motion(path[i - 1], path[i])
                   for i in range(1, len(path)))

    # ── 报告 ──────────────────────────────────────────────────

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """规划器名称 (用于报告)"""

    def parameters(self) -> dict:
        return {"name": self.name, "objective": self.objective.parameters()}
