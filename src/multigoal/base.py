"""
multigoal/base.py - 多目标规划策略接口

所有策略实现同一接口, 由调用方在配置时选择:

    planner = ShellPathPlanner(...)   # 或 AT2Opt(...), GreedyUnionPlanner()
    result = planner.plan(goals, q_start, ptp)

普通规划失败 (无可达目标) 返回空的 PlanResult, 不抛异常。
"""

import abc
from typing import Sequence

import numpy as np

from ptp.base import PointToPointPlanner
from utils.config import flatten_parameters
from .goals import GoalRegion
from .models import PlanResult


class MultiGoalPlanner(abc.ABC):
    """多目标巡游规划策略"""

    @abc.abstractmethod
    def plan(self, goals: Sequence[GoalRegion], start: np.ndarray,
             ptp: PointToPointPlanner) -> PlanResult:
        """从 start 出发规划访问 goals 的巡游"""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        ...

    def parameters(self) -> dict:
        return {"name": self.name}

    def flat_parameters(self) -> dict:
        """单层 key-value 参数报告"""
        return flatten_parameters(self.parameters())
