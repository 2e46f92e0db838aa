"""
multigoal/greedy.py - 贪心并集规划

每一步从当前巡游终点规划到所有未访问目标的并集, 到达哪个目标就
把该段标记给它并移除, 直到没有可达目标。
"""

import logging
from typing import Sequence

import numpy as np

from ptp.base import PointToPointPlanner
from utils.timing import Timer
from .base import MultiGoalPlanner
from .goals import GoalRegion, UnionGoalRegion
from .models import PathSegment, PlanResult

logger = logging.getLogger(__name__)


class GreedyUnionPlanner(MultiGoalPlanner):
    """贪心: 总是前往最先规划到的未访问目标

    Args:
        goal_tolerance: 判断路径终点满足哪个目标的距离阈值
    """

    def __init__(self, goal_tolerance: float = 1e-6) -> None:
        self.goal_tolerance = goal_tolerance

    @property
    def name(self) -> str:
        return "GreedyUnion"

    def plan(self, goals: Sequence[GoalRegion], start: np.ndarray,
             ptp: PointToPointPlanner) -> PlanResult:
        timer = Timer()
        remaining = list(range(len(goals)))
        current = np.asarray(start, dtype=np.float64)
        segments = []

        with timer.phase("plan"):
            while remaining:
                union = UnionGoalRegion([goals[gi] for gi in remaining])
                path = ptp.plan_to_goal(current, union)
                if path is None:
                    logger.warning("剩余 %d 个目标均不可达, 停止", len(remaining))
                    break
                k = union.which_goal(path[-1], self.goal_tolerance)
                if k is None:
                    logger.warning("路径终点不满足任何剩余目标, 停止")
                    break
                gi = remaining.pop(k)
                segments.append(PathSegment(gi, path))
                current = path[-1]

        result = PlanResult(segments=segments)
        result.metadata.update(planner=self.name, timing=timer.to_dict(),
                               missing_goals=sorted(remaining))
        return result

    def parameters(self) -> dict:
        return {"name": self.name, "goal_tolerance": self.goal_tolerance}
