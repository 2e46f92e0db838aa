"""
multigoal/shell_planner.py - 基于 shell 的多目标规划

流程:
1. 每个目标投影到 shell, 从 shell 点规划到目标 (approach); 可选地沿 shell
   滑动出口点缩短 approach (optimize_exit)。失败的目标被丢弃。
2. 以 shell 测地路径预测长度为代价, 求开放路径 TSP 访问顺序。
3. 起点 → 第一个 approach 用点到点规划; 之后每段为
   上一个 approach 反向 + shell 测地路径 + 下一个 approach, 再做路径优化。

首段连接失败返回空结果; 之后失败的连接只丢弃对应目标, 下一段从最后
实际到达的目标出发 (不重新排序)。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ptp.base import Path, PointToPointPlanner
from ptp.path_smoother import dedupe_consecutive
from shell.base import ShellBuilder, ShellPoint, ShellSpace, ShellWalkError
from utils.config import JsonConfigMixin
from utils.seed import make_rng
from utils.timing import Timer
from .base import MultiGoalPlanner
from .goals import GoalRegion
from .models import PathSegment, PlanResult
from .tsp import tsp_open_end

logger = logging.getLogger(__name__)


@dataclass
class ShellPlannerConfig(JsonConfigMixin):
    """ShellPathPlanner 参数

    Attributes:
        apply_shellstate_optimization: 对 approach 做出口滑动优化
        optimize_segments: 对拼接后的目标间路径段做路径优化
        exit_optimization_iters: 出口优化的扰动采样次数
        exit_sample_stddev: 出口扰动的标准差 (工作空间单位)
        seed: 随机种子 (0 表示按时间分配)
    """
    apply_shellstate_optimization: bool = True
    optimize_segments: bool = True
    exit_optimization_iters: int = 20
    exit_sample_stddev: float = 0.1
    seed: int = 0


@dataclass
class Approach:
    """从 shell 点到目标的 approach: path[0] 为 shell 上的配置"""
    goal_idx: int
    shell_point: ShellPoint
    path: Path


class ShellPathPlanner(MultiGoalPlanner):
    """以凸 shell 为长距离路由层的多目标规划器

    Args:
        shell_builder: 从场景构造 shell
        scene: 障碍物场景
        robot: 机器人模型 (end_effector_position / state_at)
        config: 参数

    Example:
        >>> planner = ShellPathPlanner(ConvexHullShellBuilder(), scene, robot)
        >>> result = planner.plan(goals, q_start, ptp)
    """

    def __init__(self, shell_builder: ShellBuilder, scene, robot,
                 config: Optional[ShellPlannerConfig] = None) -> None:
        self.shell_builder = shell_builder
        self.scene = scene
        self.robot = robot
        self.config = config or ShellPlannerConfig()
        self.rng = make_rng(self.config.seed)
        self._last_ptp_params: dict = {}

    @property
    def name(self) -> str:
        return "ShellPathPlanner"

    def plan(self, goals: Sequence[GoalRegion], start: np.ndarray,
             ptp: PointToPointPlanner) -> PlanResult:
        timer = Timer()
        self._last_ptp_params = ptp.parameters()
        with timer.phase("build_shell"):
            space = ShellSpace(self.shell_builder.build_shell(self.scene), self.robot)

        try:
            result = self._plan(goals, np.asarray(start, dtype=np.float64),
                                ptp, space, timer)
        except ShellWalkError as e:
            logger.error("shell 测地行走失败, 返回空结果: %s", e)
            result = PlanResult()

        result.metadata.update(planner=self.name, timing=timer.to_dict())
        return result

    def _plan(self, goals: Sequence[GoalRegion], start: np.ndarray,
              ptp: PointToPointPlanner, space: ShellSpace,
              timer: Timer) -> PlanResult:
        with timer.phase("approaches"):
            approaches = self.plan_approaches(goals, ptp, space)
        if not approaches:
            logger.warning("没有任何目标找到 approach 路径")
            return PlanResult()

        with timer.phase("ordering"):
            order = self.compute_approach_ordering(start, approaches, space)
        ordered = [approaches[k] for k in order]

        with timer.phase("assemble"):
            segments = self.assemble_full_path(start, ordered, ptp, space)

        result = PlanResult(segments=segments)
        result.metadata["n_approaches"] = len(approaches)
        logger.info("ShellPathPlanner: %d/%d 个目标, 总长度 %.3f",
                    len(segments), len(goals), result.total_length())
        return result

    # ── 1. approach ───────────────────────────────────────────

    def plan_approaches(self, goals: Sequence[GoalRegion],
                        ptp: PointToPointPlanner,
                        space: ShellSpace) -> List[Approach]:
        approaches = []
        for gi, goal in enumerate(goals):
            approach = self.plan_approach(gi, goal, ptp, space)
            if approach is None:
                logger.warning("目标 %d: 从 shell 出发没有找到 approach, 丢弃", gi)
                continue
            approaches.append(approach)
        return approaches

    def plan_approach(self, goal_idx: int, goal: GoalRegion,
                      ptp: PointToPointPlanner,
                      space: ShellSpace) -> Optional[Approach]:
        sp = space.shell_point_for_goal(goal)
        path = ptp.plan_to_goal(space.state_on_shell(sp), goal)
        if path is None:
            return None
        approach = Approach(goal_idx, sp, path)
        if self.config.apply_shellstate_optimization:
            approach = self.optimize_exit(approach, ptp, space)
        return approach

    def optimize_exit(self, approach: Approach, ptp: PointToPointPlanner,
                      space: ShellSpace) -> Approach:
        """在 shell 上扰动出口点, 直连到 approach 路径上最远的可达点"""
        best = approach
        best_cost = ptp.objective.path_cost(approach.path)
        for _ in range(self.config.exit_optimization_iters):
            sp = space.shell.gaussian_sample_near(
                best.shell_point, self.rng, self.config.exit_sample_stddev)
            q = space.state_on_shell(sp)
            if not ptp.is_valid(q):
                continue
            for k in range(len(best.path) - 1, -1, -1):
                if ptp.check_motion(q, best.path[k]):
                    candidate = [q] + list(best.path[k:])
                    cost = ptp.objective.path_cost(candidate)
                    if cost < best_cost:
                        best = Approach(approach.goal_idx, sp, candidate)
                        best_cost = cost
                    break
        return best

    # ── 2. 访问顺序 ───────────────────────────────────────────

    def compute_approach_ordering(self, start: np.ndarray,
                                  approaches: List[Approach],
                                  space: ShellSpace) -> List[int]:
        start_sp = space.shell_point_for_state(start)
        n = len(approaches)
        return tsp_open_end(
            lambda i: space.predict_path_length(start_sp, approaches[i].shell_point),
            lambda i, j: space.predict_path_length(approaches[i].shell_point,
                                                   approaches[j].shell_point),
            n)

    # ── 3. 拼接 ───────────────────────────────────────────────

    def plan_first_approach(self, start: np.ndarray, first: Approach,
                            ptp: PointToPointPlanner) -> Optional[Path]:
        to_shell = ptp.plan_to_state(start, first.path[0])
        if to_shell is None:
            return None
        return dedupe_consecutive(list(to_shell) + list(first.path[1:]))

    def assemble_full_path(self, start: np.ndarray, ordered: List[Approach],
                           ptp: PointToPointPlanner,
                           space: ShellSpace) -> List[PathSegment]:
        first_path = self.plan_first_approach(start, ordered[0], ptp)
        if first_path is None:
            logger.warning("起点到第一个 approach 的连接失败, 返回空结果")
            return []

        segments = [PathSegment(ordered[0].goal_idx, first_path)]
        prev = ordered[0]
        for nxt in ordered[1:]:
            path = self.retreat_move_probe(prev, nxt, space)
            if not ptp.check_path(path):
                logger.warning("目标 %d → %d 的 shell 连接无效, 丢弃目标 %d",
                               prev.goal_idx, nxt.goal_idx, nxt.goal_idx)
                continue
            if self.config.optimize_segments:
                path = ptp.optimize(path)
            segments.append(PathSegment(nxt.goal_idx, path))
            prev = nxt
        return segments

    @staticmethod
    def retreat_move_probe(prev: Approach, nxt: Approach,
                           space: ShellSpace) -> Path:
        """退出上一个目标 → 沿 shell 移动 → 进入下一个目标"""
        retreat = list(reversed(prev.path))
        move = space.shell_path(prev.shell_point, nxt.shell_point)
        return dedupe_consecutive(retreat + move + list(nxt.path))

    def parameters(self) -> dict:
        params = {"name": self.name,
                  "shell_builder_params": self.shell_builder.parameters()}
        params.update(self.config.to_dict())
        if self._last_ptp_params:
            params["ptp"] = self._last_ptp_params
        return params
