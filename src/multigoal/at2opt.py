"""
multigoal/at2opt.py - approach table + 2-opt 局部搜索

1. 每个目标抽取 samples_per_goal 个有效 approach 配置, 按代价保留 keep_best 个
2. 随机顺序、随机 approach 构造初始巡游 (连接失败的目标丢弃)
3. 在时间预算内反复遍历所有位置对 (i, j), 尝试交换两者的 visitation;
   只重规划受影响的连接, 总代价严格下降才接受

巡游代价单调不增。未访问目标的插入通过 missing_goal_hook 扩展,
默认不做。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Set

import numpy as np

from ptp.base import PointToPointPlanner
from utils.config import JsonConfigMixin
from utils.seed import make_rng
from utils.timing import Deadline, Timer
from .approach_table import (
    check_replacements_validity,
    compute_new_path_segments,
    find_missing_targets,
    keep_best,
    random_initial_solution,
    replacements_for_swap,
    take_goal_samples,
)
from .base import MultiGoalPlanner
from .goals import GoalRegion
from .models import ATSolution, GoalApproachTable, PlanResult

logger = logging.getLogger(__name__)

MissingGoalHook = Callable[
    [ATSolution, GoalApproachTable, Set[int], int, PointToPointPlanner, np.ndarray],
    None,
]


@dataclass
class AT2OptConfig(JsonConfigMixin):
    """AT2Opt 参数

    Attributes:
        samples_per_goal: 每个目标最多抽取的有效 approach 配置数
        keep_best: 剪枝后每个目标保留的配置数
        time_budget: 局部搜索的墙钟预算 (s)
        replan_time: 局部搜索中每次点到点重规划的时间预算 (s)
        max_passes: 最多遍历轮数 (0 表示只受时间限制)
        seed: 随机种子 (0 表示按时间分配)
    """
    samples_per_goal: int = 50
    keep_best: int = 5
    time_budget: float = 10.0
    replan_time: float = 0.1
    max_passes: int = 0
    seed: int = 0


class AT2Opt(MultiGoalPlanner):
    """approach table 2-opt 多目标规划器

    Args:
        config: 参数
        missing_goal_hook: 每个位置 i 处理完后调用的扩展点,
            签名 hook(solution, table, missing, i, ptp, start),
            可以把未访问目标插入 solution (插入后必须保持巡游有效)
    """

    def __init__(self, config: Optional[AT2OptConfig] = None,
                 missing_goal_hook: Optional[MissingGoalHook] = None) -> None:
        self.config = config or AT2OptConfig()
        self.missing_goal_hook = missing_goal_hook
        self._last_ptp_params: dict = {}

    @property
    def name(self) -> str:
        return "AT2Opt"

    def plan(self, goals: Sequence[GoalRegion], start: np.ndarray,
             ptp: PointToPointPlanner) -> PlanResult:
        cfg = self.config
        rng = make_rng(cfg.seed)
        timer = Timer()
        start = np.asarray(start, dtype=np.float64)
        self._last_ptp_params = ptp.parameters()

        with timer.phase("goal_samples"):
            table = take_goal_samples(goals, ptp, cfg.samples_per_goal, rng)
            keep_best(ptp.objective, table, cfg.keep_best)
            table.freeze()

        with timer.phase("initial_solution"):
            solution = random_initial_solution(ptp, table, start, rng)
        solution.check_valid(table, start)
        initial_cost = solution.total_cost(ptp.objective)
        missing = find_missing_targets(solution, table)
        if missing:
            logger.warning("初始巡游缺少 %d 个目标: %s", len(missing), sorted(missing))

        with timer.phase("local_search"):
            n_improvements, n_passes = self.improve(solution, table, start, ptp,
                                                    missing)

        final_cost = solution.total_cost(ptp.objective)
        logger.info("AT2Opt: %d 轮, %d 次改进, 代价 %.4f → %.4f",
                    n_passes, n_improvements, initial_cost, final_cost)

        result = solution.to_plan_result()
        result.metadata.update(
            planner=self.name,
            initial_cost=initial_cost,
            final_cost=final_cost,
            n_improvements=n_improvements,
            n_passes=n_passes,
            missing_goals=sorted(find_missing_targets(solution, table)),
            timing=timer.to_dict(),
        )
        return result

    def improve(self, solution: ATSolution, table: GoalApproachTable,
                start: np.ndarray, ptp: PointToPointPlanner,
                missing: Set[int]) -> tuple:
        """2-opt 局部搜索, 原地修改 solution; 返回 (改进次数, 轮数)"""
        cfg = self.config
        deadline = Deadline(cfg.time_budget)
        n_improvements = 0
        n_passes = 0

        while not deadline.expired():
            if cfg.max_passes and n_passes >= cfg.max_passes:
                break
            if len(solution) < 2:
                break
            n_passes += 1

            i = 0
            while i < len(solution):
                if deadline.expired():
                    break
                for j in range(i + 1, len(solution)):
                    replacements = replacements_for_swap(solution, i, j)
                    check_replacements_validity(replacements)
                    computed = compute_new_path_segments(
                        start, ptp, table, solution, replacements,
                        time_budget=cfg.replan_time)
                    if computed is None:
                        continue
                    if solution.is_improvement(computed, ptp.objective):
                        solution.apply_replacements(computed)
                        solution.check_valid(table, start)
                        n_improvements += 1
                        logger.debug("接受交换 (%d, %d), 代价 %.4f",
                                     i, j, solution.total_cost(ptp.objective))

                if self.missing_goal_hook is not None and missing:
                    self.missing_goal_hook(solution, table, missing, i, ptp, start)
                    solution.check_valid(table, start)
                    missing.clear()
                    missing.update(find_missing_targets(solution, table))
                i += 1

        return n_improvements, n_passes

    def parameters(self) -> dict:
        params = {"name": self.name}
        params.update(self.config.to_dict())
        if self._last_ptp_params:
            params["ptp"] = self._last_ptp_params
        return params
