"""
multigoal/approach_table.py - approach table 操作

- take_goal_samples: 每个目标抽取至多 k 个有效 approach 配置
- keep_best: 每行只保留代价最小的 keep_k 个
- random_initial_order / random_initial_solution: 随机初始巡游
- find_missing_targets: 巡游中未访问的目标
- replacements_for_swap: 交换位置 i, j 所需替换的区间
- check_replacements_validity: 替换区间的结构检查
- compute_new_path_segments: 只重规划受影响的点到点连接
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set

import numpy as np

from ptp.base import PointToPointPlanner
from ptp.objective import CostObjective
from .goals import GoalRegion
from .models import (
    ATSolution,
    GoalApproach,
    GoalApproachTable,
    NewApproachAt,
    Replacement,
    Visitation,
)

logger = logging.getLogger(__name__)


def take_goal_samples(goals: Sequence[GoalRegion], ptp: PointToPointPlanner,
                      k: int, rng: np.random.Generator) -> GoalApproachTable:
    """每个目标最多尝试 max_sample_count() 次, 保留至多 k 个有效样本"""
    rows = []
    for gi, goal in enumerate(goals):
        row: List[np.ndarray] = []
        for _ in range(goal.max_sample_count()):
            if len(row) >= k:
                break
            q = goal.sample(rng)
            if ptp.is_valid(q):
                row.append(q)
        if not row:
            logger.warning("目标 %d 没有抽到有效 approach 配置", gi)
        rows.append(row)
    return GoalApproachTable(rows)


def keep_best(objective: CostObjective, table: GoalApproachTable,
              keep_k: int) -> None:
    """按 state_cost 升序每行保留前 keep_k 个 (稳定排序)"""
    for gi in range(len(table)):
        row = sorted(table[gi], key=objective.state_cost)
        table.replace_row(gi, row[:keep_k])


def random_initial_order(table: GoalApproachTable,
                         rng: np.random.Generator) -> List[Visitation]:
    """随机目标顺序, 每个目标随机选一个 approach (跳过空行)"""
    targets = [gi for gi in range(len(table)) if table[gi]]
    order = []
    for gi in rng.permutation(targets):
        gi = int(gi)
        order.append(Visitation(gi, int(rng.integers(len(table[gi])))))
    return order


def random_initial_solution(ptp: PointToPointPlanner, table: GoalApproachTable,
                            start: np.ndarray,
                            rng: np.random.Generator) -> ATSolution:
    """按随机顺序依次连接, 规划失败的目标直接丢弃"""
    solution = ATSolution()
    for v in random_initial_order(table, rng):
        from_state = solution.get_last_state()
        if from_state is None:
            from_state = start
        path = ptp.plan_to_state(from_state, table.config(v))
        if path is None:
            logger.warning("初始巡游: 目标 %d 连接失败, 丢弃", v.target_idx)
            continue
        solution.segments.append(GoalApproach(v, path))
    return solution


def find_missing_targets(solution: ATSolution,
                         table: GoalApproachTable) -> Set[int]:
    visited = {ga.visitation.target_idx for ga in solution.segments}
    return set(range(len(table))) - visited


def replacements_for_swap(solution: ATSolution, i: int, j: int) -> List[Replacement]:
    """交换位置 i < j 的 visitation 需要的替换

    相邻 (j == i+1): 一个替换, 覆盖 [i, min(i+2, n-1)]。
    不相邻: 两个替换, [i, i+1] 和 [j, min(j+1, n-1)]。
    """
    n = len(solution)
    if not 0 <= i < j < n:
        raise ValueError(f"需要 0 <= i < j < {n}, 得到 i={i}, j={j}")
    vis = solution.visitations()

    if j == i + 1:
        visitations = [vis[j], vis[i]]
        if i + 2 < n:
            visitations.append(vis[i + 2])
        return [Replacement(i, min(i + 2, n - 1), visitations)]

    second = [vis[i]]
    if j + 1 < n:
        second.append(vis[j + 1])
    return [
        Replacement(i, i + 1, [vis[j], vis[i + 1]]),
        Replacement(j, min(j + 1, n - 1), second),
    ]


def check_replacements_validity(replacements: Sequence[Replacement]) -> None:
    """区间有序、严格不重叠且长度与 visitation 数一致, 否则抛出 ValueError"""
    for k, repl in enumerate(replacements):
        if repl.first_segment > repl.last_segment:
            raise ValueError(f"替换 {k}: 区间 [{repl.first_segment}, "
                             f"{repl.last_segment}] 非法")
        if len(repl.visitations) != repl.last_segment - repl.first_segment + 1:
            raise ValueError(f"替换 {k}: visitation 数 {len(repl.visitations)} "
                             f"与区间长度不符")
        if k + 1 < len(replacements):
            if repl.last_segment >= replacements[k + 1].first_segment:
                raise ValueError(f"替换 {k} 与 {k + 1} 重叠或无序")


def compute_new_path_segments(
    start: np.ndarray,
    ptp: PointToPointPlanner,
    table: GoalApproachTable,
    solution: ATSolution,
    replacements: Sequence[Replacement],
    time_budget: Optional[float] = None,
) -> Optional[List[NewApproachAt]]:
    """在替换后的临时 visitation 序列上重规划受影响的连接

    每个位置的起点是新序列中前一个 visitation 的配置。
    任一连接失败则整个候选作废, 返回 None。
    """
    sequence = solution.visitations()
    for repl in replacements:
        for offset, v in enumerate(repl.visitations):
            sequence[repl.first_segment + offset] = v

    computed: List[NewApproachAt] = []
    for repl in replacements:
        for index in range(repl.first_segment, repl.last_segment + 1):
            from_state = start if index == 0 else table.config(sequence[index - 1])
            v = sequence[index]
            path = ptp.plan_to_state(from_state, table.config(v),
                                     time_budget=time_budget)
            if path is None:
                return None
            computed.append(NewApproachAt(index, GoalApproach(v, path)))
    return computed
