"""
ptp/rrt.py - RRT-Connect 点到点规划器 (纯 Python)

- _NodePool: numpy-backed RRT 节点存储
- plan_rrt_connect: 双向 RRT, 返回结果字典
- RRTConnectPlanner: PointToPointPlanner 实现

plan_to_goal 流程:
1. 从目标区域抽取若干有效样本, 按到起点的距离排序
2. (可选) lucky shot: 直线连到最近样本
3. 依次对样本运行 RRT-Connect, 平分剩余时间预算
4. shortcut 后处理 (可选按代价收敛重复)
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from utils.seed import make_rng
from utils.timing import Deadline
from workspace.collision import CollisionChecker
from .base import Path, PointToPointPlanner, PTPConfig
from .objective import CostObjective, compute_path_length
from .path_smoother import PathSmoother

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# _NodePool - RRT 节点存储
# ═══════════════════════════════════════════════════════════════════════════

class _NodePool:
    """用 numpy 数组存储 RRT 节点, 避免 Python 对象开销."""
    __slots__ = ('configs', 'parents', 'n', 'cap', 'ndim')

    def __init__(self, ndim: int, cap: int = 1024):
        self.ndim = ndim
        self.cap = cap
        self.configs = np.empty((cap, ndim), dtype=np.float64)
        self.parents = np.full(cap, -1, dtype=np.int32)
        self.n = 0

    def add(self, config: np.ndarray, parent: int) -> int:
        if self.n >= self.cap:
            self.cap *= 2
            new_c = np.empty((self.cap, self.ndim), dtype=np.float64)
            new_c[:self.n] = self.configs[:self.n]
            self.configs = new_c
            new_p = np.full(self.cap, -1, dtype=np.int32)
            new_p[:self.n] = self.parents[:self.n]
            self.parents = new_p
        idx = self.n
        self.configs[idx] = config
        self.parents[idx] = parent
        self.n += 1
        return idx

    def nearest(self, config: np.ndarray) -> int:
        diffs = self.configs[:self.n] - config
        return int(np.argmin(np.sum(diffs * diffs, axis=1)))

    def extract_path(self, idx: int) -> List[np.ndarray]:
        """根 → idx 的路径"""
        path = []
        while idx >= 0:
            path.append(self.configs[idx].copy())
            idx = int(self.parents[idx])
        path.reverse()
        return path


def _steer(q_from: np.ndarray, q_to: np.ndarray,
           step_size: float) -> np.ndarray:
    diff = q_to - q_from
    dist = np.linalg.norm(diff)
    if dist <= step_size:
        return q_to.copy()
    return q_from + (step_size / dist) * diff


# ═══════════════════════════════════════════════════════════════════════════
# RRT-Connect (bidirectional)
# ═══════════════════════════════════════════════════════════════════════════

def plan_rrt_connect(q_start, q_goal, joint_limits, checker, *,
                     timeout=1.0, step_size=0.3, resolution=0.05,
                     rng=None) -> Dict:
    """双向 RRT-Connect

    Returns:
        dict(success, plan_time_s, path_length, n_nodes, waypoints)
    """
    ndim = len(q_start)
    lows = np.array([lo for lo, _ in joint_limits], dtype=np.float64)
    highs = np.array([hi for _, hi in joint_limits], dtype=np.float64)
    rng = make_rng(rng)

    tree_a, tree_b = _NodePool(ndim), _NodePool(ndim)
    tree_a.add(q_start, -1)
    tree_b.add(q_goal, -1)

    t0 = time.perf_counter()
    swapped = False

    def _extend(tree, q_target):
        idx_near = tree.nearest(q_target)
        q_near = tree.configs[idx_near]
        q_new = _steer(q_near, q_target, step_size)
        if checker.check_segment_collision(q_near, q_new, resolution):
            return None, None
        return tree.add(q_new, idx_near), q_new

    def _connect(tree, q_target):
        while True:
            idx, q_new = _extend(tree, q_target)
            if idx is None:
                return None
            if np.linalg.norm(q_new - q_target) < 1e-9:
                return idx

    while time.perf_counter() - t0 < timeout:
        q_rand = rng.uniform(lows, highs)
        idx_a, q_new_a = _extend(tree_a, q_rand)
        if idx_a is not None:
            idx_b = _connect(tree_b, q_new_a)
            if idx_b is not None:
                path_a = tree_a.extract_path(idx_a)
                path_b = tree_b.extract_path(idx_b)
                path_b.reverse()
                if swapped:
                    path_a, path_b = path_b, path_a
                    path_a.reverse()
                    path_b.reverse()
                full = path_a + path_b[1:]
                dt = time.perf_counter() - t0
                return dict(success=True, plan_time_s=dt,
                            path_length=compute_path_length(full),
                            n_nodes=tree_a.n + tree_b.n,
                            waypoints=full)
        tree_a, tree_b = tree_b, tree_a
        swapped = not swapped

    dt = time.perf_counter() - t0
    return dict(success=False, plan_time_s=dt, path_length=float("nan"),
                n_nodes=tree_a.n + tree_b.n, waypoints=[])


# ═══════════════════════════════════════════════════════════════════════════
# RRTConnectPlanner
# ═══════════════════════════════════════════════════════════════════════════

class RRTConnectPlanner(PointToPointPlanner):
    """基于 RRT-Connect 的点到点规划器

    Args:
        checker: 碰撞检测器 (其 robot.joint_limits 作为采样范围)
        config: 规划参数
        objective: 代价目标 (默认路径长度)

    Example:
        >>> ptp = RRTConnectPlanner(checker, PTPConfig(time_per_goal=0.5, seed=1))
        >>> path = ptp.plan_to_goal(q_start, goal)
    """

    def __init__(
        self,
        checker: CollisionChecker,
        config: Optional[PTPConfig] = None,
        objective: Optional[CostObjective] = None,
    ) -> None:
        super().__init__(objective)
        self.checker = checker
        self.config = config or PTPConfig()
        self.rng = make_rng(self.config.seed)
        self.smoother = PathSmoother(checker, self.config.segment_resolution)
        self.stats: Dict[str, int] = {
            "calls": 0, "failures": 0, "lucky_shots": 0,
        }

    @property
    def name(self) -> str:
        return "RRTConnect"

    @property
    def joint_limits(self) -> List[Tuple[float, float]]:
        return self.checker.robot.joint_limits

    # ── 有效性 ────────────────────────────────────────────────

    def is_valid(self, q: np.ndarray) -> bool:
        return not self.checker.check_config_collision(q)

    def check_motion(self, q_from: np.ndarray, q_to: np.ndarray) -> bool:
        return not self.checker.check_segment_collision(
            q_from, q_to, self.config.segment_resolution)

    # ── 规划入口 ──────────────────────────────────────────────

    def plan_to_goal(self, start: np.ndarray, goal,
                     time_budget: Optional[float] = None) -> Optional[Path]:
        self.stats["calls"] += 1
        deadline = self._deadline(time_budget)
        start = np.asarray(start, dtype=np.float64)

        if not self.is_valid(start):
            logger.debug("起始配置无效, 跳过规划")
            return self._fail()

        targets = self._valid_goal_samples(start, goal, deadline)
        if not targets:
            logger.debug("目标区域没有抽到有效样本")
            return self._fail()

        if self.config.try_lucky_shots:
            lucky = self.attempt_lucky_shot(start, targets[0])
            if lucky is not None:
                return lucky

        for k, target in enumerate(targets):
            if deadline.expired():
                break
            budget = deadline.remaining() / (len(targets) - k)
            res = plan_rrt_connect(
                start, target, self.joint_limits, self.checker,
                timeout=budget, step_size=self.config.step_size,
                resolution=self.config.segment_resolution, rng=self.rng)
            if res["success"]:
                logger.debug("RRT-Connect 成功: %.3fs, %d 节点",
                             res["plan_time_s"], res["n_nodes"])
                return self._post_process(res["waypoints"], deadline)

        return self._fail()

    def plan_to_state(self, start: np.ndarray, end: np.ndarray,
                      time_budget: Optional[float] = None) -> Optional[Path]:
        self.stats["calls"] += 1
        deadline = self._deadline(time_budget)
        start = np.asarray(start, dtype=np.float64)
        end = np.asarray(end, dtype=np.float64)

        if not (self.is_valid(start) and self.is_valid(end)):
            return self._fail()

        if self.config.try_lucky_shots:
            lucky = self.attempt_lucky_shot(start, end)
            if lucky is not None:
                return lucky

        res = plan_rrt_connect(
            start, end, self.joint_limits, self.checker,
            timeout=deadline.remaining(), step_size=self.config.step_size,
            resolution=self.config.segment_resolution, rng=self.rng)
        if not res["success"]:
            return self._fail()
        return self._post_process(res["waypoints"], deadline)

    def attempt_lucky_shot(self, start: np.ndarray,
                           target: np.ndarray) -> Optional[Path]:
        """尝试直线运动 start → target"""
        if self.check_motion(start, target):
            self.stats["lucky_shots"] += 1
            return [start.copy(), np.asarray(target, dtype=np.float64).copy()]
        return None

    def optimize(self, path: Path) -> Path:
        return self._post_process(list(path), self._deadline(None))

    # ── 内部 ──────────────────────────────────────────────────

    def _deadline(self, time_budget: Optional[float]) -> Deadline:
        return Deadline(self.config.time_per_goal if time_budget is None
                        else time_budget)

    def _valid_goal_samples(self, start: np.ndarray, goal,
                            deadline: Deadline) -> List[np.ndarray]:
        samples: List[np.ndarray] = []
        for _ in range(goal.max_sample_count()):
            if len(samples) >= self.config.goal_samples or deadline.expired():
                break
            q = goal.sample(self.rng)
            if self.is_valid(q):
                samples.append(q)
        samples.sort(key=lambda q: float(np.linalg.norm(q - start)))
        return samples

    def _post_process(self, path: Path, deadline: Deadline) -> Path:
        if not self.config.optimize_paths or len(path) <= 2:
            return path
        if self.config.use_cost_convergence:
            return self.smoother.shortcut_until_converged(
                path, rel_tol=self.config.convergence_rel_tol,
                iters_per_round=self.config.shortcut_iters,
                rng=self.rng, deadline=deadline)
        return self.smoother.shortcut(
            path, max_iters=self.config.shortcut_iters, rng=self.rng)

    def _fail(self) -> None:
        self.stats["failures"] += 1
        return None

    def parameters(self) -> dict:
        params = super().parameters()
        params.update(self.config.to_dict())
        return params
