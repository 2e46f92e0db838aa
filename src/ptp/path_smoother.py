"""
ptp/path_smoother.py - 路径后处理

提供路径平滑和优化功能：
1. Shortcut 优化：随机选两点尝试直连，若无碰撞则移除中间点
2. 收敛式 shortcut：重复 shortcut 直到代价改进低于阈值
3. 移动平均平滑（碰撞时回退）
4. 等间距重采样
5. 去除连续重复点
"""

import logging
from typing import List, Optional

import numpy as np

from .objective import compute_path_length

logger = logging.getLogger(__name__)


def dedupe_consecutive(path: List[np.ndarray], tol: float = 1e-12) -> List[np.ndarray]:
    """去除相邻重复点 (保留首尾)"""
    if len(path) <= 1:
        return list(path)
    out = [path[0]]
    for q in path[1:]:
        if float(np.linalg.norm(q - out[-1])) > tol:
            out.append(q)
    if len(out) == 1:
        out.append(path[-1])
    return out


class PathSmoother:
    """路径后处理器

    Args:
        collision_checker: 碰撞检测器 (需提供 ``check_segment_collision``)
        segment_resolution: 线段碰撞检测分辨率

    Example:
        >>> smoother = PathSmoother(checker)
        >>> short = smoother.shortcut(path, max_iters=200)
        >>> resampled = smoother.resample(short, resolution=0.1)
    """

    def __init__(
        self,
        collision_checker,
        segment_resolution: float = 0.05,
    ) -> None:
        self.collision_checker = collision_checker
        self.segment_resolution = segment_resolution

    def shortcut(
        self,
        path: List[np.ndarray],
        max_iters: int = 100,
        rng: Optional[np.random.Generator] = None,
    ) -> List[np.ndarray]:
        """随机 shortcut 优化

        反复随机选两个非相邻路径点，若它们之间的直线段无碰撞，
        则移除中间所有点。首尾点保持不变。
        """
        if len(path) <= 2:
            return list(path)

        if rng is None:
            rng = np.random.default_rng()

        path = list(path)
        n_before = len(path)
        improved = 0

        for _ in range(max_iters):
            if len(path) <= 2:
                break

            i = int(rng.integers(0, len(path) - 2))
            j = int(rng.integers(i + 2, len(path)))

            if not self.collision_checker.check_segment_collision(
                path[i], path[j], self.segment_resolution
            ):
                path = path[:i + 1] + path[j:]
                improved += 1

        if improved > 0:
            logger.debug("Shortcut 优化: %d 次简化, 路径从 %d → %d 个点",
                         improved, n_before, len(path))
        return path

    def shortcut_until_converged(
        self,
        path: List[np.ndarray],
        rel_tol: float = 0.01,
        iters_per_round: int = 50,
        max_rounds: int = 20,
        rng: Optional[np.random.Generator] = None,
        deadline=None,
    ) -> List[np.ndarray]:
        """重复 shortcut, 直到一轮的相对长度改进小于 rel_tol

        Args:
            deadline: 可选 ``utils.timing.Deadline``, 过期即停止
        """
        if rng is None:
            rng = np.random.default_rng()
        cost = compute_path_length(path)
        for _ in range(max_rounds):
            if deadline is not None and deadline.expired():
                break
            new_path = self.shortcut(path, max_iters=iters_per_round, rng=rng)
            new_cost = compute_path_length(new_path)
            gain = cost - new_cost
            path, cost = new_path, new_cost
            if gain <= rel_tol * max(cost, 1e-12):
                break
        return path

    def resample(
        self,
        path: List[np.ndarray],
        resolution: float = 0.1,
    ) -> List[np.ndarray]:
        """等间距重采样

        在路径上以固定步长重新采样，使路径点间距均匀。
        """
        if len(path) <= 1:
            return list(path)

        resampled = [path[0].copy()]

        for i in range(1, len(path)):
            seg_vec = path[i] - path[i - 1]
            seg_len = float(np.linalg.norm(seg_vec))

            if seg_len < 1e-10:
                continue

            n_steps = max(1, int(np.ceil(seg_len / resolution)))
            for k in range(1, n_steps + 1):
                resampled.append(path[i - 1] + (k / n_steps) * seg_vec)

        return resampled

    def smooth_moving_average(
        self,
        path: List[np.ndarray],
        window: int = 3,
        n_iters: int = 5,
    ) -> List[np.ndarray]:
        """移动平均平滑

        保持首尾点不变，对中间点做平均。平均后的点及其与相邻点的
        线段若有碰撞则保留原点。
        """
        if len(path) <= 2:
            return list(path)

        path = [p.copy() for p in path]
        half_w = window // 2

        for _ in range(n_iters):
            changed = False
            for i in range(1, len(path) - 1):
                lo = max(0, i - half_w)
                hi = min(len(path), i + half_w + 1)
                avg = np.mean(path[lo:hi], axis=0)
                if np.allclose(avg, path[i]):
                    continue
                if (self.collision_checker.check_segment_collision(
                        path[i - 1], avg, self.segment_resolution)
                        or self.collision_checker.check_segment_collision(
                        avg, path[i + 1], self.segment_resolution)):
                    continue
                path[i] = avg
                changed = True
            if not changed:
                break

        return path
