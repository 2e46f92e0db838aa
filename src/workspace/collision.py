"""
workspace/collision.py - 碰撞检测模块

提供末端执行器与 AABB 障碍物之间的碰撞检测：
- 单点碰撞检测：FK → 末端位置 vs 各 obstacle AABB（含安全裕度）
- 批量碰撞检测：一次性向量化检查多个配置
- 线段碰撞检测：等间隔采样逐点检查
- 安全裕度 (clearance)：末端到最近障碍物的距离

超出关节限制的配置一律视为碰撞（无效）。
"""

import logging
from typing import Optional

import numpy as np

from .models import point_aabb_distance
from .robot import PointRobot
from .scene import Scene

logger = logging.getLogger(__name__)


class CollisionChecker:
    """碰撞检测器

    Args:
        robot: 末端执行器模型
        scene: 障碍物场景
        safety_margin: 安全裕度（对 obstacle AABB 向外扩展）

    Example:
        >>> checker = CollisionChecker(robot, scene)
        >>> is_collide = checker.check_config_collision(q)
        >>> seg_collide = checker.check_segment_collision(q0, q1, 0.05)
    """

    def __init__(
        self,
        robot: PointRobot,
        scene: Scene,
        safety_margin: float = 0.0,
    ) -> None:
        self.robot = robot
        self.scene = scene
        self.safety_margin = float(safety_margin)
        self._n_collision_checks = 0

    @property
    def n_collision_checks(self) -> int:
        """累计碰撞检测调用次数"""
        return self._n_collision_checks

    def reset_counter(self) -> None:
        self._n_collision_checks = 0

    def _obstacle_bounds(self):
        obstacles = self.scene.get_obstacles()
        if not obstacles:
            return None, None
        lo = np.array([o.min_point for o in obstacles]) - self.safety_margin
        hi = np.array([o.max_point for o in obstacles]) + self.safety_margin
        return lo, hi

    def _positions(self, configs: np.ndarray) -> np.ndarray:
        return np.array([self.robot.end_effector_position(q) for q in configs],
                        dtype=np.float64).reshape(len(configs), 3)

    def check_config_collision(self, joint_values: np.ndarray) -> bool:
        """单配置碰撞检测

        Returns:
            True 表示碰撞（或超出关节限制）
        """
        q = np.asarray(joint_values, dtype=np.float64)
        return bool(self.check_config_collision_batch(q[None, :])[0])

    def check_config_collision_batch(self, configs: np.ndarray) -> np.ndarray:
        """批量配置碰撞检测

        Args:
            configs: (N, n_joints) 配置数组

        Returns:
            (N,) bool 数组, True 表示碰撞
        """
        configs = np.asarray(configs, dtype=np.float64)
        if configs.ndim != 2:
            raise ValueError("configs 必须是 2D 数组")
        n = configs.shape[0]
        self._n_collision_checks += n
        if n == 0:
            return np.zeros(0, dtype=bool)

        out_of_limits = np.any(
            (configs < self.robot.lower) | (configs > self.robot.upper), axis=1)

        lo, hi = self._obstacle_bounds()
        if lo is None:
            return out_of_limits

        pos = self._positions(configs)
        # (N, M, 3) 逐障碍物包含判断
        inside = np.all((pos[:, None, :] >= lo[None, :, :])
                        & (pos[:, None, :] <= hi[None, :, :]), axis=2)
        return out_of_limits | np.any(inside, axis=1)

    def check_segment_collision(
        self,
        q_start: np.ndarray,
        q_end: np.ndarray,
        resolution: Optional[float] = None,
    ) -> bool:
        """线段碰撞检测（等间隔采样）

        Args:
            q_start: 起始配置
            q_end: 终止配置
            resolution: 采样间隔 (默认 0.05)

        Returns:
            True 表示线段上有碰撞
        """
        if resolution is None:
            resolution = 0.05
        q_start = np.asarray(q_start, dtype=np.float64)
        q_end = np.asarray(q_end, dtype=np.float64)
        dist = float(np.linalg.norm(q_end - q_start))
        n_steps = max(1, int(np.ceil(dist / resolution)))
        ts = np.linspace(0.0, 1.0, n_steps + 1)
        samples = q_start[None, :] + ts[:, None] * (q_end - q_start)[None, :]
        return bool(np.any(self.check_config_collision_batch(samples)))

    def clearance(self, joint_values: np.ndarray) -> float:
        """末端到最近障碍物 (外扩后) 的距离; 无障碍物时为 inf"""
        obstacles = self.scene.get_obstacles()
        if not obstacles:
            return float('inf')
        p = self.robot.end_effector_position(joint_values)
        return min(
            point_aabb_distance(p, o.min_point - self.safety_margin,
                                o.max_point + self.safety_margin)
            for o in obstacles
        )
