"""
workspace/models.py - 工作空间数据模型

定义工作空间 (Cartesian) 中的 AABB 障碍物。
"""

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np


def point_aabb_distance(
    point: np.ndarray,
    aabb_min: np.ndarray,
    aabb_max: np.ndarray,
) -> float:
    """计算点到 AABB 的最小距离 (0 表示在内部)"""
    ndim = min(len(point), len(aabb_min), len(aabb_max))
    clamped = np.clip(point[:ndim], aabb_min[:ndim], aabb_max[:ndim])
    return float(np.linalg.norm(point[:ndim] - clamped))


@dataclass
class Obstacle:
    """AABB 障碍物

    Attributes:
        min_point: AABB 最小角点 [x, y, z]
        max_point: AABB 最大角点 [x, y, z]
        name: 障碍物名称（可选）
    """
    min_point: np.ndarray
    max_point: np.ndarray
    name: str = ""

    def __post_init__(self) -> None:
        self.min_point = np.asarray(self.min_point, dtype=np.float64)
        self.max_point = np.asarray(self.max_point, dtype=np.float64)
        if self.min_point.shape != self.max_point.shape:
            raise ValueError("min_point 和 max_point 维度不匹配")
        if np.any(self.max_point < self.min_point):
            raise ValueError(f"障碍物 '{self.name}' 的 max_point 小于 min_point")

    @property
    def center(self) -> np.ndarray:
        """障碍物中心点"""
        return (self.min_point + self.max_point) / 2.0

    @property
    def size(self) -> np.ndarray:
        """各轴尺寸"""
        return self.max_point - self.min_point

    def corners(self) -> np.ndarray:
        """返回 8 个角点, shape (8, 3)"""
        lo, hi = self.min_point, self.max_point
        return np.array([
            [hi[0] if i & 1 else lo[0],
             hi[1] if i & 2 else lo[1],
             hi[2] if i & 4 else lo[2]]
            for i in range(8)
        ], dtype=np.float64)

    def contains_point(self, point: np.ndarray, margin: float = 0.0) -> bool:
        """检查点是否在 (外扩 margin 后的) 障碍物 AABB 内"""
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(p >= self.min_point - margin)
                    and np.all(p <= self.max_point + margin))

    def distance_to_point(self, point: np.ndarray) -> float:
        """点到障碍物表面的距离 (内部为 0)"""
        return point_aabb_distance(np.asarray(point, dtype=np.float64),
                                   self.min_point, self.max_point)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min': self.min_point.tolist(),
            'max': self.max_point.tolist(),
            'name': self.name,
        }
