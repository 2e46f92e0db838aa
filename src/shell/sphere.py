"""
shell/sphere.py - 球面 shell

最简单的 shell: 以包围所有障碍物的球面为路由层, 两点间沿大圆弧行走。
只有一个 "facet" (face_id 恒为 0)。
"""

import logging
from typing import List, Optional

import numpy as np

from .base import CollisionFreeShell, ShellBuilder, ShellPoint

logger = logging.getLogger(__name__)


class SphereShell(CollisionFreeShell):
    """球面 shell

    Args:
        center: 球心
        radius: 半径
        padding: 法向 padding
        max_step_angle: 大圆弧离散步长 (弧度)
    """

    def __init__(self, center: np.ndarray, radius: float, padding: float = 0.1,
                 max_step_angle: float = 0.1) -> None:
        if radius <= 0:
            raise ValueError(f"球半径必须为正, 得到 {radius}")
        self.center = np.asarray(center, dtype=np.float64)
        self.radius = float(radius)
        self.padding = float(padding)
        self.max_step_angle = float(max_step_angle)

    def _direction(self, point: np.ndarray) -> np.ndarray:
        d = np.asarray(point, dtype=np.float64) - self.center
        norm = float(np.linalg.norm(d))
        if norm < 1e-12:
            return np.array([0.0, 0.0, 1.0])
        return d / norm

    def project(self, point: np.ndarray, hint: Optional[int] = None) -> ShellPoint:
        return ShellPoint(0, self.center + self.radius * self._direction(point))

    def normal_at(self, sp: ShellPoint) -> np.ndarray:
        return self._direction(sp.position)

    def signed_distance(self, point: np.ndarray) -> float:
        return float(np.linalg.norm(np.asarray(point) - self.center)) - self.radius

    def gaussian_sample_near(self, sp: ShellPoint, rng: np.random.Generator,
                             stddev: float = 0.1) -> ShellPoint:
        return self.project(sp.position + rng.normal(0.0, stddev, size=3))

    def _angle(self, a: ShellPoint, b: ShellPoint) -> float:
        cos = float(self._direction(a.position) @ self._direction(b.position))
        return float(np.arccos(np.clip(cos, -1.0, 1.0)))

    def path_on_shell(self, a: ShellPoint, b: ShellPoint) -> List[ShellPoint]:
        u = self._direction(a.position)
        v = self._direction(b.position)
        angle = self._angle(a, b)
        if angle < 1e-12:
            return [a, b]

        w = v - (u @ v) * u
        if np.linalg.norm(w) < 1e-9:
            # 对径点: 任取一个垂直方向的大圆
            axis = np.zeros(3)
            axis[int(np.argmin(np.abs(u)))] = 1.0
            w = np.cross(u, axis)
        w = w / np.linalg.norm(w)

        n_steps = max(1, int(np.ceil(angle / self.max_step_angle)))
        ts = np.linspace(0.0, angle, n_steps + 1)
        path = [ShellPoint(0, self.center + self.radius * (np.cos(t) * u + np.sin(t) * w))
                for t in ts[1:-1]]
        return [a] + path + [b]

    def predict_path_length(self, a: ShellPoint, b: ShellPoint) -> float:
        return (self.radius + self.padding) * self._angle(a, b)


class PaddedSphereShellBuilder(ShellBuilder):
    """包围所有障碍物角点的球 (半径再加 margin)"""

    def __init__(self, padding: float = 0.1, margin: float = 0.1) -> None:
        self.padding = float(padding)
        self.margin = float(margin)

    def build_shell(self, scene) -> SphereShell:
        corners = scene.corner_points()
        if len(corners) == 0:
            raise ValueError("场景中没有障碍物, 无法构造球面 shell")
        lo, hi = scene.bounds()
        center = (lo + hi) / 2.0
        radius = float(np.max(np.linalg.norm(corners - center, axis=1))) + self.margin
        logger.info("球面 shell: center=%s, radius=%.3f", center, radius)
        return SphereShell(center, radius, padding=self.padding)

    def parameters(self) -> dict:
        return {"name": type(self).__name__, "padding": self.padding,
                "margin": self.margin}
