"""
multigoal/metrics.py - 巡游质量评价指标

- 总长度 / 每段长度
- 目标覆盖 (访问数 / 目标数)
- 平滑度 (相邻线段角度变化)
- 安全裕度 (沿路径采样到障碍物的最小 / 平均距离)
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Tuple

import numpy as np

from ptp.objective import segment_lengths
from .models import PlanResult

logger = logging.getLogger(__name__)


@dataclass
class TourMetrics:
    """巡游质量指标汇总

    Attributes:
        total_length: 所有路径段长度之和
        segment_lengths: 每段长度
        n_goals: 目标总数
        n_goals_visited: 访问到的目标数
        smoothness: 平均角度变化 (rad)
        max_curvature: 最大角度变化 (rad)
        min_clearance: 最小安全裕度
        avg_clearance: 平均安全裕度
        n_waypoints: 路径点总数
        computation_time: 规划耗时 (s)
    """
    total_length: float = 0.0
    segment_lengths: List[float] = field(default_factory=list)
    n_goals: int = 0
    n_goals_visited: int = 0
    smoothness: float = 0.0
    max_curvature: float = 0.0
    min_clearance: float = float('inf')
    avg_clearance: float = float('inf')
    n_waypoints: int = 0
    computation_time: float = 0.0

    @property
    def coverage(self) -> float:
        return self.n_goals_visited / self.n_goals if self.n_goals else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_length': self.total_length,
            'segment_lengths': list(self.segment_lengths),
            'n_goals': self.n_goals,
            'n_goals_visited': self.n_goals_visited,
            'coverage': self.coverage,
            'smoothness': self.smoothness,
            'max_curvature': self.max_curvature,
            'min_clearance': self.min_clearance,
            'avg_clearance': self.avg_clearance,
            'n_waypoints': self.n_waypoints,
            'computation_time': self.computation_time,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'TourMetrics':
        """从 to_dict() 的输出恢复 (忽略派生字段与未知键)"""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in names})

    def summary(self) -> str:
        lines = [
            "=" * 50,
            "巡游质量指标",
            "=" * 50,
            f"总长度:             {self.total_length:.4f}",
            f"目标覆盖:           {self.n_goals_visited}/{self.n_goals}",
            f"平滑度 (均值角变):  {self.smoothness:.4f} rad",
            f"最大曲率:           {self.max_curvature:.4f} rad",
            f"最小安全裕度:       {self.min_clearance:.6f}",
            f"平均安全裕度:       {self.avg_clearance:.6f}",
            f"路径点数:           {self.n_waypoints}",
            f"计算时间:           {self.computation_time:.3f} s",
            "=" * 50,
        ]
        return "\n".join(lines)


def compute_smoothness(path: List[np.ndarray]) -> Tuple[float, float]:
    """相邻线段角度变化的 (均值, 最大值), 单位 rad"""
    if len(path) < 3:
        return 0.0, 0.0

    angles = []
    for i in range(1, len(path) - 1):
        v1 = path[i] - path[i - 1]
        v2 = path[i + 1] - path[i]
        n1 = np.linalg.norm(v1)
        n2 = np.linalg.norm(v2)
        if n1 < 1e-10 or n2 < 1e-10:
            continue
        cos_angle = np.clip(np.dot(v1, v2) / (n1 * n2), -1.0, 1.0)
        angles.append(np.arccos(cos_angle))

    if not angles:
        return 0.0, 0.0
    return float(np.mean(angles)), float(np.max(angles))


def compute_clearance(
    path: List[np.ndarray],
    checker,
    n_samples_per_segment: int = 5,
) -> Tuple[float, float]:
    """沿路径插值采样, 返回 (最小, 平均) clearance"""
    if len(path) < 1:
        return float('inf'), float('inf')

    clearances: List[float] = []
    for i in range(len(path) - 1):
        for t in np.linspace(0, 1, n_samples_per_segment, endpoint=False):
            clearances.append(checker.clearance(path[i] + t * (path[i + 1] - path[i])))
    clearances.append(checker.clearance(path[-1]))
    return float(np.min(clearances)), float(np.mean(clearances))


def evaluate_tour(
    result: PlanResult,
    n_goals: int,
    checker=None,
    computation_time: float = 0.0,
) -> TourMetrics:
    """计算巡游的全部指标 (checker 为 None 时不计算 clearance)"""
    metrics = TourMetrics(n_goals=n_goals, computation_time=computation_time)
    if result.is_empty():
        return metrics

    metrics.segment_lengths = segment_lengths([seg.path for seg in result.segments])
    metrics.total_length = float(sum(metrics.segment_lengths))
    metrics.n_goals_visited = len(set(result.goals_visited()))

    flat = result.flatten()
    metrics.n_waypoints = len(flat)
    metrics.smoothness, metrics.max_curvature = compute_smoothness(flat)
    if checker is not None:
        metrics.min_clearance, metrics.avg_clearance = compute_clearance(flat, checker)
    return metrics
