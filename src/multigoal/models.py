"""
multigoal/models.py - 多目标规划数据模型

PathSegment   : 结束于某个目标的一段路径
PlanResult    : 策略对外的结果 (有序路径段 + 元数据), 支持 JSON 持久化
                和按 (段索引, 路径点索引) 的导航
WaypointIndex : PlanResult 中的路径点位置

approach table 相关:
Visitation      : (目标索引, approach 索引), 指向 GoalApproachTable 的条目
GoalApproach    : visitation + 到达该配置的路径
Replacement     : 替换 ATSolution 中 [first_segment, last_segment] 的 visitation 列表
NewApproachAt   : 某个位置上新规划好的 GoalApproach
GoalApproachTable: 每个目标的候选 approach 配置
ATSolution      : approach table 意义下的完整巡游
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Set

import numpy as np

from ptp.objective import CostObjective, compute_path_length
from utils.output import json_default

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# PlanResult
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class PathSegment:
    """结束于 goal_id 的路径段"""
    goal_id: int
    path: List[np.ndarray]

    @property
    def length(self) -> float:
        return compute_path_length(self.path)

    def start(self) -> np.ndarray:
        return self.path[0]

    def end(self) -> np.ndarray:
        return self.path[-1]


class WaypointIndex(NamedTuple):
    segment_index: int
    waypoint_index: int


@dataclass
class PlanResult:
    """多目标规划结果

    Attributes:
        segments: 有序路径段; 第 i 段的终点为第 i+1 段的起点
        metadata: 策略名称、阶段耗时等附加信息
        timestamp: 时间戳
    """
    segments: List[PathSegment] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now().strftime('%Y%m%d_%H%M%S'))

    def __len__(self) -> int:
        return len(self.segments)

    def is_empty(self) -> bool:
        return not self.segments

    def total_length(self) -> float:
        return sum(seg.length for seg in self.segments)

    def total_cost(self, objective: CostObjective) -> float:
        return sum(objective.path_cost(seg.path) for seg in self.segments)

    def goals_visited(self) -> List[int]:
        return [seg.goal_id for seg in self.segments]

    def flatten(self) -> List[np.ndarray]:
        """拼接所有路径段 (去掉段连接处的重复点)"""
        out: List[np.ndarray] = []
        for seg in self.segments:
            start = 1 if out and np.allclose(out[-1], seg.path[0]) else 0
            out.extend(seg.path[start:])
        return out

    def check_chained(self, tol: float = 1e-6) -> bool:
        """每段终点与下一段起点一致"""
        for prev, nxt in zip(self.segments, self.segments[1:]):
            if float(np.linalg.norm(prev.end() - nxt.start())) > tol:
                return False
        return True

    # ── 导航 ─────────────────────────────────────────────────

    def first_waypoint_index(self) -> WaypointIndex:
        return WaypointIndex(0, 0)

    def last_waypoint_index(self) -> WaypointIndex:
        return WaypointIndex(len(self.segments) - 1,
                             len(self.segments[-1].path) - 1)

    def next_waypoint_index(self, idx: WaypointIndex) -> Optional[WaypointIndex]:
        """下一个路径点; 已到末尾时返回 None"""
        if idx.waypoint_index < len(self.segments[idx.segment_index].path) - 1:
            return WaypointIndex(idx.segment_index, idx.waypoint_index + 1)
        if idx.segment_index + 1 < len(self.segments):
            return WaypointIndex(idx.segment_index + 1, 0)
        return None

    def prev_waypoint_index(self, idx: WaypointIndex) -> Optional[WaypointIndex]:
        if idx.waypoint_index > 0:
            return WaypointIndex(idx.segment_index, idx.waypoint_index - 1)
        if idx.segment_index > 0:
            seg = idx.segment_index - 1
            return WaypointIndex(seg, len(self.segments[seg].path) - 1)
        return None

    def waypoint(self, idx: WaypointIndex) -> np.ndarray:
        return self.segments[idx.segment_index].path[idx.waypoint_index]

    def is_at_target(self, idx: WaypointIndex) -> bool:
        """idx 是否为所在段的最后一个点 (即到达目标)"""
        return len(self.segments[idx.segment_index].path) == idx.waypoint_index + 1

    def iter_waypoints(self) -> Iterator[WaypointIndex]:
        if self.is_empty():
            return
        idx: Optional[WaypointIndex] = self.first_waypoint_index()
        while idx is not None:
            yield idx
            idx = self.next_waypoint_index(idx)

    def pop_first(self) -> np.ndarray:
        """移除并返回第一个路径点; 段为空时删除该段"""
        if self.is_empty() or not self.segments[0].path:
            raise IndexError("pop_first: 结果为空")
        q = self.segments[0].path.pop(0)
        if not self.segments[0].path:
            self.segments.pop(0)
        return q

    def empty(self) -> bool:
        return self.is_empty()

    # ── 序列化 ───────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segments": [
                {"goal_id": int(seg.goal_id),
                 "path": [np.asarray(q).tolist() for q in seg.path]}
                for seg in self.segments
            ],
            "n_segments": len(self.segments),
            "total_length": self.total_length(),
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlanResult':
        segments = [
            PathSegment(int(s["goal_id"]),
                        [np.array(q, dtype=np.float64) for q in s["path"]])
            for s in data.get("segments", [])
        ]
        result = cls(segments=segments, metadata=dict(data.get("metadata", {})))
        if "timestamp" in data:
            result.timestamp = data["timestamp"]
        return result

    def save(self, filepath: str | Path) -> str:
        """保存为 JSON 文件, 返回路径字符串"""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False,
                      default=json_default)
        return str(filepath)

    @classmethod
    def load(cls, filepath: str | Path) -> 'PlanResult':
        with open(Path(filepath), 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))


# ═══════════════════════════════════════════════════════════════════════════
# Approach table
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Visitation:
    target_idx: int
    approach_idx: int


@dataclass
class GoalApproach:
    visitation: Visitation
    approach_path: List[np.ndarray]


@dataclass
class Replacement:
    """用 visitations 替换 [first_segment, last_segment] (闭区间)"""
    first_segment: int
    last_segment: int
    visitations: List[Visitation]


@dataclass
class NewApproachAt:
    index: int
    approach: GoalApproach


class GoalApproachTable:
    """每个目标一行候选 approach 配置

    freeze() 之后不允许再剪枝, 保证 Visitation 中的索引始终有效。
    """

    def __init__(self, rows: Optional[Sequence[Sequence[np.ndarray]]] = None) -> None:
        self.rows: List[List[np.ndarray]] = [list(r) for r in (rows or [])]
        self._frozen = False

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, target_idx: int) -> List[np.ndarray]:
        return self.rows[target_idx]

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def replace_row(self, target_idx: int, row: Sequence[np.ndarray]) -> None:
        if self._frozen:
            raise RuntimeError("GoalApproachTable 已冻结, 不能修改")
        self.rows[target_idx] = list(row)

    def config(self, v: Visitation) -> np.ndarray:
        return self.rows[v.target_idx][v.approach_idx]

    def contains(self, v: Visitation) -> bool:
        return (0 <= v.target_idx < len(self.rows)
                and 0 <= v.approach_idx < len(self.rows[v.target_idx]))

    def row_sizes(self) -> List[int]:
        return [len(r) for r in self.rows]


class ATSolution:
    """approach table 意义下的巡游

    第 k 个 GoalApproach 的路径从第 k-1 个 visitation 的配置 (k=0 时为起点)
    出发, 结束于第 k 个 visitation 的配置。
    """

    def __init__(self, segments: Optional[List[GoalApproach]] = None) -> None:
        self.segments: List[GoalApproach] = list(segments or [])

    def __len__(self) -> int:
        return len(self.segments)

    def visitations(self) -> List[Visitation]:
        return [ga.visitation for ga in self.segments]

    def get_last_state(self) -> Optional[np.ndarray]:
        if not self.segments:
            return None
        return self.segments[-1].approach_path[-1]

    def total_cost(self, objective: CostObjective) -> float:
        return sum(objective.path_cost(ga.approach_path) for ga in self.segments)

    def check_valid(self, table: GoalApproachTable, start: np.ndarray,
                    tol: float = 1e-6) -> None:
        """检查巡游不变量, 违反时抛出 RuntimeError"""
        seen: Set[int] = set()
        prev = np.asarray(start)
        for k, ga in enumerate(self.segments):
            v = ga.visitation
            if not table.contains(v):
                raise RuntimeError(f"位置 {k}: visitation {v} 不在 approach table 中")
            if v.target_idx in seen:
                raise RuntimeError(f"位置 {k}: 目标 {v.target_idx} 重复访问")
            seen.add(v.target_idx)
            path = ga.approach_path
            if len(path) < 1:
                raise RuntimeError(f"位置 {k}: 路径为空")
            if float(np.linalg.norm(path[0] - prev)) > tol:
                raise RuntimeError(f"位置 {k}: 路径起点与上一段终点不连续")
            target = table.config(v)
            if float(np.linalg.norm(path[-1] - target)) > tol:
                raise RuntimeError(f"位置 {k}: 路径终点不是 approach 配置")
            prev = path[-1]

    def is_improvement(self, replacements: Sequence[NewApproachAt],
                       objective: CostObjective) -> bool:
        """替换后受影响路径段的总代价是否严格下降"""
        old_cost = sum(objective.path_cost(self.segments[r.index].approach_path)
                       for r in replacements)
        new_cost = sum(objective.path_cost(r.approach.approach_path)
                       for r in replacements)
        return new_cost < old_cost

    def apply_replacements(self, replacements: Sequence[NewApproachAt]) -> None:
        for r in replacements:
            self.segments[r.index] = r.approach

    def to_plan_result(self) -> PlanResult:
        return PlanResult(segments=[
            PathSegment(ga.visitation.target_idx, list(ga.approach_path))
            for ga in self.segments
        ])
