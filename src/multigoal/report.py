"""
multigoal/report.py - 多目标规划报告生成器

为一次多目标规划生成 Markdown 报告: 场景、策略参数、巡游结果、
质量指标和阶段耗时。

用法:
    from multigoal.report import TourReportGenerator
    md = TourReportGenerator().generate(
        planner=planner, scene=scene, goals=goals,
        q_start=q_start, result=result, metrics=metrics,
    )
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np

from utils.config import flatten_parameters
from .metrics import TourMetrics
from .models import PlanResult

logger = logging.getLogger(__name__)


class TourReportGenerator:
    """多目标巡游 Markdown 报告生成器"""

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def generate(
        self,
        planner,
        scene,
        goals: Sequence,
        q_start: np.ndarray,
        result: PlanResult,
        metrics: Optional[TourMetrics] = None,
        rng_seed: Optional[int] = None,
        saved_files: Optional[List[str]] = None,
        extra_sections: Optional[Dict[str, str]] = None,
    ) -> str:
        """生成完整 Markdown 报告

        Args:
            planner: 多目标策略 (提供 name / parameters)
            scene: 障碍物场景
            goals: 目标区域列表
            q_start: 起始配置
            result: 规划结果
            metrics: 巡游指标 (可选)
            rng_seed: 随机种子
            saved_files: 输出产物文件路径列表
            extra_sections: 额外的自定义区段 {标题: 内容}

        Returns:
            Markdown 文本
        """
        L: List[str] = []

        self._sec_header(L, planner, rng_seed)
        self._sec_scene(L, scene, goals, q_start)
        self._sec_parameters(L, planner)
        self._sec_result(L, result, len(goals))
        if metrics is not None and not result.is_empty():
            self._sec_metrics(L, metrics)
        timing = result.metadata.get("timing")
        if timing:
            self._sec_timing(L, timing)
        if saved_files:
            L.append("## 输出文件")
            L.append("")
            for f in saved_files:
                L.append(f"- `{f}`")
            L.append("")
        if extra_sections:
            for title, body in extra_sections.items():
                L.append(f"## {title}")
                L.append("")
                L.append(body)
                L.append("")

        return "\n".join(L)

    # ------------------------------------------------------------------
    # 各区段
    # ------------------------------------------------------------------

    @staticmethod
    def _sec_header(L: List[str], planner, seed: Optional[int]) -> None:
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        L.append("# 多目标巡游规划报告")
        L.append("")
        L.append(f"> 生成时间: {ts}  ")
        if seed is not None:
            L.append(f"> 随机种子: {seed}  ")
        L.append(f"> 策略: {planner.name}")
        L.append("")

    @staticmethod
    def _sec_scene(L: List[str], scene, goals: Sequence, q_start: np.ndarray) -> None:
        L.append("## 1. 场景")
        L.append("")
        L.append(f"- 障碍物数: {scene.n_obstacles}")
        L.append(f"- 目标数: {len(goals)}")
        L.append(f"- 起始配置: `{np.round(np.asarray(q_start), 4).tolist()}`")
        L.append("")
        if scene.n_obstacles:
            L.append("| 障碍物 | min | max |")
            L.append("|--------|-----|-----|")
            for obs in scene.get_obstacles():
                L.append(f"| {obs.name} | {np.round(obs.min_point, 3).tolist()} "
                         f"| {np.round(obs.max_point, 3).tolist()} |")
            L.append("")

    @staticmethod
    def _sec_parameters(L: List[str], planner) -> None:
        L.append("## 2. 策略参数")
        L.append("")
        L.append("| 参数 | 值 |")
        L.append("|------|----|")
        for key, value in flatten_parameters(planner.parameters()).items():
            L.append(f"| {key} | {value} |")
        L.append("")

    @staticmethod
    def _sec_result(L: List[str], result: PlanResult, n_goals: int) -> None:
        L.append("## 3. 规划结果")
        L.append("")
        if result.is_empty():
            L.append("**规划失败: 没有可达目标 (空结果)**")
            L.append("")
            return
        L.append(f"- 访问目标: {len(result)}/{n_goals}")
        L.append(f"- 总长度: {result.total_length():.4f}")
        L.append(f"- 段连续: {'是' if result.check_chained() else '否'}")
        L.append("")
        L.append("| # | 目标 | 路径点数 | 长度 |")
        L.append("|---|------|----------|------|")
        for k, seg in enumerate(result.segments):
            L.append(f"| {k} | {seg.goal_id} | {len(seg.path)} | {seg.length:.4f} |")
        L.append("")

    @staticmethod
    def _sec_metrics(L: List[str], m: TourMetrics) -> None:
        L.append("## 4. 巡游质量")
        L.append("")
        L.append("| 指标 | 值 |")
        L.append("|------|----|")
        L.append(f"| 总长度 | {m.total_length:.4f} |")
        L.append(f"| 覆盖率 | {m.coverage:.2%} |")
        L.append(f"| 平滑度 (均值角变) | {m.smoothness:.4f} rad |")
        L.append(f"| 最大曲率 | {m.max_curvature:.4f} rad |")
        L.append(f"| 最小安全裕度 | {m.min_clearance:.6f} |")
        L.append(f"| 平均安全裕度 | {m.avg_clearance:.6f} |")
        L.append(f"| 路径点数 | {m.n_waypoints} |")
        L.append(f"| 计算时间 | {m.computation_time:.3f} s |")
        L.append("")

    @staticmethod
    def _sec_timing(L: List[str], timing: Dict[str, float]) -> None:
        L.append("## 5. 阶段耗时")
        L.append("")
        L.append("| 阶段 | 耗时 (ms) |")
        L.append("|------|-----------|")
        for name, sec in timing.items():
            L.append(f"| {name} | {sec * 1000.0:.1f} |")
        L.append("")
