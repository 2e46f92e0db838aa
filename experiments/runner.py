"""
experiments/runner.py - 多目标规划实验运行器

ExperimentRunner:  (scene × planner × seed × trial) 组合自动运行
TourTrial:         单次运行的巡游指标与失败信息
ExperimentResults: 全部运行记录 + 按 (scene, planner) 汇总

失败的规划 (空结果) 记录为零长度、零覆盖, 不中断实验。

用法:
    runner = ExperimentRunner(config)
    results = runner.run()
    results.planner_summary()
    results.summary_df()   # pandas DataFrame
    results.save("output/raw/multigoal.json")
"""

from __future__ import annotations

import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

import numpy as np

from multigoal.at2opt import AT2Opt, AT2OptConfig
from multigoal.base import MultiGoalPlanner
from multigoal.greedy import GreedyUnionPlanner
from multigoal.metrics import TourMetrics, evaluate_tour
from multigoal.shell_planner import ShellPathPlanner, ShellPlannerConfig
from ptp.base import PTPConfig
from ptp.rrt import RRTConnectPlanner
from shell.convex_hull import ConvexHullShellBuilder
from shell.sphere import PaddedSphereShellBuilder
from utils.output import save_json
from utils.seed import derive_seed
from workspace.collision import CollisionChecker

from experiments.scenes import build_orchard_scene

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Data classes
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class TourTrial:
    """单次 (scene, planner, seed, trial) 运行的巡游记录

    success=False 表示策略返回了空巡游; 此时 metrics 为零长度、零覆盖。
    """
    scene_name: str
    planner_name: str
    seed: int
    trial: int
    metrics: TourMetrics
    success: bool = True
    chained: bool = True
    n_collision_checks: int = 0
    wall_clock: float = 0.0
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def coverage(self) -> float:
        return self.metrics.coverage

    def to_dict(self) -> dict:
        return {
            "scene": self.scene_name,
            "planner": self.planner_name,
            "seed": self.seed,
            "trial": self.trial,
            "success": self.success,
            "chained": self.chained,
            "n_collision_checks": self.n_collision_checks,
            "wall_clock": self.wall_clock,
            **self.metrics.to_dict(),
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "TourTrial":
        return cls(
            scene_name=d["scene"],
            planner_name=d["planner"],
            seed=d["seed"],
            trial=d["trial"],
            metrics=TourMetrics.from_dict(d),
            success=d.get("success", True),
            chained=d.get("chained", True),
            n_collision_checks=d.get("n_collision_checks", 0),
            wall_clock=d.get("wall_clock", 0.0),
            parameters=d.get("parameters", {}),
        )


@dataclass
class ExperimentResults:
    """全部巡游记录 + 按 (scene, planner) 的成功率 / 覆盖率 / 长度汇总."""
    experiment_name: str
    trials: List[TourTrial] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add(self, trial: TourTrial) -> None:
        self.trials.append(trial)

    def to_list(self) -> List[dict]:
        return [t.to_dict() for t in self.trials]

    def failures(self) -> List[TourTrial]:
        """返回空巡游的运行"""
        return [t for t in self.trials if not t.success]

    def save(self, path: str | Path) -> str:
        data = {
            "experiment": self.experiment_name,
            "metadata": self.metadata,
            "n_trials": len(self.trials),
            "n_failures": len(self.failures()),
            "results": self.to_list(),
        }
        out = save_json(data, path)
        logger.info("保存 %d 次运行 (%d 次失败) → %s",
                    len(self.trials), data["n_failures"], out)
        return out

    @classmethod
    def load(cls, path: str | Path) -> "ExperimentResults":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls(
            experiment_name=data["experiment"],
            trials=[TourTrial.from_dict(r) for r in data["results"]],
            metadata=data.get("metadata", {}),
        )

    def summary_df(self):
        """每次运行一行的 pandas DataFrame (不含逐段长度和参数, 需要 pandas)."""
        import pandas as pd
        rows = [{k: v for k, v in row.items()
                 if k not in ("segment_lengths", "parameters")}
                for row in self.to_list()]
        return pd.DataFrame(rows)

    def planner_summary(self) -> Dict[Tuple[str, str], Dict[str, float]]:
        """按 (scene, planner) 汇总

        成功率与平均覆盖率计入所有运行; 长度统计只用成功的运行,
        没有成功运行时为 nan。
        """
        groups: Dict[Tuple[str, str], List[TourTrial]] = defaultdict(list)
        for t in self.trials:
            groups[(t.scene_name, t.planner_name)].append(t)

        summary = {}
        for key, trials in groups.items():
            ok = [t for t in trials if t.success]
            lengths = np.array([t.metrics.total_length for t in ok],
                               dtype=np.float64)
            stats = {
                "n_trials": len(trials),
                "n_failures": len(trials) - len(ok),
                "success_rate": len(ok) / len(trials),
                "coverage_mean": float(np.mean([t.coverage for t in trials])),
                "time_mean": float(np.mean([t.wall_clock for t in trials])),
            }
            for name, fn in (("mean", np.mean), ("median", np.median),
                             ("min", np.min), ("max", np.max)):
                stats[f"length_{name}"] = float(fn(lengths)) if len(ok) else float("nan")
            summary[key] = stats
        return summary



# ═══════════════════════════════════════════════════════════════════════════
# Planner factory
# ═══════════════════════════════════════════════════════════════════════════

def create_planner(cfg: dict, scene, robot, seed: int = 0) -> MultiGoalPlanner:
    """从配置字典创建多目标策略实例."""
    ptype = cfg["type"]

    if ptype == "shell":
        shell_type = cfg.get("shell", "convex_hull")
        if shell_type == "convex_hull":
            builder = ConvexHullShellBuilder(margin=cfg.get("margin", 0.1),
                                             padding=cfg.get("padding", 0.1))
        elif shell_type == "sphere":
            builder = PaddedSphereShellBuilder(padding=cfg.get("padding", 0.1),
                                               margin=cfg.get("margin", 0.1))
        else:
            raise ValueError(f"Unknown shell type: {shell_type}")
        config = ShellPlannerConfig.from_dict({**cfg, "seed": seed})
        return ShellPathPlanner(builder, scene, robot, config)
    elif ptype == "at2opt":
        return AT2Opt(AT2OptConfig.from_dict({**cfg, "seed": seed}))
    elif ptype == "greedy":
        return GreedyUnionPlanner()
    else:
        raise ValueError(f"Unknown planner type: {ptype}")


# ═══════════════════════════════════════════════════════════════════════════
# ExperimentRunner
# ═══════════════════════════════════════════════════════════════════════════

class ExperimentRunner:
    """(scene × planner × seed × trial) 全组合实验运行器."""

    def __init__(self, config: dict):
        """
        config 结构:
        {
            "name": "multigoal_comparison",
            "scenes": [...],          # scene configs
            "planners": [...],        # planner configs
            "ptp": {...},             # PTPConfig 字段
            "seeds": [1, 2, ...],     # random seeds
            "n_trials": 1,            # trials per seed
        }
        """
        self.config = config
        self.name = config.get("name", "unnamed")
        self.scene_cfgs = config["scenes"]
        self.planner_cfgs = config["planners"]
        self.ptp_cfg = config.get("ptp", {})
        self.seeds = config.get("seeds", list(range(1, 11)))
        self.n_trials = config.get("n_trials", 1)
        self._results = ExperimentResults(experiment_name=self.name)

    def run_trial(self, scene_cfg: dict, planner_cfg: dict, seed: int,
                  trial: int) -> TourTrial:
        robot, scene, goals, q_start = build_orchard_scene(scene_cfg)
        checker = CollisionChecker(robot, scene)
        ptp = RRTConnectPlanner(
            checker,
            PTPConfig.from_dict({**self.ptp_cfg,
                                 "seed": derive_seed(seed, trial, 1)}))
        planner = create_planner(planner_cfg, scene, robot,
                                 seed=derive_seed(seed, trial, 2))

        t0 = time.perf_counter()
        result = planner.plan(goals, q_start, ptp)
        wall = time.perf_counter() - t0

        if result.is_empty():
            logger.warning("%s / %s / seed=%d: 规划失败 (空结果)",
                           scene_cfg.get("name", "scene"), planner.name, seed)
        return TourTrial(
            scene_name=scene_cfg.get("name", "scene"),
            planner_name=planner_cfg.get("name", planner.name),
            seed=seed,
            trial=trial,
            metrics=evaluate_tour(result, len(goals), checker, wall),
            success=not result.is_empty(),
            chained=result.check_chained(),
            n_collision_checks=checker.n_collision_checks,
            wall_clock=wall,
            parameters=planner.flat_parameters(),
        )

    def run(self, progress_callback=None) -> ExperimentResults:
        """运行全部组合."""
        total = (len(self.scene_cfgs) * len(self.planner_cfgs)
                 * len(self.seeds) * self.n_trials)
        done = 0

        for scene_cfg in self.scene_cfgs:
            for planner_cfg in self.planner_cfgs:
                for seed in self.seeds:
                    for trial in range(self.n_trials):
                        trial_result = self.run_trial(scene_cfg, planner_cfg,
                                                      seed, trial)
                        self._results.add(trial_result)

                        done += 1
                        if progress_callback:
                            progress_callback(done, total, trial_result)
                        else:
                            logger.info("[%d/%d] %s / %s / seed=%d / t=%d "
                                        "→ %d/%d goals, length %.3f (%.3fs)",
                                        done, total, trial_result.scene_name,
                                        trial_result.planner_name, seed, trial,
                                        trial_result.metrics.n_goals_visited,
                                        trial_result.metrics.n_goals,
                                        trial_result.metrics.total_length,
                                        trial_result.wall_clock)

        self._results.metadata = {
            "config": self.config,
            "total_trials": total,
            "timestamp": time.strftime("%Y%m%d_%H%M%S"),
        }
        return self._results
