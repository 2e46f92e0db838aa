"""
experiments/run_multigoal.py - 多目标规划对比实验

ShellPathPlanner (凸包 / 球面) vs AT2Opt vs GreedyUnion

场景: 果园 {单树, 密树, 树行}
指标: 目标覆盖, 巡游长度, 平滑度, 安全裕度, 规划时间
统计: N seeds × M trials

用法:
    python -m experiments.run_multigoal [--quick] [--report]
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# ensure src/ on path
_ROOT = Path(__file__).resolve().parents[1]
_SRC = _ROOT / "src"
for p in (_ROOT, _SRC):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from experiments.runner import ExperimentRunner, create_planner
from experiments.scenes import build_orchard_scene, load_planners, load_scenes
from multigoal.metrics import evaluate_tour
from multigoal.report import TourReportGenerator
from ptp.base import PTPConfig
from ptp.rrt import RRTConnectPlanner
from utils.output import make_output_dir, save_json
from workspace.collision import CollisionChecker

logger = logging.getLogger(__name__)

OUTPUT_DIR = _ROOT / "experiments" / "output" / "raw"


def build_config(quick: bool = False) -> dict:
    """构建实验配置."""
    planners = load_planners()
    if quick:
        scenes = load_scenes(["orchard_single_tree"])
        seeds = [1, 2]
        n_trials = 1
        for p in planners:
            if p["type"] == "at2opt":
                p["time_budget"] = 2.0
        ptp = {"time_per_goal": 0.5}
    else:
        scenes = load_scenes()
        seeds = list(range(1, 11))
        n_trials = 2
        ptp = {"time_per_goal": 1.0}

    return {
        "name": "multigoal_comparison",
        "scenes": scenes,
        "planners": planners,
        "ptp": ptp,
        "seeds": seeds,
        "n_trials": n_trials,
    }


def write_reports(config: dict, seed: int = 1) -> Path:
    """对第一个场景的每个策略规划一次, 写 Markdown 报告和结果 JSON."""
    out_dir = make_output_dir("reports", config["name"])
    scene_cfg = config["scenes"][0]
    gen = TourReportGenerator()

    for planner_cfg in config["planners"]:
        robot, scene, goals, q_start = build_orchard_scene(scene_cfg)
        checker = CollisionChecker(robot, scene)
        ptp = RRTConnectPlanner(checker, PTPConfig.from_dict(
            {**config["ptp"], "seed": seed}))
        planner = create_planner(planner_cfg, scene, robot, seed=seed)

        t0 = time.perf_counter()
        result = planner.plan(goals, q_start, ptp)
        wall = time.perf_counter() - t0

        name = planner_cfg.get("name", planner.name)
        metrics = evaluate_tour(result, len(goals), checker, wall)
        saved = [
            result.save(out_dir / f"{name}_result.json"),
            save_json(metrics.to_dict(), out_dir / f"{name}_metrics.json"),
        ]
        md = gen.generate(
            planner=planner, scene=scene, goals=goals, q_start=q_start,
            result=result, metrics=metrics, rng_seed=seed, saved_files=saved,
        )
        with open(out_dir / f"{name}_report.md", "w", encoding="utf-8") as f:
            f.write(md)

    logger.info("报告已写入 %s", out_dir)
    return out_dir


def run(quick: bool = False, report: bool = False) -> Path:
    config = build_config(quick=quick)
    runner = ExperimentRunner(config)

    total = (len(config["scenes"]) * len(config["planners"])
             * len(config["seeds"]) * config["n_trials"])
    print(f"=== Multi-goal Comparison ===")
    print(f"  Scenes:   {len(config['scenes'])}")
    print(f"  Planners: {len(config['planners'])}")
    print(f"  Seeds:    {len(config['seeds'])}")
    print(f"  Trials:   {config['n_trials']}")
    print(f"  Total:    {total} runs")
    print()

    results = runner.run()

    out_path = OUTPUT_DIR / "multigoal_comparison.json"
    results.save(out_path)

    print("\n=== Summary ===")
    for (scene, planner), s in sorted(results.planner_summary().items()):
        print(f"  {scene} / {planner}: success={s['success_rate']:.0%} "
              f"coverage={s['coverage_mean']:.2%} "
              f"length mean={s['length_mean']:.3f} "
              f"median={s['length_median']:.3f} "
              f"time={s['time_mean']:.2f}s")
    for t in results.failures():
        print(f"  FAILED: {t.scene_name} / {t.planner_name} "
              f"seed={t.seed} trial={t.trial}")

    if report:
        write_reports(config)

    print(f"\nResults saved to {out_path}")
    return out_path


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(message)s")
    parser = argparse.ArgumentParser()
    parser.add_argument("--quick", action="store_true",
                        help="Quick mode: 1 scene, 2 seeds, short budgets")
    parser.add_argument("--report", action="store_true",
                        help="Write Markdown reports for the first scene")
    args = parser.parse_args()
    run(quick=args.quick, report=args.report)
