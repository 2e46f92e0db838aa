"""
experiments/scenes.py - 场景配置加载与果园场景生成

load_scenes(names) → List[dict]
load_planners(names) → List[dict]
build_orchard_scene(cfg) → (robot, scene, goals, q_start)

果园场景: 树干 + 若干树冠, 每个树冠由随机叶簇 (小 AABB) 组成;
果实目标分布在树冠表面和叶簇之间的空隙中。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from multigoal.goals import EndEffectorNearTarget
from workspace.collision import CollisionChecker
from workspace.robot import PointRobot
from workspace.scene import Scene

logger = logging.getLogger(__name__)

_DIR = Path(__file__).resolve().parent


def _load_json(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_all_scenes() -> Dict[str, dict]:
    """加载全部标准场景配置."""
    return _load_json(_DIR / "configs" / "scenes.json")


def load_scenes(names: Optional[List[str]] = None) -> List[dict]:
    """按名称加载场景配置; names=None 则加载全部."""
    all_scenes = load_all_scenes()
    if names is None:
        return list(all_scenes.values())
    return [all_scenes[n] for n in names]


def load_all_planners() -> Dict[str, dict]:
    """加载全部标准 planner 配置."""
    return _load_json(_DIR / "configs" / "planners.json")


def load_planners(names: Optional[List[str]] = None) -> List[dict]:
    """按名称加载 planner 配置; names=None 则加载全部."""
    all_planners = load_all_planners()
    if names is None:
        return [{"name": k, **v} for k, v in all_planners.items()]
    return [{"name": n, **all_planners[n]} for n in names]


def build_orchard_scene(
    cfg: dict,
) -> Tuple[PointRobot, Scene, List[EndEffectorNearTarget], np.ndarray]:
    """从配置生成果园场景

    Returns:
        (robot, scene, goals, q_start)
    """
    rng = np.random.default_rng(cfg.get("seed", 0))
    robot = PointRobot(cfg.get("joint_limits", ((-3.0, 3.0),) * 3))
    scene = Scene()

    for i, trunk in enumerate(cfg.get("trunks", [])):
        scene.add_obstacle(trunk["min"], trunk["max"], name=f"trunk_{i}")

    canopies = cfg.get("canopies", [])
    for ci, canopy in enumerate(canopies):
        center = np.asarray(canopy["center"], dtype=np.float64)
        half = np.asarray(canopy["half_size"], dtype=np.float64)
        lo_h, hi_h = canopy.get("cluster_half_size", [0.08, 0.2])
        for k in range(canopy.get("n_clusters", 8)):
            h = rng.uniform(lo_h, hi_h, size=3)
            c = rng.uniform(center - half + h, center + half - h)
            scene.add_obstacle(c - h, c + h, name=f"leaves_{ci}_{k}")

    checker = CollisionChecker(robot, scene)
    min_clearance = cfg.get("min_clearance", 0.08)
    radius = cfg.get("fruit_radius", 0.05)
    n_fruits = cfg.get("n_fruits", 6)

    targets: List[np.ndarray] = []
    for _ in range(200 * max(n_fruits, 1)):
        if len(targets) >= n_fruits or not canopies:
            break
        canopy = canopies[int(rng.integers(len(canopies)))]
        center = np.asarray(canopy["center"], dtype=np.float64)
        half = np.asarray(canopy["half_size"], dtype=np.float64)
        p = rng.uniform(center - half, center + half)
        if checker.clearance(p) < min_clearance:
            continue
        if any(np.linalg.norm(p - t) < 2 * radius for t in targets):
            continue
        targets.append(p)

    if len(targets) < n_fruits:
        logger.warning("场景 %s: 只生成了 %d/%d 个果实",
                       cfg.get("name", "?"), len(targets), n_fruits)

    goals = [EndEffectorNearTarget(robot, t, radius=radius) for t in targets]
    q_start = robot.state_at(np.asarray(cfg.get("start", [2.0, 0.0, 1.5])))
    return robot, scene, goals, q_start
