import sys
from pathlib import Path
from typing import Optional

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (ROOT, SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

for prefix in ("workspace", "ptp", "shell", "multigoal", "utils"):
    for mod in [m for m in list(sys.modules.keys()) if m == prefix or m.startswith(prefix + ".")]:
        sys.modules.pop(mod, None)

from ptp.base import PointToPointPlanner  # noqa: E402
from shell.convex_hull import ConvexHullShell, ConvexHullShellBuilder  # noqa: E402
from workspace.collision import CollisionChecker  # noqa: E402
from workspace.robot import PointRobot  # noqa: E402
from workspace.scene import Scene  # noqa: E402


class StraightLinePTP(PointToPointPlanner):
    """直线连接; 给定 checker 时检查碰撞, blocked 中的目标配置一律失败"""

    def __init__(self, checker=None, seed: int = 1, blocked=()):
        super().__init__()
        self.checker = checker
        self.rng = np.random.default_rng(seed)
        self.blocked = [np.asarray(b, dtype=np.float64) for b in blocked]
        self.calls = 0

    @property
    def name(self) -> str:
        return "StraightLine"

    def is_valid(self, q) -> bool:
        if self.checker is None:
            return True
        return not self.checker.check_config_collision(q)

    def check_motion(self, q_from, q_to) -> bool:
        if self.checker is None:
            return True
        return not self.checker.check_segment_collision(q_from, q_to, 0.02)

    def _connect(self, start, end):
        self.calls += 1
        if any(np.allclose(end, b) for b in self.blocked):
            return None
        if not (self.is_valid(start) and self.is_valid(end)
                and self.check_motion(start, end)):
            return None
        return [np.array(start, dtype=np.float64), np.array(end, dtype=np.float64)]

    def plan_to_goal(self, start, goal, time_budget: Optional[float] = None):
        return self._connect(start, goal.sample(self.rng))

    def plan_to_state(self, start, end, time_budget: Optional[float] = None):
        return self._connect(start, end)


class FailingPTP(PointToPointPlanner):
    """所有规划都失败"""

    @property
    def name(self) -> str:
        return "Failing"

    def is_valid(self, q) -> bool:
        return True

    def check_motion(self, q_from, q_to) -> bool:
        return False

    def plan_to_goal(self, start, goal, time_budget: Optional[float] = None):
        return None

    def plan_to_state(self, start, end, time_budget: Optional[float] = None):
        return None


@pytest.fixture
def robot() -> PointRobot:
    return PointRobot(((-3.0, 3.0),) * 3)


@pytest.fixture
def box_scene() -> Scene:
    scene = Scene()
    scene.add_obstacle([-0.5, -0.5, -0.5], [0.5, 0.5, 0.5], name="block")
    return scene


@pytest.fixture
def checker(robot, box_scene) -> CollisionChecker:
    return CollisionChecker(robot, box_scene)


@pytest.fixture
def straight_ptp():
    return StraightLinePTP()


@pytest.fixture
def straight_ptp_factory():
    return StraightLinePTP


@pytest.fixture
def failing_ptp():
    return FailingPTP()


@pytest.fixture
def tetra_shell() -> ConvexHullShell:
    vertices = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
    ])
    triangles = np.array([[0, 1, 2], [0, 1, 3], [0, 2, 3], [1, 2, 3]])
    return ConvexHullShell(vertices, triangles, padding=0.1)


@pytest.fixture
def cube_shell() -> ConvexHullShell:
    scene = Scene()
    scene.add_obstacle([-0.9, -0.9, -0.9], [0.9, 0.9, 0.9])
    return ConvexHullShellBuilder(margin=0.1, padding=0.1).build_shell(scene)
