import numpy as np
import pytest

from multigoal.goals import EndEffectorNearTarget
from multigoal.shell_planner import Approach, ShellPathPlanner, ShellPlannerConfig
from shell.base import ShellPoint, ShellSpace
from shell.convex_hull import ConvexHullShellBuilder
from shell.sphere import PaddedSphereShellBuilder

TARGETS = [[0.6, 0.1, 0.2], [-0.6, -0.15, 0.1], [0.1, 0.6, -0.2]]
START = np.array([0.3, 0.2, 3.0])


@pytest.fixture
def goals(robot):
    return [EndEffectorNearTarget(robot, t, radius=0.05) for t in TARGETS]


def _planner(builder, scene, robot, **overrides):
    cfg = ShellPlannerConfig(apply_shellstate_optimization=False, seed=1)
    for key, value in overrides.items():
        setattr(cfg, key, value)
    return ShellPathPlanner(builder, scene, robot, cfg)


@pytest.mark.parametrize("builder", [
    ConvexHullShellBuilder(margin=0.2, padding=0.1),
    PaddedSphereShellBuilder(padding=0.1, margin=0.1),
])
def test_visits_all_goals_without_collision(builder, box_scene, robot, checker,
                                            goals, straight_ptp_factory) -> None:
    ptp = straight_ptp_factory(checker)
    result = _planner(builder, box_scene, robot).plan(goals, START, ptp)

    assert sorted(result.goals_visited()) == [0, 1, 2]
    assert result.check_chained()
    np.testing.assert_allclose(result.segments[0].start(), START)
    for seg in result.segments:
        assert goals[seg.goal_id].is_satisfied(seg.end())
    assert ptp.check_path(result.flatten())

    meta = result.metadata
    assert meta["planner"] == "ShellPathPlanner"
    assert meta["n_approaches"] == 3
    assert {"build_shell", "approaches", "ordering", "assemble"} <= set(meta["timing"])


def test_failing_ptp_gives_empty_result(box_scene, robot, goals, failing_ptp) -> None:
    planner = _planner(ConvexHullShellBuilder(margin=0.2), box_scene, robot)
    result = planner.plan(goals, START, failing_ptp)
    assert result.is_empty()
    assert result.metadata["planner"] == "ShellPathPlanner"


def test_failed_first_connection_gives_empty_result(box_scene, robot, checker, goals,
                                                    straight_ptp_factory) -> None:
    planner = _planner(ConvexHullShellBuilder(margin=0.2), box_scene, robot)
    result = planner.plan(goals, np.zeros(3), straight_ptp_factory(checker))
    assert result.is_empty()


def test_optimize_exit_never_lengthens(box_scene, robot, checker, goals,
                                       straight_ptp_factory) -> None:
    ptp = straight_ptp_factory(checker)
    space = ShellSpace(ConvexHullShellBuilder(margin=0.2).build_shell(box_scene), robot)
    planner = _planner(ConvexHullShellBuilder(margin=0.2), box_scene, robot,
                       exit_optimization_iters=30, exit_sample_stddev=0.3)

    plain = planner.plan_approach(0, goals[0], ptp, space)
    better = planner.optimize_exit(plain, ptp, space)
    assert ptp.objective.path_cost(better.path) <= ptp.objective.path_cost(plain.path)
    assert ptp.check_path(better.path)
    np.testing.assert_allclose(better.path[-1], plain.path[-1])
    np.testing.assert_allclose(better.path[0], space.state_on_shell(better.shell_point))


def test_retreat_move_probe_chains_approaches(box_scene, robot) -> None:
    space = ShellSpace(ConvexHullShellBuilder(margin=0.2).build_shell(box_scene), robot)
    sp_a = space.shell.project(np.array([1.0, 0.1, 0.2]))
    sp_b = space.shell.project(np.array([0.1, 1.0, -0.2]))
    a = Approach(0, sp_a, [space.state_on_shell(sp_a), np.array([0.6, 0.1, 0.2])])
    b = Approach(1, sp_b, [space.state_on_shell(sp_b), np.array([0.1, 0.6, -0.2])])

    path = ShellPathPlanner.retreat_move_probe(a, b, space)
    np.testing.assert_allclose(path[0], a.path[-1])
    np.testing.assert_allclose(path[-1], b.path[-1])
    assert all(np.linalg.norm(q - p) > 0.0 for p, q in zip(path, path[1:]))


def test_parameters_include_builder_and_ptp(box_scene, robot, goals,
                                            straight_ptp) -> None:
    planner = _planner(ConvexHullShellBuilder(margin=0.2), box_scene, robot)
    planner.plan(goals, START, straight_ptp)
    flat = planner.flat_parameters()
    assert flat["shell_builder_params.name"] == "ConvexHullShellBuilder"
    assert flat["shell_builder_params.margin"] == 0.2
    assert flat["ptp.name"] == "StraightLine"
    assert flat["apply_shellstate_optimization"] is False


def test_shell_point_dataclass_coerces_position() -> None:
    sp = ShellPoint(3, [1, 2, 3])
    assert sp.position.dtype == np.float64


def test_failed_later_connection_drops_only_that_goal(box_scene, robot, checker, goals,
                                                      straight_ptp_factory) -> None:
    class RejectFirstShellConnection(straight_ptp_factory):
        """第一条 goal 间 shell 连接判为无效, 其余照常检查"""

        def __init__(self, checker):
            super().__init__(checker)
            self.rejected_end = None

        def check_path(self, path):
            if self.rejected_end is None:
                self.rejected_end = np.array(path[-1])
                return False
            return super().check_path(path)

    ptp = RejectFirstShellConnection(checker)
    result = _planner(ConvexHullShellBuilder(margin=0.2, padding=0.1),
                      box_scene, robot).plan(goals, START, ptp)

    dropped = [gi for gi, goal in enumerate(goals) if goal.is_satisfied(ptp.rejected_end)]
    assert len(dropped) == 1
    visited = result.goals_visited()
    assert len(visited) == 2
    assert dropped[0] not in visited
    assert sorted(visited + dropped) == [0, 1, 2]
    assert result.check_chained()
    np.testing.assert_allclose(result.segments[0].start(), START)
    for seg in result.segments:
        assert goals[seg.goal_id].is_satisfied(seg.end())
