import numpy as np
import pytest

from multigoal.goals import EndEffectorNearTarget
from ptp.base import PTPConfig
from ptp.objective import ClearanceObjective, PathLengthObjective
from ptp.rrt import RRTConnectPlanner, plan_rrt_connect
from utils.config import flatten_parameters


def _assert_valid(checker, path) -> None:
    for a, b in zip(path, path[1:]):
        assert not checker.check_segment_collision(a, b, 0.05)


def test_plan_rrt_connect_around_block(robot, checker) -> None:
    q0 = np.array([-1.0, 0.0, 0.0])
    q1 = np.array([1.0, 0.0, 0.0])
    res = plan_rrt_connect(q0, q1, robot.joint_limits, checker,
                           timeout=5.0, step_size=0.3, resolution=0.05,
                           rng=np.random.default_rng(3))
    assert res["success"]
    path = res["waypoints"]
    np.testing.assert_allclose(path[0], q0)
    np.testing.assert_allclose(path[-1], q1)
    _assert_valid(checker, path)


def test_plan_to_state_lucky_shot(checker) -> None:
    ptp = RRTConnectPlanner(checker, PTPConfig(seed=1))
    q0 = np.array([-1.0, 1.0, 0.0])
    q1 = np.array([1.0, 1.0, 0.0])
    path = ptp.plan_to_state(q0, q1)
    assert path is not None
    assert len(path) == 2
    assert ptp.stats["lucky_shots"] == 1


def test_plan_to_state_around_obstacle(checker) -> None:
    ptp = RRTConnectPlanner(checker, PTPConfig(time_per_goal=5.0, seed=2))
    q0 = np.array([-1.0, 0.0, 0.0])
    q1 = np.array([1.0, 0.0, 0.0])
    path = ptp.plan_to_state(q0, q1)
    assert path is not None
    np.testing.assert_allclose(path[0], q0)
    np.testing.assert_allclose(path[-1], q1)
    assert ptp.check_path(path)


def test_plan_to_goal_reaches_region(robot, checker) -> None:
    ptp = RRTConnectPlanner(checker, PTPConfig(time_per_goal=5.0, seed=4,
                                               use_cost_convergence=True))
    goal = EndEffectorNearTarget(robot, [1.0, 0.0, 0.0], radius=0.1)
    path = ptp.plan_to_goal(np.array([-1.0, 0.0, 0.0]), goal)
    assert path is not None
    assert goal.is_satisfied(path[-1])
    _assert_valid(checker, path)


def test_plan_fails_from_invalid_start(robot, checker) -> None:
    ptp = RRTConnectPlanner(checker, PTPConfig(time_per_goal=0.1, seed=5))
    goal = EndEffectorNearTarget(robot, [1.0, 0.0, 0.0], radius=0.1)
    assert ptp.plan_to_goal(np.zeros(3), goal) is None
    assert ptp.plan_to_state(np.zeros(3), np.array([1.0, 0.0, 0.0])) is None
    assert ptp.stats["failures"] == 2


def test_parameters_flatten(checker) -> None:
    ptp = RRTConnectPlanner(checker, PTPConfig(time_per_goal=0.5, seed=7))
    flat = flatten_parameters({"ptp": ptp.parameters()})
    assert flat["ptp.name"] == "RRTConnect"
    assert flat["ptp.time_per_goal"] == 0.5
    assert flat["ptp.objective.name"] == "PathLengthObjective"


def test_ptp_config_json_roundtrip(tmp_path) -> None:
    cfg = PTPConfig(time_per_goal=0.25, try_lucky_shots=False, seed=9)
    path = tmp_path / "ptp.json"
    cfg.to_json(path)
    assert PTPConfig.from_json(path) == cfg
    assert PTPConfig.from_dict({"step_size": 0.2, "unknown": 1}).step_size == 0.2


def test_objectives(checker) -> None:
    path = [np.zeros(3), np.array([3.0, 4.0, 0.0])]
    assert PathLengthObjective().path_cost(path) == pytest.approx(5.0)
    obj = ClearanceObjective(checker, weight=2.0, cap=1.0)
    assert obj.state_cost(np.array([1.0, 0.0, 0.0])) == pytest.approx(-1.0)
    assert obj.state_cost(np.array([3.0, 0.0, 0.0])) == pytest.approx(-2.0)
