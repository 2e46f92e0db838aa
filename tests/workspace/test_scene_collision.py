import numpy as np
import pytest

from workspace.collision import CollisionChecker
from workspace.models import Obstacle
from workspace.robot import PointRobot
from workspace.scene import Scene


def test_obstacle_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError):
        Obstacle(np.array([1.0, 0.0, 0.0]), np.array([0.0, 1.0, 1.0]))


def test_obstacle_corners_and_distance() -> None:
    obs = Obstacle(np.zeros(3), np.ones(3), name="unit")
    corners = obs.corners()
    assert corners.shape == (8, 3)
    assert obs.contains_point([0.5, 0.5, 0.5])
    assert obs.distance_to_point([2.0, 0.5, 0.5]) == pytest.approx(1.0)
    assert obs.distance_to_point([0.5, 0.5, 0.5]) == 0.0


def test_scene_json_roundtrip(tmp_path, box_scene) -> None:
    box_scene.add_obstacle([1.0, 1.0, 1.0], [1.5, 1.5, 1.5])
    path = tmp_path / "scene.json"
    box_scene.to_json(str(path))
    loaded = Scene.from_json(str(path))

    assert loaded.n_obstacles == 2
    assert loaded.get_obstacle("block") is not None
    assert loaded.get_obstacle("obstacle_1") is not None
    np.testing.assert_allclose(loaded.corner_points(), box_scene.corner_points())


def test_scene_requires_3d_points() -> None:
    with pytest.raises(ValueError):
        Scene().add_obstacle([0.0, 0.0], [1.0, 1.0])


def test_point_robot_state_at_is_end_effector_inverse(robot) -> None:
    p = np.array([0.3, -0.2, 1.1])
    q = robot.state_at(p, facing=np.array([0.0, 0.0, -1.0]))
    np.testing.assert_allclose(robot.end_effector_position(q), p)


def test_point_robot_requires_three_limits() -> None:
    with pytest.raises(ValueError):
        PointRobot(((-1.0, 1.0),) * 2)


def test_collision_checker_config_and_segment(checker) -> None:
    assert checker.check_config_collision(np.zeros(3))
    assert not checker.check_config_collision(np.array([1.0, 1.0, 1.0]))
    # 超出关节限制视为碰撞
    assert checker.check_config_collision(np.array([4.0, 0.0, 0.0]))

    assert checker.check_segment_collision(np.array([-1.0, 0.0, 0.0]),
                                           np.array([1.0, 0.0, 0.0]), 0.05)
    assert not checker.check_segment_collision(np.array([-1.0, 1.0, 0.0]),
                                               np.array([1.0, 1.0, 0.0]), 0.05)


def test_collision_checker_batch_matches_single(checker) -> None:
    configs = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.4, 0.4, 0.4]])
    batch = checker.check_config_collision_batch(configs)
    single = [checker.check_config_collision(q) for q in configs]
    assert batch.tolist() == single
    assert checker.n_collision_checks == 6

    checker.reset_counter()
    assert checker.n_collision_checks == 0


def test_clearance(robot, checker) -> None:
    assert checker.clearance(np.array([1.5, 0.0, 0.0])) == pytest.approx(1.0)
    empty = CollisionChecker(robot, Scene())
    assert empty.clearance(np.zeros(3)) == float("inf")


def test_scene_remove_and_clear(box_scene) -> None:
    box_scene.add_obstacle([2.0, 2.0, 2.0], [2.5, 2.5, 2.5], name="extra")
    assert box_scene.remove_obstacle("extra")
    assert not box_scene.remove_obstacle("extra")
    lo, hi = box_scene.bounds()
    np.testing.assert_allclose(lo, -0.5)
    np.testing.assert_allclose(hi, 0.5)

    box_scene.clear()
    assert box_scene.n_obstacles == 0
    assert box_scene.bounds() is None
    assert box_scene.corner_points().shape == (0, 3)


def test_point_robot_limits(robot) -> None:
    assert robot.n_joints == 3
    assert robot.within_limits(np.array([3.0, -3.0, 0.0]))
    assert not robot.within_limits(np.array([3.1, 0.0, 0.0]))
    with pytest.raises(ValueError):
        robot.end_effector_position(np.zeros(2))
