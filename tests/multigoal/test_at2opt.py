import numpy as np
import pytest

from multigoal.at2opt import AT2Opt, AT2OptConfig
from multigoal.goals import EndEffectorNearTarget


def _line_goals(robot, n=6):
    xs = [2.0, -1.0, 1.5, -2.0, 0.5, 2.5][:n]
    return [EndEffectorNearTarget(robot, [x, 1.0, 0.0], radius=0.02, max_samples=20)
            for x in xs]


def test_zero_budget_returns_initial_tour(robot, straight_ptp_factory) -> None:
    goals = _line_goals(robot, 3)
    start = np.array([0.0, 1.0, 0.0])
    cfg = AT2OptConfig(samples_per_goal=5, keep_best=1, time_budget=0.0, seed=3)

    first = AT2Opt(cfg).plan(goals, start, straight_ptp_factory())
    again = AT2Opt(cfg).plan(goals, start, straight_ptp_factory())

    assert first.metadata["n_passes"] == 0
    assert first.metadata["n_improvements"] == 0
    assert first.metadata["final_cost"] == pytest.approx(first.metadata["initial_cost"])
    assert first.goals_visited() == again.goals_visited()
    assert sorted(first.goals_visited()) == list(range(len(goals)))


def test_local_search_never_increases_cost(robot, straight_ptp_factory) -> None:
    goals = _line_goals(robot)
    start = np.array([0.0, 1.0, 0.0])
    cfg = AT2OptConfig(samples_per_goal=5, keep_best=2, time_budget=30.0,
                       max_passes=3, seed=5)
    planner = AT2Opt(cfg)
    result = planner.plan(goals, start, straight_ptp_factory())

    meta = result.metadata
    assert meta["planner"] == "AT2Opt"
    assert 1 <= meta["n_passes"] <= 3
    assert meta["final_cost"] <= meta["initial_cost"] + 1e-12
    assert result.total_length() == pytest.approx(meta["final_cost"])
    assert sorted(result.goals_visited()) == list(range(len(goals)))
    assert result.check_chained()
    np.testing.assert_allclose(result.segments[0].start(), start)
    for seg in result.segments:
        assert goals[seg.goal_id].is_satisfied(seg.end())

    flat = planner.flat_parameters()
    assert flat["keep_best"] == 2
    assert flat["ptp.name"] == "StraightLine"


def test_failing_ptp_gives_empty_result(robot, failing_ptp) -> None:
    goals = _line_goals(robot, 3)
    cfg = AT2OptConfig(samples_per_goal=3, keep_best=1, time_budget=1.0, seed=1)
    result = AT2Opt(cfg).plan(goals, np.zeros(3), failing_ptp)
    assert result.is_empty()
    assert result.metadata["missing_goals"] == [0, 1, 2]


def test_missing_goal_hook_called(robot, checker, straight_ptp_factory) -> None:
    goals = [
        EndEffectorNearTarget(robot, [2.0, 0.0, 0.0], radius=0.02),
        EndEffectorNearTarget(robot, [2.0, 1.0, 0.0], radius=0.02),
        EndEffectorNearTarget(robot, [2.0, 2.0, 0.0], radius=0.02),
        EndEffectorNearTarget(robot, [0.0, 0.0, 0.0], radius=0.02),
    ]
    calls = []

    def hook(solution, table, missing, i, ptp, start):
        calls.append((i, set(missing)))

    cfg = AT2OptConfig(samples_per_goal=3, keep_best=1, time_budget=30.0,
                       max_passes=1, seed=2)
    result = AT2Opt(cfg, missing_goal_hook=hook).plan(
        goals, np.array([2.0, -1.0, 0.0]), straight_ptp_factory(checker))

    assert sorted(result.goals_visited()) == [0, 1, 2]
    assert result.metadata["missing_goals"] == [3]
    assert [i for i, _ in calls] == [0, 1, 2]
    assert all(missing == {3} for _, missing in calls)


def test_config_from_dict_ignores_unknown_keys() -> None:
    cfg = AT2OptConfig.from_dict({"type": "at2opt", "keep_best": 3, "seed": 4})
    assert cfg.keep_best == 3
    assert cfg.seed == 4
    assert cfg.time_budget == 10.0
