import numpy as np
import pytest

from multigoal.models import (
    ATSolution,
    GoalApproach,
    GoalApproachTable,
    NewApproachAt,
    PathSegment,
    PlanResult,
    Visitation,
    WaypointIndex,
)
from ptp.objective import PathLengthObjective


def _q(*xs):
    return np.array(xs, dtype=np.float64)


@pytest.fixture
def result() -> PlanResult:
    return PlanResult(segments=[
        PathSegment(2, [_q(0, 0, 0), _q(1, 0, 0), _q(1, 1, 0)]),
        PathSegment(0, [_q(1, 1, 0), _q(1, 1, 2)]),
    ], metadata={"planner": "test"})


def test_lengths_and_chaining(result) -> None:
    assert len(result) == 2
    assert result.total_length() == pytest.approx(4.0)
    assert result.total_cost(PathLengthObjective()) == pytest.approx(4.0)
    assert result.goals_visited() == [2, 0]
    assert result.check_chained()
    assert len(result.flatten()) == 4

    result.segments[1].path[0] = _q(5, 5, 5)
    assert not result.check_chained()


def test_navigation(result) -> None:
    visited = list(result.iter_waypoints())
    assert len(visited) == 5
    assert visited[0] == result.first_waypoint_index()
    assert visited[-1] == result.last_waypoint_index() == WaypointIndex(1, 1)

    assert result.next_waypoint_index(WaypointIndex(0, 2)) == WaypointIndex(1, 0)
    assert result.next_waypoint_index(WaypointIndex(1, 1)) is None
    assert result.prev_waypoint_index(WaypointIndex(1, 0)) == WaypointIndex(0, 2)
    assert result.prev_waypoint_index(WaypointIndex(0, 0)) is None

    assert result.is_at_target(WaypointIndex(0, 2))
    assert not result.is_at_target(WaypointIndex(0, 1))
    np.testing.assert_allclose(result.waypoint(WaypointIndex(1, 1)), [1, 1, 2])


def test_pop_first_drops_exhausted_segments(result) -> None:
    popped = [result.pop_first() for _ in range(5)]
    np.testing.assert_allclose(popped[-1], [1, 1, 2])
    assert result.empty()
    assert list(result.iter_waypoints()) == []
    with pytest.raises(IndexError):
        result.pop_first()


def test_save_load_roundtrip(tmp_path, result) -> None:
    result.metadata["timing"] = {"plan": np.float64(0.5)}
    path = result.save(tmp_path / "sub" / "result.json")
    loaded = PlanResult.load(path)

    assert loaded.goals_visited() == [2, 0]
    assert loaded.timestamp == result.timestamp
    assert loaded.metadata["timing"]["plan"] == 0.5
    for a, b in zip(loaded.flatten(), result.flatten()):
        np.testing.assert_allclose(a, b)


def _table() -> GoalApproachTable:
    return GoalApproachTable([
        [_q(1, 0, 0), _q(1, 1, 0)],
        [_q(2, 0, 0)],
    ])


def test_table_freeze_and_lookup() -> None:
    table = _table()
    assert table.row_sizes() == [2, 1]
    assert table.contains(Visitation(0, 1))
    assert not table.contains(Visitation(1, 1))
    assert not table.contains(Visitation(2, 0))
    np.testing.assert_allclose(table.config(Visitation(0, 1)), [1, 1, 0])

    table.freeze()
    assert table.frozen
    with pytest.raises(RuntimeError):
        table.replace_row(0, [])


def test_solution_check_valid() -> None:
    table = _table()
    start = _q(0, 0, 0)
    good = ATSolution([
        GoalApproach(Visitation(0, 0), [start, _q(1, 0, 0)]),
        GoalApproach(Visitation(1, 0), [_q(1, 0, 0), _q(2, 0, 0)]),
    ])
    good.check_valid(table, start)
    np.testing.assert_allclose(good.get_last_state(), [2, 0, 0])
    assert good.total_cost(PathLengthObjective()) == pytest.approx(2.0)

    bad_cases = [
        [GoalApproach(Visitation(0, 5), [start, _q(1, 0, 0)])],
        [GoalApproach(Visitation(0, 0), [start, _q(1, 0, 0)]),
         GoalApproach(Visitation(0, 1), [_q(1, 0, 0), _q(1, 1, 0)])],
        [GoalApproach(Visitation(0, 0), [])],
        [GoalApproach(Visitation(0, 0), [_q(9, 9, 9), _q(1, 0, 0)])],
        [GoalApproach(Visitation(0, 0), [start, _q(1, 1, 0)])],
    ]
    for segments in bad_cases:
        with pytest.raises(RuntimeError):
            ATSolution(segments).check_valid(table, start)


def test_is_improvement_is_strict() -> None:
    start = _q(0, 0, 0)
    solution = ATSolution([GoalApproach(Visitation(0, 0), [start, _q(1, 0, 0)])])
    obj = PathLengthObjective()
    same = [NewApproachAt(0, GoalApproach(Visitation(0, 0), [start, _q(1, 0, 0)]))]
    shorter = [NewApproachAt(0, GoalApproach(Visitation(0, 0), [start, _q(0.5, 0, 0)]))]
    assert not solution.is_improvement(same, obj)
    assert solution.is_improvement(shorter, obj)

    solution.apply_replacements(shorter)
    plan = solution.to_plan_result()
    assert plan.goals_visited() == [0]
    assert plan.total_length() == pytest.approx(0.5)
    assert ATSolution().get_last_state() is None
