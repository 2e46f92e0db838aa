import numpy as np

from ptp.objective import compute_path_length
from ptp.path_smoother import PathSmoother, dedupe_consecutive


def test_shortcut_keeps_endpoints_and_never_lengthens(checker) -> None:
    smoother = PathSmoother(checker)
    path = [
        np.array([-1.0, 1.0, 0.0]),
        np.array([-0.5, 1.5, 0.0]),
        np.array([0.0, 1.0, 0.0]),
        np.array([0.5, 1.5, 0.0]),
        np.array([1.0, 1.0, 0.0]),
    ]
    short = smoother.shortcut(path, max_iters=50, rng=np.random.default_rng(0))

    np.testing.assert_allclose(short[0], path[0])
    np.testing.assert_allclose(short[-1], path[-1])
    assert compute_path_length(short) <= compute_path_length(path) + 1e-12


def test_shortcut_does_not_cut_through_obstacle(checker) -> None:
    smoother = PathSmoother(checker)
    path = [
        np.array([-1.0, 0.0, 0.0]),
        np.array([-1.0, 1.0, 0.0]),
        np.array([1.0, 1.0, 0.0]),
        np.array([1.0, 0.0, 0.0]),
    ]
    short = smoother.shortcut(path, max_iters=100, rng=np.random.default_rng(1))
    for a, b in zip(short, short[1:]):
        assert not checker.check_segment_collision(a, b, 0.05)


def test_shortcut_until_converged_runs(checker) -> None:
    smoother = PathSmoother(checker)
    path = [np.array([-1.0, 1.0, float(z)]) for z in np.linspace(0.0, 1.0, 6)]
    out = smoother.shortcut_until_converged(path, rng=np.random.default_rng(2))
    assert len(out) == 2


def test_resample_spacing(checker) -> None:
    smoother = PathSmoother(checker)
    path = [np.array([-1.0, 1.0, 0.0]), np.array([1.0, 1.0, 0.0])]
    out = smoother.resample(path, resolution=0.5)
    assert len(out) == 5
    steps = [np.linalg.norm(b - a) for a, b in zip(out, out[1:])]
    np.testing.assert_allclose(steps, 0.5)


def test_dedupe_consecutive() -> None:
    a = np.zeros(3)
    b = np.ones(3)
    out = dedupe_consecutive([a, a.copy(), b, b.copy()])
    assert len(out) == 2
    assert len(dedupe_consecutive([a, a.copy()])) == 2


def test_moving_average_keeps_endpoints_and_avoids_block(checker) -> None:
    smoother = PathSmoother(checker)
    path = [
        np.array([-1.0, 0.8, 0.0]),
        np.array([-0.5, 1.4, 0.0]),
        np.array([0.0, 0.6, 0.0]),
        np.array([0.5, 1.4, 0.0]),
        np.array([1.0, 0.8, 0.0]),
    ]
    out = smoother.smooth_moving_average(path, window=3, n_iters=5)
    assert len(out) == len(path)
    np.testing.assert_allclose(out[0], path[0])
    np.testing.assert_allclose(out[-1], path[-1])
    for a, b in zip(out, out[1:]):
        assert not checker.check_segment_collision(a, b, 0.05)
