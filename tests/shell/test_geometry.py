import numpy as np
import pytest

from shell.geometry import (
    Plane,
    TriangleEdge,
    TriangleVertex,
    cheat_away_from_vertices,
    closest_point_on_segment,
    closest_point_on_triangle,
    edges_adjacent_to_vertex,
    plane_from_points,
    point_in_triangle,
    project_barycentric,
    triangle_plane_crossings,
    uniform_point_on_triangle,
    vertices_in_edge,
)

A = np.array([0.0, 0.0, 0.0])
B = np.array([1.0, 0.0, 0.0])
C = np.array([0.0, 1.0, 0.0])


def test_edge_vertex_tables_are_consistent() -> None:
    for edge in TriangleEdge:
        for vertex in vertices_in_edge(edge):
            assert edge in edges_adjacent_to_vertex(vertex)
    assert vertices_in_edge(TriangleEdge.CA) == (TriangleVertex.C, TriangleVertex.A)


def test_project_barycentric_reconstructs_point() -> None:
    p = np.array([0.2, 0.3, 0.7])
    u, v, w = project_barycentric(p, A, B, C)
    assert u + v + w == pytest.approx(1.0)
    np.testing.assert_allclose(u * A + v * B + w * C, [0.2, 0.3, 0.0])


def test_project_barycentric_degenerate() -> None:
    with pytest.raises(ValueError):
        project_barycentric(A, A, B, 2.0 * B)


def test_closest_point_on_segment_clamps() -> None:
    np.testing.assert_allclose(closest_point_on_segment(np.array([-1.0, 1.0, 0.0]), A, B), A)
    np.testing.assert_allclose(closest_point_on_segment(np.array([0.4, 1.0, 0.0]), A, B),
                               [0.4, 0.0, 0.0])


@pytest.mark.parametrize("p, expected", [
    ([0.2, 0.2, 1.0], [0.2, 0.2, 0.0]),     # 内部
    ([-1.0, -1.0, 0.0], [0.0, 0.0, 0.0]),   # 顶点 A
    ([2.0, -0.5, 0.0], [1.0, 0.0, 0.0]),    # 顶点 B
    ([0.5, -1.0, 0.3], [0.5, 0.0, 0.0]),    # 边 AB
    ([1.0, 1.0, 0.0], [0.5, 0.5, 0.0]),     # 边 BC
    ([-1.0, 0.5, 0.0], [0.0, 0.5, 0.0]),    # 边 CA
])
def test_closest_point_on_triangle(p, expected) -> None:
    np.testing.assert_allclose(closest_point_on_triangle(np.array(p), A, B, C),
                               expected, atol=1e-12)


def test_plane_from_points() -> None:
    plane = plane_from_points(A, B, C)
    np.testing.assert_allclose(plane.normal, [0.0, 0.0, 1.0])
    assert plane.signed_distance(np.array([3.0, 3.0, 2.0])) == pytest.approx(2.0)
    with pytest.raises(ValueError):
        plane_from_points(A, B, 2.0 * B)


def test_triangle_plane_crossings_on_edges() -> None:
    plane = Plane(np.array([1.0, 0.0, 0.0]), -0.5)
    crossings = triangle_plane_crossings(np.array([A, B, C]), plane)
    kinds = [k for k, _ in crossings]
    assert kinds == [TriangleEdge.AB, TriangleEdge.BC]
    np.testing.assert_allclose(crossings[0][1], [0.5, 0.0, 0.0])
    np.testing.assert_allclose(crossings[1][1], [0.5, 0.5, 0.0])


def test_triangle_plane_crossings_through_vertices() -> None:
    plane = Plane(np.array([1.0, 0.0, 0.0]), 0.0)
    crossings = triangle_plane_crossings(np.array([A, B, C]), plane)
    assert [k for k, _ in crossings] == [TriangleVertex.A, TriangleVertex.C]


def test_triangle_plane_no_crossing() -> None:
    plane = Plane(np.array([0.0, 0.0, 1.0]), -1.0)
    assert triangle_plane_crossings(np.array([A, B, C]), plane) == []


def test_uniform_point_on_triangle_stays_inside() -> None:
    rng = np.random.default_rng(0)
    for _ in range(200):
        p = uniform_point_on_triangle(A, B, C, rng)
        assert point_in_triangle(p, A, B, C)


def test_cheat_away_from_vertices() -> None:
    p = np.array([1e-4, 1e-4, 0.0])
    moved = cheat_away_from_vertices(p, A, B, C, margin=0.1)
    assert np.linalg.norm(moved - A) == pytest.approx(0.1)
    assert point_in_triangle(moved, A, B, C)

    far = np.array([0.3, 0.3, 0.0])
    np.testing.assert_allclose(cheat_away_from_vertices(far, A, B, C, 0.1), far)


def test_point_in_triangle_rejects_off_plane() -> None:
    assert point_in_triangle(np.array([0.5, 0.0, 0.0]), A, B, C)
    assert not point_in_triangle(np.array([0.2, 0.2, 0.1]), A, B, C)
    assert not point_in_triangle(np.array([0.8, 0.8, 0.0]), A, B, C)
