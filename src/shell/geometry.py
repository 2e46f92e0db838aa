"""
shell/geometry.py - 三角形与平面几何工具

shell 投影和测地行走用到的基础几何:

- TriangleEdge / TriangleVertex: 三角形局部边 / 顶点编号及邻接表
- project_barycentric: 点投影到三角形平面后的重心坐标
- closest_point_on_segment / closest_point_on_triangle
- Plane / plane_from_points: 平面 (n·x + d = 0, n 为单位向量)
- triangle_plane_crossings: 平面与三角形边界的交点 (标注所在边或顶点)
- uniform_point_on_triangle: 三角形上均匀采样
- cheat_away_from_vertices: 将过于靠近顶点的点推离顶点
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple, Union

import numpy as np


class TriangleVertex(IntEnum):
    A = 0
    B = 1
    C = 2


class TriangleEdge(IntEnum):
    AB = 0
    BC = 1
    CA = 2


_EDGE_VERTICES = {
    TriangleEdge.AB: (TriangleVertex.A, TriangleVertex.B),
    TriangleEdge.BC: (TriangleVertex.B, TriangleVertex.C),
    TriangleEdge.CA: (TriangleVertex.C, TriangleVertex.A),
}

_VERTEX_EDGES = {
    TriangleVertex.A: (TriangleEdge.AB, TriangleEdge.CA),
    TriangleVertex.B: (TriangleEdge.AB, TriangleEdge.BC),
    TriangleVertex.C: (TriangleEdge.BC, TriangleEdge.CA),
}


def vertices_in_edge(edge: TriangleEdge) -> Tuple[TriangleVertex, TriangleVertex]:
    return _EDGE_VERTICES[TriangleEdge(edge)]


def edges_adjacent_to_vertex(vertex: TriangleVertex) -> Tuple[TriangleEdge, TriangleEdge]:
    return _VERTEX_EDGES[TriangleVertex(vertex)]


def project_barycentric(p: np.ndarray, a: np.ndarray, b: np.ndarray,
                        c: np.ndarray) -> np.ndarray:
    """p 在三角形 abc 平面上投影点的重心坐标 (u, v, w), u+v+w=1"""
    v0 = b - a
    v1 = c - a
    v2 = p - a
    d00 = float(v0 @ v0)
    d01 = float(v0 @ v1)
    d11 = float(v1 @ v1)
    d20 = float(v2 @ v0)
    d21 = float(v2 @ v1)
    denom = d00 * d11 - d01 * d01
    if abs(denom) < 1e-300:
        raise ValueError("退化三角形, 无法计算重心坐标")
    v = (d11 * d20 - d01 * d21) / denom
    w = (d00 * d21 - d01 * d20) / denom
    return np.array([1.0 - v - w, v, w])


def closest_point_on_segment(p: np.ndarray, a: np.ndarray,
                             b: np.ndarray) -> np.ndarray:
    ab = b - a
    denom = float(ab @ ab)
    if denom < 1e-300:
        return a.copy()
    t = float(np.clip((p - a) @ ab / denom, 0.0, 1.0))
    return a + t * ab


def closest_point_on_triangle(p: np.ndarray, a: np.ndarray, b: np.ndarray,
                              c: np.ndarray) -> np.ndarray:
    """三角形 abc 上距 p 最近的点 (按 Voronoi 区域分类)"""
    ab = b - a
    ac = c - a
    ap = p - a
    d1 = float(ab @ ap)
    d2 = float(ac @ ap)
    if d1 <= 0.0 and d2 <= 0.0:
        return a.copy()

    bp = p - b
    d3 = float(ab @ bp)
    d4 = float(ac @ bp)
    if d3 >= 0.0 and d4 <= d3:
        return b.copy()

    vc = d1 * d4 - d3 * d2
    if vc <= 0.0 and d1 >= 0.0 and d3 <= 0.0:
        return a + (d1 / (d1 - d3)) * ab

    cp = p - c
    d5 = float(ab @ cp)
    d6 = float(ac @ cp)
    if d6 >= 0.0 and d5 <= d6:
        return c.copy()

    vb = d5 * d2 - d1 * d6
    if vb <= 0.0 and d2 >= 0.0 and d6 <= 0.0:
        return a + (d2 / (d2 - d6)) * ac

    va = d3 * d6 - d5 * d4
    if va <= 0.0 and (d4 - d3) >= 0.0 and (d5 - d6) >= 0.0:
        w = (d4 - d3) / ((d4 - d3) + (d5 - d6))
        return b + w * (c - b)

    denom = 1.0 / (va + vb + vc)
    return a + ab * (vb * denom) + ac * (vc * denom)


@dataclass(frozen=True)
class Plane:
    """平面 normal·x + offset = 0 (normal 为单位向量)"""
    normal: np.ndarray
    offset: float

    def signed_distance(self, p: np.ndarray) -> float:
        return float(self.normal @ p) + self.offset


def plane_from_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray,
                      eps: float = 1e-12) -> Plane:
    """过三点的平面, 法向 (p2-p1)×(p3-p1); 三点共线时抛出 ValueError"""
    n = np.cross(p2 - p1, p3 - p1)
    norm = float(np.linalg.norm(n))
    if norm < eps:
        raise ValueError("三点共线, 无法确定平面")
    n = n / norm
    return Plane(n, -float(n @ p1))


Crossing = Tuple[Union[TriangleEdge, TriangleVertex], np.ndarray]


def triangle_plane_crossings(corners: np.ndarray, plane: Plane,
                             eps: float = 1e-10) -> List[Crossing]:
    """平面与三角形边界的交点

    Args:
        corners: (3, 3) 三角形顶点 a, b, c
        plane: 切割平面
        eps: 顶点落在平面上的距离阈值

    Returns:
        [(TriangleVertex 或 TriangleEdge, 交点)], 顶点交点在前。
        平面与三角形不相交时返回空列表。
    """
    d = np.array([plane.signed_distance(v) for v in corners])
    on_plane = np.abs(d) < eps
    out: List[Crossing] = []
    for vid in TriangleVertex:
        if on_plane[vid]:
            out.append((vid, corners[vid].copy()))
    for eid in TriangleEdge:
        i, j = _EDGE_VERTICES[eid]
        if on_plane[i] or on_plane[j]:
            continue
        if d[i] * d[j] < 0.0:
            t = d[i] / (d[i] - d[j])
            out.append((eid, corners[i] + t * (corners[j] - corners[i])))
    return out


def uniform_point_on_triangle(a: np.ndarray, b: np.ndarray, c: np.ndarray,
                              rng: np.random.Generator) -> np.ndarray:
    r1, r2 = rng.random(2)
    if r1 + r2 > 1.0:
        r1, r2 = 1.0 - r1, 1.0 - r2
    return a + r1 * (b - a) + r2 * (c - a)


def cheat_away_from_vertices(p: np.ndarray, a: np.ndarray, b: np.ndarray,
                             c: np.ndarray, margin: float) -> np.ndarray:
    """p 距某顶点小于 margin 时, 沿该顶点指向对边中点的方向移到 margin 处"""
    for v, o1, o2 in ((a, b, c), (b, c, a), (c, a, b)):
        if float(np.sum((p - v) ** 2)) < margin * margin:
            direction = (o1 + o2) / 2.0 - v
            norm = float(np.linalg.norm(direction))
            if norm < 1e-300:
                return p
            return v + direction / norm * margin
    return p


def point_in_triangle(p: np.ndarray, a: np.ndarray, b: np.ndarray,
                      c: np.ndarray, tol: float = 1e-7,
                      plane_tol: Optional[float] = None) -> bool:
    """p 是否落在三角形 abc 上 (含边界, 允许 tol 误差)"""
    n = np.cross(b - a, c - a)
    norm = float(np.linalg.norm(n))
    if norm < 1e-300:
        return False
    if plane_tol is None:
        plane_tol = tol * max(1.0, float(np.max(np.abs([a, b, c]))))
    if abs(float((p - a) @ n)) / norm > plane_tol:
        return False
    return bool(np.all(project_barycentric(p, a, b, c) >= -tol))
