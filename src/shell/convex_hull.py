"""
shell/convex_hull.py - 凸包 shell

ConvexHullShell:
    三角网格表示的凸多面体。每个 facet 记录三个顶点索引及三条边对面的
    相邻 facet 索引 (match_faces 之后全部有效)。facet 质心建 cKDTree,
    投影时用它给出初始 facet, 再沿邻接关系局部爬山。

    测地行走 (convex_hull_walk) 用过 a, b 和支撑点 (a/b 中点投影回表面)
    的平面切割凸面, 沿交线逐个 facet 前进, 直到到达包含 b 的 facet。
    每次跨越 facet 输出两个 shell 点 (旧 facet 上的出口, 新 facet 上的入口),
    二者欧氏位置相同。交点落在顶点 snap 半径内时按经过顶点处理,
    出入点都取该顶点。

ConvexHullShellBuilder:
    对场景中所有障碍物角点 (按 margin 膨胀) 求凸包 (scipy.spatial.ConvexHull)。

使用方式:
    builder = ConvexHullShellBuilder(margin=0.1, padding=0.1)
    shell = builder.build_shell(scene)
    sp_a = shell.project(p_a)
    walk = shell.path_on_shell(sp_a, shell.project(p_b))
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.spatial import ConvexHull, cKDTree

from .base import CollisionFreeShell, ShellBuilder, ShellPoint, ShellWalkError
from .geometry import (
    Plane,
    TriangleEdge,
    TriangleVertex,
    cheat_away_from_vertices,
    closest_point_on_segment,
    closest_point_on_triangle,
    point_in_triangle,
    triangle_plane_crossings,
    vertices_in_edge,
)

logger = logging.getLogger(__name__)


@dataclass
class Facet:
    """三角形 facet: 顶点索引 a, b, c (外法向按右手序) 及三条边的相邻 facet"""
    a: int
    b: int
    c: int
    neighbour_ab: int = -1
    neighbour_bc: int = -1
    neighbour_ca: int = -1

    def vertex(self, vid: TriangleVertex) -> int:
        return (self.a, self.b, self.c)[vid]

    def edge_vertices(self, edge: TriangleEdge) -> Tuple[int, int]:
        i, j = vertices_in_edge(edge)
        return self.vertex(i), self.vertex(j)

    def neighbour(self, edge: TriangleEdge) -> int:
        return self.neighbours()[edge]

    def set_neighbour(self, edge: TriangleEdge, facet_id: int) -> None:
        if edge == TriangleEdge.AB:
            self.neighbour_ab = facet_id
        elif edge == TriangleEdge.BC:
            self.neighbour_bc = facet_id
        else:
            self.neighbour_ca = facet_id

    def neighbours(self) -> Tuple[int, int, int]:
        return (self.neighbour_ab, self.neighbour_bc, self.neighbour_ca)


Chord = List[Tuple[object, np.ndarray]]


class ConvexHullShell(CollisionFreeShell):
    """凸多面体 shell

    Args:
        vertices: (N, 3) 顶点
        triangles: (M, 3) 三角形顶点索引 (朝向任意, 构造时统一为外法向)
        padding: 机器人离开表面的法向距离
        vertex_margin: 投影点离顶点的最小距离

    Raises:
        ValueError: 网格不封闭、存在退化三角形或非凸
    """

    def __init__(
        self,
        vertices: np.ndarray,
        triangles: np.ndarray,
        padding: float = 0.1,
        vertex_margin: float = 1e-6,
    ) -> None:
        self.vertices = np.asarray(vertices, dtype=np.float64)
        tris = np.asarray(triangles, dtype=np.int64)
        if self.vertices.ndim != 2 or self.vertices.shape[1] != 3:
            raise ValueError(f"vertices 需为 (N, 3), 得到 {self.vertices.shape}")
        if tris.ndim != 2 or tris.shape[1] != 3 or len(tris) < 4:
            raise ValueError(f"triangles 需为 (M>=4, 3), 得到 {tris.shape}")

        self.padding = float(padding)
        self.vertex_margin = float(vertex_margin)
        scale = max(1.0, float(np.max(np.abs(self.vertices))))
        self._eps = 1e-10 * scale
        self._tol = 1e-7 * scale
        # 顶点附近 snap 半径内的交点按经过顶点处理
        self._snap = max(4.0 * self.vertex_margin, 10.0 * self._tol)

        interior = self.vertices[np.unique(tris)].mean(axis=0)
        self.facets: List[Facet] = []
        for a, b, c in tris:
            va, vb, vc = self.vertices[[a, b, c]]
            n = np.cross(vb - va, vc - va)
            if np.linalg.norm(n) < 1e-14 * scale * scale:
                raise ValueError(f"退化三角形: ({a}, {b}, {c})")
            if float(n @ ((va + vb + vc) / 3.0 - interior)) < 0.0:
                b, c = c, b
            self.facets.append(Facet(int(a), int(b), int(c)))

        self._corners = np.array([
            self.vertices[[f.a, f.b, f.c]] for f in self.facets])
        normals = np.cross(self._corners[:, 1] - self._corners[:, 0],
                           self._corners[:, 2] - self._corners[:, 0])
        self.normals = normals / np.linalg.norm(normals, axis=1, keepdims=True)
        self.offsets = -np.einsum('ij,ij->i', self.normals, self._corners[:, 0])

        self.match_faces()
        self._check_convex()

        self.vertex_facets: Dict[int, List[int]] = {}
        for fid, f in enumerate(self.facets):
            for v in (f.a, f.b, f.c):
                self.vertex_facets.setdefault(v, []).append(fid)

        self.centroids = self._corners.mean(axis=1)
        self._centroid_tree = cKDTree(self.centroids)

    @property
    def n_facets(self) -> int:
        return len(self.facets)

    # ── 构造 ─────────────────────────────────────────────────

    def match_faces(self) -> None:
        """为每条边找到对面的 facet; 每条边必须恰好被两个 facet 共享"""
        edge_map: Dict[Tuple[int, int], List[Tuple[int, TriangleEdge]]] = {}
        for fid, f in enumerate(self.facets):
            for eid in TriangleEdge:
                u, v = f.edge_vertices(eid)
                edge_map.setdefault((min(u, v), max(u, v)), []).append((fid, eid))

        for key, owners in edge_map.items():
            if len(owners) != 2:
                raise ValueError(
                    f"边 {key} 被 {len(owners)} 个 facet 共享, 网格不封闭")
            (f1, e1), (f2, e2) = owners
            self.facets[f1].set_neighbour(e1, f2)
            self.facets[f2].set_neighbour(e2, f1)

    def _check_convex(self) -> None:
        used = np.unique([[f.a, f.b, f.c] for f in self.facets])
        dist = self.normals @ self.vertices[used].T + self.offsets[:, None]
        worst = float(dist.max())
        if worst > self._tol:
            raise ValueError(f"网格非凸: 顶点在 facet 平面外 {worst:.3g}")

    # ── 查询 ─────────────────────────────────────────────────

    def guess_closest_face(self, point: np.ndarray) -> int:
        _, idx = self._centroid_tree.query(point)
        return int(idx)

    def facet_corners(self, facet_id: int) -> np.ndarray:
        return self._corners[facet_id]

    def facet_contains(self, facet_id: int, point: np.ndarray) -> bool:
        a, b, c = self._corners[facet_id]
        return point_in_triangle(point, a, b, c, tol=1e-7, plane_tol=self._tol)

    def signed_distance(self, point: np.ndarray) -> float:
        """到凸面的有符号距离 (外正内负), 逐 facet 取平面距离最大值"""
        p = np.asarray(point, dtype=np.float64)
        return float(np.max(self.normals @ p + self.offsets))

    def normal_at(self, sp: ShellPoint) -> np.ndarray:
        return self.normals[sp.face_id].copy()

    def project(self, point: np.ndarray, hint: Optional[int] = None) -> ShellPoint:
        """投影到最近的 facet 上 (位置在 facet 内, 离顶点至少 vertex_margin)

        外部点沿邻接关系爬山; 内部点的最近表面点必在平面距离最小的
        facet 平面上, 直接在这些 facet 中取最近。
        """
        p = np.asarray(point, dtype=np.float64)
        plane_dist = self.normals @ p + self.offsets
        if float(plane_dist.max()) < 0.0:
            cur, best = self._project_inside(p, plane_dist)
        else:
            cur, best = self._project_outside(p, hint)
        position = cheat_away_from_vertices(best, *self._corners[cur],
                                            margin=self.vertex_margin)
        return ShellPoint(cur, position)

    def _project_outside(self, p: np.ndarray,
                         hint: Optional[int]) -> Tuple[int, np.ndarray]:
        cur = self.guess_closest_face(p) if hint is None else int(hint)
        best = closest_point_on_triangle(p, *self._corners[cur])
        best_d = float(np.linalg.norm(best - p))

        while True:
            step = None
            for nb in self.facets[cur].neighbours():
                q = closest_point_on_triangle(p, *self._corners[nb])
                d = float(np.linalg.norm(q - p))
                if d < best_d - 1e-12:
                    step, best, best_d = nb, q, d
            if step is None:
                return cur, best
            cur = step

    def _project_inside(self, p: np.ndarray,
                        plane_dist: np.ndarray) -> Tuple[int, np.ndarray]:
        candidates = np.flatnonzero(plane_dist >= plane_dist.max() - self._tol)
        best_fid, best, best_d = -1, p, np.inf
        for fid in candidates:
            q = closest_point_on_triangle(p, *self._corners[fid])
            d = float(np.linalg.norm(q - p))
            if d < best_d:
                best_fid, best, best_d = int(fid), q, d
        return best_fid, best

    def gaussian_sample_near(self, sp: ShellPoint, rng: np.random.Generator,
                             stddev: float = 0.1) -> ShellPoint:
        p = sp.position + rng.normal(0.0, stddev, size=3)
        return self.project(p, hint=sp.face_id)

    def path_on_shell(self, a: ShellPoint, b: ShellPoint) -> List[ShellPoint]:
        return self.convex_hull_walk(a, b)

    # ── 测地行走 ─────────────────────────────────────────────

    def convex_hull_walk(self, a: ShellPoint, b: ShellPoint) -> List[ShellPoint]:
        """切割平面行走 a → b

        切割平面与凸面的交线是一个凸多边形, a 和 b 都在上面。沿两个环绕
        方向各走一次, 取较短的一条。环绕方向由 (平面法向 × facet 外法向)
        给出, 因此每个 facet 上的前进端点不依赖入口匹配。

        Raises:
            ShellWalkError: 两个方向都未能在 2 * n_facets + 2 次跨越内到达 b
        """
        if (a.face_id == b.face_id
                or self.facet_contains(a.face_id, b.position)
                or self.facet_contains(b.face_id, a.position)):
            return [a, b]
        shortcut = self._via_shared_vertex(a, b)
        if shortcut is not None:
            return shortcut

        plane = self._cutting_plane(a, b)
        walks = []
        error: Optional[ShellWalkError] = None
        for sign in (1.0, -1.0):
            try:
                walks.append(self._walk(a, b, plane, sign))
            except ShellWalkError as exc:
                logger.debug("测地行走 (方向 %+d) 失败: %s", int(sign), exc)
                error = exc
        if not walks:
            raise error
        return min(walks, key=_walk_length)

    def _via_shared_vertex(self, a: ShellPoint,
                           b: ShellPoint) -> Optional[List[ShellPoint]]:
        """a (或 b) 贴着一个顶点, 且另一点所在 facet 也含该顶点时经顶点直连"""
        for near, other in ((a, b), (b, a)):
            vid = self._near_vertex(near.face_id, near.position)
            if vid is None:
                continue
            v = self.facets[near.face_id].vertex(vid)
            if other.face_id not in self.vertex_facets[v]:
                continue
            corner = self.vertices[v]
            return [a, ShellPoint(a.face_id, corner.copy()),
                    ShellPoint(b.face_id, corner.copy()), b]
        return None

    def _cutting_plane(self, a: ShellPoint, b: ShellPoint) -> Plane:
        """过 a, b 且包含支撑点处外法向的平面

        支撑点是 a/b 中点投影回表面的点; 投影沿该 facet 法向进行时,
        平面同时经过支撑点。
        """
        ab = b.position - a.position
        mid = (a.position + b.position) / 2.0
        support = self.project(mid, hint=a.face_id)
        for up in (self.normals[support.face_id],
                   self.normals[a.face_id] + self.normals[b.face_id],
                   _any_perpendicular(ab)):
            n = np.cross(ab, up)
            norm = float(np.linalg.norm(n))
            if norm > 1e-9 * float(np.linalg.norm(ab)) * max(float(np.linalg.norm(up)), 1e-9):
                n = n / norm
                return Plane(n, -float(n @ a.position))
        raise ShellWalkError("无法构造切割平面")

    def _walk(self, a: ShellPoint, b: ShellPoint, plane: Plane,
              sign: float) -> List[ShellPoint]:
        cur = a.face_id
        visited = {cur}
        path = [a]
        t = self._tangent(cur, plane, sign, sign * (b.position - a.position))
        exit_pt = self._forward_end(cur, plane, t, a.position)

        for _ in range(2 * self.n_facets + 2):
            vid = self._near_vertex(cur, exit_pt)
            if vid is not None:
                nxt, t = self._vertex_step(cur, vid, plane, sign, t, b, visited)
                pos = self.vertices[self.facets[cur].vertex(vid)]
            else:
                nxt = self.facets[cur].neighbour(self._exit_edge(cur, exit_pt))
                if nxt in visited:
                    raise ShellWalkError(f"测地行走重复访问 facet {nxt}")
                t = self._tangent(nxt, plane, sign, t)
                pos = exit_pt
            path.append(ShellPoint(cur, pos.copy()))
            path.append(ShellPoint(nxt, pos.copy()))
            cur = nxt
            visited.add(cur)

            if cur == b.face_id or self.facet_contains(cur, b.position):
                if cur != b.face_id:
                    path.append(ShellPoint(cur, b.position.copy()))
                path.append(b)
                return path

            exit_pt = self._forward_end(cur, plane, t, pos)

        raise ShellWalkError(
            f"测地行走未终止: facet {a.face_id} → {b.face_id}")

    def _tangent(self, facet_id: int, plane: Plane, sign: float,
                 fallback: np.ndarray) -> np.ndarray:
        """facet 上沿交线的前进方向; facet 与切割平面平行时沿用 fallback"""
        t = sign * np.cross(plane.normal, self.normals[facet_id])
        if float(np.linalg.norm(t)) < 1e-9:
            return fallback
        return t

    def _chord(self, facet_id: int, plane: Plane) -> Optional[Chord]:
        """facet 与平面交线的两个端点; 退化 (单点或无交) 返回 None"""
        crossings = triangle_plane_crossings(self._corners[facet_id], plane,
                                             eps=self._eps)
        if len(crossings) < 2:
            return None
        if len(crossings) > 2:
            crossings = max(
                itertools.combinations(crossings, 2),
                key=lambda pair: float(np.linalg.norm(pair[0][1] - pair[1][1])))
        if np.linalg.norm(crossings[0][1] - crossings[1][1]) < self._eps:
            return None
        return list(crossings)

    def _oriented_chord(self, facet_id: int, plane: Plane,
                        t: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """(后端, 前端): 按前进方向 t 排序的交线端点"""
        chord = self._chord(facet_id, plane)
        if chord is None:
            return None
        (_, p1), (_, p2) = chord
        if float((p2 - p1) @ t) >= 0.0:
            return p1, p2
        return p2, p1

    def _forward_end(self, facet_id: int, plane: Plane, t: np.ndarray,
                     entry: np.ndarray) -> np.ndarray:
        ends = self._oriented_chord(facet_id, plane, t)
        if ends is None:
            return entry
        back, front = ends
        gap = float(np.linalg.norm(closest_point_on_segment(entry, back, front) - entry))
        if gap > 2.0 * self._snap + self._tol:
            raise ShellWalkError(
                f"facet {facet_id} 入口点与交线不一致 (偏差 {gap:.3g})")
        return front

    def _near_vertex(self, facet_id: int,
                     point: np.ndarray) -> Optional[TriangleVertex]:
        d = np.linalg.norm(self._corners[facet_id] - point, axis=1)
        i = int(np.argmin(d))
        if float(d[i]) <= self._snap:
            return TriangleVertex(i)
        return None

    def _exit_edge(self, facet_id: int, point: np.ndarray) -> TriangleEdge:
        corners = self._corners[facet_id]
        dists = []
        for eid in TriangleEdge:
            i, j = vertices_in_edge(eid)
            q = closest_point_on_segment(point, corners[i], corners[j])
            dists.append(float(np.linalg.norm(q - point)))
        eid = TriangleEdge(int(np.argmin(dists)))
        if dists[eid] > self._snap:
            raise ShellWalkError(
                f"facet {facet_id} 出口点不在边界上 (偏差 {dists[eid]:.3g})")
        return eid

    def _vertex_step(self, cur: int, vid: TriangleVertex, plane: Plane,
                     sign: float, t: np.ndarray, b: ShellPoint,
                     visited: set) -> Tuple[int, np.ndarray]:
        """交线经过 (或贴近) 顶点时选择下一个 facet

        交线在顶点附近 2 * snap 球内是一段连续弧; 后端在球内、前端在球外的
        facet 就是弧离开球的位置。若有多个候选, 取前端离 b 最近者 (按 facet
        编号打破平局)。b 所在 facet 含该顶点时直接进入。
        """
        v = self.facets[cur].vertex(vid)
        corner = self.vertices[v]
        fan = self.vertex_facets[v]
        if b.face_id in fan and b.face_id not in visited:
            return b.face_id, self._tangent(b.face_id, plane, sign, t)

        radius = 2.0 * self._snap
        best: Optional[Tuple[Tuple[float, int], int, np.ndarray]] = None
        for cand in fan:
            if cand in visited:
                continue
            tc = self._tangent(cand, plane, sign, t)
            ends = self._oriented_chord(cand, plane, tc)
            if ends is None:
                continue
            back, front = ends
            if float(np.linalg.norm(back - corner)) > radius:
                continue
            if float(np.linalg.norm(front - corner)) <= radius:
                continue
            key = (float(np.linalg.norm(front - b.position)), cand)
            if best is None or key < best[0]:
                best = (key, cand, tc)
        if best is None:
            raise ShellWalkError(f"顶点 {v} 处没有可延续的 facet")
        return best[1], best[2]


def _walk_length(path: List[ShellPoint]) -> float:
    return float(sum(np.linalg.norm(q.position - p.position)
                     for p, q in zip(path, path[1:])))


def _any_perpendicular(v: np.ndarray) -> np.ndarray:
    axis = np.zeros(3)
    axis[int(np.argmin(np.abs(v)))] = 1.0
    return np.cross(v, axis)



def _inflated_corners(min_point: np.ndarray, max_point: np.ndarray,
                      margin: float) -> np.ndarray:
    lo = min_point - margin
    hi = max_point + margin
    return np.array([[x, y, z] for x, y, z in itertools.product(
        (lo[0], hi[0]), (lo[1], hi[1]), (lo[2], hi[2]))])


class ConvexHullShellBuilder(ShellBuilder):
    """障碍物角点 (膨胀 margin) 的凸包 shell

    Args:
        margin: 障碍物 AABB 向外膨胀量
        padding: 生成 shell 的 padding
    """

    def __init__(self, margin: float = 0.1, padding: float = 0.1) -> None:
        self.margin = float(margin)
        self.padding = float(padding)

    def build_shell(self, scene) -> ConvexHullShell:
        obstacles = scene.get_obstacles()
        if not obstacles:
            raise ValueError("场景中没有障碍物, 无法构造凸包 shell")
        points = np.vstack([
            _inflated_corners(obs.min_point, obs.max_point, self.margin)
            for obs in obstacles])
        hull = ConvexHull(points)

        used = np.unique(hull.simplices)
        remap = np.full(len(points), -1, dtype=np.int64)
        remap[used] = np.arange(len(used))
        shell = ConvexHullShell(points[used], remap[hull.simplices],
                                padding=self.padding)
        logger.info("凸包 shell: %d 个障碍物 → %d 顶点, %d facet",
                    len(obstacles), len(used), shell.n_facets)
        return shell

    def parameters(self) -> dict:
        return {"name": type(self).__name__, "margin": self.margin,
                "padding": self.padding}
