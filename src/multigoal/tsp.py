"""
multigoal/tsp.py - 开放路径 TSP (固定起点, 终点自由)

tsp_open_end(first_cost, cost, n):
    n <= EXACT_LIMIT 时用 Held-Karp 动态规划求精确解,
    否则最近邻构造 + 开放路径 2-opt 改进。

代价由回调给出: first_cost(i) 为起点到 i, cost(i, j) 为 i 到 j。
"""

import logging
from typing import Callable, List, Sequence

import numpy as np

logger = logging.getLogger(__name__)

EXACT_LIMIT = 9


def open_tour_cost(order: Sequence[int], first: np.ndarray, dist: np.ndarray) -> float:
    if not order:
        return 0.0
    total = float(first[order[0]])
    for k in range(len(order) - 1):
        total += float(dist[order[k], order[k + 1]])
    return total


def held_karp_open(first: np.ndarray, dist: np.ndarray) -> List[int]:
    """Held-Karp: dp[mask, last] = 从起点出发访问 mask 且停在 last 的最小代价"""
    n = len(first)
    full = (1 << n) - 1
    dp = np.full((1 << n, n), np.inf)
    parent = np.full((1 << n, n), -1, dtype=np.int64)
    for i in range(n):
        dp[1 << i, i] = first[i]

    for mask in range(1, full + 1):
        for last in range(n):
            if not (mask >> last) & 1 or not np.isfinite(dp[mask, last]):
                continue
            base = dp[mask, last]
            for nxt in range(n):
                if (mask >> nxt) & 1:
                    continue
                nm = mask | (1 << nxt)
                c = base + dist[last, nxt]
                if c < dp[nm, nxt]:
                    dp[nm, nxt] = c
                    parent[nm, nxt] = last

    last = int(np.argmin(dp[full]))
    order = []
    mask = full
    while last >= 0:
        order.append(last)
        prev = int(parent[mask, last])
        mask &= ~(1 << last)
        last = prev
    order.reverse()
    return order


def nearest_neighbour_open(first: np.ndarray, dist: np.ndarray) -> List[int]:
    n = len(first)
    left = set(range(n))
    cur = int(np.argmin(first))
    order = [cur]
    left.remove(cur)
    while left:
        cur = min(left, key=lambda j: (dist[cur, j], j))
        order.append(cur)
        left.remove(cur)
    return order


def two_opt_open(order: List[int], first: np.ndarray, dist: np.ndarray,
                 max_passes: int = 200) -> List[int]:
    """开放路径 2-opt: 反转任意子序列 (包括首段), 直到没有改进"""
    best = list(order)
    best_cost = open_tour_cost(best, first, dist)
    n = len(best)
    for _ in range(max_passes):
        improved = False
        for i in range(0, n - 1):
            for k in range(i + 1, n):
                cand = best[:i] + best[i:k + 1][::-1] + best[k + 1:]
                c = open_tour_cost(cand, first, dist)
                if c < best_cost - 1e-12:
                    best, best_cost = cand, c
                    improved = True
        if not improved:
            break
    return best


def tsp_open_end(first_cost: Callable[[int], float],
                 cost: Callable[[int, int], float], n: int) -> List[int]:
    """固定起点、终点自由的访问顺序

    Returns:
        0..n-1 的一个排列
    """
    if n == 0:
        return []
    first = np.array([first_cost(i) for i in range(n)], dtype=np.float64)
    dist = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(n):
            if i != j:
                dist[i, j] = cost(i, j)

    if n <= EXACT_LIMIT:
        order = held_karp_open(first, dist)
    else:
        order = two_opt_open(nearest_neighbour_open(first, dist), first, dist)
    logger.debug("TSP (n=%d): 代价 %.4f", n, open_tour_cost(order, first, dist))
    return order
