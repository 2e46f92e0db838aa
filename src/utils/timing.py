"""
utils/timing.py - 阶段计时器与截止时间

Timer    : 记录规划各阶段耗时
Deadline : 墙钟截止时间, 在循环边界处检查 (没有异步中断)
"""

import math
import time
from contextlib import contextmanager
from typing import Optional


class Timer:
    """阶段计时器，用于精确记录规划各阶段耗时。

    同名阶段多次进入时耗时累加 (例如每个目标的 approach 规划)。
    """

    def __init__(self):
        self.records: dict[str, float] = {}

    @contextmanager
    def phase(self, name: str):
        """记录 name 阶段的耗时 (秒)."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt = time.perf_counter() - t0
            self.records[name] = self.records.get(name, 0.0) + dt

    @property
    def total(self) -> float:
        return sum(self.records.values())

    def to_dict(self) -> dict:
        return {**self.records, "total": self.total}


class Deadline:
    """墙钟截止时间

    Args:
        budget: 预算秒数; None 表示无限

    Example:
        >>> deadline = Deadline(10.0)
        >>> while not deadline.expired():
        ...     improve_once()
    """

    def __init__(self, budget: Optional[float]) -> None:
        self.budget = budget
        self._t0 = time.perf_counter()

    def expired(self) -> bool:
        if self.budget is None:
            return False
        return time.perf_counter() - self._t0 >= self.budget

    def elapsed(self) -> float:
        return time.perf_counter() - self._t0

    def remaining(self) -> float:
        if self.budget is None:
            return math.inf
        return max(0.0, self.budget - self.elapsed())

    def __repr__(self) -> str:
        return f"Deadline(budget={self.budget}, elapsed={self.elapsed():.3f})"
