"""
utils/seed.py - 随机种子管理

统一管理可复现性种子。每次规划 (每个实验 run) 持有自己的 Generator,
子组件 (点到点规划器 / 2-opt / 出口优化) 通过 derive_seed 派生独立种子。
"""

import time
from typing import Optional, Union

import numpy as np


def make_seed(seed: int = 0) -> int:
    """如果 seed == 0, 用当前时间戳生成; 否则原样返回."""
    if seed == 0:
        return int(time.time()) % (2**31)
    return seed


def make_rng(
    seed: Union[int, np.random.Generator, None] = 0,
) -> np.random.Generator:
    """返回 numpy Generator.

    已经是 Generator 时原样返回 (调用方共享同一随机流);
    None 或 0 时自动分配种子.
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(make_seed(seed or 0))


def derive_seed(seed: int, *keys: int) -> int:
    """由父种子和整数键派生子种子 (同样输入总得到同样输出)."""
    ss = np.random.SeedSequence([int(seed)] + [int(k) for k in keys])
    return int(ss.generate_state(1)[0] % (2**31 - 1)) + 1
