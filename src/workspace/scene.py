"""
workspace/scene.py - 障碍物与场景管理

管理工作空间中的 AABB 障碍物集合（例如果树冠层的枝干块），
提供场景配置、序列化以及构建安全 shell 所需的角点集合。
"""

import json
import logging
from typing import Any, Dict, List, Optional

import numpy as np

from .models import Obstacle

logger = logging.getLogger(__name__)


class Scene:
    """工作空间场景管理

    Example:
        >>> scene = Scene()
        >>> scene.add_obstacle([-0.5, -0.5, 0.0], [0.5, 0.5, 2.0], name="trunk")
        >>> pts = scene.corner_points()   # (8 * n, 3)
    """

    def __init__(self) -> None:
        self._obstacles: List[Obstacle] = []

    @property
    def n_obstacles(self) -> int:
        return len(self._obstacles)

    def add_obstacle(
        self,
        min_point: Any,
        max_point: Any,
        name: str = "",
    ) -> Obstacle:
        """添加一个 AABB 障碍物

        Args:
            min_point: AABB 最小角点 [x, y, z]
            max_point: AABB 最大角点
            name: 障碍物名称

        Returns:
            创建的 Obstacle 实例
        """
        min_pt = np.array(min_point, dtype=np.float64)
        max_pt = np.array(max_point, dtype=np.float64)
        if min_pt.shape != (3,):
            raise ValueError(f"障碍物角点必须是 3D, 得到 shape={min_pt.shape}")

        if not name:
            name = f"obstacle_{self.n_obstacles}"

        obs = Obstacle(min_point=min_pt, max_point=max_pt, name=name)
        self._obstacles.append(obs)
        logger.debug("添加障碍物 '%s': min=%s, max=%s", name,
                     min_pt.tolist(), max_pt.tolist())
        return obs

    def remove_obstacle(self, name: str) -> bool:
        """按名称移除障碍物，返回是否找到并移除"""
        for i, obs in enumerate(self._obstacles):
            if obs.name == name:
                self._obstacles.pop(i)
                return True
        return False

    def clear(self) -> None:
        self._obstacles.clear()

    def get_obstacles(self) -> List[Obstacle]:
        return list(self._obstacles)

    def get_obstacle(self, name: str) -> Optional[Obstacle]:
        for obs in self._obstacles:
            if obs.name == name:
                return obs
        return None

    def corner_points(self) -> np.ndarray:
        """所有障碍物的角点, shape (8 * n_obstacles, 3)"""
        if not self._obstacles:
            return np.empty((0, 3), dtype=np.float64)
        return np.vstack([obs.corners() for obs in self._obstacles])

    def bounds(self) -> Optional[tuple]:
        """所有障碍物的整体包围盒 (min, max)，空场景返回 None"""
        if not self._obstacles:
            return None
        lo = np.min([o.min_point for o in self._obstacles], axis=0)
        hi = np.max([o.max_point for o in self._obstacles], axis=0)
        return lo, hi

    def to_dict_list(self) -> List[Dict[str, Any]]:
        return [obs.to_dict() for obs in self._obstacles]

    def to_json(self, filepath: str) -> None:
        """保存场景到 JSON 文件"""
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump({'obstacles': self.to_dict_list()}, f,
                      indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, filepath: str) -> 'Scene':
        """从 JSON 文件加载场景"""
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scene':
        """从字典加载场景

        Args:
            data: {'obstacles': [{'min': [...], 'max': [...], 'name': ...}, ...]}
        """
        scene = cls()
        for item in data.get('obstacles', []):
            scene.add_obstacle(
                min_point=item['min'],
                max_point=item['max'],
                name=item.get('name', ''),
            )
        return scene

    def __repr__(self) -> str:
        return f"Scene(n_obstacles={self.n_obstacles})"
