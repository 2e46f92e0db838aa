"""workspace package: 障碍物场景、末端执行器模型与碰撞检测."""

from .models import Obstacle, point_aabb_distance
from .scene import Scene
from .robot import PointRobot
from .collision import CollisionChecker

__all__ = [
	"Obstacle",
	"point_aabb_distance",
	"Scene",
	"PointRobot",
	"CollisionChecker",
]
