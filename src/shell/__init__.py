"""shell package: 无碰撞 shell (凸包 / 球面) 及几何工具."""

from .base import (
	CollisionFreeShell,
	ShellBuilder,
	ShellPoint,
	ShellSpace,
	ShellWalkError,
)
from .convex_hull import ConvexHullShell, ConvexHullShellBuilder, Facet
from .sphere import SphereShell, PaddedSphereShellBuilder

__all__ = [
	"CollisionFreeShell",
	"ShellBuilder",
	"ShellPoint",
	"ShellSpace",
	"ShellWalkError",
	"ConvexHullShell",
	"ConvexHullShellBuilder",
	"Facet",
	"SphereShell",
	"PaddedSphereShellBuilder",
]
