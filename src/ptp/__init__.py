"""ptp package: 点到点规划能力."""

from .objective import (
	CostObjective,
	PathLengthObjective,
	ClearanceObjective,
	compute_path_length,
)
from .path_smoother import PathSmoother, dedupe_consecutive
from .base import PointToPointPlanner, PTPConfig
from .rrt import RRTConnectPlanner, plan_rrt_connect

__all__ = [
	"CostObjective",
	"PathLengthObjective",
	"ClearanceObjective",
	"compute_path_length",
	"PathSmoother",
	"dedupe_consecutive",
	"PointToPointPlanner",
	"PTPConfig",
	"RRTConnectPlanner",
	"plan_rrt_connect",
]
