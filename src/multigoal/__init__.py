"""multigoal package: 多目标巡游规划策略."""

from .goals import (
	GoalRegion,
	EndEffectorNearTarget,
	RoundRobinSampler,
	UnionGoalRegion,
)
from .models import (
	PathSegment,
	PlanResult,
	WaypointIndex,
	Visitation,
	GoalApproach,
	Replacement,
	NewApproachAt,
	GoalApproachTable,
	ATSolution,
)
from .tsp import tsp_open_end
from .base import MultiGoalPlanner
from .shell_planner import ShellPathPlanner, ShellPlannerConfig
from .at2opt import AT2Opt, AT2OptConfig
from .greedy import GreedyUnionPlanner
from .metrics import TourMetrics, evaluate_tour
from .report import TourReportGenerator

__all__ = [
	"GoalRegion",
	"EndEffectorNearTarget",
	"RoundRobinSampler",
	"UnionGoalRegion",
	"PathSegment",
	"PlanResult",
	"WaypointIndex",
	"Visitation",
	"GoalApproach",
	"Replacement",
	"NewApproachAt",
	"GoalApproachTable",
	"ATSolution",
	"tsp_open_end",
	"MultiGoalPlanner",
	"ShellPathPlanner",
	"ShellPlannerConfig",
	"AT2Opt",
	"AT2OptConfig",
	"GreedyUnionPlanner",
	"TourMetrics",
	"evaluate_tour",
	"TourReportGenerator",
]
