from __future__ import annotations

from capacityplan.core.allocation import apply_work, resolve_range
from capacityplan.core.errors import CapacityPlanError, InvalidDateError, InvalidQuantityError, InvalidRangeError
from capacityplan.core.evaluate import evaluate_new_work
from capacityplan.core.horizon import at_risk_weeks, build_horizon_snapshot, compute_snapshot, recompute_snapshot
from capacityplan.core.models import (
    AllocationMode,
    EvaluateResult,
    ExposureLevel,
    HorizonOptions,
    HorizonSnapshot,
    NewWorkInput,
    TeamCapacityInput,
    WeekBucket,
    WorkItem,
)

__all__ = [
	"apply_work",
	"resolve_range",
	"evaluate_new_work",
	"at_risk_weeks",
	"build_horizon_snapshot",
	"compute_snapshot",
	"recompute_snapshot",
	"CapacityPlanError",
	"InvalidDateError",
	"InvalidQuantityError",
	"InvalidRangeError",
	"AllocationMode",
	"EvaluateResult",
	"ExposureLevel",
	"HorizonOptions",
	"HorizonSnapshot",
	"NewWorkInput",
	"TeamCapacityInput",
	"WeekBucket",
	"WorkItem",
]
