from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from capacityplan.core.errors import CapacityPlanError, InvalidQuantityError


class AllocationMode(str, Enum):
    EVEN = "even"
    FILL_CAPACITY = "fill_capacity"

    @classmethod
    def parse(cls, value: str | AllocationMode | None) -> AllocationMode:
        """Missing values default to fill_capacity."""
        if isinstance(value, AllocationMode):
            return value
        s = str(value or "").strip().lower()
        if not s:
            return cls.FILL_CAPACITY
        try:
            return cls(s)
        except ValueError:
            raise CapacityPlanError(f"Unknown allocation mode: {value!r}") from None


class ExposureLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_utilization(cls, pct: float) -> ExposureLevel:
        if pct < 80:
            return cls.LOW
        if pct <= 90:
            return cls.MEDIUM
        return cls.HIGH

    @property
    def label(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class WeekBucket:
    """One Monday..Sunday week of the horizon."""

    start_date: date
    end_date: date
    label: str
    capacity_hours: float
    committed_hours: float = 0.0

    def __post_init__(self) -> None:
        if self.end_date != self.start_date + timedelta(days=6):
            raise ValueError(f"week bucket must span 7 days: {self.start_date} -> {self.end_date}")
        if self.committed_hours < 0:
            raise InvalidQuantityError(f"committed hours cannot be negative: {self.committed_hours}")

    @property
    def start_ymd(self) -> str:
        return self.start_date.isoformat()

    @property
    def end_ymd(self) -> str:
        return self.end_date.isoformat()

    @property
    def key(self) -> str:
        return self.start_ymd

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def utilization_pct(self) -> float:
        # Unrounded; zero-capacity weeks contribute 0.
        if self.capacity_hours <= 0:
            return 0.0
        return self.committed_hours / self.capacity_hours * 100


@dataclass(frozen=True)
class TeamMember:
    member_id: str
    name: str | None
    hours_per_cycle: float


@dataclass(frozen=True)
class TeamCapacityInput:
    hours_per_cycle: tuple[float, ...]
    buffer_hours_per_week: float = 0.0

    @classmethod
    def from_members(cls, members: list[TeamMember], *, buffer_hours_per_week: float = 0.0) -> TeamCapacityInput:
        return cls(
            hours_per_cycle=tuple(m.hours_per_cycle for m in members),
            buffer_hours_per_week=buffer_hours_per_week,
        )


@dataclass(frozen=True)
class WorkItem:
    item_id: str
    name: str
    estimated_hours: float
    start_date: date
    deadline: date | None = None
    allocation_mode: AllocationMode = AllocationMode.FILL_CAPACITY


@dataclass(frozen=True)
class NewWorkInput:
    """Hypothetical work item evaluated against a horizon (not persisted)."""

    name: str
    total_hours: float
    start_date: date
    deadline: date | None = None
    allocation_mode: AllocationMode = AllocationMode.FILL_CAPACITY


@dataclass(frozen=True)
class HorizonOptions:
    reference_date: date | None = None
    week_count: int = 4
    max_week_count: int = 52
    locale: str = "en-GB"


@dataclass(frozen=True)
class HorizonSnapshot:
    week_buckets: tuple[WeekBucket, ...]
    total_committed_hours: int
    total_capacity_hours: int  # sum of bucket capacity in this view
    cycle_capacity_hours: int  # fixed 4-week cycle total
    overall_utilization_pct: int
    max_utilization_pct: int
    exposure_level: ExposureLevel
    weeks_equivalent: float
    buffer_hours_per_week: float
    weekly_capacity_hours: float

    @property
    def horizon_start(self) -> date | None:
        return self.week_buckets[0].start_date if self.week_buckets else None

    @property
    def horizon_end(self) -> date | None:
        return self.week_buckets[-1].end_date if self.week_buckets else None

    @property
    def horizon_hint(self) -> str:
        if not self.week_buckets:
            return ""
        return f"{self.week_buckets[0].start_ymd} → {self.week_buckets[-1].end_ymd}"


@dataclass(frozen=True)
class EvaluateDeltas:
    total_committed_hours: int
    max_utilization_pct: int
    overall_utilization_pct: int


@dataclass(frozen=True)
class AppliedRange:
    start_idx: int
    end_idx: int
    weeks_count: int
    per_week_hours: float | None
    week_range_label: str
    allocation_mode: AllocationMode


@dataclass(frozen=True)
class EvaluateResult:
    before: HorizonSnapshot
    after: HorizonSnapshot
    deltas: EvaluateDeltas
    applied: AppliedRange
