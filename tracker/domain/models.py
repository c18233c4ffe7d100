"""Canonical domain model for the health tracker.

One naming convention (snake_case in Python, camelCase on the wire via
aliases) for every structure the core produces or consumes. Storage-layer
names are translated in the repository, never here.

Design principles:
- Samples and goals are immutable values; updates produce new copies
- Windows are naive wall-clock datetimes in the user's local calendar
- Empty input is a zeroed result, never an error
"""

import hashlib
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetricType(StrEnum):
    STEPS = "steps"
    HEART_RATE = "heart_rate"
    CALORIES = "calories"
    SLEEP = "sleep"


class GoalType(StrEnum):
    STEPS = "steps"
    HEART_RATE = "heart_rate"
    CALORIES = "calories"
    SLEEP = "sleep"
    # Composite: counted by the user, no backing metric
    WORKOUTS = "workouts"

    @property
    def metric_type(self) -> MetricType | None:
        try:
            return MetricType(self.value)
        except ValueError:
            return None


class TimeFrame(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class NotificationType(StrEnum):
    GOAL_ACHIEVED = "goal_achieved"
    GOAL_MISSED = "goal_missed"
    HEALTH_ALERT = "health_alert"
    INACTIVITY_REMINDER = "inactivity_reminder"
    GENERAL = "general"


class SampleSource(StrEnum):
    MANUAL = "manual"
    GOOGLE_FIT = "google_fit"


class CamelModel(BaseModel):
    """Base for structures returned to clients with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Sample(CamelModel):
    """One observation of one metric for one user."""

    id: UUID | None = None
    user_id: UUID
    metric_type: MetricType
    date: date
    time_of_day: time | None = None
    # steps/calories: count, heart_rate: bpm, sleep: hours
    value: float
    quality: str | None = None
    source: SampleSource = SampleSource.MANUAL
    # Set for relay samples only; re-syncs of the same day overwrite
    fingerprint: str | None = None

    @property
    def observed_at(self) -> datetime:
        return datetime.combine(self.date, self.time_of_day or time.min)

    @staticmethod
    def compute_fingerprint(
        source: SampleSource, user_id: UUID, metric_type: MetricType, day: date
    ) -> str:
        raw = f"{source.value}:{user_id}:{metric_type.value}:{day.isoformat()}"
        return hashlib.sha256(raw.encode()).hexdigest()


class Goal(CamelModel):
    """A user's target for one goal type over one time frame."""

    id: UUID | None = None
    user_id: UUID
    goal_type: GoalType
    target_value: float
    current_value: float = 0
    time_frame: TimeFrame = TimeFrame.DAILY
    is_completed: bool = False
    icon: str = "🎯"
    created_at: datetime | None = None


class Notification(CamelModel):
    id: UUID | None = None
    user_id: UUID
    title: str
    message: str
    notification_type: NotificationType
    timestamp: datetime
    is_read: bool = False


class PeriodWindow(CamelModel):
    """A resolved, inclusive [start, end] pair. Transient, never persisted."""

    start: datetime
    end: datetime
    period: str
    mode: Literal["rolling", "calendar"]

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


class HeartRateZones(CamelModel):
    resting: int = 0
    fat_burn: int = 0
    cardio: int = 0
    peak: int = 0


class Summary(CamelModel):
    """Reduced output of the aggregator for one metric over one window.

    Metric-specific fields stay None for other metrics and are dropped on
    serialization.
    """

    metric_type: MetricType
    window_start: datetime
    window_end: datetime
    entries: int = 0

    total_steps: int | float | None = None
    total_calories: int | float | None = None

    average_heart_rate: int | None = None
    min_heart_rate: int | float | None = None
    max_heart_rate: int | float | None = None
    heart_rate_zones: HeartRateZones | None = None

    average_sleep: float | None = None
    total_sleep_hours: float | None = None

    hourly_breakdown: dict[int, int | float] = Field(default_factory=dict)
    daily_breakdown: dict[str, int | float] = Field(default_factory=dict)


class WeeklyCalorieSummary(CamelModel):
    week_start: date
    week_end: date
    total_calories: int | float = 0
    # Always total / 7, regardless of how many days carry data
    daily_average: int = 0
    entries: int = 0
    daily_breakdown: dict[str, int | float] = Field(default_factory=dict)


class WeeklySleepSummary(CamelModel):
    week_start: date
    week_end: date
    average_sleep_duration: float = 0
    total_sleep_hours: float = 0
    # round(entries / 7 * 100)
    sleep_efficiency: int = 0
    entries: int = 0
    daily_breakdown: dict[str, int | float] = Field(default_factory=dict)


class TrendResult(CamelModel):
    metric_type: MetricType
    trend: str
    first_half_average: float = 0
    second_half_average: float = 0
    difference: float = 0
    data_points: int = 0


@dataclass(frozen=True)
class ProgressUpdate:
    """Outcome of one goal mutation."""

    goal: Goal
    previous_value: float
    progress_percentage: int
    completion_transitioned: bool
    # True when a goal_achieved notification must be emitted
    notify: bool
