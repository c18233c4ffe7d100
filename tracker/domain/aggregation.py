"""Aggregator: reduce samples of one metric over one window into a Summary.

All functions are pure. Samples outside the window or of another metric
type are ignored. An empty selection yields a zeroed summary, never an
error.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from tracker.domain.models import (
    HeartRateZones,
    MetricType,
    PeriodWindow,
    Sample,
    Summary,
    WeeklyCalorieSummary,
    WeeklySleepSummary,
)

# Inclusive upper bounds; anything above the last bound is "peak"
RESTING_MAX = 60
FAT_BURN_MAX = 70
CARDIO_MAX = 85


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half away from zero for positives, unlike builtin round()."""
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _num(value: float) -> int | float:
    """Render integral floats as ints so counts serialize as 16000, not 16000.0."""
    return int(value) if float(value).is_integer() else value


def select(samples: Iterable[Sample], metric_type: str, window: PeriodWindow) -> list[Sample]:
    """Samples of the metric type whose instant falls inside the window."""
    return [
        s for s in samples if s.metric_type == metric_type and window.contains(s.observed_at)
    ]


def hourly_breakdown(samples: Iterable[Sample]) -> dict[int, int | float]:
    """Sum values per hour of day. Samples without a time of day are skipped."""
    buckets: dict[int, float] = defaultdict(float)
    for s in samples:
        if s.time_of_day is None:
            continue
        buckets[s.time_of_day.hour] += s.value or 0
    return {hour: _num(total) for hour, total in sorted(buckets.items())}


def daily_breakdown(samples: Iterable[Sample]) -> dict[str, int | float]:
    """Sum values per calendar date, keyed by ISO date, in date order."""
    buckets: dict[str, float] = defaultdict(float)
    for s in samples:
        buckets[s.date.isoformat()] += s.value or 0
    return {day: _num(total) for day, total in sorted(buckets.items())}


def daily_series(samples: Iterable[Sample], metric_type: str) -> list[float]:
    """Ordered per-day values for trend analysis.

    Additive metrics use per-day totals; heart rate uses per-day means.
    """
    if metric_type != MetricType.HEART_RATE:
        return [float(v) for v in daily_breakdown(samples).values()]
    per_day: dict[str, list[float]] = defaultdict(list)
    for s in samples:
        per_day[s.date.isoformat()].append(s.value or 0)
    return [sum(vals) / len(vals) for _, vals in sorted(per_day.items())]


def heart_rate_zones(values: Iterable[float]) -> HeartRateZones:
    """Count readings per zone. Boundary values belong to the lower zone."""
    counts = {"resting": 0, "fat_burn": 0, "cardio": 0, "peak": 0}
    for v in values:
        if v <= RESTING_MAX:
            counts["resting"] += 1
        elif v <= FAT_BURN_MAX:
            counts["fat_burn"] += 1
        elif v <= CARDIO_MAX:
            counts["cardio"] += 1
        else:
            counts["peak"] += 1
    return HeartRateZones(**counts)


def aggregate(samples: Iterable[Sample], metric_type: str, window: PeriodWindow) -> Summary:
    """Reduce samples of one metric type over a window into a Summary."""
    metric_type = MetricType(metric_type)
    matched = select(samples, metric_type, window)
    values = [s.value or 0 for s in matched]
    total = sum(values)

    fields: dict = {
        "metric_type": metric_type,
        "window_start": window.start,
        "window_end": window.end,
        "entries": len(matched),
        "hourly_breakdown": hourly_breakdown(matched),
        "daily_breakdown": daily_breakdown(matched),
    }

    if metric_type == MetricType.STEPS:
        fields["total_steps"] = _num(total)
    elif metric_type == MetricType.CALORIES:
        fields["total_calories"] = _num(total)
    elif metric_type == MetricType.HEART_RATE:
        fields["average_heart_rate"] = (
            int(round_half_up(total / len(values))) if values else 0
        )
        fields["min_heart_rate"] = _num(min(values)) if values else 0
        fields["max_heart_rate"] = _num(max(values)) if values else 0
        fields["heart_rate_zones"] = heart_rate_zones(values)
    elif metric_type == MetricType.SLEEP:
        fields["average_sleep"] = round_half_up(total / len(values), 2) if values else 0
        fields["total_sleep_hours"] = round_half_up(total, 2)

    return Summary(**fields)


def weekly_calorie_summary(samples: Iterable[Sample], window: PeriodWindow) -> WeeklyCalorieSummary:
    """Calorie totals for a calendar week.

    daily_average divides by 7 even when fewer days carry data.
    """
    matched = select(samples, MetricType.CALORIES, window)
    total = sum(s.value or 0 for s in matched)
    return WeeklyCalorieSummary(
        week_start=window.start_date,
        week_end=window.end_date,
        total_calories=_num(total),
        daily_average=int(round_half_up(total / 7)),
        entries=len(matched),
        daily_breakdown=daily_breakdown(matched),
    )


def weekly_sleep_summary(samples: Iterable[Sample], window: PeriodWindow) -> WeeklySleepSummary:
    """Sleep totals for a calendar week.

    sleep_efficiency counts entries against 7 nights; two records on one
    night count twice.
    """
    matched = select(samples, MetricType.SLEEP, window)
    total = sum(s.value or 0 for s in matched)
    return WeeklySleepSummary(
        week_start=window.start_date,
        week_end=window.end_date,
        average_sleep_duration=round_half_up(total / len(matched), 2) if matched else 0,
        total_sleep_hours=round_half_up(total, 2),
        sleep_efficiency=int(round_half_up(len(matched) / 7 * 100)),
        entries=len(matched),
        daily_breakdown=daily_breakdown(matched),
    )


def goal_metric_value(samples: Iterable[Sample], metric_type: str, window: PeriodWindow) -> float:
    """The value an automatic goal update assigns for a metric over a window.

    Totals for steps, calories and sleep hours; the mean for heart rate.
    """
    summary = aggregate(samples, metric_type, window)
    if summary.metric_type == MetricType.STEPS:
        return float(summary.total_steps)
    if summary.metric_type == MetricType.CALORIES:
        return float(summary.total_calories)
    if summary.metric_type == MetricType.SLEEP:
        return float(summary.total_sleep_hours)
    return float(summary.average_heart_rate)
