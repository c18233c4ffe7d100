"""Trend classifier: compare the two halves of an ordered daily series."""

from collections.abc import Sequence
from dataclasses import dataclass

from shared.exceptions import ComputationError
from tracker.domain.aggregation import round_half_up
from tracker.domain.models import MetricType, TrendResult

INSUFFICIENT_DATA = "insufficient-data"
STABLE = "stable"


@dataclass(frozen=True)
class TrendPolicy:
    threshold: float
    up: str
    down: str
    # Decimal places kept on reported averages
    ndigits: int


TREND_POLICIES: dict[str, TrendPolicy] = {
    MetricType.STEPS: TrendPolicy(50, "improving", "declining", 0),
    MetricType.CALORIES: TrendPolicy(50, "increasing", "decreasing", 0),
    MetricType.SLEEP: TrendPolicy(0.1, "improving", "declining", 2),
    MetricType.HEART_RATE: TrendPolicy(1, "increasing", "decreasing", 2),
}


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _rounded(value: float, ndigits: int) -> float:
    result = round_half_up(value, ndigits)
    return int(result) if ndigits == 0 else result


def classify_trend(daily_values: Sequence[float], metric_type: str) -> TrendResult:
    """Classify the change between the first and second half of a daily series.

    The series splits at floor(n/2); the difference is second minus first.
    A difference whose magnitude is below the metric's threshold is stable.
    """
    metric_type = MetricType(metric_type)
    n = len(daily_values)
    if n < 2:
        return TrendResult(metric_type=metric_type, trend=INSUFFICIENT_DATA, data_points=n)

    policy = TREND_POLICIES.get(metric_type)
    if policy is None:
        raise ComputationError(f"No trend policy for metric '{metric_type}'")
    midpoint = n // 2
    first = _mean(daily_values[:midpoint])
    second = _mean(daily_values[midpoint:])
    difference = second - first

    if abs(difference) < policy.threshold:
        trend = STABLE
    elif difference > 0:
        trend = policy.up
    else:
        trend = policy.down

    return TrendResult(
        metric_type=metric_type,
        trend=trend,
        first_half_average=_rounded(first, policy.ndigits),
        second_half_average=_rounded(second, policy.ndigits),
        difference=_rounded(difference, policy.ndigits),
        data_points=n,
    )
