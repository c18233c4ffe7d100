"""Sample validation: fixed inclusive range per metric type.

| metric     | min | max    |
|------------|-----|--------|
| steps      | 0   | 100000 |
| heart_rate | 30  | 250    |
| calories   | 0   | 10000  |
| sleep      | 0   | 24     |

Metric types without a policy pass unconditionally. Batch validation
reports every violation; callers reject the whole batch on any.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from numbers import Real
from typing import Any

from tracker.domain.models import MetricType

METRIC_RANGES: dict[str, tuple[float, float]] = {
    MetricType.STEPS: (0, 100_000),
    MetricType.HEART_RATE: (30, 250),
    MetricType.CALORIES: (0, 10_000),
    MetricType.SLEEP: (0, 24),
}


@dataclass
class SampleViolation:
    field: str
    rule: str
    reason: str
    value: Any
    index: int | None = None
    allowed: tuple[float, float] | None = None

    def as_dict(self) -> dict[str, Any]:
        body = {
            "field": self.field,
            "rule": self.rule,
            "reason": self.reason,
            "value": self.value if _is_number(self.value) else str(self.value),
        }
        if self.allowed is not None:
            body["allowed"] = list(self.allowed)
        if self.index is not None:
            body["index"] = self.index
        return body


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate(metric_type: str, value: Any) -> bool:
    """Return True if value is acceptable for the metric type."""
    bounds = METRIC_RANGES.get(str(metric_type))
    if bounds is None:
        return True
    if not _is_number(value):
        return False
    low, high = bounds
    return low <= value <= high


def check_value(metric_type: str, value: Any, index: int | None = None) -> SampleViolation | None:
    """Validate one value and describe the failure, naming metric and value."""
    if validate(metric_type, value):
        return None
    if not _is_number(value):
        return SampleViolation(str(metric_type), "numeric", "value_not_numeric", value, index)
    return SampleViolation(
        str(metric_type),
        "range",
        "value_out_of_range",
        value,
        index,
        allowed=METRIC_RANGES[str(metric_type)],
    )


def validate_batch(metric_type: str, values: Iterable[Any]) -> list[SampleViolation]:
    """Validate every value in a batch. Empty list means the whole batch is acceptable."""
    violations: list[SampleViolation] = []
    for i, value in enumerate(values):
        violation = check_value(metric_type, value, index=i)
        if violation is not None:
            violations.append(violation)
    return violations


def sleep_hours_from_stages(
    deep_minutes: float | None,
    light_minutes: float | None,
    rem_minutes: float | None,
) -> float:
    """Sleep duration in hours from stage minutes. Awake time is not sleep."""
    total = (deep_minutes or 0) + (light_minutes or 0) + (rem_minutes or 0)
    return total / 60
