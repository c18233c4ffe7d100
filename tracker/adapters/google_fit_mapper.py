"""Google Fit dataset:aggregate → canonical Sample mapper.

Inbound anti-corruption layer. The response holds one bucket per day
(bucketByTime = 24h); each bucket yields at most one sample:

- steps, calories: sum of point values
- heart_rate: mean of point values (value[0] of each point is the average)
- sleep: summed duration of non-awake segments, in hours

Bucket start times are read in the configured local calendar
(settings.timezone). Days whose value is zero are dropped.
"""

from datetime import datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from shared.config import settings
from tracker.domain.aggregation import round_half_up
from tracker.domain.models import MetricType, Sample, SampleSource

# com.google.sleep.segment intVal for "awake"
SLEEP_STAGE_AWAKE = 1

NANOS_PER_HOUR = 3_600 * 1_000_000_000


def _point_value(point: dict[str, Any]) -> float:
    """First value of a point; intVal preferred over fpVal. Missing → 0."""
    values = point.get("value") or []
    if not values:
        return 0
    first = values[0]
    if "intVal" in first:
        return float(first["intVal"])
    if "fpVal" in first:
        return float(first["fpVal"])
    return 0


def _sleep_hours(points: list[dict[str, Any]]) -> float:
    total_nanos = 0
    for point in points:
        values = point.get("value") or []
        stage = values[0].get("intVal") if values else None
        if not stage or stage == SLEEP_STAGE_AWAKE:
            continue
        total_nanos += int(point["endTimeNanos"]) - int(point["startTimeNanos"])
    return total_nanos / NANOS_PER_HOUR


def _bucket_value(bucket: dict[str, Any], metric_type: MetricType) -> float:
    points = [p for ds in bucket.get("dataset", []) for p in ds.get("point", [])]
    if not points:
        return 0
    if metric_type == MetricType.SLEEP:
        return round_half_up(_sleep_hours(points), 2)
    values = [_point_value(p) for p in points]
    if metric_type == MetricType.HEART_RATE:
        return round_half_up(sum(values) / len(values))
    return round_half_up(sum(values))


class GoogleFitMapper:
    source_name = "google_fit"

    def parse(
        self, raw_response: dict[str, Any], user_id: UUID, metric_type: MetricType
    ) -> list[Sample]:
        """Parse an aggregate response into one sample per non-empty day.

        Raises ValueError/KeyError/TypeError on a structurally broken payload.
        """
        buckets = raw_response.get("bucket", [])
        if not isinstance(buckets, list):
            raise ValueError("bucket must be a list")

        tz = ZoneInfo(settings.timezone)
        results: list[Sample] = []
        for bucket in buckets:
            day = datetime.fromtimestamp(int(bucket["startTimeMillis"]) / 1000, tz=tz).date()
            value = _bucket_value(bucket, metric_type)
            if value <= 0:
                continue
            results.append(
                Sample(
                    user_id=user_id,
                    metric_type=metric_type,
                    date=day,
                    value=value,
                    source=SampleSource.GOOGLE_FIT,
                    fingerprint=Sample.compute_fingerprint(
                        SampleSource.GOOGLE_FIT, user_id, metric_type, day
                    ),
                )
            )
        return results
