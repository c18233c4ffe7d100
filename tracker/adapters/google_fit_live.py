"""Google Fit live adapter: fetches dataset:aggregate, then maps to canonical samples.

Each metric has a primary data source and alternatives. Sources are tried
in order; the first response that carries any data point wins. A source
that fails with a non-transient HTTP error is skipped; if every source
fails, the last error propagates.
"""

from datetime import datetime
from uuid import UUID

import httpx
import structlog

from shared.config import settings
from shared.metrics import relay_api_duration_seconds
from tracker.adapters.google_fit_mapper import GoogleFitMapper
from tracker.adapters.http_client import request_with_retry
from tracker.domain.models import MetricType, Sample

logger = structlog.get_logger()

DAY_MILLIS = 86_400_000

DATA_SOURCES: dict[MetricType, list[tuple[str, str]]] = {
    MetricType.STEPS: [
        (
            "com.google.step_count.delta",
            "derived:com.google.step_count.delta:com.google.android.gms:estimated_steps",
        ),
    ],
    MetricType.HEART_RATE: [
        (
            "com.google.heart_rate.bpm",
            "derived:com.google.heart_rate.bpm:com.google.android.gms:merge_heart_rate_bpm",
        ),
    ],
    MetricType.CALORIES: [
        (
            "com.google.calories.expended",
            "derived:com.google.calories.expended:com.google.android.gms:merge_calories_expended",
        ),
        (
            "com.google.calories.expended",
            "derived:com.google.calories.expended:com.google.android.gms:platform_calories_expended",
        ),
        (
            "com.google.calories.expended",
            "raw:com.google.calories.expended:com.google.android.gms:from_activities",
        ),
    ],
    MetricType.SLEEP: [
        (
            "com.google.sleep.segment",
            "derived:com.google.sleep.segment:com.google.android.gms:merged",
        ),
        (
            "com.google.sleep.segment",
            "raw:com.google.sleep.segment:com.google.android.gms:sleep_from_activity",
        ),
    ],
}


def _has_points(body: dict) -> bool:
    return any(
        ds.get("point") for bucket in body.get("bucket", []) for ds in bucket.get("dataset", [])
    )


class GoogleFitLiveAdapter:
    source_name = "google_fit"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._mapper = GoogleFitMapper()
        self._transport = transport

    async def fetch(self, metric_type: MetricType, start: datetime, end: datetime) -> dict:
        """Fetch daily buckets for one metric, falling back across data sources."""
        url = f"{settings.google_fit_base_url}/users/me/dataset:aggregate"
        headers = {"Authorization": f"Bearer {settings.google_fit_access_token}"}
        body: dict = {"bucket": []}
        last_error: httpx.HTTPStatusError | None = None

        async with httpx.AsyncClient(transport=self._transport) as client:
            for data_type, data_source in DATA_SOURCES[metric_type]:
                request = {
                    "aggregateBy": [{"dataTypeName": data_type, "dataSourceId": data_source}],
                    "bucketByTime": {"durationMillis": DAY_MILLIS},
                    "startTimeMillis": int(start.timestamp() * 1000),
                    "endTimeMillis": int(end.timestamp() * 1000),
                }
                try:
                    with relay_api_duration_seconds.labels(metric_type=metric_type).time():
                        resp = await request_with_retry(
                            client, "POST", url, headers=headers, json=request
                        )
                except httpx.HTTPStatusError as exc:
                    logger.warning(
                        "relay_source_failed",
                        metric_type=str(metric_type),
                        data_source=data_source,
                        status_code=exc.response.status_code,
                    )
                    last_error = exc
                    continue

                body = resp.json()
                if _has_points(body):
                    return body
                logger.info(
                    "relay_source_empty", metric_type=str(metric_type), data_source=data_source
                )

        if last_error is not None and not _has_points(body):
            raise last_error
        return body

    def parse(self, raw_response: dict, user_id: UUID, metric_type: MetricType) -> list[Sample]:
        return self._mapper.parse(raw_response, user_id, metric_type)
