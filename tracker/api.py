"""FastAPI router for the health tracker.

All routes are scoped to /api/v1/users/{user_id}; the caller is assumed
authenticated upstream. Responses are {"data": ..., "meta": ...}.

Samples:
- POST   /samples/{metric}                 single entry
- POST   /samples/{metric}/bulk            all-or-nothing batch
- GET    /samples/{metric}?period=&limit=&start=&end=  newest first
- GET|PATCH|DELETE /samples/{metric}/{sample_id}

Metrics:
- GET /metrics/{metric}/report?period=     summary, breakdown, trend, goals
- GET /metrics/{metric}/daily?date=        calendar day
- GET /metrics/{metric}/weekly?date=&start=  calendar week

Goals, insights, alerts, notifications and the Google Fit relay follow.
"""

import datetime as dt
import time
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.database import get_session
from shared.exceptions import NotFoundError, UnsupportedMetricError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import request_id_var
from tracker import pipeline, service
from tracker.domain.models import GoalType, MetricType, TimeFrame
from tracker.domain.store import HealthStore
from tracker.repository import HealthRepository

router = APIRouter(prefix="/api/v1/users/{user_id}")


async def get_store(session: AsyncSession = Depends(get_session)) -> HealthStore:
    return HealthRepository(session)


# --- Request models ---


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class SampleIn(RequestModel):
    date: dt.date
    time_of_day: dt.time | None = None
    value: float | None = None
    quality: str | None = Field(None, max_length=32)
    deep_minutes: float | None = Field(None, ge=0)
    light_minutes: float | None = Field(None, ge=0)
    rem_minutes: float | None = Field(None, ge=0)

    def to_raw(self) -> pipeline.RawSample:
        return pipeline.RawSample(**self.model_dump())


class BulkSamplesIn(RequestModel):
    entries: list[SampleIn]


class SampleUpdate(RequestModel):
    date: dt.date | None = None
    time_of_day: dt.time | None = None
    value: float | None = None
    quality: str | None = Field(None, max_length=32)


class GoalIn(RequestModel):
    goal_type: GoalType
    target_value: float
    time_frame: TimeFrame = TimeFrame.DAILY
    icon: str | None = Field(None, max_length=16)
    current_value: float = 0


class GoalUpdate(RequestModel):
    target_value: float | None = None
    time_frame: TimeFrame | None = None
    icon: str | None = Field(None, max_length=16)


class BulkGoalsIn(RequestModel):
    goals: list[GoalIn]


class ProgressIn(RequestModel):
    current_value: float


class AlertCheckIn(RequestModel):
    date: dt.date | None = None
    steps: float | None = None
    heart_rate: float | None = None
    calories: float | None = None


# --- Response helpers ---


def _meta() -> dict[str, Any]:
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _observe(endpoint: str, method: str, status_code: int, start_time: float) -> None:
    api_requests_total.labels(endpoint=endpoint, method=method, status_code=str(status_code)).inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start_time)


def _metric(metric: str) -> MetricType:
    try:
        return MetricType(metric)
    except ValueError:
        raise UnsupportedMetricError(metric, [m.value for m in MetricType]) from None


# --- Samples ---


@router.post("/samples/{metric}", status_code=201)
async def create_sample(
    user_id: UUID, metric: str, body: SampleIn, store: HealthStore = Depends(get_store)
):
    start_time = time.monotonic()
    [sample] = await pipeline.ingest_samples(store, user_id, _metric(metric), [body.to_raw()])
    _observe("samples_create", "POST", 201, start_time)
    return {"data": service.dump(sample), "meta": _meta()}


@router.post("/samples/{metric}/bulk", status_code=201)
async def create_samples_bulk(
    user_id: UUID, metric: str, body: BulkSamplesIn, store: HealthStore = Depends(get_store)
):
    """Insert every entry or none: one invalid value rejects the whole batch."""
    start_time = time.monotonic()
    samples = await pipeline.ingest_samples(
        store, user_id, _metric(metric), [e.to_raw() for e in body.entries]
    )
    _observe("samples_bulk", "POST", 201, start_time)
    return {
        "data": {"inserted": len(samples), "samples": [service.dump(s) for s in samples]},
        "meta": _meta(),
    }


@router.get("/samples/{metric}")
async def list_samples(
    user_id: UUID,
    metric: str,
    store: HealthStore = Depends(get_store),
    period: str = Query("daily"),
    limit: int = Query(settings.default_sample_limit, ge=1, le=settings.max_sample_limit),
    start: date | None = Query(None),
    end: date | None = Query(None),
):
    """Newest first. An explicit start (and optional end) overrides the rolling period."""
    start_time = time.monotonic()
    window, samples = await service.list_samples(
        store, user_id, _metric(metric), period, limit, start=start, end=end
    )
    _observe("samples_list", "GET", 200, start_time)
    return {
        "data": [service.dump(s) for s in samples],
        "meta": {**_meta(), "window": service.dump(window), "limit": limit},
    }


async def _owned_sample(store: HealthStore, user_id: UUID, metric: str, sample_id: UUID):
    metric_type = _metric(metric)
    sample = await service.get_sample(store, user_id, sample_id)
    if sample.metric_type != metric_type:
        raise NotFoundError(f"Sample {sample_id} not found")
    return sample


@router.get("/samples/{metric}/{sample_id}")
async def get_sample(
    user_id: UUID, metric: str, sample_id: UUID, store: HealthStore = Depends(get_store)
):
    sample = await _owned_sample(store, user_id, metric, sample_id)
    return {"data": service.dump(sample), "meta": _meta()}


@router.patch("/samples/{metric}/{sample_id}")
async def update_sample(
    user_id: UUID,
    metric: str,
    sample_id: UUID,
    body: SampleUpdate,
    store: HealthStore = Depends(get_store),
):
    await _owned_sample(store, user_id, metric, sample_id)
    changes = body.model_dump(exclude_none=True)
    sample = await service.update_sample(store, user_id, sample_id, changes)
    return {"data": service.dump(sample), "meta": _meta()}


@router.delete("/samples/{metric}/{sample_id}", status_code=204)
async def delete_sample(
    user_id: UUID, metric: str, sample_id: UUID, store: HealthStore = Depends(get_store)
):
    await _owned_sample(store, user_id, metric, sample_id)
    await service.delete_sample(store, user_id, sample_id)
    return Response(status_code=204)


# --- Metric summaries ---


@router.get("/metrics/{metric}/report")
async def metric_report(
    user_id: UUID,
    metric: str,
    store: HealthStore = Depends(get_store),
    period: str = Query("weekly"),
):
    """Rolling-window summary with breakdowns, trend and goal progress."""
    start_time = time.monotonic()
    report = await service.period_report(store, user_id, _metric(metric), period)
    _observe("metric_report", "GET", 200, start_time)
    return {"data": report, "meta": _meta()}


@router.get("/metrics/{metric}/daily")
async def metric_daily(
    user_id: UUID,
    metric: str,
    store: HealthStore = Depends(get_store),
    day: date | None = Query(None, alias="date"),
):
    start_time = time.monotonic()
    target = day or service.local_now().date()
    summary = await service.daily_summary(store, user_id, _metric(metric), target)
    _observe("metric_daily", "GET", 200, start_time)
    return {"data": service.dump(summary), "meta": _meta()}


@router.get("/metrics/{metric}/weekly")
async def metric_weekly(
    user_id: UUID,
    metric: str,
    store: HealthStore = Depends(get_store),
    day: date | None = Query(None, alias="date"),
    start: date | None = Query(None),
):
    """Calendar week from the most recent Sunday, or from an explicit start."""
    start_time = time.monotonic()
    reference = day or service.local_now().date()
    summary = await service.weekly_summary(store, user_id, _metric(metric), reference, start)
    _observe("metric_weekly", "GET", 200, start_time)
    return {"data": service.dump(summary), "meta": _meta()}


# --- Goals ---


@router.get("/goals")
async def list_goals(
    user_id: UUID,
    store: HealthStore = Depends(get_store),
    goal_type: GoalType | None = Query(None, alias="goalType"),
):
    goals = await service.list_goals(store, user_id, goal_type)
    return {"data": [service.goal_view(g) for g in goals], "meta": _meta()}


@router.post("/goals", status_code=201)
async def create_goal(user_id: UUID, body: GoalIn, store: HealthStore = Depends(get_store)):
    start_time = time.monotonic()
    goal = await service.create_goal(
        store,
        user_id,
        body.goal_type,
        body.target_value,
        body.time_frame,
        body.icon,
        body.current_value,
    )
    _observe("goals_create", "POST", 201, start_time)
    return {"data": service.goal_view(goal), "meta": _meta()}


@router.put("/goals/bulk")
async def bulk_upsert_goals(
    user_id: UUID, body: BulkGoalsIn, store: HealthStore = Depends(get_store)
):
    goals = await service.bulk_upsert_goals(
        store, user_id, [g.model_dump(exclude_unset=True) for g in body.goals]
    )
    return {"data": [service.goal_view(g) for g in goals], "meta": _meta()}


@router.get("/goals/stats")
async def goal_stats(user_id: UUID, store: HealthStore = Depends(get_store)):
    stats = await service.goal_statistics(store, user_id)
    return {
        "data": {
            "totalGoals": stats["total_goals"],
            "completedGoals": stats["completed_goals"],
            "goalsByType": stats["goals_by_type"],
        },
        "meta": _meta(),
    }


@router.post("/goals/progress/{goal_type}")
async def bulk_goal_progress(
    user_id: UUID,
    goal_type: GoalType,
    body: ProgressIn,
    store: HealthStore = Depends(get_store),
):
    """Apply one value to every incomplete goal of a type."""
    start_time = time.monotonic()
    updates = await service.bulk_goal_progress(store, user_id, goal_type, body.current_value)
    _observe("goals_bulk_progress", "POST", 200, start_time)
    return {"data": [service.progress_view(u) for u in updates], "meta": _meta()}


@router.post("/goals/review")
async def review_goals(
    user_id: UUID,
    store: HealthStore = Depends(get_store),
    time_frame: TimeFrame = Query(TimeFrame.DAILY, alias="timeFrame"),
):
    missed = await service.review_goals(store, user_id, time_frame)
    return {"data": [service.dump(n) for n in missed], "meta": _meta()}


@router.get("/goals/{goal_id}")
async def get_goal(user_id: UUID, goal_id: UUID, store: HealthStore = Depends(get_store)):
    goal = await service.get_goal(store, user_id, goal_id)
    return {"data": service.goal_view(goal), "meta": _meta()}


@router.patch("/goals/{goal_id}")
async def update_goal(
    user_id: UUID, goal_id: UUID, body: GoalUpdate, store: HealthStore = Depends(get_store)
):
    changes = body.model_dump(exclude_none=True)
    goal = await service.update_goal(store, user_id, goal_id, changes)
    return {"data": service.goal_view(goal), "meta": _meta()}


@router.delete("/goals/{goal_id}", status_code=204)
async def delete_goal(user_id: UUID, goal_id: UUID, store: HealthStore = Depends(get_store)):
    await service.delete_goal(store, user_id, goal_id)
    return Response(status_code=204)


@router.put("/goals/{goal_id}/progress")
async def set_goal_progress(
    user_id: UUID, goal_id: UUID, body: ProgressIn, store: HealthStore = Depends(get_store)
):
    start_time = time.monotonic()
    update = await service.set_goal_progress(store, user_id, goal_id, body.current_value)
    _observe("goals_progress", "PUT", 200, start_time)
    return {"data": service.progress_view(update), "meta": _meta()}


@router.post("/goals/{goal_id}/complete")
async def complete_goal(user_id: UUID, goal_id: UUID, store: HealthStore = Depends(get_store)):
    update = await service.complete_goal(store, user_id, goal_id)
    return {"data": service.progress_view(update), "meta": _meta()}


@router.post("/goals/{goal_id}/reset")
async def reset_goal(user_id: UUID, goal_id: UUID, store: HealthStore = Depends(get_store)):
    update = await service.reset_goal(store, user_id, goal_id)
    return {"data": service.progress_view(update), "meta": _meta()}


# --- Insights, alerts, notifications ---


@router.get("/insights")
async def get_insights(user_id: UUID, store: HealthStore = Depends(get_store)):
    start_time = time.monotonic()
    report = await service.insight_report(store, user_id)
    _observe("insights", "GET", 200, start_time)
    return {"data": service.dump(report), "meta": _meta()}


@router.post("/alerts/check")
async def check_alerts(user_id: UUID, body: AlertCheckIn, store: HealthStore = Depends(get_store)):
    """Threshold alerts for one day; values not supplied come from stored samples."""
    target = body.date or service.local_now().date()
    alerts = await service.check_alerts(
        store, user_id, target, body.steps, body.heart_rate, body.calories
    )
    return {
        "data": {"alertsTriggered": len(alerts), "alerts": [service.dump(a) for a in alerts]},
        "meta": _meta(),
    }


@router.get("/notifications")
async def list_notifications(
    user_id: UUID,
    store: HealthStore = Depends(get_store),
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=500),
):
    notifications = await service.list_notifications(store, user_id, unread_only, limit)
    return {"data": [service.dump(n) for n in notifications], "meta": _meta()}


@router.post("/notifications/{notification_id}/read", status_code=204)
async def mark_notification_read(
    user_id: UUID, notification_id: UUID, store: HealthStore = Depends(get_store)
):
    await service.mark_notification_read(store, user_id, notification_id)
    return Response(status_code=204)


# --- Google Fit relay ---


def _sync_view(result: pipeline.SyncResult, updates: list) -> dict[str, Any]:
    return {
        "metricType": str(result.metric_type),
        "rawResponseId": str(result.raw_response_id) if result.raw_response_id else None,
        "recordsInserted": result.records_inserted,
        "recordsUpdated": result.records_updated,
        "goalUpdates": [service.progress_view(u) for u in updates],
    }


@router.post("/relay/google-fit/{metric}")
async def relay_sync(
    user_id: UUID,
    metric: str,
    payload: dict[str, Any],
    store: HealthStore = Depends(get_store),
):
    """Ingest a dataset:aggregate payload pushed by the relay."""
    start_time = time.monotonic()
    result, updates = await service.sync_from_relay(store, user_id, _metric(metric), payload)
    _observe("relay_sync", "POST", 200, start_time)
    return {"data": _sync_view(result, updates), "meta": _meta()}


@router.post("/relay/google-fit/{metric}/pull")
async def relay_pull(
    user_id: UUID,
    metric: str,
    store: HealthStore = Depends(get_store),
    days: int = Query(7, ge=1, le=90),
):
    """Fetch recent days straight from Google Fit (live relay mode only)."""
    start_time = time.monotonic()
    result, updates = await service.pull_from_relay(store, user_id, _metric(metric), days)
    _observe("relay_pull", "POST", 200, start_time)
    return {"data": _sync_view(result, updates), "meta": _meta()}
