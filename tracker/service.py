"""Orchestration between the store and the pure domain functions.

Each operation fetches what it needs through the HealthStore, runs the
domain computation, and writes results back. Goal state is committed
before notifications are emitted; notification emission is best-effort
and never fails the operation that triggered it.
"""

from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.exc import IntegrityError

from shared.config import settings
from shared.exceptions import (
    InvalidDateRangeError,
    NotFoundError,
    RelayUnavailableError,
    ValidationError,
)
from shared.metrics import goal_completions_total, notifications_emitted_total
from tracker import pipeline
from tracker.adapters.factory import get_adapter
from tracker.adapters.protocol import RelayAdapter
from tracker.domain import aggregation, goals, insights, periods
from tracker.domain.models import (
    Goal,
    GoalType,
    MetricType,
    Notification,
    PeriodWindow,
    ProgressUpdate,
    Sample,
    Summary,
    TimeFrame,
    WeeklyCalorieSummary,
    WeeklySleepSummary,
)
from tracker.domain.store import HealthStore
from tracker.domain.trends import classify_trend
from tracker.domain.validation import SampleViolation, check_value

logger = structlog.get_logger()

GOAL_TIME_FRAME_PERIODS = {
    TimeFrame.DAILY: "daily",
    TimeFrame.WEEKLY: "weekly",
    TimeFrame.MONTHLY: "monthly",
}


def local_now() -> datetime:
    """Current wall-clock time in the configured calendar, without tzinfo."""
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)


def utc_now() -> datetime:
    return datetime.now(UTC)


def dump(model: Any) -> dict[str, Any]:
    """camelCase JSON-ready dict with unset metric fields dropped."""
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


def goal_view(goal: Goal) -> dict[str, Any]:
    return {**dump(goal), "progressPercentage": goals.progress_of(goal)}


def progress_view(update: ProgressUpdate) -> dict[str, Any]:
    return {
        "goal": goal_view(update.goal),
        "previousValue": update.previous_value,
        "progressPercentage": update.progress_percentage,
        "completionTransitioned": update.completion_transitioned,
    }


async def _window_samples(
    store: HealthStore, user_id: UUID, metric_type: MetricType | None, window: PeriodWindow
) -> list[Sample]:
    return await store.fetch_samples(user_id, metric_type, window.start, window.end)


async def emit_notifications(store: HealthStore, notifications: Sequence[Notification]) -> int:
    """Persist notifications one by one. Failures are logged and counted, never raised."""
    stored = 0
    for notification in notifications:
        kind = str(notification.notification_type)
        try:
            await store.insert_notification(notification)
            await store.commit()
        except Exception:
            logger.exception(
                "notification_emit_failed",
                user_id=str(notification.user_id),
                notification_type=kind,
            )
            notifications_emitted_total.labels(notification_type=kind, status="failed").inc()
            continue
        stored += 1
        notifications_emitted_total.labels(notification_type=kind, status="stored").inc()
    return stored


# --- Samples ---


async def list_samples(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    period: str,
    limit: int,
    reference: datetime | None = None,
    start: date | None = None,
    end: date | None = None,
) -> tuple[PeriodWindow, list[Sample]]:
    """Samples in a rolling period, or in an explicit date range when start is given.

    An explicit range without an end runs through today.
    """
    reference = reference or local_now()
    if start is not None:
        last = end or reference.date()
        if start > last:
            raise InvalidDateRangeError(start.isoformat(), last.isoformat())
        window = periods.resolve_range(start, last)
    else:
        window = periods.resolve_rolling(period, reference)
    samples = await store.fetch_samples(user_id, metric_type, window.start, window.end, limit)
    return window, samples


async def get_sample(store: HealthStore, user_id: UUID, sample_id: UUID) -> Sample:
    sample = await store.get_sample(user_id, sample_id)
    if sample is None:
        raise NotFoundError(f"Sample {sample_id} not found")
    return sample


async def update_sample(
    store: HealthStore, user_id: UUID, sample_id: UUID, changes: dict[str, Any]
) -> Sample:
    """Apply an edit to a sample, re-validating its value first."""
    current = await get_sample(store, user_id, sample_id)
    if "value" in changes:
        violation = check_value(current.metric_type, changes["value"])
        if violation is not None:
            raise pipeline.reject(current.metric_type, [violation])
    updated = await store.update_sample(current.model_copy(update=changes))
    await store.commit()
    logger.info("sample_updated", user_id=str(user_id), sample_id=str(sample_id))
    return updated


async def delete_sample(store: HealthStore, user_id: UUID, sample_id: UUID) -> None:
    if not await store.delete_sample(user_id, sample_id):
        raise NotFoundError(f"Sample {sample_id} not found")
    await store.commit()
    logger.info("sample_deleted", user_id=str(user_id), sample_id=str(sample_id))


# --- Summaries ---


async def daily_summary(
    store: HealthStore, user_id: UUID, metric_type: MetricType, target: date
) -> Summary:
    """Calendar-day summary spanning [00:00:00.000, 23:59:59.999]."""
    window = periods.resolve_calendar_day(target)
    samples = await _window_samples(store, user_id, metric_type, window)
    return aggregation.aggregate(samples, metric_type, window)


async def weekly_summary(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    reference: date,
    start: date | None = None,
) -> WeeklyCalorieSummary | WeeklySleepSummary | Summary:
    """Sunday-aligned calendar week unless an explicit start is given."""
    window = periods.resolve_calendar_week(reference, start)
    samples = await _window_samples(store, user_id, metric_type, window)
    if metric_type == MetricType.CALORIES:
        return aggregation.weekly_calorie_summary(samples, window)
    if metric_type == MetricType.SLEEP:
        return aggregation.weekly_sleep_summary(samples, window)
    return aggregation.aggregate(samples, metric_type, window)


async def period_report(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    period: str,
    reference: datetime | None = None,
) -> dict[str, Any]:
    """Rolling-window report: summary, breakdowns, trend and matching goals."""
    window = periods.resolve_rolling(period, reference or local_now())
    samples = await _window_samples(store, user_id, metric_type, window)
    summary = aggregation.aggregate(samples, metric_type, window)
    selected = aggregation.select(samples, metric_type, window)
    trend = classify_trend(aggregation.daily_series(selected, metric_type), metric_type)
    user_goals = await store.fetch_goals(user_id, GoalType(metric_type.value))

    summary_body = dump(summary)
    hourly = summary_body.pop("hourlyBreakdown", {})
    daily = summary_body.pop("dailyBreakdown", {})
    return {
        "period": window.period,
        "summary": summary_body,
        "breakdown": {"hourly": hourly, "daily": daily},
        "trend": dump(trend),
        "goals": [goal_view(g) for g in user_goals],
    }


# --- Goals ---


def _duplicate_goal(goal_type: GoalType) -> ValidationError:
    return ValidationError(
        [
            SampleViolation(
                "goal_type", "unique", "goal_type_exists", str(goal_type)
            ).as_dict()
        ]
    )


async def _insert_goal(store: HealthStore, goal: Goal) -> Goal:
    """Insert, reporting a lost race on uq_goals_user_type as a duplicate goal."""
    try:
        return await store.insert_goal(goal)
    except IntegrityError as exc:
        constraint = getattr(exc.orig, "constraint_name", "") or ""
        if "uq_goals_user_type" in constraint or "uq_goals_user_type" in str(exc):
            logger.info(
                "goal_create_conflict", user_id=str(goal.user_id), goal_type=str(goal.goal_type)
            )
            raise _duplicate_goal(goal.goal_type) from exc
        raise


async def _require_goal(
    store: HealthStore, user_id: UUID, goal_id: UUID, lock: bool = False
) -> Goal:
    goal = await store.get_goal(user_id, goal_id, lock=lock)
    if goal is None:
        raise NotFoundError(f"Goal {goal_id} not found")
    return goal


async def list_goals(
    store: HealthStore, user_id: UUID, goal_type: GoalType | None = None
) -> list[Goal]:
    return await store.fetch_goals(user_id, goal_type)


async def get_goal(store: HealthStore, user_id: UUID, goal_id: UUID) -> Goal:
    return await _require_goal(store, user_id, goal_id)


async def create_goal(
    store: HealthStore,
    user_id: UUID,
    goal_type: GoalType,
    target_value: float,
    time_frame: TimeFrame = TimeFrame.DAILY,
    icon: str | None = None,
    current_value: float = 0,
) -> Goal:
    """Create a goal. A user holds at most one goal per goal type."""
    violations = goals.check_goal_values(target_value, current_value)
    if violations:
        raise ValidationError([v.as_dict() for v in violations])
    if await store.fetch_goals(user_id, goal_type):
        raise _duplicate_goal(goal_type)

    fields: dict[str, Any] = {
        "user_id": user_id,
        "goal_type": goal_type,
        "target_value": target_value,
        "current_value": current_value,
        "time_frame": time_frame,
        "is_completed": current_value >= target_value,
    }
    if icon:
        fields["icon"] = icon
    goal = await _insert_goal(store, Goal(**fields))
    await store.commit()
    logger.info("goal_created", user_id=str(user_id), goal_type=str(goal_type))
    return goal


async def update_goal(
    store: HealthStore, user_id: UUID, goal_id: UUID, changes: dict[str, Any]
) -> Goal:
    """Edit target, time frame or icon; completion is re-derived, nothing is emitted."""
    current = await _require_goal(store, user_id, goal_id, lock=True)
    if "target_value" in changes:
        violations = goals.check_goal_values(changes["target_value"])
        if violations:
            raise ValidationError([v.as_dict() for v in violations])
    updated = await store.update_goal(goals.retarget(current, changes))
    await store.commit()
    return updated


async def delete_goal(store: HealthStore, user_id: UUID, goal_id: UUID) -> None:
    if not await store.delete_goal(user_id, goal_id):
        raise NotFoundError(f"Goal {goal_id} not found")
    await store.commit()
    logger.info("goal_deleted", user_id=str(user_id), goal_id=str(goal_id))


async def bulk_upsert_goals(
    store: HealthStore, user_id: UUID, entries: Sequence[dict[str, Any]]
) -> list[Goal]:
    """Create or retarget one goal per entry, keyed by goal type. All-or-nothing."""
    violations: list[dict[str, Any]] = []
    for i, entry in enumerate(entries):
        for v in goals.check_goal_values(entry.get("target_value")):
            v.index = i
            violations.append(v.as_dict())
    if violations:
        raise ValidationError(violations)

    existing = {g.goal_type: g for g in await store.fetch_goals(user_id, lock=True)}
    results: list[Goal] = []
    for entry in entries:
        goal_type = GoalType(entry["goal_type"])
        changes = {k: v for k, v in entry.items() if k != "goal_type" and v is not None}
        if goal_type in existing:
            results.append(await store.update_goal(goals.retarget(existing[goal_type], changes)))
        else:
            goal = Goal(user_id=user_id, goal_type=goal_type, **changes)
            goal = goals.retarget(goal, {})
            results.append(await _insert_goal(store, goal))
            existing[goal_type] = results[-1]
    await store.commit()
    logger.info("goals_bulk_upserted", user_id=str(user_id), count=len(results))
    return results


async def _apply_updates(
    store: HealthStore, updates: Sequence[ProgressUpdate], now: datetime
) -> list[ProgressUpdate]:
    """Persist goal updates, commit, then emit owed notifications best-effort."""
    persisted: list[ProgressUpdate] = []
    for update in updates:
        stored = await store.update_goal(update.goal)
        persisted.append(
            ProgressUpdate(
                goal=stored,
                previous_value=update.previous_value,
                progress_percentage=update.progress_percentage,
                completion_transitioned=update.completion_transitioned,
                notify=update.notify,
            )
        )
    await store.commit()

    owed = []
    for update in persisted:
        if update.completion_transitioned:
            goal_completions_total.labels(goal_type=str(update.goal.goal_type)).inc()
            logger.info(
                "goal_completed",
                user_id=str(update.goal.user_id),
                goal_id=str(update.goal.id),
                goal_type=str(update.goal.goal_type),
            )
        if update.notify:
            owed.append(goals.goal_achieved_notification(update.goal, now))
    await emit_notifications(store, owed)
    return persisted


def _check_progress_value(value: float) -> None:
    if value < 0:
        raise ValidationError(
            [
                SampleViolation(
                    "current_value", "non_negative", "current_value_negative", value
                ).as_dict()
            ]
        )


async def set_goal_progress(
    store: HealthStore, user_id: UUID, goal_id: UUID, value: float
) -> ProgressUpdate:
    _check_progress_value(value)
    goal = await _require_goal(store, user_id, goal_id, lock=True)
    [result] = await _apply_updates(store, [goals.update_progress(goal, value)], utc_now())
    return result


async def complete_goal(store: HealthStore, user_id: UUID, goal_id: UUID) -> ProgressUpdate:
    goal = await _require_goal(store, user_id, goal_id, lock=True)
    [result] = await _apply_updates(store, [goals.mark_complete(goal)], utc_now())
    return result


async def reset_goal(store: HealthStore, user_id: UUID, goal_id: UUID) -> ProgressUpdate:
    goal = await _require_goal(store, user_id, goal_id, lock=True)
    [result] = await _apply_updates(store, [goals.reset_goal(goal)], utc_now())
    return result


async def bulk_goal_progress(
    store: HealthStore, user_id: UUID, goal_type: GoalType, value: float
) -> list[ProgressUpdate]:
    """Apply one value to every incomplete goal of a type, under row locks."""
    _check_progress_value(value)
    user_goals = await store.fetch_goals(user_id, goal_type, lock=True)
    updates = goals.apply_bulk_progress(user_goals, goal_type, value)
    return await _apply_updates(store, updates, utc_now())


async def refresh_goal_progress(
    store: HealthStore,
    user_id: UUID,
    goal_type: GoalType,
    reference: datetime | None = None,
) -> list[ProgressUpdate]:
    """Recompute incomplete goals of a metric-backed type from stored samples.

    Each goal is measured over the rolling window of its own time frame.
    Composite goal types have no backing metric and are left alone.
    """
    metric_type = GoalType(goal_type).metric_type
    if metric_type is None:
        return []
    reference = reference or local_now()
    user_goals = await store.fetch_goals(user_id, goal_type, lock=True)

    updates = []
    for goal in user_goals:
        if goal.is_completed:
            continue
        window = periods.resolve_rolling(GOAL_TIME_FRAME_PERIODS[goal.time_frame], reference)
        samples = await _window_samples(store, user_id, metric_type, window)
        value = aggregation.goal_metric_value(samples, metric_type, window)
        updates.append(goals.update_progress(goal, value))
    return await _apply_updates(store, updates, utc_now())


async def review_goals(
    store: HealthStore, user_id: UUID, time_frame: TimeFrame
) -> list[Notification]:
    """End-of-period review: one goal_missed notification per incomplete goal."""
    missed = goals.review_goals(await store.fetch_goals(user_id), time_frame, utc_now())
    await emit_notifications(store, missed)
    return missed


async def goal_statistics(store: HealthStore, user_id: UUID) -> dict[str, Any]:
    return goals.goal_stats(await store.fetch_goals(user_id))


# --- Insights and alerts ---


async def insight_report(
    store: HealthStore, user_id: UUID, reference: datetime | None = None
) -> insights.InsightReport:
    """Insight report over the last seven days of stored data."""
    window = periods.resolve_rolling("weekly", reference or local_now())
    samples = await _window_samples(store, user_id, None, window)

    steps = aggregation.select(samples, MetricType.STEPS, window)
    heart = aggregation.select(samples, MetricType.HEART_RATE, window)
    sleep = aggregation.select(samples, MetricType.SLEEP, window)
    step_days = aggregation.daily_series(steps, MetricType.STEPS)

    snapshot = insights.HealthSnapshot(
        steps=step_days,
        heart_rate=[s.value for s in sorted(heart, key=lambda s: s.observed_at)],
        sleep=aggregation.daily_series(sleep, MetricType.SLEEP),
        steps_trend=classify_trend(step_days, MetricType.STEPS).trend,
    )
    return insights.build_insight_report(
        user_id, snapshot, await store.fetch_goals(user_id), utc_now()
    )


async def check_alerts(
    store: HealthStore,
    user_id: UUID,
    target: date,
    steps: float | None = None,
    heart_rate: float | None = None,
    calories: float | None = None,
) -> list[Notification]:
    """Threshold alerts for one day, persisted best-effort.

    Values not supplied are taken from the day's stored samples: step and
    calorie totals, mean heart rate. Metrics without data raise no alert.
    """
    supplied = {"steps": steps, "heart_rate": heart_rate, "calories": calories}
    if any(v is None for v in supplied.values()):
        window = periods.resolve_calendar_day(target)
        samples = await _window_samples(store, user_id, None, window)
        for key, metric_type in (
            ("steps", MetricType.STEPS),
            ("heart_rate", MetricType.HEART_RATE),
            ("calories", MetricType.CALORIES),
        ):
            if supplied[key] is None and aggregation.select(samples, metric_type, window):
                supplied[key] = aggregation.goal_metric_value(samples, metric_type, window)

    alerts = insights.check_health_alerts(user_id, utc_now(), **supplied)
    await emit_notifications(store, alerts)
    logger.info("health_alerts_checked", user_id=str(user_id), triggered=len(alerts))
    return alerts


async def list_notifications(
    store: HealthStore, user_id: UUID, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    return await store.list_notifications(user_id, unread_only, limit)


async def mark_notification_read(store: HealthStore, user_id: UUID, notification_id: UUID) -> None:
    if not await store.mark_notification_read(user_id, notification_id):
        raise NotFoundError(f"Notification {notification_id} not found")
    await store.commit()


# --- Relay ---


async def sync_from_relay(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    raw_payload: dict[str, Any],
    reference: datetime | None = None,
    adapter: RelayAdapter | None = None,
) -> tuple[pipeline.SyncResult, list[ProgressUpdate]]:
    """Ingest a relay payload, then recompute the matching goal type."""
    result = await pipeline.sync_relay(store, user_id, metric_type, raw_payload, adapter)
    updates = await refresh_goal_progress(
        store, user_id, GoalType(metric_type.value), reference
    )
    return result, updates


async def pull_from_relay(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    days: int,
    reference: datetime | None = None,
) -> tuple[pipeline.SyncResult, list[ProgressUpdate]]:
    """Fetch the last `days` local calendar days, today included, and sync them.

    Live mode only. Buckets start at local midnight so each maps to one date.
    """
    adapter = get_adapter()
    fetch = getattr(adapter, "fetch", None)
    if fetch is None:
        raise RelayUnavailableError(settings.relay_mode)
    tz = ZoneInfo(settings.timezone)
    end = (reference or local_now()).replace(tzinfo=tz)
    start = datetime.combine(end.date() - timedelta(days=days - 1), time.min, tzinfo=tz)
    body = await fetch(metric_type, start, end)
    return await sync_from_relay(store, user_id, metric_type, body, reference, adapter)
