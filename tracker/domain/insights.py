"""Insight, recommendation and alert generation.

Pure functions of aggregated numbers with fixed thresholds. The only
time-dependent input is the timestamp passed in by the caller, which is
copied onto generated records and never branched on.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from tracker.domain.aggregation import round_half_up
from tracker.domain.models import (
    CamelModel,
    Goal,
    MetricType,
    Notification,
    NotificationType,
)

# Steps
STEPS_EXCELLENT = 10_000
STEPS_GOOD = 7_500
STEPS_RECOMMEND_BELOW = 8_000
# Resting heart rate (bpm)
RESTING_HR_EXCELLENT_BELOW = 60
RESTING_HR_GOOD_BELOW = 80
HR_ELEVATED_ABOVE = 100
# Sleep (hours)
SLEEP_ADEQUATE = 7
# Single-day alerts
STEPS_ALERT_HIGH = 15_000
STEPS_ALERT_LOW = 1_000
CALORIES_ALERT_HIGH = 3_500

# One reading per hour over a week
EXPECTED_DATA_POINTS = 7 * 24


class Recommendation(CamelModel):
    type: str
    priority: str
    message: str
    actions: list[str]
    expected_impact: str


class HealthAlert(CamelModel):
    type: str
    message: str
    recommendation: str
    priority: str
    timestamp: datetime


class StepsInsight(CamelModel):
    metric: str = "daily_steps"
    average: int
    total: int | float
    trend: str
    status: str
    days_tracked: int


class HeartRateInsight(CamelModel):
    metric: str = "heart_rate"
    average: int
    resting: int | float
    maximum: int | float
    status: str
    readings_count: int


class SleepInsight(CamelModel):
    metric: str = "sleep_quality"
    average_hours: float
    status: str
    nights_tracked: int


class InsightReport(CamelModel):
    user_id: UUID
    generated_at: datetime
    insights: list[StepsInsight | HeartRateInsight | SleepInsight]
    messages: list[str]
    recommendations: list[Recommendation]
    alerts: list[HealthAlert]
    data_points: int
    # Percentage of EXPECTED_DATA_POINTS
    completeness: int


@dataclass
class HealthSnapshot:
    """Aggregated inputs: per-day step totals, HR readings, per-night sleep hours."""

    steps: list[float] = field(default_factory=list)
    heart_rate: list[float] = field(default_factory=list)
    sleep: list[float] = field(default_factory=list)
    steps_trend: str = "insufficient-data"


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def steps_status(average: float) -> str:
    if average >= STEPS_EXCELLENT:
        return "excellent"
    if average >= STEPS_GOOD:
        return "good"
    return "needs_improvement"


def resting_heart_rate_status(resting: float) -> str:
    if resting < RESTING_HR_EXCELLENT_BELOW:
        return "excellent"
    if resting < RESTING_HR_GOOD_BELOW:
        return "good"
    return "monitor"


def sleep_status(average_hours: float) -> str:
    return "good" if average_hours >= SLEEP_ADEQUATE else "insufficient"


def _resting(readings: Sequence[float]) -> float:
    positive = [r for r in readings if r > 0]
    return min(positive) if positive else 0


def generate_insights(snapshot: HealthSnapshot, goals: Sequence[Goal] = ()) -> list[str]:
    """Plain-language insight lines for a snapshot and the user's goals."""
    lines: list[str] = []

    if snapshot.steps:
        status = steps_status(_mean(snapshot.steps))
        if status == "excellent":
            lines.append("Excellent activity level! You're consistently hitting 10k+ steps.")
        elif status == "good":
            lines.append("Good activity level! Try to reach 10,000 steps daily for optimal health.")
        else:
            lines.append(
                "Consider increasing daily activity. Small walks throughout the day can help!"
            )

    resting = _resting(snapshot.heart_rate)
    if resting > 0:
        status = resting_heart_rate_status(resting)
        if status == "excellent":
            lines.append(
                "Excellent cardiovascular fitness! Your resting heart rate indicates great heart health."
            )
        elif status == "good":
            lines.append("Good heart health! Maintain regular exercise to keep improving.")
        else:
            lines.append("Consider cardio exercises to improve your resting heart rate.")

    if snapshot.sleep:
        if sleep_status(_mean(snapshot.sleep)) == "good":
            lines.append("Great sleep habits! You're getting adequate rest for recovery.")
        else:
            lines.append("Focus on getting 7-9 hours of sleep for better health and recovery.")

    if goals:
        completed = sum(1 for g in goals if g.is_completed)
        lines.append(f"You have completed {completed} of {len(goals)} goals.")

    return lines


def generate_recommendations(metric_type: str, value: float) -> Recommendation | None:
    """Recommendation for one aggregated value, or None when none is warranted."""
    if metric_type == MetricType.STEPS and value < STEPS_RECOMMEND_BELOW:
        return Recommendation(
            type="activity_increase",
            priority="high",
            message=f"Average steps ({int(round_half_up(value))}) below recommended 10,000",
            actions=[
                "Take stairs instead of elevator",
                "Park farther from destinations",
                "Take 10-minute walks every 2 hours",
                "Use walking meetings when possible",
            ],
            expected_impact="+15% daily activity",
        )
    if metric_type == MetricType.SLEEP and value < SLEEP_ADEQUATE:
        return Recommendation(
            type="sleep_improvement",
            priority="medium",
            message=f"Sleep duration ({round_half_up(value, 1):.1f}h) below recommended 7-9 hours",
            actions=[
                "Establish consistent bedtime routine",
                "Limit screen time 1 hour before bed",
                "Keep bedroom cool and dark",
                "Avoid caffeine after 2 PM",
            ],
            expected_impact="Improved recovery and energy levels",
        )
    if metric_type == MetricType.HEART_RATE and value > HR_ELEVATED_ABOVE:
        return Recommendation(
            type="relaxation",
            priority="high",
            message=f"Average heart rate elevated ({int(round_half_up(value))} bpm)",
            actions=[
                "Practice slow breathing for 5 minutes",
                "Reduce caffeine intake",
                "Consult a physician if it persists",
            ],
            expected_impact="Lower resting heart rate",
        )
    return None


def build_insight_report(
    user_id: UUID,
    snapshot: HealthSnapshot,
    goals: Sequence[Goal],
    now: datetime,
) -> InsightReport:
    insights: list[StepsInsight | HeartRateInsight | SleepInsight] = []
    recommendations: list[Recommendation] = []
    alerts: list[HealthAlert] = []
    data_points = 0

    if snapshot.steps:
        average = _mean(snapshot.steps)
        total = sum(snapshot.steps)
        insights.append(
            StepsInsight(
                average=int(round_half_up(average)),
                total=int(total) if float(total).is_integer() else total,
                trend=snapshot.steps_trend,
                status=steps_status(average),
                days_tracked=len(snapshot.steps),
            )
        )
        data_points += len(snapshot.steps)
        rec = generate_recommendations(MetricType.STEPS, average)
        if rec:
            recommendations.append(rec)

    if snapshot.heart_rate:
        average = _mean(snapshot.heart_rate)
        positive = [r for r in snapshot.heart_rate if r > 0]
        resting = min(positive) if positive else 0
        insights.append(
            HeartRateInsight(
                average=int(round_half_up(average)),
                resting=resting,
                maximum=max(positive) if positive else 0,
                status=resting_heart_rate_status(resting),
                readings_count=len(snapshot.heart_rate),
            )
        )
        data_points += len(snapshot.heart_rate)
        if average > HR_ELEVATED_ABOVE:
            alerts.append(
                HealthAlert(
                    type="health_warning",
                    message=f"Average heart rate elevated ({int(round_half_up(average))} bpm)",
                    recommendation="Monitor closely and consider medical consultation",
                    priority="high",
                    timestamp=now,
                )
            )
            rec = generate_recommendations(MetricType.HEART_RATE, average)
            if rec:
                recommendations.append(rec)

    if snapshot.sleep:
        average = _mean(snapshot.sleep)
        insights.append(
            SleepInsight(
                average_hours=round_half_up(average, 1),
                status=sleep_status(average),
                nights_tracked=len(snapshot.sleep),
            )
        )
        rec = generate_recommendations(MetricType.SLEEP, average)
        if rec:
            recommendations.append(rec)

    completeness = int(min(100, round_half_up(data_points / EXPECTED_DATA_POINTS * 100)))
    return InsightReport(
        user_id=user_id,
        generated_at=now,
        insights=insights,
        messages=generate_insights(snapshot, goals),
        recommendations=recommendations,
        alerts=alerts,
        data_points=data_points,
        completeness=completeness,
    )


def check_health_alerts(
    user_id: UUID,
    now: datetime,
    steps: float | None = None,
    heart_rate: float | None = None,
    calories: float | None = None,
) -> list[Notification]:
    """Single-day threshold alerts as notifications, in steps/heart rate/calories order."""
    alerts: list[Notification] = []

    def _alert(title: str, message: str, kind: NotificationType) -> None:
        alerts.append(
            Notification(
                user_id=user_id,
                title=title,
                message=message,
                notification_type=kind,
                timestamp=now,
            )
        )

    if steps is not None:
        if steps > STEPS_ALERT_HIGH:
            _alert(
                "Outstanding Step Count!",
                f"Amazing! You've walked {steps:,.0f} steps today!",
                NotificationType.GENERAL,
            )
        elif 0 < steps < STEPS_ALERT_LOW:
            _alert(
                "Low Activity Reminder",
                f"You've only taken {steps:.0f} steps today. Try to move more!",
                NotificationType.INACTIVITY_REMINDER,
            )
    if heart_rate is not None and heart_rate > HR_ELEVATED_ABOVE:
        _alert(
            "Elevated Heart Rate",
            f"Your heart rate is {heart_rate:.0f} BPM. Consider resting.",
            NotificationType.HEALTH_ALERT,
        )
    if calories is not None and calories > CALORIES_ALERT_HIGH:
        _alert(
            "High Calorie Burn",
            f"You've burned {calories:.0f} calories today. Make sure to refuel!",
            NotificationType.HEALTH_ALERT,
        )
    return alerts
