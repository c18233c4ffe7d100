"""Goal progress engine.

Progress is a pure function of (current_value, target_value). Completion
is derived: is_completed == current_value >= target_value after every
update, except mark_complete which forces current_value = target_value.

A goal_achieved notification is owed at most once per completion event,
i.e. only on a not-completed → completed transition. mark_complete always
owes one; reset never does.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from tracker.domain.aggregation import round_half_up
from tracker.domain.models import (
    Goal,
    GoalType,
    Notification,
    NotificationType,
    ProgressUpdate,
    TimeFrame,
)
from tracker.domain.validation import SampleViolation

GOAL_LABELS = {
    GoalType.STEPS: "steps",
    GoalType.HEART_RATE: "heart rate",
    GoalType.CALORIES: "calories",
    GoalType.SLEEP: "sleep",
    GoalType.WORKOUTS: "workouts",
}


def compute_progress(current_value: float, target_value: float) -> int:
    """Percentage completion, 0..100. Zero when the target is not positive."""
    if target_value <= 0:
        return 0
    percentage = round_half_up(current_value / target_value * 100)
    return int(min(100, max(0, percentage)))


def progress_of(goal: Goal) -> int:
    return compute_progress(goal.current_value, goal.target_value)


def update_progress(goal: Goal, new_current_value: float) -> ProgressUpdate:
    """Set a goal's current value and re-derive completion."""
    completed = new_current_value >= goal.target_value
    transitioned = completed and not goal.is_completed
    updated = goal.model_copy(
        update={"current_value": new_current_value, "is_completed": completed}
    )
    return ProgressUpdate(
        goal=updated,
        previous_value=goal.current_value,
        progress_percentage=compute_progress(new_current_value, goal.target_value),
        completion_transitioned=transitioned,
        notify=transitioned,
    )


def mark_complete(goal: Goal) -> ProgressUpdate:
    """Force completion. Always owes a notification, even if already complete."""
    updated = goal.model_copy(
        update={"current_value": goal.target_value, "is_completed": True}
    )
    return ProgressUpdate(
        goal=updated,
        previous_value=goal.current_value,
        progress_percentage=compute_progress(goal.target_value, goal.target_value),
        completion_transitioned=not goal.is_completed,
        notify=True,
    )


def reset_goal(goal: Goal) -> ProgressUpdate:
    updated = goal.model_copy(update={"current_value": 0, "is_completed": False})
    return ProgressUpdate(
        goal=updated,
        previous_value=goal.current_value,
        progress_percentage=0,
        completion_transitioned=False,
        notify=False,
    )


def apply_bulk_progress(
    goals: Iterable[Goal], goal_type: str, new_current_value: float
) -> list[ProgressUpdate]:
    """Apply one value to every incomplete goal of a type.

    Completed goals and goals of other types are left untouched and do not
    appear in the result.
    """
    return [
        update_progress(goal, new_current_value)
        for goal in goals
        if goal.goal_type == goal_type and not goal.is_completed
    ]


def retarget(goal: Goal, changes: dict[str, Any]) -> Goal:
    """Apply an edit to target/time frame/icon and re-derive completion.

    No notification is owed for completion caused by lowering a target.
    """
    updated = goal.model_copy(update=changes)
    return updated.model_copy(
        update={"is_completed": updated.current_value >= updated.target_value}
    )


def check_goal_values(target_value: Any, current_value: Any = 0) -> list[SampleViolation]:
    """Violations for goal numbers: target must be positive, current non-negative."""
    violations = []
    if target_value is None or target_value <= 0:
        violations.append(
            SampleViolation("target_value", "positive", "target_value_not_positive", target_value)
        )
    if current_value is not None and current_value < 0:
        violations.append(
            SampleViolation("current_value", "non_negative", "current_value_negative", current_value)
        )
    return violations


def _format_value(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


def goal_achieved_notification(goal: Goal, now: datetime) -> Notification:
    label = GOAL_LABELS.get(goal.goal_type, str(goal.goal_type))
    return Notification(
        user_id=goal.user_id,
        title="Goal Achieved!",
        message=(
            f"{goal.icon} You reached your {goal.time_frame} {label} goal of "
            f"{_format_value(goal.target_value)}."
        ),
        notification_type=NotificationType.GOAL_ACHIEVED,
        timestamp=now,
    )


def goal_missed_notification(goal: Goal, now: datetime) -> Notification:
    label = GOAL_LABELS.get(goal.goal_type, str(goal.goal_type))
    return Notification(
        user_id=goal.user_id,
        title="Goal Missed",
        message=(
            f"You reached {progress_of(goal)}% of your {goal.time_frame} {label} goal "
            f"({_format_value(goal.current_value)} of {_format_value(goal.target_value)})."
        ),
        notification_type=NotificationType.GOAL_MISSED,
        timestamp=now,
    )


def review_goals(
    goals: Iterable[Goal], time_frame: TimeFrame, now: datetime
) -> list[Notification]:
    """End-of-period review: one goal_missed notification per incomplete goal."""
    return [
        goal_missed_notification(goal, now)
        for goal in goals
        if goal.time_frame == time_frame and not goal.is_completed
    ]


def goal_stats(goals: Iterable[Goal]) -> dict[str, Any]:
    goals = list(goals)
    by_type: dict[str, int] = {}
    for goal in goals:
        by_type[str(goal.goal_type)] = by_type.get(str(goal.goal_type), 0) + 1
    return {
        "total_goals": len(goals),
        "completed_goals": sum(1 for g in goals if g.is_completed),
        "goals_by_type": by_type,
    }
