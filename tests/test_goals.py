"""Tests for the goal progress engine."""

from datetime import UTC, datetime

import pytest

from tests.conftest import make_goal
from tracker.domain.goals import (
    apply_bulk_progress,
    check_goal_values,
    compute_progress,
    goal_achieved_notification,
    goal_missed_notification,
    goal_stats,
    mark_complete,
    reset_goal,
    retarget,
    review_goals,
    update_progress,
)
from tracker.domain.models import GoalType, NotificationType, TimeFrame

NOW = datetime(2024, 3, 14, 21, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "current, target, expected",
    [
        (0, 10_000, 0),
        (5_000, 10_000, 50),
        (9_995, 10_000, 100),  # 99.95 rounds half up
        (9_994, 10_000, 100),  # 99.94 → 100
        (9_940, 10_000, 99),
        (12_000, 10_000, 100),  # clamped
        (-10, 10_000, 0),
        (500, 0, 0),
        (500, -5, 0),
    ],
)
def test_compute_progress(current, target, expected):
    assert compute_progress(current, target) == expected



@pytest.mark.parametrize("target", [1, 7.5, 10_000])
def test_compute_progress_never_decreases_and_saturates(target):
    currents = [target * step / 40 for step in range(0, 121)]
    percentages = [compute_progress(current, target) for current in currents]

    assert all(a <= b for a, b in zip(percentages, percentages[1:]))
    assert percentages[0] == 0
    assert max(percentages) == 100
    assert all(p == 100 for p in percentages[40:])


class TestUpdateProgress:
    def test_crossing_target_completes_and_notifies(self):
        goal = make_goal(target_value=10_000, current_value=9_000)
        update = update_progress(goal, 10_500)
        assert update.goal.is_completed
        assert update.goal.current_value == 10_500
        assert update.previous_value == 9_000
        assert update.progress_percentage == 100
        assert update.completion_transitioned
        assert update.notify

    def test_already_completed_does_not_notify_again(self):
        goal = make_goal(target_value=10_000, current_value=10_000, is_completed=True)
        update = update_progress(goal, 11_000)
        assert update.goal.is_completed
        assert not update.notify

    def test_dropping_below_target_reopens(self):
        goal = make_goal(target_value=10_000, current_value=10_000, is_completed=True)
        update = update_progress(goal, 4_000)
        assert not update.goal.is_completed
        assert update.progress_percentage == 40
        assert not update.notify

    def test_exact_target_completes(self):
        update = update_progress(make_goal(target_value=8), 8)
        assert update.goal.is_completed

    def test_input_goal_unchanged(self):
        goal = make_goal(current_value=1)
        update_progress(goal, 20_000)
        assert goal.current_value == 1
        assert not goal.is_completed


class TestMarkCompleteAndReset:
    def test_mark_complete_sets_target(self):
        goal = make_goal(target_value=10_000, current_value=3_000)
        update = mark_complete(goal)
        assert update.goal.current_value == 10_000
        assert update.goal.is_completed
        assert update.progress_percentage == 100
        assert update.notify
        assert update.completion_transitioned

    def test_mark_complete_notifies_even_when_already_complete(self):
        goal = make_goal(target_value=10_000, current_value=10_000, is_completed=True)
        update = mark_complete(goal)
        assert update.notify
        assert not update.completion_transitioned

    def test_reset_clears_without_notification(self):
        goal = make_goal(current_value=12_000, is_completed=True)
        update = reset_goal(goal)
        assert update.goal.current_value == 0
        assert not update.goal.is_completed
        assert update.progress_percentage == 0
        assert not update.notify


def test_bulk_progress_skips_completed_and_other_types():
    open_steps = make_goal(GoalType.STEPS, target_value=10_000)
    done_steps = make_goal(
        GoalType.STEPS, target_value=5_000, current_value=5_000, is_completed=True
    )
    calories = make_goal(GoalType.CALORIES, target_value=500)
    updates = apply_bulk_progress([open_steps, done_steps, calories], GoalType.STEPS, 10_200)
    assert [u.goal.id for u in updates] == [open_steps.id]
    assert updates[0].notify


class TestRetarget:
    def test_lowering_target_completes(self):
        goal = make_goal(target_value=10_000, current_value=6_000)
        updated = retarget(goal, {"target_value": 5_000})
        assert updated.is_completed

    def test_raising_target_reopens(self):
        goal = make_goal(target_value=5_000, current_value=6_000, is_completed=True)
        updated = retarget(goal, {"target_value": 8_000, "time_frame": TimeFrame.WEEKLY})
        assert not updated.is_completed
        assert updated.time_frame == TimeFrame.WEEKLY


@pytest.mark.parametrize(
    "target, current, reasons",
    [
        (10_000, 0, []),
        (0, 0, ["target_value_not_positive"]),
        (-1, 0, ["target_value_not_positive"]),
        (100, -1, ["current_value_negative"]),
        (None, -1, ["target_value_not_positive", "current_value_negative"]),
    ],
)
def test_check_goal_values(target, current, reasons):
    assert [v.reason for v in check_goal_values(target, current)] == reasons


class TestNotifications:
    def test_achieved_notification(self):
        goal = make_goal(GoalType.STEPS, target_value=10_000)
        note = goal_achieved_notification(goal, NOW)
        assert note.title == "Goal Achieved!"
        assert note.notification_type == NotificationType.GOAL_ACHIEVED
        assert "10,000" in note.message
        assert "daily steps goal" in note.message
        assert note.timestamp == NOW
        assert not note.is_read

    def test_missed_notification_reports_percentage(self):
        goal = make_goal(GoalType.SLEEP, target_value=8, current_value=6)
        note = goal_missed_notification(goal, NOW)
        assert note.notification_type == NotificationType.GOAL_MISSED
        assert "75%" in note.message

    def test_review_only_incomplete_goals_of_time_frame(self):
        goals = [
            make_goal(GoalType.STEPS, time_frame=TimeFrame.DAILY),
            make_goal(GoalType.CALORIES, time_frame=TimeFrame.DAILY, is_completed=True),
            make_goal(GoalType.SLEEP, time_frame=TimeFrame.WEEKLY),
        ]
        notes = review_goals(goals, TimeFrame.DAILY, NOW)
        assert len(notes) == 1
        assert "steps" in notes[0].message


def test_goal_stats():
    goals = [
        make_goal(GoalType.STEPS, is_completed=True),
        make_goal(GoalType.STEPS),
        make_goal(GoalType.WORKOUTS, target_value=3),
    ]
    assert goal_stats(goals) == {
        "total_goals": 3,
        "completed_goals": 1,
        "goals_by_type": {"steps": 2, "workouts": 1},
    }


def test_goal_stats_empty():
    assert goal_stats([]) == {"total_goals": 0, "completed_goals": 0, "goals_by_type": {}}
