"""Shared test fixtures."""

import json
import sys
from collections.abc import Sequence
from datetime import date, datetime, time
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tracker.domain.models import (  # noqa: E402
    Goal,
    GoalType,
    MetricType,
    Notification,
    Sample,
    TimeFrame,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"
USER_ID = UUID("a1b2c3d4-5678-90ab-cdef-1234567890ab")
OTHER_USER_ID = UUID("0f0e0d0c-0b0a-0908-0706-050403020100")


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text())


def make_sample(
    metric_type: MetricType,
    day: date,
    value: float,
    at: time | None = None,
    user_id: UUID = USER_ID,
) -> Sample:
    return Sample(user_id=user_id, metric_type=metric_type, date=day, time_of_day=at, value=value)


def make_goal(
    goal_type: GoalType = GoalType.STEPS,
    target_value: float = 10_000,
    current_value: float = 0,
    time_frame: TimeFrame = TimeFrame.DAILY,
    is_completed: bool = False,
    user_id: UUID = USER_ID,
) -> Goal:
    return Goal(
        id=uuid4(),
        user_id=user_id,
        goal_type=goal_type,
        target_value=target_value,
        current_value=current_value,
        time_frame=time_frame,
        is_completed=is_completed,
    )


class InMemoryStore:
    """HealthStore kept in lists, for service and API tests."""

    def __init__(self) -> None:
        self.samples: list[Sample] = []
        self.goals: dict[UUID, Goal] = {}
        self.notifications: list[Notification] = []
        self.raw_responses: list[dict[str, Any]] = []
        self.commits = 0
        self.fail_notifications = False

    async def fetch_samples(self, user_id, metric_type, start, end, limit=None):
        matched = [
            s
            for s in self.samples
            if s.user_id == user_id
            and (metric_type is None or s.metric_type == metric_type)
            and start <= s.observed_at <= end
        ]
        matched.sort(key=lambda s: s.observed_at, reverse=True)
        return matched[:limit] if limit is not None else matched

    async def get_sample(self, user_id, sample_id):
        return next(
            (s for s in self.samples if s.id == sample_id and s.user_id == user_id), None
        )

    async def insert_samples(self, samples: Sequence[Sample]):
        stored = [s.model_copy(update={"id": uuid4()}) for s in samples]
        self.samples.extend(stored)
        return stored

    async def upsert_samples(self, samples: Sequence[Sample]):
        counts = {"inserted": 0, "updated": 0}
        for sample in samples:
            existing = next(
                (i for i, s in enumerate(self.samples) if s.fingerprint == sample.fingerprint),
                None,
            )
            if existing is None:
                self.samples.append(sample.model_copy(update={"id": uuid4()}))
                counts["inserted"] += 1
            else:
                self.samples[existing] = sample.model_copy(update={"id": self.samples[existing].id})
                counts["updated"] += 1
        return counts

    async def update_sample(self, sample: Sample):
        for i, s in enumerate(self.samples):
            if s.id == sample.id:
                self.samples[i] = sample
        return sample

    async def delete_sample(self, user_id, sample_id):
        before = len(self.samples)
        self.samples = [
            s for s in self.samples if not (s.id == sample_id and s.user_id == user_id)
        ]
        return len(self.samples) < before

    async def fetch_goals(self, user_id, goal_type=None, lock=False):
        return [
            g
            for g in self.goals.values()
            if g.user_id == user_id and (goal_type is None or g.goal_type == goal_type)
        ]

    async def get_goal(self, user_id, goal_id, lock=False):
        goal = self.goals.get(goal_id)
        return goal if goal is not None and goal.user_id == user_id else None

    async def insert_goal(self, goal: Goal):
        stored = goal.model_copy(update={"id": goal.id or uuid4(), "created_at": datetime(2024, 3, 1)})
        self.goals[stored.id] = stored
        return stored

    async def update_goal(self, goal: Goal):
        self.goals[goal.id] = goal
        return goal

    async def delete_goal(self, user_id, goal_id):
        if goal_id in self.goals and self.goals[goal_id].user_id == user_id:
            del self.goals[goal_id]
            return True
        return False

    async def insert_notification(self, notification: Notification):
        if self.fail_notifications:
            raise RuntimeError("notification table unavailable")
        stored = notification.model_copy(update={"id": uuid4()})
        self.notifications.append(stored)
        return stored

    async def list_notifications(self, user_id, unread_only=False, limit=50):
        matched = [
            n
            for n in self.notifications
            if n.user_id == user_id and not (unread_only and n.is_read)
        ]
        matched.sort(key=lambda n: n.timestamp, reverse=True)
        return matched[:limit]

    async def mark_notification_read(self, user_id, notification_id):
        for i, n in enumerate(self.notifications):
            if n.id == notification_id and n.user_id == user_id:
                self.notifications[i] = n.model_copy(update={"is_read": True})
                return True
        return False

    async def store_raw_response(self, record: dict[str, Any]):
        raw_id = uuid4()
        self.raw_responses.append({"id": raw_id, **record})
        return raw_id

    async def commit(self):
        self.commits += 1


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def steps_payload():
    return load_fixture("google_fit_steps.json")


@pytest.fixture
def sleep_payload():
    return load_fixture("google_fit_sleep.json")


@pytest.fixture
def heart_rate_payload():
    return load_fixture("google_fit_heart_rate.json")
