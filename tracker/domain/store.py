"""Storage collaborator interface used by the pipeline and service layers.

Every read is scoped by user_id; a row owned by another user is reported
as missing. Writes are staged until commit().
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from tracker.domain.models import Goal, MetricType, Notification, Sample


class HealthStore(Protocol):
    async def fetch_samples(
        self,
        user_id: UUID,
        metric_type: MetricType | None,
        start: datetime,
        end: datetime,
        limit: int | None = None,
    ) -> list[Sample]:
        """Samples whose instant falls in [start, end], newest first."""
        ...

    async def get_sample(self, user_id: UUID, sample_id: UUID) -> Sample | None: ...

    async def insert_samples(self, samples: Sequence[Sample]) -> list[Sample]:
        """Insert validated samples; returns them with ids assigned."""
        ...

    async def upsert_samples(self, samples: Sequence[Sample]) -> dict[str, int]:
        """Insert or overwrite relay samples by fingerprint. Returns inserted/updated counts."""
        ...

    async def update_sample(self, sample: Sample) -> Sample: ...

    async def delete_sample(self, user_id: UUID, sample_id: UUID) -> bool: ...

    async def fetch_goals(
        self, user_id: UUID, goal_type: str | None = None, lock: bool = False
    ) -> list[Goal]:
        """Goals of a user. lock=True holds the rows for a read-modify-write."""
        ...

    async def get_goal(self, user_id: UUID, goal_id: UUID, lock: bool = False) -> Goal | None: ...

    async def insert_goal(self, goal: Goal) -> Goal: ...

    async def update_goal(self, goal: Goal) -> Goal: ...

    async def delete_goal(self, user_id: UUID, goal_id: UUID) -> bool: ...

    async def insert_notification(self, notification: Notification) -> Notification:
        """Persist one notification in its own savepoint; a failure leaves other writes intact."""
        ...

    async def list_notifications(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]: ...

    async def mark_notification_read(self, user_id: UUID, notification_id: UUID) -> bool: ...

    async def store_raw_response(self, record: dict[str, Any]) -> UUID: ...

    async def commit(self) -> None: ...
