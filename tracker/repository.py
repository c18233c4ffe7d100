"""Health repository: all DB access for samples, goals and notifications.

Implements the HealthStore protocol on an AsyncSession. Rows are
translated to domain models here; nothing above this layer sees ORM
objects or column names.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.domain.models import Goal, MetricType, Notification, Sample
from tracker.domain.orm import (
    GoalModel,
    HealthSampleModel,
    NotificationModel,
    RawRelayResponseModel,
)


def _sample_from_row(row: HealthSampleModel) -> Sample:
    return Sample(
        id=row.id,
        user_id=row.user_id,
        metric_type=row.metric_type,
        date=row.sample_date,
        time_of_day=row.time_of_day,
        value=row.value,
        quality=row.quality,
        source=row.source,
        fingerprint=row.fingerprint,
    )


def _sample_to_row(sample: Sample) -> dict[str, Any]:
    record = {
        "user_id": sample.user_id,
        "metric_type": sample.metric_type.value,
        "sample_date": sample.date,
        "time_of_day": sample.time_of_day,
        "value": sample.value,
        "quality": sample.quality,
        "source": sample.source.value,
        "fingerprint": sample.fingerprint,
    }
    if sample.id is not None:
        record["id"] = sample.id
    return record


def _goal_from_row(row: GoalModel) -> Goal:
    return Goal(
        id=row.id,
        user_id=row.user_id,
        goal_type=row.goal_type,
        target_value=row.target_value,
        current_value=row.current_value,
        time_frame=row.time_frame,
        is_completed=row.is_completed,
        icon=row.icon,
        created_at=row.created_at,
    )


def _notification_from_row(row: NotificationModel) -> Notification:
    return Notification(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        message=row.message,
        notification_type=row.notification_type,
        timestamp=row.timestamp,
        is_read=row.is_read,
    )


class HealthRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # --- Samples ---

    async def fetch_samples(
        self,
        user_id: UUID,
        metric_type: MetricType | None,
        start: datetime,
        end: datetime,
        limit: int | None = None,
    ) -> list[Sample]:
        """Samples whose instant falls in [start, end], newest first.

        The date range is narrowed in SQL; the time-of-day bound on the edge
        days is applied on the domain model.
        """
        query = select(HealthSampleModel).where(
            HealthSampleModel.user_id == user_id,
            HealthSampleModel.sample_date >= start.date(),
            HealthSampleModel.sample_date <= end.date(),
        )
        if metric_type is not None:
            query = query.where(HealthSampleModel.metric_type == str(metric_type))
        query = query.order_by(
            HealthSampleModel.sample_date.desc(),
            HealthSampleModel.time_of_day.desc().nulls_last(),
            HealthSampleModel.id.desc(),
        )
        result = await self.session.execute(query)
        samples = [
            s
            for s in (_sample_from_row(r) for r in result.scalars().all())
            if start <= s.observed_at <= end
        ]
        return samples[:limit] if limit is not None else samples

    async def get_sample(self, user_id: UUID, sample_id: UUID) -> Sample | None:
        query = select(HealthSampleModel).where(
            HealthSampleModel.id == sample_id, HealthSampleModel.user_id == user_id
        )
        row = (await self.session.execute(query)).scalar_one_or_none()
        return _sample_from_row(row) if row else None

    async def insert_samples(self, samples: Sequence[Sample]) -> list[Sample]:
        """Insert validated samples in one statement. Returns them with ids."""
        if not samples:
            return []
        result = await self.session.execute(
            pg_insert(HealthSampleModel).returning(HealthSampleModel),
            [_sample_to_row(s) for s in samples],
        )
        return [_sample_from_row(r) for r in result.scalars().all()]

    async def upsert_samples(self, samples: Sequence[Sample]) -> dict[str, int]:
        """Insert or overwrite relay samples by fingerprint."""
        counts = {"inserted": 0, "updated": 0}
        for sample in samples:
            stmt = pg_insert(HealthSampleModel).values(_sample_to_row(sample))
            stmt = stmt.on_conflict_do_update(
                index_elements=["fingerprint"],
                set_={
                    "value": stmt.excluded.value,
                    "time_of_day": stmt.excluded.time_of_day,
                    "quality": stmt.excluded.quality,
                    "updated_at": func.now(),
                },
            ).returning(HealthSampleModel.id, text("(xmax = 0) AS was_inserted"))
            row = (await self.session.execute(stmt)).one()
            counts["inserted" if row[1] else "updated"] += 1
        return counts

    async def update_sample(self, sample: Sample) -> Sample:
        stmt = (
            update(HealthSampleModel)
            .where(
                HealthSampleModel.id == sample.id,
                HealthSampleModel.user_id == sample.user_id,
            )
            .values(
                sample_date=sample.date,
                time_of_day=sample.time_of_day,
                value=sample.value,
                quality=sample.quality,
            )
            .returning(HealthSampleModel)
        )
        row = (await self.session.execute(stmt)).scalar_one()
        return _sample_from_row(row)

    async def delete_sample(self, user_id: UUID, sample_id: UUID) -> bool:
        stmt = delete(HealthSampleModel).where(
            HealthSampleModel.id == sample_id, HealthSampleModel.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    # --- Goals ---

    async def fetch_goals(
        self, user_id: UUID, goal_type: str | None = None, lock: bool = False
    ) -> list[Goal]:
        query = select(GoalModel).where(GoalModel.user_id == user_id)
        if goal_type is not None:
            query = query.where(GoalModel.goal_type == str(goal_type))
        query = query.order_by(GoalModel.created_at.desc(), GoalModel.id)
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return [_goal_from_row(r) for r in result.scalars().all()]

    async def get_goal(self, user_id: UUID, goal_id: UUID, lock: bool = False) -> Goal | None:
        query = select(GoalModel).where(GoalModel.id == goal_id, GoalModel.user_id == user_id)
        if lock:
            query = query.with_for_update()
        row = (await self.session.execute(query)).scalar_one_or_none()
        return _goal_from_row(row) if row else None

    async def insert_goal(self, goal: Goal) -> Goal:
        """Insert inside a savepoint; a uq_goals_user_type conflict leaves the session usable."""
        values = {
            "user_id": goal.user_id,
            "goal_type": goal.goal_type.value,
            "target_value": goal.target_value,
            "current_value": goal.current_value,
            "time_frame": goal.time_frame.value,
            "is_completed": goal.is_completed,
            "icon": goal.icon,
        }
        if goal.id is not None:
            values["id"] = goal.id
        stmt = pg_insert(GoalModel).values(values).returning(GoalModel)
        async with self.session.begin_nested():
            row = (await self.session.execute(stmt)).scalar_one()
        return _goal_from_row(row)

    async def update_goal(self, goal: Goal) -> Goal:
        stmt = (
            update(GoalModel)
            .where(GoalModel.id == goal.id, GoalModel.user_id == goal.user_id)
            .values(
                target_value=goal.target_value,
                current_value=goal.current_value,
                time_frame=goal.time_frame.value,
                is_completed=goal.is_completed,
                icon=goal.icon,
                updated_at=func.now(),
            )
            .returning(GoalModel)
        )
        row = (await self.session.execute(stmt)).scalar_one()
        return _goal_from_row(row)

    async def delete_goal(self, user_id: UUID, goal_id: UUID) -> bool:
        stmt = delete(GoalModel).where(GoalModel.id == goal_id, GoalModel.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    # --- Notifications ---

    async def insert_notification(self, notification: Notification) -> Notification:
        """Insert inside a savepoint so a failure rolls back only this row."""
        async with self.session.begin_nested():
            stmt = (
                pg_insert(NotificationModel)
                .values(
                    user_id=notification.user_id,
                    title=notification.title,
                    message=notification.message,
                    notification_type=notification.notification_type.value,
                    timestamp=notification.timestamp,
                    is_read=notification.is_read,
                )
                .returning(NotificationModel)
            )
            row = (await self.session.execute(stmt)).scalar_one()
        return _notification_from_row(row)

    async def list_notifications(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        query = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            query = query.where(NotificationModel.is_read.is_(False))
        query = query.order_by(NotificationModel.timestamp.desc()).limit(limit)
        result = await self.session.execute(query)
        return [_notification_from_row(r) for r in result.scalars().all()]

    async def mark_notification_read(self, user_id: UUID, notification_id: UUID) -> bool:
        stmt = (
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .values(is_read=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    # --- Relay ---

    async def store_raw_response(self, record: dict[str, Any]) -> UUID:
        """Store a raw relay payload. Append-only."""
        stmt = pg_insert(RawRelayResponseModel).values(record).returning(RawRelayResponseModel.id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def commit(self) -> None:
        await self.session.commit()
