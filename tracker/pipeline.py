"""Ingestion pipeline: validate the whole batch, then write.

Two entry points:
- ingest_samples: manual entries (single or bulk), plain inserts
- sync_relay: raw relay payload → store raw → map → validate → upsert

Both are all-or-nothing: one invalid value rejects the batch before any
sample is written. Relay raw payloads are stored even when rejected so
they can be replayed after a fix.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from datetime import time as time_of_day_type
from typing import Any
from uuid import UUID, uuid4

import structlog

from shared.exceptions import RelayPayloadError, ValidationError
from shared.metrics import (
    relay_sync_duration_seconds,
    samples_ingested_total,
    validation_failures_total,
)
from tracker.adapters.factory import get_adapter
from tracker.adapters.protocol import RelayAdapter
from tracker.domain.models import MetricType, Sample, SampleSource
from tracker.domain.store import HealthStore
from tracker.domain.validation import SampleViolation, sleep_hours_from_stages, validate_batch

logger = structlog.get_logger()


@dataclass
class RawSample:
    """One manual entry as received, before validation."""

    date: date
    value: Any = None
    time_of_day: time_of_day_type | None = None
    quality: str | None = None
    # Sleep may be given as stage minutes instead of hours
    deep_minutes: float | None = None
    light_minutes: float | None = None
    rem_minutes: float | None = None

    def resolved_value(self, metric_type: MetricType) -> Any:
        has_stages = any(
            m is not None for m in (self.deep_minutes, self.light_minutes, self.rem_minutes)
        )
        if metric_type == MetricType.SLEEP and self.value is None and has_stages:
            return sleep_hours_from_stages(self.deep_minutes, self.light_minutes, self.rem_minutes)
        return self.value


@dataclass
class SyncResult:
    metric_type: MetricType
    raw_response_id: UUID | None = None
    samples: list[Sample] = field(default_factory=list)
    records_inserted: int = 0
    records_updated: int = 0


def reject(metric_type: str, violations: Sequence[SampleViolation]) -> ValidationError:
    """Count and log violations, and build the error the caller raises."""
    for v in violations:
        validation_failures_total.labels(metric_type=str(metric_type), reason=v.reason).inc()
    logger.warning(
        "batch_rejected",
        metric_type=str(metric_type),
        violations=len(violations),
        reasons=sorted({v.reason for v in violations}),
    )
    return ValidationError([v.as_dict() for v in violations])


async def ingest_samples(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    entries: Sequence[RawSample],
) -> list[Sample]:
    """Validate every entry, then insert all of them or none."""
    metric_type = MetricType(metric_type)
    if not entries:
        raise reject(
            metric_type,
            [SampleViolation("entries", "non_empty", "batch_empty", 0)],
        )

    values = [e.resolved_value(metric_type) for e in entries]
    violations = validate_batch(metric_type, values)
    if violations:
        raise reject(metric_type, violations)

    samples = [
        Sample(
            user_id=user_id,
            metric_type=metric_type,
            date=entry.date,
            time_of_day=entry.time_of_day,
            value=value,
            quality=entry.quality,
            source=SampleSource.MANUAL,
        )
        for entry, value in zip(entries, values, strict=True)
    ]
    inserted = await store.insert_samples(samples)
    await store.commit()

    samples_ingested_total.labels(metric_type=metric_type, source=SampleSource.MANUAL).inc(
        len(inserted)
    )
    logger.info(
        "samples_ingested",
        user_id=str(user_id),
        metric_type=str(metric_type),
        count=len(inserted),
    )
    return inserted


async def sync_relay(
    store: HealthStore,
    user_id: UUID,
    metric_type: MetricType,
    raw_payload: dict[str, Any],
    adapter: RelayAdapter | None = None,
) -> SyncResult:
    """Run a relay payload through store raw → parse → validate → upsert.

    Re-syncing the same days overwrites the earlier values (fingerprint upsert).
    """
    start_time = time.monotonic()
    metric_type = MetricType(metric_type)
    adapter = adapter or get_adapter()
    batch_id = uuid4()
    result = SyncResult(metric_type=metric_type)

    result.raw_response_id = await store.store_raw_response(
        {
            "user_id": user_id,
            "source": adapter.source_name,
            "metric_type": metric_type.value,
            "response_body": raw_payload,
            "http_status": 200,
            "batch_id": batch_id,
        }
    )
    logger.info(
        "raw_response_stored",
        source=adapter.source_name,
        metric_type=str(metric_type),
        raw_id=str(result.raw_response_id),
        batch_id=str(batch_id),
    )

    try:
        samples = adapter.parse(raw_payload, user_id, metric_type)
    except (KeyError, ValueError, TypeError) as exc:
        logger.exception("adapter_parse_failed", source=adapter.source_name)
        await store.commit()
        raise RelayPayloadError(str(metric_type), type(exc).__name__) from exc

    violations = validate_batch(metric_type, [s.value for s in samples])
    if violations:
        await store.commit()
        raise reject(metric_type, violations)

    counts = await store.upsert_samples(samples)
    await store.commit()

    result.samples = samples
    result.records_inserted = counts["inserted"]
    result.records_updated = counts["updated"]
    samples_ingested_total.labels(metric_type=metric_type, source=adapter.source_name).inc(
        len(samples)
    )
    relay_sync_duration_seconds.labels(metric_type=metric_type).observe(
        time.monotonic() - start_time
    )
    logger.info(
        "relay_synced",
        user_id=str(user_id),
        metric_type=str(metric_type),
        inserted=result.records_inserted,
        updated=result.records_updated,
    )
    return result
