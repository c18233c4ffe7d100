"""Tests for manual ingestion and relay sync against the in-memory store."""

from datetime import date, time

import pytest

from shared.exceptions import RelayPayloadError, ValidationError
from tests.conftest import USER_ID
from tracker.adapters.google_fit_fixture import GoogleFitFixtureAdapter
from tracker.domain.models import MetricType, SampleSource
from tracker.pipeline import RawSample, ingest_samples, sync_relay


class TestIngestSamples:
    async def test_single_entry_inserted(self, store):
        [sample] = await ingest_samples(
            store,
            USER_ID,
            MetricType.STEPS,
            [RawSample(date=date(2024, 3, 14), value=8500, time_of_day=time(18, 0))],
        )
        assert sample.id is not None
        assert sample.value == 8500
        assert sample.source == SampleSource.MANUAL
        assert store.commits == 1

    async def test_one_invalid_value_rejects_whole_batch(self, store):
        entries = [
            RawSample(date=date(2024, 3, 12), value=1000),
            RawSample(date=date(2024, 3, 13), value=-5),
            RawSample(date=date(2024, 3, 14), value=2000),
        ]
        with pytest.raises(ValidationError) as excinfo:
            await ingest_samples(store, USER_ID, MetricType.STEPS, entries)

        assert store.samples == []
        assert store.commits == 0
        [violation] = excinfo.value.violations
        assert violation["index"] == 1
        assert violation["value"] == -5
        assert violation["reason"] == "value_out_of_range"
        assert excinfo.value.status == 422

    async def test_every_violation_reported(self, store):
        entries = [RawSample(date=date(2024, 3, 14), value=v) for v in (20, 300, 70)]
        with pytest.raises(ValidationError) as excinfo:
            await ingest_samples(store, USER_ID, MetricType.HEART_RATE, entries)
        assert [v["index"] for v in excinfo.value.violations] == [0, 1]

    async def test_empty_batch_rejected(self, store):
        with pytest.raises(ValidationError) as excinfo:
            await ingest_samples(store, USER_ID, MetricType.STEPS, [])
        assert excinfo.value.violations[0]["reason"] == "batch_empty"

    async def test_missing_value_rejected(self, store):
        with pytest.raises(ValidationError) as excinfo:
            await ingest_samples(store, USER_ID, MetricType.CALORIES, [RawSample(date(2024, 3, 14))])
        assert excinfo.value.violations[0]["reason"] == "value_not_numeric"

    async def test_sleep_from_stage_minutes(self, store):
        [sample] = await ingest_samples(
            store,
            USER_ID,
            MetricType.SLEEP,
            [RawSample(date=date(2024, 3, 14), deep_minutes=90, light_minutes=240, rem_minutes=120)],
        )
        assert sample.value == 7.5

    async def test_sleep_stages_over_a_day_rejected(self, store):
        entry = RawSample(date=date(2024, 3, 14), deep_minutes=600, light_minutes=600, rem_minutes=300)
        with pytest.raises(ValidationError):
            await ingest_samples(store, USER_ID, MetricType.SLEEP, [entry])
        assert store.samples == []

    async def test_explicit_value_wins_over_stages(self, store):
        [sample] = await ingest_samples(
            store,
            USER_ID,
            MetricType.SLEEP,
            [RawSample(date=date(2024, 3, 14), value=6, deep_minutes=600)],
        )
        assert sample.value == 6


class TestSyncRelay:
    async def test_stores_raw_then_upserts(self, store, steps_payload):
        result = await sync_relay(
            store, USER_ID, MetricType.STEPS, steps_payload, GoogleFitFixtureAdapter()
        )
        assert result.records_inserted == 2
        assert result.records_updated == 0
        assert result.raw_response_id == store.raw_responses[0]["id"]
        assert store.raw_responses[0]["response_body"] == steps_payload
        assert store.raw_responses[0]["source"] == "google_fit"
        assert sorted(s.value for s in store.samples) == [8200, 12000]

    async def test_resync_overwrites_same_days(self, store, steps_payload):
        adapter = GoogleFitFixtureAdapter()
        await sync_relay(store, USER_ID, MetricType.STEPS, steps_payload, adapter)

        changed = steps_payload
        changed["bucket"][1]["dataset"][0]["point"][0]["value"][0]["intVal"] = 13000
        result = await sync_relay(store, USER_ID, MetricType.STEPS, changed, adapter)

        assert result.records_inserted == 0
        assert result.records_updated == 2
        assert len(store.samples) == 2
        assert sorted(s.value for s in store.samples) == [8200, 13000]
        assert len(store.raw_responses) == 2

    async def test_unparseable_payload_keeps_raw(self, store):
        payload = {"bucket": [{"dataset": []}]}
        with pytest.raises(RelayPayloadError):
            await sync_relay(store, USER_ID, MetricType.STEPS, payload, GoogleFitFixtureAdapter())
        assert len(store.raw_responses) == 1
        assert store.samples == []
        assert store.commits == 1

    async def test_out_of_range_relay_batch_rejected(self, store, heart_rate_payload):
        for point in heart_rate_payload["bucket"][0]["dataset"][0]["point"]:
            point["value"][0]["fpVal"] = 400.0
        with pytest.raises(ValidationError):
            await sync_relay(
                store, USER_ID, MetricType.HEART_RATE, heart_rate_payload, GoogleFitFixtureAdapter()
            )
        assert store.samples == []
        assert len(store.raw_responses) == 1

    async def test_default_adapter_from_factory(self, store, sleep_payload):
        result = await sync_relay(store, USER_ID, MetricType.SLEEP, sleep_payload)
        assert result.records_inserted == 1
        assert store.samples[0].value == 7.5
