"""Tests for the Google Fit mapper, live adapter fetch and adapter factory."""

import json
from datetime import UTC, date, datetime
from unittest.mock import patch

import httpx
import pytest

from tests.conftest import USER_ID
from tracker.adapters.factory import get_adapter
from tracker.adapters.google_fit_fixture import GoogleFitFixtureAdapter
from tracker.adapters.google_fit_live import DATA_SOURCES, GoogleFitLiveAdapter
from tracker.adapters.google_fit_mapper import GoogleFitMapper
from tracker.adapters.protocol import RelayAdapter
from tracker.domain.models import MetricType, Sample, SampleSource


def _bucket(day_millis: int, points: list[dict]) -> dict:
    return {
        "startTimeMillis": str(day_millis),
        "endTimeMillis": str(day_millis + 86_400_000),
        "dataset": [{"point": points}],
    }


class TestGoogleFitMapper:
    def test_steps_summed_per_day(self, steps_payload):
        samples = GoogleFitMapper().parse(steps_payload, USER_ID, MetricType.STEPS)
        assert [(s.date, s.value) for s in samples] == [
            (date(2024, 3, 11), 8200),
            (date(2024, 3, 12), 12000),
        ]

    def test_empty_day_dropped(self, steps_payload):
        samples = GoogleFitMapper().parse(steps_payload, USER_ID, MetricType.STEPS)
        assert date(2024, 3, 13) not in {s.date for s in samples}

    def test_samples_carry_source_and_fingerprint(self, steps_payload):
        sample = GoogleFitMapper().parse(steps_payload, USER_ID, MetricType.STEPS)[0]
        assert sample.source == SampleSource.GOOGLE_FIT
        assert sample.user_id == USER_ID
        assert sample.time_of_day is None
        assert sample.fingerprint == Sample.compute_fingerprint(
            SampleSource.GOOGLE_FIT, USER_ID, MetricType.STEPS, date(2024, 3, 11)
        )

    def test_sleep_excludes_awake_segments(self, sleep_payload):
        (sample,) = GoogleFitMapper().parse(sleep_payload, USER_ID, MetricType.SLEEP)
        # 2h light + 4h deep + 1.5h REM; the 30 min awake segment is excluded
        assert sample.value == 7.5
        assert sample.date == date(2024, 3, 12)

    def test_heart_rate_mean_rounded(self, heart_rate_payload):
        (sample,) = GoogleFitMapper().parse(heart_rate_payload, USER_ID, MetricType.HEART_RATE)
        assert sample.value == 73

    def test_fp_values_supported(self):
        payload = {
            "bucket": [
                _bucket(1710201600000, [{"value": [{"fpVal": 1234.6}]}, {"value": [{"fpVal": 100}]}])
            ]
        }
        (sample,) = GoogleFitMapper().parse(payload, USER_ID, MetricType.CALORIES)
        assert sample.value == 1335

    def test_bucket_day_follows_configured_timezone(self):
        # 2024-03-12 00:00 in Tokyo, 2024-03-11 15:00 UTC
        payload = {"bucket": [_bucket(1710169200000, [{"value": [{"intVal": 5000}]}])]}

        (utc_sample,) = GoogleFitMapper().parse(payload, USER_ID, MetricType.STEPS)
        assert utc_sample.date == date(2024, 3, 11)

        with patch("tracker.adapters.google_fit_mapper.settings") as mock_settings:
            mock_settings.timezone = "Asia/Tokyo"
            (sample,) = GoogleFitMapper().parse(payload, USER_ID, MetricType.STEPS)
        assert sample.date == date(2024, 3, 12)
        assert sample.fingerprint == Sample.compute_fingerprint(
            SampleSource.GOOGLE_FIT, USER_ID, MetricType.STEPS, date(2024, 3, 12)
        )

    def test_no_buckets_is_empty(self):
        assert GoogleFitMapper().parse({}, USER_ID, MetricType.STEPS) == []

    def test_bucket_not_a_list_raises(self):
        with pytest.raises(ValueError):
            GoogleFitMapper().parse({"bucket": "oops"}, USER_ID, MetricType.STEPS)

    def test_bucket_without_start_raises(self):
        with pytest.raises(KeyError):
            GoogleFitMapper().parse({"bucket": [{"dataset": []}]}, USER_ID, MetricType.STEPS)


class TestGoogleFitLiveAdapter:
    async def test_fetch_returns_first_source_with_points(self, steps_payload):
        requests: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return httpx.Response(200, json=steps_payload)

        adapter = GoogleFitLiveAdapter(transport=httpx.MockTransport(handler))
        start = datetime(2024, 3, 11, tzinfo=UTC)
        end = datetime(2024, 3, 14, tzinfo=UTC)
        body = await adapter.fetch(MetricType.STEPS, start, end)

        assert body == steps_payload
        assert len(requests) == 1
        assert requests[0]["bucketByTime"] == {"durationMillis": 86_400_000}
        assert requests[0]["startTimeMillis"] == 1710115200000

    async def test_fetch_falls_back_when_source_empty(self, sleep_payload):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(200, json={"bucket": []})
            return httpx.Response(200, json=sleep_payload)

        adapter = GoogleFitLiveAdapter(transport=httpx.MockTransport(handler))
        now = datetime(2024, 3, 13, tzinfo=UTC)
        body = await adapter.fetch(MetricType.SLEEP, now, now)
        assert body == sleep_payload
        assert calls == 2

    async def test_fetch_skips_failing_source(self, heart_rate_payload):
        sources = iter([404])

        def handler(request: httpx.Request) -> httpx.Response:
            status = next(sources, 200)
            if status != 200:
                return httpx.Response(status, json={"error": "not found"})
            return httpx.Response(200, json=heart_rate_payload)

        adapter = GoogleFitLiveAdapter(transport=httpx.MockTransport(handler))
        now = datetime(2024, 3, 13, tzinfo=UTC)
        # heart rate has a single source, so its failure propagates
        with pytest.raises(httpx.HTTPStatusError):
            await adapter.fetch(MetricType.HEART_RATE, now, now)

        sources = iter([404])
        body = await adapter.fetch(MetricType.CALORIES, now, now)
        assert body == heart_rate_payload

    async def test_fetch_does_not_retry_auth_failure(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401, json={"error": "unauthorized"})

        adapter = GoogleFitLiveAdapter(transport=httpx.MockTransport(handler))
        now = datetime(2024, 3, 13, tzinfo=UTC)
        with pytest.raises(httpx.HTTPStatusError):
            await adapter.fetch(MetricType.STEPS, now, now)
        assert calls == len(DATA_SOURCES[MetricType.STEPS])


class TestAdapterFactory:
    def test_fixture_mode_returns_fixture_adapter(self):
        with patch("tracker.adapters.factory.settings") as mock_settings:
            mock_settings.relay_mode = "fixture"
            assert isinstance(get_adapter(), GoogleFitFixtureAdapter)

    def test_live_mode_returns_live_adapter(self):
        with patch("tracker.adapters.factory.settings") as mock_settings:
            mock_settings.relay_mode = "live"
            assert isinstance(get_adapter("google_fit"), GoogleFitLiveAdapter)

    def test_unsupported_source_raises(self):
        with pytest.raises(ValueError, match="fitbit"):
            get_adapter("fitbit")

    def test_adapters_satisfy_protocol(self):
        assert isinstance(GoogleFitFixtureAdapter(), RelayAdapter)
        assert isinstance(GoogleFitLiveAdapter(), RelayAdapter)

    def test_fixture_adapter_parses_like_mapper(self, steps_payload):
        adapter = GoogleFitFixtureAdapter()
        assert adapter.parse(steps_payload, USER_ID, MetricType.STEPS) == GoogleFitMapper().parse(
            steps_payload, USER_ID, MetricType.STEPS
        )
