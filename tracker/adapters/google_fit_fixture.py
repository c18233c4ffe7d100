"""Google Fit fixture adapter: parses payloads pushed by the relay (no HTTP fetch)."""

from uuid import UUID

from tracker.adapters.google_fit_mapper import GoogleFitMapper
from tracker.domain.models import MetricType, Sample


class GoogleFitFixtureAdapter:
    source_name = "google_fit"

    def __init__(self) -> None:
        self._mapper = GoogleFitMapper()

    def parse(self, raw_response: dict, user_id: UUID, metric_type: MetricType) -> list[Sample]:
        return self._mapper.parse(raw_response, user_id, metric_type)
