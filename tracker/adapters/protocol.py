"""Adapter protocol for fitness-data relays.

Both fixture and live adapters implement this interface.
The pipeline depends only on the protocol, never on concrete adapters.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from tracker.domain.models import MetricType, Sample


@runtime_checkable
class RelayAdapter(Protocol):
    """Common interface for relay adapters."""

    source_name: str

    def parse(self, raw_response: dict, user_id: UUID, metric_type: MetricType) -> list[Sample]:
        """Parse a relay response into canonical samples.

        Args:
            raw_response: The raw relay response body.
            user_id: The user this data belongs to.
            metric_type: Which metric the response carries.

        Returns:
            One sample per day with data (may be empty).
        """
        ...
