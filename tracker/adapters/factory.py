"""Adapter factory: returns fixture or live adapter based on config.

In fixture mode the relay pushes raw payloads which are parsed as-is.
In live mode the adapter can also fetch from the Google Fit API first.
Both implement the RelayAdapter protocol (parse method).
"""

from shared.config import settings
from tracker.adapters.protocol import RelayAdapter

SUPPORTED_SOURCES = ("google_fit",)


def get_adapter(source: str = "google_fit") -> RelayAdapter:
    if source not in SUPPORTED_SOURCES:
        raise ValueError(f"Unsupported source: {source}. Must be one of: {list(SUPPORTED_SOURCES)}")
    if settings.relay_mode == "live":
        from tracker.adapters.google_fit_live import GoogleFitLiveAdapter

        return GoogleFitLiveAdapter()

    from tracker.adapters.google_fit_fixture import GoogleFitFixtureAdapter

    return GoogleFitFixtureAdapter()
