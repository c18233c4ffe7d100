"""RFC 9457 Problem Details exception hierarchy.

All API errors extend ProblemDetailError and are converted to
application/problem+json responses by the exception handler middleware.
"""

from typing import Any

from shared.config import settings


def _problem_type(slug: str) -> str:
    return f"{settings.problem_base_uri}/{slug}"


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict[str, Any]] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class ValidationError(ProblemDetailError):
    """A value was rejected before any mutation took place."""

    def __init__(self, violations: list[dict[str, Any]]):
        super().__init__(
            type_uri=_problem_type("validation-error"),
            title="Validation Error",
            status=422,
            detail=f"Request contains {len(violations)} validation error(s)",
            violations=violations,
        )


class NotFoundError(ProblemDetailError):
    def __init__(self, detail: str):
        super().__init__(
            type_uri=_problem_type("not-found"),
            title="Not Found",
            status=404,
            detail=detail,
        )


class InvalidDateRangeError(ProblemDetailError):
    def __init__(self, start: str, end: str):
        super().__init__(
            type_uri=_problem_type("invalid-date-range"),
            title="Invalid Date Range",
            status=400,
            detail=f"Parameter 'start' ({start}) must not be after 'end' ({end})",
        )


class UnsupportedMetricError(ProblemDetailError):
    def __init__(self, metric: str, allowed: list[str]):
        super().__init__(
            type_uri=_problem_type("unsupported-metric"),
            title="Unsupported Metric",
            status=422,
            detail=f"Metric '{metric}' is not supported here. Must be one of: {', '.join(allowed)}",
        )


class RelayPayloadError(ProblemDetailError):
    def __init__(self, metric: str, reason: str):
        super().__init__(
            type_uri=_problem_type("relay-payload"),
            title="Unreadable Relay Payload",
            status=422,
            detail=f"Could not parse {metric} relay payload: {reason}",
        )


class ComputationError(ProblemDetailError):
    """Contract violation inside a computation. Not recoverable."""

    def __init__(self, detail: str):
        super().__init__(
            type_uri=_problem_type("computation-error"),
            title="Computation Error",
            status=500,
            detail=detail,
        )


class RelayUnavailableError(ProblemDetailError):
    def __init__(self, relay_mode: str):
        super().__init__(
            type_uri=_problem_type("relay-unavailable"),
            title="Relay Unavailable",
            status=409,
            detail=f"Pulling from Google Fit requires relay_mode 'live' (current: '{relay_mode}')",
        )
