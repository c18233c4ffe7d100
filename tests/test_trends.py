"""Tests for the half-split trend classifier."""

import pytest

from tracker.domain.models import MetricType
from tracker.domain.trends import INSUFFICIENT_DATA, STABLE, classify_trend


@pytest.mark.parametrize("values", [[], [9000]])
def test_fewer_than_two_points_is_insufficient(values):
    result = classify_trend(values, MetricType.STEPS)
    assert result.trend == INSUFFICIENT_DATA
    assert result.data_points == len(values)


def test_steps_improving():
    result = classify_trend([5000, 5200, 8000, 8200], MetricType.STEPS)
    assert result.trend == "improving"
    assert result.first_half_average == 5100
    assert result.second_half_average == 8100
    assert result.difference == 3000


def test_steps_declining():
    assert classify_trend([9000, 9000, 4000, 4000], MetricType.STEPS).trend == "declining"


def test_difference_below_threshold_is_stable():
    # difference 49 < 50
    assert classify_trend([5000, 5049], MetricType.STEPS).trend == STABLE


def test_difference_at_threshold_is_not_stable():
    assert classify_trend([5000, 5050], MetricType.STEPS).trend == "improving"


def test_odd_length_puts_extra_point_in_second_half():
    # first = [100], second = [200, 300] → 250
    result = classify_trend([100, 200, 300], MetricType.CALORIES)
    assert result.first_half_average == 100
    assert result.second_half_average == 250
    assert result.trend == "increasing"


def test_calories_use_increase_vocabulary():
    assert classify_trend([2500, 2000], MetricType.CALORIES).trend == "decreasing"


@pytest.mark.parametrize(
    "values, expected",
    [
        ([7.0, 7.05], STABLE),
        ([6.0, 7.0], "improving"),
        ([8.0, 6.5], "declining"),
    ],
)
def test_sleep_threshold(values, expected):
    assert classify_trend(values, MetricType.SLEEP).trend == expected


@pytest.mark.parametrize(
    "values, expected",
    [
        ([70, 70.5], STABLE),
        ([70, 75], "increasing"),
        ([80, 72], "decreasing"),
    ],
)
def test_heart_rate_threshold(values, expected):
    assert classify_trend(values, MetricType.HEART_RATE).trend == expected


def test_sleep_averages_keep_two_decimals():
    result = classify_trend([6.333, 7.0, 7.5, 7.777], MetricType.SLEEP)
    assert result.first_half_average == 6.67
    assert result.second_half_average == 7.64


def test_camel_case_output():
    body = classify_trend([1, 2], MetricType.STEPS).model_dump(by_alias=True)
    assert set(body) >= {"metricType", "trend", "firstHalfAverage", "dataPoints"}


def test_missing_policy_is_a_computation_error(monkeypatch):
    from shared.exceptions import ComputationError
    from tracker.domain import trends

    monkeypatch.delitem(trends.TREND_POLICIES, MetricType.CALORIES)
    with pytest.raises(ComputationError):
        classify_trend([1, 2], MetricType.CALORIES)
