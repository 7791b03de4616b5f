import math
import statistics
from collections.abc import Sequence
from datetime import datetime

TREND_CLAMP = 0.3
MIN_TREND_SAMPLES = 3


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return statistics.fmean(values)


def pstdev(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for fewer than two values."""
    if len(values) <= 1:
        return 0.0
    return statistics.pstdev(values)


def upper_median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return statistics.median_high(values)


def half_split_trend(
    values: Sequence[float],
    window: int = 5,
    clamp: float = TREND_CLAMP,
) -> float:
    """
    Bounded trend coefficient from the most recent `window` values.

    Compares the mean of the later half with the mean of the earlier half,
    normalized by the earlier mean and clamped to [-clamp, +clamp]. An odd
    middle element goes to the later half. Fewer than three values give 0.
    """
    if len(values) < MIN_TREND_SAMPLES:
        return 0.0

    recent = list(values[-window:])
    midpoint = len(recent) // 2
    first_avg = mean(recent[:midpoint])
    second_avg = mean(recent[midpoint:])

    trend = (second_avg - first_avg) / (first_avg or 1)
    return max(-clamp, min(clamp, trend))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def iso_week_key(moment: datetime) -> tuple[int, int]:
    iso = moment.isocalendar()
    return iso[0], iso[1]


def sunday_first_weekday(moment: datetime) -> int:
    """Day of week with Sunday as 0, matching the seasonality tables."""
    return (moment.weekday() + 1) % 7
