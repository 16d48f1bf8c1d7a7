# report_service/statistics.py
"""Descriptive statistics over the short series found in weekly reports.

Every helper is total: degenerate input (empty series, zero totals,
mismatched lengths) yields 0 rather than raising.
"""

import math
from typing import Dict, List, Sequence

from .schemas import TrendDirection

# 변화율 임계값 (%)
TREND_THRESHOLD_PERCENT = 10.0


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def coefficient_of_variation(values: Sequence[float]) -> float:
    avg = mean(values)
    if avg == 0:
        return 0.0
    return std_dev(values) / avg


def consistency_from_values(values: Sequence[float]) -> float:
    """1 - CV, floored at 0. A series with zero mean has no consistency."""
    if not values or mean(values) == 0:
        return 0.0
    return max(0.0, 1.0 - coefficient_of_variation(values))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def linear_trend(values: Sequence[float]) -> float:
    """Least-squares slope of the series against its index."""
    n = len(values)
    if n < 2:
        return 0.0

    x_sum = n * (n - 1) / 2
    y_sum = sum(values)
    xy_sum = sum(i * v for i, v in enumerate(values))
    x_squared_sum = n * (n - 1) * (2 * n - 1) / 6

    denominator = n * x_squared_sum - x_sum * x_sum
    if denominator == 0:
        return 0.0
    return (n * xy_sum - x_sum * y_sum) / denominator


def shannon_diversity(counts: Dict[str, int]) -> float:
    """Shannon entropy in bits over the positive counts."""
    total = sum(counts.values())
    if total <= 0:
        return 0.0

    diversity = 0.0
    for count in counts.values():
        if count > 0:
            proportion = count / total
            diversity -= proportion * math.log2(proportion)
    return diversity


def normalized_shannon(counts: Dict[str, int]) -> float:
    """Shannon entropy scaled to 0..1 by the entropy of a uniform split."""
    if len(counts) < 2:
        return 0.0
    max_entropy = math.log2(len(counts))
    return shannon_diversity(counts) / max_entropy


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    if len(x) != len(y) or len(x) < 2:
        return 0.0

    mean_x = mean(x)
    mean_y = mean(y)
    numerator = 0.0
    sum_x_squared = 0.0
    sum_y_squared = 0.0
    for xi, yi in zip(x, y):
        dx = xi - mean_x
        dy = yi - mean_y
        numerator += dx * dy
        sum_x_squared += dx * dx
        sum_y_squared += dy * dy

    denominator = math.sqrt(sum_x_squared * sum_y_squared)
    if denominator == 0:
        return 0.0
    return numerator / denominator


def change_percentage(current: float, previous: float) -> float:
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def direction_from_change(percentage: float) -> TrendDirection:
    if percentage > TREND_THRESHOLD_PERCENT:
        return TrendDirection.up
    if percentage < -TREND_THRESHOLD_PERCENT:
        return TrendDirection.down
    return TrendDirection.stable



def distribution_balance(counts: Dict[str, int]) -> float:
    """Mean of 1 - |p - 1/n| over the categories; 1.0 means an even split."""
    if not counts:
        return 0.0
    total = sum(counts.values())
    if total == 0:
        return 0.0

    expected = 1.0 / len(counts)
    score = sum(1.0 - abs(count / total - expected) for count in counts.values())
    return score / len(counts)


def merge_counts(maps: List[Dict[str, int]]) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for counts in maps:
        for name, count in counts.items():
            totals[name] = totals.get(name, 0) + count
    return totals


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
