# report_service/trend_analysis.py
"""Week-over-week category trends, emergence, preference and diversity analysis.

Every analysis takes the current report plus its history. History may come
in any order; it is sorted here before use.
"""

import logging
from typing import Dict, List

from .schemas import (
    WeeklyReport, WeeklyStats, CategoryType, TrendDirection, Priority,
    CategoryTrendMetrics, CategoryTrendAnalysis,
    EmergingCategory, DecliningCategory, CategoryLifecycle, LifecycleStage, CategoryEmergenceAnalysis,
    PreferenceMetrics, PreferenceStabilityMetrics, PreferenceCluster, CategoryPreferencePatterns,
    DiversityRecommendation, DiversityRecommendationType, DiversityBalance,
    DiversityPattern, DiversityPatternType, OptimalDiversityTargets, CategoryDiversityAnalysis,
    EXERCISE_CATEGORY_NAMES, DIET_CATEGORY_NAMES,
)
from .statistics import (
    mean, std_dev, shannon_diversity, change_percentage, direction_from_change,
    consistency_from_values, distribution_balance,
)

logger = logging.getLogger(__name__)

EMERGING_THRESHOLD = 0.5
DECLINING_THRESHOLD = 0.5
MIN_WEEKS_FOR_ANALYSIS = 2
MAX_WEEKS_FOR_ANALYSIS = 8


def _newest_first(reports: List[WeeklyReport]) -> List[WeeklyReport]:
    return sorted(reports, key=lambda r: r.week_start_date, reverse=True)


def _maps_by_type(reports: List[WeeklyReport], category_type: CategoryType) -> List[Dict[str, int]]:
    if category_type == CategoryType.exercise:
        return [r.stats.exercise_categories for r in reports]
    return [r.stats.diet_categories for r in reports]


def _current_map(report: WeeklyReport, category_type: CategoryType) -> Dict[str, int]:
    if category_type == CategoryType.exercise:
        return report.stats.exercise_categories
    return report.stats.diet_categories


def _all_names(current: Dict[str, int], history: List[Dict[str, int]]) -> List[str]:
    names = list(current)
    for counts in history:
        names.extend(name for name in counts if name not in names)
    return names


# Week-over-week trends

def _trend_strength(current_count: int, history: List[int]) -> float:
    """Share of week-to-week steps that move the same way as the overall change."""
    if len(history) < 2:
        return 0.0

    overall = current_count - history[-1]
    consistent = 0
    total = 0
    for i in range(len(history) - 1):
        newer = current_count if i == 0 else history[i - 1]
        older = history[i]
        if newer == older:
            continue
        total += 1
        local = newer - older
        if (overall > 0 and local > 0) or (overall < 0 and local < 0):
            consistent += 1

    return consistent / total if total else 0.0


def _momentum(current_count: int, history: List[int]) -> float:
    if len(history) < 2:
        return 0.0

    recent = [current_count] + history[:2]
    momentum = 0.0
    for i in range(len(recent) - 1):
        # 최근 변화에 가중치
        momentum += (recent[i] - recent[i + 1]) * (len(recent) - i)
    return momentum / len(recent)


def _category_trend(name: str, current_count: int, history: List[int],
                    category_type: CategoryType) -> CategoryTrendMetrics:
    if not history:
        return CategoryTrendMetrics(category_name=name, category_type=category_type, current_value=current_count)

    previous = history[0]
    change = change_percentage(current_count, previous)
    return CategoryTrendMetrics(
        category_name=name,
        category_type=category_type,
        direction=direction_from_change(change),
        change_percentage=change,
        trend_strength=_trend_strength(current_count, history),
        volatility=std_dev(history) if len(history) >= 2 else 0.0,
        momentum=_momentum(current_count, history),
        current_value=current_count,
        previous_value=previous,
        historical_average=mean(history),
    )


def analyze_week_over_week_trends(current: WeeklyReport, historical: List[WeeklyReport]) -> CategoryTrendAnalysis:
    if not historical:
        return CategoryTrendAnalysis()

    reports = _newest_first(historical)[:MAX_WEEKS_FOR_ANALYSIS]
    logger.debug(f"Analyzing week-over-week trends over {len(reports)} historical reports")

    trends = {}
    for category_type in CategoryType:
        history_maps = _maps_by_type(reports, category_type)
        trends[category_type] = {
            name: _category_trend(name, count, [m.get(name, 0) for m in history_maps], category_type)
            for name, count in _current_map(current, category_type).items()
        }

    current_total = current.stats.total_certifications
    previous_total = reports[0].stats.total_certifications
    if current_total > previous_total:
        direction = TrendDirection.up
    elif current_total < previous_total:
        direction = TrendDirection.down
    else:
        direction = TrendDirection.stable

    if previous_total > 0:
        strength = abs(current_total - previous_total) / previous_total
    else:
        strength = 1.0 if current_total > 0 else 0.0

    velocity = 0.0
    oldest_total = reports[-1].stats.total_certifications
    if len(reports) >= 2 and oldest_total > 0:
        velocity = (current_total - oldest_total) / len(reports)

    return CategoryTrendAnalysis(
        exercise_category_trends=trends[CategoryType.exercise],
        diet_category_trends=trends[CategoryType.diet],
        overall_trend_direction=direction,
        trend_strength=strength,
        analysis_confidence=min(len(reports) / MAX_WEEKS_FOR_ANALYSIS, 1.0),
        trend_velocity=velocity,
        weeks_analyzed=len(reports) + 1,
    )


# Emergence & decline

def _lifecycle(name: str, category_type: CategoryType, current_count: int, history: List[int]) -> CategoryLifecycle:
    total_weeks = len(history) + 1
    active_weeks = len([c for c in history if c > 0]) + (1 if current_count > 0 else 0)
    activity_ratio = active_weeks / total_weeks
    peak = max([current_count] + history)

    if current_count == 0 and any(c > 0 for c in history):
        stage = LifecycleStage.dormant
    elif activity_ratio < 0.3:
        stage = LifecycleStage.experimental
    elif activity_ratio < 0.7:
        stage = LifecycleStage.developing
    elif current_count >= peak * 0.8:
        stage = LifecycleStage.mature
    else:
        stage = LifecycleStage.declining

    return CategoryLifecycle(
        category_name=name,
        category_type=category_type,
        stage=stage,
        active_weeks=active_weeks,
        total_weeks=total_weeks,
        activity_ratio=activity_ratio,
        peak_count=peak,
        current_count=current_count,
    )


def _emergence_confidence(emerging: List[EmergingCategory], declining: List[DecliningCategory],
                          weeks: int) -> float:
    if weeks < MIN_WEEKS_FOR_ANALYSIS:
        return 0.0

    data_confidence = min(weeks / MAX_WEEKS_FOR_ANALYSIS, 1.0)
    if not emerging and not declining:
        return data_confidence * 0.5

    emergence_strength = mean([c.emergence_strength for c in emerging])
    decline_strength = mean([c.decline_strength for c in declining])
    pattern_strength = (emergence_strength + decline_strength) / 2
    return data_confidence * (0.5 + pattern_strength * 0.5)


def detect_emerging_and_declining(current: WeeklyReport, historical: List[WeeklyReport]) -> CategoryEmergenceAnalysis:
    if len(historical) < MIN_WEEKS_FOR_ANALYSIS:
        return CategoryEmergenceAnalysis()

    reports = _newest_first(historical)
    emerging = []
    declining = []
    lifecycles = {}

    for category_type in CategoryType:
        current_counts = _current_map(current, category_type)
        history_maps = _maps_by_type(reports, category_type)

        for name, count in current_counts.items():
            history = [m.get(name, 0) for m in history_maps]
            average = mean(history)
            is_new = average == 0 and count > 0
            is_increase = average > 0 and count > average * (1 + EMERGING_THRESHOLD)
            if is_new or is_increase:
                emerging.append(EmergingCategory(
                    category_name=name,
                    category_type=category_type,
                    current_count=count,
                    historical_average=average,
                    emergence_strength=(count - average) / average if average > 0 else 1.0,
                    is_new_category=is_new,
                    weeks_active=len([c for c in history if c > 0]) + 1,
                ))

        for name in _all_names({}, history_maps):
            count = current_counts.get(name, 0)
            average = mean([m.get(name, 0) for m in history_maps])
            if average <= 0:
                continue
            disappeared = count == 0
            if disappeared or count < average * (1 - DECLINING_THRESHOLD):
                declining.append(DecliningCategory(
                    category_name=name,
                    category_type=category_type,
                    current_count=count,
                    historical_average=average,
                    decline_strength=(average - count) / average,
                    has_disappeared=disappeared,
                    weeks_inactive=1 if count == 0 else 0,
                ))

        for name in _all_names(current_counts, history_maps):
            history = [m.get(name, 0) for m in history_maps]
            lifecycles[name] = _lifecycle(name, category_type, current_counts.get(name, 0), history)

    return CategoryEmergenceAnalysis(
        emerging_categories=emerging,
        declining_categories=declining,
        lifecycle_patterns=lifecycles,
        emergence_confidence=_emergence_confidence(emerging, declining, len(reports)),
        weeks_analyzed=len(reports) + 1,
    )


# Preference patterns

def _preference_consistency(current_count: int, history: List[int]) -> float:
    if not history:
        return 1.0 if current_count > 0 else 0.0
    return consistency_from_values([current_count] + history)


def _preferences_for_type(current_counts: Dict[str, int], history_maps: List[Dict[str, int]],
                          category_type: CategoryType) -> Dict[str, PreferenceMetrics]:
    preferences = {}
    for name in _all_names(current_counts, history_maps):
        count = current_counts.get(name, 0)
        history = [m.get(name, 0) for m in history_maps]
        total = count + sum(history)
        preferences[name] = PreferenceMetrics(
            category_name=name,
            category_type=category_type,
            total_count=total,
            frequency=len([c for c in history if c > 0]) + (1 if count > 0 else 0),
            consistency=_preference_consistency(count, history),
            intensity=total / (len(history) + 1),
            current_count=count,
            historical_average=mean(history),
        )
    return preferences


def _distribution_variation(first: Dict[str, int], second: Dict[str, int]) -> float:
    names = set(first) | set(second)
    if not names:
        return 0.0
    variation = sum(abs(first.get(n, 0) - second.get(n, 0)) for n in names)
    max_total = max(sum(first.values()), sum(second.values()))
    return variation / (2 * max_total) if max_total > 0 else 0.0


def _category_stability(current_counts: Dict[str, int], history_maps: List[Dict[str, int]]) -> float:
    if not history_maps:
        return 1.0

    variations = []
    for i, older in enumerate(history_maps):
        newer = current_counts if i == 0 else history_maps[i - 1]
        variations.append(_distribution_variation(newer, older))
    return max(0.0, 1.0 - mean(variations))


def recognize_preference_patterns(current: WeeklyReport, historical: List[WeeklyReport]) -> CategoryPreferencePatterns:
    if len(historical) < MIN_WEEKS_FOR_ANALYSIS:
        return CategoryPreferencePatterns()

    reports = _newest_first(historical)
    preferences = {}
    stabilities = {}
    for category_type in CategoryType:
        current_counts = _current_map(current, category_type)
        history_maps = _maps_by_type(reports, category_type)
        preferences[category_type] = _preferences_for_type(current_counts, history_maps, category_type)
        stabilities[category_type] = _category_stability(current_counts, history_maps)

    stability = PreferenceStabilityMetrics(
        overall_stability=(stabilities[CategoryType.exercise] + stabilities[CategoryType.diet]) / 2,
        exercise_stability=stabilities[CategoryType.exercise],
        diet_stability=stabilities[CategoryType.diet],
        stability_trend=TrendDirection.stable,
        weeks_analyzed=len(reports) + 1,
    )

    clusters = []
    if current.stats.exercise_categories:
        clusters.append(PreferenceCluster(
            name='운동 선호',
            categories=list(current.stats.exercise_categories),
            category_type=CategoryType.exercise,
            strength=0.8,
            consistency=0.7,
        ))
    if current.stats.diet_categories:
        clusters.append(PreferenceCluster(
            name='식단 선호',
            categories=list(current.stats.diet_categories),
            category_type=CategoryType.diet,
            strength=0.8,
            consistency=0.7,
        ))

    return CategoryPreferencePatterns(
        exercise_preferences=preferences[CategoryType.exercise],
        diet_preferences=preferences[CategoryType.diet],
        preference_stability=stability,
        preference_clusters=clusters,
        weeks_analyzed=len(reports) + 1,
    )


# Diversity

def diversity_score(stats: WeeklyStats) -> float:
    """Mean of the exercise and diet Shannon diversities."""
    return (shannon_diversity(stats.exercise_categories) + shannon_diversity(stats.diet_categories)) / 2


def _type_balance(counts: Dict[str, int]) -> float:
    if len(counts) == 1:
        return 0.5
    return distribution_balance(counts)


def _diversity_balance(stats: WeeklyStats) -> DiversityBalance:
    exercise_balance = _type_balance(stats.exercise_categories)
    diet_balance = _type_balance(stats.diet_categories)

    total = stats.exercise_total + stats.diet_total
    balance_score = 1.0 - abs(stats.exercise_total / total - 0.5) * 2 if total else 0.0

    return DiversityBalance(
        overall_balance=(exercise_balance + diet_balance) / 2,
        exercise_balance=exercise_balance,
        diet_balance=diet_balance,
        balance_score=balance_score,
    )


def _diversity_recommendations(stats: WeeklyStats) -> List[DiversityRecommendation]:
    recommendations = []

    missing_exercise = [n for n in EXERCISE_CATEGORY_NAMES if n not in stats.exercise_categories]
    for name in missing_exercise[:3]:
        recommendations.append(DiversityRecommendation(
            type=DiversityRecommendationType.add_category,
            category_name=name,
            category_type=CategoryType.exercise,
            priority=Priority.medium,
            reason=f'{name} 활동을 추가하여 운동 다양성을 높여보세요',
            expected_impact=0.1,
        ))

    missing_diet = [n for n in DIET_CATEGORY_NAMES if n not in stats.diet_categories]
    for name in missing_diet[:3]:
        recommendations.append(DiversityRecommendation(
            type=DiversityRecommendationType.add_category,
            category_name=name,
            category_type=CategoryType.diet,
            priority=Priority.medium,
            reason=f'{name} 식단을 추가하여 식단 다양성을 높여보세요',
            expected_impact=0.1,
        ))

    if stats.exercise_categories:
        dominant, count = max(stats.exercise_categories.items(), key=lambda item: item[1])
        if count > stats.exercise_total * 0.6:
            recommendations.append(DiversityRecommendation(
                type=DiversityRecommendationType.balance_categories,
                category_name=dominant,
                category_type=CategoryType.exercise,
                priority=Priority.high,
                reason=f'{dominant} 외에 다른 운동도 균형있게 해보세요',
                expected_impact=0.2,
            ))

    return recommendations


def _share_of_steps(values: List[float], rising: bool) -> bool:
    # values는 최신 주부터 정렬됨
    steps = 0
    for i in range(len(values) - 1):
        if (values[i] > values[i + 1]) if rising else (values[i] < values[i + 1]):
            steps += 1
    return steps >= (len(values) - 1) * 0.7


def _is_cyclical(values: List[float]) -> bool:
    if len(values) < 4:
        return False
    changes = 0
    for i in range(1, len(values) - 1):
        before = values[i - 1] - values[i]
        after = values[i] - values[i + 1]
        if (before > 0 and after < 0) or (before < 0 and after > 0):
            changes += 1
    return changes >= 2


def _diversity_patterns(scores: List[float]) -> List[DiversityPattern]:
    patterns = []
    if len(scores) < 4:
        return patterns

    strength = min(1.0, std_dev(scores))
    checks = [
        (_share_of_steps(scores, rising=True), DiversityPatternType.increasing, '다양성이 지속적으로 증가하고 있습니다'),
        (_share_of_steps(scores, rising=False), DiversityPatternType.decreasing, '다양성이 감소하는 경향을 보입니다'),
        (_is_cyclical(scores), DiversityPatternType.cyclical, '다양성이 주기적으로 변화합니다'),
    ]
    for matched, pattern_type, description in checks:
        if matched:
            patterns.append(DiversityPattern(
                type=pattern_type,
                strength=strength,
                description=description,
                weeks_observed=len(scores),
            ))
    return patterns


def analyze_category_diversity(current: WeeklyReport, historical: List[WeeklyReport]) -> CategoryDiversityAnalysis:
    reports = _newest_first(historical)
    current_score = diversity_score(current.stats)
    historical_scores = [diversity_score(r.stats) for r in reports]

    trend = TrendDirection.stable
    if historical_scores:
        previous = historical_scores[0]
        if current_score > previous * 1.1:
            trend = TrendDirection.up
        elif current_score < previous * 0.9:
            trend = TrendDirection.down

    best = max(historical_scores) if historical_scores else current_score
    targets = OptimalDiversityTargets(
        current_score=current_score,
        short_term_target=min(1.0, current_score * 1.1),
        long_term_target=min(1.0, max(best, current_score * 1.3)),
    )

    return CategoryDiversityAnalysis(
        current_diversity_score=current_score,
        diversity_trend=trend,
        recommendations=_diversity_recommendations(current.stats),
        diversity_balance=_diversity_balance(current.stats),
        diversity_patterns=_diversity_patterns([current_score] + historical_scores),
        optimal_targets=targets,
        weeks_analyzed=len(reports) + 1,
    )
