# report_service/predictive_analytics.py
"""Forecasts and recommendations derived from a user's weekly report history.

All computations are deterministic. When there is too little history an
empty result model is returned instead of raising.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .schemas import (
    WeeklyReport, CategoryType, Priority, Season,
    CategoryPreferencePrediction, PreferenceInsight, InsightType, PreferencePredictionResult,
    SeasonalCategoryPattern, SeasonalForecastItem, SeasonalRecommendation, SeasonalForecast,
    CategoryUsagePattern, ActivitySuggestion, ActivitySuggestionType, ActivitySuggestions,
    CategoryBalanceAnalysis, OptimizationOpportunity, OptimizationOpportunityType,
    OptimizationRecommendation, OptimizationRecommendationType, OptimizationRecommendations,
    CategoryCombination, CombinationEffectivenessType, SynergyRecommendation,
    SynergyRecommendationType, SynergyPriority, CategoryCorrelationAnalysis,
    EXERCISE_CATEGORY_NAMES, DIET_CATEGORY_NAMES,
)
from .statistics import (
    mean, std_dev, coefficient_of_variation, linear_trend, normalized_shannon, pearson_correlation,
    consistency_from_values, merge_counts,
)

logger = logging.getLogger(__name__)

MIN_WEEKS_FOR_PREDICTION = 3
MAX_WEEKS_FOR_PREDICTION = 12
PREDICTION_CONFIDENCE_THRESHOLD = 0.6

SEASON_MONTHS = {
    Season.spring: [3, 4, 5],
    Season.summer: [6, 7, 8],
    Season.autumn: [9, 10, 11],
    Season.winter: [12, 1, 2],
}

SEASON_NAMES = {
    Season.spring: '봄',
    Season.summer: '여름',
    Season.autumn: '가을',
    Season.winter: '겨울',
}

TYPE_LABELS = {
    CategoryType.exercise: '운동',
    CategoryType.diet: '식단',
}


def _oldest_first(reports: List[WeeklyReport]) -> List[WeeklyReport]:
    return sorted(reports, key=lambda r: r.week_start_date)


def _with_current(historical: List[WeeklyReport], current: Optional[WeeklyReport]) -> List[WeeklyReport]:
    reports = _oldest_first(historical)
    if current is not None:
        reports.append(current)
    return reports


def _counts(report: WeeklyReport, category_type: CategoryType) -> Dict[str, int]:
    if category_type == CategoryType.exercise:
        return report.stats.exercise_categories
    return report.stats.diet_categories


def _names(category_type: CategoryType) -> List[str]:
    return EXERCISE_CATEGORY_NAMES if category_type == CategoryType.exercise else DIET_CATEGORY_NAMES


def get_season(date: datetime) -> Season:
    for season, months in SEASON_MONTHS.items():
        if date.month in months:
            return season
    return Season.winter


# Preference prediction

def _seasonal_adjustment(data: List[int]) -> float:
    if len(data) < 4:
        return 0.0

    recent = data[-4:]
    previous = data[-8:-4] if len(data) >= 8 else data[:4]
    previous_avg = mean(previous)
    if previous_avg <= 0:
        return 0.0
    return (mean(recent) - previous_avg) / previous_avg


def _prediction_confidence(data: List[int], trend: float) -> float:
    if len(data) < 3:
        return 0.3

    avg = mean(data)
    consistency = max(0.0, 1.0 - std_dev(data) / avg) if avg > 0 else 0.0
    trend_strength = abs(trend) / (avg + 1)
    base = min(len(data) / MAX_WEEKS_FOR_PREDICTION, 1.0)
    return (base + consistency + min(trend_strength, 1.0)) / 3


def _predict_category(name: str, category_type: CategoryType, data: List[int],
                      weeks_ahead: int) -> CategoryPreferencePrediction:
    if len(data) < 2:
        return CategoryPreferencePrediction(category_name=name, category_type=category_type)

    trend = linear_trend(data)
    last = float(data[-1])
    predicted = max(0.0, last + trend * weeks_ahead + _seasonal_adjustment(data) * last * 0.1)

    peak = max(data)
    strength = (mean(data) / peak + predicted / peak) / 2 if peak > 0 else 0.0

    return CategoryPreferencePrediction(
        category_name=name,
        category_type=category_type,
        predicted_value=predicted,
        confidence=_prediction_confidence(data, trend),
        trend=trend,
        preference_strength=strength,
        historical_average=mean(data),
        volatility=std_dev(data),
    )


def _preference_insights(predictions: Dict[CategoryType, Dict[str, CategoryPreferencePrediction]],
                         confidence: float) -> List[PreferenceInsight]:
    if confidence < PREDICTION_CONFIDENCE_THRESHOLD:
        return [PreferenceInsight(
            type=InsightType.warning,
            message='예측 신뢰도가 낮습니다. 더 많은 데이터가 필요합니다.',
            category='전체',
            confidence=confidence,
        )]

    insights = []
    for category_type, by_name in predictions.items():
        strong = [name for name, p in by_name.items() if p.preference_strength > 0.7]
        if strong:
            label = TYPE_LABELS[category_type]
            insights.append(PreferenceInsight(
                type=InsightType.positive,
                message=f'{", ".join(strong)} {label}을 지속적으로 선호할 것으로 예상됩니다.',
                category=label,
                confidence=confidence,
            ))
    return insights


def predict_category_preferences(historical: List[WeeklyReport], weeks_ahead: int = 4) -> PreferencePredictionResult:
    if len(historical) < MIN_WEEKS_FOR_PREDICTION:
        return PreferencePredictionResult(weeks_ahead=weeks_ahead)

    reports = _oldest_first(historical)[-MAX_WEEKS_FOR_PREDICTION:]
    logger.debug(f"Predicting category preferences {weeks_ahead} weeks ahead from {len(reports)} reports")

    predictions = {}
    for category_type in CategoryType:
        predictions[category_type] = {
            name: _predict_category(name, category_type, [_counts(r, category_type).get(name, 0) for r in reports],
                                    weeks_ahead)
            for name in _names(category_type)
        }

    quantity = min(len(reports) / MAX_WEEKS_FOR_PREDICTION, 1.0)
    quality = len([r for r in reports if r.has_sufficient_data]) / len(reports)
    confidence = (quantity + quality) / 2

    return PreferencePredictionResult(
        exercise_predictions=predictions[CategoryType.exercise],
        diet_predictions=predictions[CategoryType.diet],
        prediction_confidence=confidence,
        weeks_ahead=weeks_ahead,
        insights=_preference_insights(predictions, confidence),
        weeks_analyzed=len(reports),
    )


# Seasonal forecast

def _seasonal_pattern(name: str, category_type: CategoryType,
                      by_month: Dict[int, List[WeeklyReport]]) -> SeasonalCategoryPattern:
    averages = {}
    variability = {}
    for month, reports in by_month.items():
        values = [_counts(r, category_type).get(name, 0) for r in reports]
        averages[month] = mean(values)
        variability[month] = std_dev(values)

    peak_month = max(averages, key=averages.get) if averages else 1
    low_month = min(averages, key=averages.get) if averages else 1
    strength = coefficient_of_variation(list(averages.values())) if len(averages) >= 2 else 0.0

    return SeasonalCategoryPattern(
        category_name=name,
        category_type=category_type,
        monthly_averages=averages,
        monthly_variability=variability,
        peak_month=peak_month,
        low_month=low_month,
        seasonal_strength=strength,
    )


def _seasonal_forecast_value(pattern: SeasonalCategoryPattern, months: List[int]) -> float:
    relevant = [pattern.monthly_averages.get(m, 0.0) for m in months]
    return mean([avg for avg in relevant if avg > 0])


def _seasonal_confidence(reports: List[WeeklyReport], now: datetime) -> float:
    years = reports[-1].week_start_date.year - reports[0].week_start_date.year + 1
    data_confidence = min(years / 2.0, 1.0)

    last = reports[-1].week_start_date
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    days_since_last = (now - last).days
    recency = max(0.0, 1.0 - days_since_last / 365)
    return (data_confidence + recency) / 2


def forecast_seasonal_category_trends(historical: List[WeeklyReport], target_date: datetime,
                                      now: Optional[datetime] = None) -> SeasonalForecast:
    target_season = get_season(target_date)
    if len(historical) < MIN_WEEKS_FOR_PREDICTION:
        return SeasonalForecast(target_date=target_date, target_season=target_season)

    now = now or datetime.now(timezone.utc)
    reports = _oldest_first(historical)

    by_month: Dict[int, List[WeeklyReport]] = {}
    for report in reports:
        by_month.setdefault(report.week_start_date.month, []).append(report)

    patterns = {}
    forecasts = {CategoryType.exercise: {}, CategoryType.diet: {}}
    months = SEASON_MONTHS[target_season]
    for category_type in CategoryType:
        for name in _names(category_type):
            pattern = _seasonal_pattern(name, category_type, by_month)
            patterns[name] = pattern
            forecasts[category_type][name] = SeasonalForecastItem(
                category_name=name,
                category_type=category_type,
                forecast_value=_seasonal_forecast_value(pattern, months),
                confidence=(len(pattern.monthly_averages) / 12.0 + 1.0 - pattern.seasonal_strength) / 2,
                target_season=target_season,
            )

    confidence = _seasonal_confidence(reports, now)

    recommendations = []
    if confidence >= PREDICTION_CONFIDENCE_THRESHOLD:
        season_name = SEASON_NAMES[target_season]
        for category_type, items in forecasts.items():
            for name, item in items.items():
                if item.forecast_value <= 2.0 or item.confidence <= 0.6:
                    continue
                if category_type == CategoryType.exercise:
                    message = f'{season_name}에는 {name} 운동이 활발해질 것으로 예상됩니다.'
                else:
                    message = f'{season_name}에는 {name} 식단을 더 자주 선택할 것으로 예상됩니다.'
                recommendations.append(SeasonalRecommendation(
                    category_name=name,
                    category_type=category_type,
                    target_season=target_season,
                    message=message,
                    confidence=item.confidence,
                ))

    return SeasonalForecast(
        target_date=target_date,
        target_season=target_season,
        exercise_forecasts=forecasts[CategoryType.exercise],
        diet_forecasts=forecasts[CategoryType.diet],
        seasonal_patterns=patterns,
        forecast_confidence=confidence,
        recommendations=recommendations,
        weeks_analyzed=len(reports),
    )


# Activity suggestions

def _usage_trend(usage: List[int]) -> float:
    if len(usage) < 2:
        return 0.0
    half = len(usage) // 2
    earlier = mean(usage[:half])
    if earlier <= 0:
        return 0.0
    return (mean(usage[half:]) - earlier) / earlier


def _usage_patterns(reports: List[WeeklyReport], category_type: CategoryType) -> Dict[str, CategoryUsagePattern]:
    names = []
    for report in reports:
        names.extend(n for n in _counts(report, category_type) if n not in names)

    patterns = {}
    for name in names:
        usage = [_counts(r, category_type).get(name, 0) for r in reports]
        patterns[name] = CategoryUsagePattern(
            category_name=name,
            category_type=category_type,
            usage_frequency=len([u for u in usage if u > 0]) / len(reports),
            average_usage=mean(usage),
            peak_usage=max(usage),
            consistency=1.0 if len(usage) < 2 else consistency_from_values(usage),
            trend=_usage_trend(usage),
        )
    return patterns


def _suggestion_for(pattern: CategoryUsagePattern) -> Optional[ActivitySuggestion]:
    name = pattern.category_name
    is_exercise = pattern.category_type == CategoryType.exercise

    if pattern.usage_frequency > 0.5 and pattern.trend < -0.2:
        suggestion_type = ActivitySuggestionType.revive
        priority = Priority.medium
        if is_exercise:
            message = f'최근 {name} 운동이 줄어들었습니다. 다시 시작해보세요!'
        else:
            message = f'최근 {name} 식단이 줄어들었습니다. 균형을 위해 다시 시도해보세요.'
    elif pattern.usage_frequency < 0.3 and pattern.average_usage > 0:
        suggestion_type = ActivitySuggestionType.explore
        priority = Priority.low
        message = f'{name} {TYPE_LABELS[pattern.category_type]}을 더 자주 시도해보세요.'
    elif pattern.trend > 0.3:
        suggestion_type = ActivitySuggestionType.maintain
        priority = Priority.high
        message = f'{name} {TYPE_LABELS[pattern.category_type]}을 잘 유지하고 있습니다. 계속하세요!'
    else:
        return None

    return ActivitySuggestion(
        category_name=name,
        category_type=pattern.category_type,
        suggestion_type=suggestion_type,
        message=message,
        priority=priority,
        confidence=pattern.consistency,
    )


def generate_activity_suggestions(historical: List[WeeklyReport],
                                  current: Optional[WeeklyReport] = None) -> ActivitySuggestions:
    if not historical:
        return ActivitySuggestions()

    reports = _with_current(historical, current)
    suggestions = {}
    all_patterns = []
    for category_type in CategoryType:
        patterns = _usage_patterns(reports, category_type)
        all_patterns.extend(patterns.values())
        suggestions[category_type] = [s for s in map(_suggestion_for, patterns.values()) if s is not None]

    if len(historical) < MIN_WEEKS_FOR_PREDICTION:
        confidence = 0.3
    else:
        data_confidence = min(len(historical) / MAX_WEEKS_FOR_PREDICTION, 1.0)
        confidence = (data_confidence + mean([p.consistency for p in all_patterns])) / 2

    return ActivitySuggestions(
        exercise_suggestions=suggestions[CategoryType.exercise],
        diet_suggestions=suggestions[CategoryType.diet],
        suggestion_confidence=confidence,
        weeks_analyzed=len(historical),
    )


# Optimization

def _overall_consistency(reports: List[WeeklyReport]) -> float:
    if len(reports) < 2:
        return 1.0
    return consistency_from_values([r.stats.total_certifications for r in reports])


def _underused_recommendations(reports: List[WeeklyReport],
                               category_type: CategoryType) -> List[OptimizationRecommendation]:
    usage = merge_counts([_counts(r, category_type) for r in reports])
    underused = sorted(usage.items(), key=lambda item: item[1])[:2]

    recommendations = []
    for name, _ in underused:
        if category_type == CategoryType.exercise:
            description = f'{name} 운동을 더 자주 시도해보세요'
            steps = [f'주 1-2회 {name} 운동 계획하기', f'다양한 {name} 운동 방법 찾아보기', f'운동 일정에 {name} 시간 배정하기']
        else:
            description = f'{name} 식단을 더 자주 시도해보세요'
            steps = [f'주 2-3회 {name} 식단 계획하기', f'{name} 관련 레시피 찾아보기', f'식단 계획에 {name} 포함하기']
        recommendations.append(OptimizationRecommendation(
            type=OptimizationRecommendationType.increase_category_usage,
            category_name=name,
            category_type=category_type,
            description=description,
            expected_impact=0.2,
            priority=Priority.medium,
            action_steps=steps,
        ))
    return recommendations


def _consistency_recommendation() -> OptimizationRecommendation:
    return OptimizationRecommendation(
        type=OptimizationRecommendationType.improve_consistency,
        description='활동의 일관성을 개선하여 더 안정적인 패턴을 만들어보세요',
        expected_impact=0.3,
        priority=Priority.high,
        action_steps=[
            '매일 최소 1개의 활동 목표 설정하기',
            '주간 활동 계획 미리 세우기',
            '활동 알림 설정하여 규칙성 유지하기',
            '작은 목표부터 시작하여 점진적으로 늘리기',
        ],
    )


def _activity_imbalance(reports: List[WeeklyReport]) -> Tuple[int, int]:
    return sum(r.stats.exercise_days for r in reports), sum(r.stats.diet_days for r in reports)


def _balance_activity_recommendation(reports: List[WeeklyReport]) -> Optional[OptimizationRecommendation]:
    exercise_days, diet_days = _activity_imbalance(reports)
    if exercise_days > diet_days * 1.5:
        description = '운동과 식단의 균형을 맞춰보세요. 식단 관리를 늘려보세요.'
        steps = ['주간 식단 계획 세우기', '건강한 식단 옵션 늘리기', '식단 인증 빈도 높이기']
    elif diet_days > exercise_days * 1.5:
        description = '운동과 식단의 균형을 맞춰보세요. 운동 활동을 늘려보세요.'
        steps = ['주간 운동 계획 세우기', '다양한 운동 종류 시도하기', '운동 인증 빈도 높이기']
    else:
        return None

    return OptimizationRecommendation(
        type=OptimizationRecommendationType.balance_categories,
        description=description,
        expected_impact=0.25,
        priority=Priority.medium,
        action_steps=steps,
    )


def _optimization_opportunities(balance: CategoryBalanceAnalysis,
                                reports: List[WeeklyReport]) -> List[OptimizationOpportunity]:
    opportunities = []
    if balance.exercise_balance < 0.6:
        opportunities.append(OptimizationOpportunity(
            type=OptimizationOpportunityType.increase_exercise_diversity,
            description='운동 카테고리의 다양성을 높여보세요',
            current_score=balance.exercise_balance,
            target_score=0.8,
            priority=Priority.high,
        ))
    if balance.diet_balance < 0.6:
        opportunities.append(OptimizationOpportunity(
            type=OptimizationOpportunityType.increase_diet_diversity,
            description='식단 카테고리의 다양성을 높여보세요',
            current_score=balance.diet_balance,
            target_score=0.8,
            priority=Priority.high,
        ))

    consistency = _overall_consistency(reports)
    if consistency < 0.7:
        opportunities.append(OptimizationOpportunity(
            type=OptimizationOpportunityType.improve_consistency,
            description='활동의 일관성을 개선해보세요',
            current_score=consistency,
            target_score=0.8,
            priority=Priority.medium,
        ))

    exercise_days, diet_days = _activity_imbalance(reports)
    total_days = exercise_days + diet_days
    if exercise_days > diet_days * 1.5 or diet_days > exercise_days * 1.5:
        opportunities.append(OptimizationOpportunity(
            type=OptimizationOpportunityType.balance_activity,
            description='운동과 식단 활동의 균형을 맞춰보세요',
            current_score=1.0 - abs(exercise_days - diet_days) / total_days,
            target_score=0.8,
            priority=Priority.medium,
        ))

    return opportunities


def _expected_outcomes(recommendations: List[OptimizationRecommendation]) -> Dict[str, float]:
    balance = 0.0
    consistency = 0.0
    for recommendation in recommendations:
        if recommendation.type == OptimizationRecommendationType.decrease_category_usage:
            balance += recommendation.expected_impact * 0.5
        elif recommendation.type == OptimizationRecommendationType.improve_consistency:
            consistency += recommendation.expected_impact
        else:
            balance += recommendation.expected_impact

    outcomes = {
        "balance_improvement": min(balance, 0.5),
        "consistency_improvement": min(consistency, 0.4),
    }
    outcomes["overall_improvement"] = (outcomes["balance_improvement"] + outcomes["consistency_improvement"]) / 2
    return outcomes


def generate_optimization_recommendations(historical: List[WeeklyReport],
                                          current: Optional[WeeklyReport] = None) -> OptimizationRecommendations:
    if not historical:
        return OptimizationRecommendations()

    reports = _with_current(historical, current)
    exercise_balance = normalized_shannon(merge_counts([r.stats.exercise_categories for r in reports]))
    diet_balance = normalized_shannon(merge_counts([r.stats.diet_categories for r in reports]))
    balance = CategoryBalanceAnalysis(
        exercise_balance=exercise_balance,
        diet_balance=diet_balance,
        overall_balance=(exercise_balance + diet_balance) / 2,
    )

    opportunities = _optimization_opportunities(balance, reports)
    recommendations = []
    for opportunity in opportunities:
        if opportunity.type == OptimizationOpportunityType.increase_exercise_diversity:
            recommendations.extend(_underused_recommendations(reports, CategoryType.exercise))
        elif opportunity.type == OptimizationOpportunityType.increase_diet_diversity:
            recommendations.extend(_underused_recommendations(reports, CategoryType.diet))
        elif opportunity.type == OptimizationOpportunityType.improve_consistency:
            recommendations.append(_consistency_recommendation())
        else:
            recommendation = _balance_activity_recommendation(reports)
            if recommendation is not None:
                recommendations.append(recommendation)

    outcomes = _expected_outcomes(recommendations)
    recommendations.sort(key=lambda r: (r.priority.rank, r.expected_impact), reverse=True)

    return OptimizationRecommendations(
        recommendations=recommendations,
        optimization_opportunities=opportunities,
        expected_outcomes=outcomes,
        current_balance=balance,
        weeks_analyzed=len(historical),
    )


# Correlations

def _correlation_matrix(reports: List[WeeklyReport], row_type: CategoryType,
                        column_type: CategoryType) -> Dict[str, Dict[str, float]]:
    matrix = {}
    for row in _names(row_type):
        row_values = [_counts(r, row_type).get(row, 0) for r in reports]
        matrix[row] = {}
        for column in _names(column_type):
            if row_type == column_type and row == column:
                matrix[row][column] = 1.0
                continue
            column_values = [_counts(r, column_type).get(column, 0) for r in reports]
            matrix[row][column] = pearson_correlation(row_values, column_values)
    return matrix


def _effectiveness_type(correlation: float, consistency: float) -> CombinationEffectivenessType:
    if correlation > 0.8 and consistency > 0.7:
        return CombinationEffectivenessType.high_synergy
    if correlation > 0.6 and consistency > 0.6:
        return CombinationEffectivenessType.balanced
    if correlation > 0.5:
        return CombinationEffectivenessType.complementary
    return CombinationEffectivenessType.consistent


def _combination_benefits(types: List[CategoryType], correlation: float) -> List[str]:
    benefits = []
    if correlation > 0.7:
        benefits.append('높은 시너지 효과')
    if correlation > 0.6:
        benefits.append('상호 보완적 효과')
    if CategoryType.exercise in types and CategoryType.diet in types:
        benefits.append('운동과 식단의 균형잡힌 조합')
        benefits.append('전체적인 건강 관리 효과')
    if not benefits:
        benefits.append('일관된 활동 패턴')
    return benefits


def _combination(categories: List[str], types: List[CategoryType], reports: List[WeeklyReport],
                 correlation: float) -> CategoryCombination:
    occurrences = 0
    for report in reports:
        if all(_counts(report, t).get(c, 0) > 0 for c, t in zip(categories, types)):
            occurrences += 1

    consistency = occurrences / len(reports) if reports else 0.0
    return CategoryCombination(
        categories=categories,
        category_types=types,
        effectiveness_score=(correlation + consistency) / 2,
        correlation_strength=correlation,
        occurrence_count=occurrences,
        consistency_score=consistency,
        benefits=_combination_benefits(types, correlation),
        effectiveness_type=_effectiveness_type(correlation, consistency),
    )


def _effective_combinations(reports: List[WeeklyReport],
                            matrices: Dict[Tuple[CategoryType, CategoryType], Dict[str, Dict[str, float]]]
                            ) -> List[CategoryCombination]:
    combinations = []

    for category_type in CategoryType:
        names = _names(category_type)
        matrix = matrices[(category_type, category_type)]
        for i, first in enumerate(names):
            for second in names[i + 1:]:
                correlation = matrix[first][second]
                if correlation <= 0.6:
                    continue
                combination = _combination([first, second], [category_type, category_type], reports, correlation)
                if combination.effectiveness_score > 0.5:
                    combinations.append(combination)

    cross = matrices[(CategoryType.exercise, CategoryType.diet)]
    for exercise_name, row in cross.items():
        for diet_name, correlation in row.items():
            if correlation <= 0.5:
                continue
            combination = _combination([exercise_name, diet_name], [CategoryType.exercise, CategoryType.diet],
                                       reports, correlation)
            if combination.effectiveness_score > 0.4:
                combinations.append(combination)

    combinations.sort(key=lambda c: c.effectiveness_score, reverse=True)
    return combinations[:10]


def _synergy_priority(score: float) -> SynergyPriority:
    if score > 0.8:
        return SynergyPriority.critical
    if score > 0.6:
        return SynergyPriority.high
    if score > 0.4:
        return SynergyPriority.medium
    return SynergyPriority.low


def _synergy(primary: str, primary_type: CategoryType, recommended: str, recommended_type: CategoryType,
             score: float, benefits: List[str]) -> SynergyRecommendation:
    primary_label = TYPE_LABELS[primary_type]
    recommended_label = TYPE_LABELS[recommended_type]
    if primary_type == recommended_type:
        recommendation_type = SynergyRecommendationType.enhance
        description = f'{primary} {primary_label}과 {recommended} {primary_label}을 함께 하면 시너지 효과를 얻을 수 있습니다.'
    else:
        recommendation_type = SynergyRecommendationType.complement
        description = (f'{primary} {primary_label}과 {recommended} {recommended_label}을 함께 하면 '
                       f'상호 보완적인 효과를 얻을 수 있습니다.')

    return SynergyRecommendation(
        primary_category=primary,
        primary_type=primary_type,
        recommended_category=recommended,
        recommended_type=recommended_type,
        synergy_score=score,
        recommendation_type=recommendation_type,
        description=description,
        expected_benefits=benefits,
        priority=_synergy_priority(score),
    )


def _synergy_recommendations(combinations: List[CategoryCombination],
                             cross: Dict[str, Dict[str, float]]) -> List[SynergyRecommendation]:
    recommendations = []
    for combination in combinations[:5]:
        recommendations.append(_synergy(
            combination.categories[0], combination.category_types[0],
            combination.categories[1], combination.category_types[1],
            combination.correlation_strength, combination.benefits,
        ))

    covered = {frozenset(c.categories) for c in combinations}
    for exercise_name, row in cross.items():
        for diet_name, correlation in row.items():
            if correlation > 0.6 and frozenset([exercise_name, diet_name]) not in covered:
                recommendations.append(_synergy(
                    exercise_name, CategoryType.exercise, diet_name, CategoryType.diet,
                    correlation, ['잠재적 시너지 효과', '균형잡힌 건강 관리'],
                ))

    recommendations.sort(key=lambda r: r.synergy_score, reverse=True)
    return recommendations[:8]


def analyze_category_correlations(historical: List[WeeklyReport],
                                  current: Optional[WeeklyReport] = None) -> CategoryCorrelationAnalysis:
    if len(historical) < MIN_WEEKS_FOR_PREDICTION:
        return CategoryCorrelationAnalysis()

    reports = _with_current(historical, current)
    matrices = {
        (CategoryType.exercise, CategoryType.exercise): _correlation_matrix(
            reports, CategoryType.exercise, CategoryType.exercise),
        (CategoryType.diet, CategoryType.diet): _correlation_matrix(reports, CategoryType.diet, CategoryType.diet),
        (CategoryType.exercise, CategoryType.diet): _correlation_matrix(
            reports, CategoryType.exercise, CategoryType.diet),
    }
    cross = matrices[(CategoryType.exercise, CategoryType.diet)]
    combinations = _effective_combinations(reports, matrices)

    return CategoryCorrelationAnalysis(
        exercise_correlations=matrices[(CategoryType.exercise, CategoryType.exercise)],
        diet_correlations=matrices[(CategoryType.diet, CategoryType.diet)],
        cross_type_correlations=cross,
        effective_combinations=combinations,
        synergy_recommendations=_synergy_recommendations(combinations, cross),
        weeks_analyzed=len(reports),
    )
