import pytest
from datetime import datetime, timezone
from backend.report_service import predictive_analytics
from backend.report_service.schemas import (
    Season, InsightType, ActivitySuggestionType, Priority, OptimizationOpportunityType,
    OptimizationRecommendationType, CombinationEffectivenessType, SynergyRecommendationType,
    SynergyPriority, CategoryType,
)

STRENGTH = "근력 운동"
CARDIO = "유산소 운동"
YOGA = "스트레칭/요가"
HOME = "집밥/도시락"
SALAD = "건강식/샐러드"


def _series(report_factory, exercise_series=None, diet_series=None, totals=None):
    """Reports oldest first; the last one is the most recent week."""
    exercise_series = exercise_series or {}
    diet_series = diet_series or {}
    length = max(len(v) for v in list(exercise_series.values()) + list(diet_series.values()))
    reports = []
    for i in range(length):
        exercise = {name: values[i] for name, values in exercise_series.items() if values[i] > 0}
        diet = {name: values[i] for name, values in diet_series.items() if values[i] > 0}
        reports.append(report_factory(
            weeks_ago=length - 1 - i,
            exercise=exercise,
            diet=diet,
            total=totals[i] if totals else None,
        ))
    return reports


# Preference prediction

def test_predictions_need_three_reports(report_factory):
    reports = _series(report_factory, {STRENGTH: [1, 2]})
    result = predictive_analytics.predict_category_preferences(reports, weeks_ahead=4)
    assert result.exercise_predictions == {}
    assert result.weeks_ahead == 4
    assert result.weeks_analyzed == 0


def test_predictions_follow_linear_trend(report_factory):
    reports = _series(report_factory, {STRENGTH: [1, 2, 3, 4]})

    result = predictive_analytics.predict_category_preferences(list(reversed(reports)), weeks_ahead=4)

    strength = result.exercise_predictions[STRENGTH]
    assert strength.trend == pytest.approx(1.0)
    assert strength.predicted_value == pytest.approx(8.0)
    assert strength.historical_average == pytest.approx(2.5)
    assert strength.preference_strength == pytest.approx((2.5 / 4 + 8 / 4) / 2)
    assert set(result.exercise_predictions) == {
        "근력 운동", "유산소 운동", "스트레칭/요가", "구기/스포츠", "야외 활동", "댄스/무용",
    }
    assert result.diet_predictions[HOME].predicted_value == 0.0
    assert result.weeks_analyzed == 4


def test_predictions_low_confidence_warning(report_factory):
    reports = _series(report_factory, {STRENGTH: [1, 2, 3, 4]})
    result = predictive_analytics.predict_category_preferences(reports)

    assert result.prediction_confidence < predictive_analytics.PREDICTION_CONFIDENCE_THRESHOLD
    assert len(result.insights) == 1
    assert result.insights[0].type == InsightType.warning
    assert result.insights[0].category == '전체'


def test_predictions_strong_preference_insight(report_factory):
    reports = _series(report_factory, {STRENGTH: [5] * 12}, {HOME: [6] * 12})

    result = predictive_analytics.predict_category_preferences(reports)

    assert result.prediction_confidence == pytest.approx(1.0)
    messages = {i.category: i.message for i in result.insights}
    assert messages['운동'] == f'{STRENGTH} 운동을 지속적으로 선호할 것으로 예상됩니다.'
    assert messages['식단'] == f'{HOME} 식단을 지속적으로 선호할 것으로 예상됩니다.'


def test_predictions_keep_last_twelve_weeks(report_factory):
    reports = _series(report_factory, {STRENGTH: [9] * 4 + [1] * 12})
    result = predictive_analytics.predict_category_preferences(reports)
    assert result.weeks_analyzed == 12
    assert result.exercise_predictions[STRENGTH].historical_average == pytest.approx(1.0)


# Seasonal forecast

def test_get_season():
    assert predictive_analytics.get_season(datetime(2024, 4, 1)) == Season.spring
    assert predictive_analytics.get_season(datetime(2024, 7, 1)) == Season.summer
    assert predictive_analytics.get_season(datetime(2024, 10, 1)) == Season.autumn
    assert predictive_analytics.get_season(datetime(2024, 12, 1)) == Season.winter
    assert predictive_analytics.get_season(datetime(2024, 2, 1)) == Season.winter


def test_seasonal_forecast_with_insufficient_data(report_factory):
    target = datetime(2024, 7, 1, tzinfo=timezone.utc)
    result = predictive_analytics.forecast_seasonal_category_trends([report_factory()], target)
    assert result.target_season == Season.summer
    assert result.exercise_forecasts == {}


def test_seasonal_forecast_recommendations(report_factory):
    starts = [
        datetime(2023, 6, 4, tzinfo=timezone.utc),
        datetime(2023, 7, 2, tzinfo=timezone.utc),
        datetime(2023, 8, 6, tzinfo=timezone.utc),
        datetime(2024, 6, 2, tzinfo=timezone.utc),
    ]
    reports = [report_factory(week_start=s, exercise={STRENGTH: 4}, diet={HOME: 3}) for s in starts]

    result = predictive_analytics.forecast_seasonal_category_trends(
        reports,
        target_date=datetime(2024, 7, 15, tzinfo=timezone.utc),
        now=datetime(2024, 6, 10, tzinfo=timezone.utc),
    )

    pattern = result.seasonal_patterns[STRENGTH]
    assert pattern.monthly_averages == {6: 4.0, 7: 4.0, 8: 4.0}
    assert pattern.seasonal_strength == 0.0
    assert result.exercise_forecasts[STRENGTH].forecast_value == pytest.approx(4.0)
    assert result.exercise_forecasts[STRENGTH].confidence == pytest.approx(0.625)
    assert result.forecast_confidence >= 0.6

    messages = [r.message for r in result.recommendations]
    assert f'여름에는 {STRENGTH} 운동이 활발해질 것으로 예상됩니다.' in messages
    assert f'여름에는 {HOME} 식단을 더 자주 선택할 것으로 예상됩니다.' in messages
    assert len(messages) == 2
    assert result.weeks_analyzed == 4


def test_seasonal_forecast_stale_data_has_no_recommendations(report_factory):
    reports = [report_factory(weeks_ago=w, exercise={STRENGTH: 5}) for w in range(3)]
    result = predictive_analytics.forecast_seasonal_category_trends(
        reports,
        target_date=datetime(2026, 7, 1, tzinfo=timezone.utc),
        now=datetime(2026, 6, 1, tzinfo=timezone.utc),
    )
    assert result.forecast_confidence < 0.6
    assert result.recommendations == []


# Activity suggestions

def test_activity_suggestions(report_factory):
    reports = _series(
        report_factory,
        {STRENGTH: [4, 4, 1, 1], CARDIO: [1, 0, 0, 0], YOGA: [1, 1, 3, 3]},
        {HOME: [2, 2, 2, 2]},
    )
    historical, current = reports[:-1], reports[-1]

    result = predictive_analytics.generate_activity_suggestions(historical, current)

    by_name = {s.category_name: s for s in result.exercise_suggestions}
    assert by_name[STRENGTH].suggestion_type == ActivitySuggestionType.revive
    assert by_name[STRENGTH].priority == Priority.medium
    assert by_name[STRENGTH].message.startswith(f'최근 {STRENGTH}')
    assert by_name[STRENGTH].confidence == pytest.approx(0.4)
    assert by_name[CARDIO].suggestion_type == ActivitySuggestionType.explore
    assert by_name[CARDIO].priority == Priority.low
    assert by_name[YOGA].suggestion_type == ActivitySuggestionType.maintain
    assert by_name[YOGA].priority == Priority.high
    assert result.diet_suggestions == []
    assert result.weeks_analyzed == 3
    assert 0.0 < result.suggestion_confidence <= 1.0


def test_activity_suggestions_low_confidence_with_short_history(report_factory):
    reports = _series(report_factory, {STRENGTH: [2, 2]})
    result = predictive_analytics.generate_activity_suggestions(reports[:1], reports[1])
    assert result.suggestion_confidence == 0.3


def test_activity_suggestions_empty_history(report_factory):
    result = predictive_analytics.generate_activity_suggestions([], report_factory())
    assert result.exercise_suggestions == []
    assert result.weeks_analyzed == 0


# Optimization

def test_optimization_for_single_exercise_category(report_factory):
    reports = _series(report_factory, {STRENGTH: [5, 5, 5]}, {HOME: [2, 2, 2], SALAD: [2, 2, 2]})

    result = predictive_analytics.generate_optimization_recommendations(reports[:-1], reports[-1])

    assert result.current_balance.exercise_balance == 0.0
    assert result.current_balance.diet_balance == pytest.approx(1.0)
    assert [o.type for o in result.optimization_opportunities] == [
        OptimizationOpportunityType.increase_exercise_diversity,
    ]
    assert len(result.recommendations) == 1
    recommendation = result.recommendations[0]
    assert recommendation.type == OptimizationRecommendationType.increase_category_usage
    assert recommendation.category_name == STRENGTH
    assert recommendation.action_steps[0] == f'주 1-2회 {STRENGTH} 운동 계획하기'
    assert result.expected_outcomes["balance_improvement"] == pytest.approx(0.2)
    assert result.expected_outcomes["overall_improvement"] == pytest.approx(0.1)
    assert result.weeks_analyzed == 2


def test_optimization_ranks_by_priority_then_impact(report_factory):
    reports = _series(
        report_factory,
        {STRENGTH: [1, 1, 1, 1]},
        {HOME: [5, 5, 5, 5], SALAD: [5, 5, 5, 5]},
        totals=[2, 10, 2, 10],
    )

    result = predictive_analytics.generate_optimization_recommendations(reports[:-1], reports[-1])

    types = [o.type for o in result.optimization_opportunities]
    assert OptimizationOpportunityType.improve_consistency in types
    assert OptimizationOpportunityType.balance_activity in types

    ranked = [r.type for r in result.recommendations]
    assert ranked == [
        OptimizationRecommendationType.improve_consistency,
        OptimizationRecommendationType.balance_categories,
        OptimizationRecommendationType.increase_category_usage,
    ]
    assert result.recommendations[1].description == '운동과 식단의 균형을 맞춰보세요. 운동 활동을 늘려보세요.'
    assert result.expected_outcomes["balance_improvement"] == pytest.approx(0.45)
    assert result.expected_outcomes["consistency_improvement"] == pytest.approx(0.3)


def test_optimization_empty_history(report_factory):
    result = predictive_analytics.generate_optimization_recommendations([], report_factory())
    assert result.recommendations == []
    assert result.weeks_analyzed == 0


# Correlations

def test_correlations_need_three_historical_reports(report_factory):
    reports = _series(report_factory, {STRENGTH: [1, 2, 3]})
    result = predictive_analytics.analyze_category_correlations(reports[:-1], reports[-1])
    assert result.effective_combinations == []
    assert result.weeks_analyzed == 0


def test_correlations_and_synergy(report_factory):
    reports = _series(
        report_factory,
        {STRENGTH: [1, 2, 3, 4], CARDIO: [2, 4, 6, 8]},
        {HOME: [1, 2, 3, 4], SALAD: [4, 3, 2, 1]},
    )

    result = predictive_analytics.analyze_category_correlations(reports[:-1], reports[-1])

    assert result.exercise_correlations[STRENGTH][STRENGTH] == 1.0
    assert result.exercise_correlations[STRENGTH][CARDIO] == pytest.approx(1.0)
    assert result.diet_correlations[HOME][SALAD] == pytest.approx(-1.0)
    assert result.cross_type_correlations[STRENGTH][HOME] == pytest.approx(1.0)
    assert result.exercise_correlations[STRENGTH][YOGA] == 0.0

    pairs = [frozenset(c.categories) for c in result.effective_combinations]
    assert pairs.count(frozenset([STRENGTH, CARDIO])) == 1
    assert frozenset([STRENGTH, HOME]) in pairs
    assert frozenset([HOME, SALAD]) not in pairs
    assert len(pairs) == 3

    same_type = next(c for c in result.effective_combinations if c.category_types == [CategoryType.exercise] * 2)
    assert same_type.effectiveness_type == CombinationEffectivenessType.high_synergy
    assert same_type.occurrence_count == 4
    assert same_type.benefits == ['높은 시너지 효과', '상호 보완적 효과']

    cross = next(c for c in result.effective_combinations if CategoryType.diet in c.category_types)
    assert '운동과 식단의 균형잡힌 조합' in cross.benefits

    assert len(result.synergy_recommendations) == 3
    assert all(r.priority == SynergyPriority.critical for r in result.synergy_recommendations)
    enhance = [r for r in result.synergy_recommendations
               if r.recommendation_type == SynergyRecommendationType.enhance]
    assert enhance[0].description == f'{STRENGTH} 운동과 {CARDIO} 운동을 함께 하면 시너지 효과를 얻을 수 있습니다.'
    assert result.weeks_analyzed == 4
