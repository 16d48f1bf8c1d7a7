import pytest
from backend.report_service import trend_analysis
from backend.report_service.schemas import (
    TrendDirection, LifecycleStage, DiversityRecommendationType, DiversityPatternType,
)

STRENGTH = "근력 운동"
CARDIO = "유산소 운동"
YOGA = "스트레칭/요가"
HOME = "집밥/도시락"
SALAD = "건강식/샐러드"


def test_trends_empty_history_returns_empty_result(report_factory):
    current = report_factory(exercise={STRENGTH: 3})
    result = trend_analysis.analyze_week_over_week_trends(current, [])
    assert result.exercise_category_trends == {}
    assert result.weeks_analyzed == 0


def test_trends_direction_uses_ten_percent_threshold(report_factory):
    current = report_factory(exercise={STRENGTH: 4, CARDIO: 2}, diet={HOME: 5})
    historical = [
        report_factory(weeks_ago=1, exercise={STRENGTH: 2, CARDIO: 2}, diet={HOME: 10}),
        report_factory(weeks_ago=2, exercise={STRENGTH: 1, CARDIO: 2}, diet={HOME: 10}),
    ]

    result = trend_analysis.analyze_week_over_week_trends(current, historical)

    strength = result.exercise_category_trends[STRENGTH]
    assert strength.direction == TrendDirection.up
    assert strength.change_percentage == pytest.approx(100.0)
    assert strength.previous_value == 2
    assert strength.historical_average == pytest.approx(1.5)
    assert strength.trend_strength == pytest.approx(1.0)
    assert result.exercise_category_trends[CARDIO].direction == TrendDirection.stable
    assert result.diet_category_trends[HOME].direction == TrendDirection.down
    assert result.analysis_confidence == pytest.approx(2 / 8)
    assert result.weeks_analyzed == 3


def test_trends_sort_history_and_cap_at_eight_weeks(report_factory):
    current = report_factory(exercise={STRENGTH: 2})
    historical = [report_factory(weeks_ago=w, exercise={STRENGTH: w}) for w in range(10, 0, -1)]

    result = trend_analysis.analyze_week_over_week_trends(current, historical)

    # 가장 최근 주(1주 전)와 비교
    assert result.exercise_category_trends[STRENGTH].previous_value == 1
    assert result.analysis_confidence == 1.0
    assert result.weeks_analyzed == 9


def test_trends_overall_direction_from_totals(report_factory):
    current = report_factory(exercise={STRENGTH: 1}, total=5)
    previous = report_factory(weeks_ago=1, exercise={STRENGTH: 1}, total=10)
    result = trend_analysis.analyze_week_over_week_trends(current, [previous])
    assert result.overall_trend_direction == TrendDirection.down
    assert result.trend_strength == pytest.approx(0.5)


def test_emerging_requires_two_weeks_of_history(report_factory):
    current = report_factory(exercise={STRENGTH: 3})
    result = trend_analysis.detect_emerging_and_declining(current, [report_factory(weeks_ago=1)])
    assert result.emerging_categories == []
    assert result.emergence_confidence == 0.0


def test_emerging_and_declining_categories(report_factory):
    current = report_factory(exercise={STRENGTH: 6, YOGA: 2}, diet={HOME: 1})
    historical = [
        report_factory(weeks_ago=1, exercise={STRENGTH: 2, CARDIO: 3}, diet={HOME: 4}),
        report_factory(weeks_ago=2, exercise={STRENGTH: 2, CARDIO: 3}, diet={HOME: 4}),
    ]

    result = trend_analysis.detect_emerging_and_declining(current, historical)

    emerging = {c.category_name: c for c in result.emerging_categories}
    assert emerging[YOGA].is_new_category
    assert emerging[YOGA].emergence_strength == 1.0
    assert not emerging[STRENGTH].is_new_category
    assert emerging[STRENGTH].emergence_strength == pytest.approx(2.0)

    declining = {c.category_name: c for c in result.declining_categories}
    assert declining[CARDIO].has_disappeared
    assert declining[HOME].decline_strength == pytest.approx(0.75)

    assert result.lifecycle_patterns[CARDIO].stage == LifecycleStage.dormant
    assert result.lifecycle_patterns[STRENGTH].stage == LifecycleStage.mature
    assert result.lifecycle_patterns[YOGA].stage == LifecycleStage.developing
    assert result.emergence_confidence > 0
    assert result.weeks_analyzed == 3


def test_preference_patterns(report_factory):
    current = report_factory(exercise={STRENGTH: 3}, diet={HOME: 2})
    historical = [
        report_factory(weeks_ago=1, exercise={STRENGTH: 3}, diet={HOME: 2}),
        report_factory(weeks_ago=2, exercise={STRENGTH: 3}, diet={SALAD: 2}),
    ]

    result = trend_analysis.recognize_preference_patterns(current, historical)

    strength = result.exercise_preferences[STRENGTH]
    assert strength.total_count == 9
    assert strength.frequency == 3
    assert strength.consistency == pytest.approx(1.0)
    assert strength.intensity == pytest.approx(3.0)
    assert result.diet_preferences[SALAD].current_count == 0
    assert result.preference_stability.exercise_stability == pytest.approx(1.0)
    assert result.preference_stability.diet_stability < 1.0
    assert [c.name for c in result.preference_clusters] == ['운동 선호', '식단 선호']
    assert result.seasonal_patterns == {}


def test_preference_patterns_need_history(report_factory):
    current = report_factory(exercise={STRENGTH: 3})
    result = trend_analysis.recognize_preference_patterns(current, [report_factory(weeks_ago=1)])
    assert result.weeks_analyzed == 0


def test_diversity_recommendations_and_balance(report_factory):
    current = report_factory(exercise={STRENGTH: 8, CARDIO: 2}, diet={HOME: 5})

    result = trend_analysis.analyze_category_diversity(current, [])

    add = [r for r in result.recommendations if r.type == DiversityRecommendationType.add_category]
    assert len(add) == 6
    assert CARDIO not in [r.category_name for r in add]
    balance = [r for r in result.recommendations if r.type == DiversityRecommendationType.balance_categories]
    assert balance[0].category_name == STRENGTH
    # 식단 카테고리 하나뿐이면 0.5
    assert result.diversity_balance.diet_balance == 0.5
    assert result.diversity_trend == TrendDirection.stable
    assert result.weeks_analyzed == 1


def test_diversity_trend_and_patterns(report_factory):
    current = report_factory(exercise={STRENGTH: 1, CARDIO: 1, YOGA: 1, "구기/스포츠": 1})
    historical = [
        report_factory(weeks_ago=1, exercise={STRENGTH: 1, CARDIO: 1, YOGA: 1}),
        report_factory(weeks_ago=2, exercise={STRENGTH: 1, CARDIO: 1}),
        report_factory(weeks_ago=3, exercise={STRENGTH: 1}),
    ]

    result = trend_analysis.analyze_category_diversity(current, historical)

    assert result.diversity_trend == TrendDirection.up
    assert result.current_diversity_score == pytest.approx(1.0)
    assert DiversityPatternType.increasing in [p.type for p in result.diversity_patterns]
    assert result.optimal_targets.short_term_target == pytest.approx(1.0)
