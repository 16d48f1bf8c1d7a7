# report_service/consistency.py

from typing import Dict, List

from .schemas import WeeklyStats
from .statistics import clamp, std_dev

# 주간 목표: 운동 4일, 식단 6일, 총 인증 10개
WEEKLY_EXERCISE_GOAL = 4
WEEKLY_DIET_GOAL = 6
WEEKLY_CERTIFICATION_GOAL = 10

IDEAL_EXERCISE_RATIO = 0.4
IDEAL_DIET_RATIO = 0.6

GRADES = [
    (0.9, 'S급'),
    (0.8, 'A급'),
    (0.7, 'B급'),
    (0.6, 'C급'),
    (0.5, 'D급'),
]

FEEDBACK = [
    (0.9, '완벽한 일관성! 매일 꾸준히 운동과 식단을 관리하고 계시네요. 👏'),
    (0.8, '훌륭한 일관성! 거의 매일 꾸준히 실천하고 계시네요. 💪'),
    (0.7, '좋은 일관성! 대부분의 날에 꾸준히 관리하고 계시네요. 😊'),
    (0.6, '보통 수준의 일관성입니다. 조금 더 꾸준히 해보세요! 📈'),
    (0.5, '일관성이 부족합니다. 매일 조금씩이라도 실천해보세요. 🎯'),
]


def calculate_consistency_score(stats: WeeklyStats) -> float:
    """Weighted score of how regularly the week was spent on exercise and diet.

    Components: activity distribution (30%), exercise/diet balance (25%),
    goal achievement (25%) and category regularity (20%).
    """
    score = (
        _activity_distribution(stats) * 0.3
        + _exercise_diet_balance(stats) * 0.25
        + _achievement_rate(stats) * 0.25
        + _regularity(stats) * 0.2
    )
    return clamp(score)


def _activity_distribution(stats: WeeklyStats) -> float:
    active_days = stats.exercise_days + stats.diet_days
    ratio = clamp(active_days / 14.0)

    if ratio >= 0.8:
        return 1.0
    if ratio >= 0.6:
        return 0.8
    if ratio >= 0.4:
        return 0.6
    if ratio >= 0.2:
        return 0.4
    return 0.2


def _exercise_diet_balance(stats: WeeklyStats) -> float:
    total_days = stats.exercise_days + stats.diet_days
    if total_days == 0:
        return 0.0

    exercise_deviation = abs(stats.exercise_days / total_days - IDEAL_EXERCISE_RATIO)
    diet_deviation = abs(stats.diet_days / total_days - IDEAL_DIET_RATIO)
    return clamp(1.0 - (exercise_deviation + diet_deviation) / 2)


def _achievement_rate(stats: WeeklyStats) -> float:
    exercise = clamp(stats.exercise_days / WEEKLY_EXERCISE_GOAL)
    diet = clamp(stats.diet_days / WEEKLY_DIET_GOAL)
    certifications = clamp(stats.total_certifications / WEEKLY_CERTIFICATION_GOAL)
    return (exercise + diet + certifications) / 3


def _regularity(stats: WeeklyStats) -> float:
    # 운동 3개, 식단 4개 카테고리 이상이면 만점
    exercise_variety = min(len(stats.exercise_categories) / 3.0, 1.0)
    diet_variety = min(len(stats.diet_categories) / 4.0, 1.0)
    exercise_balance = _category_evenness(stats.exercise_categories)
    diet_balance = _category_evenness(stats.diet_categories)
    return (exercise_variety + diet_variety + exercise_balance + diet_balance) / 4


def _category_evenness(categories: Dict[str, int]) -> float:
    if not categories:
        return 0.0
    if len(categories) == 1:
        return 1.0

    total = sum(categories.values())
    if total == 0:
        return 0.0

    ratios = [count / total for count in categories.values()]
    # 표준편차 0.2 이하면 만점
    return clamp(1.0 - std_dev(ratios) / 0.2)


def get_consistency_grade(score: float) -> str:
    for threshold, grade in GRADES:
        if score >= threshold:
            return grade
    return 'F급'


def get_consistency_feedback(score: float) -> str:
    for threshold, message in FEEDBACK:
        if score >= threshold:
            return message
    return '일관성을 높여보세요. 작은 목표부터 시작해보는 것은 어떨까요? 🌱'


def get_improvement_suggestions(stats: WeeklyStats) -> List[str]:
    suggestions = []

    if stats.exercise_days < 3:
        suggestions.append('주 3회 이상 운동하기를 목표로 해보세요')
    if stats.diet_days < 4:
        suggestions.append('주 4회 이상 건강한 식단을 기록해보세요')

    total_days = stats.exercise_days + stats.diet_days
    if total_days > 0:
        exercise_ratio = stats.exercise_days / total_days
        if exercise_ratio < 0.3:
            suggestions.append('운동 빈도를 조금 더 늘려보세요')
        elif exercise_ratio > 0.7:
            suggestions.append('식단 관리에도 더 신경써보세요')

    if len(stats.exercise_categories) < 2:
        suggestions.append('다양한 종류의 운동을 시도해보세요')
    if len(stats.diet_categories) < 3:
        suggestions.append('더 다양한 식단을 기록해보세요')

    return suggestions
