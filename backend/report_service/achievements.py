# report_service/achievements.py

import logging
from datetime import datetime, timezone
from typing import Dict, List, Any

from .schemas import (
    WeeklyReport, CategoryAchievement, AchievementProgress, AchievementType,
    AchievementRarity, ALL_CATEGORY_NAMES, EXERCISE_CATEGORY_NAMES, DIET_CATEGORY_NAMES,
)
from .statistics import distribution_balance, normalized_shannon, clamp

logger = logging.getLogger(__name__)

OPTIMAL_BALANCE_THRESHOLD = 0.7
HIGH_DIVERSITY_THRESHOLD = 0.8


def _achievement(report: WeeklyReport, key: str, title: str, description: str,
                 achievement_type: AchievementType, rarity: AchievementRarity,
                 metadata: Dict[str, Any], category_name: str = None) -> CategoryAchievement:
    return CategoryAchievement(
        id=f"{key}_{report.week_identifier}",
        title=title,
        description=description,
        type=achievement_type,
        rarity=rarity,
        achieved_at=datetime.now(timezone.utc),
        points=rarity.points,
        category_name=category_name,
        metadata=metadata,
    )


def detect_achievements(current: WeeklyReport, historical: List[WeeklyReport]) -> List[CategoryAchievement]:
    achievements = []
    achievements.extend(_detect_variety(current))
    achievements.extend(_detect_consistency(current, historical))
    achievements.extend(_detect_exploration(current, historical))
    achievements.extend(_detect_balance(current))
    logger.info(f"Detected {len(achievements)} achievements for report {current.id}")
    return achievements


def _detect_variety(report: WeeklyReport) -> List[CategoryAchievement]:
    achievements = []
    exercise = set(report.stats.exercise_categories)
    diet = set(report.stats.diet_categories)
    total = len(exercise) + len(diet)

    if total >= 5:
        achievements.append(_achievement(
            report, "well_rounded_week", '균형잡힌 한 주',
            f'이번 주에 {total}개의 다양한 카테고리를 경험했습니다!',
            AchievementType.category_variety,
            AchievementRarity.rare if total >= 8 else AchievementRarity.uncommon,
            {"totalCategories": total, "exerciseCategories": len(exercise), "dietCategories": len(diet)},
        ))

    if len(exercise) >= 4:
        achievements.append(_achievement(
            report, "exercise_variety_master", '운동 다양성 마스터',
            f'{len(exercise)}가지 운동 카테고리를 모두 경험했습니다!',
            AchievementType.category_variety,
            AchievementRarity.epic if len(exercise) >= 6 else AchievementRarity.rare,
            {"exerciseCategories": len(exercise), "categories": sorted(exercise)},
        ))

    if len(diet) >= 4:
        achievements.append(_achievement(
            report, "diet_variety_champion", '식단 다양성 챔피언',
            f'{len(diet)}가지 식단 카테고리를 균형있게 섭취했습니다!',
            AchievementType.category_variety,
            AchievementRarity.epic if len(diet) >= 6 else AchievementRarity.rare,
            {"dietCategories": len(diet), "categories": sorted(diet)},
        ))

    if exercise >= set(EXERCISE_CATEGORY_NAMES) and diet >= set(DIET_CATEGORY_NAMES):
        achievements.append(_achievement(
            report, "perfect_variety", '완벽한 다양성',
            '모든 운동과 식단 카테고리를 경험한 완벽한 한 주였습니다!',
            AchievementType.category_variety, AchievementRarity.legendary,
            {"perfectWeek": True, "totalCategories": total},
        ))

    return achievements


def _consistency_patterns(current: WeeklyReport, historical: List[WeeklyReport]) -> Dict[str, Any]:
    reports = sorted([current] + list(historical), key=lambda r: r.week_start_date)

    week_counts: Dict[str, int] = {}
    for report in reports:
        for category in set(report.stats.exercise_categories) | set(report.stats.diet_categories):
            week_counts[category] = week_counts.get(category, 0) + 1

    # 3개 이상 카테고리를 기록한 연속 주의 최장 길이
    variety_streak = 0
    streak = 0
    for report in reports:
        if report.stats.category_count >= 3:
            streak += 1
            variety_streak = max(variety_streak, streak)
        else:
            streak = 0

    return {
        "consistentCategories": [c for c, n in week_counts.items() if n >= 3],
        "longTermCategories": [c for c, n in week_counts.items() if n >= 4],
        "maxWeeksConsistent": max(week_counts.values()) if week_counts else 0,
        "varietyStreak": variety_streak,
    }


def _detect_consistency(current: WeeklyReport, historical: List[WeeklyReport]) -> List[CategoryAchievement]:
    achievements = []
    if not historical:
        return achievements

    patterns = _consistency_patterns(current, historical)

    consistent = patterns["consistentCategories"]
    if len(consistent) >= 3:
        achievements.append(_achievement(
            current, "consistent_category_champion", '일관성 챔피언',
            f'{len(consistent)}개 카테고리를 꾸준히 유지하고 있습니다!',
            AchievementType.category_consistency,
            AchievementRarity.rare if len(consistent) >= 5 else AchievementRarity.uncommon,
            {"consistentCategories": len(consistent), "categories": consistent, "weeksConsistent": 3},
        ))

    long_term = patterns["longTermCategories"]
    if long_term:
        achievements.append(_achievement(
            current, "habit_builder", '습관 형성자',
            f'{long_term[0]} 카테고리를 4주 이상 꾸준히 유지했습니다!',
            AchievementType.category_consistency, AchievementRarity.epic,
            {"category": long_term[0], "weeksConsistent": patterns["maxWeeksConsistent"]},
            category_name=long_term[0],
        ))

    streak = patterns["varietyStreak"]
    if streak >= 3:
        achievements.append(_achievement(
            current, "consistency_streak", '일관성 연속 기록',
            f'{streak}주 연속으로 다양한 카테고리를 유지했습니다!',
            AchievementType.category_consistency,
            AchievementRarity.epic if streak >= 5 else AchievementRarity.rare,
            {"streakWeeks": streak},
        ))

    return achievements


def _detect_exploration(current: WeeklyReport, historical: List[WeeklyReport]) -> List[CategoryAchievement]:
    achievements = []
    current_categories = set(current.stats.exercise_categories) | set(current.stats.diet_categories)

    historical_categories = set()
    for report in historical:
        historical_categories.update(report.stats.exercise_categories)
        historical_categories.update(report.stats.diet_categories)

    new_categories = sorted(current_categories - historical_categories)

    for category in new_categories:
        achievements.append(_achievement(
            current, f"first_time_explorer_{category}", '첫 도전자',
            f'{category}을(를) 처음으로 시도해보셨네요!',
            AchievementType.category_exploration, AchievementRarity.common,
            {"newCategory": category, "isFirstTime": True},
            category_name=category,
        ))

    if len(new_categories) >= 3:
        achievements.append(_achievement(
            current, "adventure_seeker", '모험가',
            f'이번 주에 {len(new_categories)}개의 새로운 카테고리에 도전했습니다!',
            AchievementType.category_exploration, AchievementRarity.rare,
            {"newCategoriesCount": len(new_categories), "newCategories": new_categories},
        ))

    tried = historical_categories | current_categories
    collection_percentage = len(tried) / len(ALL_CATEGORY_NAMES)
    if collection_percentage >= 0.8:
        achievements.append(_achievement(
            current, "category_collector", '카테고리 수집가',
            f'전체 카테고리의 {int(collection_percentage * 100)}%를 경험했습니다!',
            AchievementType.category_exploration,
            AchievementRarity.legendary if collection_percentage >= 0.95 else AchievementRarity.epic,
            {
                "collectionPercentage": collection_percentage,
                "categoriesCollected": len(tried),
                "totalCategories": len(ALL_CATEGORY_NAMES),
            },
        ))

    return achievements


def calculate_balance_metrics(report: WeeklyReport) -> Dict[str, float]:
    """Evenness within each type, exercise/diet ratio balance and normalized diversity."""
    stats = report.stats
    grand_total = stats.exercise_total + stats.diet_total
    if grand_total == 0:
        return {"exerciseBalance": 0.0, "dietBalance": 0.0, "overallBalance": 0.0, "diversityScore": 0.0}

    exercise_balance = distribution_balance(stats.exercise_categories)
    diet_balance = distribution_balance(stats.diet_categories)
    ratio_balance = 1.0 - abs(stats.exercise_total - stats.diet_total) / grand_total
    overall = (exercise_balance + diet_balance + ratio_balance) / 3

    combined = dict(stats.exercise_categories)
    combined.update(stats.diet_categories)

    return {
        "exerciseBalance": exercise_balance,
        "dietBalance": diet_balance,
        "overallBalance": overall,
        "diversityScore": normalized_shannon(combined),
    }


def _detect_balance(report: WeeklyReport) -> List[CategoryAchievement]:
    achievements = []
    metrics = calculate_balance_metrics(report)
    overall = metrics["overallBalance"]

    if overall >= OPTIMAL_BALANCE_THRESHOLD:
        achievements.append(_achievement(
            report, "perfect_balance", '완벽한 균형',
            '운동과 식단 카테고리의 완벽한 균형을 달성했습니다!',
            AchievementType.category_balance, AchievementRarity.epic,
            {
                "balanceScore": overall,
                "exerciseBalance": metrics["exerciseBalance"],
                "dietBalance": metrics["dietBalance"],
            },
        ))

    if metrics["diversityScore"] >= HIGH_DIVERSITY_THRESHOLD and overall >= 0.6:
        achievements.append(_achievement(
            report, "harmony_master", '조화의 달인',
            '높은 다양성과 좋은 균형을 동시에 달성했습니다!',
            AchievementType.category_balance, AchievementRarity.rare,
            {"diversityScore": metrics["diversityScore"], "balanceScore": overall},
        ))

    exercise_count = report.stats.exercise_total
    diet_count = report.stats.diet_total
    total = exercise_count + diet_count
    if total >= 10:
        exercise_ratio = exercise_count / total
        if 0.3 <= exercise_ratio <= 0.7:
            achievements.append(_achievement(
                report, "health_optimizer", '건강 최적화자',
                '운동과 식단의 최적 비율을 달성했습니다!',
                AchievementType.category_balance, AchievementRarity.uncommon,
                {
                    "exerciseRatio": exercise_ratio,
                    "totalActivities": total,
                    "exerciseCount": exercise_count,
                    "dietCount": diet_count,
                },
            ))

    return achievements


def get_achievement_progress(current: WeeklyReport, historical: List[WeeklyReport]) -> List[AchievementProgress]:
    now = datetime.now(timezone.utc)
    total = current.stats.category_count
    variety_done = total >= 5

    metrics = calculate_balance_metrics(current)
    overall = metrics["overallBalance"]
    balance_done = overall >= OPTIMAL_BALANCE_THRESHOLD

    return [
        AchievementProgress(
            achievement_id="well_rounded_week",
            title='균형잡힌 한 주',
            description='5개 이상의 다양한 카테고리 경험하기',
            type=AchievementType.category_variety,
            current_value=total,
            target_value=5,
            progress=clamp(total / 5),
            is_completed=variety_done,
            completed_at=now if variety_done else None,
            metadata={"currentCategories": total},
        ),
        AchievementProgress(
            achievement_id="perfect_balance",
            title='완벽한 균형',
            description='운동과 식단의 최적 균형 달성하기',
            type=AchievementType.category_balance,
            current_value=round(overall * 100),
            target_value=70,
            progress=clamp(overall / OPTIMAL_BALANCE_THRESHOLD),
            is_completed=balance_done,
            completed_at=now if balance_done else None,
            metadata={"balanceScore": overall},
        ),
    ]
