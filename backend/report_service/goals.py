# report_service/goals.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .schemas import (
    WeeklyReport, CategoryGoal, CategoryDiversityTarget, CategoryConsistencyGoal,
    CategoryExplorationChallenge, GoalSummary, GoalType, GoalDifficulty, CategoryType,
    ALL_CATEGORY_NAMES, EXERCISE_CATEGORY_NAMES, DIET_CATEGORY_NAMES, category_type_of, goal_progress,
)
from .statistics import clamp, mean, round_half_up

logger = logging.getLogger(__name__)

CONSISTENCY_THRESHOLD = 0.6
DYNAMIC_CONSISTENCY_THRESHOLD = 0.5


def _new_id() -> str:
    return str(uuid.uuid4())


def get_monday(date: datetime) -> datetime:
    return (date - timedelta(days=date.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)


def _categories_of(report: WeeklyReport) -> List[str]:
    return list(report.stats.exercise_categories) + list(report.stats.diet_categories)


def _explored_categories(current: WeeklyReport, historical: List[WeeklyReport]) -> set:
    explored = set(_categories_of(current))
    for report in historical:
        explored.update(_categories_of(report))
    return explored


def _unexplored(names: List[str], explored: set) -> List[str]:
    return [name for name in names if name not in explored]


def _difficulty_from_gap(target: int, current: int) -> GoalDifficulty:
    difference = target - current
    if difference <= 1:
        return GoalDifficulty.easy
    if difference <= 2:
        return GoalDifficulty.medium
    if difference <= 3:
        return GoalDifficulty.hard
    return GoalDifficulty.expert


def _difficulty_from_count(count: int, easy_limit: int = 1) -> GoalDifficulty:
    if count <= easy_limit:
        return GoalDifficulty.easy
    if count <= easy_limit + 1:
        return GoalDifficulty.medium
    if count <= easy_limit + 2:
        return GoalDifficulty.hard
    return GoalDifficulty.expert


def _appearance_ratios(current: WeeklyReport, historical: List[WeeklyReport]) -> Dict[str, float]:
    reports = [current] + list(historical)
    ratios = {}
    for category in _explored_categories(current, historical):
        appearances = sum(1 for report in reports if report.stats.has_category(category))
        ratios[category] = appearances / len(reports)
    return ratios


def count_consecutive_weeks(category_name: str, current: WeeklyReport, historical: List[WeeklyReport]) -> int:
    """Number of weeks, counting back from the current one, that include the category."""
    if not current.stats.has_category(category_name):
        return 0

    weeks = 1
    for report in sorted(historical, key=lambda r: r.week_start_date, reverse=True):
        if not report.stats.has_category(category_name):
            break
        weeks += 1
    return weeks


def _exercise_ratio(report: WeeklyReport) -> Optional[float]:
    total = report.stats.exercise_total + report.stats.diet_total
    if total == 0:
        return None
    return report.stats.exercise_total / total


def _is_balanced(ratio: Optional[float]) -> bool:
    return ratio is not None and 0.3 <= ratio <= 0.7


# Dynamic goals

def generate_dynamic_goals(current: WeeklyReport, historical: List[WeeklyReport]) -> List[CategoryGoal]:
    now = datetime.now(timezone.utc)
    goals = []
    goals.extend(_diversity_goals(current, historical, now))
    goals.extend(_consistency_goals(current, historical, now))
    goals.extend(_exploration_goals(current, historical, now))
    goals.extend(_balance_goals(current, now))
    logger.info(f"Generated {len(goals)} dynamic goals for report {current.id}")
    return goals


def _diversity_goals(current, historical, now) -> List[CategoryGoal]:
    current_total = current.stats.category_count
    if historical:
        historical_average = mean([r.stats.category_count for r in historical])
    else:
        historical_average = 3.0

    target = max(current_total + 1, round_half_up(historical_average + 2))
    return [CategoryGoal(
        id=_new_id(),
        title='카테고리 다양성 확장',
        description=f'이번 주에 {target}개의 서로 다른 카테고리를 경험해보세요',
        type=GoalType.diversity,
        difficulty=_difficulty_from_gap(target, current_total),
        target_value=target,
        current_value=current_total,
        created_at=now,
        expires_at=now + timedelta(days=7),
        base_points=20,
        metadata={"historicalAverage": historical_average, "currentCategories": current_total},
    )]


def _consistency_goals(current, historical, now) -> List[CategoryGoal]:
    goals = []
    if len(historical) < 2:
        return goals

    for category, ratio in sorted(_appearance_ratios(current, historical).items()):
        if ratio < DYNAMIC_CONSISTENCY_THRESHOLD:
            continue
        target_weeks = min(4, len(historical) + 1)
        current_weeks = count_consecutive_weeks(category, current, historical)
        goals.append(CategoryGoal(
            id=_new_id(),
            title=f'{category} 일관성 유지',
            description=f'{category} 카테고리를 {target_weeks}주 연속으로 유지해보세요',
            type=GoalType.consistency,
            difficulty=_difficulty_from_count(target_weeks, easy_limit=2),
            target_value=target_weeks,
            current_value=current_weeks,
            created_at=now,
            base_points=15,
            metadata={"categoryName": category, "consistency": ratio},
            target_categories=[category],
        ))
    return goals


def _exploration_goals(current, historical, now) -> List[CategoryGoal]:
    unexplored = _unexplored(ALL_CATEGORY_NAMES, _explored_categories(current, historical))
    if not unexplored:
        return []

    target = min(3, len(unexplored))
    return [CategoryGoal(
        id=_new_id(),
        title='새로운 카테고리 탐험',
        description=f'이번 주에 {target}개의 새로운 카테고리에 도전해보세요',
        type=GoalType.exploration,
        difficulty=_difficulty_from_count(target),
        target_value=target,
        current_value=0,
        created_at=now,
        expires_at=now + timedelta(days=7),
        base_points=25,
        metadata={"unexploredCount": len(unexplored)},
        target_categories=unexplored[:target],
    )]


def _balance_goals(current, now) -> List[CategoryGoal]:
    ratio = _exercise_ratio(current)
    if ratio is None or _is_balanced(ratio):
        return []

    return [CategoryGoal(
        id=_new_id(),
        title='운동-식단 균형 달성',
        description='운동과 식단 활동의 균형을 맞춰보세요 (30-70% 비율)',
        type=GoalType.balance,
        difficulty=GoalDifficulty.medium,
        target_value=1,
        current_value=0,
        created_at=now,
        expires_at=now + timedelta(days=7),
        base_points=30,
        metadata={
            "exerciseRatio": ratio,
            "exerciseCount": current.stats.exercise_total,
            "dietCount": current.stats.diet_total,
        },
    )]


# Diversity target

def _optimal_target(historical_counts: List[int]) -> int:
    if not historical_counts:
        return 3
    return min(round_half_up(mean(historical_counts) + 1), max(historical_counts) + 1)


def _diversity_score(category_count: int) -> float:
    return clamp(category_count / 10.0)


def default_diversity_target() -> CategoryDiversityTarget:
    week_start = get_monday(datetime.now(timezone.utc))
    return CategoryDiversityTarget(
        id=_new_id(),
        title='기본 다양성 목표',
        exercise_target_count=3,
        diet_target_count=3,
        total_target_count=6,
        target_diversity_score=0.7,
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
    )


def create_diversity_target(current: WeeklyReport, historical: List[WeeklyReport]) -> CategoryDiversityTarget:
    exercise_target = _optimal_target([len(r.stats.exercise_categories) for r in historical])
    diet_target = _optimal_target([len(r.stats.diet_categories) for r in historical])
    total_target = exercise_target + diet_target

    current_exercise = len(current.stats.exercise_categories)
    current_diet = len(current.stats.diet_categories)
    current_total = current_exercise + current_diet
    score = _diversity_score(current_total)

    if historical:
        target_score = max(min(0.9, 0.5 + total_target * 0.05), score + 0.1)
    else:
        target_score = 0.7

    category_targets = {}
    for name in EXERCISE_CATEGORY_NAMES[:exercise_target]:
        category_targets[name] = name in current.stats.exercise_categories
    for name in DIET_CATEGORY_NAMES[:diet_target]:
        category_targets[name] = name in current.stats.diet_categories

    week_start = get_monday(datetime.now(timezone.utc))
    return CategoryDiversityTarget(
        id=_new_id(),
        title='주간 카테고리 다양성 목표',
        exercise_target_count=exercise_target,
        diet_target_count=diet_target,
        total_target_count=total_target,
        current_exercise_count=current_exercise,
        current_diet_count=current_diet,
        current_total_count=current_total,
        diversity_score=score,
        target_diversity_score=target_score,
        is_achieved=current_total >= total_target and score >= target_score,
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
        category_targets=category_targets,
    )


# Consistency goals

def _consistency_target_weeks(consistency: float) -> int:
    if consistency >= 0.8:
        return 4
    if consistency >= 0.6:
        return 3
    return 2


def create_consistency_goals(current: WeeklyReport, historical: List[WeeklyReport]) -> List[CategoryConsistencyGoal]:
    goals = []
    if not historical:
        return goals

    now = datetime.now(timezone.utc)
    reports = [current] + list(historical)

    for category, ratio in sorted(_appearance_ratios(current, historical).items()):
        if ratio < CONSISTENCY_THRESHOLD:
            continue

        frequencies = [
            r.stats.exercise_categories.get(category, 0) + r.stats.diet_categories.get(category, 0)
            for r in reports
        ]
        current_weeks = count_consecutive_weeks(category, current, historical)
        achieved = current_weeks >= 3

        goals.append(CategoryConsistencyGoal(
            id=_new_id(),
            title=f'{category} 일관성 유지',
            category_name=category,
            category_type=category_type_of(category),
            target_weeks=_consistency_target_weeks(ratio),
            current_weeks=current_weeks,
            target_frequency=max(1, round_half_up(mean(frequencies))),
            weekly_frequencies=frequencies,
            is_achieved=achieved,
            start_date=now - timedelta(days=current_weeks * 7),
            achieved_date=now if achieved else None,
            consistency_score=ratio,
        ))

    logger.info(f"Created {len(goals)} consistency goals")
    return goals


# Exploration challenges

def create_exploration_challenges(current: WeeklyReport,
                                  historical: List[WeeklyReport]) -> List[CategoryExplorationChallenge]:
    now = datetime.now(timezone.utc)
    explored = _explored_categories(current, historical)
    unexplored = _unexplored(ALL_CATEGORY_NAMES, explored)
    challenges = []

    if unexplored:
        target = min(2, len(unexplored))
        week_start = get_monday(now)
        challenges.append(CategoryExplorationChallenge(
            id=_new_id(),
            title='주간 탐험 챌린지',
            description=f'이번 주에 새로운 카테고리 {target}개에 도전해보세요!',
            target_categories=unexplored[:target],
            target_count=target,
            start_date=week_start,
            end_date=week_start + timedelta(days=6),
            reward_points=50,
        ))

        if len(unexplored) >= 5:
            target = min(5, len(unexplored))
            challenges.append(CategoryExplorationChallenge(
                id=_new_id(),
                title='월간 탐험 챌린지',
                description=f'이번 달에 새로운 카테고리 {target}개에 도전해보세요!',
                target_categories=unexplored[:target],
                target_count=target,
                start_date=now,
                end_date=now + timedelta(days=30),
                reward_points=150,
            ))

    for category_type, names, label in (
        (CategoryType.exercise, EXERCISE_CATEGORY_NAMES, '운동'),
        (CategoryType.diet, DIET_CATEGORY_NAMES, '식단'),
    ):
        type_unexplored = _unexplored(names, explored)
        if len(type_unexplored) < 2:
            continue
        target = min(3, len(type_unexplored))
        challenges.append(CategoryExplorationChallenge(
            id=_new_id(),
            title=f'{label} 카테고리 탐험',
            description=f'새로운 {label} 카테고리 {target}개에 도전해보세요!',
            target_categories=type_unexplored[:target],
            target_count=target,
            start_date=now,
            end_date=now + timedelta(days=14),
            reward_points=75,
        ))

    logger.info(f"Created {len(challenges)} exploration challenges")
    return challenges


# Progress & summary

def update_goal_progress(goal: CategoryGoal, current: WeeklyReport,
                         historical: Optional[List[WeeklyReport]] = None) -> CategoryGoal:
    """Recompute the goal's current value against a new report.

    Consistency goals count consecutive weeks from ``historical`` when it is
    given; otherwise the stored value is extended by one week or reset.
    """
    if goal.type == GoalType.diversity:
        value = current.stats.category_count
    elif goal.type == GoalType.consistency:
        category = goal.target_categories[0] if goal.target_categories else ''
        if historical is not None:
            value = count_consecutive_weeks(category, current, historical)
        else:
            value = goal.current_value + 1 if current.stats.has_category(category) else 0
    elif goal.type == GoalType.exploration:
        present = set(_categories_of(current))
        value = len([c for c in goal.target_categories if c in present])
    else:
        value = 1 if _is_balanced(_exercise_ratio(current)) else 0

    progress = goal_progress(value, goal.target_value)
    completed = progress >= 1.0
    completed_at = goal.completed_at
    if completed and completed_at is None:
        completed_at = datetime.now(timezone.utc)

    return goal.model_copy(update={
        "current_value": value,
        "progress": progress,
        "is_completed": completed,
        "completed_at": completed_at,
    })


def get_goal_summary(goals: List[CategoryGoal]) -> GoalSummary:
    if not goals:
        return GoalSummary()

    by_type: Dict[GoalType, int] = {}
    by_difficulty: Dict[GoalDifficulty, int] = {}
    for goal in goals:
        by_type[goal.type] = by_type.get(goal.type, 0) + 1
        by_difficulty[goal.difficulty] = by_difficulty.get(goal.difficulty, 0) + 1

    return GoalSummary(
        total_goals=len(goals),
        active_goals=len([g for g in goals if g.is_achievable]),
        completed_goals=len([g for g in goals if g.is_completed]),
        expired_goals=len([g for g in goals if g.is_expired]),
        overall_progress=mean([g.progress for g in goals]),
        total_points_earned=sum(g.total_points for g in goals if g.is_completed),
        total_points_possible=sum(g.total_points for g in goals),
        goals_by_type=by_type,
        goals_by_difficulty=by_difficulty,
    )
