# report_service/schemas.py

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Dict, Optional, Any
from datetime import datetime, timezone
from enum import Enum
import math


class CategoryType(str, Enum):
    exercise = "exercise"
    diet = "diet"


class ExerciseCategory(str, Enum):
    strength = "strength"
    cardio = "cardio"
    flexibility = "flexibility"
    sports = "sports"
    outdoor = "outdoor"
    dance = "dance"

    @property
    def display_name(self) -> str:
        return EXERCISE_CATEGORY_LABELS[self]


class DietCategory(str, Enum):
    home_made = "homeMade"
    healthy = "healthy"
    protein = "protein"
    snack = "snack"
    dining = "dining"
    supplement = "supplement"

    @property
    def display_name(self) -> str:
        return DIET_CATEGORY_LABELS[self]


EXERCISE_CATEGORY_LABELS = {
    ExerciseCategory.strength: "근력 운동",
    ExerciseCategory.cardio: "유산소 운동",
    ExerciseCategory.flexibility: "스트레칭/요가",
    ExerciseCategory.sports: "구기/스포츠",
    ExerciseCategory.outdoor: "야외 활동",
    ExerciseCategory.dance: "댄스/무용",
}

DIET_CATEGORY_LABELS = {
    DietCategory.home_made: "집밥/도시락",
    DietCategory.healthy: "건강식/샐러드",
    DietCategory.protein: "단백질 위주",
    DietCategory.snack: "간식/음료",
    DietCategory.dining: "외식/배달",
    DietCategory.supplement: "영양제/보충제",
}

# Category maps inside reports are keyed by display name
EXERCISE_CATEGORY_NAMES = [category.display_name for category in ExerciseCategory]
DIET_CATEGORY_NAMES = [category.display_name for category in DietCategory]
ALL_CATEGORY_NAMES = EXERCISE_CATEGORY_NAMES + DIET_CATEGORY_NAMES


def category_type_of(category_name: str) -> CategoryType:
    if category_name in EXERCISE_CATEGORY_NAMES:
        return CategoryType.exercise
    return CategoryType.diet


class ReportStatus(str, Enum):
    pending = "pending"
    generating = "generating"
    completed = "completed"
    failed = "failed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReportStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.pending


class TrendDirection(str, Enum):
    up = "up"
    down = "down"
    stable = "stable"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


# Weekly report models

class WeeklyStats(BaseModel):
    total_certifications: int = Field(default=0, ge=0)
    exercise_days: int = Field(default=0, ge=0)
    diet_days: int = Field(default=0, ge=0)
    exercise_types: Dict[str, int] = Field(default_factory=dict)
    exercise_categories: Dict[str, int] = Field(default_factory=dict)
    diet_categories: Dict[str, int] = Field(default_factory=dict)
    consistency_score: float = 0.0

    @property
    def exercise_total(self) -> int:
        return sum(self.exercise_categories.values())

    @property
    def diet_total(self) -> int:
        return sum(self.diet_categories.values())

    @property
    def category_count(self) -> int:
        return len(self.exercise_categories) + len(self.diet_categories)

    def has_category(self, category_name: str) -> bool:
        return category_name in self.exercise_categories or category_name in self.diet_categories


class AIAnalysis(BaseModel):
    exercise_insights: str = ""
    diet_insights: str = ""
    overall_assessment: str = ""
    strength_areas: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list)


class WeeklyReportBase(BaseModel):
    id: str
    user_uuid: str
    week_start_date: datetime
    week_end_date: datetime
    generated_at: datetime
    stats: WeeklyStats = Field(default_factory=WeeklyStats)
    analysis: AIAnalysis = Field(default_factory=AIAnalysis)
    recommendations: List[str] = Field(default_factory=list)
    status: ReportStatus = ReportStatus.pending


class WeeklyReport(WeeklyReportBase):
    @property
    def has_sufficient_data(self) -> bool:
        return self.stats.exercise_days + self.stats.diet_days >= 3

    @property
    def week_identifier(self) -> str:
        start = self.week_start_date
        jan1 = start.replace(month=1, day=1)
        days_since_jan1 = (start.date() - jan1.date()).days
        week_number = math.ceil((days_since_jan1 + jan1.isoweekday() - 1) / 7)
        return f"{start.year}-W{week_number}"


class WeeklyReportResponse(WeeklyReportBase):
    has_sufficient_data: bool = False
    week_identifier: str = ""

    @classmethod
    def from_report(cls, report: WeeklyReport) -> "WeeklyReportResponse":
        return cls(
            **report.model_dump(),
            has_sufficient_data=report.has_sufficient_data,
            week_identifier=report.week_identifier,
        )


class ReportCountResponse(BaseModel):
    count: int
    has_reports: bool
    earliest_report_date: Optional[datetime] = None


# Trend analysis models

class CategoryTrendMetrics(BaseModel):
    category_name: str
    category_type: CategoryType
    direction: TrendDirection = TrendDirection.stable
    change_percentage: float = 0.0
    trend_strength: float = 0.0
    volatility: float = 0.0
    momentum: float = 0.0
    current_value: int = 0
    previous_value: int = 0
    historical_average: float = 0.0


class CategoryTrendAnalysis(BaseModel):
    exercise_category_trends: Dict[str, CategoryTrendMetrics] = Field(default_factory=dict)
    diet_category_trends: Dict[str, CategoryTrendMetrics] = Field(default_factory=dict)
    overall_trend_direction: TrendDirection = TrendDirection.stable
    trend_strength: float = 0.0
    analysis_confidence: float = 0.0
    trend_velocity: float = 0.0
    weeks_analyzed: int = 0


class LifecycleStage(str, Enum):
    experimental = "experimental"
    developing = "developing"
    mature = "mature"
    declining = "declining"
    dormant = "dormant"


class EmergingCategory(BaseModel):
    category_name: str
    category_type: CategoryType
    current_count: int
    historical_average: float
    emergence_strength: float
    is_new_category: bool
    weeks_active: int


class DecliningCategory(BaseModel):
    category_name: str
    category_type: CategoryType
    current_count: int
    historical_average: float
    decline_strength: float
    has_disappeared: bool
    weeks_inactive: int


class CategoryLifecycle(BaseModel):
    category_name: str
    category_type: CategoryType
    stage: LifecycleStage
    active_weeks: int
    total_weeks: int
    activity_ratio: float
    peak_count: int
    current_count: int


class CategoryEmergenceAnalysis(BaseModel):
    emerging_categories: List[EmergingCategory] = Field(default_factory=list)
    declining_categories: List[DecliningCategory] = Field(default_factory=list)
    lifecycle_patterns: Dict[str, CategoryLifecycle] = Field(default_factory=dict)
    emergence_confidence: float = 0.0
    weeks_analyzed: int = 0


class PreferenceMetrics(BaseModel):
    category_name: str
    category_type: CategoryType
    total_count: int
    frequency: int
    consistency: float
    intensity: float
    current_count: int
    historical_average: float


class PreferenceStabilityMetrics(BaseModel):
    overall_stability: float = 0.0
    exercise_stability: float = 0.0
    diet_stability: float = 0.0
    stability_trend: TrendDirection = TrendDirection.stable
    weeks_analyzed: int = 0


class PreferenceCluster(BaseModel):
    name: str
    categories: List[str]
    category_type: CategoryType
    strength: float
    consistency: float


class CategoryPreferencePatterns(BaseModel):
    exercise_preferences: Dict[str, PreferenceMetrics] = Field(default_factory=dict)
    diet_preferences: Dict[str, PreferenceMetrics] = Field(default_factory=dict)
    seasonal_patterns: Dict[str, List[float]] = Field(default_factory=dict)
    preference_stability: PreferenceStabilityMetrics = Field(default_factory=PreferenceStabilityMetrics)
    preference_clusters: List[PreferenceCluster] = Field(default_factory=list)
    weeks_analyzed: int = 0


class DiversityRecommendationType(str, Enum):
    add_category = "addCategory"
    balance_categories = "balanceCategories"


class DiversityRecommendation(BaseModel):
    type: DiversityRecommendationType
    category_name: str
    category_type: CategoryType
    priority: Priority
    reason: str
    expected_impact: float


class DiversityBalance(BaseModel):
    overall_balance: float = 0.0
    exercise_balance: float = 0.0
    diet_balance: float = 0.0
    balance_score: float = 0.0


class DiversityPatternType(str, Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    cyclical = "cyclical"


class DiversityPattern(BaseModel):
    type: DiversityPatternType
    strength: float
    description: str
    weeks_observed: int


class OptimalDiversityTargets(BaseModel):
    current_score: float = 0.0
    short_term_target: float = 0.0
    long_term_target: float = 0.0
    optimal_exercise_categories: int = 4
    optimal_diet_categories: int = 5
    target_balance: float = 0.8


class CategoryDiversityAnalysis(BaseModel):
    current_diversity_score: float = 0.0
    diversity_trend: TrendDirection = TrendDirection.stable
    recommendations: List[DiversityRecommendation] = Field(default_factory=list)
    diversity_balance: DiversityBalance = Field(default_factory=DiversityBalance)
    diversity_patterns: List[DiversityPattern] = Field(default_factory=list)
    optimal_targets: OptimalDiversityTargets = Field(default_factory=OptimalDiversityTargets)
    weeks_analyzed: int = 0


# Predictive analytics models

class CategoryPreferencePrediction(BaseModel):
    category_name: str
    category_type: CategoryType
    predicted_value: float = 0.0
    confidence: float = 0.0
    trend: float = 0.0
    preference_strength: float = 0.0
    historical_average: float = 0.0
    volatility: float = 0.0


class InsightType(str, Enum):
    positive = "positive"
    warning = "warning"


class PreferenceInsight(BaseModel):
    type: InsightType
    message: str
    category: str
    confidence: float


class PreferencePredictionResult(BaseModel):
    exercise_predictions: Dict[str, CategoryPreferencePrediction] = Field(default_factory=dict)
    diet_predictions: Dict[str, CategoryPreferencePrediction] = Field(default_factory=dict)
    prediction_confidence: float = 0.0
    weeks_ahead: int = 0
    insights: List[PreferenceInsight] = Field(default_factory=list)
    weeks_analyzed: int = 0


class Season(str, Enum):
    spring = "spring"
    summer = "summer"
    autumn = "autumn"
    winter = "winter"


class SeasonalCategoryPattern(BaseModel):
    category_name: str
    category_type: CategoryType
    monthly_averages: Dict[int, float] = Field(default_factory=dict)
    monthly_variability: Dict[int, float] = Field(default_factory=dict)
    peak_month: int = 1
    low_month: int = 1
    seasonal_strength: float = 0.0


class SeasonalForecastItem(BaseModel):
    category_name: str
    category_type: CategoryType
    forecast_value: float
    confidence: float
    target_season: Season


class SeasonalRecommendation(BaseModel):
    category_name: str
    category_type: CategoryType
    target_season: Season
    message: str
    confidence: float


class SeasonalForecast(BaseModel):
    target_date: Optional[datetime] = None
    target_season: Season = Season.spring
    exercise_forecasts: Dict[str, SeasonalForecastItem] = Field(default_factory=dict)
    diet_forecasts: Dict[str, SeasonalForecastItem] = Field(default_factory=dict)
    seasonal_patterns: Dict[str, SeasonalCategoryPattern] = Field(default_factory=dict)
    forecast_confidence: float = 0.0
    recommendations: List[SeasonalRecommendation] = Field(default_factory=list)
    weeks_analyzed: int = 0


class CategoryUsagePattern(BaseModel):
    category_name: str
    category_type: CategoryType
    usage_frequency: float
    average_usage: float
    peak_usage: int
    consistency: float
    trend: float


class ActivitySuggestionType(str, Enum):
    explore = "explore"
    maintain = "maintain"
    revive = "revive"


class ActivitySuggestion(BaseModel):
    category_name: str
    category_type: CategoryType
    suggestion_type: ActivitySuggestionType
    message: str
    priority: Priority
    confidence: float


class ActivitySuggestions(BaseModel):
    exercise_suggestions: List[ActivitySuggestion] = Field(default_factory=list)
    diet_suggestions: List[ActivitySuggestion] = Field(default_factory=list)
    suggestion_confidence: float = 0.0
    weeks_analyzed: int = 0


class CategoryBalanceAnalysis(BaseModel):
    exercise_balance: float = 0.0
    diet_balance: float = 0.0
    overall_balance: float = 0.0


class OptimizationOpportunityType(str, Enum):
    increase_exercise_diversity = "increaseExerciseDiversity"
    increase_diet_diversity = "increaseDietDiversity"
    improve_consistency = "improveConsistency"
    balance_activity = "balanceActivity"


class OptimizationOpportunity(BaseModel):
    type: OptimizationOpportunityType
    description: str
    current_score: float
    target_score: float
    priority: Priority


class OptimizationRecommendationType(str, Enum):
    increase_category_usage = "increaseCategoryUsage"
    decrease_category_usage = "decreaseCategoryUsage"
    improve_consistency = "improveConsistency"
    balance_categories = "balanceCategories"


class OptimizationRecommendation(BaseModel):
    type: OptimizationRecommendationType
    category_name: Optional[str] = None
    category_type: Optional[CategoryType] = None
    description: str
    expected_impact: float
    priority: Priority
    action_steps: List[str] = Field(default_factory=list)


class OptimizationRecommendations(BaseModel):
    recommendations: List[OptimizationRecommendation] = Field(default_factory=list)
    optimization_opportunities: List[OptimizationOpportunity] = Field(default_factory=list)
    expected_outcomes: Dict[str, float] = Field(default_factory=dict)
    current_balance: CategoryBalanceAnalysis = Field(default_factory=CategoryBalanceAnalysis)
    weeks_analyzed: int = 0


class CombinationEffectivenessType(str, Enum):
    high_synergy = "highSynergy"
    balanced = "balanced"
    complementary = "complementary"
    consistent = "consistent"


class CategoryCombination(BaseModel):
    categories: List[str]
    category_types: List[CategoryType]
    effectiveness_score: float
    correlation_strength: float
    occurrence_count: int
    consistency_score: float
    benefits: List[str]
    effectiveness_type: CombinationEffectivenessType


class SynergyRecommendationType(str, Enum):
    complement = "complement"
    enhance = "enhance"


class SynergyPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class SynergyRecommendation(BaseModel):
    primary_category: str
    primary_type: CategoryType
    recommended_category: str
    recommended_type: CategoryType
    synergy_score: float
    recommendation_type: SynergyRecommendationType
    description: str
    expected_benefits: List[str]
    priority: SynergyPriority


class CategoryCorrelationAnalysis(BaseModel):
    exercise_correlations: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    diet_correlations: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    cross_type_correlations: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    effective_combinations: List[CategoryCombination] = Field(default_factory=list)
    synergy_recommendations: List[SynergyRecommendation] = Field(default_factory=list)
    weeks_analyzed: int = 0


# Achievement models

class AchievementType(str, Enum):
    category_variety = "categoryVariety"
    category_consistency = "categoryConsistency"
    category_exploration = "categoryExploration"
    category_balance = "categoryBalance"


class AchievementRarity(str, Enum):
    common = "common"
    uncommon = "uncommon"
    rare = "rare"
    epic = "epic"
    legendary = "legendary"

    @property
    def points(self) -> int:
        return RARITY_POINTS[self]


RARITY_POINTS = {
    AchievementRarity.common: 10,
    AchievementRarity.uncommon: 25,
    AchievementRarity.rare: 50,
    AchievementRarity.epic: 100,
    AchievementRarity.legendary: 250,
}


class CategoryAchievement(BaseModel):
    id: str
    title: str
    description: str
    type: AchievementType
    rarity: AchievementRarity
    achieved_at: datetime
    points: int
    category_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AchievementProgress(BaseModel):
    achievement_id: str
    title: str
    description: str
    type: AchievementType
    current_value: int
    target_value: int
    progress: float
    is_completed: bool
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Goal models

class GoalType(str, Enum):
    diversity = "diversity"
    consistency = "consistency"
    exploration = "exploration"
    balance = "balance"


class GoalDifficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"
    expert = "expert"

    @property
    def point_multiplier(self) -> float:
        return DIFFICULTY_MULTIPLIERS[self]


DIFFICULTY_MULTIPLIERS = {
    GoalDifficulty.easy: 1.0,
    GoalDifficulty.medium: 1.5,
    GoalDifficulty.hard: 2.0,
    GoalDifficulty.expert: 3.0,
}


def goal_progress(current_value: int, target_value: int) -> float:
    if target_value <= 0:
        return 0.0
    return min(max(current_value / target_value, 0.0), 1.0)


class CategoryGoal(BaseModel):
    id: str
    title: str
    description: str
    type: GoalType
    difficulty: GoalDifficulty = GoalDifficulty.medium
    target_value: int = 1
    current_value: int = 0
    progress: float = 0.0
    is_completed: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    base_points: int = 10
    metadata: Dict[str, Any] = Field(default_factory=dict)
    target_categories: List[str] = Field(default_factory=list)

    # 오프셋 없는 시각은 UTC로 간주
    @field_validator("created_at", "completed_at", "expires_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    # progress and is_completed always follow current_value / target_value
    @model_validator(mode="after")
    def derive_progress(self) -> "CategoryGoal":
        self.progress = goal_progress(self.current_value, self.target_value)
        self.is_completed = self.progress >= 1.0
        return self

    @property
    def total_points(self) -> int:
        return round(self.base_points * self.difficulty.point_multiplier)

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and datetime.now(timezone.utc) > self.expires_at

    @property
    def is_achievable(self) -> bool:
        return self.is_active and not self.is_expired and not self.is_completed


class CategoryDiversityTarget(BaseModel):
    id: str
    title: str
    exercise_target_count: int
    diet_target_count: int
    total_target_count: int
    current_exercise_count: int = 0
    current_diet_count: int = 0
    current_total_count: int = 0
    diversity_score: float = 0.0
    target_diversity_score: float = 0.7
    is_achieved: bool = False
    week_start: datetime
    week_end: datetime
    category_targets: Dict[str, bool] = Field(default_factory=dict)


class CategoryConsistencyGoal(BaseModel):
    id: str
    title: str
    category_name: str
    category_type: CategoryType
    target_weeks: int
    current_weeks: int
    target_frequency: int
    weekly_frequencies: List[int]
    is_achieved: bool
    start_date: datetime
    achieved_date: Optional[datetime] = None
    consistency_score: float


class CategoryExplorationChallenge(BaseModel):
    id: str
    title: str
    description: str
    target_categories: List[str]
    completed_categories: List[str] = Field(default_factory=list)
    target_count: int
    current_count: int = 0
    is_completed: bool = False
    start_date: datetime
    end_date: datetime
    reward_points: int


class GoalSummary(BaseModel):
    total_goals: int = 0
    active_goals: int = 0
    completed_goals: int = 0
    expired_goals: int = 0
    overall_progress: float = 0.0
    total_points_earned: int = 0
    total_points_possible: int = 0
    goals_by_type: Dict[GoalType, int] = Field(default_factory=dict)
    goals_by_difficulty: Dict[GoalDifficulty, int] = Field(default_factory=dict)


class GoalsResponse(BaseModel):
    goals: List[CategoryGoal]
    diversity_target: CategoryDiversityTarget
    consistency_goals: List[CategoryConsistencyGoal]
    exploration_challenges: List[CategoryExplorationChallenge]


# Consistency models

class ConsistencyResponse(BaseModel):
    score: float
    grade: str
    feedback: str
    suggestions: List[str]


# Notification models

class NotificationReportType(str, Enum):
    ai_analysis = "ai_analysis"
    motivational = "motivational"
    basic = "basic"


class WebNotification(BaseModel):
    id: str
    user_uuid: str
    type: str = ""
    title: str = ""
    message: str = ""
    created_at: datetime
    read: bool = False
    dismissed: bool = False
    report_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class NotificationSettingsUpdate(BaseModel):
    weekly_reports: Optional[bool] = None
    push_notifications_enabled: Optional[bool] = None
    web_notifications_enabled: Optional[bool] = None
