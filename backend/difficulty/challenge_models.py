"""Pydantic models for challenge definitions, live instances and assessments."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from difficulty.models import PriorityBand


class ChallengeCategory(str, Enum):
    ECONOMIC_MANAGEMENT = "economic_management"
    STRATEGIC_PLANNING = "strategic_planning"
    RESOURCE_OPTIMIZATION = "resource_optimization"
    RISK_ASSESSMENT = "risk_assessment"
    SOCIAL_INTERACTION = "social_interaction"
    TIME_MANAGEMENT = "time_management"
    PATTERN_RECOGNITION = "pattern_recognition"
    ADAPTATION = "adaptation"
    COMPLEX_DECISION = "complex_decision"


class SkillRequirement(BaseModel):
    skill: str
    minimum_level: float = Field(ge=0.0, le=10.0)
    weight: float = Field(default=1.0, ge=0.0, le=1.0)
    critical: bool = False


class ResourceConstraint(BaseModel):
    type: str
    limit: float
    penalty: float = Field(default=0.0, ge=0.0, le=1.0)


class ComplexityFactor(BaseModel):
    type: str
    value: float = Field(ge=0.0)
    description: str = ""


class FactorDirection(str, Enum):
    HARDER_WHEN_HIGHER = "harder_when_higher"
    HARDER_WHEN_LOWER = "harder_when_lower"


class AdaptableFactor(BaseModel):
    """A challenge parameter positioned inside ``[minimum, maximum]`` by player skill.

    ``parameter`` names ``time_limit``, a resource constraint type or a
    complexity factor type.
    """

    parameter: str
    minimum: float
    maximum: float
    player_factors: list[str] = Field(default_factory=list)
    direction: FactorDirection = FactorDirection.HARDER_WHEN_HIGHER


class ChallengeParameters(BaseModel):
    time_limit: float | None = Field(default=None, gt=0.0)
    resource_constraints: list[ResourceConstraint] = Field(default_factory=list)
    information_availability: float = Field(default=1.0, ge=0.0, le=1.0)
    randomness_level: float = Field(default=0.0, ge=0.0, le=1.0)
    complexity_factors: list[ComplexityFactor] = Field(default_factory=list)
    stakeholders: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)

    def average_complexity(self) -> float:
        if not self.complexity_factors:
            return 0.0
        return sum(factor.value for factor in self.complexity_factors) / len(self.complexity_factors)


class SuccessCriterion(BaseModel):
    metric: str
    threshold: float
    weight: float = Field(default=1.0, ge=0.0)


class FailureSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class FailureCriterion(BaseModel):
    metric: str
    threshold: float
    severity: FailureSeverity
    consequences: list[str] = Field(default_factory=list)


class ChallengeDefinition(BaseModel):
    id: str = Field(min_length=1)
    name: str
    category: ChallengeCategory
    description: str = ""
    base_difficulty: float = Field(ge=1.0, le=10.0)
    skills: list[SkillRequirement] = Field(default_factory=list)
    parameters: ChallengeParameters = Field(default_factory=ChallengeParameters)
    adaptable_factors: list[AdaptableFactor] = Field(default_factory=list)
    success_criteria: list[SuccessCriterion] = Field(default_factory=list)
    failure_criteria: list[FailureCriterion] = Field(default_factory=list)


class PersonalizationFactor(BaseModel):
    factor: str
    value: float
    reasoning: str = ""
    source: Literal["player_profile", "historical_data", "real_time_analysis"]


class ContextualModifier(BaseModel):
    type: str
    impact: float
    description: str = ""
    duration: float | None = None


class ChallengeInstance(BaseModel):
    instance_id: str
    challenge_id: str
    player_id: str
    category: ChallengeCategory
    adapted_parameters: ChallengeParameters
    personalization: list[PersonalizationFactor] = Field(default_factory=list)
    modifiers: list[ContextualModifier] = Field(default_factory=list)
    start_time: float
    estimated_duration: float = Field(ge=60.0, le=1800.0)
    difficulty_level: float = Field(ge=1.0, le=10.0)

    def personal_value(self, factor: str, default: float = 0.5) -> float:
        for item in self.personalization:
            if item.factor == factor:
                return item.value
        return default


class PlayerAction(BaseModel):
    """One player move during a challenge.

    ``parameters`` may carry ``success`` (bool), ``risk`` in [0, 1] and any
    criterion metric observed with the action.
    """

    type: str
    timestamp: float
    parameters: dict[str, Any] = Field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.type == "mistake" or self.parameters.get("success") is False

    @property
    def succeeded(self) -> bool:
        return self.parameters.get("success") is True


class GameStateChange(BaseModel):
    property: str
    old_value: Any = None
    new_value: Any = None
    timestamp: float


class PlayerFeedback(BaseModel):
    difficulty: float = Field(ge=0.0, le=10.0)
    satisfaction: float = Field(ge=0.0, le=1.0)
    engagement: float = Field(ge=0.0, le=1.0)
    comments: str | None = None


ChallengeResult = Literal["success", "partial_success", "failure", "abandoned"]


class ChallengeOutcome(BaseModel):
    result: ChallengeResult
    completion_rate: float = Field(ge=0.0, le=1.0)
    quality_score: float = Field(ge=0.0, le=1.0)
    efficiency: float = Field(ge=0.0, le=1.0)
    creativity: float = Field(ge=0.0, le=1.0)
    risk_management: float = Field(ge=0.0, le=1.0)


class PerformanceAssessment(BaseModel):
    overall_score: float = Field(ge=0.0, le=1.0)
    skill_breakdown: dict[str, float] = Field(default_factory=dict)
    strong_areas: list[str] = Field(default_factory=list)
    weak_areas: list[str] = Field(default_factory=list)
    improvement_areas: list[str] = Field(default_factory=list)
    consistency_score: float = Field(ge=0.0, le=1.0)
    peak_performance: float = Field(ge=0.0, le=1.0)
    sustained_performance: float = Field(ge=0.0, le=1.0)


class MistakePattern(BaseModel):
    type: str
    frequency: float = Field(ge=0.0, le=1.0)
    severity: float = Field(ge=0.0, le=1.0)
    learning_opportunity: str = ""


class LearningAssessment(BaseModel):
    concepts_learned: list[str] = Field(default_factory=list)
    skills_improved: dict[str, float] = Field(default_factory=dict)
    mistake_patterns: list[MistakePattern] = Field(default_factory=list)
    learning_speed: float = Field(ge=0.0, le=1.0)


class EngagementAssessment(BaseModel):
    attention_level: float = Field(ge=0.0, le=1.0)
    motivation_level: float = Field(ge=0.0, le=1.0)
    frustration_level: float = Field(ge=0.0, le=1.0)
    satisfaction_level: float = Field(ge=0.0, le=1.0)
    flow_state: float = Field(ge=0.0, le=1.0)
    persistence: float = Field(ge=0.0, le=1.0)


class DifficultyFitAssessment(BaseModel):
    perceived_difficulty: float = Field(ge=0.0, le=1.0)
    actual_difficulty: float = Field(ge=0.0, le=1.0)
    appropriateness: float = Field(ge=0.0, le=1.0)
    challenge_balance: float = Field(ge=0.0, le=1.0)
    stress_level: float = Field(ge=0.0, le=1.0)


RecommendationType = Literal[
    "difficulty_adjustment",
    "skill_development",
    "content_modification",
    "learning_support",
    "motivation_enhancement",
    "stress_reduction",
]


class AssessmentRecommendation(BaseModel):
    type: RecommendationType
    priority: PriorityBand
    description: str
    rationale: str = ""
    expected_impact: float = Field(default=0.5, ge=0.0, le=1.0)


class ChallengeAssessment(BaseModel):
    instance_id: str
    challenge_id: str
    category: ChallengeCategory
    player_id: str
    start_time: float
    end_time: float
    outcome: ChallengeOutcome
    performance: PerformanceAssessment
    learning: LearningAssessment
    engagement: EngagementAssessment
    difficulty: DifficultyFitAssessment
    recommendations: list[AssessmentRecommendation] = Field(default_factory=list)

    @property
    def overall_score(self) -> float:
        return self.performance.overall_score

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class ChallengeAnalytics(BaseModel):
    challenge_id: str
    attempts: int = 0
    outcome_counts: dict[str, int] = Field(default_factory=dict)
    average_score: float = 0.0
    average_duration: float = 0.0
    average_engagement: float = 0.0
    average_appropriateness: float = 0.0
    calibration_error: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.outcome_counts.get("success", 0) / self.attempts


class ProgressEvaluation(BaseModel):
    instance_id: str
    timestamp: float
    progress_ratio: float = Field(ge=0.0, le=1.0)
    completion_progress: float = Field(ge=0.0, le=1.0)
    performance_progress: float = Field(ge=0.0, le=1.0)
    difficulty_fit: float = Field(ge=0.0, le=1.0)
    intervention_needed: bool
    recommended_actions: list[str] = Field(default_factory=list)


class ChallengeConfig(BaseModel):
    """Thresholds for live progress checks and history retention."""

    behind_schedule_margin: float = Field(default=0.3, ge=0.0, le=1.0)
    underperformance_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    poor_fit_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    min_progress_for_checks: float = Field(default=0.25, ge=0.0, le=1.0)
    target_performance: float = Field(default=0.7, ge=0.0, le=1.0)
    history_cap: int = Field(default=100, ge=1)
