"""Pydantic models for long-horizon difficulty curve optimization."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from difficulty.models import PriorityBand


class OptimizationPhase(str, Enum):
    ASSESSMENT = "assessment"
    CALIBRATION = "calibration"
    GRADUAL_INCREASE = "gradual_increase"
    PLATEAU_BREAKING = "plateau_breaking"
    MASTERY_CONSOLIDATION = "mastery_consolidation"
    ADAPTIVE_MAINTENANCE = "adaptive_maintenance"


class StrategyType(str, Enum):
    GRADUAL_LINEAR = "gradual_linear"
    EXPONENTIAL_CURVE = "exponential_curve"
    STEPPED_PROGRESSION = "stepped_progression"
    ADAPTIVE_SPIRAL = "adaptive_spiral"
    CHALLENGE_BURST = "challenge_burst"
    SKILL_FOCUSED = "skill_focused"


class StrategyParameters(BaseModel):
    increment_size: float = Field(gt=0.0)
    time_interval: float = Field(gt=0.0)
    smoothing_factor: float = Field(default=0.7, ge=0.0, le=1.0)
    adaptation_rate: float = Field(ge=0.0, le=1.0)
    max_adjustment_per_step: float = Field(default=0.5, gt=0.0)
    consolidation_period: float = Field(default=1800.0, gt=0.0)
    risk_tolerance: float = Field(ge=0.0, le=1.0)


class StrategyCriterion(BaseModel):
    metric: str
    threshold: float
    evaluation_window: float = Field(gt=0.0)
    weight: float = Field(ge=0.0, le=1.0)


class FallbackStrategy(BaseModel):
    condition: str
    strategy: StrategyType
    increment_size: float | None = None
    priority: int = 1


class AdjustmentStrategy(BaseModel):
    type: StrategyType
    parameters: StrategyParameters
    success_criteria: list[StrategyCriterion] = Field(default_factory=list)
    fallbacks: list[FallbackStrategy] = Field(default_factory=list)
    timeframe: float = 3600.0


class ContextualFactor(BaseModel):
    type: str
    value: float
    impact: float
    description: str = ""


class ProgressionPoint(BaseModel):
    timestamp: float
    difficulty_level: float = Field(ge=1.0, le=10.0)
    skill_levels: dict[str, float]
    performance_score: float = Field(ge=0.0, le=1.0)
    engagement_level: float = Field(ge=0.0, le=1.0)
    frustration_level: float = Field(ge=0.0, le=1.0)
    mastery_indicators: dict[str, float] = Field(default_factory=dict)
    contextual_factors: list[ContextualFactor] = Field(default_factory=list)

    def average_mastery(self) -> float:
        if not self.mastery_indicators:
            return 0.0
        return sum(self.mastery_indicators.values()) / len(self.mastery_indicators)


class PlateauRecord(BaseModel):
    start_time: float
    end_time: float | None = None
    difficulty_level: float
    duration: float = 0.0
    breakout_strategy: str = ""
    breakout_success: bool = False
    skills_stagnant: list[str] = Field(default_factory=list)
    interventions_attempted: list[str] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class Milestone(BaseModel):
    level: float
    criteria: list[str] = Field(default_factory=list)
    estimated_time: float
    reached: bool = False


class MasteryGoal(BaseModel):
    skill: str
    current_level: float
    target_level: float
    weekly_growth: float = Field(gt=0.0)
    timeline: float
    milestones: list[Milestone] = Field(default_factory=list)
    priority: float = 0.5
    dependencies: list[str] = Field(default_factory=list)


class InterventionType(str, Enum):
    DIFFICULTY_ADJUSTMENT = "difficulty_adjustment"
    PACING_MODIFICATION = "pacing_modification"
    CHALLENGE_TYPE_CHANGE = "challenge_type_change"
    SUPPORT_ADDITION = "support_addition"
    MOTIVATION_BOOST = "motivation_boost"
    PLATEAU_INTERVENTION = "plateau_intervention"


class OptimizationIntervention(BaseModel):
    timestamp: float
    type: InterventionType
    reasoning: str
    target_metric: str
    expected_impact: float = Field(ge=0.0, le=1.0)
    baseline: float
    actual_impact: float | None = None
    evaluated: bool = False
    success: bool = False
    side_effects: list[str] = Field(default_factory=list)


class OptimizationState(BaseModel):
    phase: OptimizationPhase = OptimizationPhase.ASSESSMENT
    target_difficulty: float = Field(ge=1.0, le=10.0)
    strategy: AdjustmentStrategy
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    remaining_steps: int = Field(default=5, ge=0)
    effectiveness: float = Field(default=0.7, ge=0.0, le=1.0)
    interventions: list[OptimizationIntervention] = Field(default_factory=list)


class DifficultyProgression(BaseModel):
    player_id: str
    path: list[ProgressionPoint] = Field(default_factory=list)
    target: list[ProgressionPoint] = Field(default_factory=list)
    optimization: OptimizationState
    learning_velocity: float = 0.1
    plateau_history: list[PlateauRecord] = Field(default_factory=list)
    mastery_goals: list[MasteryGoal] = Field(default_factory=list)

    def open_plateau(self) -> PlateauRecord | None:
        for record in self.plateau_history:
            if record.is_open:
                return record
        return None

    def latest(self) -> ProgressionPoint | None:
        return self.path[-1] if self.path else None


class CurveConfig(BaseModel):
    target_engagement: float = Field(default=0.75, ge=0.0, le=1.0)
    max_frustration: float = Field(default=0.6, ge=0.0, le=1.0)
    plateau_window: float = Field(default=1800.0, gt=0.0)
    mastery_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    sensitivity: float = Field(default=0.7, ge=0.0, le=1.0)
    aggression: float = Field(default=0.5, ge=0.0, le=1.0)
    safety_margin: float = Field(default=0.1, ge=0.0, le=1.0)


class TrendAnalysis(BaseModel):
    direction: Literal["increasing", "decreasing", "stable", "volatile"]
    strength: float = Field(ge=0.0, le=1.0)
    consistency: float = Field(ge=0.0, le=1.0)
    prediction: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)


class DifficultyRange(BaseModel):
    min: float
    max: float


class OptimizationAnalytics(BaseModel):
    player_id: str
    effectiveness: float
    progression_rate: float
    engagement_trend: TrendAnalysis
    skill_development_rate: dict[str, float] = Field(default_factory=dict)
    plateau_frequency: float = 0.0
    intervention_success_rate: float = Field(ge=0.0, le=1.0)
    time_to_mastery: dict[str, float] = Field(default_factory=dict)
    optimal_difficulty_range: DifficultyRange


CurveRecommendationType = Literal[
    "progression_acceleration",
    "progression_deceleration",
    "plateau_intervention",
    "mastery_consolidation",
    "motivation_enhancement",
    "stress_reduction",
    "challenge_diversification",
]


class ImplementationStep(BaseModel):
    step: int
    action: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    duration: float = 0.0


class CurveRecommendation(BaseModel):
    type: CurveRecommendationType
    priority: PriorityBand
    description: str
    rationale: str = ""
    steps: list[ImplementationStep] = Field(default_factory=list)
    expected_benefit: str = ""
    risk_level: Literal["low", "medium", "high"] = "low"
    rollback: str = ""
