"""Pydantic models for player profiles, the level catalog and orchestration."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.config.app_config import (
    DIFFICULTY_ADAPTIVE_MODE,
    DIFFICULTY_ADAPTIVE_THRESHOLD,
    DIFFICULTY_ADJUSTMENT_FREQUENCY_SEC,
    DIFFICULTY_ASSESSMENT_FREQUENCY_SEC,
    DIFFICULTY_EMERGENCY_THRESHOLD,
    DIFFICULTY_LOG_LEVEL,
    DIFFICULTY_MAINTENANCE_INTERVAL_SEC,
    DIFFICULTY_OPTIMIZATION_FREQUENCY_SEC,
)

PERFORMANCE_HISTORY_CAP = 100
ADAPTATION_HISTORY_CAP = 50


class PriorityBand(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    PriorityBand.LOW: 0,
    PriorityBand.MEDIUM: 1,
    PriorityBand.HIGH: 2,
    PriorityBand.CRITICAL: 3,
}


class Zodiac(str, Enum):
    RAT = "rat"
    OX = "ox"
    TIGER = "tiger"
    RABBIT = "rabbit"
    DRAGON = "dragon"
    SNAKE = "snake"
    HORSE = "horse"
    GOAT = "goat"
    MONKEY = "monkey"
    ROOSTER = "rooster"
    DOG = "dog"
    PIG = "pig"


class GameOutcome(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"
    TIMEOUT = "timeout"
    QUIT = "quit"


class ChallengeStyle(str, Enum):
    STRATEGIC_DEPTH = "strategic_depth"
    TIME_PRESSURE = "time_pressure"
    INFORMATION_SCARCITY = "information_scarcity"
    RESOURCE_MANAGEMENT = "resource_management"
    SOCIAL_DYNAMICS = "social_dynamics"
    PATTERN_RECOGNITION = "pattern_recognition"
    ADAPTATION_SPEED = "adaptation_speed"


class DifficultyParameters(BaseModel):
    """Gameplay knobs consumed by the AI opponent and economy systems."""

    model_config = ConfigDict(frozen=True)

    ai_skill_level: float = Field(ge=0.0, le=10.0)
    ai_aggressiveness: float = Field(ge=0.0, le=10.0)
    ai_predictability: float = Field(ge=0.0, le=10.0)
    ai_resource_management: float = Field(ge=0.0, le=10.0)
    starting_money: float = Field(ge=0.0)
    salary_multiplier: float = Field(ge=0.0)
    property_price_variation: float = Field(ge=0.0, le=1.0)
    bankruptcy_threshold: float = Field(ge=0.0)
    event_frequency: float = Field(ge=0.0, le=1.0)
    event_severity: float = Field(ge=0.0, le=1.0)
    negative_event_chance: float = Field(ge=0.0, le=1.0)
    randomness_level: float = Field(ge=0.0, le=1.0)
    turn_time_limit: float = Field(ge=0.0)
    decision_pressure: float = Field(ge=0.0, le=1.0)
    multitasking_requirement: float = Field(ge=0.0, le=1.0)
    hidden_information: float = Field(ge=0.0, le=1.0)
    uncertainty_level: float = Field(ge=0.0, le=1.0)
    prediction_accuracy: float = Field(ge=0.0, le=1.0)
    competition_intensity: float = Field(ge=0.0, le=1.0)
    player_advantage_balancing: float = Field(ge=0.0, le=1.0)
    catchup_mechanisms: float = Field(ge=0.0, le=1.0)


class DifficultyLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    rank: int = Field(ge=1, le=10)
    description: str = ""
    parameters: DifficultyParameters


class SkillAssessment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    overall_skill: float = Field(default=5.0, ge=0.0, le=10.0)
    economic_management: float = Field(default=5.0, ge=0.0, le=10.0)
    strategic_planning: float = Field(default=5.0, ge=0.0, le=10.0)
    risk_assessment: float = Field(default=5.0, ge=0.0, le=10.0)
    social_interaction: float = Field(default=5.0, ge=0.0, le=10.0)
    adaptability: float = Field(default=5.0, ge=0.0, le=10.0)
    decision_speed: float = Field(default=5.0, ge=0.0, le=10.0)
    pattern_recognition: float = Field(default=5.0, ge=0.0, le=10.0)
    confidence: float = Field(default=5.0, ge=0.0, le=10.0)

    def as_dict(self) -> dict[str, float]:
        return self.model_dump()


class PlayerSeed(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    zodiac: Zodiac | None = None
    is_human: bool = True


class GameStateSnapshot(BaseModel):
    """Per-tick view of the host game handed to the control loop."""

    game_id: str = "default"
    round: int = Field(default=0, ge=0)
    players: list[PlayerSeed] = Field(default_factory=list)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
    time_limit_seconds: float | None = Field(default=None, gt=0.0)

    def remaining_seconds(self) -> float | None:
        if self.time_limit_seconds is None:
            return None
        return max(0.0, self.time_limit_seconds - self.elapsed_seconds)


class PerformanceRecord(BaseModel):
    timestamp: float | None = None
    difficulty_level: str | None = None
    game_mode: str = "standard"
    duration: float = Field(default=0.0, ge=0.0)
    outcome: GameOutcome = GameOutcome.VICTORY
    rank: int = Field(default=1, ge=1)
    score: float = 0.0
    efficiency: float = Field(default=0.5, ge=0.0, le=1.0)
    mistakes: int = Field(default=0, ge=0)
    help_used: int = Field(default=0, ge=0)
    satisfaction: float | None = Field(default=None, ge=0.0, le=1.0)
    frustration: float | None = Field(default=None, ge=0.0, le=1.0)


class DifficultyPreferences(BaseModel):
    preferred_challenge_types: list[ChallengeStyle] = Field(
        default_factory=lambda: [ChallengeStyle.STRATEGIC_DEPTH, ChallengeStyle.RESOURCE_MANAGEMENT]
    )
    tolerance_for_randomness: float = Field(default=0.5, ge=0.0, le=1.0)
    preferred_game_length_min: float = Field(default=30.0, gt=0.0)
    competitiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    learning_orientation: float = Field(default=0.7, ge=0.0, le=1.0)
    fun_orientation: float = Field(default=0.8, ge=0.0, le=1.0)
    achievement_orientation: float = Field(default=0.6, ge=0.0, le=1.0)


class PlateauState(BaseModel):
    in_plateau: bool = False
    plateau_start: float = 0.0
    plateau_duration: float = 0.0
    stagnant_metrics: list[str] = Field(default_factory=list)


class StruggleSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StruggleIndicator(BaseModel):
    metric: str
    severity: StruggleSeverity
    duration: float = 0.0
    pattern: str
    recommendation: str


class MasteryIndicator(BaseModel):
    skill: str
    mastery_level: float = Field(ge=0.0, le=1.0)
    consistency: float
    ready_for_advancement: bool


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    LATERAL = "lateral"
    CUSTOMIZE = "customize"


class DifficultyAdjustment(BaseModel):
    type: AdjustmentType
    target: str = "overall_difficulty"
    magnitude: float = Field(default=0.5, ge=0.0)
    reasoning: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    timeframe: Literal["immediate", "gradual"] = "gradual"


class DifficultyTransition(BaseModel):
    from_level: str
    to_level: str
    transition_type: Literal["gradual", "immediate"]
    steps: list[str] = Field(default_factory=list)
    success_criteria: list[str] = Field(default_factory=list)


class AdaptationData(BaseModel):
    learning_rate: float = Field(ge=0.0, le=1.0)
    plateau: PlateauState = Field(default_factory=PlateauState)
    struggle_indicators: list[StruggleIndicator] = Field(default_factory=list)
    mastery_indicators: list[MasteryIndicator] = Field(default_factory=list)
    recommended_adjustments: list[DifficultyAdjustment] = Field(default_factory=list)
    indicator_first_seen: dict[str, float] = Field(default_factory=dict)
    focus_skill: str | None = None
    custom_parameters: DifficultyParameters | None = None
    last_auto_adjustment: float | None = None

    def mastery_ready(self) -> bool:
        return any(indicator.ready_for_advancement for indicator in self.mastery_indicators)


class PlayerDifficultyProfile(BaseModel):
    player_id: str = Field(min_length=1)
    current_difficulty: str
    skill_assessment: SkillAssessment
    performance_history: list[PerformanceRecord] = Field(default_factory=list)
    preferences: DifficultyPreferences = Field(default_factory=DifficultyPreferences)
    adaptation: AdaptationData
    last_update: float = 0.0

    @field_validator("performance_history")
    @classmethod
    def trim_history(cls, value: list[PerformanceRecord]) -> list[PerformanceRecord]:
        if len(value) > PERFORMANCE_HISTORY_CAP:
            return value[-PERFORMANCE_HISTORY_CAP:]
        return value


class EmotionalState(BaseModel):
    frustration: float = Field(default=0.3, ge=0.0, le=1.0)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    engagement: float = Field(default=0.8, ge=0.0, le=1.0)
    satisfaction: float = Field(default=0.7, ge=0.0, le=1.0)
    stress: float = Field(default=0.3, ge=0.0, le=1.0)


class RealTimeMetrics(BaseModel):
    """Latest telemetry for one player; replaced on every update."""

    player_id: str
    timestamp: float = 0.0
    game_session_id: str = "default"
    current_score: float = 0.0
    efficiency: float = Field(default=0.5, ge=0.0, le=1.0)
    decision_time: float = Field(default=30.0, ge=0.0)
    error_count: int = Field(default=0, ge=0)
    consecutive_failures: int = Field(default=0, ge=0)
    consecutive_successes: int = Field(default=0, ge=0)
    help_requests: int = Field(default=0, ge=0)
    undo_actions: int = Field(default=0, ge=0)
    emotional_state: EmotionalState = Field(default_factory=EmotionalState)
    game_phase: str = "playing"
    current_challenge: str = "general"
    time_in_session: float = Field(default=0.0, ge=0.0)


class PerformanceUpdate(BaseModel):
    """Player action/outcome event pushed by the host game.

    Telemetry fields always reach the live metrics; an ``outcome`` also appends a
    performance record to the profile.
    """

    outcome: GameOutcome | None = None
    score: float | None = None
    efficiency: float | None = Field(default=None, ge=0.0, le=1.0)
    errors: int | None = Field(default=None, ge=0)
    duration: float | None = Field(default=None, ge=0.0)
    rank: int | None = Field(default=None, ge=1)
    help_used: int | None = Field(default=None, ge=0)
    decision_time: float | None = Field(default=None, ge=0.0)
    success: bool | None = None
    frustration: float | None = Field(default=None, ge=0.0, le=1.0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    engagement: float | None = Field(default=None, ge=0.0, le=1.0)
    satisfaction: float | None = Field(default=None, ge=0.0, le=1.0)
    stress: float | None = Field(default=None, ge=0.0, le=1.0)


LogVerbosity = Literal["minimal", "standard", "detailed", "debug"]


class DifficultySystemConfig(BaseModel):
    enable_real_time_adjustment: bool = True
    enable_curve_optimization: bool = True
    enable_challenge_assessment: bool = True
    adjustment_frequency: float = Field(default=DIFFICULTY_ADJUSTMENT_FREQUENCY_SEC, gt=0.0)
    optimization_frequency: float = Field(default=DIFFICULTY_OPTIMIZATION_FREQUENCY_SEC, gt=0.0)
    assessment_frequency: float = Field(default=DIFFICULTY_ASSESSMENT_FREQUENCY_SEC, gt=0.0)
    maintenance_interval: float = Field(default=DIFFICULTY_MAINTENANCE_INTERVAL_SEC, gt=0.0)
    adaptive_threshold: float = Field(default=DIFFICULTY_ADAPTIVE_THRESHOLD, ge=0.0, le=1.0)
    emergency_intervention_threshold: float = Field(default=DIFFICULTY_EMERGENCY_THRESHOLD, ge=0.0, le=1.0)
    adaptive_mode: bool = DIFFICULTY_ADAPTIVE_MODE
    log_level: LogVerbosity = Field(default=DIFFICULTY_LOG_LEVEL, validate_default=True)

    def updated(self, **changes: Any) -> DifficultySystemConfig:
        return DifficultySystemConfig.model_validate({**self.model_dump(), **changes})


class SystemStatus(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    OPTIMIZING = "optimizing"
    MAINTENANCE = "maintenance"
    ERROR = "error"


class DifficultyEventType(str, Enum):
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    DIFFICULTY_CHANGED = "difficulty_changed"
    PERFORMANCE_ALERT = "performance_alert"
    FRUSTRATION_SPIKE = "frustration_spike"
    MASTERY_ACHIEVED = "mastery_achieved"
    PLATEAU_DETECTED = "plateau_detected"
    SYSTEM_OVERLOAD = "system_overload"


class DifficultyEvent(BaseModel):
    type: DifficultyEventType
    player_id: str | None = None
    timestamp: float
    priority: PriorityBand
    data: dict[str, Any] = Field(default_factory=dict)
    processed: bool = False


class AdaptationRecord(BaseModel):
    timestamp: float
    type: Literal["difficulty_change", "parameter_adjustment", "intervention", "optimization"]
    from_value: float = 0.0
    to_value: float = 0.0
    reasoning: str = ""
    success: bool = True


class PlayerDifficultyStatus(BaseModel):
    player_id: str
    current_difficulty: str
    skill_progression: dict[str, float] = Field(default_factory=dict)
    engagement_level: float = Field(default=0.7, ge=0.0, le=1.0)
    frustration_level: float = Field(default=0.3, ge=0.0, le=1.0)
    joined_at: float = 0.0
    last_adjustment: float = 0.0
    adaptation_history: list[AdaptationRecord] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SystemState(BaseModel):
    system_health: float = Field(default=1.0, ge=0.0, le=1.0)
    adaptation_effectiveness: float = Field(default=0.8, ge=0.0, le=1.0)
    player_satisfaction: float = Field(default=0.75, ge=0.0, le=1.0)
    active_players: int = Field(default=0, ge=0)
    active_adjustments: int = Field(default=0, ge=0)
    system_load: float = Field(default=0.1, ge=0.0, le=1.0)
    last_update: float = 0.0
    status: SystemStatus = SystemStatus.INITIALIZING


class IntegrationResponse(BaseModel):
    success: bool
    adjustments_made: int = 0
    interventions_triggered: int = 0
    players_affected: list[str] = Field(default_factory=list)
    system_health: float
    recommendations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SystemMetrics(BaseModel):
    total_players: int
    average_difficulty: float
    difficulty_distribution: dict[str, int]
    adaptation_accuracy: float
    player_retention: float
    session_duration: float
    frustration_rate: float
    mastery_rate: float
    system_uptime: float
