"""Adjustment rules, the action tagged union and execution plans."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from difficulty.models import PriorityBand, RealTimeMetrics


class Comparison(str, Enum):
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    NE = "!="


EQUALITY_TOLERANCE = 0.01


def compare(value: float, operator: Comparison, threshold: float) -> bool:
    if operator == Comparison.GT:
        return value > threshold
    if operator == Comparison.LT:
        return value < threshold
    if operator == Comparison.GE:
        return value >= threshold
    if operator == Comparison.LE:
        return value <= threshold
    if operator == Comparison.EQ:
        return abs(value - threshold) < EQUALITY_TOLERANCE
    return abs(value - threshold) >= EQUALITY_TOLERANCE


class Precondition(BaseModel):
    """Metric check that must hold right before an action runs."""

    metric: str
    operator: Comparison
    threshold: float


class RuleCondition(Precondition):
    weight: float = Field(default=1.0, ge=0.0)


class Modification(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    MULTIPLY = "multiply"
    SET = "set"
    ADAPTIVE_SCALE = "adaptive_scale"


ParameterTarget = Literal[
    "ai_skill_level",
    "ai_aggressiveness",
    "event_frequency",
    "time_pressure",
    "decision_pressure",
    "salary_multiplier",
    "competition_intensity",
]


class _ActionBase(BaseModel):
    target: str
    modification: Modification
    value: float
    gradual: bool = False
    duration: float | None = Field(default=None, ge=0.0)
    preconditions: list[Precondition] = Field(default_factory=list)


class ParameterAdjustment(_ActionBase):
    kind: Literal["parameter_adjustment"] = "parameter_adjustment"
    target: ParameterTarget


class ContentModification(_ActionBase):
    kind: Literal["content_modification"] = "content_modification"


class AssistanceLevel(_ActionBase):
    kind: Literal["assistance_level"] = "assistance_level"


class FeedbackFrequency(_ActionBase):
    kind: Literal["feedback_frequency"] = "feedback_frequency"


class ChallengeTypeChange(_ActionBase):
    kind: Literal["challenge_type"] = "challenge_type"


AdjustmentAction = Annotated[
    Union[
        ParameterAdjustment,
        ContentModification,
        AssistanceLevel,
        FeedbackFrequency,
        ChallengeTypeChange,
    ],
    Field(discriminator="kind"),
]


class AdjustmentRule(BaseModel):
    id: str = Field(min_length=1)
    name: str
    priority: int = Field(ge=1, le=10)
    conditions: list[RuleCondition] = Field(min_length=1)
    actions: list[AdjustmentAction] = Field(default_factory=list)
    cooldown: float = Field(default=0.0, ge=0.0)
    last_triggered: float | None = None
    enabled: bool = True


class PlannedAdjustment(BaseModel):
    sequence: int = Field(ge=0)
    action: AdjustmentAction
    delay: float = Field(default=0.0, ge=0.0)
    rule_id: str | None = None
    preconditions: list[Precondition] = Field(default_factory=list)
    success_criteria: list[str] = Field(default_factory=list)
    failure_criteria: list[str] = Field(default_factory=list)


class AdjustmentPlan(BaseModel):
    player_id: str
    created_at: float
    priority: PriorityBand
    adjustments: list[PlannedAdjustment] = Field(default_factory=list)
    reasoning: str = ""
    expected_outcome: str = ""
    rollback: str = ""
    monitoring_metrics: list[str] = Field(default_factory=list)


class ImmediateKind(str, Enum):
    EMERGENCY = "emergency"
    CORRECTION = "correction"
    OPPORTUNITY = "opportunity"


class PlayerResponse(BaseModel):
    reaction: Literal["positive", "neutral", "negative"]
    performance_change: float
    engagement_change: float
    satisfaction_change: float
    adaptation_time: float = Field(ge=0.0)


class AdjustmentHistoryEntry(BaseModel):
    id: str
    player_id: str
    timestamp: float
    rule_id: str | None = None
    before: RealTimeMetrics
    actions: list[AdjustmentAction] = Field(default_factory=list)
    after: RealTimeMetrics | None = None
    success: bool
    response: PlayerResponse | None = None


def priority_band(priority: int) -> PriorityBand:
    if priority >= 9:
        return PriorityBand.CRITICAL
    if priority >= 7:
        return PriorityBand.HIGH
    if priority >= 5:
        return PriorityBand.MEDIUM
    return PriorityBand.LOW
