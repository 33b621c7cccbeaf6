"""Long-horizon difficulty curve optimization.

Each player has a ``DifficultyProgression``: the observed path of progression
points, a projected target trajectory, mastery goals and an optimization state
machine that ``run_cycle`` advances on its own cadence.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from difficulty import catalog
from difficulty.challenge_models import ChallengeAssessment
from difficulty.curve_models import (
    AdjustmentStrategy,
    ContextualFactor,
    CurveConfig,
    CurveRecommendation,
    DifficultyProgression,
    DifficultyRange,
    FallbackStrategy,
    ImplementationStep,
    InterventionType,
    MasteryGoal,
    Milestone,
    OptimizationAnalytics,
    OptimizationIntervention,
    OptimizationPhase,
    OptimizationState,
    PlateauRecord,
    ProgressionPoint,
    StrategyCriterion,
    StrategyParameters,
    StrategyType,
    TrendAnalysis,
)
from difficulty.errors import ProgressionAlreadyExists, ProgressionNotFound
from difficulty.models import (
    AdjustmentType,
    DifficultyAdjustment,
    GameStateSnapshot,
    PlayerDifficultyProfile,
    PriorityBand,
)
from difficulty.services.challenge_service import ChallengeService
from difficulty.services.clock import Clock, MonotonicClock
from difficulty.services.notifications import (
    MilestoneReached,
    NotificationBus,
    OperationFailed,
    OptimizationPhaseChanged,
    PlateauDetected,
    PlateauResolved,
)
from difficulty.services.profile_service import ProfileService
from difficulty.services.statistics import clamp, clamp01, linear_slope, mean, mean_step, std, variance
from shared.config.logging import get_logger

logger = get_logger(__name__)

WEEK_SEC = 7 * 24 * 3600.0
HOUR_SEC = 3600.0
TARGET_WEEKS = 24
PATH_CAP = 100
MASTERY_GOAL_CEILING = 8.0
MILESTONE_STEP = 0.5
EFFECTIVENESS_FLOOR = 0.5
VELOCITY_DEFAULT = 0.1
LEVEL_SHIFT = 1.0

SKILL_DEPENDENCIES = {
    "strategic_planning": ["economic_management"],
    "social_interaction": ["adaptability"],
    "risk_assessment": ["economic_management", "pattern_recognition"],
}

# need -> (intervention type, target metric, expected impact)
NEEDS = {
    "frustration_reduction": (InterventionType.DIFFICULTY_ADJUSTMENT, "frustration_level", 0.3),
    "engagement_boost": (InterventionType.MOTIVATION_BOOST, "engagement_level", 0.4),
    "plateau_intervention": (InterventionType.PLATEAU_INTERVENTION, "skill_growth", 0.6),
}


def skill_levels(profile: PlayerDifficultyProfile) -> dict[str, float]:
    skills = profile.skill_assessment.as_dict()
    skills.pop("overall_skill", None)
    return skills


def expected_skill_growth(skill: float, learning_rate: float, weeks: int) -> float:
    return learning_rate * math.log(1 + weeks) * (10.0 - skill) / 10.0


def game_phase_value(game_state: GameStateSnapshot) -> float:
    if game_state.round < 10:
        return 0.2
    if game_state.round < 30:
        return 0.5
    return 0.8


def learning_velocity(path: Sequence[ProgressionPoint]) -> float:
    """Mean growth of the summed skill levels per hour over the last five points."""
    if len(path) < 3:
        return VELOCITY_DEFAULT
    recent = path[-5:]
    growths = []
    for previous, current in zip(recent, recent[1:]):
        elapsed = current.timestamp - previous.timestamp
        if elapsed > 0:
            growth = sum(current.skill_levels.values()) - sum(previous.skill_levels.values())
            growths.append(growth / (elapsed / HOUR_SEC))
    return mean(growths, default=VELOCITY_DEFAULT)


def stagnant_skills(points: Sequence[ProgressionPoint]) -> list[str]:
    names = points[0].skill_levels.keys()
    return [
        name
        for name in names
        if variance([point.skill_levels.get(name, 0.0) for point in points]) < 0.01
    ]


def is_plateau(points: Sequence[ProgressionPoint]) -> bool:
    if len(points) < 3:
        return False
    return (
        len(stagnant_skills(points)) >= 3
        and variance([point.performance_score for point in points]) < 0.02
        and mean_step([point.engagement_level for point in points]) < -0.05
    )


class CurveService:
    def __init__(
        self,
        profiles: ProfileService,
        challenges: ChallengeService,
        *,
        clock: Clock | None = None,
        bus: NotificationBus | None = None,
        config: CurveConfig | None = None,
    ) -> None:
        self.profiles = profiles
        self.challenges = challenges
        self.config = config or CurveConfig()
        self._clock = clock or MonotonicClock()
        self._bus = bus or NotificationBus()
        self._progressions: dict[str, DifficultyProgression] = {}
        self._analytics: dict[str, OptimizationAnalytics] = {}

    # ------------------------------------------------------------------
    # Progression lifecycle
    # ------------------------------------------------------------------

    def initialize_progression(
        self,
        player_id: str,
        profile: PlayerDifficultyProfile | None = None,
        game_state: GameStateSnapshot | None = None,
    ) -> DifficultyProgression:
        if player_id in self._progressions:
            raise ProgressionAlreadyExists(f"Progression already exists: {player_id}")
        profile = profile or self.profiles.repository.require(player_id)
        game_state = game_state or GameStateSnapshot()

        first_point = self._create_point(profile, game_state, [])
        learning_rate = profile.adaptation.learning_rate
        progression = DifficultyProgression(
            player_id=player_id,
            path=[first_point],
            target=self._target_trajectory(profile),
            optimization=OptimizationState(
                target_difficulty=first_point.difficulty_level,
                strategy=self._initial_strategy(profile),
            ),
            learning_velocity=self._initial_velocity(profile),
            mastery_goals=self._mastery_goals(profile),
        )
        self._progressions[player_id] = progression
        logger.info(
            "[Curve] Progression for %s initialized (lr=%.3f, %s goals)",
            player_id,
            learning_rate,
            len(progression.mastery_goals),
        )
        return progression

    def update_progression(
        self,
        player_id: str,
        assessments: Sequence[ChallengeAssessment] | None = None,
        game_state: GameStateSnapshot | None = None,
    ) -> DifficultyProgression:
        progression = self._require(player_id)
        profile = self.profiles.repository.require(player_id)
        if assessments is None:
            assessments = self.challenges.get_history(player_id, 10)

        point = self._create_point(profile, game_state or GameStateSnapshot(), assessments)
        progression.path.append(point)
        if len(progression.path) > PATH_CAP:
            del progression.path[: len(progression.path) - PATH_CAP]

        progression.learning_velocity = learning_velocity(progression.path)
        self._detect_plateau(progression)
        self._update_milestones(progression, point)
        self._evaluate_interventions(progression, point)
        self._plan_interventions(progression, point)
        return progression

    def get_progression(self, player_id: str) -> DifficultyProgression | None:
        return self._progressions.get(player_id)

    def get_analytics(self, player_id: str) -> OptimizationAnalytics | None:
        return self._analytics.get(player_id)

    def update_config(self, **changes: Any) -> CurveConfig:
        self.config = CurveConfig.model_validate({**self.config.model_dump(), **changes})
        logger.info("[Curve] Config updated: %s", changes)
        return self.config

    def discard_player(self, player_id: str) -> None:
        self._progressions.pop(player_id, None)
        self._analytics.pop(player_id, None)

    @property
    def player_ids(self) -> list[str]:
        return list(self._progressions)

    # ------------------------------------------------------------------
    # Optimization cycle
    # ------------------------------------------------------------------

    def run_cycle(self) -> int:
        """Advance every progression's state machine once; returns players optimized."""
        optimized = 0
        for player_id, progression in list(self._progressions.items()):
            try:
                self._optimize(progression)
                optimized += 1
            except Exception as exc:
                logger.exception("[Curve] Optimization failed for %s", player_id)
                self._bus.publish(
                    OperationFailed(
                        timestamp=self._clock.now(),
                        operation="curve_optimization",
                        error=str(exc),
                        player_id=player_id,
                    )
                )
        return optimized

    def determine_phase(self, progression: DifficultyProgression) -> OptimizationPhase:
        if progression.open_plateau() is not None:
            return OptimizationPhase.PLATEAU_BREAKING
        if len(progression.path) < 5:
            return OptimizationPhase.ASSESSMENT
        if progression.learning_velocity > 0.2:
            return OptimizationPhase.GRADUAL_INCREASE
        latest = progression.latest()
        if latest is not None and latest.average_mastery() >= self.config.mastery_threshold:
            return OptimizationPhase.MASTERY_CONSOLIDATION
        return OptimizationPhase.ADAPTIVE_MAINTENANCE

    def evaluate_effectiveness(self, progression: DifficultyProgression) -> float:
        """Blend of engagement, frustration headroom and performance fit at the latest point."""
        latest = progression.latest()
        if latest is None:
            return progression.optimization.effectiveness
        config = self.config
        engagement = clamp01(latest.engagement_level / max(config.target_engagement, 1e-6))
        frustration = clamp01(1.0 - latest.frustration_level / (config.max_frustration + config.safety_margin))
        performance = clamp01(1.0 - abs(latest.performance_score - 0.7) * 2.0)
        return clamp01(0.4 * engagement + 0.3 * frustration + 0.3 * performance)

    def optimize_curve(self, player_id: str) -> list[CurveRecommendation]:
        progression = self._require(player_id)
        analytics = self._build_analytics(progression)
        self._analytics[player_id] = analytics
        return self._recommendations(progression, analytics)

    def suggest_level_change(self, player_id: str) -> DifficultyAdjustment | None:
        """One-level move toward the optimized target once it is a full rank away from the current level."""
        progression = self._require(player_id)
        state = progression.optimization
        gap = state.target_difficulty - self._current_rank(player_id)
        if abs(gap) < LEVEL_SHIFT:
            return None
        return DifficultyAdjustment(
            type=AdjustmentType.INCREASE if gap > 0 else AdjustmentType.DECREASE,
            magnitude=clamp01(abs(gap) / 10.0),
            reasoning=f"Curve {state.phase.value} target {state.target_difficulty:.2f}",
            confidence=state.confidence,
            timeframe="gradual",
        )

    def align_target(self, player_id: str) -> float:
        progression = self._require(player_id)
        progression.optimization.target_difficulty = self._current_rank(player_id)
        return progression.optimization.target_difficulty

    def _current_rank(self, player_id: str) -> float:
        profile = self.profiles.repository.require(player_id)
        return float(catalog.get_level(profile.current_difficulty).rank)

    def _optimize(self, progression: DifficultyProgression) -> None:
        state = progression.optimization
        phase = self.determine_phase(progression)
        if phase != state.phase:
            logger.info("[Curve] %s phase %s -> %s", progression.player_id, state.phase.value, phase.value)
            self._bus.publish(
                OptimizationPhaseChanged(
                    timestamp=self._clock.now(),
                    player_id=progression.player_id,
                    from_phase=state.phase.value,
                    to_phase=phase.value,
                )
            )
            state.phase = phase

        self._run_phase(progression, phase)
        state.confidence = clamp01(len(progression.path) / 20.0)
        state.effectiveness = self.evaluate_effectiveness(progression)
        if state.effectiveness < EFFECTIVENESS_FLOOR:
            self._fall_back(progression)

    def _run_phase(self, progression: DifficultyProgression, phase: OptimizationPhase) -> None:
        state = progression.optimization
        params = state.strategy.parameters
        latest = progression.latest()
        current = latest.difficulty_level if latest is not None else state.target_difficulty

        if phase in (OptimizationPhase.ASSESSMENT, OptimizationPhase.CALIBRATION):
            state.remaining_steps = max(0, 5 - len(progression.path))
            state.target_difficulty = current
        elif phase == OptimizationPhase.GRADUAL_INCREASE:
            step = min(params.increment_size * (0.5 + self.config.aggression), params.max_adjustment_per_step)
            state.target_difficulty = clamp(state.target_difficulty + step, 1.0, 10.0)
            state.remaining_steps = max(0, state.remaining_steps - 1)
        elif phase == OptimizationPhase.PLATEAU_BREAKING:
            state.strategy.type = StrategyType.CHALLENGE_BURST
            state.target_difficulty = clamp(current + params.max_adjustment_per_step, 1.0, 10.0)
            plateau = progression.open_plateau()
            if plateau is not None:
                plateau.breakout_strategy = StrategyType.CHALLENGE_BURST.value
        elif phase == OptimizationPhase.MASTERY_CONSOLIDATION:
            state.target_difficulty = current
            state.remaining_steps = max(1, int(params.consolidation_period // params.time_interval))
        elif phase == OptimizationPhase.ADAPTIVE_MAINTENANCE:
            smoothing = params.smoothing_factor
            state.target_difficulty = clamp(
                smoothing * state.target_difficulty + (1.0 - smoothing) * current, 1.0, 10.0
            )

    def _fall_back(self, progression: DifficultyProgression) -> None:
        strategy = progression.optimization.strategy
        params = strategy.parameters
        params.increment_size = max(0.05, params.increment_size / 2.0)
        strategy.type = StrategyType.GRADUAL_LINEAR
        logger.info(
            "[Curve] %s effectiveness %.2f below floor; fell back to %s (increment %.3f)",
            progression.player_id,
            progression.optimization.effectiveness,
            strategy.type.value,
            params.increment_size,
        )

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _create_point(
        self,
        profile: PlayerDifficultyProfile,
        game_state: GameStateSnapshot,
        assessments: Sequence[ChallengeAssessment],
    ) -> ProgressionPoint:
        recent = list(assessments)[-10:]
        last_five = recent[-5:]
        skills = skill_levels(profile)
        return ProgressionPoint(
            timestamp=self._clock.now(),
            difficulty_level=float(catalog.get_level(profile.current_difficulty).rank),
            skill_levels=skills,
            performance_score=mean([item.overall_score for item in recent], default=0.5),
            engagement_level=mean([item.engagement.attention_level for item in last_five], default=0.5),
            frustration_level=mean([item.engagement.frustration_level for item in last_five], default=0.3),
            mastery_indicators={name: min(1.0, level / MASTERY_GOAL_CEILING) for name, level in skills.items()},
            contextual_factors=[
                ContextualFactor(
                    type="game_phase",
                    value=game_phase_value(game_state),
                    impact=0.2,
                    description="Current game phase",
                ),
                ContextualFactor(
                    type="player_count",
                    value=len(game_state.players) / 4.0,
                    impact=0.1,
                    description="Players at the table",
                ),
            ],
        )

    def _target_trajectory(self, profile: PlayerDifficultyProfile) -> list[ProgressionPoint]:
        now = self._clock.now()
        skills = skill_levels(profile)
        overall = profile.skill_assessment.overall_skill
        learning_rate = profile.adaptation.learning_rate
        config = self.config

        points = []
        for weeks in range(1, TARGET_WEEKS + 1):
            growth = expected_skill_growth(overall, learning_rate, weeks)
            projected = {
                name: min(10.0, level + expected_skill_growth(level, learning_rate, weeks))
                for name, level in skills.items()
            }
            points.append(
                ProgressionPoint(
                    timestamp=now + weeks * WEEK_SEC,
                    difficulty_level=clamp(overall + growth, 1.0, 10.0),
                    skill_levels=projected,
                    performance_score=min(0.9, 0.6 + growth * 0.1),
                    engagement_level=config.target_engagement,
                    frustration_level=max(0.1, config.max_frustration - 0.2),
                    mastery_indicators={
                        name: min(1.0, level / MASTERY_GOAL_CEILING) for name, level in projected.items()
                    },
                )
            )
        return points

    @staticmethod
    def _mastery_goals(profile: PlayerDifficultyProfile) -> list[MasteryGoal]:
        weekly_growth = max(profile.adaptation.learning_rate * 0.5, 1e-3)
        goals = []
        for skill, level in skill_levels(profile).items():
            if level >= MASTERY_GOAL_CEILING:
                continue
            target = min(10.0, level + 3.0)
            steps = math.ceil((target - level) / MILESTONE_STEP)
            goals.append(
                MasteryGoal(
                    skill=skill,
                    current_level=level,
                    target_level=target,
                    weekly_growth=weekly_growth,
                    timeline=math.ceil((target - level) / weekly_growth) * WEEK_SEC,
                    milestones=[
                        Milestone(
                            level=min(target, level + step * MILESTONE_STEP),
                            criteria=[f"Reach {min(target, level + step * MILESTONE_STEP):.1f} {skill}"],
                            estimated_time=step * WEEK_SEC,
                        )
                        for step in range(1, steps + 1)
                    ],
                    priority=(10.0 - level) / 10.0,
                    dependencies=SKILL_DEPENDENCIES.get(skill, []),
                )
            )
        goals.sort(key=lambda goal: goal.priority, reverse=True)
        return goals

    @staticmethod
    def _initial_strategy(profile: PlayerDifficultyProfile) -> AdjustmentStrategy:
        learning_rate = profile.adaptation.learning_rate
        return AdjustmentStrategy(
            type=(
                StrategyType.GRADUAL_LINEAR
                if profile.skill_assessment.overall_skill < 4
                else StrategyType.ADAPTIVE_SPIRAL
            ),
            parameters=StrategyParameters(
                increment_size=0.2 + learning_rate * 0.3,
                time_interval=max(300.0, 900.0 - learning_rate * 300.0),
                adaptation_rate=learning_rate,
                risk_tolerance=0.3 + profile.preferences.competitiveness * 0.4,
            ),
            success_criteria=[
                StrategyCriterion(metric="engagement", threshold=0.7, evaluation_window=600.0, weight=0.4),
                StrategyCriterion(metric="performance", threshold=0.6, evaluation_window=900.0, weight=0.4),
                StrategyCriterion(metric="frustration", threshold=0.5, evaluation_window=300.0, weight=0.2),
            ],
            fallbacks=[
                FallbackStrategy(condition="high_frustration", strategy=StrategyType.GRADUAL_LINEAR, increment_size=0.1)
            ],
        )

    @staticmethod
    def _initial_velocity(profile: PlayerDifficultyProfile) -> float:
        preferences = profile.preferences
        motivation = (preferences.learning_orientation + preferences.achievement_orientation) / 2.0
        skill_factor = profile.skill_assessment.adaptability / 10.0
        return profile.adaptation.learning_rate * (0.5 + skill_factor * 0.3 + motivation * 0.2)

    # ------------------------------------------------------------------
    # Per-update analysis
    # ------------------------------------------------------------------

    def _detect_plateau(self, progression: DifficultyProgression) -> None:
        recent = progression.path[-10:]
        if len(recent) < 5:
            return

        now = self._clock.now()
        plateau = progression.open_plateau()
        if plateau is not None:
            plateau.duration = now - plateau.start_time

        in_plateau = is_plateau(recent)
        if in_plateau and plateau is None:
            record = PlateauRecord(
                start_time=now,
                difficulty_level=recent[-1].difficulty_level,
                skills_stagnant=stagnant_skills(recent),
            )
            progression.plateau_history.append(record)
            logger.info("[Curve] Plateau detected for %s", progression.player_id)
            self._bus.publish(
                PlateauDetected(
                    timestamp=now,
                    player_id=progression.player_id,
                    source="curve",
                    stagnant=tuple(record.skills_stagnant),
                )
            )
        elif not in_plateau and plateau is not None:
            plateau.end_time = now
            plateau.duration = now - plateau.start_time
            plateau.breakout_success = True
            logger.info("[Curve] Plateau resolved for %s after %.0fs", progression.player_id, plateau.duration)
            self._bus.publish(
                PlateauResolved(
                    timestamp=now,
                    player_id=progression.player_id,
                    source="curve",
                    duration=plateau.duration,
                )
            )

    def _update_milestones(self, progression: DifficultyProgression, point: ProgressionPoint) -> None:
        for goal in progression.mastery_goals:
            goal.current_level = point.skill_levels.get(goal.skill, goal.current_level)
            for milestone in goal.milestones:
                if milestone.reached or goal.current_level < milestone.level:
                    continue
                milestone.reached = True
                self._bus.publish(
                    MilestoneReached(
                        timestamp=point.timestamp,
                        player_id=progression.player_id,
                        skill=goal.skill,
                        level=milestone.level,
                    )
                )

    @staticmethod
    def _metric_value(point: ProgressionPoint, metric: str) -> float:
        if metric == "frustration_level":
            return point.frustration_level
        if metric == "engagement_level":
            return point.engagement_level
        if metric == "skill_growth":
            return sum(point.skill_levels.values())
        return point.performance_score

    def _evaluate_interventions(self, progression: DifficultyProgression, point: ProgressionPoint) -> None:
        for intervention in progression.optimization.interventions:
            if intervention.evaluated or intervention.timestamp >= point.timestamp:
                continue
            change = self._metric_value(point, intervention.target_metric) - intervention.baseline
            improvement = -change if intervention.target_metric == "frustration_level" else change
            intervention.actual_impact = improvement
            intervention.success = improvement > 0
            intervention.evaluated = True

    def _plan_interventions(self, progression: DifficultyProgression, point: ProgressionPoint) -> None:
        config = self.config
        needs = []
        if point.frustration_level > config.max_frustration:
            needs.append(("frustration_reduction", "Player frustration above the configured ceiling"))
        if point.engagement_level < config.target_engagement * 0.8:
            needs.append(("engagement_boost", "Player engagement below target"))
        plateau = progression.open_plateau()
        if plateau is not None and point.timestamp - plateau.start_time > config.plateau_window:
            needs.append(("plateau_intervention", "Player stuck in a learning plateau"))

        state = progression.optimization
        for need, reasoning in needs:
            kind, metric, impact = NEEDS[need]
            if any(item.type == kind and not item.evaluated for item in state.interventions):
                continue
            state.interventions.append(
                OptimizationIntervention(
                    timestamp=point.timestamp,
                    type=kind,
                    reasoning=reasoning,
                    target_metric=metric,
                    expected_impact=impact,
                    baseline=self._metric_value(point, metric),
                )
            )
            if plateau is not None and kind == InterventionType.PLATEAU_INTERVENTION:
                plateau.interventions_attempted.append(kind.value)
            logger.debug("[Curve] %s planned %s", progression.player_id, kind.value)

    # ------------------------------------------------------------------
    # Analytics and recommendations
    # ------------------------------------------------------------------

    def _engagement_trend(self, points: Sequence[ProgressionPoint]) -> TrendAnalysis:
        values = [point.engagement_level for point in points[-10:]]
        slope = linear_slope(values)
        spread = std(values)
        if spread > 0.15:
            direction = "volatile"
        elif slope > 0.01:
            direction = "increasing"
        elif slope < -0.01:
            direction = "decreasing"
        else:
            direction = "stable"
        return TrendAnalysis(
            direction=direction,
            strength=min(1.0, abs(slope) * 10.0),
            consistency=clamp01(1.0 - spread * 2.0),
            prediction=clamp01((values[-1] if values else 0.5) + slope * 5.0),
            confidence=min(1.0, len(values) / 10.0),
        )

    def _build_analytics(self, progression: DifficultyProgression) -> OptimizationAnalytics:
        path = progression.path
        first, last = path[0], path[-1]
        hours = max((last.timestamp - first.timestamp) / HOUR_SEC, 1e-6)
        development = {
            name: (last.skill_levels.get(name, 0.0) - level) / hours if len(path) > 1 else 0.0
            for name, level in first.skill_levels.items()
        }

        evaluated = [item for item in progression.optimization.interventions if item.evaluated]
        success_rate = (
            sum(1 for item in evaluated if item.success) / len(evaluated) if evaluated else 0.5
        )

        time_to_mastery = {
            goal.skill: max(0.0, goal.target_level - goal.current_level) / goal.weekly_growth * WEEK_SEC
            for goal in progression.mastery_goals
        }

        comfortable = [
            point.difficulty_level
            for point in path
            if 0.6 <= point.performance_score <= 0.85 and point.frustration_level <= self.config.max_frustration
        ]
        optimal = (
            DifficultyRange(min=min(comfortable), max=max(comfortable))
            if comfortable
            else DifficultyRange(min=4.0, max=8.0)
        )

        return OptimizationAnalytics(
            player_id=progression.player_id,
            effectiveness=progression.optimization.effectiveness,
            progression_rate=progression.learning_velocity,
            engagement_trend=self._engagement_trend(path),
            skill_development_rate=development,
            plateau_frequency=len(progression.plateau_history) / max(1.0, hours),
            intervention_success_rate=success_rate,
            time_to_mastery=time_to_mastery,
            optimal_difficulty_range=optimal,
        )

    def _recommendations(
        self,
        progression: DifficultyProgression,
        analytics: OptimizationAnalytics,
    ) -> list[CurveRecommendation]:
        config = self.config
        latest = progression.latest()
        recommendations: list[CurveRecommendation] = []
        if latest is None:
            return recommendations

        if latest.frustration_level > config.max_frustration:
            recommendations.append(
                CurveRecommendation(
                    type="progression_deceleration",
                    priority=PriorityBand.HIGH,
                    description="Slow the difficulty progression",
                    rationale=f"Frustration {latest.frustration_level:.2f} above {config.max_frustration:.2f}",
                    steps=[
                        ImplementationStep(step=1, action="reduce_increment", parameters={"factor": 0.5}),
                        ImplementationStep(step=2, action="add_support", duration=600.0),
                    ],
                    expected_benefit="Lower frustration within the next session",
                    risk_level="low",
                    rollback="Restore the previous increment size",
                )
            )
        if progression.open_plateau() is not None:
            recommendations.append(
                CurveRecommendation(
                    type="plateau_intervention",
                    priority=PriorityBand.HIGH,
                    description="Introduce a breakthrough challenge",
                    rationale="Skills and performance have stalled while engagement declines",
                    steps=[
                        ImplementationStep(step=1, action="challenge_burst", duration=900.0),
                        ImplementationStep(step=2, action="skill_focus"),
                    ],
                    expected_benefit="Renewed skill growth",
                    risk_level="medium",
                    rollback="Return to the previous strategy after one consolidation period",
                )
            )
        if (
            analytics.progression_rate > 0.2
            and latest.frustration_level < config.max_frustration - config.safety_margin
        ):
            recommendations.append(
                CurveRecommendation(
                    type="progression_acceleration",
                    priority=PriorityBand.MEDIUM,
                    description="Accelerate the difficulty progression",
                    rationale=f"Learning velocity {analytics.progression_rate:.2f}/h with frustration headroom",
                    steps=[ImplementationStep(step=1, action="increase_increment", parameters={"factor": 1.5})],
                    expected_benefit="Keeps challenge matched to a fast learner",
                    risk_level="medium",
                    rollback="Restore the previous increment size",
                )
            )
        if progression.optimization.phase == OptimizationPhase.MASTERY_CONSOLIDATION:
            recommendations.append(
                CurveRecommendation(
                    type="mastery_consolidation",
                    priority=PriorityBand.MEDIUM,
                    description="Hold difficulty steady to consolidate mastery",
                    rationale=f"Average mastery {latest.average_mastery():.2f}",
                    expected_benefit="Stable performance before the next step up",
                )
            )
        if (
            analytics.engagement_trend.direction == "decreasing"
            or latest.engagement_level < config.target_engagement * 0.8
        ):
            recommendations.append(
                CurveRecommendation(
                    type="motivation_enhancement",
                    priority=PriorityBand.MEDIUM,
                    description="Add rewards and varied content",
                    rationale=f"Engagement {latest.engagement_level:.2f} trending {analytics.engagement_trend.direction}",
                    steps=[ImplementationStep(step=1, action="increase_variety")],
                    expected_benefit="Recovered engagement",
                )
            )
        evaluated = [item for item in progression.optimization.interventions if item.evaluated]
        if len(evaluated) >= 3 and analytics.intervention_success_rate < 0.5:
            recommendations.append(
                CurveRecommendation(
                    type="challenge_diversification",
                    priority=PriorityBand.LOW,
                    description="Try different challenge categories",
                    rationale=f"Intervention success rate {analytics.intervention_success_rate:.2f}",
                    expected_benefit="Find interventions that work for this player",
                )
            )

        recommendations.sort(key=lambda item: item.priority.rank, reverse=True)
        return recommendations

    def _require(self, player_id: str) -> DifficultyProgression:
        progression = self._progressions.get(player_id)
        if progression is None:
            raise ProgressionNotFound(f"No progression for player: {player_id}")
        return progression
