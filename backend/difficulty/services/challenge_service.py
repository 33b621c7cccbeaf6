"""Challenge instancing, live progress checks and completion assessment."""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from typing import Any

from difficulty import catalog
from difficulty.challenge_models import (
    AdaptableFactor,
    AssessmentRecommendation,
    ChallengeAnalytics,
    ChallengeAssessment,
    ChallengeCategory,
    ChallengeConfig,
    ChallengeDefinition,
    ChallengeInstance,
    ChallengeOutcome,
    ChallengeParameters,
    ChallengeResult,
    ComplexityFactor,
    ContextualModifier,
    DifficultyFitAssessment,
    EngagementAssessment,
    FactorDirection,
    FailureCriterion,
    FailureSeverity,
    GameStateChange,
    LearningAssessment,
    MistakePattern,
    PerformanceAssessment,
    PersonalizationFactor,
    PlayerAction,
    PlayerFeedback,
    ProgressEvaluation,
    ResourceConstraint,
    SkillRequirement,
    SuccessCriterion,
)
from difficulty.errors import DefinitionNotFound, InstanceNotFound
from difficulty.models import (
    ChallengeStyle,
    GameStateSnapshot,
    PlayerDifficultyProfile,
    PriorityBand,
)
from difficulty.services.clock import Clock, MonotonicClock
from difficulty.services.notifications import ChallengeAssessed, NotificationBus
from difficulty.services.statistics import clamp, clamp01, mean, std
from shared.config.logging import get_logger

logger = get_logger(__name__)

BASE_DURATION_SEC = 300.0
MIN_DURATION_SEC = 60.0
MAX_DURATION_SEC = 1800.0
TIME_PRESSURE_WINDOW_SEC = 600.0
HISTORICAL_WINDOW = 5

PREFERENCE_CATEGORIES: dict[ChallengeStyle, set[ChallengeCategory]] = {
    ChallengeStyle.STRATEGIC_DEPTH: {ChallengeCategory.STRATEGIC_PLANNING, ChallengeCategory.COMPLEX_DECISION},
    ChallengeStyle.TIME_PRESSURE: {ChallengeCategory.TIME_MANAGEMENT},
    ChallengeStyle.INFORMATION_SCARCITY: {ChallengeCategory.RISK_ASSESSMENT},
    ChallengeStyle.RESOURCE_MANAGEMENT: {
        ChallengeCategory.ECONOMIC_MANAGEMENT,
        ChallengeCategory.RESOURCE_OPTIMIZATION,
    },
    ChallengeStyle.SOCIAL_DYNAMICS: {ChallengeCategory.SOCIAL_INTERACTION},
    ChallengeStyle.PATTERN_RECOGNITION: {ChallengeCategory.PATTERN_RECOGNITION},
    ChallengeStyle.ADAPTATION_SPEED: {ChallengeCategory.ADAPTATION},
}


def default_definitions() -> list[ChallengeDefinition]:
    return [
        ChallengeDefinition(
            id="economic_crisis_management",
            name="Economic crisis management",
            category=ChallengeCategory.ECONOMIC_MANAGEMENT,
            description="Stay solvent through an economic downturn",
            base_difficulty=6,
            skills=[
                SkillRequirement(skill="economic_management", minimum_level=4, weight=0.8, critical=True),
                SkillRequirement(skill="risk_assessment", minimum_level=3, weight=0.6),
            ],
            parameters=ChallengeParameters(
                time_limit=180.0,
                resource_constraints=[ResourceConstraint(type="cash", limit=1000, penalty=0.5)],
                information_availability=0.7,
                randomness_level=0.4,
                complexity_factors=[
                    ComplexityFactor(type="multiple_decisions", value=3, description="Several decisions at once")
                ],
                stakeholders=["bank", "other_players"],
                dependencies=["market_stability"],
            ),
            adaptable_factors=[
                AdaptableFactor(
                    parameter="time_limit",
                    minimum=120.0,
                    maximum=300.0,
                    player_factors=["decision_speed", "economic_management"],
                    direction=FactorDirection.HARDER_WHEN_LOWER,
                )
            ],
            success_criteria=[
                SuccessCriterion(metric="cash_remaining", threshold=500, weight=0.7),
                SuccessCriterion(metric="properties_retained", threshold=0.8, weight=0.3),
            ],
            failure_criteria=[
                FailureCriterion(
                    metric="bankruptcy",
                    threshold=1,
                    severity=FailureSeverity.CRITICAL,
                    consequences=["game_over"],
                )
            ],
        ),
        ChallengeDefinition(
            id="monopoly_building",
            name="Monopoly building",
            category=ChallengeCategory.STRATEGIC_PLANNING,
            description="Assemble a complete property set",
            base_difficulty=7,
            skills=[
                SkillRequirement(skill="strategic_planning", minimum_level=5, weight=0.9, critical=True),
                SkillRequirement(skill="social_interaction", minimum_level=3, weight=0.4),
            ],
            parameters=ChallengeParameters(
                time_limit=600.0,
                resource_constraints=[ResourceConstraint(type="cash", limit=2000, penalty=0.3)],
                information_availability=0.8,
                randomness_level=0.3,
                complexity_factors=[
                    ComplexityFactor(type="competition", value=4, description="Competing for the same properties")
                ],
                stakeholders=["other_players"],
                dependencies=["property_availability"],
            ),
            adaptable_factors=[
                AdaptableFactor(
                    parameter="cash",
                    minimum=1500.0,
                    maximum=3000.0,
                    player_factors=["overall_skill"],
                    direction=FactorDirection.HARDER_WHEN_LOWER,
                )
            ],
            success_criteria=[SuccessCriterion(metric="monopoly_achieved", threshold=1, weight=1.0)],
            failure_criteria=[
                FailureCriterion(
                    metric="no_progress",
                    threshold=0.1,
                    severity=FailureSeverity.MAJOR,
                    consequences=["challenge_timeout"],
                )
            ],
        ),
    ]


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return None


def observed_metrics(
    actions: Sequence[PlayerAction],
    state: Sequence[GameStateChange] | dict[str, Any],
) -> dict[str, float]:
    """Latest observed value per metric.

    State changes win over action parameters; within each source the latest
    timestamp wins.
    """
    values: dict[str, float] = {}
    for action in sorted(actions, key=lambda item: item.timestamp):
        for key, raw in action.parameters.items():
            value = _as_float(raw)
            if value is not None and key not in ("success", "risk"):
                values[key] = value
    if isinstance(state, dict):
        for key, raw in state.items():
            value = _as_float(raw)
            if value is not None:
                values[key] = value
    else:
        for change in sorted(state, key=lambda item: item.timestamp):
            value = _as_float(change.new_value)
            if value is not None:
                values[change.property] = value
    return values


def action_risk(action: PlayerAction, default: float = 0.5) -> float:
    risk = _as_float(action.parameters.get("risk"))
    return default if risk is None else clamp01(risk)


def criterion_progress(value: float | None, threshold: float) -> float:
    if value is None:
        return 0.0
    if threshold <= 0:
        return 1.0 if value >= threshold else 0.0
    return clamp01(value / threshold)


def completion_rate(criteria: Sequence[SuccessCriterion], metrics: dict[str, float]) -> float:
    total = sum(criterion.weight for criterion in criteria)
    if total <= 0:
        return 0.0
    return sum(
        criterion.weight * criterion_progress(metrics.get(criterion.metric), criterion.threshold)
        for criterion in criteria
    ) / total


def criteria_met(criteria: Sequence[SuccessCriterion], metrics: dict[str, float]) -> float:
    """Weight share of success criteria fully met."""
    total = sum(criterion.weight for criterion in criteria)
    if total <= 0:
        return 0.0
    return sum(
        criterion.weight
        for criterion in criteria
        if metrics.get(criterion.metric) is not None and metrics[criterion.metric] >= criterion.threshold
    ) / total


def triggered_failures(criteria: Sequence[FailureCriterion], metrics: dict[str, float]) -> list[FailureCriterion]:
    return [
        criterion
        for criterion in criteria
        if metrics.get(criterion.metric) is not None and metrics[criterion.metric] >= criterion.threshold
    ]


def success_sequence(actions: Sequence[PlayerAction]) -> list[float]:
    """1.0 for each action not marked failed, 0.0 otherwise, in time order."""
    return [0.0 if action.failed else 1.0 for action in sorted(actions, key=lambda item: item.timestamp)]


def fit_score(performance: float, target: float) -> float:
    """1.0 at the target performance, falling linearly to 0 half a unit away."""
    return clamp01(1.0 - abs(performance - target) * 2.0)


class ChallengeService:
    def __init__(
        self,
        *,
        clock: Clock | None = None,
        bus: NotificationBus | None = None,
        config: ChallengeConfig | None = None,
        definitions: Sequence[ChallengeDefinition] | None = None,
    ) -> None:
        self.config = config or ChallengeConfig()
        self._clock = clock or MonotonicClock()
        self._bus = bus or NotificationBus()
        self._definitions: dict[str, ChallengeDefinition] = {}
        self._instances: dict[str, ChallengeInstance] = {}
        self._action_log: dict[str, list[PlayerAction]] = {}
        self._state_log: dict[str, list[GameStateChange]] = {}
        self._history: dict[str, list[ChallengeAssessment]] = {}
        self._analytics: dict[str, ChallengeAnalytics] = {}
        self._ids = itertools.count(1)
        for definition in default_definitions() if definitions is None else definitions:
            self.add_definition(definition)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def add_definition(self, definition: ChallengeDefinition) -> None:
        self._definitions[definition.id] = definition
        logger.debug("[Challenges] Definition %s registered", definition.id)

    def get_definition(self, challenge_id: str) -> ChallengeDefinition:
        definition = self._definitions.get(challenge_id)
        if definition is None:
            raise DefinitionNotFound(
                f"Unknown challenge: '{challenge_id}'. Available: {list(self._definitions.keys())}"
            )
        return definition

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def create_instance(
        self,
        challenge_id: str,
        player_id: str,
        profile: PlayerDifficultyProfile,
        context: GameStateSnapshot | None = None,
    ) -> ChallengeInstance:
        definition = self.get_definition(challenge_id)
        context = context or GameStateSnapshot()
        skills = profile.skill_assessment.as_dict()
        multiplier = catalog.tier_multiplier(profile.current_difficulty)

        parameters = self._adapt_parameters(definition, skills, multiplier)
        personalization = self._personalize(definition, profile)
        modifiers = self._contextual_modifiers(context)
        difficulty = self._instance_difficulty(definition, parameters, skills, personalization, modifiers)
        duration = self._estimate_duration(parameters, skills)

        instance = ChallengeInstance(
            instance_id=f"{challenge_id}-{player_id}-{next(self._ids)}",
            challenge_id=challenge_id,
            player_id=player_id,
            category=definition.category,
            adapted_parameters=parameters,
            personalization=personalization,
            modifiers=modifiers,
            start_time=self._clock.now(),
            estimated_duration=duration,
            difficulty_level=difficulty,
        )
        self._instances[instance.instance_id] = instance
        self._action_log[instance.instance_id] = []
        self._state_log[instance.instance_id] = []
        logger.info(
            "[Challenges] %s started %s (difficulty %.2f, est. %.0fs)",
            player_id,
            challenge_id,
            difficulty,
            duration,
        )
        return instance

    def get_instance(self, instance_id: str) -> ChallengeInstance:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise InstanceNotFound(f"Challenge instance not found: {instance_id}")
        return instance

    def active_instances(self, player_id: str | None = None) -> list[ChallengeInstance]:
        return [
            instance
            for instance in self._instances.values()
            if player_id is None or instance.player_id == player_id
        ]

    def record_action(self, instance_id: str, action: PlayerAction) -> None:
        self.get_instance(instance_id)
        self._action_log[instance_id].append(action)

    def record_state_change(self, instance_id: str, change: GameStateChange) -> None:
        self.get_instance(instance_id)
        self._state_log[instance_id].append(change)

    # ------------------------------------------------------------------
    # Assessment
    # ------------------------------------------------------------------

    def evaluate_progress(
        self,
        instance_id: str,
        partial_actions: Sequence[PlayerAction] | None = None,
        partial_state: dict[str, Any] | Sequence[GameStateChange] | None = None,
    ) -> ProgressEvaluation:
        instance = self.get_instance(instance_id)
        definition = self.get_definition(instance.challenge_id)
        actions = list(self._action_log[instance_id] if partial_actions is None else partial_actions)
        state = self._state_log[instance_id] if partial_state is None else partial_state

        now = self._clock.now()
        progress_ratio = clamp01((now - instance.start_time) / instance.estimated_duration)
        metrics = observed_metrics(actions, state)
        completion = completion_rate(definition.success_criteria, metrics)

        sequence = success_sequence(actions)
        performance = clamp01(0.3 + 0.7 * mean(sequence)) if sequence else 0.5
        pace = clamp01(1.0 - max(0.0, progress_ratio - completion))
        difficulty_fit = clamp01(0.6 * fit_score(performance, self.config.target_performance) + 0.4 * pace)

        config = self.config
        actions_needed: list[str] = []
        checks_due = progress_ratio >= config.min_progress_for_checks
        if checks_due and progress_ratio - completion > config.behind_schedule_margin:
            actions_needed.append("extend_time_limit")
            actions_needed.append("offer_hint")
        if checks_due and performance < config.underperformance_threshold:
            actions_needed.append("reduce_complexity")
        if difficulty_fit < config.poor_fit_threshold:
            actions_needed.append("increase_complexity" if performance > 0.9 else "provide_guidance")

        return ProgressEvaluation(
            instance_id=instance_id,
            timestamp=now,
            progress_ratio=progress_ratio,
            completion_progress=completion,
            performance_progress=performance,
            difficulty_fit=difficulty_fit,
            intervention_needed=bool(actions_needed),
            recommended_actions=list(dict.fromkeys(actions_needed)),
        )

    def assess_completion(
        self,
        instance_id: str,
        actions: Sequence[PlayerAction] | None = None,
        state_changes: Sequence[GameStateChange] | None = None,
        feedback: PlayerFeedback | None = None,
    ) -> ChallengeAssessment:
        instance = self.get_instance(instance_id)
        definition = self.get_definition(instance.challenge_id)
        actions = list(self._action_log[instance_id] if actions is None else actions)
        state_changes = list(self._state_log[instance_id] if state_changes is None else state_changes)
        end_time = self._clock.now()

        outcome = self._outcome(definition, instance, actions, state_changes, end_time)
        performance = self._performance(definition, instance, actions, outcome)
        learning = self._learning(definition, instance, actions, performance)
        engagement = self._engagement(instance, actions, outcome, end_time, feedback)
        difficulty = self._difficulty(instance, performance, engagement, outcome, feedback)
        recommendations = self._recommendations(performance, learning, engagement, difficulty)

        assessment = ChallengeAssessment(
            instance_id=instance_id,
            challenge_id=definition.id,
            category=definition.category,
            player_id=instance.player_id,
            start_time=instance.start_time,
            end_time=end_time,
            outcome=outcome,
            performance=performance,
            learning=learning,
            engagement=engagement,
            difficulty=difficulty,
            recommendations=recommendations,
        )

        history = self._history.setdefault(instance.player_id, [])
        history.append(assessment)
        if len(history) > self.config.history_cap:
            del history[: len(history) - self.config.history_cap]
        self._update_analytics(assessment)

        del self._instances[instance_id]
        self._action_log.pop(instance_id, None)
        self._state_log.pop(instance_id, None)

        logger.info(
            "[Challenges] %s finished %s: %s (score %.2f)",
            instance.player_id,
            definition.id,
            outcome.result,
            performance.overall_score,
        )
        self._bus.publish(
            ChallengeAssessed(
                timestamp=end_time,
                player_id=instance.player_id,
                challenge_id=definition.id,
                instance_id=instance_id,
                result=outcome.result,
                overall_score=performance.overall_score,
            )
        )
        return assessment

    def get_history(self, player_id: str, limit: int = 20) -> list[ChallengeAssessment]:
        return self._history.get(player_id, [])[-limit:]

    def get_analytics(self, challenge_id: str) -> ChallengeAnalytics | None:
        return self._analytics.get(challenge_id)

    def discard_player(self, player_id: str) -> None:
        for instance in self.active_instances(player_id):
            self._instances.pop(instance.instance_id, None)
            self._action_log.pop(instance.instance_id, None)
            self._state_log.pop(instance.instance_id, None)
        self._history.pop(player_id, None)

    # ------------------------------------------------------------------
    # Instance construction
    # ------------------------------------------------------------------

    def _adapt_parameters(
        self,
        definition: ChallengeDefinition,
        skills: dict[str, float],
        multiplier: float,
    ) -> ChallengeParameters:
        parameters = definition.parameters.model_copy(deep=True)
        for factor in definition.adaptable_factors:
            skill = mean([skills.get(name, 5.0) for name in factor.player_factors], default=5.0) / 10.0
            position = clamp01(skill * multiplier)
            span = factor.maximum - factor.minimum
            if factor.direction == FactorDirection.HARDER_WHEN_HIGHER:
                value = factor.minimum + position * span
            else:
                value = factor.maximum - position * span
            self._apply_factor(parameters, factor.parameter, clamp(value, factor.minimum, factor.maximum))

        for complexity in parameters.complexity_factors:
            complexity.value *= multiplier
        return parameters

    @staticmethod
    def _apply_factor(parameters: ChallengeParameters, name: str, value: float) -> None:
        if name == "time_limit":
            parameters.time_limit = value
            return
        for constraint in parameters.resource_constraints:
            if constraint.type == name:
                constraint.limit = value
                return
        for complexity in parameters.complexity_factors:
            if complexity.type == name:
                complexity.value = value
                return
        logger.warning("[Challenges] Adaptable factor %s matches no parameter", name)

    def _personalize(
        self,
        definition: ChallengeDefinition,
        profile: PlayerDifficultyProfile,
    ) -> list[PersonalizationFactor]:
        skills = profile.skill_assessment.as_dict()
        factors = [
            PersonalizationFactor(
                factor=f"skill_{requirement.skill}",
                value=skills.get(requirement.skill, 5.0) / 10.0,
                reasoning=f"Player {requirement.skill} level",
                source="player_profile",
            )
            for requirement in definition.skills
        ]

        if any(
            definition.category in PREFERENCE_CATEGORIES.get(style, set())
            for style in profile.preferences.preferred_challenge_types
        ):
            factors.append(
                PersonalizationFactor(
                    factor="preferred_challenge_type",
                    value=0.1,
                    reasoning="Challenge matches a preferred challenge type",
                    source="player_profile",
                )
            )

        previous = [
            assessment.overall_score
            for assessment in self._history.get(profile.player_id, [])
            if assessment.category == definition.category
        ][-HISTORICAL_WINDOW:]
        if previous:
            factors.append(
                PersonalizationFactor(
                    factor="historical_performance",
                    value=mean(previous),
                    reasoning=f"Recent {definition.category.value} results",
                    source="historical_data",
                )
            )
        return factors

    @staticmethod
    def _contextual_modifiers(context: GameStateSnapshot) -> list[ContextualModifier]:
        if context.round < 10:
            phase, impact = "early", -0.1
        elif context.round < 30:
            phase, impact = "mid", 0.0
        else:
            phase, impact = "late", 0.1
        modifiers = [ContextualModifier(type="game_phase", impact=impact, description=f"{phase} game")]

        if len(context.players) > 1:
            modifiers.append(
                ContextualModifier(type="multiplayer", impact=0.1, description="Multiplayer social dynamics")
            )

        remaining = context.remaining_seconds()
        if remaining is not None and remaining < TIME_PRESSURE_WINDOW_SEC:
            modifiers.append(
                ContextualModifier(
                    type="time_pressure",
                    impact=0.2,
                    description="Game approaching its time limit",
                    duration=remaining,
                )
            )
        return modifiers

    @staticmethod
    def _instance_difficulty(
        definition: ChallengeDefinition,
        parameters: ChallengeParameters,
        skills: dict[str, float],
        personalization: list[PersonalizationFactor],
        modifiers: list[ContextualModifier],
    ) -> float:
        complexity_shift = parameters.average_complexity() - definition.parameters.average_complexity()
        parameter_impact = 0.5 * complexity_shift + 2.0 * sum(modifier.impact for modifier in modifiers)

        total_weight = sum(requirement.weight for requirement in definition.skills)
        skill_match = 0.0
        if total_weight > 0:
            skill_match = 0.5 * sum(
                requirement.weight * (requirement.minimum_level - skills.get(requirement.skill, 5.0))
                for requirement in definition.skills
            ) / total_weight
        skill_match += 0.5 * sum(
            1
            for requirement in definition.skills
            if requirement.critical and skills.get(requirement.skill, 5.0) < requirement.minimum_level
        )

        personalization_impact = 0.0
        for factor in personalization:
            if factor.factor == "historical_performance":
                personalization_impact += (factor.value - 0.6) * 2.0
            elif factor.factor == "preferred_challenge_type":
                personalization_impact += factor.value

        return clamp(
            definition.base_difficulty + parameter_impact + skill_match + personalization_impact,
            1.0,
            10.0,
        )

    @staticmethod
    def _estimate_duration(parameters: ChallengeParameters, skills: dict[str, float]) -> float:
        duration = BASE_DURATION_SEC
        duration *= 1.0 + parameters.average_complexity()
        duration *= 2.0 - skills["overall_skill"] / 10.0
        duration *= 1.5 - skills["decision_speed"] / 20.0
        return clamp(duration, MIN_DURATION_SEC, MAX_DURATION_SEC)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _outcome(
        self,
        definition: ChallengeDefinition,
        instance: ChallengeInstance,
        actions: list[PlayerAction],
        state_changes: list[GameStateChange],
        end_time: float,
    ) -> ChallengeOutcome:
        metrics = observed_metrics(actions, state_changes)
        completion = completion_rate(definition.success_criteria, metrics)
        met = criteria_met(definition.success_criteria, metrics)
        failures = triggered_failures(definition.failure_criteria, metrics)
        sequence = success_sequence(actions)
        accuracy = mean(sequence, default=1.0)

        result: ChallengeResult
        if (not actions and not state_changes) or any(action.type == "abandon" for action in actions):
            result = "abandoned"
        elif any(failure.severity != FailureSeverity.MINOR for failure in failures):
            result = "failure"
        elif met >= 1.0:
            result = "success"
        elif completion >= 0.5:
            result = "partial_success"
        else:
            result = "failure"

        minor_penalty = 0.1 * sum(1 for failure in failures if failure.severity == FailureSeverity.MINOR)
        quality = clamp01(0.6 * met + 0.4 * accuracy - minor_penalty)

        elapsed = max(1.0, end_time - instance.start_time)
        time_efficiency = clamp01(instance.estimated_duration / elapsed)
        efficiency = clamp01(0.7 * time_efficiency + 0.3 * accuracy) if actions else 0.0

        creativity = clamp01(len({action.type for action in actions}) / 5.0)

        risky = [action for action in actions if _as_float(action.parameters.get("risk")) is not None]
        if risky:
            exposure = mean(
                [
                    clamp01(float(action.parameters["risk"])) * (1.0 if action.failed else 0.3)
                    for action in risky
                ]
            )
            risk_management = clamp01(1.0 - exposure)
        else:
            risk_management = 0.5

        return ChallengeOutcome(
            result=result,
            completion_rate=completion,
            quality_score=quality,
            efficiency=efficiency,
            creativity=creativity,
            risk_management=risk_management,
        )

    @staticmethod
    def _performance(
        definition: ChallengeDefinition,
        instance: ChallengeInstance,
        actions: list[PlayerAction],
        outcome: ChallengeOutcome,
    ) -> PerformanceAssessment:
        overall = clamp01(
            0.35 * outcome.quality_score
            + 0.25 * outcome.completion_rate
            + 0.2 * outcome.efficiency
            + 0.1 * outcome.creativity
            + 0.1 * outcome.risk_management
        )

        breakdown = {
            requirement.skill: clamp01(
                overall * (0.5 + instance.personal_value(f"skill_{requirement.skill}"))
            )
            for requirement in definition.skills
        }
        strong = [skill for skill, score in breakdown.items() if score >= 0.7]
        weak = [skill for skill, score in breakdown.items() if score <= 0.4]
        improvement = [skill for skill in breakdown if skill not in strong and skill not in weak]

        sequence = success_sequence(actions)
        if sequence:
            consistency = clamp01(1.0 - 2.0 * std(sequence))
            windows = [mean(sequence[i : i + 3]) for i in range(max(1, len(sequence) - 2))]
            peak = max(windows)
            sustained = mean(sequence[len(sequence) // 2 :])
        else:
            consistency = peak = sustained = 0.0

        return PerformanceAssessment(
            overall_score=overall,
            skill_breakdown=breakdown,
            strong_areas=strong,
            weak_areas=weak,
            improvement_areas=improvement,
            consistency_score=consistency,
            peak_performance=peak,
            sustained_performance=sustained,
        )

    @staticmethod
    def _learning(
        definition: ChallengeDefinition,
        instance: ChallengeInstance,
        actions: list[PlayerAction],
        performance: PerformanceAssessment,
    ) -> LearningAssessment:
        ordered = sorted(actions, key=lambda item: item.timestamp)

        concepts: list[str] = []
        failed_types: set[str] = set()
        for action in ordered:
            if action.failed:
                failed_types.add(action.type)
            elif action.type in failed_types and action.type not in concepts:
                concepts.append(action.type)

        patterns: list[MistakePattern] = []
        if ordered:
            by_type: dict[str, list[PlayerAction]] = {}
            for action in ordered:
                if action.failed:
                    by_type.setdefault(action.type, []).append(action)
            for action_type, mistakes in by_type.items():
                patterns.append(
                    MistakePattern(
                        type=action_type,
                        frequency=len(mistakes) / len(ordered),
                        severity=mean(
                            [action_risk(item) for item in mistakes]
                        ),
                        learning_opportunity=f"Review {action_type} decisions",
                    )
                )

        improved = {
            skill: round(score - instance.personal_value(f"skill_{skill}"), 4)
            for skill, score in performance.skill_breakdown.items()
            if score > instance.personal_value(f"skill_{skill}")
        }

        sequence = success_sequence(ordered)
        half = len(sequence) // 2
        if half:
            learning_speed = clamp01(0.5 + mean(sequence[half:]) - mean(sequence[:half]))
        else:
            learning_speed = 0.5

        return LearningAssessment(
            concepts_learned=concepts,
            skills_improved=improved,
            mistake_patterns=patterns,
            learning_speed=learning_speed,
        )

    @staticmethod
    def _engagement(
        instance: ChallengeInstance,
        actions: list[PlayerAction],
        outcome: ChallengeOutcome,
        end_time: float,
        feedback: PlayerFeedback | None,
    ) -> EngagementAssessment:
        minutes = max(1.0, (end_time - instance.start_time) / 60.0)
        sequence = success_sequence(actions)
        success_rate = mean(sequence, default=0.0)
        mistake_ratio = 1.0 - success_rate if sequence else 0.0
        help_ratio = sum(1 for action in actions if action.type == "help_request") / max(1, len(actions))

        attention = clamp01(len(actions) / minutes / 3.0)
        if feedback is not None:
            attention = clamp01(0.5 * attention + 0.5 * feedback.engagement)
        motivation = clamp01(0.4 + 0.6 * success_rate)
        frustration = clamp01(1.2 * mistake_ratio + 0.5 * help_ratio)
        if feedback is not None:
            satisfaction = feedback.satisfaction
        else:
            satisfaction = clamp01(0.5 * outcome.quality_score + 0.5 * (1.0 - frustration))
        persistence = 0.2 if outcome.result == "abandoned" else clamp01(0.5 + 0.5 * outcome.completion_rate)

        return EngagementAssessment(
            attention_level=attention,
            motivation_level=motivation,
            frustration_level=frustration,
            satisfaction_level=satisfaction,
            flow_state=clamp01(attention * (1.0 - frustration)),
            persistence=persistence,
        )

    def _difficulty(
        self,
        instance: ChallengeInstance,
        performance: PerformanceAssessment,
        engagement: EngagementAssessment,
        outcome: ChallengeOutcome,
        feedback: PlayerFeedback | None,
    ) -> DifficultyFitAssessment:
        actual = instance.difficulty_level / 10.0
        if feedback is not None:
            perceived = feedback.difficulty / 10.0
        else:
            perceived = clamp01(
                actual + 0.5 * (engagement.frustration_level - 0.3) - 0.3 * (performance.overall_score - 0.6)
            )

        return DifficultyFitAssessment(
            perceived_difficulty=perceived,
            actual_difficulty=actual,
            appropriateness=fit_score(performance.overall_score, self.config.target_performance),
            challenge_balance=clamp01(1.0 - abs(perceived - actual)),
            stress_level=clamp01(0.6 * engagement.frustration_level + 0.4 * (1.0 - outcome.efficiency)),
        )

    @staticmethod
    def _recommendations(
        performance: PerformanceAssessment,
        learning: LearningAssessment,
        engagement: EngagementAssessment,
        difficulty: DifficultyFitAssessment,
    ) -> list[AssessmentRecommendation]:
        recommendations: list[AssessmentRecommendation] = []
        if difficulty.appropriateness < 0.5:
            harder = performance.overall_score > 0.7
            recommendations.append(
                AssessmentRecommendation(
                    type="difficulty_adjustment",
                    priority=PriorityBand.HIGH,
                    description="Increase challenge difficulty" if harder else "Decrease challenge difficulty",
                    rationale=f"Performance {performance.overall_score:.2f} is far from the target band",
                    expected_impact=0.7,
                )
            )
        if difficulty.stress_level > 0.7:
            recommendations.append(
                AssessmentRecommendation(
                    type="stress_reduction",
                    priority=PriorityBand.HIGH,
                    description="Relax time limits and add recovery moments",
                    rationale=f"Stress level {difficulty.stress_level:.2f}",
                    expected_impact=0.6,
                )
            )
        for skill in performance.weak_areas:
            recommendations.append(
                AssessmentRecommendation(
                    type="skill_development",
                    priority=PriorityBand.MEDIUM,
                    description=f"Practice {skill}",
                    rationale=f"{skill} scored {performance.skill_breakdown[skill]:.2f}",
                    expected_impact=0.5,
                )
            )
        for pattern in learning.mistake_patterns:
            if pattern.frequency > 0.3:
                recommendations.append(
                    AssessmentRecommendation(
                        type="learning_support",
                        priority=PriorityBand.MEDIUM,
                        description=pattern.learning_opportunity,
                        rationale=f"{pattern.type} failed in {pattern.frequency:.0%} of actions",
                        expected_impact=0.5,
                    )
                )
        if engagement.attention_level < 0.4:
            recommendations.append(
                AssessmentRecommendation(
                    type="motivation_enhancement",
                    priority=PriorityBand.MEDIUM,
                    description="Introduce more varied challenge content",
                    rationale=f"Attention level {engagement.attention_level:.2f}",
                    expected_impact=0.4,
                )
            )
        recommendations.sort(key=lambda item: item.priority.rank, reverse=True)
        return recommendations

    def _update_analytics(self, assessment: ChallengeAssessment) -> None:
        analytics = self._analytics.setdefault(
            assessment.challenge_id, ChallengeAnalytics(challenge_id=assessment.challenge_id)
        )
        analytics.attempts += 1
        count = analytics.attempts
        result = assessment.outcome.result
        analytics.outcome_counts[result] = analytics.outcome_counts.get(result, 0) + 1

        def running(previous: float, value: float) -> float:
            return previous + (value - previous) / count

        analytics.average_score = running(analytics.average_score, assessment.overall_score)
        analytics.average_duration = running(analytics.average_duration, assessment.duration)
        analytics.average_engagement = running(
            analytics.average_engagement, assessment.engagement.attention_level
        )
        analytics.average_appropriateness = running(
            analytics.average_appropriateness, assessment.difficulty.appropriateness
        )
        analytics.calibration_error = running(
            analytics.calibration_error,
            abs(assessment.difficulty.perceived_difficulty - assessment.difficulty.actual_difficulty),
        )
