"""Rule-based real-time difficulty adjuster.

Rules are weighted condition sets over live player metrics. A triggered rule set
becomes an ``AdjustmentPlan``; high and critical plans run at once while lower
priority plans wait for ``execute_pending``.
"""

from __future__ import annotations

import itertools
import random
from collections.abc import Iterable
from typing import Any, assert_never

from difficulty.actions import (
    AdjustmentAction,
    AdjustmentHistoryEntry,
    AdjustmentPlan,
    AdjustmentRule,
    AssistanceLevel,
    ChallengeTypeChange,
    Comparison,
    ContentModification,
    FeedbackFrequency,
    ImmediateKind,
    Modification,
    ParameterAdjustment,
    PlannedAdjustment,
    PlayerResponse,
    Precondition,
    RuleCondition,
    compare,
    priority_band,
)
from difficulty.models import (
    DifficultyParameters,
    EmotionalState,
    GameStateSnapshot,
    PriorityBand,
    RealTimeMetrics,
)
from difficulty.services.clock import Clock, MonotonicClock
from difficulty.services.notifications import (
    ActionApplied,
    AdjusterWarning,
    AssistanceAdjusted,
    ChallengeTypeAdjusted,
    ContentModified,
    DifficultyAdjusted,
    FeedbackAdjusted,
    NotificationBus,
    OperationFailed,
    ParametersAdjusted,
    ParametersCustomized,
    PlanExecuted,
)
from difficulty.services.profile_service import ProfileService
from difficulty.services.statistics import clamp, clamp01
from shared.config.app_config import DIFFICULTY_RANDOM_SEED
from shared.config.logging import get_logger

logger = get_logger(__name__)

TRIGGER_RATIO = 0.7
HISTORY_CAP = 1000
STAGGER_SEC = 1.0
UNKNOWN_METRIC_VALUE = 0.5

# Action target -> (parameter field, low, high)
PARAMETER_FIELDS: dict[str, tuple[str, float, float]] = {
    "ai_skill_level": ("ai_skill_level", 0.0, 10.0),
    "ai_aggressiveness": ("ai_aggressiveness", 0.0, 10.0),
    "event_frequency": ("event_frequency", 0.0, 1.0),
    "time_pressure": ("turn_time_limit", 0.0, 600.0),
    "decision_pressure": ("decision_pressure", 0.0, 1.0),
    "salary_multiplier": ("salary_multiplier", 0.0, 3.0),
    "competition_intensity": ("competition_intensity", 0.0, 1.0),
}

DEFAULT_TUNING: dict[str, dict[str, float]] = {
    "assistance": {"hint_frequency": 0.3, "tutorial_prompts": 0.2},
    "content": {"event_variety": 0.5},
    "feedback": {"encouragement": 0.5},
    "challenge": {"challenge_diversity": 0.5},
}
DEFAULT_TUNING_VALUE = 0.5


def error_rate(metrics: RealTimeMetrics) -> float:
    """Errors per minute of session time."""
    return metrics.error_count / max(1.0, metrics.time_in_session / 60.0)


def performance_score(metrics: RealTimeMetrics) -> float:
    speed = max(0.0, 1.0 - (metrics.decision_time - 10.0) / 40.0)
    score = 0.5
    score += metrics.efficiency * 0.3
    score += max(0.0, 1.0 - error_rate(metrics) / 5.0) * 0.2
    score += speed * 0.2
    score += min(0.3, metrics.consecutive_successes * 0.05)
    return clamp01(score)


def decision_speed(metrics: RealTimeMetrics) -> float:
    return clamp01(1.0 - (metrics.decision_time - 10.0) / 50.0)


def help_frequency(metrics: RealTimeMetrics) -> float:
    """Help requests per five minutes of session time."""
    return metrics.help_requests / max(1.0, metrics.time_in_session / 300.0)


def default_rules() -> list[AdjustmentRule]:
    return [
        AdjustmentRule(
            id="high_frustration",
            name="High frustration relief",
            priority=9,
            conditions=[RuleCondition(metric="frustration_level", operator=Comparison.GT, threshold=0.7)],
            actions=[
                ParameterAdjustment(
                    target="ai_skill_level",
                    modification=Modification.DECREASE,
                    value=1.0,
                    gradual=True,
                    duration=60.0,
                ),
                AssistanceLevel(
                    target="hint_frequency",
                    modification=Modification.INCREASE,
                    value=0.3,
                    duration=300.0,
                ),
            ],
            cooldown=120.0,
        ),
        AdjustmentRule(
            id="high_mastery",
            name="Mastery challenge boost",
            priority=7,
            conditions=[
                RuleCondition(metric="mastery_level", operator=Comparison.GT, threshold=0.8, weight=0.8),
                RuleCondition(metric="performance_score", operator=Comparison.GT, threshold=0.85, weight=0.2),
            ],
            actions=[
                ParameterAdjustment(
                    target="ai_skill_level",
                    modification=Modification.INCREASE,
                    value=0.5,
                    gradual=True,
                ),
            ],
            cooldown=180.0,
        ),
        AdjustmentRule(
            id="low_engagement",
            name="Low engagement variety",
            priority=6,
            conditions=[RuleCondition(metric="engagement_level", operator=Comparison.LT, threshold=0.4)],
            actions=[
                ContentModification(target="event_variety", modification=Modification.INCREASE, value=0.5),
                ChallengeTypeChange(target="challenge_diversity", modification=Modification.INCREASE, value=0.3),
            ],
            cooldown=240.0,
        ),
    ]


class RuleRepository:
    """Adjustment rules plus per (rule, player) cooldown stamps."""

    def __init__(self, rules: Iterable[AdjustmentRule] = ()) -> None:
        self._rules: dict[str, AdjustmentRule] = {}
        self._last_triggered: dict[tuple[str, str], float] = {}
        for rule in rules:
            self.add(rule)

    def add(self, rule: AdjustmentRule) -> None:
        self._rules[rule.id] = rule

    def remove(self, rule_id: str) -> bool:
        if self._rules.pop(rule_id, None) is None:
            return False
        for key in [key for key in self._last_triggered if key[0] == rule_id]:
            del self._last_triggered[key]
        return True

    def get(self, rule_id: str) -> AdjustmentRule | None:
        return self._rules.get(rule_id)

    def all(self) -> list[AdjustmentRule]:
        return list(self._rules.values())

    def on_cooldown(self, rule: AdjustmentRule, player_id: str, now: float) -> bool:
        last = self._last_triggered.get((rule.id, player_id))
        return last is not None and now - last < rule.cooldown

    def stamp(self, rule: AdjustmentRule, player_id: str, now: float) -> None:
        self._last_triggered[(rule.id, player_id)] = now
        rule.last_triggered = now

    def forget_player(self, player_id: str) -> None:
        for key in [key for key in self._last_triggered if key[1] == player_id]:
            del self._last_triggered[key]


class MetricsRepository:
    """Latest metrics snapshot per player."""

    def __init__(self) -> None:
        self._metrics: dict[str, RealTimeMetrics] = {}

    def get(self, player_id: str) -> RealTimeMetrics | None:
        return self._metrics.get(player_id)

    def put(self, metrics: RealTimeMetrics) -> None:
        self._metrics[metrics.player_id] = metrics

    def remove(self, player_id: str) -> None:
        self._metrics.pop(player_id, None)

    def player_ids(self) -> list[str]:
        return list(self._metrics)


class TuningRepository:
    """Per-player parameter bundles and the named tuning values of each kind."""

    def __init__(self) -> None:
        self._parameters: dict[str, DifficultyParameters] = {}
        self._tuning: dict[str, dict[str, dict[str, float]]] = {}

    def parameters(self, player_id: str) -> DifficultyParameters | None:
        return self._parameters.get(player_id)

    def set_parameters(self, player_id: str, parameters: DifficultyParameters) -> None:
        self._parameters[player_id] = parameters

    def clear_parameters(self, player_id: str) -> None:
        self._parameters.pop(player_id, None)

    def tuning(self, player_id: str, kind: str) -> dict[str, float]:
        player = self._tuning.setdefault(
            player_id, {name: dict(values) for name, values in DEFAULT_TUNING.items()}
        )
        return player[kind]

    def snapshot(self, player_id: str) -> dict[str, dict[str, float]]:
        return {kind: dict(self.tuning(player_id, kind)) for kind in DEFAULT_TUNING}

    def remove(self, player_id: str) -> None:
        self._parameters.pop(player_id, None)
        self._tuning.pop(player_id, None)


class AdjusterService:
    def __init__(
        self,
        profiles: ProfileService,
        *,
        clock: Clock | None = None,
        bus: NotificationBus | None = None,
        rng: random.Random | None = None,
        rules: Iterable[AdjustmentRule] | None = None,
    ) -> None:
        self.profiles = profiles
        self.rules = RuleRepository(default_rules() if rules is None else rules)
        self.metrics = MetricsRepository()
        self.tuning = TuningRepository()
        self.enabled = True
        self._clock = clock or MonotonicClock()
        self._bus = bus or NotificationBus()
        self._rng = rng or random.Random(DIFFICULTY_RANDOM_SEED)
        self._pending: dict[str, AdjustmentPlan] = {}
        self._history: list[AdjustmentHistoryEntry] = []
        self._ids = itertools.count(1)
        self._bus.subscribe(DifficultyAdjusted, self._on_parameters_changed)
        self._bus.subscribe(ParametersCustomized, self._on_parameters_changed)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def update_metrics(self, player_id: str, **fields: Any) -> RealTimeMetrics:
        """Merge ``fields`` onto the previous snapshot and store the result.

        ``emotional_state`` may be a partial mapping; it is merged too. The
        stored timestamp never moves backwards.
        """
        now = self._clock.now()
        previous = self.metrics.get(player_id) or RealTimeMetrics(player_id=player_id, timestamp=now)

        merged = previous.model_dump()
        emotional = fields.pop("emotional_state", None)
        if emotional is not None:
            if hasattr(emotional, "model_dump"):
                emotional = emotional.model_dump()
            unknown_emotions = sorted(set(emotional) - set(EmotionalState.model_fields))
            if unknown_emotions:
                logger.debug("[Adjuster] Ignoring unknown emotional fields for %s: %s", player_id, unknown_emotions)
            merged["emotional_state"].update(emotional)
        unknown = sorted(set(fields) - set(RealTimeMetrics.model_fields))
        if unknown:
            logger.debug("[Adjuster] Ignoring unknown metric fields for %s: %s", player_id, unknown)
        merged.update(fields)
        merged["player_id"] = player_id
        merged["timestamp"] = max(previous.timestamp, float(fields.get("timestamp", now)))

        metrics = RealTimeMetrics.model_validate(merged)
        self.metrics.put(metrics)
        self._fill_responses(player_id, metrics)
        return metrics

    def get_metrics(self, player_id: str) -> RealTimeMetrics | None:
        return self.metrics.get(player_id)

    def extract_metric(self, player_id: str, metric: str) -> float:
        metrics = self.metrics.get(player_id) or RealTimeMetrics(player_id=player_id)
        if metric == "performance_score":
            return performance_score(metrics)
        if metric == "frustration_level":
            return metrics.emotional_state.frustration
        if metric == "engagement_level":
            return metrics.emotional_state.engagement
        if metric == "error_rate":
            return error_rate(metrics)
        if metric == "decision_speed":
            return decision_speed(metrics)
        if metric == "help_frequency":
            return help_frequency(metrics)
        if metric == "mastery_level":
            profile = self.profiles.get_profile(player_id)
            if profile is None:
                return UNKNOWN_METRIC_VALUE
            return profile.skill_assessment.overall_skill / 10.0
        return UNKNOWN_METRIC_VALUE

    # ------------------------------------------------------------------
    # Rules and plans
    # ------------------------------------------------------------------

    def add_rule(self, rule: AdjustmentRule) -> None:
        self.rules.add(rule)
        logger.info("[Adjuster] Rule %s registered (priority %s)", rule.id, rule.priority)

    def remove_rule(self, rule_id: str) -> bool:
        return self.rules.remove(rule_id)

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> bool:
        rule = self.rules.get(rule_id)
        if rule is None:
            return False
        rule.enabled = enabled
        return True

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info("[Adjuster] Real-time adjustment %s", "enabled" if enabled else "disabled")

    def condition_ratio(self, player_id: str, conditions: list[RuleCondition]) -> float:
        total = sum(condition.weight for condition in conditions)
        if total <= 0:
            return 0.0
        satisfied = sum(
            condition.weight
            for condition in conditions
            if compare(self.extract_metric(player_id, condition.metric), condition.operator, condition.threshold)
        )
        return satisfied / total

    def evaluate_rules(self, player_id: str) -> list[AdjustmentRule]:
        """Triggered rules for a player, highest priority first.

        Each triggered rule starts its cooldown for this player.
        """
        if not self._is_known(player_id):
            return []

        now = self._clock.now()
        triggered = [
            rule
            for rule in self.rules.all()
            if rule.enabled
            and not self.rules.on_cooldown(rule, player_id, now)
            and self.condition_ratio(player_id, rule.conditions) >= TRIGGER_RATIO
        ]
        triggered.sort(key=lambda rule: rule.priority, reverse=True)
        for rule in triggered:
            self.rules.stamp(rule, player_id, now)
        if triggered:
            logger.debug("[Adjuster] %s triggered %s", player_id, [rule.id for rule in triggered])
        return triggered

    def build_plan(
        self,
        player_id: str,
        triggered_rules: list[AdjustmentRule],
        context: GameStateSnapshot | None = None,
    ) -> AdjustmentPlan | None:
        if not triggered_rules:
            return None

        adjustments: list[PlannedAdjustment] = []
        monitoring: list[str] = []
        for rule in triggered_rules:
            for condition in rule.conditions:
                if condition.metric not in monitoring:
                    monitoring.append(condition.metric)
            for action in rule.actions:
                index = len(adjustments)
                adjustments.append(
                    PlannedAdjustment(
                        sequence=index,
                        action=action,
                        delay=index * STAGGER_SEC if action.gradual else 0.0,
                        rule_id=rule.id,
                        preconditions=list(action.preconditions),
                        success_criteria=[
                            f"{condition.metric} no longer {condition.operator.value} {condition.threshold}"
                            for condition in rule.conditions
                        ],
                        failure_criteria=["frustration_level > 0.9"],
                    )
                )

        names = ", ".join(rule.name for rule in triggered_rules)
        if context is not None:
            names = f"{names} (round {context.round})"
        return AdjustmentPlan(
            player_id=player_id,
            created_at=self._clock.now(),
            priority=priority_band(max(rule.priority for rule in triggered_rules)),
            adjustments=adjustments,
            reasoning=f"Triggered rules: {names}",
            expected_outcome="Monitored metrics return inside their target ranges",
            rollback="Restore the player's previous parameter and tuning values",
            monitoring_metrics=monitoring,
        )

    def execute_plan(
        self,
        plan: AdjustmentPlan,
        context: GameStateSnapshot | None = None,
    ) -> PlanExecuted | None:
        player_id = plan.player_id
        if not self._is_known(player_id):
            self._warn(player_id, f"Cannot execute plan for unknown player {player_id}")
            return None

        now = self._clock.now()
        executed = skipped = failed = 0
        for index, planned in enumerate(plan.adjustments):
            action = planned.action
            if not self._preconditions_hold(player_id, planned.preconditions):
                skipped += 1
                continue

            before = self.metrics.get(player_id) or RealTimeMetrics(player_id=player_id, timestamp=now)
            try:
                self._apply(player_id, action, effective_at=now + planned.delay)
            except Exception as exc:
                logger.exception("[Adjuster] Action %s failed for %s", action.kind, player_id)
                self._bus.publish(
                    OperationFailed(
                        timestamp=now,
                        operation="adjustment_action",
                        error=str(exc),
                        player_id=player_id,
                        details={"kind": action.kind, "target": action.target},
                    )
                )
                failed += 1
                self._record(player_id, planned.rule_id, before, action, success=False)
                if plan.priority == PriorityBand.CRITICAL:
                    skipped += len(plan.adjustments) - index - 1
                    break
                continue
            executed += 1
            self._record(player_id, planned.rule_id, before, action, success=True)

        result = PlanExecuted(
            timestamp=now,
            player_id=player_id,
            priority=plan.priority.value,
            executed=executed,
            skipped=skipped,
            failed=failed,
            reasoning=plan.reasoning,
        )
        logger.info(
            "[Adjuster] Plan for %s (%s): %s executed, %s skipped, %s failed",
            player_id,
            plan.priority.value,
            executed,
            skipped,
            failed,
        )
        self._bus.publish(result)
        return result

    def execute_immediate(
        self,
        player_id: str,
        kind: ImmediateKind,
        context: GameStateSnapshot | None = None,
    ) -> PlanExecuted | None:
        """Run a built-in intervention now, ignoring rule cooldowns."""
        if not self._is_known(player_id):
            self._warn(player_id, f"Cannot run {kind.value} for unknown player {player_id}")
            return None

        actions = self._immediate_actions(player_id, kind)
        plan = AdjustmentPlan(
            player_id=player_id,
            created_at=self._clock.now(),
            priority=PriorityBand.CRITICAL if kind == ImmediateKind.EMERGENCY else PriorityBand.HIGH,
            adjustments=[
                PlannedAdjustment(sequence=index, action=action) for index, action in enumerate(actions)
            ],
            reasoning=f"Immediate {kind.value} intervention",
            expected_outcome="Player state stabilizes within the next update",
            rollback="Restore the player's previous parameter and tuning values",
            monitoring_metrics=["frustration_level", "engagement_level", "performance_score"],
        )
        return self.execute_plan(plan, context)

    def tick(self, game_state: GameStateSnapshot | None = None) -> int:
        """Evaluate every tracked player once. Returns the number of plans built."""
        if not self.enabled:
            return 0

        plans = 0
        for player_id in self.metrics.player_ids():
            if not self._is_known(player_id):
                continue
            try:
                plan = self.build_plan(player_id, self.evaluate_rules(player_id), game_state)
                if plan is None:
                    continue
                plans += 1
                if plan.priority.rank >= PriorityBand.HIGH.rank:
                    self.execute_plan(plan, game_state)
                else:
                    self._pending[player_id] = plan
            except Exception:
                logger.exception("[Adjuster] Tick failed for %s", player_id)
        return plans

    def execute_pending(self, context: GameStateSnapshot | None = None) -> int:
        pending, self._pending = self._pending, {}
        for plan in pending.values():
            self.execute_plan(plan, context)
        return len(pending)

    @property
    def pending_plans(self) -> dict[str, AdjustmentPlan]:
        return dict(self._pending)

    # ------------------------------------------------------------------
    # Parameters, history and admin
    # ------------------------------------------------------------------

    def get_parameters(self, player_id: str) -> DifficultyParameters:
        parameters = self.tuning.parameters(player_id)
        if parameters is None:
            parameters = self.profiles.current_parameters(player_id)
            self.tuning.set_parameters(player_id, parameters)
        return parameters

    def reset_parameters(self, player_id: str) -> None:
        self.tuning.clear_parameters(player_id)

    def get_tuning(self, player_id: str) -> dict[str, dict[str, float]]:
        return self.tuning.snapshot(player_id)

    def get_history(self, player_id: str | None = None, limit: int = 50) -> list[AdjustmentHistoryEntry]:
        entries = self._history if player_id is None else [
            entry for entry in self._history if entry.player_id == player_id
        ]
        return entries[-limit:]

    def success_rate(self, window: int = 20, default: float = 0.8) -> float:
        recent = self._history[-window:]
        if not recent:
            return default
        return sum(1 for entry in recent if entry.success) / len(recent)

    def discard_player(self, player_id: str) -> None:
        self.metrics.remove(player_id)
        self.tuning.remove(player_id)
        self.rules.forget_player(player_id)
        self._pending.pop(player_id, None)

    def stats(self) -> dict[str, Any]:
        rules = self.rules.all()
        return {
            "enabled": self.enabled,
            "rules": len(rules),
            "enabled_rules": sum(1 for rule in rules if rule.enabled),
            "tracked_players": len(self.metrics.player_ids()),
            "pending_plans": len(self._pending),
            "history_size": len(self._history),
            "success_rate": self.success_rate(),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_known(self, player_id: str) -> bool:
        return self.profiles.get_profile(player_id) is not None

    def _warn(self, player_id: str, message: str) -> None:
        logger.warning("[Adjuster] %s", message)
        self._bus.publish(AdjusterWarning(timestamp=self._clock.now(), player_id=player_id, message=message))

    def _preconditions_hold(self, player_id: str, preconditions: list[Precondition]) -> bool:
        return all(
            compare(self.extract_metric(player_id, check.metric), check.operator, check.threshold)
            for check in preconditions
        )

    def _immediate_actions(self, player_id: str, kind: ImmediateKind) -> list[AdjustmentAction]:
        if kind == ImmediateKind.EMERGENCY:
            return [
                ParameterAdjustment(target="ai_skill_level", modification=Modification.DECREASE, value=2.0),
                AssistanceLevel(target="hint_frequency", modification=Modification.INCREASE, value=0.5),
                FeedbackFrequency(target="encouragement", modification=Modification.INCREASE, value=0.3),
            ]
        if kind == ImmediateKind.CORRECTION:
            actions: list[AdjustmentAction] = []
            if self.extract_metric(player_id, "frustration_level") > 0.7:
                actions.append(
                    ParameterAdjustment(target="ai_skill_level", modification=Modification.DECREASE, value=1.0)
                )
            if self.extract_metric(player_id, "engagement_level") < 0.4:
                actions.append(
                    ContentModification(target="event_variety", modification=Modification.INCREASE, value=0.3)
                )
            if not actions:
                actions.append(
                    AssistanceLevel(target="hint_frequency", modification=Modification.INCREASE, value=0.2)
                )
            return actions
        if kind == ImmediateKind.OPPORTUNITY:
            return [
                ParameterAdjustment(target="ai_skill_level", modification=Modification.INCREASE, value=0.5),
                ChallengeTypeChange(target="challenge_diversity", modification=Modification.INCREASE, value=0.2),
            ]
        assert_never(kind)

    def _modify(self, current: float, modification: Modification, value: float) -> float:
        if modification == Modification.INCREASE:
            return current + value
        if modification == Modification.DECREASE:
            return current - value
        if modification == Modification.MULTIPLY:
            return current * value
        if modification == Modification.SET:
            return value
        if modification == Modification.ADAPTIVE_SCALE:
            return current * (1.0 + value * (self._rng.random() - 0.5))
        assert_never(modification)

    def _apply(self, player_id: str, action: AdjustmentAction, *, effective_at: float) -> ActionApplied:
        if isinstance(action, ParameterAdjustment):
            field, low, high = PARAMETER_FIELDS[action.target]
            parameters = self.get_parameters(player_id)
            old = getattr(parameters, field)
            new = clamp(self._modify(old, action.modification, action.value), low, high)
            self.tuning.set_parameters(player_id, parameters.model_copy(update={field: new}))
            message_type: type[ActionApplied] = ParametersAdjusted
        elif isinstance(action, ContentModification):
            old, new = self._apply_tuning(player_id, "content", action)
            message_type = ContentModified
        elif isinstance(action, AssistanceLevel):
            old, new = self._apply_tuning(player_id, "assistance", action)
            message_type = AssistanceAdjusted
        elif isinstance(action, FeedbackFrequency):
            old, new = self._apply_tuning(player_id, "feedback", action)
            message_type = FeedbackAdjusted
        elif isinstance(action, ChallengeTypeChange):
            old, new = self._apply_tuning(player_id, "challenge", action)
            message_type = ChallengeTypeAdjusted
        else:
            assert_never(action)

        message = message_type(
            timestamp=self._clock.now(),
            player_id=player_id,
            target=action.target,
            old_value=old,
            new_value=new,
            effective_at=effective_at,
        )
        self._bus.publish(message)
        return message

    def _apply_tuning(self, player_id: str, kind: str, action: AdjustmentAction) -> tuple[float, float]:
        values = self.tuning.tuning(player_id, kind)
        old = values.get(action.target, DEFAULT_TUNING_VALUE)
        new = clamp01(self._modify(old, action.modification, action.value))
        values[action.target] = new
        return old, new

    def _record(
        self,
        player_id: str,
        rule_id: str | None,
        before: RealTimeMetrics,
        action: AdjustmentAction,
        *,
        success: bool,
    ) -> None:
        self._history.append(
            AdjustmentHistoryEntry(
                id=f"{player_id}-{next(self._ids)}",
                player_id=player_id,
                timestamp=self._clock.now(),
                rule_id=rule_id,
                before=before,
                actions=[action],
                success=success,
            )
        )
        if len(self._history) > HISTORY_CAP:
            del self._history[: len(self._history) - HISTORY_CAP]

    def _fill_responses(self, player_id: str, after: RealTimeMetrics) -> None:
        for entry in self._history:
            if entry.player_id != player_id or entry.after is not None or after.timestamp <= entry.timestamp:
                continue
            before = entry.before
            performance_change = performance_score(after) - performance_score(before)
            engagement_change = after.emotional_state.engagement - before.emotional_state.engagement
            satisfaction_change = after.emotional_state.satisfaction - before.emotional_state.satisfaction
            frustration_change = after.emotional_state.frustration - before.emotional_state.frustration
            net = performance_change + engagement_change + satisfaction_change - frustration_change
            if net > 0.05:
                reaction = "positive"
            elif net < -0.05:
                reaction = "negative"
            else:
                reaction = "neutral"
            entry.after = after
            entry.response = PlayerResponse(
                reaction=reaction,
                performance_change=performance_change,
                engagement_change=engagement_change,
                satisfaction_change=satisfaction_change,
                adaptation_time=after.timestamp - entry.timestamp,
            )

    def _on_parameters_changed(self, message: DifficultyAdjusted | ParametersCustomized) -> None:
        self.reset_parameters(message.player_id)
