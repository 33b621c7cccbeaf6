import logging
import random

import pytest

from difficulty.actions import (
    AdjustmentPlan,
    AdjustmentRule,
    AssistanceLevel,
    ChallengeTypeChange,
    Comparison,
    ContentModification,
    ImmediateKind,
    Modification,
    ParameterAdjustment,
    PlannedAdjustment,
    Precondition,
    RuleCondition,
)
from difficulty.models import AdjustmentType, DifficultyAdjustment, PlayerSeed, PriorityBand
from difficulty.services.adjuster_service import AdjusterService
from difficulty.services.clock import ManualClock
from difficulty.services.notifications import (
    AdjusterWarning,
    AssistanceAdjusted,
    NotificationBus,
    OperationFailed,
    ParametersAdjusted,
    ParametersCustomized,
    PlanExecuted,
)
from difficulty.services.profile_service import ProfileService


def _setup(
    rules: list[AdjustmentRule] | None = None,
    players: tuple[str, ...] = ("p1",),
) -> tuple[AdjusterService, ProfileService, ManualClock, NotificationBus]:
    clock = ManualClock()
    bus = NotificationBus()
    profiles = ProfileService(clock=clock, bus=bus, adaptive_mode=False)
    for player_id in players:
        profiles.initialize_profile(PlayerSeed(id=player_id))
    adjuster = AdjusterService(profiles, clock=clock, bus=bus, rng=random.Random(7), rules=rules)
    return adjuster, profiles, clock, bus


def _weighted_rule(rule_id: str, satisfied_weight: float) -> AdjustmentRule:
    return AdjustmentRule(
        id=rule_id,
        name=rule_id,
        priority=5,
        conditions=[
            RuleCondition(metric="frustration_level", operator=Comparison.GT, threshold=0.7, weight=satisfied_weight),
            RuleCondition(
                metric="engagement_level", operator=Comparison.LT, threshold=0.4, weight=1.0 - satisfied_weight
            ),
        ],
        actions=[AssistanceLevel(target="hint_frequency", modification=Modification.INCREASE, value=0.1)],
    )


def test_weight_ratio_below_threshold_does_not_trigger() -> None:
    adjuster, _, _, _ = _setup(rules=[_weighted_rule("sixty", 0.6), _weighted_rule("eighty", 0.8)])
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.9, "engagement": 0.8})

    assert adjuster.condition_ratio("p1", adjuster.rules.get("sixty").conditions) == pytest.approx(0.6)
    assert [rule.id for rule in adjuster.evaluate_rules("p1")] == ["eighty"]


def test_cooldown_is_tracked_per_player() -> None:
    adjuster, _, clock, _ = _setup(players=("p1", "p2"))
    for player_id in ("p1", "p2"):
        adjuster.update_metrics(player_id, emotional_state={"frustration": 0.9})

    assert [rule.id for rule in adjuster.evaluate_rules("p1")] == ["high_frustration"]
    assert adjuster.evaluate_rules("p1") == []
    assert [rule.id for rule in adjuster.evaluate_rules("p2")] == ["high_frustration"]

    clock.advance(121.0)
    assert [rule.id for rule in adjuster.evaluate_rules("p1")] == ["high_frustration"]


def test_disabled_rule_is_ignored() -> None:
    adjuster, _, _, _ = _setup()
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.9})

    assert adjuster.set_rule_enabled("high_frustration", False)
    assert adjuster.evaluate_rules("p1") == []
    assert not adjuster.set_rule_enabled("missing", True)


def test_mastery_metric_reads_profile_skill() -> None:
    adjuster, profiles, _, _ = _setup()
    profiles.get_profile("p1").skill_assessment.overall_skill = 8.5
    assert adjuster.extract_metric("p1", "mastery_level") == pytest.approx(0.85)
    assert adjuster.extract_metric("p1", "unknown_metric") == 0.5


def test_build_plan_staggers_gradual_actions() -> None:
    rule = AdjustmentRule(
        id="stagger",
        name="stagger",
        priority=8,
        conditions=[RuleCondition(metric="frustration_level", operator=Comparison.GT, threshold=0.5)],
        actions=[
            ParameterAdjustment(target="ai_skill_level", modification=Modification.DECREASE, value=1.0, gradual=True),
            ContentModification(target="event_variety", modification=Modification.INCREASE, value=0.1),
            ParameterAdjustment(target="event_frequency", modification=Modification.DECREASE, value=0.1, gradual=True),
        ],
    )
    adjuster, _, _, _ = _setup(rules=[])

    plan = adjuster.build_plan("p1", [rule])

    assert plan.priority == PriorityBand.HIGH
    assert [item.delay for item in plan.adjustments] == [0.0, 0.0, 2.0]
    assert plan.monitoring_metrics == ["frustration_level"]
    assert adjuster.build_plan("p1", []) is None


def test_tick_runs_critical_plan_and_defers_medium_plan() -> None:
    adjuster, _, _, bus = _setup(players=("angry", "bored"))
    adjuster.update_metrics("angry", emotional_state={"frustration": 0.9})
    adjuster.update_metrics("bored", emotional_state={"engagement": 0.2})

    assert adjuster.tick() == 2

    assert adjuster.get_parameters("angry").ai_skill_level == pytest.approx(4.0)
    assert adjuster.get_tuning("angry")["assistance"]["hint_frequency"] == pytest.approx(0.6)
    assert list(adjuster.pending_plans) == ["bored"]
    assert adjuster.get_tuning("bored")["content"]["event_variety"] == pytest.approx(0.5)

    assert adjuster.execute_pending() == 1
    assert adjuster.get_tuning("bored")["content"]["event_variety"] == pytest.approx(1.0)
    assert adjuster.get_tuning("bored")["challenge"]["challenge_diversity"] == pytest.approx(0.8)
    assert [message.player_id for message in bus.of_type(PlanExecuted)] == ["angry", "bored"]


def test_gradual_action_reports_effective_time() -> None:
    adjuster, _, clock, bus = _setup()
    clock.advance(50.0)
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.9})
    adjuster.tick()

    parameter_message = bus.of_type(ParametersAdjusted)[0]
    assistance_message = bus.of_type(AssistanceAdjusted)[0]
    assert parameter_message.effective_at == pytest.approx(50.0)
    assert assistance_message.effective_at == pytest.approx(50.0)
    assert parameter_message.old_value == pytest.approx(5.0)
    assert parameter_message.new_value == pytest.approx(4.0)


def test_disabled_adjuster_skips_tick() -> None:
    adjuster, _, _, _ = _setup()
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.9})
    adjuster.set_enabled(False)
    assert adjuster.tick() == 0


def test_emergency_runs_fixed_actions_ignoring_cooldown() -> None:
    adjuster, _, _, bus = _setup()
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.95})

    first = adjuster.execute_immediate("p1", ImmediateKind.EMERGENCY)
    second = adjuster.execute_immediate("p1", ImmediateKind.EMERGENCY)

    assert first.priority == PriorityBand.CRITICAL.value
    assert first.executed == 3
    assert second.executed == 3
    assert adjuster.get_parameters("p1").ai_skill_level == pytest.approx(1.0)
    tuning = adjuster.get_tuning("p1")
    assert tuning["assistance"]["hint_frequency"] == pytest.approx(1.0)
    assert tuning["feedback"]["encouragement"] == pytest.approx(1.0)
    assert len(bus.of_type(PlanExecuted)) == 2


def test_correction_targets_the_failing_metric() -> None:
    adjuster, _, _, _ = _setup()
    adjuster.update_metrics("p1", emotional_state={"engagement": 0.2})

    result = adjuster.execute_immediate("p1", ImmediateKind.CORRECTION)

    assert result.executed == 1
    assert adjuster.get_tuning("p1")["content"]["event_variety"] == pytest.approx(0.8)
    assert adjuster.get_parameters("p1").ai_skill_level == pytest.approx(5.0)


def test_unknown_player_is_warned_not_raised() -> None:
    adjuster, _, _, bus = _setup()

    assert adjuster.execute_immediate("ghost", ImmediateKind.EMERGENCY) is None
    assert adjuster.evaluate_rules("ghost") == []
    warnings = bus.of_type(AdjusterWarning)
    assert len(warnings) == 1
    assert warnings[0].player_id == "ghost"


def test_unmet_precondition_skips_action() -> None:
    adjuster, _, _, _ = _setup()
    plan = AdjustmentPlan(
        player_id="p1",
        created_at=0.0,
        priority=PriorityBand.MEDIUM,
        adjustments=[
            PlannedAdjustment(
                sequence=0,
                action=ParameterAdjustment(target="ai_skill_level", modification=Modification.SET, value=9.0),
                preconditions=[Precondition(metric="frustration_level", operator=Comparison.GT, threshold=0.95)],
            ),
            PlannedAdjustment(
                sequence=1,
                action=ParameterAdjustment(target="time_pressure", modification=Modification.SET, value=1000.0),
            ),
        ],
    )

    result = adjuster.execute_plan(plan)

    assert (result.executed, result.skipped, result.failed) == (1, 1, 0)
    parameters = adjuster.get_parameters("p1")
    assert parameters.ai_skill_level == pytest.approx(5.0)
    assert parameters.turn_time_limit == pytest.approx(600.0)


def _three_action_plan(priority: PriorityBand) -> AdjustmentPlan:
    return AdjustmentPlan(
        player_id="p1",
        created_at=0.0,
        priority=priority,
        adjustments=[
            PlannedAdjustment(
                sequence=index,
                action=AssistanceLevel(target="hint_frequency", modification=Modification.INCREASE, value=0.1),
            )
            for index in range(3)
        ],
    )


def test_failed_action_halts_only_critical_plans(monkeypatch: pytest.MonkeyPatch) -> None:
    adjuster, _, _, bus = _setup()

    def explode(*args: object, **kwargs: object) -> None:
        raise RuntimeError("action failed")

    monkeypatch.setattr(adjuster, "_apply", explode)

    critical = adjuster.execute_plan(_three_action_plan(PriorityBand.CRITICAL))
    medium = adjuster.execute_plan(_three_action_plan(PriorityBand.MEDIUM))

    assert (critical.executed, critical.skipped, critical.failed) == (0, 2, 1)
    assert (medium.executed, medium.skipped, medium.failed) == (0, 0, 3)
    assert len(bus.of_type(OperationFailed)) == 4
    assert adjuster.success_rate() == 0.0


def test_adaptive_scale_stays_within_band() -> None:
    adjuster, _, _, _ = _setup()
    plan = AdjustmentPlan(
        player_id="p1",
        created_at=0.0,
        priority=PriorityBand.HIGH,
        adjustments=[
            PlannedAdjustment(
                sequence=0,
                action=ParameterAdjustment(
                    target="ai_aggressiveness", modification=Modification.ADAPTIVE_SCALE, value=0.4
                ),
            )
        ],
    )
    adjuster.execute_plan(plan)
    assert 4.0 <= adjuster.get_parameters("p1").ai_aggressiveness <= 6.0


def test_level_change_resets_parameter_bundle() -> None:
    adjuster, profiles, _, _ = _setup()
    adjuster.update_metrics("p1")
    adjuster.execute_immediate("p1", ImmediateKind.EMERGENCY)
    assert adjuster.get_parameters("p1").ai_skill_level == pytest.approx(3.0)

    profiles.apply_adjustment("p1", DifficultyAdjustment(type=AdjustmentType.INCREASE))

    assert adjuster.get_parameters("p1").ai_skill_level == pytest.approx(7.0)


def test_customized_parameters_replace_cached_bundle() -> None:
    adjuster, profiles, _, bus = _setup()
    assert adjuster.get_parameters("p1").ai_skill_level == pytest.approx(5.0)

    profiles.apply_adjustment(
        "p1", DifficultyAdjustment(type=AdjustmentType.CUSTOMIZE, target="easier", magnitude=0.5)
    )

    assert bus.of_type(ParametersCustomized)[0].level == "normal"
    assert adjuster.get_parameters("p1").ai_skill_level == pytest.approx(4.5)


def test_rule_parses_challenge_type_action_by_kind() -> None:
    rule = AdjustmentRule.model_validate(
        {
            "id": "variety",
            "name": "Variety",
            "priority": 4,
            "conditions": [{"metric": "engagement_level", "operator": "<", "threshold": 0.4}],
            "actions": [
                {"kind": "challenge_type", "target": "challenge_diversity", "modification": "increase", "value": 0.2}
            ],
        }
    )

    assert isinstance(rule.actions[0], ChallengeTypeChange)
    assert rule.actions[0].value == pytest.approx(0.2)


def test_unknown_metric_fields_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    adjuster, _, _, _ = _setup()
    caplog.set_level(logging.DEBUG, logger="difficulty.services.adjuster_service")

    metrics = adjuster.update_metrics("p1", efficency=0.9, emotional_state={"boredom": 0.5})

    assert metrics.efficiency == pytest.approx(0.5)
    assert "efficency" in caplog.text
    assert "boredom" in caplog.text


def test_metrics_merge_partial_emotions_and_keep_time_monotonic() -> None:
    adjuster, _, clock, _ = _setup()
    clock.advance(100.0)
    adjuster.update_metrics("p1", efficiency=0.9, emotional_state={"frustration": 0.6})
    metrics = adjuster.update_metrics("p1", timestamp=10.0, emotional_state={"stress": 0.8})

    assert metrics.timestamp == pytest.approx(100.0)
    assert metrics.efficiency == pytest.approx(0.9)
    assert metrics.emotional_state.frustration == pytest.approx(0.6)
    assert metrics.emotional_state.stress == pytest.approx(0.8)


def test_later_metrics_fill_player_response() -> None:
    adjuster, _, clock, _ = _setup()
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.9, "engagement": 0.5})
    adjuster.execute_immediate("p1", ImmediateKind.EMERGENCY)

    clock.advance(30.0)
    adjuster.update_metrics("p1", emotional_state={"frustration": 0.3, "engagement": 0.8})

    entry = adjuster.get_history("p1")[0]
    assert entry.response is not None
    assert entry.response.reaction == "positive"
    assert entry.response.adaptation_time == pytest.approx(30.0)


def test_discard_player_clears_state() -> None:
    adjuster, _, _, _ = _setup()
    adjuster.update_metrics("p1", emotional_state={"engagement": 0.2})
    adjuster.tick()
    assert adjuster.pending_plans

    adjuster.discard_player("p1")

    assert adjuster.get_metrics("p1") is None
    assert adjuster.pending_plans == {}
