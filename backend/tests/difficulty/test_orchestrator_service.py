import random

import pytest
from pydantic import ValidationError

from difficulty.challenge_models import GameStateChange, PlayerAction
from difficulty.curve_models import OptimizationPhase
from difficulty.errors import ProfileAlreadyExists
from difficulty.models import (
    DifficultyEventType,
    DifficultySystemConfig,
    GameOutcome,
    GameStateSnapshot,
    PerformanceUpdate,
    PlayerSeed,
    PriorityBand,
    SystemStatus,
)
from difficulty.services.clock import ManualClock
from difficulty.services.notifications import (
    DifficultyAdjusted,
    NotificationBus,
    OperationFailed,
    PlateauDetected,
    PlayerAdded,
    PlayerRemoved,
    SystemOverload,
    SystemStatusChanged,
)
from difficulty.services.orchestrator_service import DifficultyOrchestrator, system_health


def _orchestrator(
    config: DifficultySystemConfig | None = None,
) -> tuple[DifficultyOrchestrator, ManualClock, NotificationBus]:
    clock = ManualClock()
    bus = NotificationBus()
    orchestrator = DifficultyOrchestrator(
        config,
        clock=clock,
        bus=bus,
        perf_counter=lambda: 0.0,
        rng=random.Random(7),
    )
    return orchestrator, clock, bus


def _game(*player_ids: str) -> GameStateSnapshot:
    return GameStateSnapshot(players=[PlayerSeed(id=player_id) for player_id in player_ids])


def _running(*player_ids: str) -> tuple[DifficultyOrchestrator, ManualClock, NotificationBus]:
    orchestrator, clock, bus = _orchestrator()
    orchestrator.initialize(_game(*player_ids))
    return orchestrator, clock, bus


def test_update_before_initialize_is_rejected() -> None:
    orchestrator, _, _ = _orchestrator()

    response = orchestrator.process_game_update(_game())

    assert not response.success
    assert response.warnings == ["System not running"]


def test_initialize_registers_players_and_tasks() -> None:
    orchestrator, _, bus = _running("p1", "p2")

    assert orchestrator.running
    assert orchestrator.get_system_state().status == SystemStatus.RUNNING
    assert orchestrator.get_system_state().active_players == 2
    assert orchestrator.scheduler.task_names == ["adjustment", "assessment", "maintenance", "optimization"]
    assert [message.player_id for message in bus.of_type(PlayerAdded)] == ["p1", "p2"]
    assert [(item.from_status, item.to_status) for item in bus.of_type(SystemStatusChanged)] == [
        ("initializing", "running")
    ]
    assert orchestrator.curve.get_progression("p1") is not None


def test_failed_initialize_leaves_error_status() -> None:
    orchestrator, _, _ = _orchestrator()

    with pytest.raises(ProfileAlreadyExists):
        orchestrator.initialize(_game("p1", "p1"))

    assert orchestrator.get_system_state().status == SystemStatus.ERROR
    assert not orchestrator.running


def test_duplicate_player_is_rejected() -> None:
    orchestrator, _, _ = _running("p1")

    with pytest.raises(ProfileAlreadyExists):
        orchestrator.add_player(PlayerSeed(id="p1"))


def test_rising_frustration_triggers_one_emergency() -> None:
    orchestrator, _, _ = _running("p1")

    triggered = 0
    for frustration in (0.2, 0.3, 0.75):
        assert orchestrator.update_player_performance("p1", PerformanceUpdate(frustration=frustration))
        response = orchestrator.process_game_update(_game("p1"))
        assert response.success
        triggered += response.interventions_triggered

    assert triggered == 1
    assert response.warnings == ["Emergency intervention triggered for player p1"]
    assert response.players_affected == ["p1"]
    history = orchestrator.get_player_status("p1").adaptation_history
    assert [record.reasoning for record in history] == ["frustration_spike", "emergency"]


def test_frustration_spike_is_queued_as_high_priority() -> None:
    orchestrator, _, _ = _running("p1")

    orchestrator.update_player_performance("p1", PerformanceUpdate(frustration=0.9, engagement=0.2))

    pending = {event.type: event for event in orchestrator.pending_events()}
    assert pending[DifficultyEventType.PERFORMANCE_ALERT].priority == PriorityBand.HIGH
    assert pending[DifficultyEventType.FRUSTRATION_SPIKE].data == {"from": 0.3, "to": 0.9}
    assert pending[DifficultyEventType.PLAYER_JOINED].priority == PriorityBand.LOW


def test_unknown_player_update_returns_false() -> None:
    orchestrator, _, _ = _running("p1")
    assert not orchestrator.update_player_performance("ghost", PerformanceUpdate(score=10.0))


def test_outcome_reaches_profile_history() -> None:
    orchestrator, _, _ = _running("p1")

    orchestrator.update_player_performance(
        "p1", PerformanceUpdate(outcome=GameOutcome.VICTORY, score=1200.0, success=True)
    )

    profile = orchestrator.profiles.get_profile("p1")
    assert len(profile.performance_history) == 1
    assert orchestrator.adjuster.get_metrics("p1").consecutive_successes == 1


def test_remove_player_cleans_every_subsystem() -> None:
    orchestrator, _, bus = _running("p1", "p2")

    assert orchestrator.remove_player("p1")
    assert not orchestrator.remove_player("p1")

    assert orchestrator.get_player_status("p1") is None
    assert orchestrator.profiles.get_profile("p1") is None
    assert orchestrator.curve.get_progression("p1") is None
    assert [message.player_id for message in bus.of_type(PlayerRemoved)] == ["p1"]
    metrics = orchestrator.get_system_metrics()
    assert metrics.total_players == 1
    assert metrics.player_retention == pytest.approx(0.5)
    assert metrics.difficulty_distribution == {"normal": 1}


def test_low_health_enters_maintenance() -> None:
    orchestrator, clock, bus = _running("p1")
    orchestrator.update_player_performance("p1", PerformanceUpdate(frustration=1.0))
    clock.advance(60.0)

    orchestrator.process_game_update(_game("p1"))

    assert orchestrator.get_system_state().status == SystemStatus.MAINTENANCE
    assert orchestrator.get_system_state().system_health < 0.5
    assert len(bus.of_type(SystemOverload)) == 1
    assert ("running", "maintenance") in [
        (item.from_status, item.to_status) for item in bus.of_type(SystemStatusChanged)
    ]


def test_optimization_tick_extends_progressions() -> None:
    orchestrator, clock, _ = _running("p1")
    clock.advance(300.0)

    orchestrator.process_game_update(_game("p1"))

    assert len(orchestrator.curve.get_progression("p1").path) == 2
    assert orchestrator.get_system_state().status == SystemStatus.RUNNING


def test_optimization_tick_reports_curve_recommendations() -> None:
    orchestrator, clock, _ = _running("p1")
    clock.advance(300.0)

    response = orchestrator.process_game_update(_game("p1"))

    assert "p1: Add rewards and varied content" in response.recommendations
    assert orchestrator.curve.get_analytics("p1") is not None


def test_gradual_increase_phase_moves_player_up_a_level() -> None:
    orchestrator, clock, bus = _running("p1")
    profile = orchestrator.profiles.get_profile("p1")

    for tick in range(1, 11):
        profile.skill_assessment.adaptability += 0.1
        clock.advance(300.0)
        orchestrator.process_game_update(_game("p1"))
        if tick == 7:
            assert profile.current_difficulty == "normal"
            phase = orchestrator.curve.get_progression("p1").optimization.phase
            assert phase == OptimizationPhase.GRADUAL_INCREASE

    moves = bus.of_type(DifficultyAdjusted)
    assert [(move.from_level, move.to_level) for move in moves] == [("normal", "hard")]
    assert moves[0].reasoning.startswith("Curve gradual_increase")
    assert profile.current_difficulty == "hard"
    assert orchestrator.get_player_status("p1").current_difficulty == "hard"
    assert orchestrator.profiles.current_parameters("p1").ai_skill_level == pytest.approx(7.0)


def test_plateau_message_becomes_opportunity() -> None:
    orchestrator, _, bus = _running("p1")

    bus.publish(PlateauDetected(timestamp=0.0, player_id="p1", source="profile"))
    assert DifficultyEventType.PLATEAU_DETECTED in [event.type for event in orchestrator.pending_events()]

    orchestrator.process_game_update(_game("p1"))

    history = orchestrator.get_player_status("p1").adaptation_history
    assert [(record.type, record.reasoning) for record in history] == [("intervention", "plateau_detected")]


def test_difficulty_change_updates_status() -> None:
    orchestrator, _, bus = _running("p1")

    bus.publish(
        DifficultyAdjusted(
            timestamp=0.0,
            player_id="p1",
            from_level="normal",
            to_level="hard",
            adjustment_type="increase",
            transition_type="gradual",
        )
    )

    status = orchestrator.get_player_status("p1")
    assert status.current_difficulty == "hard"
    assert status.adaptation_history[-1].type == "difficulty_change"
    assert status.adaptation_history[-1].to_value > status.adaptation_history[-1].from_value


def test_challenge_completion_feeds_curve() -> None:
    orchestrator, _, _ = _running("p1")

    instance = orchestrator.start_challenge("p1", "economic_crisis_management")
    orchestrator.record_challenge_action(
        instance.instance_id, PlayerAction(type="sell", timestamp=1.0, parameters={"success": True})
    )
    orchestrator.record_challenge_state(
        instance.instance_id, GameStateChange(property="cash_remaining", new_value=900, timestamp=1.0)
    )
    assessment = orchestrator.complete_challenge(instance.instance_id)

    progression = orchestrator.curve.get_progression("p1")
    assert len(progression.path) == 2
    assert progression.latest().performance_score == pytest.approx(assessment.overall_score)


def test_disabled_challenges_do_not_start() -> None:
    orchestrator, _, _ = _orchestrator(DifficultySystemConfig(enable_challenge_assessment=False))
    orchestrator.initialize(_game("p1"))

    assert orchestrator.start_challenge("p1", "monopoly_building") is None


def test_configuration_changes_reschedule_tasks() -> None:
    orchestrator, _, _ = _running("p1")

    orchestrator.update_configuration(adjustment_frequency=20.0)
    assert orchestrator.scheduler.task("adjustment").interval == 20.0

    with pytest.raises(ValidationError):
        orchestrator.update_configuration(adjustment_frequency=-1.0)
    assert orchestrator.config.adjustment_frequency == 20.0


def test_processing_error_returns_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    orchestrator, _, bus = _running("p1")

    def boom() -> int:
        raise RuntimeError("queue corrupted")

    monkeypatch.setattr(orchestrator, "_drain_events", boom)

    response = orchestrator.process_game_update(_game("p1"))

    assert not response.success
    assert response.warnings == ["System processing error occurred"]
    assert [item.operation for item in bus.of_type(OperationFailed)] == ["process_game_update"]


def test_shutdown_stops_processing() -> None:
    orchestrator, _, bus = _running("p1")

    orchestrator.shutdown()
    bus.publish(PlateauDetected(timestamp=0.0, player_id="p1", source="curve"))

    assert not orchestrator.running
    assert orchestrator.scheduler.task_names == []
    assert DifficultyEventType.PLATEAU_DETECTED not in [event.type for event in orchestrator.pending_events()]
    assert not orchestrator.process_game_update(_game("p1")).success


def test_system_health_formula() -> None:
    assert system_health(1.0, 0.0, 1.0) == 1.0
    assert system_health(0.0, 1.0, 0.0) == pytest.approx(0.5 * 0.3 * 0.5)
