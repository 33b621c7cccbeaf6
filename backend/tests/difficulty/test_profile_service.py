import pytest

from difficulty.errors import LevelNotFound, ProfileAlreadyExists, ProfileNotFound
from difficulty.models import (
    AdjustmentType,
    DifficultyAdjustment,
    GameOutcome,
    PerformanceRecord,
    PlayerSeed,
    StruggleSeverity,
    Zodiac,
)
from difficulty.services.clock import ManualClock
from difficulty.services.notifications import DifficultyAdjusted, NotificationBus
from difficulty.services.profile_service import (
    ProfileService,
    decision_speed_score,
    performance_score,
)


def _service(adaptive_mode: bool = False) -> tuple[ProfileService, ManualClock, NotificationBus]:
    clock = ManualClock()
    bus = NotificationBus()
    return ProfileService(clock=clock, bus=bus, adaptive_mode=adaptive_mode), clock, bus


def _victory(efficiency: float = 0.9) -> PerformanceRecord:
    return PerformanceRecord(outcome=GameOutcome.VICTORY, efficiency=efficiency, rank=1, duration=1800)


def _defeat() -> PerformanceRecord:
    return PerformanceRecord(outcome=GameOutcome.DEFEAT, efficiency=0.2, rank=4, mistakes=6, duration=2400)


def test_low_overall_skill_starts_at_beginner() -> None:
    service, _, _ = _service()
    profile = service.initialize_profile(PlayerSeed(id="p1"), {"overall_skill": 2.5})
    assert profile.current_difficulty == "beginner"


@pytest.mark.parametrize(
    ("overall", "expected"),
    [(4.0, "easy"), (5.0, "normal"), (8.0, "hard"), (9.0, "expert")],
)
def test_initial_difficulty_buckets(overall: float, expected: str) -> None:
    service, _, _ = _service()
    profile = service.initialize_profile(PlayerSeed(id="p1"), {"overall_skill": overall})
    assert profile.current_difficulty == expected


def test_zodiac_biases_default_skills() -> None:
    service, _, _ = _service()
    profile = service.initialize_profile(PlayerSeed(id="p1", zodiac=Zodiac.RAT))
    assert profile.skill_assessment.strategic_planning == pytest.approx(5.5)
    assert profile.skill_assessment.economic_management == pytest.approx(5.3)
    assert profile.adaptation.learning_rate == pytest.approx(0.1)


def test_second_initialize_raises_and_keeps_profile() -> None:
    service, _, _ = _service()
    first = service.initialize_profile(PlayerSeed(id="p1"), {"overall_skill": 8.0})

    with pytest.raises(ProfileAlreadyExists):
        service.initialize_profile(PlayerSeed(id="p1"))

    assert service.get_profile("p1") is first
    assert first.current_difficulty == "hard"


def test_record_performance_for_unknown_player_raises() -> None:
    service, _, _ = _service()
    with pytest.raises(ProfileNotFound):
        service.record_performance("ghost", _victory())


def test_performance_score_components() -> None:
    assert performance_score(_victory()) == 1.0
    record = PerformanceRecord(outcome=GameOutcome.DEFEAT, efficiency=0.4, rank=2, mistakes=2)
    assert performance_score(record) == pytest.approx(0.3 + 0.2 + 0.1 - 0.1)
    quit_record = PerformanceRecord(outcome=GameOutcome.QUIT, efficiency=0.0, rank=4, mistakes=20)
    assert performance_score(quit_record) == 0.0


def test_decision_speed_score_is_bounded() -> None:
    assert decision_speed_score(0.0) == 10.0
    assert decision_speed_score(1800.0) == 5.0
    assert decision_speed_score(100000.0) == 1.0


def test_skills_stay_within_bounds() -> None:
    service, clock, _ = _service(adaptive_mode=True)
    service.initialize_profile(PlayerSeed(id="p1", zodiac=Zodiac.DRAGON))

    for index in range(60):
        clock.advance(60.0)
        service.record_performance("p1", _victory(1.0) if index % 3 else _defeat())

    skills = service.get_profile("p1").skill_assessment.as_dict()
    assert all(0.0 <= value <= 10.0 for value in skills.values())


def test_ten_efficient_victories_reach_mastery_and_recommend_increase() -> None:
    service, clock, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))

    for _ in range(10):
        clock.advance(60.0)
        service.record_performance("p1", _victory(0.9))

    profile = service.get_profile("p1")
    assert any(indicator.ready_for_advancement for indicator in profile.adaptation.mastery_indicators)

    adjustments = service.recommend_adjustment("p1")
    kinds = [adjustment.type for adjustment in adjustments]
    assert AdjustmentType.INCREASE in kinds
    assert AdjustmentType.DECREASE not in kinds


def test_adaptive_mode_applies_confident_increase() -> None:
    service, clock, bus = _service(adaptive_mode=True)
    service.initialize_profile(PlayerSeed(id="p1"))

    for _ in range(10):
        clock.advance(60.0)
        service.record_performance("p1", _victory(0.9))

    assert service.get_profile("p1").current_difficulty != "normal"
    assert bus.of_type(DifficultyAdjusted)
    assert bus.of_type(DifficultyAdjusted)[0].from_level == "normal"


def test_auto_applied_increase_waits_for_cooldown() -> None:
    service, clock, bus = _service(adaptive_mode=True)
    service.initialize_profile(PlayerSeed(id="p1"))

    for _ in range(10):
        clock.advance(60.0)
        service.record_performance("p1", _victory(0.9))

    assert len(bus.of_type(DifficultyAdjusted)) == 1
    first = bus.of_type(DifficultyAdjusted)[0]

    clock.advance(600.0)
    service.record_performance("p1", _victory(0.9))

    moves = bus.of_type(DifficultyAdjusted)
    assert len(moves) == 2
    assert moves[1].from_level == first.to_level


def test_record_without_duration_keeps_decision_speed() -> None:
    service, _, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))

    service.record_performance("p1", PerformanceRecord(outcome=GameOutcome.VICTORY, efficiency=0.9, rank=1))

    skills = service.get_profile("p1").skill_assessment
    assert skills.decision_speed == pytest.approx(5.0)
    assert skills.strategic_planning > 5.0


def test_struggling_player_gets_decrease_only() -> None:
    service, clock, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))

    for _ in range(10):
        clock.advance(60.0)
        service.record_performance("p1", _defeat())

    profile = service.get_profile("p1")
    assert any(indicator.severity == StruggleSeverity.HIGH for indicator in profile.adaptation.struggle_indicators)
    kinds = [adjustment.type for adjustment in service.recommend_adjustment("p1")]
    assert kinds.count(AdjustmentType.DECREASE) == 1
    assert AdjustmentType.INCREASE not in kinds


def test_struggle_duration_counts_from_first_appearance() -> None:
    service, clock, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))

    for _ in range(5):
        service.record_performance("p1", _defeat())
    clock.advance(90.0)
    service.record_performance("p1", _defeat())

    indicators = {indicator.metric: indicator for indicator in service.get_profile("p1").adaptation.struggle_indicators}
    assert indicators["failure_rate"].duration == pytest.approx(90.0)


def test_identical_results_enter_plateau() -> None:
    service, clock, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))

    for _ in range(10):
        clock.advance(30.0)
        service.record_performance(
            "p1", PerformanceRecord(outcome=GameOutcome.DEFEAT, efficiency=0.5, rank=2, duration=1800)
        )

    plateau = service.get_profile("p1").adaptation.plateau
    assert plateau.in_plateau
    assert plateau.plateau_start == pytest.approx(300.0)


def test_increase_and_decrease_are_noops_at_catalog_edges() -> None:
    service, _, bus = _service()
    service.initialize_profile(PlayerSeed(id="top"), {"overall_skill": 9.5})
    service.initialize_profile(PlayerSeed(id="bottom"), {"overall_skill": 1.0})
    increase = DifficultyAdjustment(type=AdjustmentType.INCREASE)
    decrease = DifficultyAdjustment(type=AdjustmentType.DECREASE, timeframe="immediate")

    assert service.apply_adjustment("top", increase)
    assert service.get_profile("top").current_difficulty == "master"
    assert not service.apply_adjustment("top", increase)

    assert service.apply_adjustment("bottom", decrease)
    assert service.get_profile("bottom").current_difficulty == "tutorial"
    assert not service.apply_adjustment("bottom", decrease)

    assert len(bus.of_type(DifficultyAdjusted)) == 2
    assert bus.of_type(DifficultyAdjusted)[1].transition_type == "immediate"


def test_lateral_recommendation_targets_lagging_skill() -> None:
    service, _, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"), {"overall_skill": 7.5, "risk_assessment": 4.0})

    laterals = [
        adjustment
        for adjustment in service.recommend_adjustment("p1")
        if adjustment.type == AdjustmentType.LATERAL
    ]
    assert [adjustment.target for adjustment in laterals] == ["risk_assessment"]

    assert not service.apply_adjustment("p1", laterals[0])
    profile = service.get_profile("p1")
    assert profile.adaptation.focus_skill == "risk_assessment"
    assert profile.current_difficulty == "hard"


def test_customize_blends_toward_neighbour_level() -> None:
    service, _, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))

    service.apply_adjustment(
        "p1", DifficultyAdjustment(type=AdjustmentType.CUSTOMIZE, target="easier", magnitude=0.5)
    )

    parameters = service.current_parameters("p1")
    assert parameters.ai_skill_level == pytest.approx(4.5)
    assert service.get_profile("p1").current_difficulty == "normal"


def test_export_and_restore_keep_capped_history() -> None:
    service, clock, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1", zodiac=Zodiac.SNAKE))
    for _ in range(120):
        clock.advance(10.0)
        service.record_performance("p1", _victory(0.6))

    original = service.get_profile("p1")
    assert len(original.performance_history) == 100

    other, _, _ = _service()
    restored = other.restore_profile(service.export_profile("p1"))

    assert restored == original
    assert len(restored.performance_history) == 100
    with pytest.raises(ProfileAlreadyExists):
        other.restore_profile(service.export_profile("p1"))


def test_restore_rejects_unknown_level() -> None:
    service, _, _ = _service()
    service.initialize_profile(PlayerSeed(id="p1"))
    payload = service.export_profile("p1").replace('"normal"', '"nightmare"')

    other, _, _ = _service()
    with pytest.raises(LevelNotFound):
        other.restore_profile(payload)
    assert other.get_profile("p1") is None
