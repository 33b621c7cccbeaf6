"""Per-player skill model, difficulty placement and adjustment recommendations."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from difficulty import catalog
from difficulty.errors import ProfileAlreadyExists, ProfileNotFound
from difficulty.models import (
    PERFORMANCE_HISTORY_CAP,
    AdaptationData,
    AdjustmentType,
    DifficultyAdjustment,
    DifficultyParameters,
    DifficultyTransition,
    GameOutcome,
    MasteryIndicator,
    PerformanceRecord,
    PlateauState,
    PlayerDifficultyProfile,
    PlayerSeed,
    SkillAssessment,
    StruggleIndicator,
    StruggleSeverity,
    Zodiac,
)
from difficulty.services.clock import Clock, MonotonicClock
from difficulty.services.notifications import DifficultyAdjusted, NotificationBus, ParametersCustomized
from difficulty.services.statistics import clamp, clamp01, linear_slope, mean, variance
from shared.config.logging import get_logger

logger = get_logger(__name__)

ZODIAC_SKILL_ADJUSTMENTS: dict[Zodiac, dict[str, float]] = {
    Zodiac.RAT: {"strategic_planning": 0.5, "economic_management": 0.3},
    Zodiac.OX: {"risk_assessment": 0.4, "strategic_planning": 0.2},
    Zodiac.TIGER: {"decision_speed": 0.5, "risk_assessment": -0.2},
    Zodiac.RABBIT: {"social_interaction": 0.4, "adaptability": 0.3},
    Zodiac.DRAGON: {"overall_skill": 0.3, "confidence": 0.5},
    Zodiac.SNAKE: {"pattern_recognition": 0.5, "strategic_planning": 0.3},
    Zodiac.HORSE: {"decision_speed": 0.4, "adaptability": 0.3},
    Zodiac.GOAT: {"social_interaction": 0.5, "economic_management": -0.1},
    Zodiac.MONKEY: {"adaptability": 0.5, "pattern_recognition": 0.4},
    Zodiac.ROOSTER: {"economic_management": 0.4, "confidence": 0.2},
    Zodiac.DOG: {"social_interaction": 0.3, "risk_assessment": 0.3},
    Zodiac.PIG: {"economic_management": 0.2, "social_interaction": 0.4},
}

OUTCOME_POINTS = {
    GameOutcome.VICTORY: 1.0,
    GameOutcome.DEFEAT: 0.3,
    GameOutcome.TIMEOUT: 0.1,
    GameOutcome.QUIT: 0.0,
}

RECENT_WINDOW_SEC = 7 * 24 * 3600
IDEAL_GAME_DURATION_SEC = 30 * 60
AUTO_APPLY_CONFIDENCE = 0.8
AUTO_APPLY_COOLDOWN_SEC = 600.0
LATERAL_SKILL_GAP = 3.0


def initial_difficulty_for(overall_skill: float) -> str:
    if overall_skill < 3:
        return "beginner"
    if overall_skill < 5:
        return "easy"
    if overall_skill < 7:
        return "normal"
    if overall_skill < 8.5:
        return "hard"
    return "expert"


def initial_learning_rate(skills: SkillAssessment) -> float:
    return 0.1 * (0.5 + skills.adaptability / 10.0)


def performance_score(record: PerformanceRecord) -> float:
    score = OUTCOME_POINTS[record.outcome]
    score += record.efficiency * 0.5
    if record.rank == 1:
        score += 0.3
    elif record.rank <= 2:
        score += 0.1
    score -= min(0.3, record.mistakes * 0.05)
    return clamp01(score)


def decision_speed_score(duration: float) -> float:
    ratio = IDEAL_GAME_DURATION_SEC / max(duration, IDEAL_GAME_DURATION_SEC * 0.5)
    return clamp(ratio * 5.0, 1.0, 10.0)


def update_skill(current: float, target: float, learning_rate: float) -> float:
    return clamp(current + (target - current) * learning_rate, 0.0, 10.0)


class ProfileRepository:
    """Owns the profile of every active player."""

    def __init__(self) -> None:
        self._profiles: dict[str, PlayerDifficultyProfile] = {}

    def get(self, player_id: str) -> PlayerDifficultyProfile | None:
        return self._profiles.get(player_id)

    def require(self, player_id: str) -> PlayerDifficultyProfile:
        profile = self._profiles.get(player_id)
        if profile is None:
            raise ProfileNotFound(f"Player profile not found: {player_id}")
        return profile

    def add(self, profile: PlayerDifficultyProfile) -> None:
        if profile.player_id in self._profiles:
            raise ProfileAlreadyExists(f"Profile already exists: {profile.player_id}")
        self._profiles[profile.player_id] = profile

    def replace(self, profile: PlayerDifficultyProfile) -> None:
        self._profiles[profile.player_id] = profile

    def remove(self, player_id: str) -> PlayerDifficultyProfile | None:
        return self._profiles.pop(player_id, None)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[PlayerDifficultyProfile]:
        return iter(list(self._profiles.values()))


class ProfileService:
    def __init__(
        self,
        repository: ProfileRepository | None = None,
        *,
        clock: Clock | None = None,
        bus: NotificationBus | None = None,
        adaptive_mode: bool = True,
    ) -> None:
        self.repository = repository if repository is not None else ProfileRepository()
        self._clock = clock or MonotonicClock()
        self._bus = bus or NotificationBus()
        self._adaptive_mode = adaptive_mode

    @property
    def adaptive_mode(self) -> bool:
        return self._adaptive_mode

    def set_adaptive_mode(self, enabled: bool) -> None:
        self._adaptive_mode = enabled
        logger.info("[Profiles] Adaptive mode %s", "enabled" if enabled else "disabled")

    def get_profile(self, player_id: str) -> PlayerDifficultyProfile | None:
        return self.repository.get(player_id)

    def remove_profile(self, player_id: str) -> bool:
        return self.repository.remove(player_id) is not None

    def initialize_profile(
        self,
        player: PlayerSeed,
        seed_assessment: Mapping[str, float] | None = None,
    ) -> PlayerDifficultyProfile:
        """Create the profile for a joining player.

        Raises ProfileAlreadyExists if the player already has one; callers that
        want to reuse an existing profile should look it up first.
        """
        if player.id in self.repository:
            raise ProfileAlreadyExists(f"Profile already exists: {player.id}")

        skills = SkillAssessment().as_dict()
        if player.zodiac is not None:
            for skill, delta in ZODIAC_SKILL_ADJUSTMENTS[player.zodiac].items():
                skills[skill] = clamp(skills[skill] + delta, 0.0, 10.0)
        if seed_assessment:
            skills.update(seed_assessment)
        assessment = SkillAssessment(**skills)

        now = self._clock.now()
        profile = PlayerDifficultyProfile(
            player_id=player.id,
            current_difficulty=initial_difficulty_for(assessment.overall_skill),
            skill_assessment=assessment,
            adaptation=AdaptationData(learning_rate=initial_learning_rate(assessment)),
            last_update=now,
        )
        self.repository.add(profile)
        logger.info(
            "[Profiles] Created profile for %s at %s (overall=%.2f)",
            player.id,
            profile.current_difficulty,
            assessment.overall_skill,
        )
        return profile

    def record_performance(self, player_id: str, record: PerformanceRecord) -> PlayerDifficultyProfile:
        profile = self.repository.require(player_id)
        now = self._clock.now()
        record = record.model_copy(
            update={
                "timestamp": now if record.timestamp is None else record.timestamp,
                "difficulty_level": record.difficulty_level or profile.current_difficulty,
            }
        )

        profile.performance_history.append(record)
        if len(profile.performance_history) > PERFORMANCE_HISTORY_CAP:
            profile.performance_history = profile.performance_history[-PERFORMANCE_HISTORY_CAP:]

        self._update_skills(profile, record)
        self._detect_plateau(profile, now)
        self._identify_struggles(profile, now)
        self._identify_mastery(profile)

        if self._adaptive_mode and self._auto_apply_ready(profile, now):
            for adjustment in self.recommend_adjustment(player_id):
                if adjustment.confidence > AUTO_APPLY_CONFIDENCE and adjustment.type in (
                    AdjustmentType.INCREASE,
                    AdjustmentType.DECREASE,
                ):
                    if self.apply_adjustment(player_id, adjustment):
                        profile.adaptation.last_auto_adjustment = now
                        break

        profile.last_update = now
        return profile

    def recent_performance(self, profile: PlayerDifficultyProfile, count: int) -> list[PerformanceRecord]:
        now = self._clock.now()
        return [
            record
            for record in profile.performance_history[-count:]
            if record.timestamp is not None and now - record.timestamp < RECENT_WINDOW_SEC
        ]

    def recommend_adjustment(self, player_id: str) -> list[DifficultyAdjustment]:
        profile = self.repository.require(player_id)
        recent = self.recent_performance(profile, 10)
        scores = [performance_score(record) for record in recent]
        average = mean(scores, default=0.5)
        learning_rate = profile.adaptation.learning_rate
        magnitude = 0.5 * (1.0 + learning_rate)
        confidence = clamp01((min(1.0, len(recent) / 10.0) + (1.0 - variance(scores))) / 2.0)

        has_high_struggle = any(
            indicator.severity == StruggleSeverity.HIGH
            for indicator in profile.adaptation.struggle_indicators
        )

        adjustments: list[DifficultyAdjustment] = []
        if average < 0.3 or has_high_struggle:
            adjustments.append(
                DifficultyAdjustment(
                    type=AdjustmentType.DECREASE,
                    magnitude=magnitude,
                    reasoning="Player showing signs of struggle",
                    confidence=confidence,
                    timeframe="immediate",
                )
            )
        elif average > 0.8 and profile.adaptation.mastery_ready():
            adjustments.append(
                DifficultyAdjustment(
                    type=AdjustmentType.INCREASE,
                    magnitude=magnitude,
                    reasoning="Player demonstrating mastery",
                    confidence=confidence,
                    timeframe="gradual",
                )
            )

        skills = profile.skill_assessment.as_dict()
        overall = skills.pop("overall_skill")
        for skill, level in skills.items():
            if overall - level >= LATERAL_SKILL_GAP:
                adjustments.append(
                    DifficultyAdjustment(
                        type=AdjustmentType.LATERAL,
                        target=skill,
                        magnitude=clamp01((overall - level) / 10.0),
                        reasoning=f"{skill} lags overall skill by {overall - level:.1f}",
                        confidence=confidence,
                        timeframe="gradual",
                    )
                )

        profile.adaptation.recommended_adjustments = adjustments
        return adjustments

    def apply_adjustment(self, player_id: str, adjustment: DifficultyAdjustment) -> bool:
        """Apply an adjustment; returns True when the current level changed."""
        profile = self.repository.require(player_id)
        current = catalog.get_level(profile.current_difficulty)

        if adjustment.type == AdjustmentType.INCREASE:
            target = catalog.next_level(current.id)
        elif adjustment.type == AdjustmentType.DECREASE:
            target = catalog.previous_level(current.id)
        elif adjustment.type == AdjustmentType.LATERAL:
            profile.adaptation.focus_skill = adjustment.target
            logger.info("[Profiles] %s lateral focus on %s", player_id, adjustment.target)
            return False
        elif adjustment.type == AdjustmentType.CUSTOMIZE:
            profile.adaptation.custom_parameters = self._custom_parameters(current.id, adjustment)
            profile.last_update = self._clock.now()
            logger.info("[Profiles] %s customized parameters %s of %s", player_id, adjustment.target, current.id)
            self._bus.publish(
                ParametersCustomized(
                    timestamp=profile.last_update,
                    player_id=player_id,
                    level=current.id,
                    direction=adjustment.target,
                    magnitude=adjustment.magnitude,
                )
            )
            return False
        else:
            raise ValueError(f"Unknown adjustment type: {adjustment.type}")

        if target.id == current.id:
            logger.debug("[Profiles] %s already at catalog boundary %s", player_id, current.id)
            return False

        transition = self._transition(current.id, target.id, adjustment)
        profile.current_difficulty = target.id
        profile.adaptation.custom_parameters = None
        profile.last_update = self._clock.now()
        logger.info("[Profiles] %s moved %s -> %s", player_id, current.id, target.id)
        self._bus.publish(
            DifficultyAdjusted(
                timestamp=profile.last_update,
                player_id=player_id,
                from_level=current.id,
                to_level=target.id,
                adjustment_type=adjustment.type.value,
                transition_type=transition.transition_type,
                reasoning=adjustment.reasoning,
            )
        )
        return True

    def current_parameters(self, player_id: str) -> DifficultyParameters:
        profile = self.repository.require(player_id)
        if profile.adaptation.custom_parameters is not None:
            return profile.adaptation.custom_parameters
        return catalog.get_level(profile.current_difficulty).parameters

    def export_profile(self, player_id: str) -> str:
        return self.repository.require(player_id).model_dump_json()

    def restore_profile(self, payload: str, *, replace: bool = False) -> PlayerDifficultyProfile:
        profile = PlayerDifficultyProfile.model_validate_json(payload)
        catalog.get_level(profile.current_difficulty)
        if replace:
            self.repository.replace(profile)
        else:
            self.repository.add(profile)
        return profile

    def system_status(self) -> dict[str, object]:
        return {"adaptive": self._adaptive_mode, "player_count": len(self.repository)}

    def _update_skills(self, profile: PlayerDifficultyProfile, record: PerformanceRecord) -> None:
        skills = profile.skill_assessment
        rate = profile.adaptation.learning_rate
        score = performance_score(record)

        skills.overall_skill = update_skill(skills.overall_skill, score * 10.0, rate)
        if record.efficiency > 0.8:
            skills.economic_management = update_skill(
                skills.economic_management, record.efficiency * 10.0, rate
            )
        if record.outcome == GameOutcome.VICTORY:
            skills.strategic_planning = update_skill(skills.strategic_planning, 8.0, rate)
        if record.duration > 0:
            skills.decision_speed = update_skill(
                skills.decision_speed, decision_speed_score(record.duration), rate * 0.5
            )

    @staticmethod
    def _auto_apply_ready(profile: PlayerDifficultyProfile, now: float) -> bool:
        last = profile.adaptation.last_auto_adjustment
        return last is None or now - last >= AUTO_APPLY_COOLDOWN_SEC

    def _detect_plateau(self, profile: PlayerDifficultyProfile, now: float) -> None:
        recent = self.recent_performance(profile, 15)
        if len(recent) < 10:
            return

        scores = [performance_score(record) for record in recent]
        in_plateau = variance(scores) < 0.05 and abs(linear_slope(scores)) < 0.01
        state = profile.adaptation.plateau

        if in_plateau and not state.in_plateau:
            profile.adaptation.plateau = PlateauState(
                in_plateau=True,
                plateau_start=now,
                stagnant_metrics=["overall_performance"],
            )
            logger.info("[Profiles] %s entered a performance plateau", profile.player_id)
        elif not in_plateau and state.in_plateau:
            state.in_plateau = False

        if profile.adaptation.plateau.in_plateau:
            profile.adaptation.plateau.plateau_duration = now - profile.adaptation.plateau.plateau_start

    def _identify_struggles(self, profile: PlayerDifficultyProfile, now: float) -> None:
        recent = self.recent_performance(profile, 10)
        if len(recent) < 5:
            return

        count = len(recent)
        failure_rate = sum(
            1 for record in recent if record.outcome in (GameOutcome.DEFEAT, GameOutcome.QUIT)
        ) / count
        average_efficiency = mean([record.efficiency for record in recent])
        help_rate = sum(record.help_used for record in recent) / count

        candidates = [
            (failure_rate > 0.6, "failure_rate", StruggleSeverity.HIGH, "consistent_failures", "decrease_difficulty"),
            (average_efficiency < 0.3, "efficiency", StruggleSeverity.MEDIUM, "resource_mismanagement", "provide_economic_guidance"),
            (help_rate > 3, "help_seeking", StruggleSeverity.MEDIUM, "knowledge_gaps", "tutorial_reinforcement"),
        ]

        first_seen = profile.adaptation.indicator_first_seen
        indicators: list[StruggleIndicator] = []
        for active, metric, severity, pattern, recommendation in candidates:
            if not active:
                first_seen.pop(metric, None)
                continue
            started = first_seen.setdefault(metric, now)
            indicators.append(
                StruggleIndicator(
                    metric=metric,
                    severity=severity,
                    duration=now - started,
                    pattern=pattern,
                    recommendation=recommendation,
                )
            )
        profile.adaptation.struggle_indicators = indicators

    def _identify_mastery(self, profile: PlayerDifficultyProfile) -> None:
        recent = self.recent_performance(profile, 10)
        if len(recent) < 8:
            return

        success_rate = sum(1 for record in recent if record.outcome == GameOutcome.VICTORY) / len(recent)
        average_efficiency = mean([record.efficiency for record in recent])
        consistency = 1.0 - variance([performance_score(record) for record in recent])

        indicators: list[MasteryIndicator] = []
        if success_rate > 0.8 and average_efficiency > 0.7 and consistency > 0.8:
            indicators.append(
                MasteryIndicator(
                    skill="overall_gameplay",
                    mastery_level=0.9,
                    consistency=consistency,
                    ready_for_advancement=True,
                )
            )
        profile.adaptation.mastery_indicators = indicators

    @staticmethod
    def _custom_parameters(level_id: str, adjustment: DifficultyAdjustment) -> DifficultyParameters:
        """Blend the current level toward a neighbour by ``magnitude``.

        ``target="easier"`` blends toward the previous level; anything else
        toward the next one.
        """
        base = catalog.get_level(level_id).parameters
        if adjustment.target == "easier":
            neighbour = catalog.previous_level(level_id).parameters
        else:
            neighbour = catalog.next_level(level_id).parameters
        weight = clamp01(adjustment.magnitude)
        start = base.model_dump()
        end = neighbour.model_dump()
        return DifficultyParameters(
            **{name: start[name] + (end[name] - start[name]) * weight for name in start}
        )

    @staticmethod
    def _transition(from_level: str, to_level: str, adjustment: DifficultyAdjustment) -> DifficultyTransition:
        if adjustment.timeframe == "immediate":
            return DifficultyTransition(
                from_level=from_level,
                to_level=to_level,
                transition_type="immediate",
                steps=[f"switch parameters to {to_level}"],
                success_criteria=["frustration below 0.7 within the next session"],
            )
        return DifficultyTransition(
            from_level=from_level,
            to_level=to_level,
            transition_type="gradual",
            steps=[
                f"blend parameters from {from_level} toward {to_level}",
                "monitor frustration and engagement",
                f"confirm {to_level}",
            ],
            success_criteria=["engagement stays above 0.6", "win rate stays above 0.4"],
        )
