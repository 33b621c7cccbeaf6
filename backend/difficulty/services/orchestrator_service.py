"""Top-level coordinator for the adaptive difficulty subsystems.

The host game loop calls ``process_game_update`` once per tick. Periodic work
(rule ticks, curve optimization, challenge progress checks and maintenance)
runs through a ``Scheduler`` at the start of each update, so the orchestrator
never owns a thread.
"""

from __future__ import annotations

import random
import time
from collections import deque
from collections.abc import Callable, Sequence
from typing import Any

from difficulty import catalog
from difficulty.actions import ImmediateKind
from difficulty.challenge_models import (
    ChallengeAssessment,
    ChallengeInstance,
    GameStateChange,
    PlayerAction,
    PlayerFeedback,
)
from difficulty.curve_models import CurveRecommendation
from difficulty.models import (
    ADAPTATION_HISTORY_CAP,
    AdaptationRecord,
    AdjustmentType,
    DifficultyEvent,
    DifficultyEventType,
    DifficultySystemConfig,
    GameStateSnapshot,
    IntegrationResponse,
    PerformanceRecord,
    PerformanceUpdate,
    PlayerDifficultyStatus,
    PlayerSeed,
    PriorityBand,
    SystemMetrics,
    SystemState,
    SystemStatus,
)
from difficulty.services.adjuster_service import AdjusterService
from difficulty.services.challenge_service import ChallengeService
from difficulty.services.clock import Clock, MonotonicClock, Scheduler
from difficulty.services.curve_service import CurveService
from difficulty.services.notifications import (
    DifficultyAdjusted,
    NotificationBus,
    OperationFailed,
    PlanExecuted,
    PlateauDetected,
    PlayerAdded,
    PlayerRemoved,
    SystemOverload,
    SystemStatusChanged,
)
from difficulty.services.profile_service import ProfileService
from difficulty.services.statistics import clamp01, mean
from shared.config.app_config import (
    DIFFICULTY_EVENT_QUEUE_CAP,
    DIFFICULTY_EVENT_TTL_SEC,
    DIFFICULTY_EVENTS_PER_TICK,
    DIFFICULTY_RANDOM_SEED,
)
from shared.config.logging import get_logger, set_verbosity

logger = get_logger(__name__)

CORRECTION_FRUSTRATION = 0.7
CORRECTION_ENGAGEMENT = 0.4
ALERT_FRUSTRATION = 0.8
ALERT_ENGAGEMENT = 0.3
ALERT_ERRORS = 10
SPIKE_JUMP = 0.3
HEALTHY = 0.5
MAX_PROCESSING_SEC = 1.0
LOAD_SMOOTHING = 0.9

TASK_ADJUSTMENT = "adjustment"
TASK_OPTIMIZATION = "optimization"
TASK_ASSESSMENT = "assessment"
TASK_MAINTENANCE = "maintenance"


def system_health(satisfaction: float, load: float, effectiveness: float) -> float:
    health = (0.5 + 0.5 * satisfaction) * max(0.3, 1.0 - load) * max(0.5, effectiveness)
    return clamp01(health)


class DifficultyOrchestrator:
    def __init__(
        self,
        config: DifficultySystemConfig | None = None,
        *,
        clock: Clock | None = None,
        bus: NotificationBus | None = None,
        perf_counter: Callable[[], float] = time.perf_counter,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or DifficultySystemConfig()
        self.clock = clock or MonotonicClock()
        self.bus = bus or NotificationBus()
        self.scheduler = Scheduler(self.clock)
        self._perf_counter = perf_counter

        self.profiles = ProfileService(clock=self.clock, bus=self.bus, adaptive_mode=self.config.adaptive_mode)
        self.adjuster = AdjusterService(
            self.profiles,
            clock=self.clock,
            bus=self.bus,
            rng=rng or random.Random(DIFFICULTY_RANDOM_SEED),
        )
        self.adjuster.set_enabled(self.config.enable_real_time_adjustment)
        self.challenges = ChallengeService(clock=self.clock, bus=self.bus)
        self.curve = CurveService(self.profiles, self.challenges, clock=self.clock, bus=self.bus)

        self.state = SystemState()
        self._statuses: dict[str, PlayerDifficultyStatus] = {}
        self._curve_recommendations: dict[str, list[CurveRecommendation]] = {}
        self._events: deque[DifficultyEvent] = deque(maxlen=DIFFICULTY_EVENT_QUEUE_CAP)
        self._game_state = GameStateSnapshot()
        self._unsubscribers: list[Callable[[], None]] = []
        self._running = False
        self._started_at = 0.0
        self._players_added = 0

        self._event_handlers: dict[DifficultyEventType, Callable[[DifficultyEvent], None]] = {
            DifficultyEventType.PERFORMANCE_ALERT: self._on_performance_alert,
            DifficultyEventType.FRUSTRATION_SPIKE: self._on_frustration_spike,
            DifficultyEventType.MASTERY_ACHIEVED: self._on_mastery_achieved,
            DifficultyEventType.PLATEAU_DETECTED: self._on_plateau_event,
            DifficultyEventType.SYSTEM_OVERLOAD: self._on_system_overload,
        }

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, game_state: GameStateSnapshot) -> None:
        """Seed players, wire subscriptions and start the periodic tasks.

        Any failure leaves the system in ``error`` status and is re-raised.
        """
        self._set_status(SystemStatus.INITIALIZING)
        try:
            set_verbosity(self.config.log_level)
            self._game_state = game_state
            for player in game_state.players:
                self.add_player(player, game_state)
            self._subscribe()
            self._schedule_tasks()
            self._started_at = self.clock.now()
            self._running = True
            self._set_status(SystemStatus.RUNNING)
            logger.info(
                "[Orchestrator] Initialized with %s players, tasks %s",
                len(self._statuses),
                self.scheduler.task_names,
            )
        except Exception:
            logger.exception("[Orchestrator] Initialization failed")
            self._set_status(SystemStatus.ERROR)
            raise

    def shutdown(self) -> None:
        try:
            self.scheduler.cancel_all()
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers.clear()
            self._running = False
            logger.info("[Orchestrator] Shut down")
        except Exception:
            logger.exception("[Orchestrator] Shutdown failed")
            self._set_status(SystemStatus.ERROR)
            raise

    def update_configuration(self, **changes: Any) -> DifficultySystemConfig:
        """Validate and apply configuration changes; rejected changes raise and leave the config intact."""
        previous = self.config
        self.config = previous.updated(**changes)

        self.adjuster.set_enabled(self.config.enable_real_time_adjustment)
        self.profiles.set_adaptive_mode(self.config.adaptive_mode)
        set_verbosity(self.config.log_level)
        if self._running and (
            previous.adjustment_frequency != self.config.adjustment_frequency
            or previous.optimization_frequency != self.config.optimization_frequency
            or previous.assessment_frequency != self.config.assessment_frequency
            or previous.maintenance_interval != self.config.maintenance_interval
        ):
            self._schedule_tasks()
        logger.info("[Orchestrator] Configuration updated: %s", changes)
        return self.config

    # ------------------------------------------------------------------
    # Game loop
    # ------------------------------------------------------------------

    def process_game_update(self, game_state: GameStateSnapshot) -> IntegrationResponse:
        if not self._running:
            return IntegrationResponse(
                success=False,
                system_health=self.state.system_health,
                warnings=["System not running"],
            )

        started = self._perf_counter()
        try:
            self._game_state = game_state
            self.scheduler.run_pending()
            self._refresh_statuses()
            self._drain_events()

            adjusted: list[str] = []
            if self.config.enable_real_time_adjustment:
                adjusted = self._real_time_corrections()
            emergencies = self._emergency_interventions()

            self._update_health()
            response = IntegrationResponse(
                success=True,
                adjustments_made=len(adjusted),
                interventions_triggered=len(emergencies),
                players_affected=list(dict.fromkeys(adjusted + emergencies)),
                system_health=self.state.system_health,
                recommendations=self._system_recommendations(),
                warnings=[f"Emergency intervention triggered for player {pid}" for pid in emergencies],
            )
        except Exception as exc:
            logger.exception("[Orchestrator] Game update failed")
            self.bus.publish(
                OperationFailed(timestamp=self.clock.now(), operation="process_game_update", error=str(exc))
            )
            return IntegrationResponse(
                success=False,
                system_health=self.state.system_health,
                warnings=["System processing error occurred"],
            )
        finally:
            self._update_load(self._perf_counter() - started)
        return response

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def add_player(self, player: PlayerSeed, game_state: GameStateSnapshot | None = None) -> PlayerDifficultyStatus:
        """Register a player with every subsystem. Raises ProfileAlreadyExists for a known id."""
        game_state = game_state or self._game_state
        profile = self.profiles.initialize_profile(player)
        self.adjuster.update_metrics(player.id)
        if self.config.enable_curve_optimization:
            self.curve.initialize_progression(player.id, profile, game_state)

        now = self.clock.now()
        status = PlayerDifficultyStatus(
            player_id=player.id,
            current_difficulty=profile.current_difficulty,
            skill_progression=profile.skill_assessment.as_dict(),
            joined_at=now,
            last_adjustment=now,
        )
        self._statuses[player.id] = status
        self._players_added += 1
        self.state.active_players = len(self._statuses)
        self._queue_event(DifficultyEventType.PLAYER_JOINED, PriorityBand.LOW, player.id)
        self.bus.publish(PlayerAdded(timestamp=now, player_id=player.id, difficulty=profile.current_difficulty))
        logger.info("[Orchestrator] Player %s added at %s", player.id, profile.current_difficulty)
        return status

    def remove_player(self, player_id: str) -> bool:
        if player_id not in self._statuses:
            logger.warning("[Orchestrator] Cannot remove unknown player %s", player_id)
            return False

        self.profiles.remove_profile(player_id)
        self.adjuster.discard_player(player_id)
        self.curve.discard_player(player_id)
        self._curve_recommendations.pop(player_id, None)
        self.challenges.discard_player(player_id)
        del self._statuses[player_id]
        self.state.active_players = len(self._statuses)
        self._queue_event(DifficultyEventType.PLAYER_LEFT, PriorityBand.LOW, player_id)
        self.bus.publish(PlayerRemoved(timestamp=self.clock.now(), player_id=player_id))
        logger.info("[Orchestrator] Player %s removed", player_id)
        return True

    def update_player_performance(
        self,
        player_id: str,
        update: PerformanceUpdate,
        game_state: GameStateSnapshot | None = None,
    ) -> bool:
        """Route a performance event to the profile model and live metrics.

        Returns False when the player is unknown or the update failed.
        """
        status = self._statuses.get(player_id)
        if status is None:
            logger.warning("[Orchestrator] Performance update for unknown player %s", player_id)
            return False

        try:
            profile = self.profiles.repository.require(player_id)
            was_ready = profile.adaptation.mastery_ready()
            if update.outcome is not None:
                self.profiles.record_performance(player_id, self._performance_record(update))

            self.adjuster.update_metrics(player_id, **self._metric_fields(player_id, update))

            previous_frustration = status.frustration_level
            if update.engagement is not None:
                status.engagement_level = update.engagement
            if update.frustration is not None:
                status.frustration_level = update.frustration

            if (
                (update.frustration is not None and update.frustration > ALERT_FRUSTRATION)
                or (update.engagement is not None and update.engagement < ALERT_ENGAGEMENT)
                or (update.errors is not None and update.errors > ALERT_ERRORS)
            ):
                self._queue_event(
                    DifficultyEventType.PERFORMANCE_ALERT,
                    PriorityBand.HIGH,
                    player_id,
                    update.model_dump(exclude_none=True),
                )
            if update.frustration is not None and update.frustration - previous_frustration > SPIKE_JUMP:
                self._queue_event(
                    DifficultyEventType.FRUSTRATION_SPIKE,
                    PriorityBand.HIGH,
                    player_id,
                    {"from": previous_frustration, "to": update.frustration},
                )
            if not was_ready and profile.adaptation.mastery_ready():
                self._queue_event(DifficultyEventType.MASTERY_ACHIEVED, PriorityBand.HIGH, player_id)
        except Exception as exc:
            logger.exception("[Orchestrator] Performance update failed for %s", player_id)
            self.bus.publish(
                OperationFailed(
                    timestamp=self.clock.now(),
                    operation="update_player_performance",
                    error=str(exc),
                    player_id=player_id,
                )
            )
            return False

        if game_state is not None:
            self._game_state = game_state
        return True

    def get_player_status(self, player_id: str) -> PlayerDifficultyStatus | None:
        status = self._statuses.get(player_id)
        return status.model_copy(deep=True) if status is not None else None

    def player_statuses(self) -> list[PlayerDifficultyStatus]:
        return [status.model_copy(deep=True) for status in self._statuses.values()]

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------

    def start_challenge(
        self,
        player_id: str,
        challenge_id: str,
        game_state: GameStateSnapshot | None = None,
    ) -> ChallengeInstance | None:
        if not self.config.enable_challenge_assessment:
            logger.warning("[Orchestrator] Challenge assessment disabled; %s not started", challenge_id)
            return None
        profile = self.profiles.repository.require(player_id)
        return self.challenges.create_instance(challenge_id, player_id, profile, game_state or self._game_state)

    def record_challenge_action(self, instance_id: str, action: PlayerAction) -> None:
        self.challenges.record_action(instance_id, action)

    def record_challenge_state(self, instance_id: str, change: GameStateChange) -> None:
        self.challenges.record_state_change(instance_id, change)

    def complete_challenge(
        self,
        instance_id: str,
        actions: Sequence[PlayerAction] | None = None,
        state_changes: Sequence[GameStateChange] | None = None,
        feedback: PlayerFeedback | None = None,
    ) -> ChallengeAssessment:
        assessment = self.challenges.assess_completion(instance_id, actions, state_changes, feedback)
        player_id = assessment.player_id
        if self.config.enable_curve_optimization and self.curve.get_progression(player_id) is not None:
            self.curve.update_progression(player_id, game_state=self._game_state)
        return assessment

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_system_state(self) -> SystemState:
        return self.state.model_copy()

    def get_system_metrics(self) -> SystemMetrics:
        now = self.clock.now()
        statuses = list(self._statuses.values())
        distribution: dict[str, int] = {}
        for status in statuses:
            distribution[status.current_difficulty] = distribution.get(status.current_difficulty, 0) + 1

        mastered = sum(1 for profile in self.profiles.repository if profile.adaptation.mastery_ready())
        return SystemMetrics(
            total_players=len(statuses),
            average_difficulty=mean(
                [catalog.get_level(status.current_difficulty).rank for status in statuses], default=5.0
            ),
            difficulty_distribution=distribution,
            adaptation_accuracy=self.adjuster.success_rate(),
            player_retention=len(statuses) / self._players_added if self._players_added else 1.0,
            session_duration=mean([now - status.joined_at for status in statuses], default=0.0),
            frustration_rate=(
                sum(1 for status in statuses if status.frustration_level > 0.6) / len(statuses) if statuses else 0.0
            ),
            mastery_rate=mastered / len(statuses) if statuses else 0.0,
            system_uptime=now - self._started_at if self._running else 0.0,
        )

    def pending_events(self) -> list[DifficultyEvent]:
        return [event for event in self._events if not event.processed]

    # ------------------------------------------------------------------
    # Periodic tasks
    # ------------------------------------------------------------------

    def _schedule_tasks(self) -> None:
        config = self.config
        self.scheduler.every(config.adjustment_frequency, self._adjustment_tick, TASK_ADJUSTMENT)
        self.scheduler.every(config.optimization_frequency, self._optimization_tick, TASK_OPTIMIZATION)
        self.scheduler.every(config.assessment_frequency, self._assessment_tick, TASK_ASSESSMENT)
        self.scheduler.every(config.maintenance_interval, self._maintenance, TASK_MAINTENANCE)

    def _adjustment_tick(self) -> None:
        if self.config.enable_real_time_adjustment:
            self.adjuster.tick(self._game_state)

    def _optimization_tick(self) -> None:
        if not self.config.enable_curve_optimization:
            return
        previous = self.state.status
        if previous == SystemStatus.RUNNING:
            self._set_status(SystemStatus.OPTIMIZING)
        try:
            for player_id in self.curve.player_ids:
                if player_id in self._statuses:
                    self.curve.update_progression(player_id, game_state=self._game_state)
            self.curve.run_cycle()
            for player_id in self.curve.player_ids:
                if player_id in self._statuses:
                    self._curve_recommendations[player_id] = self.curve.optimize_curve(player_id)
                    self._follow_curve(player_id)
        finally:
            if self.state.status == SystemStatus.OPTIMIZING:
                self._set_status(previous)

    def _follow_curve(self, player_id: str) -> None:
        adjustment = self.curve.suggest_level_change(player_id)
        if adjustment is None:
            return
        if self.profiles.apply_adjustment(player_id, adjustment):
            logger.info("[Orchestrator] %s follows curve: %s", player_id, adjustment.reasoning)
        self.curve.align_target(player_id)

    def _assessment_tick(self) -> None:
        if not self.config.enable_challenge_assessment:
            return
        for instance in self.challenges.active_instances():
            try:
                evaluation = self.challenges.evaluate_progress(instance.instance_id)
            except Exception as exc:
                logger.exception("[Orchestrator] Progress check failed for %s", instance.instance_id)
                self.bus.publish(
                    OperationFailed(
                        timestamp=self.clock.now(),
                        operation="challenge_progress",
                        error=str(exc),
                        player_id=instance.player_id,
                    )
                )
                continue
            if evaluation.intervention_needed:
                self._queue_event(
                    DifficultyEventType.PERFORMANCE_ALERT,
                    PriorityBand.HIGH,
                    instance.player_id,
                    {"instance_id": instance.instance_id, "actions": evaluation.recommended_actions},
                )

    def _maintenance(self) -> None:
        cutoff = self.clock.now() - DIFFICULTY_EVENT_TTL_SEC
        kept = [event for event in self._events if event.timestamp > cutoff]
        if len(kept) != len(self._events):
            logger.debug("[Orchestrator] Purged %s expired events", len(self._events) - len(kept))
            self._events = deque(kept, maxlen=DIFFICULTY_EVENT_QUEUE_CAP)

        self.state.player_satisfaction = self._average_satisfaction()
        self.state.adaptation_effectiveness = self.adjuster.success_rate()
        self.adjuster.execute_pending(self._game_state)
        self._update_health()

        if self.state.system_health < HEALTHY:
            self._queue_event(
                DifficultyEventType.SYSTEM_OVERLOAD,
                PriorityBand.CRITICAL,
                data={"health": self.state.system_health},
            )
        elif self.state.status == SystemStatus.MAINTENANCE:
            logger.info("[Orchestrator] Health recovered to %.2f", self.state.system_health)
            self._set_status(SystemStatus.RUNNING)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _queue_event(
        self,
        event_type: DifficultyEventType,
        priority: PriorityBand,
        player_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._events.append(
            DifficultyEvent(
                type=event_type,
                player_id=player_id,
                timestamp=self.clock.now(),
                priority=priority,
                data=data or {},
            )
        )

    def _drain_events(self) -> int:
        urgent = [
            event
            for event in self._events
            if not event.processed and event.priority.rank >= PriorityBand.HIGH.rank
        ]
        urgent.sort(key=lambda event: (-event.priority.rank, event.timestamp))
        batch = urgent[:DIFFICULTY_EVENTS_PER_TICK]
        for event in batch:
            handler = self._event_handlers.get(event.type)
            try:
                if handler is not None:
                    handler(event)
            except Exception as exc:
                logger.exception("[Orchestrator] Event %s failed", event.type.value)
                self.bus.publish(
                    OperationFailed(
                        timestamp=self.clock.now(),
                        operation="event_processing",
                        error=str(exc),
                        player_id=event.player_id,
                        details={"event": event.type.value},
                    )
                )
            event.processed = True
        if batch:
            self._events = deque(
                (event for event in self._events if not event.processed), maxlen=DIFFICULTY_EVENT_QUEUE_CAP
            )
        return len(batch)

    def _on_performance_alert(self, event: DifficultyEvent) -> None:
        self._intervene(event.player_id, ImmediateKind.CORRECTION, "performance_alert")

    def _on_frustration_spike(self, event: DifficultyEvent) -> None:
        self._intervene(event.player_id, ImmediateKind.CORRECTION, "frustration_spike")

    def _on_mastery_achieved(self, event: DifficultyEvent) -> None:
        if event.player_id is None or self.profiles.get_profile(event.player_id) is None:
            return
        for adjustment in self.profiles.recommend_adjustment(event.player_id):
            if adjustment.type == AdjustmentType.INCREASE and adjustment.confidence >= self.config.adaptive_threshold:
                self.profiles.apply_adjustment(event.player_id, adjustment)

    def _on_plateau_event(self, event: DifficultyEvent) -> None:
        self._intervene(event.player_id, ImmediateKind.OPPORTUNITY, "plateau_detected")

    def _on_system_overload(self, event: DifficultyEvent) -> None:
        health = float(event.data.get("health", self.state.system_health))
        logger.warning("[Orchestrator] System overload (health %.2f)", health)
        self._set_status(SystemStatus.MAINTENANCE)
        self.bus.publish(SystemOverload(timestamp=self.clock.now(), health=health))

    def _intervene(self, player_id: str | None, kind: ImmediateKind, reason: str) -> bool:
        if player_id is None or player_id not in self._statuses:
            return False
        result = self.adjuster.execute_immediate(player_id, kind, self._game_state)
        if result is None:
            return False
        self._record_adaptation(player_id, "intervention", reason)
        return True

    # ------------------------------------------------------------------
    # Bus subscriptions
    # ------------------------------------------------------------------

    def _subscribe(self) -> None:
        self._unsubscribers = [
            self.bus.subscribe(DifficultyAdjusted, self._on_difficulty_adjusted),
            self.bus.subscribe(PlanExecuted, self._on_plan_executed),
            self.bus.subscribe(PlateauDetected, self._on_plateau_detected),
        ]

    def _on_difficulty_adjusted(self, message: DifficultyAdjusted) -> None:
        status = self._statuses.get(message.player_id)
        if status is None:
            return
        status.current_difficulty = message.to_level
        self._record_adaptation(
            message.player_id,
            "difficulty_change",
            message.reasoning or message.adjustment_type,
            from_value=float(catalog.get_level(message.from_level).rank),
            to_value=float(catalog.get_level(message.to_level).rank),
        )

    def _on_plan_executed(self, message: PlanExecuted) -> None:
        self.state.active_adjustments += message.executed

    def _on_plateau_detected(self, message: PlateauDetected) -> None:
        self._queue_event(
            DifficultyEventType.PLATEAU_DETECTED,
            PriorityBand.HIGH,
            message.player_id,
            {"source": message.source, "stagnant": list(message.stagnant)},
        )

    # ------------------------------------------------------------------
    # Per-tick helpers
    # ------------------------------------------------------------------

    def _refresh_statuses(self) -> None:
        for player_id, status in self._statuses.items():
            profile = self.profiles.get_profile(player_id)
            if profile is None:
                continue
            status.current_difficulty = profile.current_difficulty
            status.skill_progression = profile.skill_assessment.as_dict()
            status.recommendations = [
                adjustment.reasoning for adjustment in profile.adaptation.recommended_adjustments
            ]
            status.warnings = [
                indicator.recommendation for indicator in profile.adaptation.struggle_indicators
            ]

    def _real_time_corrections(self) -> list[str]:
        now = self.clock.now()
        affected = []
        for player_id, status in list(self._statuses.items()):
            if now - status.last_adjustment <= self.config.adjustment_frequency:
                continue
            if status.frustration_level <= CORRECTION_FRUSTRATION and status.engagement_level >= CORRECTION_ENGAGEMENT:
                continue
            if self._intervene(player_id, ImmediateKind.CORRECTION, "real_time_adjustment"):
                affected.append(player_id)
        return affected

    def _emergency_interventions(self) -> list[str]:
        limit = 2.0 * self.config.emergency_intervention_threshold
        affected = []
        for player_id, status in list(self._statuses.items()):
            if status.frustration_level <= limit:
                continue
            if self._intervene(player_id, ImmediateKind.EMERGENCY, "emergency"):
                logger.warning(
                    "[Orchestrator] Emergency intervention for %s (frustration %.2f)",
                    player_id,
                    status.frustration_level,
                )
                affected.append(player_id)
        return affected

    def _record_adaptation(
        self,
        player_id: str,
        kind: str,
        reasoning: str,
        *,
        from_value: float = 0.0,
        to_value: float = 0.0,
    ) -> None:
        status = self._statuses.get(player_id)
        if status is None:
            return
        now = self.clock.now()
        status.adaptation_history.append(
            AdaptationRecord(timestamp=now, type=kind, from_value=from_value, to_value=to_value, reasoning=reasoning)
        )
        if len(status.adaptation_history) > ADAPTATION_HISTORY_CAP:
            del status.adaptation_history[: len(status.adaptation_history) - ADAPTATION_HISTORY_CAP]
        status.last_adjustment = now

    def _average_satisfaction(self) -> float:
        return mean(
            [(1.0 - status.frustration_level) * status.engagement_level for status in self._statuses.values()],
            default=0.75,
        )

    def _update_health(self) -> None:
        self.state.system_health = system_health(
            self._average_satisfaction(),
            self.state.system_load,
            self.state.adaptation_effectiveness,
        )
        self.state.active_players = len(self._statuses)
        self.state.last_update = self.clock.now()

    def _update_load(self, elapsed: float) -> None:
        contribution = min(1.0, max(0.0, elapsed) / MAX_PROCESSING_SEC)
        self.state.system_load = clamp01(LOAD_SMOOTHING * self.state.system_load + (1 - LOAD_SMOOTHING) * contribution)

    def _system_recommendations(self) -> list[str]:
        recommendations = []
        if self.state.system_health < 0.7:
            recommendations.append("Consider reducing system load or adjusting thresholds")
        frustration = mean([status.frustration_level for status in self._statuses.values()], default=0.3)
        if frustration > 0.6:
            recommendations.append("High frustration levels detected - review difficulty settings")
        if len(self._statuses) > 50:
            recommendations.append("High player count - monitor system performance")
        for player_id, items in self._curve_recommendations.items():
            recommendations.extend(f"{player_id}: {item.description}" for item in items)
        return recommendations

    def _set_status(self, status: SystemStatus) -> None:
        previous = self.state.status
        if previous == status:
            return
        self.state.status = status
        self.bus.publish(
            SystemStatusChanged(timestamp=self.clock.now(), from_status=previous.value, to_status=status.value)
        )

    # ------------------------------------------------------------------
    # Translation of host events
    # ------------------------------------------------------------------

    def _performance_record(self, update: PerformanceUpdate) -> PerformanceRecord:
        fields: dict[str, Any] = {"outcome": update.outcome}
        if update.score is not None:
            fields["score"] = update.score
        if update.efficiency is not None:
            fields["efficiency"] = update.efficiency
        if update.errors is not None:
            fields["mistakes"] = update.errors
        if update.duration is not None:
            fields["duration"] = update.duration
        if update.rank is not None:
            fields["rank"] = update.rank
        if update.help_used is not None:
            fields["help_used"] = update.help_used
        if update.satisfaction is not None:
            fields["satisfaction"] = update.satisfaction
        if update.frustration is not None:
            fields["frustration"] = update.frustration
        return PerformanceRecord(**fields)

    def _metric_fields(self, player_id: str, update: PerformanceUpdate) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if update.score is not None:
            fields["current_score"] = update.score
        if update.efficiency is not None:
            fields["efficiency"] = update.efficiency
        if update.errors is not None:
            fields["error_count"] = update.errors
        if update.decision_time is not None:
            fields["decision_time"] = update.decision_time
        if update.help_used is not None:
            fields["help_requests"] = update.help_used
        if update.success is not None:
            previous = self.adjuster.get_metrics(player_id)
            successes = previous.consecutive_successes if previous else 0
            failures = previous.consecutive_failures if previous else 0
            if update.success:
                fields["consecutive_successes"] = successes + 1
                fields["consecutive_failures"] = 0
            else:
                fields["consecutive_successes"] = 0
                fields["consecutive_failures"] = failures + 1

        emotional = {
            name: getattr(update, name)
            for name in ("frustration", "confidence", "engagement", "satisfaction", "stress")
            if getattr(update, name) is not None
        }
        if emotional:
            fields["emotional_state"] = emotional
        return fields
