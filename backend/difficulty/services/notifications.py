"""Typed notifications published by the difficulty services.

Each message is a frozen dataclass; subscribers register for a message class
(or ``Notification`` to receive everything) so a renamed or mistyped event is a
NameError at import time instead of a silently dead subscription.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from shared.config.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    timestamp: float


@dataclass(frozen=True)
class DifficultyAdjusted(Notification):
    player_id: str
    from_level: str
    to_level: str
    adjustment_type: str
    transition_type: str
    reasoning: str = ""


@dataclass(frozen=True)
class ParametersCustomized(Notification):
    player_id: str
    level: str
    direction: str
    magnitude: float


@dataclass(frozen=True)
class PlateauDetected(Notification):
    player_id: str
    source: str
    stagnant: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlateauResolved(Notification):
    player_id: str
    source: str
    duration: float


@dataclass(frozen=True)
class ChallengeAssessed(Notification):
    player_id: str
    challenge_id: str
    instance_id: str
    result: str
    overall_score: float


@dataclass(frozen=True)
class SystemOverload(Notification):
    health: float


@dataclass(frozen=True)
class PlayerAdded(Notification):
    player_id: str
    difficulty: str


@dataclass(frozen=True)
class PlayerRemoved(Notification):
    player_id: str


@dataclass(frozen=True)
class ActionApplied(Notification):
    """Base for the five adjustment action notifications."""

    player_id: str
    target: str
    old_value: float
    new_value: float
    effective_at: float


@dataclass(frozen=True)
class ParametersAdjusted(ActionApplied):
    pass


@dataclass(frozen=True)
class ContentModified(ActionApplied):
    pass


@dataclass(frozen=True)
class AssistanceAdjusted(ActionApplied):
    pass


@dataclass(frozen=True)
class FeedbackAdjusted(ActionApplied):
    pass


@dataclass(frozen=True)
class ChallengeTypeAdjusted(ActionApplied):
    pass


@dataclass(frozen=True)
class PlanExecuted(Notification):
    player_id: str
    priority: str
    executed: int
    skipped: int
    failed: int
    reasoning: str


@dataclass(frozen=True)
class AdjusterWarning(Notification):
    player_id: str
    message: str


@dataclass(frozen=True)
class MilestoneReached(Notification):
    player_id: str
    skill: str
    level: float


@dataclass(frozen=True)
class OptimizationPhaseChanged(Notification):
    player_id: str
    from_phase: str
    to_phase: str


@dataclass(frozen=True)
class SystemStatusChanged(Notification):
    from_status: str
    to_status: str


@dataclass(frozen=True)
class OperationFailed(Notification):
    operation: str
    error: str
    player_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


N = TypeVar("N", bound=Notification)
Handler = Callable[[Any], None]


class NotificationBus:
    """Synchronous in-process fan-out of typed notifications."""

    def __init__(self, history_size: int = 500) -> None:
        self._handlers: dict[type[Notification], list[Handler]] = {}
        self.history: deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, message_type: type[N], handler: Callable[[N], None]) -> Callable[[], None]:
        handlers = self._handlers.setdefault(message_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, message: Notification) -> None:
        self.history.append(message)
        for message_type in type(message).__mro__:
            for handler in list(self._handlers.get(message_type, ())):
                try:
                    handler(message)
                except Exception:
                    logger.exception(
                        "[Notifications] Handler %r failed for %s",
                        handler,
                        type(message).__name__,
                    )

    def of_type(self, message_type: type[N]) -> list[N]:
        return [message for message in self.history if isinstance(message, message_type)]
