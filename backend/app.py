"""Headless driver: runs the difficulty orchestrator against scripted players.

    python app.py --rounds 60 --players 3
"""

import argparse
import random

from difficulty.models import GameOutcome, GameStateSnapshot, PerformanceUpdate, PlayerSeed
from difficulty.services.clock import ManualClock
from difficulty.services.orchestrator_service import DifficultyOrchestrator
from shared.config.logging import configure_logging, get_logger

configure_logging()
logger = get_logger("app")

ROUND_SEC = 30.0


def run_startup_task(name: str, initializer) -> None:
    try:
        logger.info("Initializing %s...", name)
        initializer()
        logger.info("%s initialized.", name)
    except Exception:
        logger.exception("Error initializing %s.", name)
        raise


def simulated_update(rng: random.Random, skill: float) -> PerformanceUpdate:
    won = rng.random() < skill
    frustration = min(1.0, max(0.0, (0.6 - skill) + rng.gauss(0.0, 0.15)))
    return PerformanceUpdate(
        outcome=GameOutcome.VICTORY if won else GameOutcome.DEFEAT,
        score=rng.uniform(200.0, 1500.0) * (1.0 + skill),
        efficiency=min(1.0, max(0.0, skill + rng.gauss(0.0, 0.1))),
        errors=rng.randint(0, 6),
        duration=rng.uniform(600.0, 2400.0),
        decision_time=rng.uniform(2.0, 20.0),
        success=won,
        frustration=frustration,
        engagement=min(1.0, max(0.0, 0.9 - frustration / 2.0)),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate adaptive difficulty for scripted players")
    parser.add_argument("--rounds", type=int, default=40)
    parser.add_argument("--players", type=int, default=3)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    rng = random.Random(args.seed)
    clock = ManualClock()
    orchestrator = DifficultyOrchestrator(clock=clock, rng=random.Random(args.seed))
    players = [PlayerSeed(id=f"player-{index + 1}", name=f"Player {index + 1}") for index in range(args.players)]
    skills = {player.id: rng.uniform(0.2, 0.9) for player in players}

    game = GameStateSnapshot(players=players)
    run_startup_task("Difficulty orchestrator", lambda: orchestrator.initialize(game))

    try:
        for round_number in range(1, args.rounds + 1):
            clock.advance(ROUND_SEC)
            game = game.model_copy(update={"round": round_number, "elapsed_seconds": clock.now()})
            for player in players:
                orchestrator.update_player_performance(player.id, simulated_update(rng, skills[player.id]), game)
            response = orchestrator.process_game_update(game)
            if response.warnings:
                logger.warning("Round %s: %s", round_number, "; ".join(response.warnings))
    finally:
        orchestrator.shutdown()

    for status in orchestrator.player_statuses():
        logger.info(
            "%s (skill %.2f) finished at %s after %s adaptations",
            status.player_id,
            skills[status.player_id],
            status.current_difficulty,
            len(status.adaptation_history),
        )
    logger.info("System metrics: %s", orchestrator.get_system_metrics().model_dump())


if __name__ == "__main__":
    main()
