"""
Catalog of difficulty levels with their gameplay parameter bundles.
"""

from difficulty.errors import LevelNotFound
from difficulty.models import DifficultyLevel, DifficultyParameters

_PARAMETER_ROWS = {
    # id: (name, rank, description, parameters)
    "tutorial": ("Tutorial", 1, "Learn the basic game mechanics", dict(
        ai_skill_level=2, ai_aggressiveness=1, ai_predictability=8, ai_resource_management=3,
        starting_money=2000, salary_multiplier=1.5, property_price_variation=0.10, bankruptcy_threshold=0,
        event_frequency=0.3, event_severity=0.2, negative_event_chance=0.10, randomness_level=0.2,
        turn_time_limit=0, decision_pressure=0.1, multitasking_requirement=0.1,
        hidden_information=0.1, uncertainty_level=0.2, prediction_accuracy=0.9,
        competition_intensity=0.2, player_advantage_balancing=0.8, catchup_mechanisms=0.9,
    )),
    "beginner": ("Beginner", 2, "Gentle challenges for new players", dict(
        ai_skill_level=3, ai_aggressiveness=2, ai_predictability=7, ai_resource_management=4,
        starting_money=1800, salary_multiplier=1.3, property_price_variation=0.15, bankruptcy_threshold=100,
        event_frequency=0.4, event_severity=0.3, negative_event_chance=0.20, randomness_level=0.3,
        turn_time_limit=0, decision_pressure=0.2, multitasking_requirement=0.2,
        hidden_information=0.2, uncertainty_level=0.3, prediction_accuracy=0.8,
        competition_intensity=0.3, player_advantage_balancing=0.7, catchup_mechanisms=0.8,
    )),
    "easy": ("Easy", 3, "Relaxed play", dict(
        ai_skill_level=4, ai_aggressiveness=3, ai_predictability=6, ai_resource_management=5,
        starting_money=1600, salary_multiplier=1.2, property_price_variation=0.20, bankruptcy_threshold=200,
        event_frequency=0.5, event_severity=0.4, negative_event_chance=0.25, randomness_level=0.4,
        turn_time_limit=0, decision_pressure=0.3, multitasking_requirement=0.3,
        hidden_information=0.3, uncertainty_level=0.4, prediction_accuracy=0.7,
        competition_intensity=0.4, player_advantage_balancing=0.6, catchup_mechanisms=0.7,
    )),
    "normal": ("Normal", 5, "Standard game experience", dict(
        ai_skill_level=5, ai_aggressiveness=5, ai_predictability=5, ai_resource_management=6,
        starting_money=1500, salary_multiplier=1.0, property_price_variation=0.25, bankruptcy_threshold=300,
        event_frequency=0.6, event_severity=0.5, negative_event_chance=0.30, randomness_level=0.5,
        turn_time_limit=120, decision_pressure=0.5, multitasking_requirement=0.5,
        hidden_information=0.4, uncertainty_level=0.5, prediction_accuracy=0.6,
        competition_intensity=0.5, player_advantage_balancing=0.5, catchup_mechanisms=0.5,
    )),
    "hard": ("Hard", 7, "Demanding opponents and tighter economy", dict(
        ai_skill_level=7, ai_aggressiveness=6, ai_predictability=4, ai_resource_management=7,
        starting_money=1400, salary_multiplier=0.9, property_price_variation=0.30, bankruptcy_threshold=400,
        event_frequency=0.7, event_severity=0.6, negative_event_chance=0.35, randomness_level=0.6,
        turn_time_limit=90, decision_pressure=0.7, multitasking_requirement=0.7,
        hidden_information=0.5, uncertainty_level=0.6, prediction_accuracy=0.5,
        competition_intensity=0.7, player_advantage_balancing=0.3, catchup_mechanisms=0.3,
    )),
    "expert": ("Expert", 8, "Advanced play with little forgiveness", dict(
        ai_skill_level=8, ai_aggressiveness=7, ai_predictability=3, ai_resource_management=8,
        starting_money=1300, salary_multiplier=0.8, property_price_variation=0.35, bankruptcy_threshold=500,
        event_frequency=0.8, event_severity=0.7, negative_event_chance=0.40, randomness_level=0.7,
        turn_time_limit=60, decision_pressure=0.8, multitasking_requirement=0.8,
        hidden_information=0.6, uncertainty_level=0.7, prediction_accuracy=0.4,
        competition_intensity=0.8, player_advantage_balancing=0.2, catchup_mechanisms=0.2,
    )),
    "master": ("Master", 10, "Highest difficulty", dict(
        ai_skill_level=9, ai_aggressiveness=8, ai_predictability=2, ai_resource_management=9,
        starting_money=1200, salary_multiplier=0.7, property_price_variation=0.40, bankruptcy_threshold=600,
        event_frequency=0.9, event_severity=0.8, negative_event_chance=0.45, randomness_level=0.8,
        turn_time_limit=45, decision_pressure=0.9, multitasking_requirement=0.9,
        hidden_information=0.7, uncertainty_level=0.8, prediction_accuracy=0.3,
        competition_intensity=0.9, player_advantage_balancing=0.1, catchup_mechanisms=0.1,
    )),
}

DIFFICULTY_CATALOG: dict[str, DifficultyLevel] = {
    level_id: DifficultyLevel(
        id=level_id,
        name=name,
        rank=rank,
        description=description,
        parameters=DifficultyParameters(**params),
    )
    for level_id, (name, rank, description, params) in _PARAMETER_ROWS.items()
}

# Multipliers applied to challenge complexity per tier.
TIER_MULTIPLIERS = {
    "tutorial": 0.3,
    "beginner": 0.5,
    "easy": 0.7,
    "normal": 1.0,
    "hard": 1.3,
    "expert": 1.6,
    "master": 2.0,
}


def get_level(level_id: str) -> DifficultyLevel:
    """Get a difficulty level by id. Raises LevelNotFound if unknown."""
    if level_id not in DIFFICULTY_CATALOG:
        raise LevelNotFound(
            f"Unknown difficulty level: '{level_id}'. "
            f"Available: {list(DIFFICULTY_CATALOG.keys())}"
        )
    return DIFFICULTY_CATALOG[level_id]


def ordered_levels() -> list[DifficultyLevel]:
    return sorted(DIFFICULTY_CATALOG.values(), key=lambda level: level.rank)


def next_level(level_id: str) -> DifficultyLevel:
    """Adjacent harder level, or the same level at the top of the catalog."""
    levels = ordered_levels()
    index = levels.index(get_level(level_id))
    return levels[min(index + 1, len(levels) - 1)]


def previous_level(level_id: str) -> DifficultyLevel:
    """Adjacent easier level, or the same level at the bottom of the catalog."""
    levels = ordered_levels()
    index = levels.index(get_level(level_id))
    return levels[max(index - 1, 0)]


def tier_multiplier(level_id: str) -> float:
    return TIER_MULTIPLIERS.get(level_id, 1.0)
