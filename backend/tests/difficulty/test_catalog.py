import pytest

from difficulty import catalog
from difficulty.errors import DifficultyError, LevelNotFound


def test_levels_are_ordered_by_rank() -> None:
    ranks = [level.rank for level in catalog.ordered_levels()]
    assert ranks == sorted(ranks)
    assert catalog.ordered_levels()[0].id == "tutorial"
    assert catalog.ordered_levels()[-1].id == "master"


def test_neighbours_stop_at_catalog_edges() -> None:
    assert catalog.next_level("normal").id == "hard"
    assert catalog.previous_level("normal").id == "easy"
    assert catalog.next_level("master").id == "master"
    assert catalog.previous_level("tutorial").id == "tutorial"


def test_unknown_level_lists_available_ids() -> None:
    with pytest.raises(LevelNotFound) as exc_info:
        catalog.get_level("nightmare")
    assert "normal" in str(exc_info.value)
    assert isinstance(exc_info.value, DifficultyError)
    assert isinstance(exc_info.value, ValueError)


def test_tier_multiplier_defaults_to_one() -> None:
    assert catalog.tier_multiplier("master") == 2.0
    assert catalog.tier_multiplier("custom") == 1.0
