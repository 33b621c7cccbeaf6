import logging

import pytest
from pydantic import ValidationError

from difficulty.models import DifficultySystemConfig
from shared.config.logging import resolve_level, set_verbosity


def test_verbosity_names_map_to_levels() -> None:
    assert resolve_level("minimal") == logging.WARNING
    assert resolve_level("standard") == logging.INFO
    assert resolve_level("Detailed") == logging.DEBUG
    assert resolve_level("ERROR") == logging.ERROR
    assert resolve_level(logging.CRITICAL) == logging.CRITICAL


def test_log_level_env_is_the_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "warning")
    assert resolve_level(None) == logging.WARNING

    monkeypatch.delenv("LOG_LEVEL")
    assert resolve_level(None) == logging.INFO


def test_set_verbosity_only_touches_package_logger() -> None:
    root_level = logging.getLogger().level
    set_verbosity("minimal")
    try:
        assert logging.getLogger("difficulty").level == logging.WARNING
        assert logging.getLogger().level == root_level
    finally:
        logging.getLogger("difficulty").setLevel(logging.NOTSET)


def test_config_updates_are_validated() -> None:
    config = DifficultySystemConfig()

    updated = config.updated(emergency_intervention_threshold=0.4, log_level="debug")

    assert updated.emergency_intervention_threshold == 0.4
    assert updated is not config
    with pytest.raises(ValidationError):
        config.updated(log_level="verbose")
    with pytest.raises(ValidationError):
        config.updated(optimization_frequency=0.0)
