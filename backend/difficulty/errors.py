"""Exception hierarchy for the difficulty control system."""

from __future__ import annotations


class DifficultyError(ValueError):
    """Base class for rejected difficulty operations; state is left untouched."""


class ProfileAlreadyExists(DifficultyError):
    """Raised when a profile is initialized twice for the same player."""


class ProfileNotFound(DifficultyError):
    """Raised when an operation references an unknown player profile."""


class LevelNotFound(DifficultyError):
    """Raised when a difficulty level id is not in the catalog."""


class DefinitionNotFound(DifficultyError):
    """Raised when a challenge definition id is unknown."""


class InstanceNotFound(DifficultyError):
    """Raised when a challenge instance id is not active."""


class ProgressionNotFound(DifficultyError):
    """Raised when no progression is tracked for the player."""


class ProgressionAlreadyExists(DifficultyError):
    """Raised when a progression is initialized twice for the same player."""
