import logging
import os

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

VERBOSITY_LEVELS = {
    "minimal": logging.WARNING,
    "standard": logging.INFO,
    "detailed": logging.DEBUG,
    "debug": logging.DEBUG,
}


def resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    name = level.strip()
    if name.lower() in VERBOSITY_LEVELS:
        return VERBOSITY_LEVELS[name.lower()]
    return logging._nameToLevel.get(name.upper(), logging.INFO)


def configure_logging(level: int | str | None = None) -> None:
    logging.basicConfig(level=resolve_level(level), format=DEFAULT_LOG_FORMAT)


def set_verbosity(verbosity: str, logger_name: str = "difficulty") -> None:
    """Adjust the difficulty package loggers without touching the root handler."""
    logging.getLogger(logger_name).setLevel(resolve_level(verbosity))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
