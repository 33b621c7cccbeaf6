import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


# Scheduler cadence (seconds)
DIFFICULTY_ADJUSTMENT_FREQUENCY_SEC = float(os.getenv("DIFFICULTY_ADJUSTMENT_FREQUENCY_SEC", "10"))
DIFFICULTY_OPTIMIZATION_FREQUENCY_SEC = float(os.getenv("DIFFICULTY_OPTIMIZATION_FREQUENCY_SEC", "300"))
DIFFICULTY_ASSESSMENT_FREQUENCY_SEC = float(os.getenv("DIFFICULTY_ASSESSMENT_FREQUENCY_SEC", "30"))
DIFFICULTY_MAINTENANCE_INTERVAL_SEC = float(os.getenv("DIFFICULTY_MAINTENANCE_INTERVAL_SEC", "60"))

# Control thresholds
DIFFICULTY_ADAPTIVE_THRESHOLD = float(os.getenv("DIFFICULTY_ADAPTIVE_THRESHOLD", "0.7"))
DIFFICULTY_EMERGENCY_THRESHOLD = float(os.getenv("DIFFICULTY_EMERGENCY_THRESHOLD", "0.3"))
DIFFICULTY_ADAPTIVE_MODE = _env_bool("DIFFICULTY_ADAPTIVE_MODE", True)

# Event queue
DIFFICULTY_EVENT_QUEUE_CAP = 1000
DIFFICULTY_EVENT_TTL_SEC = 3600
DIFFICULTY_EVENTS_PER_TICK = 10

# Logging verbosity: minimal | standard | detailed | debug
DIFFICULTY_LOG_LEVEL = os.getenv("DIFFICULTY_LOG_LEVEL", "standard")

# Seed for adaptive_scale draws; unset means time-seeded
DIFFICULTY_RANDOM_SEED = _env_int("DIFFICULTY_RANDOM_SEED")
