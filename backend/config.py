from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings

from backend.srs.scheduler import SchedulerConfig


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Flashdeck"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'flashdeck.db'}"
    default_owner: str = "local"
    max_cards_per_session: int = 50
    debug: bool = False

    # Scheduling policy
    learning_steps: list[float] = [1, 10]  # minutes
    relearning_steps: list[float] = [1]  # minutes
    graduating_interval_days: float = 1
    easy_interval_days: float = 4
    min_interval_after_lapse_days: float = 1
    default_ease: float = 2.5
    ease_floor: float = 1.3
    hard_ease_penalty: float = 0.15
    again_ease_penalty: float = 0.20
    easy_ease_bonus: float = 0.15
    hard_interval_multiplier: float = 1.2
    easy_bonus_multiplier: float = 1.3

    model_config = {"env_prefix": "FLASHDECK_", "env_file": ".env"}

    def scheduler_config(self) -> SchedulerConfig:
        """Build the immutable scheduler configuration from these settings."""
        return SchedulerConfig(
            learning_steps=tuple(self.learning_steps),
            relearning_steps=tuple(self.relearning_steps),
            graduating_interval_days=self.graduating_interval_days,
            easy_interval_days=self.easy_interval_days,
            min_interval_after_lapse_days=self.min_interval_after_lapse_days,
            default_ease=self.default_ease,
            ease_floor=self.ease_floor,
            hard_ease_penalty=self.hard_ease_penalty,
            again_ease_penalty=self.again_ease_penalty,
            easy_ease_bonus=self.easy_ease_bonus,
            hard_interval_multiplier=self.hard_interval_multiplier,
            easy_bonus_multiplier=self.easy_bonus_multiplier,
        )


settings = Settings()
