"""Application configuration loaded from environment variables."""

from dataclasses import dataclass
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from signal_outcomes.schemas.enums import SameBarPolicy, TimeoutMode


@dataclass(frozen=True)
class ResolverConfig:
    """Explicit settings threaded into OutcomeResolver.

    All durations are in milliseconds except the bar interval.
    """

    interval_min: int = 5
    grace_ms: int = 2 * 60_000
    retry_after_ms: int = 10 * 60_000
    invalidate_after_ms: int = 24 * 60 * 60_000
    same_bar_policy: SameBarPolicy = SameBarPolicy.CONSERVATIVE
    horizons: tuple[int, ...] = (15, 30, 60, 120, 240)


@dataclass(frozen=True)
class ManagedConfig:
    """Explicit settings threaded into the managed position simulator."""

    window_ms: int = 24 * 60 * 60_000
    risk_per_trade: float = 15.0
    timeout_mode: TimeoutMode = TimeoutMode.MARKET_CLOSE
    interval_min: int = 5
    same_bar_policy: SameBarPolicy = SameBarPolicy.CONSERVATIVE


class Settings(BaseSettings):
    """Application settings sourced from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Outcome resolution
    outcome_horizons_min: list[int] = Field(default_factory=lambda: [15, 30, 60, 120, 240])
    bar_interval_min: int = Field(default=5, ge=1)
    outcome_grace_seconds: int = Field(default=120, ge=0)
    outcome_retry_after_seconds: int = Field(default=600, ge=0)
    outcome_invalidate_after_minutes: int = Field(default=1440, ge=0)
    outcome_batch_size: int = Field(default=25, ge=1)
    same_bar_policy: SameBarPolicy = SameBarPolicy.CONSERVATIVE

    # Managed position (partial at TP1, breakeven runner)
    managed_window_minutes: int = Field(default=1440, ge=1)
    managed_risk_per_trade: float = Field(default=15.0, gt=0)
    managed_timeout_mode: TimeoutMode = TimeoutMode.MARKET_CLOSE

    # Scheduling
    resolver_interval_seconds: int = Field(default=60, ge=1)

    @field_validator("outcome_horizons_min")
    @classmethod
    def check_horizons(cls, value: list[int]) -> list[int]:
        if not value or any(h <= 0 for h in value):
            raise ValueError("outcome_horizons_min must be a non-empty list of positive minutes")
        return sorted(set(value))

    @model_validator(mode="after")
    def normalize_database_url(self) -> "Settings":
        """Ensure DATABASE_URL uses the asyncpg driver.

        Hosting providers supply postgresql:// but SQLAlchemy async
        requires postgresql+asyncpg://.
        """
        url = self.database_url
        if url.startswith("postgresql://"):
            self.database_url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.database_url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    def resolver_config(self) -> ResolverConfig:
        return ResolverConfig(
            interval_min=self.bar_interval_min,
            grace_ms=self.outcome_grace_seconds * 1000,
            retry_after_ms=self.outcome_retry_after_seconds * 1000,
            invalidate_after_ms=self.outcome_invalidate_after_minutes * 60_000,
            same_bar_policy=self.same_bar_policy,
            horizons=tuple(self.outcome_horizons_min),
        )

    def managed_config(self) -> ManagedConfig:
        return ManagedConfig(
            window_ms=self.managed_window_minutes * 60_000,
            risk_per_trade=self.managed_risk_per_trade,
            timeout_mode=self.managed_timeout_mode,
            interval_min=self.bar_interval_min,
            same_bar_policy=self.same_bar_policy,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance.

    Only the process edge (main, workers) reads this; services take the
    frozen configs built from it.
    """
    return Settings()
