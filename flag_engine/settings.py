"""Runtime configuration loaded from the environment."""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, enum.Enum):
    """Possible log levels."""

    NOTSET = "NOTSET"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    FATAL = "FATAL"


class FeatureToggles(BaseModel):
    """Environment driven values for the built-in default flags."""

    biometrics: bool = True
    offline_mode: bool = True
    push_notifications: bool = False
    performance_monitoring: bool = False


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables prefixed by ``FLAG_ENGINE_``.
    Nested toggles use a double underscore, e.g.
    ``FLAG_ENGINE_FEATURES__PUSH_NOTIFICATIONS=true``.
    """

    host: str = "127.0.0.1"
    port: int = 8000
    workers_count: int = 1
    reload: bool = False

    # One of "dev", "pytest" or "prod".
    environment: str = "dev"

    log_level: LogLevel = LogLevel.INFO

    redis_url: str = "redis://localhost:6379/0"
    storage_key: str = Field(default="@feature_flags", min_length=1)
    snapshot_version: str = "1.0"

    features: FeatureToggles = Field(default_factory=FeatureToggles)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FLAG_ENGINE_",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        return self.environment == "dev"


settings = Settings()
