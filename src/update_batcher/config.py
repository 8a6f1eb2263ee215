"""Configuration module: batching options and environment-driven settings."""

import logging
import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BatchConfig(BaseModel):
    """Flush policy for one scheduler, resolved once at construction."""

    model_config = ConfigDict(frozen=True)

    delay: float = Field(default=0.15, ge=0)
    max_delay: float = Field(default=0.5, gt=0)
    max_batch_size: int = Field(default=50, ge=1)
    enabled: bool = True


class Settings(BaseModel):
    batch_delay: float = 0.15
    batch_max_delay: float = 0.5
    batch_max_batch_size: int = 50
    batch_enabled: bool = True
    push_interval: float = Field(default=0.1, gt=0)
    update_interval: float = Field(default=0.2, gt=0)
    run_seconds: float = Field(default=0.0, ge=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        numeric = getattr(logging, v.upper(), None)
        if not isinstance(numeric, int):
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            delay=self.batch_delay,
            max_delay=self.batch_max_delay,
            max_batch_size=self.batch_max_batch_size,
            enabled=self.batch_enabled,
        )


def _load_from_env() -> Settings:
    """Build Settings from environment variables."""
    env = {}
    for field_name in Settings.model_fields:
        env_key = field_name.upper()
        val = os.environ.get(env_key)
        if val is not None:
            env[field_name] = val
    return Settings(**env)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return _load_from_env()
