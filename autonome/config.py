"""Configuration settings for the autonome core."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from autonome.utils import get_autonome_home


class Settings(BaseSettings):
    """Core settings loaded from ``AUTONOME_*`` environment variables."""

    # Storage
    data_dir: Optional[Path] = None
    db_path: Optional[Path] = None  # Defaults to <data_dir>/<core_id>/ledger.db
    core_id: str = "default"

    # Mastery
    mastery_threshold: float = Field(0.85, gt=0.0, lt=1.0)
    tracker_min_attempts: int = 10
    tracker_min_success_rate: float = 0.8
    controller_min_attempts: int = 5
    mastery_window_days: int = 30
    local_top_k: int = 10

    # Autonomy and learning rate
    initial_learning_rate: float = 0.03
    learning_rate_floor: float = 0.01
    learning_rate_cap: float = 0.05
    autonomy_increment: float = 0.1

    # Timers (seconds)
    decision_interval_seconds: float = Field(5.0, gt=0.0)
    prune_interval_seconds: float = Field(3600.0, gt=0.0)
    recalibrate_interval_seconds: float = Field(6 * 3600.0, gt=0.0)
    evolve_interval_seconds: float = Field(24 * 3600.0, gt=0.0)
    shutdown_grace_seconds: float = 5.0

    # Decision engine
    heap_threshold_bytes: int = 512 * 1024 * 1024
    thought_history_size: int = 100

    # Cloud provider (AUTONOME_PROVIDER, AUTONOME_MODEL)
    provider: Optional[str] = None
    model: Optional[str] = None  # Defaults to the provider's registered model
    ollama_base_url: str = "http://localhost:11434"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "AUTONOME_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore unrelated AUTONOME_ vars

    @model_validator(mode="after")
    def _check_learning_rate_bounds(self) -> "Settings":
        if not self.learning_rate_floor <= self.initial_learning_rate <= self.learning_rate_cap:
            raise ValueError(
                "initial_learning_rate must lie within [learning_rate_floor, learning_rate_cap]"
            )
        return self

    @property
    def resolved_data_dir(self) -> Path:
        return self.data_dir if self.data_dir is not None else get_autonome_home()

    @property
    def resolved_db_path(self) -> Path:
        if self.db_path is not None:
            return self.db_path
        return self.resolved_data_dir / self.core_id / "ledger.db"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
