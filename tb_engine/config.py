"""
Engine configuration using pydantic-settings.

Loads thresholds and tolerances from environment variables (prefix
``TB_ENGINE_``) with sensible defaults.
"""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TB_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Double-entry tolerance (1 cent)
    balance_tolerance: Decimal = Decimal("0.01")

    # Classification
    auto_map_threshold: float = 0.8
    min_match_confidence: float = 0.3
    suggestion_confidence: float = 0.6

    # Anomaly detection (large account movements)
    anomaly_std_devs: float = 3.0
    anomaly_min_balances: int = 10

    # Journal entries above this amount raise a LARGE_AMOUNT warning
    large_entry_amount: Decimal = Decimal("1000000")

    # Custom rule file (defaults to the packaged rule set)
    rules_path: Optional[Path] = None

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
