"""Application settings via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings"]


class Settings(BaseSettings):
    """Central configuration, read from the environment."""

    model_config = SettingsConfigDict(env_prefix="CLINICFLOW_")

    # Target environment
    environment: str = "dev"

    # PostgreSQL (empty → in-memory stores)
    pg_dsn: str = ""
    pg_statement_timeout_ms: int = 5000

    # Redis (empty → in-process check-in locks)
    redis_url: str = ""
    lock_ttl_seconds: int = 10

    # Store reads issued by reports
    store_timeout_seconds: float = 5.0

    # Check-in payments
    max_amount: float = 999_999.99

    # Queue listing
    queue_default_limit: int = 50
    queue_max_limit: int = 100

    # Report range policy (days)
    daily_max_range_days: int = 365
    weekly_max_range_days: int = 365
    monthly_max_range_days: int = 730

    # Trend analytics
    trend_dead_band: float = 5.0
    problem_patient_threshold: int = 2
    problem_patient_limit: int = 10

    # Logging
    log_json: bool = True
    log_level: str = "INFO"

    # Populate the in-memory stores with synthetic history on startup
    seed_demo_data: bool = False
