"""Centralised client settings loaded from environment / .env file."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend
    api_base_url: str = "http://localhost:8000"
    http_timeout_seconds: float = 60.0  # ceiling for every request

    # Session (used by the CLI entry point only)
    auth_token: Optional[str] = None
    user_id: Optional[int] = None
    rider_id: Optional[int] = None

    # Loops
    location_sync_interval_seconds: float = 120.0  # rider upload period while online
    dispatch_poll_interval_seconds: float = 10.0  # customer tracking refresh
    significant_change_threshold_m: float = 10.0

    # Pet-taxi pricing
    pet_taxi_base_fare: float = 5.0  # RM
    pet_taxi_rate_per_km: float = 1.5  # RM / km

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
