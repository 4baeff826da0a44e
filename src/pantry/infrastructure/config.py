"""Runtime settings, read from ``PANTRY_*`` environment variables or ``.env``."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# When installed in editable mode the project root is the repo root.
_DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"


class Settings(BaseSettings):
    data_dir: Path = _DEFAULT_DATA_DIR

    # Reservation ledger
    ledger_lock_timeout_seconds: float = 5.0
    reservation_workers: int = 4

    # Waste/return queue
    waste_decision_ttl_hours: int = 24
    expiring_soon_hours: int = 6

    # Availability
    max_orderable_sentinel: int = 999
    strict_recipe_check: bool = True

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="PANTRY_", case_sensitive=False, extra="ignore"
    )


def get_settings() -> Settings:
    return Settings()
