"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env relative to the project root
_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Document store ---
    store_backend: str = "supabase"  # supabase | memory
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_schema: str = "squadpool"
    write_batch_size: int = 450

    # --- Live provider (football-data.org v4) ---
    football_data_token: str | None = None
    football_data_api_base: str = "https://api.football-data.org/v4"
    football_data_competition: str = "WC"
    football_data_statuses: str = "SCHEDULED,TIMED,IN_PLAY,PAUSED,FINISHED"
    provider_timeout_s: float = 12.0
    provider_max_retries: int = 1
    provider_backoff_s: float = 1.0

    # --- Ingestion ---
    live_scores_provider: str = "stub"
    team_lookup_ttl_s: float = 300.0
    live_ops_history_limit: int = 12

    # --- Scoring / transfers ---
    transfer_penalty_points: float = 15.0
    transfer_scoring_version: str = "v1-transfer-penalty"
    scoring_version: str = "v1"
    transaction_max_attempts: int = 5

    # --- Alerting thresholds ---
    scheduler_interval_minutes: int = 10
    stale_after_intervals: int = 3
    critical_failure_count: int = 3

    # --- App ---
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def statuses(self) -> list[str]:
        return [s.strip() for s in self.football_data_statuses.split(",") if s.strip()]

    @property
    def has_provider_token(self) -> bool:
        return bool(self.football_data_token and self.football_data_token.strip())


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
