"""
Serenity Configuration
======================
All environment variables in one place. Pydantic Settings validates
types at startup so a bad timeout or path fails on boot, not mid-sync.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Supabase (remote document store + auth) ---
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""  # client key; RLS scopes rows to the signed-in user

    # --- Anthropic / Claude API (chat companion) ---
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_max_tokens: int = 512
    companion_timeout_seconds: float = 60.0
    companion_max_attempts: int = 3
    # Attempt n waits backoff * (n + 1) seconds after a 429
    companion_retry_backoff_seconds: float = 5.0
    companion_history_limit: int = 10

    # --- Local cache ---
    local_db_path: str = "serenity.db"

    # --- Sync ---
    remote_write_timeout_seconds: float = 5.0
    # Failed sweeps before a record is parked in the dead-letter state
    sync_max_attempts: int = 10

    # --- Connectivity ---
    connectivity_poll_interval_seconds: float = 2.0

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    # --- Feature flags ---
    # Kill switch: if False, every chat reply comes from the offline
    # responder and nothing is sent to the LLM.
    enable_ai_companion: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
