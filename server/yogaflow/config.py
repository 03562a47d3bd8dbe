# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Read once at process start; request handlers receive it through
    ``app.state`` rather than reading the environment themselves.
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ── Identity provider (cookie sessions) ──────────────────────────────────
    supabase_url: str = ""
    supabase_anon_key: SecretStr = SecretStr("")
    session_cookie_name: str = "sb-access-token"
    code_verifier_cookie_name: str = "sb-code-verifier"
    session_cookie_max_age: int = 60 * 60 * 24 * 7
    login_path: str = "/login"
    identity_timeout_seconds: float = 5.0

    # ── Generation backend ───────────────────────────────────────────────────
    generation_backend: str = "template"  # "template" | "openai"
    openai_api_key: SecretStr = SecretStr("")
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 4000
    generation_timeout_seconds: float = 60.0
    guidelines_path: str = "yogaguidelines.md"

    # ── Result checks ────────────────────────────────────────────────────────
    # Accepted deviation of total pose time from the requested duration,
    # as a fraction of the requested duration.
    duration_tolerance: float = 0.5

    # ── HTTP surface ─────────────────────────────────────────────────────────
    allowed_origins: str = ""
    generation_rate_limit: str = "30/minute"
    enable_debug_routes: bool = False

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
