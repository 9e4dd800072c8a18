"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system uses a local fallback. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Auth ─────────────────────────────────────────────────────────
    use_auth: bool = Field(default=True, alias="FF_USE_AUTH")
    # ON  → Bearer JWT validated with JWT_SECRET.
    # OFF → Dev user injected (user_id="dev-user", admin). No token needed.

    # ── Remote tier ──────────────────────────────────────────────────
    use_remote_store: bool = Field(default=True, alias="FF_USE_REMOTE_STORE")
    # ON  → Memory, knowledge and profiles sync to DATABASE_URL.
    # OFF → Local tier only (./local_storage/). Everything still works.

    # ── LLM Provider ─────────────────────────────────────────────────
    llm_provider: str = Field(default="primary", alias="FF_LLM_PROVIDER")
    # "primary"   → Groq (llama). Needs GROQ_API_KEY.
    # "secondary" → Google Gemini. Needs GEMINI_API_KEY.
    # Only the startup default; the operator's choice is persisted locally.

    # ── Manual mode ──────────────────────────────────────────────────
    manual_mode: bool = Field(default=False, alias="FF_MANUAL_MODE")
    # ON → no model call at all, a templated draft is returned instead.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
