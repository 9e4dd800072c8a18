"""
Central configuration. All API keys and settings in one place.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Environment ---
    env: str = Field(default="development", alias="ENV")
    log_level: str = Field(default="info", alias="LOG_LEVEL")
    debug: bool = Field(default=False, alias="DEBUG")

    # --- Remote tier (database) ---
    database_url: str = Field(
        default="sqlite+aiosqlite:///./encore.db",
        alias="DATABASE_URL",
    )

    # --- Local tier ---
    local_storage_path: str = Field(default="./local_storage", alias="LOCAL_STORAGE_PATH")

    # --- Auth (Supabase-style JWT) ---
    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_audience: str = Field(default="authenticated", alias="JWT_AUDIENCE")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # --- LLM providers ---
    # primary = Groq (OpenAI-compatible), secondary = Google Gemini
    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1", alias="GROQ_BASE_URL")
    groq_model: str = Field(default="llama-3.3-70b-versatile", alias="GROQ_MODEL")
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    default_llm_temperature: float = Field(default=0.7, alias="DEFAULT_LLM_TEMPERATURE")
    default_llm_max_tokens: int = Field(default=2000, alias="DEFAULT_LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")

    # --- Memory ---
    memory_max_insights: int = Field(default=100, alias="MEMORY_MAX_INSIGHTS")
    memory_max_facts: int = Field(default=100, alias="MEMORY_MAX_FACTS")
    memory_sync_debounce_seconds: float = Field(default=2.0, alias="MEMORY_SYNC_DEBOUNCE_SECONDS")

    # --- Prompt assembly ---
    history_window: int = Field(default=12, alias="HISTORY_WINDOW")
    profile_context_chars: int = Field(default=2500, alias="PROFILE_CONTEXT_CHARS")
    knowledge_context_chars: int = Field(default=6000, alias="KNOWLEDGE_CONTEXT_CHARS")
    response_language: str = Field(default="Brazilian Portuguese", alias="RESPONSE_LANGUAGE")

    # --- API ---
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")


@lru_cache
def get_settings() -> Settings:
    return Settings()
