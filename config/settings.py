"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from config.llm_config import LLMConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Entity Store ─────────────────────────────────────────
    entity_store_type: str = "memory"  # "memory" or "redis"
    redis_url: str = ""  # e.g. redis://:password@host:6379/0
    redis_key_prefix: str = "mc:"
    redis_lock_timeout: int = 10  # seconds a transaction may hold the store lock
    seed_defaults: bool = True  # default schedule + welcome announcement on empty store

    # ── Sessions ─────────────────────────────────────────────
    session_ttl: int = 60 * 60 * 12  # seconds (12 h)

    # ── Classroom ────────────────────────────────────────────
    message_window: int = 100  # list_messages returns the most recent N
    # Derive admin/delegate from the email text at registration (fragile, see DESIGN.md)
    role_heuristic_enabled: bool = True
    # Honour a self-declared admin/delegate role_hint at registration
    role_hint_enabled: bool = True

    # ── LLM ──────────────────────────────────────────────────
    default_model: str = "gemini/gemini-2.5-flash"
    translate_model: str = "gemini/gemini-2.5-flash"
    quiz_model: str = "gemini/gemini-2.5-pro"
    image_model: str = "gemini/gemini-2.5-flash-image"
    max_tokens: int = 4096
    ai_timeout_seconds: float = 60.0  # hung model calls become GenerationError
    max_concurrent_llm: int = 10  # per worker

    # ── LLM Generation Defaults (all optional, None = model default) ──
    temperature: float | None = None
    top_p: float | None = None
    seed: int | None = None
    stop: list[str] | None = None

    # Provider API keys (read by LiteLLM automatically via env)
    gemini_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # ── Helpers ───────────────────────────────────────────────

    def get_default_llm_config(self) -> LLMConfig:
        """Build an :class:`LLMConfig` from global .env defaults."""
        return LLMConfig(
            model=self.default_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            seed=self.seed,
            stop=self.stop,
        )


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
