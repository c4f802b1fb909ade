"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources (in priority order):
#
#   1. **Environment variables** - e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field ``ai_timeout_ms`` maps to env var ``AI_TIMEOUT_MS`` and so on.
#
# Services never read Settings themselves.  The composition root
# (cardshow_scout/main.py) builds one Settings instance and hands each
# component only the values it needs at construction time.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cardshow_scout.utils.errors import ConfigurationError


class Settings(BaseSettings):
    """cardshow_scout settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Extraction endpoint ===
    # Empty string = "not configured"; build_llm_provider() skips empty keys.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (Gemini, TogetherAI, ...)
    openai_text_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""

    # === Storage ===
    database_path: str = "data/cardshow_scout.db"
    sources_file: str = "config/sources.yaml"

    # === Pipeline tunables ===
    ai_timeout_ms: int = Field(default=15000, gt=0)
    max_html_size: int = Field(default=15000, gt=0)
    max_chunks: int = Field(default=5, gt=0)
    fetch_timeout_s: float = Field(default=15.0, gt=0)
    worker_pool_size: int = Field(default=3, ge=1)
    source_budget_s: float = Field(default=120.0, gt=0)
    chunk_max_retries: int = Field(default=1, ge=0)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # === Feedback loop ===
    error_streak_threshold: int = Field(default=5, ge=1)
    feedback_window_days: int = Field(default=30, ge=1)
    feedback_min_count: int = Field(default=1, ge=1)
    priority_min_count: int = Field(default=10, ge=1)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers

    def require_llm_credentials(self) -> None:
        """Raise :class:`ConfigurationError` when no extraction key is set."""
        if not self.get_available_llm_providers():
            raise ConfigurationError(
                "No extraction endpoint configured: set OPENAI_API_KEY or ANTHROPIC_API_KEY"
            )
