from functools import lru_cache
from pydantic_settings import BaseSettings

from shopbot.core.retry import RetryPolicy


class Settings(BaseSettings):
    # ── Database ───────────────────────────────────────────────────────────────
    # Holds both the item catalog and the conversation checkpoints.
    database_url: str
    catalog_table: str = "items"

    # ── LiteLLM ───────────────────────────────────────────────────────────────
    # mode: "proxy" = external LiteLLM container (dev default)
    #       "library" = litellm imported directly (production, no network hop)
    litellm_mode: str = "proxy"
    litellm_base_url: str = "http://litellm:4000/v1"
    litellm_master_key: str = ""

    # ── Models ────────────────────────────────────────────────────────────────
    primary_model: str = "gemini-2.5-flash"
    temperature: float = 0.0
    embedding_model: str = "text-embedding-004"
    embedding_dim: int = 768

    # ── Agent loop ────────────────────────────────────────────────────────────
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 30000
    recursion_limit: int = 15
    lookup_default_limit: int = 10

    # ── App ───────────────────────────────────────────────────────────────────
    environment: str = "development"
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env"}

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
