"""Process-wide settings, read once from the environment at start-up."""

from datetime import datetime
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from interview_prep.llm.retry import RetryPolicy


class Settings(BaseSettings):
    # Credentials / switches
    api_key: str = ""
    api_enabled: bool = False
    allowed_origins: str = "*"

    # Models
    provider_prefix: str = "google-gla"
    research_model: str = "gemini-2.5-flash"
    synthesis_model: str = "gemini-2.5-flash"
    fact_check_model: str = "gemini-2.5-flash"
    validate_model: str = "gemini-2.5-flash"
    fallback_model_name: str = "gemini-2.5-pro"

    # Timeouts and pacing (seconds)
    default_timeout: float = 180.0
    stream_timeout: float = 100.0
    stream_inactivity_timeout: float = 20.0
    retry_delay: float = 2.0
    professor_analysis_delay: float = 0.5
    max_professors: int = 5

    # Server-side rate limiting (per client address)
    rate_limit_max_requests: int = 10
    rate_limit_window: float = 60.0

    logging_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def allowed_origin_list(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]

    def resolve_model(self, name: str | None, default: str | None = None) -> str:
        """Qualify a bare model name with the provider prefix (``gemini-2.5-pro`` -> ``google-gla:gemini-2.5-pro``)."""
        chosen = name or default or self.research_model
        if ":" in chosen:
            return chosen
        return f"{self.provider_prefix}:{chosen}"

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            fallback_model=self.resolve_model(self.fallback_model_name),
            retry_delay=self.retry_delay,
            stream_timeout=self.stream_timeout,
            inactivity_timeout=self.stream_inactivity_timeout,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached getter for production."""
    return Settings()


def build_time_context(now: datetime | None = None) -> str:
    """Temporal guidance embedded in research prompts to counter stale model knowledge."""
    now = now or datetime.now()
    return (
        "Your training data is reliable only up to your knowledge cutoff. "
        "Do not assume you know about events, releases or admission rules after that date "
        "unless they are provided by search tools.\n"
        f"The current time is {now.year} - {now.month}. "
        f"Information must apply to the {now.year} or {now.year + 1} admission cycle."
    )
