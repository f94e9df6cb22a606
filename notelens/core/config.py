"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_PROVIDERS: frozenset[str] = frozenset({"local", "remote"})


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    No variable is required; without OPENAI_API_KEY the remote provider
    fails fast and analysis relies on the local worker.

    Optional env vars:
        LOG_LEVEL (INFO), PROVIDER_ORDER (local,remote),
        WORKER_TIMEOUT_SECONDS (30), ANALYSIS_TIMEOUT_SECONDS (unset),
        BATCH_CONCURRENCY (8), DISABLED_PROVIDERS,
        OPENAI_API_KEY, OPENAI_MODEL (gpt-4o-mini),
        OPENAI_BASE_URL, OPENAI_TIMEOUT_SECONDS (30),
        SIMILARITY_THRESHOLD (0.5), SIMILARITY_LIMIT (5)
    """

    PROJECT_NAME: str = "NoteLens"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Analysis orchestration
    PROVIDER_ORDER: str = "local,remote"
    WORKER_TIMEOUT_SECONDS: float = 30.0
    ANALYSIS_TIMEOUT_SECONDS: float | None = None
    BATCH_CONCURRENCY: int = 8
    DISABLED_PROVIDERS: str = ""

    # Remote provider
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str | None = None
    OPENAI_TIMEOUT_SECONDS: float = 30.0

    # Related notes
    SIMILARITY_THRESHOLD: float = 0.5
    SIMILARITY_LIMIT: int = 5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def provider_order(self) -> tuple[str, str]:
        """
        Primary and secondary provider names, in that order.

        Raises:
            ValueError: If the list does not name exactly the two known
                providers.
        """
        names = tuple(
            part.strip().lower() for part in self.PROVIDER_ORDER.split(",") if part.strip()
        )
        if len(names) != 2 or set(names) != KNOWN_PROVIDERS:
            raise ValueError(
                f"PROVIDER_ORDER must list 'local' and 'remote' once each, "
                f"got {self.PROVIDER_ORDER!r}"
            )
        return names[0], names[1]

    @property
    def disabled_providers(self) -> frozenset[str]:
        """Provider names whose slot always fails (comma-separated in the env)."""
        return frozenset(
            part.strip().lower() for part in self.DISABLED_PROVIDERS.split(",") if part.strip()
        )


settings = Settings()
