"""Centralized settings management for the CityPulse pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    at the project root.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    DEBUG: bool = False

    # -------------------------------------------------------------------------
    # TEXT-COMPLETION SERVICE
    # -------------------------------------------------------------------------
    LLM_ENABLED: bool = True
    LLM_PROVIDER: str = "openai"
    LLM_MODEL_NAME: str | None = None
    LLM_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=1.0)
    LLM_TIMEOUT_SECONDS: float = Field(default=20.0, gt=0)
    OPENAI_API_KEY: SecretStr | None = None
    ANTHROPIC_API_KEY: SecretStr | None = None

    # -------------------------------------------------------------------------
    # GEOCODING
    # -------------------------------------------------------------------------
    # Precise geocoding is off by default: public Nominatim is rate limited.
    GEOCODING_ENABLED: bool = False
    GEOCODER_USER_AGENT: str = "citypulse-event-pipeline"
    GEOCODING_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    GEOCODING_MIN_DELAY_SECONDS: float = Field(default=1.0, ge=0)

    # -------------------------------------------------------------------------
    # CITY OF INTEREST
    # -------------------------------------------------------------------------
    CITY_NAME: str = "New York"
    CITY_REGION: str = "NY"
    COUNTRY_CODE: str = "us"

    # -------------------------------------------------------------------------
    # PIPELINE
    # -------------------------------------------------------------------------
    PIPELINE_MAX_RECORDS: int = Field(default=200, gt=0)
    PIPELINE_MAX_WORKERS: int = Field(default=1, gt=0)

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # BASE_DIR points to the citypulse package directory
    BASE_DIR: Path = Path(__file__).resolve().parents[1]

    PIPELINE_CONFIG_PATH: Path = BASE_DIR / "configs" / "pipeline.yaml"
    LEXICON_PATH: Path = BASE_DIR / "assets" / "lexicon.yaml"

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def city_context(self) -> str:
        """City suffix appended to addresses that lack one, e.g. 'New York, NY'."""
        return f"{self.CITY_NAME}, {self.CITY_REGION}"

    def llm_api_key(self) -> str | None:
        """Return the plain API key for the configured LLM provider."""
        secret = {
            "openai": self.OPENAI_API_KEY,
            "anthropic": self.ANTHROPIC_API_KEY,
        }.get(self.LLM_PROVIDER.lower().strip())
        return secret.get_secret_value() if secret else None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
