"""Application configuration settings.

This module defines the application-wide settings using Pydantic's BaseSettings.
It allows for loading configurations from environment variables and .env files,
providing type validation and default values.
"""

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Default list of CORS allowed origins
DEFAULT_CORS_ORIGINS = ["*"]


class Settings(BaseSettings):
    """Manages application settings, loading them from environment variables or an .env file.

    Attributes:
        openai_api_key: API key for the text-generation service.
        openai_base_url: Base URL of the OpenAI-compatible text-generation service.
        model_id: Identifier for the language model to be used.
        llm_temperature: Sampling temperature; zero keeps regeneration reproducible.
        llm_max_tokens: Upper bound on the tokens generated for a single section.
        weather_api_key: API key for the weather-history service.
        weather_api_url: Endpoint of the weather-history lookup.
        weather_timeout: Timeout in seconds for a single weather lookup.
        session_ttl: Seconds an untouched report session is kept before it is evicted; 0 keeps sessions until discarded.
        cors_allowed_origins: List of allowed origins for CORS.
        LLM_CONNECT_TIMEOUT: LLM client connect timeout in seconds.
        LLM_READ_TIMEOUT: LLM client read timeout in seconds.
    """

    openai_api_key: str | None = Field(default=None)
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    model_id: str = Field(default="gpt-3.5-turbo")
    llm_temperature: float = Field(default=0.0)
    llm_max_tokens: int = Field(default=3000)

    weather_api_key: str | None = Field(default=None)
    weather_api_url: str = Field(default="http://api.weatherapi.com/v1/history.json")
    weather_timeout: float = Field(default=15.0)

    session_ttl: int = Field(default=3600)

    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
    )

    LLM_CONNECT_TIMEOUT: float = Field(default=10.0, description="LLM client connect timeout in seconds.")
    LLM_READ_TIMEOUT: float = Field(default=180.0, description="LLM client read timeout in seconds.")

    model_config = {
        "env_file": ".env",
        "protected_namespaces": ("settings_",),
        "env_prefix": "",  # No prefix for environment variables
        "extra": "ignore",  # Ignore extra fields
    }

    @field_validator("cors_allowed_origins", mode="before")  # type: ignore
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str] | None) -> list[str]:
        """Assembles the list of CORS allowed origins.

        If 'v' is a string, it splits it by commas. If 'v' is already a list,
        it's used directly. Otherwise, returns the default list of origins.
        """
        if isinstance(v, str) and v:
            return [origin.strip() for origin in v.split(",")]
        elif isinstance(v, list):
            return v
        return list(DEFAULT_CORS_ORIGINS)


settings = Settings()
