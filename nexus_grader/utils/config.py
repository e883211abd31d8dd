"""
Configuration settings for the Nexus Grader
"""
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PROVIDER_MODELS = [
    "qwen/qwen3-next-80b-a3b-instruct:free",
    "qwen/qwen3-4b:free",
    "deepseek/deepseek-r1-0528:free",
    "google/gemma-3-27b-it:free",
    "meta-llama/llama-4-scout:free",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields in environment
    )

    # Provider Configuration (OpenRouter, OpenAI-compatible)
    openrouter_api_key: Optional[str] = Field(None, description="Provider API key")
    openrouter_key: Optional[str] = Field(None, description="Legacy location of the provider API key")
    provider_base_url: str = Field("https://openrouter.ai/api/v1")
    provider_models: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PROVIDER_MODELS),
        description="Models tried in order until one succeeds",
    )
    request_timeout_seconds: float = Field(60.0, gt=0)
    default_temperature: float = Field(0.4, ge=0, le=2)
    default_max_tokens: int = Field(1200, gt=0)
    app_url: str = Field("http://localhost:8080", description="Sent as HTTP-Referer")
    app_title: str = Field("Nexus Learn", description="Sent as X-Title")

    # Grading Parameters
    grading_temperature: float = Field(0.3)
    grading_max_tokens: int = Field(1500)
    feedback_temperature: float = Field(0.7)
    feedback_max_tokens: int = Field(200)
    fill_blank_full_threshold: float = Field(0.85, ge=0, le=1)
    fill_blank_partial_threshold: Optional[float] = Field(0.60, ge=0, le=1)
    fill_blank_partial_fraction: float = Field(0.5, ge=0, le=1)
    completeness_min_length: int = Field(20, ge=0)

    # Question Generation
    generation_temperature: float = Field(0.7)
    generation_max_tokens: int = Field(4000)

    # Database Configuration
    database_url: str = Field("sqlite:///./nexus_grader.db")
    use_config_store_credentials: bool = Field(False, description="Read the API key from the app_config table")

    # Application Settings
    debug: bool = Field(False)
    log_level: str = Field("INFO")

    # API Configuration
    api_host: str = Field("0.0.0.0")
    api_port: int = Field(8000)
    api_reload: bool = Field(True)


# Global settings instance
settings = Settings()
