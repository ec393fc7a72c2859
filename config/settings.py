"""
Configuration management for the contract risk pipeline.

This module uses Pydantic Settings for type-safe configuration
with automatic environment variable loading and validation.

Environment variables can be set in:
- Shell environment
- .env file in project root

A missing OPENAI_API_KEY is not an error: the pipeline then routes every
document through the heuristic fallback analyzer.

Example:
    >>> from config.settings import settings
    >>> print(settings.MODEL_NAME)
    gpt-4o-mini
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables.
    The prefix is not used, so MODEL_NAME maps directly to MODEL_NAME env var.

    Attributes:
        OPENAI_API_KEY: Model API key; absence selects the fallback analyzer.
        MODEL_NAME: LLM model used for contract analysis.
        MODEL_TEMPERATURE: Sampling temperature for the analysis call.
        MODEL_MAX_TOKENS: Upper bound on the reply length.
        MODEL_TIMEOUT_SECONDS: Per-request timeout of the model call.
        MAX_CONTRACT_CHARS: Contract prefix length embedded in the prompt.
        RATE_LIMIT_MAX_RETRIES: Extra attempts after a rate-limit signal.
        RATE_LIMIT_BASE_DELAY: First backoff delay in seconds, doubled per retry.
        RATE_LIMIT_MAX_JITTER: Upper bound of the random jitter in seconds.
        PIPELINE_MAX_WORKERS: Worker threads for detached pipeline runs.
        NEO4J_URI: Neo4j connection URI (bolt:// or neo4j://).
        NEO4J_USER: Database username.
        NEO4J_PASSWORD: Database password.
        LOG_LEVEL: Logging verbosity level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # LLM Configuration
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="OpenAI API key"
    )
    MODEL_NAME: str = Field(
        default="gpt-4o-mini",
        description="LLM model name"
    )
    MODEL_TEMPERATURE: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature"
    )
    MODEL_MAX_TOKENS: int = Field(
        default=8000,
        gt=0,
        description="Maximum tokens in the model reply"
    )
    MODEL_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Model request timeout"
    )

    # Prompt / retry policy
    MAX_CONTRACT_CHARS: int = Field(
        default=50_000,
        gt=0,
        description="Characters of contract text sent to the model"
    )
    RATE_LIMIT_MAX_RETRIES: int = Field(
        default=2,
        ge=0,
        description="Retries after a rate-limit signal"
    )
    RATE_LIMIT_BASE_DELAY: float = Field(
        default=1.0,
        ge=0.0,
        description="Initial backoff delay in seconds"
    )
    RATE_LIMIT_MAX_JITTER: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Maximum random jitter added to each backoff"
    )

    # Pipeline
    PIPELINE_MAX_WORKERS: int = Field(
        default=4,
        gt=0,
        description="Concurrent detached pipeline runs"
    )

    # Neo4j Configuration
    NEO4J_URI: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j connection URI"
    )
    NEO4J_USER: str = Field(
        default="neo4j",
        description="Neo4j username"
    )
    NEO4J_PASSWORD: str = Field(
        default="password",
        description="Neo4j password"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity"
    )

    @field_validator("OPENAI_API_KEY")
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty or whitespace-only key as not configured."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("NEO4J_URI")
    @classmethod
    def validate_neo4j_uri(cls, v: str) -> str:
        """Ensure Neo4j URI has valid scheme."""
        if not v.startswith(("bolt://", "neo4j://", "neo4j+s://")):
            raise ValueError(
                "NEO4J_URI must start with bolt://, neo4j://, or neo4j+s://"
            )
        return v

    @property
    def has_model_credentials(self) -> bool:
        """Check whether a model API key is configured."""
        return self.OPENAI_API_KEY is not None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
