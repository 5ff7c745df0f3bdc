#!/usr/bin/env python3
import os
from functools import lru_cache
from typing import List, Literal, Optional
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_PATH = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=f"{BASE_PATH}/.env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        env_nested_delimiter="__"
    )

    # Environment
    ENVIRONMENT: Literal["dev", "pro"] = "dev"
    PROJECT_NAME: str = "Creator Smart Replies"
    LOG_LEVEL: str = "INFO"

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_TIMEOUT_SECS: float = 20.0
    OPENAI_MAX_RETRIES: int = 2
    LLM_MODEL: str = "gpt-4o-mini"
    EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Generation behaviour
    GENERATION_TEMPERATURE: float = 0.7
    ADAPTATION_TEMPERATURE: float = 0.2
    ADAPTATION_MAX_TOKENS: int = 300
    HISTORY_MAX_TURNS: int = Field(default=20, ge=0, le=100)
    SMART_REPLY_DEADLINE_SECS: float = 25.0
    CACHE_WRITE_TIMEOUT_SECS: float = 5.0

    # Persona
    DEFAULT_PERSONA_KEY: str = "andrew"

    # Memory retrieval
    MEMORY_BACKEND: Literal["supermemory", "qdrant"] = "supermemory"
    MEMORY_SEARCH_LIMIT: int = Field(default=3, ge=1, le=3)
    MEMORY_RELEVANCE_FLOOR: float = Field(default=0.5, ge=0.0, le=1.0)
    MEMORY_QUERY_MAX_CHARS: int = 500
    MEMORY_SEARCH_TIMEOUT_SECS: float = 10.0
    MEMORY_SCOPE_TAG_TEMPLATE: str = "{persona_key}-response"

    # Supermemory
    SUPERMEMORY_API_KEY: Optional[str] = None
    SUPERMEMORY_BASE_URL: str = "https://api.supermemory.ai"

    # Qdrant
    QDRANT_URL: Optional[str] = None
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_MEMORY_COLLECTION: str = "creator_memories"

    # Tiering thresholds
    TIER_EXACT_THRESHOLD: float = 0.90
    TIER_ADAPT_THRESHOLD: float = 0.75
    TIER_SUPPLEMENTAL_THRESHOLD: float = 0.60

    # Storage
    DATABASE_URL: str = "sqlite+aiosqlite:///./smart_replies.sqlite"

    # CORS
    CORS_ALLOWED_ORIGINS: List[str] = [
        "http://127.0.0.1:8000",
        "http://localhost:5173",
    ]
    CORS_EXPOSE_HEADERS: List[str] = ["X-Request-ID"]

    # FastAPI
    FASTAPI_API_V1_PATH: str = "/api/v1"

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        """Tier thresholds must be ordered inside [0, 1]."""
        ordered = (
            0.0
            <= self.TIER_SUPPLEMENTAL_THRESHOLD
            <= self.TIER_ADAPT_THRESHOLD
            <= self.TIER_EXACT_THRESHOLD
            <= 1.0
        )
        if not ordered:
            raise ValueError(
                "Tier thresholds must satisfy 0 <= supplemental <= adapt <= exact <= 1"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()

# Global config instance
settings = get_settings()
