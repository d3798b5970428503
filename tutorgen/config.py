"""
Configuration management for tutorgen
Environment-based settings with local-development defaults
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "tutorgen"
    APP_ENV: str = "development"  # development, staging, production
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_VERSION: str = "v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./tutorgen.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # LLM provider
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_API_BASE: str = "https://api.openai.com/v1"

    # Models per generation kind
    OPENAI_MODEL_PLAN: str = "gpt-5-mini"
    OPENAI_MODEL_LESSON: str = "gpt-5-mini"
    OPENAI_MODEL_QUIZ: str = "gpt-5-mini"
    OPENAI_MODEL_FLASHCARDS: str = "gpt-5-mini"
    OPENAI_EMBED_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIM: int = 1536

    # LLM execution settings
    LLM_DEFAULT_MAX_TOKENS: int = 4000
    LLM_EMBED_TIMEOUT: int = 30  # seconds

    # Retry policy for generation attempts
    GENERATION_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_MS: int = 400
    RETRY_MAX_DELAY_MS: int = 8000
    RETRY_JITTER_MS: int = 150

    # Model-call ceilings per generation kind (plans are the largest outputs)
    TIMEOUT_PLAN_SECONDS: float = 90.0
    TIMEOUT_LESSON_SECONDS: float = 45.0
    TIMEOUT_QUIZ_SECONDS: float = 60.0
    TIMEOUT_FLASHCARDS_SECONDS: float = 60.0

    # Budgets (defaults when the admin_config row is missing)
    DAILY_USER_BUDGET_USD: float = 0.25
    DAILY_GLOBAL_BUDGET_USD: float = 10.0
    DISABLE_ENDPOINTS: str = ""
    ALERT_WEBHOOK_URL: Optional[str] = None
    ADMIN_CONFIG_TTL_SECONDS: float = 5.0
    ADMIN_API_TOKEN: Optional[str] = None

    # Retrieval
    RAG_SEED_DIR: str = "seed/topic_packs"
    RAG_MIN_SCORE: float = 0.3
    RAG_K_PLAN: int = 6
    RAG_K_LESSON: int = 8
    RAG_K_QUIZ: int = 5
    RAG_K_FLASHCARDS: int = 5

    # Content
    CONTENT_SCHEMA_VERSION: int = 1
    LESSON_RATE_LIMIT_WINDOW_SECONDS: int = 5
    PREFETCH_NEXT_LESSON: bool = False

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @field_validator("GENERATION_MAX_ATTEMPTS")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("GENERATION_MAX_ATTEMPTS must be at least 1")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def disabled_endpoints_list(self) -> List[str]:
        return [e.strip() for e in self.DISABLE_ENDPOINTS.split(",") if e.strip()]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    def model_for(self, kind: str) -> str:
        """Resolve the completion model for a generation kind"""
        return {
            "plan": self.OPENAI_MODEL_PLAN,
            "lesson": self.OPENAI_MODEL_LESSON,
            "quiz": self.OPENAI_MODEL_QUIZ,
            "flashcards": self.OPENAI_MODEL_FLASHCARDS,
        }.get(_kind_value(kind), self.OPENAI_MODEL_LESSON)

    def generation_timeout(self, kind: str) -> float:
        """Ceiling in seconds for a single model call of this kind"""
        return {
            "plan": self.TIMEOUT_PLAN_SECONDS,
            "lesson": self.TIMEOUT_LESSON_SECONDS,
            "quiz": self.TIMEOUT_QUIZ_SECONDS,
            "flashcards": self.TIMEOUT_FLASHCARDS_SECONDS,
        }.get(_kind_value(kind), self.TIMEOUT_LESSON_SECONDS)

    def retrieval_k(self, kind: str) -> int:
        return {
            "plan": self.RAG_K_PLAN,
            "lesson": self.RAG_K_LESSON,
            "quiz": self.RAG_K_QUIZ,
            "flashcards": self.RAG_K_FLASHCARDS,
        }.get(_kind_value(kind), self.RAG_K_LESSON)


def _kind_value(kind) -> str:
    return getattr(kind, "value", kind)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()
