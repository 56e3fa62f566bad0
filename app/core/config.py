"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "FAQ Bot Engagement API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SQL_ECHO: bool = False  # Set to True to see SQL queries in logs

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "faqbot"
    POSTGRES_SSLMODE: Optional[str] = None  # Set to 'require' for managed Postgres
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 1800  # seconds; -1 disables

    @property
    def ASYNC_DATABASE_URL(self) -> str:
        base_url = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        if self.POSTGRES_SSLMODE:
            return f"{base_url}?ssl={self.POSTGRES_SSLMODE}"
        return base_url

    # JWT (operator dashboard tokens)
    JWT_SECRET_KEY: str = "your-jwt-secret-key"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Embeddings (OpenAI or Azure OpenAI)
    EMBEDDING_PROVIDER: str = "openai"  # openai or azure-openai
    EMBEDDING_API_URL: str = "https://api.openai.com/v1"
    EMBEDDING_API_KEY: Optional[str] = None
    EMBEDDING_MODEL: str = "text-embedding-3-large"
    EMBEDDING_API_VERSION: Optional[str] = None
    EMBEDDING_DIMENSION: int = 3072
    EMBEDDING_TIMEOUT: float = 30.0

    # Answer selection LLM (OpenAI or Azure OpenAI)
    LLM_PROVIDER: str = "openai"  # openai or azure-openai
    LLM_API_URL: str = "https://api.openai.com/v1"
    LLM_API_KEY: Optional[str] = None
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_API_VERSION: Optional[str] = None
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 1000
    LLM_TIMEOUT: float = 60.0

    # Elasticsearch (hybrid FAQ search)
    ELASTICSEARCH_URL: str = "http://localhost:9200"
    ELASTICSEARCH_API_KEY: Optional[str] = None
    ELASTICSEARCH_INDEX_PREFIX: str = "faq_"
    ELASTICSEARCH_TIMEOUT: float = 30.0

    # CORS - comma-separated list of origins
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS_LIST(self) -> list:
        """Parse CORS_ORIGINS string into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars like NEXT_PUBLIC_*
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
