from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Literal
from functools import lru_cache

class Settings(BaseSettings):
    ENVIRONMENT: Literal["development", "testing", "production"] = "development"
    TESTING: bool = False

    # Application
    PROJECT_NAME: str = "Blogging Lab"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Persistence adapter behind the services
    STORE_BACKEND: Literal["relational", "document"] = "relational"

    # Relational store
    DATABASE_URL: str = "sqlite+aiosqlite:///./blogging_app.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    DATABASE_POOL_SIZE: int = Field(default=20, ge=1)
    DATABASE_MAX_OVERFLOW: int = Field(default=40, ge=0)

    # Redis cache; tests use DB 1
    REDIS_URL: str = "redis://localhost:6379"
    TEST_REDIS_URL: str = "redis://localhost:6379/1"

    # Cache-aside, TTLs in seconds
    CACHE_KEY_PREFIX: str = Field(default="blog", min_length=1)
    POST_CACHE_TTL: int = Field(default=300, ge=1)
    COMMENTS_CACHE_TTL: int = Field(default=60, ge=1)
    TRENDING_CACHE_TTL: int = Field(default=120, ge=1)

    # Ranking
    TRENDING_LIMIT: int = Field(default=5, ge=1)
    TRENDING_WINDOW_DAYS: int = Field(default=30, ge=1)

    # Write requests per caller and minute, 0 disables the limit
    RATE_LIMIT_PER_MINUTE: int = Field(default=60, ge=0)

    @property
    def is_testing(self) -> bool:
        return self.TESTING or self.ENVIRONMENT == "testing"

    @property
    def database_url(self) -> str:
        """Relational store URL for the current environment"""
        return self.TEST_DATABASE_URL if self.is_testing else self.DATABASE_URL

    @property
    def redis_url(self) -> str:
        """Redis URL for the current environment"""
        return self.TEST_REDIS_URL if self.is_testing else self.REDIS_URL

    @property
    def rate_limit_storage_uri(self) -> str:
        """Where slowapi keeps its counters; tests count in memory"""
        return "memory://" if self.is_testing else self.REDIS_URL

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()
