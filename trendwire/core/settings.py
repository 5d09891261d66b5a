"""Application settings and configuration."""
from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Collector credentials
    twitter_bearer_token: str = Field(default="")
    youtube_api_key: str = Field(default="")
    news_api_key: str = Field(default="")
    serp_api_key: str = Field(default="")
    reddit_user_agent: str = Field(default="TrendWire/1.0")

    # Collector behaviour
    collector_timeout_seconds: float = Field(default=10.0, gt=0)
    article_timeout_seconds: float = Field(default=15.0, gt=0)
    default_geo: str = Field(default="US")

    # Extra category keywords (YAML), merged over the built-in table
    categories_path: Optional[str] = Field(default=None, alias="TRENDWIRE_CATEGORIES_PATH")

    # Logging
    log_level: str = Field(default="INFO")
    logger_levels: Dict[str, str] = Field(default_factory=dict)

    # Service configuration
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8002)
    debug: bool = Field(default=False)

    app_name: str = "TrendWire"
    environment: str = Field(default="development")


@lru_cache()
def get_settings() -> Settings:
    """Get settings singleton."""
    return Settings()


settings = get_settings()
