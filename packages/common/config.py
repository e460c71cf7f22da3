"""
Application configuration using Pydantic Settings
Reads from environment variables and .env file

Every heuristic threshold used by the categorization, matching and
validation stages lives here so it can be tuned per deployment without
code changes.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    db_user: str = Field(default="budget_admin", alias="DB_USER")
    db_password: str = Field(default="", alias="DB_PASSWORD")
    db_name: str = Field(default="grocery_budget", alias="DB_NAME")
    db_host: str = Field(default="postgres", alias="DB_HOST")
    db_port: int = Field(default=5432, alias="DB_PORT")

    @property
    def database_url(self) -> str:
        """Construct database URL"""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis / Celery
    celery_broker_url: str = Field(default="redis://redis:6379/1", alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(default="redis://redis:6379/2", alias="CELERY_RESULT_BACKEND")

    # Application
    environment: str = Field(default="production", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"], alias="CORS_ORIGINS")

    # External classifier (Anthropic)
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    classifier_model: str = Field(default="claude-haiku-4-5", alias="CLASSIFIER_MODEL")
    classifier_max_tokens: int = Field(default=100, alias="CLASSIFIER_MAX_TOKENS")
    classifier_timeout_seconds: float = Field(default=8.0, alias="CLASSIFIER_TIMEOUT_SECONDS")
    classifier_max_concurrency: int = Field(default=4, alias="CLASSIFIER_MAX_CONCURRENCY")
    classifier_cache_size: int = Field(default=5000, alias="CLASSIFIER_CACHE_SIZE")
    classifier_default_confidence: float = Field(default=0.7, alias="CLASSIFIER_DEFAULT_CONFIDENCE")

    # Categorization waterfall
    ai_min_confidence: float = Field(default=0.6, alias="AI_MIN_CONFIDENCE")
    correction_lookup_timeout_seconds: float = Field(default=2.0, alias="CORRECTION_LOOKUP_TIMEOUT_SECONDS")

    # Master product matching
    master_match_threshold: float = Field(default=0.6, alias="MASTER_MATCH_THRESHOLD")
    master_candidate_limit: int = Field(default=100, alias="MASTER_CANDIDATE_LIMIT")

    # Quality validation
    total_tolerance_percent: float = Field(default=2.0, alias="TOTAL_TOLERANCE_PERCENT")
    price_anomaly_multiplier: float = Field(default=3.0, alias="PRICE_ANOMALY_MULTIPLIER")
    new_item_confidence_threshold: float = Field(default=0.85, alias="NEW_ITEM_CONFIDENCE_THRESHOLD")
    unusual_item_min_confidence: float = Field(default=0.7, alias="UNUSUAL_ITEM_MIN_CONFIDENCE")
    new_category_confidence_threshold: float = Field(default=0.75, alias="NEW_CATEGORY_CONFIDENCE_THRESHOLD")
    store_category_confidence_threshold: float = Field(default=0.8, alias="STORE_CATEGORY_CONFIDENCE_THRESHOLD")
    history_window_months: int = Field(default=3, alias="HISTORY_WINDOW_MONTHS")

    # Auto-processing defaults (used when a user has no stored preferences)
    default_confidence_threshold: float = Field(default=0.70, alias="DEFAULT_CONFIDENCE_THRESHOLD")

    # Monitoring
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    # Development
    debug: bool = Field(default=False, alias="DEBUG")

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @validator("environment")
    def validate_environment(cls, v):
        """Validate environment"""
        valid_envs = ["development", "test", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of {valid_envs}")
        return v.lower()

    @validator("default_confidence_threshold")
    def validate_confidence_threshold(cls, v):
        """Auto-save threshold must stay inside the range users can pick from"""
        if not 0.5 <= v <= 0.95:
            raise ValueError("DEFAULT_CONFIDENCE_THRESHOLD must be between 0.5 and 0.95")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
