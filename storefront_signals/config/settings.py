"""
Storefront Signals
Centralized Configuration Management

Pydantic settings with environment variable support for the analytics,
scoring and recommendation engine. Every tunable constant of the engine
lives here so it can be overridden per environment.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="storefront_signals", description="Database name")
    user: str = Field(default="storefront", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=100, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    decode_responses: bool = Field(default=True, description="Decode responses to strings")
    url: Optional[str] = Field(default=None, description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class TrackingSettings(BaseSettings):
    """Event ingestion configuration"""

    model_config = SettingsConfigDict(env_prefix="TRACKING_")

    dedup_window_seconds: int = Field(default=300, description="Trailing window for view deduplication")
    recent_view_history: int = Field(default=50, description="View events consulted for user affinity")
    max_batch_size: int = Field(default=100, description="Max events per batch ingestion call")


class ScoringSettings(BaseSettings):
    """Relevance score weights"""

    model_config = SettingsConfigDict(env_prefix="SCORING_")

    weight_today: float = Field(default=4.0, description="Weight of views since UTC midnight")
    weight_week: float = Field(default=2.0, description="Weight of views in the last 7 days")
    weight_month: float = Field(default=1.2, description="Weight of views in the last 30 days")
    weight_total: float = Field(default=0.5, description="Weight of all-time views")
    weight_discount: float = Field(default=0.8, description="Weight of discount percent")
    new_item_bonus: float = Field(default=6.0, description="Flat bonus for recently created items")
    new_item_days: int = Field(default=60, description="Age in days still considered new")


class TrendingSettings(BaseSettings):
    """Trending ranking configuration"""

    model_config = SettingsConfigDict(env_prefix="TRENDING_")

    default_limit: int = Field(default=10, description="Default trending list size")
    max_limit: int = Field(default=50, description="Max trending list size")
    unique_visitor_weight: float = Field(default=2.0, description="Rank weight of a distinct visitor")
    cache_ttl_seconds: int = Field(default=60, description="Trending cache TTL")


class RecommendationSettings(BaseSettings):
    """Recommendation planner configuration"""

    model_config = SettingsConfigDict(env_prefix="RECOMMEND_")

    default_limit: int = Field(default=12, description="Default recommendation count")
    max_limit: int = Field(default=50, description="Max recommendation count")
    affinity_depth: int = Field(default=1, description="Category tree levels walked for affinity expansion")
    related_default_limit: int = Field(default=8, description="Default related products count")
    related_max_limit: int = Field(default=20, description="Max related products count")


class BannerSettings(BaseSettings):
    """Banner feed configuration"""

    model_config = SettingsConfigDict(env_prefix="BANNER_")

    default_limit: int = Field(default=10, description="Default banners per page")
    max_limit: int = Field(default=20, description="Max banners per page")
    auto_limit: int = Field(default=5, description="Default items per auto-content banner")
    auto_period: str = Field(default="week", description="Default trending period for auto banners")
    auto_max_limit: int = Field(default=20, description="Max items per auto-content banner")


class WorkerSettings(BaseSettings):
    """Background task pool configuration"""

    model_config = SettingsConfigDict(env_prefix="WORKER_")

    pool_size: int = Field(default=4, description="Concurrent background workers")
    queue_size: int = Field(default=1000, description="Max queued background tasks")
    drain_timeout_seconds: float = Field(default=10.0, description="Shutdown drain timeout")


class NotificationSettings(BaseSettings):
    """Bulk-send status configuration"""

    model_config = SettingsConfigDict(env_prefix="BULK_SEND_")

    status_ttl_seconds: int = Field(default=3600, description="Lifetime of a bulk-send status entry")
    max_errors: int = Field(default=100, description="Errors retained per bulk send")


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="storefront-signals", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")
    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    trending: TrendingSettings = Field(default_factory=TrendingSettings)
    recommendation: RecommendationSettings = Field(default_factory=RecommendationSettings)
    banners: BannerSettings = Field(default_factory=BannerSettings)
    workers: WorkerSettings = Field(default_factory=WorkerSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
