"""Application settings and configuration.

This module defines all configuration options for the Hyperlocal Stage service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Policy thresholds live here so operators can tune them without code changes;
    per-category values (fuzz radius, TTL, extensions) live in the category
    configuration snapshot instead.
    """

    # Application metadata
    app_name: str = Field(default="Hyperlocal Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(default="dev-secret-change-in-production", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./hyperlocal.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    database_pool_timeout_seconds: float = Field(default=5.0, alias="DATABASE_POOL_TIMEOUT")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs rate limiting, the advisory cache and the broadcast channel.
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    redis_socket_timeout_seconds: float = Field(default=0.5, alias="REDIS_SOCKET_TIMEOUT")
    broadcast_channel: str = Field(default="ws:broadcast", alias="BROADCAST_CHANNEL")

    # Post submission
    post_rate_limit_count: int = Field(default=5, alias="POST_RATE_LIMIT_COUNT")
    post_rate_limit_window_minutes: int = Field(
        default=30, alias="POST_RATE_LIMIT_WINDOW_MINUTES"
    )
    max_post_content_length: int = Field(default=280, alias="MAX_POST_CONTENT_LENGTH")

    # Nearby feed
    default_radius_km: float = Field(default=1.0, alias="DEFAULT_RADIUS_KM")
    max_radius_km: float = Field(default=2.0, alias="MAX_RADIUS_KM")
    nearby_since_hours: int = Field(default=24, alias="NEARBY_SINCE_HOURS")

    # Duplicate detection policy
    duplicate_radius_meters: float = Field(default=150.0, alias="DUPLICATE_RADIUS_METERS")
    duplicate_window_hours: float = Field(default=4.0, alias="DUPLICATE_WINDOW_HOURS")
    duplicate_text_weight: float = Field(default=0.7, alias="DUPLICATE_TEXT_WEIGHT")
    duplicate_reject_threshold: float = Field(default=0.75, alias="DUPLICATE_REJECT_THRESHOLD")
    duplicate_link_threshold: float = Field(default=0.5, alias="DUPLICATE_LINK_THRESHOLD")

    # Trust gate
    moderation_trust_threshold: int = Field(default=25, alias="MODERATION_TRUST_THRESHOLD")
    confirm_extension_trust_threshold: int = Field(
        default=50, alias="CONFIRM_EXTENSION_TRUST_THRESHOLD"
    )

    # Reaction and report side effects
    confirm_extension_window_minutes: int = Field(
        default=120, alias="CONFIRM_EXTENSION_WINDOW_MINUTES"
    )
    confirm_extension_minutes: int = Field(default=60, alias="CONFIRM_EXTENSION_MINUTES")
    auto_remove_reaction_threshold: int = Field(default=3, alias="AUTO_REMOVE_REACTION_THRESHOLD")
    auto_remove_report_threshold: int = Field(default=3, alias="AUTO_REMOVE_REPORT_THRESHOLD")

    # Author-driven extension
    extension_window_minutes: int = Field(default=30, alias="EXTENSION_WINDOW_MINUTES")
    extension_min_views: int = Field(default=5, alias="EXTENSION_MIN_VIEWS")

    # Expiry sweeper
    expiry_interval_seconds: float = Field(default=60.0, alias="EXPIRY_INTERVAL_SECONDS")
    archive_interval_seconds: float = Field(default=86_400.0, alias="ARCHIVE_INTERVAL_SECONDS")
    archive_grace_hours: int = Field(default=24, alias="ARCHIVE_GRACE_HOURS")
    sweeper_enabled: bool = Field(default=True, alias="SWEEPER_ENABLED")

    # Nearby-notification dispatch
    notification_delay_seconds: int = Field(default=5, alias="NOTIFICATION_DELAY_SECONDS")
    notification_max_attempts: int = Field(default=3, alias="NOTIFICATION_MAX_ATTEMPTS")
    notification_backoff_seconds: float = Field(default=1.0, alias="NOTIFICATION_BACKOFF_SECONDS")
    notification_retention_days: int = Field(default=30, alias="NOTIFICATION_RETENTION_DAYS")

    # Heatmap cache
    heatmap_cache_seconds: int = Field(default=300, alias="HEATMAP_CACHE_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def post_rate_limit_window_seconds(self) -> int:
        return self.post_rate_limit_window_minutes * 60


settings = Settings()
