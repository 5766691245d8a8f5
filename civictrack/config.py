"""
Settings for CivicTrack, read from the environment and ``.env``.

Each concern gets its own BaseSettings class with an env prefix
(DB_, REDIS_, PROPUBLICA_, SYNC_, APP_). ``settings`` is the process-wide
instance; tests build their own FeedConfig/SyncConfig and pass them in.
"""

from enum import Enum
from typing import Any, Optional, List
import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_list(value: Any, lower: bool = False) -> Any:
    """Accept a JSON array or a comma-separated string for list settings."""
    if not isinstance(value, str):
        return value

    text = value.strip().strip("'\"")
    items: List[str]
    if text.startswith("["):
        try:
            items = [str(item) for item in json.loads(text)]
        except json.JSONDecodeError:
            items = text.strip("[]").split(",")
    else:
        items = text.split(",")

    items = [item.strip() for item in items if item.strip()]
    return [item.lower() for item in items] if lower else items


class Environment(str, Enum):
    LOCAL = "local"
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DatabaseConfig(BaseSettings):
    """Where bills live. DATABASE_URL wins over the individual DB_* parts."""

    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    driver: str = "postgresql+asyncpg"
    host: Optional[str] = "localhost"
    port: Optional[int] = 5432
    database: str = "civictrack"
    username: Optional[str] = None
    password: Optional[str] = None

    # QueuePool tuning, ignored for SQLite
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600

    echo: bool = False
    echo_pool: bool = False

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True
    )

    @property
    def connection_string(self) -> str:
        """SQLAlchemy URL using an async driver."""
        if self.database_url:
            # Hosting platforms hand out plain postgresql:// URLs
            if self.database_url.startswith("postgresql://"):
                return "postgresql+asyncpg://" + self.database_url[len("postgresql://"):]
            return self.database_url

        if self.driver.startswith("sqlite"):
            # DB_DATABASE is the file path (or :memory:)
            return f"{self.driver}:///{self.database}"

        credentials = ""
        if self.username:
            credentials = self.username + (f":{self.password}" if self.password else "") + "@"
        location = self.host or "localhost"
        if self.port:
            location = f"{location}:{self.port}"

        return f"{self.driver}://{credentials}{location}/{self.database}"


class RedisConfig(BaseSettings):
    """Redis backs the delayed notification queue when enabled."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: int = 5
    socket_connect_timeout: int = 5
    notification_queue_key: str = "civictrack:notifications"

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def connection_string(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class FeedConfig(BaseSettings):
    """ProPublica Congress API access and the default recent-bills query."""

    api_key: Optional[str] = None
    base_url: str = "https://api.propublica.org/congress/v1"

    congress: int = 118
    chamber: str = "both"
    kind: str = "updated"

    tracked_bill_types: List[str] = Field(
        default=["hr", "s", "hjres", "sjres"],
        description="Bill types the sync keeps; everything else is skipped"
    )
    include_cosponsors: bool = True

    rate_limit_per_second: float = 2.0
    timeout_seconds: int = 30
    max_retries: int = 3

    model_config = SettingsConfigDict(
        env_prefix="PROPUBLICA_",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("tracked_bill_types", mode="before")
    @classmethod
    def parse_bill_types(cls, v):
        return _split_list(v, lower=True)


class SyncConfig(BaseSettings):
    notification_delay_seconds: int = 30

    # False aborts the whole pass on the first failing record
    continue_on_error: bool = False

    # A "running" sync older than this no longer blocks a new run
    stale_after_seconds: int = 3600

    flow_retries: int = 2
    flow_retry_delay_seconds: int = 300

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        case_sensitive=False,
        extra="ignore"
    )


class AppConfig(BaseSettings):
    """API process and logging."""

    environment: Environment = Environment.LOCAL
    debug: bool = True

    app_name: str = "CivicTrack"
    app_version: str = "1.0.0"

    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    cors_origins: List[str] = Field(default=["http://localhost:3000", "http://localhost:8000"])

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        return _split_list(v)


class Settings(BaseSettings):
    """
    All configuration sections.

    Values come from environment variables, then ``.env``, then the
    defaults above. For a throwaway setup:

        Settings(
            db=DatabaseConfig(driver="sqlite+aiosqlite", database=":memory:"),
            sync=SyncConfig(continue_on_error=True),
        )
    """

    app: AppConfig = Field(default_factory=AppConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def redis_url(self) -> Optional[str]:
        """Redis URL, or None while the database-backed queue is in use"""
        return self.redis.connection_string if self.redis.enabled else None


settings = Settings()
