"""Application configuration settings."""
from datetime import timedelta
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _section(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class DatabaseSettings(BaseSettings):
    """Database configuration for the key-value storage table."""

    model_config = _section("DATABASE_")

    url: str = Field(default="sqlite+aiosqlite:///./data/kajopo.db")
    echo: bool = Field(default=False)


class BackendSettings(BaseSettings):
    """Hosted backend (Supabase-style REST API) configuration."""

    model_config = _section("BACKEND_")

    url: Optional[str] = Field(default=None)
    anon_key: Optional[str] = Field(default=None)
    service_key: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=10.0)

    # Initialization polling
    init_attempts: int = Field(default=3, ge=1)
    init_delay_seconds: float = Field(default=0.5, ge=0)

    # Local fallback
    seed_demo_data: bool = Field(default=True)

    @property
    def hosted_configured(self) -> bool:
        return bool(self.url and self.anon_key)


class SessionSettings(BaseSettings):
    """Session signing, lifetime and monitoring configuration."""

    model_config = _section("SESSION_")

    secret_key: str = Field(default="your-secret-key-change-in-production")
    algorithm: str = Field(default="HS256")
    cookie_name: str = Field(default="kajopo_client")

    admin_short_ttl_hours: float = Field(default=8)
    admin_long_ttl_days: float = Field(default=30)
    user_short_ttl_hours: float = Field(default=24)
    user_long_ttl_days: float = Field(default=30)
    default_extension_hours: float = Field(default=2)

    monitor_enabled: bool = Field(default=True)
    monitor_interval_seconds: float = Field(default=60)
    warning_upper_minutes: float = Field(default=5)
    warning_lower_minutes: float = Field(default=4)

    unauthorized_redirect_delay_seconds: float = Field(default=3)
    user_login_path: str = Field(default="/login")
    admin_login_path: str = Field(default="/admin-login")

    @property
    def default_extension(self) -> timedelta:
        return timedelta(hours=self.default_extension_hours)

    @property
    def monitor_interval(self) -> timedelta:
        return timedelta(seconds=self.monitor_interval_seconds)

    @property
    def warning_band(self) -> Tuple[timedelta, timedelta]:
        return (
            timedelta(minutes=self.warning_lower_minutes),
            timedelta(minutes=self.warning_upper_minutes),
        )

    @property
    def unauthorized_redirect_delay(self) -> timedelta:
        return timedelta(seconds=self.unauthorized_redirect_delay_seconds)


class LockoutSettings(BaseSettings):
    """Failed-login lockout configuration."""

    model_config = _section("LOCKOUT_")

    max_attempts: int = Field(default=5, ge=1)
    duration_minutes: float = Field(default=15)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


class ActivitySettings(BaseSettings):
    """Activity log configuration."""

    model_config = _section("ACTIVITY_")

    capacity: int = Field(default=100, ge=1)


class AdminBootstrapSettings(BaseSettings):
    """Default administrator created at startup when configured."""

    model_config = _section("ADMIN_")

    email: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)
    first_name: str = Field(default="Platform")
    last_name: str = Field(default="Administrator")


class APISettings(BaseSettings):
    """API configuration."""

    model_config = _section("API_")

    title: str = "Kájọpọ̀ Connect"
    description: str = "Opportunity matching platform for seekers, providers and administrators"
    version: str = "0.1.0"
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    reload: bool = Field(default=False)
    workers: int = Field(default=1)

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"]
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration."""

    model_config = _section("")

    log_level: str = Field(default="INFO")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=True)

    # Sub-configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    lockout: LockoutSettings = Field(default_factory=LockoutSettings)
    activity: ActivitySettings = Field(default_factory=ActivitySettings)
    admin: AdminBootstrapSettings = Field(default_factory=AdminBootstrapSettings)
    api: APISettings = Field(default_factory=APISettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)


# Global settings instance
settings = Settings()
