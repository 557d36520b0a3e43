from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "SOP Gate"
    debug: bool = False

    # CORS
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Database
    database_url: str = "sqlite:///./sopgate.db"
    database_echo: bool = False

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Celery
    celery_broker_url: Optional[str] = None
    celery_result_backend: Optional[str] = None
    celery_task_always_eager: bool = False

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        return self.celery_result_backend or self.redis_url

    # Security
    bcrypt_rounds: int = 12

    # Approver authentication throttling
    auth_max_attempts: int = 5
    auth_window_minutes: int = 15
    auth_limiter_shards: int = 16

    # Approval workflow
    approval_auto_approve_days: int = 7
    approval_sweep_interval_seconds: int = 3600
    approval_sweeper_enabled: bool = True
    system_actor: str = "system"

    # Default approver created by the seed command
    default_approver_username: Optional[str] = None
    default_approver_password: Optional[str] = None
    default_approver_name: Optional[str] = None
    default_approver_email: Optional[str] = None

    # Notifications
    notifications_enabled: bool = True
    notification_fallback_recipient: str = "admin@example.com"
    notification_max_retries: int = 3
    notification_retry_delay: int = 60
    public_base_url: str = "http://localhost:5173"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: str = "noreply@sopgate.local"
    smtp_from_name: str = "SOP Notification Service"
    smtp_use_tls: bool = False
    smtp_start_tls: bool = True

    # Audit follow-up retries
    audit_retry_max: int = 5

    # Volume holding the stored SOP files (document.file_path)
    document_storage_path: str = "."

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )

    @field_validator(
        "auth_max_attempts",
        "auth_window_minutes",
        "auth_limiter_shards",
        "approval_auto_approve_days",
        "approval_sweep_interval_seconds",
    )
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("bcrypt_rounds")
    @classmethod
    def _bcrypt_rounds_range(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
