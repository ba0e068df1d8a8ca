"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="sqlite+aiosqlite:///./helpdesk.db",
        description="Async SQLAlchemy connection URL (postgresql+asyncpg://... in production)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_hours_urgent: int = Field(default=4, description="Resolution hours for urgent tickets", ge=1)
    sla_hours_high: int = Field(default=4, description="Resolution hours for high tickets", ge=1)
    sla_hours_medium: int = Field(default=12, description="Resolution hours for medium tickets", ge=1)
    sla_hours_low: int = Field(default=48, description="Resolution hours for low tickets", ge=1)
    sla_default_hours: int = Field(
        default=24,
        description="Resolution hours for priorities missing from the table",
        ge=1
    )
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Optional YAML file overriding the SLA hour table"
    )
    sla_sweep_interval_minutes: int = Field(
        default=5,
        description="Minutes between background SLA breach sweeps (0 disables the sweep)",
        ge=0
    )

    # ========== Idempotency ==========
    idempotency_ttl_hours: int = Field(
        default=24,
        description="Hours an Idempotency-Key stays bound to its resource",
        ge=1
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA breach notifications"
    )
    slack_channel: str = Field(
        default="#helpdesk-sla",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str):
    """Ticket priority levels."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class UserRole(str):
    """Roles that drive access decisions."""
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class ResourceType(str):
    """Resource tags used to namespace idempotency keys."""
    TICKET = "ticket"
    USER = "user"


class HistoryAction(str):
    """Audit trail action tags."""
    CREATED = "created"
    COMMENTED = "commented"
    UPDATED_PREFIX = "updated_"


# ========== Lists for validation ==========

VALID_PRIORITIES = [Priority.URGENT, Priority.HIGH, Priority.MEDIUM, Priority.LOW]
VALID_STATUSES = [
    TicketStatus.OPEN, TicketStatus.IN_PROGRESS,
    TicketStatus.RESOLVED, TicketStatus.CLOSED
]
TERMINAL_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]
VALID_ROLES = [UserRole.USER, UserRole.AGENT, UserRole.ADMIN]
STAFF_ROLES = [UserRole.AGENT, UserRole.ADMIN]
