"""
Module: settings.py
Description: Application configuration using pydantic-settings.

Configures the dispatch, queue and delivery engine from environment
variables with validation and defaults. Supports .env files for local
development. Components receive a Settings instance at construction;
the module-level ``settings`` object is only the default.
"""

import re
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookrelay import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="hookrelay", description="Application name")
    app_version: str = Field(default=__version__, description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")
    site_url: str = Field(default="", description="Host site URL reported in payloads")

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="AWS region")
    stage: str = Field(default="dev", description="Deployment stage")
    dynamodb_endpoint_url: Optional[str] = Field(
        default=None,
        description="Optional DynamoDB endpoint (DynamoDB Local)"
    )

    # DynamoDB settings
    queue_table_name: str = Field(
        default="hookrelay-queue",
        description="Name of the DynamoDB delivery job table"
    )
    logs_table_name: str = Field(
        default="hookrelay-logs",
        description="Name of the DynamoDB delivery log table"
    )
    schemas_table_name: str = Field(
        default="hookrelay-trigger-schemas",
        description="Name of the DynamoDB trigger schema table"
    )
    destinations_table_name: str = Field(
        default="hookrelay-destinations",
        description="Name of the DynamoDB destination table"
    )

    # Queue settings
    max_attempts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum delivery attempts stamped onto each job"
    )
    attempt_history_cap: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of attempts kept in a delivery log's history"
    )
    backoff_base_seconds: int = Field(
        default=30,
        ge=1,
        description="Delay before the first retry"
    )
    backoff_max_seconds: int = Field(
        default=3600,
        ge=1,
        description="Upper bound for any retry delay"
    )
    stale_lock_timeout_minutes: int = Field(
        default=5,
        ge=1,
        description="Minutes after which a processing lock is considered abandoned"
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Jobs processed per scheduled worker run"
    )
    completed_retention_days: int = Field(
        default=7,
        ge=1,
        description="Days completed jobs are kept before the retention sweep"
    )

    # Delivery settings
    http_timeout: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="HTTP timeout in seconds for delivery attempts"
    )
    http_connect_timeout: float = Field(
        default=2.0,
        gt=0,
        le=60,
        description="HTTP connect timeout in seconds"
    )
    require_https: bool = Field(
        default=True,
        description="Reject endpoints that are not https://"
    )

    # Metrics settings
    metrics_enabled: bool = Field(default=False, description="Publish CloudWatch metrics")
    metrics_namespace: str = Field(default="Hookrelay", description="CloudWatch namespace")

    # Actor enrichment trigger categories
    user_id_triggers: List[str] = Field(
        default_factory=lambda: ["user_register", "profile_update", "delete_user", "set_user_role"],
        description="Triggers whose args carry the actor id"
    )
    user_object_triggers: List[str] = Field(
        default_factory=lambda: ["wp_login", "password_reset"],
        description="Triggers whose args carry the full actor object"
    )
    current_user_triggers: List[str] = Field(
        default_factory=lambda: ["wp_logout"],
        description="Triggers enriched with the ambient current actor"
    )

    @field_validator(
        'queue_table_name',
        'logs_table_name',
        'schemas_table_name',
        'destinations_table_name'
    )
    @classmethod
    def validate_table_names(cls, v: str) -> str:
        """Validate DynamoDB table names."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[a-zA-Z0-9_-]+$', v):
            raise ValueError(
                "Table name must contain only letters, numbers, hyphens, and underscores"
            )

        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @model_validator(mode='after')
    def validate_backoff_bounds(self) -> "Settings":
        """Backoff cap must not be below the base delay."""
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must be >= backoff_base_seconds")
        return self


# Global settings instance
settings = Settings()
