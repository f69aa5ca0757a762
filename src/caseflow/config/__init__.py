"""
Configuration Module
====================

Application settings and domain constants using Pydantic.
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
    app_name: str = Field(default="caseflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/caseflow",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Monitoring ==========
    sla_policy_path: Path = Field(
        default=Path("sla_policy.yaml"),
        description="Path to SLA policy YAML file"
    )
    sla_scan_interval: int = Field(
        default=300,
        description="Seconds between SLA monitor scans",
        ge=10
    )
    sla_scan_batch_size: int = Field(
        default=500,
        description="Max overdue records flagged per scan",
        ge=1
    )
    sla_monitor_enabled: bool = Field(
        default=True,
        description="Run the SLA monitor inside this process"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for notifications"
    )
    slack_channel: str = Field(
        default="#case-alerts",
        description="Slack channel for notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== Transition Actions ==========
    webhook_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for webhook actions",
        ge=0.1,
        le=60
    )
    super_admin_role: str = Field(
        default="super_admin",
        description="Role that bypasses transition role guards"
    )
    directory_path: Optional[Path] = Field(
        default=None,
        description="YAML file describing departments and users for matching"
    )

    # ========== Revision Log ==========
    revision_retention_days: int = Field(
        default=365,
        description="Minimum age in days before revisions may be purged",
        ge=1
    )
    revision_page_size_max: int = Field(
        default=200,
        description="Largest page size accepted by revision queries",
        ge=1
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
        allowed = {"development", "staging", "production"}
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

class RecordType(str):
    """Kinds of trackable case records."""
    INCIDENT = "incident"
    REQUEST = "request"
    COMPLAINT = "complaint"
    QUERY = "query"


class RequirementType(str):
    """Transition guard kinds."""
    COMMENT = "comment"
    FIELD = "field"
    ATTACHMENT = "attachment"
    MIN_ATTACHMENTS = "min_attachments"
    FEEDBACK = "feedback"


class ActionType(str):
    """Post-transition effect kinds."""
    ASSIGN = "assign"
    SET_FIELD = "set_field"
    RECOMPUTE_SLA = "recompute_sla"
    CHANGE_RECORD_TYPE = "change_record_type"
    NOTIFY = "notify"
    WEBHOOK = "webhook"


class RevisionAction(str):
    """Audit log entry kinds."""
    CREATED = "created"
    UPDATED = "updated"
    TRANSITIONED = "transitioned"
    COMMENT_ADDED = "comment_added"
    ATTACHMENT_ADDED = "attachment_added"
    ASSIGNED = "assigned"
    SLA_BREACHED = "sla_breached"
    SLA_RECOMPUTED = "sla_recomputed"
    RECORD_TYPE_CHANGED = "record_type_changed"
    CONVERTED = "converted"
    ACTION_WARNING = "action_warning"


class MatchDimension(str):
    """Constraint dimensions understood by the criteria matcher."""
    CLASSIFICATION = "classification"
    LOCATION = "location"
    DEPARTMENT = "department"
    CHANNEL = "channel"
    RECORD_TYPE = "record_type"


class NotificationKind(str):
    """Notification kinds handed to the notifier."""
    TRANSITION = "transition"
    SLA_BREACHED = "sla_breached"


# ========== Lists for validation ==========

VALID_RECORD_TYPES = [
    RecordType.INCIDENT, RecordType.REQUEST,
    RecordType.COMPLAINT, RecordType.QUERY
]
VALID_REQUIREMENT_TYPES = [
    RequirementType.COMMENT, RequirementType.FIELD, RequirementType.ATTACHMENT,
    RequirementType.MIN_ATTACHMENTS, RequirementType.FEEDBACK
]
VALID_ACTION_TYPES = [
    ActionType.ASSIGN, ActionType.SET_FIELD, ActionType.RECOMPUTE_SLA,
    ActionType.CHANGE_RECORD_TYPE, ActionType.NOTIFY, ActionType.WEBHOOK
]
VALID_REVISION_ACTIONS = [
    RevisionAction.CREATED, RevisionAction.UPDATED, RevisionAction.TRANSITIONED,
    RevisionAction.COMMENT_ADDED, RevisionAction.ATTACHMENT_ADDED,
    RevisionAction.ASSIGNED, RevisionAction.SLA_BREACHED,
    RevisionAction.SLA_RECOMPUTED, RevisionAction.RECORD_TYPE_CHANGED,
    RevisionAction.CONVERTED, RevisionAction.ACTION_WARNING
]
WORKFLOW_MATCH_DIMENSIONS = [
    MatchDimension.CLASSIFICATION, MatchDimension.LOCATION,
    MatchDimension.DEPARTMENT, MatchDimension.CHANNEL
]

RECORD_NUMBER_PREFIXES = {
    RecordType.INCIDENT: "INC",
    RecordType.REQUEST: "REQ",
    RecordType.COMPLAINT: "CMP",
    RecordType.QUERY: "QRY",
}
