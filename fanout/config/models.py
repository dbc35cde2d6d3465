"""Configuration schema models using Pydantic."""

from datetime import timedelta
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import (
    DurationParseError,
    parse_duration,
    seconds_to_timedelta,
    validate_duration_range,
)

# Names of the built-in notification templates that may be overridden
TEMPLATE_NAMES = (
    "content_title",
    "content_message",
    "reminder_title",
    "reminder_message",
)


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class DispatcherConfig(BaseModel):
    """Runtime settings for a dispatcher tick."""

    max_workers: int = Field(
        4, ge=1, le=64, description="Threads used to evaluate events within one tick"
    )
    max_concurrent_ticks: int = Field(
        2,
        ge=1,
        le=8,
        description="How many ticks may overlap when one runs past the next trigger",
    )
    insert_batch_size: int = Field(
        100, ge=1, le=1000, description="Rows per INSERT statement when writing notifications"
    )
    retry_failed_events: bool = Field(
        True,
        description="Re-attempt reminders whose dispatch failed on later ticks",
    )


class NotificationContentConfig(BaseModel):
    """Wording of generated notifications."""

    default_actor_name: str = Field(
        "A recruiter",
        min_length=1,
        description="Display name used when the actor has no profile name",
    )
    templates: Dict[str, str] = Field(
        default_factory=dict,
        description="Jinja2 source overrides keyed by template name",
    )

    @field_validator("default_actor_name")
    @classmethod
    def strip_actor_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("default_actor_name cannot be empty")
        return stripped

    @field_validator("templates")
    @classmethod
    def validate_template_names(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Only built-in templates can be overridden."""
        unknown = sorted(set(v) - set(TEMPLATE_NAMES))
        if unknown:
            raise ValueError(
                f"Unknown template name(s): {', '.join(unknown)}. "
                f"Valid names: {', '.join(TEMPLATE_NAMES)}"
            )
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the notification dispatcher.

    ``poll_interval`` is both the scheduler cadence and the width of the
    reminder window evaluated by each tick; there is no separate
    window setting.
    """

    poll_interval: str = Field("5m", description="Tick cadence and reminder window width")
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    notifications: NotificationContentConfig = Field(
        default_factory=NotificationContentConfig
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    # Computed field
    poll_interval_seconds: Optional[int] = None

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str) -> str:
        """Validate that the poll interval parses and is within range."""
        try:
            validate_duration_range(parse_duration(v))
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_fields(self):
        """Compute the poll interval in seconds."""
        self.poll_interval_seconds = parse_duration(self.poll_interval)
        return self

    @property
    def window(self) -> timedelta:
        """Reminder window width (identical to the poll interval)."""
        return seconds_to_timedelta(self.poll_interval_seconds)
