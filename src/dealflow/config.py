"""Board engine configuration using pydantic-settings.

Settings are read from environment variables with the DEALFLOW_ prefix.
Every field has a default, so a host application can build a working
engine without any environment set.
"""

import logging
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.dealflow.events.emitter import EventSinkType


class BoardSettings(BaseSettings):
    """Board engine configuration from environment variables.

    All environment variables are prefixed with DEALFLOW_ (e.g.,
    DEALFLOW_API_BASE_URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="DEALFLOW_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Remote API
    # -------------------------------------------------------------------------
    # Base URL of the deal API used by the HTTP mutation gateways
    api_base_url: str = "http://localhost:8000"

    # Bearer token sent with every gateway request
    api_token: Optional[str] = None

    # Per-request timeout for gateway calls
    request_timeout_seconds: float = 30.0

    # Transport retries for 429/5xx responses; 0 disables retries
    max_retries: int = 0

    # -------------------------------------------------------------------------
    # Interaction
    # -------------------------------------------------------------------------
    # Pointer travel in pixels before a press becomes a drag
    drag_activation_distance: float = 8.0

    # Maximum number of queued user notifications
    notification_limit: int = 50

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------
    event_sinks: List[EventSinkType] = [EventSinkType.LOGGING]

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate that the API base URL is an http(s) URL."""
        if not v or not v.strip():
            raise ValueError("api_base_url cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v

    @field_validator("drag_activation_distance")
    @classmethod
    def validate_activation_distance(cls, v: float) -> float:
        if v < 0:
            raise ValueError("drag_activation_distance cannot be negative")
        return v

    @field_validator("notification_limit")
    @classmethod
    def validate_notification_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("notification_limit must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is a known logging level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level


def get_settings() -> BoardSettings:
    """Create and return a BoardSettings instance.

    Raises:
        pydantic.ValidationError: If an environment value is invalid.
    """
    return BoardSettings()


def configure_logging(settings: BoardSettings) -> None:
    """Configure root logging for a host application.

    The engine itself never configures logging; applications embedding it
    may call this once at startup.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
