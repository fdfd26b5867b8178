"""Storage configuration using pydantic-settings.

This module defines the HubStorageSettings class that reads configuration
from environment variables with the HUBSTORAGE_ prefix. The GitHub token
and owner must be set for the facade to start.
"""

from datetime import timedelta
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HubStorageSettings(BaseSettings):
    """Storage facade configuration from environment variables.

    All environment variables are prefixed with HUBSTORAGE_
    (e.g., HUBSTORAGE_GITHUB_TOKEN).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token
    - owner: Default repository owner (user or organization)
    """

    model_config = SettingsConfigDict(
        env_prefix="HUBSTORAGE_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    github_token: str

    # Default repository owner
    owner: str

    # Product name sent as User-Agent
    app_name: str = "hub-storage"

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    request_timeout_seconds: float = 30.0

    # Transport-level retries for transient failures
    max_retries: int = 3

    # -------------------------------------------------------------------------
    # Issue Polling Configuration
    # -------------------------------------------------------------------------
    # Age of the initial poll watermark
    issue_lookback_days: int = 14

    # Minimum pause callers should keep between polls
    minimum_interaction_interval_ms: int = 1200

    # PostgreSQL URL for persisting the poll cursor; in memory when unset
    cursor_database_url: Optional[str] = None

    cursor_name: str = "issues"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("owner")
    @classmethod
    def validate_owner(cls, v: str) -> str:
        """Validate that owner is not empty."""
        if not v or not v.strip():
            raise ValueError("owner cannot be empty")
        return v.strip()

    @field_validator("github_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that the API base URL has an http(s) scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate that the request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v

    @field_validator("issue_lookback_days")
    @classmethod
    def validate_lookback_days(cls, v: int) -> int:
        """Validate that lookback days is positive."""
        if v < 1:
            raise ValueError("issue_lookback_days must be at least 1")
        return v

    @field_validator("minimum_interaction_interval_ms")
    @classmethod
    def validate_interaction_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("minimum_interaction_interval_ms cannot be negative")
        return v

    @field_validator("cursor_database_url")
    @classmethod
    def validate_cursor_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the cursor database URL is a PostgreSQL URL."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "cursor_database_url must start with postgresql:// or postgres://"
            )
        return v

    @property
    def issue_lookback(self) -> timedelta:
        return timedelta(days=self.issue_lookback_days)

    @property
    def minimum_interaction_interval(self) -> timedelta:
        return timedelta(milliseconds=self.minimum_interaction_interval_ms)


def get_settings() -> HubStorageSettings:
    """Create and return HubStorageSettings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return HubStorageSettings()
