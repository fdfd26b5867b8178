"""Tests for settings loading."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.hubstorage.config import HubStorageSettings, get_settings


@pytest.fixture
def required_env(monkeypatch):
    """Set the required HUBSTORAGE_ variables."""
    monkeypatch.setenv("HUBSTORAGE_GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("HUBSTORAGE_OWNER", "acme")
    for name in (
        "HUBSTORAGE_APP_NAME",
        "HUBSTORAGE_GITHUB_BASE_URL",
        "HUBSTORAGE_ISSUE_LOOKBACK_DAYS",
        "HUBSTORAGE_MINIMUM_INTERACTION_INTERVAL_MS",
        "HUBSTORAGE_CURSOR_DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestGetSettings:
    """Tests for get_settings."""

    def test_defaults(self, required_env):
        """Test that defaults apply when only required vars are set."""
        settings = get_settings()

        assert settings.github_token == "ghp_test"
        assert settings.owner == "acme"
        assert settings.app_name == "hub-storage"
        assert settings.github_base_url == "https://api.github.com"
        assert settings.issue_lookback == timedelta(days=14)
        assert settings.minimum_interaction_interval == timedelta(milliseconds=1200)
        assert settings.cursor_database_url is None
        assert settings.cursor_name == "issues"

    def test_reads_environment(self, required_env, monkeypatch):
        monkeypatch.setenv("HUBSTORAGE_ISSUE_LOOKBACK_DAYS", "3")
        monkeypatch.setenv("HUBSTORAGE_GITHUB_BASE_URL", "https://ghe.example.com/api/v3")
        monkeypatch.setenv("HUBSTORAGE_CURSOR_DATABASE_URL", "postgresql://db/hub")

        settings = get_settings()

        assert settings.issue_lookback == timedelta(days=3)
        assert settings.github_base_url == "https://ghe.example.com/api/v3"
        assert settings.cursor_database_url == "postgresql://db/hub"

    def test_missing_token_fails(self, monkeypatch):
        monkeypatch.delenv("HUBSTORAGE_GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("HUBSTORAGE_OWNER", "acme")

        with pytest.raises(ValidationError):
            get_settings()


class TestValidators:
    """Tests for field validation."""

    def test_blank_token_rejected(self):
        with pytest.raises(ValidationError):
            HubStorageSettings(github_token="  ", owner="acme")

    def test_owner_is_stripped(self):
        settings = HubStorageSettings(github_token="t", owner=" acme ")
        assert settings.owner == "acme"

    def test_base_url_requires_scheme(self):
        with pytest.raises(ValidationError):
            HubStorageSettings(github_token="t", owner="acme", github_base_url="api.github.com")

    def test_lookback_must_be_positive(self):
        with pytest.raises(ValidationError):
            HubStorageSettings(github_token="t", owner="acme", issue_lookback_days=0)

    def test_blank_database_url_means_memory(self):
        settings = HubStorageSettings(github_token="t", owner="acme", cursor_database_url=" ")
        assert settings.cursor_database_url is None

    def test_database_url_must_be_postgres(self):
        with pytest.raises(ValidationError):
            HubStorageSettings(
                github_token="t",
                owner="acme",
                cursor_database_url="mysql://db/hub",
            )
