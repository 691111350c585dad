"""Unit tests for core configuration module."""

import pytest
from pydantic import ValidationError

from erp_exports.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Settings load from environment variables."""
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api")
        monkeypatch.setenv("API_TOKEN", "abc123")
        monkeypatch.setenv("ORGANIZATION_ID", "12")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.api_base_url == "https://erp.example.com/api"
        assert settings.api_token == "abc123"
        assert settings.organization_id == 12

    def test_settings_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Default values are applied correctly."""
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.api_token is None
        assert settings.organization_id is None
        assert settings.request_timeout == 30.0
        assert settings.export_poll_interval == 2.0
        assert settings.export_poll_max_backoff == 30.0
        assert settings.export_max_tracking_seconds == 1800.0
        assert settings.export_fallback_page_size == 500
        assert settings.export_fallback_concurrency == 5
        assert settings.export_dir == "./exports"
        assert settings.log_level == "INFO"
        assert settings.log_dir is None

    def test_base_url_trailing_slash_stripped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api/")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.api_base_url == "https://erp.example.com/api"

    def test_base_url_requires_http_scheme(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "erp.example.com/api")
        with pytest.raises(ValidationError, match="http:// or https://"):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_base_url_is_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("API_BASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_poll_interval_must_be_positive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api")
        monkeypatch.setenv("EXPORT_POLL_INTERVAL", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_fallback_concurrency_upper_bound(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api")
        monkeypatch.setenv("EXPORT_FALLBACK_CONCURRENCY", "50")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_get_settings_returns_fresh_instance(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://erp.example.com/api")
        first = get_settings()
        monkeypatch.setenv("EXPORT_DIR", "/tmp/other")
        second = get_settings()
        assert first is not second
        assert second.export_dir == "/tmp/other"
