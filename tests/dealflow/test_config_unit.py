"""Tests for board settings loading."""

import logging

import pytest
from pydantic import ValidationError

from src.dealflow.config import BoardSettings, configure_logging, get_settings
from src.dealflow.events import EventSinkType


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DEALFLOW_API_BASE_URL",
        "DEALFLOW_API_TOKEN",
        "DEALFLOW_REQUEST_TIMEOUT_SECONDS",
        "DEALFLOW_MAX_RETRIES",
        "DEALFLOW_DRAG_ACTIVATION_DISTANCE",
        "DEALFLOW_NOTIFICATION_LIMIT",
        "DEALFLOW_EVENT_SINKS",
        "DEALFLOW_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestBoardSettings:
    """Tests for BoardSettings."""

    def test_defaults(self) -> None:
        settings = get_settings()

        assert settings.api_base_url == "http://localhost:8000"
        assert settings.api_token is None
        assert settings.max_retries == 0
        assert settings.drag_activation_distance == 8.0
        assert settings.notification_limit == 50
        assert settings.event_sinks == [EventSinkType.LOGGING]
        assert settings.log_level == "INFO"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEALFLOW_API_BASE_URL", "https://crm.example.com/")
        monkeypatch.setenv("DEALFLOW_API_TOKEN", "test-token")
        monkeypatch.setenv("DEALFLOW_MAX_RETRIES", "3")
        monkeypatch.setenv("DEALFLOW_EVENT_SINKS", '["logging", "metrics"]')
        monkeypatch.setenv("DEALFLOW_LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.api_base_url == "https://crm.example.com"
        assert settings.api_token == "test-token"
        assert settings.max_retries == 3
        assert settings.event_sinks == [EventSinkType.LOGGING, EventSinkType.METRICS]
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("url", ["", "crm.example.com", "ftp://crm.example.com"])
    def test_invalid_base_url(self, url: str) -> None:
        with pytest.raises(ValidationError):
            BoardSettings(api_base_url=url)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("request_timeout_seconds", 0),
            ("max_retries", -1),
            ("drag_activation_distance", -0.5),
            ("notification_limit", 0),
            ("log_level", "verbose"),
        ],
    )
    def test_invalid_values(self, field: str, value) -> None:
        with pytest.raises(ValidationError):
            BoardSettings(**{field: value})

    def test_zero_activation_distance_allowed(self) -> None:
        assert BoardSettings(drag_activation_distance=0).drag_activation_distance == 0


class TestConfigureLogging:
    def test_sets_root_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        configure_logging(BoardSettings(log_level="warning"))

        assert calls[0]["level"] == logging.WARNING
