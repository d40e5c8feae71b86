"""
Configuration Tests
===================

YAML loading, environment overrides and the settings accessor.
"""

import pytest
from pydantic import ValidationError

from gemini_relay import config as config_module
from gemini_relay.config import Settings, get_settings, load_config, reset_settings


ENV_VARS = [
    "GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_API_VERSION", "RELAY_TURN_TIMEOUT",
    "MAX_FRAME_SIZE", "MAX_FRAMES_PER_REQUEST", "FRAME_QUALITY", "CAPTURE_INTERVAL_MS",
    "HOST", "PORT", "SOCKET_CORS_ORIGIN", "RELAY_ENV", "RELAY_SERVER_URL",
    "LOG_LEVEL", "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


class TestDefaults:
    def test_defaults(self):
        settings = Settings()

        assert settings.server.port == 5000
        assert settings.gemini.model == "gemini-live-2.5-flash-preview"
        assert settings.frames.max_payload_bytes == 15 * 1024 * 1024
        assert settings.frames.max_frames_per_request == 30
        assert settings.frames.jpeg_quality == 0.7
        assert settings.frames.capture_interval_ms == 1000
        assert not settings.has_api_key()

    def test_interval_range_enforced(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"frames": {"capture_interval_ms": 500}})


class TestLoadConfig:
    """Tests for load_config()."""

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "gemini:\n  model: custom-model\nframes:\n  max_frames_per_request: 5\n"
        )

        settings = load_config(str(path))

        assert settings.gemini.model == "custom-model"
        assert settings.frames.max_frames_per_request == 5

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  port: 7000\n")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("GEMINI_API_KEY", "secret")
        monkeypatch.setenv("MAX_FRAME_SIZE", "1024")
        monkeypatch.setenv("SOCKET_CORS_ORIGIN", "http://a.test, http://b.test")
        monkeypatch.setenv("RELAY_TURN_TIMEOUT", "0")

        settings = load_config(str(path))

        assert settings.server.port == 8080
        assert settings.has_api_key()
        assert settings.frames.max_payload_bytes == 1024
        assert settings.server.cors_origins == ["http://a.test", "http://b.test"]
        assert settings.gemini.turn_timeout_seconds == 0

    def test_placeholder_key(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GEMINI_API_KEY", "your_api_key_here")
        settings = load_config(str(tmp_path / "missing.yaml"))
        assert not settings.has_api_key()


class TestSettingsAccessor:
    def test_cached_until_reset(self, monkeypatch):
        monkeypatch.setattr(config_module, "load_config", lambda path=None: Settings())

        first = get_settings()
        assert get_settings() is first

        reset_settings()
        assert get_settings() is not first
