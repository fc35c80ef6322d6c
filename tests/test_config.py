"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from salonbook.config import AppConfig, DefaultsConfig, load_config


def _write_config(tmp_path, content: str):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_load_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SALONBOOK_SUPABASE_KEY", raising=False)
        monkeypatch.delenv("SALONBOOK_RESEND_API_KEY", raising=False)
        config_path = _write_config(
            tmp_path,
            "supabase_url: https://demo.supabase.co/\n"
            "supabase_key: anon\n"
            "salon_id: salon_1\n"
            "defaults:\n"
            "  duration_minutes: 45\n"
            "closed_days: [6, 0, 6]\n",
        )

        config = AppConfig.load_from_yaml(config_path)

        assert config.supabase_url == "https://demo.supabase.co"
        assert config.defaults.duration_minutes == 45
        assert config.closed_days == [6, 0]
        assert not config.email.enabled
        config.require_backend()

    def test_environment_overrides_secrets(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SALONBOOK_SUPABASE_KEY", "from-env")
        monkeypatch.setenv("SALONBOOK_RESEND_API_KEY", "re_123")
        config_path = _write_config(tmp_path, "supabase_key: from-file\n")

        config = AppConfig.load_from_yaml(config_path)

        assert config.supabase_key == "from-env"
        assert config.email.resend_api_key == "re_123"
        assert config.email.enabled

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml_root(self, tmp_path):
        config_path = _write_config(tmp_path, "- just\n- a list\n")

        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(config_path)

    def test_require_backend_lists_missing_fields(self):
        config = AppConfig(supabase_url="https://demo.supabase.co")

        with pytest.raises(ValueError, match="supabase_key, salon_id"):
            config.require_backend()

    def test_invalid_url(self):
        with pytest.raises(ValidationError):
            AppConfig(supabase_url="demo.supabase.co")

    def test_invalid_closed_days(self):
        with pytest.raises(ValidationError):
            AppConfig(closed_days=[7])

    def test_opening_hours(self):
        config = AppConfig(defaults=DefaultsConfig(open_hour=10, close_hour=18))

        hours = config.opening_hours()

        assert hours.start_time.hour == 10
        assert hours.end_time.hour == 18
        assert hours.closed_weekdays == [6]


class TestDefaultsConfig:
    """Tests for DefaultsConfig."""

    def test_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            DefaultsConfig(duration_minutes=0)

    def test_close_after_open(self):
        with pytest.raises(ValidationError):
            DefaultsConfig(open_hour=18, close_hour=9)


class TestLoadConfig:
    """Tests for load_config."""

    def test_mock_mode_without_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "config.yaml", mock=True)

        assert config.defaults.duration_minutes == 30
        assert config.timezone == "Europe/Berlin"

    def test_live_mode_requires_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "config.yaml")
