"""Tests for the pydantic-settings configuration."""

import warnings

from database import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RACE_DURATION_SECONDS", raising=False)
        settings = Settings(_env_file=None)
        assert settings.race_duration_seconds == 60
        assert settings.max_consecutive_quote_failures == 3
        assert settings.quote_timeout_seconds == 5.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RACE_DURATION_SECONDS", "30")
        monkeypatch.setenv("TICK_INTERVAL_SECONDS", "0.5")
        settings = Settings(_env_file=None)
        assert settings.race_duration_seconds == 30
        assert settings.tick_interval_seconds == 0.5

    def test_reads_dotenv_without_deprecation_warning(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("POLL_INTERVAL_SECONDS=7\n")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            settings = Settings(_env_file=env_file)
        assert settings.poll_interval_seconds == 7.0
        assert Settings.model_config["env_file"] == ".env"
