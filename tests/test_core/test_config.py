"""
Tests for configuration loading.
"""

from srs_bot.core.config import Settings, get_settings, is_production, is_testing


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.database_url.startswith("sqlite+aiosqlite:///")
        assert settings.log_level == "INFO"
        assert settings.srs_batch_size == 5
        assert settings.srs_interval_ladder == "1,3,7,14,30"
        assert settings.srs_timeout_policy == "revert"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SRS_BATCH_SIZE", "12")
        monkeypatch.setenv("SRS_ADAPTIVE_POLICY", "ladder")

        settings = Settings(_env_file=None)

        assert settings.srs_batch_size == 12
        assert settings.srs_adaptive_policy == "ladder"

    def test_extra_env_ignored(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SOMETHING_UNRELATED=1\nSRS_MAX_INTERVAL_DAYS=90\n")

        settings = Settings(_env_file=env_file)

        assert settings.srs_max_interval_days == 90


class TestEnvironmentHelpers:
    def test_testing_environment(self):
        get_settings.cache_clear()
        try:
            assert is_testing() is True
            assert is_production() is False
        finally:
            get_settings.cache_clear()

    def test_settings_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
