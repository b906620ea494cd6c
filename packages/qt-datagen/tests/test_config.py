"""Tests for qt-datagen settings."""

from qt_datagen.config import Settings, get_settings


class TestSettings:
    """Defaults, environment overrides and the retry policy."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.default_dialect == "mysql"
        assert settings.default_row_count == 10
        assert settings.max_attempts == 5
        assert settings.min_pass_rate == 60.0
        assert settings.retry_backoff_ms == 100
        assert settings.live_validation is False

    def test_environment_override(self, monkeypatch):
        """QT_DATAGEN_* variables override defaults."""
        monkeypatch.setenv("QT_DATAGEN_DEFAULT_DIALECT", "oracle")
        monkeypatch.setenv("QT_DATAGEN_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("QT_DATAGEN_SEED", "11")
        settings = Settings(_env_file=None)
        assert settings.default_dialect == "oracle"
        assert settings.max_attempts == 3
        assert settings.seed == 11

    def test_retry_policy_without_deadline(self):
        policy = Settings(_env_file=None).retry_policy()
        assert policy == {
            "max_attempts": 5,
            "min_pass_rate": 60.0,
            "backoff_ms": 100,
            "deadline_seconds": None,
        }

    def test_retry_policy_with_deadline(self):
        settings = Settings(attempt_deadline_seconds=2.5, _env_file=None)
        assert settings.has_deadline
        assert settings.retry_policy()["deadline_seconds"] == 2.5

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
