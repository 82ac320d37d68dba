"""Tests for configuration loading."""

import pytest

from mediasync.config import Config, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("USER_ID", "GUEST", "CACHE_DB_PATH", "REMOTE_URL", "TMDB_API_KEY", "SMART_SYNC_INTERVAL"):
        monkeypatch.delenv(f"MEDIASYNC_{key}", raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self):
        config = load_config()
        assert config == Config()
        assert config.notifications.max_age_days == 30
        assert config.notifications.max_count == 150
        assert config.smart_sync.max_retries == 2
        assert config.smart_sync.request_delay_seconds == 1.0

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(tmp_path / "nope.yaml") == Config()

    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "session:\n"
            "  user_id: alice\n"
            "cache:\n"
            "  db_path: /tmp/cache.db\n"
            "remote:\n"
            "  base_url: http://docs.local\n"
            "notifications:\n"
            "  max_count: 50\n"
            "smart_sync:\n"
            "  min_interval_hours: 12\n"
        )

        config = load_config(path)

        assert config.session.user_id == "alice"
        assert config.cache.db_path == "/tmp/cache.db"
        assert config.remote.base_url == "http://docs.local"
        assert config.notifications.max_count == 50
        assert config.notifications.max_age_days == 30
        assert config.smart_sync.min_interval_hours == 12
        assert config.smart_sync.max_retries == 2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == Config()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("session:\n  user_id: alice\n")
        monkeypatch.setenv("MEDIASYNC_USER_ID", "bob")
        monkeypatch.setenv("MEDIASYNC_GUEST", "yes")
        monkeypatch.setenv("MEDIASYNC_TMDB_API_KEY", "key")
        monkeypatch.setenv("MEDIASYNC_SMART_SYNC_INTERVAL", "15")

        config = load_config(path)

        assert config.session.user_id == "bob"
        assert config.session.guest is True
        assert config.metadata.api_key == "key"
        assert config.smart_sync.interval_minutes == 15
