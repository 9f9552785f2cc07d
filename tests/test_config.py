"""Unit tests for settings stored in the config table."""
import pytest

from crawlq.config import default_db_path, load_settings, normalize_key, set_setting
from crawlq.storage import Store


class TestSettings:
    """Tests for load_settings / set_setting."""

    def test_defaults_seeded(self, store):
        settings = load_settings(store)
        assert settings.failure_policy == "complete"
        assert settings.max_retries == 3
        assert settings.shutdown is False

    def test_set_accepts_dashed_key(self, store):
        assert set_setting(store, "max-retries", "5") == "max_retries"
        assert load_settings(store).max_retries == 5

    def test_set_rejects_unknown_key(self, store):
        with pytest.raises(KeyError):
            set_setting(store, "colour", "blue")

    def test_set_rejects_bad_policy(self, store):
        with pytest.raises(ValueError):
            set_setting(store, "failure_policy", "sometimes")
        assert load_settings(store).failure_policy == "complete"

    def test_set_rejects_zero_retries(self, store):
        with pytest.raises(ValueError):
            set_setting(store, "max_retries", "0")

    def test_settings_survive_reopen(self, db_path):
        with Store.open(db_path) as s:
            set_setting(s, "failure_policy", "retry")
        with Store.open(db_path) as s:
            assert load_settings(s).failure_policy == "retry"

    def test_normalize_key(self):
        assert normalize_key(" failure-policy ") == "failure_policy"


class TestDefaultPath:
    """Tests for default_db_path."""

    def test_uses_crawlq_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CRAWLQ_HOME", str(tmp_path / "home"))
        assert default_db_path() == tmp_path / "home" / "queue.db"
