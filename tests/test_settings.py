"""Tests for application settings."""

import json

import pytest

from models.settings import AppSettings
from utils import get_app_dir, get_settings_path


class TestAppSettings:
    def test_defaults(self):
        settings = AppSettings()
        assert settings.queue_capacity == 32
        assert settings.log_level == "INFO"
        assert settings.log_retention_days == 7

    def test_log_level_normalized(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize("overrides", [
        {"queue_capacity": 0},
        {"queue_capacity": True},
        {"queue_capacity": "8"},
        {"log_level": "LOUD"},
        {"log_retention_days": -1},
        {"display_name": "   "},
        {"display_name": "x" * 33},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            AppSettings(**overrides)

    def test_save_and_load(self, data_dir):
        path = get_settings_path(data_dir)
        AppSettings(queue_capacity=8, display_name="alice", hide_balance=True).save(path)

        loaded = AppSettings.load(path)
        assert loaded.queue_capacity == 8
        assert loaded.display_name == "alice"
        assert loaded.hide_balance is True

    def test_unknown_keys_ignored(self, data_dir):
        path = get_settings_path(data_dir)
        path.write_text(json.dumps({"queue_capacity": 4, "theme": "dark"}))
        assert AppSettings.load(path).queue_capacity == 4

    def test_corrupt_file_falls_back(self, data_dir):
        path = get_settings_path(data_dir)
        path.write_text("{broken")
        assert AppSettings.load(path) == AppSettings()

    def test_invalid_file_falls_back(self, data_dir):
        path = get_settings_path(data_dir)
        path.write_text(json.dumps({"queue_capacity": -5}))
        assert AppSettings.load(path) == AppSettings()

    def test_missing_file(self, data_dir):
        assert AppSettings.load(data_dir / "missing.json") == AppSettings()

    def test_app_dir_override(self, data_dir):
        assert get_app_dir() == data_dir
        assert get_settings_path() == data_dir / "settings.json"
