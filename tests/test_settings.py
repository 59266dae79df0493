import json
from pathlib import Path

import pytest

from reminder_core.settings import EngineSettings, SettingsManager


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "settings.json"


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_missing_file_yields_defaults(settings_path):
    assert SettingsManager(settings_path).read_settings() == EngineSettings()


def test_values_are_read(settings_path, tmp_path):
    _write(
        settings_path,
        {
            "enabled": False,
            "scan_interval_seconds": 30,
            "auto_dismiss_ms": 5000,
            "event_refresh_seconds": 300,
            "important_marker": " [URGENT] ",
            "store_path": str(tmp_path / "store.json"),
        },
    )

    settings = SettingsManager(settings_path).read_settings()

    assert settings.enabled is False
    assert settings.scan_interval_seconds == 30
    assert settings.auto_dismiss_ms == 5000
    assert settings.event_refresh_seconds == 300
    assert settings.important_marker == "[URGENT]"
    assert settings.store_path == Path(tmp_path / "store.json")
    assert settings.events_path == EngineSettings().events_path


def test_out_of_range_values_are_clamped(settings_path):
    _write(settings_path, {"scan_interval_seconds": 1, "auto_dismiss_ms": 10_000_000})

    settings = SettingsManager(settings_path).read_settings()

    assert settings.scan_interval_seconds == 10
    assert settings.auto_dismiss_ms == 600_000


def test_wrong_types_fall_back_to_defaults(settings_path):
    _write(settings_path, {"enabled": "no", "scan_interval_seconds": True, "important_marker": 7})

    settings = SettingsManager(settings_path).read_settings()

    assert settings == EngineSettings()


@pytest.mark.parametrize("contents", ["{not json", "[1, 2]"])
def test_unreadable_file_yields_defaults(settings_path, contents):
    settings_path.write_text(contents, encoding="utf-8")
    assert SettingsManager(settings_path).read_settings() == EngineSettings()
