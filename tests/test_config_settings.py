"""
Tests for flatfile/config/settings.py

Environment variables are set with monkeypatch; the autouse fixture in
conftest.py clears FLATFILE_* variables and resets the cached settings.
"""

import pytest

from flatfile.config.settings import (
    ReadSettings,
    Settings,
    WriteSettings,
    get_settings,
    reset_settings,
)


def test_defaults_without_environment():
    settings = get_settings()

    assert settings.read.delimiter == ","
    assert settings.read.na == ("", "NA")
    assert settings.read.guess_max == 1000
    assert settings.read.encoding == "utf-8"
    assert settings.read.trim_ws is True
    assert settings.write.delimiter == ","
    assert settings.write.na == ""
    assert settings.log_level == "INFO"


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("FLATFILE_DELIMITER", "tab")
    monkeypatch.setenv("FLATFILE_NA", ".,N/A, -999")
    monkeypatch.setenv("FLATFILE_GUESS_MAX", "50")
    monkeypatch.setenv("FLATFILE_TRIM_WS", "no")
    monkeypatch.setenv("FLATFILE_OUTPUT_DELIMITER", ";")
    monkeypatch.setenv("FLATFILE_OUTPUT_NA", "NA")
    monkeypatch.setenv("FLATFILE_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.read.delimiter == "\t"
    assert settings.read.na == (".", "N/A", "-999")
    assert settings.read.guess_max == 50
    assert settings.read.trim_ws is False
    assert settings.write.delimiter == ";"
    assert settings.write.na == "NA"
    assert settings.log_level == "debug"


def test_invalid_guess_max(monkeypatch):
    monkeypatch.setenv("FLATFILE_GUESS_MAX", "lots")
    with pytest.raises(ValueError) as exc_info:
        ReadSettings.from_env()
    assert "FLATFILE_GUESS_MAX" in str(exc_info.value)

    with pytest.raises(ValueError):
        ReadSettings(guess_max=0)


def test_invalid_delimiters():
    with pytest.raises(ValueError):
        ReadSettings(delimiter="::")
    with pytest.raises(ValueError):
        WriteSettings(delimiter="")


def test_invalid_boolean(monkeypatch):
    monkeypatch.setenv("FLATFILE_TRIM_WS", "sometimes")
    with pytest.raises(ValueError) as exc_info:
        ReadSettings.from_env()
    assert "FLATFILE_TRIM_WS" in str(exc_info.value)


def test_invalid_log_level():
    with pytest.raises(ValueError):
        Settings(log_level="LOUD")


def test_get_settings_is_cached_until_reset(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("FLATFILE_DELIMITER", ";")

    assert get_settings() is first
    assert get_settings().read.delimiter == ","

    reset_settings()
    assert get_settings().read.delimiter == ";"
