from __future__ import annotations

import pytest

from config import SETTING_NAMES, get_settings_module, load_settings


@pytest.mark.parametrize(
    "env, module",
    [
        ("production", "config.production"),
        ("PROD", "config.production"),
        ("test", "config.testing"),
        (" testing ", "config.testing"),
        ("dev", "config.development"),
        ("staging", "config.development"),
    ],
)
def test_app_env_picks_the_settings_module(monkeypatch, env, module):
    monkeypatch.setenv("APP_ENV", env)
    assert get_settings_module() == module


def test_missing_app_env_means_development(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    assert get_settings_module() == "config.development"


def test_load_settings_reads_known_names_and_applies_overrides():
    settings = load_settings({"LOG_LEVEL": "CRITICAL", "EXTRA": 1}, env="testing")

    assert settings["SETTINGS_MODULE"] == "config.testing"
    assert settings["TESTING"] is True
    assert settings["RECOMMENDATION_URL"] == ""
    assert settings["LOG_LEVEL"] == "CRITICAL"
    assert settings["EXTRA"] == 1
    assert set(SETTING_NAMES) <= set(settings)
