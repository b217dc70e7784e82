"""Tests for loading configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from plan_monitor.config import (
    default_config_path,
    get_api_settings,
    get_layout_config,
    get_mock_settings,
    get_polling_settings,
    load_config,
)
from plan_monitor.constants import API_URL_ENV
from plan_monitor.layout import LayoutConfig


def test_missing_file_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path / "nope.yaml") == ({}, None)


def test_default_path(tmp_path: Path) -> None:
    assert default_config_path(tmp_path) == tmp_path.resolve() / ".plan_monitor" / "config.yaml"


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "api:\n  base_url: http://chat.internal:9000\n"
        "polling:\n  interval_seconds: 2.5\n  fetch_timeout_seconds: null\n"
        "layout:\n  node_width: 200\n"
        "mock:\n  seconds_per_task: 0.5\n",
        encoding="utf-8",
    )
    config, err = load_config(path)
    assert err is None
    assert get_polling_settings(config).interval_seconds == 2.5
    assert get_polling_settings(config).fetch_timeout_seconds is None
    assert get_layout_config(config) == LayoutConfig(node_width=200)
    assert get_mock_settings(config).seconds_per_task == 0.5


def test_broken_yaml_reports_error(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("api: [unterminated\n", encoding="utf-8")
    config, err = load_config(path)
    assert config == {}
    assert err is not None and "YAMLError" in err


def test_non_mapping_reports_error(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    config, err = load_config(path)
    assert config == {}
    assert "expected object" in err


def test_defaults() -> None:
    polling = get_polling_settings({})
    assert polling.interval_seconds == 1.0
    assert polling.fetch_timeout_seconds == 10.0
    assert get_layout_config({}) == LayoutConfig()


def test_env_overrides_api_url(monkeypatch: pytest.MonkeyPatch) -> None:
    config = {"api": {"base_url": "http://from-file", "timeout_seconds": 3}}
    monkeypatch.delenv(API_URL_ENV, raising=False)
    assert get_api_settings(config).base_url == "http://from-file"
    assert get_api_settings(config).timeout_seconds == 3.0

    monkeypatch.setenv(API_URL_ENV, "http://from-env")
    assert get_api_settings(config).base_url == "http://from-env"


@pytest.mark.parametrize("value", [0, -1, "fast", [1]])
def test_invalid_values_fall_back(value) -> None:
    config = {"polling": {"interval_seconds": value}, "layout": {"row_height": value}}
    assert get_polling_settings(config).interval_seconds == 1.0
    assert get_layout_config(config).row_height == 150


def test_unknown_sections_are_ignored() -> None:
    config = {"polling": "fast", "layout": {"colour": "blue"}}
    assert get_polling_settings(config).interval_seconds == 1.0
    assert get_layout_config(config) == LayoutConfig()
