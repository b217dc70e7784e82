"""Load optional configuration from `.plan_monitor/config.yaml`."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger

from .constants import (
    API_URL_ENV,
    CONFIG_FILE,
    DEFAULT_API_TIMEOUT_SECONDS,
    DEFAULT_API_URL,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_SECONDS_PER_TASK,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error
from .layout import LayoutConfig


@dataclass(frozen=True)
class ApiSettings:
    base_url: str = DEFAULT_API_URL
    timeout_seconds: float = DEFAULT_API_TIMEOUT_SECONDS


@dataclass(frozen=True)
class PollingSettings:
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    # None disables the per-fetch timeout
    fetch_timeout_seconds: Optional[float] = DEFAULT_FETCH_TIMEOUT_SECONDS


@dataclass(frozen=True)
class MockSettings:
    seconds_per_task: float = DEFAULT_SECONDS_PER_TASK


def default_config_path(project_dir: Optional[Path] = None) -> Path:
    base = (project_dir or Path.cwd()).resolve()
    return base / STATE_DIR_NAME / CONFIG_FILE


def load_config(path: Optional[Path] = None) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        path: Explicit config path; defaults to `.plan_monitor/config.yaml`
            under the current directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = path or default_config_path()
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_section(config: Mapping[str, Any], key: str) -> dict[str, Any]:
    raw = config.get(key)
    return dict(raw) if isinstance(raw, dict) else {}


def _positive_float(section: str, key: str, value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring {}.{}={!r}: not a number", section, key, value)
        return default
    if number <= 0:
        logger.warning("Ignoring {}.{}={!r}: must be positive", section, key, value)
        return default
    return number


def get_api_settings(config: Mapping[str, Any]) -> ApiSettings:
    """Build API settings; the `PLAN_MONITOR_API_URL` environment variable wins over the file."""
    raw = _get_section(config, "api")
    base_url = os.environ.get(API_URL_ENV) or raw.get("base_url") or DEFAULT_API_URL
    return ApiSettings(
        base_url=str(base_url),
        timeout_seconds=_positive_float("api", "timeout_seconds", raw.get("timeout_seconds"), DEFAULT_API_TIMEOUT_SECONDS),
    )


def get_polling_settings(config: Mapping[str, Any]) -> PollingSettings:
    raw = _get_section(config, "polling")
    interval = _positive_float("polling", "interval_seconds", raw.get("interval_seconds"), DEFAULT_POLL_INTERVAL_SECONDS)
    if "fetch_timeout_seconds" in raw and raw["fetch_timeout_seconds"] is None:
        fetch_timeout: Optional[float] = None
    else:
        fetch_timeout = _positive_float(
            "polling", "fetch_timeout_seconds", raw.get("fetch_timeout_seconds"), DEFAULT_FETCH_TIMEOUT_SECONDS
        )
    return PollingSettings(interval_seconds=interval, fetch_timeout_seconds=fetch_timeout)


def get_layout_config(config: Mapping[str, Any]) -> LayoutConfig:
    raw = _get_section(config, "layout")
    defaults = LayoutConfig()
    values: dict[str, float] = {}
    for f in fields(LayoutConfig):
        if f.name in raw:
            values[f.name] = _positive_float("layout", f.name, raw[f.name], getattr(defaults, f.name))
    unknown = sorted(set(raw) - {f.name for f in fields(LayoutConfig)})
    if unknown:
        logger.warning("Ignoring unknown layout keys: {}", ", ".join(unknown))
    return LayoutConfig(**values)


def get_mock_settings(config: Mapping[str, Any]) -> MockSettings:
    raw = _get_section(config, "mock")
    return MockSettings(
        seconds_per_task=_positive_float("mock", "seconds_per_task", raw.get("seconds_per_task"), DEFAULT_SECONDS_PER_TASK),
    )
