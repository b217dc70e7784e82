from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml


def _read_structured(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as handle:
        if path.suffix in {".yaml", ".yml"}:
            return yaml.safe_load(handle)
        return json.load(handle)


def _load_data_with_error(
    path: Path,
    default: dict[str, Any],
) -> tuple[dict[str, Any], str | None]:
    """
    Load a JSON/YAML object and return (data, error_message).

    A missing file is not an error. Parse and IO failures are reported so
    callers can tell a broken file from an absent one.
    """
    if not path.exists():
        return default, None
    try:
        data = _read_structured(path)
        if data is None:
            return default, None
        if not isinstance(data, dict):
            return default, f"{path.name}: expected object, got {type(data).__name__}"
        return data, None
    except OSError as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except json.JSONDecodeError as exc:
        return default, f"{path.name}: JSONDecodeError: {exc}"
    except yaml.YAMLError as exc:
        return default, f"{path.name}: YAMLError: {exc}"


def _load_document(path: Path) -> Any:
    """Load a JSON/YAML document of any shape.

    Raises:
        ValueError: If the file cannot be read or parsed.
    """
    try:
        return _read_structured(path)
    except OSError as exc:
        raise ValueError(f"{path}: {exc.__class__.__name__}: {exc}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"{path}: {exc.__class__.__name__}: {exc}") from exc
