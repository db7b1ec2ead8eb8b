from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_DATABASE_URL = "sqlite:///./huddle.db"
_DEFAULT_ATTENDANCE = {
    "window_seconds": 180,
    "code_length": 6,
    "code_alphabet": "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
}
_ATTENDANCE_WINDOW_BOUNDS = (60, 600)
_ATTENDANCE_CODE_LENGTH_BOUNDS = (4, 12)
_DEFAULT_SUGGESTIONS = {
    "min_rate": 20,
    "limit": 20,
}
_DEFAULT_COORDINATION = {
    "max_commit_retries": 5,
}


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except (OSError, yaml.YAMLError) as exc:
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except (TypeError, ValueError):
        return fallback


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


def _env_int(name: str) -> Any:
    value = os.getenv(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def get_database_url() -> str:
    """
    Return the SQLAlchemy database URL.

    Priority:
    1) HUDDLE_DATABASE_URL env var
    2) config.yaml database_url
    3) a local SQLite file
    """
    env_value = os.getenv("HUDDLE_DATABASE_URL")
    if env_value:
        return env_value
    url = load_config().get("database_url")
    return str(url) if url else _DEFAULT_DATABASE_URL


def get_attendance_settings() -> Dict[str, Any]:
    """Return attendance session settings sourced from config with safe defaults."""
    config = load_config()
    section = config.get("attendance") or {}
    defaults = dict(_DEFAULT_ATTENDANCE)

    window_seconds = _env_int("HUDDLE_ATTENDANCE_WINDOW_SECONDS")
    if window_seconds is None:
        window_seconds = section.get("window_seconds")

    alphabet = section.get("code_alphabet")
    if isinstance(alphabet, str):
        # Drop whitespace and duplicates while keeping the author's ordering.
        alphabet = "".join(dict.fromkeys(ch for ch in alphabet if not ch.isspace()))
    if not isinstance(alphabet, str) or len(alphabet) < 2:
        alphabet = defaults["code_alphabet"]

    return {
        "window_seconds": _clamp(
            _coerce_positive_int(window_seconds, defaults["window_seconds"]),
            _ATTENDANCE_WINDOW_BOUNDS,
        ),
        "code_length": _clamp(
            _coerce_positive_int(section.get("code_length"), defaults["code_length"]),
            _ATTENDANCE_CODE_LENGTH_BOUNDS,
        ),
        "code_alphabet": alphabet,
    }


def get_suggestion_settings() -> Dict[str, int]:
    """Return meeting-time suggestion settings sourced from config with safe defaults."""
    config = load_config()
    section = config.get("suggestions") or {}
    defaults = dict(_DEFAULT_SUGGESTIONS)

    try:
        min_rate = int(section.get("min_rate", defaults["min_rate"]))
    except (TypeError, ValueError):
        min_rate = defaults["min_rate"]

    return {
        "min_rate": max(0, min(100, min_rate)),
        "limit": _coerce_positive_int(section.get("limit"), defaults["limit"]),
    }


def get_coordination_settings() -> Dict[str, int]:
    """Return commit/retry settings used at the storage boundary."""
    config = load_config()
    section = config.get("coordination") or {}
    defaults = dict(_DEFAULT_COORDINATION)
    return {
        "max_commit_retries": _coerce_positive_int(
            section.get("max_commit_retries"), defaults["max_commit_retries"]
        ),
    }
