"""Persistent JSON config helpers and resolved browser settings.

Stores tuning options (worker pool, watch coalescing, preview cap) plus the
hidden-file and sort preferences toggled at runtime.
Malformed or missing config falls back to defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

from platformdirs import user_config_dir

from .listing.sorting import DEFAULT_SORT, normalize_sort
from .sizes import default_worker_count

APP_NAME = "lazyls"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class BrowserSettings:
    """Resolved options consumed by the model, watcher, and preview layers."""

    worker_pool_size: int = field(default_factory=default_worker_count)
    watch_coalesce_interval: float = 0.25
    preview_max_bytes: int = 64 * 1024
    poll_interval: float = 1.0
    watch_fallback_polling: bool = True
    auto_size_directories: bool = True
    show_hidden: bool = False
    sort_by: str = DEFAULT_SORT
    style: str = "monokai"
    no_color: bool = False
    log_level: str = "WARNING"
    log_file: str | None = None


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Filesystem errors are ignored to keep runtime behavior non-fatal when
    config cannot be written.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError:
        pass


def _coerce_positive_int(value: object) -> int | None:
    """Accept strictly positive integers; booleans are rejected."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def _coerce_nonnegative_float(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value >= 0 else None


def _coerce_bool(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def _coerce_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _coerce_log_level(value: object) -> str | None:
    text = _coerce_str(value)
    if text is None or text.upper() not in LOG_LEVELS:
        return None
    return text.upper()


def _coerce_sort(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = normalize_sort(value)
    return normalized if normalized == value else None


_COERCERS = {
    "worker_pool_size": _coerce_positive_int,
    "watch_coalesce_interval": _coerce_nonnegative_float,
    "preview_max_bytes": _coerce_positive_int,
    "poll_interval": _coerce_nonnegative_float,
    "watch_fallback_polling": _coerce_bool,
    "auto_size_directories": _coerce_bool,
    "show_hidden": _coerce_bool,
    "sort_by": _coerce_sort,
    "style": _coerce_str,
    "no_color": _coerce_bool,
    "log_level": _coerce_log_level,
    "log_file": _coerce_str,
}


def settings_from_mapping(data: dict[str, object], base: BrowserSettings | None = None) -> BrowserSettings:
    """Apply recognized, well-typed keys from ``data`` on top of ``base``.

    Unknown keys and values of the wrong type or range are ignored.
    """
    settings = base if base is not None else BrowserSettings()
    changes: dict[str, object] = {}
    known = {item.name for item in fields(BrowserSettings)}
    for key, value in data.items():
        if key not in known or value is None:
            continue
        coerced = _COERCERS[key](value)
        if coerced is not None:
            changes[key] = coerced
    return replace(settings, **changes) if changes else settings


def load_settings(overrides: dict[str, object] | None = None) -> BrowserSettings:
    """Resolve settings from persisted config, then explicit overrides."""
    settings = settings_from_mapping(load_config())
    if overrides:
        settings = settings_from_mapping(overrides, settings)
    return settings


def save_show_hidden(show_hidden: bool) -> None:
    """Persist hidden-file visibility preference as a boolean."""
    config = load_config()
    config["show_hidden"] = bool(show_hidden)
    save_config(config)


def save_sort_by(sort_by: str) -> None:
    """Persist the listing sort order when it names a known order."""
    normalized = normalize_sort(sort_by)
    if normalized != sort_by:
        return
    config = load_config()
    config["sort_by"] = normalized
    save_config(config)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "BrowserSettings",
    "load_config",
    "save_config",
    "settings_from_mapping",
    "load_settings",
    "save_show_hidden",
    "save_sort_by",
]
