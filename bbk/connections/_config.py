"""Layered settings resolution shared by the catalog client, sources and webhook."""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from ._logging import get_logger, redact_config

LOGGER = get_logger("config")


def _strip_prefix(values: dict[str, Any], prefix: str) -> dict[str, Any]:
    """Keep keys matching <PREFIX>_* and normalize them to lowercase names."""
    prefix_token = f"{prefix.upper()}_"
    return {
        key.removeprefix(prefix_token).lower(): value
        for key, value in values.items()
        if key.startswith(prefix_token) and value is not None
    }


def _read_prefixed_env(prefix: str) -> dict[str, Any]:
    values = _strip_prefix(dict(os.environ), prefix)
    LOGGER.info("Loaded %s config keys from environment prefix %s_", len(values), prefix.upper())
    return values


def _read_env_file(env_file: str | None, prefix: str | None) -> dict[str, Any]:
    """Read a dotenv file, keeping only keys for the requested prefix."""
    if not env_file or not prefix:
        return {}

    path = Path(env_file)
    if not path.exists():
        LOGGER.info("Env file %s not present, skipping", env_file)
        return {}

    values = _strip_prefix(dotenv_values(path), prefix)
    LOGGER.info("Loaded %s config keys from env file %s", len(values), env_file)
    return values


def _read_json_file(file_path: str | None) -> dict[str, Any]:
    """Read a JSON settings file when provided, otherwise return an empty mapping."""
    if not file_path:
        return {}

    path = Path(file_path)
    if not path.exists():
        LOGGER.error("Config file not found: %s", file_path)
        raise FileNotFoundError(f"Config file not found: {file_path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw_data, dict):
        raise ValueError("Config file must contain a JSON object at the root")
    LOGGER.info("Loaded JSON config from %s", file_path)
    return raw_data


def _not_none_values(values: dict[str, Any] | None) -> dict[str, Any]:
    """Drop keys with None values so they never shadow an earlier layer."""
    if not values:
        return {}
    return {key: value for key, value in values.items() if value is not None}


def _ensure_required_keys(config: dict[str, Any], required: tuple[str, ...]) -> None:
    missing = [key for key in required if config.get(key) in (None, "")]
    if missing:
        joined = ", ".join(missing)
        LOGGER.error("Required config keys missing: %s", joined)
        raise ValueError(f"Missing required config keys: {joined}")


def load_connection_config(
    config: dict[str, Any] | None = None,
    *,
    file_path: str | None = None,
    env_prefix: str | None = None,
    env_file: str | None = ".env",
    required: tuple[str, ...] = (),
    defaults: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Resolve settings from defaults, .env file, JSON file, environment, config and overrides.

    Later layers win. ``None`` overrides are ignored so that optional keyword
    arguments never erase values coming from files or the environment.
    """
    layers = [
        defaults or {},
        _read_env_file(env_file, env_prefix),
        _read_json_file(file_path),
        _read_prefixed_env(env_prefix) if env_prefix else {},
        config or {},
        _not_none_values(overrides),
    ]
    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)

    _ensure_required_keys(merged, required)
    LOGGER.info("Config resolved for prefix %s: %s", env_prefix, redact_config(merged))
    return merged
