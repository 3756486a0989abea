"""Connector factory: resolves the ``protocol`` field to a source connector class."""

from __future__ import annotations

import importlib
import inspect
import json
from pathlib import Path
from typing import Any

from .._logging import get_logger, redact_config
from .base_connector import BaseConnector

logger = get_logger("sources.factory")
_SOURCES_PACKAGE = "connections.sources"


def load_connector_config(config: dict[str, Any] | str | Path) -> dict[str, Any]:
    """Load connector config from a dict, a JSON file, or a YAML file."""
    if isinstance(config, dict):
        return config

    config_path = Path(config)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    suffix = config_path.suffix.lower()
    content = config_path.read_text(encoding="utf-8")

    if suffix == ".json":
        data = json.loads(content)
    elif suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(content)
    else:
        raise ValueError("Unsupported config format. Use JSON (.json) or YAML (.yaml/.yml).")

    if not isinstance(data, dict):
        raise ValueError("Connector configuration must be a key-value object.")

    return data


def create_connector(config: dict[str, Any] | str | Path) -> BaseConnector:
    """Instantiate the source connector named by the config's protocol field."""
    resolved_config = dict(load_connector_config(config))
    protocol = _normalize_protocol(resolved_config.pop("protocol", None))
    connector_class = _connector_class(protocol)
    logger.info(
        "Creating %s for protocol=%s config=%s",
        connector_class.__name__,
        protocol,
        redact_config(resolved_config),
    )

    try:
        return connector_class(**resolved_config)
    except TypeError as exc:
        raise TypeError(f"Invalid parameters for protocol '{protocol}': {exc}") from exc


def _normalize_protocol(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Missing required 'protocol' field in connector configuration.")
    return value.strip().lower()


def _connector_class(protocol: str) -> type[BaseConnector]:
    """The concrete connector defined in ``connections.sources.<protocol>.connector``."""
    module_name = f"{_SOURCES_PACKAGE}.{protocol}.connector"
    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as exc:
        if exc.name is not None and not module_name.startswith(exc.name):
            raise
        raise ValueError(f"Unsupported protocol '{protocol}'.") from exc

    for _, member in inspect.getmembers(module, inspect.isclass):
        if member.__module__ != module.__name__ or not issubclass(member, BaseConnector):
            continue
        if not inspect.isabstract(member):
            return member

    raise ValueError(f"Module '{module_name}' defines no connector class.")


__all__ = ["load_connector_config", "create_connector"]
