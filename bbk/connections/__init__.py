"""Public entrypoints for the catalog session client, data sources and cache cleanup."""

from ._engine_cache import dispose_all_engines
from .catalog import (
    ActionVerb,
    CatalogError,
    CatalogSession,
    SessionMode,
    SessionState,
    SessionStateError,
)
from .sources import BaseConnector, LookupConnector, Record, create_connector, load_connector_config
from .sources.sql import get_sql_engine, test_sql_connection


def close_all_connections() -> None:
    """Dispose all cached SQL engines."""
    dispose_all_engines()


__all__ = [
    "ActionVerb",
    "SessionMode",
    "SessionState",
    "CatalogSession",
    "CatalogError",
    "SessionStateError",
    "BaseConnector",
    "LookupConnector",
    "Record",
    "create_connector",
    "load_connector_config",
    "get_sql_engine",
    "test_sql_connection",
    "close_all_connections",
    "dispose_all_engines",
]
