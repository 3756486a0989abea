from .config import SQLConfig, TimeseriesTableConfig
from .connector import SQLConnector
from .engine import get_sql_engine, test_sql_connection

__all__ = [
    "SQLConfig",
    "TimeseriesTableConfig",
    "SQLConnector",
    "get_sql_engine",
    "test_sql_connection",
]
