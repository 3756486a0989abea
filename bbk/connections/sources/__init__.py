from .base_connector import BaseConnector, LookupConnector
from .data_contract import Record, normalize_record
from .factory import create_connector, load_connector_config

__all__ = [
    "BaseConnector",
    "LookupConnector",
    "Record",
    "normalize_record",
    "load_connector_config",
    "create_connector",
]
