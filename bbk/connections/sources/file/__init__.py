from .config import FileConfig
from .connector import FileConnector, row_to_record

__all__ = ["FileConfig", "FileConnector", "row_to_record"]
