"""Abstract connector contracts for BitBroker data sources."""

from abc import ABC, abstractmethod
from datetime import datetime

from .data_contract import Record


class BaseConnector(ABC):
    @abstractmethod
    def connect(self) -> None:
        """Initialize and validate access to the external source."""
        pass

    @abstractmethod
    def fetch_records(self) -> list[Record]:
        """Load the full dataset as normalized records."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release all connector resources."""
        pass


class LookupConnector(BaseConnector):
    """A source that can answer webhook lookups with live queries."""

    @abstractmethod
    def find_record(self, entity_id: str) -> Record | None:
        pass

    @abstractmethod
    def find_timeseries(
        self,
        entity_id: str,
        timeseries_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        pass
