"""Lookup stores the webhook reads from.

A store is any object offering ``lookup_entity`` and ``lookup_timeseries``;
the webhook never writes to it.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Protocol

from connections._logging import get_logger
from connections.sources.base_connector import BaseConnector, LookupConnector
from connections.sources.data_contract import Record

from .timeseries import filter_points

logger = get_logger("webhook.store")


class EntityStore(Protocol):
    def lookup_entity(self, entity_type: str, entity_id: str) -> Record | None:
        ...

    def lookup_timeseries(
        self,
        entity_type: str,
        entity_id: str,
        timeseries_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        ...


def _is_series(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(point, Mapping) and "from" in point for point in value)


class InMemoryStore:
    """Records loaded at sync time, indexed by id.

    Timeseries are taken from list-valued private data of each record (for
    example a ``_population`` column becomes the ``population`` series).
    """

    def __init__(self, records: Iterable[Record] = ()):
        self._records: dict[str, Record] = {}
        self.replace(records)

    def __len__(self) -> int:
        return len(self._records)

    def replace(self, records: Iterable[Record]) -> None:
        # rebinding keeps concurrent readers on a consistent snapshot
        self._records = {record.id: record for record in records}
        logger.info("In-memory store holds %s records", len(self._records))

    def lookup_entity(self, entity_type: str, entity_id: str) -> Record | None:
        return self._records.get(entity_id)

    def lookup_timeseries(
        self,
        entity_type: str,
        entity_id: str,
        timeseries_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        record = self._records.get(entity_id)
        if record is None:
            return []

        series = record.private.get(timeseries_id)
        if not _is_series(series):
            return []
        return filter_points(series, start, end, limit)


class ConnectorStore:
    """Answers lookups with live queries against a LookupConnector."""

    def __init__(self, connector: LookupConnector):
        self.connector = connector

    def lookup_entity(self, entity_type: str, entity_id: str) -> Record | None:
        return self.connector.find_record(entity_id)

    def lookup_timeseries(
        self,
        entity_type: str,
        entity_id: str,
        timeseries_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        return self.connector.find_timeseries(entity_id, timeseries_id, start=start, end=end, limit=limit)


def create_store(connector: BaseConnector, records: Iterable[Record] = ()) -> InMemoryStore | ConnectorStore:
    if isinstance(connector, LookupConnector):
        logger.info("Using live lookups through %s", type(connector).__name__)
        return ConnectorStore(connector)
    return InMemoryStore(records)
