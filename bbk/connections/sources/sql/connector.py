import json
from datetime import datetime
from typing import Any

from sqlalchemy import MetaData, Table, asc, select
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import ColumnElement

from ..._config import load_connection_config
from ..._logging import get_logger, redact_config
from ..base_connector import LookupConnector
from ..data_contract import Record, normalize_record
from .config import SQLConfig, TimeseriesTableConfig
from .engine import get_sql_engine, test_sql_connection

BBK_URL_SCHEME = "bbk://"
CID_PLACEHOLDER = "{cid}"


def _get_path(data: dict[str, Any], path: str) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _set_path(data: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _coerce_key(column: ColumnElement, value: str) -> Any:
    """Convert a URL path value to the column's Python type; None when impossible."""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type is int:
        try:
            return int(value)
        except ValueError:
            return None
    return value


class SQLConnector(LookupConnector):
    """Reads one entity type from a table of ``id`` + JSON ``properties`` rows."""

    def __init__(
        self,
        database_url: str | None = None,
        table: str | None = None,
        entity_filter: dict | None = None,
        entity_ref_prop: str | None = None,
        entity_ref_cid: str | None = None,
        timeseries: dict | None = None,
        config: dict | None = None,
        file_path: str | None = None,
        env_prefix: str = "CONNECTOR_DB",
        reuse: bool = True,
        **table_options: Any,
    ):
        merged_config = load_connection_config(
            config,
            file_path=file_path,
            env_prefix=env_prefix,
            required=("database_url", "table"),
            overrides={
                "database_url": database_url,
                "table": table,
                "entity_filter": entity_filter,
                "entity_ref_prop": entity_ref_prop,
                "entity_ref_cid": entity_ref_cid,
                "timeseries": timeseries,
                **table_options,
            },
        )
        self.config = SQLConfig.model_validate(merged_config)
        self.logger = get_logger("sources.sql.connector")
        self._reuse = reuse
        self._engine: Engine | None = None
        self._tables: dict[str, Table] = {}

    def connect(self) -> None:
        self.logger.info("Connecting SQL connector with config=%s", redact_config(self.config.model_dump()))
        self._engine = get_sql_engine(self.config.database_url, reuse=self._reuse)
        self._table(self.config.table)
        for series in self.config.timeseries.values():
            self._table(series.table)

    def fetch_records(self) -> list[Record]:
        table = self._table(self.config.table)
        statement = select(table.c[self.config.id_column], table.c[self.config.properties_column])

        self.logger.info("loading data from db (table %s)", self.config.table)
        with self._require_engine().connect() as connection:
            rows = [dict(row._mapping) for row in connection.execute(statement)]

        records = [self.row_to_record(row) for row in rows]
        records = [record for record in records if self._matches_filter(record)]
        self.logger.info("loaded %s items from db", len(records))
        return records

    def find_record(self, entity_id: str) -> Record | None:
        table = self._table(self.config.table)
        id_column = table.c[self.config.id_column]
        key = _coerce_key(id_column, entity_id)
        if key is None:
            return None

        statement = select(id_column, table.c[self.config.properties_column]).where(id_column == key)
        with self._require_engine().connect() as connection:
            row = connection.execute(statement).first()

        if row is None:
            return None

        record = self.row_to_record(dict(row._mapping))
        return record if self._matches_filter(record) else None

    def find_timeseries(
        self,
        entity_id: str,
        timeseries_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        series = self.config.timeseries.get(timeseries_id)
        if series is None:
            return []

        table = self._table(series.table)
        from_column = table.c[series.from_column]
        entity_column = table.c[series.entity_column]
        key = _coerce_key(entity_column, entity_id)
        if key is None:
            return []

        statement = (
            select(from_column.label("from"), table.c[series.value_column].label("value"))
            .where(entity_column == key)
            .order_by(asc(from_column))
        )
        if start is not None:
            statement = statement.where(from_column >= self._bound(series, start))
        if end is not None:
            statement = statement.where(from_column < self._bound(series, end))
        if limit is not None:
            statement = statement.limit(limit)

        with self._require_engine().connect() as connection:
            return [dict(row._mapping) for row in connection.execute(statement)]

    def test_connection(self) -> bool:
        return test_sql_connection(self.config.database_url, reuse=self._reuse)

    def close(self) -> None:
        # engines are shared through the cache; dispose_all_engines() releases them
        self._engine = None
        self._tables.clear()

    def row_to_record(self, row: dict[str, Any]) -> Record:
        properties = row[self.config.properties_column]
        if isinstance(properties, (str, bytes)):
            properties = json.loads(properties)
        properties = dict(properties or {})
        properties["id"] = str(row[self.config.id_column])

        ref_prop, ref_cid = self.config.entity_ref_prop, self.config.entity_ref_cid
        if ref_prop and ref_cid:
            value = _get_path(properties, ref_prop)
            if isinstance(value, str) and value.startswith(BBK_URL_SCHEME):
                _set_path(properties, ref_prop, value.replace(CID_PLACEHOLDER, ref_cid))

        return normalize_record(properties)

    def _matches_filter(self, record: Record) -> bool:
        return all(record.entity.get(key) == value for key, value in self.config.entity_filter.items())

    def _bound(self, series: TimeseriesTableConfig, value: datetime) -> Any:
        return value.year if series.year_based else value

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("SQL connector is not connected. Call connect() first.")
        return self._engine

    def _table(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            table = Table(name, MetaData(), schema=self.config.db_schema, autoload_with=self._require_engine())
            self._tables[name] = table
        return table
