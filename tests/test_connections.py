import json
import os
import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

from sqlalchemy import create_engine, text

ROOT = Path(__file__).resolve().parents[1]
BBK_PATH = ROOT / "bbk"
if str(BBK_PATH) not in sys.path:
    sys.path.insert(0, str(BBK_PATH))

import connections  # noqa: E402
from connections._config import load_connection_config  # noqa: E402
from connections._engine_cache import dispose_all_engines, get_or_create_engine  # noqa: E402
from connections._logging import redact_config  # noqa: E402
from connections.sources.data_contract import Record, normalize_record, record_id  # noqa: E402
from connections.sources.factory import create_connector, load_connector_config  # noqa: E402
from connections.sources.file.connector import FileConnector, row_to_record  # noqa: E402
from connections.sources.sql.connector import SQLConnector  # noqa: E402
from connections.sources.sql.engine import test_sql_connection as sql_connection_healthcheck  # noqa: E402


class FakeEngine:
    def __init__(self):
        self.disposed = 0

    def dispose(self):
        self.disposed += 1


class ConfigTests(unittest.TestCase):
    def test_load_connection_config_merges_layers(self):
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as tmp:
            json.dump({"url": "https://file.local", "connector_id": "file-cid"}, tmp)
            file_path = tmp.name

        try:
            with patch.dict(os.environ, {"BBKTEST_AUTH_TOKEN": "env-token"}, clear=False):
                result = load_connection_config(
                    config={"connector_id": "config-cid"},
                    file_path=file_path,
                    env_prefix="BBKTEST",
                    required=("url", "connector_id", "auth_token", "page_size"),
                    defaults={"timeout_seconds": 30},
                    overrides={"page_size": 50, "url": None},
                )
        finally:
            os.unlink(file_path)

        self.assertEqual(result["url"], "https://file.local")
        self.assertEqual(result["connector_id"], "config-cid")
        self.assertEqual(result["auth_token"], "env-token")
        self.assertEqual(result["page_size"], 50)
        self.assertEqual(result["timeout_seconds"], 30)

    def test_load_connection_config_reads_env_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            env_file = Path(temp_dir) / ".env"
            env_file.write_text("BBKDOT_CONNECTOR_ID=dotenv-cid\nOTHER_KEY=ignored\n", encoding="utf-8")

            result = load_connection_config(env_prefix="BBKDOT", env_file=str(env_file))

        self.assertEqual(result, {"connector_id": "dotenv-cid"})

    def test_load_connection_config_missing_required_raises(self):
        with self.assertRaises(ValueError):
            load_connection_config(required=("url",), defaults={"page_size": 100})

    def test_redact_config_masks_secrets(self):
        redacted = redact_config(
            {
                "auth_token": "abc",
                "database_url": "postgresql+psycopg://bbk:hunter2@db:5432/bbk",
                "connector_id": "cid",
            }
        )

        self.assertEqual(redacted["auth_token"], "***")
        self.assertEqual(redacted["database_url"], "postgresql+psycopg://bbk:***@db:5432/bbk")
        self.assertEqual(redacted["connector_id"], "cid")


class EngineCacheTests(unittest.TestCase):
    def tearDown(self):
        dispose_all_engines()

    def test_get_or_create_engine_reuses_when_enabled(self):
        call_count = {"n": 0}

        def factory():
            call_count["n"] += 1
            return FakeEngine()

        first = get_or_create_engine("postgresql+psycopg://bbk:pw@db/bbk", factory, reuse=True)
        second = get_or_create_engine("postgresql+psycopg://bbk:pw@db/bbk", factory, reuse=True)

        self.assertIs(first, second)
        self.assertEqual(call_count["n"], 1)

    def test_get_or_create_engine_does_not_reuse_when_disabled(self):
        first = get_or_create_engine("sqlite://", FakeEngine, reuse=False)
        second = get_or_create_engine("sqlite://", FakeEngine, reuse=False)

        self.assertIsNot(first, second)

    def test_close_all_connections_disposes_cached(self):
        created = []

        def factory():
            engine = FakeEngine()
            created.append(engine)
            return engine

        get_or_create_engine("sqlite:///a.db", factory, reuse=True)
        get_or_create_engine("sqlite:///b.db", factory, reuse=True)
        connections.close_all_connections()

        self.assertEqual([engine.disposed for engine in created], [1, 1])


class DataContractTests(unittest.TestCase):
    def test_normalize_record_moves_underscore_keys_to_private(self):
        record = normalize_record(
            {
                "id": "GB",
                "name": "United Kingdom",
                "entity": {"capital": "London"},
                "_wikidata": "Q145",
                "_population": [{"from": 1960, "value": 52400000}],
            }
        )

        self.assertEqual(record.private["wikidata"], "Q145")
        self.assertEqual(record.to_payload(), {"id": "GB", "name": "United Kingdom", "entity": {"capital": "London"}, "instance": {}})

    def test_record_coerces_numeric_id_and_keeps_extra_fields(self):
        record = Record.model_validate({"id": 371, "entity": {}, "type": "heritage"})

        self.assertEqual(record.id, "371")
        self.assertEqual(record.to_payload()["type"], "heritage")

    def test_record_requires_id(self):
        with self.assertRaises(ValueError):
            normalize_record({"name": "nameless"})

    def test_record_id_accepts_records_mappings_and_ids(self):
        self.assertEqual(record_id(Record(id="a")), "a")
        self.assertEqual(record_id({"id": 3}), "3")
        self.assertEqual(record_id("z"), "z")
        with self.assertRaises(ValueError):
            record_id({"name": "no id"})


class FileConnectorTests(unittest.TestCase):
    def test_row_to_record_maps_prefixes_and_location(self):
        record = row_to_record(
            {
                "id": 12,
                "name": "Lisbon",
                "entity/country": "PT",
                "instance/source": "sheet",
                "population": 545000,
                "longitude": -9.14,
                "latitude": 38.72,
                "_wikidata": "Q597",
                "empty": None,
            }
        )

        self.assertEqual(record.id, "12")
        self.assertEqual(record.instance, {"source": "sheet"})
        self.assertEqual(record.private, {"wikidata": "Q597"})
        self.assertEqual(
            record.entity,
            {
                "country": "PT",
                "population": 545000,
                "location": {"type": "Point", "coordinates": [-9.14, 38.72]},
            },
        )

    def test_fetch_records_from_local_json(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            data_path = Path(temp_dir) / "country.json"
            data_path.write_text(
                json.dumps(
                    [
                        {"id": "GB", "name": "United Kingdom", "entity": {"capital": "London"}, "_wikidata": "Q145"},
                        {"id": "FR", "name": "France", "entity": {"capital": "Paris"}},
                    ]
                ),
                encoding="utf-8",
            )

            connector = FileConnector(data_url=str(data_path), data_format="json")
            connector.connect()
            records = connector.fetch_records()
            connector.close()

        self.assertEqual([record.id for record in records], ["GB", "FR"])
        self.assertEqual(records[0].private, {"wikidata": "Q145"})
        self.assertNotIn("_wikidata", records[0].to_payload())

    def test_fetch_records_from_local_csv(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            data_path = Path(temp_dir) / "cities.csv"
            data_path.write_text(
                "id,name,entity/country,longitude,latitude\n1,Lisbon,PT,-9.14,38.72\n2,Porto,PT,-8.61,41.15\n",
                encoding="utf-8",
            )

            connector = FileConnector(data_url=str(data_path), data_format="csv")
            connector.connect()
            records = connector.fetch_records()
            connector.close()

        self.assertEqual([record.id for record in records], ["1", "2"])
        self.assertEqual(records[1].entity["location"], {"type": "Point", "coordinates": [-8.61, 41.15]})

    def test_fetch_records_over_http(self):
        response = MagicMock()
        response.content = json.dumps([{"id": "DE", "name": "Germany"}]).encode("utf-8")

        with patch("connections.sources.file.connector.requests.Session") as mock_session_ctor:
            session = MagicMock()
            session.get.return_value = response
            mock_session_ctor.return_value = session

            connector = FileConnector(data_url="https://data.local/country.json", data_format="json")
            connector.connect()
            records = connector.fetch_records()
            connector.close()

        session.get.assert_called_once_with("https://data.local/country.json", timeout=30)
        response.raise_for_status.assert_called_once()
        session.close.assert_called_once()
        self.assertEqual(records[0].name, "Germany")

    def test_xlsx_reads_first_sheet(self):
        connector = FileConnector(data_url="https://data.local/cities.xlsx", data_format="xlsx")
        frame = MagicMock()
        frame.height = 0
        frame.to_dicts.return_value = [{"id": 1, "name": "Lisbon"}]

        with patch.object(connector, "_read_bytes", return_value=b"xlsx-bytes"), patch(
            "connections.sources.file.connector.pl.read_excel", return_value=frame
        ) as mock_read_excel:
            records = connector.fetch_records()

        self.assertEqual(mock_read_excel.call_args.kwargs, {"sheet_id": 1})
        self.assertEqual(records[0].id, "1")

    def test_missing_local_file_raises_on_connect(self):
        connector = FileConnector(data_url="/does/not/exist.json")
        with self.assertRaises(FileNotFoundError):
            connector.connect()

    def test_json_object_root_is_rejected(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            data_path = Path(temp_dir) / "bad.json"
            data_path.write_text('{"id": "GB"}', encoding="utf-8")
            connector = FileConnector(data_url=str(data_path))
            connector.connect()

            with self.assertRaises(ValueError):
                connector.fetch_records()


class SQLConnectorTests(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.database_url = f"sqlite+pysqlite:///{Path(self.temp_dir.name) / 'connector.db'}"
        engine = create_engine(self.database_url)
        with engine.begin() as connection:
            connection.execute(text("CREATE TABLE heritagesites (id INTEGER PRIMARY KEY, properties TEXT)"))
            connection.execute(text("CREATE TABLE annual_pop_ts (entity_id TEXT, ts_from INTEGER, ts_value INTEGER)"))
            rows = [
                (1029, {"name": "Giant's Causeway", "entity": {"category": "natural", "country": "bbk://{cid}/GB"}, "_wikidata": "Q189"}),
                (371, {"name": "Stonehenge", "entity": {"category": "cultural", "country": "bbk://{cid}/GB"}}),
            ]
            for row_id, properties in rows:
                connection.execute(
                    text("INSERT INTO heritagesites (id, properties) VALUES (:id, :properties)"),
                    {"id": row_id, "properties": json.dumps(properties)},
                )
            for year in (1962, 1960, 1961, 1963):
                connection.execute(
                    text("INSERT INTO annual_pop_ts VALUES ('1029', :year, :value)"),
                    {"year": year, "value": year * 10},
                )
        engine.dispose()

    def tearDown(self):
        dispose_all_engines()
        self.temp_dir.cleanup()

    def _connector(self, **kwargs):
        connector = SQLConnector(
            database_url=self.database_url,
            table="heritagesites",
            timeseries={"population": {"table": "annual_pop_ts"}},
            **kwargs,
        )
        connector.connect()
        return connector

    def test_fetch_records_applies_filter_and_reference_rewrite(self):
        connector = self._connector(
            entity_filter={"category": "natural"},
            entity_ref_prop="entity.country",
            entity_ref_cid="country-cid",
        )
        records = connector.fetch_records()
        connector.close()

        self.assertEqual([record.id for record in records], ["1029"])
        self.assertEqual(records[0].entity["country"], "bbk://country-cid/GB")
        self.assertEqual(records[0].private, {"wikidata": "Q189"})

    def test_find_record_by_string_id(self):
        connector = self._connector()

        self.assertEqual(connector.find_record("371").name, "Stonehenge")
        self.assertIsNone(connector.find_record("9999"))
        self.assertIsNone(connector.find_record("not-a-number"))

    def test_find_record_respects_filter(self):
        connector = self._connector(entity_filter={"category": "natural"})
        self.assertIsNone(connector.find_record("371"))

    def test_find_timeseries_window_is_half_open_and_ordered(self):
        connector = self._connector()

        all_points = connector.find_timeseries("1029", "population")
        window = connector.find_timeseries("1029", "population", start=datetime(1961, 1, 1), end=datetime(1963, 1, 1))
        limited = connector.find_timeseries("1029", "population", limit=2)

        self.assertEqual([point["from"] for point in all_points], [1960, 1961, 1962, 1963])
        self.assertEqual([point["from"] for point in window], [1961, 1962])
        self.assertEqual(limited, [{"from": 1960, "value": 19600}, {"from": 1961, "value": 19610}])
        self.assertEqual(connector.find_timeseries("1029", "unknown"), [])
        self.assertEqual(connector.find_timeseries("371", "population"), [])

    def test_sql_connection_healthcheck(self):
        self.assertTrue(sql_connection_healthcheck(self.database_url))
        self.assertTrue(self._connector().test_connection())
        self.assertFalse(sql_connection_healthcheck("sqlite+pysqlite:////does/not/exist/db.sqlite", reuse=False))

    def test_lookup_before_connect_raises(self):
        connector = SQLConnector(database_url=self.database_url, table="heritagesites")
        with self.assertRaises(RuntimeError):
            connector.find_record("371")


class ConnectorFactoryTests(unittest.TestCase):
    def test_create_connector_from_dict_builds_file_connector(self):
        connector = create_connector({"protocol": "file", "data_url": "https://data.local/c.csv", "data_format": "csv"})

        self.assertIsInstance(connector, FileConnector)
        self.assertEqual(connector.config.data_format, "csv")

    def test_create_connector_from_dict_builds_sql_connector(self):
        connector = create_connector({"protocol": "SQL", "database_url": "sqlite://", "table": "country"})

        self.assertIsInstance(connector, SQLConnector)
        self.assertEqual(connector.config.table, "country")

    def test_load_connector_config_reads_json_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as temp_file:
            json.dump({"protocol": "file", "data_url": "data.json"}, temp_file)
            file_path = temp_file.name

        try:
            loaded = load_connector_config(file_path)
            connector = create_connector(file_path)
        finally:
            os.unlink(file_path)

        self.assertEqual(loaded["protocol"], "file")
        self.assertIsInstance(connector, FileConnector)

    def test_load_connector_config_reads_yaml_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as temp_file:
            temp_file.write(
                """
protocol: sql
database_url: sqlite://
table: heritagesites
entity_filter:
  category: cultural
""".strip()
            )
            file_path = temp_file.name

        try:
            connector = create_connector(file_path)
        finally:
            os.unlink(file_path)

        self.assertIsInstance(connector, SQLConnector)
        self.assertEqual(connector.config.entity_filter, {"category": "cultural"})

    def test_create_connector_raises_for_unknown_protocol(self):
        with self.assertRaises(ValueError):
            create_connector({"protocol": "gopher"})

    def test_create_connector_rejects_modules_without_connector(self):
        with self.assertRaises(ValueError):
            create_connector({"protocol": "data_contract"})

    def test_create_connector_raises_for_missing_protocol(self):
        with self.assertRaises(ValueError):
            create_connector({"data_url": "data.json"})

    def test_create_connector_reports_bad_parameters(self):
        with self.assertRaises(TypeError):
            create_connector({"protocol": "file", "data_url": "data.json", "sheet": 2})


if __name__ == "__main__":
    unittest.main()
