import io
import json
from pathlib import Path
from typing import Any

import polars as pl
import requests

from ..._config import load_connection_config
from ..._logging import get_logger, redact_config
from ..base_connector import BaseConnector
from ..data_contract import PRIVATE_PREFIX, Record, normalize_record
from .config import FileConfig

ENTITY_PREFIX = "entity/"
INSTANCE_PREFIX = "instance/"
_TOP_LEVEL_KEYS = {"id", "name"}


def row_to_record(row: dict[str, Any]) -> Record:
    """Map a flat spreadsheet row onto the entity/instance record structure."""
    top: dict[str, Any] = {}
    entity: dict[str, Any] = {}
    instance: dict[str, Any] = {}

    for key, value in row.items():
        if value is None:
            continue
        if key in _TOP_LEVEL_KEYS or key.startswith(PRIVATE_PREFIX):
            top[key] = value
        elif key.startswith(INSTANCE_PREFIX):
            instance[key[len(INSTANCE_PREFIX):]] = value
        elif key.startswith(ENTITY_PREFIX):
            entity[key[len(ENTITY_PREFIX):]] = value
        else:
            # unprefixed columns are entity data
            entity[key] = value

    if "longitude" in entity and "latitude" in entity:
        entity["location"] = {
            "type": "Point",
            "coordinates": [entity.pop("longitude"), entity.pop("latitude")],
        }

    return normalize_record({**top, "entity": entity, "instance": instance})


class FileConnector(BaseConnector):
    """Loads a JSON array or the first sheet of a csv/xlsx file, local or over HTTP."""

    def __init__(
        self,
        data_url: str | None = None,
        data_format: str | None = None,
        timeout_seconds: int | None = None,
        config: dict | None = None,
        file_path: str | None = None,
        env_prefix: str = "DATA",
    ):
        merged_config = load_connection_config(
            config,
            file_path=file_path,
            env_prefix=env_prefix,
            required=("data_url",),
            overrides={
                "data_url": data_url,
                "data_format": data_format,
                "timeout_seconds": timeout_seconds,
            },
        )
        self.config = FileConfig.model_validate(merged_config)
        self.logger = get_logger("sources.file.connector")
        self._http: requests.Session | None = None

    @property
    def is_remote(self) -> bool:
        return self.config.data_url.lower().startswith(("http://", "https://"))

    def connect(self) -> None:
        self.logger.info("Connecting file connector with config=%s", redact_config(self.config.model_dump()))

        if self.is_remote:
            self._http = requests.Session()
            return

        if not Path(self.config.data_url).expanduser().exists():
            raise FileNotFoundError(f"Data file not found: {self.config.data_url}")

    def fetch_records(self) -> list[Record]:
        self.logger.info("fetching %s format data from %s", self.config.data_format, self.config.data_url)
        content = self._read_bytes()

        if self.config.data_format == "json":
            items = json.loads(content)
            if not isinstance(items, list):
                raise ValueError("JSON data source must contain an array of records")
            records = [normalize_record(item) for item in items]
        else:
            frame = self._read_frame(content)
            self.logger.info("%s rows read from %s", frame.height, self.config.data_url)
            records = [row_to_record(row) for row in frame.to_dicts()]

        self.logger.info("Loaded %s records", len(records))
        return records

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def _read_bytes(self) -> bytes:
        if not self.is_remote:
            return Path(self.config.data_url).expanduser().read_bytes()

        if self._http is None:
            raise RuntimeError("File connector is not connected. Call connect() first.")

        response = self._http.get(self.config.data_url, timeout=self.config.timeout_seconds)
        response.raise_for_status()
        return response.content

    def _read_frame(self, content: bytes) -> pl.DataFrame:
        if self.config.data_format == "csv":
            return pl.read_csv(io.BytesIO(content))
        # first sheet only
        return pl.read_excel(io.BytesIO(content), sheet_id=1)
