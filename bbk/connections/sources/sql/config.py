from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TimeseriesTableConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    table: str = Field(min_length=1)
    entity_column: str = Field(default="entity_id", min_length=1)
    from_column: str = Field(default="ts_from", min_length=1)
    value_column: str = Field(default="ts_value", min_length=1)
    # timestamps stored as plain years compare against the bound's year
    year_based: bool = True


class SQLConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    database_url: str = Field(min_length=1)
    table: str = Field(min_length=1)
    db_schema: str | None = None
    id_column: str = Field(default="id", min_length=1)
    properties_column: str = Field(default="properties", min_length=1)
    entity_filter: dict[str, Any] = Field(default_factory=dict)
    entity_ref_prop: str | None = None
    entity_ref_cid: str | None = None
    timeseries: dict[str, TimeseriesTableConfig] = Field(default_factory=dict)
