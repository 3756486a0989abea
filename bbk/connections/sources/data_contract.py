from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

PRIVATE_PREFIX = "_"


class Record(BaseModel):
    """One entity record as uploaded to the catalog and served by the webhook.

    ``private`` holds connector-only data (enrichment keys, embedded
    timeseries) and is never serialized.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    name: str | None = None
    entity: dict[str, Any] = Field(default_factory=dict)
    instance: dict[str, Any] = Field(default_factory=dict)
    private: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value)) if float(value).is_integer() else str(value)
        return value

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def normalize_record(item: Mapping[str, Any] | Record) -> Record:
    """Build a Record from a raw mapping, moving ``_``-prefixed keys to private data."""
    if isinstance(item, Record):
        return item

    public: dict[str, Any] = {}
    private: dict[str, Any] = dict(item.get("private") or {})
    for key, value in item.items():
        if key == "private":
            continue
        if key.startswith(PRIVATE_PREFIX):
            private[key[len(PRIVATE_PREFIX):]] = value
        else:
            public[key] = value

    return Record.model_validate({**public, "private": private})


def record_id(item: Record | Mapping[str, Any] | str | int) -> str:
    """Return the reconciliation key of a record, mapping, or bare id."""
    if isinstance(item, Record):
        return item.id
    if isinstance(item, Mapping):
        if item.get("id") in (None, ""):
            raise ValueError("Record mapping has no 'id'")
        return str(item["id"])
    return str(item)


def record_payload(item: Record | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(item, Record):
        return item.to_payload()
    if isinstance(item, Mapping):
        return dict(item)
    raise TypeError(f"Cannot upsert item of type {type(item).__name__}")
