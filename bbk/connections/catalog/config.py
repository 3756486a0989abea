from enum import Enum

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field

DEFAULT_PAGE_SIZE = 100


class SessionMode(str, Enum):
    STREAM = "stream"
    ACCRUE = "accrue"
    REPLACE = "replace"


class ActionVerb(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


class SessionState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class CatalogConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: AnyHttpUrl
    connector_id: str = Field(min_length=1)
    auth_token: str = Field(min_length=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1)
    timeout_seconds: int = Field(default=30, ge=1)
