from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FileConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data_url: str = Field(min_length=1)
    data_format: Literal["json", "csv", "xlsx"] = "json"
    timeout_seconds: int = Field(default=30, ge=1)
