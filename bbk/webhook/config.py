from pydantic import BaseModel, ConfigDict, Field

from connections._config import load_connection_config


class WebhookSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="BBK Connector", min_length=1)
    status: str = "development"
    entity_type: str | None = None
    connector_id: str | None = None
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    cors: bool = True


def load_webhook_settings(
    config: dict | None = None,
    *,
    file_path: str | None = None,
    env_prefix: str = "WEBHOOK",
    **overrides,
) -> WebhookSettings:
    merged_config = load_connection_config(
        config,
        file_path=file_path,
        env_prefix=env_prefix,
        overrides=overrides,
    )
    return WebhookSettings.model_validate(merged_config)
