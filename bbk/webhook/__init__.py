from .app import create_app, serve
from .config import WebhookSettings, load_webhook_settings
from .enrichment import Enricher, WikidataFlagEnricher
from .store import ConnectorStore, EntityStore, InMemoryStore, create_store
from .timeseries import filter_points, parse_bound

__all__ = [
    "create_app",
    "serve",
    "WebhookSettings",
    "load_webhook_settings",
    "Enricher",
    "WikidataFlagEnricher",
    "EntityStore",
    "InMemoryStore",
    "ConnectorStore",
    "create_store",
    "filter_points",
    "parse_bound",
]
