import sys
from pathlib import Path

# Add the bbk source root to the path
ROOT = Path(__file__).resolve().parents[1]
BBK_PATH = ROOT / "bbk"
if str(BBK_PATH) not in sys.path:
    sys.path.insert(0, str(BBK_PATH))

from pipeline.runner import run_sync
from webhook import InMemoryStore, WebhookSettings, create_app, serve


def main():
    """
    Example: a file-based country connector.

    Demonstrates:
    - Loading a JSON dataset published over HTTP
    - Streaming it into the catalog in batches of 100
    - Serving entity lookups from the synced records

    Catalog access comes from CATALOG_URL, CATALOG_CONNECTOR_ID and
    CATALOG_AUTH_TOKEN.
    """
    connector_config = {
        "protocol": "file",
        "data_url": "https://example.org/data/country.json",
        "data_format": "json",
    }

    store = InMemoryStore()
    result = run_sync(connector_config, mode="stream", store=store)
    print(f"Synced {result['records']} records in {result['batches']} batches.")

    app = create_app(store, settings=WebhookSettings(name="BBK Country Connector", entity_type="country"))
    serve(app, port=8000)


if __name__ == "__main__":
    main()
