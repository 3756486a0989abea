import uuid
from datetime import datetime, timezone as UTC

from connections._logging import get_logger
from connections.catalog import ActionVerb, CatalogSession, SessionMode
from connections.sources.data_contract import Record
from connections.sources.factory import create_connector
from webhook.store import InMemoryStore

logger = get_logger("pipeline.runner")


def load_records(connector_config: dict) -> list[Record]:
    """Connect to the configured source, read every record, and release the source."""
    connector = create_connector(connector_config)
    connector.connect()
    try:
        return connector.fetch_records()
    finally:
        connector.close()


def run_sync(
    connector_config: dict,
    catalog_config: dict | None = None,
    *,
    mode: SessionMode | str = SessionMode.STREAM,
    verb: ActionVerb | str = ActionVerb.UPSERT,
    commit: bool = True,
    page_size: int | None = None,
    store: InMemoryStore | None = None,
    catalog_session: CatalogSession | None = None,
    records: list[Record] | None = None,
) -> dict:
    """
    Run one synchronization of a data source into the catalog:
    1. Load records from the source (unless already given)
    2. Publish them to the webhook store, when one is given
    3. Open a catalog session, send the action in batches, close it
    """
    run_id = str(uuid.uuid4())
    started_at = datetime.now(UTC.utc)
    session_mode = SessionMode(mode)

    owned_session: CatalogSession | None = None
    try:
        if records is None:
            records = load_records(connector_config)

        if store is not None:
            store.replace(records)

        if catalog_session is None:
            owned_session = CatalogSession(config=catalog_config)
        catalog = catalog_session or owned_session
        result = catalog.sync(session_mode, verb, records, commit=commit, page_size=page_size)
    except Exception:
        logger.exception("Sync run %s failed", run_id)
        raise
    finally:
        # injected sessions belong to the caller
        if owned_session is not None:
            owned_session.release()

    finished_at = datetime.now(UTC.utc)
    logger.info(
        "Sync run %s finished: %s records in %s batches",
        run_id,
        result.action.items,
        len(result.action.batches),
    )

    return {
        "run_id": run_id,
        "status": "success",
        "session_id": result.session_id,
        "mode": session_mode.value,
        "action": result.action.verb.value,
        "committed": result.committed,
        "records": result.action.items,
        "batches": len(result.action.batches),
        "processed": result.action.processed,
        "duration_seconds": (finished_at - started_at).total_seconds(),
    }
