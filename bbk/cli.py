import argparse
import json
import sys
import threading

from connections._logging import get_logger
from connections.catalog import ActionVerb, SessionMode
from connections.sources.base_connector import LookupConnector
from connections.sources.factory import create_connector, load_connector_config
from pipeline.runner import run_sync
from webhook import InMemoryStore, WikidataFlagEnricher, create_app, create_store, load_webhook_settings, serve

logger = get_logger("cli")


def _catalog_config(args) -> dict | None:
    if not args.catalog:
        return None
    return load_connector_config(args.catalog)


def _build_webhook(args, connector_config: dict, connector_id: str | None = None):
    """Return (app, store, connector, settings) for the configured source."""
    settings = load_webhook_settings(
        file_path=args.webhook,
        port=args.port,
        connector_id=connector_id,
    )
    if settings.entity_type is None:
        settings.entity_type = connector_config.get("table")

    connector = create_connector(connector_config)
    if isinstance(connector, LookupConnector):
        connector.connect()
    store = create_store(connector)

    enricher = WikidataFlagEnricher() if args.enrich_wikidata else None
    return create_app(store, enricher=enricher, settings=settings), store, connector, settings


def cmd_sync(args):
    """Handle sync subcommand."""
    try:
        connector_config = load_connector_config(args.config)
        catalog_config = _catalog_config(args)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        result = run_sync(
            connector_config,
            catalog_config,
            mode=args.mode,
            verb=args.action,
            commit=not args.no_commit,
            page_size=args.page_size,
        )
    except Exception as e:
        print(f"Sync failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result))
    print(f"Sync finished. Records sent: {result['records']} in {result['batches']} batch(es)", file=sys.stderr)
    sys.exit(0)


def cmd_serve(args):
    """Handle serve subcommand: webhook only, no catalog sync."""
    try:
        connector_config = load_connector_config(args.config)
        app, store, connector, settings = _build_webhook(args, connector_config)
        if isinstance(store, InMemoryStore):
            connector.connect()
            try:
                store.replace(connector.fetch_records())
            finally:
                connector.close()
    except Exception as e:
        print(f"Error starting webhook: {e}", file=sys.stderr)
        sys.exit(1)

    serve(app, host=settings.host, port=settings.port)


def _sync_in_background(args, connector_config: dict, catalog_config: dict | None, store) -> threading.Thread:
    def target() -> None:
        try:
            run_sync(
                connector_config,
                catalog_config,
                mode=args.mode,
                verb=args.action,
                commit=not args.no_commit,
                page_size=args.page_size,
                store=store if isinstance(store, InMemoryStore) else None,
            )
        except Exception:
            # the webhook keeps serving whatever the sync outcome
            logger.exception("session error; webhook remains available")

    thread = threading.Thread(target=target, name="bbk-sync", daemon=True)
    thread.start()
    return thread


def cmd_run(args):
    """Handle run subcommand: sync to the catalog and serve the webhook."""
    try:
        connector_config = load_connector_config(args.config)
        catalog_config = _catalog_config(args)
        connector_id = (catalog_config or {}).get("connector_id")
        app, store, _, settings = _build_webhook(args, connector_config, connector_id=connector_id)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    _sync_in_background(args, connector_config, catalog_config, store)
    serve(app, host=settings.host, port=settings.port)


def _add_sync_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--catalog", help="Path to catalog settings JSON/YAML (defaults to CATALOG_* env vars)")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in SessionMode],
        default=SessionMode.STREAM.value,
        help="Session mode (default: stream)",
    )
    parser.add_argument(
        "--action",
        choices=[verb.value for verb in ActionVerb],
        default=ActionVerb.UPSERT.value,
        help="Session action (default: upsert)",
    )
    parser.add_argument("--page-size", type=int, default=None, help="Items per action batch (default: 100)")
    parser.add_argument("--no-commit", action="store_true", help="Close the session without committing")


def _add_webhook_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--webhook", help="Path to webhook settings JSON (defaults to WEBHOOK_* env vars)")
    parser.add_argument("--port", type=int, default=None, help="Webhook listen port")
    parser.add_argument("--enrich-wikidata", action="store_true", help="Merge Wikidata flag images into entities")


def main():
    parser = argparse.ArgumentParser(description="BitBroker data connector CLI")
    subparsers = parser.add_subparsers(dest="command", help="Subcommand to run")

    sync_parser = subparsers.add_parser("sync", help="Sync a data source into the catalog")
    sync_parser.add_argument("--config", required=True, help="Path to connector JSON/YAML config")
    _add_sync_arguments(sync_parser)

    serve_parser = subparsers.add_parser("serve", help="Serve the webhook without syncing")
    serve_parser.add_argument("--config", required=True, help="Path to connector JSON/YAML config")
    _add_webhook_arguments(serve_parser)

    run_parser = subparsers.add_parser("run", help="Sync into the catalog and serve the webhook")
    run_parser.add_argument("--config", required=True, help="Path to connector JSON/YAML config")
    _add_sync_arguments(run_parser)
    _add_webhook_arguments(run_parser)

    args = parser.parse_args()

    if args.command == "sync":
        cmd_sync(args)
    elif args.command == "serve":
        cmd_serve(args)
    elif args.command == "run":
        cmd_run(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
