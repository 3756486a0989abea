"""FastAPI webhook the catalog calls to pull entity and timeseries data."""

from datetime import UTC, datetime
from http import HTTPStatus

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from connections._logging import get_logger

from .config import WebhookSettings
from .enrichment import Enricher
from .store import EntityStore
from .timeseries import parse_bound

logger = get_logger("webhook.app")


def _plain_response(status_code: int) -> PlainTextResponse:
    return PlainTextResponse(f"{status_code}: {HTTPStatus(status_code).phrase}", status_code=status_code)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _plain_response(exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Rejected malformed request %s: %s", request.url.path, exc.errors())
        return _plain_response(400)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled webhook error on %s", request.url.path)
        return _plain_response(500)


def create_app(
    store: EntityStore,
    *,
    enricher: Enricher | None = None,
    settings: WebhookSettings | None = None,
) -> FastAPI:
    settings = settings or WebhookSettings()
    app = FastAPI(title=settings.name, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.store = store
    app.state.settings = settings

    register_exception_handlers(app)
    if settings.cors:
        app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "OPTIONS"], allow_headers=["*"])

    @app.get("/")
    def announce() -> dict:
        return {
            "now": datetime.now(UTC).isoformat(),
            "name": settings.name,
            "status": settings.status,
            "connectorId": settings.connector_id,
            "entity": settings.entity_type,
        }

    @app.get("/entity/{entity_type}/{entity_id}")
    def entity(entity_type: str, entity_id: str) -> dict:
        logger.info("heard request for entity type '%s' id '%s'", entity_type, entity_id)

        record = store.lookup_entity(entity_type, entity_id)
        if record is None:
            raise HTTPException(status_code=404)

        payload = record.to_payload()
        if enricher is not None:
            extra = enricher.enrich(record)
            if extra:
                payload["entity"] = {**payload.get("entity", {}), **extra}
        return payload

    @app.get("/timeseries/{entity_type}/{entity_id}/{timeseries_id}")
    def timeseries(
        entity_type: str,
        entity_id: str,
        timeseries_id: str,
        start: str | None = None,
        end: str | None = None,
        limit: int | None = Query(default=None, ge=0),
    ) -> list[dict]:
        logger.info(
            "heard request for entity: '%s', timeseries: '%s', start: '%s', end: '%s', limit: '%s'",
            entity_id,
            timeseries_id,
            start,
            end,
            limit,
        )
        try:
            start_at = parse_bound(start)
            end_at = parse_bound(end)
        except ValueError:
            raise HTTPException(status_code=400)

        return store.lookup_timeseries(entity_type, entity_id, timeseries_id, start=start_at, end=end_at, limit=limit)

    return app


def serve(app: FastAPI, host: str = "0.0.0.0", port: int = 8000) -> None:
    logger.info("Webhook is listening on port %s", port)
    uvicorn.run(app, host=host, port=port)
