"""Optional enrichment of webhook entity responses from third-party lookups.

Enrichment failures never fail the request: the record is served without
the enriched fields and a warning is logged.
"""

import re
from typing import Any, Protocol

import requests

from connections._logging import get_logger
from connections.sources.data_contract import Record

logger = get_logger("webhook.enrichment")

WIKIDATA_SPARQL_URL = "https://query.wikidata.org/sparql"
_FLAG_QUERY = "SELECT ?country ?{field} WHERE {{ ?country wdt:P41 ?{field} VALUES ?country {{ wd:{item} }} }}"
_ITEM_ID = re.compile(r"Q\d+")
_VARIABLE = re.compile(r"[A-Za-z_]\w*")


class Enricher(Protocol):
    def enrich(self, record: Record) -> dict[str, Any]:
        """Return extra ``entity`` attributes for the record (may be empty)."""
        ...


class WikidataFlagEnricher:
    """Adds a ``flag`` image URL for records carrying a private ``wikidata`` item id."""

    def __init__(
        self,
        endpoint: str = WIKIDATA_SPARQL_URL,
        key: str = "wikidata",
        field: str = "flag",
        timeout_seconds: int = 10,
        http_session: requests.Session | None = None,
    ):
        if not _VARIABLE.fullmatch(field):
            raise ValueError(f"Invalid enrichment field name: {field!r}")
        self.endpoint = endpoint
        self.key = key
        self.field = field
        self.timeout_seconds = timeout_seconds
        self._http = http_session or requests.Session()

    def enrich(self, record: Record) -> dict[str, Any]:
        item = record.private.get(self.key)
        if not item:
            return {}
        if not isinstance(item, str) or not _ITEM_ID.fullmatch(item):
            logger.warning("Skipping enrichment for entity %s: %r is not a Wikidata item id", record.id, item)
            return {}

        try:
            response = self._http.get(
                self.endpoint,
                params={"query": _FLAG_QUERY.format(field=self.field, item=item), "format": "json"},
                headers={"Accept": "application/sparql-results+json"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            bindings = response.json()["results"]["bindings"]
            value = bindings[0][self.field]["value"] if bindings else None
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning("Enrichment for entity %s (%s) failed: %s", record.id, item, exc)
            return {}

        return {self.field: value} if value else {}
