"""Client side of the catalog upload session: open -> action batches -> close."""

from collections.abc import Mapping, Sequence
from typing import Any

import requests
from pydantic import BaseModel, Field

from .._config import load_connection_config
from .._logging import get_logger, redact_config
from ..sources.data_contract import Record, record_id, record_payload
from .batching import count_batches, iter_batches
from .config import ActionVerb, CatalogConfig, SessionMode, SessionState

AUTH_HEADER = "x-bbk-auth-token"

ActionItem = Record | Mapping[str, Any] | str | int


def _processed_count(body: Any) -> int:
    # the catalog answers with an object keyed by item id
    if isinstance(body, (Mapping, list)):
        return len(body)
    return 0


class CatalogError(RuntimeError):
    """The catalog rejected a session call or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionStateError(RuntimeError):
    """A session call was made in a state that does not allow it."""


class BatchOutcome(BaseModel):
    index: int = Field(ge=0)
    size: int = Field(ge=0)
    processed: int = Field(ge=0)


class ActionResult(BaseModel):
    verb: ActionVerb
    batches: list[BatchOutcome] = Field(default_factory=list)

    @property
    def items(self) -> int:
        return sum(batch.size for batch in self.batches)

    @property
    def processed(self) -> int:
        return sum(batch.processed for batch in self.batches)


class SyncResult(BaseModel):
    session_id: str
    mode: SessionMode
    action: ActionResult
    committed: bool


class CatalogSession:
    """Stateful upload session against one connector's catalog endpoint.

    Calls are strictly sequential. A session may be opened again after it has
    been closed; every ``open`` yields a new remote session id.
    """

    def __init__(
        self,
        url: str | None = None,
        connector_id: str | None = None,
        auth_token: str | None = None,
        page_size: int | None = None,
        timeout_seconds: int | None = None,
        *,
        config: dict | None = None,
        file_path: str | None = None,
        env_prefix: str = "CATALOG",
        http_session: requests.Session | None = None,
    ):
        merged_config = load_connection_config(
            config,
            file_path=file_path,
            env_prefix=env_prefix,
            required=("url", "connector_id", "auth_token"),
            overrides={
                "url": url,
                "connector_id": connector_id,
                "auth_token": auth_token,
                "page_size": page_size,
                "timeout_seconds": timeout_seconds,
            },
        )
        self.config = CatalogConfig.model_validate(merged_config)
        self.logger = get_logger("catalog.session")
        self.session_id: str | None = None
        self.state = SessionState.CLOSED
        self._http = http_session or requests.Session()
        self._http.headers.update(
            {
                "Content-Type": "application/json",
                AUTH_HEADER: self.config.auth_token,
            }
        )
        self.logger.info("Catalog session client ready with config=%s", redact_config(self.config.model_dump()))

    @property
    def base_url(self) -> str:
        return f"{str(self.config.url).rstrip('/')}/connector/{self.config.connector_id}/session"

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    def open(self, mode: SessionMode | str) -> str:
        session_mode = SessionMode(mode)
        if self.is_open:
            raise SessionStateError(f"Session {self.session_id} is already open")

        self.logger.info("open: %s", session_mode.value)
        response = self._request("GET", f"{self.base_url}/open/{session_mode.value}")
        session_id = self._json(response)
        if not isinstance(session_id, str) or not session_id:
            raise CatalogError("Catalog returned an invalid session id", response.status_code, response.text)

        self.session_id = session_id
        self.state = SessionState.OPEN
        self.logger.info("Session %s opened in %s mode", session_id, session_mode.value)
        return session_id

    def action(
        self,
        verb: ActionVerb | str,
        items: Sequence[ActionItem],
        page_size: int | None = None,
    ) -> ActionResult:
        action_verb = ActionVerb(verb)
        self._require_open(action_verb.value)

        size = self.config.page_size if page_size is None else page_size
        url = f"{self.base_url}/{self.session_id}/{action_verb.value}"
        result = ActionResult(verb=action_verb)
        total = count_batches(len(items), size)

        for index, batch in enumerate(iter_batches(items, size)):
            if action_verb is ActionVerb.UPSERT:
                body = [record_payload(item) for item in batch]
            else:
                body = [record_id(item) for item in batch]

            self.logger.info("%s batch %s/%s with %s item(s)", action_verb.value, index + 1, total, len(batch))
            response = self._request("POST", url, json=body)
            processed = _processed_count(self._json(response))
            self.logger.info("%s: %s item(s)", action_verb.value, processed)
            result.batches.append(BatchOutcome(index=index, size=len(batch), processed=processed))

        return result

    def close(self, commit: bool) -> None:
        self._require_open("close")

        url = f"{self.base_url}/{self.session_id}/close/{'true' if commit else 'false'}"
        self.logger.info("close: %s", str(commit).lower())
        try:
            self._request("GET", url)
        finally:
            self.logger.info("Session %s closed", self.session_id)
            self.session_id = None
            self.state = SessionState.CLOSED

    def sync(
        self,
        mode: SessionMode | str,
        verb: ActionVerb | str,
        items: Sequence[ActionItem],
        *,
        commit: bool = True,
        page_size: int | None = None,
    ) -> SyncResult:
        """Open a session, run one action over all items, and close it.

        A failed action still closes the session without committing before
        the error is re-raised.
        """
        session_id = self.open(mode)
        try:
            action_result = self.action(verb, items, page_size=page_size)
        except Exception:
            self._close_quietly()
            raise

        self.close(commit)
        return SyncResult(
            session_id=session_id,
            mode=SessionMode(mode),
            action=action_result,
            committed=commit,
        )

    def release(self) -> None:
        """Close the underlying HTTP session."""
        self._http.close()

    def _close_quietly(self) -> None:
        try:
            self.close(False)
        except CatalogError:
            self.logger.exception("Failed to close session after action error")

    def _require_open(self, call: str) -> None:
        if not self.is_open:
            raise SessionStateError(f"Cannot {call}: no open session")

    def _request(self, method: str, url: str, json: Any = None) -> requests.Response:
        try:
            response = self._http.request(
                method=method,
                url=url,
                json=json,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            self.logger.error("Catalog request %s %s failed: %s", method, url, exc)
            raise CatalogError(f"Catalog request failed: {exc}") from exc

        if not response.ok:
            self.logger.error("Catalog returned HTTP %s for %s %s", response.status_code, method, url)
            raise CatalogError(
                response.text or f"HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise CatalogError("Catalog returned a non-JSON body", response.status_code, response.text) from exc
