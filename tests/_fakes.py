"""In-process stand-ins for the catalog HTTP API used across the test modules."""

import json as jsonlib
from urllib.parse import urlparse

import requests


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else jsonlib.dumps(body)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


class FakeCatalogHTTP:
    """Mimics the catalog's connector session endpoints over a requests-like interface.

    ``fail_on`` maps a call number (1-based, counting POSTs) to a status code to
    return instead of success; ``raise_on`` does the same with a transport error.
    """

    def __init__(self, fail_open=False, fail_close=False, fail_on=None, raise_on=None):
        self.headers = {}
        self.calls = []
        self.records = {}
        self.pending = {}
        self.deleted = set()
        self.fail_open = fail_open
        self.fail_close = fail_close
        self.fail_on = fail_on or {}
        self.raise_on = raise_on or set()
        self.posts = 0
        self.session_count = 0
        self.closed = False

    def request(self, method, url, json=None, timeout=None):
        path = urlparse(url).path
        self.calls.append((method, path, json))
        parts = path.strip("/").split("/")
        session_index = parts.index("session")
        tail = parts[session_index + 1:]

        if method == "GET" and tail[0] == "open":
            if self.fail_open:
                return FakeResponse(403, text="Forbidden")
            self.session_count += 1
            self.mode = tail[1]
            self.pending = {}
            self.deleted = set()
            return FakeResponse(200, f"sid-{self.session_count}")

        if method == "POST":
            self.posts += 1
            if self.posts in self.raise_on:
                raise requests.ConnectionError("connection reset")
            if self.posts in self.fail_on:
                return FakeResponse(self.fail_on[self.posts], text="Bad batch")
            verb = tail[1]
            if verb == "upsert":
                for item in json:
                    self.pending[item["id"]] = item
                return FakeResponse(200, {item["id"]: item["id"] for item in json})
            self.deleted.update(json)
            return FakeResponse(200, {item: item for item in json})

        if method == "GET" and tail[1] == "close":
            if self.fail_close:
                return FakeResponse(500, text="Close failed")
            if tail[2] == "true":
                if self.mode == "replace":
                    self.records = {}
                self.records.update(self.pending)
                for item in self.deleted:
                    self.records.pop(item, None)
            return FakeResponse(200, {})

        return FakeResponse(404, text="Not Found")

    def post_sizes(self):
        return [len(body) for method, _, body in self.calls if method == "POST"]

    def close(self):
        self.closed = True
