"""
Shared fixtures: an in-memory stand-in for requests.Session so no test
touches the network.
"""

import json
import threading
import time

import pytest
from requests.structures import CaseInsensitiveDict

from waybackdl.core.cdx_client import CDXClient
from waybackdl.utils.validators import canonical_url


SCENARIO_INDEX = json.dumps([
    ["timestamp", "original"],
    ["20200101120000", "http://example.com/"],
    ["20200101130000", "http://example.com/a.js"],
])


class FakeResponse:
    def __init__(self, status_code=200, body=b"", content_type="text/html", headers=None, stream_error=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.status_code = status_code
        self.content = body
        self.headers = CaseInsensitiveDict(headers or {})
        if content_type and "Content-Type" not in self.headers:
            self.headers["Content-Type"] = content_type
        self.stream_error = stream_error
        self.closed = False

    def json(self):
        return json.loads(self.content.decode("utf-8"))

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]
        if self.stream_error:
            raise self.stream_error

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSession:
    """
    Serves CDX pages and raw captures from dictionaries.

    cdx: a body (str/bytes/FakeResponse/exception) returned for every page, or
         a dict keyed by page index (None for unpaged); missing pages are '[]'.
    resources: original URL -> body, FakeResponse or exception. Lookups use the
         canonical URL; unknown URLs answer 404.
    """

    def __init__(self, cdx=SCENARIO_INDEX, resources=None, delay=0.0):
        self.cdx = cdx
        self.resources = {canonical_url(k): v for k, v in (resources or {}).items()}
        self.delay = delay
        self.cdx_params = []
        self.fetched = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url, params=None, timeout=None, stream=False):
        if url == CDXClient.CDX_BASE_URL:
            with self._lock:
                self.cdx_params.append(list(params or []))
            page = dict(params or []).get("page")
            page = int(page) if page is not None else None
            entry = self.cdx.get(page, "[]") if isinstance(self.cdx, dict) else self.cdx
            return self._respond(entry, "application/json")

        timestamp, original = url.split("/web/", 1)[1].split("id_/", 1)
        with self._lock:
            self.fetched.append((timestamp, original))
        if self.delay:
            time.sleep(self.delay)
        entry = self.resources.get(canonical_url(original), FakeResponse(404, b"not found"))
        return self._respond(entry, "text/html")

    def _respond(self, entry, content_type):
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, FakeResponse):
            return entry
        return FakeResponse(200, entry, content_type=content_type)

    def fetch_count(self, original):
        key = canonical_url(original)
        return sum(1 for _, url in self.fetched if canonical_url(url) == key)

    def close(self):
        self.closed = True


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "websites"
