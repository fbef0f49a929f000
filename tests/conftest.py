"""Test configuration and fixtures for the export test suite."""

import logging
from collections import defaultdict
from typing import Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest

from mattress_export.config import get_settings
from mattress_export.io_clients import AirtableClient

API_HOST = "api.airtable.com"
ASSET_HOST = "dl.airtable.test"
BASE_ID = "appTestBase"


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(float(seconds))

    def count(self, seconds: float) -> int:
        return self.calls.count(seconds)


class FakeAirtable:
    """In-memory stand-in for the Airtable API and its attachment host.

    Tables are served as lists of pages; the offset token returned with a
    page is the index of the next one.
    """

    def __init__(self) -> None:
        self.pages: Dict[str, List[List[dict]]] = {}
        self.assets: Dict[str, bytes] = {}
        self.tables_meta: List[dict] = []
        # request path -> number of 429 answers still to give
        self.rate_limits: Dict[str, int] = defaultdict(int)
        # request path -> forced error status
        self.errors: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []

    def add_table(self, name: str, *pages: List[dict]) -> None:
        self.pages[name] = list(pages) or [[]]

    def add_asset(self, name: str, content: bytes) -> str:
        self.assets[f"/{name}"] = content
        return f"https://{ASSET_HOST}/{name}"

    def table_path(self, name: str) -> str:
        return f"/v0/{BASE_ID}/{name}"

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if unquote(r.url.path) == path]

    def asset_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == ASSET_HOST]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = unquote(request.url.path)

        if self.rate_limits[path] > 0:
            self.rate_limits[path] -= 1
            return httpx.Response(429, json={"errors": [{"error": "RATE_LIMIT_REACHED"}]})
        if path in self.errors:
            return httpx.Response(
                self.errors[path],
                json={"error": {"type": "SERVER_ERROR", "message": "Something went wrong"}},
            )

        if request.url.host == ASSET_HOST:
            if path in self.assets:
                return httpx.Response(200, content=self.assets[path], headers={"Content-Type": "image/jpeg"})
            return httpx.Response(404, text="not found")

        if path == f"/v0/meta/bases/{BASE_ID}/tables":
            return httpx.Response(200, json={"tables": self.tables_meta})

        table = path.rsplit("/", 1)[-1]
        if table not in self.pages:
            return httpx.Response(404, json={"error": {"type": "TABLE_NOT_FOUND"}})

        pages = self.pages[table]
        offset: Optional[str] = request.url.params.get("offset")
        index = int(offset) if offset else 0
        payload: dict = {"records": pages[index]}
        if index + 1 < len(pages):
            payload["offset"] = str(index + 1)
        return httpx.Response(200, json=payload)


def make_record(record_id: str, **fields) -> dict:
    return {"id": record_id, "createdTime": "2024-03-01T12:00:00.000Z", "fields": fields}


def make_attachment(attachment_id: str, url: str, size: int, filename: str = "photo.jpg") -> dict:
    return {
        "id": attachment_id,
        "url": url,
        "filename": filename,
        "size": size,
        "type": "image/jpeg",
        "thumbnails": {"small": {"url": url, "width": 36, "height": 36}},
    }


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test in an empty directory with test credentials."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BASE_ID", BASE_ID)
    monkeypatch.setenv("BASE_API_KEY", "patTestKey.0123456789abcdef")
    for name in ("API_DELAY", "OUTPUT_DIR", "LOG_LEVEL", "LOG_FORMAT", "MATTRESS_MAX_RECORDS"):
        monkeypatch.delenv(name, raising=False)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_api() -> FakeAirtable:
    return FakeAirtable()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
async def airtable(fake_api, fake_sleep):
    """Airtable client wired to the fake API with a 0.5 s pace and 30 s cooldown."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
    client = AirtableClient(
        BASE_ID,
        "patTestKey.0123456789abcdef",
        request_delay=0.5,
        rate_limit_cooldown=30.0,
        client=http,
        sleep=fake_sleep,
    )
    yield client
    await http.aclose()
