"""Unit tests for the Airtable client - pagination, pacing and 429 handling."""

import httpx
import pytest

from mattress_export.errors import AirtableAPIError, ImageDownloadError
from mattress_export.io_clients import AirtableClient
from tests.conftest import BASE_ID, make_record


class TestFetchRecords:
    """Record listing with and without a record cap."""

    async def test_unbounded_fetch_follows_offsets_in_order(self, airtable, fake_api):
        fake_api.add_table(
            "photographer",
            [make_record("rec1"), make_record("rec2")],
            [make_record("rec3")],
            [make_record("rec4"), make_record("rec5")],
        )

        records = await airtable.fetch_records("photographer")

        assert [r.id for r in records] == ["rec1", "rec2", "rec3", "rec4", "rec5"]
        requests = fake_api.requests_to(fake_api.table_path("photographer"))
        assert len(requests) == 3
        assert [r.url.params.get("offset") for r in requests] == [None, "1", "2"]

    async def test_bounded_fetch_takes_a_single_page(self, airtable, fake_api):
        fake_api.add_table(
            "allMatresses",
            [make_record("rec1"), make_record("rec2")],
            [make_record("rec3")],
        )

        records = await airtable.fetch_records("allMatresses", max_records=2)

        assert [r.id for r in records] == ["rec1", "rec2"]
        requests = fake_api.requests_to(fake_api.table_path("allMatresses"))
        assert len(requests) == 1
        assert requests[0].url.params["maxRecords"] == "2"

    async def test_request_carries_view_and_bearer_token(self, airtable, fake_api):
        fake_api.add_table("location", [make_record("recL1", locationName="Brooklyn")])

        records = await airtable.fetch_records("location")

        request = fake_api.requests[0]
        assert request.url.host == "api.airtable.com"
        assert request.url.params["view"] == "Grid view"
        assert "maxRecords" not in request.url.params
        assert request.headers["Authorization"] == "Bearer patTestKey.0123456789abcdef"
        assert records[0].fields == {"locationName": "Brooklyn"}
        assert records[0].created_time == "2024-03-01T12:00:00.000Z"

    async def test_table_name_is_url_encoded(self, airtable, fake_api):
        fake_api.add_table("Old Photos", [make_record("rec1")])

        await airtable.fetch_records("Old Photos")

        assert fake_api.requests[0].url.raw_path.startswith(f"/v0/{BASE_ID}/Old%20Photos".encode())

    async def test_delay_applied_before_every_request(self, airtable, fake_api, fake_sleep):
        fake_api.add_table("photographer", [make_record("rec1")], [make_record("rec2")])

        await airtable.fetch_records("photographer")

        assert fake_sleep.calls == [0.5, 0.5]

    async def test_empty_table(self, airtable, fake_api):
        fake_api.add_table("location")

        assert await airtable.fetch_records("location") == []
        assert await airtable.sample_record("location") is None


class TestRateLimitRetry:
    """429 answers cool down and replay the identical request."""

    async def test_single_429_waits_once_and_retries_once(self, airtable, fake_api, fake_sleep):
        fake_api.add_table("photographer", [make_record("rec1")])
        fake_api.rate_limits[fake_api.table_path("photographer")] = 1

        records = await airtable.fetch_records("photographer")

        assert [r.id for r in records] == ["rec1"]
        assert fake_sleep.count(30.0) == 1
        assert fake_sleep.calls == [0.5, 30.0, 0.5]
        first, second = fake_api.requests
        assert first.url == second.url
        assert first.headers["Authorization"] == second.headers["Authorization"]

    @pytest.mark.parametrize("consecutive", [2, 5])
    async def test_consecutive_429s_wait_once_each(self, airtable, fake_api, fake_sleep, consecutive):
        fake_api.add_table("photographer", [make_record("rec1")])
        fake_api.rate_limits[fake_api.table_path("photographer")] = consecutive

        await airtable.fetch_records("photographer")

        assert fake_sleep.count(30.0) == consecutive
        assert len(fake_api.requests) == consecutive + 1
        assert len({str(r.url) for r in fake_api.requests}) == 1

    async def test_429_on_later_page_replays_that_page(self, fake_api, fake_sleep):
        fake_api.add_table("photographer", [make_record("rec1")], [make_record("rec2")])
        limited = []

        def handler(request):
            if request.url.params.get("offset") == "1" and not limited:
                limited.append(request)
                fake_api.requests.append(request)
                return httpx.Response(429)
            return fake_api.handler(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = AirtableClient(
                BASE_ID, "key", request_delay=0.5, rate_limit_cooldown=30.0, client=http, sleep=fake_sleep
            )
            records = await client.fetch_records("photographer")

        assert [r.id for r in records] == ["rec1", "rec2"]
        assert fake_sleep.count(30.0) == 1
        assert [r.url.params.get("offset") for r in fake_api.requests] == [None, "1", "1"]


class TestErrors:
    """Non-429 failures are not retried."""

    async def test_server_error_propagates_without_retry(self, airtable, fake_api, fake_sleep):
        fake_api.add_table("photographer", [make_record("rec1")])
        fake_api.errors[fake_api.table_path("photographer")] = 503

        with pytest.raises(AirtableAPIError) as exc_info:
            await airtable.fetch_records("photographer")

        assert exc_info.value.status_code == 503
        assert exc_info.value.body["error"]["type"] == "SERVER_ERROR"
        assert len(fake_api.requests) == 1
        assert fake_sleep.count(30.0) == 0

    async def test_transport_error_is_wrapped(self, fake_sleep):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = AirtableClient(BASE_ID, "key", client=http, sleep=fake_sleep)
            with pytest.raises(AirtableAPIError) as exc_info:
                await client.fetch_records("photographer")

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)


class TestMetadata:
    async def test_list_tables(self, airtable, fake_api):
        fake_api.tables_meta = [
            {"id": "tbl1", "name": "allMatresses"},
            {"id": "tbl2", "name": "photographer"},
        ]

        tables = await airtable.list_tables()

        assert [t["name"] for t in tables] == ["allMatresses", "photographer"]
        assert fake_api.requests[0].url.path == f"/v0/meta/bases/{BASE_ID}/tables"

    async def test_sample_record_requests_one(self, airtable, fake_api):
        fake_api.add_table("photographer", [make_record("rec1", photographerName="Ann")])

        record = await airtable.sample_record("photographer")

        assert record.id == "rec1"
        assert fake_api.requests[0].url.params["maxRecords"] == "1"


class TestDownload:
    """Streaming attachment downloads."""

    async def test_download_writes_file_without_auth_header(self, airtable, fake_api, tmp_path):
        url = fake_api.add_asset("a1.jpg", b"\xff\xd8" + b"x" * 998)
        destination = tmp_path / "1.jpg"

        written = await airtable.download(url, destination)

        assert written == 1000
        assert destination.read_bytes()[:2] == b"\xff\xd8"
        assert not (tmp_path / "1.jpg.part").exists()
        assert "Authorization" not in fake_api.requests[0].headers

    async def test_download_replaces_existing_file(self, airtable, fake_api, tmp_path):
        url = fake_api.add_asset("a1.jpg", b"new")
        destination = tmp_path / "1.jpg"
        destination.write_bytes(b"old contents")

        await airtable.download(url, destination)

        assert destination.read_bytes() == b"new"

    async def test_download_failure_leaves_no_file(self, airtable, fake_api, tmp_path):
        destination = tmp_path / "1.jpg"

        with pytest.raises(ImageDownloadError) as exc_info:
            await airtable.download("https://dl.airtable.test/missing.jpg", destination)

        assert "HTTP 404" in str(exc_info.value)
        assert not destination.exists()
        assert not (tmp_path / "1.jpg.part").exists()

    async def test_download_retries_after_429(self, airtable, fake_api, fake_sleep, tmp_path):
        url = fake_api.add_asset("a1.jpg", b"image")
        fake_api.rate_limits["/a1.jpg"] = 1

        await airtable.download(url, tmp_path / "1.jpg")

        assert fake_sleep.calls == [0.5, 30.0, 0.5]
        assert (tmp_path / "1.jpg").read_bytes() == b"image"
