"""Async Airtable REST client with a fixed request pace and 429 cooldown.

Every request, including a replayed one, waits ``request_delay`` seconds
first. A 429 answer waits ``rate_limit_cooldown`` seconds and replays the
identical request with no retry cap; any other failure is raised to the
caller. Both waits go through the injected ``sleep`` coroutine so tests can
run without real delays.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_never,
    wait_fixed,
)

from ..config import AppSettings
from ..errors import AirtableAPIError, ImageDownloadError, RateLimitedError
from ..export_logging import get_logger
from ..models import TableRecord

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]

DEFAULT_API_URL = "https://api.airtable.com/v0"


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


class AirtableClient:
    """Client for one Airtable base."""

    def __init__(
        self,
        base_id: str,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        view: str = "Grid view",
        request_delay: float = 1.0,
        rate_limit_cooldown: float = 30.0,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            base_id: Airtable base identifier
            api_key: Personal access token sent as a bearer token
            api_url: REST API root
            view: View used when listing records
            request_delay: Seconds to wait before every request
            rate_limit_cooldown: Seconds to wait after a 429
            timeout: HTTP timeout in seconds, used when ``client`` is not given
            client: Preconfigured httpx client (closed by the caller)
            sleep: Coroutine used for both waits
        """
        self.base_id = base_id
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.view = view
        self.request_delay = request_delay
        self.rate_limit_cooldown = rate_limit_cooldown
        self._sleep = sleep

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=10.0),
            follow_redirects=True,
        )

    @classmethod
    def from_settings(cls, settings: AppSettings, **kwargs: Any) -> "AirtableClient":
        """Create a client from application settings.

        Keyword arguments override the corresponding settings.
        """
        options: Dict[str, Any] = {
            "base_id": settings.BASE_ID,
            "api_key": settings.BASE_API_KEY,
            "api_url": settings.API_URL,
            "view": settings.VIEW,
            "request_delay": settings.API_DELAY,
            "rate_limit_cooldown": settings.RATE_LIMIT_COOLDOWN,
            "timeout": settings.TIMEOUT_S,
        }
        options.update(kwargs)
        return cls(**options)

    async def __aenter__(self) -> "AirtableClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    @property
    def base_url(self) -> str:
        return f"{self.api_url}/{self.base_id}"

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _log_rate_limited(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Rate limit exceeded, cooling down before retrying",
            url=getattr(exc, "url", None),
            cooldown_s=self.rate_limit_cooldown,
            attempt=retry_state.attempt_number,
        )

    async def _with_rate_limit_retry(self, attempt: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``attempt`` until it stops raising :class:`RateLimitedError`."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimitedError),
            wait=wait_fixed(self.rate_limit_cooldown),
            stop=stop_never,
            sleep=self._sleep,
            before_sleep=self._log_rate_limited,
            reraise=True,
        )
        return await retrying(attempt)

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        async def attempt() -> Dict[str, Any]:
            await self._sleep(self.request_delay)
            try:
                response = await self.client.get(url, params=params, headers=self._auth_headers())
            except httpx.RequestError as e:
                raise AirtableAPIError(f"Request to {url} failed: {e}") from e

            if response.status_code == 429:
                raise RateLimitedError(url)
            if response.is_error:
                raise AirtableAPIError(
                    f"HTTP {response.status_code} from {url}",
                    status_code=response.status_code,
                    body=_error_body(response),
                )
            return response.json()

        return await self._with_rate_limit_retry(attempt)

    async def fetch_records(self, table_name: str, max_records: Optional[int] = None) -> List[TableRecord]:
        """Fetch the records of one table in view order.

        With ``max_records`` set, a single page is requested and taken as the
        whole answer. Otherwise offset tokens are followed until the API stops
        returning one.

        Raises:
            AirtableAPIError: on any non-429 failure
        """
        url = f"{self.base_url}/{quote(table_name, safe='')}"
        records: List[TableRecord] = []
        offset: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"view": self.view}
            if max_records:
                params["maxRecords"] = max_records
            if offset:
                params["offset"] = offset

            logger.info("Fetching records", table=table_name, with_offset=offset is not None)
            try:
                page = await self._get_json(url, params)
            except AirtableAPIError as e:
                logger.error(
                    "Error fetching records",
                    table=table_name,
                    status_code=e.status_code,
                    body=e.body,
                    error=str(e),
                )
                raise

            page_records = [TableRecord.model_validate(r) for r in page.get("records", [])]
            records.extend(page_records)
            logger.info("Fetched records", table=table_name, count=len(page_records))

            offset = page.get("offset")
            if not offset or max_records:
                break

        return records

    async def sample_record(self, table_name: str) -> Optional[TableRecord]:
        """First record of a table, or None if it is empty."""
        records = await self.fetch_records(table_name, max_records=1)
        return records[0] if records else None

    async def list_tables(self) -> List[Dict[str, Any]]:
        """Tables in the base, from the metadata endpoint."""
        url = f"{self.api_url}/meta/bases/{self.base_id}/tables"
        data = await self._get_json(url)
        return data.get("tables", [])

    async def download(self, url: str, destination: Path, chunk_size: int = 65536) -> int:
        """Stream ``url`` into ``destination``, replacing any existing file.

        Bytes go to a ``.part`` sibling that is moved into place only once the
        body has been read completely. Asset URLs are pre-signed, so no
        authorization header is sent.

        Returns:
            Number of bytes written

        Raises:
            ImageDownloadError: on any non-429 failure
        """
        part_path = destination.with_name(destination.name + ".part")

        async def attempt() -> int:
            await self._sleep(self.request_delay)
            written = 0
            try:
                async with self.client.stream("GET", url) as response:
                    if response.status_code == 429:
                        raise RateLimitedError(url)
                    response.raise_for_status()
                    with open(part_path, "wb") as f:
                        async for chunk in response.aiter_bytes(chunk_size):
                            f.write(chunk)
                            written += len(chunk)
                part_path.replace(destination)
            except httpx.HTTPStatusError as e:
                part_path.unlink(missing_ok=True)
                raise ImageDownloadError(url, f"HTTP {e.response.status_code}") from e
            except (httpx.RequestError, OSError) as e:
                part_path.unlink(missing_ok=True)
                raise ImageDownloadError(url, str(e)) from e
            return written

        return await self._with_rate_limit_retry(attempt)
