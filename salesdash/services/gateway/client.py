"""
Remote data gateway client.
Paginates through the NocoDB proxy's per-collection endpoints and returns
raw rows. Low-level HTTP client; normalization lives in the fetchers.
"""

import asyncio
from typing import Any

import httpx

from salesdash.infrastructure.observability.logging import get_logger
from salesdash.models.domain.records import Collection

logger = get_logger(__name__)

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds; the cache applies its own tighter budget
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 500
MAX_RETRIES = 2
BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class GatewayError(Exception):
    """Custom exception for gateway responses that cannot be used."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.collection = collection
        self.status_code = status_code


class GatewayClient:
    """
    Client for the remote data gateway.

    Contract per collection:
        GET {base_url}/collections/{name}?limit=&offset=[&where=][&sort=]
        -> {"list": [...], "pageInfo": {"isLastPage": bool, "totalRows": int}}
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_retries: int = MAX_RETRIES,
        retry_backoff: float = BACKOFF_FACTOR,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.page_size = page_size
        self.max_pages = max_pages
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._client = self._create_client(transport)

    def _create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        """Create async HTTP client for the gateway."""
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            limits=limits,
            headers=self._get_headers(),
            transport=transport,
        )

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["xc-token"] = self.token
        return headers

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, url: str, params: dict[str, Any]) -> httpx.Response:
        """GET with retry and backoff on throttling, server errors and transport errors."""
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.get(url, params=params)
                if response.status_code in RETRY_STATUS_CODES and attempt < attempts:
                    backoff = self.retry_backoff * (2 ** (attempt - 1))
                    logger.debug(
                        "Gateway retrying request",
                        url=url,
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= attempts:
                    raise
                backoff = self.retry_backoff * (2 ** (attempt - 1))
                logger.debug(
                    "Gateway request error, retrying",
                    url=url,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Gateway retry loop exhausted")

    def _parse_page(self, response: httpx.Response, collection: str) -> dict:
        """
        Validate one page response.

        Raises:
            GatewayError: non-2xx status, malformed JSON, or missing list field
        """
        if not response.is_success:
            raise GatewayError(
                f"Gateway error (HTTP {response.status_code}) for {collection}",
                collection=collection,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise GatewayError(
                f"Invalid JSON from gateway for {collection}: {e}",
                collection=collection,
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("list"), list):
            raise GatewayError(
                f"Gateway response for {collection} has no list field",
                collection=collection,
                status_code=response.status_code,
            )

        return payload

    async def fetch_all(
        self,
        collection: Collection | str,
        where: str | None = None,
        sort: str | None = None,
    ) -> list[dict]:
        """
        Fetch every row of a collection.

        Stops on pageInfo.isLastPage, an empty page, or max_pages. A page
        that fails (bad status, bad JSON) ends pagination and the rows
        gathered so far are returned. Transport errors propagate.
        """
        name = collection.value if isinstance(collection, Collection) else str(collection)
        url = f"/collections/{name}"
        rows: list[dict] = []
        offset = 0

        for page in range(1, self.max_pages + 1):
            params: dict[str, Any] = {"limit": self.page_size, "offset": offset}
            if where:
                params["where"] = where
            if sort:
                params["sort"] = sort

            response = await self._request_with_retry(url, params)

            try:
                payload = self._parse_page(response, name)
            except GatewayError as e:
                logger.error(
                    "Gateway page failed, returning partial results",
                    collection=name,
                    page=page,
                    status_code=e.status_code,
                    error=str(e),
                    rows_so_far=len(rows),
                )
                break

            batch = payload["list"]
            rows.extend(batch)

            page_info = payload.get("pageInfo") or {}
            if page_info.get("isLastPage") or not batch:
                break

            # The gateway may cap limit below what was asked for
            offset += len(batch)
        else:
            logger.warning(
                "Gateway pagination hit page limit",
                collection=name,
                max_pages=self.max_pages,
                rows=len(rows),
            )

        logger.debug("Gateway collection fetched", collection=name, rows=len(rows), filtered=bool(where))
        return rows
