"""Blockbook explorer REST client with request pacing and retry logic.

This module provides the explorer client used by the ingestion run with:
- A fixed delay after every successful call (explorer-side rate limiting)
- Retry with exponential backoff on network, HTTP and API-level errors
- Typed helpers for the status, block and address endpoints
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from chain_volume_ingestor.exceptions import RequestError
from chain_volume_ingestor.explorer.models import BlockInfo, ChainStatus

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_REQUEST_DELAY_SECONDS = 2.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT = 30.0

Sleeper = Callable[[float], Awaitable[None]]


class ExplorerApiError(Exception):
    """Raised when the explorer answers with an ``error`` field in the payload."""


class ExplorerClient:
    """Explorer client with paced, retrying GET requests.

    Example:
        ```python
        async with ExplorerClient("https://ltcbook.nownodes.io/api/v2", api_key="...") as client:
            status = await client.get_status()
            block = await client.get_block(status.height)
        ```
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        request_delay_seconds: float = DEFAULT_REQUEST_DELAY_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """Initialize the explorer client.

        Args:
            base_url: Explorer API base URL (e.g. ``.../api/v2``).
            api_key: Optional key sent in the ``api-key`` header.
            request_delay_seconds: Pause after every successful call.
            max_retries: Maximum attempts per request (including the first).
            retry_base_delay_seconds: Backoff unit; attempt n waits base * 2**n.
            timeout_seconds: Per-request HTTP timeout.
            transport: Optional httpx transport (used by tests).
            sleep: Awaitable sleep function (used by tests).
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self._request_delay = request_delay_seconds
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay_seconds
        self._sleep = sleep

        headers = {"accept": "application/json"}
        if api_key:
            headers["api-key"] = api_key

        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def request(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and return the decoded JSON payload.

        Args:
            path: Path relative to the base URL.
            params: Optional query parameters.

        Returns:
            Decoded JSON payload.

        Raises:
            RequestError: If every attempt failed.
        """
        last_error: Exception | None = None
        attempt = 0

        for attempt in range(1, self._max_retries + 1):
            try:
                logger.debug("Attempt %d: %s", attempt, path)
                response = await self._http.get(path, params=params)
                response.raise_for_status()
                payload = response.json()

                # An error field in the body is a failure even on HTTP 200.
                if isinstance(payload, dict) and payload.get("error"):
                    raise ExplorerApiError(str(payload["error"]))

                await self._sleep(self._request_delay)
                logger.debug("Request successful (attempt %d): %s", attempt, path)
                return payload
            except (httpx.HTTPError, ExplorerApiError, ValueError) as e:
                last_error = e
                logger.warning(
                    "Explorer request %s failed (attempt %d/%d): %s",
                    path,
                    attempt,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries:
                    await self._sleep(self._retry_base_delay * (2**attempt))

        raise RequestError(
            f"Request {path} failed after {attempt} attempts: {last_error}",
            last_exception=last_error,
            attempts=attempt,
        )

    async def get_status(self) -> ChainStatus:
        """Get the current chain height and last block time."""
        payload = await self.request("/status")
        return ChainStatus.from_dict(payload)

    async def get_block(self, height: int) -> BlockInfo:
        """Get block metadata by height."""
        if height < 0:
            raise ValueError("height must be >= 0")
        payload = await self.request(f"/block/{height}")
        return BlockInfo.from_dict(payload, height=height)

    async def get_address_page(
        self,
        address: str,
        *,
        from_block: int,
        to_block: int,
        page: int,
        page_size: int,
    ) -> list[dict[str, Any]]:
        """Get one page of an address's transactions within a block range."""
        payload = await self.request(
            f"/address/{address}",
            {
                "details": "txs",
                "pageSize": page_size,
                "from": from_block,
                "to": to_block,
                "page": page,
            },
        )
        if not isinstance(payload, dict):
            return []
        return list(payload.get("transactions") or [])

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    async def __aenter__(self) -> ExplorerClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
