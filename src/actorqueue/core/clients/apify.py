"""
Apify API client using httpx.

Provides async access to the Apify REST API with:
- Bearer token auth from a rotating token pool
- Token rotation when a token is exhausted (401/402/403, quota messages)
- Fixed-delay retry for transient failures
- Actor run polling and dataset pagination
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from actorqueue.core.clients.base import (
    TERMINAL_RUN_STATUSES,
    Dataset,
    ItemList,
    RunResult,
)
from actorqueue.core.clients.retries import RetryConfig, call_with_rotation
from actorqueue.core.clients.tokens import CredentialRotator, preview
from actorqueue.core.errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.apify.com"

# Poll interval when the server-side wait is disabled
IDLE_POLL_SECONDS = 2.0


def actor_path(actor_id: str) -> str:
    """Actor ids like ``user/actor`` are addressed as ``user~actor``."""
    return actor_id.replace("/", "~")


class ApifyClient:
    """Apify API client with token rotation and retries.

    All outbound calls share the rotator's active token, so a rotation
    triggered by one job applies to every job that calls afterwards.
    """

    def __init__(
        self,
        rotator: CredentialRotator,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        retry: RetryConfig | None = None,
        wait_for_finish: int = 60,
        page_size: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            rotator: Token pool (must be loaded)
            base_url: Apify API base URL
            timeout: HTTP timeout in seconds
            retry: Retry configuration
            wait_for_finish: Server-side wait per poll, 0-60 seconds
            page_size: Dataset items per page
            transport: Custom httpx transport (tests)
        """
        self.rotator = rotator
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry = retry or RetryConfig()
        self.wait_for_finish = wait_for_finish
        self.page_size = page_size
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    def _apply_token(self, token: str) -> None:
        """Point the connection at a new token."""
        client = self._ensure_client()
        client.headers["Authorization"] = f"Bearer {token}"
        logger.debug("Client now using token %s", preview(token))

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ApifyClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        **kwargs: Any,
    ) -> httpx.Response:
        client = self._ensure_client()
        headers = {"Authorization": f"Bearer {token}"}
        response = await client.request(method, url, headers=headers, **kwargs)

        if response.status_code >= 400:
            raise self._api_error(response)
        return response

    @staticmethod
    def _api_error(response: httpx.Response) -> ApiError:
        """Build an ApiError from an Apify error body."""
        detail = response.reason_phrase or "error"
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            detail = f"{error.get('type', 'error')}: {error.get('message', detail)}"

        return ApiError(
            f"Apify API error {response.status_code} {detail}",
            status_code=response.status_code,
            url=str(response.request.url),
        )

    @staticmethod
    def _data(response: httpx.Response) -> dict[str, Any]:
        payload = response.json()
        if not isinstance(payload, dict) or "data" not in payload:
            raise ApiError(
                "Unexpected response shape from Apify",
                status_code=response.status_code,
                url=str(response.request.url),
            )
        return payload["data"]

    async def _call(self, operation, context: str):
        return await call_with_rotation(
            operation,
            rotator=self.rotator,
            config=self.retry,
            context=context,
            on_rotate=self._apply_token,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def invoke(self, actor_id: str, run_input: dict[str, Any]) -> RunResult:
        """Start an actor run and wait for it to finish.

        Start and each poll are retried separately, so a transient failure
        while waiting never starts a second run.
        """
        path = actor_path(actor_id)

        async def start(token: str) -> dict[str, Any]:
            logger.debug("Calling actor %s", actor_id, extra={"actor_id": actor_id})
            response = await self._request(
                "POST",
                f"/v2/acts/{path}/runs",
                token,
                json=run_input,
                params={"waitForFinish": self.wait_for_finish},
            )
            return self._data(response)

        run = await self._call(start, actor_id)

        while run.get("status") not in TERMINAL_RUN_STATUSES:
            run_id = run["id"]

            if self.wait_for_finish == 0:
                await asyncio.sleep(IDLE_POLL_SECONDS)

            async def poll(token: str, run_id: str = run_id) -> dict[str, Any]:
                response = await self._request(
                    "GET",
                    f"/v2/actor-runs/{run_id}",
                    token,
                    params={"waitForFinish": self.wait_for_finish},
                )
                return self._data(response)

            run = await self._call(poll, f"{actor_id} run {run_id}")

        result = RunResult(
            id=run["id"],
            status=run["status"],
            default_dataset_id=run.get("defaultDatasetId"),
        )

        if not result.succeeded:
            logger.warning(
                "Actor run %s finished with status %s",
                result.id,
                result.status,
                extra={"actor_id": actor_id},
            )
        return result

    async def get_dataset(self, dataset_id: str) -> Dataset:
        """Fetch dataset summary."""
        async def fetch(token: str) -> Dataset:
            response = await self._request("GET", f"/v2/datasets/{dataset_id}", token)
            data = self._data(response)
            return Dataset(id=data["id"], item_count=int(data.get("itemCount", 0)))

        return await self._call(fetch, f"dataset:{dataset_id}")

    async def list_results(
        self,
        dataset_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> ItemList:
        """List dataset items, paging until ``limit`` or the end.

        Args:
            dataset_id: Dataset to read
            limit: Maximum items to return (None for all)
            offset: Index of the first item
        """
        items: list[dict[str, Any]] = []
        total = 0
        cursor = offset

        while limit is None or len(items) < limit:
            page_limit = self.page_size if limit is None else min(self.page_size, limit - len(items))

            async def fetch_page(token: str, cursor: int = cursor, page_limit: int = page_limit):
                response = await self._request(
                    "GET",
                    f"/v2/datasets/{dataset_id}/items",
                    token,
                    params={
                        "format": "json",
                        "clean": "true",
                        "offset": cursor,
                        "limit": page_limit,
                    },
                )
                page = response.json()
                if not isinstance(page, list):
                    raise ApiError(
                        "Dataset items response is not a list",
                        status_code=response.status_code,
                        url=str(response.request.url),
                    )
                page_total = int(response.headers.get("x-apify-pagination-total", len(page)))
                return page, page_total

            page, total = await self._call(fetch_page, f"dataset:{dataset_id}")
            items.extend(page)
            cursor += len(page)

            if len(page) < page_limit or cursor >= total:
                break

        return ItemList(items=items, total=total, offset=offset, count=len(items))
