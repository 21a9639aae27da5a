"""Tests for ApifyClient over httpx.MockTransport.

Covers token rotation on exhaustion, transient retries, run polling and
dataset pagination. No request leaves the process.
"""

from __future__ import annotations

import json

import httpx
import pytest

from actorqueue.core.clients.apify import ApifyClient, actor_path
from actorqueue.core.clients.retries import RetryConfig, is_exhaustion_error
from actorqueue.core.errors import AllCredentialsExhausted, ApiError, TransientIO


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(status: str = "SUCCEEDED", run_id: str = "run-1") -> dict:
    return {"data": {"id": run_id, "status": status, "defaultDatasetId": "ds-1"}}


def _error(status_code: int, error_type: str, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"type": error_type, "message": message}})


def _client(rotator, handler, **kwargs) -> ApifyClient:
    kwargs.setdefault("retry", RetryConfig(max_attempts=3, delay=0))
    kwargs.setdefault("wait_for_finish", 60)
    return ApifyClient(rotator, transport=httpx.MockTransport(handler), **kwargs)


def _token(request: httpx.Request) -> str:
    return request.headers["Authorization"].removeprefix("Bearer ")


# ---------------------------------------------------------------------------
# Token rotation
# ---------------------------------------------------------------------------


class TestTokenRotation:
    @pytest.mark.asyncio
    async def test_exhausted_token_is_rotated_and_call_retried(self, make_rotator) -> None:
        rotator, store = make_rotator(["t1", "t2"])
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(_token(request))
            if _token(request) == "t1":
                return _error(402, "not-enough-usage-to-run-paid-actor", "Monthly usage limit exceeded")
            return httpx.Response(201, json=_run())

        async with _client(rotator, handler) as client:
            run = await client.invoke("user/actor", {"q": 1})

        assert run.succeeded
        assert seen == ["t1", "t2"]
        assert store.tokens == ["t2"]

    @pytest.mark.asyncio
    async def test_all_tokens_exhausted(self, make_rotator) -> None:
        """N exhausted tokens drain the pool, then nothing is sent at all."""
        rotator, store = make_rotator(["t1", "t2", "t3"])
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return _error(403, "forbidden", "Access forbidden")

        async with _client(rotator, handler) as client:
            with pytest.raises(AllCredentialsExhausted):
                await client.invoke("user/actor", {})

            assert [_token(r) for r in requests] == ["t1", "t2", "t3"]
            assert rotator.count == 0
            assert store.tokens == []
            assert store.persist_calls == 3

            with pytest.raises(AllCredentialsExhausted):
                await client.get_dataset("ds-1")

        assert len(requests) == 3

    @pytest.mark.asyncio
    async def test_rotation_does_not_use_transient_budget(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1", "t2", "t3", "t4"])
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if _token(request) != "t4":
                return _error(401, "token-not-valid", "Authentication token is not valid")
            return httpx.Response(201, json=_run())

        async with _client(rotator, handler) as client:
            run = await client.invoke("user/actor", {})

        assert run.id == "run-1"
        assert calls == 4

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_exhaustion(self, make_rotator) -> None:
        rotator, store = make_rotator(["t1", "t2"])
        responses = iter([
            _error(429, "rate-limit-exceeded", "You have exceeded the rate limit"),
            httpx.Response(201, json=_run()),
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            assert _token(request) == "t1"
            return next(responses)

        async with _client(rotator, handler) as client:
            await client.invoke("user/actor", {})

        assert store.tokens == ["t1", "t2"]
        assert store.persist_calls == 0


# ---------------------------------------------------------------------------
# Transient retries
# ---------------------------------------------------------------------------


class TestTransientRetries:
    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        responses = iter([
            httpx.Response(500, text="upstream broke"),
            httpx.Response(503, text="unavailable"),
            httpx.Response(201, json=_run()),
        ])

        async with _client(rotator, lambda request: next(responses)) as client:
            run = await client.invoke("user/actor", {})

        assert run.status == "SUCCEEDED"
        assert rotator.count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="still broken")

        async with _client(rotator, handler) as client:
            with pytest.raises(TransientIO) as exc_info:
                await client.get_dataset("ds-1")

        assert calls == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ApiError)
        assert rotator.count == 1

    @pytest.mark.asyncio
    async def test_connection_errors_are_transient(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"data": {"id": "ds-1", "itemCount": 7}})

        async with _client(rotator, handler) as client:
            dataset = await client.get_dataset("ds-1")

        assert dataset.item_count == 7
        assert attempts == 2


# ---------------------------------------------------------------------------
# Runs and datasets
# ---------------------------------------------------------------------------


class TestActorRuns:
    @pytest.mark.asyncio
    async def test_start_request_shape(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(201, json=_run())

        async with _client(rotator, handler, wait_for_finish=30) as client:
            await client.invoke("trudax/reddit-scraper-lite", {"searches": ["python"]})

        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == "/v2/acts/trudax~reddit-scraper-lite/runs"
        assert request.url.params["waitForFinish"] == "30"
        assert json.loads(request.content) == {"searches": ["python"]}

    @pytest.mark.asyncio
    async def test_polls_until_terminal(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        statuses = iter(["RUNNING", "SUCCEEDED"])
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(f"{request.method} {request.url.path}")
            if request.method == "POST":
                return httpx.Response(201, json=_run("READY", "run-9"))
            return httpx.Response(200, json=_run(next(statuses), "run-9"))

        async with _client(rotator, handler) as client:
            run = await client.invoke("user/actor", {})

        assert run.succeeded
        assert run.default_dataset_id == "ds-1"
        assert paths == [
            "POST /v2/acts/user~actor/runs",
            "GET /v2/actor-runs/run-9",
            "GET /v2/actor-runs/run-9",
        ]

    @pytest.mark.asyncio
    async def test_failed_run_is_returned_not_raised(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])

        async with _client(rotator, lambda r: httpx.Response(201, json=_run("FAILED"))) as client:
            run = await client.invoke("user/actor", {})

        assert run.status == "FAILED"
        assert not run.succeeded

    def test_actor_path(self) -> None:
        assert actor_path("apidojo/tweet-scraper") == "apidojo~tweet-scraper"
        assert actor_path("abc123") == "abc123"


class TestDatasetItems:
    @pytest.mark.asyncio
    async def test_pages_until_total(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        items = [{"n": i} for i in range(5)]
        offsets: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            offsets.append(offset)
            assert request.url.params["clean"] == "true"
            return httpx.Response(
                200,
                json=items[offset:offset + limit],
                headers={"x-apify-pagination-total": str(len(items))},
            )

        async with _client(rotator, handler, page_size=2) as client:
            result = await client.list_results("ds-1")

        assert result.items == items
        assert result.total == 5
        assert result.count == 5
        assert offsets == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])
        items = [{"n": i} for i in range(10)]

        def handler(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            return httpx.Response(
                200,
                json=items[offset:offset + limit],
                headers={"x-apify-pagination-total": "10"},
            )

        async with _client(rotator, handler, page_size=4) as client:
            result = await client.list_results("ds-1", limit=3, offset=2)

        assert [item["n"] for item in result.items] == [2, 3, 4]
        assert result.offset == 2
        assert result.total == 10

    @pytest.mark.asyncio
    async def test_empty_dataset(self, make_rotator) -> None:
        rotator, _ = make_rotator(["t1"])

        async with _client(rotator, lambda r: httpx.Response(200, json=[])) as client:
            result = await client.list_results("ds-1")

        assert result.items == []
        assert result.total == 0


# ---------------------------------------------------------------------------
# Exhaustion classification
# ---------------------------------------------------------------------------


class TestExhaustionClassification:
    @pytest.mark.parametrize("status_code", [401, 402, 403])
    def test_auth_status_codes(self, status_code: int) -> None:
        assert is_exhaustion_error(ApiError("denied", status_code=status_code))

    def test_rate_limit_never_exhaustion(self) -> None:
        assert not is_exhaustion_error(ApiError("quota limit exceeded", status_code=429))

    @pytest.mark.parametrize(
        "message",
        ["Monthly usage quota reached", "Payment Required", "got 403 from upstream", "limit exceeded"],
    )
    def test_message_patterns(self, message: str) -> None:
        assert is_exhaustion_error(RuntimeError(message))

    def test_plain_server_error(self) -> None:
        assert not is_exhaustion_error(ApiError("Apify API error 500 Internal Server Error", status_code=500))
