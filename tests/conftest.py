"""Shared pytest fixtures for actorqueue tests.

Fixture summary
---------------
fast_retry      - RetryConfig with no delay between attempts.
make_rotator    - Factory for a CredentialRotator over an in-memory token list.
fake_client     - Scripted ScrapingApiClient (no HTTP).
stub_registry   - Registry with a controllable "stub" platform.
file_store      - FileResultStore in a temporary directory.
service         - ScrapingService wired to the stub registry and file store.

No test touches the network: HTTP-level tests use httpx.MockTransport.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Literal

import pytest
import pytest_asyncio

from actorqueue.core.actors.base import ActorStrategy, ProgressReporter
from actorqueue.core.actors.registry import ActorRegistry
from actorqueue.core.clients.base import Dataset, ItemList, RunResult
from actorqueue.core.clients.retries import RetryConfig
from actorqueue.core.clients.tokens import CredentialRotator, MemoryCredentialStore
from actorqueue.core.models import PlatformConfig
from actorqueue.core.orchestrator.service import ScrapingService
from actorqueue.persistence.store import FileResultStore


# ---------------------------------------------------------------------------
# Credentials and retries
# ---------------------------------------------------------------------------


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=3, delay=0)


@pytest.fixture
def make_rotator() -> Callable[..., tuple[CredentialRotator, MemoryCredentialStore]]:
    def _make(tokens: list[str]) -> tuple[CredentialRotator, MemoryCredentialStore]:
        store = MemoryCredentialStore(tokens)
        rotator = CredentialRotator(store)
        rotator.load()
        return rotator, store

    return _make


# ---------------------------------------------------------------------------
# Scripted API client
# ---------------------------------------------------------------------------


ItemsHandler = Callable[[str, dict[str, Any]], list[dict[str, Any]]]


class FakeApiClient:
    """ScrapingApiClient double.

    ``handler(actor_id, run_input)`` returns the dataset items for each run
    or raises to simulate a failed run.
    """

    def __init__(self, handler: ItemsHandler | None = None) -> None:
        self.handler = handler or (lambda actor_id, run_input: [])
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._datasets: dict[str, list[dict[str, Any]]] = {}

    async def invoke(self, actor_id: str, run_input: dict[str, Any]) -> RunResult:
        self.calls.append((actor_id, run_input))
        items = self.handler(actor_id, run_input)
        dataset_id = f"ds-{len(self.calls)}"
        self._datasets[dataset_id] = items
        return RunResult(id=f"run-{len(self.calls)}", status="SUCCEEDED", default_dataset_id=dataset_id)

    async def get_dataset(self, dataset_id: str) -> Dataset:
        return Dataset(id=dataset_id, item_count=len(self._datasets[dataset_id]))

    async def list_results(
        self,
        dataset_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> ItemList:
        items = self._datasets[dataset_id][offset:]
        if limit is not None:
            items = items[:limit]
        return ItemList(items=items, total=len(self._datasets[dataset_id]), offset=offset, count=len(items))


@pytest.fixture
def fake_client() -> FakeApiClient:
    return FakeApiClient()


# ---------------------------------------------------------------------------
# Controllable strategy
# ---------------------------------------------------------------------------


class StubConfig(PlatformConfig):
    platform: Literal["stub"] = "stub"
    items: int = 1
    hold: bool = False
    fail: str | None = None


class StubStrategy(ActorStrategy[StubConfig]):
    """Strategy whose runs can be held open and released from the test."""

    platform = "stub"
    config_model = StubConfig
    default_actor_id = "test/stub"

    def __init__(self) -> None:
        super().__init__(FakeApiClient())
        self.release = asyncio.Event()
        self.started: list[StubConfig] = []
        self.active = 0
        self.peak_active = 0

    async def run(self, config: StubConfig, report: ProgressReporter) -> list[dict[str, Any]]:
        self.started.append(config)
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            report(50.0, "Working")
            if config.hold:
                await self.release.wait()
            else:
                await asyncio.sleep(0)
            if config.fail:
                raise RuntimeError(config.fail)
            return [{"n": i} for i in range(config.items)]
        finally:
            self.active -= 1

    def transform(self, raw: list[dict[str, Any]], config: StubConfig) -> dict[str, Any]:
        return {"posts": raw}


@pytest.fixture
def stub_strategy() -> StubStrategy:
    return StubStrategy()


@pytest.fixture
def stub_registry(stub_strategy: StubStrategy) -> ActorRegistry:
    registry = ActorRegistry()
    registry.register(stub_strategy)
    return registry


# ---------------------------------------------------------------------------
# Stores and service
# ---------------------------------------------------------------------------


@pytest.fixture
def file_store(tmp_path) -> FileResultStore:
    return FileResultStore(tmp_path / "output")


@pytest_asyncio.fixture
async def service(stub_registry: ActorRegistry, file_store: FileResultStore):
    await file_store.init()
    svc = ScrapingService(stub_registry, file_store, max_concurrent=2)
    yield svc
    await svc.shutdown()
