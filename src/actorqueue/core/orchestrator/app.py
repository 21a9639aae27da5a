"""
Application wiring.

Builds the full service stack (token pool, API client, registry, result
store, maintenance scheduler) from an AppConfig.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import httpx

from actorqueue.core.actors.registry import build_default_registry
from actorqueue.core.clients.apify import ApifyClient
from actorqueue.core.clients.retries import RetryConfig
from actorqueue.core.clients.tokens import CredentialRotator, TokenFileStore
from actorqueue.core.config.models import AppConfig
from actorqueue.core.orchestrator.service import ScrapingService
from actorqueue.core.scheduler.service import MaintenanceScheduler
from actorqueue.persistence.store import create_result_store

logger = logging.getLogger(__name__)


def build_client(
    config: AppConfig,
    rotator: CredentialRotator,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ApifyClient:
    """Create an Apify client from the ``apify`` config section."""
    apify = config.apify
    return ApifyClient(
        rotator,
        base_url=apify.base_url,
        timeout=apify.timeout_seconds,
        retry=RetryConfig(max_attempts=apify.max_retries, delay=apify.retry_delay_seconds),
        wait_for_finish=apify.wait_for_finish_seconds,
        page_size=apify.page_size,
        transport=transport,
    )


@asynccontextmanager
async def open_service(
    config: AppConfig,
    *,
    max_concurrent: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    enable_maintenance: bool = True,
) -> AsyncIterator[ScrapingService]:
    """Open a ready-to-use ScrapingService and tear it down on exit.

    Args:
        config: Application configuration
        max_concurrent: Override for ``queue.max_concurrent_jobs``
        transport: Custom httpx transport (tests)
        enable_maintenance: Run the periodic eviction sweep
    """
    rotator = CredentialRotator(TokenFileStore(config.apify.token_file))
    count = rotator.load()
    if count == 0:
        logger.warning(f"No Apify tokens in {config.apify.token_file}; jobs will fail until tokens are added")

    client = build_client(config, rotator, transport=transport)
    store = create_result_store(config.storage)
    await store.init()

    service = ScrapingService(
        build_default_registry(client, config.actors),
        store,
        max_concurrent=max_concurrent or config.queue.max_concurrent_jobs,
    )

    maintenance = MaintenanceScheduler(
        service.evict_old_jobs,
        retention=timedelta(hours=config.queue.job_retention_hours),
        interval=timedelta(minutes=config.queue.sweep_interval_minutes),
    )
    if enable_maintenance:
        maintenance.start()

    try:
        yield service
    finally:
        maintenance.shutdown()
        await service.shutdown()
        await client.aclose()
