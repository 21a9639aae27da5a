"""
Result stores.

Completed job results are persisted keyed by job id, either as one JSON
file per job or as rows in a SQL database.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import orjson
from sqlalchemy import delete, select

from actorqueue.core.config.models import StorageBackend, StorageConfig
from actorqueue.core.models import ScrapingResult

from .db import Database
from .models import ScrapeResultRecord

logger = logging.getLogger(__name__)


class ResultStore(Protocol):
    """Key-value store for job results."""

    async def init(self) -> None:
        ...

    async def save(self, job_id: str, result: ScrapingResult) -> None:
        ...

    async def load(self, job_id: str) -> ScrapingResult | None:
        ...

    async def exists(self, job_id: str) -> bool:
        ...

    async def delete(self, job_id: str) -> bool:
        ...

    async def list(
        self,
        platform: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScrapingResult]:
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# File Store
# =============================================================================


class FileResultStore:
    """One pretty-printed JSON file per job: ``<output_dir>/<job_id>.json``."""

    def __init__(self, output_dir: Path | str = Path("output")) -> None:
        self.output_dir = Path(output_dir)

    def _path(self, job_id: str) -> Path:
        # job ids are uuid hex; reject anything that could escape the directory
        if not job_id or "/" in job_id or "\\" in job_id or job_id.startswith("."):
            raise ValueError(f"Invalid job id: {job_id!r}")
        return self.output_dir / f"{job_id}.json"

    async def init(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    async def save(self, job_id: str, result: ScrapingResult) -> None:
        path = self._path(job_id)
        payload = orjson.dumps(result.to_dict(), option=orjson.OPT_INDENT_2)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_bytes(payload)
            tmp.replace(path)

        await asyncio.to_thread(write)
        logger.info("Saved result for job %s to %s", job_id, path, extra={"job_id": job_id})

    async def load(self, job_id: str) -> ScrapingResult | None:
        path = self._path(job_id)

        def read() -> bytes | None:
            return path.read_bytes() if path.exists() else None

        content = await asyncio.to_thread(read)
        if content is None:
            return None
        return ScrapingResult.from_dict(orjson.loads(content))

    async def exists(self, job_id: str) -> bool:
        return await asyncio.to_thread(self._path(job_id).exists)

    async def delete(self, job_id: str) -> bool:
        path = self._path(job_id)

        def remove() -> bool:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            return True

        removed = await asyncio.to_thread(remove)
        if removed:
            logger.info("Deleted result for job %s", job_id, extra={"job_id": job_id})
        return removed

    def _read_all(self, platform: str | None) -> list[ScrapingResult]:
        if not self.output_dir.exists():
            return []

        results: list[ScrapingResult] = []
        for path in self.output_dir.glob("*.json"):
            try:
                result = ScrapingResult.from_dict(orjson.loads(path.read_bytes()))
            except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable result file %s: %s", path, e)
                continue

            if platform is None or result.metadata.platform == platform:
                results.append(result)
        return results

    async def list(
        self,
        platform: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScrapingResult]:
        """Stored results, newest first."""
        results = await asyncio.to_thread(self._read_all, platform)

        results.sort(key=lambda r: r.metadata.scraped_at, reverse=True)
        end = None if limit is None else offset + limit
        return results[offset:end]

    async def close(self) -> None:
        pass


# =============================================================================
# Database Store
# =============================================================================


def _to_record(job_id: str, result: ScrapingResult) -> ScrapeResultRecord:
    meta = result.metadata
    return ScrapeResultRecord(
        job_id=job_id,
        platform=meta.platform,
        scraped_at=meta.scraped_at,
        completed_at=meta.completed_at,
        total_items=meta.total_items,
        total_duration=meta.total_duration,
        data=result.data,
    )


def _from_record(record: ScrapeResultRecord) -> ScrapingResult:
    return ScrapingResult.from_dict({
        "metadata": {
            "platform": record.platform,
            "job_id": record.job_id,
            "scraped_at": record.scraped_at,
            "completed_at": record.completed_at,
            "total_items": record.total_items,
            "total_duration": record.total_duration,
        },
        "data": record.data,
    })


class DatabaseResultStore:
    """Results stored in the ``scrape_results`` table."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def init(self) -> None:
        await self.database.init()

    async def save(self, job_id: str, result: ScrapingResult) -> None:
        async with self.database.session() as session:
            await session.merge(_to_record(job_id, result))
        logger.info("Saved result for job %s to database", job_id, extra={"job_id": job_id})

    async def load(self, job_id: str) -> ScrapingResult | None:
        async with self.database.session() as session:
            record = await session.get(ScrapeResultRecord, job_id)
            return _from_record(record) if record is not None else None

    async def exists(self, job_id: str) -> bool:
        async with self.database.session() as session:
            stmt = select(ScrapeResultRecord.job_id).where(ScrapeResultRecord.job_id == job_id)
            return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def delete(self, job_id: str) -> bool:
        async with self.database.session() as session:
            stmt = delete(ScrapeResultRecord).where(ScrapeResultRecord.job_id == job_id)
            result = await session.execute(stmt)
            return bool(result.rowcount)

    async def list(
        self,
        platform: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScrapingResult]:
        """Stored results, newest first."""
        stmt = select(ScrapeResultRecord)
        if platform is not None:
            stmt = stmt.where(ScrapeResultRecord.platform == platform)
        stmt = stmt.order_by(ScrapeResultRecord.scraped_at.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self.database.session() as session:
            records = (await session.execute(stmt)).scalars().all()
            return [_from_record(record) for record in records]

    async def close(self) -> None:
        await self.database.dispose()


def create_result_store(config: StorageConfig) -> FileResultStore | DatabaseResultStore:
    """Build the result store selected by the storage config."""
    if config.backend == StorageBackend.DATABASE:
        return DatabaseResultStore(Database(config.database_url, echo=config.echo))
    return FileResultStore(config.output_dir)
