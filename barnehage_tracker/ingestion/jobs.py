"""
Background Jobs Module
======================

Orchestrates the two pipeline runs and exposes them as arq tasks:

- scrape: fetch the availability page, parse it, reconcile the
  observations against the registry, match notification preferences
- bootstrap: populate the registry from the barnehagefakta.no API

Runs are serialised: the worker executes one job at a time so two
scrapes never interleave their writes. Uses Redis as the job queue backend.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from arq import create_pool, cron
from arq.connections import RedisSettings
from arq.jobs import Job
from arq.jobs import JobStatus as ArqJobStatus

from barnehage_tracker.db.engine import Database
from barnehage_tracker.db.repositories import (
    KindergartenRepository,
    NotificationPreferenceRepository,
)
from barnehage_tracker.ingestion.bootstrap import BarnehagefaktaClient, initialize_kindergartens
from barnehage_tracker.ingestion.crawler import Crawler
from barnehage_tracker.ingestion.parser import AvailabilityPageParser
from barnehage_tracker.ingestion.reconciler import AvailabilityReconciler
from barnehage_tracker.ingestion.registry import (
    API_SOURCE,
    PAGE_SOURCE,
    SourceRegistry,
    get_default_registry,
)
from barnehage_tracker.ingestion.storage import LocalFileStorage, get_default_storage
from barnehage_tracker.services.notifications import NotificationMatcher

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Status of a pipeline job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobResult:
    """Result of a pipeline job."""

    job_id: str
    job_type: str
    status: JobStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    observations: int = 0
    new_spots: int = 0
    refreshed_spots: int = 0
    taken_spots: int = 0
    kindergartens_saved: int = 0
    kindergartens_upserted: int = 0
    notifications: int = 0
    parse_errors: list[dict[str, Any]] = field(default_factory=list)
    mapping_errors: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "job_id": self.job_id,
            "job_type": self.job_type,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "observations": self.observations,
            "new_spots": self.new_spots,
            "refreshed_spots": self.refreshed_spots,
            "taken_spots": self.taken_spots,
            "kindergartens_saved": self.kindergartens_saved,
            "kindergartens_upserted": self.kindergartens_upserted,
            "notifications": self.notifications,
            "parse_errors": self.parse_errors,
            "mapping_errors": self.mapping_errors,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }

    def finish(self) -> None:
        self.completed_at = datetime.now(UTC)
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


def _start(job_type: str, job_id: str | None = None) -> JobResult:
    return JobResult(
        job_id=job_id or str(uuid4()),
        job_type=job_type,
        status=JobStatus.RUNNING,
        started_at=datetime.now(UTC),
    )


async def run_scrape(
    database: Database,
    registry: SourceRegistry | None = None,
    html: str | None = None,
    dry_run: bool = False,
    crawler: Crawler | None = None,
    storage: LocalFileStorage | None = None,
    job_id: str | None = None,
) -> JobResult:
    """
    Run one scrape.

    Orchestrates the scrape pipeline:
    1. Fetch the availability page (unless html is given) and snapshot it
    2. Parse it into observations
    3. Reconcile the observations against the registry
    4. Match notification preferences against newly discovered spots

    Args:
        database: Open database handle
        registry: Source configuration (defaults to the global registry)
        html: Page markup to use instead of fetching
        dry_run: Parse only; leave the registry untouched
        crawler: Crawler to fetch with (built from configuration if omitted)
        storage: Snapshot storage (built from configuration if omitted)
        job_id: Identifier to report in the result

    Returns:
        JobResult
    """
    result = _start("scrape", job_id)
    registry = registry or get_default_registry()
    global_config = registry.global_config

    try:
        if html is None:
            source = registry.require_source(PAGE_SOURCE)
            crawler = crawler or Crawler.from_config(global_config)
            logger.info(f"Fetching availability page {source.url}")
            fetched = await crawler.fetch_text(source.url, source)

            storage = storage or get_default_storage(global_config.snapshot_storage_path)
            snapshot = storage.save_snapshot(
                content=fetched.content,
                source_name=source.name,
                url=source.url,
                content_hash=fetched.content_hash,
                mime_type=fetched.mime_type,
            )
            if snapshot.is_new:
                logger.info(f"Stored page snapshot at {snapshot.file_path}")
            else:
                logger.info(f"Page unchanged since snapshot {snapshot.file_path}")
            html = fetched.text

        parsed = AvailabilityPageParser(default_year=global_config.default_year).parse(html)
        result.observations = len(parsed.observations)
        result.parse_errors = [e.to_dict() for e in parsed.errors]
        for error in parsed.errors:
            logger.warning(f"Parse error: {error.to_dict()}")

        if dry_run:
            logger.info("Dry run: registry left untouched")
        else:
            with database.session() as session:
                repository = KindergartenRepository(session, autocommit=True)
                reconciliation = AvailabilityReconciler(repository).reconcile(parsed.observations)

                result.new_spots = len(reconciliation.new_spots)
                result.refreshed_spots = len(reconciliation.refreshed)
                result.taken_spots = len(reconciliation.taken)
                result.kindergartens_saved = reconciliation.saved_count
                result.mapping_errors = [e.to_dict() for e in reconciliation.mapping_errors]

                preferences = NotificationPreferenceRepository(session).list_enabled()
                candidates = NotificationMatcher(preferences).match(
                    [(change.kindergarten, change.spot) for change in reconciliation.new_spots]
                )
                result.notifications = len(candidates)

        result.status = JobStatus.COMPLETED

    except Exception as e:
        logger.exception(f"Scrape job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    finally:
        result.finish()

    return result


async def run_bootstrap(
    database: Database,
    registry: SourceRegistry | None = None,
    crawler: Crawler | None = None,
    job_id: str | None = None,
) -> JobResult:
    """
    Populate the registry from the barnehagefakta.no API.

    Kindergartens are upserted by orgnr; existing identities and spot
    histories are preserved.

    Args:
        database: Open database handle
        registry: Source configuration (defaults to the global registry)
        crawler: Crawler to fetch with (built from configuration if omitted)
        job_id: Identifier to report in the result

    Returns:
        JobResult
    """
    result = _start("bootstrap", job_id)
    registry = registry or get_default_registry()

    try:
        source = registry.require_source(API_SOURCE)
        crawler = crawler or Crawler.from_config(registry.global_config)
        client = BarnehagefaktaClient(crawler, source)

        kindergartens = await initialize_kindergartens(client)

        with database.session() as session:
            repository = KindergartenRepository(session)
            for kindergarten in kindergartens:
                repository.upsert_from_bootstrap(kindergarten)
                result.kindergartens_upserted += 1
                logger.debug(f"Processed kindergarten: {kindergarten.navn}")
            session.commit()

        logger.info(f"Bootstrap complete: {result.kindergartens_upserted} kindergartens")
        result.status = JobStatus.COMPLETED

    except Exception as e:
        logger.exception(f"Bootstrap job failed: {e}")
        result.status = JobStatus.FAILED
        result.errors.append(str(e))

    finally:
        result.finish()

    return result


# ---------------------------------------------------------------------------
# arq tasks
# ---------------------------------------------------------------------------


async def scrape_availability(ctx: dict[str, Any], html: str | None = None) -> dict[str, Any]:
    """arq task: run one scrape with the worker's database handle."""
    result = await run_scrape(ctx["database"], html=html, job_id=ctx.get("job_id"))
    return result.to_dict()


async def bootstrap_registry(ctx: dict[str, Any]) -> dict[str, Any]:
    """arq task: run the registry bootstrap with the worker's database handle."""
    result = await run_bootstrap(ctx["database"], job_id=ctx.get("job_id"))
    return result.to_dict()


async def startup(ctx: dict[str, Any]) -> None:
    ctx["database"] = Database.from_path().open()


async def shutdown(ctx: dict[str, Any]) -> None:
    database = ctx.get("database")
    if database is not None:
        database.close()


async def enqueue(function_name: str, *args: Any) -> str:
    """
    Enqueue a job for async processing.

    Args:
        function_name: "scrape_availability" or "bootstrap_registry"

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    job = await redis.enqueue_job(function_name, *args)
    await redis.close()
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Get the status of a job.

    Returns:
        Job info dict, or None if not found
    """
    redis = await create_pool(get_redis_settings())
    job = Job(job_id, redis)
    status = await job.status()

    if status == ArqJobStatus.not_found:
        await redis.close()
        return None

    info = await job.result_info()
    await redis.close()

    return {
        "job_id": job_id,
        "status": status.value,
        "result": info.result if info else None,
    }


def _scrape_minutes() -> set[int]:
    interval = max(1, min(60, int(os.environ.get("SCRAPE_CRON_MINUTES", "30"))))
    return set(range(0, 60, interval))


class WorkerSettings:
    """arq worker settings."""

    functions = [scrape_availability, bootstrap_registry]
    cron_jobs = [cron(scrape_availability, minute=_scrape_minutes(), unique=True)]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    max_jobs = 1
    job_timeout = 1800
    keep_result = 86400  # 24 hours
