# contentmill/pipeline.py
"""
Job entry points invoked by the external trigger.

- run_fetch_job(db, site)           FetchSources, one fetch_sources JobLog
- run_rewrite_job(db, site, limit)  RewritePending, one rewrite_articles JobLog
- run_scheduled(db)                 both, for every active cron-enabled site,
                                    one cron_pipeline JobLog per site

JobLog rows are inserted once, after the work finishes, and never updated.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from contentmill import models
from contentmill.config import get_settings
from contentmill.llm import LLMProvider, get_llm_provider
from contentmill.logging_config import log_stage
from contentmill.models import JobStatus, JobType, SiteStatus, utcnow
from contentmill.services.content_extractor import ContentExtractor
from contentmill.services.content_filter import ContentFilter, SalesClassifier
from contentmill.services.feed_reader import FeedReader
from contentmill.services.fingerprint import Fingerprinter
from contentmill.services.http_fetch import HttpFetcher
from contentmill.services.image_pipeline import ImagePipeline
from contentmill.services.ingestion import FetchStats, IngestionService
from contentmill.services.rewrite_pipeline import RewritePipeline, RewriteStats
from contentmill.services.rewriter import Rewriter
from contentmill.storage.base import StorageProvider

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Wiring
# -----------------------------------------------------------------------------

@dataclass
class PipelineServices:
    """Wired pipeline; owns the HTTP client shared by its services."""

    ingestion: IngestionService
    rewrite: RewritePipeline
    fetcher: Optional[HttpFetcher] = None

    def close(self) -> None:
        if self.fetcher is not None:
            self.fetcher.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def build_services(
    provider: Optional[LLMProvider] = None,
    fetcher: Optional[HttpFetcher] = None,
    storage: Optional[StorageProvider] = None,
    sleep=time.sleep,
) -> PipelineServices:
    """Assemble the pipeline from settings; any collaborator can be supplied instead."""
    settings = get_settings()
    fetcher = fetcher or HttpFetcher()
    provider = provider or get_llm_provider()

    rewriter = Rewriter(
        provider,
        max_input_chars=settings.REWRITE_MAX_INPUT_CHARS,
        max_retries=settings.REWRITE_MAX_RETRIES,
        initial_backoff=settings.REWRITE_INITIAL_BACKOFF_SECONDS,
        backoff_multiplier=settings.REWRITE_BACKOFF_MULTIPLIER,
        sleep=sleep,
    )
    images = ImagePipeline(
        fetcher,
        storage=storage,
        max_bytes=settings.IMAGE_MAX_BYTES,
        max_width=settings.IMAGE_MAX_WIDTH,
        quality=settings.IMAGE_QUALITY,
    )

    return PipelineServices(
        ingestion=IngestionService(FeedReader(fetcher)),
        rewrite=RewritePipeline(
            extractor=ContentExtractor(fetcher),
            content_filter=ContentFilter(classifier=SalesClassifier(provider)),
            rewriter=rewriter,
            image_pipeline=images,
            fingerprinter=Fingerprinter(threshold=settings.DUPLICATE_THRESHOLD),
        ),
        fetcher=fetcher,
    )


def resolve_site(db: Session, ident: str) -> Optional[models.Site]:
    """Find a site by id or slug."""
    try:
        site = db.get(models.Site, uuid.UUID(str(ident)))
        if site is not None:
            return site
    except ValueError:
        pass
    return db.query(models.Site).filter(models.Site.slug == ident).first()


# -----------------------------------------------------------------------------
# Job log
# -----------------------------------------------------------------------------

def _write_job_log(
    db: Session,
    job_type: JobType,
    site_id,
    status: JobStatus,
    started_at: datetime,
    start_time: float,
    fetched: int = 0,
    rewritten: int = 0,
    published: int = 0,
    error_message: Optional[str] = None,
) -> models.JobLog:
    entry = models.JobLog(
        job_type=job_type.value,
        site_id=site_id,
        status=status.value,
        articles_fetched=fetched,
        articles_rewritten=rewritten,
        articles_published=published,
        error_message=error_message,
        started_at=started_at,
        completed_at=utcnow(),
        duration_ms=int((time.monotonic() - start_time) * 1000),
    )
    db.add(entry)
    db.commit()
    return entry


# -----------------------------------------------------------------------------
# Entry points
# -----------------------------------------------------------------------------

def run_fetch_job(
    db: Session,
    site: models.Site,
    services: Optional[PipelineServices] = None,
    trace_id: Optional[str] = None,
) -> FetchStats:
    """FetchSources for one site, recorded as a fetch_sources job."""
    services = services or build_services()
    trace_id = trace_id or str(uuid.uuid4())
    started_at, start_time = utcnow(), time.monotonic()
    site_id = site.id

    try:
        with log_stage("fetch_sources", trace_id=trace_id, site=str(site_id)):
            stats = services.ingestion.fetch_sources(db, site)
    except Exception as e:
        db.rollback()
        _write_job_log(db, JobType.FETCH_SOURCES, site_id, JobStatus.FAILED, started_at, start_time,
                       error_message=str(e))
        raise

    status = JobStatus.FAILED if stats.errors > 0 and stats.new_articles == 0 else JobStatus.COMPLETED
    _write_job_log(
        db, JobType.FETCH_SOURCES, site_id, status, started_at, start_time,
        fetched=stats.new_articles,
        error_message=f"{stats.errors} source errors" if stats.errors else None,
    )
    return stats


def run_rewrite_job(
    db: Session,
    site: models.Site,
    limit: Optional[int] = None,
    services: Optional[PipelineServices] = None,
    trace_id: Optional[str] = None,
) -> RewriteStats:
    """RewritePending for one site, recorded as a rewrite_articles job."""
    services = services or build_services()
    trace_id = trace_id or str(uuid.uuid4())
    started_at, start_time = utcnow(), time.monotonic()
    site_id = site.id

    try:
        with log_stage("rewrite_pending", trace_id=trace_id, site=str(site_id)):
            stats = services.rewrite.rewrite_pending(db, site, limit=limit)
    except Exception as e:
        db.rollback()
        _write_job_log(db, JobType.REWRITE_ARTICLES, site_id, JobStatus.FAILED, started_at, start_time,
                       error_message=str(e))
        raise

    _write_job_log(
        db, JobType.REWRITE_ARTICLES, site_id, JobStatus.COMPLETED, started_at, start_time,
        rewritten=stats.published,
        published=stats.published,
        error_message=f"{stats.errors} item errors" if stats.errors else None,
    )
    return stats


def run_scheduled(db: Session, services: Optional[PipelineServices] = None) -> Dict[str, Any]:
    """
    Cron entry: fetch then rewrite every active, cron-enabled site.

    A failing site is logged and recorded; the remaining sites still run.
    """
    services = services or build_services()
    trace_id = str(uuid.uuid4())

    sites = (
        db.query(models.Site)
        .filter(
            models.Site.status == SiteStatus.ACTIVE.value,
            models.Site.cron_enabled == True,  # noqa: E712
        )
        .order_by(models.Site.created_at)
        .all()
    )

    summary: Dict[str, Any] = {
        "trace_id": trace_id,
        "sites_processed": len(sites),
        "total_fetched": 0,
        "total_published": 0,
        "errors": [],
    }
    if not sites:
        logger.info("No active sites with cron enabled")
        return summary

    for site in sites:
        site_id, site_name = site.id, site.name
        started_at, start_time = utcnow(), time.monotonic()
        try:
            with log_stage("cron_pipeline", trace_id=trace_id, site=str(site_id)):
                fetch_stats = services.ingestion.fetch_sources(db, site)
                rewrite_stats = services.rewrite.rewrite_pending(db, site, limit=site.articles_per_day)
        except Exception as e:
            db.rollback()
            logger.error(f"Error processing site {site_name}: {e}")
            summary["errors"].append(f"{site_name}: {e}")
            _write_job_log(db, JobType.CRON_PIPELINE, site_id, JobStatus.FAILED, started_at, start_time,
                           error_message=str(e))
            continue

        summary["total_fetched"] += fetch_stats.new_articles
        summary["total_published"] += rewrite_stats.published
        _write_job_log(
            db, JobType.CRON_PIPELINE, site_id, JobStatus.COMPLETED, started_at, start_time,
            fetched=fetch_stats.new_articles,
            rewritten=rewrite_stats.published,
            published=rewrite_stats.published,
        )

    logger.info(
        f"Scheduled run complete: {summary['sites_processed']} sites, "
        f"{summary['total_fetched']} fetched, {summary['total_published']} published"
    )
    return summary
