# contentmill/services/ingestion.py
"""
Source ingestion service (FetchSources).

Pipeline per site:
1. Load the site's active, non-removed sources
2. Read each source through the Feed Reader (feed or sitemap)
3. Skip candidates whose URL is already known for the site
4. Insert the rest as raw articles with a content hash
5. Record fetch time, error and count on the source

One source failing never stops the others.
"""

import logging
from dataclasses import asdict, dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contentmill import models
from contentmill.models import ArticleStatus, utcnow
from contentmill.services.feed_reader import CandidateItem, FeedReader, UnknownSourceKind
from contentmill.services.fingerprint import Fingerprinter

logger = logging.getLogger(__name__)


@dataclass
class FetchStats:
    """Aggregate counts for one FetchSources run."""

    sourced: int = 0        # candidates yielded by readers
    new_articles: int = 0
    duplicates: int = 0     # candidates whose URL was already known
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class IngestionService:
    """Harvest candidate items from a site's sources."""

    def __init__(self, feed_reader: FeedReader):
        self.feed_reader = feed_reader

    def active_sources(self, db: Session, site_id) -> list[models.Source]:
        return (
            db.query(models.Source)
            .filter(
                models.Source.site_id == site_id,
                models.Source.is_active == True,  # noqa: E712
                models.Source.deleted_at.is_(None),
            )
            .order_by(models.Source.created_at)
            .all()
        )

    def fetch_sources(self, db: Session, site: models.Site) -> FetchStats:
        """
        Run FetchSources for one site.

        Returns:
            FetchStats with sourced/new_articles/duplicates/errors
        """
        stats = FetchStats()
        sources = self.active_sources(db, site.id)
        logger.info(f"Fetching {len(sources)} sources for site {site.id}")

        for source in sources:
            self.ingest_source(db, site, source, stats)

        logger.info(
            f"Fetch complete for site {site.id}: sourced={stats.sourced} new={stats.new_articles} "
            f"duplicates={stats.duplicates} errors={stats.errors}"
        )
        return stats

    def ingest_source(self, db: Session, site: models.Site, source: models.Source, stats: FetchStats) -> int:
        """Read one source and insert its new candidates. Returns the number inserted."""
        try:
            candidates = self.feed_reader.read(source.url, source.source_type)
        except UnknownSourceKind as e:
            logger.warning(f"Source {source.id}: {e}")
            stats.errors += 1
            self._record_fetch(db, source, inserted=0, error=str(e))
            return 0
        except Exception as e:
            logger.error(f"Error reading source {source.url}: {e}")
            stats.errors += 1
            self._record_fetch(db, source, inserted=0, error=str(e))
            return 0

        stats.sourced += len(candidates)
        inserted = 0
        seen: set[str] = set()

        for candidate in candidates:
            if candidate.url in seen or self._url_exists(db, site.id, candidate.url):
                stats.duplicates += 1
                continue
            seen.add(candidate.url)

            try:
                self._insert_candidate(db, site, source, candidate)
                inserted += 1
                stats.new_articles += 1
            except IntegrityError:
                # Inserted by someone else between the check and the write
                db.rollback()
                stats.duplicates += 1
            except Exception as e:
                db.rollback()
                logger.error(f"Error inserting article {candidate.url}: {e}")
                stats.errors += 1

        self._record_fetch(db, source, inserted=inserted, error=None)
        return inserted

    @staticmethod
    def _url_exists(db: Session, site_id, url: str) -> bool:
        return (
            db.query(models.Article.id)
            .filter(models.Article.site_id == site_id, models.Article.original_url == url)
            .first()
            is not None
        )

    @staticmethod
    def _insert_candidate(db: Session, site: models.Site, source: models.Source, candidate: CandidateItem) -> None:
        article = models.Article(
            site_id=site.id,
            source_id=source.id,
            original_title=candidate.title,
            original_url=candidate.url,
            original_content=candidate.content or None,
            original_author=candidate.author,
            original_published_at=candidate.published_at,
            original_image_url=candidate.image_url,
            content_hash=Fingerprinter.hash_content(candidate.text_for_hash),
            status=ArticleStatus.RAW.value,
            tags=[],
            social_hashtags=[],
        )
        db.add(article)
        db.commit()

    @staticmethod
    def _record_fetch(db: Session, source: models.Source, inserted: int, error: str | None) -> None:
        source.last_fetched_at = utcnow()
        source.last_error = error
        source.article_count = (source.article_count or 0) + inserted
        db.commit()
