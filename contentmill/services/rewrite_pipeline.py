# contentmill/services/rewrite_pipeline.py
"""
Rewrite pass (RewritePending).

For each raw/failed/filtered article of a site, in order:
1. Obtain content (Content Extractor when the item has none)
2. Content Filter                       -> filtered
3. Fingerprint vs. published/pending    -> duplicate
4. Rewrite Orchestrator                 -> failed on error
5. Category, image, backlink, slug
6. Conditional update to published

Items are processed sequentially so that item k sees the fingerprints of
items published earlier in the same batch. Any exception while processing
an item marks that item failed; it never escapes the batch loop.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum

from sqlalchemy.orm import Session

from contentmill import models
from contentmill.config import get_settings
from contentmill.constants import RewriteDefaults
from contentmill.models import ArticleStatus, utcnow
from contentmill.services.backlink import BacklinkConfig, BacklinkInserter
from contentmill.services.category_resolver import CategoryResolver
from contentmill.services.content_extractor import ContentExtractor, ExtractionError
from contentmill.services.content_filter import ContentFilter
from contentmill.services.feed_reader import title_from_url
from contentmill.services.fingerprint import Fingerprinter
from contentmill.services.http_fetch import SourceUnreachable
from contentmill.services.image_pipeline import ImagePipeline
from contentmill.services.lifecycle import transition
from contentmill.services.rewriter import RewriteError, Rewriter
from contentmill.services.resilience import LLMServiceError, LLMTimeoutError
from contentmill.utils.html import html_to_text, slugify

logger = logging.getLogger(__name__)

FALLBACK_SLUG = "article"


class ItemOutcome(str, Enum):
    PUBLISHED = "published"
    FILTERED = "filtered"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    SKIPPED = "skipped"  # status changed underneath us


@dataclass
class ItemResult:
    """What happened to one article in a rewrite pass."""

    article_id: object
    outcome: ItemOutcome
    reason: str | None = None


@dataclass
class RewriteStats:
    """Aggregate counts for one RewritePending run."""

    processed: int = 0
    published: int = 0
    filtered: int = 0
    duplicates: int = 0
    errors: int = 0

    def record(self, result: ItemResult) -> None:
        self.processed += 1
        if result.outcome == ItemOutcome.PUBLISHED:
            self.published += 1
        elif result.outcome == ItemOutcome.FILTERED:
            self.filtered += 1
        elif result.outcome == ItemOutcome.DUPLICATE:
            self.duplicates += 1
        elif result.outcome == ItemOutcome.FAILED:
            self.errors += 1

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SiteContext:
    """Per-site values shared by every item in a batch."""

    site_id: object
    tone: str
    brand_summary: str | None
    backlink: BacklinkConfig | None


class RewritePipeline:
    """Turn pending articles of a site into published ones."""

    def __init__(
        self,
        extractor: ContentExtractor,
        content_filter: ContentFilter,
        rewriter: Rewriter,
        image_pipeline: ImagePipeline,
        fingerprinter: Fingerprinter | None = None,
        category_resolver: CategoryResolver | None = None,
        backlink_inserter: BacklinkInserter | None = None,
    ):
        self.extractor = extractor
        self.content_filter = content_filter
        self.rewriter = rewriter
        self.image_pipeline = image_pipeline
        self.fingerprinter = fingerprinter or Fingerprinter()
        self.category_resolver = category_resolver or CategoryResolver()
        self.backlink_inserter = backlink_inserter or BacklinkInserter()

    def load_pending(self, db: Session, site_id, limit: int) -> list[models.Article]:
        return (
            db.query(models.Article)
            .filter(
                models.Article.site_id == site_id,
                models.Article.status.in_([s.value for s in models.REWRITABLE_STATUSES]),
            )
            .order_by(models.Article.created_at)
            .limit(limit)
            .all()
        )

    def rewrite_pending(self, db: Session, site: models.Site, limit: int | None = None) -> RewriteStats:
        """
        Run RewritePending for one site.

        Args:
            limit: max items; defaults to the site's articles_per_day, then
                   DEFAULT_ARTICLES_PER_RUN

        Returns:
            RewriteStats with processed/published/filtered/duplicates/errors
        """
        if limit is None:
            limit = site.articles_per_day or get_settings().DEFAULT_ARTICLES_PER_RUN

        context = SiteContext(
            site_id=site.id,
            tone=site.tone_of_voice,
            brand_summary=site.organization.brand_summary if site.organization else None,
            backlink=BacklinkConfig.from_model(site.backlink_settings),
        )

        articles = self.load_pending(db, site.id, limit)
        stats = RewriteStats()
        if not articles:
            logger.info(f"No pending articles for site {site.id}")
            return stats

        logger.info(f"Rewriting {len(articles)} articles for site {site.id}")
        for index, article in enumerate(articles):
            result = self.process_item(db, context, article, index)
            stats.record(result)
            logger.info(
                f"Article {result.article_id}: {result.outcome.value}"
                + (f" ({result.reason})" if result.reason else "")
            )

        logger.info(
            f"Rewrite complete for site {site.id}: processed={stats.processed} "
            f"published={stats.published} filtered={stats.filtered} "
            f"duplicates={stats.duplicates} errors={stats.errors}"
        )
        return stats

    def process_item(self, db: Session, context: SiteContext, article: models.Article, index: int) -> ItemResult:
        """Process one article; never raises."""
        article_id = article.id
        try:
            return self._process(db, context, article, index)
        except Exception as e:
            db.rollback()
            logger.error(f"Error processing article {article_id}: {e}", exc_info=True)
            try:
                return self._finish(db, article_id, ItemOutcome.FAILED, reason=str(e))
            except Exception as mark_error:
                db.rollback()
                logger.error(f"Could not mark article {article_id} failed: {mark_error}")
                return ItemResult(article_id, ItemOutcome.FAILED, reason=str(e))

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _process(self, db: Session, context: SiteContext, article: models.Article, index: int) -> ItemResult:
        # 1. Content
        if not article.original_content:
            try:
                self._fill_from_page(db, article)
            except (ExtractionError, SourceUnreachable) as e:
                return self._finish(db, article.id, ItemOutcome.FAILED, reason=f"extraction: {e}")

        title = article.original_title
        content_html = article.original_content or ""

        # 2. Filter
        decision = self.content_filter.evaluate(title, content_html)
        if decision.is_promotional:
            return self._finish(db, article.id, ItemOutcome.FILTERED, reason=decision.reason)

        # 3. Near-duplicate check
        plain_text = html_to_text(content_html)
        fingerprint = self.fingerprinter.compute(plain_text or title)
        match = self.fingerprinter.find_near_duplicate(db, context.site_id, fingerprint, exclude_id=article.id)
        if match is not None:
            other, distance = match
            return self._finish(
                db,
                article.id,
                ItemOutcome.DUPLICATE,
                reason=f"distance {distance} to {other.id}",
                fingerprint=fingerprint,
                similarity_score=1 - distance / self.fingerprinter.bits,
            )

        # 4. Rewrite
        try:
            rewritten = self.rewriter.rewrite(
                title=title,
                content=plain_text,
                tone=context.tone,
                brand_summary=context.brand_summary,
            )
        except (RewriteError, LLMServiceError, LLMTimeoutError) as e:
            return self._finish(db, article.id, ItemOutcome.FAILED, reason=f"rewrite: {e}")

        # 5. Enrichment
        category = self.category_resolver.resolve(db, context.site_id, rewritten.category)
        stored_image = self.image_pipeline.store(article.original_image_url, context.site_id, article.id)
        backlink = self.backlink_inserter.apply(rewritten.content, context.backlink, index)
        slug = self.unique_slug(db, context.site_id, rewritten.title, article.id)

        # 6. Publish
        result = self._finish(
            db,
            article.id,
            ItemOutcome.PUBLISHED,
            title=rewritten.title,
            slug=slug,
            content=backlink.content,
            excerpt=rewritten.excerpt or plain_text[: RewriteDefaults.EXCERPT_FALLBACK_CHARS],
            meta_description=rewritten.meta_description,
            tags=rewritten.tags,
            category_id=category.category_id,
            social_copy=rewritten.social_copy,
            social_hashtags=rewritten.social_hashtags,
            has_backlink=backlink.inserted,
            featured_image_stored=stored_image,
            fingerprint=fingerprint,
            published_at=utcnow(),
        )
        if result.outcome == ItemOutcome.PUBLISHED and category.category_id is not None:
            db.query(models.Category).filter(models.Category.id == category.category_id).update(
                {models.Category.article_count: models.Category.article_count + 1},
                synchronize_session=False,
            )
            db.commit()
        return result

    def _fill_from_page(self, db: Session, article: models.Article) -> None:
        """Extract the source page and fill still-empty original fields."""
        extracted = self.extractor.extract(article.original_url)

        article.original_content = extracted.content
        if extracted.title and article.original_title == title_from_url(article.original_url):
            article.original_title = extracted.title
        if not article.original_author and extracted.author:
            article.original_author = extracted.author
        if not article.original_published_at and extracted.published_at:
            article.original_published_at = extracted.published_at
        if not article.original_image_url and extracted.image_url:
            article.original_image_url = extracted.image_url
        db.commit()

    def _finish(self, db: Session, article_id, outcome: ItemOutcome, reason: str | None = None, **values) -> ItemResult:
        """Apply the terminal status for this pass and commit."""
        changed = transition(db, article_id, ArticleStatus(outcome.value), **values)
        if not changed:
            db.rollback()
            return ItemResult(article_id, ItemOutcome.SKIPPED, reason="status changed concurrently")
        db.commit()
        return ItemResult(article_id, outcome, reason=reason)

    @staticmethod
    def unique_slug(db: Session, site_id, title: str, article_id) -> str:
        """Slug from the title, suffixed with part of the article id if taken on this site."""
        base = slugify(title) or FALLBACK_SLUG
        taken = (
            db.query(models.Article.id)
            .filter(
                models.Article.site_id == site_id,
                models.Article.slug == base,
                models.Article.id != article_id,
            )
            .first()
        )
        if taken is None:
            return base
        return f"{base}-{str(article_id)[:8]}"
