# contentmill/models.py
"""
ContentMill Database Models

Tables:
- Organization: Tenant owning one or more sites (brand context lives here)
- Site: A publishing destination with its own voice and cadence
- Source: Feed or sitemap a site harvests from
- Article: A content item in flight, from raw candidate to published piece
- Category: Per-site category, created lazily from rewrite suggestions
- BacklinkSettings: Per-site sponsor link/banner configuration
- JobLog: Append-only audit trail of pipeline invocations
"""

from datetime import UTC, datetime
from enum import Enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from contentmill.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class SourceType(str, Enum):
    """Kinds of content origin the Feed Reader understands."""
    FEED = "feed"
    SITEMAP = "sitemap"


class ArticleStatus(str, Enum):
    """Lifecycle status of a content item."""
    RAW = "raw"
    PENDING = "pending"
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    FILTERED = "filtered"
    DELETED = "deleted"


class SiteStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ToneOfVoice(str, Enum):
    """Voices a site can ask the rewriter for."""
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    AUTHORITATIVE = "authoritative"
    FRIENDLY = "friendly"
    WITTY = "witty"
    FORMAL = "formal"
    CONVERSATIONAL = "conversational"


class PlacementMode(str, Enum):
    """Where a backlink is spliced into rewritten content."""
    INLINE = "inline"
    BANNER = "banner"
    BOTH = "both"


class JobType(str, Enum):
    FETCH_SOURCES = "fetch_sources"
    REWRITE_ARTICLES = "rewrite_articles"
    CRON_PIPELINE = "cron_pipeline"


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Statuses a rewrite pass picks up (retry-by-reclassification)
REWRITABLE_STATUSES = (
    ArticleStatus.RAW,
    ArticleStatus.FAILED,
    ArticleStatus.FILTERED,
)

# Statuses whose fingerprints new items are compared against
FINGERPRINT_POOL_STATUSES = (
    ArticleStatus.PUBLISHED,
    ArticleStatus.PENDING,
)

_PIPELINE_OUTCOMES = frozenset({
    ArticleStatus.PUBLISHED,
    ArticleStatus.FAILED,
    ArticleStatus.FILTERED,
    ArticleStatus.DUPLICATE,
})

# Transitions the pipeline itself may perform
PIPELINE_TRANSITIONS: dict[ArticleStatus, frozenset[ArticleStatus]] = {
    status: _PIPELINE_OUTCOMES for status in REWRITABLE_STATUSES
}

# Transitions only reachable through explicit external action
MANUAL_TRANSITIONS: dict[ArticleStatus, frozenset[ArticleStatus]] = {
    ArticleStatus.PUBLISHED: frozenset({ArticleStatus.UNPUBLISHED, ArticleStatus.DELETED}),
    ArticleStatus.UNPUBLISHED: frozenset({ArticleStatus.PUBLISHED, ArticleStatus.DELETED}),
    ArticleStatus.PENDING: frozenset({ArticleStatus.PUBLISHED, ArticleStatus.DELETED}),
}

TERMINAL_STATUSES = frozenset({ArticleStatus.DUPLICATE, ArticleStatus.DELETED})


# -----------------------------------------------------------------------------
# Organization / Site
# -----------------------------------------------------------------------------

class Organization(Base):
    """Tenant. Only the brand summary matters to the pipeline."""
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    brand_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    sites = relationship("Site", back_populates="organization")


class Site(Base):
    """A tenant publishing destination."""
    __tablename__ = "sites"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(128), unique=True, nullable=False)
    tone_of_voice = Column(String(32), default=ToneOfVoice.PROFESSIONAL.value, nullable=False)
    status = Column(String(32), default=SiteStatus.ACTIVE.value, nullable=False)
    articles_per_day = Column(Integer, nullable=True)
    cron_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="sites")
    sources = relationship("Source", back_populates="site")
    backlink_settings = relationship("BacklinkSettings", back_populates="site", uselist=False)


# -----------------------------------------------------------------------------
# Source
# -----------------------------------------------------------------------------

class Source(Base):
    """Feed or sitemap a site harvests candidates from."""
    __tablename__ = "sources"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=False)
    name = Column(String(255), nullable=True)
    url = Column(Text, nullable=False)
    source_type = Column(String(32), default=SourceType.FEED.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_validated = Column(Boolean, default=False, nullable=False)

    # Mutated after every fetch attempt
    last_fetched_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    article_count = Column(Integer, default=0, nullable=False)

    deleted_at = Column(DateTime(timezone=True), nullable=True)  # Soft removal
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    site = relationship("Site", back_populates="sources")
    articles = relationship("Article", back_populates="source")


# -----------------------------------------------------------------------------
# Article
# -----------------------------------------------------------------------------

class Article(Base):
    """
    A content item in flight.

    original_* fields are captured at fetch time (and filled by extraction
    before publication); rewritten fields are written once on publish.
    """
    __tablename__ = "articles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=False)
    source_id = Column(Uuid, ForeignKey("sources.id"), nullable=True)

    # As harvested
    original_title = Column(Text, nullable=False)
    original_url = Column(Text, nullable=False)
    original_content = Column(Text, nullable=True)
    original_author = Column(String(255), nullable=True)
    original_published_at = Column(DateTime(timezone=True), nullable=True)
    original_image_url = Column(Text, nullable=True)

    # SHA-256 of the text available at fetch time
    content_hash = Column(String(64), nullable=True)
    # 64-char SimHash, set during the rewrite pass
    fingerprint = Column(String(64), nullable=True)
    similarity_score = Column(Float, nullable=True)

    # Rewritten
    title = Column(Text, nullable=True)
    slug = Column(String(255), nullable=True)
    content = Column(Text, nullable=True)
    excerpt = Column(Text, nullable=True)
    meta_description = Column(String(320), nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    category_id = Column(Uuid, ForeignKey("categories.id"), nullable=True)

    # Enrichment
    social_copy = Column(Text, nullable=True)
    social_hashtags = Column(JSON, default=list, nullable=False)
    has_backlink = Column(Boolean, default=False, nullable=False)
    featured_image_stored = Column(Text, nullable=True)

    status = Column(String(32), default=ArticleStatus.RAW.value, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    source = relationship("Source", back_populates="articles")
    category = relationship("Category")

    __table_args__ = (
        UniqueConstraint("site_id", "original_url", name="uq_article_site_url"),
        Index("ix_articles_site_status", "site_id", "status"),
        Index("ix_articles_site_slug", "site_id", "slug"),
    )


# -----------------------------------------------------------------------------
# Category
# -----------------------------------------------------------------------------

class Category(Base):
    """Per-site category; name is the natural key within a site."""
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    article_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("site_id", "name", name="uq_category_site_name"),
    )


# -----------------------------------------------------------------------------
# BacklinkSettings
# -----------------------------------------------------------------------------

class BacklinkSettings(Base):
    """Per-site singleton controlling sponsor link insertion."""
    __tablename__ = "backlink_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=False)
    is_enabled = Column(Boolean, default=False, nullable=False)
    target_url = Column(Text, nullable=True)
    placement_type = Column(String(16), default=PlacementMode.INLINE.value, nullable=False)
    banner_text = Column(Text, nullable=True)
    banner_image_url = Column(Text, nullable=True)
    link_text = Column(String(255), nullable=True)
    frequency = Column(Integer, default=1, nullable=False)

    site = relationship("Site", back_populates="backlink_settings")

    __table_args__ = (
        UniqueConstraint("site_id", name="uq_backlink_settings_site"),
    )


# -----------------------------------------------------------------------------
# JobLog
# -----------------------------------------------------------------------------

class JobLog(Base):
    """One row per pipeline invocation. Inserted once, never updated."""
    __tablename__ = "job_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_type = Column(String(32), nullable=False)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=True)  # None for platform-wide jobs
    status = Column(String(16), nullable=False)
    articles_fetched = Column(Integer, default=0, nullable=False)
    articles_rewritten = Column(Integer, default=0, nullable=False)
    articles_published = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_job_log_site_started", "site_id", "started_at"),
    )
