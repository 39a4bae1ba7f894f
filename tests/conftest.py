# tests/conftest.py
"""
Pytest configuration and fixtures.

Every test runs against an in-memory SQLite database and an httpx
MockTransport; nothing touches the network.
"""

import os
from datetime import UTC, datetime

import pytest

# Set test environment before any contentmill import reads it
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LLM_PROVIDER", "mock")
os.environ.setdefault("STORAGE_PROVIDER", "local")
os.environ.setdefault("LOG_JSON", "false")

import httpx  # noqa: E402

from contentmill import models  # noqa: E402
from contentmill.database import Base, SessionLocal, engine  # noqa: E402
from contentmill.llm.mock_provider import MockLLMProvider  # noqa: E402
from contentmill.services.http_fetch import HttpFetcher  # noqa: E402
from contentmill.storage.base import ContentType, StorageMetadata, StorageProvider, compute_content_hash  # noqa: E402


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "llm: tests requiring LLM API calls (deselect with '-m \"not llm\"')")


# -----------------------------------------------------------------------------
# Database
# -----------------------------------------------------------------------------

@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def organization(db):
    org = models.Organization(name="Acme Media", brand_summary="Acme writes about home workshops.")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def site(db, organization):
    site = models.Site(
        organization_id=organization.id,
        name="Workshop Weekly",
        slug="workshop-weekly",
        tone_of_voice=models.ToneOfVoice.FRIENDLY.value,
        articles_per_day=10,
    )
    db.add(site)
    db.commit()
    return site


@pytest.fixture
def make_source(db, site):
    def _make(url="https://feeds.example.com/rss.xml", source_type="feed", **kwargs):
        source = models.Source(site_id=site.id, url=url, source_type=source_type, **kwargs)
        db.add(source)
        db.commit()
        return source
    return _make


@pytest.fixture
def make_article(db, site):
    def _make(url, title="An article", content="<p>Body text.</p>", status="raw", **kwargs):
        article = models.Article(
            site_id=site.id,
            original_url=url,
            original_title=title,
            original_content=content,
            status=status,
            **kwargs,
        )
        db.add(article)
        db.commit()
        return article
    return _make


# -----------------------------------------------------------------------------
# Collaborators
# -----------------------------------------------------------------------------

class InMemoryStorageProvider(StorageProvider):
    """Storage provider keeping objects in a dict."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, StorageMetadata]] = {}

    @property
    def name(self) -> str:
        return "memory"

    def public_url(self, key: str) -> str:
        return f"https://cdn.test/{key}"

    def upload(self, key, content, content_type=ContentType.IMAGE_WEBP, metadata=None):
        meta = StorageMetadata(
            uri=key,
            content_hash=compute_content_hash(content),
            content_type=content_type,
            size_bytes=len(content),
            uploaded_at=datetime.now(UTC),
            public_url=self.public_url(key),
            custom_metadata=metadata or {},
        )
        self.objects[key] = (content, meta)
        return meta


@pytest.fixture
def storage():
    return InMemoryStorageProvider()


@pytest.fixture
def llm():
    """Mock provider that records every call as (call_type, prompt)."""
    return MockLLMProvider()


@pytest.fixture
def make_fetcher():
    """
    Build an HttpFetcher over a MockTransport.

    ``routes`` maps URL -> httpx.Response (or a callable returning one).
    Unknown URLs return 404.
    """
    def _make(routes: dict):
        def handler(request: httpx.Request) -> httpx.Response:
            route = routes.get(str(request.url))
            if route is None:
                return httpx.Response(404, text="not found")
            return route(request) if callable(route) else route

        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        return HttpFetcher(client=client, timeout=5, user_agent="contentmill-test", block_private_networks=False)
    return _make
