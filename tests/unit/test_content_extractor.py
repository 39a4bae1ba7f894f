"""
Unit tests for heuristic article extraction.
"""

import httpx
import pytest

from contentmill.services.content_extractor import ContentExtractor, ExtractionError
from contentmill.services.http_fetch import SourceUnreachable

LONG_PARAGRAPH = "Planing end grain needs a sharp iron and a low bedding angle. " * 6

ARTICLE_PAGE = f"""<!doctype html>
<html>
<head>
  <title>Site | Planing End Grain</title>
  <meta property="og:title" content="Planing End Grain">
  <meta name="author" content="Sam Joiner">
  <meta property="article:published_time" content="2025-04-02T08:00:00Z">
  <meta property="og:image" content="/images/plane.jpg">
  <script>window.track = true;</script>
</head>
<body>
  <nav><a href="/">Home</a></nav>
  <article>
    <h1>Planing End Grain</h1>
    <p onclick="steal()">{LONG_PARAGRAPH}</p>
    <!-- editor note -->
    <iframe src="https://ads.example.com"></iframe>
  </article>
  <footer>Copyright</footer>
</body>
</html>
"""

BARE_PAGE = """<html><head><title>Bare Page</title></head>
<body>
  <p class="byline">Posted by Alex Smith, 2 June</p>
  <p>Short body.</p>
  <img src="https://img.example.com/first.png">
</body></html>
"""


class TestExtractHtml:

    def setup_method(self):
        self.extractor = ContentExtractor(fetcher=None)

    def test_metadata(self):
        result = self.extractor.extract_html(ARTICLE_PAGE, base_url="https://blog.example.com/posts/planing")
        assert result.title == "Planing End Grain"
        assert result.author == "Sam Joiner"
        assert result.published_at.year == 2025
        assert result.image_url == "https://blog.example.com/images/plane.jpg"

    def test_body_from_article_container(self):
        result = self.extractor.extract_html(ARTICLE_PAGE)
        assert result.container == "article"
        assert "Planing end grain needs a sharp iron" in result.content

    def test_body_is_sanitized(self):
        content = self.extractor.extract_html(ARTICLE_PAGE).content
        assert "onclick" not in content
        assert "<iframe" not in content
        assert "editor note" not in content
        assert "window.track" not in content
        assert "Home" not in content

    def test_fallbacks(self):
        result = self.extractor.extract_html(BARE_PAGE)
        assert result.container == "body"
        assert result.title == "Bare Page"
        assert result.author == "Alex Smith"
        assert result.image_url == "https://img.example.com/first.png"
        assert result.published_at is None

    def test_untitled(self):
        result = self.extractor.extract_html("<html><body><p>Just text.</p></body></html>")
        assert result.title == "Untitled"

    def test_empty_page_is_an_error(self):
        with pytest.raises(ExtractionError):
            self.extractor.extract_html("<html><body><script>x()</script></body></html>")


class TestExtract:

    def test_fetches_page(self, make_fetcher):
        fetcher = make_fetcher({"https://blog.example.com/p": httpx.Response(200, text=ARTICLE_PAGE)})
        result = ContentExtractor(fetcher).extract("https://blog.example.com/p")
        assert result.title == "Planing End Grain"
        assert result.duration_ms >= 0

    def test_unreachable_page(self, make_fetcher):
        fetcher = make_fetcher({})
        with pytest.raises(SourceUnreachable):
            ContentExtractor(fetcher).extract("https://blog.example.com/missing")
