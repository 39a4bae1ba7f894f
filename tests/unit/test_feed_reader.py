"""
Unit tests for feed and sitemap reading.
"""

import gzip

import httpx
import pytest

from contentmill.services.feed_reader import (
    FeedReader,
    SitemapParseError,
    UnknownSourceKind,
    parse_w3c_datetime,
    title_from_url,
)
from contentmill.services.http_fetch import HttpFetcher, SourceUnreachable
from feed_builders import urlset as urlset_doc

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Workshop News</title>
    <item>
      <title>Media image wins</title>
      <link>https://news.example.com/media</link>
      <description>&lt;p&gt;Body one.&lt;/p&gt;&lt;img src="https://img.example.com/inline.jpg"&gt;</description>
      <author>editor@example.com (Jo Maker)</author>
      <pubDate>Tue, 03 Jun 2025 09:30:00 GMT</pubDate>
      <media:content url="https://img.example.com/media.jpg" medium="image" />
      <enclosure url="https://img.example.com/enclosure.jpg" type="image/jpeg" length="100" />
    </item>
    <item>
      <title>Enclosure image</title>
      <link>https://news.example.com/enclosure</link>
      <description>Body two.</description>
      <enclosure url="https://img.example.com/enclosure.jpg" type="image/jpeg" length="100" />
    </item>
    <item>
      <title>Inline image</title>
      <link>https://news.example.com/inline</link>
      <description>&lt;p&gt;Body three.&lt;/p&gt;&lt;img src="https://img.example.com/inline.jpg"&gt;</description>
    </item>
    <item>
      <title>No link here</title>
      <description>Dropped.</description>
    </item>
  </channel>
</rss>
"""

URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://site.example.com/blog/how-to-plane-oak</loc><lastmod>2025-05-01</lastmod></url>
  <url><loc>https://site.example.com/blog/dovetail_joints.html</loc></url>
  <url><loc>   </loc></url>
</urlset>
"""

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://site.example.com/sitemap-posts.xml</loc></sitemap>
  <sitemap><loc>https://site.example.com/sitemap-broken.xml</loc></sitemap>
  <sitemap><loc>https://site.example.com/sitemap-missing.xml</loc></sitemap>
</sitemapindex>
"""


class TestFeeds:

    def setup_method(self):
        self.reader = FeedReader(fetcher=None)

    def test_entries_without_link_skipped(self):
        items = self.reader.parse_feed(RSS_FEED)
        assert [item.url for item in items] == [
            "https://news.example.com/media",
            "https://news.example.com/enclosure",
            "https://news.example.com/inline",
        ]

    def test_image_priority(self):
        media, enclosure, inline = self.reader.parse_feed(RSS_FEED)
        assert media.image_url == "https://img.example.com/media.jpg"
        assert enclosure.image_url == "https://img.example.com/enclosure.jpg"
        assert inline.image_url == "https://img.example.com/inline.jpg"

    def test_fields(self):
        media = self.reader.parse_feed(RSS_FEED)[0]
        assert media.title == "Media image wins"
        assert "Body one." in media.content
        assert media.published_at.year == 2025
        assert media.published_at.tzinfo is not None
        assert not media.content_empty

    def test_read_through_fetcher(self, make_fetcher):
        fetcher = make_fetcher({"https://news.example.com/rss": httpx.Response(200, text=RSS_FEED)})
        items = FeedReader(fetcher).read("https://news.example.com/rss", "feed")
        assert len(items) == 3

    def test_unreachable_feed(self, make_fetcher):
        fetcher = make_fetcher({"https://news.example.com/rss": httpx.Response(503)})
        with pytest.raises(SourceUnreachable) as exc_info:
            FeedReader(fetcher).read("https://news.example.com/rss", "feed")
        assert exc_info.value.status_code == 503

    def test_unknown_kind(self):
        with pytest.raises(UnknownSourceKind):
            self.reader.read("https://news.example.com/rss", "newsletter")


class TestSitemaps:

    def test_urlset(self, make_fetcher):
        fetcher = make_fetcher({"https://site.example.com/sitemap.xml": httpx.Response(200, text=URLSET)})
        items = FeedReader(fetcher).read("https://site.example.com/sitemap.xml", "sitemap")

        assert [item.url for item in items] == [
            "https://site.example.com/blog/how-to-plane-oak",
            "https://site.example.com/blog/dovetail_joints.html",
        ]
        assert items[0].title == "How to plane oak"
        assert items[1].title == "Dovetail joints"
        assert items[0].published_at.year == 2025
        assert all(item.content_empty and item.content is None for item in items)

    def test_index_skips_failing_children(self, make_fetcher):
        fetcher = make_fetcher({
            "https://site.example.com/sitemap.xml": httpx.Response(200, text=SITEMAP_INDEX),
            "https://site.example.com/sitemap-posts.xml": httpx.Response(200, text=URLSET),
            "https://site.example.com/sitemap-broken.xml": httpx.Response(200, text="<urlset><url>"),
        })
        items = FeedReader(fetcher).read_sitemap("https://site.example.com/sitemap.xml")
        assert len(items) == 2

    @pytest.mark.parametrize("block", [True, False])
    def test_malformed_child_url_does_not_abort_siblings(self, block):
        index = (
            '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<sitemap><loc>https://[broken/sitemap-1.xml</loc></sitemap>"
            "<sitemap><loc>http://93.184.216.34/sitemap-2.xml</loc></sitemap>"
            "</sitemapindex>"
        )
        routes = {
            "http://93.184.216.34/sitemap.xml": index,
            "http://93.184.216.34/sitemap-2.xml": urlset_doc(["http://93.184.216.34/posts/one"]),
        }

        def handler(request):
            body = routes.get(str(request.url))
            return httpx.Response(200, text=body) if body else httpx.Response(404)

        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
        fetcher = HttpFetcher(client=client, timeout=5, user_agent="test", block_private_networks=block)

        items = FeedReader(fetcher).read_sitemap("http://93.184.216.34/sitemap.xml")

        assert [item.url for item in items] == ["http://93.184.216.34/posts/one"]

    def test_gzip_sitemap(self, make_fetcher):
        fetcher = make_fetcher({
            "https://site.example.com/sitemap.xml.gz": httpx.Response(200, content=gzip.compress(URLSET.encode())),
        })
        items = FeedReader(fetcher).read_sitemap("https://site.example.com/sitemap.xml.gz")
        assert len(items) == 2

    def test_self_referencing_index_terminates(self, make_fetcher):
        loop = """<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
          <sitemap><loc>https://site.example.com/sitemap.xml</loc></sitemap>
        </sitemapindex>"""
        fetcher = make_fetcher({"https://site.example.com/sitemap.xml": httpx.Response(200, text=loop)})
        assert FeedReader(fetcher).read_sitemap("https://site.example.com/sitemap.xml") == []

    def test_depth_limit(self, make_fetcher):
        def index_pointing_to(child):
            return httpx.Response(200, text=(
                '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
                f"<sitemap><loc>{child}</loc></sitemap></sitemapindex>"
            ))

        fetcher = make_fetcher({
            "https://site.example.com/s0.xml": index_pointing_to("https://site.example.com/s1.xml"),
            "https://site.example.com/s1.xml": index_pointing_to("https://site.example.com/s2.xml"),
            "https://site.example.com/s2.xml": index_pointing_to("https://site.example.com/s3.xml"),
            "https://site.example.com/s3.xml": httpx.Response(200, text=URLSET),
        })
        assert len(FeedReader(fetcher, max_sitemap_depth=3).read_sitemap("https://site.example.com/s0.xml")) == 2
        assert FeedReader(fetcher, max_sitemap_depth=2).read_sitemap("https://site.example.com/s0.xml") == []

    def test_malformed_root_raises(self, make_fetcher):
        fetcher = make_fetcher({"https://site.example.com/sitemap.xml": httpx.Response(200, text="not xml <")})
        with pytest.raises(SitemapParseError):
            FeedReader(fetcher).read_sitemap("https://site.example.com/sitemap.xml")


class TestHelpers:

    def test_title_from_url_falls_back_to_host(self):
        assert title_from_url("https://site.example.com/") == "site.example.com"

    def test_parse_w3c_datetime(self):
        parsed = parse_w3c_datetime("2025-05-01T10:00:00Z")
        assert parsed.hour == 10
        assert parsed.utcoffset().total_seconds() == 0
        assert parse_w3c_datetime("yesterday") is None
        assert parse_w3c_datetime(None) is None
