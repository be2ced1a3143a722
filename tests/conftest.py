"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and test doubles for FullFeed tests.

Test doubles:
- FakeTransport: canned responses per URL, records requests
- FakeFeedSource: canned feed metadata and items, counts parses
- StaticExtractor: canned extraction results or errors per URL
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FULLFEED_DEBUG"] = "true"
os.environ["FULLFEED_LOGGING__FILE_PATH"] = ""
os.environ["FULLFEED_LOGGING__CONSOLE_LOGGING"] = "false"

from fullfeed.config.settings import ProcessingSettings
from fullfeed.extraction.base import ExtractionResult, Extractor
from fullfeed.extraction.inputs import ItemMetadataInput, URLInput
from fullfeed.extraction.registry import ExtractorRegistry
from fullfeed.filtering.url_filter import URLFilter
from fullfeed.ingestion.feed_source import FeedSource
from fullfeed.ingestion.transport import Transport, TransportResponse
from fullfeed.models import Enclosure, FeedMetadata, RawFeedItem
from fullfeed.processing.feed_assembler import FeedAssembler
from fullfeed.storage.result_cache import ResultCache
from fullfeed.utils.exceptions import TransportError


# ============================================================================
# Test doubles
# ============================================================================


class FakeTransport(Transport):
    """Transport serving canned pages. Unknown URLs answer 404."""

    def __init__(self, pages: Optional[Dict[str, Union[str, Tuple[int, str]]]] = None):
        self.pages = dict(pages or {})
        self.requests: List[str] = []
        self.failing: set = set()

    async def fetch(self, url, headers=None) -> TransportResponse:
        self.requests.append(url)
        if url in self.failing:
            raise TransportError("connection refused", url=url)

        page = self.pages.get(url)
        if page is None:
            return TransportResponse(status=404, body="not found", url=url)
        if isinstance(page, tuple):
            status, body = page
        else:
            status, body = 200, page
        return TransportResponse(status=status, body=body, url=url)


class FakeFeedSource(FeedSource):
    """FeedSource returning canned data or raising a canned error."""

    def __init__(self, metadata: FeedMetadata, items: List[RawFeedItem],
                 error: Optional[Exception] = None, delay: float = 0.0):
        self.metadata = metadata
        self.items = items
        self.error = error
        self.delay = delay
        self.calls = 0

    async def parse(self, url):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.metadata, list(self.items)


class StaticExtractor(Extractor):
    """Extractor with canned results keyed by link.

    Values may be an ExtractionResult, an exception instance to raise, or a
    ``(delay_seconds, ExtractionResult)`` pair.
    """

    def __init__(self, name: str = "static", results: Optional[Dict[str, object]] = None,
                 default: Optional[ExtractionResult] = None):
        self.name = name
        self.results = dict(results or {})
        self.default = default
        self.calls: List[str] = []

    async def _lookup(self, url: str) -> ExtractionResult:
        self.calls.append(url)
        value = self.results.get(url, self.default)
        if isinstance(value, tuple):
            delay, value = value
            await asyncio.sleep(delay)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return ExtractionResult(content=f"<p>Full text of {url}</p>", images=[])
        return value

    async def extract_url(self, source: URLInput) -> ExtractionResult:
        return await self._lookup(source.url)

    async def extract_item(self, source: ItemMetadataInput) -> ExtractionResult:
        return await self._lookup(source.link)


def make_item(link: str, title: Optional[str] = None, **kwargs) -> RawFeedItem:
    return RawFeedItem(title=title or f"Title for {link}", link=link, **kwargs)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def feed_metadata():
    return FeedMetadata(
        title="Example News",
        link="https://news.example.com/",
        description="Latest headlines",
    )


@pytest.fixture
def item_factory():
    """Build RawFeedItems with sensible defaults."""
    return make_item


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def static_extractor():
    return StaticExtractor()


@pytest.fixture
def processing_settings():
    return ProcessingSettings(
        default_limit=10,
        max_limit=50,
        max_concurrent_extractions=4,
        item_timeout=2.0,
        request_timeout=5.0,
        summary_length=80,
    )


@pytest.fixture
def assembler_factory(feed_metadata, processing_settings):
    """Build a FeedAssembler around fakes.

    Returns a callable ``(items, extractor=None, url_filter=None, **kw)``
    returning ``(assembler, feed_source, extractor)``.
    """

    def factory(items, extractor=None, url_filter=None, settings=None, source_error=None,
                source_delay=0.0, cache=None):
        extractor = extractor or StaticExtractor()
        registry = ExtractorRegistry()
        registry.register_default(extractor)
        source = FakeFeedSource(feed_metadata, items, error=source_error, delay=source_delay)
        assembler = FeedAssembler(
            feed_source=source,
            registry=registry,
            url_filter=url_filter or URLFilter(),
            cache=cache if cache is not None else ResultCache(ttl_seconds=60),
            settings=settings or processing_settings,
        )
        return assembler, source, extractor

    return factory


@pytest.fixture
def article_html():
    """A realistic article page."""
    return """<!DOCTYPE html>
<html>
<head>
  <title>Budget talks resume</title>
  <meta property="og:image" content="/images/lead.jpg">
  <meta name="twitter:image" content="https://cdn.example.com/twitter.jpg">
  <link rel="image_src" href="//cdn.example.com/src.jpg">
</head>
<body>
  <header><nav><a href="/">Home</a></nav></header>
  <article>
    <div class="article-body">
      <h1>Budget talks resume</h1>
      <p>Negotiators met on <b>Monday</b> to restart talks.</p>
      <img src="/static/site-logo.png" alt="logo">
      <img data-src="/photos/meeting.jpg" src="/placeholder.gif" alt="meeting">
      <div class="share-buttons"><a href="#">Share</a></div>
      <script>trackPageView();</script>
      <p>Both sides said progress was made.</p>
    </div>
  </article>
  <footer>Copyright</footer>
</body>
</html>"""


@pytest.fixture
def sample_rss():
    return """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Example News</title>
    <link>https://news.example.com/</link>
    <description>Latest headlines</description>
    <item>
      <title>First story</title>
      <link>https://news.example.com/ekonomi/first</link>
      <description>First &lt;b&gt;summary&lt;/b&gt;</description>
      <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
      <guid>first</guid>
      <enclosure url="https://news.example.com/first.jpg" type="image/jpeg" length="100"/>
    </item>
    <item>
      <title>Second story</title>
      <link>https://news.example.com/spor/second</link>
      <description>Second summary</description>
      <media:thumbnail url="https://news.example.com/second-thumb.jpg"/>
    </item>
  </channel>
</rss>"""


@pytest.fixture
def enclosure_item():
    return make_item(
        "https://news.example.com/dunya/with-enclosure",
        enclosures=(Enclosure(url="https://news.example.com/enc.jpg", mime_type="image/jpeg"),),
        image_url="https://news.example.com/feed-image.jpg",
    )
