"""
End-to-End Pipeline Tests
=========================

Runs the real feed source, site profiles, URL filter, sanitizer and
serializers together: first over a fake transport, then over HTTP with a
local upstream server and the full web application.
"""

import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from fullfeed.config.settings import (
    FilteringSettings,
    FilterRuleSettings,
    FullFeedSettings,
    OutputFormat,
    TransportSettings,
)
from fullfeed.extraction.registry import build_registry
from fullfeed.filtering.url_filter import URLFilter
from fullfeed.ingestion.feed_source import FeedparserSource
from fullfeed.models import FeedRequest
from fullfeed.processing.feed_assembler import FeedAssembler
from fullfeed.storage.result_cache import ResultCache
from fullfeed.web.app import create_app

from conftest import FakeTransport

NTV_FEED_URL = "https://www.ntv.com.tr/ekonomi.rss"

NTV_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>NTV Ekonomi</title>
    <link>https://www.ntv.com.tr/ekonomi</link>
    <description>Ekonomi haberleri</description>
    <item>
      <title>Faiz kararı açıklandı</title>
      <link>https://www.ntv.com.tr/ekonomi/faiz-karari</link>
      <description>Merkez Bankası faizi sabit tuttu.</description>
      <pubDate>Thu, 05 Sep 2024 09:30:00 +0300</pubDate>
    </item>
    <item>
      <title>Derbi sonucu</title>
      <link>https://www.ntv.com.tr/spor/derbi</link>
      <description>Spor</description>
    </item>
    <item>
      <title>Budget talks resume</title>
      <link>https://news.example.com/politics/budget</link>
      <description>Talks resumed on Monday.</description>
    </item>
    <item>
      <title>Gone</title>
      <link>https://news.example.com/politics/missing</link>
      <description>Removed article</description>
    </item>
    <item>
      <title>Piyasa özeti</title>
      <link>https://www.cnbce.com/haberler/piyasa-ozeti</link>
      <description>Excluded section</description>
    </item>
  </channel>
</rss>"""

NTV_ARTICLE = """<html><head>
<meta property="og:image" content="https://cdn.ntv.com.tr/faiz.jpg">
</head><body>
<div class="category-detail-content">
  <h2 class="category-detail-inner-sub-title">Alt başlık</h2>
  <p>Merkez Bankası politika faizini <strong>yüzde 50</strong> seviyesinde sabit tuttu.</p>
  <div class="news-tags"><a href="/etiket/faiz">faiz</a></div>
</div>
</body></html>"""


def build_assembler(transport, settings):
    return FeedAssembler(
        feed_source=FeedparserSource(transport),
        registry=build_registry(transport),
        url_filter=URLFilter.from_settings(settings.filtering),
        cache=ResultCache(ttl_seconds=settings.cache.ttl_seconds),
        settings=settings.processing,
    )


class TestPipelineWithFakeTransport:
    """Full pipeline with canned upstream pages."""

    @pytest.fixture
    def transport(self, article_html):
        return FakeTransport({
            NTV_FEED_URL: NTV_FEED,
            "https://www.ntv.com.tr/ekonomi/faiz-karari": NTV_ARTICLE,
            "https://news.example.com/politics/budget": article_html,
        })

    @pytest.mark.asyncio
    async def test_assembled_feed(self, transport):
        assembler = build_assembler(transport, FullFeedSettings())

        feed = await assembler.assemble(FeedRequest.build(NTV_FEED_URL))

        assert feed.title == "NTV Ekonomi"
        assert [item.link for item in feed.items] == [
            "https://www.ntv.com.tr/ekonomi/faiz-karari",
            "https://news.example.com/politics/budget",
        ]
        # /spor/ filtered and the cnbce section excluded
        assert feed.items_skipped == 2
        # missing article answers 404
        assert feed.items_failed == 1

        ntv, generic = feed.items
        assert ntv.content == (
            "<p>Merkez Bankası politika faizini <strong>yüzde 50</strong> seviyesinde sabit tuttu.</p>"
        )
        assert ntv.category == "business"
        assert ntv.summary == "Merkez Bankası faizi sabit tuttu."
        assert ntv.images == ["https://cdn.ntv.com.tr/faiz.jpg"]

        assert "Negotiators met on <b>Monday</b>" in generic.content
        assert "Share" not in generic.content
        assert "trackPageView" not in generic.content
        assert generic.image == "https://news.example.com/images/lead.jpg"

        assert "https://www.ntv.com.tr/spor/derbi" not in transport.requests
        assert "https://www.cnbce.com/haberler/piyasa-ozeti" not in transport.requests

    @pytest.mark.asyncio
    async def test_serialized_payload_cached(self, transport):
        assembler = build_assembler(transport, FullFeedSettings())
        request = FeedRequest.build(NTV_FEED_URL, limit=2, output_format="json")

        first = await assembler.process_feed(request)
        fetched = len(transport.requests)
        second = await assembler.process_feed(request)

        assert first == second
        assert len(transport.requests) == fetched
        data = json.loads(first)
        # the limit counts accepted items only
        assert data["items_returned"] == 2
        assert data["items_skipped"] == 1

    @pytest.mark.asyncio
    async def test_rss_output(self, transport):
        assembler = build_assembler(transport, FullFeedSettings())

        payload = await assembler.process_feed(
            FeedRequest.build(NTV_FEED_URL, output_format=OutputFormat.RSS.value)
        )

        assert "<title>NTV Ekonomi - Full Text</title>" in payload
        assert "content:encoded" in payload


def upstream_app():
    """Local site serving a feed and its articles."""
    hits = {"rss": 0}

    async def rss(request):
        hits["rss"] += 1
        base = f"http://{request.host}"
        body = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
  <title>Local News</title>
  <link>{base}/</link>
  <description>Local</description>
  <item><title>Story one</title><link>{base}/article/1</link></item>
  <item><title>Clip</title><link>{base}/video/2</link></item>
  <item><title>Gone</title><link>{base}/article/missing</link></item>
</channel></rss>"""
        return web.Response(text=body, content_type="application/rss+xml")

    async def article(request):
        if request.match_info["slug"] != "1":
            raise web.HTTPNotFound()
        return web.Response(
            text="<html><body><article><div class='article-body'>"
                 "<p>Local story body.</p><img src='/img/one.jpg'>"
                 "</div></article></body></html>",
            content_type="text/html",
        )

    app = web.Application()
    app.router.add_get("/rss", rss)
    app.router.add_get("/article/{slug}", article)
    return app, hits


class TestPipelineOverHttp:
    """Full service against a local upstream site."""

    @pytest.mark.asyncio
    async def test_feed_through_service(self):
        upstream, hits = upstream_app()
        settings = FullFeedSettings(
            transport=TransportSettings(allow_private_hosts=True, max_retries=0, timeout=5),
            filtering=FilteringSettings(
                use_builtin_rules=False,
                rules=[FilterRuleSettings(domain="127.0.0.1", blocked_paths=["/video/"])],
            ),
        )

        async with TestServer(upstream) as upstream_server:
            feed_url = str(upstream_server.make_url("/rss"))
            async with TestClient(TestServer(create_app(settings))) as client:
                first = await client.get("/feed", params={"url": feed_url})
                data = await first.json()
                second = await client.get("/feed", params={"url": feed_url})
                await second.read()

        assert first.status == 200
        assert data["feed_title"] == "Local News"
        assert data["items_returned"] == 1
        assert data["items_skipped"] == 1
        assert data["items_failed"] == 1

        item = data["items"][0]
        assert item["link"].endswith("/article/1")
        assert "<p>Local story body.</p>" in item["content"]
        assert item["image"].endswith("/img/one.jpg")

        assert second.status == 200
        assert hits["rss"] == 1
