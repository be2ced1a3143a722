"""
Unit Tests for Feed Assembler
=============================

Tests for item selection, concurrent extraction, per-item failure
isolation, caching and coalescing of identical requests.
"""

import asyncio
import json

import pytest

from fullfeed.config.settings import OutputFormat, ProcessingSettings
from fullfeed.extraction.base import ExtractionResult
from fullfeed.filtering.url_filter import FilterRule, URLFilter
from fullfeed.models import FeedRequest, item_id_for
from fullfeed.storage.result_cache import ResultCache
from fullfeed.utils.exceptions import (
    ErrorCode,
    ExcludedError,
    FeedFetchError,
    NotFoundError,
    TransportError,
)

from conftest import StaticExtractor

FEED_URL = "https://news.example.com/rss"
BASE = "https://news.example.com"


def request(limit=10, output_format=OutputFormat.JSON):
    return FeedRequest(source_url=FEED_URL, limit=limit, output_format=output_format)


def links(feed):
    return [item.link for item in feed.items]


class ConcurrencyTrackingExtractor(StaticExtractor):
    """Records the highest number of overlapping extractions."""

    def __init__(self, delay=0.02):
        super().__init__("tracking")
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def _lookup(self, url):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            return await super()._lookup(url)
        finally:
            self.active -= 1


class TestItemSelection:
    """Test filtering and limit handling."""

    @pytest.mark.asyncio
    async def test_filtered_items_skipped(self, assembler_factory, item_factory):
        items = [
            item_factory(f"{BASE}/ekonomi/1"),
            item_factory(f"{BASE}/spor/2"),
            item_factory(f"{BASE}/dunya/3"),
        ]
        url_filter = URLFilter([FilterRule("news.example.com", blocked_paths=("/spor/",))])
        assembler, _, extractor = assembler_factory(items, url_filter=url_filter)

        feed = await assembler.assemble(request())

        assert links(feed) == [f"{BASE}/ekonomi/1", f"{BASE}/dunya/3"]
        assert feed.items_skipped == 1
        assert feed.items_failed == 0
        assert f"{BASE}/spor/2" not in extractor.calls

    @pytest.mark.asyncio
    async def test_limit_applies_after_filter(self, assembler_factory, item_factory):
        items = [
            item_factory(f"{BASE}/spor/0"),
            item_factory(f"{BASE}/a/1"),
            item_factory(f"{BASE}/a/2"),
            item_factory(f"{BASE}/a/3"),
            item_factory(f"{BASE}/spor/4"),
        ]
        url_filter = URLFilter([FilterRule("news.example.com", blocked_paths=("/spor/",))])
        assembler, _, extractor = assembler_factory(items, url_filter=url_filter)

        feed = await assembler.assemble(request(limit=2))

        assert links(feed) == [f"{BASE}/a/1", f"{BASE}/a/2"]
        # items past the cap are not examined
        assert feed.items_skipped == 1
        assert len(extractor.calls) == 2

    @pytest.mark.asyncio
    async def test_items_without_link_skipped(self, assembler_factory, item_factory):
        items = [item_factory("", title="No link"), item_factory(f"{BASE}/a/1")]
        assembler, _, _ = assembler_factory(items)

        feed = await assembler.assemble(request())

        assert links(feed) == [f"{BASE}/a/1"]
        assert feed.items_skipped == 1

    @pytest.mark.asyncio
    async def test_empty_feed(self, assembler_factory, feed_metadata):
        assembler, _, _ = assembler_factory([])

        feed = await assembler.assemble(request())

        assert feed.items == []
        assert feed.title == feed_metadata.title
        assert feed.link == feed_metadata.link


class TestExtractionOutcomes:
    """Test per-item failure isolation."""

    @pytest.mark.asyncio
    async def test_failed_item_dropped(self, assembler_factory, item_factory):
        failing = f"{BASE}/a/2"
        items = [item_factory(f"{BASE}/a/{i}") for i in range(1, 4)]
        extractor = StaticExtractor(results={failing: NotFoundError("nothing here", url=failing)})
        assembler, _, _ = assembler_factory(items, extractor=extractor)

        payload = await assembler.process_feed(request())
        data = json.loads(payload)

        assert [item["link"] for item in data["items"]] == [f"{BASE}/a/1", f"{BASE}/a/3"]
        assert data["items_failed"] == 1
        assert data["items_skipped"] == 0

    @pytest.mark.asyncio
    async def test_transport_and_unexpected_errors_dropped(self, assembler_factory, item_factory):
        items = [item_factory(f"{BASE}/a/{i}") for i in range(1, 4)]
        extractor = StaticExtractor(results={
            f"{BASE}/a/1": TransportError("HTTP 500", url=f"{BASE}/a/1", status=500),
            f"{BASE}/a/2": RuntimeError("extractor bug"),
        })
        assembler, _, _ = assembler_factory(items, extractor=extractor)

        feed = await assembler.assemble(request())

        assert links(feed) == [f"{BASE}/a/3"]
        assert feed.items_failed == 2

    @pytest.mark.asyncio
    async def test_excluded_items_count_as_skipped(self, assembler_factory, item_factory):
        excluded = f"{BASE}/video/1"
        items = [item_factory(excluded), item_factory(f"{BASE}/a/2")]
        extractor = StaticExtractor(results={excluded: ExcludedError("blocked prefix", url=excluded)})
        assembler, _, _ = assembler_factory(items, extractor=extractor)

        feed = await assembler.assemble(request())

        assert links(feed) == [f"{BASE}/a/2"]
        assert feed.items_skipped == 1
        assert feed.items_failed == 0

    @pytest.mark.asyncio
    async def test_feed_order_preserved(self, assembler_factory, item_factory):
        urls = [f"{BASE}/a/{i}" for i in range(5)]
        # later items finish first
        results = {
            url: (0.05 * (len(urls) - i), ExtractionResult(content=f"<p>{i}</p>"))
            for i, url in enumerate(urls)
        }
        assembler, _, _ = assembler_factory(
            [item_factory(u) for u in urls], extractor=StaticExtractor(results=results)
        )

        feed = await assembler.assemble(request())

        assert links(feed) == urls
        assert [item.content for item in feed.items] == [f"<p>{i}</p>" for i in range(5)]

    @pytest.mark.asyncio
    async def test_item_timeout(self, assembler_factory, item_factory, processing_settings):
        slow = f"{BASE}/a/slow"
        settings = processing_settings.model_copy(update={"item_timeout": 0.05})
        extractor = StaticExtractor(results={slow: (1.0, ExtractionResult(content="<p>late</p>"))})
        items = [item_factory(slow), item_factory(f"{BASE}/a/fast")]
        assembler, _, _ = assembler_factory(items, extractor=extractor, settings=settings)

        feed = await assembler.assemble(request())

        assert links(feed) == [f"{BASE}/a/fast"]
        assert feed.items_failed == 1

    @pytest.mark.asyncio
    async def test_request_deadline_abandons_pending(self, assembler_factory, item_factory):
        settings = ProcessingSettings(item_timeout=5, request_timeout=0.1, max_concurrent_extractions=4)
        slow = f"{BASE}/a/slow"
        extractor = StaticExtractor(results={slow: (2.0, ExtractionResult(content="<p>late</p>"))})
        items = [item_factory(f"{BASE}/a/fast"), item_factory(slow)]
        assembler, _, _ = assembler_factory(items, extractor=extractor, settings=settings)

        loop = asyncio.get_running_loop()
        started = loop.time()
        feed = await assembler.assemble(request())

        assert loop.time() - started < 1.0
        assert links(feed) == [f"{BASE}/a/fast"]
        assert feed.items_failed == 1

    @pytest.mark.asyncio
    async def test_request_deadline_covers_feed_fetch(self, assembler_factory, item_factory):
        settings = ProcessingSettings(item_timeout=5, request_timeout=0.2)
        items = [item_factory(f"{BASE}/a/1")]
        assembler, _, extractor = assembler_factory(items, settings=settings, source_delay=0.5)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(FeedFetchError) as exc_info:
            await assembler.process_feed(request())

        assert loop.time() - started < 0.4
        assert exc_info.value.error_code == ErrorCode.FEED_FETCH_TIMEOUT
        assert extractor.calls == []
        assert assembler.cache_size() == 0

    @pytest.mark.asyncio
    async def test_extraction_gets_time_left_after_fetch(self, assembler_factory, item_factory):
        settings = ProcessingSettings(item_timeout=5, request_timeout=0.3)
        slow = f"{BASE}/a/slow"
        extractor = StaticExtractor(results={slow: (0.6, ExtractionResult(content="<p>late</p>"))})
        items = [item_factory(f"{BASE}/a/fast"), item_factory(slow)]
        assembler, _, _ = assembler_factory(
            items, extractor=extractor, settings=settings, source_delay=0.15
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        feed = await assembler.assemble(request())

        # a fresh 0.3s extraction budget would end after 0.45s
        assert loop.time() - started < 0.4
        assert links(feed) == [f"{BASE}/a/fast"]
        assert feed.items_failed == 1

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, assembler_factory, item_factory, processing_settings):
        settings = processing_settings.model_copy(update={"max_concurrent_extractions": 2})
        extractor = ConcurrencyTrackingExtractor()
        items = [item_factory(f"{BASE}/a/{i}") for i in range(6)]
        assembler, _, _ = assembler_factory(items, extractor=extractor, settings=settings)

        feed = await assembler.assemble(request())

        assert len(feed.items) == 6
        assert extractor.max_active == 2


class TestItemAssembly:
    """Test fields of assembled items."""

    @pytest.mark.asyncio
    async def test_item_fields(self, assembler_factory, item_factory):
        link = f"{BASE}/ekonomi/rates"
        item = item_factory(link, title="Rates held", summary="Central bank holds rates", author="Desk")
        extractor = StaticExtractor(results={
            link: ExtractionResult(
                content="<p>Full <b>story</b></p><script>x()</script>",
                images=["https://cdn.example.com/a.jpg"],
            ),
        })
        assembler, _, _ = assembler_factory([item], extractor=extractor)

        feed = await assembler.assemble(request())
        result = feed.items[0]

        assert result.id == item_id_for(link)
        assert result.title == "Rates held"
        assert result.content == "<p>Full <b>story</b></p>"
        assert result.summary == "Central bank holds rates"
        assert result.category == "business"
        assert result.author == "Desk"
        assert result.image == "https://cdn.example.com/a.jpg"

    @pytest.mark.asyncio
    async def test_summary_from_content_is_truncated(self, assembler_factory, item_factory):
        link = f"{BASE}/a/long"
        body = "word " * 100
        extractor = StaticExtractor(results={link: ExtractionResult(content=f"<p>{body}</p>")})
        assembler, _, _ = assembler_factory([item_factory(link)], extractor=extractor)

        feed = await assembler.assemble(request())
        summary = feed.items[0].summary

        assert summary.endswith("…")
        assert len(summary) <= 81
        assert feed.items[0].category == "turkiye"

    @pytest.mark.asyncio
    async def test_image_fallbacks(self, assembler_factory, enclosure_item):
        assembler, _, _ = assembler_factory([enclosure_item])

        feed = await assembler.assemble(request())

        assert feed.items[0].images == [
            "https://news.example.com/enc.jpg",
            "https://news.example.com/feed-image.jpg",
        ]

    @pytest.mark.asyncio
    async def test_extracted_images_take_precedence(self, assembler_factory, enclosure_item):
        extractor = StaticExtractor(default=ExtractionResult(
            content="<p>Body</p>",
            images=["https://cdn.example.com/lead.jpg", "https://news.example.com/enc.jpg"],
        ))
        assembler, _, _ = assembler_factory([enclosure_item], extractor=extractor)

        feed = await assembler.assemble(request())

        assert feed.items[0].images == [
            "https://cdn.example.com/lead.jpg",
            "https://news.example.com/enc.jpg",
            "https://news.example.com/feed-image.jpg",
        ]

    @pytest.mark.asyncio
    async def test_boilerplate_only_content_falls_back_to_feed(self, assembler_factory, item_factory):
        link = f"{BASE}/a/1"
        item = item_factory(link, raw_content="<p>Feed body</p>")
        extractor = StaticExtractor(results={
            link: ExtractionResult(content="<div class='share-tools'>Share</div>"),
        })
        assembler, _, _ = assembler_factory([item], extractor=extractor)

        feed = await assembler.assemble(request())

        assert feed.items[0].content == "<p>Feed body</p>"

    @pytest.mark.asyncio
    async def test_no_content_anywhere_fails_item(self, assembler_factory, item_factory):
        link = f"{BASE}/a/1"
        extractor = StaticExtractor(results={link: ExtractionResult(content="<script>x()</script>")})
        assembler, _, _ = assembler_factory([item_factory(link)], extractor=extractor)

        feed = await assembler.assemble(request())

        assert feed.items == []
        assert feed.items_failed == 1


class TestCachingAndCoalescing:
    """Test whole-response caching and single-flight behaviour."""

    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(self, assembler_factory, item_factory):
        items = [item_factory(f"{BASE}/a/{i}") for i in range(3)]
        assembler, source, extractor = assembler_factory(items)

        first = await assembler.process_feed(request(limit=5))
        second = await assembler.process_feed(request(limit=5))

        assert first == second
        assert source.calls == 1
        assert len(extractor.calls) == 3
        assert assembler.cache_size() == 1

    @pytest.mark.asyncio
    async def test_fingerprint_includes_limit_and_format(self, assembler_factory, item_factory):
        assembler, source, _ = assembler_factory([item_factory(f"{BASE}/a/1")])

        await assembler.process_feed(request(limit=5))
        await assembler.process_feed(request(limit=6))
        rss = await assembler.process_feed(request(limit=5, output_format=OutputFormat.RSS))

        assert source.calls == 3
        assert rss.startswith("<?xml")

    @pytest.mark.asyncio
    async def test_expired_entry_recomputed(self, assembler_factory, item_factory):
        now = [0.0]
        cache = ResultCache(ttl_seconds=60, clock=lambda: now[0])
        assembler, source, _ = assembler_factory([item_factory(f"{BASE}/a/1")], cache=cache)

        await assembler.process_feed(request())
        now[0] = 61.0
        await assembler.process_feed(request())

        assert source.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_identical_requests_coalesced(self, assembler_factory, item_factory):
        items = [item_factory(f"{BASE}/a/{i}") for i in range(3)]
        assembler, source, extractor = assembler_factory(items, source_delay=0.05)

        first, second = await asyncio.gather(
            assembler.process_feed(request()),
            assembler.process_feed(request()),
        )

        assert first == second
        assert source.calls == 1
        assert len(extractor.calls) == 3

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_joined_request(self, assembler_factory, item_factory):
        items = [item_factory(f"{BASE}/a/{i}") for i in range(2)]
        assembler, source, _ = assembler_factory(items, source_delay=0.1)

        first = asyncio.create_task(assembler.process_feed(request()))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(assembler.process_feed(request()))
        await asyncio.sleep(0.01)
        first.cancel()

        payload = await second

        assert first.cancelled()
        assert json.loads(payload)["items_returned"] == 2
        assert source.calls == 1
        assert assembler.cache_size() == 1

    @pytest.mark.asyncio
    async def test_abandoned_request_still_cached(self, assembler_factory, item_factory):
        assembler, source, _ = assembler_factory([item_factory(f"{BASE}/a/1")], source_delay=0.05)

        caller = asyncio.create_task(assembler.process_feed(request()))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)

        await assembler.process_feed(request())
        assert source.calls == 1

    @pytest.mark.asyncio
    async def test_feed_error_propagates_and_is_not_cached(self, assembler_factory):
        error = FeedFetchError("HTTP 503", feed_url=FEED_URL)
        assembler, source, _ = assembler_factory([], source_error=error, source_delay=0.02)

        results = await asyncio.gather(
            assembler.process_feed(request()),
            assembler.process_feed(request()),
            return_exceptions=True,
        )

        assert all(isinstance(r, FeedFetchError) for r in results)
        assert source.calls == 1
        assert assembler.cache_size() == 0

        with pytest.raises(FeedFetchError):
            await assembler.process_feed(request())
        assert source.calls == 2
