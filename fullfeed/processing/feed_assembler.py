"""
Feed Assembler
==============

Orchestrates a full-text feed request:

1. Serve the cached payload for the request fingerprint if fresh
2. Coalesce concurrent identical requests onto one shared task
3. Parse the source feed and select items (filter, then cap while scanning)
4. Extract every selected item concurrently under a semaphore, a per-item
   deadline and whatever is left of the request deadline
5. Sanitize, pick images, categorize and summarize each item
6. Serialize in feed order and cache the payload

Per-item failures are logged and the item dropped; they never fail the
request. Feed-level errors propagate to the caller.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from ..config.settings import ProcessingSettings
from ..delivery.serializers import serialize
from ..extraction.inputs import ItemMetadataInput
from ..extraction.registry import ExtractorRegistry
from ..filtering.url_filter import URLFilter
from ..ingestion.content_cleaner import ContentSanitizer
from ..ingestion.feed_source import FeedSource
from ..models import AssembledFeed, ExtractedItem, FeedRequest, RawFeedItem, item_id_for
from ..storage.result_cache import ResultCache
from ..utils.exceptions import (
    ErrorCode,
    ExcludedError,
    FeedFetchError,
    FullFeedError,
    NotFoundError,
    is_retryable_error,
)
from ..utils.logging import PerformanceLogger, get_logger_for_component
from .categories import CategoryClassifier

# (item, excluded): item is None when the item was dropped
ItemOutcome = Tuple[Optional[ExtractedItem], bool]


class FeedAssembler:
    """Turns a FeedRequest into a serialized full-text feed."""

    def __init__(
        self,
        feed_source: FeedSource,
        registry: ExtractorRegistry,
        url_filter: URLFilter,
        cache: ResultCache,
        settings: Optional[ProcessingSettings] = None,
        sanitizer: Optional[ContentSanitizer] = None,
        classifier: Optional[CategoryClassifier] = None,
        logger=None,
    ):
        """Initialize feed assembler.

        Args:
            feed_source: Source used to fetch and parse the feed
            registry: Extractor registry
            url_filter: Item URL filter
            cache: Cache of serialized payloads keyed by request fingerprint
            settings: Processing settings (defaults to ProcessingSettings())
            sanitizer: HTML sanitizer for extracted content
            classifier: URL category classifier
            logger: Logger adapter (defaults to the component logger)
        """
        self.feed_source = feed_source
        self.registry = registry
        self.url_filter = url_filter
        self.cache = cache
        self.settings = settings or ProcessingSettings()
        self.sanitizer = sanitizer or ContentSanitizer()
        self.classifier = classifier or CategoryClassifier(default=self.settings.default_category)
        self.logger = logger or get_logger_for_component("feed_assembler")

        # Only touched from the event loop thread
        self._inflight: Dict[str, asyncio.Task] = {}

    def cache_size(self) -> int:
        return self.cache.size()

    async def process_feed(self, request: FeedRequest) -> str:
        """Serialized full-text feed for ``request``.

        Identical concurrent requests share one computation. It runs as its
        own task, so a caller that goes away does not cancel it for the
        others.

        Raises:
            ValidationError: Invalid source URL
            FeedFetchError: Source feed could not be fetched in time
            ParseError: Source feed could not be parsed
            SerializationError: Output could not be produced
        """
        key = request.fingerprint
        payload, found = self.cache.get(key)
        if found:
            self.logger.info(f"Cache hit for {key}")
            return payload

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._compute(request, key))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            self.logger.info(f"Joining in-flight request for {key}")

        return await asyncio.shield(task)

    async def _compute(self, request: FeedRequest, key: str) -> str:
        feed = await self.assemble(request)
        payload = serialize(feed, request.output_format)
        self.cache.set(key, payload)
        return payload

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # retrieved here when every caller has already gone away
            task.exception()

    async def assemble(self, request: FeedRequest) -> AssembledFeed:
        """Fetch, filter and extract without touching the cache.

        ``request_timeout`` bounds the whole operation: the feed fetch may
        use all of it and extraction gets whatever is left.
        """
        feed_logger = self.logger.bind_context(feed_url=request.source_url)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.request_timeout

        with PerformanceLogger(
            feed_logger, "feed assembly", slow_after=self.settings.request_timeout, limit=request.limit
        ):
            try:
                metadata, raw_items = await asyncio.wait_for(
                    self.feed_source.parse(request.source_url),
                    timeout=self.settings.request_timeout,
                )
            except asyncio.TimeoutError as e:
                raise FeedFetchError(
                    f"Feed not fetched within {self.settings.request_timeout}s",
                    feed_url=request.source_url,
                    error_code=ErrorCode.FEED_FETCH_TIMEOUT,
                ) from e

            selected, skipped = self._select_items(raw_items, request.limit)
            feed_logger.info(
                f"Selected {len(selected)} of {len(raw_items)} items ({skipped} skipped)"
            )

            remaining = max(0.0, deadline - loop.time())
            outcomes = await self._extract_all(selected, feed_logger, remaining)
            items = [item for item, _ in outcomes if item is not None]
            # excluded items are a policy decision, not a failure
            excluded = sum(1 for _, was_excluded in outcomes if was_excluded)
            skipped += excluded
            failed = len(selected) - len(items) - excluded

        return AssembledFeed(
            title=metadata.title,
            link=metadata.link,
            description=metadata.description,
            image_url=metadata.image_url,
            items=items,
            items_skipped=skipped,
            items_failed=failed,
        )

    def _select_items(self, raw_items: List[RawFeedItem], limit: int) -> Tuple[List[RawFeedItem], int]:
        """Accept items in feed order until ``limit`` are accepted.

        Items after the cap are neither examined nor counted.
        """
        selected: List[RawFeedItem] = []
        skipped = 0
        for item in raw_items:
            if len(selected) >= limit:
                break
            if not item.link:
                skipped += 1
                continue
            if not self.url_filter.should_process(item.link):
                skipped += 1
                continue
            selected.append(item)
        return selected, skipped

    async def _extract_all(
        self, items: List[RawFeedItem], feed_logger, timeout: float
    ) -> List[ItemOutcome]:
        """Extract items concurrently within ``timeout`` seconds.

        Outcomes are indexed by feed position.
        """
        if not items:
            return []

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_extractions)

        async def bounded(item: RawFeedItem) -> ItemOutcome:
            async with semaphore:
                return await self._process_item_safely(item, feed_logger)

        tasks = [asyncio.create_task(bounded(item)) for item in items]
        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if pending:
            feed_logger.warning(
                f"Request deadline of {self.settings.request_timeout}s reached, "
                f"abandoning {len(pending)} items"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results: List[ItemOutcome] = []
        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is None:
                results.append(task.result())
            else:
                results.append((None, False))
        return results

    async def _process_item_safely(self, item: RawFeedItem, feed_logger) -> ItemOutcome:
        item_logger = feed_logger.bind_context(item_url=item.link)
        try:
            item_result = await asyncio.wait_for(
                self._process_item(item), timeout=self.settings.item_timeout
            )
            return item_result, False
        except asyncio.TimeoutError:
            item_logger.warning(
                f"Extraction timed out after {self.settings.item_timeout}s",
                extra={"error_code": ErrorCode.EXTRACTION_TIMEOUT.value},
            )
        except ExcludedError as e:
            item_logger.info(f"Item excluded: {e}")
            return None, True
        except FullFeedError as e:
            # transient upstream failures are louder than missing content
            log = item_logger.warning if is_retryable_error(e) else item_logger.info
            log(f"Dropping item: {e}", extra=e.to_dict())
        except Exception:
            item_logger.exception("Unexpected error while processing item")
        return None, False

    async def _process_item(self, item: RawFeedItem) -> ExtractedItem:
        extractor = self.registry.resolve(item.link)
        fields = {"link": item.link, "title": item.title}
        if item.image_url:
            fields["image"] = item.image_url

        result = await extractor.extract(ItemMetadataInput(fields))

        content = self.sanitizer.sanitize(result.content, base_url=item.link)
        if not content:
            # extracted block was all boilerplate, keep what the feed shipped
            content = self.sanitizer.sanitize(item.raw_content or item.summary, base_url=item.link)
        if not content:
            raise NotFoundError("No content left after sanitizing", url=item.link)

        images = list(result.images)
        enclosure_image = item.first_image_enclosure()
        if enclosure_image:
            images.append(enclosure_image)
        if item.image_url:
            images.append(item.image_url)

        summary = self.sanitizer.summarize(item.summary or content, self.settings.summary_length)

        return ExtractedItem(
            id=item_id_for(item.link),
            title=item.title,
            link=item.link,
            summary=summary,
            content=content,
            images=images,
            category=self.classifier.categorize(item.link),
            author=item.author,
            created_at=item.published_at,
            updated_at=item.updated_at,
        )

