"""
Feed Source
===========

Fetches a syndication feed through the transport and parses it with
feedparser into ``FeedMetadata`` and an ordered list of ``RawFeedItem``.

Supports RSS 2.0, RSS 1.0 and Atom. Entry images come from media
extensions, enclosures and the entry ``image`` element.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import feedparser

from ..models import Enclosure, FeedMetadata, RawFeedItem
from ..utils.exceptions import FeedFetchError, ParseError, TransportError, ErrorCode
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator
from .transport import Transport


class FeedSource(ABC):
    """Turns a feed URL into feed metadata and raw items."""

    @abstractmethod
    async def parse(self, url: str) -> Tuple[FeedMetadata, List[RawFeedItem]]:
        """Fetch and parse ``url``.

        Raises:
            ValidationError: If the URL is not acceptable
            FeedFetchError: If the feed cannot be fetched
            ParseError: If the payload is not a feed
        """


class FeedparserSource(FeedSource):
    """FeedSource backed by the transport and feedparser."""

    ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"

    def __init__(self, transport: Transport, allow_private_hosts: bool = False, logger=None):
        self.transport = transport
        self.allow_private_hosts = allow_private_hosts
        self.logger = logger or get_logger_for_component("feed_source")

    async def parse(self, url: str) -> Tuple[FeedMetadata, List[RawFeedItem]]:
        validated_url = URLValidator.validate_feed_url(
            url, allow_private=self.allow_private_hosts
        )
        self.logger.info(f"Fetching feed: {validated_url}")

        try:
            response = await self.transport.fetch(
                validated_url, headers={"Accept": self.ACCEPT_HEADER}
            )
        except TransportError as e:
            raise FeedFetchError(
                f"Failed to fetch feed {validated_url}: {e}", feed_url=validated_url
            ) from e

        if not response.ok:
            raise FeedFetchError(
                f"HTTP {response.status} while fetching feed {validated_url}",
                feed_url=validated_url,
                error_code=ErrorCode.FEED_HTTP_STATUS,
            )

        return self.parse_document(response.body, validated_url)

    def parse_document(self, document: str, feed_url: str) -> Tuple[FeedMetadata, List[RawFeedItem]]:
        """Parse an already fetched feed document.

        Args:
            document: Feed XML
            feed_url: URL the document came from (fallback link)

        Returns:
            Tuple of (feed_metadata, items in feed order)
        """
        parsed_feed = feedparser.parse(document)

        if parsed_feed.bozo:
            if not parsed_feed.entries and not parsed_feed.feed.get("title"):
                raise ParseError(
                    f"Failed to parse feed: {parsed_feed.get('bozo_exception')}",
                    url=feed_url,
                    error_code=ErrorCode.FEED_PARSE_ERROR,
                )
            # Many feeds have minor formatting issues
            self.logger.warning(
                f"Feed parsing warning for {feed_url}: {parsed_feed.get('bozo_exception')}"
            )

        metadata = self._extract_feed_metadata(parsed_feed.feed, feed_url)

        items = []
        for entry in parsed_feed.entries:
            try:
                items.append(self._extract_item(entry))
            except (AttributeError, TypeError, ValueError) as e:
                self.logger.warning(f"Failed to parse entry in {feed_url}: {e}")

        self.logger.info(f"Parsed {len(items)} items from {feed_url}")
        return metadata, items

    def _extract_feed_metadata(self, feed_data: Any, feed_url: str) -> FeedMetadata:
        image_url = None
        image = feed_data.get("image")
        if isinstance(image, dict):
            image_url = image.get("href") or image.get("url")

        return FeedMetadata(
            title=(feed_data.get("title") or "").strip(),
            link=feed_data.get("link") or feed_url,
            description=(feed_data.get("description") or feed_data.get("subtitle") or "").strip(),
            language=feed_data.get("language"),
            image_url=image_url,
        )

    def _extract_item(self, entry: Any) -> RawFeedItem:
        summary = entry.get("summary") or entry.get("description") or ""

        raw_content = None
        content = entry.get("content")
        if isinstance(content, list) and content:
            raw_content = content[0].get("value") or None

        author = entry.get("author")
        if not author and isinstance(entry.get("author_detail"), dict):
            author = entry["author_detail"].get("name")

        enclosures = []
        for enc in entry.get("enclosures") or []:
            href = enc.get("href") or enc.get("url")
            if href:
                enclosures.append(Enclosure(url=href, mime_type=enc.get("type", "") or ""))

        return RawFeedItem(
            title=(entry.get("title") or "").strip(),
            link=(entry.get("link") or "").strip(),
            raw_content=raw_content,
            summary=summary.strip(),
            published_at=self._parse_date(entry, "published_parsed"),
            updated_at=self._parse_date(entry, "updated_parsed"),
            author=author.strip() if author else None,
            image_url=self._entry_image(entry),
            guid=entry.get("id") or entry.get("guid"),
            enclosures=tuple(enclosures),
        )

    @staticmethod
    def _entry_image(entry: Any) -> Optional[str]:
        """Image advertised by the entry itself (media extensions or <image>)."""
        for key in ("media_content", "media_thumbnail"):
            for media in entry.get(key) or []:
                url = media.get("url")
                medium = media.get("medium") or ""
                mime = media.get("type") or ""
                if url and (key == "media_thumbnail" or medium == "image" or mime.startswith("image/")):
                    return url

        image = entry.get("image")
        if isinstance(image, dict):
            return image.get("href") or image.get("url")
        return None

    @staticmethod
    def _parse_date(entry: Any, field_name: str) -> Optional[datetime]:
        value = entry.get(field_name)
        if not value:
            return None
        try:
            return datetime(*value[:6], tzinfo=timezone.utc)
        except (ValueError, TypeError):
            return None
