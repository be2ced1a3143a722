"""
FullFeed Data Models
====================

Request, feed and item models passed between the feed source, the
extraction layer and the feed assembler.

Raw feed data uses frozen dataclasses (produced by the feed source and
read-only to the core). Assembled output uses Pydantic models so it can be
validated and serialized.
"""

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .config.settings import OutputFormat


@dataclass(frozen=True)
class FeedRequest:
    """One full-text feed request. Immutable for the lifetime of the request."""

    source_url: str
    limit: int = 10
    output_format: OutputFormat = OutputFormat.JSON

    @classmethod
    def build(
        cls,
        source_url: str,
        limit=None,
        output_format=None,
        default_limit: int = 10,
        max_limit: int = 50,
    ) -> "FeedRequest":
        """Build a request from loosely typed (query string) values.

        Non-positive or unparsable limits fall back to ``default_limit``;
        larger values are clamped to ``max_limit``.
        """
        try:
            parsed_limit = int(limit) if limit not in (None, "") else default_limit
        except (TypeError, ValueError):
            parsed_limit = default_limit
        if parsed_limit <= 0:
            parsed_limit = default_limit
        parsed_limit = min(parsed_limit, max_limit)

        try:
            fmt = OutputFormat((output_format or OutputFormat.JSON.value).lower())
        except (ValueError, AttributeError):
            fmt = OutputFormat.JSON

        return cls(source_url=source_url.strip(), limit=parsed_limit, output_format=fmt)

    @property
    def fingerprint(self) -> str:
        """Cache key identifying this request."""
        return f"{self.source_url}|{self.limit}|{self.output_format.value}"


@dataclass(frozen=True)
class Enclosure:
    """Feed-supplied media attachment."""

    url: str
    mime_type: str = ""

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")


@dataclass(frozen=True)
class FeedMetadata:
    """Channel-level metadata of the source feed."""

    title: str
    link: str
    description: str = ""
    language: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class RawFeedItem:
    """One entry of the source feed as produced by the feed source."""

    title: str
    link: str
    raw_content: Optional[str] = None
    summary: str = ""
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    guid: Optional[str] = None
    enclosures: Tuple[Enclosure, ...] = field(default_factory=tuple)

    def first_image_enclosure(self) -> Optional[str]:
        """URL of the first ``image/*`` enclosure, if any."""
        for enclosure in self.enclosures:
            if enclosure.is_image and enclosure.url:
                return enclosure.url
        return None


def item_id_for(link: str) -> str:
    """Content-derived identifier for a link, random when the link is empty."""
    if not link:
        return str(uuid.uuid4())
    return hashlib.sha256(link.encode("utf-8")).hexdigest()


class ExtractedItem(BaseModel):
    """Full-text item built from a RawFeedItem and extractor output."""
    id: str = Field(..., description="Content-derived or random unique identifier")
    title: str = Field(default="", description="Item title")
    link: str = Field(default="", description="Article URL")
    summary: str = Field(default="", description="Truncated plain-text summary")
    content: str = Field(default="", description="Sanitized HTML content")
    images: List[str] = Field(default_factory=list, description="Ordered unique image URLs")
    category: str = Field(default="", description="Category derived from the URL path")
    author: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None, description="Publication date")
    updated_at: Optional[datetime] = Field(default=None, description="Last update date")

    model_config = {"frozen": True}

    @field_validator('images')
    @classmethod
    def dedupe_images(cls, v):
        """Keep first occurrence of each image URL."""
        seen = set()
        ordered = []
        for url in v:
            if url and url not in seen:
                seen.add(url)
                ordered.append(url)
        return ordered

    @property
    def image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    def __str__(self) -> str:
        return f"ExtractedItem({self.title[:50]})"


class AssembledFeed(BaseModel):
    """Output container handed to the serializers."""
    title: str = ""
    link: str = ""
    description: str = ""
    image_url: Optional[str] = None
    items: List[ExtractedItem] = Field(default_factory=list)
    items_skipped: int = 0
    items_failed: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
