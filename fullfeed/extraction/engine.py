"""
Profile Extraction Engine
=========================

Generic extractor driven by a ``SiteProfile``: fetch the article, locate
the content container with the profile's CSS selectors (optionally
falling back to readability), strip unwanted subtrees and collect
representative images.
"""

import re
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup
from readability import Document

from ..ingestion.transport import Transport
from ..utils.exceptions import (
    ExcludedError,
    NotFoundError,
    ParseError,
    TransportError,
    UnsupportedInputError,
)
from ..utils.logging import get_logger_for_component
from ..utils.validators import absolutize_url
from .base import ExtractionResult, Extractor
from .inputs import HTMLInput, ItemMetadataInput, URLInput
from .profiles import SiteProfile


# Meta tags checked for a lead image, in priority order
META_IMAGE_SELECTORS = (
    ("meta[property='og:image']", "content"),
    ("meta[property='og:image:secure_url']", "content"),
    ("meta[name='twitter:image']", "content"),
    ("meta[name='twitter:image:src']", "content"),
    ("meta[property='twitter:image']", "content"),
    ("link[rel='image_src']", "href"),
)

# <img> attributes holding the real source, lazy loading first
IMAGE_SOURCE_ATTRIBUTES = ("data-src", "data-original", "data-lazy-src", "src")

# Decorative images: matched at the start of a word so "silicon" survives
SKIPPED_IMAGE_PATTERN = re.compile(r"(?<![a-z])(?:fav)?(?:icon|logo|sprite|pixel)")


class ProfileExtractor(Extractor):
    """Extractor that interprets a SiteProfile."""

    def __init__(self, profile: SiteProfile, transport: Optional[Transport], parser: str = "html.parser", logger=None):
        """Initialize extractor.

        Args:
            profile: Site profile describing selectors and cleanup rules
            transport: Transport used for URL inputs (may be None for HTML-only use)
            parser: BeautifulSoup tree builder name
            logger: Logger adapter (defaults to the component logger)
        """
        self.profile = profile
        self.transport = transport
        self.parser = parser
        self.name = profile.name
        self.logger = logger or get_logger_for_component("extractor").bind_context(
            profile=profile.name
        )

    async def extract_url(self, source: URLInput) -> ExtractionResult:
        self._check_url(source.url)
        html = await self._fetch(source.url)
        return self._extract_document(html, source.url)

    async def extract_html(self, source: HTMLInput) -> ExtractionResult:
        return self._extract_document(source.html, source.base_url)

    async def extract_item(self, source: ItemMetadataInput) -> ExtractionResult:
        link = source.link
        if not link:
            raise UnsupportedInputError(
                f"{self.name} needs a link or url in item metadata"
            )

        self._check_url(link)
        html = source.html
        if html is None:
            html = await self._fetch(link)
        result = self._extract_document(html, link)

        feed_image = absolutize_url(source.image, link) if source.image else None
        if not feed_image:
            return result

        if self.profile.prefer_feed_image:
            images = [feed_image] + result.images
        else:
            images = result.images + [feed_image]
        return ExtractionResult(content=result.content, images=_unique(images))

    def _check_url(self, url: str) -> None:
        reason = self.profile.excludes(url)
        if reason:
            raise ExcludedError(f"URL excluded by {self.name}: {reason}", url=url)

    async def _fetch(self, url: str) -> str:
        if self.transport is None:
            raise TransportError(f"{self.name} has no transport configured", url=url)

        response = await self.transport.fetch(url)
        if not response.ok:
            raise TransportError(
                f"HTTP {response.status} fetching {url}", url=url, status=response.status
            )
        return response.body

    def _extract_document(self, html: str, base_url: Optional[str]) -> ExtractionResult:
        """Locate, clean and collect images from an article document."""
        try:
            soup = BeautifulSoup(html or "", self.parser)
        except ParserRejectedMarkup as e:
            raise ParseError(f"Could not parse HTML: {e}", url=base_url) from e

        container = self._locate_content(soup)
        if container is None and self.profile.readability_fallback:
            container = self._readability_content(html, base_url)
        if container is None:
            raise NotFoundError(
                f"No content container matched for {self.name}", url=base_url
            )

        self._strip_unwanted(container)

        content = container.decode_contents().strip()
        if not content:
            raise NotFoundError(
                f"Content container empty after cleanup for {self.name}", url=base_url
            )

        images = self._meta_images(soup, base_url) + self._content_images(container, base_url)
        self.logger.debug(
            f"Extracted {len(content)} chars and {len(images)} images from {base_url}"
        )
        return ExtractionResult(content=content, images=_unique(images))

    def _locate_content(self, soup: BeautifulSoup) -> Optional[Tag]:
        for selector in self.profile.content_selectors:
            for candidate in soup.select(selector):
                if _has_content(candidate):
                    return candidate
        return None

    def _readability_content(self, html: str, base_url: Optional[str]) -> Optional[Tag]:
        if not html or not html.strip():
            return None
        try:
            summary_html = Document(html, url=base_url).summary(html_partial=True)
        except (ValueError, TypeError) as e:
            self.logger.debug(f"Readability could not process {base_url}: {e}")
            return None

        fragment = BeautifulSoup(summary_html, self.parser)
        return fragment if _has_content(fragment) else None

    def _strip_unwanted(self, container: Tag) -> None:
        if self.profile.strip_tags:
            for element in container.find_all(list(self.profile.strip_tags)):
                if not element.decomposed:
                    element.decompose()

        for selector in self.profile.strip_selectors:
            for element in container.select(selector):
                if not element.decomposed:
                    element.decompose()

        substrings = [s.lower() for s in self.profile.strip_class_substrings]
        if substrings:
            for element in container.find_all(True):
                if not element.decomposed and _class_or_id_contains(element, substrings):
                    element.decompose()

    def _meta_images(self, soup: BeautifulSoup, base_url: Optional[str]) -> List[str]:
        images = []
        for selector, attribute in META_IMAGE_SELECTORS:
            for element in soup.select(selector):
                url = self._qualify_image(element.get(attribute), base_url)
                if url:
                    images.append(url)
        return images

    def _content_images(self, container: Tag, base_url: Optional[str]) -> List[str]:
        images = []
        for img in container.find_all("img"):
            for attribute in IMAGE_SOURCE_ATTRIBUTES:
                url = self._qualify_image(img.get(attribute), base_url)
                if url:
                    images.append(url)
                    break
        return images

    def _qualify_image(self, src, base_url: Optional[str]) -> Optional[str]:
        """Absolute image URL, or None if the image should be skipped."""
        if not isinstance(src, str) or not src.strip():
            return None
        url = absolutize_url(src, base_url)
        if not url:
            return None

        lowered = url.lower()
        if lowered.split("?", 1)[0].endswith(".svg"):
            return None
        if SKIPPED_IMAGE_PATTERN.search(lowered):
            return None
        if any(sub.lower() in lowered for sub in self.profile.image_skip_substrings):
            return None
        return url


def _has_content(element: Tag) -> bool:
    return bool(element.get_text(strip=True)) or element.find("img") is not None


def _class_or_id_contains(element: Tag, substrings: Iterable[str]) -> bool:
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    tokens = [c.lower() for c in classes]
    element_id = element.get("id")
    if isinstance(element_id, str):
        tokens.append(element_id.lower())
    return any(sub in token for token in tokens for sub in substrings)


def _unique(urls: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            ordered.append(url)
    return ordered
