"""
Content Sanitizer
=================

HTML fragment normalization for extracted article content.

This module provides:
- Removal of disallowed subtrees (scripts, ads, share widgets, comments,
  navigation chrome) by tag name, class/id substring and ARIA role
- Attribute allow-listing and unsafe URL removal
- Whitespace collapsing and entity unescaping
- Plain-text extraction and word-boundary truncation for summaries

``ContentSanitizer.sanitize`` is idempotent: feeding its output back in
returns the same string.
"""

import re
import html
from typing import Optional, Iterable

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import CData, Declaration, Doctype, ProcessingInstruction

from fullfeed.utils.logging import get_logger_for_component
from fullfeed.utils.validators import absolutize_url


class ContentSanitizer:
    """
    HTML sanitizer for extracted article fragments.

    Features:
    - Removes non-content and dangerous elements with their subtrees
    - Drops ad/social/related/comment blocks identified by class or id
    - Keeps a minimal attribute set (links and images)
    - Normalizes whitespace and decodes HTML entities
    """

    # HTML elements to completely remove (including content)
    STRIP_TAGS = {
        "script",
        "style",
        "iframe",
        "frame",
        "frameset",
        "embed",
        "object",
        "applet",
        "noscript",
        "canvas",
        "svg",
        "video",
        "audio",
        "form",
        "input",
        "button",
        "select",
        "textarea",
        "label",
        "fieldset",
        "meta",
        "link",
        "base",
        "head",
        "title",
        "header",
        "footer",
        "nav",
        "aside",
        "menu",
        "dialog",
    }

    # HTML elements to remove but preserve content
    UNWRAP_TAGS = {
        "html",
        "body",
        "font",
        "center",
        "big",
        "small",
        "tt",
        "strike",
        "blink",
        "marquee",
        "nobr",
        "wbr",
    }

    # Class/id substrings that mark non-article blocks
    BLOCKED_CLASS_SUBSTRINGS = (
        "advert",
        "banner",
        "sponsor",
        "promo",
        "social",
        "share",
        "sharing",
        "comment",
        "related",
        "recommend",
        "popular",
        "trending",
        "most-read",
        "most-viewed",
        "newsletter",
        "subscribe",
        "signup",
        "sidebar",
        "widget",
        "popup",
        "modal",
        "cookie",
        "consent",
        "breadcrumb",
        "outbrain",
        "taboola",
        "teaser",
    )

    # Short "ad" tokens only match as a whole dash/underscore separated word
    AD_TOKEN_PATTERN = re.compile(r"(?:^|[-_\s])(?:ad|ads|adv|adslot|adunit)(?:$|[-_\s\d])")

    BLOCKED_ROLES = {"banner", "complementary", "contentinfo", "navigation"}

    # Attributes to keep for specific elements
    SAFE_ATTRIBUTES = {
        "a": ["href", "title"],
        "img": ["src", "alt", "title"],
        "blockquote": ["cite"],
        "q": ["cite"],
    }

    # Elements allowed to be empty
    VOID_ELEMENTS = {"br", "hr", "img", "source", "col", "area", "track"}

    # Subtrees where whitespace is significant
    PREFORMATTED = {"pre", "textarea"}

    WHITESPACE_PATTERN = re.compile(r"\s+")
    UNSAFE_URL_PATTERN = re.compile(r"^\s*(javascript|data|vbscript):", re.IGNORECASE)

    def __init__(self, logger=None, parser: str = "html.parser"):
        """Initialize content sanitizer.

        Args:
            logger: Logger adapter (defaults to the component logger)
            parser: BeautifulSoup tree builder name
        """
        self.logger = logger or get_logger_for_component("content_sanitizer")
        self.parser = parser

    def sanitize(self, html_content: str, base_url: Optional[str] = None) -> str:
        """
        Normalize an HTML fragment.

        Args:
            html_content: Raw HTML fragment
            base_url: Base URL for resolving relative links and images

        Returns:
            Sanitized HTML fragment (empty string for blank input)
        """
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)

        self._remove_non_content_nodes(soup)
        self._remove_stripped_tags(soup)
        self._remove_blocked_blocks(soup)
        self._clean_attributes(soup, base_url)
        self._unwrap_tags(soup)
        self._remove_empty_elements(soup)

        soup.smooth()
        self._collapse_whitespace(soup)

        cleaned = soup.decode(formatter="minimal").strip()

        self.logger.debug(
            f"Sanitized HTML: {len(html_content)} -> {len(cleaned)} chars"
        )
        return cleaned

    def to_plain_text(self, html_content: str) -> str:
        """
        Extract text content from HTML, removing all markup.

        Args:
            html_content: HTML content to process

        Returns:
            Plain text with entities decoded and whitespace collapsed
        """
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)
        self._remove_non_content_nodes(soup)
        self._remove_stripped_tags(soup)

        # get_text() already yields decoded entities
        text = soup.get_text(separator=" ")
        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def truncate(self, text: str, max_chars: int, ellipsis: str = "…") -> str:
        """
        Shorten plain text to at most ``max_chars`` characters plus an ellipsis.

        Entities are decoded before cutting so a cut never lands inside one,
        and lengths are counted in code points so a multi-byte character is
        never split. The cut is moved back to the last word boundary when
        one exists.

        Args:
            text: Plain text (may contain HTML entities)
            max_chars: Maximum number of characters kept before the ellipsis
            ellipsis: Marker appended when text was shortened

        Returns:
            Original text if short enough, otherwise the shortened text
        """
        if not text:
            return ""

        text = self.WHITESPACE_PATTERN.sub(" ", html.unescape(text)).strip()
        if max_chars <= 0:
            return ""
        if len(text) <= max_chars:
            return text

        cut = text[:max_chars]
        if not text[max_chars].isspace():
            boundary = cut.rfind(" ")
            if boundary > 0:
                cut = cut[:boundary]

        return cut.rstrip(" ,;:-") + ellipsis

    def summarize(self, html_content: str, max_chars: int) -> str:
        """Plain-text summary of an HTML fragment."""
        return self.truncate(self.to_plain_text(html_content), max_chars)

    def is_blocked_element(self, element: Tag, extra_substrings: Iterable[str] = ()) -> bool:
        """Check class, id and role of ``element`` against the denylists."""
        attrs = element.attrs or {}
        classes = attrs.get("class") or []
        if isinstance(classes, str):
            classes = classes.split()
        tokens = [c.lower() for c in classes]
        element_id = attrs.get("id")
        if isinstance(element_id, str) and element_id:
            tokens.append(element_id.lower())

        substrings = tuple(self.BLOCKED_CLASS_SUBSTRINGS) + tuple(
            s.lower() for s in extra_substrings
        )
        for token in tokens:
            if any(sub in token for sub in substrings):
                return True
            if self.AD_TOKEN_PATTERN.search(token):
                return True

        role = attrs.get("role")
        if isinstance(role, str) and role.lower() in self.BLOCKED_ROLES:
            return True

        return False

    def _remove_non_content_nodes(self, soup: BeautifulSoup) -> None:
        """Remove comments, CDATA, doctypes and processing instructions."""
        for node in soup.find_all(
            string=lambda text: isinstance(
                text, (Comment, CData, ProcessingInstruction, Doctype, Declaration)
            )
        ):
            node.extract()

    def _remove_stripped_tags(self, soup: BeautifulSoup) -> None:
        for element in soup.find_all(list(self.STRIP_TAGS)):
            if not element.decomposed:
                element.decompose()

    def _remove_blocked_blocks(self, soup: BeautifulSoup) -> None:
        for element in soup.find_all(True):
            if element.decomposed:
                continue
            if self.is_blocked_element(element):
                element.decompose()

    def _clean_attributes(self, soup: BeautifulSoup, base_url: Optional[str]) -> None:
        """Keep only allow-listed attributes and drop unsafe URLs."""
        for element in soup.find_all(True):
            if element.decomposed:
                continue
            element_name = element.name.lower()
            safe_attrs = self.SAFE_ATTRIBUTES.get(element_name, [])

            for attr_name in list(element.attrs):
                if attr_name.lower() not in safe_attrs:
                    del element[attr_name]

            if element_name == "a" and element.has_attr("href"):
                href = element["href"].strip()
                if not href or self.UNSAFE_URL_PATTERN.match(href):
                    del element["href"]
                elif base_url:
                    element["href"] = absolutize_url(href, base_url) or href

            elif element_name == "img":
                src = (element.get("src") or "").strip()
                if not src or self.UNSAFE_URL_PATTERN.match(src):
                    element.decompose()
                elif base_url:
                    element["src"] = absolutize_url(src, base_url) or src

    def _unwrap_tags(self, soup: BeautifulSoup) -> None:
        for element in soup.find_all(list(self.UNWRAP_TAGS)):
            element.unwrap()

    def _remove_empty_elements(self, soup: BeautifulSoup) -> None:
        """Drop elements without text or media, innermost first."""
        for element in reversed(soup.find_all(True)):
            if element.decomposed or element.name in self.VOID_ELEMENTS:
                continue
            if element.get_text().strip():
                continue
            if element.find(list(self.VOID_ELEMENTS)):
                continue
            element.decompose()

    def _collapse_whitespace(self, soup: BeautifulSoup) -> None:
        for node in list(soup.find_all(string=True)):
            if not isinstance(node, NavigableString) or isinstance(node, Comment):
                continue
            if node.find_parent(list(self.PREFORMATTED)):
                continue
            collapsed = self.WHITESPACE_PATTERN.sub(" ", str(node))
            if collapsed != str(node):
                node.replace_with(collapsed)
