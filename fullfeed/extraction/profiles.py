"""
Site Profiles
=============

Declarative description of how content is located on a site. A profile
is data only: ``ProfileExtractor`` in ``engine.py`` interprets it.

URL prefixes are written without scheme and without ``www.``, e.g.
``"cnbce.com/haberler"``. They are compared against the normalized
``host/path`` of the article URL.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import urlparse

from ..utils.validators import normalize_domain


DEFAULT_STRIP_TAGS = ("script", "style", "iframe", "noscript", "form", "button")


@dataclass(frozen=True)
class SiteProfile:
    """Content location and cleanup rules for one site (or the generic default)."""

    name: str
    domains: Tuple[str, ...] = ()
    content_selectors: Tuple[str, ...] = ()
    strip_tags: Tuple[str, ...] = DEFAULT_STRIP_TAGS
    strip_selectors: Tuple[str, ...] = ()
    strip_class_substrings: Tuple[str, ...] = ()
    allowed_prefixes: Tuple[str, ...] = ()
    blocked_prefixes: Tuple[str, ...] = ()
    image_skip_substrings: Tuple[str, ...] = ()
    prefer_feed_image: bool = False
    readability_fallback: bool = False

    def excludes(self, url: str) -> Optional[str]:
        """Return the reason ``url`` is excluded by this profile, or None."""
        key = url_key(url)
        for prefix in self.blocked_prefixes:
            if key.startswith(url_key(prefix)):
                return f"matches blocked prefix {prefix!r}"
        if self.allowed_prefixes and not any(
            key.startswith(url_key(prefix)) for prefix in self.allowed_prefixes
        ):
            return "matches no allowed prefix"
        return None


def url_key(url: str) -> str:
    """``host/path`` form of a URL or prefix used for prefix matching."""
    value = (url or "").strip()
    if "//" not in value:
        value = f"//{value}"
    parsed = urlparse(value)
    return f"{normalize_domain(parsed.netloc)}{parsed.path}".lower()


DEFAULT_PROFILE = SiteProfile(
    name="default",
    content_selectors=(
        "[itemprop=articleBody]",
        "article .article-body",
        ".article-body",
        ".article-content",
        ".news-detail__content",
        ".story-body",
        ".entry-content",
        ".post-content",
        "article",
        ".content",
    ),
    strip_class_substrings=("author", "tags", "date-info"),
    readability_fallback=True,
)


SITE_PROFILES = (
    SiteProfile(
        name="ntv",
        domains=("ntv.com.tr",),
        content_selectors=(".category-detail-content", ".content-news-tag-selector", "article"),
        strip_selectors=(".category-detail-inner-sub-title", ".news-tags"),
    ),
    SiteProfile(
        name="t24",
        domains=("t24.com.tr",),
        content_selectors=("div._3QVZl", ".story-content", "article"),
        strip_selectors=("ins.adsbygoogle", ".fb-post", ".twitter-tweet", ".instagram-media"),
        strip_class_substrings=("pagination", "read-more", "more-news"),
        blocked_prefixes=("t24.com.tr/yazarlar/", "t24.com.tr/video/"),
    ),
    SiteProfile(
        name="cnbce",
        domains=("cnbce.com",),
        content_selectors=(".content-text",),
        blocked_prefixes=(
            "cnbce.com/haberler",
            "cnbce.com/tv",
            "cnbce.com/art-e",
            "cnbce.com/gundem",
            "cnbce.com/son-dakika",
        ),
    ),
    SiteProfile(
        name="dunya",
        domains=("dunya.com",),
        content_selectors=("div.content-text",),
        strip_class_substrings=("detail-tags",),
    ),
    SiteProfile(
        name="ekonomim",
        domains=("ekonomim.com",),
        content_selectors=("div.content-text", ".news-content"),
    ),
    SiteProfile(
        name="aa",
        domains=("aa.com.tr",),
        content_selectors=(".detay-icerik", "article"),
        strip_class_substrings=("detay-paylas", "print"),
        image_skip_substrings=("cdnassets.aa.com.tr",),
        prefer_feed_image=True,
    ),
    SiteProfile(
        name="artigercek",
        domains=("artigercek.com",),
        content_selectors=('div.content-text[property="articleBody"]', "div.content-text"),
        strip_selectors=(".adpro",),
        strip_class_substrings=("author-info", "date-info", "category-info"),
        blocked_prefixes=(
            "artigercek.com/video/",
            "artigercek.com/galeri/",
            "artigercek.com/foto-galeri/",
            "artigercek.com/yazarlar/",
            "artigercek.com/kose-yazilari/",
            "artigercek.com/roportaj/",
        ),
    ),
    SiteProfile(
        name="kisadalga",
        domains=("kisadalga.net",),
        content_selectors=(".article-text", "article"),
        prefer_feed_image=True,
    ),
    SiteProfile(
        name="ilketv",
        domains=("ilketv.com.tr",),
        content_selectors=(".content-text", "article"),
        strip_class_substrings=("author-info", "date-info"),
        blocked_prefixes=(
            "ilketv.com.tr/video/",
            "ilketv.com.tr/galeri/",
            "ilketv.com.tr/foto-galeri/",
            "ilketv.com.tr/yazarlar/",
            "ilketv.com.tr/kose-yazilari/",
        ),
    ),
)
