"""
FullFeed extraction package.

Per-domain content extractors and the registry that dispatches to them.
"""

from .base import ExtractionResult, Extractor, UnavailableExtractor
from .engine import ProfileExtractor
from .inputs import ExtractorInput, HTMLInput, ItemMetadataInput, URLInput
from .profiles import DEFAULT_PROFILE, SITE_PROFILES, SiteProfile
from .registry import ExtractorRegistry, build_registry

__all__ = [
    "ExtractionResult",
    "Extractor",
    "UnavailableExtractor",
    "ProfileExtractor",
    "ExtractorInput",
    "HTMLInput",
    "ItemMetadataInput",
    "URLInput",
    "DEFAULT_PROFILE",
    "SITE_PROFILES",
    "SiteProfile",
    "ExtractorRegistry",
    "build_registry",
]
