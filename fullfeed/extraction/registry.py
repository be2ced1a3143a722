"""
Extractor Registry
==================

Maps source domains to extractors. Populated once at startup and
read-only afterwards; ``resolve`` is pure.
"""

from typing import Dict, Iterable, List, Optional

from ..ingestion.transport import Transport
from ..utils.exceptions import ValidationError
from ..utils.logging import get_logger_for_component
from ..utils.validators import hostname_of, normalize_domain
from .base import Extractor, UnavailableExtractor
from .engine import ProfileExtractor
from .profiles import DEFAULT_PROFILE, SITE_PROFILES, SiteProfile


class ExtractorRegistry:
    """Domain to extractor bindings with parent-domain fallback."""

    def __init__(self, logger=None):
        self.logger = logger or get_logger_for_component("extractor_registry")
        self._bindings: Dict[str, Extractor] = {}
        self._default: Optional[Extractor] = None
        self._unavailable = UnavailableExtractor()

    def register_default(self, extractor: Extractor) -> None:
        """Set the fallback extractor. Last write wins."""
        self._default = extractor

    def register_domain(self, domain: str, extractor: Extractor) -> None:
        """Bind ``domain`` (normalized) to ``extractor``, overwriting any binding.

        Raises:
            ValidationError: If nothing host-like remains after normalization
        """
        key = normalize_domain(domain)
        if not key:
            raise ValidationError(f"Invalid extractor domain: {domain!r}", field_name="domain")

        if key in self._bindings:
            self.logger.debug(f"Replacing extractor for {key}")
        self._bindings[key] = extractor

    def register_profile(self, profile: SiteProfile, transport: Optional[Transport]) -> ProfileExtractor:
        """Wrap ``profile`` in a ProfileExtractor and bind it to each profile domain."""
        extractor = ProfileExtractor(profile, transport)
        for domain in profile.domains:
            self.register_domain(domain, extractor)
        return extractor

    def resolve(self, url: str) -> Extractor:
        """Choose the extractor for ``url``.

        Tries the host (``www.`` insensitive), then each parent domain
        down to two labels.
        Falls back to the default, then to an extractor that always fails.
        """
        host = hostname_of(url)
        if host:
            for candidate in _candidate_hosts(host):
                extractor = self._bindings.get(candidate)
                if extractor is not None:
                    return extractor

        return self._default or self._unavailable

    def domains(self) -> List[str]:
        return sorted(self._bindings)

    @property
    def default(self) -> Optional[Extractor]:
        return self._default

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, domain: str) -> bool:
        return normalize_domain(domain) in self._bindings


def _candidate_hosts(host: str) -> List[str]:
    """Lookup keys for ``host`` in priority order.

    Bindings are stored without ``www.``, so the exact host and its
    ``www.``-toggled form share the bare key.
    """
    bare = normalize_domain(host)
    if not bare:
        return []

    labels = bare.split(".")
    candidates = [bare]
    # parents down to two labels: news.bbc.co.uk -> bbc.co.uk -> co.uk
    for start in range(1, len(labels) - 1):
        candidates.append(".".join(labels[start:]))
    return candidates


def build_registry(transport: Optional[Transport], profiles: Iterable[SiteProfile] = SITE_PROFILES,
                   default_profile: Optional[SiteProfile] = DEFAULT_PROFILE) -> ExtractorRegistry:
    """Registry with the built-in site profiles and the generic default."""
    registry = ExtractorRegistry()
    for profile in profiles:
        registry.register_profile(profile, transport)
    if default_profile is not None:
        registry.register_default(ProfileExtractor(default_profile, transport))
    registry.logger.info(f"Extractor registry ready with {len(registry)} domains")
    return registry
