"""
URL Filter
==========

Per-domain allow/block path rules deciding whether a feed item URL is
processed at all. Rules are loaded at startup and read-only afterwards.

Matching semantics:
- The first rule whose domain matches the URL host applies
- Blocked path substrings are checked first and always win
- An empty allow list accepts every path that is not blocked
- URLs on domains without a rule are accepted
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..utils.exceptions import ValidationError
from ..utils.logging import get_logger_for_component
from ..utils.validators import hostname_of, normalize_domain


@dataclass(frozen=True)
class FilterRule:
    """Path rules for one domain."""
    domain: str
    allowed_paths: Tuple[str, ...] = ()
    blocked_paths: Tuple[str, ...] = ()

    def matches_domain(self, url: str) -> bool:
        host = hostname_of(url)
        if host is None:
            return self.domain in url.lower()
        host = normalize_domain(host)
        return host == self.domain or host.endswith("." + self.domain)

    def decide(self, url: str) -> Tuple[bool, Optional[str]]:
        """Return (accepted, reason) for a URL this rule applies to."""
        lowered = url.lower()
        for blocked in self.blocked_paths:
            if blocked.lower() in lowered:
                return False, f"blocked path {blocked!r}"

        if not self.allowed_paths:
            return True, None

        for allowed in self.allowed_paths:
            if allowed.lower() in lowered:
                return True, None
        return False, "no allowed path matched"


@dataclass
class FilterDecision:
    """Result of a filter check."""
    url: str
    accepted: bool
    rule: Optional[FilterRule] = None
    reason: Optional[str] = None


class URLFilter:
    """Ordered set of FilterRules."""

    def __init__(self, rules: Sequence[FilterRule] = (), logger=None):
        self.logger = logger or get_logger_for_component("url_filter")
        self._rules: List[FilterRule] = []
        for rule in rules:
            self.register(rule)

    @classmethod
    def from_settings(cls, filtering_settings) -> "URLFilter":
        """Build from ``FilteringSettings``: built-in rules first, then configured ones."""
        rules = list(default_filter_rules()) if filtering_settings.use_builtin_rules else []
        for rule in filtering_settings.rules:
            rules.append(FilterRule(
                domain=rule.domain,
                allowed_paths=tuple(rule.allowed_paths),
                blocked_paths=tuple(rule.blocked_paths),
            ))
        return cls(rules)

    def register(self, rule: FilterRule) -> None:
        """Append a rule. Earlier rules take precedence for the same domain.

        Raises:
            ValidationError: If the rule domain is empty
        """
        domain = normalize_domain(rule.domain)
        if not domain:
            raise ValidationError(f"Invalid filter rule domain: {rule.domain!r}", field_name="domain")
        self._rules.append(FilterRule(domain, tuple(rule.allowed_paths), tuple(rule.blocked_paths)))

    @property
    def rules(self) -> List[FilterRule]:
        return list(self._rules)

    def rule_for(self, url: str) -> Optional[FilterRule]:
        for rule in self._rules:
            if rule.matches_domain(url):
                return rule
        return None

    def check(self, url: str) -> FilterDecision:
        rule = self.rule_for(url)
        if rule is None:
            return FilterDecision(url=url, accepted=True)

        accepted, reason = rule.decide(url)
        return FilterDecision(url=url, accepted=accepted, rule=rule, reason=reason)

    def should_process(self, url: str) -> bool:
        """True if the item at ``url`` should be extracted."""
        decision = self.check(url)
        if not decision.accepted:
            self.logger.debug(f"Filtered out {url}: {decision.reason}")
        return decision.accepted

    def __len__(self) -> int:
        return len(self._rules)


def default_filter_rules() -> List[FilterRule]:
    """Built-in rules for the sites with dedicated extraction profiles."""
    return [
        FilterRule("ntv.com.tr", blocked_paths=("/spor/", "/video/", "/galeri/")),
        FilterRule("t24.com.tr", blocked_paths=("/foto-haber/", "/video/")),
        FilterRule("aa.com.tr", blocked_paths=("/tr/spor/", "/tr/foto-galeri/", "/tr/video-galeri/")),
        FilterRule("dunya.com", blocked_paths=("/foto-galeri/", "/video-galeri/")),
    ]
