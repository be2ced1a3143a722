"""
URL-based item categories.

Rules are checked in order; the first rule with a path segment contained
in the lowercased URL decides the category.
"""

from typing import Optional, Sequence, Tuple

CategoryRule = Tuple[str, Tuple[str, ...]]

DEFAULT_CATEGORY = "turkiye"

DEFAULT_CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    ("turkiye", ("/gundem/", "/turkiye/", "/politika/", "/siyaset/", "/haber/")),
    ("world", ("/dunya/", "/abd/", "/israil/", "/avrupa/")),
    ("business", (
        "/ekonomi/", "/sektorler/", "/sirket/", "/borsa/", "/kobi/", "/ntvpara/",
        "/piyasalar/", "/veriler/", "/enerji/", "/gayrimenkul/", "/is-dunyasi/",
        "/sirket-haberleri/", "/finans/",
    )),
    ("technology", ("/teknoloji/", "/bilisim/", "/bilim/")),
    ("health", ("/saglik/", "/health/", "/saglikli-yasam/")),
    ("entertainment", ("/magazin/", "/kultur/", "/sanat/")),
)


class CategoryClassifier:
    """Maps article URLs to a category name."""

    def __init__(self, rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
                 default: str = DEFAULT_CATEGORY):
        self.rules = tuple((name, tuple(s.lower() for s in segments)) for name, segments in rules)
        self.default = default

    def categorize(self, url: Optional[str]) -> str:
        lowered = (url or "").lower()
        for name, segments in self.rules:
            if any(segment in lowered for segment in segments):
                return name
        return self.default


def categorize(url: Optional[str], default: str = DEFAULT_CATEGORY) -> str:
    """Category of ``url`` using the built-in rules."""
    return CategoryClassifier(default=default).categorize(url)
