"""
Extractor inputs.

An extractor accepts exactly one of three input variants:

- ``URLInput``: an article URL to fetch
- ``HTMLInput``: an already fetched document
- ``ItemMetadataInput``: known feed-item fields (``link``/``url``,
  ``image``, ``title``, optionally ``html``)
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class URLInput:
    url: str


@dataclass(frozen=True)
class HTMLInput:
    html: str
    base_url: Optional[str] = None


@dataclass(frozen=True)
class ItemMetadataInput:
    fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def link(self) -> Optional[str]:
        value = self.fields.get("link") or self.fields.get("url")
        return value if isinstance(value, str) and value.strip() else None

    @property
    def image(self) -> Optional[str]:
        value = self.fields.get("image")
        return value if isinstance(value, str) and value.strip() else None

    @property
    def title(self) -> Optional[str]:
        value = self.fields.get("title")
        return value if isinstance(value, str) else None

    @property
    def html(self) -> Optional[str]:
        value = self.fields.get("html")
        return value if isinstance(value, str) else None


ExtractorInput = Union[URLInput, HTMLInput, ItemMetadataInput]
