"""
Extractor Base Classes
======================

Common interface for content extractors. An extractor turns an
``ExtractorInput`` into cleaned HTML plus an ordered list of image URLs,
or raises one of the tagged extraction errors.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from ..utils.exceptions import NotFoundError, UnsupportedInputError
from .inputs import ExtractorInput, HTMLInput, ItemMetadataInput, URLInput


@dataclass(frozen=True)
class ExtractionResult:
    """Content fragment and ordered unique images."""

    content: str
    images: List[str] = field(default_factory=list)


class Extractor(ABC):
    """Base class for all extractors.

    Subclasses implement one coroutine per input variant. ``extract``
    dispatches on the variant and rejects anything else.
    """

    name: str = "extractor"

    async def extract(self, source: ExtractorInput) -> ExtractionResult:
        """Extract content from ``source``.

        Raises:
            UnsupportedInputError: If ``source`` is not a known input variant
            ExcludedError, NotFoundError, TransportError, ParseError
        """
        if isinstance(source, URLInput):
            return await self.extract_url(source)
        if isinstance(source, HTMLInput):
            return await self.extract_html(source)
        if isinstance(source, ItemMetadataInput):
            return await self.extract_item(source)
        raise UnsupportedInputError(
            f"{self.name} cannot handle input of type {type(source).__name__}"
        )

    @abstractmethod
    async def extract_url(self, source: URLInput) -> ExtractionResult:
        """Fetch and extract an article URL."""

    async def extract_html(self, source: HTMLInput) -> ExtractionResult:
        raise UnsupportedInputError(f"{self.name} does not accept raw HTML")

    async def extract_item(self, source: ItemMetadataInput) -> ExtractionResult:
        raise UnsupportedInputError(f"{self.name} does not accept item metadata")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class UnavailableExtractor(Extractor):
    """Stand-in returned by the registry when nothing is registered."""

    name = "unavailable"

    async def extract(self, source: ExtractorInput) -> ExtractionResult:
        raise NotFoundError("no extractor available")

    async def extract_url(self, source: URLInput) -> ExtractionResult:
        raise NotFoundError("no extractor available", url=source.url)
