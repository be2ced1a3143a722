"""
HTTP Transport
==============

Outbound HTTP GET used by the feed source and the extractors, with a
shared aiohttp session, certifi-backed TLS, and exponential backoff on
network errors and retryable status codes.

The transport reports what the server said: a final non-2xx response is
returned to the caller, only exhausted network failures raise
``TransportError``.
"""

import asyncio
import random
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import aiohttp
import certifi

from ..config.settings import TransportSettings
from ..utils.exceptions import TransportError
from ..utils.logging import get_logger_for_component


@dataclass
class TransportResponse:
    """Result of a GET request."""

    status: int
    body: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(ABC):
    """Outbound HTTP collaborator used by the extraction layer."""

    @abstractmethod
    async def fetch(
        self, url: str, headers: Optional[Dict[str, str]] = None
    ) -> TransportResponse:
        """GET ``url`` and return the final response."""


class HttpTransport(Transport):
    """aiohttp-backed transport with retry and exponential backoff."""

    RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

    def __init__(self, settings: Optional[TransportSettings] = None, logger=None):
        """Initialize transport.

        Args:
            settings: Transport settings (defaults to TransportSettings())
            logger: Logger adapter (defaults to the component logger)
        """
        self.settings = settings or TransportSettings()
        self.logger = logger or get_logger_for_component("transport")
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

        # SSL context for secure requests
        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    async def __aenter__(self) -> "HttpTransport":
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    ssl=self.ssl_context,
                    limit=self.settings.max_connections,
                    limit_per_host=8,
                    enable_cleanup_closed=True,
                )
                headers = {
                    "User-Agent": self.settings.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Encoding": "gzip, deflate",
                }
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
                    headers=headers,
                )
            return self._session

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch(
        self, url: str, headers: Optional[Dict[str, str]] = None
    ) -> TransportResponse:
        """GET ``url`` with retries.

        Args:
            url: Absolute URL
            headers: Extra request headers

        Returns:
            The final TransportResponse (may be non-2xx)

        Raises:
            TransportError: If every attempt failed at the network level
        """
        session = await self._get_session()
        attempts = self.settings.max_retries + 1
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                async with session.get(url, headers=headers, allow_redirects=True) as response:
                    body = await response.text(errors="replace")
                    result = TransportResponse(
                        status=response.status,
                        body=body,
                        url=str(response.url),
                        headers={k: v for k, v in response.headers.items()},
                    )

                if result.status in self.RETRY_STATUS_CODES and attempt < attempts:
                    self.logger.warning(
                        f"HTTP {result.status} from {url}, retrying "
                        f"(attempt {attempt}/{attempts})"
                    )
                    await asyncio.sleep(self._backoff_delay(attempt))
                    continue

                self.logger.debug(f"Fetched {url}: HTTP {result.status}, {len(body)} chars")
                return result

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt < attempts:
                    self.logger.warning(
                        f"Fetch failed for {url}: {e!r}, retrying "
                        f"(attempt {attempt}/{attempts})"
                    )
                    await asyncio.sleep(self._backoff_delay(attempt))

        raise TransportError(
            f"Request failed after {attempts} attempts: {last_error!r}", url=url
        ) from last_error

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with +/-25% jitter."""
        delay = self.settings.backoff_base * (2 ** (attempt - 1))
        jitter_amount = delay * 0.25
        return max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))
