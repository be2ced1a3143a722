"""
FullFeed Input Validators
=========================

URL validation, domain normalization and URL resolution helpers shared by
the registry, the URL filter, the extraction engine and the feed source.
"""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and sanitization utilities."""

    ALLOWED_SCHEMES = {"http", "https"}

    # Hosts the proxy refuses to fetch on behalf of a caller
    PRIVATE_HOST_PATTERNS = [
        r"^localhost$",
        r"^127\.\d+\.\d+\.\d+$",
        r"^10\.\d+\.\d+\.\d+$",
        r"^192\.168\.\d+\.\d+$",
        r"^172\.(1[6-9]|2\d|3[01])\.\d+\.\d+$",
        r"^0\.0\.0\.0$",
    ]

    @classmethod
    def validate_feed_url(cls, url: str, allow_private: bool = False) -> str:
        """Validate and normalize a feed URL.

        Args:
            url: URL to validate
            allow_private: Accept loopback and private-network hosts

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url",
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if not parsed.netloc or not parsed.hostname:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if not allow_private and cls._is_private_host(parsed.hostname):
            raise ValidationError(
                "URL points to a local or private network host",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        return urlunparse(
            parsed._replace(
                scheme=parsed.scheme.lower(),
                netloc=parsed.netloc.lower(),
                path=parsed.path or "/",
                fragment="",
            )
        )

    @classmethod
    def _is_private_host(cls, hostname: str) -> bool:
        host = hostname.lower()
        return any(re.match(pattern, host) for pattern in cls.PRIVATE_HOST_PATTERNS)


def normalize_domain(domain: str) -> str:
    """Normalize a domain or URL to a bare lowercase host.

    Strips scheme, path, port and a leading ``www.``. Returns an empty
    string when nothing host-like remains.
    """
    if not domain:
        return ""

    value = domain.strip().lower()
    if "//" in value:
        value = urlparse(value).netloc
    else:
        value = value.split("/", 1)[0]

    # userinfo and port
    value = value.rsplit("@", 1)[-1]
    if value.startswith("["):
        value = value.split("]", 1)[0].lstrip("[")
    else:
        value = value.split(":", 1)[0]

    value = value.strip(".")
    if value.startswith("www."):
        value = value[4:]
    return value


def hostname_of(url: str) -> Optional[str]:
    """Return the lowercase host of ``url`` or None if it cannot be parsed."""
    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not host:
        return None
    return host.lower().strip(".")


def absolutize_url(src: str, base_url: Optional[str]) -> Optional[str]:
    """Resolve protocol-relative and root-relative ``src`` against ``base_url``.

    Returns None for empty values and ``data:``/``javascript:`` URIs.
    """
    if not src:
        return None
    src = src.strip()
    lowered = src.lower()
    if not src or lowered.startswith(("data:", "javascript:")):
        return None

    if lowered.startswith(("http://", "https://")):
        return src

    if src.startswith("//"):
        scheme = urlparse(base_url).scheme if base_url else ""
        return f"{scheme or 'https'}:{src}"

    if base_url:
        return urljoin(base_url, src)
    return None
