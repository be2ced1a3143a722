"""
FullFeed - Full-Text Feed Proxy
===============================

Turns RSS/Atom feeds into full-text feeds by extracting each article's
content and a representative image.

Main Components:
- Ingestion: HTTP transport, feed parsing and HTML sanitization
- Extraction: per-domain site profiles dispatched by a registry
- Filtering: per-domain URL allow/block rules
- Processing: concurrent feed assembly with per-item deadlines
- Storage: TTL result cache with background cleanup
- Delivery: JSON and RSS 2.0 serializers
- Web: aiohttp HTTP service
"""

__version__ = "1.0.0"
__author__ = "FullFeed Development Team"
__description__ = "Full-text RSS/Atom feed proxy"

# Core imports for easy access
from .config.settings import get_settings
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FullFeedError

__all__ = [
    "get_settings",
    "configure_application_logging",
    "get_logger_for_component",
    "FullFeedError",
]
