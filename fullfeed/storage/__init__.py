"""
FullFeed Storage Module
=======================

In-memory result cache and its background cleaner.
"""

from .result_cache import CacheCleaner, CacheEntry, ReadWriteLock, ResultCache

__all__ = [
    'CacheCleaner',
    'CacheEntry',
    'ReadWriteLock',
    'ResultCache',
]
