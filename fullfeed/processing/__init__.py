"""
FullFeed Processing Module
==========================

Feed assembly pipeline: item selection, concurrent extraction,
sanitization and categorization.
"""

from .categories import CategoryClassifier, categorize
from .feed_assembler import FeedAssembler

__all__ = [
    'CategoryClassifier',
    'FeedAssembler',
    'categorize',
]
