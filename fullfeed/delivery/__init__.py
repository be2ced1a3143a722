"""
FullFeed Delivery Module
========================

Output serializers for assembled feeds.
"""

from .serializers import content_type_for, serialize, to_json, to_rss

__all__ = ['content_type_for', 'serialize', 'to_json', 'to_rss']
