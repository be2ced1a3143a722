"""
FullFeed filtering package.

URL allow/block rules applied to feed items before extraction.
"""

from .url_filter import FilterDecision, FilterRule, URLFilter, default_filter_rules

__all__ = ['FilterDecision', 'FilterRule', 'URLFilter', 'default_filter_rules']
