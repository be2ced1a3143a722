"""
FullFeed Ingestion Module
=========================

Source feed ingestion and content normalization components.

This module handles:
- Outbound HTTP transport with retry and backoff
- Feed fetching and parsing into raw items
- HTML sanitization and plain-text summaries
"""
