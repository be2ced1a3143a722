"""
FullFeed Web Module
===================

aiohttp HTTP service for the full-text feed proxy.
"""

from .app import create_app, run_server

__all__ = ['create_app', 'run_server']
