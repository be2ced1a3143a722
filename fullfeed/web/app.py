"""
HTTP Service
============

aiohttp application exposing the full-text feed proxy.

Routes:
- ``GET /feed?url=<feed>&limit=<n>&format=json|rss``: full-text feed
- ``GET /health``: liveness and cache size
- ``GET /``: usage page
"""

from datetime import datetime, timezone
from typing import Optional

from aiohttp import web

from .. import __version__
from ..config.settings import FullFeedSettings, get_settings
from ..delivery.serializers import content_type_for
from ..extraction.registry import build_registry
from ..filtering.url_filter import URLFilter
from ..ingestion.feed_source import FeedparserSource
from ..ingestion.transport import HttpTransport
from ..models import FeedRequest
from ..processing.feed_assembler import FeedAssembler
from ..storage.result_cache import CacheCleaner, ResultCache
from ..utils.exceptions import (
    FeedFetchError,
    FullFeedError,
    ParseError,
    SerializationError,
    ValidationError,
    get_user_friendly_message,
    handle_exception,
)
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator

SERVICE_NAME = "fullfeed"

SETTINGS_KEY = web.AppKey("settings", FullFeedSettings)
ASSEMBLER_KEY = web.AppKey("assembler", FeedAssembler)

logger = get_logger_for_component("web")


INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>FullFeed</title>
</head>
<body>
<h1>FullFeed</h1>
<p>Converts RSS/Atom feeds into full-text feeds.</p>
<h2>Usage</h2>
<pre>GET /feed?url=&lt;feed url&gt;&amp;limit=10&amp;format=json
GET /feed?url=&lt;feed url&gt;&amp;format=rss
GET /health</pre>
<p><code>limit</code> defaults to {default_limit} and is capped at {max_limit}.</p>
</body>
</html>
"""


def build_assembler(settings: FullFeedSettings, transport: HttpTransport) -> FeedAssembler:
    """Wire the production collaborators."""
    return FeedAssembler(
        feed_source=FeedparserSource(
            transport, allow_private_hosts=settings.transport.allow_private_hosts
        ),
        registry=build_registry(transport),
        url_filter=URLFilter.from_settings(settings.filtering),
        cache=ResultCache(ttl_seconds=settings.cache.ttl_seconds),
        settings=settings.processing,
    )


@web.middleware
async def response_headers_middleware(request: web.Request, handler):
    response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Server"] = SERVICE_NAME
    return response


def _error_response(status: int, error: Exception) -> web.Response:
    body = {"error": get_user_friendly_message(error)}
    if isinstance(error, FullFeedError) and error.error_code:
        body["code"] = error.error_code.value
    return web.json_response(body, status=status)


async def handle_feed(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    assembler = request.app[ASSEMBLER_KEY]

    source_url = request.query.get("url", "").strip()
    if not source_url:
        return web.json_response({"error": "Missing required query parameter: url"}, status=400)

    try:
        source_url = URLValidator.validate_feed_url(
            source_url, allow_private=settings.transport.allow_private_hosts
        )
    except ValidationError as e:
        return _error_response(400, e)

    feed_request = FeedRequest.build(
        source_url,
        limit=request.query.get("limit"),
        output_format=request.query.get("format"),
        default_limit=settings.processing.default_limit,
        max_limit=settings.processing.max_limit,
    )

    try:
        payload = await assembler.process_feed(feed_request)
    except ValidationError as e:
        return _error_response(400, e)
    except FeedFetchError as e:
        logger.warning(f"Upstream feed failed: {e}", extra=e.to_dict())
        return _error_response(502, e)
    except (ParseError, SerializationError) as e:
        logger.error(f"Could not produce feed: {e}", extra=e.to_dict())
        return _error_response(500, e)
    except FullFeedError as e:
        logger.error(f"Feed request failed: {e}", extra=e.to_dict())
        return _error_response(500, e)
    except Exception as e:
        error = handle_exception(e, logger, "feed_request", {"feed_url": source_url})
        return _error_response(500, error)

    content_type, _, charset = content_type_for(feed_request.output_format).partition("; charset=")
    return web.Response(text=payload, content_type=content_type, charset=charset or "utf-8")


async def handle_health(request: web.Request) -> web.Response:
    assembler = request.app[ASSEMBLER_KEY]
    return web.json_response({
        "status": "ok",
        "service": SERVICE_NAME,
        "version": __version__,
        "cache_size": assembler.cache_size(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


async def handle_index(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    html = INDEX_HTML.format(
        default_limit=settings.processing.default_limit,
        max_limit=settings.processing.max_limit,
    )
    return web.Response(text=html, content_type="text/html")


def create_app(settings: Optional[FullFeedSettings] = None,
               assembler: Optional[FeedAssembler] = None) -> web.Application:
    """Build the aiohttp application.

    Args:
        settings: Application settings (defaults to the global settings)
        assembler: Pre-built assembler; when omitted the production
            transport, feed source, registry, filter and cache are created
            here and the transport is closed on shutdown
    """
    settings = settings or get_settings()

    transport = None
    if assembler is None:
        transport = HttpTransport(settings.transport)
        assembler = build_assembler(settings, transport)

    app = web.Application(middlewares=[response_headers_middleware])
    app[SETTINGS_KEY] = settings
    app[ASSEMBLER_KEY] = assembler

    async def background_tasks(app: web.Application):
        cleaner = CacheCleaner(
            app[ASSEMBLER_KEY].cache,
            interval_seconds=settings.cache.cleanup_interval_seconds,
        )
        cleaner.start()
        logger.info(f"{SERVICE_NAME} {__version__} started")

        yield

        await cleaner.stop()
        if transport is not None:
            await transport.close()
        logger.info(f"{SERVICE_NAME} stopped")

    app.cleanup_ctx.append(background_tasks)

    app.router.add_get("/", handle_index)
    app.router.add_get("/feed", handle_feed)
    app.router.add_get("/health", handle_health)
    return app


def run_server(settings: Optional[FullFeedSettings] = None,
               host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the service until interrupted."""
    settings = settings or get_settings()
    web.run_app(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        print=None,
    )

