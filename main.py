#!/usr/bin/env python3
"""
FullFeed - Full-Text Feed Proxy
===============================

Main application entry point with CLI interface for serving and testing.

Usage:
    python main.py --help                         # Show all commands
    python main.py check-config                   # Validate configuration
    python main.py serve --port 8080              # Run the HTTP service
    python main.py fetch-feed URL --limit 5       # Build one full-text feed
    python main.py show-extractors                # List registered site profiles
"""

import sys
import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from fullfeed.config.settings import get_settings, OutputFormat
from fullfeed.extraction.registry import build_registry
from fullfeed.ingestion.transport import HttpTransport
from fullfeed.models import FeedRequest
from fullfeed.utils.logging import configure_application_logging
from fullfeed.utils.exceptions import FullFeedError
from fullfeed.web.app import build_assembler, run_server

console = Console()


def _configure_logging(settings, debug: bool) -> None:
    configure_application_logging(
        settings.logging,
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
    )


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FullFeed - full-text RSS/Atom feed proxy."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FullFeed Configuration[/bold blue]")

    try:
        settings = get_settings()
    except FullFeedError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Server", _check_server_config),
        ("Processing", _check_processing_config),
        ("Cache", _check_cache_config),
        ("Transport", _check_transport_config),
        ("Filtering", _check_filtering_config),
        ("Logging", _check_logging_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        if not status:
            all_passed = False

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
        sys.exit(0)
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
@click.option('--host', default=None, help='Listen address (default: from settings)')
@click.option('--port', default=None, type=int, help='Listen port (default: from settings)')
@click.pass_context
def serve(ctx, host, port):
    """Run the full-text feed HTTP service."""
    settings = get_settings()
    _configure_logging(settings, ctx.obj.get('debug'))

    console.print(
        f"[bold blue]🚀 Starting FullFeed on "
        f"{host or settings.server.host}:{port or settings.server.port}[/bold blue]"
    )
    run_server(settings, host=host, port=port)


@cli.command()
@click.argument('url')
@click.option('--limit', default=None, type=int, help='Maximum items to return')
@click.option('--format', 'output_format', type=click.Choice([f.value for f in OutputFormat]),
              default=None, help='Print the serialized payload in this format')
@click.pass_context
def fetch_feed(ctx, url, limit, output_format):
    """Build a full-text feed for URL and show the result."""
    settings = get_settings()
    _configure_logging(settings, ctx.obj.get('debug'))

    request = FeedRequest.build(
        url,
        limit=limit,
        output_format=output_format,
        default_limit=settings.processing.default_limit,
        max_limit=settings.processing.max_limit,
    )

    async def run_fetch():
        async with HttpTransport(settings.transport) as transport:
            assembler = build_assembler(settings, transport)
            if output_format:
                return None, await assembler.process_feed(request)
            return await assembler.assemble(request), None

    console.print(f"[bold blue]📡 Fetching feed: {request.source_url}[/bold blue]")
    try:
        feed, payload = asyncio.run(run_fetch())
    except FullFeedError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    if payload is not None:
        click.echo(payload)
        return

    info_table = Table(title="Feed Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Title", feed.title or "Unknown")
    info_table.add_row("Items Returned", str(len(feed.items)))
    info_table.add_row("Items Skipped", str(feed.items_skipped))
    info_table.add_row("Items Failed", str(feed.items_failed))
    console.print(info_table)

    for i, item in enumerate(feed.items, 1):
        console.print(f"\n{i}. [bold]{item.title}[/bold]")
        console.print(f"   🔗 Link: {item.link}")
        console.print(f"   🏷️  Category: {item.category}")
        console.print(f"   🖼️  Image: {item.image or 'None'}")
        console.print(f"   📝 Summary: {item.summary or 'No summary'}")


@cli.command()
def show_extractors():
    """List domains with a dedicated site profile."""
    registry = build_registry(transport=None)

    table = Table(title="Site Extractors")
    table.add_column("Domain", style="cyan")
    table.add_column("Profile", style="green")
    for domain in registry.domains():
        table.add_row(domain, registry.resolve(f"https://{domain}/").name)
    console.print(table)
    console.print(f"Default: {registry.default.name if registry.default else 'none'}")


def _check_server_config(settings) -> tuple[bool, str]:
    return True, f"{settings.server.host}:{settings.server.port}"


def _check_processing_config(settings) -> tuple[bool, str]:
    processing = settings.processing
    if processing.item_timeout > processing.request_timeout:
        return False, "item_timeout exceeds request_timeout"
    return True, (
        f"Limit: {processing.default_limit}/{processing.max_limit}, "
        f"Concurrency: {processing.max_concurrent_extractions}, "
        f"Timeouts: {processing.item_timeout}s/{processing.request_timeout}s"
    )


def _check_cache_config(settings) -> tuple[bool, str]:
    return True, (
        f"TTL: {settings.cache.ttl_seconds}s, "
        f"Cleanup every {settings.cache.cleanup_interval_seconds}s"
    )


def _check_transport_config(settings) -> tuple[bool, str]:
    transport = settings.transport
    return True, f"Timeout: {transport.timeout}s, Retries: {transport.max_retries}"


def _check_filtering_config(settings) -> tuple[bool, str]:
    filtering = settings.filtering
    builtin = "with" if filtering.use_builtin_rules else "without"
    return True, f"{len(filtering.rules)} custom rules, {builtin} built-in rules"


def _check_logging_config(settings) -> tuple[bool, str]:
    if settings.logging.file_path:
        log_dir = Path(settings.logging.file_path).parent
        if log_dir.exists() and not log_dir.is_dir():
            return False, f"Log directory is not a directory: {log_dir}"
    return True, f"Level: {settings.get_effective_log_level()}"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FullFeed interrupted by user[/yellow]")
        sys.exit(130)
