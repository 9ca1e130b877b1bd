"""Click CLI for imgcache — resolve images and manage the cache."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from imgcache.config.defaults import DEFAULT_LOG_LEVEL
from imgcache.config.hierarchy import load_config_hierarchy
from imgcache.config.schema import CacheConfig, build_cache_config
from imgcache.errors.exceptions import ConfigurationError, ImageCacheError

console = Console()
error_console = Console(stderr=True)


def _log_level(verbosity: int, configured: str = DEFAULT_LOG_LEVEL) -> int:
    """-v flags win; without them the configured log_level applies."""
    if verbosity == 1:
        return logging.INFO
    if verbosity >= 2:
        return logging.DEBUG
    return logging.getLevelName(configured.upper())


def _setup_logging(verbosity: int, configured: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure logging based on verbosity level."""
    logging.basicConfig(
        level=_log_level(verbosity, configured),
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def _load_config(disk_path: str | None = None) -> CacheConfig:
    try:
        return build_cache_config(load_config_hierarchy(disk_path=disk_path))
    except ConfigurationError as e:
        error_console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(2)


@click.group()
@click.version_option(package_name="imgcache")
def cli() -> None:
    """imgcache — two-tier remote image cache."""


@cli.command()
@click.argument("url")
@click.option("--size", type=click.IntRange(min=1), default=None, help="Downsample to fit a SIZExSIZE box.")
@click.option("-o", "--output", type=click.Path(), help="Save the cached image to this path.")
@click.option("--disk-path", type=click.Path(), default=None, help="SQLite cache file.")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def fetch(url: str, size: int | None, output: str | None, disk_path: str | None, verbose: int) -> None:
    """Resolve URL through the cache and print what was served."""
    config = _load_config(disk_path)
    _setup_logging(verbose, config.log_level)
    from imgcache.core import ImageCache
    from imgcache.processing import DownsamplingProcessor

    async def _run() -> None:
        async with ImageCache(config=config) as cache:
            target = DownsamplingProcessor(size, size) if size else None
            handle = await cache.resolve(url, target)
            if handle is None:
                return
            table = Table(title="Resolved Image", show_header=True)
            table.add_column("Field", style="cyan")
            table.add_column("Value")
            table.add_row("Locator", handle.locator)
            table.add_row("Source", handle.source.value)
            table.add_row("Size", f"{handle.image.width}x{handle.image.height}")
            table.add_row("Mode", handle.image.mode)
            console.print(table)
            if output:
                try:
                    handle.image.save(Path(output))
                except (OSError, ValueError) as e:
                    raise click.ClickException(f"Cannot write {output}: {e}") from e
                console.print(f"[green]Written to {output}[/green]")

    try:
        asyncio.run(_run())
    except ImageCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@cli.group()
def cache() -> None:
    """Cache management commands."""


@cache.command("stats")
@click.option("--disk-path", type=click.Path(), default=None, help="SQLite cache file.")
def cache_stats(disk_path: str | None) -> None:
    """Show cache statistics."""
    from imgcache.cache.manager import CacheManager

    config = _load_config(disk_path)
    _setup_logging(0, config.log_level)
    mgr = CacheManager.from_config(config)

    table = Table(title="Cache Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")

    stats = mgr.stats()
    table.add_row("Disk entries", str(stats.disk_entries))
    table.add_row("Disk size (MB)", f"{stats.disk_mb:.1f} / {config.disk_byte_limit / (1024 * 1024):.0f}")
    table.add_row("Memory limit", f"{config.memory_byte_limit / (1024 * 1024):.0f}MB / {config.memory_count_limit} images")
    table.add_row("Expiration (days)", f"{config.expiration_seconds / 86400:.1f}")

    console.print(table)
    mgr.close()


@cache.command("clear")
@click.option("--disk-path", type=click.Path(), default=None, help="SQLite cache file.")
@click.confirmation_option(prompt="Are you sure you want to clear the cache?")
def cache_clear(disk_path: str | None) -> None:
    """Clear all cached images."""
    from imgcache.cache.manager import CacheManager

    config = _load_config(disk_path)
    _setup_logging(0, config.log_level)
    mgr = CacheManager.from_config(config)
    mgr.clear().result()
    mgr.close()
    console.print("[green]Image cache cleared.[/green]")


@cache.command("sweep")
@click.option("--disk-path", type=click.Path(), default=None, help="SQLite cache file.")
def cache_sweep(disk_path: str | None) -> None:
    """Remove expired disk entries."""
    from imgcache.cache.manager import CacheManager

    config = _load_config(disk_path)
    _setup_logging(0, config.log_level)
    mgr = CacheManager.from_config(config)
    removed = mgr.sweep_expired().result()
    mgr.close()
    console.print(f"[green]Removed {removed} expired entries.[/green]")


def main() -> None:
    """Entry point for the CLI."""
    cli()
