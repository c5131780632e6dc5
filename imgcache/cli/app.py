"""
Defines the command-line interface for the image cache using Typer.
"""

import asyncio
import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from imgcache import __version__
from imgcache.core.cache_manager import ImageCache
from imgcache.exceptions import ImgCacheError
from imgcache.models.config import CacheConfig
from imgcache.models.source import ImageSource
from imgcache.storage.config_manager import DEFAULT_CONFIG_FILE, ConfigManager
from imgcache.transport.http import close_connection_pool
from imgcache.utils.path import resolve_cache_path
from imgcache.utils.structured_logger import create_structured_logger

from .formatters import print_config, print_results_table, print_summary_panel

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("imgcache")

app = typer.Typer(
    name="imgcache",
    help="Download remote images into a local cache and manage that cache.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def _load_config(ctx: typer.Context, **overrides) -> CacheConfig:
    config_file = ctx.obj["config_file"] if ctx.obj else DEFAULT_CONFIG_FILE
    try:
        return ConfigManager(config_file).load_config(overrides)
    except ImgCacheError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _parse_headers(raw_headers: list[str]) -> dict[str, str]:
    """Parses repeated 'Name: value' options into a header dictionary."""
    headers = {}
    for raw in raw_headers:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(
                f"Header '{raw}' must look like 'Name: value'.", param_hint="--header"
            )
        headers[name.strip()] = value.strip()
    return headers


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_FILE,
        "--config",
        "-c",
        help="Path of the INI configuration file.",
    ),
):
    """Image cache CLI"""
    if version:
        console.print(f"[bold]imgcache[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("imgcache").setLevel(log_level)

    ctx.obj = {"config_file": config_file}

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    ctx: typer.Context,
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", help="Directory where images are cached."
    ),
    max_attempts: int | None = typer.Option(
        None, "--max-attempts", help="Failed downloads allowed per image."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with default values."""
    config_file: Path = ctx.obj["config_file"]
    if (
        config_file.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(config_file).save_new_config(
            {"cache_dir": cache_dir, "max_attempts": max_attempts}
        )
    except ImgCacheError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"[bold green]✓ Configuration saved to '{escape(str(config_file))}'"
        "[/bold green]"
    )


@app.command(name="show-config")
def show_config(ctx: typer.Context):
    """Display the effective configuration."""
    print_config(ctx.obj["config_file"], _load_config(ctx))


@app.command(name="path")
def path_command(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Image URL."),
    mutable: bool = typer.Option(
        False, "--mutable", help="Resolve a random path for a mutable image."
    ),
    temp: bool = typer.Option(
        False, "--temp", help="Resolve the in-flight download path instead."
    ),
):
    """Print the cache path an image URL maps to."""
    config = _load_config(ctx)
    path = resolve_cache_path(
        url,
        config.cache_dir,
        immutable=not mutable,
        temp=temp,
        default_extension=config.default_extension,
        temp_suffix=config.temp_suffix,
    )
    typer.echo(str(path))


async def _fetch_all(
    config: CacheConfig,
    sources: list[ImageSource],
    immutable: bool,
    log_dir: Path | None,
) -> tuple[ImageCache, dict[str, tuple[Path | None, bool]]]:
    """Subscribes to every source and waits until each one settled."""
    base_logger, cache_logger = create_structured_logger(
        log_dir, enable_json=log_dir is not None
    )
    cache = ImageCache(config, logger=cache_logger)
    results: dict[str, tuple[Path | None, bool]] = {}

    def make_handler(uri: str):
        def handler(path: Path | None, loading: bool, failed: bool) -> None:
            if not loading:
                results[uri] = (path, failed)

        return handler

    try:
        for source in sources:
            cache.subscribe(source, make_handler(source.uri), immutable=immutable)
        await cache.join()
    finally:
        await close_connection_pool()
        base_logger.close()
    return cache, results


@app.command(name="fetch")
def fetch_command(
    ctx: typer.Context,
    urls: list[str] = typer.Argument(..., help="One or more image URLs."),  # noqa: B008
    mutable: bool = typer.Option(
        False,
        "--mutable",
        help="Treat the images as mutable (random paths, not reused across runs).",
    ),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method to use."),
    header: list[str] = typer.Option(  # noqa: B008
        [], "--header", "-H", help="Extra request header, as 'Name: value'."
    ),
    max_attempts: int | None = typer.Option(
        None, "--max-attempts", help="Override the attempts allowed per image."
    ),
    log_dir: Path | None = typer.Option(
        None, "--log-dir", help="Also write JSONL event logs to this directory."
    ),
):
    """Download images into the cache, reusing files that are already there."""
    config = _load_config(ctx, max_attempts=max_attempts)
    headers = _parse_headers(header)

    unique_urls = list(dict.fromkeys(urls))
    if len(unique_urls) < len(urls):
        log.info(f"Removed {len(urls) - len(unique_urls)} duplicate URLs.")

    try:
        sources = [
            ImageSource(uri=url, method=method, headers=headers) for url in unique_urls
        ]
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    start_time = time.monotonic()
    cache, results = asyncio.run(
        _fetch_all(config, sources, immutable=not mutable, log_dir=log_dir)
    )
    duration = time.monotonic() - start_time

    print_results_table(results)
    print_summary_panel(cache.stats, duration)
    if any(failed for _, failed in results.values()):
        raise typer.Exit(code=1)


@app.command()
def clear(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete every cached image."""
    config = _load_config(ctx)
    if not force and not typer.confirm(
        f"Delete the image cache at '{config.cache_dir}'?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _clear_async():
        cache = ImageCache(config)
        await cache.clear_all()

    console.print("[cyan]Clearing image cache...[/cyan]")
    try:
        asyncio.run(_clear_async())
    except ImgCacheError as e:
        console.print(f"[red]✗ Failed to clear cache: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print("[green]✓ Cache cleared successfully.[/green]")
