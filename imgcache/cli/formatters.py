"""
Rich renderables for the command-line output.
"""

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from imgcache.models.config import CacheConfig
from imgcache.models.stats import CacheStats

console = Console()


def print_config(config_file: Path, config: CacheConfig) -> None:
    """Displays the effective configuration."""
    source = str(config_file) if config_file.is_file() else "defaults"
    table = Table(title=f"Configuration ({escape(source)})", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.model_dump().items():
        table.add_row(key, escape(str(value)))
    console.print(table)


def print_results_table(results: dict[str, tuple[Path | None, bool]]) -> None:
    """Displays one row per fetched URL with its cached path or failure."""
    table = Table(title="Cached Images", show_lines=False)
    table.add_column("URL", style="dim", overflow="fold")
    table.add_column("Status", justify="center")
    table.add_column("Path", overflow="fold")
    for url, (path, failed) in results.items():
        status = "[red]✗ failed[/red]" if failed else "[green]✓ cached[/green]"
        table.add_row(escape(url), status, escape(str(path)) if path else "-")
    console.print(table)


def print_summary_panel(stats: CacheStats, duration: float) -> None:
    """Displays the cache statistics of a fetch session."""
    lines = [
        f"[green]Downloaded:[/green] {stats.downloads_completed}",
        f"[cyan]Already cached:[/cyan] {stats.hits}",
        f"[red]Failed attempts:[/red] {stats.downloads_failed}",
        f"[dim]Hit rate:[/dim] {stats.hit_rate:.0%}",
        f"[dim]Duration:[/dim] {duration:.2f}s",
    ]
    console.print(Panel("\n".join(lines), title="Summary", expand=False))
