"""Main CLI entry point for webfilecache.

Provides command-line interface for fetching, inspecting and watching cached
remote files.
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from webfilecache.base.registry import Registry
from webfilecache.cache import CacheConfig, Signal, WebFileCache
from webfilecache.sources.web import WebSource
from webfilecache.storage.backend import FileSystemStore

# Global console for Rich output
console = Console()


def setup_logging(verbose: int) -> None:
    """Route log records through Rich.

    The level comes from -v flags, falling back to WEBFILECACHE_LOG_LEVEL.
    """
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level_name = os.environ.get("WEBFILECACHE_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, level_name, logging.WARNING)

    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False)
        )
    root.setLevel(level)

    # Suppress verbose connection logs
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_config(options: Dict[str, Any]) -> CacheConfig:
    """Build configuration from multiple sources.

    Priority:
    1. Explicit command-line options
    2. --config file, if given
    3. WEBFILECACHE_* environment variables
    4. Defaults
    """
    config_path = options.get("config")
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise click.ClickException(f"Config file not found: {config_path}")
        config = CacheConfig.load(path)
    else:
        config = CacheConfig.from_env()

    if options.get("root"):
        config.cache_dir = Path(options["root"]).expanduser()
    if options.get("namespace"):
        config.namespace = options["namespace"]
    if options.get("source"):
        config.source_uri = options["source"]
    if options.get("validity") is not None:
        config.validity_seconds = options["validity"]
    return config


def _format_age(seconds: Optional[int]) -> str:
    if seconds is None:
        return "-"
    if seconds < 120:
        return f"{seconds}s"
    if seconds < 7200:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h"


@click.group()
@click.option(
    "--root",
    "-r",
    type=click.Path(file_okay=False),
    help="Cache root directory (default: XDG cache dir or WEBFILECACHE_DIR)",
)
@click.option("--namespace", "-n", help="Cache namespace under the root")
@click.option("--source", "-s", help="Source URI that names are appended to")
@click.option(
    "--validity", type=click.IntRange(min=0), help="Validity window in seconds"
)
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False),
    help="JSON configuration file",
)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity")
@click.pass_context
def cli(ctx, root, namespace, source, validity, config, verbose):
    """webfilecache CLI - Mirror remote files in a local cache.

    Options override the --config file, which overrides WEBFILECACHE_*
    environment variables.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.update(
        root=root, namespace=namespace, source=source, validity=validity, config=config
    )


@cli.command("fetch")
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--timeout", type=float, default=None, help="Seconds to wait for fetches"
)
@click.pass_context
def fetch(ctx, names, timeout):
    """Fetch missing or stale files once and report which are ready.

    Example:
        webfilecache -s https://example.com/maps/ fetch map.png
    """
    try:
        config = build_config(ctx.obj)
        ready = set()
        with WebFileCache.from_config(config, items=names) as cache:
            cache.item_ready.connect(lambda n: ready.add(n.identifier))
            cache.validity_scan()
            if not cache.wait_for_pending(timeout):
                console.print("[yellow]Some fetches are still running[/yellow]")
            cache.completion_poll()
            rows = [cache.status(name) for name in names]

        table = Table(title=f"Fetched ({len(ready)}/{len(names)} ready)")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Status", justify="right")
        table.add_column("Ready", justify="center")
        table.add_column("Location", style="blue")
        for row in rows:
            status = row["last_status"]
            table.add_row(
                row["source_key"],
                str(status) if status else "cached",
                "[green]✓[/green]" if row["first_processed"] else "[red]✗[/red]",
                row["location"] or "",
            )
        console.print(table)

        missing = [name for name in names if name not in ready]
        if missing:
            console.print(
                f"[red]✗[/red] Not ready: {', '.join(missing)}", style="red"
            )
            sys.exit(1)

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("status")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def status(ctx, names):
    """Show local presence and freshness of files, without network access.

    Example:
        webfilecache -n maps status map.png
    """
    try:
        config = build_config(ctx.obj)
        store = FileSystemStore(config.cache_dir, config.namespace)
        source = WebSource(config.source_uri, config.validity)
        registry = Registry.from_names(store, source, names)

        with WebFileCache(registry, config) as cache:
            rows = [cache.status(name) for name in names]
            stats = cache.get_stats()

        table = Table(title=f"Cache '{config.namespace}' ({store.root})")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Cached", justify="center")
        table.add_column("Age", justify="right")
        table.add_column("Fresh", justify="center")
        table.add_column("Remaining", justify="right", style="green")
        for row in rows:
            table.add_row(
                row["source_key"],
                "yes" if row["cached"] else "[red]no[/red]",
                _format_age(row["age_seconds"]),
                "yes" if row["fresh"] else "[yellow]stale[/yellow]",
                _format_age(row["validity_remaining"]) if row["cached"] else "-",
            )
        console.print(table)

        console.print(f"  Validity: {stats['validity_seconds']}s")
        if config.track_stats:
            console.print(
                f"  Fetches: {stats['fetches']}  Commits: {stats['commits']}  "
                f"Not modified: {stats['not_modified']}  Failures: {stats['failures']}"
            )

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("watch")
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--max-polls",
    type=click.IntRange(min=0),
    default=0,
    help="Stop after this many completion polls (0 = run until interrupted)",
)
@click.pass_context
def watch(ctx, names, max_polls):
    """Keep files refreshed, printing each one as it becomes ready.

    Validity scans run every validity_check_interval seconds and completion
    polls every future_check_interval seconds.

    Example:
        webfilecache -s https://example.com/maps/ watch map.png
    """
    try:
        config = build_config(ctx.obj)
        future_tick = Signal()
        validity_tick = Signal()

        with WebFileCache.from_config(config, items=names) as cache:
            cache.item_ready.connect(
                lambda n: console.print(
                    f"[green]✓[/green] {n.identifier} ready ({n.via})"
                )
            )
            cache.connect(future_tick, validity_tick)

            polls = 0
            next_scan = time.monotonic()
            try:
                while not max_polls or polls < max_polls:
                    now = time.monotonic()
                    if now >= next_scan:
                        validity_tick.emit()
                        next_scan = now + config.validity_check_interval
                    future_tick.emit()
                    polls += 1
                    if not max_polls or polls < max_polls:
                        time.sleep(config.future_check_interval)
            except KeyboardInterrupt:
                console.print("[yellow]Stopped[/yellow]")

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


if __name__ == "__main__":
    cli()
