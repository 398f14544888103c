"""Main entry point for the timedcache application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import logging
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

from timedcache.core.cached_repository import CachedRepository
from timedcache.core.command_handler import CommandHandler
from timedcache.domain.exceptions import CacheError
from timedcache.infrastructure.cache.timed_cache import TimedCache
from timedcache.infrastructure.cli.display import ConsoleDisplay
from timedcache.infrastructure.config.settings import (
    get_fetch_under_lock,
    get_source_latency,
    get_ttl_seconds,
    load_configuration,
)
from timedcache.infrastructure.monitoring.logger_setup import configure_logging
from timedcache.infrastructure.sources.random_sources import RandomProductSource, RandomUserSource

logger = logging.getLogger(__name__)

# --- Dependency Injection (Manual) ---

def create_dependencies(
    ttl_seconds: Optional[float] = None,
    fetch_under_lock: Optional[bool] = None,
    latency_seconds: Optional[float] = None,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command.

    Explicit arguments win over configuration. This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay()
    latency = get_source_latency() if latency_seconds is None else latency_seconds
    dependencies['user_source'] = RandomUserSource(latency_seconds=latency)
    dependencies['product_source'] = RandomProductSource(latency_seconds=latency)
    dependencies['cache'] = TimedCache(
        ttl_seconds=get_ttl_seconds() if ttl_seconds is None else ttl_seconds,
        fetch_under_lock=get_fetch_under_lock() if fetch_under_lock is None else fetch_under_lock,
    )
    dependencies['repository'] = CachedRepository(
        cache=dependencies['cache'],
        user_source=dependencies['user_source'],
        product_source=dependencies['product_source'],
    )
    dependencies['command_handler'] = CommandHandler(
        repository=dependencies['repository'],
        ui=dependencies['ui'],
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies


def _handler(**overrides: Any) -> CommandHandler:
    try:
        return create_dependencies(**overrides)['command_handler']
    except CacheError as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        ConsoleDisplay().display_error(f"Application Initialization Failed: {e}")
        raise typer.Exit(code=2)

# --- Typer App Definition ---
app = typer.Typer(
    name="timedcache",
    help="Sliding-TTL read-through cache in front of slow user/product sources.",
    add_completion=False,
)

# Shared options
TtlOption = Annotated[
    Optional[float],
    typer.Option("--ttl", help="Cache TTL in seconds. Uses cache.ttl_seconds if not set."),
]
LatencyOption = Annotated[
    Optional[float],
    typer.Option("--latency", help="Simulated source latency in seconds."),
]


@app.command()
def demo(
    ttl: TtlOption = None,
    expire_wait: Annotated[float, typer.Option(help="Seconds to wait before the expiring lookup.")] = 6.0,
    fresh_wait: Annotated[float, typer.Option(help="Seconds to wait before the fresh lookup.")] = 2.0,
):
    """Show that an idle entry expires and a recently used one does not."""
    handler = _handler(ttl_seconds=ttl)
    if not handler.handle_demo(expire_wait=expire_wait, fresh_wait=fresh_wait):
        raise typer.Exit(code=1)


@app.command()
def get(
    kind: Annotated[str, typer.Argument(help="Source kind ('user' or 'product').")],
    key: Annotated[str, typer.Argument(help="Lookup key.")],
    repeat: Annotated[int, typer.Option("--repeat", "-n", min=1, help="Number of lookups.")] = 1,
    interval: Annotated[float, typer.Option(min=0.0, help="Seconds between lookups.")] = 0.0,
    ttl: TtlOption = None,
    latency: LatencyOption = None,
):
    """Look a key up repeatedly and show which lookups hit the cache."""
    handler = _handler(ttl_seconds=ttl, latency_seconds=latency)
    rows = handler.handle_get(kind, key, repeat=repeat, interval=interval)
    if len(rows) < repeat:
        raise typer.Exit(code=1)


@app.command()
def stress(
    kind: Annotated[str, typer.Argument(help="Source kind ('user' or 'product').")],
    key: Annotated[str, typer.Argument(help="Lookup key.")],
    threads: Annotated[int, typer.Option("--threads", "-t", min=1, help="Concurrent callers.")] = 8,
    ttl: TtlOption = None,
    latency: LatencyOption = None,
    fetch_under_lock: Annotated[
        Optional[bool],
        typer.Option("--fetch-under-lock/--fetch-outside-lock", help="Hold the table lock while fetching."),
    ] = None,
):
    """Request one cold key from many threads at once and count the fetches."""
    handler = _handler(ttl_seconds=ttl, latency_seconds=latency, fetch_under_lock=fetch_under_lock)
    if not handler.handle_stress(kind, key, threads):
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level, e.g. DEBUG.")] = None,
):
    """Load configuration and set up logging before any command runs."""
    load_configuration()
    configure_logging(level=log_level)

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
