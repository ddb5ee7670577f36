"""Main CLI entry point for kvstash.

Provides command-line access to a file cache directory.
"""

import json
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kvstash.cache import CacheConfig, FileCache, SetResult
from kvstash.display import format_expiration, format_filesize, format_usage

# Global console for Rich output
console = Console()


def open_cache(ctx: click.Context) -> FileCache:
    """Open the cache selected by the global options.

    Priority for each setting:
    1. Explicit command-line option
    2. KVSTASH_* environment variables
    3. CacheConfig defaults

    Args:
        ctx: Click context carrying the global options

    Returns:
        FileCache instance (caller is responsible for closing it)
    """
    config = CacheConfig.from_env()
    return FileCache(
        cache_dir=ctx.obj.get("cache_dir"),
        use_compression=True if ctx.obj.get("compress") else None,
        max_size=ctx.obj.get("max_size"),
        config=config,
    )


def _render_value(value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return json.dumps(value, indent=2, default=str)


@click.group()
@click.option(
    "--cache-dir",
    "-C",
    type=click.Path(file_okay=False),
    help="Cache directory (default: KVSTASH_CACHE_DIR env var or ~/.kvstash_cache)",
)
@click.option("--compress", is_flag=True, help="DEFLATE-compress stored values")
@click.option(
    "--max-size",
    type=click.IntRange(min=1),
    help="Maximum cache size in bytes (default: 64 MiB)",
)
@click.pass_context
def cli(ctx, cache_dir, compress, max_size):
    """kvstash CLI - Store, inspect and evict cached values.

    Use --cache-dir/-C to choose the cache, or set KVSTASH_CACHE_DIR.
    """
    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["compress"] = compress
    ctx.obj["max_size"] = max_size


@cli.command("set")
@click.argument("key")
@click.argument("value")
@click.option(
    "--ttl",
    type=click.FloatRange(min=0),
    default=0,
    help="Time-to-live in seconds (0 = never expire)",
)
@click.option("--json", "as_json", is_flag=True, help="Parse VALUE as JSON")
@click.pass_context
def set_value(ctx, key, value, ttl, as_json):
    """Store VALUE under KEY.

    Example:
        kvstash set greeting hello --ttl 60
        kvstash set config '{"retries": 3}' --json
    """
    if as_json:
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint="VALUE")

    try:
        with open_cache(ctx) as cache:
            result = cache.set(key, value, ttl=ttl)
            info = cache.read(key)

        verb = "Overwrote" if result is SetResult.OVERWRITTEN else "Stored"
        console.print(f"[green]✓[/green] {verb} '{escape(key)}'")
        console.print(f"  Size: {format_filesize(info['size_bytes'])}")
        console.print(f"  Expires: {format_expiration(info['expires_at'])}")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)


@cli.command("get")
@click.argument("key")
@click.pass_context
def get_value(ctx, key):
    """Print the value cached under KEY.

    Exits with status 1 if the key is not cached or has expired.

    Example:
        kvstash get greeting
    """
    missing = object()
    try:
        with open_cache(ctx) as cache:
            value = cache.get(key, default=missing)
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)

    if value is missing:
        console.print(f"[yellow]Key '{escape(key)}' not found[/yellow]")
        sys.exit(1)

    click.echo(_render_value(value))


@cli.command("expire")
@click.argument("key")
@click.pass_context
def expire_value(ctx, key):
    """Remove KEY from the cache.

    Example:
        kvstash expire greeting
    """
    try:
        with open_cache(ctx) as cache:
            removed = cache.expire(key)

        if removed:
            console.print(f"[green]✓[/green] Expired '{escape(key)}'")
        else:
            console.print(f"[yellow]Key '{escape(key)}' not found[/yellow]")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)


@cli.command("read")
@click.argument("key")
@click.pass_context
def read_value(ctx, key):
    """Show metadata for KEY without loading or evicting it.

    Example:
        kvstash read greeting
    """
    try:
        with open_cache(ctx) as cache:
            info = cache.read(key)
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)

    if info is None:
        console.print(f"[yellow]Key '{escape(key)}' not found[/yellow]")
        sys.exit(1)

    console.print(f"\n[bold cyan]Entry: {escape(key)}[/bold cyan]")
    console.print(f"[bold]File:[/bold] {escape(info['filename'])}")
    console.print(f"[bold]Size:[/bold] {format_filesize(info['size_bytes'])}")
    console.print(f"[bold]Expires:[/bold] {format_expiration(info['expires_at'])}")
    if info["stale"]:
        console.print("[bold]Status:[/bold] [yellow]stale (evicted on next get)[/yellow]")
    else:
        console.print("[bold]Status:[/bold] [green]valid[/green]")


@cli.command("freshen")
@click.pass_context
def freshen(ctx):
    """Evict all expired entries.

    Example:
        kvstash freshen
    """
    try:
        with open_cache(ctx) as cache:
            evicted = cache.freshen()
        console.print(f"[green]✓[/green] Evicted {evicted} expired entries")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)


@cli.command("flush")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def flush(ctx, yes):
    """Remove every entry from the cache.

    Example:
        kvstash flush --yes
    """
    if not yes:
        click.confirm("Remove every cached entry?", abort=True)

    try:
        with open_cache(ctx) as cache:
            evicted = cache.flush_cache()
        console.print(f"[green]✓[/green] Flushed {evicted} entries")

    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)


@cli.command("info")
@click.option("--keys", "show_keys", is_flag=True, help="List cached keys")
@click.pass_context
def info(ctx, show_keys):
    """Show cache size and entry counts.

    Example:
        kvstash info --keys
    """
    try:
        with open_cache(ctx) as cache:
            stats = cache.get_stats()
            entries = []
            if show_keys:
                entries = [(key, cache.read(key)) for key in sorted(cache.keys())]
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}", style="red")
        sys.exit(1)

    table = Table(title=f"{stats['cache_type']}: {escape(stats['cache_dir'])}")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("Entries", str(stats["entries"]))
    table.add_row("Valid", str(stats["valid_entries"]))
    table.add_row("Stale", str(stats["stale_entries"]))
    table.add_row("Size", format_usage(stats["size_bytes"], stats["max_size_bytes"]))
    table.add_row("Compression", "on" if stats["compression"] else "off")
    console.print(table)

    if entries:
        keys_table = Table(title=f"Keys ({len(entries)})")
        keys_table.add_column("Key", style="cyan", no_wrap=True)
        keys_table.add_column("Size", justify="right", style="green")
        keys_table.add_column("Expires", style="blue")
        for key, entry in entries:
            keys_table.add_row(
                escape(key),
                format_filesize(entry["size_bytes"]),
                format_expiration(entry["expires_at"]),
            )
        console.print(keys_table)


if __name__ == "__main__":
    cli()
