"""CLI commands for rrdcached-client."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from rrdcached_client.client import RrdCachedClient


def _run(ctx: click.Context, action: Callable[[RrdCachedClient], Awaitable[Any]]) -> Any:
    """Run action against a fresh client, mapping failures to exit status 1."""
    import asyncio

    from rrdcached_client import logging as console
    from rrdcached_client.client import RrdCachedClient
    from rrdcached_client.errors import ConnectionFailed, ProtocolViolation, RrdCachedError

    config = ctx.obj["config"]

    async def runner() -> Any:
        client = RrdCachedClient(config=config.client)
        try:
            return await action(client)
        finally:
            await client.close()

    try:
        return asyncio.run(runner())
    except ConnectionFailed as e:
        console.connection_failed(str(config.client.socket_path), str(e))
    except ProtocolViolation as e:
        console.protocol_violation(e.buffer)
    except RrdCachedError as e:
        console.command_failed(str(e))
    except TimeoutError:
        console.command_failed(f"No reply within {config.client.command_timeout}s")
    raise SystemExit(1)


@click.group()
@click.version_option(package_name="rrdcached-client")
@click.option(
    "--socket",
    "-s",
    "socket_path",
    type=click.Path(path_type=Path),
    default=None,
    help="rrdcached unix socket (overrides config)",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file to use",
)
@click.option("--verbose", "-v", is_flag=True, help="Show protocol events on stderr")
@click.pass_context
def main(ctx, socket_path: Path | None, config_path: Path | None, verbose: bool) -> None:
    """Talk to an rrdcached daemon."""
    from rrdcached_client.config import Config
    from rrdcached_client.logging import configure

    try:
        config = Config.load(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if socket_path is not None:
        config.client.socket_path = socket_path

    configure(config, verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path


@main.command()
@click.pass_context
def ping(ctx) -> None:
    """Check that the daemon answers."""
    click.echo(_run(ctx, lambda client: client.ping()))


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx, as_json: bool) -> None:
    """Show daemon counters."""
    import json
    from dataclasses import asdict

    result = _run(ctx, lambda client: client.stats())
    data = asdict(result)
    extra = data.pop("extra")

    if as_json:
        click.echo(json.dumps({**data, **extra}, indent=2))
        return

    for key, value in data.items():
        click.echo(f"{key:20} {value:>12}")
    for key, value in extra.items():
        click.echo(f"{key:20} {value:>12}")


@main.command()
@click.argument("filename")
@click.pass_context
def flush(ctx, filename: str) -> None:
    """Write pending updates of FILENAME to disk."""
    _run(ctx, lambda client: client.flush(filename))
    click.echo(f"Flushed {filename}")


@main.command("flush-all")
@click.pass_context
def flush_all(ctx) -> None:
    """Start flushing all pending updates."""
    _run(ctx, lambda client: client.flush_all())
    click.echo("Flush started")


@main.command()
@click.argument("filename")
@click.option("--flush", "flush_first", is_flag=True, help="Flush before forgetting")
@click.pass_context
def forget(ctx, filename: str, flush_first: bool) -> None:
    """Remove FILENAME from the cache (pending updates are lost)."""
    if flush_first:
        forgotten = _run(ctx, lambda client: client.flush_and_forget(filename))
    else:
        forgotten = _run(ctx, lambda client: client.forget(filename))

    if not forgotten:
        click.echo(f"Error: {filename} is not cached", err=True)
        raise SystemExit(1)
    click.echo(f"Forgot {filename}")


@main.command()
@click.argument("filename")
@click.pass_context
def pending(ctx, filename: str) -> None:
    """List updates of FILENAME not yet written."""
    updates = _run(ctx, lambda client: client.pending(filename))
    if not updates:
        click.echo("No pending updates.")
        return
    for update in updates:
        click.echo(update)


@main.command()
@click.argument("filename")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def info(ctx, filename: str, as_json: bool) -> None:
    """Show the RRD header of FILENAME."""
    import json
    import math

    data = _run(ctx, lambda client: client.info(filename))

    if as_json:
        # NaN is not valid JSON
        cleaned = {
            k: None if isinstance(v, float) and math.isnan(v) else v for k, v in data.items()
        }
        click.echo(json.dumps(cleaned, indent=2))
        return

    for key, value in data.items():
        click.echo(f"{key} = {value}")


@main.command()
@click.argument("filename")
@click.option("--rra", default=0, help="RRA index")
@click.pass_context
def first(ctx, filename: str, rra: int) -> None:
    """Print the first timestamp of an RRA."""
    click.echo(_run(ctx, lambda client: client.first(filename, rra)))


@main.command()
@click.argument("filename")
@click.pass_context
def last(ctx, filename: str) -> None:
    """Print the timestamp of the last update."""
    click.echo(_run(ctx, lambda client: client.last(filename)))


@main.command("list")
@click.argument("directory", default="/")
@click.option("--recursive", "-r", is_flag=True, help="Descend into subdirectories")
@click.pass_context
def list_(ctx, directory: str, recursive: bool) -> None:
    """List RRD files known below DIRECTORY."""
    if recursive:
        entries = _run(ctx, lambda client: client.list_recursive(directory))
    else:
        entries = _run(ctx, lambda client: client.list_files(directory))
    for entry in entries:
        click.echo(entry)


@main.command("help")
@click.pass_context
def help_(ctx) -> None:
    """List commands the daemon supports."""
    for name in _run(ctx, lambda client: client.list_available_commands()):
        click.echo(name)


@main.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def batch(ctx, source) -> None:
    """Run commands from SOURCE (one per line, default stdin) in BATCH mode."""
    from rrdcached_client import logging as console

    batch_commands = [line.rstrip("\n") for line in source if line.strip()]
    if not batch_commands:
        click.echo("Error: No commands given", err=True)
        raise SystemExit(1)

    result = _run(ctx, lambda client: client.batch(batch_commands))
    console.batch_summary(len(batch_commands), result.errors)
    if not result.ok:
        raise SystemExit(1)


@main.command()
@click.argument("words", nargs=-1, required=True)
@click.pass_context
def send(ctx, words: tuple[str, ...]) -> None:
    """Send a raw command and print the reply."""
    from rrdcached_client.frames import FlagReply, LinesReply

    reply = _run(ctx, lambda client: client.send(" ".join(words)))
    if isinstance(reply, LinesReply):
        for line in reply.lines:
            click.echo(line)
    elif isinstance(reply, FlagReply):
        click.echo("true" if reply.value else "false")
    else:
        click.echo(reply.text)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx) -> None:
    """Display current configuration."""
    cfg = ctx.obj["config"]
    path = ctx.obj["config_path"] or cfg.config_path

    click.echo(f"Config file: {path}")
    click.echo(f"Exists: {path.exists()}")
    click.echo()
    click.echo("[client]")
    click.echo(f"  socket_path = {cfg.client.socket_path}")
    click.echo(f"  connect_timeout = {cfg.client.connect_timeout}")
    click.echo(f"  command_timeout = {cfg.client.command_timeout}")
    click.echo(f"  read_chunk_size = {cfg.client.read_chunk_size}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  level = {cfg.logging.level}")
    click.echo(f"  json_file = {str(cfg.logging.json_file).lower()}")


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
@click.pass_context
def config_reset(ctx) -> None:
    """Reset configuration to defaults."""
    from rrdcached_client import logging as console
    from rrdcached_client.config import Config

    cfg = Config()
    path = ctx.obj["config_path"] or cfg.config_path
    cfg.save(path)
    console.config_created(str(path))
