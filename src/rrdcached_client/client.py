# src/rrdcached_client/client.py
"""High-level rrdcached client: one coroutine per daemon command."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import structlog

from rrdcached_client import commands
from rrdcached_client.batch import BatchResult
from rrdcached_client.commands import quote_filename
from rrdcached_client.config import ClientConfig
from rrdcached_client.connection import Connection, StreamOpener
from rrdcached_client.errors import CommandError, UnexpectedReply
from rrdcached_client.frames import LinesReply, Reply, TextReply
from rrdcached_client.parsers import Stats, parse_help, parse_info

log = structlog.get_logger()


def _text(reply: Reply) -> str:
    if not isinstance(reply, TextReply):
        raise UnexpectedReply(f"Expected a single-line reply, got {reply!r}")
    return reply.text


def _lines(reply: Reply) -> list[str]:
    """Payload lines of a reply. A status-0 reply means "no lines"."""
    if isinstance(reply, LinesReply):
        return list(reply.lines)
    if isinstance(reply, TextReply):
        return []
    raise UnexpectedReply(f"Expected a multi-line reply, got {reply!r}")


def _int(reply: Reply) -> int:
    text = _text(reply)
    try:
        return int(text)
    except ValueError as e:
        raise UnexpectedReply(f"Expected an integer, got {text!r}") from e


class RrdCachedClient:
    """Async client for the rrdcached daemon.

    Connects lazily on the first command. Commands may be issued
    concurrently; they are pipelined over a single connection.

    Usage:
        async with RrdCachedClient("/var/run/rrdcached.sock") as client:
            await client.ping()
    """

    def __init__(
        self,
        socket_path: Path | str | None = None,
        *,
        config: ClientConfig | None = None,
        opener: StreamOpener | None = None,
    ) -> None:
        config = config or ClientConfig()
        if socket_path is not None:
            config = replace(config, socket_path=Path(socket_path))
        self.config = config
        self.connection = Connection.from_config(config, opener=opener)
        self._available_commands: list[str] | None = None
        self._commands_generation = -1

    async def __aenter__(self) -> RrdCachedClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def send(self, command: str) -> Reply:
        """Send a raw command line and return the daemon's reply."""
        return await self.connection.send(command)

    async def ping(self) -> str:
        """Usually returns 'PONG'."""
        return _text(await self.send(commands.PING))

    async def stats(self) -> Stats:
        return Stats.from_lines(_lines(await self.send(commands.STATS)))

    async def batch(self, batch_commands: Sequence[str]) -> BatchResult:
        """Run commands in BATCH mode.

        The result is truthy if every command succeeded. Otherwise
        ``result.errors`` maps the 1-based command number to its error,
        e.g. ``{4: "Can't use 'flushall' here.", 9: "No such file: ..."}``.
        """
        return await self.connection.batch(batch_commands)

    async def flush_all(self) -> bool:
        """Start flushing everything.

        True means the flush was started, not that it has finished.
        """
        await self.send(commands.FLUSHALL)
        return True

    async def first(self, filename: str, rra: int = 0) -> int:
        """Timestamp of the first CDP in the given RRA."""
        return _int(await self.send(f"{commands.FIRST} {quote_filename(filename)} {rra}"))

    async def last(self, filename: str) -> int:
        """Timestamp of the last update.

        Pending updates are not flushed first.
        """
        return _int(await self.send(f"{commands.LAST} {quote_filename(filename)}"))

    async def flush(self, filename: str) -> bool:
        await self.send(f"{commands.FLUSH} {quote_filename(filename)}")
        return True

    async def forget(self, filename: str) -> bool:
        """Drop a file from the cache, losing its pending updates.

        Returns False if the daemon didn't know the file.
        """
        try:
            reply = await self.send(f"{commands.FORGET} {quote_filename(filename)}")
        except CommandError as e:
            log.debug("forget_failed", file=filename, error=e.message)
            return False
        log.debug("forgot", file=filename, reply=_text(reply))
        return True

    async def flush_and_forget(self, filename: str) -> bool:
        await self.flush(filename)
        return await self.forget(filename)

    async def pending(self, filename: str) -> list[str]:
        """Updates not yet written for a file, oldest first.

        Unknown files have nothing pending.
        """
        try:
            reply = await self.send(f"{commands.PENDING} {quote_filename(filename)}")
        except CommandError:
            return []
        # '0 updates pending' comes back as text
        return _lines(reply)

    async def raw_info(self, filename: str) -> list[str]:
        return _lines(await self.send(f"{commands.INFO} {quote_filename(filename)}"))

    async def info(self, filename: str) -> dict[str, float | int | str]:
        """RRD header information as a flat key/value mapping."""
        return parse_info(await self.raw_info(filename))

    async def tune(self, filename: str, *parameters: str) -> list[str]:
        """Tune a file with rrdtool-tune parameters (rrdtool >= 1.8)."""
        command = " ".join([commands.TUNE, quote_filename(filename), *parameters])
        return _lines(await self.send(command))

    async def create(
        self,
        filename: str,
        step: int,
        start: int,
        data_sources: Sequence[str],
        archives: Sequence[str],
        *,
        no_overwrite: bool = False,
    ) -> bool:
        """Create an RRD file.

        Args:
            filename: Path as seen by the daemon
            step: Base interval in seconds
            start: Timestamp of the first value
            data_sources: DS definitions, e.g. "DS:load:GAUGE:600:0:U"
            archives: RRA definitions, e.g. "RRA:AVERAGE:0.5:1:288"
            no_overwrite: Fail if the file already exists (-O)
        """
        parts = [commands.CREATE, quote_filename(filename), "-s", str(step), "-b", str(start)]
        if no_overwrite:
            parts.append("-O")
        parts.extend(data_sources)
        parts.extend(archives)
        await self.send(" ".join(parts))
        return True

    async def update(self, filename: str, *values: str) -> bool:
        """Queue updates such as "1223661439:1:2:3" (absolute timestamps only)."""
        if not values:
            raise ValueError("UPDATE needs at least one value")
        await self.send(" ".join([commands.UPDATE, quote_filename(filename), *values]))
        return True

    async def suspend(self, filename: str) -> str:
        return _text(await self.send(f"{commands.SUSPEND} {quote_filename(filename)}"))

    async def resume(self, filename: str) -> str:
        return _text(await self.send(f"{commands.RESUME} {quote_filename(filename)}"))

    async def suspend_all(self) -> str:
        return _text(await self.send(commands.SUSPENDALL))

    async def resume_all(self) -> str:
        return _text(await self.send(commands.RESUMEALL))

    async def queue(self) -> list[tuple[int, str]]:
        """Files on the output queue as (number of values, file) pairs."""
        result = []
        for line in _lines(await self.send(commands.QUEUE)):
            count, _, filename = line.partition(" ")
            try:
                result.append((int(count), filename))
            except ValueError as e:
                raise UnexpectedReply(f"Invalid QUEUE line: {line!r}") from e
        return result

    async def list_available_commands(self) -> list[str]:
        """Commands supported by the daemon, sorted. Cached per connection."""
        connection = self.connection
        if (
            self._available_commands is None
            or not connection.connected
            or self._commands_generation != connection.generation
        ):
            lines = _lines(await self.send(commands.HELP))
            self._available_commands = parse_help(lines)
            # HELP itself may have opened the connection
            self._commands_generation = self.connection.generation
        return list(self._available_commands)

    async def has_command(self, name: str) -> bool:
        return name in await self.list_available_commands()

    async def list_files(self, directory: str = "/") -> list[str]:
        return sorted(_lines(await self.send(f"{commands.LIST} {directory}")))

    async def list_recursive(self, directory: str = "/") -> list[str]:
        return sorted(_lines(await self.send(f"{commands.LIST_RECURSIVE} {directory}")))

    async def quit(self) -> None:
        """Ask the daemon to hang up and wait until it does."""
        await self.connection.quit()

    async def close(self) -> None:
        await self.connection.close()
