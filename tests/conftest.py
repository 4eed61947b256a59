"""Shared test fixtures for rrdcached-client."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from rrdcached_client.connection import Connection


class MemoryStream:
    """In-memory duplex stream: a StreamReader fed by the test, a writer that records."""

    def __init__(self) -> None:
        self.reader = asyncio.StreamReader()
        self.written = bytearray()
        self.closed = False

    # StreamWriter side

    def write(self, data: bytes) -> None:
        if not self.closed:
            self.written.extend(data)

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        pass

    # Test helpers

    def reply(self, data: bytes) -> None:
        """Deliver bytes as if sent by the daemon."""
        self.reader.feed_data(data)

    def hang_up(self) -> None:
        self.reader.feed_eof()

    @property
    def lines(self) -> list[str]:
        return self.written.decode().splitlines()


class MemoryOpener:
    """Stream opener handing out a new MemoryStream per connection."""

    def __init__(self) -> None:
        self.streams: list[MemoryStream] = []
        self.fail_with: Exception | None = None

    async def __call__(self):
        if self.fail_with is not None:
            raise self.fail_with
        stream = MemoryStream()
        self.streams.append(stream)
        return stream.reader, stream

    @property
    def stream(self) -> MemoryStream:
        """Most recent stream."""
        return self.streams[-1]


class FakeDaemon:
    """Scripted rrdcached stand-in listening on a unix socket.

    Replies are looked up by full command line first, then by command
    name. BATCH mode is emulated: after BATCH, lines are collected until
    the dot and answered with ``batch_reply``.
    """

    def __init__(self, socket_path: Path) -> None:
        self.socket_path = socket_path
        self.received: list[str] = []
        self.connections = 0
        self.auto_reply = True
        self.replies: dict[str, bytes] = {
            "PING": b"0 PONG\n",
            "FLUSHALL": b"0 Started flush.\n",
        }
        self.batch_reply = b"0 errors\n"
        self._server: asyncio.Server | None = None
        self._writers: list[asyncio.StreamWriter] = []

    async def __aenter__(self) -> "FakeDaemon":
        self._server = await asyncio.start_unix_server(self._handle, path=str(self.socket_path))
        return self

    async def __aexit__(self, *exc_info) -> None:
        for writer in self._writers:
            writer.close()
        if self._server:
            self._server.close()
            await self._server.wait_closed()

    def push(self, data: bytes) -> None:
        """Write raw bytes to every connected client."""
        for writer in self._writers:
            if not writer.is_closing():
                writer.write(data)

    def hang_up(self) -> None:
        for writer in self._writers:
            writer.close()

    def reply_for(self, command: str) -> bytes:
        name = command.split(" ", 1)[0]
        if command in self.replies:
            return self.replies[command]
        if name in self.replies:
            return self.replies[name]
        return f"-1 Unknown command: {name}\n".encode()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        in_batch = False
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                command = line.decode().rstrip("\n")
                self.received.append(command)
                if in_batch:
                    if command == ".":
                        in_batch = False
                        writer.write(self.batch_reply)
                elif command == "QUIT":
                    break
                elif command == "BATCH":
                    in_batch = True
                    writer.write(b"0 Go ahead.  End with dot '.' on its own line.\n")
                elif self.auto_reply:
                    writer.write(self.reply_for(command))
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()


@pytest.fixture
def short_tmp_path():
    """Create a short temporary path for Unix sockets.

    macOS has a 104-character limit for Unix socket paths.
    pytest's tmp_path is too long, so we use /tmp directly.
    """
    with tempfile.TemporaryDirectory(dir="/tmp", prefix="rc_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def opener() -> MemoryOpener:
    return MemoryOpener()


@pytest.fixture
def connection(opener: MemoryOpener) -> Connection:
    """Connection over in-memory streams, no command deadline."""
    return Connection(opener=opener, command_timeout=None)


@pytest.fixture
def fake_daemon(short_tmp_path: Path) -> FakeDaemon:
    """Fake daemon, not yet listening. Use ``async with fake_daemon:``."""
    return FakeDaemon(short_tmp_path / "rrdcached.sock")
