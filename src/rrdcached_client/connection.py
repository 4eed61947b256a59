# src/rrdcached_client/connection.py
"""Pipelined connection to rrdcached.

One Connection owns one byte stream at a time. Commands are written as
soon as they are submitted; replies come back strictly in submission
order and are matched against a FIFO of pending requests.

Lifecycle: DISCONNECTED -> CONNECTING (first submit) -> CONNECTED ->
DISCONNECTED (EOF, read error, protocol violation or close()). Leaving
CONNECTED rejects everything still outstanding; the next submit opens a
fresh stream.

BATCH needs the write path for itself: between the BATCH command and its
payload no other command may reach the daemon. While a batch is open,
submissions from other callers are held back and released in order once
the batch finishes.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from rrdcached_client import commands
from rrdcached_client.batch import BatchResult, build_payload, interpret_batch_reply
from rrdcached_client.errors import (
    CommandError,
    ConnectionClosed,
    ConnectionFailed,
    ProtocolViolation,
    UsageError,
)
from rrdcached_client.frames import ErrorFrame, FrameDecoder, Reply

if TYPE_CHECKING:
    from rrdcached_client.config import ClientConfig

log = structlog.get_logger()

StreamOpener = Callable[[], Awaitable[tuple[asyncio.StreamReader, asyncio.StreamWriter]]]


class ConnectionState(Enum):
    """Stream lifecycle state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class PendingRequest:
    """A submitted command waiting for its reply."""

    command: str
    future: asyncio.Future[Reply]
    label: str | None = None  # Overrides the leading token, e.g. for a BATCH payload

    @property
    def name(self) -> str:
        """Leading token of the command, used to label errors."""
        if self.label is not None:
            return self.label
        parts = self.command.split(None, 1)
        return parts[0] if parts else ""

    def resolve(self, reply: Reply) -> None:
        # A caller that stopped waiting leaves a cancelled future behind
        if not self.future.done():
            self.future.set_result(reply)

    def reject(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)


class Connection:
    """Protocol engine for a single rrdcached stream.

    Args:
        socket_path: Unix socket of the daemon
        opener: Coroutine function returning (reader, writer). Overrides
            socket_path, e.g. for TCP or tests.
        connect_timeout: Seconds allowed for opening the stream
        command_timeout: Default deadline for send(), None to wait forever
        read_chunk_size: Max bytes per read from the stream
    """

    def __init__(
        self,
        socket_path: Path | str | None = None,
        *,
        opener: StreamOpener | None = None,
        connect_timeout: float = 5.0,
        command_timeout: float | None = 30.0,
        read_chunk_size: int = 65536,
    ) -> None:
        if opener is None:
            if socket_path is None:
                raise UsageError("Either socket_path or opener is required")
            opener = partial(asyncio.open_unix_connection, str(socket_path))
        self.socket_path = Path(socket_path) if socket_path is not None else None
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.read_chunk_size = read_chunk_size
        self._opener = opener

        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        self._writer: asyncio.StreamWriter | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._read_task: asyncio.Task[None] | None = None

        self._decoder = FrameDecoder()
        self._pending: deque[PendingRequest] = deque()
        self._outbox: list[bytes] = []  # Written once CONNECTING completes

        self._batch_lock = asyncio.Lock()
        self._batch_open = False
        self._held: deque[PendingRequest] = deque()

    @classmethod
    def from_config(cls, config: ClientConfig, opener: StreamOpener | None = None) -> Connection:
        """Create a connection from the [client] config section."""
        return cls(
            config.socket_path,
            opener=opener,
            connect_timeout=config.connect_timeout,
            command_timeout=config.command_timeout,
            read_chunk_size=config.read_chunk_size,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Whether the stream is open."""
        return self._state is ConnectionState.CONNECTED

    @property
    def generation(self) -> int:
        """Number of streams opened so far."""
        return self._generation

    @property
    def pending_count(self) -> int:
        """Requests written (or queued for the opening stream) without a reply yet."""
        return len(self._pending)

    @property
    def batch_open(self) -> bool:
        return self._batch_open

    # ─────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────

    def submit(self, command: str) -> asyncio.Future[Reply]:
        """Queue a command and write it to the daemon.

        Connects first if needed. The returned future resolves with the
        Reply for this command or fails with an RrdCachedError.
        Cancelling the future does not withdraw the command: its reply
        is still consumed and discarded when it arrives.
        """
        return self._submit(command, gated=True)

    async def send(self, command: str, timeout: float | None = None) -> Reply:
        """Submit a command and wait for its reply.

        Args:
            command: Command line without trailing newline
            timeout: Seconds to wait, defaults to command_timeout

        Raises:
            CommandError: If the daemon rejected the command
            ConnectionClosed: If the stream went away first
            ProtocolViolation: If the daemon sent garbage
            TimeoutError: If no reply arrived in time
        """
        future = self.submit(command)
        if timeout is None:
            timeout = self.command_timeout
        return await asyncio.wait_for(future, timeout)

    def _submit(
        self, command: str, *, gated: bool, label: str | None = None
    ) -> asyncio.Future[Reply]:
        command = command.removesuffix("\n")
        request = PendingRequest(command, asyncio.get_running_loop().create_future(), label)
        if gated and self._batch_open:
            log.debug("command_held", command=request.name)
            self._held.append(request)
        else:
            self._dispatch(request)
        return request.future

    def _dispatch(self, request: PendingRequest) -> None:
        """Enqueue and write in one step so submissions never interleave."""
        self._pending.append(request)
        data = request.command.encode() + b"\n"
        log.debug("command_sent", command=request.name, pending=len(self._pending))

        if self._state is ConnectionState.CONNECTED:
            assert self._writer is not None
            self._writer.write(data)
            return

        self._outbox.append(data)
        if self._state is ConnectionState.DISCONNECTED:
            log.debug("connect_deferred", command=request.name)
            self._state = ConnectionState.CONNECTING
            self._connect_task = asyncio.get_running_loop().create_task(self._connect())

    # ─────────────────────────────────────────────────────────────────────
    # Stream lifecycle
    # ─────────────────────────────────────────────────────────────────────

    async def _connect(self) -> None:
        try:
            reader, writer = await asyncio.wait_for(self._opener(), self.connect_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("connection_failed", socket=str(self.socket_path), error=str(e))
            if self._connect_task is asyncio.current_task():
                reason = e or type(e).__name__
                failure = ConnectionFailed(f"Connection to rrdcached failed: {reason}")
                failure.__cause__ = e
                self._teardown(failure)
            return

        if self._connect_task is not asyncio.current_task():
            # close() gave up on this attempt while the stream was opening
            log.debug("connection_discarded", socket=str(self.socket_path))
            writer.close()
            return

        self._writer = writer
        self._state = ConnectionState.CONNECTED
        self._generation += 1
        self._connect_task = None
        for data in self._outbox:
            writer.write(data)
        log.info("connection_opened", socket=str(self.socket_path), flushed=len(self._outbox))
        self._outbox.clear()
        self._read_task = asyncio.get_running_loop().create_task(self._read_loop(reader))

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        try:
            while True:
                data = await reader.read(self.read_chunk_size)
                if not data:
                    break
                self._decoder.feed(data)
                self._process_frames()
        except asyncio.CancelledError:
            raise
        except ProtocolViolation as e:
            log.error("protocol_violation", buffer=e.buffer)
            self._teardown(e)
            return
        except Exception as e:
            log.error("connection_error", error=str(e))
            failure = ConnectionClosed(f"rrdcached connection error: {e}")
            failure.__cause__ = e
            self._teardown(failure)
            return

        log.info("connection_closed", pending=len(self._pending))
        self._teardown(ConnectionClosed("rrdcached connection closed"))

    def _process_frames(self) -> None:
        """Match every complete frame with the oldest pending request."""
        while self._decoder.has_lines:
            if not self._pending:
                raise ProtocolViolation(self._decoder.unconsumed())
            frame = self._decoder.next_frame()
            if frame is None:
                return
            request = self._pending.popleft()
            if isinstance(frame, ErrorFrame):
                request.reject(CommandError(request.name, frame.message))
            else:
                request.resolve(frame)

    def _teardown(self, exc: BaseException) -> None:
        """Drop the stream and fail everything outstanding with exc."""
        writer = self._writer
        self._state = ConnectionState.DISCONNECTED
        self._writer = None
        self._connect_task = None
        self._read_task = None
        self._outbox.clear()
        self._decoder.reset()

        if writer is not None:
            writer.close()

        outstanding = [*self._pending, *self._held]
        self._pending.clear()
        self._held.clear()
        if outstanding:
            log.warning("requests_rejected", count=len(outstanding), reason=str(exc))
        for request in outstanding:
            request.reject(exc)

    async def close(self) -> None:
        """Close the stream now, failing all outstanding requests.

        Rejection happens before the first await.
        """
        writer = self._writer
        tasks = [t for t in (self._connect_task, self._read_task) if t is not None]
        self._teardown(ConnectionClosed("Connection closed by client"))

        current = asyncio.current_task()
        for task in tasks:
            if task is not current and not task.done():
                task.cancel()
        if writer is not None:
            try:
                await writer.wait_closed()
            except Exception:
                pass

    async def quit(self) -> None:
        """Send QUIT and wait for the daemon to hang up.

        Waits for a running batch to finish and for a connection attempt
        in progress to settle first. No-op when disconnected. A failed
        write counts as already quit.
        """
        async with self._batch_lock:
            if self._state is ConnectionState.CONNECTING and self._connect_task is not None:
                # asyncio.wait() leaves the attempt running if we are cancelled
                await asyncio.wait({self._connect_task})
            writer = self._writer
            read_task = self._read_task
            if not self.connected or writer is None or read_task is None:
                return
            if writer.is_closing():
                return
            try:
                writer.write(commands.QUIT.encode() + b"\n")
            except (ConnectionError, RuntimeError):
                log.debug("quit_write_failed")
                return
            # asyncio.wait() doesn't cancel the read loop if we are cancelled
            await asyncio.wait({read_task})

    # ─────────────────────────────────────────────────────────────────────
    # BATCH
    # ─────────────────────────────────────────────────────────────────────

    async def batch(self, batch_commands: Sequence[str]) -> BatchResult:
        """Run commands through BATCH mode.

        Concurrent batches run one after another. Returns a BatchResult
        mapping 1-based command numbers to error messages.

        Raises:
            UsageError: If batch_commands is empty (nothing is written)
            CommandError: If the daemon refused BATCH or the payload
            ConnectionClosed: If the stream ended before the summary arrived
            BatchResultError: If the error summary is malformed
        """
        payload = build_payload(batch_commands)
        # Shielded: once BATCH is written the payload must follow, even if
        # our caller gives up
        task = asyncio.get_running_loop().create_task(self._run_batch(payload))
        reply = await asyncio.shield(task)
        return interpret_batch_reply(reply)

    async def _run_batch(self, payload: str) -> Reply:
        if self._batch_lock.locked():
            log.debug("batch_waiting")
        async with self._batch_lock:
            self._batch_open = True
            # Stream that will carry BATCH: the open one, or the one being opened
            generation = self._generation + (0 if self.connected else 1)
            try:
                await self._submit(commands.BATCH, gated=False)
                if not self.connected or self._generation != generation:
                    # The payload must never open a stream of its own
                    raise ConnectionClosed("rrdcached connection closed before the BATCH payload")
                return await self._submit(payload, gated=False, label=commands.BATCH)
            finally:
                self._batch_open = False
                self._release_held()

    def _release_held(self) -> None:
        while self._held:
            request = self._held.popleft()
            # Never written, so an abandoned request can simply be dropped
            if request.future.cancelled():
                continue
            self._dispatch(request)
