# src/rrdcached_client/frames.py
"""Incremental decoder for rrdcached response frames.

Every response starts with a status line ``<status> <rest>``:

- ``-1 <message>``: the command failed
- ``0 <message>``: success, single line
- ``N <message>``: success, followed by exactly N payload lines

The decoder is pure: bytes go in via feed(), frames come out of
next_frame(). It knows nothing about sockets or pending requests.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from rrdcached_client.errors import ProtocolViolation


@dataclass(frozen=True)
class TextReply:
    """Single-line success reply (status 0)."""

    text: str


@dataclass(frozen=True)
class FlagReply:
    """Boolean success reply.

    Produced for ``0 errors``, the summary of a BATCH without failures.
    """

    value: bool


@dataclass(frozen=True)
class LinesReply:
    """Multi-line success reply (status N > 0), payload lines in order."""

    lines: tuple[str, ...]


@dataclass(frozen=True)
class ErrorFrame:
    """Failure reply (status -1)."""

    message: str


Reply = TextReply | FlagReply | LinesReply
Frame = ErrorFrame | Reply


class FrameDecoder:
    """Turns a fragmented byte stream into complete response frames."""

    def __init__(self) -> None:
        self._raw = bytearray()
        self._lines: deque[str] = deque()

    @property
    def has_lines(self) -> bool:
        """Whether complete lines are waiting to be framed."""
        return len(self._lines) > 0

    def feed(self, data: bytes) -> None:
        """Append bytes and split off every complete line."""
        self._raw.extend(data)
        offset = 0
        while (pos := self._raw.find(b"\n", offset)) != -1:
            self._lines.append(self._raw[offset:pos].decode("utf-8", errors="replace"))
            offset = pos + 1
        if offset:
            del self._raw[:offset]

    def next_frame(self) -> Frame | None:
        """Consume and return the next complete frame.

        Returns None when the backlog is empty or the head frame still
        waits for payload lines. Nothing is consumed in that case.

        Raises:
            ProtocolViolation: If the head line is not a valid status line
        """
        if not self._lines:
            return None

        head = self._lines[0]
        status, sep, rest = head.partition(" ")
        if not sep:
            raise ProtocolViolation(self.unconsumed())

        if status == "-1":
            self._lines.popleft()
            return ErrorFrame(rest)

        # isdigit() alone would accept "²" and friends
        if not (status.isascii() and status.isdigit()):
            raise ProtocolViolation(self.unconsumed())

        count = int(status)
        if count == 0:
            self._lines.popleft()
            if rest.lower() == "errors":
                return FlagReply(True)
            return TextReply(rest)

        if len(self._lines) <= count:
            return None

        self._lines.popleft()
        payload = tuple(self._lines.popleft() for _ in range(count))
        return LinesReply(payload)

    def unconsumed(self) -> str:
        """Everything not yet framed, for diagnostics."""
        raw = self._raw.decode("utf-8", errors="replace")
        if not self._lines:
            return raw
        return "\n".join(self._lines) + "\n" + raw

    def reset(self) -> None:
        """Drop all buffered data."""
        self._raw.clear()
        self._lines.clear()
