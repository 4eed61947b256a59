"""Exception hierarchy for the rrdcached client."""

from __future__ import annotations


class RrdCachedError(Exception):
    """Base class for all rrdcached client errors."""


class CommandError(RrdCachedError):
    """The daemon answered a command with status -1.

    Only the caller that issued the command sees this error.
    """

    def __init__(self, command: str, message: str) -> None:
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message


class ProtocolViolation(RrdCachedError):
    """Received bytes that don't fit the status-line grammar.

    Fatal for the connection. ``buffer`` holds everything that was still
    unconsumed when the violation was detected.
    """

    def __init__(self, buffer: str) -> None:
        super().__init__(f"Protocol violation, got: {buffer}")
        self.buffer = buffer


class ConnectionClosed(RrdCachedError):
    """The stream closed (or was closed) while a request was outstanding."""


class ConnectionFailed(ConnectionClosed):
    """Could not open the stream to the daemon."""


class BatchResultError(RrdCachedError):
    """A BATCH error summary line did not look like ``<index> <message>``."""

    def __init__(self, content: str) -> None:
        super().__init__(f"Unexpected result from BATCH: {content}")
        self.content = content


class UsageError(RrdCachedError, ValueError):
    """Invalid call, rejected before anything is written."""


class UnexpectedReply(RrdCachedError):
    """A reply arrived in a shape the command cannot use."""
